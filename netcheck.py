#!/usr/bin/env python3
"""
Network check CLI -- latency, DNS and throughput diagnostics from the terminal.

Usage::

    python netcheck.py                      # rich dashboard
    python netcheck.py --simple             # plain text
    python netcheck.py --json               # JSON to stdout
    python netcheck.py -o report.json       # save to file
    python netcheck.py --skip-throughput    # latency and DNS only
    python netcheck.py --upload-only        # parallel upload cross-check
    python netcheck.py --timeout 120        # stop the run after 120 s
    python netcheck.py --show-config        # print resolved settings
"""
from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from dataclasses import asdict, replace
from typing import Optional

from netdiag.config import Settings, config_path, load_config
from netdiag.constants import (
    MAX_PING_COUNT,
    MAX_RUN_COUNT,
    MAX_STREAMS,
    MIN_PING_COUNT,
    MIN_RUN_COUNT,
    MIN_STREAMS,
)
from netdiag.diagnostics import NetworkDiagnostics, NetworkDiagnosticsResult
from netdiag.logging_config import configure_logging
from ui.dashboard import ProgressDisplay, console, print_header, print_report
from ui.output import create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: Optional[int] = None,
    streams: Optional[int] = None,
    runs: Optional[int] = None,
    timeout: Optional[float] = None,
) -> None:
    """Raise ``ValueError`` if any override is out of range."""
    if ping_count is not None and not MIN_PING_COUNT <= ping_count <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if streams is not None and not MIN_STREAMS <= streams <= MAX_STREAMS:
        raise ValueError(f"Streams must be between {MIN_STREAMS} and {MAX_STREAMS}")
    if runs is not None and not MIN_RUN_COUNT <= runs <= MAX_RUN_COUNT:
        raise ValueError(f"Runs must be between {MIN_RUN_COUNT} and {MAX_RUN_COUNT}")
    if timeout is not None and timeout <= 0:
        raise ValueError("Timeout must be positive")


def build_settings(args: argparse.Namespace) -> Settings:
    """Config file values overlaid with command-line overrides."""
    settings = Settings.from_config(load_config())
    overrides = {}
    if args.ping_count is not None:
        overrides["ping_count"] = args.ping_count
    if args.streams is not None:
        overrides["upload_streams"] = args.streams
    if args.runs is not None:
        overrides["run_count"] = args.runs
    settings = replace(settings, **overrides)
    settings.validate()
    return settings


def _install_stop_handler(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows; KeyboardInterrupt is handled in main()


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

async def run_diagnostics(
    settings: Settings,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    skip_throughput: bool = False,
    timeout: Optional[float] = None,
) -> NetworkDiagnosticsResult:
    """Execute a full diagnostics run and present the report."""

    show_ui = not json_output and not simple
    stop = asyncio.Event()
    _install_stop_handler(stop)

    progress = None
    if show_ui:
        print_header()
        progress = ProgressDisplay()
        progress.start()

    diag = NetworkDiagnostics(
        settings,
        on_step=progress.step if progress else None,
        skip=("throughput",) if skip_throughput else (),
    )
    try:
        result = await diag.collect(stop, timeout=timeout)
    finally:
        if progress:
            progress.stop()

    if show_ui:
        print_report(result)
    elif simple:
        print(format_text_result(result))

    result_json = create_result_json(result)
    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Report saved to:[/green] {output_file}")

    return result


async def run_upload_only(settings: Settings, *, json_output: bool = False) -> Optional[float]:
    """Parallel upload engine only; prints the best speed."""
    stop = asyncio.Event()
    _install_stop_handler(stop)

    best = await NetworkDiagnostics(settings).collect_upload_only(stop)

    if json_output:
        print(json.dumps({"upload_mbps_best": best}, indent=2))
    elif best is None:
        print("Upload: upload_test_failed")
    else:
        print(f"Upload: {best:.2f} Mbps")
    return best


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Network check -- latency, DNS and throughput diagnostics",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output report as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save report to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Plain text output (no dashboard)")

    # Scope
    parser.add_argument("--upload-only", action="store_true", help="Run only the parallel upload cross-check")
    parser.add_argument("--skip-throughput", action="store_true", help="Skip download and upload tests")

    # Test parameters (default: config file, then built-in values)
    parser.add_argument("--ping-count", type=int, metavar="N", help="Echo probes per target (default: 30)")
    parser.add_argument("--streams", type=int, metavar="N", help="Concurrent upload streams (default: 4)")
    parser.add_argument("--runs", type=int, metavar="N", help="Runs per endpoint (default: 3)")
    parser.add_argument("--timeout", type=float, metavar="SECS", help="Stop the whole run after SECS seconds")

    # Misc
    parser.add_argument("--log-level", type=str, metavar="LEVEL", help="DEBUG, INFO, WARNING or ERROR (default: $NETDIAG_LOG_LEVEL or WARNING)")
    parser.add_argument("--show-config", action="store_true", help="Print the resolved settings and exit")
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        _validate(
            ping_count=args.ping_count,
            streams=args.streams,
            runs=args.runs,
            timeout=args.timeout,
        )
        settings = build_settings(args)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    if args.show_config:
        console.print(f"[dim]Config file:[/dim] {config_path()}")
        print(json.dumps(asdict(settings), indent=2))
        return 0

    try:
        if args.upload_only:
            best = asyncio.run(run_upload_only(settings, json_output=args.json))
            return 0 if best is not None else 1

        result = asyncio.run(
            run_diagnostics(
                settings,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                skip_throughput=args.skip_throughput,
                timeout=args.timeout,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Check cancelled by user[/yellow]")
        return 1
    except Exception as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        return 1

    return 0 if result.available else 1


if __name__ == "__main__":
    sys.exit(main())
