"""
Rich-based terminal dashboard for diagnostics reports.

All formatting helpers live in ``netdiag.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from netdiag.diagnostics import NetworkDiagnosticsResult
from netdiag.dns import DnsTestResult
from netdiag.latency import PingMetrics
from netdiag.recommendations import (
    QUALITY_OK,
    QUALITY_PARTIAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    NetworkRecommendation,
)
from netdiag.stats import format_latency, format_speed
from netdiag.throughput import ThroughputResult

console = Console()

_QUALITY_COLORS: Dict[str, str] = {
    QUALITY_OK: "green",
    QUALITY_PARTIAL: "yellow",
}

_SEVERITY_COLORS: Dict[str, str] = {
    SEVERITY_HIGH: "red",
    SEVERITY_MEDIUM: "yellow",
}

STEP_LABELS: Dict[str, str] = {
    "gateway": "Discovering gateway",
    "latency": "Probing latency",
    "dns": "Timing DNS resolution",
    "throughput": "Measuring throughput",
}


# ---------------------------------------------------------------------------
# Sparkline helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_sparkline(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    top = len(_BARS) - 1
    return "".join(_BARS[int((v - lo) / span * top)] for v in values)


def _ms(value: Optional[float]) -> str:
    return format_latency(value) if value is not None else "N/A"


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Network Check[/bold cyan]\n"
            "[dim]Latency, DNS and throughput diagnostics[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_gateway(gateway: Optional[str]) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("Default Gateway:", gateway or "[dim]not found[/dim]")
    console.print(Panel(table, title="[bold]Local Network[/bold]", border_style="blue"))


def print_latency_table(targets: List[PingMetrics]) -> None:
    table = Table(title="Latency", box=box.ROUNDED)
    table.add_column("Target", style="bold")
    table.add_column("Loss", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("p50", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Jitter", justify="right")

    for t in targets:
        if not t.available:
            table.add_row(
                t.target,
                f"{t.loss_percent:.1f}%",
                f"[red]{t.reason or 'unavailable'}[/red]",
                "", "", "", "",
            )
            continue
        loss_style = "red" if t.loss_percent > 5 else ("yellow" if t.loss_percent > 0 else "green")
        table.add_row(
            t.target,
            f"[{loss_style}]{t.loss_percent:.1f}%[/{loss_style}]",
            _ms(t.latency_ms_min),
            _ms(t.latency_ms_p50),
            _ms(t.latency_ms_p95),
            _ms(t.latency_ms_max),
            f"{t.jitter_ms:.2f} ms" if t.jitter_ms is not None else "N/A",
        )

    console.print(table)


def print_dns_table(tests: List[DnsTestResult]) -> None:
    table = Table(title="DNS Resolution", box=box.ROUNDED)
    table.add_column("Domain", style="bold")
    table.add_column("Time", justify="right")
    table.add_column("Addresses", justify="right")
    table.add_column("Status")

    for d in tests:
        if d.success:
            table.add_row(d.domain, format_latency(d.resolve_ms), str(d.ip_count), "[green]OK[/green]")
        else:
            table.add_row(d.domain, format_latency(d.resolve_ms), "-", f"[red]{d.error}[/red]")

    console.print(table)


def print_throughput(result: ThroughputResult) -> None:
    table = Table(title="Throughput", box=box.ROUNDED)
    table.add_column("Direction", style="bold")
    table.add_column("Speed", justify="right")
    table.add_column("Samples")

    if result.download_available and result.download_mbps_median is not None:
        table.add_row(
            "Download (median)",
            f"[bold green]{format_speed(result.download_mbps_median)}[/bold green]",
            f"[green]{create_sparkline(result.download_samples)}[/green] {len(result.download_samples)}",
        )
    else:
        table.add_row("Download", f"[red]{result.download_reason}[/red]", "")

    if result.upload_available and result.upload_mbps_best is not None:
        table.add_row(
            "Upload (best)",
            f"[bold blue]{format_speed(result.upload_mbps_best)}[/bold blue]",
            f"[blue]{create_sparkline(result.upload_samples)}[/blue] {len(result.upload_samples)}",
        )
    else:
        table.add_row("Upload", f"[red]{result.upload_reason}[/red]", "")

    console.print(table)


def print_recommendations(recs: List[NetworkRecommendation]) -> None:
    if not recs:
        console.print("[green]No issues found.[/green]")
        return
    for rec in recs:
        color = _SEVERITY_COLORS.get(rec.severity, "cyan")
        console.print(f"  [{color}]{rec.severity.upper():<6}[/{color}] {rec.text}")


def print_errors(errors: Dict[str, str]) -> None:
    for step, message in errors.items():
        console.print(f"  [dim]{step}:[/dim] [yellow]{message}[/yellow]")


def print_report(result: NetworkDiagnosticsResult) -> None:
    """Print every section the run collected, then the verdict."""
    print_gateway(result.gateway)
    if result.internet_targets:
        print_latency_table(result.internet_targets)
    if result.dns_tests:
        print_dns_table(result.dns_tests)
    if result.throughput.available or result.throughput.download_reason:
        print_throughput(result.throughput)
    if result.errors:
        console.print("\n[bold]Step problems[/bold]")
        print_errors(result.errors)
    print_final_results(result)


def print_final_results(result: NetworkDiagnosticsResult) -> None:
    console.print()
    if not result.available:
        console.print(
            Panel.fit(
                f"[bold red]Diagnostics unavailable[/bold red]: {result.reason}\n"
                f"[dim]Ran for {result.duration_ms / 1000:.1f} s[/dim]",
                title="[bold]Results[/bold]",
                border_style="red",
            )
        )
        console.print()
        return

    color = _QUALITY_COLORS.get(result.quality, "red")
    tp = result.throughput
    download = format_speed(tp.download_mbps_median) if tp.download_mbps_median is not None else "N/A"
    upload = format_speed(tp.upload_mbps_best) if tp.upload_mbps_best is not None else "N/A"
    console.print(
        Panel.fit(
            f"[bold white]   Quality:[/bold white]  [bold {color}]{result.quality.upper()}[/bold {color}]"
            f"  [dim]{result.speed_tier or ''}[/dim]\n\n"
            f"[bold white]   Latency:[/bold white]  [bold yellow]{result.overall_latency_ms_p50:.1f} ms[/bold yellow]  "
            f"[dim](p95: {result.overall_latency_ms_p95:.1f} ms, jitter: {result.overall_jitter_ms:.2f} ms)[/dim]\n"
            f"[bold white]   Loss:[/bold white]  {result.overall_loss_percent:.1f}%\n"
            f"[bold white]   DNS p95:[/bold white]  {result.dns_p95_ms:.1f} ms\n"
            f"[bold white]   Download:[/bold white]  [bold green]{download}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{upload}[/bold blue]",
            title="[bold]Results[/bold]",
            border_style=color,
        )
    )
    if result.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        print_recommendations(result.recommendations)
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` spinner that follows the orchestrator's steps."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task_id = None

    def start(self, description: str = "Starting") -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=None)

    def step(self, name: str) -> None:
        """``on_step`` callback: show the step that just started."""
        if self._task_id is None:
            return
        self.progress.update(self._task_id, description=STEP_LABELS.get(name, name))

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None
