"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List

from netdiag.diagnostics import NetworkDiagnosticsResult


def create_result_json(result: NetworkDiagnosticsResult) -> Dict[str, Any]:
    """JSON-serialisable dict for a report, with the step timings summarised."""
    data = result.to_dict()
    available = [t for t in result.internet_targets if t.available]
    data["summary"] = {
        "targets_probed": len(result.internet_targets),
        "targets_available": len(available),
        "dns_failures": sum(1 for d in result.dns_tests if not d.success),
        "download_mbps": result.throughput.download_mbps_median,
        "upload_mbps": result.throughput.upload_mbps_best,
    }
    return data


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise OSError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def _fmt_mbps(value) -> str:  # noqa: ANN001
    return f"{value:.2f} Mbps" if value is not None else "N/A"


def format_text_result(result: NetworkDiagnosticsResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    lines: List[str] = [sep, "Network Diagnostics", sep]

    if not result.available:
        lines.append(f"Unavailable: {result.reason}")

    lines.append(f"Gateway: {result.gateway or 'not found'}")
    for t in result.internet_targets:
        if t.available:
            lines.append(
                f"Ping {t.target}: {t.latency_ms_p50:.1f} ms "
                f"(p95 {t.latency_ms_p95:.1f} ms, jitter {t.jitter_ms:.2f} ms, loss {t.loss_percent:.1f}%)"
            )
        else:
            lines.append(f"Ping {t.target}: unavailable ({t.reason})")
    for d in result.dns_tests:
        status = f"{d.resolve_ms:.1f} ms" if d.success else f"FAILED ({d.error})"
        lines.append(f"DNS {d.domain}: {status}")

    tp = result.throughput
    lines.append(mid)
    lines.append(f"Download: {_fmt_mbps(tp.download_mbps_median) if tp.download_available else tp.download_reason}")
    lines.append(f"Upload: {_fmt_mbps(tp.upload_mbps_best) if tp.upload_available else tp.upload_reason}")

    if result.available:
        lines.append(mid)
        lines.append(f"Quality: {result.quality}")
        if result.speed_tier:
            lines.append(f"Tier: {result.speed_tier}")
        for rec in result.recommendations:
            lines.append(f"[{rec.severity}] {rec.text}")

    lines.append(sep)
    return "\n".join(lines)
