"""Network diagnostics engine -- latency, DNS, throughput, and quality verdicts."""

from .cancellation import Cancelled, bounded, pause, step_scope
from .config import Settings, load_config
from .diagnostics import NetworkDiagnostics, NetworkDiagnosticsResult
from .dns import DnsProber, DnsTestResult
from .download import DownloadSampler, TransferOutcome
from .gateway import discover_gateway
from .latency import LatencyProber, LatencySample, PingMetrics, TargetError
from .logging_config import configure_logging, prefixed
from .recommendations import (
    NetworkRecommendation,
    determine_quality,
    generate_recommendations,
    speed_tier,
)
from .stats import format_latency, format_speed, middle_value, percentile, population_stddev
from .throughput import ThroughputEngine, ThroughputResult
from .transport import Transport
from .upload import ParallelUploadEngine, RunOutcome, StreamOutcome, UploadResult

__version__ = "1.0.0"

__all__ = [
    "Cancelled",
    "DnsProber",
    "DnsTestResult",
    "DownloadSampler",
    "LatencyProber",
    "LatencySample",
    "NetworkDiagnostics",
    "NetworkDiagnosticsResult",
    "NetworkRecommendation",
    "ParallelUploadEngine",
    "PingMetrics",
    "RunOutcome",
    "Settings",
    "StreamOutcome",
    "TargetError",
    "ThroughputEngine",
    "ThroughputResult",
    "TransferOutcome",
    "Transport",
    "UploadResult",
    "bounded",
    "configure_logging",
    "determine_quality",
    "discover_gateway",
    "format_latency",
    "format_speed",
    "generate_recommendations",
    "load_config",
    "middle_value",
    "pause",
    "percentile",
    "population_stddev",
    "prefixed",
    "speed_tier",
    "step_scope",
]
