"""
Shared constants used across all engine modules.

Centralises magic numbers, target panels, and tunables so they live in
exactly one place.  Every value here can be overridden through
``~/.netdiag/config.json`` or the command line.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "netdiag/1.0 (+https://github.com/netdiag/netdiag)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",
}

UPLOAD_CONTENT_TYPE = "application/octet-stream"

# ---------------------------------------------------------------------------
# Target panels
# ---------------------------------------------------------------------------

PING_TARGETS = ("1.1.1.1", "8.8.8.8")

DNS_DOMAINS = (
    "microsoft.com",
    "cloudflare.com",
    "google.com",
    "windows.com",
    "example.com",
)

# Priority order: primary first, fallbacks after.
DOWNLOAD_URLS = (
    "http://speedtest.tele2.net/10MB.zip",
    "http://proof.ovh.net/files/10Mb.dat",
    "http://speedtest.tele2.net/1MB.zip",
)

UPLOAD_URLS = (
    "https://speed.cloudflare.com/__up",
    "http://speedtest.tele2.net/upload.php",
)

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

PING_COUNT = 30
PING_TIMEOUT_MS = 1000
PING_INTERVAL_MS = 30
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

OPERATION_TIMEOUT_MS = 8000
DOWNLOAD_TIMEOUT_FACTOR = 2      # 16 s per download attempt
UPLOAD_TIMEOUT_FACTOR = 4        # 32 s per timed upload run
RUN_COUNT = 3
MIN_RUN_COUNT = 1
MAX_RUN_COUNT = 10

# Per-step deadlines (seconds); each one also stops when the run stops.
GATEWAY_STEP_TIMEOUT = 5.0
LATENCY_STEP_TIMEOUT = 120.0
DNS_STEP_TIMEOUT = 60.0
THROUGHPUT_STEP_TIMEOUT = 300.0

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

DOWNLOAD_MAX_BYTES = 25 * 1024 * 1024
DOWNLOAD_MIN_BYTES = 512 * 1024          # below this TCP slow-start dominates
DOWNLOAD_MIN_ELAPSED_MS = 100
DOWNLOAD_CHUNK_SIZE = 128 * 1024

UPLOAD_TOTAL_BYTES = 20 * 1024 * 1024
UPLOAD_STREAMS = 4
UPLOAD_WARMUP_BYTES = 512 * 1024
UPLOAD_MIN_ELAPSED_MS = 200
MIN_STREAMS = 1
MAX_STREAMS = 16

# Connection pool: two sockets per stream so warmup connections can be reused.
CONNECTIONS_PER_STREAM = 2
SESSION_TIMEOUT_SECONDS = 60.0

# ---------------------------------------------------------------------------
# Classification thresholds
# ---------------------------------------------------------------------------

LOSS_MEDIUM_PERCENT = 2.0
LOSS_HIGH_PERCENT = 5.0
JITTER_MEDIUM_MS = 30.0
JITTER_HIGH_MS = 50.0
DNS_SLOW_MS = 250.0
DOWNLOAD_LOW_MBPS = 5.0
DOWNLOAD_MODERATE_MBPS = 20.0
DOWNLOAD_EXCELLENT_MBPS = 100.0

QUALITY_SUSPECT_LOSS = 5.0
QUALITY_PARTIAL_LOSS = 1.0
QUALITY_PARTIAL_JITTER_MS = 30.0
