"""
User configuration file support.

Reads/writes ``~/.netdiag/config.json``.  Missing keys fall back to the
values in :mod:`netdiag.constants`; a corrupt file is ignored.

Supported keys::

    ping_count = 30              # echo probes per target
    ping_timeout_ms = 1000
    operation_timeout_ms = 8000  # x2 per download attempt, x4 per upload run
    download_max_bytes = 26214400
    upload_total_bytes = 20971520
    upload_streams = 4
    upload_warmup_bytes = 524288
    upload_min_elapsed_ms = 200
    run_count = 3
    ping_targets = ["1.1.1.1", "8.8.8.8"]
    dns_domains = [...]
    download_urls = [...]
    upload_urls = [...]
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping

from . import constants as C

_CONFIG_DIR = os.path.join(Path.home(), ".netdiag")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "ping_count": C.PING_COUNT,
    "ping_timeout_ms": C.PING_TIMEOUT_MS,
    "ping_interval_ms": C.PING_INTERVAL_MS,
    "operation_timeout_ms": C.OPERATION_TIMEOUT_MS,
    "download_max_bytes": C.DOWNLOAD_MAX_BYTES,
    "download_min_bytes": C.DOWNLOAD_MIN_BYTES,
    "download_min_elapsed_ms": C.DOWNLOAD_MIN_ELAPSED_MS,
    "upload_total_bytes": C.UPLOAD_TOTAL_BYTES,
    "upload_streams": C.UPLOAD_STREAMS,
    "upload_warmup_bytes": C.UPLOAD_WARMUP_BYTES,
    "upload_min_elapsed_ms": C.UPLOAD_MIN_ELAPSED_MS,
    "run_count": C.RUN_COUNT,
    "ping_targets": list(C.PING_TARGETS),
    "dns_domains": list(C.DNS_DOMAINS),
    "download_urls": list(C.DOWNLOAD_URLS),
    "upload_urls": list(C.UPLOAD_URLS),
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, OSError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()


# ---------------------------------------------------------------------------
# Typed settings
# ---------------------------------------------------------------------------

def _coerce(key: str, type_name: str, value: Any) -> Any:
    try:
        if isinstance(value, bool):
            raise TypeError
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
        if not isinstance(value, (list, tuple)):
            raise TypeError
        return [str(v) for v in value]
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {key} in config: {value!r}") from None


@dataclass
class Settings:
    """Resolved engine configuration for one diagnostics run."""

    ping_count: int = C.PING_COUNT
    ping_timeout_ms: int = C.PING_TIMEOUT_MS
    ping_interval_ms: int = C.PING_INTERVAL_MS
    operation_timeout_ms: int = C.OPERATION_TIMEOUT_MS
    download_max_bytes: int = C.DOWNLOAD_MAX_BYTES
    download_min_bytes: int = C.DOWNLOAD_MIN_BYTES
    download_min_elapsed_ms: float = C.DOWNLOAD_MIN_ELAPSED_MS
    upload_total_bytes: int = C.UPLOAD_TOTAL_BYTES
    upload_streams: int = C.UPLOAD_STREAMS
    upload_warmup_bytes: int = C.UPLOAD_WARMUP_BYTES
    upload_min_elapsed_ms: float = C.UPLOAD_MIN_ELAPSED_MS
    run_count: int = C.RUN_COUNT
    ping_targets: List[str] = field(default_factory=lambda: list(C.PING_TARGETS))
    dns_domains: List[str] = field(default_factory=lambda: list(C.DNS_DOMAINS))
    download_urls: List[str] = field(default_factory=lambda: list(C.DOWNLOAD_URLS))
    upload_urls: List[str] = field(default_factory=lambda: list(C.UPLOAD_URLS))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> Settings:
        """
        Build settings from a config mapping; unknown keys are ignored.

        Numeric strings such as ``"30"`` are converted.  Values that cannot be
        converted raise ``ValueError``.
        """
        known = {f.name: f.type for f in fields(cls)}
        return cls(**{k: _coerce(k, known[k], v) for k, v in config.items() if k in known})

    def validate(self) -> None:
        """Raise ``ValueError`` if any value is out of range."""
        if not C.MIN_PING_COUNT <= self.ping_count <= C.MAX_PING_COUNT:
            raise ValueError(
                f"Ping count must be between {C.MIN_PING_COUNT} and {C.MAX_PING_COUNT}"
            )
        if not C.MIN_STREAMS <= self.upload_streams <= C.MAX_STREAMS:
            raise ValueError(f"Streams must be between {C.MIN_STREAMS} and {C.MAX_STREAMS}")
        if not C.MIN_RUN_COUNT <= self.run_count <= C.MAX_RUN_COUNT:
            raise ValueError(
                f"Run count must be between {C.MIN_RUN_COUNT} and {C.MAX_RUN_COUNT}"
            )
        if self.ping_timeout_ms <= 0 or self.operation_timeout_ms <= 0:
            raise ValueError("Timeouts must be positive")
        if self.ping_interval_ms < 0:
            raise ValueError("Ping interval must not be negative")
        if self.upload_total_bytes < self.upload_streams:
            raise ValueError("Upload payload must hold at least one byte per stream")
        if self.download_max_bytes <= 0 or self.upload_warmup_bytes < 0:
            raise ValueError("Transfer sizes must be positive")
        if not self.download_urls or not self.upload_urls:
            raise ValueError("At least one download and one upload endpoint is required")
