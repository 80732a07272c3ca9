"""
Throughput engine: download sampler followed by the parallel upload engine.

The two directions are reported independently -- a failed upload never
hides a good download, and vice versa.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from .download import DownloadSampler
from .stats import middle_value
from .upload import ParallelUploadEngine

DOWNLOAD_FAILED = "download_test_failed"
UPLOAD_FAILED = "upload_test_failed"


@dataclass
class ThroughputResult:
    """Download median and upload best, each with its own availability."""

    download_available: bool = False
    download_reason: Optional[str] = None
    download_mbps_median: Optional[float] = None
    download_samples: List[float] = field(default_factory=list)
    upload_available: bool = False
    upload_reason: Optional[str] = None
    upload_mbps_best: Optional[float] = None
    upload_samples: List[float] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.download_available or self.upload_available

    def to_dict(self) -> dict:
        return {
            "download": {
                "available": self.download_available,
                "reason": self.download_reason,
                "mbps_median": self.download_mbps_median,
                "samples": [round(s, 2) for s in self.download_samples],
            },
            "upload": {
                "available": self.upload_available,
                "reason": self.upload_reason,
                "mbps_best": self.upload_mbps_best,
                "samples": [round(s, 2) for s in self.upload_samples],
            },
        }


def reduce_download(samples: List[float]) -> ThroughputResult:
    """Fill the download half of a result from the accepted sample pool."""
    result = ThroughputResult()
    median = middle_value(samples)
    if median is None:
        result.download_reason = DOWNLOAD_FAILED
    else:
        result.download_available = True
        result.download_mbps_median = median
        result.download_samples = sorted(samples)
    return result


class ThroughputEngine:
    """Run the download sampler, then the upload engine, on one transport."""

    def __init__(self, downloader: DownloadSampler, uploader: ParallelUploadEngine) -> None:
        self.downloader = downloader
        self.uploader = uploader

    async def measure(self, stop: asyncio.Event) -> ThroughputResult:
        samples = await self.downloader.sample(stop)
        result = reduce_download(samples)

        upload = await self.uploader.run(stop)
        if upload.available:
            result.upload_available = True
            result.upload_mbps_best = upload.best_mbps
            result.upload_samples = list(upload.samples)
        else:
            result.upload_reason = UPLOAD_FAILED
        return result
