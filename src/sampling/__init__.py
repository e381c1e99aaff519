"""Sampler port, rate sampling, and the production host sampler."""

from src.sampling.exceptions import DatabaseUnavailable, SampleUnavailable, SamplingError
from src.sampling.port import (
    CounterId,
    DriveStatus,
    DriveUsage,
    HttpProbeResult,
    SamplerPort,
    read_or_default,
)
from src.sampling.rate import RateSampler

__all__ = [
    "CounterId",
    "DatabaseUnavailable",
    "DriveStatus",
    "DriveUsage",
    "HttpProbeResult",
    "RateSampler",
    "SampleUnavailable",
    "SamplerPort",
    "SamplingError",
    "read_or_default",
]
