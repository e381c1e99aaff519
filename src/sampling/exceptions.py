"""Exception hierarchy for sampler port reads."""

from __future__ import annotations


class SamplingError(Exception):
    """Base exception for all sampling errors."""


class SampleUnavailable(SamplingError):
    """A single counter or probe could not be read."""


class DatabaseUnavailable(SampleUnavailable):
    """The database engine could not be reached at all."""
