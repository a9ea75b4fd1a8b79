"""Failures raised while pulling statistics from the upstream provider."""

from __future__ import annotations

from typing import Optional


class StatsProviderError(RuntimeError):
    """Base class for upstream statistics failures."""


class UpstreamUnavailable(StatsProviderError):
    """The provider did not answer or answered with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamMalformed(StatsProviderError):
    """The provider answered but the payload is missing expected fields."""
