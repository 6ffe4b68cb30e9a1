"""
Exception types raised by FootyCast.

Only structural problems (a fixture the engine cannot identify) and transport
failures are errors; missing optional signals never are.
"""

from __future__ import annotations

from typing import Optional


class FootyCastError(Exception):
    """Base class for all FootyCast errors."""


class ConfigurationError(FootyCastError):
    """Required runtime configuration (e.g. the API key) is missing."""


class InvalidFixtureError(FootyCastError, ValueError):
    """A fixture lacks one of the identifiers the engine cannot run without."""


class FixtureNotFoundError(FootyCastError, LookupError):
    """The upstream provider has no fixture with the requested id."""


class UpstreamError(FootyCastError):
    """The upstream data provider returned an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
