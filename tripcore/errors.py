"""Error taxonomy for the routing core.

Leaf components raise these unchanged; nothing in the core retries them.
"""

from typing import Optional


class TripCoreError(Exception):
    """Base class for all routing-core errors."""


class ResolutionError(TripCoreError):
    """A waypoint's coordinates could not be determined."""

    def __init__(self, message: str, kind: Optional[str] = None, identifier: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.identifier = identifier


class UpstreamUnavailable(TripCoreError):
    """Flight search or another network collaborator failed."""

    def __init__(self, message: str, service: str = "amadeus", status_code: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class CircuitOpenError(UpstreamUnavailable):
    """Raised instead of calling a collaborator whose breaker is open."""


class InvalidInput(TripCoreError, ValueError):
    """Malformed coordinates, missing waypoint fields or too few destinations."""
