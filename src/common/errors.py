"""
Error types for the gas giant pipeline.

Every failure that aborts a run is one of these. The CLI reports the
``stage`` (load, init, field, advect, composite, save) that raised it.
"""

from typing import Optional


class GiganticusError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class InputError(GiganticusError):
    """Missing, unreadable or structurally invalid source image."""


class DomainError(GiganticusError):
    """Invalid geometry input, e.g. a zero-length direction or unknown face."""


class ResourceError(GiganticusError):
    """Allocation of field, particle or canvas arrays failed."""
