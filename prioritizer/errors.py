"""
Error kinds raised by the prioritization core.

Core functions raise these; the service façade converts them into
``OperationResult(success=False, error=...)`` so callers never see them.
Anything else that escapes the core is an unexpected fault and propagates.
"""


class PrioritizerError(Exception):
    """Base class for all rule violations in the core."""

    kind = "error"


class ValidationError(PrioritizerError):
    """Stage/lock violation, monotonic-unset violation, or malformed input."""

    kind = "validation"


class NotFoundError(PrioritizerError):
    """Unknown item id (or note index on an existing item)."""

    kind = "not_found"


class StateError(PrioritizerError):
    """Workflow overrun: advancing past the terminal stage or backing before the first."""

    kind = "state"
