"""Domain exceptions for walk request operations."""


class WalkRequestError(Exception):
    """Base class for walk request errors."""


class WalkRequestValidationError(WalkRequestError):
    """Raised when input is malformed, before the store is touched."""


class WalkRequestNotFoundError(WalkRequestError):
    """Raised when a walk request cannot be found."""


class WalkRequestGuardError(WalkRequestError):
    """Raised when a conditional mutation matched no record.

    The store reports the same outcome for an unknown id and for a record whose
    guard predicate is false, so callers must treat both as "not eligible for
    this transition".
    """

    def __init__(self, request_id: str, transition: str, reason: str) -> None:
        super().__init__(f"Walk request '{request_id}' cannot {transition}: {reason}.")
        self.request_id = request_id
        self.transition = transition
        self.reason = reason


class WalkRequestStoreError(WalkRequestError):
    """Raised when the backing store itself fails."""


__all__ = [
    "WalkRequestError",
    "WalkRequestGuardError",
    "WalkRequestNotFoundError",
    "WalkRequestStoreError",
    "WalkRequestValidationError",
]
