"""Custom exception hierarchy for pydux."""

from __future__ import annotations

from typing import Any


class PyduxError(Exception):
    """Base exception for all pydux errors."""


class PyduxConfigError(PyduxError):
    """Invalid or missing configuration."""


class InvalidActionError(PyduxError):
    """Dispatched value is not an action (missing or empty discriminator)."""

    def __init__(self, message: str, *, action: Any = None) -> None:
        self.action = action
        super().__init__(message)


class ReducerViolationError(PyduxError):
    """A reducer broke its purity contract.

    Raised when a reducer returns ``None``, mutates the previous state in
    place, or dispatches while it is being executed.  This is a programmer
    error, not a recoverable runtime condition.
    """


class StoreClosedError(PyduxError):
    """The store was used after :meth:`pydux.store.Store.close`."""


class OperationFailure(PyduxError):
    """An async operation run through the lifecycle manager failed.

    Never raised by the manager itself; failures are converted into
    ``<category>/rejected`` actions.  Only :meth:`TaskHandle.unwrap`
    raises it, for callers that prefer exceptions over actions.
    """

    def __init__(
        self,
        message: str,
        *,
        category: str = "",
        request_id: str | None = None,
        error: Any = None,
        payload: Any = None,
    ) -> None:
        self.category = category
        self.request_id = request_id
        self.error = error
        self.payload = payload
        super().__init__(message)


class OperationAborted(OperationFailure):
    """The operation was cancelled through its abort signal."""
