"""Cooperative cancellation.

An :class:`AbortController` owns an :class:`AbortSignal`.  Operations
receive the signal and are expected, but not required, to stop early once
it fires.  Correctness against late results never depends on an operation
honouring the signal.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydux.exceptions import OperationAborted

_logger = logging.getLogger(__name__)

AbortListener = Callable[[Any], None]


class AbortSignal:
    """Read-only side of an abort request."""

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[AbortListener] = []
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: AbortListener) -> Callable[[], None]:
        """Call ``listener(reason)`` on abort (immediately if already aborted).

        Returns a function removing the listener.
        """
        if self._aborted:
            listener(self._reason)
            return lambda: None
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise OperationAborted(f"Operation aborted: {self._reason}", error=self._reason)

    async def wait(self) -> Any:
        """Suspend until the signal fires; returns the abort reason."""
        await self._event.wait()
        return self._reason

    def _fire(self, reason: Any) -> None:
        """Mark the signal aborted and call every listener.

        A failing listener does not stop the others; failures are re-raised
        once all listeners have run.
        """
        self._aborted = True
        self._reason = reason
        self._event.set()
        listeners, self._listeners = self._listeners, []
        errors: list[Exception] = []
        for listener in listeners:
            try:
                listener(reason)
            except Exception as exc:
                _logger.debug("Abort listener %r failed", listener, exc_info=True)
                errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup("Abort listeners failed", errors)


class AbortController:
    """Write side: ``controller.abort(reason)`` fires ``controller.signal``."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = "Aborted") -> bool:
        """Fire the signal.  Returns ``False`` if it had already fired."""
        if self.signal.aborted:
            return False
        _logger.debug("Abort requested: %s", reason)
        self.signal._fire(reason)  # noqa: SLF001
        return True

    def follow(self, parent: AbortSignal) -> Callable[[], None]:
        """Abort this controller whenever *parent* aborts.

        Returns a function that detaches from *parent*.
        """
        return parent.add_listener(self.abort)
