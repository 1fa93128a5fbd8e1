"""Middleware links and the chain combinator.

A middleware link sits between ``Store.dispatch`` and the reducer.  Each
link implements one method::

    def intercept(self, api, action, next_dispatch): ...

``next_dispatch`` is the rest of the chain.  A link may call it once
(pass through), not at all (short-circuit), or several times; it may
transform the action first or dispatch new actions through
``api.dispatch``.  Links must not mutate state directly.

:func:`compose_chain` folds an ordered list of links right-to-left so the
first link is outermost: it sees the incoming action first and the
outgoing result last.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias, runtime_checkable

from pydantic import BaseModel

from pydux._redact import redact_for_log
from pydux.actions import Action, ActionCreator, kind_of
from pydux.exceptions import ReducerViolationError

_logger = logging.getLogger(__name__)

Dispatch: TypeAlias = Callable[[Any], Any]


class StoreApi(Protocol):
    """The part of a store visible to middleware and async operations."""

    def get_state(self) -> Any: ...

    def dispatch(self, action: Any) -> Any: ...


@runtime_checkable
class Middleware(Protocol):
    """A single link of the dispatch pipeline."""

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any: ...


class FunctionMiddleware:
    """Adapt a plain ``(api, action, next_dispatch)`` callable to :class:`Middleware`."""

    def __init__(self, fn: Callable[[StoreApi, Any, Dispatch], Any]) -> None:
        self._fn = fn

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        return self._fn(api, action, next_dispatch)

    def __repr__(self) -> str:
        return f"FunctionMiddleware({getattr(self._fn, '__qualname__', self._fn)!r})"


def as_middleware(link: Middleware | Callable[[StoreApi, Any, Dispatch], Any]) -> Middleware:
    if isinstance(link, Middleware):
        return link
    if callable(link):
        return FunctionMiddleware(link)
    raise TypeError(f"Middleware must implement intercept() or be callable, got {type(link).__name__}")


def _bind(link: Middleware, api: StoreApi, next_dispatch: Dispatch) -> Dispatch:
    def dispatch(action: Any) -> Any:
        return link.intercept(api, action, next_dispatch)

    return dispatch


def compose_chain(links: Sequence[Middleware], api: StoreApi, terminal: Dispatch) -> Dispatch:
    """Compose *links* around *terminal*; ``links[0]`` ends up outermost."""
    dispatch = terminal
    for link in reversed(links):
        dispatch = _bind(link, api, dispatch)
    return dispatch


# ------------------------------------------------------------------
# Built-in links
# ------------------------------------------------------------------


class LoggingMiddleware:
    """Log each action on the way in and the resulting state on the way out."""

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        level: int = logging.DEBUG,
        redact_keys: Iterable[str] = (),
        max_string: int = 512,
    ) -> None:
        self._logger = logger or _logger
        self._level = level
        self._redact_keys = tuple(redact_keys)
        self._max_string = max_string

    def _redact(self, value: Any) -> Any:
        return redact_for_log(value, extra_keys=self._redact_keys, max_string=self._max_string)

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        if not isinstance(action, Action) or not self._logger.isEnabledFor(self._level):
            return next_dispatch(action)

        self._logger.log(
            self._level,
            "dispatching %s payload=%s meta=%s",
            action.kind,
            self._redact(action.payload),
            self._redact(action.meta),
        )
        result = next_dispatch(action)
        self._logger.log(self._level, "next state after %s: %s", action.kind, self._redact(api.get_state()))
        return result


class CrashReporterMiddleware:
    """Report exceptions raised further down the chain, then re-raise them.

    ``on_error(exc, action, state)`` is the hook for an external error
    tracker.  Place this link first so it sees failures from every other
    link and from the reducer.
    """

    def __init__(
        self,
        on_error: Callable[[BaseException, Any, Any], None] | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_error = on_error
        self._logger = logger or _logger

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        try:
            return next_dispatch(action)
        except Exception as exc:
            kind = action.kind if isinstance(action, Action) else type(action).__name__
            self._logger.exception("Caught an exception while dispatching %s", kind)
            if self._on_error is not None:
                self._on_error(exc, action, api.get_state())
            raise


class ThunkMiddleware:
    """Let callables be dispatched in place of actions.

    The callable receives ``(dispatch, get_state, extra)`` and whatever it
    returns is returned from ``dispatch``.
    """

    def __init__(self, extra: Any = None) -> None:
        self.extra = extra

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        if callable(action) and not isinstance(action, ActionCreator):
            return action(api.dispatch, api.get_state, self.extra)
        return next_dispatch(action)


class EffectMiddleware:
    """Run side effects after specific action kinds have been reduced.

    Effects receive ``(action, api)``; they see the post-reducer state via
    ``api.get_state()`` and may dispatch follow-up actions.
    """

    def __init__(self, effects: Mapping[str | ActionCreator, Callable[[Action, StoreApi], None]]) -> None:
        self._effects = {kind_of(kind): effect for kind, effect in effects.items()}

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        result = next_dispatch(action)
        if isinstance(action, Action):
            effect = self._effects.get(action.kind)
            if effect is not None:
                effect(action, api)
        return result


class ImmutabilityCheckMiddleware:
    """Fail loudly when the previous state is mutated in place.

    Deep-copies the state before handing the action on and compares
    afterwards.  Development aid only: the copy runs on every dispatch.
    """

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        before = api.get_state()
        snapshot = copy.deepcopy(before)
        result = next_dispatch(action)
        if before != snapshot:
            kind = action.kind if isinstance(action, Action) else type(action).__name__
            raise ReducerViolationError(f"State was mutated in place while handling {kind!r}")
        return result


_PLAIN_SCALARS = (str, int, float, bool, type(None))


def find_non_serializable(value: Any, path: str = "") -> str | None:
    """Return the path of the first non JSON-like value in *value*, if any."""
    if isinstance(value, _PLAIN_SCALARS):
        return None
    if isinstance(value, BaseModel):
        return find_non_serializable(value.model_dump(), path)
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                return f"{path}.{key!r}" if path else repr(key)
            found = find_non_serializable(item, f"{path}.{key}" if path else key)
            if found is not None:
                return found
        return None
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            found = find_non_serializable(item, f"{path}[{index}]")
            if found is not None:
                return found
        return None
    return path or "<root>"


class SerializabilityCheckMiddleware:
    """Warn about actions carrying values that are not plain data."""

    def __init__(self, *, ignored_kinds: Iterable[str | ActionCreator] = (), logger: logging.Logger | None = None) -> None:
        self._ignored = frozenset(kind_of(kind) for kind in ignored_kinds)
        self._logger = logger or _logger

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        if isinstance(action, Action) and action.kind not in self._ignored:
            for field_name in ("payload", "meta"):
                path = find_non_serializable(getattr(action, field_name))
                if path is not None:
                    self._logger.warning(
                        "Non-serializable value in %s of action %s at %s",
                        field_name,
                        action.kind,
                        path,
                    )
        return next_dispatch(action)


@dataclass(frozen=True)
class HistoryEntry:
    action: Action
    state_before: Any
    state_after: Any


class HistoryMiddleware:
    """Bounded action log of ``(action, state_before, state_after)`` entries."""

    def __init__(self, limit: int = 100) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def intercept(self, api: StoreApi, action: Any, next_dispatch: Dispatch) -> Any:
        if not isinstance(action, Action):
            return next_dispatch(action)
        before = api.get_state()
        result = next_dispatch(action)
        self._entries.append(HistoryEntry(action=action, state_before=before, state_after=api.get_state()))
        return result
