"""The state container.

Unidirectional data flow::

    dispatch(action) -> middleware chain -> reducer -> new state -> subscribers

The store is the only owner of the current state.  It treats the state as
an opaque value it holds and replaces wholesale; it never mutates it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from pydux.actions import INIT_KIND, REPLACE_KIND, Action, ActionCreator, normalize_action
from pydux.config import StoreConfig
from pydux.exceptions import InvalidActionError, ReducerViolationError, StoreClosedError
from pydux.middleware import (
    Dispatch,
    HistoryMiddleware,
    ImmutabilityCheckMiddleware,
    LoggingMiddleware,
    Middleware,
    SerializabilityCheckMiddleware,
    StoreApi,
    as_middleware,
    compose_chain,
)
from pydux.reducers import Reducer

_logger = logging.getLogger(__name__)

Subscriber = Callable[[], None]
Unsubscribe = Callable[[], None]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: Subscriber) -> None:
        self.callback = callback
        self.active = True


class _StoreApi:
    """Restricted view of a store handed to middleware links."""

    __slots__ = ("_store",)

    def __init__(self, store: Store) -> None:
        self._store = store

    def get_state(self) -> Any:
        return self._store.get_state()

    def dispatch(self, action: Any) -> Any:
        return self._store.dispatch(action)


class Store:
    """Single authoritative state container.

    Usage::

        store = Store(counter_reducer, {"value": 0}, middleware=[ThunkMiddleware()])
        unsubscribe = store.subscribe(lambda: print(store.get_state()))
        store.dispatch(Action(kind="counter/increment"))
        unsubscribe()

    Dispatch is serialized by a re-entrant lock: "read state, reduce,
    replace, notify" is one critical section.  A dispatch issued from a
    middleware link or a subscriber runs depth-first inside the outer one.
    """

    def __init__(
        self,
        reducer: Reducer,
        initial_state: Any = None,
        *,
        middleware: Iterable[Middleware | Callable[[StoreApi, Any, Dispatch], Any]] = (),
        config: StoreConfig | None = None,
    ) -> None:
        self._config = config or StoreConfig()
        self._reducer = reducer
        self._state = initial_state
        self._subscribers: list[_Subscription] = []
        self._lock = threading.RLock()
        self._is_reducing = False
        self._closed = False
        self._history: HistoryMiddleware | None = None

        self._api = _StoreApi(self)
        links = self._build_links([as_middleware(link) for link in middleware])
        self._chain = compose_chain(links, self._api, self._apply)

        if initial_state is None:
            self.dispatch(Action(kind=INIT_KIND))
        _logger.debug("Store initialized with %d middleware link(s)", len(links))

    def _build_links(self, user_links: list[Middleware]) -> list[Middleware]:
        config = self._config
        links: list[Middleware] = []
        if config.log_actions:
            links.append(
                LoggingMiddleware(
                    redact_keys=config.redact_keys,
                    max_string=config.max_log_string,
                )
            )
        links.extend(user_links)
        if config.check_serializability:
            links.append(SerializabilityCheckMiddleware())
        if config.history_limit > 0:
            self._history = HistoryMiddleware(config.history_limit)
            links.append(self._history)
        if config.check_immutability:
            links.append(ImmutabilityCheckMiddleware())
        return links

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def api(self) -> StoreApi:
        return self._api

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def history(self) -> HistoryMiddleware | None:
        """Action log, when ``config.history_limit`` is set."""
        return self._history

    @property
    def closed(self) -> bool:
        return self._closed

    def get_state(self) -> Any:
        """Return the current state snapshot."""
        return self._state

    def dispatch(self, action: Any) -> Any:
        """Send *action* through the middleware chain to the reducer.

        Mappings are coerced into :class:`Action`; callables are passed to
        the chain untouched so a thunk-aware link can handle them.  Returns
        whatever the chain returns (the action itself by default).
        """
        self._ensure_open()
        if isinstance(action, ActionCreator):
            raise InvalidActionError(
                f"Dispatch the action, not its creator: call {action.kind!r} first",
                action=action,
            )
        if not callable(action):
            action = normalize_action(action)

        with self._lock:
            if self._is_reducing:
                raise ReducerViolationError("Reducers may not dispatch actions")
            return self._chain(action)

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register *callback*, called with no arguments after every dispatch.

        Changes made while a notification pass is running apply from the
        next pass on.  The returned function removes the subscription; calling
        it again is a no-op.
        """
        self._ensure_open()
        if not callable(callback):
            raise TypeError("Subscriber must be callable")

        subscription = _Subscription(callback)
        with self._lock:
            # Copy-on-write keeps snapshots taken by a running pass intact.
            self._subscribers = [*self._subscribers, subscription]
        _logger.debug(
            "Subscriber added: %s (total %d)",
            getattr(callback, "__qualname__", callback),
            len(self._subscribers),
        )

        def unsubscribe() -> None:
            with self._lock:
                if not subscription.active:
                    return
                subscription.active = False
                self._subscribers = [s for s in self._subscribers if s is not subscription]

        return unsubscribe

    def replace_reducer(self, reducer: Reducer) -> None:
        """Swap the root reducer and let it initialise its new slices."""
        self._ensure_open()
        with self._lock:
            self._reducer = reducer
            self.dispatch(Action(kind=REPLACE_KIND))

    def close(self) -> None:
        """Tear the store down; subscriptions end and further use raises."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for subscription in self._subscribers:
                subscription.active = False
            self._subscribers = []
        _logger.debug("Store closed")

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError("Store is closed")

    def _apply(self, action: Any) -> Any:
        """Terminal stage of the chain: reduce, replace, notify."""
        if not isinstance(action, Action):
            raise InvalidActionError(
                f"{type(action).__name__} reached the reducer; install ThunkMiddleware to dispatch callables",
                action=action,
            )

        self._is_reducing = True
        try:
            next_state = self._reducer(self._state, action)
        finally:
            self._is_reducing = False

        if next_state is None:
            raise ReducerViolationError(f"Reducer returned None for action {action.kind!r}")

        self._state = next_state
        self._notify()
        return action

    def _notify(self) -> None:
        for subscription in self._subscribers:
            subscription.callback()
