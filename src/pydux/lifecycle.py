"""Async task lifecycle: pending -> fulfilled / rejected, with request identity.

:meth:`LifecycleManager.run` wraps a long-running operation as a sequence
of dispatched actions for a task *category* (e.g. ``"users/fetchById"``):

* ``<category>/pending``: dispatched before the operation starts,
  carrying a fresh ``meta["request_id"]``
* ``<category>/fulfilled``: the operation returned; result in ``payload``
* ``<category>/rejected``: the operation raised; ``error`` (or the
  rejected value in ``payload``)
* ``<category>/cancelled``: the run was aborted while still outstanding

Completions can arrive out of order.  The request id recorded at start is
compared with the id tracked for the category at completion; reducers only
apply a completion whose id is still current (see :func:`is_current_request`),
so the newest issued request always wins and anything older is dropped.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import secrets
from collections.abc import Awaitable, Callable, Generator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict

from pydux.actions import Action, ActionCreator, SerializedError, create_action
from pydux.exceptions import OperationAborted, OperationFailure
from pydux.middleware import StoreApi
from pydux.signals import AbortController, AbortSignal

_logger = logging.getLogger(__name__)

PENDING = "pending"
FULFILLED = "fulfilled"
REJECTED = "rejected"
CANCELLED = "cancelled"
_PHASES = frozenset({PENDING, FULFILLED, REJECTED, CANCELLED})


class TaskStatus(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AsyncTaskRecord(BaseModel):
    """Per-category view of the most recent run, kept in state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: TaskStatus = TaskStatus.IDLE
    request_id: str | None = None
    result: Any = None
    error: Any = None


IDLE_RECORD = AsyncTaskRecord()


def split_lifecycle_kind(kind: str) -> tuple[str, str] | None:
    """Split ``"users/fetchById/fulfilled"`` into ``("users/fetchById", "fulfilled")``."""
    category, sep, phase = kind.rpartition("/")
    if not sep or not category or phase not in _PHASES:
        return None
    return category, phase


def is_current_request(record: AsyncTaskRecord, action: Action) -> bool:
    """Whether a completion *action* belongs to the outstanding request of *record*."""
    return (
        record.status == TaskStatus.PENDING
        and record.request_id is not None
        and action.request_id == record.request_id
    )


def task_record_reducer(record: AsyncTaskRecord | None, action: Action) -> AsyncTaskRecord:
    """Advance a single record with any lifecycle action.

    ``pending`` always installs its request id as the tracked one and
    clears the previous result.  The other phases apply only when
    :func:`is_current_request` holds; stale completions return *record*
    unchanged.  Callers embedding a record in their own slice must route
    only their category's actions here.
    """
    if record is None:
        record = IDLE_RECORD

    parsed = split_lifecycle_kind(action.kind)
    if parsed is None or action.request_id is None:
        return record
    phase = parsed[1]

    if phase == PENDING:
        return AsyncTaskRecord(status=TaskStatus.PENDING, request_id=action.request_id)
    if not is_current_request(record, action):
        return record
    if phase == FULFILLED:
        return AsyncTaskRecord(status=TaskStatus.SUCCEEDED, result=action.payload)
    if phase == REJECTED:
        error = action.payload if action.meta.get("rejected_with_value") else action.error
        return AsyncTaskRecord(status=TaskStatus.FAILED, error=error)
    return AsyncTaskRecord(status=TaskStatus.IDLE)


def task_table_reducer(table: Mapping[str, AsyncTaskRecord] | None, action: Action) -> Mapping[str, AsyncTaskRecord]:
    """Maintain one :class:`AsyncTaskRecord` per category."""
    if table is None:
        table = {}

    parsed = split_lifecycle_kind(action.kind)
    if parsed is None or action.request_id is None:
        return table
    category = parsed[0]
    record = table.get(category, IDLE_RECORD)
    updated = task_record_reducer(record, action)
    if updated is record:
        return table
    return {**table, category: updated}


# ------------------------------------------------------------------
# Operation contract
# ------------------------------------------------------------------


class RejectWithValue(Exception):
    """Raise (or return) from an operation to reject with a custom payload."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(repr(value))


@dataclass(frozen=True, slots=True)
class TaskContext:
    """Second argument passed to every operation."""

    category: str
    request_id: str
    signal: AbortSignal
    dispatch: Callable[[Any], Any]
    get_state: Callable[[], Any]
    extra: Any = None

    @staticmethod
    def reject_with_value(value: Any) -> RejectWithValue:
        return RejectWithValue(value)


Operation: TypeAlias = Callable[[Any, TaskContext], Awaitable[Any] | Any]
Condition: TypeAlias = Callable[[Any, StoreApi], bool]


async def _skipped() -> None:
    return None


class TaskHandle:
    """Handle for one :meth:`LifecycleManager.run` invocation.

    Awaiting it yields the completion action, or ``None`` when the run was
    skipped.  Operation failures come back as ``rejected`` actions; use
    :meth:`unwrap` to get the result or an exception instead.
    """

    def __init__(
        self,
        category: str,
        request_id: str | None = None,
        controller: AbortController | None = None,
    ) -> None:
        self.category = category
        self.request_id = request_id
        self._controller = controller
        self._task: asyncio.Task[Action] | None = None

    @property
    def skipped(self) -> bool:
        return self._controller is None

    @property
    def signal(self) -> AbortSignal | None:
        return self._controller.signal if self._controller is not None else None

    def done(self) -> bool:
        return self._task is None or self._task.done()

    def abort(self, reason: Any = "Aborted") -> bool:
        """Request cancellation.  Returns ``False`` when there is nothing left to abort."""
        if self._controller is None or self.done():
            return False
        return self._controller.abort(reason)

    def __await__(self) -> Generator[Any, None, Action | None]:
        if self._task is None:
            return _skipped().__await__()
        return self._task.__await__()

    async def unwrap(self) -> Any:
        """Return the fulfilled payload or raise :class:`OperationFailure`."""
        action = await self
        if action is None:
            raise OperationFailure(f"Run of {self.category!r} was skipped", category=self.category)
        if action.meta.get("aborted"):
            reason = self.signal.reason if self.signal is not None else None
            raise OperationAborted(
                f"Run of {self.category!r} was aborted: {reason}",
                category=self.category,
                request_id=self.request_id,
                error=reason,
            )
        if action.kind.endswith(f"/{FULFILLED}"):
            return action.payload
        message = action.error.message if action.error is not None else "rejected with value"
        raise OperationFailure(
            f"Run of {self.category!r} failed: {message}",
            category=self.category,
            request_id=self.request_id,
            error=action.error,
            payload=action.payload,
        )

    def __repr__(self) -> str:
        state = "skipped" if self.skipped else ("done" if self.done() else "running")
        return f"TaskHandle({self.category!r}, request_id={self.request_id!r}, {state})"


# ------------------------------------------------------------------
# Manager
# ------------------------------------------------------------------


def _default_request_id() -> str:
    return secrets.token_hex(16)


class LifecycleManager:
    """Run async operations as pending/fulfilled/rejected action sequences.

    The manager owns the latest request id per category; that id decides
    de-duplication here and staleness in reducers.  ``stale_results``
    counts completions that arrived after their request was superseded or
    cancelled.
    """

    def __init__(
        self,
        store: Any,
        *,
        extra: Any = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        # Accept a Store (use its restricted api) or anything StoreApi-shaped.
        self._api: StoreApi = getattr(store, "api", store)
        self._extra = extra
        self._id_factory = id_factory or _default_request_id
        self._latest: dict[str, str] = {}
        self._controllers: dict[str, AbortController] = {}
        self._tasks: set[asyncio.Task[Action]] = set()
        self.stale_results = 0

    def is_pending(self, category: str) -> bool:
        return category in self._latest

    def latest_request_id(self, category: str) -> str | None:
        return self._latest.get(category)

    def run(
        self,
        category: str,
        argument: Any,
        operation: Operation,
        *,
        condition: Condition | None = None,
        signal: AbortSignal | None = None,
        allow_reentry: bool = False,
    ) -> TaskHandle:
        """Start *operation* for *category* and return its handle.

        Must be called from a running event loop.  The ``pending`` action is
        dispatched, and the request id recorded, before the operation starts.
        The run is skipped (nothing dispatched) when *condition* returns
        ``False`` or the category already has an outstanding request and
        *allow_reentry* is not set.
        """
        loop = asyncio.get_running_loop()
        if not category or split_lifecycle_kind(category) is not None:
            raise ValueError(f"Invalid task category {category!r}")

        if condition is not None:
            decision = condition(argument, self._api)
            if not isinstance(decision, bool):
                raise TypeError(f"condition for {category!r} must return bool, got {type(decision).__name__}")
            if not decision:
                _logger.debug("Run of %s skipped by condition", category)
                return TaskHandle(category)

        if category in self._latest and not allow_reentry:
            _logger.debug("Run of %s skipped: request %s outstanding", category, self._latest[category])
            return TaskHandle(category)

        request_id = self._id_factory()
        controller = AbortController()
        self._latest[category] = request_id
        self._controllers[request_id] = controller
        try:
            self._api.dispatch(
                Action(kind=f"{category}/{PENDING}", meta=self._meta(request_id, argument, PENDING))
            )
        except Exception:
            self._forget(category, request_id)
            raise

        handle = TaskHandle(category, request_id, controller)
        controller.signal.add_listener(lambda reason: self._on_abort(category, request_id, reason))
        detach = controller.follow(signal) if signal is not None else None

        task = loop.create_task(self._execute(handle, argument, operation, detach))
        handle._task = task  # noqa: SLF001
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(functools.partial(self._settle_cancelled, handle, detach))
        return handle

    def cancel(self, category: str, reason: Any = "Cancelled") -> bool:
        """Abort the outstanding run of *category*, if any."""
        request_id = self._latest.get(category)
        controller = self._controllers.get(request_id) if request_id is not None else None
        if controller is None:
            return False
        return controller.abort(reason)

    def close(self, reason: Any = "Lifecycle manager closed") -> None:
        """Abort every outstanding run."""
        for controller in list(self._controllers.values()):
            controller.abort(reason)

    async def drain(self) -> None:
        """Wait until every started run has dispatched its completion."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _meta(request_id: str, argument: Any, phase: str, **extra: Any) -> dict[str, Any]:
        return {"request_id": request_id, "arg": argument, "request_status": phase, **extra}

    def _forget(self, category: str, request_id: str) -> bool:
        """Drop *request_id*; returns whether it was still the latest one."""
        self._controllers.pop(request_id, None)
        if self._latest.get(category) == request_id:
            del self._latest[category]
            return True
        return False

    def _settle_cancelled(
        self,
        handle: TaskHandle,
        detach: Callable[[], None] | None,
        task: asyncio.Task[Action],
    ) -> None:
        """Done callback: release a run whose task was cancelled, even before its first step."""
        if not task.cancelled():
            return
        assert handle.request_id is not None  # noqa: S101
        if detach is not None:
            detach()
        controller = self._controllers.get(handle.request_id)
        if controller is not None:
            controller.abort("Task cancelled")
        self._forget(handle.category, handle.request_id)

    def _on_abort(self, category: str, request_id: str, reason: Any) -> None:
        if self._latest.get(category) != request_id:
            return
        del self._latest[category]
        _logger.debug("Run %s of %s cancelled: %s", request_id, category, reason)
        self._api.dispatch(
            Action(
                kind=f"{category}/{CANCELLED}",
                meta={"request_id": request_id, "request_status": CANCELLED, "aborted": True, "reason": reason},
            )
        )

    async def _execute(
        self,
        handle: TaskHandle,
        argument: Any,
        operation: Operation,
        detach: Callable[[], None] | None,
    ) -> Action:
        category = handle.category
        request_id = handle.request_id
        assert request_id is not None and handle.signal is not None  # noqa: S101
        ctx = TaskContext(
            category=category,
            request_id=request_id,
            signal=handle.signal,
            dispatch=self._api.dispatch,
            get_state=self._api.get_state,
            extra=self._extra,
        )

        try:
            result = operation(argument, ctx)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, RejectWithValue):
                raise result
        except RejectWithValue as rejection:
            completion = self._completion(handle, argument, REJECTED, payload=rejection.value, rejected_with_value=True)
        except Exception as exc:
            _logger.debug("Run %s of %s raised %s", request_id, category, type(exc).__name__, exc_info=True)
            completion = self._completion(handle, argument, REJECTED, error=SerializedError.from_exception(exc))
        else:
            completion = self._completion(handle, argument, FULFILLED, payload=result)
        finally:
            if detach is not None:
                detach()

        if not self._forget(category, request_id):
            self.stale_results += 1
            _logger.debug("Result of %s request %s is stale; reducers will drop it", category, request_id)
        self._api.dispatch(completion)
        return completion

    def _completion(
        self,
        handle: TaskHandle,
        argument: Any,
        phase: str,
        *,
        payload: Any = None,
        error: SerializedError | None = None,
        rejected_with_value: bool = False,
    ) -> Action:
        assert handle.request_id is not None and handle.signal is not None  # noqa: S101
        meta = self._meta(handle.request_id, argument, phase, aborted=handle.signal.aborted)
        if rejected_with_value:
            meta["rejected_with_value"] = True
        return Action(kind=f"{handle.category}/{phase}", payload=payload, meta=meta, error=error)


# ------------------------------------------------------------------
# Task definitions
# ------------------------------------------------------------------


@dataclass(frozen=True)
class AsyncTaskDefinition:
    """An operation bound to a category, with its lifecycle action creators."""

    category: str
    operation: Operation
    condition: Condition | None
    pending: ActionCreator
    fulfilled: ActionCreator
    rejected: ActionCreator
    cancelled: ActionCreator

    def run(self, manager: LifecycleManager, argument: Any = None, **options: Any) -> TaskHandle:
        options.setdefault("condition", self.condition)
        return manager.run(self.category, argument, self.operation, **options)

    def matches(self, action: Any) -> bool:
        """Whether *action* is any lifecycle action of this task."""
        if not isinstance(action, Action):
            return False
        parsed = split_lifecycle_kind(action.kind)
        return parsed is not None and parsed[0] == self.category


def create_async_task(
    category: str,
    operation: Operation,
    *,
    condition: Condition | None = None,
) -> AsyncTaskDefinition:
    """Bundle *operation* with the action creators for its lifecycle kinds."""
    if not category or split_lifecycle_kind(category) is not None:
        raise ValueError(f"Invalid task category {category!r}")
    return AsyncTaskDefinition(
        category=category,
        operation=operation,
        condition=condition,
        pending=create_action(f"{category}/{PENDING}"),
        fulfilled=create_action(f"{category}/{FULFILLED}"),
        rejected=create_action(f"{category}/{REJECTED}"),
        cancelled=create_action(f"{category}/{CANCELLED}"),
    )
