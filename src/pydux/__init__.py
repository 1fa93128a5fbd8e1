"""pydux - Predictable state container with middleware and async task lifecycle."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pydux")
except PackageNotFoundError:
    __version__ = "0+local"
from pydux.actions import Action, ActionCreator, SerializedError, create_action, normalize_action
from pydux.config import StoreConfig
from pydux.exceptions import (
    InvalidActionError,
    OperationAborted,
    OperationFailure,
    PyduxConfigError,
    PyduxError,
    ReducerViolationError,
    StoreClosedError,
)
from pydux.lifecycle import (
    AsyncTaskDefinition,
    AsyncTaskRecord,
    LifecycleManager,
    RejectWithValue,
    TaskContext,
    TaskHandle,
    TaskStatus,
    create_async_task,
    is_current_request,
    task_record_reducer,
    task_table_reducer,
)
from pydux.middleware import (
    CrashReporterMiddleware,
    EffectMiddleware,
    FunctionMiddleware,
    HistoryMiddleware,
    ImmutabilityCheckMiddleware,
    LoggingMiddleware,
    Middleware,
    SerializabilityCheckMiddleware,
    StoreApi,
    ThunkMiddleware,
    compose_chain,
)
from pydux.reducers import ReducerBuilder, Slice, combine_reducers, create_reducer, create_slice
from pydux.selectors import create_selector, observe
from pydux.signals import AbortController, AbortSignal
from pydux.store import Store

__all__ = [
    "__version__",
    "AbortController",
    "AbortSignal",
    "Action",
    "ActionCreator",
    "AsyncTaskDefinition",
    "AsyncTaskRecord",
    "CrashReporterMiddleware",
    "EffectMiddleware",
    "FunctionMiddleware",
    "HistoryMiddleware",
    "ImmutabilityCheckMiddleware",
    "InvalidActionError",
    "LifecycleManager",
    "LoggingMiddleware",
    "Middleware",
    "OperationAborted",
    "OperationFailure",
    "PyduxConfigError",
    "PyduxError",
    "ReducerBuilder",
    "ReducerViolationError",
    "RejectWithValue",
    "SerializabilityCheckMiddleware",
    "SerializedError",
    "Slice",
    "Store",
    "StoreApi",
    "StoreClosedError",
    "StoreConfig",
    "TaskContext",
    "TaskHandle",
    "TaskStatus",
    "ThunkMiddleware",
    "combine_reducers",
    "compose_chain",
    "create_action",
    "create_async_task",
    "create_reducer",
    "create_selector",
    "create_slice",
    "is_current_request",
    "normalize_action",
    "observe",
    "task_record_reducer",
    "task_table_reducer",
]
