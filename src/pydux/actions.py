"""Actions and action creators.

An :class:`Action` is an immutable record describing something that
happened.  Its ``kind`` is the discriminator reducers switch on; it is
namespaced like ``"domain/event"``.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from pydux.exceptions import InvalidActionError

#: Kind dispatched by the store to let the reducer produce its default state.
INIT_KIND = "@@pydux/INIT"
#: Kind dispatched after :meth:`Store.replace_reducer`.
REPLACE_KIND = "@@pydux/REPLACE"


class SerializedError(BaseModel):
    """Plain-data description of an exception, safe to keep in state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    message: str = ""
    code: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> SerializedError:
        code = getattr(exc, "code", None)
        return cls(
            name=type(exc).__name__,
            message=str(exc),
            code=str(code) if code is not None else None,
        )


class Action(BaseModel):
    """An immutable, tagged description of something that happened.

    ``meta`` is exposed as a read-only mapping.  Lifecycle actions carry
    their request identity under ``meta["request_id"]``; a camelCase
    ``requestId`` key is accepted as an alias on construction.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str = Field(..., description="Discriminator, e.g. 'users/fetchById/pending'")
    payload: Any = None
    meta: Mapping[str, Any] = Field(
        default_factory=dict,
        validate_default=True,
        description="Auxiliary fields such as request_id",
    )
    error: SerializedError | None = None

    @field_validator("kind")
    @classmethod
    def _normalize_kind(cls, value: str) -> str:
        kind = value.strip()
        if not kind:
            raise ValueError("kind must be non-empty")
        return kind

    @field_validator("meta")
    @classmethod
    def _freeze_meta(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        meta = dict(value)
        if "request_id" not in meta and "requestId" in meta:
            meta["request_id"] = meta["requestId"]
        return MappingProxyType(meta)

    @field_serializer("meta")
    def _dump_meta(self, meta: Mapping[str, Any]) -> dict[str, Any]:
        return dict(meta)

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> Action:
        return Action(
            kind=self.kind,
            payload=copy.deepcopy(self.payload, memo),
            meta=copy.deepcopy(dict(self.meta), memo),
            error=self.error,
        )

    @property
    def request_id(self) -> str | None:
        value = self.meta.get("request_id")
        return value if isinstance(value, str) else None


def normalize_action(value: Any) -> Action:
    """Coerce *value* into an :class:`Action`.

    Mappings are accepted with either a ``kind`` or a Redux-style ``type``
    key.  Anything without a usable discriminator raises
    :class:`InvalidActionError`.
    """
    if isinstance(value, Action):
        return value
    if not isinstance(value, Mapping):
        raise InvalidActionError(
            f"Actions must be Action instances or mappings, got {type(value).__name__}",
            action=value,
        )

    data = dict(value)
    if "kind" not in data and "type" in data:
        data["kind"] = data.pop("type")
    if not isinstance(data.get("kind"), str):
        raise InvalidActionError("Action is missing a string 'kind' discriminator", action=value)
    try:
        return Action.model_validate(data)
    except ValidationError as exc:
        raise InvalidActionError(f"Invalid action: {exc.errors()[0]['msg']}", action=value) from exc


class ActionCreator:
    """Factory for actions of one kind.

    Without a ``prepare`` callback the creator takes an optional payload::

        increment = create_action("counter/increment")
        increment()       # Action(kind="counter/increment")
        increment(5)      # Action(kind="counter/increment", payload=5)

    With ``prepare``, the creator's arguments are forwarded to it and it
    must return a mapping with a ``payload`` key and optionally ``meta``.
    Impure work such as id generation belongs in ``prepare``.
    """

    def __init__(self, kind: str, prepare: Callable[..., Mapping[str, Any]] | None = None) -> None:
        if not kind or not kind.strip():
            raise InvalidActionError("Action creators need a non-empty kind")
        self.kind = kind.strip()
        self._prepare = prepare

    def __call__(self, *args: Any, **kwargs: Any) -> Action:
        if self._prepare is not None:
            prepared = self._prepare(*args, **kwargs)
            if not isinstance(prepared, Mapping) or "payload" not in prepared:
                raise InvalidActionError(f"prepare callback for {self.kind!r} must return a mapping with 'payload'")
            return Action(
                kind=self.kind,
                payload=prepared["payload"],
                meta=dict(prepared.get("meta") or {}),
            )

        if kwargs or len(args) > 1:
            raise TypeError(f"{self.kind!r} takes at most one positional payload argument")
        return Action(kind=self.kind, payload=args[0] if args else None)

    def match(self, action: Any) -> bool:
        """Return ``True`` when *action* was produced for this kind."""
        return isinstance(action, Action) and action.kind == self.kind

    def __repr__(self) -> str:
        return f"ActionCreator({self.kind!r})"

    def __str__(self) -> str:
        return self.kind


def create_action(kind: str, prepare: Callable[..., Mapping[str, Any]] | None = None) -> ActionCreator:
    """Create an :class:`ActionCreator` for *kind*."""
    return ActionCreator(kind, prepare)


def kind_of(kind_or_creator: str | ActionCreator) -> str:
    """Return the action kind for a string or an action creator."""
    if isinstance(kind_or_creator, ActionCreator):
        return kind_or_creator.kind
    return kind_or_creator
