from __future__ import annotations

import copy

import pytest
from pydantic import ValidationError

from pydux.actions import Action, SerializedError, create_action, kind_of, normalize_action
from pydux.exceptions import InvalidActionError


def test_action_is_frozen_and_strips_kind() -> None:
    action = Action(kind="  todos/added ", payload={"text": "x"})
    assert action.kind == "todos/added"
    with pytest.raises(ValidationError):
        action.kind = "other"  # type: ignore[misc]


def test_request_id_reads_meta() -> None:
    assert Action(kind="a", meta={"request_id": "abc"}).request_id == "abc"
    assert Action(kind="a", meta={"request_id": 5}).request_id is None
    assert Action(kind="a").request_id is None


def test_normalize_accepts_type_key_and_rejects_extras() -> None:
    assert normalize_action({"type": "ping", "payload": 1}) == Action(kind="ping", payload=1)
    with pytest.raises(InvalidActionError):
        normalize_action({"kind": "ping", "unexpected": True})


def test_serialized_error_from_exception() -> None:
    class CodedError(Exception):
        code = 1009

    assert SerializedError.from_exception(CodedError("busy")) == SerializedError(
        name="CodedError", message="busy", code="1009"
    )
    assert SerializedError.from_exception(KeyError("id")).code is None


class TestActionCreator:
    def test_payload_is_optional(self) -> None:
        increment = create_action("counter/increment")
        assert increment() == Action(kind="counter/increment")
        assert increment(3).payload == 3
        with pytest.raises(TypeError):
            increment(1, 2)

    def test_prepare_supplies_payload_and_meta(self) -> None:
        added = create_action("todos/added", lambda text: {"payload": {"text": text}, "meta": {"source": "ui"}})
        action = added("write docs")
        assert action.payload == {"text": "write docs"}
        assert action.meta == {"source": "ui"}

    def test_prepare_without_payload_is_rejected(self) -> None:
        broken = create_action("todos/added", lambda text: {"text": text})
        with pytest.raises(InvalidActionError):
            broken("x")

    def test_match_and_string_forms(self) -> None:
        increment = create_action("counter/increment")
        assert increment.match(increment())
        assert not increment.match(Action(kind="counter/decrement"))
        assert not increment.match({"kind": "counter/increment"})
        assert str(increment) == "counter/increment"
        assert kind_of(increment) == kind_of("counter/increment") == "counter/increment"

    def test_empty_kind_is_rejected(self) -> None:
        with pytest.raises(InvalidActionError):
            create_action(" ")


def test_meta_cannot_be_changed_after_creation() -> None:
    source = {"request_id": "r1"}
    action = Action(kind="users/fetchById/fulfilled", meta=source)

    with pytest.raises(TypeError):
        action.meta["request_id"] = "r9"  # type: ignore[index]
    source["request_id"] = "r9"

    assert action.request_id == "r1"
    assert Action(kind="x").meta == {}
    assert action.model_dump()["meta"] == {"request_id": "r1"}


def test_deep_copy_keeps_meta_read_only() -> None:
    action = Action(kind="x", payload={"items": [1]}, meta={"request_id": "r1"})

    clone = copy.deepcopy(action)

    assert clone == action
    assert clone.payload is not action.payload
    with pytest.raises(TypeError):
        clone.meta["request_id"] = "r2"  # type: ignore[index]


def test_camel_case_request_id_alias() -> None:
    action = normalize_action({"kind": "user/pending", "meta": {"requestId": "abc"}})
    assert action.request_id == "abc"
