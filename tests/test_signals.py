from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pydux.exceptions import OperationAborted
from pydux.signals import AbortController


def test_abort_fires_listeners_once() -> None:
    controller = AbortController()
    reasons: list[Any] = []
    controller.signal.add_listener(reasons.append)
    remove = controller.signal.add_listener(lambda reason: reasons.append("removed"))
    remove()

    assert controller.abort("stop")
    assert not controller.abort("again")
    assert reasons == ["stop"]
    assert controller.signal.aborted
    assert controller.signal.reason == "stop"


def test_listener_added_after_abort_runs_immediately() -> None:
    controller = AbortController()
    controller.abort()
    reasons: list[Any] = []
    controller.signal.add_listener(reasons.append)
    assert reasons == ["Aborted"]


def test_raise_if_aborted() -> None:
    controller = AbortController()
    controller.signal.raise_if_aborted()
    controller.abort("timeout")
    with pytest.raises(OperationAborted, match="timeout"):
        controller.signal.raise_if_aborted()


def test_follow_and_detach() -> None:
    parent = AbortController()
    child = AbortController()
    other = AbortController()
    child.follow(parent.signal)
    detach = other.follow(parent.signal)
    detach()

    parent.abort("shutdown")

    assert child.signal.reason == "shutdown"
    assert not other.signal.aborted


@pytest.mark.asyncio
async def test_wait_returns_reason() -> None:
    controller = AbortController()
    waiter = asyncio.create_task(controller.signal.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    controller.abort("user left")

    assert await asyncio.wait_for(waiter, timeout=1) == "user left"


def test_failing_listener_does_not_skip_the_rest() -> None:
    controller = AbortController()
    reasons: list[Any] = []

    def broken(reason: Any) -> None:
        raise ValueError("listener failed")

    controller.signal.add_listener(broken)
    controller.signal.add_listener(reasons.append)

    with pytest.raises(ValueError, match="listener failed"):
        controller.abort("stop")

    assert reasons == ["stop"]
    assert controller.signal.aborted


def test_several_failing_listeners_are_grouped() -> None:
    controller = AbortController()

    def broken(reason: Any) -> None:
        raise ValueError(reason)

    controller.signal.add_listener(broken)
    controller.signal.add_listener(broken)

    with pytest.raises(ExceptionGroup) as exc_info:
        controller.abort("stop")
    assert len(exc_info.value.exceptions) == 2
