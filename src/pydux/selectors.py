"""Selectors: derive data from state, and react when derived data changes."""

from __future__ import annotations

import operator
from collections.abc import Callable, Sequence
from typing import Any

Selector = Callable[..., Any]

_UNSET: Any = object()


class MemoizedSelector:
    """Selector that recomputes only when an input result changes identity.

    Input selectors receive the same arguments as the memoized selector
    (``state`` plus any extra parameters).  Only the most recent call is
    cached.
    """

    def __init__(self, inputs: Sequence[Selector], combiner: Callable[..., Any]) -> None:
        if not inputs:
            raise ValueError("create_selector needs at least one input selector")
        self._inputs = tuple(inputs)
        self._combiner = combiner
        self._last_inputs: tuple[Any, ...] | None = None
        self._last_result: Any = _UNSET
        self.recomputations = 0

    def __call__(self, state: Any, *args: Any) -> Any:
        values = tuple(select(state, *args) for select in self._inputs)
        last = self._last_inputs
        if last is not None and all(new is old for new, old in zip(values, last, strict=True)):
            return self._last_result

        self._last_result = self._combiner(*values)
        self._last_inputs = values
        self.recomputations += 1
        return self._last_result

    def reset_recomputations(self) -> None:
        self.recomputations = 0

    def clear_cache(self) -> None:
        self._last_inputs = None
        self._last_result = _UNSET


def create_selector(inputs: Sequence[Selector], combiner: Callable[..., Any]) -> MemoizedSelector:
    """Build a memoized selector from input selectors and a result function.

    Example::

        select_subtotal = create_selector(
            [lambda s: s["shop"]["items"]],
            lambda items: sum(item["value"] for item in items),
        )
        select_total = create_selector(
            [select_subtotal, lambda s: s["shop"]["tax_percent"]],
            lambda subtotal, tax: subtotal * (1 + tax / 100),
        )
    """
    return MemoizedSelector(inputs, combiner)


def observe(
    store: Any,
    selector: Selector,
    handler: Callable[[Any], None],
    *,
    fire_immediately: bool = True,
    equals: Callable[[Any, Any], bool] = operator.eq,
) -> Callable[[], None]:
    """Call ``handler(value)`` whenever ``selector(store.get_state())`` changes.

    Returns the unsubscribe function of the underlying subscription.
    """
    last = selector(store.get_state())
    if fire_immediately:
        handler(last)

    def on_change() -> None:
        nonlocal last
        value = selector(store.get_state())
        if equals(value, last):
            return
        last = value
        handler(value)

    return store.subscribe(on_change)
