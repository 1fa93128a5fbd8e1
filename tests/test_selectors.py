from __future__ import annotations

from typing import Any

from pydux.actions import Action
from pydux.reducers import create_slice
from pydux.selectors import create_selector, observe
from pydux.store import Store


def _shop_state(items: tuple[dict[str, Any], ...], tax_percent: int = 8) -> dict[str, Any]:
    return {"shop": {"items": items, "tax_percent": tax_percent}}


def _select_items(state: dict[str, Any]) -> tuple[dict[str, Any], ...]:
    return state["shop"]["items"]


def test_recomputes_only_when_inputs_change() -> None:
    select_subtotal = create_selector([_select_items], lambda items: sum(item["value"] for item in items))
    select_total = create_selector(
        [select_subtotal, lambda s: s["shop"]["tax_percent"]],
        lambda subtotal, tax: round(subtotal * (1 + tax / 100), 2),
    )
    items = ({"name": "apple", "value": 1.20}, {"name": "orange", "value": 0.95})
    state = _shop_state(items)

    assert select_total(state) == 2.32
    assert select_total(state) == 2.32
    assert select_subtotal.recomputations == 1
    assert select_total.recomputations == 1

    # different root but same items reference: subtotal is reused
    assert select_total(_shop_state(items, tax_percent=0)) == 2.15
    assert select_subtotal.recomputations == 1
    assert select_total.recomputations == 2


def test_extra_arguments_reach_input_selectors() -> None:
    select_by_category = create_selector(
        [lambda state, category: _select_items(state), lambda state, category: category],
        lambda items, category: tuple(item["name"] for item in items if item["category"] == category),
    )
    items = (
        {"name": "apple", "category": "fruit"},
        {"name": "kale", "category": "veg"},
    )
    state = _shop_state(items)

    assert select_by_category(state, "fruit") == ("apple",)
    assert select_by_category(state, "veg") == ("kale",)
    assert select_by_category.recomputations == 2


def test_reset_and_clear() -> None:
    select_count = create_selector([_select_items], len)
    state = _shop_state(({"value": 1},))

    select_count(state)
    select_count.reset_recomputations()
    select_count(state)
    assert select_count.recomputations == 0

    select_count.clear_cache()
    select_count(state)
    assert select_count.recomputations == 1


class TestObserve:
    def _make_store(self) -> tuple[Store, Any]:
        counter = create_slice(
            "counter",
            {"value": 0, "label": "clicks"},
            {
                "increment": lambda s, a: {**s, "value": s["value"] + 1},
                "rename": lambda s, a: {**s, "label": a.payload},
            },
        )
        return Store(counter.reducer), counter.actions

    def test_handler_fires_only_on_change(self) -> None:
        store, actions = self._make_store()
        seen: list[int] = []

        observe(store, lambda s: s["value"], seen.append)
        store.dispatch(actions.increment())
        store.dispatch(actions.rename("taps"))
        store.dispatch(Action(kind="unrelated"))
        store.dispatch(actions.increment())

        assert seen == [0, 1, 2]

    def test_without_immediate_fire_and_unsubscribe(self) -> None:
        store, actions = self._make_store()
        seen: list[str] = []

        unsubscribe = observe(store, lambda s: s["label"], seen.append, fire_immediately=False)
        store.dispatch(actions.rename("taps"))
        unsubscribe()
        store.dispatch(actions.rename("presses"))

        assert seen == ["taps"]

    def test_custom_equality(self) -> None:
        store, actions = self._make_store()
        seen: list[int] = []

        observe(
            store,
            lambda s: s["value"],
            seen.append,
            fire_immediately=False,
            equals=lambda new, old: new // 2 == old // 2,
        )
        for _ in range(4):
            store.dispatch(actions.increment())

        assert seen == [2, 4]
