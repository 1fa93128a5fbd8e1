"""Reducer contract and composition helpers.

A reducer is a pure function ``(state, action) -> state``.  It must not
perform I/O, read the clock or randomness, or mutate its ``state``
argument.  For an action kind it does not handle it returns the input
state *reference* unchanged.

The helpers here cover the usual ways of assembling a root reducer:

* :func:`combine_reducers`: one reducer per top-level key
* :func:`create_reducer` / :class:`ReducerBuilder`: case table keyed by kind
* :func:`create_slice`: case table plus generated action creators
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, TypeAlias

from pydux.actions import Action, ActionCreator, create_action, kind_of
from pydux.exceptions import ReducerViolationError

Reducer: TypeAlias = Callable[[Any, Action], Any]
CaseReducer: TypeAlias = Callable[[Any, Action], Any]
ActionMatcher: TypeAlias = Callable[[Action], bool]


def _checked(result: Any, where: str, action: Action) -> Any:
    if result is None:
        raise ReducerViolationError(f"{where} returned None for action {action.kind!r}")
    return result


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    """Combine per-key reducers into one reducer over a dict state.

    Each slice reducer receives ``None`` on first call and must return its
    default.  The previous mapping is returned as-is when no slice changed
    by identity, which keeps the unknown-action no-op law intact.
    """
    if not reducers:
        raise ValueError("combine_reducers needs at least one reducer")
    slices = dict(reducers)

    def combination(state: Mapping[str, Any] | None, action: Action) -> Mapping[str, Any]:
        previous: Mapping[str, Any] = state if state is not None else {}
        next_state: dict[str, Any] = {}
        changed = state is None or set(previous) != set(slices)
        for key, reducer in slices.items():
            before = previous.get(key)
            after = _checked(reducer(before, action), f"Reducer for key {key!r}", action)
            next_state[key] = after
            changed = changed or after is not before
        return next_state if changed else previous

    return combination


class ReducerBuilder:
    """Case table for a reducer.

    Handlers run in this order for a single action:

    1. the case reducer registered for ``action.kind`` (at most one),
    2. every matcher whose predicate accepts the action, in registration order,
    3. the default case, only when nothing above matched.
    """

    def __init__(self, initial_state: Any) -> None:
        if initial_state is None:
            raise ValueError("initial_state must not be None")
        self._initial_state = initial_state
        self._cases: dict[str, CaseReducer] = {}
        self._matchers: list[tuple[ActionMatcher, CaseReducer]] = []
        self._default: CaseReducer | None = None

    def add_case(self, kind: str | ActionCreator, reducer: CaseReducer) -> ReducerBuilder:
        if self._matchers or self._default is not None:
            raise ValueError("add_case must be called before add_matcher and add_default_case")
        key = kind_of(kind)
        if key in self._cases:
            raise ValueError(f"A case reducer for {key!r} is already registered")
        self._cases[key] = reducer
        return self

    def add_matcher(self, matcher: ActionMatcher, reducer: CaseReducer) -> ReducerBuilder:
        if self._default is not None:
            raise ValueError("add_matcher must be called before add_default_case")
        self._matchers.append((matcher, reducer))
        return self

    def add_default_case(self, reducer: CaseReducer) -> ReducerBuilder:
        self._default = reducer
        return self

    def build(self) -> Reducer:
        initial_state = self._initial_state
        cases = dict(self._cases)
        matchers = list(self._matchers)
        default = self._default

        def reducer(state: Any, action: Action) -> Any:
            if state is None:
                state = initial_state

            handled = False
            case = cases.get(action.kind)
            if case is not None:
                state = _checked(case(state, action), f"Case reducer for {action.kind!r}", action)
                handled = True
            for matcher, matched in matchers:
                if matcher(action):
                    state = _checked(matched(state, action), "Matcher reducer", action)
                    handled = True
            if not handled and default is not None:
                state = _checked(default(state, action), "Default case reducer", action)
            return state

        return reducer


def create_reducer(initial_state: Any, build: Callable[[ReducerBuilder], Any]) -> Reducer:
    """Build a reducer by registering cases on a :class:`ReducerBuilder`."""
    builder = ReducerBuilder(initial_state)
    build(builder)
    return builder.build()


@dataclass(frozen=True)
class Slice:
    """A named piece of state with its reducer and action creators."""

    name: str
    reducer: Reducer
    actions: SimpleNamespace
    initial_state: Any

    def action_kinds(self) -> tuple[str, ...]:
        return tuple(creator.kind for creator in vars(self.actions).values())


def create_slice(
    name: str,
    initial_state: Any,
    reducers: Mapping[str, CaseReducer | tuple[CaseReducer, Callable[..., Mapping[str, Any]]]],
    extra_reducers: Callable[[ReducerBuilder], Any] | None = None,
) -> Slice:
    """Create a slice: case reducers plus generated action creators.

    Each entry in *reducers* produces an action creator named after the
    entry with kind ``"<name>/<entry>"``.  An entry can be a
    ``(reducer, prepare)`` pair to customise the created action.
    *extra_reducers* registers cases for kinds the slice does not own,
    such as lifecycle actions of an async task.
    """
    if not name or "/" in name:
        raise ValueError("Slice names must be non-empty and must not contain '/'")

    builder = ReducerBuilder(initial_state)
    creators: dict[str, ActionCreator] = {}
    for case_name, entry in reducers.items():
        if isinstance(entry, tuple):
            case_reducer, prepare = entry
            creator = create_action(f"{name}/{case_name}", prepare)
        else:
            case_reducer = entry
            creator = create_action(f"{name}/{case_name}")
        creators[case_name] = creator
        builder.add_case(creator, case_reducer)

    if extra_reducers is not None:
        extra_reducers(builder)

    return Slice(
        name=name,
        reducer=builder.build(),
        actions=SimpleNamespace(**creators),
        initial_state=initial_state,
    )
