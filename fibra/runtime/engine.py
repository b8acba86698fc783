"""Step engine: the only place the recurrence itself lives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

from .codec import U64_MAX, ComputationState
from .errors import ArithmeticOverflow


@dataclass(frozen=True)
class Continue:
    a: int
    b: int
    remaining: int


@dataclass(frozen=True)
class Done:
    result: int


StepResult = Union[Continue, Done]


def checked_add(x: int, y: int) -> int:
    total = x + y
    if total > U64_MAX:
        raise ArithmeticOverflow(f"u64 overflow adding {x} + {y}")
    return total


def step(a: int, b: int, remaining: int) -> StepResult:
    """Advance ``(a, b)`` by one Fibonacci step, or report ``b`` when finished."""

    if remaining == 0:
        return Done(b)
    return Continue(b, checked_add(a, b), remaining - 1)


def apply_step(state: ComputationState) -> ComputationState:
    """Return the state after one step; terminal states are returned unchanged."""

    out = step(state.a, state.b, state.remaining)
    if isinstance(out, Done):
        return state
    return ComputationState(out.a, out.b, out.remaining, state.bump)


def iter_steps(state: ComputationState) -> Iterator[ComputationState]:
    """Lazily yield every state after ``state`` up to and including the terminal one.

    Restarting from any yielded checkpoint produces the same tail.
    """

    while not state.is_terminal:
        state = apply_step(state)
        yield state


def run_to_completion(state: ComputationState) -> ComputationState:
    for state in iter_steps(state):
        pass
    return state


__all__ = [
    "Continue",
    "Done",
    "StepResult",
    "apply_step",
    "checked_add",
    "iter_steps",
    "run_to_completion",
    "step",
]
