"""Tests for the pure step engine."""

import itertools

import pytest

from fibra.runtime.codec import U64_MAX, ComputationState, initial_state
from fibra.runtime.engine import (
    Continue,
    Done,
    apply_step,
    checked_add,
    iter_steps,
    run_to_completion,
    step,
)
from fibra.runtime.errors import ArithmeticOverflow


def fib(k):
    a, b = 0, 1
    for _ in range(k):
        a, b = b, a + b
    return a


def test_step_reports_done_when_no_steps_remain():
    assert step(3, 5, 0) == Done(5)


def test_step_advances_recurrence():
    assert step(0, 1, 3) == Continue(1, 1, 2)
    assert step(1, 2, 1) == Continue(2, 3, 0)


def test_checked_add_detects_u64_overflow():
    assert checked_add(U64_MAX - 1, 1) == U64_MAX
    with pytest.raises(ArithmeticOverflow, match="overflow"):
        checked_add(U64_MAX, 1)
    with pytest.raises(ArithmeticOverflow):
        step(U64_MAX, 1, 1)


@pytest.mark.parametrize(
    "n, expected",
    [(0, (0, 1)), (1, (1, 1)), (3, (2, 3)), (4, (3, 5))],
)
def test_scenarios(n, expected):
    final = run_to_completion(initial_state(n, 0))

    assert (final.a, final.b, final.remaining) == (*expected, 0)


def test_result_is_fib_of_n_plus_one():
    for n in range(0, 40):
        assert run_to_completion(initial_state(n, 0)).b == fib(n + 1)


def test_largest_representable_result_and_overflow_beyond_it():
    assert run_to_completion(initial_state(92, 0)).b == 12200160415121876738

    with pytest.raises(ArithmeticOverflow):
        run_to_completion(initial_state(93, 0))


def test_iter_steps_decrements_remaining_by_one():
    states = list(iter_steps(initial_state(6, 7)))

    assert [s.remaining for s in states] == [5, 4, 3, 2, 1, 0]
    assert all(s.bump == 7 for s in states)


def test_iter_steps_restarts_from_checkpoint():
    full = list(iter_steps(initial_state(8, 0)))
    checkpoint = full[2]

    assert list(iter_steps(checkpoint)) == full[3:]


def test_terminal_state_is_fixed_point():
    terminal = ComputationState(3, 5, 0, 1)

    assert apply_step(terminal) is terminal
    assert list(iter_steps(terminal)) == []
    assert list(itertools.islice(iter_steps(terminal), 3)) == []
