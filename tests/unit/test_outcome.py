"""Fallible boundary: attempt, fail, propagate and assert_succeeds."""

from __future__ import annotations

from decimal import Decimal
import logging

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from recourse import (
    Failed,
    InvariantViolationError,
    PropagationError,
    Success,
    UnexpectedFailureError,
    assert_succeeds,
    attempt,
    config_scope,
    fail,
    fallible,
    propagate,
)
from tests.helpers import GeneralFailure, VendingFailure, fail_if

pytestmark = pytest.mark.unit


def test_attempt_wraps_plain_return_values() -> None:
    assert attempt(lambda: 42) == Success(42)


def test_attempt_passes_arguments_through() -> None:
    assert attempt(lambda a, *, b: a + b, 1, b=2) == Success(3)


def test_attempt_captures_signalled_failure() -> None:
    failure = VendingFailure.OutOfStock()

    def op() -> None:
        fail(failure)

    outcome = attempt(op)

    assert outcome == Failed(failure)
    assert outcome.failure is failure


def test_attempt_treats_returned_failure_values_as_failed() -> None:
    failure = VendingFailure.InvalidSelection()
    assert attempt(lambda: failure) == Failed(failure)


def test_attempt_passes_returned_outcomes_through_unchanged() -> None:
    failed = Failed(VendingFailure.OutOfStock())
    assert attempt(lambda: failed) is failed
    assert attempt(lambda: Success(Success(1))) == Success(Success(1))


def test_attempt_does_not_capture_ordinary_exceptions() -> None:
    def op() -> None:
        raise ValueError("bug")

    with pytest.raises(ValueError, match="bug"):
        attempt(op)


def test_fallible_decorator_returns_outcomes() -> None:
    assert fail_if(False) == Success(None)
    assert fail_if(True) == Failed(GeneralFailure.SomeError())
    assert fail_if.__name__ == "fail_if"


def test_propagate_yields_success_value_and_continues() -> None:
    steps: list[str] = []

    @fallible
    def op() -> int:
        value = propagate(Success(20))
        steps.append("after")
        return value + 1

    assert op() == Success(21)
    assert steps == ["after"]


def test_propagate_forwards_the_identical_failure() -> None:
    failure = VendingFailure.InsufficientFunds(required=Decimal("0.25"))
    steps: list[str] = []

    @fallible
    def inner() -> None:
        fail(failure)

    @fallible
    def middle() -> None:
        propagate(inner())
        steps.append("middle continued")

    @fallible
    def outer() -> None:
        propagate(middle())
        steps.append("outer continued")

    outcome = outer()

    assert isinstance(outcome, Failed)
    assert outcome.failure is failure
    assert not isinstance(outcome.failure, Failed)
    assert steps == []


def test_broad_except_between_propagate_and_boundary_does_not_swallow() -> None:
    @fallible
    def op() -> str:
        try:
            propagate(Failed(VendingFailure.OutOfStock()))
        except Exception:
            return "swallowed"
        return "continued"

    assert op() == Failed(VendingFailure.OutOfStock())


def test_propagate_outside_a_boundary_is_rejected() -> None:
    with pytest.raises(PropagationError, match="propagate"):
        propagate(Success(1))
    with pytest.raises(PropagationError, match="fail"):
        fail(VendingFailure.OutOfStock())


def test_boundary_is_released_after_attempt_returns() -> None:
    attempt(lambda: None)
    with pytest.raises(PropagationError):
        propagate(Failed(VendingFailure.OutOfStock()))


def test_propagate_rejects_non_outcomes() -> None:
    @fallible
    def op() -> None:
        propagate(42)  # type: ignore[arg-type]

    with pytest.raises(InvariantViolationError, match="expects an Outcome"):
        op()


def test_fail_rejects_non_failures() -> None:
    @fallible
    def op() -> None:
        fail(ValueError("nope"))  # type: ignore[arg-type]

    with pytest.raises(InvariantViolationError, match="requires a failure value"):
        op()


def test_failed_requires_a_failure_value() -> None:
    with pytest.raises(InvariantViolationError):
        Failed("boom")


def test_map_and_and_then() -> None:
    assert Success(2).map(lambda v: v * 10) == Success(20)
    assert Success(2).and_then(lambda v: Failed(GeneralFailure.SomeError())) == Failed(
        GeneralFailure.SomeError()
    )
    failed = Failed(GeneralFailure.SomeError())
    assert failed.map(lambda v: v * 10) is failed
    assert failed.and_then(lambda v: Success(v)) is failed
    assert Success(1).is_success() and not Success(1).is_failure()
    assert failed.is_failure() and not failed.is_success()


def test_assert_succeeds_unwraps_success() -> None:
    assert assert_succeeds(fail_if(False)) is None
    assert assert_succeeds(Success("ok")) == "ok"


def test_assert_succeeds_aborts_with_full_diagnostics(
    caplog: pytest.LogCaptureFixture,
) -> None:
    failure = VendingFailure.InsufficientFunds(required=Decimal("0.25"))

    with (
        caplog.at_level(logging.CRITICAL, logger="recourse"),
        pytest.raises(UnexpectedFailureError) as exc,
    ):
        assert_succeeds(Failed(failure))

    assert exc.value.failure is failure
    message = str(exc.value)
    assert "VendingFailure" in message
    assert "InsufficientFunds" in message
    assert "0.25" in message
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


def test_assert_succeeds_is_not_captured_by_an_enclosing_boundary() -> None:
    @fallible
    def op() -> None:
        assert_succeeds(fail_if(True))

    with pytest.raises(UnexpectedFailureError):
        op()


def test_propagation_is_logged_when_enabled(caplog: pytest.LogCaptureFixture) -> None:
    with (
        config_scope(log_propagation=True),
        caplog.at_level(logging.DEBUG, logger="recourse.outcome"),
    ):
        fallible(lambda: propagate(fail_if(True)))()

    assert any("Forwarding" in r.getMessage() for r in caplog.records)


def test_propagation_is_quiet_by_default(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="recourse.outcome"):
        fallible(lambda: propagate(fail_if(True)))()

    assert not any("Forwarding" in r.getMessage() for r in caplog.records)


@given(value=st.one_of(st.integers(), st.text(), st.none(), st.lists(st.integers())))
@settings(max_examples=25, deadline=None, derandomize=True)
def test_propagate_success_is_identity(value: object) -> None:
    """Property: forwarding a success hands back exactly the wrapped value."""

    @fallible
    def op() -> object:
        return propagate(Success(value))

    assert op() == Success(value)
