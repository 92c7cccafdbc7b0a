"""Tests for review stage classification and recovery."""

from unittest.mock import AsyncMock

import pytest

from motorquote.errors import FieldValidationError, TransientBackendError
from motorquote.models import StepReached
from motorquote.recovery import (
    NO_RESULT_MESSAGE,
    RecoveryController,
    ReviewOutcome,
    ReviewState,
    classify_review_text,
)
from motorquote.selector_library import SelectorLibrary


PREMIUM_PAGE = "Your quote\n$1,234.56 per year\n$113.17 per month"
SYSTEM_ERROR_PAGE = "Sorry, something went wrong. Please try again."


@pytest.fixture
def selectors():
    return SelectorLibrary()


class FakeDriver:
    """Driver returning scripted review states."""

    def __init__(self, states, back_ok=True):
        self.states = list(states)
        self.submit_review = AsyncMock(side_effect=self._next)
        self.back_to_form = AsyncMock(return_value=back_ok)

    async def _next(self, page):
        return self.states.pop(0)


class TestClassifyReviewText:
    """Test cases for classify_review_text."""

    def test_premium(self, selectors):
        assert classify_review_text(PREMIUM_PAGE, [], selectors) == ReviewOutcome.PREMIUM

    def test_premium_wins_over_errors(self, selectors):
        text = PREMIUM_PAGE + "\nSomething went wrong loading offers"
        assert classify_review_text(text, ["Optional field"], selectors) == ReviewOutcome.PREMIUM

    def test_system_error(self, selectors):
        assert classify_review_text(SYSTEM_ERROR_PAGE, [], selectors) == ReviewOutcome.SYSTEM_ERROR

    def test_field_error(self, selectors):
        assert classify_review_text("Review", ["Enter a valid date"], selectors) == ReviewOutcome.FIELD_ERROR
        assert classify_review_text(
            "Please correct the errors below", [], selectors
        ) == ReviewOutcome.FIELD_ERROR

    def test_no_result(self, selectors):
        assert classify_review_text("Loading...", [], selectors) == ReviewOutcome.NO_RESULT
        assert classify_review_text("", [], selectors) == ReviewOutcome.NO_RESULT


class TestRecoveryController:
    """Test cases for RecoveryController."""

    @pytest.mark.asyncio
    async def test_premium_first_time(self):
        driver = FakeDriver([ReviewState(ReviewOutcome.PREMIUM, PREMIUM_PAGE)])
        controller = RecoveryController(driver)

        state = await controller.run(page=None)

        assert state.text == PREMIUM_PAGE
        assert controller.cycles_used == 0
        driver.back_to_form.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_system_error_recovered_once(self):
        """Test one back-to-form cycle clears a transient error."""
        driver = FakeDriver([
            ReviewState(ReviewOutcome.SYSTEM_ERROR, SYSTEM_ERROR_PAGE),
            ReviewState(ReviewOutcome.PREMIUM, PREMIUM_PAGE),
        ])
        controller = RecoveryController(driver)

        state = await controller.run(page=None)

        assert state.outcome == ReviewOutcome.PREMIUM
        assert controller.cycles_used == 1
        driver.back_to_form.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_system_error_is_terminal(self):
        """Test at most one recovery cycle is attempted."""
        driver = FakeDriver([
            ReviewState(ReviewOutcome.SYSTEM_ERROR, SYSTEM_ERROR_PAGE),
            ReviewState(ReviewOutcome.SYSTEM_ERROR, SYSTEM_ERROR_PAGE),
            ReviewState(ReviewOutcome.PREMIUM, PREMIUM_PAGE),
        ])
        controller = RecoveryController(driver)

        with pytest.raises(TransientBackendError) as exc_info:
            await controller.run(page=None)

        assert exc_info.value.step_reached is StepReached.QUOTE_RESULT
        assert controller.cycles_used == 1
        assert driver.submit_review.await_count == 2

    @pytest.mark.asyncio
    async def test_back_to_form_missing(self):
        driver = FakeDriver([ReviewState(ReviewOutcome.SYSTEM_ERROR, SYSTEM_ERROR_PAGE)], back_ok=False)

        with pytest.raises(TransientBackendError):
            await RecoveryController(driver).run(page=None)

    @pytest.mark.asyncio
    async def test_field_error_not_retried(self):
        driver = FakeDriver([
            ReviewState(ReviewOutcome.FIELD_ERROR, "Review", ["Enter a valid date", "Select a gender"]),
        ])

        with pytest.raises(FieldValidationError) as exc_info:
            await RecoveryController(driver).run(page=None)

        assert exc_info.value.message == "Enter a valid date; Select a gender"
        driver.back_to_form.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_result(self):
        driver = FakeDriver([ReviewState(ReviewOutcome.NO_RESULT, "Loading...")])

        with pytest.raises(FieldValidationError) as exc_info:
            await RecoveryController(driver).run(page=None)

        assert exc_info.value.message == NO_RESULT_MESSAGE
        assert exc_info.value.step_reached is StepReached.QUOTE_RESULT

    @pytest.mark.asyncio
    async def test_zero_cycles_configured(self):
        driver = FakeDriver([ReviewState(ReviewOutcome.SYSTEM_ERROR, SYSTEM_ERROR_PAGE)])

        with pytest.raises(TransientBackendError):
            await RecoveryController(driver, max_cycles=0).run(page=None)

        driver.back_to_form.assert_not_awaited()
