"""Tests for the form driver."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from motorquote.config import ScraperConfig
from motorquote.errors import FieldValidationError
from motorquote.form_driver import FormDriver, claims_answers, date_of_birth, yes_no
from motorquote.models import ManualQuoteRequest, RegoQuoteRequest, StepReached, VehicleInfo
from motorquote.recovery import ReviewOutcome
from motorquote.selector_library import SelectorLibrary


@pytest.fixture
def driver():
    config = ScraperConfig(step_timeout_ms=1000, settle_ms=0, result_timeout_ms=0)
    return FormDriver(config, SelectorLibrary(), resolver=MagicMock())


def rego_request():
    return RegoQuoteRequest(
        registration="ABC123",
        address="1 Collins St, Melbourne VIC 3000",
        driver_age=35,
        driver_gender="Female",
        licence_age=18,
        claims_last_5_years=1,
        is_member=True,
        under_finance=False,
        purpose="private",
    )


def error_element(text, visible=True):
    element = MagicMock()
    element.is_visible = AsyncMock(return_value=visible)
    element.inner_text = AsyncMock(return_value=text)
    return element


def page_with_errors(elements, body=""):
    page = MagicMock()
    errors = MagicMock()
    errors.count = AsyncMock(return_value=len(elements))
    errors.nth.side_effect = lambda index: elements[index]
    page.locator.return_value = errors
    page.inner_text = AsyncMock(return_value=body)
    page.wait_for_timeout = AsyncMock()
    return page


class TestHelpers:
    """Test cases for answer helpers."""

    def test_date_of_birth_is_first_of_january(self):
        assert date_of_birth(35, today=date(2026, 10, 18)) == date(1991, 1, 1)

    def test_yes_no(self):
        assert yes_no(True) == ["Yes"]
        assert yes_no(False) == ["No"]

    def test_claims_answers(self):
        assert claims_answers(0)[0] == "0"
        assert "None" in claims_answers(0)
        assert claims_answers(2)[0] == "2"


class TestCollectErrors:
    """Test cases for FormDriver.collect_errors."""

    @pytest.mark.asyncio
    async def test_visible_field_errors(self, driver):
        """Test visible labelled errors are returned once each."""
        page = page_with_errors([
            error_element("Please enter a valid  address"),
            error_element("hidden", visible=False),
            error_element("Please enter a valid address"),
            error_element(""),
        ])
        assert await driver.collect_errors(page) == ["Please enter a valid address"]

    @pytest.mark.asyncio
    async def test_page_level_message(self, driver):
        """Test the page error line is used when no field error is shown."""
        page = page_with_errors([], body="About you\nWe couldn't verify your address\nTry again")
        assert await driver.collect_errors(page) == ["We couldn't verify your address"]

    @pytest.mark.asyncio
    async def test_no_errors(self, driver):
        page = page_with_errors([], body="About you\nDate of birth")
        assert await driver.collect_errors(page) == []


class TestStages:
    """Test cases for stage sequencing."""

    @pytest.mark.asyncio
    async def test_advance_raises_with_stage_tag(self, driver):
        """Test errors before continuing are tagged with the stage."""
        driver.collect_errors = AsyncMock(return_value=["Address not found", "Select a suburb"])
        driver._click_first_visible = AsyncMock(return_value=True)

        with pytest.raises(FieldValidationError) as exc_info:
            await driver._advance(MagicMock(), StepReached.YOUR_CAR)

        assert exc_info.value.step_reached is StepReached.YOUR_CAR
        assert exc_info.value.message == "Address not found; Select a suburb"
        driver._click_first_visible.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_advance_checks_again_after_continue(self, driver):
        page = MagicMock()
        page.wait_for_timeout = AsyncMock()
        driver.collect_errors = AsyncMock(side_effect=[[], ["Enter a valid date of birth"]])
        driver._click_first_visible = AsyncMock(return_value=True)

        with pytest.raises(FieldValidationError) as exc_info:
            await driver._advance(page, StepReached.ABOUT_YOU)

        assert exc_info.value.step_reached is StepReached.ABOUT_YOU
        driver._click_first_visible.assert_awaited_once_with(page, "continue_button")

    @pytest.mark.asyncio
    async def test_vehicle_stage_rego(self, driver):
        """Test rego mode answers usage questions on the vehicle screen."""
        vehicle = VehicleInfo(description="2020 TOYOTA COROLLA")
        driver.resolver.resolve = AsyncMock(return_value=vehicle)
        driver._answer_usage = AsyncMock()
        driver._advance = AsyncMock()
        page = MagicMock()
        request = rego_request()

        assert await driver.complete_vehicle_stage(page, request) is vehicle
        driver._answer_usage.assert_awaited_once_with(page, request)
        driver._advance.assert_awaited_once_with(page, StepReached.YOUR_CAR)

    @pytest.mark.asyncio
    async def test_vehicle_stage_manual(self, driver):
        driver.resolver.resolve = AsyncMock(return_value=VehicleInfo(description="2020 TOYOTA COROLLA"))
        driver._answer_usage = AsyncMock()
        driver._advance = AsyncMock()

        await driver.complete_vehicle_stage(MagicMock(), ManualQuoteRequest("Toyota", "Corolla", 2020, "3000", 35, 0))
        driver._answer_usage.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolvable_address(self, driver):
        """Test an address with no suggestion fails the applicant stage."""
        page = MagicMock()
        page.locator.return_value.or_.return_value.first.fill = AsyncMock()
        driver._pick_suggestion = AsyncMock(return_value=False)
        driver.collect_errors = AsyncMock(return_value=[])

        with patch("motorquote.form_driver._present", AsyncMock(return_value=True)):
            with pytest.raises(FieldValidationError) as exc_info:
                await driver._fill_address(page, "1 Nowhere Rd, Atlantis")

        assert exc_info.value.step_reached is StepReached.ABOUT_YOU
        assert "1 Nowhere Rd, Atlantis" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_usage_answered_once(self, driver):
        """Test vehicle screen answers are not repeated on the applicant stage."""
        driver._choose = AsyncMock(return_value=True)
        request = rego_request()

        await driver._answer_usage(MagicMock(), request)
        await driver._answer_usage(MagicMock(), request)

        assert driver._choose.await_count == 2
        assert driver.answered == {"finance", "purpose"}


class TestSubmitReview:
    """Test cases for FormDriver.submit_review."""

    @pytest.mark.asyncio
    async def test_premium_shown(self, driver):
        page = MagicMock()
        page.inner_text = AsyncMock(return_value="Your quote\n$1,234.56 per year")
        driver.select_default_options = AsyncMock(return_value=0)
        driver._click_first_visible = AsyncMock(return_value=True)
        driver.collect_errors = AsyncMock(return_value=[])

        state = await driver.submit_review(page)

        assert state.outcome == ReviewOutcome.PREMIUM
        driver._click_first_visible.assert_awaited_once_with(page, "submit_button")

    @pytest.mark.asyncio
    async def test_nothing_shown(self, driver):
        page = MagicMock()
        page.inner_text = AsyncMock(return_value="Calculating your quote")
        driver.select_default_options = AsyncMock(return_value=0)
        driver._click_first_visible = AsyncMock(return_value=True)
        driver.collect_errors = AsyncMock(return_value=[])

        state = await driver.submit_review(page)

        assert state.outcome == ReviewOutcome.NO_RESULT
        assert state.text == "Calculating your quote"
