"""
Stage by stage driver for the insurer quote form.

Stages run in order: vehicle -> applicant -> review. Fields the form does
not show for a given request are skipped, since the form varies by vehicle
and answers. Before advancing, each stage looks for labelled field errors
or a page-level message and raises FieldValidationError tagged with that
stage.
"""

import asyncio
import logging
import re
from datetime import date
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from motorquote.config import ScraperConfig
from motorquote.errors import FieldValidationError
from motorquote.models import ManualQuoteRequest, QuoteRequest, RegoQuoteRequest, StepReached, VehicleInfo
from motorquote.recovery import ReviewOutcome, ReviewState, classify_review_text
from motorquote.selector_library import PARKING_SYNONYMS, PURPOSE_SYNONYMS, SelectorLibrary
from motorquote.vehicle_resolver import VehicleResolver, first_real_option, match_option

logger = logging.getLogger(__name__)


def date_of_birth(age: int, today: Optional[date] = None) -> date:
    """1 January of (current year - age)."""
    today = today or date.today()
    return date(today.year - age, 1, 1)


def yes_no(value: bool) -> list[str]:
    return ["Yes"] if value else ["No"]


def claims_answers(count: int) -> list[str]:
    """Option texts that can represent a prior claims count."""
    if count <= 0:
        return ["0", "None", "No"]
    return [str(count), f"{count} claim", f"{count}+"]


class FormDriver:
    """
    Fills the quote form for one request.

    Create one driver per quote flow; it remembers which vehicle screen
    questions were already answered so the applicant stage does not repeat
    them.
    """

    def __init__(
        self,
        config: ScraperConfig,
        selectors: SelectorLibrary,
        resolver: Optional[VehicleResolver] = None,
    ):
        self.config = config
        self.selectors = selectors
        self.resolver = resolver or VehicleResolver(config, selectors)
        self.answered: set[str] = set()
        # Latest body text read while waiting for the review outcome
        self.review_text: Optional[str] = None

    # =========================================================================
    # Stages
    # =========================================================================

    async def complete_vehicle_stage(self, page, request: QuoteRequest) -> VehicleInfo:
        """Resolve the vehicle, answer vehicle screen extras and continue."""
        vehicle = await self.resolver.resolve(page, request)

        if isinstance(request, RegoQuoteRequest):
            await self._answer_usage(page, request)

        await self._advance(page, StepReached.YOUR_CAR)
        return vehicle

    async def complete_applicant_stage(self, page, request: QuoteRequest) -> None:
        """Answer the questions about the driver and where the car is kept."""
        await page.wait_for_timeout(self.config.settle_ms)

        if isinstance(request, RegoQuoteRequest):
            await self._fill_address(page, request.address)
            await self._answer_usage(page, request)
            if await self._choose(page, "member_label", yes_no(request.is_member)):
                logger.info(f"Membership: {'yes' if request.is_member else 'no'}")
            if await self._choose(page, "gender_label", [request.driver_gender]):
                logger.info(f"Gender: {request.driver_gender}")
        else:
            await self._fill_postcode(page, request.postcode)

        await self._fill_date_of_birth(page, request.driver_age)

        if isinstance(request, RegoQuoteRequest):
            await self._fill_licence_age(page, request.licence_age)

        if isinstance(request, ManualQuoteRequest):
            synonyms = PARKING_SYNONYMS.get(request.parking_type.lower(), [request.parking_type])
            if await self._choose(page, "parking_label", synonyms):
                logger.info(f"Parking: {request.parking_type}")

        await self._answer_claims(page, request.claims_last_5_years)
        await self._advance(page, StepReached.ABOUT_YOU)

    async def submit_review(self, page) -> ReviewState:
        """
        Accept default cover options, submit, and wait for an outcome.

        Returns:
            ReviewState with the classified outcome and the page text
        """
        await self.select_default_options(page)

        if not await self._click_first_visible(page, "submit_button"):
            logger.warning("No submit button visible on review stage")

        deadline = asyncio.get_running_loop().time() + self.config.result_timeout_ms / 1000
        text, errors = "", []
        while True:
            text = await page.inner_text("body")
            self.review_text = text
            errors = await self.collect_errors(page)
            outcome = classify_review_text(text, errors, self.selectors)
            if outcome != ReviewOutcome.NO_RESULT:
                logger.info(f"Review outcome: {outcome.value}")
                return ReviewState(outcome, text, errors)
            if asyncio.get_running_loop().time() >= deadline:
                break
            await asyncio.sleep(0.5)

        logger.warning("No premium or error shown after submitting")
        return ReviewState(ReviewOutcome.NO_RESULT, text, errors)

    async def back_to_form(self, page) -> bool:
        """Leave a system error page and return to the applicant stage."""
        if not await self._click_first_visible(page, "back_to_form_button"):
            return False

        applicant = page.locator(self.selectors.css("address_input")).or_(
            page.locator(self.selectors.css("postcode_input"))
        ).or_(page.get_by_label(self.selectors.pattern("dob_label"))).first
        try:
            await applicant.wait_for(state="visible", timeout=self.config.step_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("Applicant stage not shown after returning to form")

        await page.wait_for_timeout(self.config.settle_ms)
        return await self._click_first_visible(page, "continue_button")

    # =========================================================================
    # Errors
    # =========================================================================

    async def collect_errors(self, page) -> list[str]:
        """Visible field error texts, else the page-level error message."""
        texts: list[str] = []
        errors = page.locator(self.selectors.css("field_error"))
        count = await errors.count()
        for index in range(min(count, 20)):
            error = errors.nth(index)
            if not await error.is_visible():
                continue
            text = re.sub(r"\s+", " ", await error.inner_text()).strip()
            if text and text not in texts:
                texts.append(text)

        if not texts:
            body = await page.inner_text("body")
            match = self.selectors.pattern("page_error").search(body or "")
            if match:
                texts.append(_sentence_around(body, match))
        return texts

    async def _advance(self, page, step: StepReached) -> None:
        """Check for errors, continue, then check again once the page settles."""
        await self._raise_on_errors(page, step)
        if await self._click_first_visible(page, "continue_button"):
            await page.wait_for_timeout(self.config.settle_ms)
            await self._raise_on_errors(page, step)
        else:
            logger.debug(f"No continue button on {step.value}")

    async def _raise_on_errors(self, page, step: StepReached) -> None:
        errors = await self.collect_errors(page)
        if errors:
            raise FieldValidationError("; ".join(errors), step)

    # =========================================================================
    # Fields
    # =========================================================================

    async def _fill_address(self, page, address: str) -> None:
        field = page.locator(self.selectors.css("address_input")).or_(
            page.get_by_label(self.selectors.pattern("address_label"))
        ).first
        if not await _present(field):
            logger.debug("No address field shown")
            return

        await field.fill(address)
        if await self._pick_suggestion(page):
            logger.info(f"Address selected for: {address}")
            return

        errors = await self.collect_errors(page)
        raise FieldValidationError(
            "; ".join(errors) or f"Address not recognised: {address}",
            StepReached.ABOUT_YOU,
        )

    async def _fill_postcode(self, page, postcode: str) -> None:
        field = page.locator(self.selectors.css("postcode_input")).or_(
            page.get_by_label(self.selectors.pattern("postcode_label"))
        ).first
        if not await _present(field):
            logger.debug("No postcode field shown")
            return

        await field.fill(str(postcode))
        if not await self._pick_suggestion(page):
            await field.press("Tab")
        logger.info(f"Postcode: {postcode}")

    async def _pick_suggestion(self, page) -> bool:
        option = page.locator(self.selectors.css("autocomplete_option")).first
        try:
            await option.wait_for(state="visible", timeout=self.config.step_timeout_ms)
        except PlaywrightTimeoutError:
            return False
        await option.click()
        await page.wait_for_timeout(self.config.settle_ms)
        return True

    async def _answer_usage(self, page, request: RegoQuoteRequest) -> None:
        """Finance, purpose and business use; each asked once per flow."""
        if request.under_finance is not None and "finance" not in self.answered:
            if await self._choose(page, "finance_label", yes_no(request.under_finance)):
                self.answered.add("finance")

        if request.purpose and "purpose" not in self.answered:
            answers = PURPOSE_SYNONYMS.get(request.purpose.lower(), [request.purpose])
            if await self._choose(page, "purpose_label", answers):
                self.answered.add("purpose")

        if request.business_use is not None and "business" not in self.answered:
            if await self._choose(page, "business_label", yes_no(request.business_use)):
                self.answered.add("business")

    async def _fill_date_of_birth(self, page, age: int) -> None:
        dob = date_of_birth(age)

        single = page.locator(self.selectors.css("dob_input")).or_(
            page.get_by_label(self.selectors.pattern("dob_label"))
        ).first
        if await _present(single) and await _tag_name(single) == "input":
            await single.fill(dob.strftime("%d/%m/%Y"))
            await single.press("Tab")
            logger.info(f"Date of birth: {dob:%d/%m/%Y}")
            return

        parts = [
            ("dob_day_input", f"{dob.day:02d}"),
            ("dob_month_input", f"{dob.month:02d}"),
            ("dob_year_input", str(dob.year)),
        ]
        filled = 0
        for purpose, value in parts:
            field = page.locator(self.selectors.css(purpose)).first
            if await _present(field):
                await field.fill(value)
                filled += 1
        if filled:
            logger.info(f"Date of birth (split fields): {dob:%d/%m/%Y}")

    async def _fill_licence_age(self, page, licence_age: int) -> None:
        field = page.locator(self.selectors.css("licence_age_input")).first
        if await _present(field):
            await field.fill(str(licence_age))
            return
        await self._choose(page, "licence_label", [str(licence_age)])

    async def _answer_claims(self, page, count: int) -> None:
        if not await self._choose(page, "claims_label", claims_answers(count)):
            return
        logger.info(f"Claims in last 5 years: {count}")

        if count > 0:
            await page.wait_for_timeout(self.config.settle_ms)
            detail = page.get_by_label(self.selectors.pattern("claims_detail_label")).first
            if await _present(detail) and await _tag_name(detail) == "select":
                options = await _read_options(detail)
                preferred = self.selectors.pattern("claims_detail_default")
                choice = next((o for o in options if o[1] and preferred.search(o[0])), None)
                choice = choice or first_real_option(options)
                if choice:
                    await detail.select_option(value=choice[1])
                    logger.info(f"Claim detail: {choice[0]}")

    async def _choose(self, page, label_purpose: str, answers: list[str]) -> bool:
        """
        Answer an enumerated question by its label.

        Handles a labelled <select> or a radio/button group named by the label.
        Returns False when the question is not shown or no answer matches.
        """
        label = self.selectors.pattern(label_purpose)

        field = page.get_by_label(label).first
        if await _present(field) and await _tag_name(field) == "select":
            options = await _read_options(field)
            for answer in answers:
                option = match_option(answer, options)
                if option:
                    await field.select_option(value=option[1])
                    await page.wait_for_timeout(self.config.settle_ms)
                    return True
            logger.warning(f"No option for {label_purpose} matched {answers}")
            return False

        group = page.get_by_role("radiogroup", name=label).or_(
            page.get_by_role("group", name=label)
        ).first
        if not await _present(group):
            return False

        for answer in answers:
            exact = re.compile(rf"^\s*{re.escape(answer)}\s*$", re.IGNORECASE)
            choice = group.get_by_role("radio", name=exact).or_(
                group.get_by_role("button", name=exact)
            ).or_(group.get_by_text(exact)).first
            if await choice.count() > 0:
                await choice.click()
                await page.wait_for_timeout(self.config.settle_ms)
                return True

        logger.warning(f"No choice for {label_purpose} matched {answers}")
        return False

    async def select_default_options(self, page) -> int:
        """Select the first option in visible dropdowns that have no value yet."""
        selected = 0
        selects = page.locator("select")
        for index in range(await selects.count()):
            select = selects.nth(index)
            if not await select.is_visible():
                continue
            if await select.input_value():
                continue
            option = first_real_option(await _read_options(select))
            if option:
                await select.select_option(value=option[1])
                logger.info(f"Selected default option: {option[0]}")
                selected += 1
        return selected

    async def _click_first_visible(self, page, purpose: str) -> bool:
        for selector in self.selectors.selectors(purpose):
            button = page.locator(selector).first
            if await _present(button) and await button.is_enabled():
                await button.click()
                logger.info(f"Clicked {purpose}: {selector}")
                return True
        return False


async def _present(locator) -> bool:
    return await locator.count() > 0 and await locator.is_visible()


async def _tag_name(locator) -> str:
    return await locator.evaluate("el => el.tagName.toLowerCase()")


async def _read_options(select) -> list[tuple[str, str]]:
    raw = await select.locator("option").evaluate_all(
        "els => els.map(e => [(e.textContent || '').trim(), e.value])"
    )
    return [(str(label), str(value)) for label, value in raw]


def _sentence_around(text: str, match: re.Match) -> str:
    """The line of text holding a regex match."""
    start = text.rfind("\n", 0, match.start()) + 1
    end = text.find("\n", match.end())
    if end == -1:
        end = len(text)
    return text[start:end].strip()[:200]
