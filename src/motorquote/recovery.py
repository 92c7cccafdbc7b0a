"""
Review stage outcome handling.

The insurer backend intermittently answers a valid submission with a generic
system error. Going back to the form and submitting again usually clears it,
so one recovery cycle is attempted before giving up. Field errors and
missing results are not retried.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from motorquote.constants import DEFAULT_MAX_RECOVERY_CYCLES
from motorquote.errors import FieldValidationError, TransientBackendError
from motorquote.models import StepReached
from motorquote.selector_library import SelectorLibrary

logger = logging.getLogger(__name__)

NO_RESULT_MESSAGE = "Additional steps may be required to complete the quote"


class ReviewOutcome(str, Enum):
    PREMIUM = "premium"
    SYSTEM_ERROR = "system_error"
    FIELD_ERROR = "field_error"
    NO_RESULT = "no_result"


@dataclass
class ReviewState:
    """What the page showed after the review stage was submitted."""
    outcome: ReviewOutcome
    text: str = ""
    field_errors: list[str] = field(default_factory=list)


def classify_review_text(
    text: str,
    field_errors: list[str],
    selectors: SelectorLibrary,
) -> ReviewOutcome:
    """
    Classify the page after submission.

    Args:
        text: Visible page text
        field_errors: Visible labelled field error texts
        selectors: Library holding the premium / error patterns

    Returns:
        ReviewOutcome; a visible premium wins over any error text
    """
    text = text or ""
    if selectors.pattern("premium_marker").search(text):
        return ReviewOutcome.PREMIUM
    if selectors.pattern("system_error").search(text):
        return ReviewOutcome.SYSTEM_ERROR
    if field_errors or selectors.pattern("page_error").search(text):
        return ReviewOutcome.FIELD_ERROR
    return ReviewOutcome.NO_RESULT


class RecoveryController:
    """Submits the review stage and applies the recovery policy.

    The driver must provide:
        async submit_review(page) -> ReviewState
        async back_to_form(page) -> bool
    """

    def __init__(self, driver, max_cycles: int = DEFAULT_MAX_RECOVERY_CYCLES):
        self.driver = driver
        self.max_cycles = max_cycles
        self.cycles_used = 0

    async def run(self, page) -> ReviewState:
        """
        Submit and return the state showing a premium.

        Raises:
            TransientBackendError: system error persisted after the allowed recovery cycles
            FieldValidationError: field errors, or no result at all
        """
        state = await self.driver.submit_review(page)

        while state.outcome == ReviewOutcome.SYSTEM_ERROR:
            if self.cycles_used >= self.max_cycles:
                raise TransientBackendError(
                    f"Insurer system error persisted after {self.cycles_used} recovery attempt(s)",
                    StepReached.QUOTE_RESULT,
                )

            self.cycles_used += 1
            logger.warning(
                f"System error on review page, returning to form "
                f"(recovery {self.cycles_used}/{self.max_cycles})"
            )
            if not await self.driver.back_to_form(page):
                raise TransientBackendError(
                    "Insurer system error and the form could not be reopened",
                    StepReached.QUOTE_RESULT,
                )
            state = await self.driver.submit_review(page)

        if state.outcome == ReviewOutcome.FIELD_ERROR:
            message = "; ".join(state.field_errors) or _page_error(state.text)
            raise FieldValidationError(message, StepReached.QUOTE_RESULT)

        if state.outcome == ReviewOutcome.NO_RESULT:
            raise FieldValidationError(NO_RESULT_MESSAGE, StepReached.QUOTE_RESULT)

        return state


def _page_error(text: str) -> str:
    for line in (text or "").splitlines():
        line = line.strip()
        if "error" in line.lower() or "please" in line.lower():
            return line[:200]
    return "The quote form reported invalid details"
