"""Failure taxonomy for the quote flow.

These exceptions are raised inside the flow and converted into a failed
``ScrapeResult`` by ``QuoteScraper``. None of them escape ``scrape_quote``.
"""

from motorquote.models import StepReached


class QuoteScraperError(Exception):
    """Base class for classified quote flow failures."""

    default_step = StepReached.REGO_LOOKUP

    def __init__(self, message: str, step_reached: StepReached | None = None):
        super().__init__(message)
        self.message = message
        self.step_reached = step_reached or self.default_step


class EngineUnavailable(QuoteScraperError):
    """The browser engine could not be started."""


class VehicleNotFound(QuoteScraperError):
    """No vehicle confirmed after exhausting both resolution channels."""


class FieldValidationError(QuoteScraperError):
    """The form flagged an input (address, postcode ...) as invalid."""

    default_step = StepReached.ABOUT_YOU


class TransientBackendError(QuoteScraperError):
    """The form reported a system error and the recovery cycle did not help."""

    default_step = StepReached.QUOTE_RESULT


class ExtractionFailure(QuoteScraperError):
    """The result page was reached but no premium could be parsed."""

    default_step = StepReached.QUOTE_RESULT
