"""
Quote scraper entry point.

Each scrape_quote() call runs one flow in its own isolated browser context
on the shared engine:

    vehicle stage -> applicant stage -> review stage (with recovery) -> extraction

Every failure is classified and returned as a ScrapeResult; nothing raised
inside the flow escapes to the caller.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from motorquote.browser_config import DEFAULT_CONFIG, BrowserConfig
from motorquote.config import ExtractionRules, ScraperConfig, default_rules
from motorquote.constants import RAW_TEXT_LIMIT, RESULT_SOURCE
from motorquote.diagnostics import DiagnosticsRecorder
from motorquote.errors import ExtractionFailure, QuoteScraperError
from motorquote.extraction import ExtractionEngine
from motorquote.form_driver import FormDriver
from motorquote.infrastructure import BrowserResource
from motorquote.logging_config import FlowLogger, flow_logger
from motorquote.models import QuoteRequest, ScrapeResult, StepReached
from motorquote.recovery import RecoveryController
from motorquote.selector_library import SelectorLibrary
from motorquote.vehicle_resolver import VehicleResolver


@dataclass
class FlowState:
    """Progress of one quote flow, used to build the result on any exit path."""
    request_id: str
    step: StepReached = StepReached.REGO_LOOKUP
    page: Any = None
    vehicle_description: Optional[str] = None
    final_text: Optional[str] = None
    artifact: Optional[str] = None
    log: FlowLogger = field(init=False)

    def __post_init__(self):
        self.log = flow_logger(__name__, self.request_id)


class QuoteScraper:
    """
    Runs quote flows against the insurer's public quote form.

    Usage:
        async with QuoteScraper() as scraper:
            result = await scraper.scrape_quote(request)
    """

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
        resource: Optional[BrowserResource] = None,
        selectors: Optional[SelectorLibrary] = None,
        rules: Optional[ExtractionRules] = None,
        diagnostics: Optional[DiagnosticsRecorder] = None,
    ):
        """
        Initialize the scraper.

        Args:
            config: Flow configuration (defaults to ScraperConfig.from_env())
            browser_config: Used when no resource is given
            resource: Shared browser resource; created and owned here if omitted
            selectors: Selector library (defaults, or config.selectors_file)
            rules: Extraction rules (defaults, or config.rules_file)
            diagnostics: Snapshot recorder (defaults from config)
        """
        self.config = config or ScraperConfig.from_env()

        self._owns_resource = resource is None
        self.resource = resource or BrowserResource(browser_config or DEFAULT_CONFIG)

        if selectors is None:
            if self.config.selectors_file:
                selectors = SelectorLibrary.from_file(self.config.selectors_file)
            else:
                selectors = SelectorLibrary()
        self.selectors = selectors

        if rules is None:
            if self.config.rules_file:
                rules = ExtractionRules.from_file(self.config.rules_file)
            else:
                rules = default_rules
        self.extractor = ExtractionEngine(rules)

        self.diagnostics = diagnostics or DiagnosticsRecorder(
            self.config.diagnostics_dir, enabled=self.config.capture_diagnostics
        )

    async def scrape_quote(self, request: QuoteRequest, timeout: Optional[float] = None) -> ScrapeResult:
        """
        Run one quote flow.

        Args:
            request: RegoQuoteRequest or ManualQuoteRequest
            timeout: Overall deadline in seconds (defaults to config.overall_timeout_seconds)

        Returns:
            ScrapeResult; never raises for flow failures
        """
        flow = FlowState(request_id=uuid.uuid4().hex[:8])
        deadline = timeout if timeout is not None else self.config.overall_timeout_seconds
        flow.log.info(f"Starting {request.mode} quote flow")

        try:
            return await asyncio.wait_for(self._run(request, flow), deadline)
        except asyncio.TimeoutError:
            flow.log.error(f"Quote flow timed out at {flow.step.value}")
            return self._build_failure(
                flow, f"Quote flow timed out after {deadline:g}s", flow.step
            )

    async def _run(self, request: QuoteRequest, flow: FlowState) -> ScrapeResult:
        session = None
        driver = None
        try:
            factory = await self.resource.acquire()
            session = await factory.open_session()
            page = session.page
            flow.page = page

            driver = FormDriver(
                self.config, self.selectors, VehicleResolver(self.config, self.selectors)
            )

            vehicle = await driver.complete_vehicle_stage(page, request)
            flow.vehicle_description = vehicle.description

            flow.step = StepReached.ABOUT_YOU
            await driver.complete_applicant_stage(page, request)

            flow.step = StepReached.QUOTE_RESULT
            recovery = RecoveryController(driver, max_cycles=self.config.max_recovery_cycles)
            state = await recovery.run(page)
            flow.final_text = state.text
            flow.artifact = await self.diagnostics.capture(page, flow.request_id, "quote_result")

            extraction = self.extractor.extract(state.text)
            if not extraction.found_premium:
                errors = await driver.collect_errors(page)
                raise ExtractionFailure(
                    "; ".join(errors) or "Could not extract premium from page",
                    StepReached.QUOTE_RESULT,
                )

            flow.log.info(
                f"Quote complete: annual={extraction.annual_premium}, "
                f"monthly={extraction.monthly_premium}"
            )
            return ScrapeResult(
                success=True,
                source=RESULT_SOURCE,
                vehicle_description=flow.vehicle_description,
                annual_premium=extraction.annual_premium,
                monthly_premium=extraction.monthly_premium,
                excess_amount=extraction.excess_amount,
                raw_amounts=extraction.raw_amounts,
                diagnostic_artifact=flow.artifact,
                step_reached=StepReached.QUOTE_RESULT,
                raw_text=state.text[:RAW_TEXT_LIMIT],
            )

        except QuoteScraperError as e:
            flow.log.warning(f"Quote flow failed at {e.step_reached.value}: {e.message}")
            await self._capture_failure(flow, e.step_reached.value)
            return self._build_failure(flow, e.message, e.step_reached)

        except Exception as e:
            flow.log.exception(f"Unexpected error in quote flow: {e}")
            await self._capture_failure(flow, "error")
            return self._build_failure(flow, f"Scraper error: {e}", flow.step)

        finally:
            if flow.final_text is None and driver is not None:
                flow.final_text = driver.review_text
            if session is not None:
                await session.close()

    async def _capture_failure(self, flow: FlowState, label: str) -> None:
        """Best-effort snapshot and page text at the failure point."""
        if flow.page is None:
            return

        artifact = await self.diagnostics.capture(flow.page, flow.request_id, label)
        flow.artifact = artifact or flow.artifact

        if flow.final_text is None:
            try:
                flow.final_text = await flow.page.inner_text("body")
            except Exception as e:
                flow.log.debug(f"Could not read page text: {e}")

    def _build_failure(self, flow: FlowState, error: str, step: StepReached) -> ScrapeResult:
        text = flow.final_text
        return ScrapeResult.failure(
            error,
            step,
            source=RESULT_SOURCE,
            vehicle_description=flow.vehicle_description,
            raw_amounts=self.extractor.find_amounts(text) if text else [],
            diagnostic_artifact=flow.artifact,
            raw_text=text[:RAW_TEXT_LIMIT] if text else None,
        )

    async def close(self) -> None:
        """Shut down the browser engine if this scraper created it."""
        if self._owns_resource:
            await self.resource.shutdown()

    async def __aenter__(self) -> "QuoteScraper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def scrape_quote(
    request: QuoteRequest,
    config: Optional[ScraperConfig] = None,
    browser_config: Optional[BrowserConfig] = None,
    timeout: Optional[float] = None,
) -> ScrapeResult:
    """
    Synchronous helper: run one quote flow and shut the engine down after.

    Example:
        >>> result = scrape_quote(ManualQuoteRequest("Toyota", "Corolla", 2020, "3000", 35, 0))
        >>> result.annual_premium
    """

    async def _run() -> ScrapeResult:
        async with QuoteScraper(config=config, browser_config=browser_config) as scraper:
            return await scraper.scrape_quote(request, timeout=timeout)

    return asyncio.run(_run())
