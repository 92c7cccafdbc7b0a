"""
Vehicle identification for the first step of the quote form.

Two channels are used because the form sometimes fails its own lookup while
its backend still returns a usable vehicle record:

1. Direct: enter the registration (or make/year/model manually), submit and
   wait for the UI to confirm a vehicle.
2. Fallback: every backend response shaped like a vehicle lookup is
   inspected while the direct channel runs. If the UI then says "not found"
   and a well-formed record was seen, the record drives the same cascading
   year -> make -> model -> body type selects a person would use.

UI confirmation, the "not found" message and the backend record are awaited
as independent outcomes and joined in _await_lookup().
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from motorquote.config import ScraperConfig
from motorquote.constants import LOOKUP_RESPONSE_GRACE_MS, MAX_LOGGED_OPTIONS
from motorquote.errors import VehicleNotFound
from motorquote.models import QuoteRequest, StepReached, VehicleInfo
from motorquote.selector_library import SelectorLibrary

logger = logging.getLogger(__name__)

Option = tuple[str, str]  # (label text, value)

PLACEHOLDER_PREFIXES = ("select", "choose", "please select", "--")

FAILURE_STATES = {"ERROR", "FAILED", "FAILURE", "INCOMPLETE", "NOT_FOUND", "NOTFOUND"}

RECORD_KEYS = {
    "year": ("year", "vehicleyear", "manufactureyear", "yearofmanufacture"),
    "make": ("make", "vehiclemake", "manufacturer"),
    "model": ("model", "vehiclemodel", "family"),
}


# =============================================================================
# Option matching
# =============================================================================

def normalize(text: str) -> str:
    """Lower-case and collapse whitespace."""
    return re.sub(r"\s+", " ", (text or "")).strip().lower()


def is_placeholder(option: Option) -> bool:
    """Empty-valued or "Select ..." style options."""
    label, value = option
    if not (value or "").strip():
        return True
    return normalize(label).startswith(PLACEHOLDER_PREFIXES)


def match_option(target: str, options: list[Option]) -> Optional[Option]:
    """
    Pick the option matching target text.

    Case-insensitive; exact label first, then option containing target, then
    target containing option. Containment absorbs label differences such as
    "TOYOTA" vs "Toyota Motor" or "COROLLA" vs "Corolla Ascent".
    """
    wanted = normalize(target)
    if not wanted:
        return None

    real = [o for o in options if not is_placeholder(o)]

    for option in real:
        if normalize(option[0]) == wanted or normalize(option[1]) == wanted:
            return option
    for option in real:
        if wanted in normalize(option[0]):
            return option
    for option in real:
        label = normalize(option[0])
        if label and label in wanted:
            return option
    return None


def first_real_option(options: list[Option]) -> Optional[Option]:
    for option in options:
        if not is_placeholder(option):
            return option
    return None


@dataclass
class CascadeStep:
    """One dependent select in the vehicle search chain."""
    field: str  # selector purpose, e.g. "make_select"
    resolve: Callable[[list[Option]], Optional[Option]]
    required: bool = True


def build_cascade(
    year: Any,
    make: str,
    model: str,
    body_type: Optional[str] = None,
) -> list[CascadeStep]:
    """Ordered year -> make -> model -> body type steps."""

    def body_resolver(options: list[Option]) -> Optional[Option]:
        if body_type:
            matched = match_option(body_type, options)
            if matched:
                return matched
        return first_real_option(options)

    return [
        CascadeStep("year_select", lambda opts: match_option(str(year), opts)),
        CascadeStep("make_select", lambda opts: match_option(make, opts)),
        CascadeStep("model_select", lambda opts: match_option(model, opts)),
        CascadeStep("body_type_select", body_resolver, required=False),
    ]


# =============================================================================
# Backend response channel
# =============================================================================

def _decode(value: Any) -> Any:
    if isinstance(value, str) and value.strip()[:1] in ("{", "["):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _has_failure_state(node: dict) -> bool:
    for key in ("state", "status"):
        value = node.get(key)
        if isinstance(value, str) and value.strip().upper() in FAILURE_STATES:
            return True
    if node.get("success") is False:
        return True
    return False


def _is_vehicle_record(node: dict) -> bool:
    lowered = {str(k).lower(): v for k, v in node.items()}
    for aliases in RECORD_KEYS.values():
        if not any(lowered.get(a) not in (None, "", [], {}) for a in aliases):
            return False
    return True


def extract_vehicle_record(payload: Any, _depth: int = 0) -> Optional[dict]:
    """
    Find the first successful, well-formed vehicle record in a lookup payload.

    Walks nested dicts/lists (and JSON encoded strings, as returned by
    Salesforce Aura actions). Subtrees reporting an error state are skipped.
    """
    if _depth > 12:
        return None

    payload = _decode(payload)

    if isinstance(payload, dict):
        if _has_failure_state(payload):
            return None
        if _is_vehicle_record(payload):
            return payload
        for value in payload.values():
            found = extract_vehicle_record(value, _depth + 1)
            if found:
                return found
    elif isinstance(payload, list):
        for item in payload:
            found = extract_vehicle_record(item, _depth + 1)
            if found:
                return found
    return None


class LookupResponseWatcher:
    """Caches the vehicle record from the site's own lookup responses."""

    def __init__(self, url_pattern: re.Pattern):
        self.url_pattern = url_pattern
        self.record: Optional[VehicleInfo] = None
        self.responses_seen = 0
        self._seen = asyncio.Event()

    def attach(self, page) -> None:
        page.on("response", self.handle_response)

    def detach(self, page) -> None:
        try:
            page.remove_listener("response", self.handle_response)
        except Exception as e:
            logger.debug(f"Could not detach response listener: {e}")

    async def handle_response(self, response) -> None:
        if not self.url_pattern.search(response.url):
            return
        self.responses_seen += 1

        if response.status >= 400:
            logger.debug(f"Lookup response {response.status} from {response.url}")
            return

        try:
            payload = await response.json()
        except Exception:
            return

        record = extract_vehicle_record(payload)
        if record is None:
            return

        self.record = VehicleInfo.from_record(record)
        self._seen.set()
        logger.info(f"Captured vehicle record from lookup response: {self.record.description}")

    async def wait_for_record(self, timeout_ms: int) -> Optional[VehicleInfo]:
        if self.record is not None:
            return self.record
        try:
            await asyncio.wait_for(self._seen.wait(), timeout_ms / 1000)
        except asyncio.TimeoutError:
            return None
        return self.record


@dataclass
class LookupOutcome:
    """What the UI showed after a registration lookup."""
    description: Optional[str] = None
    not_found: bool = False

    @property
    def confirmed(self) -> bool:
        return bool(self.description)


# =============================================================================
# Resolver
# =============================================================================

class VehicleResolver:
    """Resolves the vehicle under quote, retrying from a fresh form load."""

    def __init__(self, config: ScraperConfig, selectors: SelectorLibrary):
        self.config = config
        self.selectors = selectors

    async def resolve(self, page, request: QuoteRequest) -> VehicleInfo:
        """
        Identify and confirm the vehicle on the form.

        Raises:
            VehicleNotFound: when no vehicle is confirmed after all attempts
        """
        watcher = LookupResponseWatcher(self.selectors.pattern("lookup_url"))
        watcher.attach(page)
        try:
            for attempt in range(1, self.config.lookup_attempts + 1):
                logger.info(f"Vehicle lookup attempt {attempt}/{self.config.lookup_attempts}")
                vehicle = await self._attempt(page, request, watcher)
                if vehicle:
                    logger.info(f"Vehicle confirmed: {vehicle.description}")
                    return vehicle
                logger.warning(f"No vehicle confirmed on attempt {attempt}")
        finally:
            watcher.detach(page)

        raise VehicleNotFound(
            f"Vehicle not found: {_describe_request(request)} "
            f"(after {self.config.lookup_attempts} attempts)",
            StepReached.REGO_LOOKUP,
        )

    async def _attempt(self, page, request: QuoteRequest, watcher: LookupResponseWatcher) -> Optional[VehicleInfo]:
        await self._open_form(page)

        if request.mode == "manual":
            return await self._manual_search(
                page, request.year, request.make, request.model, request.body_type
            )

        if not await self._submit_registration(page, request.registration):
            return None

        outcome = await self._await_lookup(page)
        if outcome.confirmed:
            ui_vehicle = VehicleInfo(description=outcome.description)
            if watcher.record is not None:
                record = watcher.record
                return VehicleInfo(
                    year=record.year,
                    make=record.make,
                    model=record.model,
                    body_type=record.body_type,
                    variant=record.variant,
                    description=ui_vehicle.description,
                )
            return ui_vehicle

        record = watcher.record
        if record is None and outcome.not_found:
            record = await watcher.wait_for_record(LOOKUP_RESPONSE_GRACE_MS)
        if record is None:
            return None

        logger.info(
            f"Direct lookup {'reported not found' if outcome.not_found else 'timed out'}; "
            f"searching manually for backend record {record.description}"
        )
        return await self._manual_search(
            page, record.year, record.make, record.model, record.body_type, record=record
        )

    async def _open_form(self, page) -> None:
        await page.goto(
            self.config.quote_url,
            wait_until="domcontentloaded",
            timeout=self.config.navigation_timeout_ms,
        )
        ready = page.locator(self.selectors.css("rego_input")).or_(
            page.get_by_text(self.selectors.pattern("manual_search_link"))
        ).first
        try:
            await ready.wait_for(state="visible", timeout=self.config.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("Quote form did not render its vehicle step in time")

    async def _submit_registration(self, page, registration: str) -> bool:
        rego_input = page.locator(self.selectors.css("rego_input")).first
        try:
            await rego_input.wait_for(state="visible", timeout=self.config.step_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("Registration input not shown")
            return False

        await rego_input.fill(re.sub(r"\s+", "", registration).upper())

        submit = page.locator(self.selectors.css("rego_submit")).first
        if await _visible(submit, self.config.step_timeout_ms // 4):
            await submit.click()
        else:
            await rego_input.press("Enter")
        return True

    async def _await_lookup(self, page) -> LookupOutcome:
        """Race UI confirmation against an explicit "not found" message."""
        confirm = asyncio.create_task(self._wait_for_confirmation(page))
        not_found = asyncio.create_task(self._wait_for_not_found(page))
        pending = {confirm, not_found}
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task is confirm and task.result():
                        return LookupOutcome(description=task.result())
                    if task is not_found and task.result():
                        return LookupOutcome(not_found=True)
            return LookupOutcome()
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _wait_for_confirmation(self, page) -> Optional[str]:
        pattern = self.selectors.pattern("year_make")
        target = page.locator(self.selectors.css("vehicle_details_panel")).or_(
            page.get_by_role("heading", name=pattern)
        ).first
        try:
            await target.wait_for(state="visible", timeout=self.config.step_timeout_ms)
        except PlaywrightTimeoutError:
            return None

        text = await target.inner_text()
        match = pattern.search(text or "")
        if match:
            return match.group(0)
        return (text or "").strip()[:120] or None

    async def _wait_for_not_found(self, page) -> bool:
        message = page.get_by_text(self.selectors.pattern("vehicle_not_found")).first
        try:
            await message.wait_for(state="visible", timeout=self.config.step_timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    async def _manual_search(
        self,
        page,
        year: Any,
        make: str,
        model: str,
        body_type: Optional[str] = None,
        record: Optional[VehicleInfo] = None,
    ) -> Optional[VehicleInfo]:
        """Open manual search and drive the cascading selects."""
        link = page.get_by_text(self.selectors.pattern("manual_search_link")).first
        if await _visible(link, self.config.step_timeout_ms):
            await link.click()
            await page.wait_for_timeout(self.config.settle_ms)

        chosen = await self.run_cascade(page, build_cascade(year, make, model, body_type))
        if chosen is None:
            return None

        variant = await self._select_variant(page)
        description = await self._wait_for_confirmation(page)

        base = record or VehicleInfo(
            year=str(year),
            make=chosen.get("make_select", make),
            model=chosen.get("model_select", model),
            body_type=chosen.get("body_type_select", body_type or ""),
        )
        vehicle = VehicleInfo(
            year=base.year,
            make=base.make,
            model=base.model,
            body_type=base.body_type,
            variant=variant or base.variant,
            description=description or "",
        )
        return vehicle

    async def run_cascade(self, page, steps: list[CascadeStep]) -> Optional[dict[str, str]]:
        """
        Execute dependent selects strictly in order.

        Each step reads its options only after the previous selection has
        committed and the dependent list has been repopulated.

        Returns:
            Chosen option label per field, or None if a required step failed
        """
        chosen: dict[str, str] = {}
        for step in steps:
            select = page.locator(self.selectors.css(step.field)).first
            if not await _visible(select, self.config.step_timeout_ms):
                if step.required:
                    logger.warning(f"{step.field} not shown")
                    return None
                continue

            options = await self._read_options(select)
            option = step.resolve(options)
            if option is None:
                labels = [label for label, _ in options if label][:MAX_LOGGED_OPTIONS]
                logger.warning(f"No match in {step.field}. Available: {', '.join(labels)}")
                if step.required:
                    return None
                continue

            await select.select_option(value=option[1])
            chosen[step.field] = option[0]
            logger.info(f"Selected {step.field}: {option[0]}")
            await page.wait_for_timeout(self.config.settle_ms)

        return chosen

    async def _read_options(self, select) -> list[Option]:
        """Options of a select, waiting until it holds at least one real option."""
        deadline = asyncio.get_running_loop().time() + self.config.step_timeout_ms / 1000
        options: list[Option] = []
        while True:
            raw = await select.locator("option").evaluate_all(
                "els => els.map(e => [(e.textContent || '').trim(), e.value])"
            )
            options = [(str(label), str(value)) for label, value in raw]
            if first_real_option(options) or asyncio.get_running_loop().time() >= deadline:
                return options
            await asyncio.sleep(0.25)

    async def _select_variant(self, page) -> Optional[str]:
        """Click the first variant row (engine/fuel description) if a list is shown."""
        rows = page.locator(self.selectors.css("variant_row")).filter(
            has_text=self.selectors.pattern("variant_keywords")
        )
        if await _visible(rows.first, self.config.step_timeout_ms):
            count = await rows.count()
            for index in range(min(count, 10)):
                row = rows.nth(index)
                if not await row.is_visible():
                    continue
                text = re.sub(r"\s+", " ", await row.inner_text()).strip()
                logger.info(f"Selecting variant: {text[:80]}")
                await row.click()
                await page.wait_for_timeout(self.config.settle_ms)
                return text[:120]

        radios = page.locator("input[type='radio']")
        if await radios.count() > 0:
            await radios.first.click()
            await page.wait_for_timeout(self.config.settle_ms)
        return None


async def _visible(locator, timeout_ms: int) -> bool:
    try:
        await locator.wait_for(state="visible", timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False


def _describe_request(request: QuoteRequest) -> str:
    if request.mode == "rego":
        return f"registration {request.registration}"
    return f"{request.year} {request.make} {request.model}"
