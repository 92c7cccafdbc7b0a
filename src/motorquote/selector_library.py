"""
Selector Library for the insurer quote form.

The target form has no stable contract, so every selector, label keyword and
text pattern the flow relies on lives here, keyed by purpose, with ordered
fallback alternatives. Operators override entries from a YAML or JSON file
without touching the flow code.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


# purpose -> CSS selectors, tried as one comma-joined selector group
DEFAULT_SELECTORS: dict[str, list[str]] = {
    # Vehicle step
    "rego_input": [
        "input[name*='rego' i]",
        "input[name*='registration' i]",
        "input[placeholder*='registration' i]",
    ],
    "rego_submit": [
        "button:has-text('Find your car')",
        "button:has-text('Find car')",
        "button:has-text('Search')",
    ],
    "year_select": ["select[name='year']", "select[name*='year' i]"],
    "make_select": ["select[name='make']", "select[name*='make' i]"],
    "model_select": ["select[name='model']", "select[name*='model' i]"],
    "body_type_select": ["select[name='bodyType']", "select[name*='body' i]"],
    "variant_row": [
        "table tr",
        "[role='row']",
        "[role='option']",
        ".car-details-row",
        "[data-row-key-value]",
    ],
    "vehicle_details_panel": [
        ".vehicle-details",
        ".car-details",
        "[data-id='vehicle-details']",
    ],

    # Applicant step
    "address_input": [
        "input[name*='address' i]",
        "input[placeholder*='address' i]",
    ],
    "postcode_input": [
        "input[name*='postcode' i]",
        "input[placeholder*='postcode' i]",
    ],
    "autocomplete_option": [
        "[role='listbox'] [role='option']",
        "[role='option']",
        ".slds-listbox__option",
    ],
    "dob_input": [
        "input[name*='dob' i]",
        "input[name*='dateOfBirth' i]",
        "input[placeholder*='dd/mm/yyyy' i]",
    ],
    "dob_day_input": ["input[name*='day' i]", "input[placeholder='DD']"],
    "dob_month_input": ["input[name*='month' i]", "input[placeholder='MM']"],
    "dob_year_input": ["input[name*='birthYear' i]", "input[placeholder='YYYY']"],
    "licence_age_input": [
        "input[name*='licence' i]",
        "input[name*='license' i]",
    ],

    # Navigation
    "continue_button": [
        "button:has-text('Continue')",
        "button:has-text('Next')",
    ],
    "submit_button": [
        "button:has-text('Get quote')",
        "button:has-text('Get my quote')",
        "button:has-text('Calculate')",
        "button:has-text('Continue')",
        "button:has-text('Next')",
    ],
    "back_to_form_button": [
        "button:has-text('Back to form')",
        "a:has-text('Back to form')",
        "button:has-text('Try again')",
    ],

    # Errors and results
    "field_error": [
        ".slds-form-element__help",
        ".slds-has-error .slds-form-element__help",
        "[id*='error-message' i]",
        ".error-message",
        "[aria-live='assertive']",
    ],
    "quote_result_panel": [
        ".quote-result",
        ".premium-amount",
        "[data-id='premium']",
    ],
}


# purpose -> regular expression (case-insensitive)
DEFAULT_PATTERNS: dict[str, str] = {
    # Vehicle confirmation heading, e.g. "2022 TOYOTA COROLLA ASCENT SPORT"
    "year_make": r"\b(?:19|20)\d{2}\s+[A-Z][A-Za-z\-]+(?:\s+[A-Za-z0-9\-./]+){0,8}",
    "vehicle_not_found": (
        r"(?:couldn'?t|could not|unable to|can'?t|cannot)\s+find\s+(?:your|a|the|that)?\s*"
        r"(?:car|vehicle|registration)|no\s+(?:vehicle|car|results?)\s+found|"
        r"registration\s+(?:not\s+found|is\s+not\s+recogni[sz]ed)"
    ),
    "manual_search_link": r"find your car manually|enter (?:your )?car details manually|search manually",
    "variant_keywords": r"FUEL INJECTION|HYBRID|TURBO|PETROL|DIESEL|ELECTRIC|\d\.\dL?|\bCC\b",
    "lookup_url": r"(?:vehicle|rego|registration|redbook|nvic|glass).*(?:lookup|search|details|find)|aura\?.*(?:vehicle|rego)",

    # Applicant labels
    "address_label": r"address",
    "postcode_label": r"postcode|suburb",
    "finance_label": r"financ|loan|lease",
    "purpose_label": r"purpose|used for|how (?:is|will) (?:the|your) car (?:be )?used",
    "business_label": r"business name|registered (?:to|in) a business|business use",
    "member_label": r"member",
    "gender_label": r"gender|sex",
    "dob_label": r"date of birth|birth",
    "licence_label": r"licen[cs]e",
    "parking_label": r"park",
    "claims_label": r"claim",
    "claims_detail_label": r"type of (?:claim|incident)|what happened|claim (?:type|details)",
    "claims_detail_default": r"at fault|collision|accident",

    # Review stage outcomes
    "system_error": (
        r"(?:system|technical|unexpected)\s+(?:error|issue|problem)|something went wrong|"
        r"we'?re\s+(?:having|experiencing)\s+(?:technical\s+)?(?:issues|difficulties)|"
        r"unable to (?:provide|generate|calculate) (?:a|your) quote (?:at this time|right now)"
    ),
    "page_error": r"please (?:correct|check|review) the (?:errors?|fields?)|we couldn'?t (?:verify|find) (?:your|the) address",
    "premium_marker": (
        r"\$\s?[\d,]+(?:\.\d{1,2})?\s*(?:per\s*(?:year|month)|/\s*(?:yr|year|mth|month)|annually|monthly)|"
        r"(?:premium|price|quote)[:\s]*\$\s?[\d,]+"
    ),
}


# Answer synonyms for enumerated options
PARKING_SYNONYMS: dict[str, list[str]] = {
    "garage": ["garage", "locked garage"],
    "carport": ["carport"],
    "driveway": ["driveway", "own property"],
    "street": ["street", "on street", "kerbside"],
}

PURPOSE_SYNONYMS: dict[str, list[str]] = {
    "private": ["private", "personal", "commuting"],
    "business": ["business"],
    "rideshare": ["rideshare", "ride share", "uber"],
}


class SelectorLibrary:
    """
    Registry of selectors and text patterns by purpose.

    Provides:
    - Ordered CSS fallbacks per purpose, joined into one selector group
    - Compiled case-insensitive patterns
    - File based overrides merged over the defaults
    """

    def __init__(
        self,
        selectors: dict[str, list[str]] | None = None,
        patterns: dict[str, str] | None = None,
    ):
        self._selectors: dict[str, list[str]] = {
            purpose: list(entries) for purpose, entries in DEFAULT_SELECTORS.items()
        }
        self._patterns: dict[str, str] = dict(DEFAULT_PATTERNS)
        self._compiled: dict[str, re.Pattern] = {}

        if selectors:
            self.override(selectors=selectors)
        if patterns:
            self.override(patterns=patterns)

    @classmethod
    def from_file(cls, path: str | Path) -> "SelectorLibrary":
        """
        Load overrides from a YAML or JSON file.

        Expected layout:
            selectors:
              rego_input: ["input#plate"]
            patterns:
              vehicle_not_found: "no match"

        Missing files fall back to the defaults.
        """
        library = cls()
        file_path = Path(path)

        if not file_path.exists():
            logger.warning(f"Selector file not found, using defaults: {file_path}")
            return library

        with open(file_path) as f:
            if file_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        library.override(
            selectors=data.get("selectors"),
            patterns=data.get("patterns"),
        )
        logger.info(f"Loaded selector overrides from {file_path}")
        return library

    def override(
        self,
        selectors: dict[str, Any] | None = None,
        patterns: dict[str, str] | None = None,
    ) -> None:
        """Replace entries by purpose. A single string selector is accepted as a one-item list."""
        for purpose, entries in (selectors or {}).items():
            if isinstance(entries, str):
                entries = [entries]
            self._selectors[purpose] = list(entries)

        for purpose, pattern in (patterns or {}).items():
            self._patterns[purpose] = pattern
            self._compiled.pop(purpose, None)

    def selectors(self, purpose: str) -> list[str]:
        """Ordered selector alternatives for a purpose."""
        if purpose not in self._selectors:
            raise KeyError(f"Unknown selector purpose: {purpose}")
        return list(self._selectors[purpose])

    def css(self, purpose: str) -> str:
        """All alternatives for a purpose as one CSS selector group."""
        return ", ".join(self.selectors(purpose))

    def pattern(self, purpose: str) -> re.Pattern:
        """Compiled case-insensitive pattern for a purpose."""
        if purpose not in self._patterns:
            raise KeyError(f"Unknown pattern purpose: {purpose}")
        if purpose not in self._compiled:
            self._compiled[purpose] = re.compile(self._patterns[purpose], re.IGNORECASE)
        return self._compiled[purpose]

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectors": {k: list(v) for k, v in self._selectors.items()},
            "patterns": dict(self._patterns),
        }
