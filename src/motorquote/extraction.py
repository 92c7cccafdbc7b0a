"""
Premium extraction from the quote result page.

The result page has no fixed format, so amounts are read from visible text
with ordered heuristics (see ExtractionRules). For each of annual and monthly
the first rule that matches wins:

1. amount followed by a period marker ("$1,234.56 per year")
2. labelled amount ("Annual premium: $1,234.56")
3. fallback over every currency amount on the page, by plausible range

The fallback can mistake an excess or a discount for the premium on pages
with unusual layouts. It is a known accuracy limitation of reading an
unversioned page, which is why every amount found is also returned verbatim.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from motorquote.config import ExtractionRules, default_rules

logger = logging.getLogger(__name__)


def parse_amount(text: str) -> Optional[float]:
    """Turn "1,234.56" or "$1,234.56" into 1234.56."""
    cleaned = re.sub(r"[^\d.]", "", text or "")
    if not cleaned or cleaned.count(".") > 1:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


@dataclass
class Extraction:
    """Amounts read from one page."""
    annual_premium: Optional[float] = None
    monthly_premium: Optional[float] = None
    excess_amount: Optional[float] = None
    raw_amounts: list[str] = field(default_factory=list)
    annual_rule: Optional[str] = None  # which rule produced the annual figure
    monthly_rule: Optional[str] = None

    @property
    def found_premium(self) -> bool:
        return self.annual_premium is not None or self.monthly_premium is not None


class ExtractionEngine:
    """Applies ExtractionRules to page text."""

    def __init__(self, rules: Optional[ExtractionRules] = None):
        self.rules = rules or default_rules
        self._annual = [re.compile(p, re.IGNORECASE) for p in self.rules.annual_patterns]
        self._monthly = [re.compile(p, re.IGNORECASE) for p in self.rules.monthly_patterns]
        self._excess = [re.compile(p, re.IGNORECASE) for p in self.rules.excess_patterns]
        self._amount = re.compile(self.rules.amount_pattern)

    def find_amounts(self, text: str) -> list[str]:
        """Every currency amount in page order, verbatim ("$1,234.56")."""
        return [m.group(0).strip() for m in self._amount.finditer(text or "")]

    def extract(self, text: str) -> Extraction:
        """
        Read annual premium, monthly premium and excess from page text.

        Args:
            text: Visible text of the final page

        Returns:
            Extraction; found_premium is False when no rule matched
        """
        text = text or ""
        result = Extraction(raw_amounts=self.find_amounts(text))

        result.annual_premium, result.annual_rule = self._first_match(self._annual, text, "annual")
        result.monthly_premium, result.monthly_rule = self._first_match(self._monthly, text, "monthly")
        result.excess_amount = self._match_excess(text)

        self._apply_fallback(result)

        if result.found_premium:
            logger.info(
                f"Extracted premium: annual={result.annual_premium} ({result.annual_rule}), "
                f"monthly={result.monthly_premium} ({result.monthly_rule}), "
                f"excess={result.excess_amount}"
            )
        else:
            logger.info(f"No premium found among {len(result.raw_amounts)} amounts")

        return result

    def _first_match(self, patterns: list[re.Pattern], text: str, kind: str):
        for index, pattern in enumerate(patterns):
            for match in pattern.finditer(text):
                value = parse_amount(match.group(1))
                if value and value > 0:
                    return value, f"{kind}_pattern_{index}"
        return None, None

    def _match_excess(self, text: str) -> Optional[float]:
        for pattern in self._excess:
            match = pattern.search(text)
            if match:
                value = parse_amount(match.group(1))
                if value:
                    return value
        return None

    def _apply_fallback(self, result: Extraction) -> None:
        """Fill missing premiums (and excess) from unlabelled amounts by range."""
        rules = self.rules
        values = [v for v in (parse_amount(a) for a in result.raw_amounts) if v is not None]

        if result.annual_premium is None:
            candidates = [v for v in values if rules.annual_min <= v <= rules.annual_max]
            if candidates:
                if rules.fallback_strategy == "largest":
                    result.annual_premium = max(candidates)
                else:
                    result.annual_premium = candidates[0]
                result.annual_rule = f"fallback_{rules.fallback_strategy}"
                logger.info(
                    f"Inferred annual premium ${result.annual_premium} from page amounts"
                )

        if result.monthly_premium is None:
            for value in values:
                if not rules.monthly_min <= value <= rules.monthly_max:
                    continue
                if result.annual_premium is not None:
                    if value == result.annual_premium:
                        continue
                    if not self.is_consistent(result.annual_premium, value):
                        continue
                result.monthly_premium = value
                result.monthly_rule = "fallback_range"
                break

        if result.excess_amount is None:
            tiers = {float(t) for t in rules.excess_tiers}
            for value in values:
                if value in tiers:
                    result.excess_amount = value
                    break

    def is_consistent(self, annual: float, monthly: float) -> bool:
        """Whether monthly looks like annual / 12 with the instalment loading."""
        if annual <= 0:
            return False
        ratio = (monthly * 12) / annual
        return abs(ratio - self.rules.monthly_loading) <= self.rules.monthly_tolerance
