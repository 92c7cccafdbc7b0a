from dotenv import load_dotenv
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
import json
import os

import yaml

from motorquote.constants import (
    DEFAULT_QUOTE_URL,
    DEFAULT_LOOKUP_ATTEMPTS,
    DEFAULT_MAX_RECOVERY_CYCLES,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_OVERALL_TIMEOUT_SECONDS,
    DEFAULT_RESULT_TIMEOUT_MS,
    DEFAULT_SETTLE_MS,
    DEFAULT_STEP_TIMEOUT_MS,
    EXCESS_TIERS,
)

load_dotenv()  # Loads variables from .env file

ENV_PREFIX = "MOTORQUOTE_"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScraperConfig:
    """Configuration for the quote flow."""
    quote_url: str = DEFAULT_QUOTE_URL
    diagnostics_dir: str = "diagnostics"
    capture_diagnostics: bool = True
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    step_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS
    settle_ms: int = DEFAULT_SETTLE_MS  # pause after selections so dependent fields re-render
    result_timeout_ms: int = DEFAULT_RESULT_TIMEOUT_MS
    lookup_attempts: int = DEFAULT_LOOKUP_ATTEMPTS
    max_recovery_cycles: int = DEFAULT_MAX_RECOVERY_CYCLES
    overall_timeout_seconds: float = DEFAULT_OVERALL_TIMEOUT_SECONDS
    selectors_file: Optional[str] = None
    rules_file: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        """Load configuration from environment variables.

        Every field can be set with the MOTORQUOTE_ prefix,
        e.g. MOTORQUOTE_STEP_TIMEOUT_MS=15000

        Returns:
            ScraperConfig: Configuration instance with values from environment
        """
        defaults = cls()
        return cls(
            quote_url=os.getenv(f"{ENV_PREFIX}QUOTE_URL", defaults.quote_url),
            diagnostics_dir=os.getenv(f"{ENV_PREFIX}DIAGNOSTICS_DIR", defaults.diagnostics_dir),
            capture_diagnostics=_env_bool(
                f"{ENV_PREFIX}CAPTURE_DIAGNOSTICS", defaults.capture_diagnostics
            ),
            navigation_timeout_ms=int(
                os.getenv(f"{ENV_PREFIX}NAVIGATION_TIMEOUT_MS", defaults.navigation_timeout_ms)
            ),
            step_timeout_ms=int(os.getenv(f"{ENV_PREFIX}STEP_TIMEOUT_MS", defaults.step_timeout_ms)),
            settle_ms=int(os.getenv(f"{ENV_PREFIX}SETTLE_MS", defaults.settle_ms)),
            result_timeout_ms=int(
                os.getenv(f"{ENV_PREFIX}RESULT_TIMEOUT_MS", defaults.result_timeout_ms)
            ),
            lookup_attempts=int(os.getenv(f"{ENV_PREFIX}LOOKUP_ATTEMPTS", defaults.lookup_attempts)),
            max_recovery_cycles=int(
                os.getenv(f"{ENV_PREFIX}MAX_RECOVERY_CYCLES", defaults.max_recovery_cycles)
            ),
            overall_timeout_seconds=float(
                os.getenv(f"{ENV_PREFIX}OVERALL_TIMEOUT_SECONDS", defaults.overall_timeout_seconds)
            ),
            selectors_file=os.getenv(f"{ENV_PREFIX}SELECTORS_FILE"),
            rules_file=os.getenv(f"{ENV_PREFIX}RULES_FILE"),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", defaults.log_level),
        )

    @classmethod
    def from_file(cls, path: str) -> "ScraperConfig":
        """Load configuration from a JSON file, unknown keys are ignored."""
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            data = json.load(f)

        for field_name in config.__dataclass_fields__:
            if field_name in data:
                setattr(config, field_name, data[field_name])

        return config

    def to_dict(self) -> dict:
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


# Currency amount as printed on the page: "$1,234.56" or "$ 98"
AMOUNT = r"\$\s?([\d,]+(?:\.\d{1,2})?)"


@dataclass
class ExtractionRules:
    """Tunable heuristics for reading premiums off the result page.

    Patterns are regular expressions with exactly one capture group holding
    the numeric amount. They are tried in order; the first match wins.
    """

    annual_patterns: list[str] = field(default_factory=lambda: [
        AMOUNT + r"\s*(?:per\s*year|/\s*year|/\s*yr\b|a\s+year|annually|p\.a\.|\bpa\b)",
        r"(?:annual|yearly)\s*(?:premium|price|cost)[:\s]*" + AMOUNT,
        r"(?:estimated|indicative|your)\s*(?:annual\s*)?(?:premium|price|quote)[:\s]*" + AMOUNT
        + r"(?![\d,.]|\s*(?:per\s*month|/\s*m|a\s+month|monthly|p\.m\.))",
    ])
    monthly_patterns: list[str] = field(default_factory=lambda: [
        AMOUNT + r"\s*(?:per\s*month|/\s*month|/\s*mth\b|/\s*mo\b|a\s+month|p\.m\.|\bpm\b|"
        r"monthly\b(?!\s*(?:premium|price|cost|instalment|installment|payment)))",
        r"(?:monthly)\s*(?:premium|price|cost|instalment|installment)[:\s]*" + AMOUNT,
    ])
    excess_patterns: list[str] = field(default_factory=lambda: [
        r"(?:basic|standard|chosen|your)?\s*excess(?:\s*amount)?(?:\s*of)?[:\s]*" + AMOUNT,
        AMOUNT + r"[ \t]*(?:basic\s*|standard\s*)?excess",
    ])
    amount_pattern: str = AMOUNT

    # Fallback ranges for unlabelled amounts
    annual_min: float = 200.0
    annual_max: float = 10000.0
    monthly_min: float = 20.0
    monthly_max: float = 1000.0

    # Monthly instalments cost slightly more than annual / 12
    monthly_loading: float = 1.1
    monthly_tolerance: float = 0.35

    excess_tiers: list[float] = field(default_factory=lambda: list(EXCESS_TIERS))

    # "first": first in-range amount in page order, "largest": largest in-range amount
    fallback_strategy: str = "first"

    @classmethod
    def from_file(cls, path: str) -> "ExtractionRules":
        """Load rules from a JSON or YAML file.

        Args:
            path: Path to the rules file (.json, .yaml or .yml)

        Returns:
            ExtractionRules with values from file
        """
        rules = cls()
        file_path = Path(path)

        if not file_path.exists():
            return rules

        with open(file_path, 'r') as f:
            if file_path.suffix in (".yaml", ".yml"):
                config = yaml.safe_load(f) or {}
            else:
                config = json.load(f)

        rule_config = config.get('extraction', config)

        for field_name in rules.__dataclass_fields__:
            if field_name in rule_config:
                setattr(rules, field_name, rule_config[field_name])

        return rules

    def to_dict(self) -> dict:
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }

    def save_to_file(self, path: str) -> None:
        """Save current rules to a JSON file.

        Args:
            path: Path to save rules
        """
        with open(path, 'w') as f:
            json.dump({'extraction': self.to_dict()}, f, indent=2)


# Global default rules instance
default_rules = ExtractionRules()
