"""Data models for motor quote scraping."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class StepReached(str, Enum):
    """Furthest form stage a quote flow got to."""
    REGO_LOOKUP = "rego_lookup"
    YOUR_CAR = "your_car"
    ABOUT_YOU = "about_you"
    QUOTE_RESULT = "quote_result"


PARKING_TYPES = ("garage", "carport", "street", "driveway")


@dataclass(frozen=True)
class RegoQuoteRequest:
    """Quote request identifying the vehicle by its registration number."""

    registration: str
    address: str
    driver_age: int
    driver_gender: str
    licence_age: int
    claims_last_5_years: int
    is_member: bool
    under_finance: Optional[bool] = None
    purpose: Optional[str] = None  # private, business, rideshare ...
    business_use: Optional[bool] = None

    @property
    def mode(self) -> str:
        return "rego"


@dataclass(frozen=True)
class ManualQuoteRequest:
    """Quote request describing the vehicle by make, model and year."""

    make: str
    model: str
    year: int
    postcode: str
    driver_age: int
    claims_last_5_years: int
    parking_type: str = "garage"  # garage, carport, street, driveway
    body_type: Optional[str] = None

    @property
    def mode(self) -> str:
        return "manual"


QuoteRequest = Union[RegoQuoteRequest, ManualQuoteRequest]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


@dataclass
class VehicleInfo:
    """Vehicle resolved during the vehicle identification step."""

    year: str = ""
    make: str = ""
    model: str = ""
    body_type: str = ""
    variant: str = ""
    description: str = ""

    def __post_init__(self):
        self.year = _clean(self.year)
        self.make = _clean(self.make)
        self.model = _clean(self.model)
        self.body_type = _clean(self.body_type)
        self.variant = _clean(self.variant)
        self.description = _clean(self.description) or self.build_description()

    def build_description(self) -> str:
        """Normalised label: year make model variant body type, upper-cased."""
        parts = [self.year, self.make, self.model, self.variant, self.body_type]
        return " ".join(p for p in parts if p).upper()

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "VehicleInfo":
        """Build from a backend lookup record (keys matched case-insensitively)."""
        lowered = {str(k).lower(): v for k, v in record.items()}

        def pick(*keys: str) -> str:
            for key in keys:
                if lowered.get(key) not in (None, ""):
                    return _clean(lowered[key])
            return ""

        return cls(
            year=pick("year", "vehicleyear", "manufactureyear", "yearofmanufacture"),
            make=pick("make", "vehiclemake", "manufacturer"),
            model=pick("model", "vehiclemodel", "family"),
            body_type=pick("bodytype", "body_type", "body", "bodystyle"),
            variant=pick("variant", "series", "badge", "trim"),
            description=pick("description", "vehicledescription", "label"),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "year": self.year,
            "make": self.make,
            "model": self.model,
            "body_type": self.body_type,
            "variant": self.variant,
            "description": self.description,
        }


@dataclass
class ScrapeResult:
    """
    Outcome of one quote flow.

    Built once, at the single return point of the flow. Failures always carry
    the stage reached and a human readable error.
    """

    success: bool
    source: str = "insurer_website"
    vehicle_description: Optional[str] = None
    annual_premium: Optional[float] = None
    monthly_premium: Optional[float] = None
    excess_amount: Optional[float] = None
    raw_amounts: list[str] = field(default_factory=list)
    diagnostic_artifact: Optional[str] = None
    error: Optional[str] = None
    step_reached: Optional[StepReached] = None
    raw_text: Optional[str] = None
    completed_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.step_reached is not None:
            self.step_reached = StepReached(self.step_reached)

        if self.success:
            premiums = [p for p in (self.annual_premium, self.monthly_premium) if p is not None]
            if not premiums:
                raise ValueError("Successful result requires an annual or monthly premium")
            if any(p <= 0 for p in premiums):
                raise ValueError("Premiums must be positive")
        else:
            if not self.error:
                raise ValueError("Failed result requires an error message")
            if self.step_reached is None:
                raise ValueError("Failed result requires step_reached")

    @classmethod
    def failure(
        cls,
        error: str,
        step_reached: StepReached,
        **kwargs: Any,
    ) -> "ScrapeResult":
        """Convenience constructor for failed results."""
        return cls(success=False, error=error, step_reached=step_reached, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON friendly dictionary."""
        return {
            "success": self.success,
            "source": self.source,
            "vehicle_description": self.vehicle_description,
            "annual_premium": self.annual_premium,
            "monthly_premium": self.monthly_premium,
            "excess_amount": self.excess_amount,
            "raw_amounts": list(self.raw_amounts),
            "diagnostic_artifact": self.diagnostic_artifact,
            "error": self.error,
            "step_reached": self.step_reached.value if self.step_reached else None,
            "raw_text": self.raw_text,
            "completed_at": self.completed_at.isoformat(),
        }
