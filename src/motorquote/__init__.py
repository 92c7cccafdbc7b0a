"""Motor insurance quote scraper driving the insurer's public quote form."""

__version__ = "0.1.0"

from motorquote.models import (
    StepReached,
    RegoQuoteRequest,
    ManualQuoteRequest,
    QuoteRequest,
    VehicleInfo,
    ScrapeResult,
)
from motorquote.errors import (
    QuoteScraperError,
    EngineUnavailable,
    VehicleNotFound,
    FieldValidationError,
    TransientBackendError,
    ExtractionFailure,
)
from motorquote.config import ScraperConfig, ExtractionRules
from motorquote.browser_config import BrowserConfig
from motorquote.selector_library import SelectorLibrary
from motorquote.extraction import ExtractionEngine
from motorquote.diagnostics import DiagnosticsRecorder

# Infrastructure
from motorquote.infrastructure import (
    BrowserResource,
    SessionFactory,
    IsolatedSession,
    ResourceStatus,
)

from motorquote.scraper import QuoteScraper, scrape_quote

__all__ = [
    # Core
    "QuoteScraper",
    "scrape_quote",
    # Models
    "StepReached",
    "RegoQuoteRequest",
    "ManualQuoteRequest",
    "QuoteRequest",
    "VehicleInfo",
    "ScrapeResult",
    # Errors
    "QuoteScraperError",
    "EngineUnavailable",
    "VehicleNotFound",
    "FieldValidationError",
    "TransientBackendError",
    "ExtractionFailure",
    # Configuration
    "ScraperConfig",
    "ExtractionRules",
    "BrowserConfig",
    "SelectorLibrary",
    "ExtractionEngine",
    "DiagnosticsRecorder",
    # Infrastructure
    "BrowserResource",
    "SessionFactory",
    "IsolatedSession",
    "ResourceStatus",
]
