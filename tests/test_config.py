"""Tests for configuration loading."""

import json
import logging
import re

import pytest

from motorquote.browser_config import DEBUG_CONFIG, DEFAULT_CONFIG, USER_AGENTS, BrowserConfig
from motorquote.config import ExtractionRules, ScraperConfig
from motorquote.constants import DEFAULT_QUOTE_URL
from motorquote.logging_config import FlowLogger, flow_logger, setup_logging


class TestScraperConfig:
    """Test cases for ScraperConfig."""

    def test_defaults(self):
        config = ScraperConfig()
        assert config.quote_url == DEFAULT_QUOTE_URL
        assert config.lookup_attempts == 3
        assert config.max_recovery_cycles == 1
        assert config.capture_diagnostics is True

    def test_from_env(self, monkeypatch):
        """Test MOTORQUOTE_ variables override defaults."""
        monkeypatch.setenv("MOTORQUOTE_STEP_TIMEOUT_MS", "15000")
        monkeypatch.setenv("MOTORQUOTE_LOOKUP_ATTEMPTS", "5")
        monkeypatch.setenv("MOTORQUOTE_CAPTURE_DIAGNOSTICS", "false")
        monkeypatch.setenv("MOTORQUOTE_OVERALL_TIMEOUT_SECONDS", "90")
        monkeypatch.setenv("MOTORQUOTE_SELECTORS_FILE", "selectors.yaml")

        config = ScraperConfig.from_env()
        assert config.step_timeout_ms == 15000
        assert config.lookup_attempts == 5
        assert config.capture_diagnostics is False
        assert config.overall_timeout_seconds == 90.0
        assert config.selectors_file == "selectors.yaml"

    def test_from_file(self, tmp_path):
        """Test JSON config files, unknown keys ignored."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"settle_ms": 500, "unknown": True}))

        config = ScraperConfig.from_file(str(path))
        assert config.settle_ms == 500
        assert not hasattr(config, "unknown")

    def test_from_missing_file(self, tmp_path):
        config = ScraperConfig.from_file(str(tmp_path / "missing.json"))
        assert config.settle_ms == ScraperConfig().settle_ms

    def test_to_dict(self):
        data = ScraperConfig().to_dict()
        assert data["quote_url"] == DEFAULT_QUOTE_URL
        assert "max_recovery_cycles" in data


class TestExtractionRules:
    """Test cases for ExtractionRules."""

    def test_save_and_load_json(self, tmp_path):
        """Test rules saved to JSON load back."""
        path = tmp_path / "rules.json"
        rules = ExtractionRules(annual_min=300.0, fallback_strategy="largest")
        rules.save_to_file(str(path))

        loaded = ExtractionRules.from_file(str(path))
        assert loaded.annual_min == 300.0
        assert loaded.fallback_strategy == "largest"

    def test_load_yaml(self, tmp_path):
        """Test YAML rules without the extraction key."""
        path = tmp_path / "rules.yaml"
        path.write_text("monthly_max: 500\nexcess_tiers: [400, 900]\n")

        loaded = ExtractionRules.from_file(str(path))
        assert loaded.monthly_max == 500
        assert loaded.excess_tiers == [400, 900]

    def test_patterns_compile(self):
        """Test every default pattern has one capture group."""
        rules = ExtractionRules()
        for pattern in rules.annual_patterns + rules.monthly_patterns + rules.excess_patterns:
            assert re.compile(pattern).groups == 1


class TestBrowserConfig:
    """Test cases for BrowserConfig."""

    def test_defaults(self):
        assert DEFAULT_CONFIG.headless is True
        assert DEFAULT_CONFIG.viewport_width == 1280
        assert "--no-sandbox" in DEFAULT_CONFIG.launch_args

    def test_debug_preset(self):
        assert DEBUG_CONFIG.headless is False
        assert DEBUG_CONFIG.blocked_url_pattern() is None

    def test_user_agent(self):
        """Test fixed and rotated user agents."""
        assert BrowserConfig(user_agent="Custom UA").get_user_agent() == "Custom UA"
        assert BrowserConfig(rotate_user_agent=True).get_user_agent() in USER_AGENTS

    def test_blocked_url_pattern(self):
        """Test ad hosts are matched and the insurer is not."""
        pattern = BrowserConfig(blocked_domains=["doubleclick.net", "adsrvr.org"]).blocked_url_pattern()
        assert pattern.search("https://googleads.g.doubleclick.net/pagead/id")
        assert pattern.search("https://match.adsrvr.org/track")
        assert not pattern.search("https://my.racv.com.au/s/motor-insurance?p=CAR")
        assert not pattern.search("https://example.com/?ref=doubleclick.net")

    def test_timeout_validation(self):
        with pytest.raises(ValueError):
            BrowserConfig(timeout=10)


class TestLogging:
    """Test cases for setup_logging."""

    def test_setup_logging_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "motorquote.log"
        setup_logging(level="DEBUG", log_file=str(log_file))

        logging.getLogger("motorquote.test").debug("hello")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("playwright").level == logging.WARNING
        assert log_file.exists()

    def test_flow_logger_prefixes_request_id(self):
        log = flow_logger("motorquote.scraper", "5f1c2a")
        assert isinstance(log, FlowLogger)
        assert log.process("Starting manual quote flow", {}) == ("[5f1c2a] Starting manual quote flow", {})
