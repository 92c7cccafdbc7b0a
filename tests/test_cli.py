"""Tests for the command-line interface."""

import json
import subprocess
from unittest.mock import patch

import pytest

from motorquote import cli
from motorquote.models import ManualQuoteRequest, RegoQuoteRequest, ScrapeResult, StepReached
from motorquote.scripts import postinstall


SUCCESS = ScrapeResult(
    success=True,
    vehicle_description="2020 TOYOTA COROLLA",
    annual_premium=1234.56,
    monthly_premium=113.17,
    raw_amounts=["$1,234.56", "$113.17"],
)
FAILURE = ScrapeResult.failure("Vehicle not found: registration ZZZ999", StepReached.REGO_LOOKUP)


class TestCli:
    """Test cases for the motorquote command."""

    def test_manual_command(self, capsys):
        """Test manual arguments become a ManualQuoteRequest."""
        with patch("motorquote.cli.setup_logging"), \
                patch("motorquote.cli.scrape_quote", return_value=SUCCESS) as scrape:
            with pytest.raises(SystemExit) as exc_info:
                cli.main([
                    "manual", "Toyota", "Corolla", "2020",
                    "--postcode", "3000", "--age", "35", "--parking", "street",
                ])

        assert exc_info.value.code == 0
        request = scrape.call_args.args[0]
        assert isinstance(request, ManualQuoteRequest)
        assert request.year == 2020
        assert request.parking_type == "street"
        assert "1,234.56" in capsys.readouterr().out

    def test_rego_command_json(self, capsys):
        """Test JSON output and failure exit code."""
        with patch("motorquote.cli.setup_logging"), \
                patch("motorquote.cli.scrape_quote", return_value=FAILURE) as scrape:
            with pytest.raises(SystemExit) as exc_info:
                cli.main([
                    "rego", "ZZZ999",
                    "--address", "1 Collins St, Melbourne VIC 3000",
                    "--age", "35", "--member", "yes", "--finance", "no",
                    "--json", "--timeout", "60",
                ])

        assert exc_info.value.code == 1
        request = scrape.call_args.args[0]
        assert isinstance(request, RegoQuoteRequest)
        assert request.is_member is True
        assert request.under_finance is False
        assert scrape.call_args.kwargs["timeout"] == 60.0

        output = json.loads(capsys.readouterr().out)
        assert output["success"] is False
        assert output["step_reached"] == "rego_lookup"

    def test_headed_uses_debug_config(self):
        with patch("motorquote.cli.setup_logging"), \
                patch("motorquote.cli.scrape_quote", return_value=SUCCESS) as scrape:
            with pytest.raises(SystemExit):
                cli.main([
                    "manual", "Toyota", "Corolla", "2020",
                    "--postcode", "3000", "--age", "35", "--headed", "--no-diagnostics",
                ])

        assert scrape.call_args.kwargs["browser_config"].headless is False
        assert scrape.call_args.kwargs["config"].capture_diagnostics is False

    def test_invalid_parking(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["manual", "Toyota", "Corolla", "2020", "--postcode", "3000",
                      "--age", "35", "--parking", "roof"])
        assert exc_info.value.code == 2

    def test_print_failure(self, capsys):
        cli.print_result(FAILURE)
        out = capsys.readouterr().out
        assert "rego_lookup" in out
        assert "ZZZ999" in out


class TestPostinstall:
    """Test cases for the browser install helper."""

    def test_success(self):
        with patch("motorquote.scripts.subprocess.run") as run:
            run.return_value.stdout = ""
            assert postinstall([]) == 0
        assert run.call_args.args[0][-2:] == ["install", "chromium"]

    def test_failure(self, capsys):
        error = subprocess.CalledProcessError(1, "playwright", stderr="download failed")
        with patch("motorquote.scripts.subprocess.run", side_effect=error):
            assert postinstall([]) == 1
        assert "playwright install chromium" in capsys.readouterr().err

    def test_with_deps(self):
        with patch("motorquote.scripts.subprocess.run") as run:
            run.return_value.stdout = ""
            assert postinstall(["--with-deps"]) == 0
        assert run.call_args.args[0][-1] == "--with-deps"
