"""Tests for page snapshots."""

from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from motorquote.diagnostics import DiagnosticsRecorder


def fake_page(screenshot_error=None):
    page = MagicMock()
    page.screenshot = AsyncMock(side_effect=screenshot_error)
    page.content = AsyncMock(return_value="<html><body>Quote</body></html>")
    return page


class TestDiagnosticsRecorder:
    """Test cases for DiagnosticsRecorder."""

    def test_snapshot_path(self, tmp_path):
        """Test timestamped file naming."""
        recorder = DiagnosticsRecorder(str(tmp_path))
        path = recorder.snapshot_path("5f1c2a", "quote result", datetime(2025, 11, 23, 14, 30, 22))
        assert path == tmp_path / "2025-11-23_143022_5f1c2a_quote_result.png"

    @pytest.mark.asyncio
    async def test_capture_writes_screenshot_and_html(self, tmp_path):
        recorder = DiagnosticsRecorder(str(tmp_path / "snapshots"))
        page = fake_page()

        artifact = await recorder.capture(page, "abc123", "about_you")

        assert artifact is not None
        assert artifact.endswith("_abc123_about_you.png")
        page.screenshot.assert_awaited_once_with(path=artifact, full_page=True)
        html = Path(artifact).with_suffix(".html")
        assert html.read_text(encoding="utf-8").startswith("<html>")

    @pytest.mark.asyncio
    async def test_disabled(self, tmp_path):
        recorder = DiagnosticsRecorder(str(tmp_path), enabled=False)
        page = fake_page()

        assert await recorder.capture(page, "abc123", "error") is None
        page.screenshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_capture_failure_is_advisory(self, tmp_path):
        """Test a failed screenshot returns None instead of raising."""
        recorder = DiagnosticsRecorder(str(tmp_path))
        page = fake_page(screenshot_error=RuntimeError("Target closed"))

        assert await recorder.capture(page, "abc123", "error") is None

    @pytest.mark.asyncio
    async def test_no_page(self, tmp_path):
        assert await DiagnosticsRecorder(str(tmp_path)).capture(None, "abc123", "error") is None
