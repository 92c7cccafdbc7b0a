"""Page snapshots for post-hoc failure analysis."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class DiagnosticsRecorder:
    """Saves page snapshots to an operator-configured directory.

    Snapshots are advisory. A failed capture is logged and returns None;
    it never affects the quote result.
    """

    def __init__(self, base_dir: str = "diagnostics", enabled: bool = True):
        """Initialize recorder.

        Args:
            base_dir: Directory for snapshots, created on first capture
            enabled: When False, capture() is a no-op
        """
        self.base_dir = Path(base_dir)
        self.enabled = enabled

    def snapshot_path(self, request_id: str, label: str, timestamp: Optional[datetime] = None) -> Path:
        """Build the snapshot path for one capture.

        Example:
            diagnostics/2025-11-23_143022_5f1c2a_quote_result.png
        """
        if timestamp is None:
            timestamp = datetime.now()
        safe_label = re.sub(r"[^A-Za-z0-9_-]+", "_", label).strip("_") or "page"
        timestamp_str = timestamp.strftime("%Y-%m-%d_%H%M%S")
        return self.base_dir / f"{timestamp_str}_{request_id}_{safe_label}.png"

    async def capture(self, page, request_id: str, label: str) -> Optional[str]:
        """Save a full-page screenshot plus the page HTML.

        Args:
            page: Playwright page
            request_id: Short id of the quote flow
            label: Where in the flow the snapshot was taken

        Returns:
            Path of the screenshot, or None if disabled or the capture failed
        """
        if not self.enabled or page is None:
            return None

        path = self.snapshot_path(request_id, label)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except Exception as e:
            logger.warning(f"Could not capture snapshot '{label}': {e}")
            return None

        try:
            html = await page.content()
            path.with_suffix(".html").write_text(html, encoding="utf-8")
        except Exception as e:
            logger.debug(f"Could not save page HTML for '{label}': {e}")

        logger.info(f"Saved snapshot: {path}")
        return str(path)
