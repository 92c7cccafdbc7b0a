"""
Infrastructure module for the quote scraper.

Contains:
- BrowserResource: Single shared browser engine with lazy start and restart
- SessionFactory / IsolatedSession: Per-request isolated browsing contexts
"""

from .browser_resource import (
    BrowserResource,
    IsolatedSession,
    ResourceStatus,
    SessionFactory,
)

__all__ = [
    "BrowserResource",
    "IsolatedSession",
    "ResourceStatus",
    "SessionFactory",
]
