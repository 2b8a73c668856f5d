"""Passive console/application error collection for a session's page.

Collected entries are failure context. They are attached to a failing test's
report and are never asserted on implicitly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from playwright.async_api import ConsoleMessage, Page

logger = logging.getLogger(__name__)

REPORT_SECTION = "session diagnostics"


@dataclass(frozen=True)
class DiagnosticEntry:
    kind: str  # "console" or "pageerror"
    text: str
    location: str = ""

    def __str__(self) -> str:
        suffix = f" ({self.location})" if self.location else ""
        return f"[{self.kind}] {self.text}{suffix}"


@dataclass
class DiagnosticsHandle:
    page: Page
    errors: List[DiagnosticEntry] = field(default_factory=list)
    attached: bool = True
    _on_console: Optional[Callable[[ConsoleMessage], None]] = None
    _on_page_error: Optional[Callable[[Any], None]] = None


def _format_location(message: ConsoleMessage) -> str:
    try:
        location = message.location
    except Exception:
        return ""
    if not location:
        return ""
    url = location.get("url", "")
    line = location.get("lineNumber")
    return f"{url}:{line}" if url and line is not None else url


class DiagnosticsCollector:
    """Attach/detach console listeners and gather error entries."""

    def attach(self, page: Page) -> DiagnosticsHandle:
        handle = DiagnosticsHandle(page=page)

        def on_console(message: ConsoleMessage) -> None:
            if message.type == "error":
                handle.errors.append(DiagnosticEntry("console", message.text, _format_location(message)))

        def on_page_error(error: Any) -> None:
            text = getattr(error, "message", None) or str(error)
            handle.errors.append(DiagnosticEntry("pageerror", text))

        handle._on_console = on_console
        handle._on_page_error = on_page_error
        page.on("console", on_console)
        page.on("pageerror", on_page_error)
        return handle

    def detach(self, handle: DiagnosticsHandle) -> None:
        """Stop listening. Safe to call more than once."""
        if not handle.attached:
            return
        handle.attached = False
        try:
            handle.page.remove_listener("console", handle._on_console)
            handle.page.remove_listener("pageerror", handle._on_page_error)
        except Exception as exc:
            # Page already closed; listeners went with it.
            logger.debug("Listener removal skipped: %s", exc)

    async def capture_during(
        self,
        page: Page,
        action: Callable[[], Awaitable[object]],
    ) -> List[DiagnosticEntry]:
        """Collect errors only while ``action`` runs."""
        handle = self.attach(page)
        try:
            await action()
        finally:
            self.detach(handle)
        return list(handle.errors)


def format_report(errors: List[DiagnosticEntry], label: str = "") -> str:
    header = f"{label}: " if label else ""
    if not errors:
        return f"{header}no console errors observed"
    lines = [f"{header}{len(errors)} console/application error(s):"]
    lines.extend(f"  {entry}" for entry in errors)
    return "\n".join(lines)


def attach_to_report(report: Any, entries_by_session: dict[str, List[DiagnosticEntry]]) -> bool:
    """Add a diagnostics section to a failed pytest report. Returns True if added."""
    if not entries_by_session:
        return False
    body = "\n".join(format_report(entries, label) for label, entries in entries_by_session.items())
    report.sections.append((REPORT_SECTION, body))
    return True
