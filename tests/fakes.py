"""In-memory stand-ins for the browser, the clock and the viewer window."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from eir_liberator.connectors.page import HTML_PARSER, Page
from eir_liberator.handoff.transport import Surface, Transport

EPOCH_BASE_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def epoch_ms(self) -> int:
        return EPOCH_BASE_MS + int(round(self.t * 1000))

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds

    def advance(self, seconds: float) -> None:
        self.t += seconds


ClickHook = Callable[["FakePage", str, int], None]


class FakePage(Page):
    """A mutable DOM; clicks run `on_click(page, selector, index)`."""

    def __init__(self, html: str, url: str = "https://journalen.1177.se/JournalCategories", on_click: Optional[ClickHook] = None):
        self.doc = BeautifulSoup(html, HTML_PARSER)
        self._url = url
        self.on_click = on_click
        self.clicks: List[Tuple[str, int]] = []

    @property
    def url(self) -> str:
        return self._url

    def navigate(self, url: str) -> None:
        self._url = url

    def html(self) -> str:
        return str(self.doc)

    def count(self, selector: str) -> int:
        return len(self.doc.select(selector))

    def is_interactable(self, selector: str, index: int = 0) -> bool:
        found = self.doc.select(selector)
        if index >= len(found):
            return False
        el = found[index]
        style = el.get("style", "").replace(" ", "")
        return not el.has_attr("disabled") and not el.has_attr("hidden") and "display:none" not in style

    def click(self, selector: str, index: int = 0) -> None:
        if index >= self.count(selector):
            raise IndexError(f"no element #{index} for {selector!r}")
        self.clicks.append((selector, index))
        if self.on_click:
            self.on_click(self, selector, index)


class FakeSurface(Surface):
    def __init__(self, on_post: Optional[Callable[["FakeSurface", Dict[str, Any], str], None]] = None) -> None:
        self.posted: List[Tuple[Dict[str, Any], str]] = []
        self.inbox: List[Tuple[str, Any]] = []
        self.is_closed = False
        self.on_post = on_post

    @property
    def closed(self) -> bool:
        return self.is_closed

    def post(self, message: Dict[str, Any], target_origin: str) -> None:
        self.posted.append((message, target_origin))
        if self.on_post:
            self.on_post(self, message, target_origin)

    def drain(self) -> List[Tuple[str, Any]]:
        items, self.inbox = self.inbox, []
        return items

    def of_type(self, mtype: str) -> List[Dict[str, Any]]:
        return [m for m, _ in self.posted if m.get("type") == mtype]


class FakeTransport(Transport):
    def __init__(self, surface: Optional[FakeSurface] = None, blocked: bool = False) -> None:
        self.surface = surface or FakeSurface()
        self.blocked = blocked
        self.opened: List[str] = []

    def open(self, url: str) -> Optional[Surface]:
        self.opened.append(url)
        return None if self.blocked else self.surface


def journal_html(entries: str = "", load_more: bool = False, patient: str = "") -> str:
    button = '<button class="load-more ic-button ic-button--secondary iu-px-xxl">Visa fler</button>' if load_more else ""
    return f"""
<html><body>
<div class="ic-avatar-box">{patient}</div>
<div id="timeline-view">
{entries}
</div>
{button}
</body></html>
"""


TOGGLE = '<span class="icon-angle-down nu-list-nav-icon nu-list-nav-icon--journal-overview"></span>'

VACCINATION_ENTRY = f"""
<div class="ic-block-list__item" data-cy-id="entry-1">
  <h3 class="ic-block-list__title">Vaccination mot influensa</h3>
  <span class="ic-badge">Vaccinationer</span>
  {TOGGLE}
  <p>17 mar 2025</p>
  <div class="ic-block-list__content">
    <p>Vårdcentral Danderyd, Region Stockholm</p>
    <p>Antecknad av Anna Svensson (Sjuksköterska)</p>
    <p>Dos: 0,5 ml intramuskulärt klockan 9:05</p>
  </div>
</div>
"""

VISIT_ENTRY = f"""
<div class="ic-block-list__item" data-cy-id="entry-2">
  <h3 class="ic-block-list__title">Besök hos läkare</h3>
  <span class="ic-badge">Vårdkontakter</span>
  {TOGGLE}
  <p>2024-01-05</p>
  <div class="ic-block-list__content">
    <p>Akademiska sjukhuset, Region Uppsala</p>
    <p>Osignerad anteckning</p>
  </div>
</div>
"""
