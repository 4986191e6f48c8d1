"""
Journal extraction state machine.

    WAITING_FOR_DATA -> PAGINATING -> EXPANDING -> DONE

Every phase is bounded and best-effort: timeouts and page faults are logged
and the run continues with whatever is on the page. Provider specifics
(selectors, date formats, keyword lists) come from an ExtractionProfile.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Pattern, Sequence

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

from .page import Page
from ..canonical.schema import RawEntry
from ..utils.clock import Clock, wait_until
from ..utils.config import ExtractionSettings
from ..utils.logger import get_logger

log = get_logger("scraper.extractor")

ISO_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")
SHORT_MONTH_DATE = re.compile(r"\d{1,2}\s+\w{3}\s+\d{4}")

BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "footer", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main",
    "nav", "ol", "p", "pre", "section", "table", "tbody", "td", "th", "tr", "ul",
}
SKIP_TAGS = {"script", "style", "template", "noscript"}
_WS = re.compile(r"\s+")


class ExtractorState(str, Enum):
    WAITING_FOR_DATA = "waiting_for_data"
    PAGINATING = "paginating"
    EXPANDING = "expanding"
    DONE = "done"


@dataclass(frozen=True)
class ExtractionProfile:
    """CSS selectors and text heuristics for one provider's journal page."""
    content_root: str
    load_more: str
    entry_toggle: str
    containers: str
    visible_entries: str
    title_selector: str = ""
    category_selector: str = ""
    source_selector: str = ""
    details_selector: str = ""
    date_patterns: Sequence[Pattern[str]] = field(default_factory=tuple)
    category_keywords: Sequence[str] = field(default_factory=tuple)
    provider_keywords: Sequence[str] = field(default_factory=tuple)


def element_text(tag: Tag) -> str:
    """textContent with a line break at each block element."""
    parts: List[str] = []
    for node in tag.descendants:
        if isinstance(node, Comment):
            continue
        if isinstance(node, NavigableString):
            if node.parent is not None and node.parent.name in SKIP_TAGS:
                continue
            parts.append(str(node))
        elif isinstance(node, Tag) and node.name in BLOCK_TAGS:
            parts.append("\n")
    return "".join(parts)


def clean_lines(text: str) -> List[str]:
    lines = (_WS.sub(" ", ln).strip() for ln in text.split("\n"))
    return [ln for ln in lines if ln]


def _one_line(tag: Tag) -> str:
    return " ".join(element_text(tag).split())


class JournalExtractor:
    def __init__(
        self,
        page: Page,
        profile: ExtractionProfile,
        clock: Optional[Clock] = None,
        settings: Optional[ExtractionSettings] = None,
        name: str = "journal",
    ) -> None:
        self.page = page
        self.profile = profile
        self.clock = clock or Clock()
        self.settings = settings or ExtractionSettings()
        self.name = name
        self.state = ExtractorState.WAITING_FOR_DATA
        self.load_more_clicks = 0

    # ---- WAITING_FOR_DATA ----
    def _has_data(self) -> bool:
        root = self.page.soup().select_one(self.profile.content_root)
        return root is not None and any(isinstance(c, Tag) for c in root.children)

    async def wait_for_data(self) -> bool:
        self.state = ExtractorState.WAITING_FOR_DATA
        ready = await wait_until(
            self._has_data,
            timeout=self.settings.data_timeout,
            poll_interval=self.settings.data_poll_interval,
            clock=self.clock,
        )
        if ready:
            log.info(f"[{self.name}] journal data loaded")
        else:
            log.info(f"[{self.name}] timeout reached, proceeding with available data")
        return ready

    # ---- PAGINATING ----
    async def paginate(self) -> int:
        self.state = ExtractorState.PAGINATING
        selector = self.profile.load_more
        limit = self.settings.max_load_more
        self.load_more_clicks = 0
        try:
            while self.load_more_clicks < limit:
                if self.page.count(selector) == 0:
                    log.info(f"[{self.name}] no 'load more' button, all entries loaded")
                    break
                if not self.page.is_interactable(selector, 0):
                    log.info(f"[{self.name}] 'load more' hidden or disabled, all entries loaded")
                    break
                log.debug(f"[{self.name}] clicking 'load more' (click {self.load_more_clicks + 1})")
                self.page.click(selector, 0)
                self.load_more_clicks += 1
                await self.clock.sleep(self.settings.page_settle)
                log.debug(f"[{self.name}] {self.page.count(self.profile.entry_toggle)} entries on page")
            else:
                log.warning(f"[{self.name}] reached max load-more clicks={limit}, stopping")
        except Exception as exc:  # noqa: BLE001 - keep whatever is loaded
            log.error(f"[{self.name}] pagination aborted after {self.load_more_clicks} clicks: {exc}")
        log.info(f"[{self.name}] finished loading entries after {self.load_more_clicks} clicks")
        return self.load_more_clicks

    # ---- EXPANDING ----
    async def expand_and_extract(self) -> List[RawEntry]:
        self.state = ExtractorState.EXPANDING
        entries: List[RawEntry] = []
        toggle = self.profile.entry_toggle
        try:
            total = self.page.count(toggle)
            log.info(f"[{self.name}] found {total} journal entries to expand")
            for i in range(total):
                try:
                    self.page.click(toggle, i)
                    await self.clock.sleep(self.settings.expand_settle)
                    toggles = self.page.soup().select(toggle)
                    if i >= len(toggles):
                        log.debug(f"[{self.name}] entry {i + 1} vanished after expanding")
                        continue
                    container = toggles[i].css.closest(self.profile.containers) or toggles[i].parent
                    entry = self.extract_entry(container) if container is not None else None
                    if entry:
                        entries.append(entry)
                except Exception as exc:  # noqa: BLE001 - skip the entry, not the run
                    log.warning(f"[{self.name}] error processing entry {i + 1}: {exc}")
        except Exception as exc:  # noqa: BLE001
            log.error(f"[{self.name}] expansion aborted: {exc}")

        try:
            entries.extend(self._collect_visible(self.page.soup(), entries))
        except Exception as exc:  # noqa: BLE001
            log.error(f"[{self.name}] visible-entry pass failed: {exc}")
        log.info(f"[{self.name}] total extracted {len(entries)} journal entries")
        return entries

    def _collect_visible(self, soup: BeautifulSoup, existing: List[RawEntry]) -> List[RawEntry]:
        root = soup.select_one(self.profile.content_root)
        if root is None:
            return []
        seen = {e.text for e in existing}
        found: List[RawEntry] = []
        for el in root.select(self.profile.visible_entries):
            try:
                entry = self.extract_entry(el)
            except Exception as exc:  # noqa: BLE001
                log.warning(f"[{self.name}] skipping visible entry: {exc}")
                continue
            if entry and entry.text not in seen:
                seen.add(entry.text)
                found.append(entry)
        return found

    # ---- per-entry heuristics ----
    def _is_date_line(self, line: str) -> bool:
        return any(p.search(line) for p in self.profile.date_patterns) or bool(ISO_DATE.search(line))

    def extract_entry(self, element: Tag) -> Optional[RawEntry]:
        p = self.profile
        lines = clean_lines(element_text(element))
        text = "\n".join(lines)
        if len(text) < self.settings.min_entry_chars:
            return None

        date = next((ln for ln in lines if self._is_date_line(ln)), "")

        title_el = element.select_one(p.title_selector) if p.title_selector else None
        if title_el is not None:
            title = _one_line(title_el)
        else:
            title = next(
                (ln for ln in lines
                 if 5 < len(ln) < 100 and not ISO_DATE.search(ln) and not SHORT_MONTH_DATE.search(ln)),
                "",
            )

        category_el = element.select_one(p.category_selector) if p.category_selector else None
        if category_el is not None:
            category = _one_line(category_el)
        else:
            category = next((kw for ln in lines for kw in p.category_keywords if kw in ln), "")

        source_el = element.select_one(p.source_selector) if p.source_selector else None
        if source_el is not None:
            source = _one_line(source_el)
        else:
            source = next(
                (ln for ln in lines if any(kw.lower() in ln.lower() for kw in p.provider_keywords)),
                "",
            )

        details_el = element.select_one(p.details_selector) if p.details_selector else None
        details = "\n".join(clean_lines(element_text(details_el))) if details_el is not None else ""

        return RawEntry(text=text, date=date, title=title, category=category, source=source, details=details)

    # ---- full run ----
    async def run(self) -> List[RawEntry]:
        await self.wait_for_data()
        await self.paginate()
        entries = await self.expand_and_extract()
        self.state = ExtractorState.DONE
        return entries
