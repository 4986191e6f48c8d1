from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, List, Optional, Sequence

from .page import Page
from ..canonical.schema import CanonicalRecord, PatientMetadata, RawEntry
from ..utils.clock import Clock
from ..utils.config import ExtractionSettings


class BaseConnector(ABC):
    """
    Contract every provider connector implements.

    Subclasses set `provider_name` / `country` and implement `matches`,
    `scrape` and `normalize`. A connector instance is bound to one Page.
    """

    provider_name: ClassVar[Optional[str]] = None
    country: ClassVar[Optional[str]] = None  # ISO country code

    # selectors whose presence suggests a logged-in session
    login_indicators: ClassVar[Sequence[str]] = (
        '[data-testid="user-menu"]',
        ".user-profile",
        ".logout-button",
        '[href*="logout"]',
        ".user-info",
    )

    def __init__(
        self,
        page: Page,
        clock: Optional[Clock] = None,
        settings: Optional[ExtractionSettings] = None,
    ) -> None:
        self.page = page
        self.clock = clock or Clock()
        self.settings = settings or ExtractionSettings()

    @classmethod
    @abstractmethod
    def matches(cls, url: str) -> bool:
        """Pure URL predicate; no page access."""

    async def is_authenticated(self) -> bool:
        """
        Best-effort hint, not a security control: true if any login
        indicator is on the page, or if the URL does not look like a
        login/auth page (so it leans towards True when unsure).
        """
        url = self.page.url
        if "login" not in url and "auth" not in url:
            return True
        soup = self.page.soup()
        return any(soup.select_one(sel) is not None for sel in self.login_indicators)

    async def wait_for_data(self) -> None:
        return None

    @abstractmethod
    async def scrape(self) -> List[RawEntry]: ...

    @abstractmethod
    def normalize(self, raw_entries: List[RawEntry]) -> List[CanonicalRecord]: ...

    def get_patient_metadata(self) -> PatientMetadata:
        return PatientMetadata()
