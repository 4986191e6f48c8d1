from __future__ import annotations
from typing import List

from . import normalizer
from .scraper import PATIENT_NAME, PROFILE_1177, patient_identity, patient_name
from ..base import BaseConnector
from ..extractor import JournalExtractor
from ..registry import register
from ...canonical.schema import CanonicalRecord, PatientMetadata, RawEntry
from ...utils.logger import get_logger

log = get_logger("connector.1177")


@register
class Connector1177(BaseConnector):
    provider_name = "1177.se"
    country = "SE"

    login_indicators = BaseConnector.login_indicators + (PATIENT_NAME,)

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.extractor = JournalExtractor(
            self.page, PROFILE_1177, clock=self.clock, settings=self.settings, name="1177",
        )

    @classmethod
    def matches(cls, url: str) -> bool:
        return "journalen.1177.se" in url or "1177.se/journal" in url

    async def is_authenticated(self) -> bool:
        logged_in = await super().is_authenticated()
        log.debug(f"[1177] url={self.page.url} logged_in={logged_in}")
        return logged_in

    async def wait_for_data(self) -> None:
        await self.extractor.wait_for_data()

    async def scrape(self) -> List[RawEntry]:
        log.info("[1177] starting scrape")
        entries = await self.extractor.run()
        log.info(f"[1177] scraped {len(entries)} entries")
        return entries

    def normalize(self, raw_entries: List[RawEntry]) -> List[CanonicalRecord]:
        records = normalizer.normalize(raw_entries)
        log.info(f"[1177] normalized {len(records)} entries")
        return records

    def get_patient_metadata(self) -> PatientMetadata:
        try:
            soup = self.page.soup()
        except Exception as exc:  # noqa: BLE001 - metadata is optional
            log.warning(f"[1177] could not read patient header: {exc}")
            return PatientMetadata()
        personal_number, birth_date = patient_identity(soup)
        return PatientMetadata(
            name=patient_name(soup),
            birth_date=birth_date,
            personal_number=personal_number,
        )
