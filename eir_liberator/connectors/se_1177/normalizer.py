"""
1177.se normalizer: raw journal entries -> canonical EIR records.

Every function here is total. Unparseable input falls back to "Unknown",
an empty string or an empty list; nothing raises.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import List, Optional

from .scraper import SV_MONTHS
from ...canonical.schema import (
    MAX_NOTES,
    UNKNOWN,
    CanonicalRecord,
    EntryContent,
    Provider,
    RawEntry,
    ResponsiblePerson,
    entry_id,
)
from ...utils.logger import get_logger

log = get_logger("normalizer.1177")

LOCAL_DATE = re.compile(r"(\d{1,2})\s+(\w{3})\s+(\d{4})")
ISO_ANYWHERE = re.compile(r"(\d{4}-\d{2}-\d{2})")
ISO_START = re.compile(r"^(\d{4}-\d{2}-\d{2})")
TIME = re.compile(r"(?:klockan\s+)?(\d{1,2}):(\d{2})")
REGION_NAME = re.compile(r"Region\s+([^,\n]+)")
NOTED_BY = re.compile(r"Antecknad av ([^(\n]+)\s*\(")
OTHER_PERSON = re.compile(r"(?:Vaccinerad av|Ordinatör|Ansvarig för kontakten)\s+([^(\n]+)")
NOTED_BY_ROLE = re.compile(r"Antecknad av [^(\n]+\(([^)\n]+)\)")
ANY_PARENS = re.compile(r"\(([^)\n]+)\)")

KNOWN_REGIONS = ("Region Uppsala", "Stockholm", "Danderyd", "Västerbotten")
STATUSES = ("Nytt", "Osignerad", "Signerad")
TAG_KEYWORDS = (
    "akut", "vaccination", "tandvård", "diagnos", "besök", "osignerad",
    "distriktssköterska", "tandläkare", "läkare",
)
DETAILS_LIMIT = 200


def _checked_iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return dt.date(year, month, day).isoformat()
    except ValueError:
        return None


def _from_local(m: re.Match) -> Optional[str]:
    month = SV_MONTHS.get(m.group(2).lower())
    if not month:
        return None
    return _checked_iso(int(m.group(3)), int(month), int(m.group(1)))


def format_date(value: Optional[str]) -> str:
    """'17 mar 2025' or any embedded YYYY-MM-DD -> ISO date; else 'Unknown'."""
    if not value:
        return UNKNOWN
    clean = " ".join(value.split())

    m = LOCAL_DATE.search(clean)
    if m:
        iso = _from_local(m)
        if iso:
            return iso

    for pattern in (ISO_ANYWHERE, ISO_START):
        m = pattern.search(clean)
        if m:
            y, mo, d = (int(x) for x in m.group(1).split("-"))
            if _checked_iso(y, mo, d):
                return m.group(1)

    # long strings: the first local-looking match may not be a date, try the rest
    if len(clean) > 20:
        for m in LOCAL_DATE.finditer(clean):
            iso = _from_local(m)
            if iso:
                return iso
    return UNKNOWN


def extract_time(text: Optional[str]) -> str:
    if not text:
        return UNKNOWN
    for m in TIME.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour <= 23 and minute <= 59:
            return f"{hour:02d}:{minute:02d}"
    return UNKNOWN


def extract_region(source: Optional[str]) -> str:
    if not source:
        return UNKNOWN
    for region in KNOWN_REGIONS:
        if region in source:
            return region
    if "Region" in source:
        m = REGION_NAME.search(source)
        if m and m.group(1).strip():
            return f"Region {m.group(1).strip()}"
    return UNKNOWN


def extract_status(text: Optional[str]) -> str:
    if not text:
        return UNKNOWN
    return next((s for s in STATUSES if s in text), UNKNOWN)


def extract_responsible_person(text: Optional[str]) -> str:
    if not text:
        return UNKNOWN
    for pattern in (NOTED_BY, OTHER_PERSON):
        m = pattern.search(text)
        if m and m.group(1).strip():
            return m.group(1).strip()
    return UNKNOWN


def extract_role(text: Optional[str]) -> str:
    if not text:
        return UNKNOWN
    for pattern in (NOTED_BY_ROLE, ANY_PARENS):
        m = pattern.search(text)
        if m and m.group(1).strip():
            return m.group(1).strip()
    return UNKNOWN


def generate_summary(entry: RawEntry) -> str:
    if entry.category and entry.title:
        return f"{entry.category} - {entry.title}"
    return entry.category or entry.title or "Journal Entry"


def truncate_details(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[:DETAILS_LIMIT] + ("..." if len(text) > DETAILS_LIMIT else "")


def extract_notes(text: Optional[str]) -> List[str]:
    if not text:
        return []
    notes: List[str] = []
    for line in (ln.strip() for ln in text.split("\n")):
        if line and ":" in line and "http" not in line and len(line) > 10:
            notes.append(line)
            if len(notes) == MAX_NOTES:
                break
    return notes


def generate_tags(entry: RawEntry) -> List[str]:
    tags: List[str] = []
    if entry.category:
        tags.append(entry.category.lower())
    lowered = (entry.text or "").lower()
    for kw in TAG_KEYWORDS:
        if kw in lowered and kw not in tags:
            tags.append(kw)
    return tags


def normalize_entry(raw: RawEntry, index: int) -> CanonicalRecord:
    try:
        return CanonicalRecord(
            id=entry_id(index),
            date=format_date(raw.date or raw.text),
            time=extract_time(raw.text),
            category=raw.category or UNKNOWN,
            type=raw.title or UNKNOWN,
            provider=Provider(
                name=raw.source or UNKNOWN,
                region=extract_region(raw.source),
                location=raw.source or UNKNOWN,
            ),
            status=extract_status(raw.text),
            responsible_person=ResponsiblePerson(
                name=extract_responsible_person(raw.text),
                role=extract_role(raw.text),
            ),
            content=EntryContent(
                summary=generate_summary(raw),
                details=truncate_details(raw.text),
                notes=extract_notes(raw.text),
            ),
            attachments=[],
            tags=generate_tags(raw),
        )
    except Exception as exc:  # noqa: BLE001 - normalization must stay total
        log.warning(f"[1177] entry {index + 1} fell back to defaults: {exc}")
        return CanonicalRecord(id=entry_id(index))


def normalize(raw_entries: List[RawEntry]) -> List[CanonicalRecord]:
    return [normalize_entry(raw, i) for i, raw in enumerate(raw_entries)]
