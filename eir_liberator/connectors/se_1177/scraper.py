"""
1177.se journal page: selectors and text heuristics.

The journal lives in #timeline-view. Entries are collapsed behind an
angle-down icon and the list grows through a "Visa fler" (load more) button.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup

from ..extractor import ExtractionProfile

SV_MONTHS = {
    "jan": "01", "feb": "02", "mar": "03", "apr": "04", "maj": "05", "jun": "06",
    "jul": "07", "aug": "08", "sep": "09", "okt": "10", "nov": "11", "dec": "12",
}

SV_DATE = re.compile(r"(\d{1,2})\s+(jan|feb|mar|apr|maj|jun|jul|aug|sep|okt|nov|dec)\s+(\d{4})", re.IGNORECASE)

CATEGORY_KEYWORDS = (
    "Vårdkontakter", "Anteckningar", "Diagnoser", "Vaccinationer", "Läkemedel",
    "Provsvar", "Remisser", "Tillväxt", "Uppmärksamhetsinformation", "Vårdplaner",
)

PROVIDER_KEYWORDS = (
    "vårdcentral", "sjukhus", "akut", "tandvård", "folktandvården", "SLSO",
    "region", "stockholm", "uppsala", "danderyd",
)

PROFILE_1177 = ExtractionProfile(
    content_root="#timeline-view",
    load_more=".load-more.ic-button.ic-button--secondary.iu-px-xxl",
    entry_toggle=".icon-angle-down.nu-list-nav-icon.nu-list-nav-icon--journal-overview",
    containers=".ic-block-list__item, .journal-entry, .timeline-item, [data-cy-id]",
    visible_entries=".ic-block-list__item, .journal-entry, .timeline-item",
    title_selector=".title, .journal-title, .entry-title, h3, h4, .ic-block-list__title, .nc-journal-title",
    category_selector=".category, .journal-category, .entry-category, .ic-badge, .nc-category",
    source_selector=".source, .provider, .journal-source, .nc-source",
    details_selector=".journal-details, .entry-details, .nc-details, .ic-block-list__content",
    date_patterns=(SV_DATE,),
    category_keywords=CATEGORY_KEYWORDS,
    provider_keywords=PROVIDER_KEYWORDS,
)

PATIENT_NAME = ".ic-avatar-box__name"
PATIENT_HEADER = ".ic-avatar-box"

# personnummer: YYYYMMDD-NNNN or YYMMDD-NNNN ('+' marks age 100+)
PERSONAL_NUMBER = re.compile(r"\b((?:19|20)?\d{6})[-+](\d{4})\b")


def patient_name(soup: BeautifulSoup) -> Optional[str]:
    el = soup.select_one(PATIENT_NAME)
    if el is None:
        return None
    name = " ".join(el.get_text(" ").split())
    return name or None


def patient_identity(soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
    """(personal_number, birth_date) from the patient header, if shown."""
    header = soup.select_one(PATIENT_HEADER)
    if header is None:
        return None, None
    m = PERSONAL_NUMBER.search(header.get_text(" "))
    if not m:
        return None, None
    digits, sep = m.group(1), m.group(0)[len(m.group(1))]
    if len(digits) == 8:
        century = digits[:2]
        yymmdd = digits[2:]
    else:
        # short form: '-' means under 100 years old, '+' means 100 or older
        century = None
        yymmdd = digits
    birth_date = _birth_date(yymmdd, century, sep)
    return m.group(0), birth_date


def _birth_date(yymmdd: str, century: Optional[str], sep: str) -> Optional[str]:
    yy, mm, dd = int(yymmdd[:2]), int(yymmdd[2:4]), int(yymmdd[4:6])
    if dd > 60:
        dd -= 60  # samordningsnummer
    if century is not None:
        year = int(century) * 100 + yy
    else:
        this_year = dt.date.today().year
        year = (this_year // 100) * 100 + yy
        if year > this_year:
            year -= 100
        if sep == "+":
            year -= 100
    try:
        return dt.date(year, mm, dd).isoformat()
    except ValueError:
        return None
