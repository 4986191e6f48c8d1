"""
EIR formatter.

Assembles normalized records into a CanonicalDocument and serializes it to
EIR text, an indentation-based YAML rendering where every string value is
double-quoted and every other scalar is plain. Output is deterministic for a
given document: no key sorting, no line folding.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, Iterable, List, Optional

import yaml
from dateutil.parser import isoparse

from .schema import (
    UNKNOWN,
    FORMAT_VERSION,
    CanonicalDocument,
    CanonicalRecord,
    DateRange,
    DocumentMetadata,
    EntryContent,
    ExportInfo,
    MetadataSeed,
    PatientMetadata,
    Provider,
    ResponsiblePerson,
    entry_id,
)
from ..utils.logger import get_logger

log = get_logger("eir.formatter")

STRICT_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _or(value: Optional[str], fallback: str) -> str:
    return value if value else fallback


def _known(value: Optional[str]) -> str:
    # "Unknown" placeholders count as missing
    return value if value and value != UNKNOWN else ""


def is_strict_iso_date(value: Optional[str]) -> bool:
    if not value or not STRICT_ISO.match(value):
        return False
    try:
        isoparse(value)
    except ValueError:
        return False
    return True


def compute_date_range(records: Iterable[CanonicalRecord]) -> DateRange:
    dates = sorted(r.date for r in records if is_strict_iso_date(r.date))
    if not dates:
        return DateRange()
    return DateRange(start=dates[0], end=dates[-1])


def collect_providers(records: Iterable[CanonicalRecord]) -> List[str]:
    seen = set()
    out: List[str] = []
    for r in records:
        name = r.provider.name
        if name and name != UNKNOWN and name not in seen:
            seen.add(name)
            out.append(name)
    return out


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _fill_record(record: CanonicalRecord, index: int) -> CanonicalRecord:
    provider_name = _or(record.provider.name, UNKNOWN)
    return CanonicalRecord(
        id=record.id or entry_id(index),
        date=_or(record.date, UNKNOWN),
        time=_or(record.time, UNKNOWN),
        category=_or(record.category, UNKNOWN),
        type=_or(record.type, UNKNOWN),
        provider=Provider(
            name=provider_name,
            region=_or(record.provider.region, UNKNOWN),
            location=_known(record.provider.location) or provider_name,
        ),
        status=_or(record.status, UNKNOWN),
        responsible_person=ResponsiblePerson(
            name=_or(record.responsible_person.name, UNKNOWN),
            role=_or(record.responsible_person.role, UNKNOWN),
        ),
        content=EntryContent(
            summary=_or(record.content.summary, "Journal Entry"),
            details=record.content.details or "",
            notes=list(record.content.notes),
        ),
        attachments=list(record.attachments),
        tags=_dedupe(record.tags),
    )


def assemble(records: List[CanonicalRecord], seed: Optional[MetadataSeed] = None) -> CanonicalDocument:
    seed = seed or MetadataSeed()
    entries = [_fill_record(r, i) for i, r in enumerate(records)]
    patient = seed.patient or PatientMetadata()
    metadata = DocumentMetadata(
        format_version=seed.format_version or FORMAT_VERSION,
        created_at=seed.created_at or _now_iso(),
        source=seed.source or "Unknown Provider",
        patient=PatientMetadata(
            name=patient.name or UNKNOWN,
            birth_date=patient.birth_date,
            personal_number=patient.personal_number,
        ),
        export_info=ExportInfo(
            total_entries=len(entries),
            date_range=compute_date_range(entries),
            healthcare_providers=collect_providers(entries),
        ),
    )
    log.debug(f"[eir] assembled {len(entries)} entries from {metadata.source}")
    return CanonicalDocument(metadata=metadata, entries=entries)


# ---- EIR text (YAML) ----

class _Quoted(str):
    pass


class _EirDumper(yaml.SafeDumper):
    # indent block sequences under their parent key
    def increase_indent(self, flow: bool = False, indentless: bool = False):
        return super().increase_indent(flow, False)


def _represent_quoted(dumper: yaml.SafeDumper, data: _Quoted) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style='"')


_EirDumper.add_representer(_Quoted, _represent_quoted)


def _quote_values(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _quote_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_quote_values(v) for v in obj]
    if isinstance(obj, str):
        return _Quoted(obj)
    return obj


def serialize(document: CanonicalDocument) -> str:
    data: Dict[str, Any] = _quote_values(document.model_dump(mode="json"))
    return yaml.dump(
        data,
        Dumper=_EirDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=2,
        width=float("inf"),
    )


def deserialize(text: str) -> CanonicalDocument:
    return CanonicalDocument.model_validate(yaml.safe_load(text) or {})
