from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional, List

UNKNOWN = "Unknown"
FORMAT_VERSION = "1.0"
MAX_NOTES = 10


def entry_id(index: int) -> str:
    """1-based ordinal id: entry_001, entry_002, ..."""
    return f"entry_{index + 1:03d}"


class RawEntry(BaseModel):
    """Provider-shaped text pulled from one journal entry region."""
    text: str = ""
    date: str = ""
    title: str = ""
    category: str = ""
    source: str = ""
    details: str = ""


class Provider(BaseModel):
    name: str = UNKNOWN
    region: str = UNKNOWN
    location: str = UNKNOWN


class ResponsiblePerson(BaseModel):
    name: str = UNKNOWN
    role: str = UNKNOWN


class EntryContent(BaseModel):
    summary: str = "Journal Entry"
    details: str = ""
    notes: List[str] = Field(default_factory=list)


class CanonicalRecord(BaseModel):
    id: str = ""
    date: str = UNKNOWN          # YYYY-MM-DD | Unknown
    time: str = UNKNOWN          # HH:MM | Unknown
    category: str = UNKNOWN
    type: str = UNKNOWN
    provider: Provider = Field(default_factory=Provider)
    status: str = UNKNOWN
    responsible_person: ResponsiblePerson = Field(default_factory=ResponsiblePerson)
    content: EntryContent = Field(default_factory=EntryContent)
    attachments: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class PatientMetadata(BaseModel):
    name: Optional[str] = None
    birth_date: Optional[str] = None
    personal_number: Optional[str] = None


class DateRange(BaseModel):
    start: str = UNKNOWN
    end: str = UNKNOWN


class ExportInfo(BaseModel):
    total_entries: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    healthcare_providers: List[str] = Field(default_factory=list)


class DocumentMetadata(BaseModel):
    format_version: str = FORMAT_VERSION
    created_at: str
    source: str = "Unknown Provider"
    patient: PatientMetadata = Field(default_factory=lambda: PatientMetadata(name=UNKNOWN))
    export_info: ExportInfo = Field(default_factory=ExportInfo)


class CanonicalDocument(BaseModel):
    metadata: DocumentMetadata
    entries: List[CanonicalRecord] = Field(default_factory=list)


class MetadataSeed(BaseModel):
    """Caller-supplied metadata; anything left None is defaulted by the formatter."""
    format_version: Optional[str] = None
    created_at: Optional[str] = None
    source: Optional[str] = None
    patient: Optional[PatientMetadata] = None
