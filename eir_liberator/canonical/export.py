from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from .formatter import serialize
from .schema import UNKNOWN, CanonicalDocument
from ..utils.io import write_text
from ..utils.logger import get_logger

log = get_logger("eir.export")

RULE = "=" * 50


@dataclass
class ExportBundle:
    text: str   # human-readable journal
    eir: str    # serialized EIR document


def render_text(document: CanonicalDocument, page_url: Optional[str] = None) -> str:
    meta = document.metadata
    out: List[str] = [
        "",
        f"=== {meta.source.upper()} JOURNAL DOWNLOAD ===",
        f"Downloaded: {meta.created_at}",
        f"Patient: {meta.patient.name or UNKNOWN}",
        f"Total Entries: {len(document.entries)}",
        "",
        "========================================",
        "",
    ]
    for i, e in enumerate(document.entries, start=1):
        out.append(f"\n--- ENTRY {i} ---")
        out.append(f"Date: {e.date}")
        if e.time != UNKNOWN:
            out.append(f"Time: {e.time}")
        out.append(f"Title: {e.type}")
        out.append(f"Category: {e.category}")
        out.append(f"Provider: {e.provider.name}")
        out.append(f"Region: {e.provider.region}")
        out.append(f"Responsible: {e.responsible_person.name} ({e.responsible_person.role})")
        out.append(f"Status: {e.status}")
        out.append(f"\nSummary:\n{e.content.summary}")
        if e.content.details:
            out.append(f"\nDetails:\n{e.content.details}")
        if e.content.notes:
            out.append("\nNotes:")
            out.extend(f"  - {n}" for n in e.content.notes)
        if e.tags:
            out.append(f"\nTags: {', '.join(e.tags)}")
        out.append(f"\n{RULE}")

    out.append("\n\n=== PAGE METADATA ===")
    if page_url:
        out.append(f"URL: {page_url}")
    out.append(f"Download Time: {meta.created_at}")
    return "\n".join(out) + "\n"


def build_bundle(document: CanonicalDocument, page_url: Optional[str] = None) -> ExportBundle:
    return ExportBundle(text=render_text(document, page_url), eir=serialize(document))


def write_bundle(bundle: ExportBundle, out_dir: str, base_name: str = "journal-content") -> Dict[str, str]:
    paths = {
        "text": os.path.join(out_dir, f"{base_name}.txt"),
        "eir": os.path.join(out_dir, f"{base_name}.eir"),
    }
    n_txt = write_text(paths["text"], bundle.text)
    n_eir = write_text(paths["eir"], bundle.eir)
    log.info(f"[export] wrote {paths['text']} ({n_txt} chars), {paths['eir']} ({n_eir} chars)")
    return paths
