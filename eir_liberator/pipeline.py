"""
Pipeline entry points for the UI / CLI collaborator.

    run_with_handoff(ctx)       scrape -> normalize -> assemble -> store, exports ready
    run_without_handoff(ctx)    same, without storing for the viewer
    handoff_last_document(ctx)  open the viewer and serve the last document

Each returns a PipelineOutcome; failures are reported, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .canonical.export import ExportBundle, build_bundle
from .canonical.formatter import assemble
from .canonical.schema import CanonicalDocument, MetadataSeed
from .connectors.base import BaseConnector
from .connectors.page import Page
from .connectors.registry import ConnectorRegistry
from .handoff.protocol import HandoffError, HandoffProtocol, HandoffState
from .utils.clock import Clock
from .utils.config import Settings
from .utils.logger import get_logger

log = get_logger("pipeline")


class NoConnectorError(RuntimeError):
    pass


@dataclass
class PipelineOutcome:
    ok: bool
    message: str
    bundle: Optional[ExportBundle] = None
    viewer_url: Optional[str] = None


@dataclass
class PipelineContext:
    registry: ConnectorRegistry
    page: Page
    handoff: HandoffProtocol
    clock: Clock = field(default_factory=Clock)
    settings: Settings = field(default_factory=Settings)
    last_document: Optional[CanonicalDocument] = None
    last_bundle: Optional[ExportBundle] = None
    # document held under handoff.key
    handed_document: Optional[CanonicalDocument] = None

    def connector(self) -> Optional[BaseConnector]:
        return self.registry.get_active_connector(
            self.page.url, page=self.page, clock=self.clock, settings=self.settings.extraction,
        )


async def extract_document(ctx: PipelineContext) -> CanonicalDocument:
    connector = ctx.connector()
    if connector is None:
        raise NoConnectorError("No connector available for this page.")
    if not await connector.is_authenticated():
        log.warning(f"[pipeline] {connector.provider_name}: page does not look logged in, continuing")

    raw_entries = await connector.scrape()
    records = connector.normalize(raw_entries)
    patient = connector.get_patient_metadata()
    document = assemble(records, MetadataSeed(source=connector.provider_name, patient=patient))

    ctx.last_document = document
    ctx.last_bundle = build_bundle(document, ctx.page.url)
    log.info(f"[pipeline] assembled {document.metadata.export_info.total_entries} entries")
    return document


def _store_for_handoff(ctx: PipelineContext, document: CanonicalDocument) -> str:
    """Store `document` under a fresh key, dropping any record it replaces."""
    if ctx.handoff.key is not None:
        ctx.handoff.cleanup()
    key = ctx.handoff.store(document)
    ctx.handed_document = document
    return key


def _needs_store(ctx: PipelineContext) -> bool:
    handoff = ctx.handoff
    return (
        handoff.key is None
        or ctx.handed_document is not ctx.last_document
        or handoff.transfers.is_expired(handoff.key)
    )


async def _run(ctx: PipelineContext, store_for_handoff: bool) -> PipelineOutcome:
    try:
        document = await extract_document(ctx)
        if store_for_handoff:
            _store_for_handoff(ctx, document)
    except NoConnectorError as exc:
        log.error(f"[pipeline] {exc}")
        return PipelineOutcome(False, str(exc))
    except Exception as exc:  # noqa: BLE001 - reported to the collaborator
        log.exception(f"[pipeline] error downloading journal content: {exc}")
        return PipelineOutcome(False, "Error downloading journal content. Please try again.")
    message = "Ready!" if store_for_handoff else "Files Downloaded!"
    return PipelineOutcome(True, message, bundle=ctx.last_bundle)


async def run_with_handoff(ctx: PipelineContext) -> PipelineOutcome:
    return await _run(ctx, store_for_handoff=True)


async def run_without_handoff(ctx: PipelineContext) -> PipelineOutcome:
    return await _run(ctx, store_for_handoff=False)


async def handoff_last_document(ctx: PipelineContext) -> PipelineOutcome:
    handoff = ctx.handoff
    try:
        if ctx.last_document is None:
            raise HandoffError("No data available. Please download journals first.")
        if _needs_store(ctx):
            _store_for_handoff(ctx, ctx.last_document)
        url = handoff.initiate_transfer()
        state = await handoff.await_peer()
    except HandoffError as exc:
        log.error(f"[pipeline] error transferring to viewer: {exc}")
        return PipelineOutcome(False, f"Error opening eir.space: {exc}")
    except Exception as exc:  # noqa: BLE001
        log.exception(f"[pipeline] unexpected handoff failure: {exc}")
        return PipelineOutcome(False, f"Error opening eir.space: {exc}")

    if state is HandoffState.DELIVERED:
        return PipelineOutcome(True, "Opened eir.space!", bundle=ctx.last_bundle, viewer_url=url)
    if state is HandoffState.AWAITING_PEER:
        return PipelineOutcome(True, "Opened eir.space, waiting for it to request data", viewer_url=url)
    if state is HandoffState.EXPIRED:
        return PipelineOutcome(False, "Stored data expired before eir.space requested it", viewer_url=url)
    return PipelineOutcome(False, "eir.space was closed before receiving data", viewer_url=url)
