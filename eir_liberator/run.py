# eir_liberator/run.py
import argparse
import asyncio
import contextlib
import sys
from typing import List, Optional

from .canonical.export import write_bundle
from .connectors.page import SeleniumPage, make_chrome_driver
from .connectors.registry import ConnectorRegistry, default_registry
from .handoff.protocol import HandoffProtocol
from .handoff.store import JsonDirStore, MemoryStore, TransferStore
from .handoff.transport import SeleniumTransport
from .pipeline import (
    PipelineContext,
    handoff_last_document,
    run_with_handoff,
    run_without_handoff,
)
from .utils.clock import Clock, wait_until
from .utils.config import Settings, load_settings
from .utils.logger import get_logger

from . import connectors  # noqa: F401  (registers built-in connectors)

log = get_logger("eir-runner")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Export a patient journal to EIR and hand it to eir.space",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--url", required=True, help="Journal page to open (e.g. https://journalen.1177.se/)")
    p.add_argument("--config", "-c", default=None, help="Path to YAML config")
    p.add_argument("--out", default=None, help="Output directory for .txt/.eir files (overrides config)")
    p.add_argument("--no-handoff", action="store_true", help="Only write files, do not open eir.space")
    p.add_argument("--headless", action="store_true", help="Run Chrome headless (no manual login possible)")
    p.add_argument("--login-wait", type=float, default=300.0,
                   help="Seconds to wait for a journal page a connector recognises (time to log in)")
    return p.parse_args(argv)


def build_context(page: SeleniumPage, transport: SeleniumTransport, settings: Settings,
                  registry: ConnectorRegistry = default_registry) -> PipelineContext:
    clock = Clock()
    kv = JsonDirStore(settings.handoff.store_dir) if settings.handoff.store_dir else MemoryStore()
    transfers = TransferStore(kv, clock=clock, ttl_ms=int(settings.handoff.ttl_hours * 60 * 60 * 1000))
    handoff = HandoffProtocol(transfers, transport, clock=clock, settings=settings.handoff)
    return PipelineContext(registry=registry, page=page, handoff=handoff, clock=clock, settings=settings)


async def serve_until_enter(ctx: PipelineContext, prompt: str = "Press Enter to close the browser... ") -> int:
    """Answer viewer requests in the background until the user presses Enter."""
    serving = asyncio.ensure_future(ctx.handoff.serve_until_closed())
    try:
        await asyncio.to_thread(input, prompt)
    finally:
        serving.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await serving
    return ctx.handoff.responses_sent


async def _main(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    out_dir = args.out or settings.out_dir

    driver = make_chrome_driver(headless=args.headless)
    ctx: Optional[PipelineContext] = None
    try:
        driver.get(args.url)
        page = SeleniumPage(driver)
        ctx = build_context(page, SeleniumTransport(driver), settings)

        log.info(f"[runner] waiting up to {args.login_wait:.0f}s for a supported journal page (log in now)")
        found = await wait_until(
            lambda: ctx.registry.find_connector(page.url) is not None,
            timeout=args.login_wait,
            poll_interval=2.0,
            clock=ctx.clock,
        )
        if not found:
            log.error(f"[runner] no connector for {page.url}")
            return 2

        run = run_without_handoff if args.no_handoff else run_with_handoff
        outcome = await run(ctx)
        log.info(f"[runner] {outcome.message}")
        if not outcome.ok or outcome.bundle is None:
            return 1
        write_bundle(outcome.bundle, out_dir, settings.base_name)

        if args.no_handoff:
            return 0
        outcome = await handoff_last_document(ctx)
        log.info(f"[runner] {outcome.message}")
        if outcome.ok and not args.headless:
            await serve_until_enter(ctx)
        return 0 if outcome.ok else 1
    finally:
        try:
            if ctx is not None:
                ctx.handoff.cleanup()
        finally:
            driver.quit()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        log.warning("[runner] interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
