import asyncio
import time

from eir_liberator.canonical.formatter import assemble
from eir_liberator.canonical.schema import MetadataSeed
from eir_liberator.connectors.registry import default_registry
from eir_liberator.handoff.protocol import HandoffState
from eir_liberator.handoff.store import DAY_MS, JsonDirStore, MemoryStore
from eir_liberator.run import build_context, parse_args, serve_until_enter
from eir_liberator.utils.config import Settings
from fakes import FakePage, FakeSurface, FakeTransport


def test_parse_args_defaults():
    args = parse_args(["--url", "https://journalen.1177.se/"])
    assert args.url == "https://journalen.1177.se/"
    assert args.no_handoff is False
    assert args.headless is False
    assert args.login_wait == 300.0


def test_build_context_memory_store():
    ctx = build_context(FakePage(""), FakeTransport(), Settings())
    assert ctx.registry is default_registry
    assert isinstance(ctx.handoff.transfers.kv, MemoryStore)
    assert ctx.handoff.transfers.ttl_ms == DAY_MS
    assert ctx.connector() is not None


def test_build_context_persistent_store(tmp_path):
    settings = Settings()
    settings.handoff.store_dir = str(tmp_path / "store")
    settings.handoff.ttl_hours = 1
    ctx = build_context(FakePage(""), FakeTransport(), settings)
    assert isinstance(ctx.handoff.transfers.kv, JsonDirStore)
    assert ctx.handoff.transfers.ttl_ms == 60 * 60 * 1000
    assert (tmp_path / "store").is_dir()


def test_viewer_is_served_while_waiting_for_enter(monkeypatch):
    settings = Settings()
    settings.handoff.poll_interval = 0.01
    surface = FakeSurface()
    ctx = build_context(FakePage(""), FakeTransport(surface), settings)
    ctx.handoff.store(assemble([], MetadataSeed(created_at="2025-01-01T00:00:00.000Z")))
    ctx.handoff.initiate_transfer()
    surface.inbox.append(("https://eir.space", {"type": "REQUEST_EIR_DATA", "key": ctx.handoff.key}))

    monkeypatch.setattr("builtins.input", lambda prompt="": time.sleep(0.1))
    assert asyncio.run(serve_until_enter(ctx)) == 1
    assert ctx.handoff.state is HandoffState.DELIVERED
