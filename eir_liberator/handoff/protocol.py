"""
Handoff of an EIR document to the remote viewer (eir.space).

    IDLE -> STORED -> AWAITING_PEER -> DELIVERED
                                    \\-> EXPIRED | ABORTED

The viewer is opened at <origin>/view?key=<key>. While it loads we ping it
once per poll interval; it answers with EIR_SPACE_READY or REQUEST_EIR_DATA
carrying the key, and we reply with the stored document. Messages from any
origin other than the configured one are dropped without a trace; this
origin check is the only authorization there is.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from .store import TransferStore
from .transport import Surface, Transport
from ..canonical.schema import CanonicalDocument
from ..utils.clock import Clock
from ..utils.config import HandoffSettings
from ..utils.logger import get_logger

log = get_logger("handoff.protocol")


class HandoffState(str, Enum):
    IDLE = "idle"
    STORED = "stored"
    AWAITING_PEER = "awaiting_peer"
    DELIVERED = "delivered"
    EXPIRED = "expired"
    ABORTED = "aborted"


class MessageType(str, Enum):
    PING = "EIR_PLUGIN_PING"
    READY = "EIR_SPACE_READY"
    REQUEST = "REQUEST_EIR_DATA"
    RESPONSE = "EIR_DATA_RESPONSE"


REQUEST_TYPES = (MessageType.READY.value, MessageType.REQUEST.value)


class HandoffError(RuntimeError):
    """User-visible handoff failure (nothing stored, viewer could not open)."""


class HandoffProtocol:
    def __init__(
        self,
        transfers: TransferStore,
        transport: Transport,
        clock: Optional[Clock] = None,
        settings: Optional[HandoffSettings] = None,
    ) -> None:
        self.settings = settings or HandoffSettings()
        self.transfers = transfers
        self.transport = transport
        self.clock = clock or transfers.clock
        self.remote_origin = self.settings.remote_origin.rstrip("/")
        self.state = HandoffState.IDLE
        self.key: Optional[str] = None
        self.surface: Optional[Surface] = None
        self.responses_sent = 0

    # ---- extracting side ----
    def store(self, document: CanonicalDocument) -> str:
        record = self.transfers.put(document)
        self.key = record.key
        self.surface = None
        self.state = HandoffState.STORED
        return record.key

    def viewer_url(self) -> str:
        return f"{self.remote_origin}{self.settings.view_path}?{urlencode({'key': self.key})}"

    def initiate_transfer(self) -> str:
        if self.key is None:
            raise HandoffError("No data available for transfer")
        if self.transfers.get_raw(self.key) is None:
            self.state = HandoffState.EXPIRED
            raise HandoffError("Stored data has expired; run the export again")

        url = self.viewer_url()
        surface = self.transport.open(url)
        if surface is None:
            raise HandoffError("Failed to open eir.space tab. Please check popup blockers.")
        self.surface = surface
        self.state = HandoffState.AWAITING_PEER
        log.info(f"[handoff] opened viewer at {url}")
        return url

    async def await_peer(self) -> HandoffState:
        """
        Ping the viewer until it has been served, it is closed, or
        poll_timeout elapses. The timeout leaves the state untouched.
        """
        if self.state is not HandoffState.AWAITING_PEER or self.surface is None:
            return self.state
        deadline = self.clock.now() + self.settings.poll_timeout
        while self.state is HandoffState.AWAITING_PEER:
            try:
                if self.surface.closed:
                    log.info("[handoff] viewer closed before requesting data")
                    self.state = HandoffState.ABORTED
                    break
                self.surface.post({"type": MessageType.PING.value, "key": self.key}, self.remote_origin)
            except Exception as exc:  # noqa: BLE001 - viewer may still be loading
                log.debug(f"[handoff] waiting for viewer to load: {exc}")
            self.pump()
            if self.state is not HandoffState.AWAITING_PEER:
                break
            if self.clock.now() >= deadline:
                log.info(f"[handoff] no request after {self.settings.poll_timeout:.0f}s, stopped pinging")
                break
            await self.clock.sleep(self.settings.poll_interval)
        return self.state

    async def serve_until_closed(self, timeout: Optional[float] = None) -> int:
        """
        Keep answering viewer requests (late ones, repeats after a reload)
        until the viewer is closed or `timeout` seconds pass. Returns the
        number of responses sent while serving.
        """
        if self.surface is None:
            return 0
        sent = 0
        deadline = None if timeout is None else self.clock.now() + timeout
        while True:
            try:
                closed = self.surface.closed
            except Exception as exc:  # noqa: BLE001 - browser gone counts as closed
                log.info(f"[handoff] viewer unreachable, stopped serving: {exc}")
                closed = True
            if closed:
                if self.state is HandoffState.AWAITING_PEER:
                    self.state = HandoffState.ABORTED
                break
            sent += self.pump()
            if deadline is not None and self.clock.now() >= deadline:
                break
            await self.clock.sleep(self.settings.poll_interval)
        log.info(f"[handoff] stopped serving viewer after {sent} responses")
        return sent

    def pump(self) -> int:
        """Dispatch inbound messages from the surface; returns responses sent."""
        if self.surface is None:
            return 0
        try:
            inbound = self.surface.drain()
        except Exception as exc:  # noqa: BLE001
            log.debug(f"[handoff] could not read inbound messages: {exc}")
            return 0
        return sum(1 for origin, message in inbound if self.on_peer_message(origin, message))

    # ---- message handling ----
    def on_peer_message(self, origin: str, message: Any, source: Optional[Surface] = None) -> bool:
        if origin != self.remote_origin:
            return False
        if not isinstance(message, Mapping):
            log.debug(f"[handoff] ignoring malformed message: {message!r}")
            return False
        mtype = message.get("type")
        if mtype not in REQUEST_TYPES:
            log.debug(f"[handoff] unknown message type: {mtype}")
            return False
        return self._send_data(source or self.surface, message.get("key"))

    def _send_data(self, target: Optional[Surface], requested_key: Any) -> bool:
        if self.key is None or requested_key != self.key:
            log.warning(f"[handoff] key mismatch: {requested_key!r} vs {self.key!r}")
            return False
        if target is None:
            log.error("[handoff] no viewer to answer")
            return False
        data = self.transfers.get_raw(self.key)
        if data is None:
            log.error(f"[handoff] no data found for key: {self.key}")
            self.state = HandoffState.EXPIRED
            return False
        target.post(
            {
                "type": MessageType.RESPONSE.value,
                "key": self.key,
                "data": data,
                "timestamp": self.clock.epoch_ms(),
            },
            self.remote_origin,
        )
        self.responses_sent += 1
        self.state = HandoffState.DELIVERED
        log.info("[handoff] EIR data sent to viewer")
        return True

    def cleanup(self) -> None:
        if self.key:
            self.transfers.remove(self.key)
        self.key = None
        self.surface = None
        self.state = HandoffState.IDLE
