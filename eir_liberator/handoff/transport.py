"""
Message transport between the journal tab and the remote viewer.

The protocol only sees `Transport.open()` and the `Surface` it returns, so
the handshake can run against a real browser (SeleniumTransport) or an
in-memory fake.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from selenium.webdriver.remote.webdriver import WebDriver

from ..utils.logger import get_logger

log = get_logger("handoff.transport")

Inbound = Tuple[str, Any]  # (origin, message)


class Surface(ABC):
    """An opened remote viewer (a browser tab/window)."""

    @property
    @abstractmethod
    def closed(self) -> bool: ...

    @abstractmethod
    def post(self, message: Dict[str, Any], target_origin: str) -> None: ...

    @abstractmethod
    def drain(self) -> List[Inbound]:
        """Return and clear messages received since the last drain."""


class Transport(ABC):
    @abstractmethod
    def open(self, url: str) -> Optional[Surface]:
        """Open the viewer; None when it could not be opened (e.g. popup blocked)."""


_OPEN_JS = """
window.__eirInbox = window.__eirInbox || [];
if (!window.__eirListening) {
  window.addEventListener('message', function (e) {
    window.__eirInbox.push({origin: e.origin, data: e.data});
  });
  window.__eirListening = true;
}
window.__eirViewer = window.open(arguments[0], '_blank');
return !!window.__eirViewer;
"""
_CLOSED_JS = "return !window.__eirViewer || window.__eirViewer.closed;"
_POST_JS = "window.__eirViewer.postMessage(arguments[0], arguments[1]);"
_DRAIN_JS = "var q = window.__eirInbox || []; window.__eirInbox = []; return q;"


class SeleniumSurface(Surface):
    def __init__(self, driver: WebDriver) -> None:
        self.driver = driver

    @property
    def closed(self) -> bool:
        return bool(self.driver.execute_script(_CLOSED_JS))

    def post(self, message: Dict[str, Any], target_origin: str) -> None:
        self.driver.execute_script(_POST_JS, message, target_origin)

    def drain(self) -> List[Inbound]:
        items = self.driver.execute_script(_DRAIN_JS) or []
        return [(item.get("origin", ""), item.get("data")) for item in items if isinstance(item, dict)]


class SeleniumTransport(Transport):
    """
    Opens the viewer with window.open() from the journal tab, so the viewer
    can answer through window.opener.postMessage exactly as with the
    browser extension. Selenium stays attached to the journal tab.
    """

    def __init__(self, driver: WebDriver) -> None:
        self.driver = driver

    def open(self, url: str) -> Optional[Surface]:
        opened = self.driver.execute_script(_OPEN_JS, url)
        if not opened:
            log.error(f"[transport] window.open blocked for {url}")
            return None
        return SeleniumSurface(self.driver)
