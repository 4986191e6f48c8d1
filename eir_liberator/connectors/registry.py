from __future__ import annotations
from typing import Any, List, Optional, Sequence, Type

from .base import BaseConnector
from ..utils.logger import get_logger

log = get_logger("connectors.registry")


class ConnectorRegistry:
    """
    Ordered connector classes plus at most one active instance.
    First match wins, so registration order is part of the contract.
    """

    def __init__(self) -> None:
        self._connectors: List[Type[BaseConnector]] = []
        self.active: Optional[BaseConnector] = None

    @property
    def connectors(self) -> Sequence[Type[BaseConnector]]:
        return tuple(self._connectors)

    def register(self, cls: Type[BaseConnector]) -> bool:
        if not getattr(cls, "provider_name", None) or not getattr(cls, "country", None):
            log.error(f"Invalid connector {cls!r}: missing provider_name or country")
            return False
        matches = getattr(cls, "matches", None)
        if not callable(matches) or getattr(matches, "__isabstractmethod__", False):
            log.error(f"Invalid connector {cls!r}: missing matches()")
            return False
        if cls in self._connectors:
            log.debug(f"Connector already registered: {cls.provider_name}")
            return True
        self._connectors.append(cls)
        log.info(f"Registered connector: {cls.provider_name} ({cls.country})")
        return True

    def find_connector(self, url: str) -> Optional[Type[BaseConnector]]:
        for cls in self._connectors:
            try:
                if cls.matches(url):
                    log.info(f"Found matching connector: {cls.provider_name}")
                    return cls
            except Exception as exc:  # noqa: BLE001 - a broken predicate must not hide the others
                log.error(f"Error checking connector {cls.provider_name}: {exc}")
        log.debug(f"No matching connector found for URL: {url}")
        return None

    def get_active_connector(self, url: str, **init_kwargs: Any) -> Optional[BaseConnector]:
        if self.active is not None:
            try:
                if type(self.active).matches(url):
                    return self.active
            except Exception as exc:  # noqa: BLE001
                log.error(f"Error re-checking active connector: {exc}")

        cls = self.find_connector(url)
        if cls is None:
            self.active = None
            return None
        try:
            self.active = cls(**init_kwargs)
        except Exception as exc:  # noqa: BLE001 - surfaces as "no active connector"
            log.error(f"Error creating connector instance {cls.provider_name}: {exc}")
            self.active = None
            return None
        log.info(f"Created connector instance: {cls.provider_name}")
        return self.active

    def clear_active_connector(self) -> None:
        self.active = None


default_registry = ConnectorRegistry()


def register(cls: Type[BaseConnector]) -> Type[BaseConnector]:
    """Class decorator: add a connector to the default registry."""
    default_registry.register(cls)
    return cls
