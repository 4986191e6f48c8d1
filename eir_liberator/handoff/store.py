"""
Scoped key-value storage for documents awaiting handoff.

Layout (same as the browser-side store the viewer expects):
    <key>          -> JSON-serialized CanonicalDocument
    <key>_expires  -> expiry as epoch-millis string
Expiry is checked lazily: an expired record is removed when it is read.
Nothing sweeps old records in the background.
"""
from __future__ import annotations

import os
import re
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Set

from ..canonical.schema import CanonicalDocument
from ..utils.clock import Clock
from ..utils.io import dumps_json, ensure_dir, loads_json
from ..utils.logger import get_logger

log = get_logger("handoff.store")

DAY_MS = 24 * 60 * 60 * 1000
EXPIRES_SUFFIX = "_expires"
_SAFE_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonDirStore(KeyValueStore):
    """One file per key under `root`; survives process restarts."""

    def __init__(self, root: str) -> None:
        self.root = root
        ensure_dir(root)

    def _path(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"unsafe store key: {key!r}")
        return os.path.join(self.root, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return loads_json(f.read())["value"]

    def set(self, key: str, value: str) -> None:
        with open(self._path(key), "w", encoding="utf-8") as f:
            f.write(dumps_json({"value": value}))

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


@dataclass
class TransferRecord:
    key: str
    document: CanonicalDocument
    created_at: int   # epoch ms
    expires_at: int   # epoch ms


class TransferStore:
    def __init__(self, kv: KeyValueStore, clock: Optional[Clock] = None, ttl_ms: int = DAY_MS) -> None:
        self.kv = kv
        self.clock = clock or Clock()
        self.ttl_ms = ttl_ms
        self._issued: Set[str] = set()

    def new_key(self) -> str:
        while True:
            key = f"eir_data_{self.clock.epoch_ms()}_{secrets.token_hex(8)}"
            if key not in self._issued and self.kv.get(key) is None:
                self._issued.add(key)
                return key

    def put(self, document: CanonicalDocument) -> TransferRecord:
        key = self.new_key()
        now = self.clock.epoch_ms()
        expires_at = now + self.ttl_ms
        self.kv.set(key, dumps_json(document.model_dump(mode="json")))
        self.kv.set(f"{key}{EXPIRES_SUFFIX}", str(expires_at))
        log.info(f"[store] EIR data stored with key: {key}")
        return TransferRecord(key=key, document=document, created_at=now, expires_at=expires_at)

    def is_expired(self, key: str) -> bool:
        raw = self.kv.get(f"{key}{EXPIRES_SUFFIX}")
        if raw is None:
            return True
        try:
            return self.clock.epoch_ms() > int(raw)
        except ValueError:
            log.warning(f"[store] unreadable expiry for {key}: {raw!r}")
            return True

    def get_raw(self, key: str) -> Optional[str]:
        """Stored JSON for `key`, or None when missing or expired."""
        if self.is_expired(key):
            if self.kv.get(key) is not None or self.kv.get(f"{key}{EXPIRES_SUFFIX}") is not None:
                log.info(f"[store] removing expired record: {key}")
                self.remove(key)
            return None
        return self.kv.get(key)

    def get(self, key: str) -> Optional[TransferRecord]:
        raw = self.get_raw(key)
        if raw is None:
            return None
        expires_at = int(self.kv.get(f"{key}{EXPIRES_SUFFIX}") or 0)
        return TransferRecord(
            key=key,
            document=CanonicalDocument.model_validate(loads_json(raw)),
            created_at=expires_at - self.ttl_ms,
            expires_at=expires_at,
        )

    def remove(self, key: str) -> None:
        self.kv.remove(key)
        self.kv.remove(f"{key}{EXPIRES_SUFFIX}")
        log.info(f"[store] data cleaned up for key: {key}")
