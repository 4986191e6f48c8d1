from __future__ import annotations
import os, orjson
from typing import Any


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def dumps_json(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def loads_json(data: str | bytes) -> Any:
    return orjson.loads(data)


def write_text(path: str, content: str) -> int:
    parent = os.path.dirname(path)
    if parent:
        ensure_dir(parent)
    with open(path, "w", encoding="utf-8") as f:
        return f.write(content)
