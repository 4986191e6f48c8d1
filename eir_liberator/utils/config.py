from __future__ import annotations
import os, yaml
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

DEFAULT_REMOTE_ORIGIN = "https://eir.space"


def _env_expand(v: Any) -> Any:
    if isinstance(v, str):
        return os.path.expandvars(v)
    if isinstance(v, dict):
        return {k: _env_expand(x) for k, x in v.items()}
    if isinstance(v, list):
        return [_env_expand(x) for x in v]
    return v


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return _env_expand(data)


class ExtractionSettings(BaseModel):
    data_timeout: float = 10.0
    data_poll_interval: float = 1.0
    page_settle: float = 2.0
    max_load_more: int = 50
    expand_settle: float = 0.1
    min_entry_chars: int = 20


class HandoffSettings(BaseModel):
    remote_origin: str = DEFAULT_REMOTE_ORIGIN
    view_path: str = "/view"
    ttl_hours: float = 24.0
    poll_interval: float = 1.0
    poll_timeout: float = 30.0
    store_dir: Optional[str] = None


class Settings(BaseModel):
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    handoff: HandoffSettings = Field(default_factory=HandoffSettings)
    out_dir: str = "./exports"
    base_name: str = "journal-content"


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file, then apply env overrides
    (EIR_REMOTE_ORIGIN, EIR_STORE_DIR). Missing file -> FileNotFoundError.
    """
    data: Dict[str, Any] = {}
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config not found: {path}")
        data = load_yaml(path)
    settings = Settings.model_validate(data)

    origin = os.getenv("EIR_REMOTE_ORIGIN")
    if origin:
        settings.handoff.remote_origin = origin.rstrip("/")
    store_dir = os.getenv("EIR_STORE_DIR")
    if store_dir:
        settings.handoff.store_dir = store_dir
    return settings
