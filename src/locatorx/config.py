from __future__ import annotations

from dataclasses import dataclass, fields
import json
from pathlib import Path
from typing import Any, Mapping

CONFIG_DIR = Path.home() / ".locatorx"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    suggestion_limit: int = 12
    suggestion_threshold: int = 5
    text_match_threshold: int = 3
    name_limit: int = 50
    list_text_limit: int = 30
    max_class_tokens: int = 3
    internal_class_prefixes: tuple[str, ...] = ("sh-highlight",)
    host_attribute_limit: int = 50


DEFAULT_CONFIG = EngineConfig()


def engine_config_from_mapping(payload: Mapping[str, Any]) -> EngineConfig:
    values: dict[str, Any] = {}
    for item in fields(EngineConfig):
        if item.name not in payload:
            continue
        raw = payload[item.name]
        default = getattr(DEFAULT_CONFIG, item.name)
        if isinstance(default, tuple):
            if isinstance(raw, (list, tuple)) and all(isinstance(entry, str) for entry in raw):
                values[item.name] = tuple(raw)
            continue
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            continue
        values[item.name] = raw
    return EngineConfig(**values)


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    path = config_path or CONFIG_PATH
    if not path.exists() or not path.is_file():
        return DEFAULT_CONFIG

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, TypeError, UnicodeDecodeError):
        return DEFAULT_CONFIG

    if not isinstance(payload, dict):
        return DEFAULT_CONFIG

    return engine_config_from_mapping(payload)
