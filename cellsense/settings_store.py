from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from cellsense.settings_schema import (
    IntellisenseSettings,
    NormalizedIntellisenseConfig,
    default_intellisense_settings,
    normalize_intellisense_settings,
)

SETTINGS_SECTION = "intellisense"


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be loaded or saved."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def _read_json_object(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise SettingsStoreError(f"Could not read settings file '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise SettingsStoreError(
            f"Settings root in '{path}' must be a JSON object, found {type(raw).__name__}."
        )
    return raw


def load_settings(path: Path | str) -> IntellisenseSettings:
    """Read intellisense settings from ``path``; a missing file yields the defaults.

    The file may hold the settings object itself or nest it under an
    ``"intellisense"`` key next to unrelated sections.
    """
    settings_path = Path(path)
    if not settings_path.exists():
        return default_intellisense_settings()
    raw = _read_json_object(settings_path)
    section = raw.get(SETTINGS_SECTION)
    if isinstance(section, dict):
        raw = section
    merged = deep_merge_defaults(raw, default_intellisense_settings())
    return normalize_intellisense_settings(merged)


def save_settings(path: Path | str, settings: Mapping[str, Any]) -> IntellisenseSettings:
    """Normalize ``settings`` and write them under the intellisense section of ``path``.

    Other top-level sections already present in the file are preserved.
    """
    settings_path = Path(path)
    normalized = normalize_intellisense_settings(dict(settings))
    document: dict[str, Any] = {}
    if settings_path.exists():
        document = _read_json_object(settings_path)
    document[SETTINGS_SECTION] = normalized
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
    except Exception as exc:
        raise SettingsStoreError(f"Could not write settings file '{settings_path}': {exc}") from exc
    return normalized


class IntellisenseSettingsStore:
    """JSON-backed intellisense settings with a dirty flag for editor preference pages."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.data: IntellisenseSettings = default_intellisense_settings()
        self.dirty = False
        self.last_error: str | None = None

    def load(self) -> IntellisenseSettings:
        try:
            self.data = load_settings(self.path)
        except SettingsStoreError as exc:
            # Previous values stay in effect.
            self.last_error = str(exc)
            raise
        self.last_error = None
        self.dirty = False
        return self.data

    def save(self) -> None:
        self.data = save_settings(self.path, self.data)
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        if self.data.get(key) == value:
            return False
        candidate = dict(self.data)
        candidate[str(key)] = value
        self.data = normalize_intellisense_settings(candidate)
        self.dirty = True
        return True

    def restore_defaults(self) -> None:
        self.data = default_intellisense_settings()
        self.dirty = True

    def config(self) -> NormalizedIntellisenseConfig:
        return NormalizedIntellisenseConfig.from_mapping(self.data)

    def snapshot(self) -> IntellisenseSettings:
        return deepcopy(self.data)
