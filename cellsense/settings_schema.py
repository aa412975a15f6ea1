from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict

from cellsense.core.declarations import DEFAULT_ESCAPE_DELIMITERS, DEFAULT_ESCAPE_TEMPLATE, FILTER_MODES
from cellsense.core.triggers import (
    DEFAULT_DIRECTIVE_PREFIXES,
    DEFAULT_DIRECTIVE_START_TEMPLATES,
    DirectiveGuard,
    TriggerSpec,
    TriggerTable,
    default_trigger_settings,
)
from cellsense.engine.messages import INTELLISENSE_REQUEST, REQUEST_KINDS


class IntellisenseSettings(TypedDict, total=False):
    enabled: bool
    request_kind: str
    filter_mode: str
    revalidation_interval_ms: int
    revalidate_on_idle: bool
    page_step: int
    escape_delimiters: list[str]
    escape_template: str
    directive_prefixes: list[str]
    directive_start_templates: list[str]
    triggers: list[dict[str, Any]]
    log_traffic: bool
    drop_stale_replies: bool


def default_intellisense_settings() -> IntellisenseSettings:
    return {
        "enabled": True,
        "request_kind": INTELLISENSE_REQUEST,
        "filter_mode": "prefix",
        "revalidation_interval_ms": 1000,
        "revalidate_on_idle": True,
        "page_step": 5,
        "escape_delimiters": list(DEFAULT_ESCAPE_DELIMITERS),
        "escape_template": DEFAULT_ESCAPE_TEMPLATE,
        "directive_prefixes": list(DEFAULT_DIRECTIVE_PREFIXES),
        "directive_start_templates": list(DEFAULT_DIRECTIVE_START_TEMPLATES),
        "triggers": default_trigger_settings(),
        "log_traffic": False,
        "drop_stale_replies": False,
    }


def _clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
    try:
        return max(low, min(high, int(value)))
    except Exception:
        return fallback


def _string_list(value: Any, fallback: list[str]) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return list(fallback)
    return [str(item) for item in value if isinstance(item, str) and item]


def _choice(value: Any, choices: Any, fallback: str) -> str:
    text = str(value or "").strip().lower()
    return text if text in choices else fallback


def normalize_intellisense_settings(raw: Any) -> IntellisenseSettings:
    defaults = default_intellisense_settings()
    data: dict[str, Any] = dict(defaults)
    if isinstance(raw, dict):
        for key, value in raw.items():
            data[str(key)] = value

    raw_triggers = data.get("triggers")
    if isinstance(raw_triggers, list):
        triggers = [dict(item) for item in raw_triggers if isinstance(item, dict) and TriggerSpec.from_mapping(item) is not None]
    else:
        triggers = defaults["triggers"]

    template = str(data.get("escape_template") or "")
    if "{}" not in template:
        template = defaults["escape_template"]

    return {
        "enabled": bool(data.get("enabled", defaults["enabled"])),
        "request_kind": _choice(data.get("request_kind"), REQUEST_KINDS, defaults["request_kind"]),
        "filter_mode": _choice(data.get("filter_mode"), FILTER_MODES, defaults["filter_mode"]),
        "revalidation_interval_ms": _clamp_int(data.get("revalidation_interval_ms"), 50, 60000, int(defaults["revalidation_interval_ms"])),
        "revalidate_on_idle": bool(data.get("revalidate_on_idle", defaults["revalidate_on_idle"])),
        "page_step": _clamp_int(data.get("page_step"), 1, 50, int(defaults["page_step"])),
        "escape_delimiters": _string_list(data.get("escape_delimiters"), defaults["escape_delimiters"]),
        "escape_template": template,
        "directive_prefixes": _string_list(data.get("directive_prefixes"), defaults["directive_prefixes"]),
        "directive_start_templates": _string_list(
            data.get("directive_start_templates"), defaults["directive_start_templates"]
        ),
        "triggers": triggers,
        "log_traffic": bool(data.get("log_traffic", defaults["log_traffic"])),
        "drop_stale_replies": bool(data.get("drop_stale_replies", defaults["drop_stale_replies"])),
    }


@dataclass(slots=True)
class NormalizedIntellisenseConfig:
    enabled: bool
    request_kind: str
    filter_mode: str
    revalidation_interval_ms: int
    revalidate_on_idle: bool
    page_step: int
    escape_delimiters: tuple[str, ...]
    escape_template: str
    directive_prefixes: tuple[str, ...]
    directive_start_templates: tuple[str, ...]
    triggers: tuple[dict[str, Any], ...]
    log_traffic: bool
    drop_stale_replies: bool

    @classmethod
    def from_mapping(cls, data: Any) -> "NormalizedIntellisenseConfig":
        n = normalize_intellisense_settings(data)
        return cls(
            enabled=bool(n["enabled"]),
            request_kind=str(n["request_kind"]),
            filter_mode=str(n["filter_mode"]),
            revalidation_interval_ms=int(n["revalidation_interval_ms"]),
            revalidate_on_idle=bool(n["revalidate_on_idle"]),
            page_step=int(n["page_step"]),
            escape_delimiters=tuple(n["escape_delimiters"]),
            escape_template=str(n["escape_template"]),
            directive_prefixes=tuple(n["directive_prefixes"]),
            directive_start_templates=tuple(n["directive_start_templates"]),
            triggers=tuple(dict(item) for item in n["triggers"]),
            log_traffic=bool(n["log_traffic"]),
            drop_stale_replies=bool(n["drop_stale_replies"]),
        )

    def directive_guard(self) -> DirectiveGuard:
        return DirectiveGuard(prefixes=self.directive_prefixes, start_templates=self.directive_start_templates)

    def trigger_table(self) -> TriggerTable:
        return TriggerTable.from_settings(self.triggers, guard=self.directive_guard())
