"""Key trigger models, the default trigger table, and intent evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from PySide6.QtCore import Qt

PHASE_DOWN = "down"
PHASE_UP = "up"
PHASES = (PHASE_DOWN, PHASE_UP)

TARGET_DECLARATIONS = "declarations"
TARGET_SIGNATURES = "signatures"
TARGETS = (TARGET_DECLARATIONS, TARGET_SIGNATURES)

GATE_NONE = "none"
GATE_DIRECTIVE_PREFIX = "directive_prefix"
GATE_DIRECTIVE_START = "directive_start"
GATES = (GATE_NONE, GATE_DIRECTIVE_PREFIX, GATE_DIRECTIVE_START)

DEFAULT_DIRECTIVE_PREFIXES: tuple[str, ...] = ("#load", "#r")
DEFAULT_DIRECTIVE_START_TEMPLATES: tuple[str, ...] = ('#load "', '#r "', '#load @"', '#r @"')

# Portable names for punctuation keys; anything else resolves through Qt.Key.Key_<Name>.
_SYMBOL_KEY_NAMES: dict[str, str] = {
    ".": "Period",
    ",": "Comma",
    "/": "Slash",
    "\\": "Backslash",
    '"': "QuoteDbl",
    "'": "Apostrophe",
    "(": "ParenLeft",
    ")": "ParenRight",
    "[": "BracketLeft",
    "]": "BracketRight",
    "<": "Less",
    ">": "Greater",
    ":": "Colon",
    " ": "Space",
    "+": "Plus",
}


def _qt_key(name: str) -> int:
    return int(getattr(Qt.Key, f"Key_{name}").value)


KEY_ESCAPE = _qt_key("Escape")
KEY_LEFT = _qt_key("Left")
KEY_RIGHT = _qt_key("Right")
KEY_UP = _qt_key("Up")
KEY_DOWN = _qt_key("Down")
KEY_PAGE_UP = _qt_key("PageUp")
KEY_PAGE_DOWN = _qt_key("PageDown")
KEY_RETURN = _qt_key("Return")
KEY_ENTER = _qt_key("Enter")
KEY_TAB = _qt_key("Tab")
KEY_BACKSPACE = _qt_key("Backspace")


def key_code_from_name(name: str) -> int | None:
    text = str(name or "")
    if not text:
        return None
    if text in _SYMBOL_KEY_NAMES:
        text = _SYMBOL_KEY_NAMES[text]
    elif len(text) == 1:
        text = text.upper()
    else:
        text = text[:1].upper() + text[1:]
    member = getattr(Qt.Key, f"Key_{text}", None)
    if member is None:
        return None
    return int(member.value)


class PopupKind(str, Enum):
    NONE = "none"
    DECLARATIONS = "declarations"
    SIGNATURES = "signatures"


class IntentKind(str, Enum):
    OPEN_DECLARATIONS = "open_declarations"
    OPEN_SIGNATURES = "open_signatures"
    DISMISS = "dismiss"
    NAVIGATE = "navigate"
    COMMIT = "commit"


@dataclass(frozen=True, slots=True)
class KeyEvent:
    key: int
    phase: str = PHASE_UP
    shift: bool = False
    ctrl: bool = False
    text: str = ""

    @staticmethod
    def from_qt(event: Any, phase: str) -> "KeyEvent":
        mods = event.modifiers()
        return KeyEvent(
            key=int(event.key()),
            phase=PHASE_DOWN if phase == PHASE_DOWN else PHASE_UP,
            shift=bool(mods & Qt.KeyboardModifier.ShiftModifier),
            ctrl=bool(mods & Qt.KeyboardModifier.ControlModifier),
            text=str(event.text() or ""),
        )


@dataclass(frozen=True, slots=True)
class TriggerSpec:
    key: int
    shift: bool = False
    ctrl: bool = False
    phase: str = PHASE_UP
    prevent_default: bool = False
    target: str = TARGET_DECLARATIONS
    gate: str = GATE_NONE

    def matches(self, event: KeyEvent) -> bool:
        return event.key == self.key and event.shift == self.shift and event.ctrl == self.ctrl

    def to_portable_text(self) -> str:
        parts: list[str] = []
        if self.ctrl:
            parts.append("Ctrl")
        if self.shift:
            parts.append("Shift")
        name = ""
        for member in Qt.Key:
            if int(member.value) == self.key:
                name = member.name.removeprefix("Key_")
                break
        parts.append(name or str(self.key))
        return "+".join(parts)

    @staticmethod
    def from_portable_text(chord_text: str, **options: Any) -> "TriggerSpec | None":
        text = str(chord_text or "")
        if not text.strip():
            return None
        if text.endswith("++"):
            tokens = [tok.strip() for tok in text[:-2].split("+") if tok.strip()] + ["+"]
        else:
            tokens = [tok.strip() or tok for tok in text.split("+") if tok]
        if not tokens:
            return None
        mods = {tok.lower() for tok in tokens[:-1]}
        key = key_code_from_name(tokens[-1])
        if key is None:
            return None
        return TriggerSpec(
            key=key,
            ctrl="ctrl" in mods,
            shift="shift" in mods,
            **options,
        )

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "TriggerSpec | None":
        if not isinstance(data, Mapping):
            return None
        phase = str(data.get("phase") or PHASE_UP).strip().lower()
        target = str(data.get("target") or TARGET_DECLARATIONS).strip().lower()
        gate = str(data.get("gate") or GATE_NONE).strip().lower()
        if phase not in PHASES or target not in TARGETS or gate not in GATES:
            return None
        return TriggerSpec.from_portable_text(
            str(data.get("key") or ""),
            phase=phase,
            target=target,
            gate=gate,
            prevent_default=bool(data.get("prevent_default", False)),
        )


@dataclass(frozen=True, slots=True)
class Intent:
    kind: IntentKind
    delta: int = 0
    prevent_default: bool = False
    trigger: TriggerSpec | None = None


@dataclass(frozen=True, slots=True)
class DirectiveGuard:
    prefixes: tuple[str, ...] = DEFAULT_DIRECTIVE_PREFIXES
    start_templates: tuple[str, ...] = DEFAULT_DIRECTIVE_START_TEMPLATES

    def is_directive_line(self, line_text: str) -> bool:
        text = str(line_text or "")
        return any(text.startswith(prefix) for prefix in self.prefixes)

    def allows(self, spec: TriggerSpec, line_text: str) -> bool:
        if spec.gate == GATE_DIRECTIVE_PREFIX:
            return self.is_directive_line(line_text)
        if spec.gate == GATE_DIRECTIVE_START:
            return str(line_text or "") in self.start_templates
        return True


@dataclass
class TriggerTable:
    """Ordered trigger lists partitioned by target and key phase."""

    guard: DirectiveGuard = field(default_factory=DirectiveGuard)
    _specs: dict[tuple[str, str], list[TriggerSpec]] = field(
        default_factory=lambda: {(target, phase): [] for target in TARGETS for phase in PHASES}
    )

    def add(self, spec: TriggerSpec) -> None:
        self._specs[(spec.target, spec.phase)].append(spec)

    def extend(self, specs: Iterable[TriggerSpec]) -> None:
        for spec in specs:
            self.add(spec)

    def specs_for(self, target: str, phase: str) -> list[TriggerSpec]:
        return list(self._specs.get((target, phase), []))

    def __len__(self) -> int:
        return sum(len(items) for items in self._specs.values())

    @classmethod
    def from_settings(cls, triggers: Iterable[Mapping[str, Any]], guard: DirectiveGuard | None = None) -> "TriggerTable":
        table = cls(guard=guard or DirectiveGuard())
        for raw in triggers or []:
            spec = TriggerSpec.from_mapping(raw)
            if spec is not None:
                table.add(spec)
        return table


def default_trigger_settings() -> list[dict[str, Any]]:
    return [
        {"key": ".", "target": TARGET_DECLARATIONS},
        {"key": "Ctrl+Space", "phase": PHASE_DOWN, "prevent_default": True, "target": TARGET_DECLARATIONS},
        {"key": "/", "target": TARGET_DECLARATIONS, "gate": GATE_DIRECTIVE_PREFIX},
        {"key": "\\", "target": TARGET_DECLARATIONS, "gate": GATE_DIRECTIVE_PREFIX},
        {"key": "'", "target": TARGET_DECLARATIONS, "gate": GATE_DIRECTIVE_START},
        {"key": 'Shift+"', "target": TARGET_DECLARATIONS, "gate": GATE_DIRECTIVE_START},
        {"key": "Shift+(", "target": TARGET_SIGNATURES},
        {"key": "Shift+)", "target": TARGET_SIGNATURES},
    ]


def default_trigger_table(guard: DirectiveGuard | None = None) -> TriggerTable:
    return TriggerTable.from_settings(default_trigger_settings(), guard=guard)


def _navigation_intent(event: KeyEvent, popup: PopupKind, page_step: int) -> Intent | None:
    key = event.key
    if key in (KEY_ESCAPE, KEY_LEFT, KEY_RIGHT):
        return Intent(IntentKind.DISMISS, prevent_default=key == KEY_ESCAPE)
    if key == KEY_UP:
        return Intent(IntentKind.NAVIGATE, delta=-1, prevent_default=True)
    if key == KEY_DOWN:
        return Intent(IntentKind.NAVIGATE, delta=1, prevent_default=True)
    if key == KEY_PAGE_UP:
        return Intent(IntentKind.NAVIGATE, delta=-page_step, prevent_default=True)
    if key == KEY_PAGE_DOWN:
        return Intent(IntentKind.NAVIGATE, delta=page_step, prevent_default=True)
    if popup == PopupKind.DECLARATIONS and key in (KEY_RETURN, KEY_ENTER, KEY_TAB):
        return Intent(IntentKind.COMMIT, prevent_default=True)
    return None


def evaluate(
    event: KeyEvent,
    table: TriggerTable,
    *,
    line_text: str = "",
    popup: PopupKind = PopupKind.NONE,
    page_step: int = 5,
) -> Intent | None:
    if popup != PopupKind.NONE and event.phase == PHASE_DOWN:
        nav = _navigation_intent(event, popup, max(1, int(page_step)))
        if nav is not None:
            return nav

    for target, kind in (
        (TARGET_DECLARATIONS, IntentKind.OPEN_DECLARATIONS),
        (TARGET_SIGNATURES, IntentKind.OPEN_SIGNATURES),
    ):
        for spec in table.specs_for(target, event.phase):
            if not spec.matches(event):
                continue
            # The first matching trigger ends the cycle even when its gate rejects the line.
            if not table.guard.allows(spec, line_text):
                return None
            return Intent(kind, prevent_default=spec.prevent_default, trigger=spec)
    return None
