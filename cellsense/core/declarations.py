"""Declaration and signature models backing the two intellisense popups.

Both models are independent of rendering: a renderer reads ``filtered()``,
``selected_index`` and ``visible`` and redraws whenever the owning session
emits its change signals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from cellsense.core.positions import Position
from cellsense.core.selectable_list import BoundaryPolicy, SelectableList
from cellsense.core.triggers import DirectiveGuard
from cellsense.editor import CellBuffer

DEFAULT_ESCAPE_DELIMITERS: tuple[str, ...] = (" ", "[", "]", ".")
DEFAULT_ESCAPE_TEMPLATE = "``{}``"


@dataclass(frozen=True)
class DeclarationItem:
    name: str
    value: str = ""
    glyph: int = 0
    documentation: str | None = None

    def __post_init__(self) -> None:
        if not self.value:
            object.__setattr__(self, "value", self.name)

    @staticmethod
    def from_match(raw: Any) -> "DeclarationItem | None":
        if isinstance(raw, str):
            return DeclarationItem(name=raw) if raw else None
        if not isinstance(raw, dict):
            return None
        name = str(raw.get("name") or raw.get("Name") or "")
        if not name:
            return None
        try:
            glyph = int(raw.get("glyph", raw.get("Glyph", 0)) or 0)
        except (TypeError, ValueError):
            glyph = 0
        doc = raw.get("documentation", raw.get("Documentation"))
        return DeclarationItem(
            name=name,
            value=str(raw.get("value") or raw.get("Value") or name),
            glyph=glyph,
            documentation=None if doc is None else str(doc),
        )


@dataclass(frozen=True)
class FilterState:
    anchor: Position
    text: str
    selected_index: int


FilterPredicate = Callable[[DeclarationItem, str], bool]


def prefix_match(item: DeclarationItem, lowered_filter: str) -> bool:
    return item.name.lower().startswith(lowered_filter)


def contains_match(item: DeclarationItem, lowered_filter: str) -> bool:
    return lowered_filter in item.name.lower()


FILTER_MODES: dict[str, FilterPredicate] = {
    "prefix": prefix_match,
    "contains": contains_match,
}


def filter_items(items: Iterable[DeclarationItem], text: str, predicate: FilterPredicate = prefix_match) -> list[DeclarationItem]:
    lowered = str(text or "").lower()
    return [item for item in items if predicate(item, lowered)]


def escape_value(
    value: str,
    delimiters: Iterable[str] = DEFAULT_ESCAPE_DELIMITERS,
    template: str = DEFAULT_ESCAPE_TEMPLATE,
) -> str:
    text = str(value or "")
    if any(delim and delim in text for delim in delimiters):
        return template.format(text)
    return text


class DeclarationModel:
    def __init__(
        self,
        *,
        filter_mode: str | FilterPredicate = "prefix",
        escape_delimiters: Iterable[str] = DEFAULT_ESCAPE_DELIMITERS,
        escape_template: str = DEFAULT_ESCAPE_TEMPLATE,
        guard: DirectiveGuard | None = None,
    ) -> None:
        self._candidates: list[DeclarationItem] = []
        self._view: SelectableList[DeclarationItem] = SelectableList(BoundaryPolicy.CLAMP)
        self._predicate: FilterPredicate = prefix_match
        self._filter_text = ""
        self.anchor = Position(0, 0)
        self.visible = False
        self.escape_delimiters = tuple(escape_delimiters)
        self.escape_template = str(escape_template or DEFAULT_ESCAPE_TEMPLATE)
        self.guard = guard or DirectiveGuard()
        self.set_filter_mode(filter_mode)

    # ---------- State ----------

    @property
    def candidates(self) -> list[DeclarationItem]:
        return list(self._candidates)

    @property
    def filter_text(self) -> str:
        return self._filter_text

    @property
    def selected_index(self) -> int:
        return self._view.selected_index

    def filtered(self) -> list[DeclarationItem]:
        return self._view.items

    def selected_item(self) -> DeclarationItem | None:
        return self._view.selected()

    def state(self) -> FilterState:
        return FilterState(anchor=self.anchor, text=self._filter_text, selected_index=self._view.selected_index)

    def set_filter_mode(self, mode: str | FilterPredicate) -> None:
        if callable(mode):
            self._predicate = mode
        elif str(mode) in FILTER_MODES:
            self._predicate = FILTER_MODES[str(mode)]
        self._recompute(reset_selection=False)

    def set_anchor(self, anchor: Position) -> None:
        self.anchor = anchor

    def set_anchor_column(self, column: int) -> None:
        self.anchor = Position(self.anchor.line, max(0, int(column)))

    # ---------- Operations ----------

    def set_candidates(self, items: Iterable[DeclarationItem]) -> None:
        self._candidates = [item for item in items if isinstance(item, DeclarationItem)]
        self._recompute(reset_selection=True)
        self.visible = not self._view.is_empty()

    def set_filter(self, text: str) -> None:
        value = str(text or "")
        changed = value != self._filter_text
        self._filter_text = value
        self._recompute(reset_selection=changed)
        if self._view.is_empty():
            self.visible = False

    def move(self, delta: int) -> int:
        return self._view.move(delta)

    def close(self) -> None:
        self.visible = False

    def filter_text_from(self, buffer: CellBuffer) -> str | None:
        """Line text between the anchor and the cursor, or None once the cursor left the span."""
        cursor = buffer.cursor()
        if cursor.line != self.anchor.line or cursor.column < self.anchor.column:
            return None
        return buffer.line_text(self.anchor.line)[self.anchor.column:cursor.column]

    def commit(self, buffer: CellBuffer) -> str | None:
        item = self._view.selected() if self.visible else None
        if item is None:
            self.close()
            return None
        cursor = buffer.cursor()
        if cursor.line != self.anchor.line or cursor.column < self.anchor.column:
            self.close()
            return None

        line_text = buffer.line_text(self.anchor.line)
        inserted = item.value
        # Directive arguments are paths, never identifiers.
        if not self.guard.is_directive_line(line_text):
            inserted = escape_value(inserted, self.escape_delimiters, self.escape_template)

        buffer.replace_range(self.anchor, Position(self.anchor.line, cursor.column), inserted)
        buffer.set_cursor(Position(self.anchor.line, self.anchor.column + len(inserted)))
        self.close()
        return inserted

    def _recompute(self, *, reset_selection: bool) -> None:
        self._view.set_items(
            filter_items(self._candidates, self._filter_text, self._predicate),
            keep_selection=not reset_selection,
        )


class SignatureModel:
    def __init__(self) -> None:
        self._signatures: SelectableList[str] = SelectableList(BoundaryPolicy.WRAP)
        self.visible = False

    @property
    def signatures(self) -> list[str]:
        return self._signatures.items

    @property
    def selected_index(self) -> int:
        return self._signatures.selected_index

    def selected(self) -> str | None:
        return self._signatures.selected()

    def set_signatures(self, labels: Iterable[str]) -> None:
        clean = [str(label) for label in labels or [] if str(label or "")]
        if not clean:
            return
        self._signatures.set_items(clean)
        self.visible = True

    def move(self, delta: int) -> int:
        return self._signatures.move(delta)

    def position_text(self) -> str:
        if self._signatures.is_empty():
            return ""
        return f"{self._signatures.selected_index + 1} of {len(self._signatures)}"

    def close(self) -> None:
        self.visible = False
