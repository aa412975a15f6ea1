"""Interfaces of the host collaborators plus a plain in-memory implementation.

The host notebook shell and its text widget are not part of cellsense. A host
exposes its cells through ``NotebookHost`` and each cell's text widget through
``CellBuffer``; ``TextCell``/``Notebook`` implement both over plain strings so
sessions can run headless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from cellsense.core.positions import Position, offset_for_position, position_for_offset


@dataclass(frozen=True)
class Marker:
    tag: str
    start: Position
    end: Position
    title: str = ""
    severity: str = ""


class CellBuffer(Protocol):
    def text(self) -> str: ...

    def line_text(self, line: int) -> str: ...

    def line_count(self) -> int: ...

    def cursor(self) -> Position: ...

    def set_cursor(self, position: Position) -> None: ...

    def replace_range(self, start: Position, end: Position, text: str) -> None: ...

    def add_marker(self, marker: Marker) -> None: ...

    def clear_markers(self, tag: str) -> int: ...

    def markers(self, tag: str | None = None) -> list[Marker]: ...


class NotebookHost(Protocol):
    def cells(self) -> Sequence[CellBuffer]: ...

    def active_index(self) -> int: ...


class TextCell:
    def __init__(self, text: str = "", cursor: Position | None = None) -> None:
        self._text = str(text or "")
        self._cursor = Position(0, 0)
        self._markers: list[Marker] = []
        self._listeners: list[Callable[[], None]] = []
        if cursor is not None:
            self.set_cursor(cursor)

    def on_change(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _lines(self) -> list[str]:
        return self._text.split("\n")

    def text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = str(text or "")
        self._cursor = self._cursor.clamped(self._lines())
        self._notify()

    def line_text(self, line: int) -> str:
        lines = self._lines()
        idx = int(line)
        if idx < 0 or idx >= len(lines):
            return ""
        return lines[idx]

    def line_count(self) -> int:
        return len(self._lines())

    def cursor(self) -> Position:
        return self._cursor

    def cursor_offset(self) -> int:
        return offset_for_position(self._text, self._cursor)

    def set_cursor(self, position: Position) -> None:
        self._cursor = position.clamped(self._lines())

    def replace_range(self, start: Position, end: Position, text: str) -> None:
        start_off = offset_for_position(self._text, start)
        end_off = offset_for_position(self._text, end)
        if end_off < start_off:
            start_off, end_off = end_off, start_off
        self._text = self._text[:start_off] + str(text or "") + self._text[end_off:]
        self._cursor = position_for_offset(self._text, start_off + len(str(text or "")))
        self._notify()

    def type_text(self, text: str) -> None:
        """Insert ``text`` at the cursor, as a keystroke would."""
        self.replace_range(self._cursor, self._cursor, text)

    def backspace(self) -> None:
        offset = self.cursor_offset()
        if offset <= 0:
            return
        self.replace_range(position_for_offset(self._text, offset - 1), self._cursor, "")

    def add_marker(self, marker: Marker) -> None:
        lines = self._lines()
        self._markers.append(
            Marker(
                tag=marker.tag,
                start=marker.start.clamped(lines),
                end=marker.end.clamped(lines),
                title=marker.title,
                severity=marker.severity,
            )
        )

    def clear_markers(self, tag: str) -> int:
        before = len(self._markers)
        self._markers = [m for m in self._markers if m.tag != tag]
        return before - len(self._markers)

    def markers(self, tag: str | None = None) -> list[Marker]:
        if tag is None:
            return list(self._markers)
        return [m for m in self._markers if m.tag == tag]

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()


class Notebook:
    def __init__(self, cells: Sequence[TextCell] | None = None, active_index: int = 0) -> None:
        self._cells: list[TextCell] = list(cells or [])
        self._active = 0
        self.set_active(active_index)

    def cells(self) -> list[TextCell]:
        return list(self._cells)

    def active_index(self) -> int:
        return self._active

    def active_cell(self) -> TextCell | None:
        if not self._cells:
            return None
        return self._cells[self._active]

    def set_active(self, index: int) -> None:
        if not self._cells:
            self._active = 0
            return
        self._active = max(0, min(len(self._cells) - 1, int(index)))

