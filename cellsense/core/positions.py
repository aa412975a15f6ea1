"""Cursor position dataclass and offset conversions shared by the models and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Position:
    line: int
    column: int

    def clamped(self, lines: list[str]) -> "Position":
        if not lines:
            return Position(0, 0)
        line = max(0, min(len(lines) - 1, int(self.line)))
        column = max(0, min(len(lines[line]), int(self.column)))
        return Position(line, column)


def offset_for_position(text: str, position: Position) -> int:
    lines = str(text or "").split("\n")
    pos = position.clamped(lines)
    return sum(len(line) + 1 for line in lines[: pos.line]) + pos.column


def position_for_offset(text: str, offset: int) -> Position:
    source = str(text or "")
    idx = max(0, min(len(source), int(offset)))
    head = source[:idx]
    line = head.count("\n")
    line_start = head.rfind("\n") + 1
    return Position(line, idx - line_start)
