"""Engine diagnostics: payload parsing and positional marker reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from cellsense.core.positions import Position
from cellsense.editor import Marker, NotebookHost

DIAGNOSTIC_TAG = "cellsense.diagnostic"
SEVERITIES = ("error", "warning", "info")


@dataclass(frozen=True)
class Diagnostic:
    cell_index: int
    start: Position
    end: Position
    message: str
    severity: str = "error"

    @staticmethod
    def from_payload(raw: Any) -> "Diagnostic | None":
        if not isinstance(raw, dict):
            return None
        try:
            cell_index = int(raw["CellNumber"])
            start = Position(int(raw["StartLine"]), int(raw["StartColumn"]))
            end = Position(int(raw["EndLine"]), int(raw["EndColumn"]))
        except (KeyError, TypeError, ValueError):
            return None
        severity = str(raw.get("Severity") or "error").strip().lower()
        if severity not in SEVERITIES:
            severity = "error"
        return Diagnostic(
            cell_index=cell_index,
            start=start,
            end=end,
            message=str(raw.get("Message") or ""),
            severity=severity,
        )


@dataclass(frozen=True)
class DiagnosticBatch:
    diagnostics: tuple[Diagnostic, ...] = ()

    def __len__(self) -> int:
        return len(self.diagnostics)

    @staticmethod
    def from_errors(errors: Iterable[Any]) -> "DiagnosticBatch":
        parsed = (Diagnostic.from_payload(item) for item in errors or [])
        return DiagnosticBatch(tuple(diag for diag in parsed if diag is not None))


class DiagnosticReconciler:
    def __init__(self, notebook: NotebookHost, tag: str = DIAGNOSTIC_TAG) -> None:
        self._notebook = notebook
        self.tag = str(tag or DIAGNOSTIC_TAG)
        self.applied_count = 0
        self.skipped_count = 0

    def clear(self) -> int:
        removed = 0
        for cell in self._notebook.cells():
            removed += int(cell.clear_markers(self.tag) or 0)
        return removed

    def apply(self, batch: DiagnosticBatch | Iterable[Diagnostic]) -> int:
        diagnostics = batch.diagnostics if isinstance(batch, DiagnosticBatch) else tuple(batch)
        self.clear()

        cells = list(self._notebook.cells())
        applied = 0
        skipped = 0
        for diag in diagnostics:
            if diag.cell_index < 0 or diag.cell_index >= len(cells):
                skipped += 1
                continue
            cells[diag.cell_index].add_marker(
                Marker(
                    tag=self.tag,
                    start=diag.start,
                    end=diag.end,
                    title=diag.message,
                    severity=diag.severity,
                )
            )
            applied += 1

        self.applied_count = applied
        self.skipped_count = skipped
        return applied
