from .declarations import DeclarationItem, DeclarationModel, FilterState, SignatureModel
from .diagnostics import DIAGNOSTIC_TAG, Diagnostic, DiagnosticBatch, DiagnosticReconciler
from .positions import Position
from .scheduler import IdleRevalidationScheduler, RevalidationState, RevalidationTimer
from .selectable_list import BoundaryPolicy, SelectableList
from .triggers import (
    DirectiveGuard,
    Intent,
    IntentKind,
    KeyEvent,
    PopupKind,
    TriggerSpec,
    TriggerTable,
    default_trigger_table,
    evaluate,
)

__all__ = [
    "BoundaryPolicy",
    "DIAGNOSTIC_TAG",
    "DeclarationItem",
    "DeclarationModel",
    "Diagnostic",
    "DiagnosticBatch",
    "DiagnosticReconciler",
    "DirectiveGuard",
    "FilterState",
    "IdleRevalidationScheduler",
    "Intent",
    "IntentKind",
    "KeyEvent",
    "PopupKind",
    "Position",
    "RevalidationState",
    "RevalidationTimer",
    "SelectableList",
    "SignatureModel",
    "TriggerSpec",
    "TriggerTable",
    "default_trigger_table",
    "evaluate",
]
