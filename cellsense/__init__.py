"""Kernel intellisense front end for multi-cell notebook editors."""

from .coordinator import RequestCoordinator
from .editor import CellBuffer, Marker, Notebook, NotebookHost, TextCell
from .engine import EngineChannel
from .session import EditorSession
from .settings_schema import (
    IntellisenseSettings,
    NormalizedIntellisenseConfig,
    default_intellisense_settings,
    normalize_intellisense_settings,
)
from .settings_store import IntellisenseSettingsStore, SettingsStoreError, load_settings, save_settings

__version__ = "0.1.0"

__all__ = [
    "CellBuffer",
    "EditorSession",
    "EngineChannel",
    "IntellisenseSettings",
    "IntellisenseSettingsStore",
    "Marker",
    "NormalizedIntellisenseConfig",
    "Notebook",
    "NotebookHost",
    "RequestCoordinator",
    "SettingsStoreError",
    "TextCell",
    "default_intellisense_settings",
    "load_settings",
    "normalize_intellisense_settings",
    "save_settings",
]
