"""
Pytest configuration and fixtures for cellsense tests.
"""

import os

import pytest
from hypothesis import Verbosity, settings
from PySide6.QtCore import QCoreApplication

from cellsense.core.positions import Position
from cellsense.editor import Notebook, TextCell
from cellsense.engine.channel import EngineChannel

settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal, deadline=None)
settings.register_profile("ci", max_examples=200, verbosity=Verbosity.normal, deadline=None)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """One QCoreApplication for the whole run; QObject signals and QTimer need it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class RecordingChannel(EngineChannel):
    """Engine channel that keeps every outgoing message instead of writing it anywhere."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.sent: list[dict] = []

    def _write(self, message):
        self.sent.append(message)

    def last_id(self) -> str:
        return self.sent[-1]["header"]["msg_id"]


def reply_for(msg_id: str, matches, **extra) -> dict:
    """Enveloped shell reply to the request ``msg_id``."""
    content = {"matches": matches, "status": "ok"}
    content.update(extra)
    return {
        "header": {"msg_id": f"reply-{msg_id}", "msg_type": "intellisense_reply"},
        "parent_header": {"msg_id": msg_id, "msg_type": "intellisense_request"},
        "content": content,
        "channel": "shell",
    }


def errors_for(msg_id: str, errors: list[dict], parent_type: str = "intellisense_request") -> dict:
    """iopub broadcast carrying engine diagnostics for the request ``msg_id``."""
    return {
        "header": {"msg_id": f"out-{msg_id}", "msg_type": "display_data"},
        "parent_header": {"msg_id": msg_id, "msg_type": parent_type},
        "content": {"data": {"errors": errors}},
        "channel": "iopub",
    }


def idle_for(msg_id: str, parent_type: str = "intellisense_request") -> dict:
    return {
        "header": {"msg_id": f"status-{msg_id}", "msg_type": "status"},
        "parent_header": {"msg_id": msg_id, "msg_type": parent_type},
        "content": {"execution_state": "idle"},
        "channel": "iopub",
    }


def error_entry(cell: int, start=(0, 0), end=(0, 1), message="boom", **extra) -> dict:
    entry = {
        "CellNumber": cell,
        "StartLine": start[0],
        "StartColumn": start[1],
        "EndLine": end[0],
        "EndColumn": end[1],
        "Message": message,
    }
    entry.update(extra)
    return entry


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def notebook():
    first = TextCell("let xs = [1; 2]\nxs.", cursor=Position(1, 3))
    second = TextCell("printfn \"hi\"")
    return Notebook([first, second], active_index=0)
