"""Engine wire messages: request envelopes, reply-shape adapters, diagnostics payloads."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from cellsense.core.declarations import DeclarationItem
from cellsense.core.diagnostics import DiagnosticBatch
from cellsense.core.positions import offset_for_position
from cellsense.editor import NotebookHost

INTELLISENSE_REQUEST = "intellisense_request"
COMPLETE_REQUEST = "complete_request"
REQUEST_KINDS = (INTELLISENSE_REQUEST, COMPLETE_REQUEST)

PROTOCOL_VERSION = "5.3"


class ReplyFormatError(ValueError):
    """Raised when an engine reply matches neither accepted shape."""


@dataclass(frozen=True)
class RequestEnvelope:
    cell_texts: tuple[str, ...]
    active_index: int
    line: int
    column: int
    offset: int

    @classmethod
    def from_notebook(cls, notebook: NotebookHost) -> "RequestEnvelope":
        cells = list(notebook.cells())
        texts = tuple(str(cell.text() or "") for cell in cells)
        if not cells:
            return cls(cell_texts=texts, active_index=0, line=0, column=0, offset=0)
        active = max(0, min(len(cells) - 1, int(notebook.active_index())))
        cursor = cells[active].cursor()
        return cls(
            cell_texts=texts,
            active_index=active,
            line=int(cursor.line),
            column=int(cursor.column),
            offset=offset_for_position(texts[active], cursor),
        )

    def to_content(self) -> dict[str, Any]:
        return {
            "text": json.dumps(list(self.cell_texts)),
            "line": "",
            "block": json.dumps({"selectedIndex": self.active_index, "line": self.line, "ch": self.column}),
            "cursor_pos": self.offset,
        }


@dataclass(frozen=True)
class CompletionReply:
    items: tuple[DeclarationItem, ...] = ()
    signatures: tuple[str, ...] = ()
    filter_start: int | None = None
    cursor_start: int | None = None

    def is_empty(self) -> bool:
        return not self.items and not self.signatures


_PAYLOAD_KEYS = ("matches", "signatures", "methods")


def _optional_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _reply_from_content(content: dict[str, Any]) -> CompletionReply:
    matches = content.get("matches")
    raw_signatures = content.get("signatures", content.get("methods"))
    if not isinstance(matches, list) and not isinstance(raw_signatures, list):
        raise ReplyFormatError("reply has neither a matches nor a signatures array")

    items: tuple[DeclarationItem, ...] = ()
    if isinstance(matches, list):
        items = tuple(item for item in (DeclarationItem.from_match(raw) for raw in matches) if item is not None)

    signatures: tuple[str, ...] = ()
    if isinstance(raw_signatures, list):
        signatures = tuple(str(sig) for sig in raw_signatures if sig)

    return CompletionReply(
        items=items,
        signatures=signatures,
        filter_start=_optional_int(content.get("filter_start_index")),
        cursor_start=_optional_int(content.get("cursor_start")),
    )


class ReplyAdapter(Protocol):
    def normalize(self, raw: dict[str, Any]) -> CompletionReply: ...


class FlatReplyAdapter:
    """Replies carrying ``matches`` at the top level (older engine protocol)."""

    def normalize(self, raw: dict[str, Any]) -> CompletionReply:
        return _reply_from_content(raw)


class EnvelopedReplyAdapter:
    """Replies nesting the payload under ``content`` (full kernel messages)."""

    def normalize(self, raw: dict[str, Any]) -> CompletionReply:
        content = raw.get("content")
        if not isinstance(content, dict):
            raise ReplyFormatError("reply content is not an object")
        return _reply_from_content(content)


def select_reply_adapter(raw: Any) -> ReplyAdapter:
    if not isinstance(raw, dict):
        raise ReplyFormatError("reply is not an object")
    if isinstance(raw.get("content"), dict):
        return EnvelopedReplyAdapter()
    if any(key in raw for key in _PAYLOAD_KEYS):
        return FlatReplyAdapter()
    raise ReplyFormatError("unrecognized reply shape")


def normalize_reply(raw: Any) -> CompletionReply:
    return select_reply_adapter(raw).normalize(raw)


def is_reply_message(message: dict[str, Any]) -> bool:
    """True for direct replies: ``*_reply`` types, shell-channel messages, or bare flat payloads."""
    if message_type(message).endswith("_reply") or message.get("channel") == "shell":
        return True
    return any(key in message for key in _PAYLOAD_KEYS)


def diagnostics_from_message(raw: Any) -> DiagnosticBatch | None:
    if not isinstance(raw, dict):
        return None
    content = raw.get("content") if isinstance(raw.get("content"), dict) else raw
    data = content.get("data")
    if not isinstance(data, dict):
        return None
    errors = data.get("errors")
    if not isinstance(errors, list):
        return None
    return DiagnosticBatch.from_errors(errors)


def build_message(
    msg_type: str,
    content: dict[str, Any],
    *,
    session: str,
    username: str = "cellsense",
    channel: str = "shell",
) -> dict[str, Any]:
    return {
        "header": {
            "msg_id": uuid.uuid4().hex,
            "msg_type": str(msg_type),
            "session": str(session),
            "username": str(username),
            "date": datetime.now(timezone.utc).isoformat(),
            "version": PROTOCOL_VERSION,
        },
        "parent_header": {},
        "metadata": {},
        "content": content if isinstance(content, dict) else {},
        "channel": channel,
    }


def message_id(message: dict[str, Any]) -> str:
    header = message.get("header")
    if isinstance(header, dict):
        return str(header.get("msg_id") or "")
    return str(message.get("msg_id") or "")


def message_type(message: dict[str, Any]) -> str:
    header = message.get("header")
    if isinstance(header, dict) and header.get("msg_type"):
        return str(header.get("msg_type"))
    return str(message.get("msg_type") or "")


def parent_header(message: dict[str, Any]) -> dict[str, Any]:
    parent = message.get("parent_header")
    return parent if isinstance(parent, dict) else {}


def parent_message_id(message: dict[str, Any]) -> str:
    parent_id = parent_header(message).get("msg_id")
    if parent_id:
        return str(parent_id)
    return str(message.get("parent_id") or "")
