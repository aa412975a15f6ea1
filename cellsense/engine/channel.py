"""Engine channel with reply correlation keyed by message id."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Protocol

from PySide6.QtCore import QObject, Signal

from cellsense.core.diagnostics import DiagnosticBatch
from cellsense.engine.messages import (
    CompletionReply,
    ReplyFormatError,
    build_message,
    diagnostics_from_message,
    is_reply_message,
    message_id,
    message_type,
    normalize_reply,
    parent_header,
    parent_message_id,
)


class ReplyHandler(Protocol):
    def on_reply(self, reply: CompletionReply) -> None: ...

    def on_diagnostics(self, batch: DiagnosticBatch) -> None: ...


@dataclass
class _PendingRequest:
    msg_type: str
    handler: ReplyHandler


class EngineChannel(QObject):
    """Sends requests on an already-connected engine and routes what comes back.

    Incoming messages enter through ``deliver`` and outgoing ones leave through
    ``outgoing``; the host owns the kernel connection on both ends. The first
    direct reply removes the pending entry and resolves its ``on_reply``, so
    duplicates are dropped. Diagnostics go to the entry's ``on_diagnostics``
    while it is pending and to ``diagnosticsBroadcast`` otherwise. Nothing
    times out: a request that is never answered stays pending.
    """

    outgoing = Signal(object)
    diagnosticsBroadcast = Signal(object)
    engineIdle = Signal()
    statusMessage = Signal(str)
    trafficLogged = Signal(str, str)  # direction, payload

    def __init__(self, parent: QObject | None = None, *, username: str = "cellsense") -> None:
        super().__init__(parent)
        self.session_id = uuid.uuid4().hex
        self.username = str(username or "cellsense")
        self._pending: dict[str, _PendingRequest] = {}
        self._log_traffic = False

    def set_log_traffic(self, enabled: bool) -> None:
        self._log_traffic = bool(enabled)

    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, msg_id: str) -> bool:
        return str(msg_id or "") in self._pending

    def request(self, msg_type: str, content: dict[str, Any], handler: ReplyHandler) -> str:
        message = build_message(msg_type, content, session=self.session_id, username=self.username)
        msg_id = message_id(message)
        self._pending[msg_id] = _PendingRequest(msg_type=str(msg_type), handler=handler)
        self._send(message)
        return msg_id

    def deliver(self, message: object) -> None:
        if not isinstance(message, dict):
            return
        self._log_payload("in", message)

        mtype = message_type(message)
        parent_id = parent_message_id(message)

        if mtype == "status":
            self._handle_status(message, parent_id)
            return

        batch = diagnostics_from_message(message)
        if batch is not None:
            self._handle_diagnostics(batch, parent_id)
            return

        if is_reply_message(message):
            self._handle_reply(message, parent_id)

    # ---------- Internals ----------

    def _send(self, message: dict[str, Any]) -> None:
        try:
            self._write(message)
        except Exception as exc:
            self.statusMessage.emit(f"Engine write failed: {exc}")
            return
        self._log_payload("out", message)

    def _write(self, message: dict[str, Any]) -> None:
        self.outgoing.emit(message)

    def _handle_status(self, message: dict[str, Any], parent_id: str) -> None:
        content = message.get("content")
        state = str(content.get("execution_state") or "") if isinstance(content, dict) else ""
        if state != "idle":
            return
        if str(parent_header(message).get("msg_type") or "") == "execute_request":
            self.engineIdle.emit()

    def _handle_diagnostics(self, batch: DiagnosticBatch, parent_id: str) -> None:
        pending = self._pending.get(parent_id)
        if pending is None:
            self.diagnosticsBroadcast.emit(batch)
            return
        try:
            pending.handler.on_diagnostics(batch)
        except Exception as exc:
            self.statusMessage.emit(f"Diagnostics handler failed: {exc}")

    def _handle_reply(self, message: dict[str, Any], parent_id: str) -> None:
        pending = self._pending.pop(parent_id, None)
        if pending is None:
            return

        try:
            reply = normalize_reply(message)
        except ReplyFormatError:
            return
        try:
            pending.handler.on_reply(reply)
        except Exception as exc:
            self.statusMessage.emit(f"Reply handler failed: {exc}")

    def _log_payload(self, direction: str, payload: dict[str, Any]) -> None:
        if not self._log_traffic:
            return
        try:
            text = str(payload)
        except Exception:
            text = "<unprintable>"
        self.trafficLogged.emit(str(direction), text)

