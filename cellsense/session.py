from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from cellsense.core.declarations import DeclarationModel, SignatureModel
from cellsense.core.diagnostics import DiagnosticReconciler
from cellsense.core.positions import position_for_offset
from cellsense.core.scheduler import RevalidationTimer
from cellsense.core.triggers import (
    PHASE_UP,
    TARGET_DECLARATIONS,
    TARGET_SIGNATURES,
    Intent,
    IntentKind,
    KeyEvent,
    PopupKind,
    TriggerTable,
    evaluate,
)
from cellsense.coordinator import RequestCoordinator
from cellsense.editor import CellBuffer, NotebookHost
from cellsense.engine.channel import EngineChannel
from cellsense.engine.messages import CompletionReply, RequestEnvelope
from cellsense.settings_schema import NormalizedIntellisenseConfig


class EditorSession(QObject):
    """Intellisense state for one cell editor.

    The host forwards key events through ``handle_key_event`` (and honours
    its return value as "prevent default"), reports edits through
    ``notify_buffer_changed``, and renders the two models whenever the change
    signals fire. Engine idle broadcasts reach the revalidation scheduler of
    the session editing the notebook's active cell.
    """

    popupChanged = Signal(str)
    declarationsChanged = Signal()
    signaturesChanged = Signal()
    completionCommitted = Signal(str)
    statusMessage = Signal(str)

    def __init__(
        self,
        notebook: NotebookHost,
        buffer: CellBuffer,
        channel: EngineChannel,
        config: NormalizedIntellisenseConfig | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._notebook = notebook
        self._buffer = buffer
        self._channel = channel
        self._config = config or NormalizedIntellisenseConfig.from_mapping({})
        self._table = TriggerTable()
        self._last_popup = PopupKind.NONE

        self.declarations = DeclarationModel()
        self.signatures = SignatureModel()
        self.reconciler = DiagnosticReconciler(notebook)
        self.coordinator = RequestCoordinator(channel, self.reconciler, self._config, parent=self)
        self.revalidation = RevalidationTimer(interval_ms=self._config.revalidation_interval_ms, parent=self)

        self.coordinator.declarationsReceived.connect(self._on_declarations)
        self.coordinator.signaturesReceived.connect(self._on_signatures)
        self.coordinator.statusMessage.connect(self.statusMessage)
        self.revalidation.revalidationDue.connect(self.revalidate)
        self._channel.engineIdle.connect(self.notify_engine_idle)
        self._channel.statusMessage.connect(self.statusMessage)

        self.apply_config(self._config)

    # ---------- Configuration ----------

    @property
    def config(self) -> NormalizedIntellisenseConfig:
        return self._config

    @property
    def trigger_table(self) -> TriggerTable:
        return self._table

    @property
    def buffer(self) -> CellBuffer:
        return self._buffer

    def apply_config(self, config: NormalizedIntellisenseConfig) -> None:
        self._config = config
        guard = config.directive_guard()
        self._table = config.trigger_table()
        self.declarations.set_filter_mode(config.filter_mode)
        self.declarations.escape_delimiters = tuple(config.escape_delimiters)
        self.declarations.escape_template = config.escape_template
        self.declarations.guard = guard
        self.coordinator.update_config(config)
        self.revalidation.set_interval_ms(config.revalidation_interval_ms)
        if config.enabled:
            self.revalidation.start()
        else:
            self.revalidation.stop()
            self.dismiss()

    def shutdown(self) -> None:
        self.revalidation.stop()
        self.dismiss()

    # ---------- State ----------

    def is_active_cell(self) -> bool:
        cells = list(self._notebook.cells())
        active = int(self._notebook.active_index())
        return 0 <= active < len(cells) and cells[active] is self._buffer

    def popup(self) -> PopupKind:
        if self.declarations.visible:
            return PopupKind.DECLARATIONS
        if self.signatures.visible:
            return PopupKind.SIGNATURES
        return PopupKind.NONE

    # ---------- Host input ----------

    def handle_key_event(self, event: KeyEvent) -> bool:
        """Run one key event through the trigger table; True means the host should suppress the key."""
        if not self._config.enabled:
            return False
        if event.phase == PHASE_UP and self.declarations.visible:
            self.refresh_filter()

        cursor = self._buffer.cursor()
        intent = evaluate(
            event,
            self._table,
            line_text=self._buffer.line_text(cursor.line),
            popup=self.popup(),
            page_step=self._config.page_step,
        )
        if intent is None:
            return False
        self._dispatch(intent)
        return intent.prevent_default

    def notify_buffer_changed(self) -> None:
        self.revalidation.scheduler.note_change()

    def notify_engine_idle(self) -> None:
        # One revalidation per notebook: only the active cell's session reacts.
        if self._config.revalidate_on_idle and self.is_active_cell():
            self.revalidation.scheduler.note_idle()

    # ---------- Intents ----------

    def request_declarations(self) -> str | None:
        if not self._config.enabled:
            return None
        if self.declarations.visible:
            self.declarations.close()
            self._emit_popup_changed()
        self.declarations.set_anchor(self._buffer.cursor())
        return self.coordinator.request_completion(
            RequestEnvelope.from_notebook(self._notebook), False, TARGET_DECLARATIONS
        )

    def request_signatures(self) -> str | None:
        if not self._config.enabled:
            return None
        return self.coordinator.request_completion(
            RequestEnvelope.from_notebook(self._notebook), False, TARGET_SIGNATURES
        )

    def revalidate(self) -> str | None:
        if not self._config.enabled:
            return None
        return self.coordinator.request_completion(RequestEnvelope.from_notebook(self._notebook), True)

    def refresh_filter(self) -> None:
        if not self.declarations.visible:
            return
        text = self.declarations.filter_text_from(self._buffer)
        if text is None:
            self.declarations.close()
        else:
            self.declarations.set_filter(text)
        self.declarationsChanged.emit()
        self._emit_popup_changed()

    def navigate(self, delta: int) -> None:
        popup = self.popup()
        if popup == PopupKind.DECLARATIONS:
            self.declarations.move(delta)
            self.declarationsChanged.emit()
        elif popup == PopupKind.SIGNATURES:
            self.signatures.move(delta)
            self.signaturesChanged.emit()

    def commit(self) -> str | None:
        if not self.declarations.visible:
            return None
        inserted = self.declarations.commit(self._buffer)
        self.declarationsChanged.emit()
        self._emit_popup_changed()
        if inserted is not None:
            self.completionCommitted.emit(inserted)
        return inserted

    def dismiss(self) -> None:
        was_open = self.popup() != PopupKind.NONE
        self.declarations.close()
        self.signatures.close()
        if was_open:
            self.declarationsChanged.emit()
            self.signaturesChanged.emit()
        self._emit_popup_changed()

    def _dispatch(self, intent: Intent) -> None:
        if intent.kind == IntentKind.OPEN_DECLARATIONS:
            self.request_declarations()
        elif intent.kind == IntentKind.OPEN_SIGNATURES:
            self.request_signatures()
        elif intent.kind == IntentKind.NAVIGATE:
            self.navigate(intent.delta)
        elif intent.kind == IntentKind.COMMIT:
            self.commit()
        elif intent.kind == IntentKind.DISMISS:
            self.dismiss()

    # ---------- Replies ----------

    def _on_declarations(self, reply: CompletionReply) -> None:
        if reply.filter_start is not None:
            self.declarations.set_anchor_column(reply.filter_start)
        elif reply.cursor_start is not None:
            # cursor_start counts characters from the start of the cell, like cursor_pos.
            self.declarations.set_anchor(position_for_offset(self._buffer.text(), reply.cursor_start))
        text = self.declarations.filter_text_from(self._buffer)
        if text is None:
            # Cursor already left the anchor span; nothing to show.
            return
        self.declarations.set_filter(text)
        self.declarations.set_candidates(reply.items)
        if self.declarations.visible:
            self.signatures.close()
            self.signaturesChanged.emit()
        self.declarationsChanged.emit()
        self._emit_popup_changed()

    def _on_signatures(self, reply: CompletionReply) -> None:
        self.signatures.set_signatures(reply.signatures)
        if self.signatures.visible:
            self.declarations.close()
            self.declarationsChanged.emit()
        self.signaturesChanged.emit()
        self._emit_popup_changed()

    def _emit_popup_changed(self) -> None:
        popup = self.popup()
        if popup != self._last_popup:
            self._last_popup = popup
            self.popupChanged.emit(popup.value)
