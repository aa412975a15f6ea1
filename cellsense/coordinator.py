from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from cellsense.core.diagnostics import DiagnosticBatch, DiagnosticReconciler
from cellsense.core.triggers import TARGET_DECLARATIONS, TARGET_SIGNATURES, TARGETS
from cellsense.engine.channel import EngineChannel
from cellsense.engine.messages import CompletionReply, RequestEnvelope
from cellsense.settings_schema import NormalizedIntellisenseConfig


class _CompletionHandler:
    """Reply handler registered with the channel for one outstanding request."""

    def __init__(self, owner: "RequestCoordinator", target: str, background: bool, generation: int) -> None:
        self._owner = owner
        self.target = target
        self.background = background
        self.generation = generation

    def on_reply(self, reply: CompletionReply) -> None:
        self._owner._on_reply(self, reply)

    def on_diagnostics(self, batch: DiagnosticBatch) -> None:
        self._owner.apply_diagnostics(batch)


class RequestCoordinator(QObject):
    """Sends completion/revalidation requests and fans replies out to the models.

    Every call sends; nothing is queued or cancelled, so replies land in
    arrival order and the last one wins. With ``drop_stale_replies`` enabled a
    foreground reply older than the newest foreground request is dropped.
    """

    declarationsReceived = Signal(object)
    signaturesReceived = Signal(object)
    diagnosticsApplied = Signal(int)
    statusMessage = Signal(str)

    def __init__(
        self,
        channel: EngineChannel,
        reconciler: DiagnosticReconciler,
        config: NormalizedIntellisenseConfig | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._channel = channel
        self._reconciler = reconciler
        self._generation = 0
        self._config = NormalizedIntellisenseConfig.from_mapping({})
        self.update_config(config or self._config)
        self._channel.diagnosticsBroadcast.connect(self.apply_diagnostics)

    @property
    def config(self) -> NormalizedIntellisenseConfig:
        return self._config

    def update_config(self, config: NormalizedIntellisenseConfig) -> None:
        self._config = config
        self._channel.set_log_traffic(config.log_traffic)

    def request_completion(
        self,
        envelope: RequestEnvelope,
        is_background: bool = False,
        target: str = TARGET_DECLARATIONS,
    ) -> str:
        if target not in TARGETS:
            target = TARGET_DECLARATIONS
        generation = self._generation
        if not is_background:
            self._generation += 1
            generation = self._generation
        handler = _CompletionHandler(self, target, bool(is_background), generation)
        return self._channel.request(self._config.request_kind, envelope.to_content(), handler)

    def apply_diagnostics(self, batch: DiagnosticBatch) -> None:
        try:
            applied = self._reconciler.apply(batch)
        except Exception as exc:
            self.statusMessage.emit(f"Could not apply diagnostics: {exc}")
            return
        self.diagnosticsApplied.emit(applied)

    def _on_reply(self, handler: _CompletionHandler, reply: CompletionReply) -> None:
        if handler.background:
            return
        if self._config.drop_stale_replies and handler.generation < self._generation:
            return
        if handler.target == TARGET_SIGNATURES:
            if reply.signatures:
                self.signaturesReceived.emit(reply)
            return
        if reply.items:
            self.declarationsReceived.emit(reply)
