"""Quiet-period debounce for background revalidation.

Edits and engine-idle notifications mark the state as pending. The fixed-cadence
tick only fires once a whole tick interval has passed without another event:
the first tick after an event merely acknowledges it, the next one fires. A
continuous burst of events therefore never fires mid-burst and fires exactly
once, one to two ticks after it ends. A restartable single-shot timer fires on
a different cadence and is not a substitute.
"""

from __future__ import annotations

from enum import Enum

from PySide6.QtCore import QObject, QTimer, Signal


class RevalidationState(str, Enum):
    IDLE = "idle"
    PENDING_FIRST_TICK = "pending_first_tick"
    READY_TO_FIRE = "ready_to_fire"


class IdleRevalidationScheduler:
    def __init__(self) -> None:
        self.pending_change = False
        self.recent_change = False
        self.pending_idle = False
        self.recent_idle = False
        self.fired_count = 0

    @property
    def state(self) -> RevalidationState:
        if not (self.pending_change or self.pending_idle):
            return RevalidationState.IDLE
        if self.recent_change or self.recent_idle:
            return RevalidationState.PENDING_FIRST_TICK
        return RevalidationState.READY_TO_FIRE

    def note_change(self) -> None:
        self.pending_change = True
        self.recent_change = True

    def note_idle(self) -> None:
        self.pending_idle = True
        self.recent_idle = True

    def tick(self) -> bool:
        """Advance one cadence step; True when a revalidation should be issued now."""
        state = self.state
        if state == RevalidationState.IDLE:
            return False
        if state == RevalidationState.PENDING_FIRST_TICK:
            self.recent_change = False
            self.recent_idle = False
            return False
        self.reset()
        self.fired_count += 1
        return True

    def reset(self) -> None:
        self.pending_change = False
        self.recent_change = False
        self.pending_idle = False
        self.recent_idle = False


class RevalidationTimer(QObject):
    """Drives an ``IdleRevalidationScheduler`` from a repeating QTimer."""

    revalidationDue = Signal()

    DEFAULT_INTERVAL_MS = 1000

    def __init__(
        self,
        scheduler: IdleRevalidationScheduler | None = None,
        *,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.scheduler = scheduler if scheduler is not None else IdleRevalidationScheduler()
        self._timer = QTimer(self)
        self._timer.setInterval(max(50, int(interval_ms)))
        self._timer.timeout.connect(self._on_tick)

    def interval_ms(self) -> int:
        return int(self._timer.interval())

    def set_interval_ms(self, interval_ms: int) -> None:
        self._timer.setInterval(max(50, int(interval_ms)))

    def start(self) -> None:
        if not self._timer.isActive():
            self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self.scheduler.reset()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def _on_tick(self) -> None:
        if self.scheduler.tick():
            self.revalidationDue.emit()
