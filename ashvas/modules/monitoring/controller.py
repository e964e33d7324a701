from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable

import structlog

from ashvas.core.config import Settings
from ashvas.modules.monitoring.constants import (
    CHECK_IN_GRACE_TOKEN,
    VIBRATION_CLEAR_TOKEN,
    EscalationMode,
    Severity,
    SosStatus,
    ToastSeverity,
    VibrationPattern,
)
from ashvas.modules.monitoring.models import EscalationState, utcnow
from ashvas.modules.monitoring.scheduler import TaskScheduler
from ashvas.modules.monitoring.schemas import Alert
from ashvas.modules.monitoring.sinks import SideEffectDispatcher

log = structlog.get_logger()

StateListener = Callable[[EscalationState], None]


@dataclass(frozen=True)
class EscalationPolicy:
    calming_vibration_seconds: float = 10.0
    check_in_vibration_seconds: float = 15.0
    emergency_vibration_seconds: float = 30.0
    check_in_grace_seconds: float = 60.0
    urgent_check_in_grace_seconds: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> EscalationPolicy:
        return cls(
            calming_vibration_seconds=settings.CALMING_VIBRATION_SECONDS,
            check_in_vibration_seconds=settings.CHECKIN_VIBRATION_SECONDS,
            emergency_vibration_seconds=settings.EMERGENCY_VIBRATION_SECONDS,
            check_in_grace_seconds=settings.CHECKIN_GRACE_SECONDS,
            urgent_check_in_grace_seconds=settings.URGENT_CHECKIN_GRACE_SECONDS,
        )

    def grace_for(self, alert: Alert) -> float:
        if alert.urgent:
            return min(self.urgent_check_in_grace_seconds, self.check_in_grace_seconds)
        return self.check_in_grace_seconds


class EscalationController:
    """
    State machine behind the calming / check-in / emergency ladder.

    Every entry point takes the controller lock, so timer expirations, SOS outcomes and user
    responses are serialized with alert processing. The state is passed in and returned;
    side effects go through the dispatcher and never block a transition.
    """

    def __init__(
        self,
        effects: SideEffectDispatcher,
        scheduler: TaskScheduler,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self._effects = effects
        self._scheduler = scheduler
        self._policy = policy or EscalationPolicy()
        self._lock = asyncio.Lock()
        self._listeners: list[StateListener] = []
        self._sos_sequence = 0

    @property
    def policy(self) -> EscalationPolicy:
        return self._policy

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # ========== Alerts ==========

    async def handle_alerts(
        self, state: EscalationState, alerts: Iterable[Alert]
    ) -> EscalationState:
        batch = list(alerts)
        if not batch:
            return state
        async with self._lock:
            self._apply_alerts(state, batch)
            self._changed(state)
        return state

    def _apply_alerts(self, state: EscalationState, alerts: list[Alert]) -> None:
        vibration_seconds = 0.0
        for alert in alerts:
            if alert.severity is Severity.MODERATE:
                self._effects.notify(
                    "Calming Response",
                    f"{alert.message}. Activating calming vibrations and mantra",
                )
                self._start_mantra(state)
                if state.mode is EscalationMode.IDLE:
                    self._transition(state, EscalationMode.CALMING, "moderate_alert", alert)
                vibration_seconds = max(vibration_seconds, self._policy.calming_vibration_seconds)
            elif alert.severity is Severity.HIGH:
                if state.mode in (EscalationMode.IDLE, EscalationMode.CALMING):
                    self._begin_check_in(state, alert)
                    vibration_seconds = max(
                        vibration_seconds, self._policy.check_in_vibration_seconds
                    )
                else:
                    self._queue_check_in(state, alert)

        if vibration_seconds:
            if state.mode is EscalationMode.EMERGENCY:
                # A calming pulse must not cut the emergency vibration short
                vibration_seconds = max(
                    vibration_seconds, self._policy.emergency_vibration_seconds
                )
            self._start_vibration(state, vibration_seconds, self._current_pattern(state))

    # ========== User inputs ==========

    async def respond_to_check_in(
        self, state: EscalationState, is_okay: bool, alert_id: str | None = None
    ) -> EscalationState:
        async with self._lock:
            active = state.active_alert
            if state.mode is not EscalationMode.AWAITING_CHECK_IN or active is None:
                log.info("check-in response ignored", reason="no_pending_check_in", mode=state.mode.value)
                return state
            if alert_id and alert_id != active.id:
                log.info("check-in response ignored", reason="stale_alert", alert_id=alert_id)
                return state

            self._scheduler.cancel(CHECK_IN_GRACE_TOKEN)
            if is_okay:
                self._resolve_check_in(state)
            else:
                self._enter_emergency(state, "user_requested_help")
            self._changed(state)
        return state

    async def acknowledge_emergency(self, state: EscalationState) -> EscalationState:
        async with self._lock:
            if state.mode is not EscalationMode.EMERGENCY:
                log.info("emergency acknowledgment ignored", mode=state.mode.value)
                return state
            self._transition(state, EscalationMode.IDLE, "emergency_acknowledged", state.active_alert)
            state.active_alert = None
            state.sos_status = SosStatus.NONE
            self._stop_vibration(state)
            self._effects.notify("Emergency Cleared", "Monitoring continues")
            self._present_next_check_in(state)
            self._changed(state)
        return state

    async def trigger_sos(self, state: EscalationState) -> EscalationState:
        async with self._lock:
            if state.mode is EscalationMode.EMERGENCY:
                log.info("manual sos ignored", reason="already_in_emergency")
                return state
            self._enter_emergency(state, "manual_sos")
            self._changed(state)
        return state

    async def toggle_mantra(self, state: EscalationState) -> EscalationState:
        async with self._lock:
            if state.mantra_playing:
                state.mantra_playing = False
                self._effects.stop_mantra()
                self._effects.notify("Mantra Stopped", "Calming session ended")
            else:
                self._start_mantra(state)
                self._effects.notify("Mantra Started", "Playing calming mantra")
            self._changed(state)
        return state

    async def set_paused(self, state: EscalationState, paused: bool) -> EscalationState:
        async with self._lock:
            if state.monitoring_paused == paused:
                return state
            state.monitoring_paused = paused
            log.info("monitoring paused" if paused else "monitoring resumed", mode=state.mode.value)
            self._changed(state)
        return state

    # ========== Timer callbacks ==========

    async def expire_check_in(self, state: EscalationState, alert_id: str) -> EscalationState:
        async with self._lock:
            active = state.active_alert
            if (
                state.mode is not EscalationMode.AWAITING_CHECK_IN
                or active is None
                or active.id != alert_id
            ):
                # A response already resolved this check-in
                log.info("check-in grace expiry ignored", alert_id=alert_id, mode=state.mode.value)
                return state
            log.warning("check-in grace period elapsed", alert_id=alert_id)
            self._enter_emergency(state, "check_in_timeout")
            self._changed(state)
        return state

    async def end_vibration(self, state: EscalationState) -> EscalationState:
        async with self._lock:
            if not state.vibration_active:
                return state
            state.vibration_active = False
            self._effects.stop_vibration()
            if state.mode is EscalationMode.CALMING:
                self._transition(state, EscalationMode.IDLE, "calming_complete", None)
            self._changed(state)
        return state

    async def _record_sos_outcome(
        self, state: EscalationState, sequence: int, delivered: bool
    ) -> None:
        async with self._lock:
            if sequence != self._sos_sequence or state.sos_status is not SosStatus.PENDING:
                log.info("sos outcome ignored", sequence=sequence, delivered=delivered)
                return
            # Emergency stays sticky whatever the dispatch outcome
            state.sos_status = SosStatus.SENT if delivered else SosStatus.FAILED
            self._changed(state)

    # ========== Transitions ==========

    def _begin_check_in(self, state: EscalationState, alert: Alert) -> None:
        grace_seconds = self._policy.grace_for(alert)
        self._transition(state, EscalationMode.AWAITING_CHECK_IN, "high_alert", alert)
        state.active_alert = alert
        state.check_in_deadline = utcnow() + timedelta(seconds=grace_seconds)
        self._effects.notify(
            "Check-In Required",
            f"{alert.message}. Are you okay? Emergency contacts will be notified "
            f"in {round(grace_seconds)} seconds without a response",
            ToastSeverity.WARNING,
        )
        self._scheduler.schedule(
            CHECK_IN_GRACE_TOKEN,
            grace_seconds,
            lambda: self.expire_check_in(state, alert.id),
        )

    def _queue_check_in(self, state: EscalationState, alert: Alert) -> None:
        # One pending check-in per metric; the newest reading replaces an older one in place
        for index, queued in enumerate(state.pending_check_ins):
            if queued.metric is alert.metric:
                state.pending_check_ins[index] = alert
                break
        else:
            state.pending_check_ins.append(alert)
        log.info(
            "check-in queued",
            alert_id=alert.id,
            metric=alert.metric.value,
            pending=len(state.pending_check_ins),
        )
        self._effects.notify(
            "Alert Queued",
            f"{alert.message}. You will be asked to check in once the current alert resolves",
            ToastSeverity.WARNING,
        )

    def _resolve_check_in(self, state: EscalationState) -> None:
        self._transition(state, EscalationMode.IDLE, "check_in_confirmed", state.active_alert)
        state.active_alert = None
        state.check_in_deadline = None
        self._stop_vibration(state)
        self._effects.notify("Check-In Confirmed", "Glad you're okay. Monitoring continues")
        self._present_next_check_in(state)

    def _present_next_check_in(self, state: EscalationState) -> None:
        if not state.pending_check_ins:
            return
        alert = state.pending_check_ins.popleft()
        self._begin_check_in(state, alert)
        self._start_vibration(state, self._policy.check_in_vibration_seconds, VibrationPattern.GENTLE)

    def _enter_emergency(self, state: EscalationState, reason: str) -> None:
        self._scheduler.cancel(CHECK_IN_GRACE_TOKEN)
        self._transition(state, EscalationMode.EMERGENCY, reason, state.active_alert)
        state.check_in_deadline = None
        state.sos_status = SosStatus.PENDING
        self._start_vibration(state, self._policy.emergency_vibration_seconds, VibrationPattern.STRONG)

        self._sos_sequence += 1
        sequence = self._sos_sequence

        async def _on_result(delivered: bool) -> None:
            await self._record_sos_outcome(state, sequence, delivered)

        self._effects.dispatch_sos(state.active_alert, _on_result)

    # ========== Side-effect helpers ==========

    def _start_vibration(
        self, state: EscalationState, duration_seconds: float, pattern: VibrationPattern
    ) -> None:
        state.vibration_active = True
        self._effects.start_vibration(duration_seconds, pattern)
        self._scheduler.schedule(
            VIBRATION_CLEAR_TOKEN,
            duration_seconds,
            lambda: self.end_vibration(state),
        )

    def _stop_vibration(self, state: EscalationState) -> None:
        self._scheduler.cancel(VIBRATION_CLEAR_TOKEN)
        if state.vibration_active:
            state.vibration_active = False
            self._effects.stop_vibration()

    def _start_mantra(self, state: EscalationState) -> None:
        if state.mantra_playing:
            return
        state.mantra_playing = True
        self._effects.play_mantra()

    @staticmethod
    def _current_pattern(state: EscalationState) -> VibrationPattern:
        if state.mode is EscalationMode.EMERGENCY:
            return VibrationPattern.STRONG
        return VibrationPattern.GENTLE

    @staticmethod
    def _transition(
        state: EscalationState,
        target: EscalationMode,
        reason: str,
        alert: Alert | None,
    ) -> None:
        log.info(
            "escalation transition",
            from_mode=state.mode.value,
            to_mode=target.value,
            reason=reason,
            alert_id=alert.id if alert else None,
        )
        state.mode = target

    def _changed(self, state: EscalationState) -> None:
        state.touch()
        for listener in self._listeners:
            try:
                listener(state)
            except Exception:
                log.exception("state listener failed")
