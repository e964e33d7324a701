from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque

from ashvas.modules.monitoring.constants import EscalationMode, Metric, Severity, SosStatus
from ashvas.modules.monitoring.schemas import Alert, EscalationSnapshot


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Finding:
    metric: Metric
    severity: Severity
    value: float | tuple[float, float]
    computed_at: datetime
    urgent: bool = False


@dataclass
class EscalationState:
    """Context object owned by the monitoring loop; mutated only by the escalation controller."""

    mode: EscalationMode = EscalationMode.IDLE
    vibration_active: bool = False
    mantra_playing: bool = False
    active_alert: Alert | None = None
    monitoring_paused: bool = False
    pending_check_ins: Deque[Alert] = field(default_factory=deque)
    check_in_deadline: datetime | None = None
    sos_status: SosStatus = SosStatus.NONE
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def snapshot(self) -> EscalationSnapshot:
        return EscalationSnapshot(
            mode=self.mode,
            vibration_active=self.vibration_active,
            mantra_playing=self.mantra_playing,
            active_alert=self.active_alert,
            monitoring_paused=self.monitoring_paused,
            pending_check_ins=len(self.pending_check_ins),
            check_in_deadline=self.check_in_deadline,
            sos_status=self.sos_status,
            updated_at=self.updated_at,
        )
