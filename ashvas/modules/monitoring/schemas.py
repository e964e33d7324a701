from datetime import datetime, timezone
from typing import Literal

from pydantic import Field, field_validator

from ashvas.modules.monitoring.constants import (
    EscalationMode,
    Metric,
    Severity,
    SosStatus,
    ToastSeverity,
)
from ashvas.shared.schemas import CamelModel, FrozenCamelModel


def _utc(value: datetime) -> datetime:
    # Devices may send naive timestamps; treat them as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BloodPressure(FrozenCamelModel):
    systolic_mm_hg: float
    diastolic_mm_hg: float


class Sample(FrozenCamelModel):
    """One timestamped reading of every monitored metric."""

    heart_rate_bpm: float
    body_temp_f: float
    blood_pressure: BloodPressure
    stress_pct: float
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("taken_at")
    @classmethod
    def normalize_taken_at(cls, value: datetime) -> datetime:
        return _utc(value)


class Alert(FrozenCamelModel):
    """A finding admitted into history; drives the UI and the escalation ladder."""

    id: str
    metric: Metric
    severity: Severity
    message: str
    raised_at: datetime
    value: float | tuple[float, float] | None = None
    urgent: bool = False


class EscalationSnapshot(CamelModel):
    """Read-only view of the escalation state published to the UI."""

    mode: EscalationMode
    vibration_active: bool
    mantra_playing: bool
    active_alert: Alert | None = None
    monitoring_paused: bool
    pending_check_ins: int = 0
    check_in_deadline: datetime | None = None
    sos_status: SosStatus = SosStatus.NONE
    updated_at: datetime


class MonitoringSnapshot(CamelModel):
    state: EscalationSnapshot
    history: list[Alert] = Field(default_factory=list)


class StateEventPayload(CamelModel):
    """Outbound state change event for SSE and WebSocket consumers."""

    event: Literal["state"] = "state"
    state: EscalationSnapshot
    history: list[Alert] = Field(default_factory=list)


class ToastEventPayload(CamelModel):
    """Outbound toast notification for SSE and WebSocket consumers."""

    event: Literal["toast"] = "toast"
    title: str
    body: str
    severity: ToastSeverity = ToastSeverity.INFO
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CheckInResponseRequest(CamelModel):
    """HTTP request body for answering the check-in prompt."""

    is_okay: bool = Field(description="True for \"I'm okay\", false for \"I need help\"")
    alert_id: str | None = Field(
        default=None, description="Alert the user is answering; stale answers are rejected"
    )


class EmergencyContact(CamelModel):
    name: str
    phone: str
    relationship: str | None = None
    is_primary: bool = False


class SosDispatchPayload(CamelModel):
    """Body posted to the SOS webhook for each notified contact set."""

    event: Literal["sos"] = "sos"
    scope: Literal["primary", "all"]
    contacts: list[EmergencyContact]
    alert: Alert | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
