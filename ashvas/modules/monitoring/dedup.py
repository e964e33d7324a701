from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from ashvas.modules.monitoring.constants import Metric, Severity
from ashvas.modules.monitoring.models import Finding
from ashvas.modules.monitoring.schemas import Alert

METRIC_LABELS: dict[Metric, tuple[str, str]] = {
    Metric.HEART_RATE: ("Heart rate", "bpm"),
    Metric.BODY_TEMP: ("Body temperature", "°F"),
    Metric.BLOOD_PRESSURE: ("Blood pressure", "mmHg"),
    Metric.STRESS_LEVEL: ("Stress level", "%"),
}


@dataclass
class _LastAdmitted:
    severity: Severity
    raised_at: datetime


class AlertDeduplicator:
    """Turn findings into alerts, suppressing repeats inside a per-metric cool-down."""

    def __init__(self, cooldown_seconds: float = 5.0, history_limit: int = 10) -> None:
        self._cooldown_seconds = cooldown_seconds
        self._history_limit = history_limit
        self._last: dict[Metric, _LastAdmitted] = {}
        # Newest first
        self._history: list[Alert] = []

    @property
    def history(self) -> list[Alert]:
        return list(self._history)

    def admit(
        self, finding: Finding, now: datetime, pinned_alert_id: str | None = None
    ) -> Alert | None:
        last = self._last.get(finding.metric)
        if last and not self._should_admit(finding, last, now):
            return None

        alert = Alert(
            id=uuid.uuid4().hex,
            metric=finding.metric,
            severity=finding.severity,
            message=self._build_message(finding),
            raised_at=now,
            value=finding.value,
            urgent=finding.urgent,
        )
        self._last[finding.metric] = _LastAdmitted(severity=finding.severity, raised_at=now)
        self._history.insert(0, alert)
        self._evict(pinned_alert_id)
        return alert

    def _should_admit(self, finding: Finding, last: _LastAdmitted, now: datetime) -> bool:
        if finding.severity.rank > last.severity.rank:
            return True
        elapsed = (now - last.raised_at).total_seconds()
        return elapsed >= self._cooldown_seconds

    def _evict(self, pinned_alert_id: str | None) -> None:
        while len(self._history) > self._history_limit:
            for index in range(len(self._history) - 1, -1, -1):
                if self._history[index].id != pinned_alert_id:
                    del self._history[index]
                    break
            else:
                return

    @staticmethod
    def _build_message(finding: Finding) -> str:
        label, unit = METRIC_LABELS[finding.metric]
        if isinstance(finding.value, tuple):
            systolic, diastolic = finding.value
            reading = f"{round(systolic)}/{round(diastolic)} {unit}"
        elif finding.metric is Metric.BODY_TEMP:
            reading = f"{finding.value:.1f}{unit}"
        else:
            reading = f"{round(finding.value)} {unit}"
        level = "critical" if finding.severity is Severity.HIGH else "out of range"
        return f"{label} {level}: {reading}"
