from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog

from ashvas.modules.monitoring.constants import METRIC_ORDER, Metric, Severity
from ashvas.modules.monitoring.models import Finding
from ashvas.modules.monitoring.schemas import Sample
from ashvas.modules.monitoring.thresholds import DIASTOLIC, SYSTOLIC, ThresholdTable

log = structlog.get_logger()

SCALAR_FIELDS: dict[Metric, str] = {
    Metric.HEART_RATE: "heart_rate_bpm",
    Metric.BODY_TEMP: "body_temp_f",
    Metric.STRESS_LEVEL: "stress_pct",
}


class SampleClassifier:
    """Map one sample to per-metric findings; normal metrics produce nothing."""

    def __init__(self, thresholds: ThresholdTable) -> None:
        self._thresholds = thresholds

    def classify(self, sample: Sample, now: datetime | None = None) -> list[Finding]:
        computed_at = now or datetime.now(timezone.utc)
        findings: list[Finding] = []

        for metric in METRIC_ORDER:
            if metric is Metric.BLOOD_PRESSURE:
                finding = self._blood_pressure_finding(sample, computed_at)
            else:
                value = getattr(sample, SCALAR_FIELDS[metric])
                finding = self._scalar_finding(metric, value, computed_at)
            if finding:
                findings.append(finding)

        return findings

    def _scalar_finding(
        self, metric: Metric, value: float, computed_at: datetime
    ) -> Finding | None:
        rule = self._thresholds.rule(metric.value)
        if not rule:
            return None
        if not self._is_valid(metric.value, value, rule.is_plausible):
            return None

        severity = rule.severity(value)
        if severity is Severity.NORMAL:
            return None
        return Finding(
            metric=metric,
            severity=severity,
            value=value,
            computed_at=computed_at,
            urgent=rule.is_urgent(value),
        )

    def _blood_pressure_finding(self, sample: Sample, computed_at: datetime) -> Finding | None:
        systolic = sample.blood_pressure.systolic_mm_hg
        diastolic = sample.blood_pressure.diastolic_mm_hg
        for key, value in ((SYSTOLIC, systolic), (DIASTOLIC, diastolic)):
            rule = self._thresholds.rule(key)
            if rule and not self._is_valid(key, value, rule.is_plausible):
                return None

        severity = self._thresholds.classify(Metric.BLOOD_PRESSURE, (systolic, diastolic))
        if severity is Severity.NORMAL:
            return None
        return Finding(
            metric=Metric.BLOOD_PRESSURE,
            severity=severity,
            value=(systolic, diastolic),
            computed_at=computed_at,
        )

    @staticmethod
    def _is_valid(key: str, value: float, is_plausible) -> bool:
        if not math.isfinite(value):
            log.warning("metric rejected", metric=key, reason="non_finite", value=str(value))
            return False
        if not is_plausible(value):
            log.warning("metric rejected", metric=key, reason="implausible", value=value)
            return False
        return True
