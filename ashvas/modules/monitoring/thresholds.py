import json
from pathlib import Path

import structlog
from pydantic import Field

from ashvas.modules.monitoring.constants import Metric, Severity
from ashvas.shared.schemas import FrozenCamelModel

log = structlog.get_logger()

SYSTOLIC = "bloodPressureSystolic"
DIASTOLIC = "bloodPressureDiastolic"


class BandConfig(FrozenCamelModel):
    """Normal range for one severity level; a value outside it matches the level."""

    min: float | None = None
    max: float | None = None
    inclusive: bool = True

    def matches(self, value: float) -> bool:
        if self.min is not None:
            if value < self.min or (not self.inclusive and value == self.min):
                return True
        if self.max is not None:
            if value > self.max or (not self.inclusive and value == self.max):
                return True
        return False


class MetricRuleConfig(FrozenCamelModel):
    unit: str | None = None
    levels: dict[Severity, BandConfig] = Field(default_factory=dict)
    physical_min: float | None = None
    physical_max: float | None = None
    urgent_above: float | None = None

    def severity(self, value: float) -> Severity:
        for level in sorted(self.levels, key=lambda item: item.rank, reverse=True):
            if level is Severity.NORMAL:
                continue
            if self.levels[level].matches(value):
                return level
        return Severity.NORMAL

    def is_plausible(self, value: float) -> bool:
        if self.physical_min is not None and value < self.physical_min:
            return False
        if self.physical_max is not None and value > self.physical_max:
            return False
        return True

    def is_urgent(self, value: float) -> bool:
        return self.urgent_above is not None and value > self.urgent_above


class ThresholdTable(FrozenCamelModel):
    version: str = "default-v1"
    rules: dict[str, MetricRuleConfig] = Field(default_factory=dict)

    def rule(self, key: str) -> MetricRuleConfig | None:
        return self.rules.get(key)

    def classify(self, metric: Metric, value: float | tuple[float, float]) -> Severity:
        """Severity of a single metric value; blood pressure takes a (systolic, diastolic) pair."""
        if metric is Metric.BLOOD_PRESSURE:
            systolic, diastolic = value  # type: ignore[misc]
            return max(
                self._severity_for(SYSTOLIC, systolic),
                self._severity_for(DIASTOLIC, diastolic),
                key=lambda item: item.rank,
            )
        return self._severity_for(metric.value, float(value))  # type: ignore[arg-type]

    def _severity_for(self, key: str, value: float) -> Severity:
        rule = self.rules.get(key)
        if not rule:
            return Severity.NORMAL
        return rule.severity(value)


DEFAULT_THRESHOLDS = ThresholdTable(
    rules={
        Metric.HEART_RATE.value: MetricRuleConfig(
            unit="bpm",
            levels={
                Severity.MODERATE: BandConfig(min=60, max=100),
                Severity.HIGH: BandConfig(max=120),
            },
            physical_min=20,
            physical_max=300,
        ),
        Metric.BODY_TEMP.value: MetricRuleConfig(
            unit="F",
            levels={
                Severity.MODERATE: BandConfig(min=97.0, max=99.5),
                Severity.HIGH: BandConfig(max=101.0),
            },
            physical_min=80.0,
            physical_max=115.0,
        ),
        SYSTOLIC: MetricRuleConfig(
            unit="mmHg",
            levels={
                Severity.MODERATE: BandConfig(max=140),
                Severity.HIGH: BandConfig(max=160),
            },
            physical_min=40,
            physical_max=300,
        ),
        DIASTOLIC: MetricRuleConfig(
            unit="mmHg",
            levels={
                Severity.MODERATE: BandConfig(max=90),
                Severity.HIGH: BandConfig(max=100),
            },
            physical_min=20,
            physical_max=200,
        ),
        Metric.STRESS_LEVEL.value: MetricRuleConfig(
            unit="%",
            levels={
                Severity.MODERATE: BandConfig(max=50, inclusive=False),
                Severity.HIGH: BandConfig(max=70),
            },
            physical_min=0,
            physical_max=100,
            urgent_above=85,
        ),
    },
)


def load_thresholds(path: Path | None) -> ThresholdTable:
    if path is None:
        return DEFAULT_THRESHOLDS
    try:
        payload = json.loads(path.read_text())
        return ThresholdTable.model_validate(payload)
    except FileNotFoundError:
        log.info("threshold file not found, using defaults", path=str(path))
        return DEFAULT_THRESHOLDS
    except Exception as exc:
        log.warning("threshold file load failed, using defaults", path=str(path), error=str(exc))
        return DEFAULT_THRESHOLDS
