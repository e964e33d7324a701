import math

from ashvas.modules.monitoring.classifier import SampleClassifier
from ashvas.modules.monitoring.constants import Metric, Severity
from ashvas.modules.monitoring.thresholds import DEFAULT_THRESHOLDS
from tests.modules.monitoring.helpers import BASE_TIME, make_sample


def _classifier() -> SampleClassifier:
    return SampleClassifier(DEFAULT_THRESHOLDS)


def test_normal_sample_yields_no_findings() -> None:
    assert _classifier().classify(make_sample(), BASE_TIME) == []


def test_high_heart_rate_yields_single_high_finding() -> None:
    findings = _classifier().classify(make_sample(heart_rate=125), BASE_TIME)

    assert len(findings) == 1
    assert findings[0].metric is Metric.HEART_RATE
    assert findings[0].severity is Severity.HIGH
    assert findings[0].value == 125
    assert findings[0].computed_at == BASE_TIME


def test_findings_follow_fixed_metric_order() -> None:
    sample = make_sample(heart_rate=130, body_temp=100, systolic=170, diastolic=95, stress=60)

    findings = _classifier().classify(sample, BASE_TIME)

    assert [f.metric for f in findings] == [
        Metric.HEART_RATE,
        Metric.BODY_TEMP,
        Metric.BLOOD_PRESSURE,
        Metric.STRESS_LEVEL,
    ]
    assert [f.severity for f in findings] == [
        Severity.HIGH,
        Severity.MODERATE,
        Severity.HIGH,
        Severity.MODERATE,
    ]
    assert findings[2].value == (170, 95)


def test_non_finite_metric_is_rejected_without_failing_sample() -> None:
    sample = make_sample(heart_rate=math.nan, stress=75)

    findings = _classifier().classify(sample, BASE_TIME)

    assert [f.metric for f in findings] == [Metric.STRESS_LEVEL]


def test_implausible_values_are_rejected() -> None:
    sample = make_sample(heart_rate=900, body_temp=math.inf, systolic=400)

    assert _classifier().classify(sample, BASE_TIME) == []


def test_urgent_stress_is_flagged() -> None:
    findings = _classifier().classify(make_sample(stress=92), BASE_TIME)

    assert findings[0].severity is Severity.HIGH
    assert findings[0].urgent is True


def test_high_stress_below_urgent_bound_is_not_urgent() -> None:
    findings = _classifier().classify(make_sample(stress=80), BASE_TIME)

    assert findings[0].urgent is False
