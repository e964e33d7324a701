from datetime import timedelta

from ashvas.modules.monitoring.constants import Metric, Severity
from ashvas.modules.monitoring.dedup import AlertDeduplicator
from tests.modules.monitoring.helpers import BASE_TIME, make_finding


def _at(seconds: float):
    return BASE_TIME + timedelta(seconds=seconds)


def test_repeat_within_cooldown_is_suppressed_then_admitted_after_window() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=5)
    finding = make_finding(severity=Severity.HIGH)

    first = dedup.admit(finding, _at(0))
    second = dedup.admit(finding, _at(2))
    third = dedup.admit(finding, _at(5.5))

    assert first is not None
    assert second is None
    assert third is not None
    assert third.id != first.id
    assert [alert.id for alert in dedup.history] == [third.id, first.id]


def test_severity_increase_bypasses_cooldown() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=5)

    moderate = dedup.admit(make_finding(severity=Severity.MODERATE, value=105), _at(0))
    high = dedup.admit(make_finding(severity=Severity.HIGH, value=125), _at(1))

    assert moderate is not None
    assert high is not None
    assert high.severity is Severity.HIGH


def test_severity_decrease_waits_for_cooldown() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=5)

    dedup.admit(make_finding(severity=Severity.HIGH), _at(0))

    assert dedup.admit(make_finding(severity=Severity.MODERATE, value=105), _at(3)) is None
    assert dedup.admit(make_finding(severity=Severity.MODERATE, value=105), _at(6)) is not None


def test_cooldown_is_tracked_per_metric() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=5)

    heart = dedup.admit(make_finding(metric=Metric.HEART_RATE), _at(0))
    stress = dedup.admit(make_finding(metric=Metric.STRESS_LEVEL, value=80), _at(1))

    assert heart is not None
    assert stress is not None


def test_history_keeps_ten_most_recent_newest_first() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=5, history_limit=10)
    admitted = []
    for index in range(15):
        alert = dedup.admit(make_finding(), _at(index * 10))
        assert alert is not None
        admitted.append(alert)

    history = dedup.history

    assert len(history) == 10
    assert [alert.id for alert in history] == [alert.id for alert in reversed(admitted[5:])]


def test_eviction_skips_pinned_alert() -> None:
    dedup = AlertDeduplicator(cooldown_seconds=0, history_limit=3)
    pinned = dedup.admit(make_finding(), _at(0))
    assert pinned is not None

    for index in range(1, 6):
        dedup.admit(make_finding(), _at(index), pinned_alert_id=pinned.id)

    history = dedup.history
    assert len(history) == 3
    assert history[-1].id == pinned.id


def test_history_view_is_a_copy() -> None:
    dedup = AlertDeduplicator()
    dedup.admit(make_finding(), _at(0))

    dedup.history.clear()

    assert len(dedup.history) == 1


def test_alert_messages_describe_the_reading() -> None:
    dedup = AlertDeduplicator()

    heart = dedup.admit(make_finding(value=125.4), _at(0))
    temp = dedup.admit(
        make_finding(metric=Metric.BODY_TEMP, severity=Severity.MODERATE, value=100.04), _at(0)
    )
    pressure = dedup.admit(
        make_finding(metric=Metric.BLOOD_PRESSURE, value=(165.2, 98.7)), _at(0)
    )

    assert heart.message == "Heart rate critical: 125 bpm"
    assert temp.message == "Body temperature out of range: 100.0°F"
    assert pressure.message == "Blood pressure critical: 165/99 mmHg"

