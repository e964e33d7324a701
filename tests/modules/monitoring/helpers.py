import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

from ashvas.modules.monitoring.constants import Metric, Severity, VibrationPattern
from ashvas.modules.monitoring.models import Finding
from ashvas.modules.monitoring.schemas import Alert, BloodPressure, Sample

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_sample(
    heart_rate: float = 72,
    body_temp: float = 98.6,
    systolic: float = 120,
    diastolic: float = 80,
    stress: float = 30,
    taken_at: datetime = BASE_TIME,
) -> Sample:
    return Sample(
        heart_rate_bpm=heart_rate,
        body_temp_f=body_temp,
        blood_pressure=BloodPressure(systolic_mm_hg=systolic, diastolic_mm_hg=diastolic),
        stress_pct=stress,
        taken_at=taken_at,
    )


def make_finding(
    metric: Metric = Metric.HEART_RATE,
    severity: Severity = Severity.HIGH,
    value: float = 125,
    urgent: bool = False,
) -> Finding:
    return Finding(
        metric=metric, severity=severity, value=value, computed_at=BASE_TIME, urgent=urgent
    )


def make_alert(
    alert_id: str = "alert-1",
    metric: Metric = Metric.HEART_RATE,
    severity: Severity = Severity.HIGH,
    urgent: bool = False,
    seconds: float = 0,
) -> Alert:
    return Alert(
        id=alert_id,
        metric=metric,
        severity=severity,
        message=f"{metric.value} {severity.value}",
        raised_at=BASE_TIME + timedelta(seconds=seconds),
        value=125,
        urgent=urgent,
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


class SlowMantra:
    """Player whose play() takes a while to reach the device."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.playing = False

    async def play(self) -> None:
        await asyncio.sleep(self.delay)
        self.playing = True

    async def stop(self) -> None:
        self.playing = False


class SlowVibration:
    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.active = False

    async def start(self, duration_ms: int, pattern: VibrationPattern) -> None:
        await asyncio.sleep(self.delay)
        self.active = True

    async def stop(self) -> None:
        self.active = False
