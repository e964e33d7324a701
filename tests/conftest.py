import asyncio
from types import SimpleNamespace
from typing import Any, AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from ashvas.main import app
from ashvas.modules.monitoring import service
from ashvas.modules.monitoring.classifier import SampleClassifier
from ashvas.modules.monitoring.constants import ToastSeverity, VibrationPattern
from ashvas.modules.monitoring.controller import EscalationController, EscalationPolicy
from ashvas.modules.monitoring.dedup import AlertDeduplicator
from ashvas.modules.monitoring.loop import MonitoringLoop
from ashvas.modules.monitoring.manager import StateBroadcaster
from ashvas.modules.monitoring.scheduler import TaskScheduler
from ashvas.modules.monitoring.schemas import Alert
from ashvas.modules.monitoring.sinks import BroadcastNotificationSink, SideEffectDispatcher
from ashvas.modules.monitoring.sources import QueueSampleSource
from ashvas.modules.monitoring.thresholds import DEFAULT_THRESHOLDS

# Long enough that no timer fires unless a test shortens it
SLOW_POLICY = EscalationPolicy(
    calming_vibration_seconds=60,
    check_in_vibration_seconds=60,
    emergency_vibration_seconds=60,
    check_in_grace_seconds=60,
    urgent_check_in_grace_seconds=30,
)


class FakeNotifications:
    def __init__(self) -> None:
        self.toasts: list[tuple[str, str, ToastSeverity]] = []

    async def notify(self, title: str, body: str, severity: ToastSeverity) -> None:
        self.toasts.append((title, body, severity))

    @property
    def titles(self) -> list[str]:
        return [title for title, _, _ in self.toasts]


class FakeVibration:
    def __init__(self, fail: bool = False) -> None:
        self.starts: list[tuple[int, VibrationPattern]] = []
        self.stops = 0
        self.fail = fail

    async def start(self, duration_ms: int, pattern: VibrationPattern) -> None:
        if self.fail:
            raise RuntimeError("actuator offline")
        self.starts.append((duration_ms, pattern))

    async def stop(self) -> None:
        self.stops += 1


class FakeMantra:
    def __init__(self) -> None:
        self.plays = 0
        self.stops = 0

    async def play(self) -> None:
        self.plays += 1

    async def stop(self) -> None:
        self.stops += 1


class FakeSOS:
    """Records dispatches; results may be booleans or exceptions to raise."""

    def __init__(self, primary: bool | Exception = True, everyone: bool | Exception = True) -> None:
        self.primary = primary
        self.everyone = everyone
        self.primary_calls: list[Alert | None] = []
        self.all_calls: list[Alert | None] = []
        self.delay = 0.0

    async def notify_primary(self, alert: Alert | None = None) -> bool:
        self.primary_calls.append(alert)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.primary, Exception):
            raise self.primary
        return self.primary

    async def notify_all(self, alert: Alert | None = None) -> bool:
        self.all_calls.append(alert)
        if isinstance(self.everyone, Exception):
            raise self.everyone
        return self.everyone


@pytest.fixture
def sinks() -> SimpleNamespace:
    return SimpleNamespace(
        notifications=FakeNotifications(),
        vibration=FakeVibration(),
        mantra=FakeMantra(),
        sos=FakeSOS(),
    )


@pytest.fixture
async def effects(sinks: SimpleNamespace) -> AsyncGenerator[SideEffectDispatcher, None]:
    effects = SideEffectDispatcher(
        notifications=sinks.notifications,
        vibration=sinks.vibration,
        mantra=sinks.mantra,
        sos=sinks.sos,
        timeout_seconds=0.5,
    )
    yield effects
    await effects.drain()


@pytest.fixture
async def scheduler() -> AsyncGenerator[TaskScheduler, None]:
    scheduler = TaskScheduler()
    yield scheduler
    scheduler.cancel_all()


@pytest.fixture
def make_controller(effects: SideEffectDispatcher, scheduler: TaskScheduler) -> Any:
    def _make(policy: EscalationPolicy = SLOW_POLICY) -> EscalationController:
        return EscalationController(effects=effects, scheduler=scheduler, policy=policy)

    return _make


@pytest.fixture
def controller(make_controller: Any) -> EscalationController:
    return make_controller()


@pytest.fixture
async def monitoring(
    monkeypatch: pytest.MonkeyPatch,
    sinks: SimpleNamespace,
    scheduler: TaskScheduler,
) -> AsyncGenerator[SimpleNamespace, None]:
    """
    Install a fresh monitoring stack behind the router.

    Uses a queue source so tests can push samples, fake actuators, and a real broadcaster.
    """
    broadcaster = StateBroadcaster()
    effects = SideEffectDispatcher(
        notifications=BroadcastNotificationSink(broadcaster),
        vibration=sinks.vibration,
        mantra=sinks.mantra,
        sos=sinks.sos,
        timeout_seconds=0.5,
    )
    controller = EscalationController(effects=effects, scheduler=scheduler, policy=SLOW_POLICY)
    source = QueueSampleSource(maxsize=10)
    loop = MonitoringLoop(
        source=source,
        classifier=SampleClassifier(DEFAULT_THRESHOLDS),
        deduplicator=AlertDeduplicator(cooldown_seconds=5, history_limit=10),
        controller=controller,
        cadence_seconds=0.01,
        sample_timeout_seconds=0.05,
    )
    controller.add_listener(service._publish_state)

    monkeypatch.setattr(service, "broadcaster", broadcaster)
    monkeypatch.setattr(service, "effects", effects)
    monkeypatch.setattr(service, "controller", controller)
    monkeypatch.setattr(service, "sample_source", source)
    monkeypatch.setattr(service, "monitoring_loop", loop)

    yield SimpleNamespace(
        loop=loop, source=source, broadcaster=broadcaster, effects=effects, sinks=sinks
    )

    await loop.stop()
    scheduler.cancel_all()
    await effects.drain()


@pytest.fixture
async def client(monitoring: SimpleNamespace) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
