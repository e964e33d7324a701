from pathlib import Path

import structlog

from ashvas.core.config import settings
from ashvas.modules.monitoring.classifier import SampleClassifier
from ashvas.modules.monitoring.controller import EscalationController, EscalationPolicy
from ashvas.modules.monitoring.dedup import AlertDeduplicator
from ashvas.modules.monitoring.loop import MonitoringLoop
from ashvas.modules.monitoring.manager import StateBroadcaster
from ashvas.modules.monitoring.models import EscalationState
from ashvas.modules.monitoring.scheduler import TaskScheduler
from ashvas.modules.monitoring.schemas import EmergencyContact, StateEventPayload
from ashvas.modules.monitoring.sinks import (
    BroadcastNotificationSink,
    ContactListSOSDispatcher,
    LoggingMantraPlayer,
    LoggingVibrationActuator,
    SideEffectDispatcher,
)
from ashvas.modules.monitoring.sources import QueueSampleSource, SampleSource, SimulatedSampleSource
from ashvas.modules.monitoring.thresholds import load_thresholds

log = structlog.get_logger()


def _build_source() -> SampleSource:
    if settings.SAMPLE_SOURCE == "queue":
        return QueueSampleSource(maxsize=settings.SAMPLE_QUEUE_SIZE)
    if settings.SAMPLE_SOURCE != "simulated":
        log.warning("unknown sample source, using simulated", source=settings.SAMPLE_SOURCE)
    return SimulatedSampleSource(seed=settings.SIMULATION_SEED)


def _publish_state(state: EscalationState) -> None:
    payload = StateEventPayload(
        state=state.snapshot(), history=monitoring_loop.history
    ).model_dump(by_alias=True, mode="json")
    effects.publish("broadcast", lambda: broadcaster.broadcast(payload))


thresholds_path = Path(settings.THRESHOLDS_PATH) if settings.THRESHOLDS_PATH else None
broadcaster = StateBroadcaster()
scheduler = TaskScheduler()
effects = SideEffectDispatcher(
    notifications=BroadcastNotificationSink(broadcaster),
    vibration=LoggingVibrationActuator(),
    mantra=LoggingMantraPlayer(),
    sos=ContactListSOSDispatcher(
        contacts=[EmergencyContact.model_validate(item) for item in settings.EMERGENCY_CONTACTS],
        webhook_url=settings.SOS_WEBHOOK_URL,
        timeout_seconds=settings.SINK_TIMEOUT_SECONDS,
    ),
    timeout_seconds=settings.SINK_TIMEOUT_SECONDS,
)
controller = EscalationController(
    effects=effects, scheduler=scheduler, policy=EscalationPolicy.from_settings(settings)
)
sample_source = _build_source()
monitoring_loop = MonitoringLoop(
    source=sample_source,
    classifier=SampleClassifier(load_thresholds(thresholds_path)),
    deduplicator=AlertDeduplicator(
        cooldown_seconds=settings.ALERT_COOLDOWN_SECONDS,
        history_limit=settings.ALERT_HISTORY_LIMIT,
    ),
    controller=controller,
    cadence_seconds=settings.SAMPLE_CADENCE_SECONDS,
    sample_timeout_seconds=settings.SAMPLE_TIMEOUT_SECONDS,
)
controller.add_listener(_publish_state)


async def shutdown() -> None:
    await monitoring_loop.stop()
    scheduler.cancel_all()
    await effects.drain()
