from __future__ import annotations

import asyncio
from datetime import datetime

import structlog

from ashvas.modules.monitoring.classifier import SampleClassifier
from ashvas.modules.monitoring.controller import EscalationController
from ashvas.modules.monitoring.dedup import AlertDeduplicator
from ashvas.modules.monitoring.models import EscalationState, utcnow
from ashvas.modules.monitoring.schemas import Alert, MonitoringSnapshot, Sample
from ashvas.modules.monitoring.sources import SampleSource, SourceExhausted

log = structlog.get_logger()


class MonitoringLoop:
    """Own the sampling cadence and the escalation state; thread samples through the pipeline."""

    def __init__(
        self,
        source: SampleSource,
        classifier: SampleClassifier,
        deduplicator: AlertDeduplicator,
        controller: EscalationController,
        cadence_seconds: float = 2.0,
        sample_timeout_seconds: float = 5.0,
        state: EscalationState | None = None,
    ) -> None:
        self.state = state or EscalationState()
        self._source = source
        self._classifier = classifier
        self._deduplicator = deduplicator
        self._controller = controller
        self._cadence_seconds = cadence_seconds
        self._sample_timeout_seconds = sample_timeout_seconds
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def history(self) -> list[Alert]:
        return self._deduplicator.history

    def snapshot(self) -> MonitoringSnapshot:
        return MonitoringSnapshot(state=self.state.snapshot(), history=self.history)

    # ========== Cadence ==========

    async def start(self) -> None:
        if self.is_running:
            return
        await self._controller.set_paused(self.state, False)
        self._task = asyncio.create_task(self._run(), name="monitoring-loop")

    async def stop(self) -> None:
        """Cancel the cadence task without recording a pause (used on shutdown)."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def pause(self) -> None:
        await self.stop()
        self._source.reset()
        await self._controller.set_paused(self.state, True)

    async def resume(self) -> None:
        # Readings that arrived while paused are stale
        self._source.reset()
        await self.start()

    async def toggle_pause(self) -> EscalationState:
        if self.state.monitoring_paused or not self.is_running:
            await self.resume()
        else:
            await self.pause()
        return self.state

    async def _run(self) -> None:
        log.info("monitoring loop started", cadence_seconds=self._cadence_seconds)
        clock = asyncio.get_running_loop()
        while True:
            started = clock.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("monitoring tick failed")
            elapsed = clock.time() - started
            await asyncio.sleep(max(0.0, self._cadence_seconds - elapsed))

    # ========== Pipeline ==========

    async def tick(self) -> list[Alert]:
        """Pull one sample and run it through classify -> dedupe -> escalate."""
        if self._tick_lock.locked():
            log.info("tick skipped", reason="previous_tick_in_flight")
            return []

        async with self._tick_lock:
            try:
                sample = await asyncio.wait_for(
                    self._source.next_sample(), timeout=self._sample_timeout_seconds
                )
            except asyncio.TimeoutError:
                log.debug("no sample available", timeout=self._sample_timeout_seconds)
                return []
            except SourceExhausted:
                log.debug("sample source exhausted")
                return []
            except Exception as exc:
                log.warning("sample source failed", error=str(exc))
                return []

            # A pause landing mid-pipeline must not strand admitted alerts
            return await asyncio.shield(self.process_sample(sample))

    async def process_sample(self, sample: Sample, now: datetime | None = None) -> list[Alert]:
        now = now or utcnow()
        findings = self._classifier.classify(sample, now)
        pinned = self.state.active_alert.id if self.state.active_alert else None

        alerts: list[Alert] = []
        for finding in findings:
            alert = self._deduplicator.admit(finding, now, pinned_alert_id=pinned)
            if alert:
                alerts.append(alert)

        if findings and not alerts:
            log.debug("findings suppressed by cool-down", count=len(findings))
        if alerts:
            log.info(
                "alerts admitted",
                alerts=[f"{alert.metric.value}:{alert.severity.value}" for alert in alerts],
            )
            await self._controller.handle_alerts(self.state, alerts)
        return alerts

    # ========== User inputs ==========

    async def respond_to_check_in(self, is_okay: bool, alert_id: str | None = None) -> EscalationState:
        return await self._controller.respond_to_check_in(self.state, is_okay, alert_id)

    async def acknowledge_emergency(self) -> EscalationState:
        return await self._controller.acknowledge_emergency(self.state)

    async def trigger_sos(self) -> EscalationState:
        return await self._controller.trigger_sos(self.state)

    async def toggle_mantra(self) -> EscalationState:
        return await self._controller.toggle_mantra(self.state)
