"""
Side-effect sinks the escalation controller drives, plus the dispatcher that runs them.

Design goals:
- Fire-and-forget: the controller never awaits a sink, so a slow actuator cannot stall a tick.
- Observed: every call runs with a timeout; failures are logged and surfaced as a toast.
- SOS fallback: a failed primary-contact dispatch is retried against all contacts.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

import httpx
import structlog

from ashvas.modules.monitoring.constants import ToastSeverity, VibrationPattern
from ashvas.modules.monitoring.schemas import (
    Alert,
    EmergencyContact,
    SosDispatchPayload,
    ToastEventPayload,
)

if TYPE_CHECKING:
    from ashvas.modules.monitoring.manager import StateBroadcaster

log = structlog.get_logger()


class NotificationSink(Protocol):
    async def notify(self, title: str, body: str, severity: ToastSeverity) -> None: ...


class VibrationActuator(Protocol):
    async def start(self, duration_ms: int, pattern: VibrationPattern) -> None: ...

    async def stop(self) -> None: ...


class MantraPlayer(Protocol):
    async def play(self) -> None: ...

    async def stop(self) -> None: ...


class SOSDispatcher(Protocol):
    async def notify_primary(self, alert: Alert | None = None) -> bool: ...

    async def notify_all(self, alert: Alert | None = None) -> bool: ...


# ========== Default Sinks ==========


class BroadcastNotificationSink:
    """Deliver toasts to every connected UI client."""

    def __init__(self, broadcaster: StateBroadcaster) -> None:
        self._broadcaster = broadcaster

    async def notify(self, title: str, body: str, severity: ToastSeverity) -> None:
        log.info("toast", title=title, body=body, severity=severity.value)
        payload = ToastEventPayload(title=title, body=body, severity=severity)
        await self._broadcaster.broadcast(payload.model_dump(by_alias=True, mode="json"))


class LoggingVibrationActuator:
    """Stand-in actuator for deployments without a paired wearable."""

    def __init__(self) -> None:
        self.active = False

    async def start(self, duration_ms: int, pattern: VibrationPattern) -> None:
        self.active = True
        log.info("vibration started", duration_ms=duration_ms, pattern=pattern.value)

    async def stop(self) -> None:
        if self.active:
            log.info("vibration stopped")
        self.active = False


class LoggingMantraPlayer:
    def __init__(self) -> None:
        self.playing = False

    async def play(self) -> None:
        if self.playing:
            return
        self.playing = True
        log.info("mantra playback started")

    async def stop(self) -> None:
        if not self.playing:
            return
        self.playing = False
        log.info("mantra playback stopped")


class ContactListSOSDispatcher:
    """
    Notify emergency contacts through an optional webhook.

    Without a webhook the dispatch is only logged, which still counts as delivered so that
    local and demo deployments exercise the full emergency path.
    """

    def __init__(
        self,
        contacts: list[EmergencyContact],
        webhook_url: str | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._contacts = contacts
        self._webhook_url = webhook_url
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def notify_primary(self, alert: Alert | None = None) -> bool:
        primary = [contact for contact in self._contacts if contact.is_primary]
        if not primary:
            log.warning("sos primary contact missing")
            return False
        return await self._send("primary", primary[:1], alert)

    async def notify_all(self, alert: Alert | None = None) -> bool:
        if not self._contacts:
            log.warning("sos contact list empty")
            return False
        return await self._send("all", self._contacts, alert)

    async def _send(
        self, scope: str, contacts: list[EmergencyContact], alert: Alert | None
    ) -> bool:
        payload = SosDispatchPayload(scope=scope, contacts=contacts, alert=alert)
        if not self._webhook_url:
            log.info("sos dispatched", scope=scope, contacts=[c.name for c in contacts], delivery="log")
            return True

        async with httpx.AsyncClient(
            timeout=self._timeout_seconds, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self._webhook_url, json=payload.model_dump(by_alias=True, mode="json")
                )
            except httpx.HTTPError as exc:
                log.warning("sos webhook unreachable", scope=scope, error=str(exc))
                return False

        if response.is_success:
            log.info("sos dispatched", scope=scope, contacts=[c.name for c in contacts], delivery="webhook")
            return True
        log.warning("sos webhook rejected", scope=scope, status_code=response.status_code)
        return False


# ========== Dispatcher ==========


class SideEffectDispatcher:
    """Run sink calls as tracked background tasks with a per-call timeout."""

    def __init__(
        self,
        notifications: NotificationSink,
        vibration: VibrationActuator,
        mantra: MantraPlayer,
        sos: SOSDispatcher,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._notifications = notifications
        self._vibration = vibration
        self._mantra = mantra
        self._sos = sos
        self._timeout_seconds = timeout_seconds
        self._tasks: set[asyncio.Task[None]] = set()
        self._sink_locks: dict[str, asyncio.Lock] = {}

    def notify(
        self, title: str, body: str, severity: ToastSeverity = ToastSeverity.INFO
    ) -> None:
        # Toast failures are not reported through the toast sink itself
        self._spawn(
            "toast",
            lambda: self._notifications.notify(title, body, severity),
            report_failure=False,
        )

    def start_vibration(self, duration_seconds: float, pattern: VibrationPattern) -> None:
        self._spawn(
            "vibration",
            lambda: self._vibration.start(int(duration_seconds * 1000), pattern),
        )

    def stop_vibration(self) -> None:
        self._spawn("vibration", self._vibration.stop)

    def play_mantra(self) -> None:
        self._spawn("mantra", self._mantra.play)

    def stop_mantra(self) -> None:
        self._spawn("mantra", self._mantra.stop)

    def publish(self, name: str, factory: Callable[[], Awaitable[None]]) -> None:
        """Run a UI delivery in the background; failures are only logged."""
        self._spawn(name, factory, report_failure=False)

    def dispatch_sos(
        self, alert: Alert | None, on_result: Callable[[bool], Awaitable[None]]
    ) -> None:
        self._track(asyncio.create_task(self._dispatch_sos(alert, on_result)))

    async def drain(self) -> None:
        """Wait until every in-flight sink call (including ones they spawn) has finished."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _dispatch_sos(
        self, alert: Alert | None, on_result: Callable[[bool], Awaitable[None]]
    ) -> None:
        delivered = await self._call_sos("primary", self._sos.notify_primary, alert)
        if not delivered:
            log.warning("sos primary dispatch failed, notifying all contacts")
            delivered = await self._call_sos("all", self._sos.notify_all, alert)

        if delivered:
            self.notify(
                "SOS Alert Sent",
                "Emergency contacts have been notified",
                ToastSeverity.DESTRUCTIVE,
            )
        else:
            log.error("sos dispatch failed", alert_id=alert.id if alert else None)
            self.notify(
                "SOS Not Delivered",
                "Emergency contacts could not be reached. Call for help directly.",
                ToastSeverity.DESTRUCTIVE,
            )
        await on_result(delivered)

    async def _call_sos(
        self,
        scope: str,
        call: Callable[[Alert | None], Awaitable[bool]],
        alert: Alert | None,
    ) -> bool:
        try:
            return bool(await asyncio.wait_for(call(alert), timeout=self._timeout_seconds))
        except asyncio.TimeoutError:
            log.warning("sos dispatch timed out", scope=scope, timeout=self._timeout_seconds)
        except Exception as exc:
            log.warning("sos dispatch error", scope=scope, error=str(exc))
        return False

    def _spawn(
        self,
        name: str,
        factory: Callable[[], Awaitable[None]],
        report_failure: bool = True,
    ) -> None:
        self._track(asyncio.create_task(self._guarded(name, factory, report_failure)))

    async def _guarded(
        self,
        name: str,
        factory: Callable[[], Awaitable[None]],
        report_failure: bool,
    ) -> None:
        try:
            async with self._lock_for(name):
                await asyncio.wait_for(factory(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            log.warning("sink call timed out", sink=name, timeout=self._timeout_seconds)
            if report_failure:
                self.notify("Device Issue", f"The {name} did not respond", ToastSeverity.WARNING)
        except Exception as exc:
            log.warning("sink call failed", sink=name, error=str(exc))
            if report_failure:
                self.notify("Device Issue", f"The {name} is unavailable", ToastSeverity.WARNING)

    def _lock_for(self, name: str) -> asyncio.Lock:
        # Calls to one sink run one at a time, in the order they were issued
        lock = self._sink_locks.get(name)
        if lock is None:
            lock = self._sink_locks[name] = asyncio.Lock()
        return lock

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
