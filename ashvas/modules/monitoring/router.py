"""HTTP, SSE and WebSocket endpoints forming the UI boundary of the monitoring core."""

import asyncio
import json

import structlog
from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ashvas.modules.monitoring import service
from ashvas.modules.monitoring.constants import EscalationMode
from ashvas.modules.monitoring.schemas import (
    Alert,
    CheckInResponseRequest,
    MonitoringSnapshot,
    Sample,
    StateEventPayload,
)
from ashvas.modules.monitoring.sources import QueueSampleSource

router = APIRouter()
log = structlog.get_logger()


def _state_event() -> dict:
    snapshot = service.monitoring_loop.snapshot()
    return StateEventPayload(state=snapshot.state, history=snapshot.history).model_dump(
        by_alias=True, mode="json"
    )


def _queue_source() -> QueueSampleSource:
    source = service.sample_source
    if not isinstance(source, QueueSampleSource):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sample ingestion is disabled; the monitor uses a built-in source",
        )
    return source


# ========== State & History ==========


@router.get("/state", response_model=MonitoringSnapshot)
async def read_state() -> MonitoringSnapshot:
    return service.monitoring_loop.snapshot()


@router.get("/alerts", response_model=list[Alert])
async def read_alerts() -> list[Alert]:
    """Alert history, most recent first."""
    return service.monitoring_loop.history


# ========== User Inputs ==========


@router.post("/check-in", response_model=MonitoringSnapshot)
async def respond_to_check_in(body: CheckInResponseRequest) -> MonitoringSnapshot:
    """Answer the check-in prompt: isOkay=true clears it, false escalates to an emergency."""
    loop = service.monitoring_loop
    if loop.state.mode is not EscalationMode.AWAITING_CHECK_IN:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No check-in is pending",
        )
    active = loop.state.active_alert
    if body.alert_id and active and body.alert_id != active.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Check-in already resolved for this alert",
        )
    await loop.respond_to_check_in(body.is_okay, alert_id=body.alert_id)
    return loop.snapshot()


@router.post("/pause", response_model=MonitoringSnapshot)
async def toggle_pause() -> MonitoringSnapshot:
    loop = service.monitoring_loop
    await loop.toggle_pause()
    return loop.snapshot()


@router.post("/emergency/acknowledge", response_model=MonitoringSnapshot)
async def acknowledge_emergency() -> MonitoringSnapshot:
    loop = service.monitoring_loop
    if loop.state.mode is not EscalationMode.EMERGENCY:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No emergency is active",
        )
    await loop.acknowledge_emergency()
    return loop.snapshot()


@router.post("/sos", response_model=MonitoringSnapshot)
async def send_sos() -> MonitoringSnapshot:
    loop = service.monitoring_loop
    if loop.state.mode is EscalationMode.EMERGENCY:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Emergency already active",
        )
    await loop.trigger_sos()
    return loop.snapshot()


@router.post("/mantra/toggle", response_model=MonitoringSnapshot)
async def toggle_mantra() -> MonitoringSnapshot:
    loop = service.monitoring_loop
    await loop.toggle_mantra()
    return loop.snapshot()


# ========== Sample Ingestion ==========


@router.post("/samples", status_code=status.HTTP_202_ACCEPTED)
async def ingest_sample(sample: Sample) -> dict[str, int]:
    source = _queue_source()
    source.push(sample)
    return {"pending": source.pending}


@router.websocket("/ws/device")
async def websocket_device(websocket: WebSocket) -> None:
    """Devices push one Sample JSON object per message."""
    source = service.sample_source
    if not isinstance(source, QueueSampleSource):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    log.info("device websocket connected")
    try:
        while True:
            raw_message = await websocket.receive_text()
            try:
                sample = Sample.model_validate_json(raw_message)
            except ValidationError as exc:
                log.warning("device sample rejected", errors=exc.error_count())
                await websocket.send_text(
                    json.dumps({"event": "error", "detail": "invalid sample"})
                )
                continue
            source.push(sample)
    except WebSocketDisconnect:
        log.info("device websocket disconnected")


# ========== UI Streams ==========


@router.websocket("/ws")
async def websocket_state(websocket: WebSocket) -> None:
    """State and toast events for UI clients; the current state is sent on connect."""
    broadcaster = service.broadcaster
    await broadcaster.connect(websocket)
    log.info("ui websocket connected")
    try:
        await websocket.send_text(json.dumps(_state_event()))
        while True:
            # UI clients only listen; reading keeps disconnects observable
            await websocket.receive_text()
    except WebSocketDisconnect:
        broadcaster.disconnect(websocket)
        log.info("ui websocket disconnected")


@router.get("/stream")
async def stream_state(request: Request) -> StreamingResponse:
    """
    Server-Sent Events stream of state and toast events.

    The first event is the current state; a keepalive comment is sent every 30 seconds.
    """
    broadcaster = service.broadcaster

    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        broadcaster.subscribe_sse(queue)
        log.info("sse state stream connected")

        try:
            yield f"data: {json.dumps(_state_event())}\n\n"
            while True:
                if await request.is_disconnected():
                    log.info("sse client disconnected")
                    break

                try:
                    event = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield f"data: {json.dumps(event)}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            broadcaster.unsubscribe_sse(queue)
            log.info("sse state stream closed")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
