#!/usr/bin/env python3
"""
Operator CLI for a running monitoring service.

Usage:
    # Show the escalation state and recent alerts
    python scripts/monitor_cli.py state

    # Push one sample (requires SAMPLE_SOURCE=queue)
    python scripts/monitor_cli.py push-sample --heart-rate 125

    # Answer the pending check-in
    python scripts/monitor_cli.py check-in --okay
    python scripts/monitor_cli.py check-in --help-needed

    # Manual SOS, emergency acknowledgment, pause toggle
    python scripts/monitor_cli.py sos
    python scripts/monitor_cli.py acknowledge
    python scripts/monitor_cli.py pause
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import httpx
import typer

app = typer.Typer()

BASE_URL = "http://localhost:8000"
MONITORING_URL = f"{BASE_URL}/api/v1/monitoring"


def _print_state(body: dict[str, Any]) -> None:
    state = body["state"]
    typer.echo(f"🩺 Mode: {state['mode']}")
    active = state.get("activeAlert")
    if active:
        typer.echo(f"🚨 Active alert: {active['message']} ({active['id']})")
    if state.get("checkInDeadline"):
        typer.echo(f"⏳ Check-in deadline: {state['checkInDeadline']}")
    typer.echo(f"📋 Queued check-ins: {state.get('pendingCheckIns', 0)}")
    typer.echo(f"📞 SOS: {state['sosStatus']}")
    typer.echo(f"⏸️  Paused: {state['monitoringPaused']}")
    for alert in body.get("history", []):
        typer.echo(f"   - [{alert['severity']}] {alert['message']} at {alert['raisedAt']}")


async def _request(method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
    async with httpx.AsyncClient() as client:
        response = await client.request(method, f"{MONITORING_URL}{path}", json=json)
    if response.status_code >= 400:
        typer.echo(f"❌ {method} {path} failed: {response.status_code}", err=True)
        typer.echo(f"Response: {response.text}", err=True)
        raise typer.Exit(1)
    return response.json()


@app.command()
def state():
    """Show the current escalation state and alert history."""
    _print_state(asyncio.run(_request("GET", "/state")))


@app.command()
def push_sample(
    heart_rate: float = typer.Option(72, help="Heart rate in bpm"),
    body_temp: float = typer.Option(98.6, help="Body temperature in °F"),
    systolic: float = typer.Option(120, help="Systolic pressure in mmHg"),
    diastolic: float = typer.Option(80, help="Diastolic pressure in mmHg"),
    stress: float = typer.Option(30, help="Stress level in percent"),
):
    """Queue one sample for the next monitoring tick."""
    sample = {
        "heartRateBpm": heart_rate,
        "bodyTempF": body_temp,
        "bloodPressure": {"systolicMmHg": systolic, "diastolicMmHg": diastolic},
        "stressPct": stress,
        "takenAt": datetime.now(timezone.utc).isoformat(),
    }
    body = asyncio.run(_request("POST", "/samples", json=sample))
    typer.echo(f"✅ Sample queued ({body['pending']} pending)")


@app.command()
def check_in(
    okay: bool = typer.Option(True, "--okay/--help-needed", help="Answer the check-in prompt"),
    alert_id: str = typer.Option(None, help="Alert being answered (rejects stale answers)"),
):
    """Answer the pending check-in."""
    body = asyncio.run(_request("POST", "/check-in", json={"isOkay": okay, "alertId": alert_id}))
    _print_state(body)


@app.command()
def sos():
    """Send an SOS to the emergency contacts."""
    _print_state(asyncio.run(_request("POST", "/sos")))


@app.command()
def acknowledge():
    """Clear an active emergency."""
    _print_state(asyncio.run(_request("POST", "/emergency/acknowledge")))


@app.command()
def pause():
    """Toggle monitoring between paused and running."""
    _print_state(asyncio.run(_request("POST", "/pause")))


@app.command()
def test_connection():
    """Test connection to the API."""
    typer.echo(f"🔍 Testing connection to {BASE_URL}...")
    try:
        response = httpx.get(f"{BASE_URL}/health")
    except httpx.HTTPError as e:
        typer.echo(f"❌ Health check failed: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✅ Health check: {response.status_code}")


if __name__ == "__main__":
    app()
