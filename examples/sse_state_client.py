"""
Example SSE client for the monitoring state stream.

This script connects to the state stream, prints every state change and toast,
and can answer a pending check-in from the keyboard.

Usage:
    python examples/sse_state_client.py --base-url http://localhost:8000
    python examples/sse_state_client.py --answer okay
"""

import argparse
import asyncio
import json
from typing import Any

import httpx


class MonitoringSSEClient:
    """Client for consuming state and toast events via SSE."""

    def __init__(self, base_url: str, answer: str | None = None):
        self.base_url = base_url.rstrip("/")
        self.answer = answer
        self.running = False
        self._answered: set[str] = set()

    async def connect(self) -> None:
        """Connect to the SSE stream and process events."""
        url = f"{self.base_url}/api/v1/monitoring/stream"
        print(f"Connecting to {url}...")
        print("-" * 60)

        self.running = True

        try:
            async with httpx.AsyncClient(timeout=None) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        print(f"Error: {response.status_code}")
                        print(await response.aread())
                        return

                    print("✓ Connected to state stream")
                    print("Waiting for events...\n")

                    async for line in response.aiter_lines():
                        if not self.running:
                            break

                        if line.startswith("data:"):
                            data_str = line[5:].strip()
                            try:
                                event = json.loads(data_str)
                                await self.handle_event(event)
                            except json.JSONDecodeError as e:
                                print(f"Error parsing event: {e}")

                        elif line.startswith(":"):
                            # Keepalive comment
                            print(".", end="", flush=True)

        except httpx.HTTPError as e:
            print(f"\nConnection error: {e}")
        finally:
            self.running = False
            print("Disconnected from state stream")

    async def handle_event(self, event: dict[str, Any]) -> None:
        kind = event.get("event", "unknown")

        if kind == "state":
            self._print_state(event["state"])
            await self._maybe_answer(event["state"])
        elif kind == "toast":
            self._print_toast(event)
        else:
            print(f"Unknown event: {kind}")
            print(json.dumps(event, indent=2))

    def _print_state(self, state: dict[str, Any]) -> None:
        print("\n" + "=" * 60)
        print(f"STATE: {state.get('mode')}")
        active = state.get("activeAlert")
        if active:
            print(f"Active alert: {active.get('message')} ({active.get('id')})")
        if state.get("checkInDeadline"):
            print(f"Check-in deadline: {state['checkInDeadline']}")
        print(f"Queued check-ins: {state.get('pendingCheckIns', 0)}")
        print(f"SOS: {state.get('sosStatus')}")
        print(f"Vibration: {state.get('vibrationActive')}  Mantra: {state.get('mantraPlaying')}")
        print(f"Paused: {state.get('monitoringPaused')}")
        print("=" * 60)

    def _print_toast(self, toast: dict[str, Any]) -> None:
        icon = {"destructive": "🚨", "warning": "⚠️ "}.get(toast.get("severity"), "ℹ️ ")
        print(f"\n{icon} {toast.get('title')}: {toast.get('body')}")

    async def _maybe_answer(self, state: dict[str, Any]) -> None:
        active = state.get("activeAlert")
        if not self.answer or state.get("mode") != "awaitingCheckIn" or not active:
            return
        if active["id"] in self._answered:
            return
        self._answered.add(active["id"])
        result = await self.respond_to_check_in(active["id"], is_okay=self.answer == "okay")
        print(f"Answered check-in -> {result['state']['mode']}")

    async def respond_to_check_in(self, alert_id: str, is_okay: bool) -> dict[str, Any]:
        """Answer the pending check-in via HTTP POST."""
        url = f"{self.base_url}/api/v1/monitoring/check-in"

        async with httpx.AsyncClient() as client:
            response = await client.post(url, json={"isOkay": is_okay, "alertId": alert_id})
            response.raise_for_status()
            return response.json()


async def main() -> None:
    parser = argparse.ArgumentParser(description="SSE Monitoring State Client Example")
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Base URL of the API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--answer",
        choices=["okay", "help"],
        help="Automatically answer every check-in prompt",
    )
    args = parser.parse_args()

    client = MonitoringSSEClient(base_url=args.base_url, answer=args.answer)
    await client.connect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting...")
