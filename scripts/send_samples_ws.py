#!/usr/bin/env python3
"""
Quick script to push samples over the device WebSocket and walk the escalation ladder.
Start the server with SAMPLE_SOURCE=queue, then run this to send resting readings
followed by a high heart rate reading that raises a check-in.
"""

import argparse
import asyncio
import json
from datetime import datetime, timezone

import websockets


def build_sample(heart_rate: float, stress: float = 30) -> dict:
    return {
        "heartRateBpm": heart_rate,
        "bodyTempF": 98.6,
        "bloodPressure": {"systolicMmHg": 120, "diastolicMmHg": 80},
        "stressPct": stress,
        "takenAt": datetime.now(timezone.utc).isoformat(),
    }


async def send_samples(base_url: str, heart_rates: list[float], interval: float) -> None:
    """Send one sample per heart rate, spaced by the sampling cadence."""

    uri = f"{base_url.rstrip('/')}/api/v1/monitoring/ws/device"

    print(f"📡 Connecting to WebSocket: {uri}")

    async with websockets.connect(uri) as websocket:
        print("✅ Connected!")
        print(f"📤 Sending {len(heart_rates)} samples...")

        for index, heart_rate in enumerate(heart_rates, start=1):
            await websocket.send(json.dumps(build_sample(heart_rate)))
            print(f"   Sent sample {index}: {heart_rate} bpm")
            await asyncio.sleep(interval)

        print("\n✅ All samples sent!")
        print("🚨 A check-in should be pending now (check your SSE listener)")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Push samples to the device WebSocket")
    parser.add_argument("--base-url", default="ws://localhost:8000")
    parser.add_argument(
        "--heart-rates",
        default="72,72,72,125",
        help="Comma-separated heart rates, one sample each (default: 72,72,72,125)",
    )
    parser.add_argument("--interval", type=float, default=2.0, help="Seconds between samples")
    args = parser.parse_args()

    print("=" * 60)
    print("🚨 WebSocket Sample Sender (Triggers Check-Ins)")
    print("=" * 60)
    print()

    heart_rates = [float(value) for value in args.heart_rates.split(",") if value.strip()]
    await send_samples(args.base_url, heart_rates, args.interval)

    print("\n" + "=" * 60)
    print("💡 Answer the check-in from another terminal:")
    print("   curl -X POST -H 'Content-Type: application/json' \\")
    print("     -d '{\"isOkay\": true}' http://localhost:8000/api/v1/monitoring/check-in")
    print("=" * 60)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n👋 Cancelled")
