from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Iterable, Protocol

import structlog

from ashvas.modules.monitoring.schemas import BloodPressure, Sample

log = structlog.get_logger()


class SampleSource(Protocol):
    async def next_sample(self) -> Sample: ...

    def reset(self) -> None: ...


class SourceExhausted(Exception):
    """Raised by a finite source once every sample has been produced."""


class SimulatedSampleSource:
    """Bounded random walk around resting values, for demos without a wearable."""

    RESTING = Sample(
        heart_rate_bpm=72,
        body_temp_f=98.6,
        blood_pressure=BloodPressure(systolic_mm_hg=120, diastolic_mm_hg=80),
        stress_pct=30,
    )

    def __init__(self, seed: int | None = None) -> None:
        self._seed = seed
        self._random = random.Random(seed)
        self._current = self.RESTING

    async def next_sample(self) -> Sample:
        prev = self._current
        step = self._step
        self._current = Sample(
            heart_rate_bpm=self._clamp(prev.heart_rate_bpm + step(4), 60, 100),
            body_temp_f=self._clamp(prev.body_temp_f + step(0.2), 97, 100),
            blood_pressure=BloodPressure(
                systolic_mm_hg=self._clamp(prev.blood_pressure.systolic_mm_hg + step(6), 110, 140),
                diastolic_mm_hg=self._clamp(prev.blood_pressure.diastolic_mm_hg + step(4), 70, 90),
            ),
            stress_pct=self._clamp(prev.stress_pct + step(10), 0, 100),
            taken_at=datetime.now(timezone.utc),
        )
        return self._current

    def reset(self) -> None:
        self._random = random.Random(self._seed)
        self._current = self.RESTING

    def _step(self, spread: float) -> float:
        return (self._random.random() - 0.5) * spread

    @staticmethod
    def _clamp(value: float, low: float, high: float) -> float:
        return max(low, min(high, value))


class ScriptedSampleSource:
    """Replay a fixed sequence; restartable via reset()."""

    def __init__(self, samples: Iterable[Sample], repeat_last: bool = False) -> None:
        self._samples = list(samples)
        self._repeat_last = repeat_last
        self._index = 0

    async def next_sample(self) -> Sample:
        if self._index < len(self._samples):
            sample = self._samples[self._index]
            self._index += 1
            return sample
        if self._repeat_last and self._samples:
            return self._samples[-1]
        raise SourceExhausted("scripted samples exhausted")

    def reset(self) -> None:
        self._index = 0


class QueueSampleSource:
    """Samples pushed by devices over HTTP or WebSocket.

    Each tick consumes the newest queued sample and discards the older backlog.
    The oldest sample is dropped when the queue is full.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[Sample] = asyncio.Queue(maxsize=maxsize)

    def push(self, sample: Sample) -> None:
        try:
            self._queue.put_nowait(sample)
        except asyncio.QueueFull:
            dropped = self._queue.get_nowait()
            log.warning("sample queue full, dropping oldest", dropped_taken_at=dropped.taken_at.isoformat())
            self._queue.put_nowait(sample)

    async def next_sample(self) -> Sample:
        sample = await self._queue.get()
        skipped = 0
        while not self._queue.empty():
            sample = self._queue.get_nowait()
            skipped += 1
        if skipped:
            log.info("stale samples skipped", skipped=skipped, taken_at=sample.taken_at.isoformat())
        return sample

    def reset(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    @property
    def pending(self) -> int:
        return self._queue.qsize()
