"""
Telemetry stores: append-only per-learner interaction logs.

Two implementations share the ``TelemetryStore`` interface:
- InMemoryTelemetryStore: dict of per-learner lists (tests, CLI, single process)
- JsonlTelemetryStore: one JSONL file per learner, one sample per line

File I/O runs in a worker thread so the event loop can cancel the wait.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from personalization.core.errors import DataAccessError
from personalization.models import InteractionSample


@dataclass(frozen=True)
class SampleWindow:
    """Bounded slice of a learner's log: the newest ``max_samples`` within [since, until]."""

    max_samples: int = 50
    since: datetime | None = None
    until: datetime | None = None

    def select(self, samples: list[InteractionSample]) -> list[InteractionSample]:
        selected = [
            s for s in samples
            if (self.since is None or s.timestamp >= self.since)
            and (self.until is None or s.timestamp <= self.until)
        ]
        if self.max_samples <= 0:
            return []
        return selected[-self.max_samples:]


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Samples in a window (oldest first) plus the learner's full log length."""

    samples: tuple[InteractionSample, ...]
    log_length: int


class TelemetryStore(ABC):
    """Append/read interface over the interaction log."""

    @abstractmethod
    async def append(self, sample: InteractionSample) -> int:
        """Append a sample; returns the learner's new log length."""

    @abstractmethod
    async def snapshot(self, learner_id: str, window: SampleWindow) -> TelemetrySnapshot:
        """Read the windowed samples for a learner."""

    async def log_length(self, learner_id: str) -> int:
        snap = await self.snapshot(learner_id, SampleWindow(max_samples=0))
        return snap.log_length


class InMemoryTelemetryStore(TelemetryStore):
    def __init__(self) -> None:
        self._logs: dict[str, list[InteractionSample]] = {}

    async def append(self, sample: InteractionSample) -> int:
        log = self._logs.setdefault(sample.learner_id, [])
        log.append(sample)
        return len(log)

    async def snapshot(self, learner_id: str, window: SampleWindow) -> TelemetrySnapshot:
        log = list(self._logs.get(learner_id, ()))
        return TelemetrySnapshot(samples=tuple(window.select(log)), log_length=len(log))

    def learner_ids(self) -> list[str]:
        return sorted(self._logs)


class JsonlTelemetryStore(TelemetryStore):
    """
    JSONL interaction log.

    File layout:
        <log_dir>/<learner_id>.jsonl   # one InteractionSample per line
    """

    def __init__(self, log_dir: Path):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, learner_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in learner_id)
        return self.log_dir / f"{safe}.jsonl"

    def _append_sync(self, sample: InteractionSample) -> int:
        path = self._path(sample.learner_id)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(sample.to_dict(), default=str) + "\n")
        return len(self._read_sync(sample.learner_id))

    def _read_sync(self, learner_id: str) -> list[InteractionSample]:
        path = self._path(learner_id)
        if not path.exists():
            return []
        samples = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    samples.append(InteractionSample.from_dict(json.loads(line)))
        return samples

    async def append(self, sample: InteractionSample) -> int:
        try:
            return await asyncio.to_thread(self._append_sync, sample)
        except OSError as e:
            logger.error(f"Failed to append telemetry for {sample.learner_id}: {e}")
            raise DataAccessError(str(e), source="telemetry") from e

    async def snapshot(self, learner_id: str, window: SampleWindow) -> TelemetrySnapshot:
        try:
            log = await asyncio.to_thread(self._read_sync, learner_id)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to read telemetry for {learner_id}: {e}")
            raise DataAccessError(str(e), source="telemetry") from e
        return TelemetrySnapshot(samples=tuple(window.select(log)), log_length=len(log))
