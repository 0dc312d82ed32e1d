"""Stage timing for fixture setup."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Generator

logger = structlog.get_logger(__name__)


@contextmanager
def timed(stage: str, **fields: Any) -> Generator[dict[str, float], None, None]:
    """Log the duration of the block as ``stage_timed``.

    The yielded dict gets its ``elapsed`` key (seconds) when the block exits,
    also when it raises, so callers can feed a ``StageClock`` from ``finally``.
    """
    lap: dict[str, float] = {"elapsed": 0.0}
    started = time.monotonic()
    try:
        yield lap
    finally:
        lap["elapsed"] = time.monotonic() - started
        logger.debug("stage_timed", stage=stage, elapsed_seconds=lap["elapsed"], **fields)


class StageClock:
    """Accumulates per-stage durations for one login."""

    def __init__(self) -> None:
        self._laps: dict[str, float] = {}

    def record(self, stage: str, elapsed: float) -> None:
        self._laps[stage] = self._laps.get(stage, 0.0) + elapsed

    @property
    def laps(self) -> dict[str, float]:
        return dict(self._laps)

    @property
    def total(self) -> float:
        return sum(self._laps.values())
