"""Listening indicator: decorative waveform frames and their render loop."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

LOGGER = logging.getLogger(__name__)

WAVE_COLOR = "#0d6efd"
IDLE_COLOR = "#666666"


@dataclass(frozen=True, slots=True)
class VisualFrame:
    """Polyline to paint for one tick."""

    listening: bool
    color: str
    points: tuple[tuple[float, float], ...]


def build_frame(
    width: int,
    height: int,
    listening: bool,
    now_ms: float,
    *,
    amplitude: float = 20.0,
) -> VisualFrame:
    """Sine wave whose phase follows the clock while listening, flat line otherwise."""
    mid = height / 2
    if not listening:
        return VisualFrame(False, IDLE_COLOR, ((0.0, mid), (float(width), mid)))
    phase = now_ms / 200
    points = tuple((float(x), mid + math.sin(x / 10 + phase) * amplitude) for x in range(max(0, width)))
    return VisualFrame(True, WAVE_COLOR, points)


Scheduler = Callable[[int, Callable[[], None]], None]


class IndicatorLoop:
    """Perpetual render loop that reschedules itself after every tick.

    ``is_listening`` is sampled once per tick; it may be flipped from another
    thread since only a single boolean read is involved.
    """

    def __init__(
        self,
        render: Callable[[VisualFrame], None],
        schedule: Scheduler,
        is_listening: Callable[[], bool],
        size: Callable[[], tuple[int, int]],
        *,
        interval_ms: int = 16,
        amplitude: float = 20.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._render = render
        self._schedule = schedule
        self._is_listening = is_listening
        self._size = size
        self.interval_ms = interval_ms
        self.amplitude = amplitude
        self._clock = clock
        self.ticks = 0

    def start(self) -> None:
        """Paint the first frame; every frame schedules the next one."""
        self.tick()

    def tick(self) -> None:
        try:
            width, height = self._size()
            frame = build_frame(
                width,
                height,
                bool(self._is_listening()),
                self._clock() * 1000,
                amplitude=self.amplitude,
            )
            self._render(frame)
        except Exception:  # pragma: no cover - keep painting on the next tick
            LOGGER.exception("Indicator frame failed")
        finally:
            self.ticks += 1
            self._schedule(self.interval_ms, self.tick)
