"""Gapless playback scheduling for remote speech.

Every clip starts at ``max(now, last_scheduled_end)``, so clips arriving in
bursts play back-to-back, in order, without overlap. ``flush()`` implements
barge-in: all active clips stop at once and the timeline restarts at ``now``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from live_interview.audio.codec import PLAYBACK_SAMPLE_RATE
from live_interview.audio.output import AudioOutput

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PlaybackItem:
    buffer: np.ndarray
    scheduled_start: float
    sample_rate: int = PLAYBACK_SAMPLE_RATE
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def duration(self) -> float:
        return int(self.buffer.shape[0]) / float(self.sample_rate)

    @property
    def end(self) -> float:
        return self.scheduled_start + self.duration


class PlaybackScheduler:
    def __init__(
        self,
        output: AudioOutput | None = None,
        *,
        sample_rate: int = PLAYBACK_SAMPLE_RATE,
        clock: Callable[[], float] = time.monotonic,
        on_activity: Callable[[bool], None] | None = None,
    ) -> None:
        self._output = output
        self._sample_rate = sample_rate
        self._clock = clock
        self._on_activity = on_activity
        self._next_start = 0.0
        self._active: set[PlaybackItem] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def is_playing(self) -> bool:
        return bool(self._active)

    @property
    def next_start(self) -> float:
        return self._next_start

    def enqueue(self, samples: np.ndarray) -> PlaybackItem:
        """Schedule one decoded clip at the end of the timeline."""
        now = self._clock()
        start = max(now, self._next_start)
        item = PlaybackItem(
            buffer=np.asarray(samples, dtype=np.float32).reshape(-1),
            scheduled_start=start,
            sample_rate=self._sample_rate,
        )
        self._next_start = item.end

        was_idle = not self._active
        self._active.add(item)
        if self._output is not None:
            self._output.play(item)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            item._timer = loop.call_later(max(0.0, item.end - now), self.complete, item)

        logger.debug(
            "[LIVE][AUDIO] scheduled clip start=%.3f dur=%.3f active=%d",
            item.scheduled_start,
            item.duration,
            len(self._active),
        )
        if was_idle:
            self._notify(True)
        return item

    def complete(self, item: PlaybackItem) -> None:
        """Mark ``item`` as finished playing."""
        if item not in self._active:
            return
        self._active.discard(item)
        item._timer = None
        if not self._active:
            self._notify(False)

    def flush(self) -> int:
        """Stop every active clip and reset the timeline anchor to now.

        Returns the number of clips that were stopped.
        """
        stopped = len(self._active)
        items, self._active = self._active, set()
        for item in items:
            if item._timer is not None:
                item._timer.cancel()
                item._timer = None
            if self._output is not None:
                self._output.stop(item)
        if stopped:
            self._next_start = self._clock()
            logger.info("[LIVE][AUDIO] playback flushed clips=%d", stopped)
            self._notify(False)
        return stopped

    def _notify(self, active: bool) -> None:
        if self._on_activity is not None:
            self._on_activity(active)
