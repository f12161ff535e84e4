from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from proxychat.models.core import PcmAudio, Vec3

log = logging.getLogger(__name__)


@dataclass
class _Source:
    buffer: int
    started_at: float
    duration: float
    position: Vec3 | None


class SimulatedDevice:
    """In-process playback device with buffer and source handles.

    A source reports stopped once its buffer's duration has elapsed on
    ``clock``. Handles stay allocated until ``release`` is called.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._buffers: dict[int, PcmAudio] = {}
        self._sources: dict[int, _Source] = {}

    @property
    def live_buffers(self) -> int:
        with self._lock:
            return len(self._buffers)

    @property
    def live_sources(self) -> int:
        with self._lock:
            return len(self._sources)

    def create_buffer(self, pcm: PcmAudio) -> int:
        with self._lock:
            handle = next(self._ids)
            self._buffers[handle] = pcm
        return handle

    def play(self, buffer: int, position: Vec3 | None) -> int:
        with self._lock:
            pcm = self._buffers.get(buffer)
            if pcm is None:
                raise KeyError(f"unknown buffer {buffer}")
            handle = next(self._ids)
            self._sources[handle] = _Source(buffer, self._clock(), pcm.duration_seconds, position)
        log.debug("playback_started source=%s seconds=%.2f", handle, pcm.duration_seconds)
        return handle

    def is_stopped(self, source: int) -> bool:
        with self._lock:
            entry = self._sources.get(source)
            if entry is None:
                return True
            return self._clock() - entry.started_at >= entry.duration

    def release(self, source: int, buffer: int) -> None:
        with self._lock:
            self._sources.pop(source, None)
            self._buffers.pop(buffer, None)
