from __future__ import annotations

import logging
from typing import Callable

from proxychat.audio.device import SimulatedDevice

log = logging.getLogger(__name__)


class PlaybackReaper:
    """Releases (source, buffer) pairs once their playback has stopped.

    ``reap`` must run on the thread that owns the device; it is registered as
    a tick hook on the authoritative loop.
    """

    def __init__(self, device: SimulatedDevice, *, owner_check: Callable[[], bool] | None = None) -> None:
        self.device = device
        self._owner_check = owner_check
        self._active: list[tuple[int, int]] = []

    @property
    def active(self) -> int:
        return len(self._active)

    def track(self, source: int, buffer: int) -> None:
        self._active.append((source, buffer))

    def reap(self, tick: int | None = None) -> int:
        if self._owner_check is not None and not self._owner_check():
            log.warning("reap_skipped reason=not_owner_thread")
            return 0
        still_playing: list[tuple[int, int]] = []
        released = 0
        for source, buffer in self._active:
            if self.device.is_stopped(source):
                self.device.release(source, buffer)
                released += 1
            else:
                still_playing.append((source, buffer))
        self._active = still_playing
        if released:
            log.debug("playback_reaped released=%s remaining=%s", released, len(still_playing))
        return released
