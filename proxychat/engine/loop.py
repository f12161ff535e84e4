from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable

log = logging.getLogger(__name__)

Callback = Callable[[], None]
TickHook = Callable[[int], None]


class AuthoritativeLoop:
    """Single thread that owns session state, actor calls and sink writes.

    Other threads hand work over with ``post``. Each tick drains the posted
    callbacks that were queued before the tick started, in FIFO order, then
    runs the tick hooks in registration order.
    """

    def __init__(self, *, tick_hz: int = 20) -> None:
        self.tick_hz = max(1, int(tick_hz))
        self.tick = 0
        self._posted: queue.SimpleQueue[Callback] = queue.SimpleQueue()
        self._hooks: list[tuple[str, TickHook]] = []
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._owner_ident: int | None = None

    def post(self, callback: Callback) -> None:
        self._posted.put(callback)

    def add_tick_hook(self, name: str, hook: TickHook) -> None:
        self._hooks.append((name, hook))

    def on_authoritative_thread(self) -> bool:
        if self._owner_ident is None:
            return True
        return threading.get_ident() == self._owner_ident

    def run_once(self) -> int:
        pending = self._posted.qsize()
        for _ in range(pending):
            try:
                callback = self._posted.get_nowait()
            except queue.Empty:
                break
            try:
                callback()
            except Exception:
                log.exception("posted_callback_failed tick=%s", self.tick)
        self.tick += 1
        for name, hook in self._hooks:
            try:
                hook(self.tick)
            except Exception:
                log.exception("tick_hook_failed hook=%s tick=%s", name, self.tick)
        return self.tick

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(target=self._run_loop, name="proxychat-authoritative", daemon=True)
            thread.start()
            self._thread = thread
        log.info("authoritative_loop_started tick_hz=%s", self.tick_hz)
        return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        log.info("authoritative_loop_stopped tick=%s", self.tick)
        return True

    def _run_loop(self) -> None:
        self._owner_ident = threading.get_ident()
        period = 1.0 / self.tick_hz
        next_at = time.monotonic()
        while not self._stop_event.is_set():
            self.run_once()
            next_at += period
            delay = next_at - time.monotonic()
            if delay < 0:
                # fell behind, no catch-up ticks
                next_at = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)
