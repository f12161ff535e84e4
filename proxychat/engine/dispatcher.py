from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

from proxychat.models.results import GenerationResult, Transient

log = logging.getLogger(__name__)

Job = Callable[[], GenerationResult]
Continuation = Callable[[GenerationResult], None]
Post = Callable[[Callable[[], None]], None]

_STOP = object()


class TaskDispatcher:
    """Bounded worker pool for blocking generation calls.

    Results never touch session state on the worker: every continuation is
    handed to ``post`` (the authoritative loop). When the queue is full the
    submitting thread runs the job itself instead of dropping it.
    """

    def __init__(self, post: Post, *, workers: int = 2, queue_size: int = 64, name: str = "proxychat-gen") -> None:
        self._post = post
        self._workers = max(1, min(2, int(workers)))
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, int(queue_size)))
        self._name = name
        self._threads: list[threading.Thread] = []
        self._state_lock = threading.Lock()
        self._idle = threading.Condition()
        self._pending = 0
        self._abandon = threading.Event()

    @property
    def pending(self) -> int:
        with self._idle:
            return self._pending

    def start(self) -> None:
        with self._state_lock:
            if self._threads:
                return
            self._abandon.clear()
            for index in range(self._workers):
                thread = threading.Thread(target=self._worker_loop, name=f"{self._name}-{index}", daemon=True)
                thread.start()
                self._threads.append(thread)
        log.info("dispatcher_started workers=%s queue_size=%s", self._workers, self._queue.maxsize)

    def shutdown(self, *, wait: bool = True, timeout: float = 5.0) -> None:
        with self._state_lock:
            threads = list(self._threads)
            self._threads.clear()
        for _ in threads:
            try:
                self._queue.put_nowait(_STOP)
            except queue.Full:
                # workers exit after their current item; queued jobs are dropped
                log.warning("dispatcher_stop_queue_full queued=%s", self._queue.qsize())
                self._abandon.set()
                break
        if wait:
            for thread in threads:
                thread.join(timeout=timeout)
        log.info("dispatcher_stopped")

    def submit(self, job: Job, continuation: Continuation, *, label: str = "job") -> bool:
        """Queue ``job``; returns False when it had to run inline on the caller."""
        self.start()
        with self._idle:
            self._pending += 1
        try:
            self._queue.put_nowait((job, continuation, label))
            return True
        except queue.Full:
            log.warning("dispatcher_queue_full label=%s policy=caller_runs", label)
            self._execute(job, continuation, label)
            return False

    def wait_idle(self, timeout: float = 5.0) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                job, continuation, label = item
                self._execute(job, continuation, label)
                if self._abandon.is_set():
                    return
            finally:
                self._queue.task_done()

    def _execute(self, job: Job, continuation: Continuation, label: str) -> None:
        try:
            try:
                result = job()
            except Exception as exc:
                log.warning("job_failed label=%s", label, exc_info=True)
                result = Transient(str(exc) or exc.__class__.__name__)
            self._post(lambda: continuation(result))
        finally:
            with self._idle:
                self._pending -= 1
                self._idle.notify_all()
