from __future__ import annotations

import threading

from proxychat.engine.dispatcher import TaskDispatcher
from proxychat.engine.loop import AuthoritativeLoop
from proxychat.models.results import Ok, Transient


def test_continuations_run_on_the_loop_not_the_worker():
    loop = AuthoritativeLoop(tick_hz=20)
    dispatcher = TaskDispatcher(loop.post, workers=2)
    seen: list[tuple[object, str]] = []

    def job():
        return Ok(threading.current_thread().name)

    dispatcher.submit(job, lambda result: seen.append((result, threading.current_thread().name)))
    assert dispatcher.wait_idle(5.0)
    assert seen == []

    loop.run_once()
    dispatcher.shutdown()

    result, thread_name = seen[0]
    assert result.payload.startswith("proxychat-gen-")
    assert thread_name == threading.current_thread().name


def test_job_exception_becomes_transient_result():
    loop = AuthoritativeLoop()
    dispatcher = TaskDispatcher(loop.post, workers=1)
    seen = []

    def job():
        raise ValueError("network hiccup")

    dispatcher.submit(job, seen.append, label="boom")
    assert dispatcher.wait_idle(5.0)
    loop.run_once()
    dispatcher.shutdown()

    assert seen == [Transient("network hiccup")]


def test_full_queue_runs_job_on_caller():
    loop = AuthoritativeLoop()
    dispatcher = TaskDispatcher(loop.post, workers=1, queue_size=1)
    gate = threading.Event()
    started = threading.Event()
    seen = []

    def blocking_job():
        started.set()
        gate.wait(5.0)
        return Ok("blocked")

    assert dispatcher.submit(blocking_job, seen.append) is True
    assert started.wait(5.0)
    assert dispatcher.submit(lambda: Ok("queued"), seen.append) is True

    caller = threading.current_thread().name
    inline = dispatcher.submit(lambda: Ok(threading.current_thread().name), seen.append)
    assert inline is False

    gate.set()
    assert dispatcher.wait_idle(5.0)
    loop.run_once()
    dispatcher.shutdown()

    assert Ok(caller) in seen
    assert {r.payload for r in seen} == {"blocked", "queued", caller}


def test_worker_count_is_clamped():
    loop = AuthoritativeLoop()
    dispatcher = TaskDispatcher(loop.post, workers=8)
    dispatcher.start()
    try:
        names = {t.name for t in threading.enumerate() if t.name.startswith("proxychat-gen-")}
        assert len(names) == 2
    finally:
        dispatcher.shutdown()


def test_shutdown_with_full_queue_returns_and_worker_exits():
    loop = AuthoritativeLoop()
    dispatcher = TaskDispatcher(loop.post, workers=1, queue_size=1)
    gate = threading.Event()
    started = threading.Event()
    ran: list[str] = []

    def hung_job():
        started.set()
        gate.wait(5.0)
        return Ok("hung")

    dispatcher.submit(hung_job, lambda result: None)
    assert started.wait(5.0)
    dispatcher.submit(lambda: Ok(ran.append("queued")), lambda result: None)

    worker = dispatcher._threads[0]
    stopper = threading.Thread(target=dispatcher.shutdown, kwargs={"wait": False})
    stopper.start()
    stopper.join(timeout=2.0)
    assert not stopper.is_alive()

    gate.set()
    worker.join(timeout=5.0)
    assert not worker.is_alive()
    assert ran == []
