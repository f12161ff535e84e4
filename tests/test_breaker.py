from __future__ import annotations

import threading

from proxychat.engine.breaker import BreakerBoard, QuotaBreaker
from proxychat.models.results import Capability


def test_breaker_is_sticky_and_trips_once(caplog):
    breaker = QuotaBreaker(Capability.TEXT)
    assert breaker.tripped is False

    with caplog.at_level("WARNING"):
        assert breaker.trip() is True
        assert breaker.trip() is False

    assert breaker.tripped is True
    assert sum("quota_breaker_tripped" in record.getMessage() for record in caplog.records) == 1


def test_concurrent_trips_report_a_single_winner():
    breaker = QuotaBreaker(Capability.IMAGE)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        won = breaker.trip()
        with lock:
            results.append(won)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert breaker.tripped


def test_board_keeps_capabilities_independent():
    board = BreakerBoard()
    board[Capability.MUSIC].trip()

    assert board.tripped(Capability.MUSIC)
    assert not board.tripped(Capability.TEXT)
    assert board.status() == {"text": False, "image": False, "music": True, "speech": False}
