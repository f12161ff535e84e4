from __future__ import annotations

import logging
import threading

from proxychat.models.results import Capability

log = logging.getLogger(__name__)


class QuotaBreaker:
    """Sticky per-capability flag. Once tripped it stays tripped for the process lifetime."""

    def __init__(self, capability: Capability) -> None:
        self.capability = capability
        self._tripped = threading.Event()
        self._lock = threading.Lock()

    @property
    def tripped(self) -> bool:
        return self._tripped.is_set()

    def trip(self) -> bool:
        with self._lock:
            if self._tripped.is_set():
                return False
            self._tripped.set()
        log.warning("quota_breaker_tripped capability=%s", self.capability.value)
        return True


class BreakerBoard:
    def __init__(self) -> None:
        self._breakers = {capability: QuotaBreaker(capability) for capability in Capability}

    def __getitem__(self, capability: Capability) -> QuotaBreaker:
        return self._breakers[capability]

    def tripped(self, capability: Capability) -> bool:
        return self._breakers[capability].tripped

    def status(self) -> dict[str, bool]:
        return {capability.value: breaker.tripped for capability, breaker in self._breakers.items()}
