from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from proxychat.audio.device import SimulatedDevice
from proxychat.audio.reaper import PlaybackReaper
from proxychat.llm.gateway import GenerationGateway
from proxychat.models.core import PcmAudio, Vec3
from proxychat.models.results import Capability, GenerationResult, NotConfigured, Ok, QuotaExceeded, Transient

log = logging.getLogger(__name__)

Post = Callable[[Callable[[], None]], None]
Notify = Callable[..., object]
PositionLookup = Callable[[str | None, str], Vec3 | None]


class SpeechPlayer:
    """Synthesizes replies on its own worker and plays them on the loop thread."""

    def __init__(
        self,
        gateway: GenerationGateway,
        device: SimulatedDevice,
        reaper: PlaybackReaper,
        *,
        post: Post,
        notify: Notify,
        positions: PositionLookup,
    ) -> None:
        self.gateway = gateway
        self.device = device
        self.reaper = reaper
        self._post = post
        self._notify = notify
        self._positions = positions
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="proxychat-speech")

    def speak(self, user_id: str, actor_id: str | None, text: str) -> bool:
        if not text or not text.strip():
            return False
        if self.gateway.breakers.tripped(Capability.SPEECH):
            self._notify(user_id, "quota.speech")
            return False
        if not self.gateway.enabled(Capability.SPEECH):
            log.debug("speech_skipped user=%s reason=not_configured", user_id)
            return False
        self._executor.submit(self._synthesize, user_id, actor_id, text)
        return True

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _synthesize(self, user_id: str, actor_id: str | None, text: str) -> None:
        result = self.gateway.synthesize_speech(text)
        self._post(lambda: self._deliver(user_id, actor_id, result))

    def _deliver(self, user_id: str, actor_id: str | None, result: GenerationResult) -> None:
        if isinstance(result, Ok):
            self._play(user_id, actor_id, result.payload)
        elif isinstance(result, QuotaExceeded):
            self._notify(user_id, "quota.speech" if result.short_circuited else "quota.speech_full")
        elif isinstance(result, NotConfigured):
            log.debug("speech_skipped user=%s reason=not_configured", user_id)
        elif isinstance(result, Transient):
            self._notify(user_id, "speech.error", error=result.message)

    def _play(self, user_id: str, actor_id: str | None, pcm: PcmAudio) -> None:
        position = self._positions(actor_id, user_id)
        buffer = self.device.create_buffer(pcm)
        source = self.device.play(buffer, position)
        self.reaper.track(source, buffer)
        log.debug("speech_playing user=%s actor=%s source=%s", user_id, actor_id, source)
