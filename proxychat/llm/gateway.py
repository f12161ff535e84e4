from __future__ import annotations

import logging
from typing import Callable, Sequence, TypeVar

from proxychat.config import Settings
from proxychat.engine.breaker import BreakerBoard
from proxychat.llm.media_providers import (
    ImageProvider,
    MusicProvider,
    SpeechProvider,
    build_image_provider,
    build_music_provider,
    build_speech_provider,
)
from proxychat.llm.providers import (
    BaseTextProvider,
    ProviderUnavailableError,
    QuotaExceededError,
    build_text_provider,
)
from proxychat.models.core import Turn
from proxychat.models.results import (
    Capability,
    GenerationResult,
    NotConfigured,
    Ok,
    QuotaExceeded,
    Transient,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationGateway:
    """Text, image, music and speech generation behind per-capability quota breakers.

    Every call returns a tagged result instead of raising. A tripped breaker
    short-circuits locally and never reaches the provider.
    """

    def __init__(
        self,
        *,
        text: BaseTextProvider | None = None,
        image: ImageProvider | None = None,
        music: MusicProvider | None = None,
        speech: SpeechProvider | None = None,
        breakers: BreakerBoard | None = None,
    ) -> None:
        self.breakers = breakers or BreakerBoard()
        self._providers: dict[Capability, object | None] = {
            Capability.TEXT: text,
            Capability.IMAGE: image,
            Capability.MUSIC: music,
            Capability.SPEECH: speech,
        }

    @classmethod
    def from_settings(cls, settings: Settings, breakers: BreakerBoard | None = None) -> GenerationGateway:
        return cls(
            text=build_text_provider(settings),
            image=build_image_provider(settings),
            music=build_music_provider(settings),
            speech=build_speech_provider(settings),
            breakers=breakers,
        )

    def enabled(self, capability: Capability) -> bool:
        provider = self._providers.get(capability)
        return provider is not None and bool(getattr(provider, "enabled", True))

    def generate_text(self, history: Sequence[Turn], new_input: str) -> GenerationResult:
        provider = self._providers[Capability.TEXT]
        return self._guarded(Capability.TEXT, lambda: provider.generate_text(list(history), new_input))

    def generate_image(self, prompt: str) -> GenerationResult:
        provider = self._providers[Capability.IMAGE]
        return self._guarded(Capability.IMAGE, lambda: provider.generate_image(prompt))

    def generate_music(self, prompt: str) -> GenerationResult:
        provider = self._providers[Capability.MUSIC]
        return self._guarded(Capability.MUSIC, lambda: provider.generate_music(prompt))

    def synthesize_speech(self, text: str) -> GenerationResult:
        provider = self._providers[Capability.SPEECH]
        return self._guarded(Capability.SPEECH, lambda: provider.synthesize(text))

    def _guarded(self, capability: Capability, call: Callable[[], T]) -> GenerationResult:
        breaker = self.breakers[capability]
        if breaker.tripped:
            log.info("generation_short_circuited capability=%s reason=quota", capability.value)
            return QuotaExceeded(capability, short_circuited=True)
        if not self.enabled(capability):
            return NotConfigured(capability)
        try:
            payload = call()
        except QuotaExceededError:
            breaker.trip()
            return QuotaExceeded(capability)
        except ProviderUnavailableError:
            log.warning("provider_unavailable capability=%s", capability.value, exc_info=True)
            return NotConfigured(capability)
        except Exception as exc:
            log.warning("generation_failed capability=%s", capability.value, exc_info=True)
            return Transient(str(exc) or exc.__class__.__name__)
        log.debug("generation_ok capability=%s", capability.value)
        return Ok(payload)
