from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from proxychat.models.core import Vec3

if TYPE_CHECKING:
    from proxychat.audio.speech import SpeechPlayer

log = logging.getLogger(__name__)


class ActorController(ABC):
    """Capability to find, move, orient and freeze proxy actors in the world."""

    @abstractmethod
    def user_position(self, user_id: str) -> Vec3 | None:
        raise NotImplementedError

    @abstractmethod
    def find_nearest_live_actor(self, origin: Vec3, radius: float) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def seek(self, actor_id: str, user_id: str, speed: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def look_at(self, actor_id: str, user_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def freeze(self, actor_id: str, frozen: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_alive(self, actor_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def drop_item(self, actor_id: str, item_kind: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def distance_sq(self, actor_id: str, user_id: str) -> float | None:
        raise NotImplementedError

    def speech_position(self, actor_id: str | None, user_id: str) -> Vec3 | None:
        return self.user_position(user_id)

    def release(self, actor_id: str) -> None:
        if self.is_alive(actor_id):
            self.freeze(actor_id, False)


class PresentationSink(ABC):
    """Where user-visible text and speech go. Called only on the authoritative thread."""

    def __init__(self) -> None:
        self.speech: SpeechPlayer | None = None

    def attach_speech(self, speech: SpeechPlayer) -> None:
        self.speech = speech

    @abstractmethod
    def send_message(self, user_id: str, text: str) -> None:
        raise NotImplementedError

    def play_speech_at(self, user_id: str, actor_id: str | None, text: str) -> None:
        if self.speech is None:
            log.debug("speech_skipped user=%s reason=no_player", user_id)
            return
        self.speech.speak(user_id, actor_id, text)
