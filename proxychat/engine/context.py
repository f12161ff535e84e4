from __future__ import annotations

import logging
from dataclasses import dataclass

from proxychat.artifacts.pipeline import ArtifactPipeline
from proxychat.config import Settings
from proxychat.engine.breaker import BreakerBoard
from proxychat.engine.dispatcher import TaskDispatcher
from proxychat.engine.loop import AuthoritativeLoop
from proxychat.engine.ports import ActorController, PresentationSink
from proxychat.engine.session import Session, SessionRegistry
from proxychat.llm.gateway import GenerationGateway
from proxychat.messages import MessageCatalog

log = logging.getLogger(__name__)


@dataclass
class OrchestratorContext:
    """Process-wide state built once at startup and shared by router, jobs and tick driver."""

    settings: Settings
    registry: SessionRegistry
    gateway: GenerationGateway
    actors: ActorController
    sink: PresentationSink
    loop: AuthoritativeLoop
    dispatcher: TaskDispatcher
    artifacts: ArtifactPipeline
    messages: MessageCatalog
    persona: str | None = None

    @property
    def breakers(self) -> BreakerBoard:
        return self.gateway.breakers

    @property
    def tick(self) -> int:
        return self.loop.tick

    def notify(self, user_id: str, key: str, **kwargs: object) -> str:
        text = self.messages.get(key, **kwargs)
        self.sink.send_message(user_id, text)
        return text

    def say(self, user_id: str, actor_id: str | None, key: str, **kwargs: object) -> str:
        text = self.notify(user_id, key, **kwargs)
        self.sink.play_speech_at(user_id, actor_id, text)
        return text

    def end_for_missing_actor(self, session: Session) -> bool:
        if not self.registry.remove_if_current(session):
            return False
        self.actors.release(session.actor_id)
        log.info("session_ended user=%s actor=%s reason=actor_unavailable", session.user_id, session.actor_id)
        self.notify(session.user_id, "gone")
        return True
