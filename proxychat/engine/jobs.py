from __future__ import annotations

import logging
from functools import partial
from typing import Callable

from proxychat.engine.context import OrchestratorContext
from proxychat.engine.session import Session
from proxychat.models.core import MusicArtifact, PaintingArtifact, Turn
from proxychat.models.results import (
    Capability,
    GenerationResult,
    NotConfigured,
    Ok,
    QuotaExceeded,
    Transient,
)

log = logging.getLogger(__name__)

Apply = Callable[[Session, GenerationResult], None]


class GenerationJobs:
    def __init__(self, ctx: OrchestratorContext) -> None:
        self.ctx = ctx

    def submit_chat(self, session: Session, history: list[Turn], text: str) -> str:
        gateway = self.ctx.gateway
        return self._submit(session, "chat", lambda: gateway.generate_text(history, text), self._apply_chat)

    def submit_painting(self, session: Session, prompt: str) -> str:
        artifacts = self.ctx.artifacts
        return self._submit(session, "painting", lambda: artifacts.paint(prompt), self._apply_painting)

    def submit_music(self, session: Session, prompt: str) -> str:
        artifacts = self.ctx.artifacts
        return self._submit(session, "music", lambda: artifacts.compose(prompt), self._apply_music)

    def _submit(self, session: Session, label: str, job: Callable[[], GenerationResult], apply: Apply) -> str:
        job_id = session.begin_job(self.ctx.tick)
        try:
            queued = self.ctx.dispatcher.submit(
                job,
                partial(self._complete, session, job_id, apply),
                label=f"{label}:{session.user_id}",
            )
        except Exception:
            session.finish_job(job_id)
            raise
        log.info("job_submitted user=%s job=%s kind=%s queued=%s", session.user_id, job_id, label, queued)
        return job_id

    def _complete(self, session: Session, job_id: str, apply: Apply, result: GenerationResult) -> None:
        if not session.finish_job(job_id):
            log.info("job_result_discarded user=%s job=%s reason=stale", session.user_id, job_id)
            return
        if self.ctx.registry.get(session.user_id) is not session:
            log.info("job_result_discarded user=%s job=%s reason=session_ended", session.user_id, job_id)
            return
        log.info("job_completed user=%s job=%s result=%s", session.user_id, job_id, type(result).__name__)
        apply(session, result)

    def _actor_present(self, session: Session) -> bool:
        if self.ctx.actors.is_alive(session.actor_id):
            return True
        log.info("job_result_discarded user=%s reason=actor_missing actor=%s", session.user_id, session.actor_id)
        return False

    def _report_failure(self, session: Session, capability: Capability, result: GenerationResult, failed_key: str) -> None:
        user_id = session.user_id
        if isinstance(result, QuotaExceeded):
            self.ctx.notify(user_id, f"quota.{capability.value}")
        elif isinstance(result, NotConfigured):
            self.ctx.notify(user_id, f"not_configured.{capability.value}")
        elif isinstance(result, Transient):
            error = f"{result.message} ({result.hint})" if result.hint else result.message
            self.ctx.notify(user_id, failed_key, error=error)
        else:
            log.warning("unexpected_job_result user=%s result=%r", user_id, result)

    def _apply_chat(self, session: Session, result: GenerationResult) -> None:
        if isinstance(result, Ok):
            reply = str(result.payload or "").strip() or "..."
            session.append_model(reply)
            prefix = self.ctx.messages.get("response_prefix")
            self.ctx.sink.send_message(session.user_id, f"{prefix}{reply}")
            actor_id = session.actor_id if self.ctx.actors.is_alive(session.actor_id) else None
            self.ctx.sink.play_speech_at(session.user_id, actor_id, reply)
            return
        if not self._actor_present(session):
            return
        self._report_failure(session, Capability.TEXT, result, "chat.failed")

    def _apply_painting(self, session: Session, result: GenerationResult) -> None:
        if not self._actor_present(session):
            return
        if not isinstance(result, Ok):
            self._report_failure(session, Capability.IMAGE, result, "painting.failed")
            return
        artifact: PaintingArtifact = result.payload
        try:
            self.ctx.artifacts.apply_painting(artifact)
        except (OSError, ValueError) as exc:
            log.warning("painting_apply_failed user=%s", session.user_id, exc_info=True)
            self.ctx.notify(session.user_id, "painting.apply_failed", error=str(exc))
            return
        self.ctx.notify(session.user_id, "painting.reload_textures")
        self.ctx.actors.drop_item(session.actor_id, "painting")
        self.ctx.say(session.user_id, session.actor_id, "painting.done")

    def _apply_music(self, session: Session, result: GenerationResult) -> None:
        if not self._actor_present(session):
            return
        if not isinstance(result, Ok):
            self._report_failure(session, Capability.MUSIC, result, "music.failed")
            return
        artifact: MusicArtifact = result.payload
        self.ctx.actors.drop_item(session.actor_id, f"music_disc_{artifact.disc_id}")
        self.ctx.say(session.user_id, session.actor_id, "music.done")
