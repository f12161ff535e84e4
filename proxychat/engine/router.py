from __future__ import annotations

import logging
from typing import Callable

from proxychat.engine.context import OrchestratorContext
from proxychat.engine.jobs import GenerationJobs
from proxychat.engine.session import Session
from proxychat.models.results import Capability

log = logging.getLogger(__name__)

Handler = Callable[[str, str, str], None]


class TriggerRouter:
    """Maps an incoming chat line to start, end, painting, music or free chat.

    Runs on the authoritative thread. Triggers are matched case-insensitively
    by prefix in a fixed priority order; anything else with an open session is
    treated as chat.
    """

    def __init__(self, ctx: OrchestratorContext, jobs: GenerationJobs | None = None) -> None:
        self.ctx = ctx
        self.jobs = jobs or GenerationJobs(ctx)
        settings = ctx.settings
        self._routes: list[tuple[str, Handler]] = [
            (settings.trigger_start.lower(), self._handle_start),
            (settings.trigger_end.lower(), self._handle_end),
            (settings.trigger_image.lower(), self._handle_painting),
            (settings.trigger_music.lower(), self._handle_music),
        ]

    def handle(self, user_id: str, raw_text: str) -> None:
        if not raw_text:
            return
        prefix = self.ctx.settings.reserved_prefix
        # checked before trimming: only a prefix at column 0 is reserved
        if prefix and raw_text.startswith(prefix):
            return
        text = raw_text.strip()
        if not text:
            return
        log.info("chat_event_received user=%s text=%s", user_id, text[:120])
        try:
            self._route(user_id, text)
        except Exception:
            log.exception("event_handling_failed user=%s", user_id)

    def _route(self, user_id: str, text: str) -> None:
        lowered = text.lower()
        for trigger, handler in self._routes:
            if trigger and lowered.startswith(trigger):
                handler(user_id, text, trigger)
                return
        self._handle_chat(user_id, text)

    def _active_session(self, user_id: str) -> Session | None:
        session = self.ctx.registry.get(user_id)
        if session is None:
            return None
        if not self.ctx.actors.is_alive(session.actor_id):
            self.ctx.end_for_missing_actor(session)
            return None
        return session

    def _handle_start(self, user_id: str, text: str, trigger: str) -> None:
        ctx = self.ctx
        origin = ctx.actors.user_position(user_id)
        actor_id = None
        if origin is not None:
            actor_id = ctx.actors.find_nearest_live_actor(origin, ctx.settings.search_radius)
        if actor_id is None:
            log.info("session_start_rejected user=%s reason=no_actor_in_range", user_id)
            ctx.notify(user_id, "no_nearby")
            return

        session = Session(user_id=user_id, actor_id=actor_id, last_path_issued_tick=ctx.tick)
        if ctx.persona:
            session.append_system(ctx.persona)
        greeting = ctx.messages.get("greeting")
        session.append_model(greeting)

        prior = ctx.registry.create_or_replace(session)
        if prior is not None:
            ctx.actors.release(prior.actor_id)
            log.info("session_replaced user=%s old_actor=%s", user_id, prior.actor_id)
        ctx.actors.seek(actor_id, user_id, ctx.settings.move_speed)
        log.info("session_started user=%s actor=%s", user_id, actor_id)
        ctx.sink.send_message(user_id, greeting)
        ctx.sink.play_speech_at(user_id, actor_id, greeting)

    def _handle_end(self, user_id: str, text: str, trigger: str) -> None:
        ctx = self.ctx
        session = ctx.registry.remove(user_id)
        if session is None:
            return
        alive = ctx.actors.is_alive(session.actor_id)
        ctx.actors.release(session.actor_id)
        log.info("session_ended user=%s actor=%s reason=user", user_id, session.actor_id)
        ctx.say(user_id, session.actor_id if alive else None, "farewell")

    def _handle_painting(self, user_id: str, text: str, trigger: str) -> None:
        session = self._active_session(user_id)
        if session is None:
            return
        prompt = text[len(trigger):].strip()
        if not self._accept(session, Capability.IMAGE, prompt, "painting.prompt_required"):
            return
        self.ctx.say(user_id, session.actor_id, "painting.start", prompt=prompt)
        self.jobs.submit_painting(session, prompt)

    def _handle_music(self, user_id: str, text: str, trigger: str) -> None:
        session = self._active_session(user_id)
        if session is None:
            return
        prompt = text[len(trigger):].strip()
        if not self._accept(session, Capability.MUSIC, prompt, "music.prompt_required"):
            return
        self.ctx.say(user_id, session.actor_id, "music.start", prompt=prompt)
        self.jobs.submit_music(session, prompt)

    def _accept(self, session: Session, capability: Capability, prompt: str, prompt_key: str) -> bool:
        ctx = self.ctx
        user_id = session.user_id
        if not ctx.gateway.enabled(capability):
            ctx.notify(user_id, f"not_configured.{capability.value}")
            return False
        if not prompt:
            ctx.notify(user_id, prompt_key)
            return False
        if session.busy:
            ctx.notify(user_id, "busy")
            return False
        if ctx.breakers.tripped(capability):
            log.info("generation_short_circuited user=%s capability=%s", user_id, capability.value)
            ctx.notify(user_id, f"quota.{capability.value}")
            return False
        return True

    def _handle_chat(self, user_id: str, text: str) -> None:
        session = self._active_session(user_id)
        if session is None:
            return
        ctx = self.ctx
        history = session.snapshot()
        session.append_user(text)
        if not ctx.gateway.enabled(Capability.TEXT):
            ctx.notify(user_id, "not_configured.text")
            return
        if session.busy:
            ctx.notify(user_id, "thinking")
            return
        if ctx.breakers.tripped(Capability.TEXT):
            log.info("generation_short_circuited user=%s capability=text", user_id)
            ctx.notify(user_id, "quota.text")
            return
        self.jobs.submit_chat(session, history, text)
