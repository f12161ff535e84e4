from __future__ import annotations

import logging

from proxychat.engine.context import OrchestratorContext
from proxychat.engine.session import NavState, Session

log = logging.getLogger(__name__)


class TickDriver:
    """Per-tick navigation for every open session.

    SEEKING re-issues the path every ``path_refresh_ticks`` and flips to
    ARRIVED inside the arrive radius, freezing the actor once. ARRIVED keeps
    the actor facing its user.
    """

    def __init__(self, ctx: OrchestratorContext) -> None:
        self.ctx = ctx

    def run(self, tick: int) -> None:
        if self.ctx.registry.is_empty():
            return
        for user_id, session in self.ctx.registry.items():
            try:
                self._advance(session, tick)
            except Exception:
                log.exception("session_tick_failed user=%s tick=%s", user_id, tick)

    def _advance(self, session: Session, tick: int) -> None:
        ctx = self.ctx
        self._expire_overdue_job(session, tick)
        if ctx.actors.user_position(session.user_id) is None:
            return
        if not ctx.actors.is_alive(session.actor_id):
            ctx.end_for_missing_actor(session)
            return
        dist_sq = ctx.actors.distance_sq(session.actor_id, session.user_id)
        if dist_sq is None:
            return

        if session.nav_state is NavState.ARRIVED:
            ctx.actors.look_at(session.actor_id, session.user_id)
            return

        settings = ctx.settings
        if dist_sq <= settings.arrive_distance_sq:
            ctx.actors.freeze(session.actor_id, True)
            ctx.actors.look_at(session.actor_id, session.user_id)
            session.nav_state = NavState.ARRIVED
            log.info("actor_arrived user=%s actor=%s tick=%s", session.user_id, session.actor_id, tick)
            return
        if tick - session.last_path_issued_tick >= settings.path_refresh_ticks:
            ctx.actors.seek(session.actor_id, session.user_id, settings.move_speed)
            session.last_path_issued_tick = tick

    def _expire_overdue_job(self, session: Session, tick: int) -> None:
        if not session.busy or session.pending_job_id is None:
            return
        if tick - session.busy_since_tick < self.ctx.settings.job_deadline_ticks:
            return
        job_id = session.pending_job_id
        if session.finish_job(job_id):
            log.warning("job_timed_out user=%s job=%s ticks=%s", session.user_id, job_id, tick - session.busy_since_tick)
            self.ctx.notify(session.user_id, "job.timed_out")
