from __future__ import annotations

import logging

from proxychat.artifacts.pipeline import ArtifactPipeline
from proxychat.audio.device import SimulatedDevice
from proxychat.audio.reaper import PlaybackReaper
from proxychat.audio.speech import SpeechPlayer
from proxychat.config import Settings
from proxychat.engine.context import OrchestratorContext
from proxychat.engine.dispatcher import TaskDispatcher
from proxychat.engine.jobs import GenerationJobs
from proxychat.engine.loop import AuthoritativeLoop
from proxychat.engine.ports import ActorController, PresentationSink
from proxychat.engine.router import TriggerRouter
from proxychat.engine.session import SessionRegistry
from proxychat.engine.tick_driver import TickDriver
from proxychat.llm.gateway import GenerationGateway
from proxychat.llm.personality import load_persona
from proxychat.messages import MessageCatalog
from proxychat.world.sim_world import SimWorld

log = logging.getLogger(__name__)


class Orchestrator:
    """Owns the loop, worker pool and every piece of shared state.

    Inbound chat goes through ``post_message`` so that routing always happens
    on the authoritative thread.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        actors: ActorController,
        sink: PresentationSink,
        gateway: GenerationGateway | None = None,
        artifacts: ArtifactPipeline | None = None,
        messages: MessageCatalog | None = None,
        device: SimulatedDevice | None = None,
    ) -> None:
        loop = AuthoritativeLoop(tick_hz=settings.tick_hz)
        gateway = gateway or GenerationGateway.from_settings(settings)
        self.ctx = OrchestratorContext(
            settings=settings,
            registry=SessionRegistry(),
            gateway=gateway,
            actors=actors,
            sink=sink,
            loop=loop,
            dispatcher=TaskDispatcher(
                loop.post,
                workers=settings.worker_threads,
                queue_size=settings.worker_queue_size,
            ),
            artifacts=artifacts or ArtifactPipeline.from_settings(settings, gateway),
            messages=messages or MessageCatalog.load(settings.messages_path),
            persona=load_persona(settings.persona_name, settings.personalities_dir),
        )
        self.jobs = GenerationJobs(self.ctx)
        self.router = TriggerRouter(self.ctx, self.jobs)
        self.tick_driver = TickDriver(self.ctx)

        self.device = device or SimulatedDevice()
        self.reaper = PlaybackReaper(self.device, owner_check=loop.on_authoritative_thread)
        self.speech = SpeechPlayer(
            gateway,
            self.device,
            self.reaper,
            post=loop.post,
            notify=self.ctx.notify,
            positions=actors.speech_position,
        )
        sink.attach_speech(self.speech)

        if isinstance(actors, SimWorld):
            loop.add_tick_hook("world.step", actors.step)
        loop.add_tick_hook("sessions", self.tick_driver.run)
        loop.add_tick_hook("speech.reap", self.reaper.reap)

    @property
    def loop(self) -> AuthoritativeLoop:
        return self.ctx.loop

    @property
    def registry(self) -> SessionRegistry:
        return self.ctx.registry

    def post_message(self, user_id: str, text: str) -> None:
        self.ctx.loop.post(lambda: self._inbound(user_id, text))

    def _inbound(self, user_id: str, text: str) -> None:
        actors = self.ctx.actors
        if isinstance(actors, SimWorld):
            actors.ensure_user(user_id)
        self.router.handle(user_id, text)

    def run_once(self) -> int:
        return self.ctx.loop.run_once()

    def start(self) -> None:
        self.ctx.dispatcher.start()
        self.ctx.loop.start()
        log.info("orchestrator_started sessions=%s", len(self.ctx.registry))

    def stop(self) -> None:
        self.ctx.loop.stop()
        self.ctx.dispatcher.shutdown(wait=False)
        self.speech.shutdown()
        log.info("orchestrator_stopped breakers=%s", self.ctx.breakers.status())
