from __future__ import annotations

import logging

from proxychat.config import Settings, configure_logging
from proxychat.discord_bot import DiscordSink, run_discord_bot
from proxychat.engine.orchestrator import Orchestrator
from proxychat.engine.ports import ActorController, PresentationSink
from proxychat.llm.gateway import GenerationGateway
from proxychat.world.sim_world import SimWorld


def build_orchestrator(
    settings: Settings,
    *,
    sink: PresentationSink,
    actors: ActorController | None = None,
    gateway: GenerationGateway | None = None,
) -> Orchestrator:
    if actors is None:
        actors = SimWorld.seeded(settings.sim_actor_count, rng_seed=settings.rng_seed if settings.dev_mode else 42)
    return Orchestrator(settings, actors=actors, sink=sink, gateway=gateway)


def main() -> None:
    settings = Settings()
    configure_logging(settings.dev_mode)
    logging.getLogger(__name__).info("app_start %s", settings.redacted())
    sink = DiscordSink()
    orchestrator = build_orchestrator(settings, sink=sink)
    run_discord_bot(orchestrator, sink, settings)


if __name__ == "__main__":
    main()
