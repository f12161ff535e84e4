from __future__ import annotations

import asyncio
import threading

from conftest import RecordingSink, make_settings

from proxychat.discord_bot import DiscordSink
from proxychat.main import build_orchestrator
from proxychat.world.sim_world import SimWorld


def test_build_orchestrator_seeds_simulated_world(tmp_path):
    settings = make_settings(tmp_path, sim_actor_count=4)
    orchestrator = build_orchestrator(settings, sink=RecordingSink())
    try:
        world = orchestrator.ctx.actors
        assert isinstance(world, SimWorld)
        assert len(world.actors) == 4
        assert [name for name, _ in orchestrator.loop._hooks] == ["world.step", "sessions", "speech.reap"]
    finally:
        orchestrator.stop()


def test_posted_message_registers_user_and_starts_session(tmp_path):
    settings = make_settings(tmp_path, sim_actor_count=2)
    sink = RecordingSink()
    orchestrator = build_orchestrator(settings, sink=sink)
    try:
        orchestrator.post_message("1234", "@companion")
        orchestrator.run_once()
        assert orchestrator.registry.get("1234") is not None
        assert sink.texts("1234")
    finally:
        orchestrator.stop()


class FakeChannel:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.done = threading.Event()

    async def send(self, content: str) -> None:
        self.sent.append(content)
        self.done.set()


def test_discord_sink_skips_unknown_users(caplog):
    sink = DiscordSink()
    sink.send_message("42", "hello")
    assert any("discord_send_skipped" in record.getMessage() for record in caplog.records)


def test_discord_sink_schedules_send_on_client_loop():
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    try:
        sink = DiscordSink()
        sink.bind(loop)
        channel = FakeChannel()
        sink.remember_channel("42", channel)

        sink.send_message("42", "hello")

        assert channel.done.wait(5.0)
        assert channel.sent == ["<@42> hello"]
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=5.0)
        loop.close()
