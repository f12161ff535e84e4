from __future__ import annotations

import threading

from conftest import Harness

from proxychat.engine.session import NavState
from proxychat.llm.providers import QuotaExceededError
from proxychat.messages import DEFAULT_MESSAGES
from proxychat.models.core import Vec3
from proxychat.models.results import Capability


def test_start_without_actor_in_range_sends_no_nearby(tmp_path):
    h = Harness(tmp_path, search_radius=5.0)
    try:
        h.say("@companion")
        assert h.sink.texts("alice") == [DEFAULT_MESSAGES["no_nearby"]]
        assert h.session() is None
    finally:
        h.close()


def test_start_creates_seeking_session_with_persona_and_greeting(harness):
    harness.say("@Companion please come")

    session = harness.session()
    assert session is not None
    assert session.actor_id == "villager-1"
    assert session.nav_state is NavState.SEEKING
    roles = [turn.role for turn in session.history]
    assert roles == ["system", "model"]
    assert harness.sink.texts("alice") == [DEFAULT_MESSAGES["greeting"]]
    assert harness.sink.spoken == [("alice", "villager-1", DEFAULT_MESSAGES["greeting"])]
    assert harness.world.count("seek") == 1


def test_restart_replaces_session_and_releases_old_actor(harness):
    harness.world.spawn_actor("villager-2", Vec3(50.0, 64.0, 0.0))
    harness.say("@companion")
    first = harness.session()
    harness.world.actors["villager-1"].frozen = True
    harness.world.move_user("alice", Vec3(50.0, 64.0, 1.0))

    harness.say("@companion")

    second = harness.session()
    assert second is not first
    assert second.actor_id == "villager-2"
    assert harness.world.actors["villager-1"].frozen is False


def test_end_without_session_is_silent_noop(harness):
    harness.say("@bye")
    assert harness.sink.messages == []
    assert harness.session() is None


def test_end_removes_session_and_unfreezes_actor(harness):
    harness.say("@companion")
    harness.ticks(10)
    assert harness.world.actors["villager-1"].frozen is True

    harness.say("@bye")

    assert harness.session() is None
    assert harness.world.actors["villager-1"].frozen is False
    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["farewell"]


def test_reserved_prefix_and_blank_lines_are_ignored(harness):
    harness.say("/companion")
    harness.say("   ")
    harness.say("")
    assert harness.sink.messages == []
    assert harness.session() is None


def test_chat_without_session_is_ignored(harness):
    harness.say("hello?")
    assert harness.sink.messages == []
    assert harness.text.calls == []


def test_chat_round_trip_sends_history_before_new_turn(harness):
    harness.say("@companion")
    harness.say("what's up")
    harness.settle()

    history, new_input = harness.text.calls[0]
    assert new_input == "what's up"
    assert [turn.role for turn in history] == ["system", "model"]

    session = harness.session()
    assert session.busy is False
    assert [turn.role for turn in session.history] == ["system", "model", "user", "model"]
    assert harness.sink.texts("alice")[-1] == "[Companion] Fine. What do you want?"
    assert harness.sink.spoken[-1] == ("alice", "villager-1", "Fine. What do you want?")


def test_chat_with_text_disabled_sends_not_configured(tmp_path):
    h = Harness(tmp_path)
    h.text._enabled = False
    try:
        h.say("@companion")
        h.say("hello")
        assert h.sink.texts("alice")[-1] == DEFAULT_MESSAGES["not_configured.text"]
        assert h.session().busy is False
        assert h.ctx.dispatcher.pending == 0
        assert h.text.calls == []
    finally:
        h.close()


def test_quota_trips_breaker_then_later_chat_short_circuits(harness):
    harness.text.error = QuotaExceededError("gemini_http_429")
    harness.say("@companion")
    harness.say("first")
    harness.settle()

    assert harness.ctx.breakers.tripped(Capability.TEXT)
    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["quota.text"]
    assert len(harness.text.calls) == 1

    harness.say("second")

    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["quota.text"]
    assert len(harness.text.calls) == 1
    assert harness.session().busy is False


def test_second_trigger_while_busy_is_rejected(harness):
    gate = threading.Event()
    original = harness.text.generate_text

    def slow(history, new_input):
        gate.wait(5.0)
        return original(history, new_input)

    harness.text.generate_text = slow
    harness.say("@companion")
    harness.say("first")
    harness.say("@makepainting a lighthouse")
    harness.say("second")

    assert harness.sink.texts("alice")[-2:] == [DEFAULT_MESSAGES["busy"], DEFAULT_MESSAGES["thinking"]]
    assert harness.ctx.dispatcher.pending == 1

    gate.set()
    harness.settle()
    assert harness.session().busy is False
    assert len(harness.text.calls) == 1


def test_painting_requires_prompt(harness):
    harness.say("@companion")
    harness.say("@makepainting   ")
    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["painting.prompt_required"]
    assert harness.session().busy is False


def test_painting_drops_item_and_writes_pack(harness, tmp_path):
    harness.say("@companion")
    harness.say("@makepainting a lighthouse at dusk")
    assert 'painting "a lighthouse at dusk"' in harness.sink.texts("alice")[-1]
    harness.settle()

    assert harness.world.actors["villager-1"].drops == ["painting"]
    assert (tmp_path / "pack" / "assets/minecraft/textures/painting/pointer.png").is_file()
    texts = harness.sink.texts("alice")
    assert DEFAULT_MESSAGES["painting.reload_textures"] in texts
    assert texts[-1] == DEFAULT_MESSAGES["painting.done"]


def test_music_drops_disc(harness, tmp_path):
    harness.say("@companion")
    harness.say("@MakeMusic calm piano")
    harness.settle()

    assert harness.world.actors["villager-1"].drops == ["music_disc_13"]
    assert (tmp_path / "pack" / "assets/minecraft/sounds/records/13.ogg").is_file()
    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["music.done"]


def test_tripped_image_breaker_short_circuits_without_gateway_call(harness):
    harness.ctx.breakers[Capability.IMAGE].trip()
    harness.say("@companion")
    harness.say("@makepainting a cat")

    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["quota.image"]
    assert harness.session().busy is False
    assert harness.ctx.dispatcher.pending == 0


def test_chat_after_actor_death_ends_session(harness):
    harness.say("@companion")
    harness.world.kill("villager-1")

    harness.orchestrator.router.handle("alice", "hi")

    assert harness.session() is None
    assert harness.sink.texts("alice")[-1] == DEFAULT_MESSAGES["gone"]
    assert harness.text.calls == []


def test_handler_errors_are_isolated(harness, monkeypatch, caplog):
    def explode(*args, **kwargs):
        raise RuntimeError("world exploded")

    monkeypatch.setattr(harness.world, "user_position", explode)
    harness.say("@companion")

    assert harness.session() is None
    assert any("event_handling_failed" in record.getMessage() for record in caplog.records)


def test_overlapping_triggers_run_only_the_first_match(tmp_path):
    h = Harness(tmp_path, trigger_end="@comp")
    try:
        h.say("@companion")
        first = h.session()
        h.say("@companion")

        assert h.session() is not None
        assert h.session() is not first
        assert DEFAULT_MESSAGES["farewell"] not in h.sink.texts("alice")
        assert h.sink.texts("alice") == [DEFAULT_MESSAGES["greeting"], DEFAULT_MESSAGES["greeting"]]
    finally:
        h.close()


def test_painting_and_music_without_backend_send_not_configured(tmp_path):
    h = Harness(tmp_path, image=False, music=False)
    try:
        h.say("@companion")
        h.say("@makepainting a lighthouse")
        assert h.sink.texts("alice")[-1] == DEFAULT_MESSAGES["not_configured.image"]
        h.say("@makemusic calm piano")
        assert h.sink.texts("alice")[-1] == DEFAULT_MESSAGES["not_configured.music"]

        assert h.session().busy is False
        assert h.ctx.dispatcher.pending == 0
    finally:
        h.close()


def test_failed_submission_clears_busy(harness, monkeypatch, caplog):
    def refuse(*args, **kwargs):
        raise RuntimeError("pool closed")

    harness.say("@companion")
    monkeypatch.setattr(harness.ctx.dispatcher, "submit", refuse)
    harness.say("hello")

    session = harness.session()
    assert session.busy is False
    assert session.pending_job_id is None
    assert any("event_handling_failed" in record.getMessage() for record in caplog.records)


def test_reserved_prefix_only_applies_at_line_start(harness):
    harness.say("@companion")
    harness.say("  /help")
    harness.settle()

    assert harness.text.calls[-1][1] == "/help"
