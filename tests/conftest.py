from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from proxychat.artifacts.pack_writer import PackWriter
from proxychat.artifacts.pipeline import ArtifactPipeline
from proxychat.artifacts.store import ArtifactStore
from proxychat.config import Settings
from proxychat.engine.orchestrator import Orchestrator
from proxychat.engine.ports import PresentationSink
from proxychat.llm.gateway import GenerationGateway
from proxychat.llm.media_providers import StubImageProvider, StubMusicProvider
from proxychat.llm.providers import BaseTextProvider
from proxychat.messages import MessageCatalog
from proxychat.models.core import Vec3
from proxychat.world.sim_world import SimWorld


def make_settings(tmp_path: Path, **overrides) -> Settings:
    base = replace(
        Settings(),
        dev_mode=False,
        reserved_prefix="/",
        trigger_start="@companion",
        trigger_end="@bye",
        trigger_image="@makepainting",
        trigger_music="@makemusic",
        tick_hz=20,
        search_radius=256.0,
        move_speed=1.0,
        arrive_distance=2.5,
        path_refresh_ticks=20,
        worker_threads=2,
        worker_queue_size=64,
        job_deadline_seconds=180,
        text_backend="stub",
        image_backend="stub",
        music_backend="stub",
        speech_backend="off",
        persona_name="Grumpy",
        personalities_dir=str(tmp_path / "personalities"),
        messages_path=None,
        output_dir=str(tmp_path / "generated"),
        pack_dir=str(tmp_path / "pack"),
        disc_id="13",
        painting_variant="pointer",
    )
    return replace(base, **overrides)


class RecordingSink(PresentationSink):
    def __init__(self) -> None:
        super().__init__()
        self.messages: list[tuple[str, str]] = []
        self.spoken: list[tuple[str, str | None, str]] = []

    def send_message(self, user_id: str, text: str) -> None:
        self.messages.append((user_id, text))

    def play_speech_at(self, user_id: str, actor_id: str | None, text: str) -> None:
        self.spoken.append((user_id, actor_id, text))
        super().play_speech_at(user_id, actor_id, text)

    def texts(self, user_id: str | None = None) -> list[str]:
        return [text for uid, text in self.messages if user_id is None or uid == user_id]


class RecordingWorld(SimWorld):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str, object]] = []

    def seek(self, actor_id: str, user_id: str, speed: float) -> None:
        self.calls.append(("seek", actor_id, user_id))
        super().seek(actor_id, user_id, speed)

    def look_at(self, actor_id: str, user_id: str) -> None:
        self.calls.append(("look_at", actor_id, user_id))
        super().look_at(actor_id, user_id)

    def freeze(self, actor_id: str, frozen: bool) -> None:
        self.calls.append(("freeze", actor_id, frozen))
        super().freeze(actor_id, frozen)

    def count(self, name: str, arg: object = None) -> int:
        return sum(1 for call in self.calls if call[0] == name and (arg is None or call[2] == arg))


class FakeTextProvider(BaseTextProvider):
    name = "fake"

    def __init__(self, settings: Settings, reply: str = "Fine. What do you want?", *, enabled: bool = True) -> None:
        super().__init__(settings)
        self.reply = reply
        self.error: Exception | None = None
        self._enabled = enabled
        self.calls: list[tuple[list, str]] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def generate_text(self, history, new_input: str) -> str:
        self.calls.append((list(history), new_input))
        if self.error is not None:
            raise self.error
        return self.reply


def fake_transcoder(source: Path, target: Path) -> Path:
    target.write_bytes(b"OggS" + source.read_bytes()[:16])
    return target


class Harness:
    def __init__(self, tmp_path: Path, *, image: bool = True, music: bool = True, **overrides) -> None:
        self.settings = make_settings(tmp_path, **overrides)
        self.sink = RecordingSink()
        self.world = RecordingWorld()
        self.world.spawn_actor("villager-1", Vec3(10.0, 64.0, 0.0))
        self.world.ensure_user("alice", Vec3(0.0, 64.0, 0.0))
        self.text = FakeTextProvider(self.settings)
        self.gateway = GenerationGateway(
            text=self.text,
            image=StubImageProvider() if image else None,
            music=StubMusicProvider() if music else None,
        )
        artifacts = ArtifactPipeline(
            self.gateway,
            ArtifactStore(self.settings.output_dir),
            PackWriter(self.settings.pack_dir),
            disc_id=self.settings.disc_id,
            painting_variant=self.settings.painting_variant,
            transcoder=fake_transcoder,
        )
        self.orchestrator = Orchestrator(
            self.settings,
            actors=self.world,
            sink=self.sink,
            gateway=self.gateway,
            artifacts=artifacts,
            messages=MessageCatalog(),
        )
        self.ctx = self.orchestrator.ctx

    def say(self, text: str, user_id: str = "alice") -> None:
        self.orchestrator.post_message(user_id, text)
        self.orchestrator.run_once()

    def settle(self) -> None:
        assert self.ctx.dispatcher.wait_idle(5.0)
        self.orchestrator.run_once()

    def ticks(self, count: int) -> None:
        for _ in range(count):
            self.orchestrator.run_once()

    def session(self, user_id: str = "alice"):
        return self.ctx.registry.get(user_id)

    def close(self) -> None:
        self.orchestrator.stop()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def harness(tmp_path):
    h = Harness(tmp_path)
    yield h
    h.close()
