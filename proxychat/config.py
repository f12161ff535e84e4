from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env(*names: str, default: str | None = None) -> str | None:
    for name in names:
        raw = os.getenv(name)
        if raw is not None and raw.strip():
            return raw.strip()
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    dev_mode: bool = os.getenv("DEV_MODE", "0") == "1"
    discord_token: str | None = os.getenv("DISCORD_TOKEN")
    discord_channel: str = os.getenv("DISCORD_CHANNEL", "bot")

    reserved_prefix: str = os.getenv("RESERVED_PREFIX", "/")
    trigger_start: str = os.getenv("TRIGGER_START", "@companion").lower()
    trigger_end: str = os.getenv("TRIGGER_END", "@bye").lower()
    trigger_image: str = os.getenv("TRIGGER_IMAGE", "@makepainting").lower()
    trigger_music: str = os.getenv("TRIGGER_MUSIC", "@makemusic").lower()

    tick_hz: int = _env_int("TICK_HZ", 20)
    search_radius: float = _env_float("SEARCH_RADIUS", 256.0)
    move_speed: float = _env_float("MOVE_SPEED", 1.0)
    arrive_distance: float = _env_float("ARRIVE_DISTANCE", 2.5)
    path_refresh_ticks: int = _env_int("PATH_REFRESH_TICKS", 20)
    worker_threads: int = _env_int("WORKER_THREADS", 2)
    worker_queue_size: int = _env_int("WORKER_QUEUE_SIZE", 64)
    job_deadline_seconds: int = _env_int("JOB_DEADLINE_SECONDS", 180)

    text_backend: str = os.getenv("TEXT_BACKEND", "stub").strip().lower()
    image_backend: str = os.getenv("IMAGE_BACKEND", "stub").strip().lower()
    music_backend: str = os.getenv("MUSIC_BACKEND", "stub").strip().lower()
    speech_backend: str = os.getenv("SPEECH_BACKEND", "stub").strip().lower()
    llm_max_input_chars: int = _env_int("LLM_MAX_INPUT_CHARS", 600)

    gemini_api_key: str | None = _env("GEMINI_API_KEY", "GOOGLE_AI_STUDIO_API_KEY", "GOOGLE_AI_API_KEY")
    gemini_model: str = _env("GEMINI_MODEL", "LLM_MODEL", default="gemini-2.5-flash") or "gemini-2.5-flash"
    gemini_base_url: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1").rstrip("/")
    openrouter_api_key: str | None = os.getenv("OPENROUTER_API_KEY")
    openrouter_model: str = os.getenv("OPENROUTER_MODEL", "openrouter/free")
    openrouter_base_url: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1").rstrip("/")

    gcp_project_id: str | None = _env("GOOGLE_CLOUD_PROJECT_ID", "GCP_PROJECT_ID")
    gcp_location: str = _env("GCP_LOCATION", "GOOGLE_CLOUD_LOCATION", default="us-central1") or "us-central1"
    gcp_access_token: str | None = _env("GCP_ACCESS_TOKEN", "GOOGLE_OAUTH_ACCESS_TOKEN")
    imagen_model: str = os.getenv("IMAGEN_MODEL", "imagen-3.0-generate-002")
    lyria_model: str = os.getenv("LYRIA_MODEL", "lyria-002")

    tts_api_key: str | None = _env("GOOGLE_TTS_API_KEY", "GOOGLE_CLOUD_API_KEY", "TEXT_TO_SPEECH_API_KEY")
    tts_language: str = os.getenv("TTS_LANGUAGE_CODE", "en-US")
    tts_voice: str | None = os.getenv("TTS_VOICE_NAME")
    tts_speaking_rate: float | None = float(os.environ["TTS_SPEAKING_RATE"]) if os.getenv("TTS_SPEAKING_RATE") else None
    tts_pitch: float | None = float(os.environ["TTS_PITCH"]) if os.getenv("TTS_PITCH") else None

    persona_name: str = os.getenv("PERSONA", "Grumpy")
    personalities_dir: str = os.getenv("PERSONALITIES_DIR", "personalities")
    messages_path: str | None = os.getenv("MESSAGES_PATH")

    output_dir: str = os.getenv("OUTPUT_DIR", "generated")
    pack_dir: str = os.getenv("PACK_DIR", "generated-pack")
    disc_id: str = os.getenv("DISC_ID", "13")
    painting_variant: str = os.getenv("PAINTING_VARIANT", "pointer")

    sim_actor_count: int = _env_int("SIM_ACTOR_COUNT", 3)
    rng_seed: int = int(os.getenv("RNG_SEED", "1337"))

    @property
    def arrive_distance_sq(self) -> float:
        return self.arrive_distance * self.arrive_distance

    @property
    def job_deadline_ticks(self) -> int:
        return max(1, self.job_deadline_seconds * self.tick_hz)

    def redacted(self) -> dict[str, object]:
        return {
            "dev_mode": self.dev_mode,
            "discord_token_set": bool(self.discord_token),
            "discord_channel": self.discord_channel,
            "tick_hz": self.tick_hz,
            "worker_threads": self.worker_threads,
            "worker_queue_size": self.worker_queue_size,
            "text_backend": self.text_backend,
            "image_backend": self.image_backend,
            "music_backend": self.music_backend,
            "speech_backend": self.speech_backend,
            "gemini_api_key_set": bool(self.gemini_api_key),
            "gemini_model": self.gemini_model,
            "openrouter_api_key_set": bool(self.openrouter_api_key),
            "openrouter_model": self.openrouter_model,
            "gcp_project_id": self.gcp_project_id,
            "gcp_access_token_set": bool(self.gcp_access_token),
            "tts_api_key_set": bool(self.tts_api_key),
            "persona_name": self.persona_name,
            "output_dir": self.output_dir,
            "pack_dir": self.pack_dir,
        }


def configure_logging(dev_mode: bool) -> None:
    level = logging.DEBUG if dev_mode else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
