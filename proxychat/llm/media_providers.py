from __future__ import annotations

import base64
import io
import json
import logging
import re
import wave
from abc import ABC, abstractmethod

import requests

from proxychat.config import Settings
from proxychat.llm.providers import ProviderUnavailableError, raise_for_quota
from proxychat.models.core import PcmAudio

log = logging.getLogger(__name__)

TTS_SAMPLE_RATE = 24000

# 1x1 transparent PNG
_STUB_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def silent_wav(seconds: float, sample_rate: int = 44100) -> bytes:
    frames = max(1, int(seconds * sample_rate))
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as out:
        out.setnchannels(1)
        out.setsampwidth(2)
        out.setframerate(sample_rate)
        out.writeframes(b"\x00\x00" * frames)
    return buffer.getvalue()


def strip_wav_header(data: bytes, default_rate: int) -> PcmAudio:
    if not data.startswith(b"RIFF"):
        return PcmAudio(data=data, sample_rate=default_rate, channels=1)
    with wave.open(io.BytesIO(data), "rb") as reader:
        return PcmAudio(
            data=reader.readframes(reader.getnframes()),
            sample_rate=reader.getframerate(),
            channels=reader.getnchannels(),
        )


def sanitize_for_speech(text: str) -> str:
    cleaned = re.sub(r"[*_~`]", "", text or "")
    cleaned = re.sub(r"[#@$%^&+=<>\[\]{}|\\]", "", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


class ImageProvider(ABC):
    enabled = True

    @abstractmethod
    def generate_image(self, prompt: str) -> bytes:
        raise NotImplementedError


class MusicProvider(ABC):
    enabled = True

    @abstractmethod
    def generate_music(self, prompt: str) -> bytes:
        raise NotImplementedError


class SpeechProvider(ABC):
    enabled = True

    @abstractmethod
    def synthesize(self, text: str) -> PcmAudio:
        raise NotImplementedError


class StubImageProvider(ImageProvider):
    def generate_image(self, prompt: str) -> bytes:
        del prompt
        return _STUB_PNG


class StubMusicProvider(MusicProvider):
    def generate_music(self, prompt: str) -> bytes:
        del prompt
        return silent_wav(1.0)


class StubSpeechProvider(SpeechProvider):
    def synthesize(self, text: str) -> PcmAudio:
        seconds = min(10.0, 0.06 * max(1, len(text)))
        frames = int(seconds * TTS_SAMPLE_RATE)
        return PcmAudio(data=b"\x00\x00" * frames, sample_rate=TTS_SAMPLE_RATE, channels=1)


class VertexPredictClient:
    def __init__(self, settings: Settings, model: str) -> None:
        self.settings = settings
        self.model = model

    @property
    def enabled(self) -> bool:
        return bool(self.settings.gcp_project_id and self.settings.gcp_access_token)

    def _url(self) -> str:
        location = self.settings.gcp_location
        return (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{self.settings.gcp_project_id}"
            f"/locations/{location}/publishers/google/models/{self.model}:predict"
        )

    def predict(self, instance: dict[str, object], parameters: dict[str, object], *, timeout: int) -> dict:
        if not self.enabled:
            raise ProviderUnavailableError("vertex_missing_project_or_token")
        response = requests.post(
            self._url(),
            headers={
                "Authorization": f"Bearer {self.settings.gcp_access_token}",
                "Content-Type": "application/json; charset=UTF-8",
            },
            data=json.dumps({"instances": [instance], "parameters": parameters}),
            timeout=timeout,
        )
        raise_for_quota(response, "vertex")
        if response.status_code >= 400:
            raise RuntimeError(f"Vertex HTTP {response.status_code}: {response.text[:200]}")
        return response.json()

    @staticmethod
    def first_prediction_bytes(body: dict) -> bytes:
        predictions = body.get("predictions") or []
        for prediction in predictions:
            if not isinstance(prediction, dict):
                continue
            encoded = prediction.get("bytesBase64Encoded") or prediction.get("audioContent")
            if isinstance(encoded, str) and encoded:
                return base64.b64decode(encoded)
        raise RuntimeError("vertex_response_missing_bytes")


class ImagenProvider(ImageProvider):
    def __init__(self, settings: Settings) -> None:
        self._client = VertexPredictClient(settings, settings.imagen_model)

    @property
    def enabled(self) -> bool:
        return self._client.enabled

    def generate_image(self, prompt: str) -> bytes:
        body = self._client.predict({"prompt": prompt}, {"sampleCount": 1}, timeout=90)
        return self._client.first_prediction_bytes(body)


class LyriaProvider(MusicProvider):
    def __init__(self, settings: Settings) -> None:
        self._client = VertexPredictClient(settings, settings.lyria_model)

    @property
    def enabled(self) -> bool:
        return self._client.enabled

    def generate_music(self, prompt: str) -> bytes:
        body = self._client.predict({"prompt": prompt}, {"sample_count": 1}, timeout=180)
        return self._client.first_prediction_bytes(body)


class GoogleTtsProvider(SpeechProvider):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self.settings.tts_api_key)

    def _payload(self, text: str) -> dict[str, object]:
        voice: dict[str, object] = {"languageCode": self.settings.tts_language}
        if self.settings.tts_voice:
            voice["name"] = self.settings.tts_voice
        audio_config: dict[str, object] = {"audioEncoding": "LINEAR16", "sampleRateHertz": TTS_SAMPLE_RATE}
        # Chirp HD voices reject speakingRate and pitch.
        is_chirp = bool(self.settings.tts_voice and "chirp" in self.settings.tts_voice.lower())
        if not is_chirp:
            if self.settings.tts_speaking_rate is not None:
                audio_config["speakingRate"] = self.settings.tts_speaking_rate
            if self.settings.tts_pitch is not None:
                audio_config["pitch"] = self.settings.tts_pitch
        return {"input": {"text": sanitize_for_speech(text)}, "voice": voice, "audioConfig": audio_config}

    def synthesize(self, text: str) -> PcmAudio:
        if not self.enabled:
            raise ProviderUnavailableError("tts_missing_api_key")
        response = requests.post(
            "https://texttospeech.googleapis.com/v1/text:synthesize",
            params={"key": self.settings.tts_api_key},
            headers={"Content-Type": "application/json; charset=UTF-8"},
            data=json.dumps(self._payload(text)),
            timeout=30,
        )
        raise_for_quota(response, "tts")
        if response.status_code >= 400:
            raise RuntimeError(f"TTS HTTP {response.status_code}: {response.text[:200]}")
        encoded = response.json().get("audioContent")
        if not isinstance(encoded, str) or not encoded:
            raise RuntimeError("tts_response_missing_audio")
        return strip_wav_header(base64.b64decode(encoded), TTS_SAMPLE_RATE)


def build_image_provider(settings: Settings) -> ImageProvider | None:
    if settings.image_backend == "stub":
        return StubImageProvider()
    if settings.image_backend == "vertex":
        return ImagenProvider(settings)
    return None


def build_music_provider(settings: Settings) -> MusicProvider | None:
    if settings.music_backend == "stub":
        return StubMusicProvider()
    if settings.music_backend == "vertex":
        return LyriaProvider(settings)
    return None


def build_speech_provider(settings: Settings) -> SpeechProvider | None:
    if settings.speech_backend == "stub":
        return StubSpeechProvider()
    if settings.speech_backend == "google":
        return GoogleTtsProvider(settings)
    return None
