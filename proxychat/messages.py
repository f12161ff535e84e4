from __future__ import annotations

import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_MESSAGES: dict[str, str] = {
    "no_nearby": "No companion is close enough to hear you.",
    "greeting": "Hello! I'm on my way over. What do you want to talk about?",
    "farewell": "Goodbye for now. Call me again whenever you like.",
    "gone": "Your companion is no longer around. The conversation has ended.",
    "busy": "Hold on, I'm still working on your last request.",
    "thinking": "Still thinking about your last message...",
    "response_prefix": "[Companion] ",
    "not_configured.text": "Chat generation is not configured. Set TEXT_BACKEND and its API key in .env.",
    "not_configured.image": "Painting generation is not configured. Set IMAGE_BACKEND and the Vertex credentials in .env.",
    "not_configured.music": "Music generation is not configured. Set MUSIC_BACKEND and the Vertex credentials in .env.",
    "quota.text": "The chat quota for this server has been exceeded. Chat is disabled until restart.",
    "quota.image": "The painting quota for this server has been exceeded. Paintings are disabled until restart.",
    "quota.music": "The music quota for this server has been exceeded. Music is disabled until restart.",
    "quota.speech": "Speech quota exceeded; replies will be text only.",
    "quota.speech_full": "Speech quota exceeded. Voice playback is disabled until restart; replies will be text only.",
    "chat.failed": "I couldn't come up with a reply: {error}",
    "painting.prompt_required": "Tell me what to paint, e.g. @makepainting a lighthouse at dusk.",
    "painting.start": "Alright, painting \"{prompt}\". Give me a moment.",
    "painting.failed": "The painting didn't work out: {error}",
    "painting.apply_failed": "I painted it, but couldn't hang it up: {error}",
    "painting.reload_textures": "Press F3+T to reload textures and see the new painting.",
    "painting.done": "Here you go, a fresh painting!",
    "music.prompt_required": "Tell me what to compose, e.g. @makemusic calm piano by the sea.",
    "music.start": "Composing \"{prompt}\". This can take a while.",
    "music.failed": "The music didn't work out: {error}",
    "music.done": "Your new disc is ready!",
    "job.timed_out": "That took too long, so I gave up on it. You can ask again.",
    "speech.error": "Speech playback failed: {error}",
}


class MessageCatalog:
    def __init__(self, overrides: dict[str, str] | None = None) -> None:
        self._messages = dict(DEFAULT_MESSAGES)
        if overrides:
            self._messages.update({str(k): str(v) for k, v in overrides.items()})

    @classmethod
    def load(cls, path: str | None) -> MessageCatalog:
        if not path:
            return cls()
        file = Path(path)
        if not file.is_file():
            log.warning("messages_file_missing path=%s fallback=defaults", path)
            return cls()
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            log.warning("messages_file_invalid path=%s fallback=defaults", path, exc_info=True)
            return cls()
        if not isinstance(data, dict):
            log.warning("messages_file_not_object path=%s fallback=defaults", path)
            return cls()
        return cls(data)

    def get(self, key: str, **kwargs: object) -> str:
        template = self._messages.get(key, key)
        if not kwargs:
            return template
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError, ValueError):
            log.warning("message_format_failed key=%s", key)
            return template
