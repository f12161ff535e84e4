from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_PERSONA = "Grumpy"

BUILT_IN_PERSONAS = {
    "grumpy": (
        "You are a proxy companion standing in a live world next to the player. "
        "You are grumpy and sardonic: answer curtly with dry humor and mild annoyance, but stay helpful. "
        "Keep responses to 1-3 sentences and speak directly to the player."
    ),
    "excited": (
        "You are a proxy companion standing in a live world next to the player. "
        "You are excitable and upbeat: answer with enthusiasm and helpful energy. "
        "Keep responses to 1-3 sentences and speak directly to the player."
    ),
}


def load_persona(name: str | None, personalities_dir: str | None = None) -> str:
    persona_name = (name or "").strip() or DEFAULT_PERSONA
    if personalities_dir:
        file = Path(personalities_dir) / f"{persona_name}.txt"
        if file.is_file():
            try:
                text = file.read_text(encoding="utf-8").strip()
            except OSError:
                log.warning("persona_read_failed path=%s", file, exc_info=True)
                text = ""
            if text:
                log.info("persona_loaded name=%s source=file", persona_name)
                return text
    text = BUILT_IN_PERSONAS.get(persona_name.lower())
    if text is None:
        log.warning("persona_unknown name=%s fallback=%s", persona_name, DEFAULT_PERSONA)
        text = BUILT_IN_PERSONAS[DEFAULT_PERSONA.lower()]
    return text
