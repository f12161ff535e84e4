from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

log = logging.getLogger(__name__)


def _slug(text: str, limit: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:limit] or "untitled"


class ArtifactStore:
    def __init__(self, output_dir: str) -> None:
        self.root = Path(output_dir)

    def _target(self, kind: str, prompt: str, suffix: str) -> Path:
        folder = self.root / kind
        folder.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        return folder / f"{stamp}-{_slug(prompt)}{suffix}"

    def save_image(self, data: bytes, prompt: str) -> Path:
        if not data:
            raise ValueError("image payload is empty")
        path = self._target("paintings", prompt, ".png")
        path.write_bytes(data)
        log.info("artifact_saved kind=painting path=%s bytes=%s", path, len(data))
        return path

    def save_audio(self, data: bytes, prompt: str) -> Path:
        if not data:
            raise ValueError("audio payload is empty")
        path = self._target("music", prompt, ".wav")
        path.write_bytes(data)
        log.info("artifact_saved kind=music path=%s bytes=%s", path, len(data))
        return path
