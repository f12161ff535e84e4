from __future__ import annotations

import logging
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

FFMPEG_HINT = "Is ffmpeg installed and on PATH?"


class TranscoderMissingError(RuntimeError):
    pass


class TranscodeError(RuntimeError):
    pass


def to_ogg_vorbis(source: Path, target: Path, *, ffmpeg: str = "ffmpeg", timeout: int = 120) -> Path:
    if not source.exists():
        raise TranscodeError(f"input audio not found: {source}")
    target.parent.mkdir(parents=True, exist_ok=True)
    command = [
        ffmpeg,
        "-y",
        "-i",
        str(source.resolve()),
        "-ac",
        "2",
        "-ar",
        "44100",
        "-c:a",
        "libvorbis",
        str(target.resolve()),
    ]
    try:
        completed = subprocess.run(  # noqa: S603
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        log.warning("ffmpeg_binary_missing binary=%s", ffmpeg)
        raise TranscoderMissingError(f"{ffmpeg} not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise TranscodeError(f"{ffmpeg} timed out after {timeout}s") from exc
    if completed.returncode != 0:
        tail = completed.stdout.decode("utf-8", errors="replace")[-200:] if completed.stdout else ""
        raise TranscodeError(f"{ffmpeg} exited with code {completed.returncode}: {tail}")
    log.info("transcode_complete source=%s target=%s", source.name, target.name)
    return target
