from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from proxychat.artifacts.pack_writer import PackWriter
from proxychat.artifacts.store import ArtifactStore
from proxychat.artifacts.transcode import FFMPEG_HINT, TranscodeError, TranscoderMissingError, to_ogg_vorbis
from proxychat.config import Settings
from proxychat.llm.gateway import GenerationGateway
from proxychat.models.core import MusicArtifact, PaintingArtifact
from proxychat.models.results import GenerationResult, Ok, Transient

log = logging.getLogger(__name__)

Transcoder = Callable[[Path, Path], Path]


class ArtifactPipeline:
    """Turns gateway payloads into files on disk and resource-pack overrides.

    ``paint`` and ``compose`` run on worker threads. ``apply_painting`` runs
    on the authoritative thread once the worker result is back.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        store: ArtifactStore,
        pack: PackWriter,
        *,
        disc_id: str = "13",
        painting_variant: str = "pointer",
        transcoder: Transcoder = to_ogg_vorbis,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.pack = pack
        self.disc_id = disc_id
        self.painting_variant = painting_variant
        self._transcode = transcoder

    @classmethod
    def from_settings(cls, settings: Settings, gateway: GenerationGateway) -> ArtifactPipeline:
        return cls(
            gateway,
            ArtifactStore(settings.output_dir),
            PackWriter(settings.pack_dir),
            disc_id=settings.disc_id,
            painting_variant=settings.painting_variant,
        )

    def paint(self, prompt: str) -> GenerationResult:
        result = self.gateway.generate_image(prompt)
        if not isinstance(result, Ok):
            return result
        try:
            path = self.store.save_image(result.payload, prompt)
        except (OSError, ValueError) as exc:
            log.warning("painting_save_failed", exc_info=True)
            return Transient(str(exc))
        return Ok(PaintingArtifact(image_path=str(path), prompt=prompt))

    def apply_painting(self, artifact: PaintingArtifact) -> Path:
        return self.pack.write_painting(self.painting_variant, Path(artifact.image_path))

    def compose(self, prompt: str) -> GenerationResult:
        result = self.gateway.generate_music(prompt)
        if not isinstance(result, Ok):
            return result
        try:
            wav = self.store.save_audio(result.payload, prompt)
            ogg = self._transcode(wav, wav.with_suffix(".ogg"))
            self.pack.write_disc(self.disc_id, ogg)
        except TranscoderMissingError as exc:
            return Transient(str(exc), hint=FFMPEG_HINT)
        except (OSError, ValueError, TranscodeError) as exc:
            log.warning("music_packaging_failed", exc_info=True)
            return Transient(str(exc))
        try:
            wav.unlink()
        except OSError:
            log.debug("intermediate_wav_kept path=%s", wav)
        return Ok(MusicArtifact(ogg_path=str(ogg), disc_id=self.disc_id, pack_root=str(self.pack.root)))
