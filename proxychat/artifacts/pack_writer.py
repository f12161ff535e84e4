from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

log = logging.getLogger(__name__)

PACK_FORMAT = 34


class PackWriter:
    """Writes generated artifacts into a resource pack that overrides vanilla assets."""

    def __init__(self, pack_root: str) -> None:
        self.root = Path(pack_root)

    def _ensure_meta(self) -> None:
        meta = self.root / "pack.mcmeta"
        if meta.exists():
            return
        self.root.mkdir(parents=True, exist_ok=True)
        payload = {"pack": {"pack_format": PACK_FORMAT, "description": "proxychat generated overrides"}}
        meta.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    def _copy(self, source: Path, relative: str) -> Path:
        if not source.exists():
            raise FileNotFoundError(f"artifact not found: {source}")
        self._ensure_meta()
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        log.info("pack_asset_written target=%s", target)
        return target

    def write_disc(self, disc_id: str, ogg_file: Path) -> Path:
        if not disc_id.strip():
            raise ValueError("disc id is empty")
        return self._copy(ogg_file, f"assets/minecraft/sounds/records/{disc_id}.ogg")

    def write_painting(self, variant: str, png_file: Path) -> Path:
        if not variant.strip():
            raise ValueError("painting variant is empty")
        return self._copy(png_file, f"assets/minecraft/textures/painting/{variant}.png")
