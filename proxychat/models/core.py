from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "model", "system"]


class Turn(BaseModel):
    role: Role
    text: str = Field(min_length=1)


@dataclass(frozen=True)
class Vec3:
    x: float
    y: float
    z: float

    def distance_sq(self, other: Vec3) -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return dx * dx + dy * dy + dz * dz

    def step_towards(self, target: Vec3, max_step: float) -> Vec3:
        dist = math.sqrt(self.distance_sq(target))
        if dist <= max_step or dist == 0.0:
            return target
        ratio = max_step / dist
        return Vec3(
            self.x + (target.x - self.x) * ratio,
            self.y + (target.y - self.y) * ratio,
            self.z + (target.z - self.z) * ratio,
        )


@dataclass(frozen=True)
class PcmAudio:
    data: bytes
    sample_rate: int
    channels: int = 1

    @property
    def duration_seconds(self) -> float:
        frame_bytes = 2 * max(1, self.channels)
        return len(self.data) / float(frame_bytes * max(1, self.sample_rate))


@dataclass(frozen=True)
class PaintingArtifact:
    image_path: str
    prompt: str


@dataclass(frozen=True)
class MusicArtifact:
    ogg_path: str
    disc_id: str
    pack_root: str
