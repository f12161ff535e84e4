from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Capability(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    MUSIC = "music"
    SPEECH = "speech"


@dataclass(frozen=True)
class Ok:
    payload: Any


@dataclass(frozen=True)
class QuotaExceeded:
    capability: Capability
    short_circuited: bool = False


@dataclass(frozen=True)
class NotConfigured:
    capability: Capability


@dataclass(frozen=True)
class Transient:
    message: str
    hint: str | None = None


GenerationResult = Union[Ok, QuotaExceeded, NotConfigured, Transient]
