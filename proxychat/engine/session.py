from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from proxychat.models.core import Role, Turn

MAX_TURNS = 20


class NavState(str, Enum):
    SEEKING = "seeking"
    ARRIVED = "arrived"


@dataclass
class Session:
    """Conversation and navigation state for one user.

    Only the authoritative loop thread mutates a session. ``actor_id`` is a
    lookup key into the world; the session never owns the actor.
    """

    user_id: str
    actor_id: str
    history: deque[Turn] = field(default_factory=lambda: deque(maxlen=MAX_TURNS))
    busy: bool = False
    nav_state: NavState = NavState.SEEKING
    last_path_issued_tick: int = 0
    pending_job_id: str | None = None
    busy_since_tick: int = 0

    def append(self, role: Role, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.history.append(Turn(role=role, text=text))

    def append_user(self, text: str) -> None:
        self.append("user", text)

    def append_model(self, text: str) -> None:
        self.append("model", text)

    def append_system(self, text: str) -> None:
        self.append("system", text)

    def snapshot(self) -> list[Turn]:
        return list(self.history)

    def begin_job(self, tick: int) -> str:
        if self.busy:
            raise RuntimeError(f"session {self.user_id} already has job {self.pending_job_id}")
        job_id = uuid.uuid4().hex[:12]
        self.busy = True
        self.pending_job_id = job_id
        self.busy_since_tick = tick
        return job_id

    def finish_job(self, job_id: str) -> bool:
        if not self.busy or self.pending_job_id != job_id:
            return False
        self.busy = False
        self.pending_job_id = None
        return True


class SessionRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def get(self, user_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(user_id)

    def create_or_replace(self, session: Session) -> Session | None:
        with self._lock:
            prior = self._sessions.get(session.user_id)
            self._sessions[session.user_id] = session
            return prior

    def remove(self, user_id: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(user_id, None)

    def remove_if_current(self, session: Session) -> bool:
        with self._lock:
            if self._sessions.get(session.user_id) is not session:
                return False
            del self._sessions[session.user_id]
            return True

    def items(self) -> list[tuple[str, Session]]:
        with self._lock:
            return list(self._sessions.items())

    def is_empty(self) -> bool:
        with self._lock:
            return not self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
