from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field

from proxychat.engine.ports import ActorController
from proxychat.models.core import Vec3

log = logging.getLogger(__name__)


@dataclass
class SimActor:
    actor_id: str
    position: Vec3
    alive: bool = True
    frozen: bool = False
    target_user: str | None = None
    speed: float = 1.0
    facing: str | None = None
    drops: list[str] = field(default_factory=list)


class SimWorld(ActorController):
    """In-memory world used when no game server is attached.

    ``step`` is registered as the first tick hook so movement happens before
    the navigation pass reads distances.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.actors: dict[str, SimActor] = {}
        self.users: dict[str, Vec3] = {}

    @classmethod
    def seeded(cls, count: int, *, rng_seed: int = 1337, spread: float = 40.0) -> SimWorld:
        world = cls()
        rng = random.Random(rng_seed)
        for index in range(max(0, count)):
            world.spawn_actor(
                f"villager-{index + 1}",
                Vec3(rng.uniform(-spread, spread), 64.0, rng.uniform(-spread, spread)),
            )
        return world

    def spawn_actor(self, actor_id: str, position: Vec3) -> SimActor:
        with self._lock:
            actor = SimActor(actor_id=actor_id, position=position)
            self.actors[actor_id] = actor
        log.debug("actor_spawned actor=%s", actor_id)
        return actor

    def ensure_user(self, user_id: str, position: Vec3 | None = None) -> Vec3:
        with self._lock:
            if position is not None:
                self.users[user_id] = position
            return self.users.setdefault(user_id, Vec3(0.0, 64.0, 0.0))

    def move_user(self, user_id: str, position: Vec3) -> None:
        with self._lock:
            self.users[user_id] = position

    def remove_user(self, user_id: str) -> None:
        with self._lock:
            self.users.pop(user_id, None)

    def kill(self, actor_id: str) -> None:
        with self._lock:
            actor = self.actors.get(actor_id)
            if actor is not None:
                actor.alive = False
        log.info("actor_killed actor=%s", actor_id)

    def user_position(self, user_id: str) -> Vec3 | None:
        with self._lock:
            return self.users.get(user_id)

    def find_nearest_live_actor(self, origin: Vec3, radius: float) -> str | None:
        radius_sq = radius * radius
        best_id = None
        best_dist = None
        with self._lock:
            for actor in self.actors.values():
                if not actor.alive:
                    continue
                dist = actor.position.distance_sq(origin)
                if dist > radius_sq:
                    continue
                if best_dist is None or dist < best_dist:
                    best_id, best_dist = actor.actor_id, dist
        return best_id

    def seek(self, actor_id: str, user_id: str, speed: float) -> None:
        with self._lock:
            actor = self.actors.get(actor_id)
            if actor is None or not actor.alive:
                return
            actor.target_user = user_id
            actor.speed = speed

    def look_at(self, actor_id: str, user_id: str) -> None:
        with self._lock:
            actor = self.actors.get(actor_id)
            if actor is not None and actor.alive:
                actor.facing = user_id

    def freeze(self, actor_id: str, frozen: bool) -> None:
        with self._lock:
            actor = self.actors.get(actor_id)
            if actor is None:
                return
            actor.frozen = frozen
            if not frozen:
                actor.target_user = None

    def is_alive(self, actor_id: str) -> bool:
        with self._lock:
            actor = self.actors.get(actor_id)
            return actor is not None and actor.alive

    def drop_item(self, actor_id: str, item_kind: str) -> None:
        with self._lock:
            actor = self.actors.get(actor_id)
            if actor is None or not actor.alive:
                return
            actor.drops.append(item_kind)
        log.info("item_dropped actor=%s item=%s", actor_id, item_kind)

    def distance_sq(self, actor_id: str, user_id: str) -> float | None:
        with self._lock:
            actor = self.actors.get(actor_id)
            user = self.users.get(user_id)
            if actor is None or user is None:
                return None
            return actor.position.distance_sq(user)

    def speech_position(self, actor_id: str | None, user_id: str) -> Vec3 | None:
        with self._lock:
            actor = self.actors.get(actor_id) if actor_id else None
            if actor is not None and actor.alive:
                return actor.position
            return self.users.get(user_id)

    def step(self, tick: int) -> None:
        with self._lock:
            for actor in self.actors.values():
                if not actor.alive or actor.frozen or actor.target_user is None:
                    continue
                target = self.users.get(actor.target_user)
                if target is None:
                    continue
                actor.position = actor.position.step_towards(target, actor.speed)
