from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional

import numpy as np

import config
from ballistics import earth_rotation, launch_velocity, step
from models import BallisticsParameters, Target, TargetCategory
from utils import as_vec, clamp, magnitude, normalize_azimuth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeaponProfile:
    name: str
    ballistics: BallisticsParameters
    reload_time: float
    max_ammunition: int


DEFAULT_WEAPON_CATALOG: Dict[str, WeaponProfile] = {
    "howitzer_155": WeaponProfile(
        name="155mm howitzer",
        ballistics=BallisticsParameters(),
        reload_time=5.0,
        max_ammunition=50,
    ),
    "gun_76": WeaponProfile(
        name="76mm dual-purpose gun",
        ballistics=BallisticsParameters(muzzle_velocity=925.0, mass=6.3, drag_coefficient=0.3,
                                        cross_sectional_area=0.00454),
        reload_time=1.0,
        max_ammunition=80,
    ),
    "aa_35": WeaponProfile(
        name="35mm anti-aircraft cannon",
        ballistics=BallisticsParameters(muzzle_velocity=1175.0, mass=0.55, drag_coefficient=0.3,
                                        cross_sectional_area=0.000962),
        reload_time=0.2,
        max_ammunition=200,
    ),
}


class ProjectileState(Enum):
    ACTIVE = "active"
    GROUND_HIT = "ground_hit"
    TARGET_HIT = "target_hit"
    OUT_OF_BOUNDS = "out_of_bounds"
    EXPIRED = "expired"


class Projectile:
    def __init__(self, position, velocity, ballistics: BallisticsParameters,
                 trail_length: int = config.TRAIL_LENGTH, projectile_id: int = 0):
        self.projectile_id = projectile_id
        self.origin = as_vec(position)
        self.position = as_vec(position)
        self.velocity = as_vec(velocity)
        self.ballistics = ballistics
        self.flight_time = 0.0
        self.state = ProjectileState.ACTIVE
        self.previous_position = self.position.copy()
        self.max_altitude = float(self.position[2])
        self.trail: Deque[np.ndarray] = deque([self.position.copy()], maxlen=trail_length)
        self._omega = earth_rotation(ballistics)

    @property
    def is_active(self) -> bool:
        return self.state is ProjectileState.ACTIVE

    @property
    def speed(self) -> float:
        return magnitude(self.velocity)

    def update(self, dt: float, ground_level: float = config.GROUND_LEVEL_M,
               max_range: float = config.MAX_PROJECTILE_RANGE_M,
               ttl: float = config.TIME_TO_LIVE_S) -> None:
        if not self.is_active:
            return
        self.previous_position = self.position.copy()
        self.position, self.velocity = step(self.position, self.velocity, self.ballistics, dt, self._omega)
        self.flight_time += dt
        self.max_altitude = max(self.max_altitude, float(self.position[2]))
        self.trail.append(self.position.copy())

        if self.position[2] <= ground_level:
            self.state = ProjectileState.GROUND_HIT
        elif float(np.hypot(*(self.position[:2] - self.origin[:2]))) > max_range:
            self.state = ProjectileState.OUT_OF_BOUNDS
        elif self.flight_time >= ttl:
            self.state = ProjectileState.EXPIRED

    def mark_target_hit(self) -> None:
        self.state = ProjectileState.TARGET_HIT


class Gun:
    def __init__(self, position=(0.0, 0.0, 0.0), ballistics: Optional[BallisticsParameters] = None,
                 reload_time: float = config.RELOAD_TIME_S, max_ammunition: int = config.MAX_AMMUNITION,
                 min_elevation: float = config.GUN_MIN_ELEVATION_DEG,
                 max_elevation: float = config.MAX_ELEVATION_DEG):
        if reload_time < 0:
            raise ValueError("reload_time must be non-negative")
        if not -90 <= min_elevation < max_elevation <= 90:
            raise ValueError("elevation limits must satisfy -90 <= min < max <= 90")
        self.position = as_vec(position)
        self.ballistics = ballistics or BallisticsParameters()
        self.reload_time = float(reload_time)
        self.max_ammunition = int(max_ammunition)
        self.ammunition = self.max_ammunition
        self.azimuth = 0.0
        self.elevation = 0.0
        self._last_shot: Optional[float] = None
        self.min_elevation = float(min_elevation)
        self.max_elevation = float(max_elevation)
        self._shot_ids = itertools.count(1)

    @classmethod
    def from_profile(cls, profile: WeaponProfile, position=(0.0, 0.0, 0.0)) -> "Gun":
        return cls(position, profile.ballistics, profile.reload_time, profile.max_ammunition)

    def lay(self, azimuth: float, elevation: float) -> None:
        self.azimuth = normalize_azimuth(azimuth)
        self.elevation = clamp(elevation, self.min_elevation, self.max_elevation)

    def reload_progress(self, now: float) -> float:
        if self._last_shot is None or self.reload_time == 0:
            return 1.0
        return min((now - self._last_shot) / self.reload_time, 1.0)

    def is_ready(self, now: float) -> bool:
        return self.ammunition > 0 and self.reload_progress(now) >= 1.0

    def fire(self, now: float) -> Optional[Projectile]:
        if not self.is_ready(now):
            return None
        self.ammunition -= 1
        self._last_shot = now
        v = launch_velocity(self.azimuth, self.elevation, self.ballistics.muzzle_velocity)
        p = Projectile(self.position, v, self.ballistics, projectile_id=next(self._shot_ids))
        logger.info("shot %d fired az=%.2f el=%.2f (%d rounds left)",
                    p.projectile_id, self.azimuth, self.elevation, self.ammunition)
        return p


@dataclass(frozen=True)
class Hit:
    projectile_id: int
    target_id: int
    time_of_flight: float


def _swept_miss(p: Projectile, t: Target, dt: float) -> float:
    """Closest distance between shell and target over the last step, both moving linearly."""
    t_end = t.position
    t_start = t_end if t.category is TargetCategory.STATIC else t_end - t.velocity * dt
    a = p.previous_position - t_start
    b = p.position - t_end
    seg = b - a
    ss = float(seg @ seg)
    s = 0.0 if ss == 0.0 else min(1.0, max(0.0, -float(a @ seg) / ss))
    return magnitude(a + s * seg)


class ProjectileManager:
    def __init__(self, hit_radius: float = config.HIT_RADIUS_M,
                 max_active: int = config.MAX_ACTIVE_PROJECTILES):
        self.hit_radius = float(hit_radius)
        self.max_active = int(max_active)
        self._active: List[Projectile] = []

    def has_capacity(self) -> bool:
        return len(self._active) < self.max_active

    def add(self, projectile: Projectile) -> bool:
        if not self.has_capacity():
            return False
        self._active.append(projectile)
        return True

    def active(self) -> List[Projectile]:
        return list(self._active)

    def __len__(self) -> int:
        return len(self._active)

    def update(self, dt: float, targets: Iterable[Target] = ()) -> List[Hit]:
        """Advance every shell one step, resolve hits along the step, drop dead shells."""
        for p in self._active:
            p.update(dt)
        hits = self.check_collisions(targets, dt)
        self._active = [p for p in self._active if p.is_active]
        return hits

    def check_collisions(self, targets: Iterable[Target], dt: float = 0.0) -> List[Hit]:
        targets = list(targets)
        hits = []
        for p in self._active:
            # a shell that reached the ground this step can still hit on the way down
            if p.state not in (ProjectileState.ACTIVE, ProjectileState.GROUND_HIT):
                continue
            for t in targets:
                if t.destroyed:
                    continue
                if _swept_miss(p, t, dt) <= self.hit_radius:
                    p.mark_target_hit()
                    t.destroy()
                    hits.append(Hit(p.projectile_id, t.target_id, p.flight_time))
                    logger.info("shot %d hit target %d after %.2f s",
                                p.projectile_id, t.target_id, p.flight_time)
                    break
        return hits

    def positions(self) -> List[np.ndarray]:
        return [p.position.copy() for p in self._active]

    def clear(self) -> None:
        self._active = []
