from __future__ import annotations

import dataclasses
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Tuple

import numpy as np

import config
from utils import as_vec, azimuth_to_mil, deg_to_mil, magnitude

Vec3 = Tuple[float, float, float]


class TargetCategory(Enum):
    STATIC = "static"
    MOVING_SLOW = "moving_slow"
    MOVING_FAST = "moving_fast"


DEFAULT_RCS = {
    TargetCategory.STATIC: config.RCS_STATIC,
    TargetCategory.MOVING_SLOW: config.RCS_MOVING_SLOW,
    TargetCategory.MOVING_FAST: config.RCS_MOVING_FAST,
}


class Target:
    """World-owned target. The core reads it and only ever calls destroy()."""

    def __init__(self, target_id: int, position, category: TargetCategory = TargetCategory.STATIC,
                 velocity=None, rcs: Optional[float] = None):
        self.target_id = int(target_id)
        self.position = as_vec(position)
        self.velocity = as_vec(velocity) if velocity is not None else np.zeros(3)
        self.category = category
        self.rcs = float(rcs) if rcs is not None else DEFAULT_RCS[category]
        self.destroyed = False

    @property
    def speed(self) -> float:
        return magnitude(self.velocity)

    def advance(self, dt: float) -> None:
        if self.destroyed or self.category is TargetCategory.STATIC:
            return
        self.position = self.position + self.velocity * dt

    def destroy(self) -> None:
        self.destroyed = True

    def __repr__(self) -> str:
        p = self.position
        return f"Target(id={self.target_id}, pos=({p[0]:.0f}, {p[1]:.0f}, {p[2]:.0f}), {self.category.value})"


@dataclass(frozen=True)
class TrackSample:
    time: float
    position: np.ndarray


@dataclass
class DetectedTrack:
    target_id: int
    distance: float
    bearing: float
    elevation: float
    signal_strength: float
    detection_time: float
    last_seen_time: float
    history: Deque[TrackSample]
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    snr_db: Optional[float] = None
    sequence: int = 0

    @property
    def position(self) -> np.ndarray:
        return self.history[-1].position

    @property
    def positions(self) -> List[np.ndarray]:
        return [s.position for s in self.history]

    @property
    def speed(self) -> float:
        return magnitude(self.velocity)

    @staticmethod
    def new_history(capacity: int) -> Deque[TrackSample]:
        return deque(maxlen=capacity)


class TargetingState(Enum):
    NO_TARGET = "NO_TARGET"
    TRACKING = "TRACKING"
    LOCKED_ON = "LOCKED_ON"


@dataclass
class LockState:
    status: TargetingState = TargetingState.NO_TARGET
    target_id: Optional[int] = None
    lock_start_time: Optional[float] = None
    lock_duration: float = 0.0
    lock_strength: float = 0.0
    last_update_time: float = 0.0

    @property
    def is_tracking(self) -> bool:
        return self.status is not TargetingState.NO_TARGET

    @property
    def is_locked(self) -> bool:
        return self.status is TargetingState.LOCKED_ON

    def copy(self) -> "LockState":
        return dataclasses.replace(self)


@dataclass(frozen=True)
class BallisticsParameters:
    muzzle_velocity: float = config.MUZZLE_VELOCITY
    mass: float = config.SHELL_MASS_KG
    drag_coefficient: float = config.DRAG_COEFF
    cross_sectional_area: float = config.SHELL_AREA_M2
    air_density: float = config.AIR_DENSITY
    gravity: float = config.G
    earth_angular_velocity: float = config.EARTH_OMEGA
    latitude_deg: float = config.LATITUDE_DEG

    def __post_init__(self):
        if self.muzzle_velocity <= 0:
            raise ValueError("muzzle_velocity must be positive")
        if self.mass <= 0:
            raise ValueError("mass must be positive")
        if self.drag_coefficient < 0 or self.cross_sectional_area < 0 or self.air_density < 0:
            raise ValueError("drag terms must be non-negative")

    def with_overrides(self, **kw) -> "BallisticsParameters":
        return dataclasses.replace(self, **kw)


class SolveStatus(Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class Confidence(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class LeadSolution:
    azimuth: float
    elevation: float
    flight_time: float
    predicted_target_position: Vec3
    predicted_impact_position: Vec3
    error: float
    iterations: int
    status: SolveStatus
    lead_distance: float = 0.0
    confidence: Confidence = Confidence.LOW

    @property
    def converged(self) -> bool:
        return self.status is SolveStatus.CONVERGED

    @property
    def azimuth_mil(self) -> float:
        return azimuth_to_mil(self.azimuth)

    @property
    def elevation_mil(self) -> float:
        return deg_to_mil(self.elevation)
