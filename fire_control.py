"""Fire-control unit: one radar, one track store, one lock slot, one gun.

The driving loop calls ``update(targets, dt)`` once per frame. Everything runs
synchronously on simulation time accumulated from the supplied ``dt``.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

import config
from models import BallisticsParameters, DetectedTrack, LeadSolution, LockState, Target
from radar import RadarParameters, RadarSystem
from solver import LeadAngleSolver, SolverConfig
from tracker import SelectionPolicy, TargetTracker, TrackerConfig, TrackingListener
from weapon import Gun, Hit, ProjectileManager
from utils import as_vec, bearing_deg, elevation_deg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FireControlConfig:
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    radar: Optional[RadarParameters] = None
    snr_threshold_db: float = config.SNR_THRESHOLD_DB
    ballistics: BallisticsParameters = field(default_factory=BallisticsParameters)
    solver: SolverConfig = field(default_factory=SolverConfig)
    reload_time: float = config.RELOAD_TIME_S
    max_ammunition: int = config.MAX_AMMUNITION
    hit_radius: float = config.HIT_RADIUS_M
    max_projectiles: int = config.MAX_ACTIVE_PROJECTILES
    solve_interval: float = config.SOLVE_INTERVAL_S

    def with_overrides(self, **kw) -> "FireControlConfig":
        return dataclasses.replace(self, **kw)


@dataclass(frozen=True)
class FireControlStatus:
    time: float
    tracks: List[DetectedTrack]
    lock: LockState
    best_target: Optional[DetectedTrack]
    solution: Optional[LeadSolution]
    projectiles: List[np.ndarray]


class FireControlUnit:
    def __init__(self, position=(0.0, 0.0, 0.0), cfg: Optional[FireControlConfig] = None,
                 listener: Optional[TrackingListener] = None):
        self.config = cfg or FireControlConfig()
        self.position = as_vec(position)
        radar = None
        if self.config.radar is not None:
            radar = RadarSystem(self.config.radar, self.config.snr_threshold_db)
        self.tracker = TargetTracker(self.config.tracker, radar, self.position, listener)
        self.gun = Gun(self.position, self.config.ballistics,
                       self.config.reload_time, self.config.max_ammunition)
        # the solver never proposes an elevation the gun cannot lay
        scfg = self.config.solver
        scfg = scfg.with_overrides(min_elevation_deg=max(scfg.min_elevation_deg, self.gun.min_elevation),
                                   max_elevation_deg=min(scfg.max_elevation_deg, self.gun.max_elevation))
        self.solver = LeadAngleSolver(self.config.ballistics, scfg)
        self.projectiles = ProjectileManager(self.config.hit_radius, self.config.max_projectiles)
        self.time = 0.0
        self.solution: Optional[LeadSolution] = None
        self._solved = None
        self.hits: List[Hit] = []

    # commands

    def point_radar(self, azimuth: float, elevation: float) -> None:
        self.tracker.point_radar(azimuth, elevation)

    def select(self, policy: SelectionPolicy) -> bool:
        return self.tracker.acquire(policy, self.time)

    def auto_select(self) -> bool:
        best = self.tracker.best_target()
        if best is None:
            return False
        return self.tracker.start_tracking(best.target_id, self.time)

    def lock(self) -> bool:
        return self.tracker.lock(self.time)

    def unlock(self) -> None:
        self.tracker.clear_lock(self.time)
        self.solution = None
        self._solved = None

    def release(self) -> None:
        self.tracker.release_lock()
        self.solution = None
        self._solved = None

    def reset(self) -> None:
        self.tracker.reset()
        self.projectiles.clear()
        self.solution = None
        self._solved = None
        self.hits = []

    def fire(self) -> bool:
        """Re-solve on the locked track, lay the gun and fire.

        Returns False without a lock, while the gun is reloading or out of
        ammunition, or when the shell limit is reached.
        """
        track = self.tracker.locked_track()
        if track is None or not self.tracker.lock_state().is_locked:
            return False
        if not self.gun.is_ready(self.time) or not self.projectiles.has_capacity():
            return False
        self._solve(track)
        self.gun.lay(self.solution.azimuth, self.solution.elevation)
        shot = self.gun.fire(self.time)
        if shot is None:
            return False
        return self.projectiles.add(shot)

    # frame

    def update(self, targets: List[Target], dt: float) -> List[Hit]:
        self.time += dt
        self.tracker.update(targets, self.time)

        track = self.tracker.locked_track()
        if track is None or not self.tracker.lock_state().is_locked:
            self.solution = None
            self._solved = None
        elif (self._solved is None or self._solved[0] != track.target_id
              or self.time - self._solved[1] >= self.config.solve_interval):
            self._solve(track)

        hits = self.projectiles.update(dt, targets)
        self.hits.extend(hits)
        return hits

    def _solve(self, track: DetectedTrack) -> LeadSolution:
        self.solution = self.solver.solve_track(self.position, track)
        self._solved = (track.target_id, self.time)
        logger.debug("lead on target %d: az=%.2f el=%.2f tof=%.2f err=%.1f m",
                     track.target_id, self.solution.azimuth, self.solution.elevation,
                     self.solution.flight_time, self.solution.error)
        return self.solution

    def status(self) -> FireControlStatus:
        return FireControlStatus(time=self.time,
                                 tracks=self.tracker.tracks(),
                                 lock=self.tracker.lock_state(),
                                 best_target=self.tracker.best_target(),
                                 solution=self.solution,
                                 projectiles=self.projectiles.positions())

    @property
    def radar_direction(self) -> np.ndarray:
        return self.tracker.radar_direction.copy()


def point_at(unit: FireControlUnit, target: Target) -> None:
    """Aim the radar boresight at a target's current position."""
    d = target.position - unit.position
    unit.point_radar(bearing_deg(d), elevation_deg(d))
