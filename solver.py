import dataclasses
import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

import config
from ballistics import Approach, closest_approach, simulate
from models import BallisticsParameters, Confidence, DetectedTrack, LeadSolution, SolveStatus
from utils import as_tuple, as_vec, bearing_deg, clamp, magnitude, normalize_azimuth

logger = logging.getLogger(__name__)

HEURISTIC_MIN_ELEV = 5.0
HEURISTIC_MAX_ELEV = 45.0


@dataclass(frozen=True)
class SolverConfig:
    tolerance_m: float = config.TOLERANCE_M
    max_iterations: int = config.MAX_ITERATIONS
    dt: float = config.SOLVER_DT
    perturbation_deg: float = config.ANGLE_PERTURBATION_DEG
    damping: float = config.DAMPING
    max_correction_deg: float = config.MAX_CORRECTION_DEG
    ttl: float = config.TIME_TO_LIVE_S
    min_elevation_deg: float = config.MIN_ELEVATION_DEG
    max_elevation_deg: float = config.MAX_ELEVATION_DEG
    ground_level: float = config.GROUND_LEVEL_M

    def __post_init__(self):
        if self.tolerance_m <= 0:
            raise ValueError("tolerance_m must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.dt <= 0 or self.ttl <= 0:
            raise ValueError("dt and ttl must be positive")
        if self.perturbation_deg <= 0:
            raise ValueError("perturbation_deg must be positive")
        if not 0 < self.damping <= 1:
            raise ValueError("damping must be in (0, 1]")
        if not -90 <= self.min_elevation_deg < self.max_elevation_deg <= 90:
            raise ValueError("elevation limits must satisfy -90 <= min < max <= 90")

    def with_overrides(self, **kw) -> "SolverConfig":
        return dataclasses.replace(self, **kw)


def initial_guess(delta: np.ndarray, params: BallisticsParameters,
                  cfg: SolverConfig) -> Tuple[float, float, float]:
    """Vacuum low-arc solution: (azimuth, elevation, time of flight).

    Falls back to an elevation between 5 and 45 degrees scaled by range when
    the vacuum discriminant is negative (target out of reach at any angle).
    """
    v = params.muzzle_velocity
    g = params.gravity
    horiz = math.hypot(float(delta[0]), float(delta[1]))
    h = float(delta[2])
    if horiz < 1e-6:
        el = cfg.max_elevation_deg if h >= 0 else cfg.min_elevation_deg
        return 0.0, el, abs(h) / v
    az = bearing_deg(delta)
    disc = v**4 - g * (g * horiz * horiz + 2.0 * h * v * v)
    if disc < 0.0:
        vacuum_range = v * v / g
        el = clamp(HEURISTIC_MAX_ELEV * horiz / vacuum_range, HEURISTIC_MIN_ELEV, HEURISTIC_MAX_ELEV)
        logger.debug("no vacuum solution for %.0f m, heuristic elevation %.1f", horiz, el)
    else:
        el = math.degrees(math.atan2(v * v - math.sqrt(disc), g * horiz))
    el = clamp(el, cfg.min_elevation_deg, cfg.max_elevation_deg)
    tof = horiz / (v * math.cos(math.radians(el)))
    return az, el, tof


def grade(converged: bool, error: float, iterations: int) -> Confidence:
    if not converged:
        return Confidence.LOW
    if error < 5.0 and iterations < 8:
        return Confidence.HIGH
    if error < 15.0 and iterations < 12:
        return Confidence.MEDIUM
    return Confidence.LOW


class LeadAngleSolver:
    def __init__(self, ballistics: Optional[BallisticsParameters] = None,
                 cfg: Optional[SolverConfig] = None):
        self.ballistics = ballistics or BallisticsParameters()
        self.config = cfg or SolverConfig()

    def _eval(self, origin: np.ndarray, az: float, el: float, tpos: np.ndarray, tvel: np.ndarray,
              params: BallisticsParameters, tof: float) -> Approach:
        cfg = self.config
        horizon = min(cfg.ttl, max(2.0 * tof + 2.0, 5.0))
        tr = simulate(origin, az, el, params, dt=cfg.dt, ttl=horizon, ground_level=cfg.ground_level)
        return closest_approach(tr, tpos, tvel)

    def solve(self, launcher, target_position, target_velocity=None,
              ballistics: Optional[BallisticsParameters] = None) -> LeadSolution:
        cfg = self.config
        params = ballistics or self.ballistics
        origin = as_vec(launcher)
        tpos = as_vec(target_position)
        tvel = as_vec(target_velocity) if target_velocity is not None else np.zeros(3)

        az, el, tof = initial_guess(tpos - origin, params, cfg)
        d = cfg.perturbation_deg
        best = None

        for it in range(1, cfg.max_iterations + 1):
            ca = self._eval(origin, az, el, tpos, tvel, params, tof)
            err_vec = ca.target - ca.shell
            err = magnitude(err_vec)
            logger.debug("iter %d az=%.3f el=%.3f tof=%.2f err=%.1f m", it, az, el, ca.time, err)
            if best is None or err < best[0]:
                best = (err, az, el, ca)
            if err < cfg.tolerance_m:
                return self._result(az, el, ca, err, it, SolveStatus.CONVERGED, tvel)

            ca_az = self._eval(origin, az + d, el, tpos, tvel, params, ca.time)
            ca_el = self._eval(origin, az, el + d, tpos, tvel, params, ca.time)
            jac = np.column_stack([((ca_az.target - ca_az.shell) - err_vec) / d,
                                   ((ca_el.target - ca_el.shell) - err_vec) / d])
            delta, *_ = np.linalg.lstsq(jac, -err_vec, rcond=None)
            n = float(np.hypot(delta[0], delta[1]))
            if n > cfg.max_correction_deg:
                delta = delta * (cfg.max_correction_deg / n)
            delta = delta * cfg.damping

            az = normalize_azimuth(az + float(delta[0]))
            el = clamp(el + float(delta[1]), cfg.min_elevation_deg, cfg.max_elevation_deg)
            tof = ca.time

        err, az, el, ca = best
        logger.warning("lead solution did not converge after %d iterations (best %.1f m)",
                       cfg.max_iterations, err)
        return self._result(az, el, ca, err, cfg.max_iterations, SolveStatus.EXHAUSTED, tvel)

    def solve_track(self, launcher, track: DetectedTrack,
                    ballistics: Optional[BallisticsParameters] = None) -> LeadSolution:
        return self.solve(launcher, track.position, track.velocity, ballistics)

    def _result(self, az: float, el: float, ca: Approach, err: float, iterations: int,
                status: SolveStatus, tvel: np.ndarray) -> LeadSolution:
        converged = status is SolveStatus.CONVERGED
        return LeadSolution(azimuth=normalize_azimuth(az), elevation=el, flight_time=ca.time,
                            predicted_target_position=as_tuple(ca.target),
                            predicted_impact_position=as_tuple(ca.shell),
                            error=err, iterations=iterations, status=status,
                            lead_distance=magnitude(tvel) * ca.time,
                            confidence=grade(converged, err, iterations))
