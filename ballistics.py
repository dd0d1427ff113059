import math
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from config import GROUND_LEVEL_M, TIME_TO_LIVE_S
from models import BallisticsParameters
from utils import cross, direction_from_angles


# Integration policy: semi-implicit Euler
#   v' = v + a(v) * dt
#   x' = x + v' * dt


@dataclass
class Trajectory:
    t: np.ndarray
    pos: np.ndarray   # (n, 3)
    vel: np.ndarray   # (n, 3)

    def __len__(self) -> int:
        return int(self.t.size)


@dataclass(frozen=True)
class Approach:
    shell: np.ndarray
    target: np.ndarray
    time: float
    miss: float


def earth_rotation(params: BallisticsParameters) -> np.ndarray:
    """Earth's angular velocity in the local East-North-Up frame."""
    lat = math.radians(params.latitude_deg)
    w = params.earth_angular_velocity
    return np.array([0.0, w * math.cos(lat), w * math.sin(lat)], dtype=float)


def gravity_force(params: BallisticsParameters) -> np.ndarray:
    return np.array([0.0, 0.0, -params.mass * params.gravity], dtype=float)


def drag_force(v: np.ndarray, params: BallisticsParameters) -> np.ndarray:
    speed = math.sqrt(float(v[0]*v[0] + v[1]*v[1] + v[2]*v[2]))
    if speed == 0.0:
        return np.zeros(3, dtype=float)
    k = 0.5 * params.air_density * params.drag_coefficient * params.cross_sectional_area
    return -k * speed * v


def coriolis_force(v: np.ndarray, params: BallisticsParameters,
                   omega: Optional[np.ndarray] = None) -> np.ndarray:
    if omega is None:
        omega = earth_rotation(params)
    return -2.0 * params.mass * cross(omega, v)


def acceleration(v: np.ndarray, params: BallisticsParameters,
                 omega: Optional[np.ndarray] = None) -> np.ndarray:
    f = gravity_force(params) + drag_force(v, params) + coriolis_force(v, params, omega)
    return f / params.mass


def step(x: np.ndarray, v: np.ndarray, params: BallisticsParameters, dt: float,
         omega: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    v2 = v + acceleration(v, params, omega) * dt
    x2 = x + v2 * dt
    return x2, v2


def launch_velocity(azimuth_deg: float, elevation_deg: float, muzzle_velocity: float) -> np.ndarray:
    return direction_from_angles(azimuth_deg, elevation_deg) * muzzle_velocity


def simulate(origin, azimuth_deg: float, elevation_deg: float, params: BallisticsParameters,
             dt: float, ttl: float = TIME_TO_LIVE_S, ground_level: float = GROUND_LEVEL_M,
             stop_on_ground: bool = True) -> Trajectory:
    if dt <= 0:
        raise ValueError("dt must be positive")
    omega = earth_rotation(params)
    x = np.array(origin, dtype=float)
    v = launch_velocity(azimuth_deg, elevation_deg, params.muzzle_velocity)
    nmax = int(max(1, math.ceil(ttl/dt)))
    t = np.empty(nmax+1, dtype=float)
    pos = np.empty((nmax+1, 3), dtype=float)
    vel = np.empty((nmax+1, 3), dtype=float)
    t[0] = 0.0; pos[0] = x; vel[0] = v
    i_end = nmax
    for i in range(1, nmax+1):
        x, v = step(x, v, params, dt, omega)
        t[i] = i*dt
        pos[i] = x; vel[i] = v
        if stop_on_ground and x[2] <= ground_level and v[2] < 0.0:
            i_end = i
            break
    return Trajectory(t=t[:i_end+1], pos=pos[:i_end+1], vel=vel[:i_end+1])


def closest_approach(tr: Trajectory, target_pos, target_vel=None) -> Approach:
    """Closest approach between the shell and a target moving in a straight line."""
    p0 = np.asarray(target_pos, dtype=float)
    tv = np.zeros(3) if target_vel is None else np.asarray(target_vel, dtype=float)
    tgt = p0[None, :] + tr.t[:, None] * tv[None, :]
    rel = tr.pos - tgt
    d2 = np.einsum("ij,ij->i", rel, rel)
    idx = int(np.argmin(d2))
    best = (float(d2[idx]), idx, 0.0)
    # refine on the neighbouring segments, both bodies interpolated linearly
    for j in (idx - 1, idx):
        if j < 0 or j + 1 >= len(tr):
            continue
        a = rel[j]; b = rel[j+1]
        seg = b - a
        ss = float(seg @ seg)
        if ss == 0.0:
            continue
        s = min(1.0, max(0.0, -float(a @ seg) / ss))
        r = a + s * seg
        rr = float(r @ r)
        if rr < best[0]:
            best = (rr, j, s)
    _, j, s = best
    k = min(j + 1, len(tr) - 1)
    shell = tr.pos[j] + s * (tr.pos[k] - tr.pos[j])
    tm = float(tr.t[j] + s * (tr.t[k] - tr.t[j]))
    target = p0 + tv * tm
    return Approach(shell=shell, target=target, time=tm, miss=float(math.sqrt(best[0])))


def impact_point(tr: Trajectory, ground_level: float = GROUND_LEVEL_M):
    """Interpolated ground crossing on the descending branch: (position, time)."""
    z = tr.pos[:, 2]
    if z.size < 2:
        return tr.pos[-1].copy(), float(tr.t[-1])
    for i in range(1, z.size):
        if z[i] <= ground_level < z[i-1]:
            a = (ground_level - z[i-1]) / (z[i] - z[i-1])
            p = tr.pos[i-1] + a * (tr.pos[i] - tr.pos[i-1])
            return p, float(tr.t[i-1] + a * (tr.t[i] - tr.t[i-1]))
    return tr.pos[-1].copy(), float(tr.t[-1])
