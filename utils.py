import math
from typing import Iterable, Tuple

import numpy as np

from config import MIL_CIRCLE


def vec(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    return np.array([x, y, z], dtype=float)


def as_vec(v: Iterable[float]) -> np.ndarray:
    a = np.asarray(v, dtype=float)
    if a.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {a.shape}")
    return a.copy()


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


def subtract(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


def scale(a: np.ndarray, k: float) -> np.ndarray:
    return a * k


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0]*b[0] + a[1]*b[1] + a[2]*b[2])


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    # np.cross is slow for single 3-vectors; this sits in the integrator loop
    return np.array([a[1]*b[2] - a[2]*b[1],
                     a[2]*b[0] - a[0]*b[2],
                     a[0]*b[1] - a[1]*b[0]], dtype=float)


def magnitude(a: np.ndarray) -> float:
    return math.sqrt(float(a[0]*a[0] + a[1]*a[1] + a[2]*a[2]))


def normalize(a: np.ndarray) -> np.ndarray:
    m = magnitude(a)
    if m == 0.0:
        return np.zeros(3, dtype=float)
    return a / m


def as_tuple(a: np.ndarray) -> Tuple[float, float, float]:
    return float(a[0]), float(a[1]), float(a[2])


def normalize_azimuth(deg: float) -> float:
    a = deg % 360.0
    # -1e-15 % 360 rounds to 360.0
    return 0.0 if a >= 360.0 else a


def bearing_deg(delta: np.ndarray) -> float:
    """Bearing clockwise from north (+y), degrees in [0, 360)."""
    return normalize_azimuth(math.degrees(math.atan2(float(delta[0]), float(delta[1]))))


def elevation_deg(delta: np.ndarray) -> float:
    horiz = math.hypot(float(delta[0]), float(delta[1]))
    return math.degrees(math.atan2(float(delta[2]), horiz))


def direction_from_angles(azimuth_deg: float, elevation_deg: float) -> np.ndarray:
    az = math.radians(azimuth_deg)
    el = math.radians(elevation_deg)
    return np.array([math.cos(el) * math.sin(az),
                     math.cos(el) * math.cos(az),
                     math.sin(el)], dtype=float)


def angle_between_deg(a: np.ndarray, b: np.ndarray) -> float:
    na = magnitude(a); nb = magnitude(b)
    if na == 0.0 or nb == 0.0:
        return 0.0
    c = dot(a, b) / (na * nb)
    c = max(-1.0, min(1.0, c))
    return math.degrees(math.acos(c))


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def db_to_linear(db: float) -> float:
    return 10.0 ** (db / 10.0)


def azimuth_to_mil(azimuth_deg: float) -> float:
    """Azimuth in mils, wrapped to [0, MIL_CIRCLE)."""
    return deg_to_mil(normalize_azimuth(azimuth_deg))


def mil_to_rad(mil: float) -> float:
    return (mil / MIL_CIRCLE) * (2*math.pi)


def deg_to_mil(deg: float) -> float:
    return deg * MIL_CIRCLE / 360.0


def mil_to_deg(mil: float) -> float:
    return mil_to_rad(mil) * 180.0 / math.pi
