"""Target track store and the lock-on slot.

The tracker keeps at most ``max_tracking_targets`` tracks keyed by target id.
Tracks hold ids only; every ``update`` resolves them against the frame's
target list. Lock-on is a single slot that ramps from TRACKING to LOCKED_ON
over ``lock_required_time`` seconds of simulation time.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

import config
from models import DetectedTrack, LockState, Target, TargetCategory, TargetingState, TrackSample
from radar import RadarSystem
from utils import (angle_between_deg, as_vec, bearing_deg, clamp, direction_from_angles,
                   elevation_deg, magnitude)

logger = logging.getLogger(__name__)

CATEGORY_FACTOR = {
    TargetCategory.STATIC: 0.3,
    TargetCategory.MOVING_SLOW: 0.7,
    TargetCategory.MOVING_FAST: 1.0,
}

SelectionPolicy = Callable[[List[DetectedTrack]], Optional[int]]


@dataclass(frozen=True)
class TrackerConfig:
    max_detection_range: float = config.MAX_DETECTION_RANGE_M
    min_signal_strength: float = config.MIN_SIGNAL_STRENGTH
    lock_required_time: float = config.LOCK_REQUIRED_TIME_S
    tracking_history_length: int = config.TRACKING_HISTORY_LENGTH
    max_tracking_targets: int = config.MAX_TRACKING_TARGETS
    lost_target_timeout: float = config.LOST_TARGET_TIMEOUT_S
    min_lock_distance: float = config.MIN_LOCK_DISTANCE_M
    max_lock_distance: float = config.MAX_LOCK_DISTANCE_M
    sample_interval: float = config.SAMPLE_INTERVAL_S
    snr_saturation_db: float = config.SNR_SATURATION_DB

    def __post_init__(self):
        if self.max_detection_range <= 0:
            raise ValueError("max_detection_range must be positive")
        if self.lock_required_time <= 0:
            raise ValueError("lock_required_time must be positive")
        if self.tracking_history_length < 1:
            raise ValueError("tracking_history_length must be at least 1")
        if self.max_tracking_targets < 1:
            raise ValueError("max_tracking_targets must be at least 1")
        if self.lost_target_timeout < 0:
            raise ValueError("lost_target_timeout must be non-negative")
        if not 0 <= self.min_lock_distance <= self.max_lock_distance:
            raise ValueError("lock distance band must satisfy 0 <= min <= max")
        if self.sample_interval <= 0:
            raise ValueError("sample_interval must be positive")
        if self.snr_saturation_db <= 0:
            raise ValueError("snr_saturation_db must be positive")

    def with_overrides(self, **kw) -> "TrackerConfig":
        return dataclasses.replace(self, **kw)


class TrackingListener:
    """No-op base; subclass and override the hooks you need."""

    def on_target_detected(self, track: DetectedTrack) -> None:
        pass

    def on_target_lost(self, target_id: int) -> None:
        pass

    def on_lock_acquired(self, track: DetectedTrack) -> None:
        pass

    def on_lock_lost(self) -> None:
        pass

    def on_tracking_update(self, track: DetectedTrack) -> None:
        pass


def heuristic_signal_strength(target: Target, distance: float, max_range: float) -> float:
    """Distance falloff x category (Doppler) factor x velocity boost, clamped to [0, 1]."""
    distance_factor = max(0.0, 1.0 - distance / max_range)
    type_factor = CATEGORY_FACTOR.get(target.category, 0.5)
    velocity_factor = 1.0 + min(target.speed / 200.0, 0.5)
    return clamp(distance_factor * type_factor * velocity_factor, 0.0, 1.0)


def target_score(track: DetectedTrack, max_lock_distance: float) -> float:
    distance_score = 1.0 - track.distance / max_lock_distance
    velocity_score = min(track.speed / 100.0, 1.0)
    return 0.4 * distance_score + 0.4 * track.signal_strength + 0.2 * velocity_score


# Selection policies for acquire(). Each maps the current track list to a target id.

def nearest_to_point(x: float, y: float, radius: float, origin=(0.0, 0.0, 0.0)) -> SelectionPolicy:
    """Cursor proximity on a plan-position display, in metres from ``origin``."""
    ox, oy = float(origin[0]), float(origin[1])

    def policy(tracks: List[DetectedTrack]) -> Optional[int]:
        best_id, best_d = None, radius
        for tr in tracks:
            p = tr.position
            d = math.hypot(float(p[0]) - ox - x, float(p[1]) - oy - y)
            if d < best_d:
                best_id, best_d = tr.target_id, d
        return best_id
    return policy


def beam_aligned(azimuth_deg: float, elevation_deg_: float, max_off_axis_deg: float) -> SelectionPolicy:
    """Track closest to the radar beam axis, within ``max_off_axis_deg``."""
    axis = direction_from_angles(azimuth_deg, elevation_deg_)

    def policy(tracks: List[DetectedTrack]) -> Optional[int]:
        best_id, best_a = None, math.inf
        for tr in tracks:
            a = angle_between_deg(direction_from_angles(tr.bearing, tr.elevation), axis)
            if a <= max_off_axis_deg and a < best_a:
                best_id, best_a = tr.target_id, a
        return best_id
    return policy


def explicit(target_id: int) -> SelectionPolicy:
    def policy(tracks: List[DetectedTrack]) -> Optional[int]:
        return target_id if any(t.target_id == target_id for t in tracks) else None
    return policy


class TargetTracker:
    def __init__(self, cfg: Optional[TrackerConfig] = None, radar: Optional[RadarSystem] = None,
                 radar_position=(0.0, 0.0, 0.0), listener: Optional[TrackingListener] = None):
        self.config = cfg or TrackerConfig()
        self.radar = radar
        self.radar_position = as_vec(radar_position)
        self.radar_direction = direction_from_angles(0.0, 0.0)
        self.listener = listener or TrackingListener()
        self._tracks: Dict[int, DetectedTrack] = {}
        self._lock = LockState()
        self._seq = 0

    # ------------------------------------------------------------------ queries

    def tracks(self) -> List[DetectedTrack]:
        return list(self._tracks.values())

    def get_track(self, target_id: int) -> Optional[DetectedTrack]:
        return self._tracks.get(target_id)

    @property
    def track_count(self) -> int:
        return len(self._tracks)

    def lock_state(self) -> LockState:
        return self._lock.copy()

    def locked_track(self) -> Optional[DetectedTrack]:
        if self._lock.target_id is None:
            return None
        return self._tracks.get(self._lock.target_id)

    def in_lock_band(self, track: DetectedTrack) -> bool:
        c = self.config
        return c.min_lock_distance <= track.distance <= c.max_lock_distance

    def best_target(self) -> Optional[DetectedTrack]:
        best, best_score = None, -math.inf
        for tr in self._tracks.values():
            if not self.in_lock_band(tr):
                continue
            s = target_score(tr, self.config.max_lock_distance)
            if s > best_score:
                best, best_score = tr, s
        return best

    # ------------------------------------------------------------------ radar

    def point_radar(self, azimuth_deg: float, elevation_deg_: float) -> None:
        self.radar_direction = direction_from_angles(azimuth_deg, elevation_deg_)

    # ------------------------------------------------------------------ frame update

    def update(self, targets: Iterable[Target], now: float, radar_direction=None) -> None:
        if radar_direction is not None:
            self.radar_direction = as_vec(radar_direction)
        targets = list(targets)
        self._lock.last_update_time = now

        live: Dict[int, Target] = {}
        for target in targets:
            if target.destroyed:
                continue
            live[target.target_id] = target
            self._scan(target, now)

        self._drop_vanished(live)
        self._prune_lost(now)
        self._check_lock_range(live)
        self._update_lock(now)

    def _detect(self, target: Target, distance: float):
        """Returns (signal_strength, snr_db) or None when the target does not qualify."""
        if self.radar is None:
            s = heuristic_signal_strength(target, distance, self.config.max_detection_range)
            if s < self.config.min_signal_strength:
                return None
            return s, None
        pr = self.radar.received_power(target.position, target.rcs,
                                       self.radar_position, self.radar_direction)
        snr = self.radar.snr_db(pr)
        if not self.radar.is_detected(snr):
            return None
        return clamp(snr / self.config.snr_saturation_db, 0.0, 1.0), snr

    def _scan(self, target: Target, now: float) -> None:
        delta = target.position - self.radar_position
        distance = magnitude(delta)
        if distance > self.config.max_detection_range:
            return
        verdict = self._detect(target, distance)
        if verdict is None:
            return
        strength, snr = verdict
        sample = TrackSample(time=now, position=target.position.copy())

        tr = self._tracks.get(target.target_id)
        if tr is None:
            if len(self._tracks) >= self.config.max_tracking_targets:
                self._evict_weakest()
            history = DetectedTrack.new_history(self.config.tracking_history_length)
            history.append(sample)
            self._seq += 1
            tr = DetectedTrack(target_id=target.target_id, distance=distance,
                               bearing=bearing_deg(delta), elevation=elevation_deg(delta),
                               signal_strength=strength, detection_time=now,
                               last_seen_time=now, history=history, snr_db=snr,
                               sequence=self._seq)
            self._tracks[target.target_id] = tr
            logger.info("track %d opened: %.0f m, brg %.1f, signal %.2f",
                        tr.target_id, distance, tr.bearing, strength)
            self.listener.on_target_detected(tr)
            return

        tr.history.append(sample)
        tr.velocity = self._estimate_velocity(tr)
        tr.distance = distance
        tr.bearing = bearing_deg(delta)
        tr.elevation = elevation_deg(delta)
        tr.signal_strength = strength
        tr.snr_db = snr
        tr.last_seen_time = now
        self.listener.on_tracking_update(tr)

    def _estimate_velocity(self, tr: DetectedTrack) -> np.ndarray:
        if len(tr.history) < 2:
            return np.zeros(3)
        prev, last = tr.history[-2], tr.history[-1]
        dt = last.time - prev.time
        if dt <= 0:
            dt = self.config.sample_interval
        return (last.position - prev.position) / dt

    def _evict_weakest(self) -> None:
        weakest = min(self._tracks.values(), key=lambda t: (t.signal_strength, t.sequence))
        logger.info("track %d evicted (signal %.2f)", weakest.target_id, weakest.signal_strength)
        self._remove(weakest.target_id)

    def _remove(self, target_id: int) -> None:
        del self._tracks[target_id]
        self.listener.on_target_lost(target_id)
        if self._lock.target_id == target_id:
            self.release_lock()

    def _drop_vanished(self, live: Dict[int, Target]) -> None:
        for tid in [t for t in self._tracks if t not in live]:
            logger.info("track %d dropped: target destroyed or gone", tid)
            self._remove(tid)

    def _prune_lost(self, now: float) -> None:
        timeout = self.config.lost_target_timeout
        for tid in [t.target_id for t in self._tracks.values() if now - t.last_seen_time > timeout]:
            logger.info("track %d lost: not seen for %.1f s", tid, now - self._tracks[tid].last_seen_time)
            self._remove(tid)

    def _check_lock_range(self, live: Dict[int, Target]) -> None:
        tid = self._lock.target_id
        if tid is None or tid not in live:
            return
        r = magnitude(live[tid].position - self.radar_position)
        if r > self.config.max_detection_range:
            logger.info("target %d out of range (%.0f m), releasing lock", tid, r)
            self.release_lock()

    def _update_lock(self, now: float) -> None:
        st = self._lock
        if st.status is TargetingState.NO_TARGET or st.lock_start_time is None:
            return
        st.lock_duration = max(0.0, now - st.lock_start_time)
        strength = min(st.lock_duration / self.config.lock_required_time, 1.0)
        st.lock_strength = max(st.lock_strength, strength)
        if st.status is TargetingState.TRACKING and st.lock_strength >= 1.0:
            self._set_locked()

    def _set_locked(self) -> None:
        st = self._lock
        st.status = TargetingState.LOCKED_ON
        st.lock_strength = 1.0
        tr = self._tracks.get(st.target_id)
        logger.info("lock acquired on target %s", st.target_id)
        if tr is not None:
            self.listener.on_lock_acquired(tr)

    # ------------------------------------------------------------------ lock slot commands

    def start_tracking(self, target_id: int, now: float) -> bool:
        tr = self._tracks.get(target_id)
        if tr is None or not self.in_lock_band(tr):
            return False
        st = self._lock
        if st.target_id == target_id and st.status is not TargetingState.NO_TARGET:
            return True
        st.status = TargetingState.TRACKING
        st.target_id = target_id
        st.lock_start_time = now
        st.lock_duration = 0.0
        st.lock_strength = 0.0
        logger.info("tracking target %d for lock-on", target_id)
        return True

    def acquire(self, policy: SelectionPolicy, now: float) -> bool:
        target_id = policy(self.tracks())
        if target_id is None:
            return False
        return self.start_tracking(target_id, now)

    def lock(self, now: float) -> bool:
        """Explicit lock command; only valid while tracking a track inside the lock band."""
        st = self._lock
        if st.status is TargetingState.LOCKED_ON:
            return True
        tr = self.locked_track()
        if st.status is not TargetingState.TRACKING or tr is None or not self.in_lock_band(tr):
            return False
        st.lock_duration = max(0.0, now - (st.lock_start_time if st.lock_start_time is not None else now))
        self._set_locked()
        return True

    def clear_lock(self, now: float) -> None:
        """Drop LOCKED_ON back to TRACKING if the track survives, else to NO_TARGET."""
        st = self._lock
        if st.status is not TargetingState.LOCKED_ON:
            return
        if self.locked_track() is None:
            self.release_lock()
            return
        st.status = TargetingState.TRACKING
        st.lock_start_time = now
        st.lock_duration = 0.0
        st.lock_strength = 0.0
        logger.info("lock cleared, still tracking target %s", st.target_id)
        self.listener.on_lock_lost()

    def release_lock(self) -> None:
        was_tracking = self._lock.status is not TargetingState.NO_TARGET
        last = self._lock.last_update_time
        self._lock = LockState(last_update_time=last)
        if was_tracking:
            logger.info("lock released")
            self.listener.on_lock_lost()

    def reset(self) -> None:
        self.release_lock()
        self._tracks.clear()
        self._seq = 0
