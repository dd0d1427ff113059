"""Radar detection model: monostatic radar equation with a Gaussian beam."""
from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

import config
from utils import angle_between_deg, db_to_linear, magnitude

FOUR_PI_CUBED = (4.0 * math.pi) ** 3


@dataclass(frozen=True)
class RadarParameters:
    transmit_power: float = config.RADAR_POWER_W
    frequency: float = config.RADAR_FREQ_HZ
    antenna_gain_db: float = config.RADAR_GAIN_DB
    beam_width_deg: float = config.RADAR_BEAMWIDTH_DEG
    noise_figure_db: float = config.RADAR_NOISE_FIGURE_DB
    system_loss_db: float = config.RADAR_LOSSES_DB
    bandwidth: float = config.RADAR_BANDWIDTH_HZ
    jamming_db: float = 0.0

    def __post_init__(self):
        if self.transmit_power <= 0:
            raise ValueError("transmit_power must be positive")
        if self.frequency <= 0:
            raise ValueError("frequency must be positive")
        if self.beam_width_deg <= 0:
            raise ValueError("beam_width_deg must be positive")
        if self.bandwidth <= 0:
            raise ValueError("bandwidth must be positive")
        if self.jamming_db < 0:
            raise ValueError("jamming_db must be non-negative")

    def with_overrides(self, **kw) -> "RadarParameters":
        return dataclasses.replace(self, **kw)


@dataclass(frozen=True)
class RadarReturn:
    range_m: float
    off_boresight_deg: float
    received_power: float
    snr_db: float
    detected: bool


class RadarSystem:
    def __init__(self, params: Optional[RadarParameters] = None,
                 threshold_db: float = config.SNR_THRESHOLD_DB):
        self.params = params or RadarParameters()
        self.threshold_db = float(threshold_db)
        self.wavelength = config.C / self.params.frequency
        self.gain_linear = db_to_linear(self.params.antenna_gain_db)
        self.loss_linear = db_to_linear(self.params.system_loss_db)
        self._half_beam = self.params.beam_width_deg / 2.0
        self._noise_figure_linear = db_to_linear(self.params.noise_figure_db)
        self._jamming_linear = db_to_linear(self.params.jamming_db)

    def antenna_pattern(self, angle_deg: float) -> float:
        """One-way gain factor relative to boresight; 0.5 at the half beam width."""
        x = angle_deg / self._half_beam
        return math.exp(-math.log(2.0) * x * x)

    def received_power(self, position, rcs: float, radar_position, radar_direction) -> float:
        """Pr = Pt * G_eff^2 * lambda^2 * sigma / ((4 pi)^3 * R^4 * L)"""
        d = np.asarray(position, dtype=float) - np.asarray(radar_position, dtype=float)
        r = magnitude(d)
        if r == 0.0:
            return 0.0
        theta = angle_between_deg(d, np.asarray(radar_direction, dtype=float))
        g_eff = self.gain_linear * self.antenna_pattern(theta)
        num = self.params.transmit_power * g_eff * g_eff * self.wavelength**2 * rcs
        den = FOUR_PI_CUBED * r**4 * self.loss_linear
        return num / den

    def noise_floor(self, bandwidth: Optional[float] = None) -> float:
        b = self.params.bandwidth if bandwidth is None else bandwidth
        return config.BOLTZMANN * config.TEMP_0 * b * self._noise_figure_linear * self._jamming_linear

    def snr_db(self, received_power: float, bandwidth: Optional[float] = None) -> float:
        noise = self.noise_floor(bandwidth)
        if received_power <= 0.0 or noise <= 0.0:
            return -math.inf
        return 10.0 * math.log10(received_power / noise)

    def is_detected(self, snr_db: float, threshold_db: Optional[float] = None) -> bool:
        t = self.threshold_db if threshold_db is None else threshold_db
        return snr_db >= t

    def evaluate(self, target, radar_position, radar_direction) -> RadarReturn:
        d = np.asarray(target.position, dtype=float) - np.asarray(radar_position, dtype=float)
        pr = self.received_power(target.position, target.rcs, radar_position, radar_direction)
        snr = self.snr_db(pr)
        return RadarReturn(range_m=magnitude(d),
                           off_boresight_deg=angle_between_deg(d, np.asarray(radar_direction, dtype=float)),
                           received_power=pr, snr_db=snr, detected=self.is_detected(snr))

    def max_detection_range(self, rcs: float, threshold_db: Optional[float] = None) -> float:
        """Boresight range at which SNR falls to the threshold."""
        t = self.threshold_db if threshold_db is None else threshold_db
        p_min = self.noise_floor() * db_to_linear(t)
        num = self.params.transmit_power * self.gain_linear**2 * self.wavelength**2 * rcs
        return (num / (FOUR_PI_CUBED * self.loss_linear * p_min)) ** 0.25
