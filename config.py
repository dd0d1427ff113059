# Physical constants
C = 299792458.0            # speed of light, m/s
BOLTZMANN = 1.380649e-23   # J/K
TEMP_0 = 290.0             # reference noise temperature, K
G = 9.81                   # m/s^2
EARTH_OMEGA = 7.2921159e-5 # rad/s
MIL_CIRCLE = 6400.0

# Default radar hardware (X-band fire-control radar)
RADAR_POWER_W = 10e3
RADAR_FREQ_HZ = 10e9
RADAR_GAIN_DB = 30.0
RADAR_BEAMWIDTH_DEG = 2.0
RADAR_NOISE_FIGURE_DB = 4.0
RADAR_LOSSES_DB = 5.0
RADAR_BANDWIDTH_HZ = 1e6
SNR_THRESHOLD_DB = 13.0

# Radar cross-section per target category, m^2
RCS_STATIC = 100.0
RCS_MOVING_SLOW = 20.0
RCS_MOVING_FAST = 5.0

# Tracking
MAX_DETECTION_RANGE_M = 15000.0
MIN_SIGNAL_STRENGTH = 0.1
LOCK_REQUIRED_TIME_S = 2.0
TRACKING_HISTORY_LENGTH = 10
MAX_TRACKING_TARGETS = 8
LOST_TARGET_TIMEOUT_S = 3.0
MIN_LOCK_DISTANCE_M = 1000.0
MAX_LOCK_DISTANCE_M = 12000.0
SAMPLE_INTERVAL_S = 1.0 / 60.0
SNR_SATURATION_DB = 40.0

# 155 mm shell
MUZZLE_VELOCITY = 827.0
SHELL_MASS_KG = 43.5
DRAG_COEFF = 0.295
SHELL_AREA_M2 = 0.0189
AIR_DENSITY = 1.225
LATITUDE_DEG = 35.0

# Solver
TOLERANCE_M = 10.0
MAX_ITERATIONS = 15
SOLVER_DT = 0.01
ANGLE_PERTURBATION_DEG = 0.1
DAMPING = 0.8
MAX_CORRECTION_DEG = 5.0
TIME_TO_LIVE_S = 60.0
MIN_ELEVATION_DEG = -10.0
MAX_ELEVATION_DEG = 85.0
GROUND_LEVEL_M = 0.0

# Gun and projectiles
RELOAD_TIME_S = 5.0
GUN_MIN_ELEVATION_DEG = 0.0
MAX_AMMUNITION = 50
HIT_RADIUS_M = 5.0
MAX_PROJECTILE_RANGE_M = 30000.0
TRAIL_LENGTH = 1000
MAX_ACTIVE_PROJECTILES = 10
FRAME_DT = 1.0 / 60.0
SOLVE_INTERVAL_S = 0.1
