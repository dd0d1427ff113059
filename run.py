import argparse
import logging
import sys
import traceback

import config
from fire_control import FireControlConfig, FireControlUnit, point_at
from models import Target, TargetCategory
from radar import RadarParameters
from weapon import DEFAULT_WEAPON_CATALOG

logger = logging.getLogger("run")


def excepthook(exctype, value, tb):
    msg = "".join(traceback.format_exception(exctype, value, tb))
    try:
        with open("crash_log.txt", "a", encoding="utf-8") as f:
            f.write(msg + "\n")
    except OSError:
        pass
    print("UNHANDLED EXCEPTION\n" + msg)
    sys.exit(1)


def build_scenario(name: str, use_radar: bool):
    """Return (targets, FireControlConfig) for a named scenario."""
    cfg = FireControlConfig(radar=RadarParameters() if use_radar else None)
    if name == "stationary":
        targets = [Target(1, (500.0, 3000.0, 0.0), TargetCategory.STATIC)]
    elif name == "crossing":
        targets = [Target(1, (-600.0, 2500.0, 300.0), TargetCategory.MOVING_SLOW, velocity=(40.0, 0.0, 0.0)),
                   Target(2, (4000.0, 9000.0, 1500.0), TargetCategory.MOVING_FAST, velocity=(-220.0, 0.0, 0.0))]
    elif name == "unreachable":
        # light cannon against a target well past its ballistic reach
        gun = DEFAULT_WEAPON_CATALOG["aa_35"]
        cfg = cfg.with_overrides(ballistics=gun.ballistics, reload_time=gun.reload_time,
                                 max_ammunition=gun.max_ammunition)
        targets = [Target(1, (0.0, 11000.0, 0.0), TargetCategory.STATIC)]
    else:
        raise ValueError(f"unknown scenario: {name}")
    return targets, cfg


def run(scenario: str, duration: float, use_radar: bool = False, dt: float = config.FRAME_DT) -> int:
    targets, cfg = build_scenario(scenario, use_radar)
    unit = FireControlUnit((0.0, 0.0, 0.0), cfg)
    t = 0.0
    while t < duration:
        for target in targets:
            target.advance(dt)
        if use_radar:
            # slave the beam to the tracked target, else cue it on the first live one
            tid = unit.tracker.lock_state().target_id
            cue = [x for x in targets if not x.destroyed and (tid is None or x.target_id == tid)]
            if cue:
                point_at(unit, cue[0])
        unit.update(targets, dt)
        t += dt

        state = unit.tracker.lock_state()
        if not state.is_tracking:
            unit.auto_select()
        elif state.is_locked and unit.solution is not None and unit.solution.converged:
            unit.fire()

        if all(x.destroyed for x in targets):
            break

    st = unit.status()
    logger.info("finished at t=%.2f s: %d hits, %d rounds left, %d tracks",
                st.time, len(unit.hits), unit.gun.ammunition, len(st.tracks))
    if st.solution is not None:
        s = st.solution
        logger.info("last solution: az %.2f deg (%.0f mil) el %.2f deg (%.0f mil), tof %.2f s, %s, %s",
                    s.azimuth, s.azimuth_mil, s.elevation, s.elevation_mil, s.flight_time,
                    s.status.value, s.confidence.value)
    return len(unit.hits)


def main(argv=None):
    sys.excepthook = excepthook
    parser = argparse.ArgumentParser(description="Headless radar fire-control scenario")
    parser.add_argument("--scenario", default="crossing", choices=["stationary", "crossing", "unreachable"])
    parser.add_argument("--duration", default=20.0, type=float)
    parser.add_argument("--radar", action="store_true", help="use the radar-equation detector")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    run(args.scenario, args.duration, args.radar)


if __name__ == "__main__":
    main()
