import pytest

from fire_control import FireControlConfig, FireControlUnit, point_at
from models import Target, TargetCategory, TargetingState
from radar import RadarParameters
from solver import SolverConfig
from tracker import explicit

DT = 1.0 / 60.0


def engage(unit, targets, seconds):
    """Drive the unit frame by frame: auto-select, wait for lock, fire on a converged lead."""
    for _ in range(int(seconds / DT)):
        for t in targets:
            t.advance(DT)
        unit.update(targets, DT)
        state = unit.tracker.lock_state()
        if not state.is_tracking:
            unit.auto_select()
        elif state.is_locked and unit.solution is not None and unit.solution.converged:
            unit.fire()
        if all(t.destroyed for t in targets):
            break


def test_crossing_target_is_hit():
    cfg = FireControlConfig(solver=SolverConfig(tolerance_m=1.0), solve_interval=0.5)
    unit = FireControlUnit(cfg=cfg)
    target = Target(1, (-300.0, 2000.0, 200.0), TargetCategory.MOVING_SLOW, velocity=(30.0, 0.0, 0.0))
    engage(unit, [target], 15.0)
    assert target.destroyed
    assert [h.target_id for h in unit.hits] == [1]
    assert unit.gun.ammunition < cfg.max_ammunition
    # the destroyed target's track and lock are gone on the next frame
    unit.update([target], DT)
    assert unit.tracker.lock_state().status is TargetingState.NO_TARGET
    assert unit.solution is None


def test_no_fire_without_lock():
    unit = FireControlUnit()
    target = Target(1, (0.0, 3000.0, 0.0), TargetCategory.STATIC)
    unit.update([target], DT)
    assert not unit.fire()
    assert unit.select(explicit(1))
    unit.update([target], DT)
    assert unit.tracker.lock_state().status is TargetingState.TRACKING
    assert unit.solution is None
    assert not unit.fire()


def test_lock_produces_solution_and_unlock_clears_it():
    unit = FireControlUnit(cfg=FireControlConfig(solve_interval=10.0))
    target = Target(1, (500.0, 4000.0, 100.0), TargetCategory.STATIC)
    unit.update([target], DT)
    assert unit.auto_select()
    assert unit.lock()
    unit.update([target], DT)
    sol = unit.solution
    assert sol is not None and sol.converged
    assert unit.fire()
    assert len(unit.projectiles) == 1
    # reloading
    assert not unit.fire()

    unit.unlock()
    assert unit.solution is None
    assert unit.tracker.lock_state().status is TargetingState.TRACKING
    unit.release()
    assert unit.tracker.lock_state().status is TargetingState.NO_TARGET


def test_status_snapshot_and_reset():
    unit = FireControlUnit()
    targets = [Target(1, (0.0, 3000.0, 0.0), TargetCategory.STATIC),
               Target(2, (2000.0, 5000.0, 800.0), TargetCategory.MOVING_FAST, velocity=(-150.0, 0.0, 0.0))]
    for _ in range(3):
        for t in targets:
            t.advance(DT)
        unit.update(targets, DT)
    st = unit.status()
    assert st.time == pytest.approx(3 * DT)
    assert {t.target_id for t in st.tracks} == {1, 2}
    assert st.best_target is not None
    assert st.solution is None
    assert st.projectiles == []

    unit.reset()
    assert unit.status().tracks == []
    assert unit.hits == []


def test_radar_mode_detects_along_beam():
    unit = FireControlUnit(cfg=FireControlConfig(radar=RadarParameters()))
    target = Target(1, (3000.0, 3000.0, 300.0), TargetCategory.MOVING_FAST, velocity=(0.0, 0.0, 0.0))
    unit.update([target], DT)
    assert unit.tracker.track_count == 0
    point_at(unit, target)
    unit.update([target], DT)
    tr = unit.tracker.get_track(1)
    assert tr is not None
    assert tr.snr_db > unit.config.snr_threshold_db


def test_config_overrides():
    cfg = FireControlConfig().with_overrides(reload_time=1.0, max_ammunition=3)
    unit = FireControlUnit(cfg=cfg)
    assert unit.gun.reload_time == 1.0
    assert unit.gun.ammunition == 3


def locked_unit(cfg, target, position=(0.0, 0.0, 0.0)):
    unit = FireControlUnit(position, cfg)
    unit.update([target], DT)
    assert unit.auto_select()
    assert unit.lock()
    unit.update([target], DT)
    return unit


def test_full_shell_limit_keeps_round_in_gun():
    target = Target(1, (0.0, 3000.0, 100.0), TargetCategory.STATIC)
    unit = locked_unit(FireControlConfig(max_projectiles=0), target)
    before = unit.gun.ammunition
    assert not unit.fire()
    assert unit.gun.ammunition == before
    assert unit.gun.is_ready(unit.time)
    assert len(unit.projectiles) == 0


def test_solver_elevation_limits_follow_gun():
    unit = FireControlUnit()
    assert unit.solver.config.min_elevation_deg == unit.gun.min_elevation == 0.0
    assert unit.solver.config.max_elevation_deg == unit.gun.max_elevation

    # target below the gun: the lead is held at the gun's lowest laying
    cfg = FireControlConfig(solver=SolverConfig(dt=0.02, max_iterations=5))
    target = Target(1, (0.0, 2000.0, 0.0), TargetCategory.STATIC)
    unit = locked_unit(cfg, target, position=(0.0, 0.0, 300.0))
    assert unit.fire()
    assert unit.solution.elevation >= 0.0
    assert unit.gun.elevation == unit.solution.elevation
