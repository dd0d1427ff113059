import numpy as np
import pytest

from models import BallisticsParameters, Target, TargetCategory
from weapon import (DEFAULT_WEAPON_CATALOG, Gun, Projectile, ProjectileManager, ProjectileState)

DT = 1.0 / 60.0
# straight-line flight keeps the geometry exact
NO_FORCES = BallisticsParameters(gravity=0.0, drag_coefficient=0.0, earth_angular_velocity=0.0)


def test_gun_reload_and_ammunition():
    gun = Gun(reload_time=5.0, max_ammunition=2)
    assert gun.is_ready(0.0)
    assert gun.fire(0.0) is not None
    assert gun.ammunition == 1
    assert gun.fire(1.0) is None
    assert gun.reload_progress(2.5) == pytest.approx(0.5)
    assert gun.fire(5.0) is not None
    assert gun.ammunition == 0
    assert gun.fire(100.0) is None
    assert not gun.is_ready(100.0)


def test_gun_lay_limits():
    gun = Gun()
    gun.lay(370.0, 90.0)
    assert gun.azimuth == pytest.approx(10.0)
    assert gun.elevation == 85.0
    gun.lay(-90.0, -5.0)
    assert gun.azimuth == pytest.approx(270.0)
    assert gun.elevation == 0.0


def test_fired_shell_leaves_along_laid_direction():
    gun = Gun(position=(10.0, 20.0, 0.0))
    gun.lay(90.0, 30.0)
    p = gun.fire(0.0)
    np.testing.assert_allclose(p.position, [10.0, 20.0, 0.0])
    assert p.speed == pytest.approx(gun.ballistics.muzzle_velocity)
    assert p.velocity[0] > 0.0 and p.velocity[2] > 0.0
    assert abs(p.velocity[1]) < 1e-9


def test_profile_catalog():
    gun = Gun.from_profile(DEFAULT_WEAPON_CATALOG["aa_35"])
    assert gun.reload_time == pytest.approx(0.2)
    assert gun.ballistics.muzzle_velocity == pytest.approx(1175.0)
    assert gun.ammunition == 200


def test_shell_removed_after_ground_impact():
    gun = Gun()
    gun.lay(0.0, 10.0)
    shell = gun.fire(0.0)
    mgr = ProjectileManager()
    assert mgr.add(shell)
    for _ in range(60 * 60):
        mgr.update(DT)
        if len(mgr) == 0:
            break
    assert len(mgr) == 0
    assert shell.state is ProjectileState.GROUND_HIT
    assert shell.max_altitude > 0.0
    assert len(shell.trail) > 1


def test_shell_expires():
    p = Projectile((0.0, 0.0, 100.0), (0.0, 100.0, 0.0), NO_FORCES)
    for _ in range(10):
        p.update(0.5, ttl=2.0)
    assert p.state is ProjectileState.EXPIRED


def test_shell_out_of_bounds():
    p = Projectile((0.0, 0.0, 100.0), (0.0, 1000.0, 0.0), NO_FORCES)
    for _ in range(10):
        p.update(1.0, max_range=3500.0)
    assert p.state is ProjectileState.OUT_OF_BOUNDS


def test_fast_shell_cannot_tunnel_through_target():
    # 827 m/s moves ~13.8 m per frame, more than twice the hit radius
    mgr = ProjectileManager()
    target = Target(1, (0.0, 1000.0, 10.0), TargetCategory.STATIC)
    mgr.add(Projectile((0.0, 0.0, 10.0), (0.0, 827.0, 0.0), NO_FORCES))
    hits = []
    for _ in range(120):
        hits += mgr.update(DT, [target])
    assert len(hits) == 1
    assert hits[0].target_id == 1
    assert hits[0].time_of_flight == pytest.approx(1000.0 / 827.0, abs=DT)
    assert target.destroyed
    assert len(mgr) == 0


def test_moving_target_hit_and_near_miss():
    mgr = ProjectileManager()
    # target crosses the shell path; both arrive at (0, 500, 10) at t = 0.5 s
    target = Target(1, (-20.0, 500.0, 10.0), TargetCategory.MOVING_SLOW, velocity=(40.0, 0.0, 0.0))
    miss = Target(2, (0.0, 700.0, 30.0), TargetCategory.STATIC)
    mgr.add(Projectile((0.0, 0.0, 10.0), (0.0, 1000.0, 0.0), NO_FORCES))
    hits = []
    for _ in range(60):
        target.advance(DT)
        miss.advance(DT)
        hits += mgr.update(DT, [target, miss])
    assert [h.target_id for h in hits] == [1]
    assert not miss.destroyed


def test_manager_limits_and_clear():
    mgr = ProjectileManager(max_active=1)
    assert mgr.add(Projectile((0.0, 0.0, 0.0), (0.0, 1.0, 1.0), NO_FORCES))
    assert not mgr.add(Projectile((0.0, 0.0, 0.0), (0.0, 1.0, 1.0), NO_FORCES))
    assert len(mgr.positions()) == 1
    mgr.clear()
    assert len(mgr) == 0


def test_shot_ids_are_per_gun():
    a, b = Gun(reload_time=0.0), Gun(reload_time=0.0)
    assert [a.fire(0.0).projectile_id, a.fire(0.1).projectile_id] == [1, 2]
    assert b.fire(0.0).projectile_id == 1


def test_gun_custom_elevation_limits():
    gun = Gun(min_elevation=-5.0, max_elevation=70.0)
    gun.lay(0.0, -10.0)
    assert gun.elevation == -5.0
    gun.lay(0.0, 80.0)
    assert gun.elevation == 70.0
    with pytest.raises(ValueError):
        Gun(min_elevation=10.0, max_elevation=5.0)


def test_manager_capacity():
    mgr = ProjectileManager(max_active=1)
    assert mgr.has_capacity()
    mgr.add(Projectile((0.0, 0.0, 0.0), (0.0, 1.0, 1.0), NO_FORCES))
    assert not mgr.has_capacity()
