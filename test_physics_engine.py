import os
import math
import unittest
import numpy as np

from config import ConfigurationError
from physics_engine import PhysicsEngine
from perturbations import PerturbationConfig
from solarsystem import BodyConfig, BodyKind, circular_orbit_state, orbital_period

def add_sun_and_planet(engine, radius=100.0):
    """Fixed star of mass 1000 with a light planet on a circular orbit (period ~198.7)."""
    sun = engine.add_body(BodyConfig('Sun', [0, 0, 0], mass=1000.0, radius=1.0, kind=BodyKind.STAR, fixed=True))
    speed = math.sqrt(1000.0 / radius)
    planet = engine.add_body(BodyConfig('Planet', [radius, 0, 0], [0, speed, 0], mass=1.0, radius=0.1))
    return sun, planet

def add_earth_orbit_scene(engine):
    """Sun, Earth at 1 AU and a spacecraft on a 4.22-unit circular orbit around Earth."""
    sun = engine.add_body(BodyConfig('Sun', [0, 0, 0], mass=333000.0, radius=100.0,
                                     kind=BodyKind.STAR, fixed=True))
    earth_velocity = [0.0, math.sqrt(333000.0 / 15000.0), 0.0]
    earth = engine.add_body(BodyConfig('Earth', [15000.0, 0, 0], earth_velocity, mass=1.0, radius=2.0))
    position, velocity = circular_orbit_state(engine.get_position(earth), engine.get_velocity(earth),
                                              1.0, 1.0, 4.22, math.pi / 4)
    craft = engine.set_spacecraft(BodyConfig('Spacecraft', position, velocity, mass=1e-20, radius=0.4))
    return sun, earth, craft

class TestIntegrator(unittest.TestCase):

    def test_kepler_period(self):
        engine = PhysicsEngine(G=1.0, time_scale=40.0, substeps=200)
        _, planet = add_sun_and_planet(engine)
        expected = orbital_period(1.0, 1000.0, 100.0)

        times = [0.0]
        angles = [0.0]
        for _ in range(130):  # 2 time units per tick, ~1.3 periods
            engine.update(0.05)
            position = engine.get_position(planet)
            times.append(engine.simulation_time)
            angles.append(math.atan2(position[1], position[0]))
        angles = np.unwrap(angles)

        i = int(np.argmax(angles >= 2.0 * math.pi))
        self.assertGreater(i, 0)
        fraction = (2.0 * math.pi - angles[i - 1]) / (angles[i] - angles[i - 1])
        period = times[i - 1] + fraction * (times[i] - times[i - 1])
        self.assertLess(abs(period - expected) / expected, 0.01)

    def test_circular_orbit_stays_circular(self):
        for substeps in (50, 200, 400):
            with self.subTest(substeps=substeps):
                engine = PhysicsEngine(G=1.0, time_scale=40.0, substeps=substeps)
                _, planet = add_sun_and_planet(engine)
                for _ in range(200):  # two periods
                    engine.update(0.05)
                    radius = np.linalg.norm(engine.get_position(planet))
                    self.assertLess(abs(radius - 100.0) / 100.0, 0.01)

    def test_spacecraft_orbit_around_earth_fast(self):
        engine = PhysicsEngine(G=1.0, time_scale=10.0, substeps=200)
        _, earth, craft = add_earth_orbit_scene(engine)
        start = engine.get_position(craft) - engine.get_position(earth)
        period = orbital_period(1.0, 1.0, 4.22)
        ticks = int(round(period / 0.5))
        for _ in range(ticks):
            event = engine.update(0.05)
            self.assertFalse(event.collided)
            relative = engine.get_position(craft) - engine.get_position(earth)
            self.assertLess(abs(np.linalg.norm(relative) - 4.22) / 4.22, 0.02)
        self.assertLess(np.linalg.norm(relative - start), 0.02 * 4.22)

    # About two minutes at the default time scale. The fast variant above covers the same path.
    @unittest.skipUnless(os.environ.get("RUN_SLOW_TESTS"), "set RUN_SLOW_TESTS=1 to run")
    def test_spacecraft_orbit_around_earth_default_settings(self):
        engine = PhysicsEngine(G=1.0)
        _, earth, craft = add_earth_orbit_scene(engine)
        start = engine.get_position(craft) - engine.get_position(earth)
        ticks = int(round(orbital_period(1.0, 1.0, 4.22) / (0.05 * engine.time_scale)))
        for _ in range(ticks):
            engine.update(0.05)
        relative = engine.get_position(craft) - engine.get_position(earth)
        self.assertLess(abs(np.linalg.norm(relative) - 4.22) / 4.22, 0.02)
        self.assertLess(np.linalg.norm(relative - start), 0.02 * 4.22)

    def test_fixed_bodies_never_move(self):
        engine = PhysicsEngine(G=1.0, time_scale=40.0, substeps=10)
        sun, _ = add_sun_and_planet(engine)
        for _ in range(20):
            engine.update(0.05)
        np.testing.assert_array_equal(engine.get_position(sun), np.zeros(3))
        np.testing.assert_array_equal(engine.get_velocity(sun), np.zeros(3))

    def test_matches_full_prediction_without_perturbations(self):
        engine = PhysicsEngine(G=1.0, time_scale=4.0, substeps=1)
        _, _, craft = add_earth_orbit_scene(engine)
        prediction = engine.predictor.predict_full(engine.registry, engine.time_scale, steps=10,
                                                   step_size=0.05, record_interval=1)
        for _ in range(10):
            engine.update(0.05)
        np.testing.assert_array_almost_equal(prediction.points[-1], engine.get_position(craft), decimal=9)

    def test_empty_registry_update_is_a_no_op(self):
        engine = PhysicsEngine()
        event = engine.update(0.05)
        self.assertFalse(event.collided)
        self.assertEqual(engine.tick_count, 0)

class TestEngineControls(unittest.TestCase):

    def setUp(self):
        self.engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=1)
        self.craft = self.engine.set_spacecraft(BodyConfig('Craft', [0, 0, 0], [1.0, 0, 0], mass=1e-20, radius=0.4))

    def test_rejects_invalid_construction(self):
        with self.assertRaises(ConfigurationError):
            PhysicsEngine(G=0.0)
        with self.assertRaises(ConfigurationError):
            PhysicsEngine(max_speed=0.0)
        with self.assertRaises(ConfigurationError):
            PhysicsEngine(drag=1.5)

    def test_dt_is_clamped(self):
        self.engine.update(1.0)
        self.assertAlmostEqual(self.engine.simulation_time, 0.05)
        np.testing.assert_array_almost_equal(self.engine.get_position(self.craft), [0.05, 0, 0])

    def test_non_positive_dt_does_not_advance(self):
        self.engine.update(-1.0)
        self.engine.update(0.0)
        self.assertEqual(self.engine.tick_count, 0)
        np.testing.assert_array_equal(self.engine.get_position(self.craft), np.zeros(3))

    def test_non_finite_dt_is_ignored(self):
        with self.assertLogs(level='WARNING'):
            self.engine.update(float('nan'))
        self.assertEqual(self.engine.simulation_time, 0.0)

    def test_time_scale_validation(self):
        self.engine.set_time_scale(2.5)
        self.assertEqual(self.engine.time_scale, 2.5)
        with self.assertLogs(level='WARNING'):
            self.engine.set_time_scale(-1.0)
        self.assertEqual(self.engine.time_scale, 2.5)
        self.engine.set_time_scale(0.0)
        self.engine.update(0.05)
        self.assertEqual(self.engine.tick_count, 0)

    def test_substep_clamping(self):
        self.engine.set_substeps(0)
        self.assertEqual(self.engine.substeps, 1)
        self.engine.set_substeps(3.7)
        self.assertEqual(self.engine.substeps, 3)
        self.engine.set_substeps(float('nan'))
        self.assertEqual(self.engine.substeps, 200)

    def test_speed_cap(self):
        engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=5, max_speed=1.0)
        engine.set_spacecraft(BodyConfig('Craft', [0, 0, 0], [3.0, 4.0, 0], mass=1e-20, radius=0.4))
        engine.update(0.05)
        self.assertLessEqual(engine.speed(), 1.0 + 1e-12)

    def test_drag_knob(self):
        engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=1, drag=0.5)
        engine.set_spacecraft(BodyConfig('Craft', [0, 0, 0], [1.0, 0, 0], mass=1e-20, radius=0.4))
        engine.update(0.05)
        self.assertAlmostEqual(engine.speed(), 0.5 ** 3)

    def test_apply_impulse(self):
        self.engine.apply_impulse([0, 2.0, 0], 0.5)
        np.testing.assert_array_almost_equal(self.engine.get_velocity(self.craft), [1.0, 0.5, 0.0])

    def test_apply_impulse_ignores_degenerate_input(self):
        self.engine.apply_impulse([0, 0, 0], 1.0)
        self.engine.apply_impulse([1, 0, 0], 0.0)
        self.engine.apply_impulse([1, 0, 0], -2.0)
        self.engine.apply_impulse([1, 0, 0], float('inf'))
        np.testing.assert_array_equal(self.engine.get_velocity(self.craft), [1.0, 0.0, 0.0])
        PhysicsEngine().apply_impulse([1, 0, 0], 1.0)  # no spacecraft

    def test_perturbation_reference_checks(self):
        with self.assertRaises(ConfigurationError):
            self.engine.set_perturbation_references(earth=self.craft)
        with self.assertRaises(ConfigurationError):
            self.engine.set_perturbation_references(sun=7)

    def test_perturbation_config_keeps_references(self):
        earth = self.engine.add_body(BodyConfig('Earth', [100, 0, 0], mass=1.0, radius=2.0))
        self.engine.set_perturbation_references(earth=earth)
        self.engine.set_perturbation_config(PerturbationConfig(enable_srp=False))
        self.assertEqual(self.engine.perturbations.config.earth, earth)
        self.assertFalse(self.engine.perturbations.config.enable_srp)

class TestDragDecay(unittest.TestCase):

    def build(self, use_hpop):
        engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=20, use_hpop=use_hpop)
        earth = engine.add_body(BodyConfig('Earth', [0, 0, 0], mass=1e-12, radius=2.0, fixed=True))
        craft = engine.set_spacecraft(BodyConfig('Craft', [2.047, 0, 0], [0, 0.5, 0], mass=1e-20, radius=0.001))
        engine.set_perturbation_config(PerturbationConfig(
            enable_harmonics=False, enable_third_body=False, enable_drag=True, enable_srp=False, earth=earth))
        return engine, craft

    def test_speed_never_increases_under_drag(self):
        engine, _ = self.build(use_hpop=True)
        initial = engine.speed()
        previous = initial
        for _ in range(20):
            engine.update(0.05)
            self.assertLessEqual(engine.speed(), previous + 1e-12)
            previous = engine.speed()
        self.assertLess(engine.speed(), initial)

    def test_perturbations_off_leaves_speed(self):
        engine, _ = self.build(use_hpop=False)
        initial = engine.speed()
        for _ in range(20):
            engine.update(0.05)
        self.assertAlmostEqual(engine.speed(), initial, places=9)
        engine.set_perturbation_enabled(True)
        engine.update(0.05)
        self.assertLess(engine.speed(), initial)

class TestEngineCollisions(unittest.TestCase):

    def build(self, auto_resolve):
        engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=1, auto_resolve_collisions=auto_resolve)
        earth = engine.add_body(BodyConfig('Earth', [0, 0, 0], mass=1.0, radius=2.0, fixed=True))
        craft = engine.set_spacecraft(BodyConfig('Craft', [2.1, 0, 0], [-1.0, 0, 0], mass=1e-20, radius=0.4))
        return engine, earth, craft

    def test_update_resolves_collision(self):
        engine, earth, craft = self.build(auto_resolve=True)
        event = engine.update(0.0)
        self.assertTrue(event.collided)
        self.assertEqual(event.body, earth)
        self.assertGreaterEqual(np.linalg.norm(engine.get_position(craft)), 2.4 - 1e-12)
        self.assertGreater(engine.get_velocity(craft)[0], 0.0)

    def test_manual_resolution(self):
        engine, _, craft = self.build(auto_resolve=False)
        event = engine.update(0.0)
        self.assertTrue(engine.last_collision.collided)
        np.testing.assert_array_equal(engine.get_position(craft), [2.1, 0, 0])
        engine.resolve_collision(event)
        self.assertAlmostEqual(np.linalg.norm(engine.get_position(craft)), 2.4)

class TestEngineAccessors(unittest.TestCase):

    def setUp(self):
        self.engine = PhysicsEngine(G=1.0, time_scale=1.0, substeps=10)
        self.earth = self.engine.add_body(BodyConfig('Earth', [0, 0, 0], mass=1.0, radius=2.0, fixed=True))
        self.moon = self.engine.add_body(BodyConfig('Moon', [40, 0, 0], [0, 0.158, 0], mass=0.0123, radius=0.5))
        self.craft = self.engine.set_spacecraft(BodyConfig('Craft', [35, 0, 0], [0, 0.2, 0], mass=1e-20, radius=0.4))

    def test_nearest_body_excludes_spacecraft(self):
        handle, distance = self.engine.nearest_body()
        self.assertEqual(handle, self.moon)
        self.assertAlmostEqual(distance, 5.0)
        self.assertIsNone(PhysicsEngine().nearest_body())

    def test_export_and_restore_round_trip(self):
        saved = self.engine.export_state()
        self.assertEqual([s.name for s in saved], ['Earth', 'Moon', 'Craft'])
        self.assertEqual(saved[2].kind, 'spacecraft')
        for _ in range(5):
            self.engine.update(0.05)
        self.engine.restore_state(saved)
        np.testing.assert_array_equal(self.engine.get_position(self.moon), [40, 0, 0])
        np.testing.assert_array_equal(self.engine.get_velocity(self.craft), [0, 0.2, 0])

    def test_restore_rejects_mismatched_layout(self):
        saved = self.engine.export_state()
        with self.assertRaises(ConfigurationError):
            self.engine.restore_state(saved[:2])
        with self.assertRaises(ConfigurationError):
            self.engine.restore_state(list(reversed(saved)))

    def test_restore_keeps_fixed_bodies(self):
        saved = self.engine.export_state()
        saved[0].position = [5.0, 5.0, 5.0]
        self.engine.restore_state(saved)
        np.testing.assert_array_equal(self.engine.get_position(self.earth), np.zeros(3))

    def test_fixed_body_refuses_writes(self):
        with self.assertRaises(ConfigurationError):
            self.engine.set_position(self.earth, [1, 0, 0])
        self.engine.set_position(self.craft, [30, 0, 0])
        np.testing.assert_array_equal(self.engine.get_position(self.craft), [30, 0, 0])

    def test_total_energy(self):
        engine = PhysicsEngine(G=1.0)
        engine.add_body(BodyConfig('A', [0, 0, 0], [0, 0, 0], mass=2.0, radius=0.1))
        engine.add_body(BodyConfig('B', [4, 0, 0], [0, 1.0, 0], mass=3.0, radius=0.1))
        self.assertAlmostEqual(engine.total_energy(), 0.5 * 3.0 - 2.0 * 3.0 / 4.0)

    def test_second_spacecraft_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            self.engine.set_spacecraft(BodyConfig('Other', [0, 50, 0], mass=1e-20, radius=0.4))

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
