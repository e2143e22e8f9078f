import math
import unittest
import numpy as np

from config import config, ConfigurationError
from physics_utils import PhysicsError
from physics_engine import PhysicsEngine
from solarsystem import (BodyRegistry, BodyConfig, BodyKind, build_solar_system, circular_orbit_velocity,
                         perihelion_velocity, orbital_period, circular_orbit_state, perihelion_state,
                         calculate_total_system_energy)

class TestBodyRegistry(unittest.TestCase):

    def test_handles_follow_insertion_order(self):
        registry = BodyRegistry()
        a = registry.add_body(BodyConfig('A', [0, 0, 0]))
        b = registry.add_body(BodyConfig('B', [1, 0, 0], kind='moon'))
        self.assertEqual((a, b), (0, 1))
        self.assertEqual(len(registry), 2)
        self.assertEqual(registry.kinds[b], BodyKind.MOON)
        self.assertEqual(registry.find('B'), b)
        self.assertIsNone(registry.find('C'))

    def test_rejects_invalid_bodies(self):
        registry = BodyRegistry()
        with self.assertRaises(ConfigurationError):
            registry.add_body(BodyConfig('Massless', [0, 0, 0], mass=0.0))
        with self.assertRaises(ConfigurationError):
            registry.add_body(BodyConfig('Negative', [0, 0, 0], radius=-1.0))
        with self.assertRaises(ConfigurationError):
            registry.add_body(BodyConfig('Lost', [np.nan, 0, 0]))
        with self.assertRaises(ConfigurationError):
            registry.add_body(BodyConfig('Flat', [0, 0]))
        self.assertEqual(len(registry), 0)

    def test_spacecraft_registration(self):
        registry = BodyRegistry()
        craft = registry.set_spacecraft(BodyConfig('Craft', [0, 0, 0], mass=1e-20, radius=0.4))
        self.assertEqual(registry.spacecraft, craft)
        self.assertEqual(registry.kinds[craft], BodyKind.SPACECRAFT)
        with self.assertRaises(ConfigurationError):
            registry.set_spacecraft(BodyConfig('Second', [1, 0, 0], mass=1e-20))

    def test_fixed_spacecraft_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            BodyRegistry().set_spacecraft(BodyConfig('Craft', [0, 0, 0], mass=1e-20, fixed=True))

    def test_unknown_handle(self):
        registry = BodyRegistry()
        with self.assertRaises(ConfigurationError):
            registry.position(0)

    def test_clone_is_independent(self):
        registry = BodyRegistry()
        registry.add_body(BodyConfig('A', [1, 2, 3], [0, 1, 0]))
        copy = registry.clone()
        copy.positions[0] += 10.0
        copy.velocities[0] *= 2.0
        copy.add_body(BodyConfig('B', [0, 0, 0]))
        np.testing.assert_array_equal(registry.positions[0], [1, 2, 3])
        np.testing.assert_array_equal(registry.velocities[0], [0, 1, 0])
        self.assertEqual(len(registry), 1)

class TestOrbitalHelpers(unittest.TestCase):

    def test_circular_orbit_velocity(self):
        self.assertAlmostEqual(circular_orbit_velocity(1.0, 1000.0, 100.0), math.sqrt(10.0))
        with self.assertRaises(PhysicsError):
            circular_orbit_velocity(1.0, 1.0, 0.0)

    def test_perihelion_velocity(self):
        self.assertAlmostEqual(perihelion_velocity(1.0, 1.0, 1.0, 0.0), 1.0)
        self.assertAlmostEqual(perihelion_velocity(1.0, 1.0, 2.0, 0.5), math.sqrt(0.75))
        with self.assertRaises(PhysicsError):
            perihelion_velocity(1.0, 1.0, 1.0, 1.0)

    def test_orbital_period(self):
        self.assertAlmostEqual(orbital_period(1.0, 1.0, 1.0), 2.0 * math.pi)
        with self.assertRaises(PhysicsError):
            orbital_period(1.0, -1.0, 1.0)

    def test_circular_orbit_state_is_prograde(self):
        position, velocity = circular_orbit_state([10, 0, 0], [0, 1, 0], 1.0, 4.0, 1.0, math.pi / 2)
        np.testing.assert_array_almost_equal(position, [10, 1, 0])
        np.testing.assert_array_almost_equal(velocity, [-2.0, 1.0, 0.0])
        self.assertGreater(np.cross(position - [10, 0, 0], velocity - [0, 1, 0])[2], 0.0)

    def test_retrograde_perihelion_state(self):
        position, velocity = perihelion_state([0, 0, 0], [0, 0, 0], 1.0, 1000.0, 50.0, 0.9, 160.0, 0.0)
        np.testing.assert_array_almost_equal(position, [50.0, 0.0, 0.0])
        self.assertAlmostEqual(np.linalg.norm(velocity), perihelion_velocity(1.0, 1000.0, 50.0, 0.9))
        self.assertAlmostEqual(np.dot(position, velocity), 0.0)
        self.assertGreater(velocity[2], 0.0)
        # Projected onto the plane the motion is clockwise about +z
        self.assertLess(np.cross(position, velocity)[2], 0.0)

    def test_prograde_perihelion_state(self):
        position, velocity = perihelion_state([0, 0, 0], [0, 0, 0], 1.0, 1000.0, 50.0, 0.5, 0.0, 0.0)
        self.assertGreater(np.cross(position, velocity)[2], 0.0)
        self.assertAlmostEqual(velocity[2], 0.0)

    def test_total_energy_skips_coincident_pairs(self):
        registry = BodyRegistry()
        registry.add_body(BodyConfig('A', [0, 0, 0], [1, 0, 0], mass=2.0))
        registry.add_body(BodyConfig('B', [0, 0, 0], mass=3.0))
        self.assertAlmostEqual(calculate_total_system_energy(registry, 1.0), 1.0)
        self.assertEqual(calculate_total_system_energy(BodyRegistry()), 0.0)

class TestBuildSolarSystem(unittest.TestCase):

    def setUp(self):
        self.engine = PhysicsEngine(use_hpop=True)
        self.handles = build_solar_system(self.engine)

    def test_registers_every_body_and_the_spacecraft(self):
        names = list(config.SolarSystem.BODY_DATA) + [config.SolarSystem.SPACECRAFT['name']]
        self.assertEqual(self.engine.registry.names, names)
        self.assertEqual(self.engine.spacecraft, self.handles['Spacecraft'])
        self.assertTrue(self.engine.registry.fixed[self.handles['Sun']])

    def test_perturbation_references(self):
        cfg = self.engine.perturbations.config
        self.assertEqual(cfg.earth, self.handles['Earth'])
        self.assertEqual(cfg.sun, self.handles['Sun'])
        self.assertEqual(cfg.moon, self.handles['Moon'])

    def test_orbits_are_placed_around_their_central_body(self):
        earth = self.engine.get_position(self.handles['Earth'])
        moon = self.engine.get_position(self.handles['Moon'])
        craft = self.engine.get_position(self.handles['Spacecraft'])
        self.assertAlmostEqual(np.linalg.norm(earth), 15000.0)
        self.assertAlmostEqual(np.linalg.norm(moon - earth), 40.0)
        self.assertAlmostEqual(np.linalg.norm(craft - earth), 4.22)
        comet = self.engine.get_position(self.handles["Halley's Comet"])
        self.assertAlmostEqual(np.linalg.norm(comet), 0.59278 * config.Units.AU)
        self.assertLess(np.cross(comet, self.engine.get_velocity(self.handles["Halley's Comet"]))[2], 0.0)

    def test_system_is_bound_and_runs_with_perturbations(self):
        self.assertLess(self.engine.total_energy(), 0.0)
        for _ in range(3):
            self.engine.update(1.0 / 60.0)
        self.assertTrue(np.all(np.isfinite(self.engine.registry.positions)))
        self.assertTrue(np.all(np.isfinite(self.engine.registry.velocities)))

    def test_spacecraft_radius_comes_from_collision_config(self):
        self.assertEqual(self.engine.registry.radii[self.handles['Spacecraft']], config.Collision.SPACECRAFT_RADIUS)
        saved = config.Collision.SPACECRAFT_RADIUS
        config.Collision.SPACECRAFT_RADIUS = 1.0
        try:
            engine = PhysicsEngine()
            handles = build_solar_system(engine)
        finally:
            config.Collision.SPACECRAFT_RADIUS = saved
        self.assertEqual(engine.registry.radii[handles['Spacecraft']], 1.0)

    def test_without_spacecraft(self):
        engine = PhysicsEngine()
        handles = build_solar_system(engine, include_spacecraft=False)
        self.assertIsNone(engine.spacecraft)
        self.assertNotIn('Spacecraft', handles)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
