# physics_engine.py
import math
import logging
import numpy as np
from dataclasses import replace
from typing import Optional, Tuple, List

from config import config, ConfigurationError
from physics_utils import as_vector, normalize_vector, clamp_magnitude
from solarsystem import BodyRegistry, BodyConfig, BodyState, BodyHandle, calculate_total_system_energy
from gravity import GravitySolver
from perturbations import PerturbationConfig, PerturbationModel
from collisions import CollisionEvent, NO_COLLISION, detect_collision, resolve_collision
from trajectory import TrajectoryPredictor, TrajectoryPrediction

class PhysicsEngine:
    """Simulation context for the orbital core.

    Owns the body registry and the components that act on it: the gravity solver,
    the spacecraft perturbation model, the collision resolver and the trajectory
    predictor. The host drives it with `update(dt)` once per frame and may write
    positions and velocities between calls, never during one.

    Each `update(dt)` clamps `dt` to `max_dt`, scales it by `time_scale` and splits it
    into `substeps` semi-implicit Euler steps. A substep resets accelerations, adds
    N-body gravity, adds the perturbation model for the spacecraft when enabled,
    updates velocities, applies the spacecraft drag knob and speed cap, and then
    moves every non-fixed body with its updated velocity. Collisions are detected
    once per tick, after the last substep.

    Attributes:
        registry (BodyRegistry): All bodies.
        solver (GravitySolver): Pairwise gravity.
        perturbations (PerturbationModel): HPOP terms for the spacecraft.
        predictor (TrajectoryPredictor): Read-only forward simulation.
        use_hpop (bool): Whether perturbations are applied in `update`.
        time_scale (float): Simulation time per wall-clock second.
        substeps (int): Integration substeps per `update`.
        max_dt (float): Clamp for the `dt` passed to `update`.
        max_speed (float): Spacecraft speed cap.
        drag (float): Spacecraft damping knob; 1.0 disables it.
        auto_resolve_collisions (bool): Resolve detected collisions inside `update`.
        tick_count (int): Number of `update` calls that advanced time.
        simulation_time (float): Accumulated scaled time.
    """

    def __init__(self, G: float = config.Physics.G,
                 time_scale: float = config.Physics.DEFAULT_TIME_SCALE,
                 substeps: int = config.Physics.DEFAULT_SUBSTEPS,
                 max_speed: float = config.Physics.MAX_SPEED,
                 drag: float = config.Physics.DRAG,
                 use_hpop: bool = config.HPOP.ENABLED,
                 perturbation_config: Optional[PerturbationConfig] = None,
                 auto_resolve_collisions: bool = config.Collision.AUTO_RESOLVE):
        if not (G > 0):
            raise ConfigurationError(f"G ({G}) must be positive.")
        if not (max_speed > 0):
            raise ConfigurationError(f"max_speed ({max_speed}) must be positive.")
        if not (0 < drag <= 1.0):
            raise ConfigurationError(f"drag ({drag}) must be in (0, 1].")

        self.registry = BodyRegistry()
        self.solver = GravitySolver(G)
        self.perturbations = PerturbationModel(perturbation_config)
        self.predictor = TrajectoryPredictor(self.solver)
        self.use_hpop = bool(use_hpop)
        self.max_dt = config.Physics.MAX_DT
        self.max_speed = max_speed
        self.drag = drag
        self.auto_resolve_collisions = auto_resolve_collisions
        self.time_scale = config.Physics.DEFAULT_TIME_SCALE
        self.substeps = config.Physics.DEFAULT_SUBSTEPS
        self.set_time_scale(time_scale)
        self.set_substeps(substeps)

        self.tick_count = 0
        self.simulation_time = 0.0
        self.last_collision: CollisionEvent = NO_COLLISION

        logging.info(
            f"Physics engine initialized - time scale {self.time_scale}, {self.substeps} substeps, "
            f"HPOP: {'ENABLED' if self.use_hpop else 'DISABLED'}"
        )
        if self.use_hpop:
            self.perturbations.log_summary()

    @property
    def G(self) -> float:
        return self.solver.G

    # --- Registration ---

    def add_body(self, body_config: BodyConfig) -> BodyHandle:
        handle = self.registry.add_body(body_config)
        logging.debug(f"Body '{body_config.name}' registered as handle {handle}.")
        return handle

    def set_spacecraft(self, body_config: BodyConfig) -> BodyHandle:
        handle = self.registry.set_spacecraft(body_config)
        logging.info(f"Spacecraft '{body_config.name}' registered as handle {handle}.")
        return handle

    # --- Perturbation configuration ---

    def set_perturbation_config(self, perturbation_config: PerturbationConfig):
        """Replaces the perturbation options.

        Reference handles left as None in `perturbation_config` keep their current
        values; use `set_perturbation_references` to clear them.
        """
        current = self.perturbations.config
        for role in ('earth', 'sun', 'moon'):
            handle = getattr(perturbation_config, role)
            if handle is None:
                perturbation_config = replace(perturbation_config, **{role: getattr(current, role)})
            else:
                self._check_reference(role, handle)
        self.perturbations.config = perturbation_config
        if self.use_hpop:
            self.perturbations.log_summary()

    def set_perturbation_references(self, earth: Optional[BodyHandle] = None,
                                    sun: Optional[BodyHandle] = None,
                                    moon: Optional[BodyHandle] = None):
        """Sets the Earth/Sun/Moon reference bodies. None disables the terms that need it."""
        for role, handle in (('earth', earth), ('sun', sun), ('moon', moon)):
            if handle is not None:
                self._check_reference(role, handle)
        self.perturbations.config = replace(self.perturbations.config, earth=earth, sun=sun, moon=moon)
        logging.info(
            f"HPOP reference bodies set: earth={earth is not None}, sun={sun is not None}, moon={moon is not None}"
        )

    def _check_reference(self, role, handle):
        if not (0 <= handle < len(self.registry)):
            raise ConfigurationError(f"HPOP {role} reference {handle} is not a registered body.")
        if handle == self.registry.spacecraft:
            raise ConfigurationError(f"HPOP {role} reference cannot be the spacecraft.")

    def set_perturbation_enabled(self, enabled: bool):
        self.use_hpop = bool(enabled)
        logging.info(f"HPOP mode: {'ENABLED' if self.use_hpop else 'DISABLED'}")

    # --- Integrator tuning ---

    def set_time_scale(self, scale: float):
        """Sets the time scale. Negative or non-finite values are ignored with a warning."""
        try:
            scale = float(scale)
        except (TypeError, ValueError):
            scale = float('nan')
        if not math.isfinite(scale) or scale < 0:
            logging.warning(f"Ignoring invalid time scale {scale}; keeping {self.time_scale}.")
            return
        self.time_scale = scale

    def set_substeps(self, n: int):
        """Sets the substep count, clamped to at least 1. Non-finite values fall back to the default."""
        try:
            value = float(n)
        except (TypeError, ValueError):
            value = float('nan')
        if not math.isfinite(value):
            logging.warning(f"Invalid substep count {n}; using default {config.Physics.DEFAULT_SUBSTEPS}.")
            self.substeps = config.Physics.DEFAULT_SUBSTEPS
            return
        if value < 1:
            logging.warning(f"Substep count {n} clamped to 1.")
        self.substeps = max(1, int(value))

    # --- Commands ---

    def apply_impulse(self, direction, magnitude: float):
        """Adds `magnitude` along `direction` to the spacecraft velocity.

        No-op without a spacecraft, for a non-positive or non-finite magnitude, or for
        a zero direction.
        """
        sc = self.registry.spacecraft
        if sc is None or not math.isfinite(magnitude) or magnitude <= 0:
            return
        unit = normalize_vector(as_vector(direction))
        if not np.any(unit):
            return
        self.registry.velocities[sc] = self.registry.velocities[sc] + unit * magnitude

    apply_thrust = apply_impulse

    # --- Integration ---

    def update(self, dt: float) -> CollisionEvent:
        """Advances the simulation by one frame and returns the tick's collision event."""
        if len(self.registry) == 0:
            return NO_COLLISION
        if dt is None or not math.isfinite(dt):
            logging.warning(f"Ignoring non-finite frame time {dt}.")
            return NO_COLLISION

        dt = min(max(dt, 0.0), self.max_dt)
        scaled_dt = dt * self.time_scale
        dt_sub = scaled_dt / self.substeps
        if dt_sub > 0.0:
            for _ in range(self.substeps):
                self._substep(dt_sub)
            self.tick_count += 1
            self.simulation_time += scaled_dt

        event = self.detect_collision()
        if event.collided and self.auto_resolve_collisions:
            self.resolve_collision(event)
        self.last_collision = event
        return event

    def _substep(self, dt_sub: float):
        registry = self.registry
        self.solver.accumulate(registry)
        sc = registry.spacecraft
        if self.use_hpop and sc is not None:
            registry.accelerations[sc] += self.perturbations.acceleration(registry, self.G)

        movable = ~registry.fixed
        registry.velocities[movable] += registry.accelerations[movable] * dt_sub

        if sc is not None:
            velocity = registry.velocities[sc]
            if self.drag < 1.0:
                velocity = velocity * self.drag ** (dt_sub * 60)
            registry.velocities[sc] = clamp_magnitude(velocity, self.max_speed)

        registry.positions[movable] += registry.velocities[movable] * dt_sub

    # --- Collisions ---

    def detect_collision(self) -> CollisionEvent:
        return detect_collision(self.registry)

    def resolve_collision(self, event: Optional[CollisionEvent] = None):
        """Applies the collision response for `event` (or a fresh detection if omitted)."""
        if event is None:
            event = self.detect_collision()
        resolve_collision(self.registry, event)

    # --- Prediction ---

    def predict_trajectory_simplified(self, steps: int = config.Trajectory.SIMPLIFIED_STEPS,
                                      step_size: float = config.Trajectory.SIMPLIFIED_STEP_SIZE) -> np.ndarray:
        return self.predictor.predict_simplified(self.registry, self.time_scale, steps, step_size)

    def predict_trajectory_full(self, steps: int = config.Trajectory.FULL_STEPS,
                                step_size: float = config.Trajectory.FULL_STEP_SIZE,
                                candidate_delta_v=None) -> np.ndarray:
        return self.plan_trajectory(steps, step_size, candidate_delta_v).points

    def plan_trajectory(self, steps: int = config.Trajectory.FULL_STEPS,
                        step_size: float = config.Trajectory.FULL_STEP_SIZE,
                        candidate_delta_v=None, reference: Optional[BodyHandle] = None) -> TrajectoryPrediction:
        """Full N-body planning preview with collision info and optional reference-frame track."""
        return self.predictor.predict_full(
            self.registry, self.time_scale, steps, step_size,
            candidate_delta_v=candidate_delta_v, reference=reference)

    # --- Read accessors ---

    def speed(self) -> float:
        sc = self.registry.spacecraft
        if sc is None:
            return 0.0
        return float(np.linalg.norm(self.registry.velocities[sc]))

    def nearest_body(self) -> Optional[Tuple[BodyHandle, float]]:
        """Closest body to the spacecraft (centre distance), excluding the spacecraft itself."""
        sc = self.registry.spacecraft
        if sc is None or len(self.registry) < 2:
            return None
        distances = np.linalg.norm(self.registry.positions - self.registry.positions[sc], axis=1)
        distances[sc] = np.inf
        nearest = int(np.argmin(distances))
        return nearest, float(distances[nearest])

    @property
    def spacecraft(self) -> Optional[BodyHandle]:
        return self.registry.spacecraft

    def get_position(self, handle: BodyHandle) -> np.ndarray:
        return self.registry.position(handle)

    def get_velocity(self, handle: BodyHandle) -> np.ndarray:
        return self.registry.velocity(handle)

    def set_position(self, handle: BodyHandle, position):
        self.registry.set_position(handle, position)

    def set_velocity(self, handle: BodyHandle, velocity):
        self.registry.set_velocity(handle, velocity)

    def export_state(self) -> List[BodyState]:
        return self.registry.export_state()

    def restore_state(self, states: List[BodyState]):
        self.registry.restore_state(states)
        logging.info(f"Restored state for {len(states)} bodies.")

    def total_energy(self) -> float:
        return calculate_total_system_energy(self.registry, self.G)
