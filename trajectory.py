# trajectory.py
"""Read-only forward predictions of the spacecraft's path and maneuver delta-v helpers.

Both prediction modes are pure functions of the registry they are given plus their
explicit parameters. The simplified mode only copies the spacecraft's kinematics; the
full mode integrates a `BodyRegistry.clone()` and throws it away afterwards.
"""
import math
import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional

from config import config
from gravity import GravitySolver
from collisions import detect_collision
from physics_utils import as_vector, normalize_vector
from solarsystem import BodyRegistry

@dataclass
class TrajectoryPrediction:
    """Output of a full N-body planning run.

    Attributes:
        points (np.ndarray): (k, 3) recorded spacecraft positions, initial position first.
        reference_points (np.ndarray): (k, 3) reference body positions at the same
                                       instants; zeros when no reference was requested.
        collided (bool): True if the run stopped on a predicted contact.
        collision_body (Optional[int]): Handle of the body contacted.
        steps_run (int): Number of integration steps actually taken.
    """
    points: np.ndarray
    reference_points: np.ndarray
    collided: bool = False
    collision_body: Optional[int] = None
    steps_run: int = 0

    def relative_points(self) -> np.ndarray:
        """Points expressed in the co-moving frame of the reference body."""
        return self.points - self.reference_points

    def __len__(self):
        return len(self.points)


class TrajectoryPredictor:

    def __init__(self, solver: Optional[GravitySolver] = None):
        self.solver = solver or GravitySolver()

    def predict_simplified(self, registry: BodyRegistry, time_scale: float,
                           steps: int = config.Trajectory.SIMPLIFIED_STEPS,
                           step_size: float = config.Trajectory.SIMPLIFIED_STEP_SIZE) -> np.ndarray:
        """
        Cheap preview with every other body frozen where it is now.

        Records the spacecraft position before each step, integrates with
        semi-implicit Euler at `dt = step_size * time_scale`, and stops once the
        spacecraft comes within `body.radius + spacecraft.radius` of any body.
        The softening floor per body is `max(1.2 * radius, 1.0)`.

        Returns:
            np.ndarray: (k, 3) positions, k <= steps. Empty without a spacecraft.
        """
        sc = registry.spacecraft
        steps = max(0, int(steps))
        if sc is None or steps == 0:
            return np.zeros((0, 3))

        dt = step_size * time_scale
        positions = registry.positions
        masses = registry.masses
        floors = np.maximum(registry.radii * config.Trajectory.SIMPLIFIED_SOFTENING_FACTOR,
                            self.solver.min_softening_distance)
        contact = registry.radii + registry.radii[sc]
        others = np.ones(len(registry), dtype=bool)
        others[sc] = False

        position = registry.positions[sc].copy()
        velocity = registry.velocities[sc].copy()
        trajectory = []
        for step in range(steps):
            trajectory.append(position.copy())
            acceleration = self.solver.acceleration_at(position, positions, masses, floors, exclude=sc)
            velocity = velocity + acceleration * dt
            position = position + velocity * dt

            distances = np.linalg.norm(positions - position, axis=1)
            if np.any((distances < contact) & others):
                if config.Debug.LOG_PREDICTIONS:
                    logging.debug(f"Simplified prediction stopped on contact after {step + 1} steps.")
                break
        return np.array(trajectory)

    def predict_full(self, registry: BodyRegistry, time_scale: float,
                     steps: int = config.Trajectory.FULL_STEPS,
                     step_size: float = config.Trajectory.FULL_STEP_SIZE,
                     candidate_delta_v=None, reference: Optional[int] = None,
                     record_interval: int = config.Trajectory.RECORD_INTERVAL) -> TrajectoryPrediction:
        """
        Full N-body preview on a scratch copy of the registry.

        The optional `candidate_delta_v` is added to the copied spacecraft velocity.
        Every non-fixed body is integrated with the same gravity solver as the live
        integrator, without perturbations, collision response or speed clamp. The
        initial position is recorded, then the position after every step whose index
        is a multiple of `record_interval`. The run stops after the first step that
        leaves the spacecraft in contact with a body.
        """
        sc = registry.spacecraft
        if sc is None:
            return TrajectoryPrediction(points=np.zeros((0, 3)), reference_points=np.zeros((0, 3)))

        scratch = registry.clone()
        if candidate_delta_v is not None:
            scratch.velocities[sc] = scratch.velocities[sc] + as_vector(candidate_delta_v)

        dt = step_size * time_scale
        record_interval = max(1, int(record_interval))
        movable = ~scratch.fixed

        def reference_position():
            if reference is None:
                return np.zeros(3)
            return scratch.positions[reference].copy()

        points = [scratch.positions[sc].copy()]
        reference_points = [reference_position()]
        collided = False
        collision_body = None
        steps_run = 0
        for step in range(max(0, int(steps))):
            self.solver.accumulate(scratch)
            scratch.velocities[movable] += scratch.accelerations[movable] * dt
            scratch.positions[movable] += scratch.velocities[movable] * dt
            steps_run = step + 1

            if step % record_interval == 0:
                points.append(scratch.positions[sc].copy())
                reference_points.append(reference_position())

            event = detect_collision(scratch)
            if event.collided:
                collided = True
                collision_body = event.body
                if config.Debug.LOG_PREDICTIONS:
                    logging.debug(
                        f"Full prediction hits '{scratch.names[event.body]}' after {steps_run} steps."
                    )
                break

        return TrajectoryPrediction(
            points=np.array(points),
            reference_points=np.array(reference_points),
            collided=collided,
            collision_body=collision_body,
            steps_run=steps_run,
        )


# --- Maneuver helpers producing candidate delta-v vectors ---

def hohmann_transfer_delta_v(spacecraft_position, spacecraft_velocity, center_position, center_velocity,
                             center_mass: float, target_radius: float, G: float = config.Physics.G) -> np.ndarray:
    """
    Prograde burn that raises apoapsis from the current radius to `target_radius`.

    Uses the vis-viva speed at periapsis of the transfer ellipse minus the current
    circular speed, along the velocity relative to the central body.
    """
    r1 = float(np.linalg.norm(np.asarray(spacecraft_position) - np.asarray(center_position)))
    if r1 <= 0.0 or target_radius <= 0.0 or center_mass <= 0.0:
        return np.zeros(3)
    mu = G * center_mass
    semi_major_axis = (r1 + target_radius) / 2.0
    v_circular = math.sqrt(mu / r1)
    v_transfer = math.sqrt(mu * (2.0 / r1 - 1.0 / semi_major_axis))
    prograde = normalize_vector(np.asarray(spacecraft_velocity) - np.asarray(center_velocity))
    return prograde * (v_transfer - v_circular)

def escape_delta_v(spacecraft_position, center_position,
                   factor: float = config.Trajectory.ESCAPE_VELOCITY_FACTOR) -> np.ndarray:
    """Burn of size `factor` along the prograde tangent (about +z) of the current radius vector."""
    radial = np.asarray(spacecraft_position, dtype=np.float64) - np.asarray(center_position, dtype=np.float64)
    tangent = normalize_vector(np.array([-radial[1], radial[0], 0.0]))
    return tangent * factor

def retrograde_delta_v(velocity, factor: float = config.Trajectory.RETROGRADE_FACTOR) -> np.ndarray:
    """Reverses `velocity`: adding the result to it leaves `(1 - factor) * velocity`."""
    return np.asarray(velocity, dtype=np.float64) * -factor

def intercept_delta_v(spacecraft_position, target_position,
                      gain: float = config.Trajectory.INTERCEPT_GAIN,
                      max_delta_v: float = config.Trajectory.INTERCEPT_MAX_DELTA_V) -> np.ndarray:
    """Nudge straight at the target, proportional to distance and capped at `max_delta_v`."""
    offset = np.asarray(target_position, dtype=np.float64) - np.asarray(spacecraft_position, dtype=np.float64)
    distance = float(np.linalg.norm(offset))
    magnitude = min(max_delta_v, distance * gain)
    return normalize_vector(offset) * magnitude
