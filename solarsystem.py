# solarsystem.py
import numpy as np
import math
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Tuple, List, Dict, Optional

from config import config, ConfigurationError # Import the global config instance
from physics_utils import PhysicsError, planar_direction, planar_tangent

BodyHandle = int

class BodyKind(Enum):
    """Informational body category. Spacecraft-only behaviour is keyed on the registry's
    spacecraft handle, not on this value."""
    STAR = 'star'
    PLANET = 'planet'
    MOON = 'moon'
    COMET = 'comet'
    SPACECRAFT = 'spacecraft'
    BLACK_HOLE = 'black_hole'

@dataclass
class BodyConfig:
    name: str
    position: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    mass: float = 1.0
    radius: float = 1.0
    kind: BodyKind = BodyKind.PLANET
    fixed: bool = False

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64)
        self.velocity = np.array(self.velocity, dtype=np.float64)
        if isinstance(self.kind, str):
            self.kind = BodyKind(self.kind)

    def validate(self):
        """Rejects configuration the integrator cannot handle.

        Raises:
            ConfigurationError: On a non-positive or NaN mass, a negative or NaN radius,
                                or a position/velocity that is not a finite 3-vector.
        """
        if not (self.mass > 0) or not math.isfinite(self.mass):
            raise ConfigurationError(f"Body '{self.name}' mass ({self.mass}) must be a positive finite number.")
        if not (self.radius >= 0) or not math.isfinite(self.radius):
            raise ConfigurationError(f"Body '{self.name}' radius ({self.radius}) must be a non-negative finite number.")
        for label, vector in (('position', self.position), ('velocity', self.velocity)):
            if vector.shape != (3,) or not np.all(np.isfinite(vector)):
                raise ConfigurationError(f"Body '{self.name}' {label} must be a finite 3-vector, got {vector}.")

@dataclass
class BodyState:
    """Plain-data view of one body, as handed to an external save/load collaborator."""
    name: str
    position: List[float]
    velocity: List[float]
    mass: float
    radius: float
    kind: str
    fixed: bool

class BodyRegistry:
    """Struct-of-arrays store for every simulated body.

    Row `i` of each array belongs to the body with handle `i`. Handles are assigned in
    insertion order and that order is the fixed summation order used by the gravity
    solver. Bodies are never removed.

    Attributes:
        positions (np.ndarray): (n, 3) positions.
        velocities (np.ndarray): (n, 3) velocities.
        accelerations (np.ndarray): (n, 3) per-substep accumulator, reset every substep.
        masses (np.ndarray): (n,) masses, Earth = 1.
        radii (np.ndarray): (n,) radii.
        fixed (np.ndarray): (n,) bool; fixed bodies are sources only.
        kinds (List[BodyKind]): Informational categories.
        names (List[str]): Body names.
        spacecraft (Optional[int]): Handle of the single spacecraft, if registered.
    """

    def __init__(self):
        self.positions = np.zeros((0, 3), dtype=np.float64)
        self.velocities = np.zeros((0, 3), dtype=np.float64)
        self.accelerations = np.zeros((0, 3), dtype=np.float64)
        self.masses = np.zeros(0, dtype=np.float64)
        self.radii = np.zeros(0, dtype=np.float64)
        self.fixed = np.zeros(0, dtype=bool)
        self.kinds: List[BodyKind] = []
        self.names: List[str] = []
        self.spacecraft: Optional[BodyHandle] = None

    def __len__(self):
        return len(self.names)

    def handles(self) -> range:
        return range(len(self.names))

    def add_body(self, body_config: BodyConfig) -> BodyHandle:
        """Validates and appends a body, returning its handle."""
        body_config.validate()
        self.positions = np.vstack([self.positions, body_config.position[np.newaxis, :]])
        self.velocities = np.vstack([self.velocities, body_config.velocity[np.newaxis, :]])
        self.accelerations = np.vstack([self.accelerations, np.zeros((1, 3))])
        self.masses = np.append(self.masses, float(body_config.mass))
        self.radii = np.append(self.radii, float(body_config.radius))
        self.fixed = np.append(self.fixed, bool(body_config.fixed))
        self.kinds.append(body_config.kind)
        self.names.append(body_config.name)
        return len(self.names) - 1

    def set_spacecraft(self, body_config: BodyConfig) -> BodyHandle:
        """Registers the single spacecraft body.

        Raises:
            ConfigurationError: If a spacecraft is already registered or the config is fixed.
        """
        if self.spacecraft is not None:
            raise ConfigurationError(
                f"A spacecraft ('{self.names[self.spacecraft]}') is already registered."
            )
        if body_config.fixed:
            raise ConfigurationError("The spacecraft cannot be a fixed body.")
        if body_config.kind is not BodyKind.SPACECRAFT:
            body_config = replace(body_config, kind=BodyKind.SPACECRAFT)
        self.spacecraft = self.add_body(body_config)
        return self.spacecraft

    def find(self, name: str) -> Optional[BodyHandle]:
        try:
            return self.names.index(name)
        except ValueError:
            return None

    def _check_handle(self, handle):
        if handle is None or not (0 <= handle < len(self.names)):
            raise ConfigurationError(f"Unknown body handle: {handle}")

    def position(self, handle: BodyHandle) -> np.ndarray:
        self._check_handle(handle)
        return self.positions[handle].copy()

    def velocity(self, handle: BodyHandle) -> np.ndarray:
        self._check_handle(handle)
        return self.velocities[handle].copy()

    def set_position(self, handle: BodyHandle, position):
        """Writes a body's position between ticks. Fixed bodies refuse writes."""
        self._check_handle(handle)
        if self.fixed[handle]:
            raise ConfigurationError(f"Body '{self.names[handle]}' is fixed; its position cannot change.")
        self.positions[handle] = np.asarray(position, dtype=np.float64)

    def set_velocity(self, handle: BodyHandle, velocity):
        """Writes a body's velocity between ticks. Fixed bodies refuse writes."""
        self._check_handle(handle)
        if self.fixed[handle]:
            raise ConfigurationError(f"Body '{self.names[handle]}' is fixed; its velocity cannot change.")
        self.velocities[handle] = np.asarray(velocity, dtype=np.float64)

    def reset_accelerations(self):
        self.accelerations.fill(0.0)

    def clone(self) -> 'BodyRegistry':
        """Independent deep copy. Nothing done to the copy is visible in `self`."""
        copy = BodyRegistry()
        copy.positions = self.positions.copy()
        copy.velocities = self.velocities.copy()
        copy.accelerations = np.zeros_like(self.accelerations)
        copy.masses = self.masses.copy()
        copy.radii = self.radii.copy()
        copy.fixed = self.fixed.copy()
        copy.kinds = list(self.kinds)
        copy.names = list(self.names)
        copy.spacecraft = self.spacecraft
        return copy

    snapshot = clone

    def body_state(self, handle: BodyHandle) -> BodyState:
        self._check_handle(handle)
        return BodyState(
            name=self.names[handle],
            position=self.positions[handle].tolist(),
            velocity=self.velocities[handle].tolist(),
            mass=float(self.masses[handle]),
            radius=float(self.radii[handle]),
            kind=self.kinds[handle].value,
            fixed=bool(self.fixed[handle]),
        )

    def export_state(self) -> List[BodyState]:
        return [self.body_state(h) for h in self.handles()]

    def restore_state(self, states: List[BodyState]):
        """Restores positions and velocities exported by `export_state`.

        The body list must match this registry's names and order, since bodies are
        created once at world setup and never added or removed afterwards. Fixed
        bodies keep their creation-time state.

        Raises:
            ConfigurationError: If the states do not match the registry layout or
                                contain non-finite vectors.
        """
        if len(states) != len(self):
            raise ConfigurationError(f"Cannot restore {len(states)} bodies into a registry of {len(self)}.")
        positions = self.positions.copy()
        velocities = self.velocities.copy()
        for handle, state in enumerate(states):
            if state.name != self.names[handle]:
                raise ConfigurationError(
                    f"Body order mismatch at {handle}: expected '{self.names[handle]}', got '{state.name}'."
                )
            position = np.asarray(state.position, dtype=np.float64)
            velocity = np.asarray(state.velocity, dtype=np.float64)
            if position.shape != (3,) or velocity.shape != (3,) or not (
                    np.all(np.isfinite(position)) and np.all(np.isfinite(velocity))):
                raise ConfigurationError(f"Invalid saved state for body '{state.name}'.")
            if self.fixed[handle]:
                continue
            positions[handle] = position
            velocities[handle] = velocity
        self.positions = positions
        self.velocities = velocities


# --- Orbital helpers ---

def circular_orbit_velocity(G: float, central_mass: float, radius: float) -> float:
    """Speed of a circular orbit, sqrt(G*M/r)."""
    if central_mass <= 0 or radius <= 0:
        raise PhysicsError(f"Circular orbit needs positive mass and radius (M={central_mass}, r={radius}).")
    return math.sqrt(G * central_mass / radius)

def perihelion_velocity(G: float, central_mass: float, perihelion: float, eccentricity: float) -> float:
    """Vis-viva speed at perihelion, sqrt(G*M*(1+e)/q)."""
    if central_mass <= 0 or perihelion <= 0:
        raise PhysicsError(f"Perihelion speed needs positive mass and distance (M={central_mass}, q={perihelion}).")
    if not (0.0 <= eccentricity < 1.0):
        raise PhysicsError(f"Eccentricity {eccentricity} is not a bound orbit.")
    return math.sqrt(G * central_mass * (1.0 + eccentricity) / perihelion)

def orbital_period(G: float, central_mass: float, semi_major_axis: float) -> float:
    """Kepler's third law, 2*pi*sqrt(a^3/(G*M))."""
    if central_mass <= 0 or semi_major_axis <= 0:
        raise PhysicsError("Orbital period needs positive mass and semi-major axis.")
    return 2.0 * math.pi * math.sqrt(semi_major_axis ** 3 / (G * central_mass))

def circular_orbit_state(center_position, center_velocity, G: float, central_mass: float,
                         radius: float, angle: float) -> Tuple[np.ndarray, np.ndarray]:
    """Position and velocity of a prograde circular orbit in the XY plane.

    The body starts at `angle` radians from +x around the central body and inherits
    the central body's velocity.
    """
    speed = circular_orbit_velocity(G, central_mass, radius)
    position = np.asarray(center_position, dtype=np.float64) + planar_direction(angle) * radius
    velocity = np.asarray(center_velocity, dtype=np.float64) + planar_tangent(angle) * speed
    return position, velocity

def perihelion_state(center_position, center_velocity, G: float, central_mass: float,
                     perihelion: float, eccentricity: float, inclination_deg: float,
                     angle: float) -> Tuple[np.ndarray, np.ndarray]:
    """Position and velocity at perihelion of an inclined eccentric orbit.

    The perihelion lies in the XY plane at `angle` radians from +x, on the line of
    nodes. The velocity is the prograde tangent tilted out of the plane by the
    inclination, so inclinations above 90 degrees give retrograde (clockwise) orbits.
    """
    speed = perihelion_velocity(G, central_mass, perihelion, eccentricity)
    inclination = math.radians(inclination_deg)
    direction = planar_tangent(angle) * math.cos(inclination) + np.array([0.0, 0.0, math.sin(inclination)])
    position = np.asarray(center_position, dtype=np.float64) + planar_direction(angle) * perihelion
    velocity = np.asarray(center_velocity, dtype=np.float64) + direction * speed
    return position, velocity

def calculate_total_system_energy(registry: BodyRegistry, G: float = config.Physics.G) -> float:
    """
    Total mechanical energy (kinetic + pairwise potential) of the registry.
    Coincident pairs are skipped rather than producing -inf.
    """
    n = len(registry)
    if n == 0:
        return 0.0
    speeds_sq = np.sum(registry.velocities ** 2, axis=1)
    kinetic = 0.5 * np.sum(registry.masses * speeds_sq)

    i, j = np.triu_indices(n, k=1)
    distances = np.linalg.norm(registry.positions[j] - registry.positions[i], axis=1)
    valid = distances > 1e-9
    potential = -G * np.sum(registry.masses[i][valid] * registry.masses[j][valid] / distances[valid])
    return float(kinetic + potential)


# --- Default scene ---

def build_solar_system(engine, include_spacecraft: bool = True) -> Dict[str, BodyHandle]:
    """Registers the default solar system with `engine` and wires the HPOP references.

    Bodies come from `config.SolarSystem.BODY_DATA` in declaration order. The
    spacecraft is placed on a circular orbit around its central body and inherits
    that body's velocity.

    Returns:
        Dict[str, int]: Body name to handle.
    """
    G = engine.G
    handles: Dict[str, BodyHandle] = {}
    for name, data in config.SolarSystem.BODY_DATA.items():
        central_name = data.get('central_body')
        if central_name is None:
            position = np.asarray(data['position'], dtype=np.float64)
            velocity = np.zeros(3)
        else:
            central = handles[central_name]
            center_pos = engine.get_position(central)
            center_vel = engine.get_velocity(central)
            central_mass = config.SolarSystem.BODY_DATA[central_name]['mass']
            if 'orbit_radius' in data:
                position, velocity = circular_orbit_state(
                    center_pos, center_vel, G, central_mass, data['orbit_radius'], data.get('angle', 0.0))
            else:
                position, velocity = perihelion_state(
                    center_pos, center_vel, G, central_mass,
                    data['perihelion_au'] * config.Units.AU, data['eccentricity'],
                    data.get('inclination_deg', 0.0), data.get('angle', 0.0))
        handles[name] = engine.add_body(BodyConfig(
            name=name, position=position, velocity=velocity,
            mass=data['mass'], radius=data['radius'],
            kind=BodyKind(data['kind']), fixed=data.get('fixed', False),
        ))

    if include_spacecraft:
        seed = config.SolarSystem.SPACECRAFT
        central = handles[seed['central_body']]
        position, velocity = circular_orbit_state(
            engine.get_position(central), engine.get_velocity(central), G,
            config.SolarSystem.BODY_DATA[seed['central_body']]['mass'],
            seed['orbit_radius'], seed['angle'])
        handles[seed['name']] = engine.set_spacecraft(BodyConfig(
            name=seed['name'], position=position, velocity=velocity,
            mass=seed['mass'], radius=config.Collision.SPACECRAFT_RADIUS, kind=BodyKind.SPACECRAFT,
        ))

    references = {role: handles.get(body_name) for role, body_name in config.SolarSystem.HPOP_REFERENCES.items()}
    engine.set_perturbation_references(**references)
    logging.info(f"Solar system built with {len(handles)} bodies.")
    return handles
