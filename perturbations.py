# perturbations.py
"""High-precision perturbation terms applied to the spacecraft on top of N-body gravity.

All inputs and outputs are in simulation units (G = 1, Earth mass = 1, Earth radius = 2).
Drag and solar radiation pressure are evaluated in SI and converted back with the
fixed scales in `config.Units`. A missing reference body never raises: the term that
needs it contributes a zero vector instead.
"""
import math
import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional

from config import config, ConfigurationError
from physics_utils import normalize_vector, safe_divide
from solarsystem import BodyRegistry

@dataclass
class PerturbationConfig:
    """Every perturbation option with its default.

    Attributes:
        area_m2 (float): Cross-sectional area seen by drag and sunlight.
        spacecraft_mass_kg (float): Physical mass used to turn drag and SRP forces into
                                    accelerations.
        drag_coefficient (float): Cd.
        reflectivity (float): 0 absorbs everything, 1 reflects everything.
        enable_harmonics, enable_third_body, enable_drag, enable_srp (bool): Term toggles.
        earth, sun, moon (Optional[int]): Registry handles of the reference bodies.
    """
    area_m2: float = config.HPOP.DEFAULT_AREA_M2
    spacecraft_mass_kg: float = config.HPOP.DEFAULT_SPACECRAFT_MASS_KG
    drag_coefficient: float = config.HPOP.DEFAULT_DRAG_COEFFICIENT
    reflectivity: float = config.HPOP.DEFAULT_REFLECTIVITY
    enable_harmonics: bool = config.HPOP.ENABLE_HARMONICS
    enable_third_body: bool = config.HPOP.ENABLE_THIRD_BODY
    enable_drag: bool = config.HPOP.ENABLE_DRAG
    enable_srp: bool = config.HPOP.ENABLE_SRP
    earth: Optional[int] = None
    sun: Optional[int] = None
    moon: Optional[int] = None

    def __post_init__(self):
        if not (self.area_m2 > 0) or not math.isfinite(self.area_m2):
            raise ConfigurationError(f"Perturbation area ({self.area_m2}) must be positive.")
        if not (self.spacecraft_mass_kg > 0) or not math.isfinite(self.spacecraft_mass_kg):
            raise ConfigurationError(f"Spacecraft mass ({self.spacecraft_mass_kg} kg) must be positive.")
        if not (self.drag_coefficient >= 0) or not math.isfinite(self.drag_coefficient):
            raise ConfigurationError(f"Drag coefficient ({self.drag_coefficient}) must be non-negative.")
        if not (0.0 <= self.reflectivity <= 1.0):
            raise ConfigurationError(f"Reflectivity ({self.reflectivity}) must be between 0 and 1.")


class GravityHarmonics:
    """Earth zonal harmonics J2-J6 in an Earth-centred frame with +z as the pole."""
    J2 = config.HPOP.J2
    J3 = config.HPOP.J3
    J4 = config.HPOP.J4
    J5 = config.HPOP.J5
    J6 = config.HPOP.J6

    @staticmethod
    def legendre(s: float):
        """Legendre polynomials P2..P6 of s = sin(latitude) and their derivatives d/ds."""
        s2 = s * s
        s3 = s2 * s
        s4 = s3 * s
        s5 = s4 * s
        s6 = s5 * s
        p = (
            (3 * s2 - 1) / 2,
            (5 * s3 - 3 * s) / 2,
            (35 * s4 - 30 * s2 + 3) / 8,
            (63 * s5 - 70 * s3 + 15 * s) / 8,
            (231 * s6 - 315 * s4 + 105 * s2 - 5) / 16,
        )
        dp = (
            3 * s,
            (15 * s2 - 3) / 2,
            (35 * s3 - 15 * s) / 2,
            (315 * s4 - 210 * s2 + 15) / 8,
            (693 * s5 - 630 * s3 + 105 * s) / 8,
        )
        return p, dp

    @classmethod
    def calculate(cls, relative_position: np.ndarray, earth_radius: float, earth_mass: float,
                  G: float) -> np.ndarray:
        """
        Harmonic perturbation at `relative_position` (spacecraft minus Earth).

        Zero beyond `HARMONICS_MAX_RADII` Earth radii or at Earth's centre. This is the
        gradient of the zonal potential, with radial part `a0 * sum(Jn (Re/r)^n (n+1) Pn)` and
        latitudinal part `-a0 * sum(Jn (Re/r)^n dPn) * cos(phi)` along the north unit vector
        `(z - sin(phi) r_hat) / (cos(phi) + eps)`.
        """
        r = float(np.linalg.norm(relative_position))
        if r <= 0.0 or r > earth_radius * config.HPOP.HARMONICS_MAX_RADII:
            return np.zeros(3)

        sin_phi = relative_position[2] / r
        cos_phi = math.sqrt(max(0.0, 1.0 - sin_phi * sin_phi))
        p, dp = cls.legendre(sin_phi)
        coefficients = (cls.J2, cls.J3, cls.J4, cls.J5, cls.J6)

        a0 = G * earth_mass / (r * r)
        ratio = earth_radius / r
        radial_sum = 0.0
        latitudinal_sum = 0.0
        for n, (jn, pn, dpn) in enumerate(zip(coefficients, p, dp), start=2):
            scale = jn * ratio ** n
            radial_sum += scale * (n + 1) * pn
            latitudinal_sum += scale * dpn

        a_r = a0 * radial_sum
        a_phi = -a0 * latitudinal_sum * cos_phi

        r_hat = relative_position / r
        phi_hat = (np.array([0.0, 0.0, 1.0]) - sin_phi * r_hat) / (cos_phi + config.HPOP.POLE_EPSILON)
        return r_hat * a_r + phi_hat * a_phi


class ThirdBodyPerturbation:

    @staticmethod
    def calculate(spacecraft_position: np.ndarray, body_position: np.ndarray, body_mass: float,
                  central_position: np.ndarray, G: float) -> np.ndarray:
        """Direct pull of the third body on the spacecraft minus its pull on the central body."""
        to_body = body_position - spacecraft_position
        d_direct = float(np.linalg.norm(to_body))
        direct = normalize_vector(to_body) * safe_divide(G * body_mass, d_direct * d_direct)

        central_to_body = body_position - central_position
        d_indirect = float(np.linalg.norm(central_to_body))
        indirect = normalize_vector(central_to_body) * safe_divide(G * body_mass, d_indirect * d_indirect)
        return direct - indirect


class AtmosphericDrag:
    """Harris-Priester style drag from a small altitude/density table."""
    ALTITUDES_KM = np.array([row[0] for row in config.HPOP.DENSITY_TABLE_KM], dtype=np.float64)
    LOG_DENSITIES = np.log(np.array([row[1] for row in config.HPOP.DENSITY_TABLE_KM], dtype=np.float64))

    @classmethod
    def density(cls, altitude: float, earth_radius: float) -> float:
        """Density in kg/m^3 at a game-unit altitude above the surface.

        Log-linear between table rows, exponential growth below the first row and
        exponential decay above the last.
        """
        altitude_km = safe_divide(altitude, earth_radius) * config.Units.EARTH_RADIUS_KM
        low_km, high_km = cls.ALTITUDES_KM[0], cls.ALTITUDES_KM[-1]
        if altitude_km < low_km:
            return math.exp(cls.LOG_DENSITIES[0] + (low_km - altitude_km) / config.HPOP.LOW_ALTITUDE_SCALE_KM)
        if altitude_km > high_km:
            return math.exp(cls.LOG_DENSITIES[-1] - (altitude_km - high_km) / config.HPOP.HIGH_ALTITUDE_SCALE_KM)
        return math.exp(np.interp(altitude_km, cls.ALTITUDES_KM, cls.LOG_DENSITIES))

    @classmethod
    def calculate(cls, relative_position: np.ndarray, relative_velocity: np.ndarray, earth_radius: float,
                  area_m2: float, mass_kg: float, drag_coefficient: float) -> np.ndarray:
        """
        Drag acceleration opposing the velocity relative to Earth's atmosphere.

        Magnitude is `0.5 * rho * v^2 * Cd * A / m` in SI, with v converted from
        simulation units by VELOCITY_SCALE and the result converted back by ACCEL_SCALE.
        """
        speed = float(np.linalg.norm(relative_velocity))
        if speed < config.HPOP.MIN_DRAG_SPEED:
            return np.zeros(3)
        altitude = float(np.linalg.norm(relative_position)) - earth_radius
        rho = cls.density(altitude, earth_radius)

        speed_si = speed * config.Units.VELOCITY_SCALE_M_S
        magnitude_si = 0.5 * rho * speed_si * speed_si * drag_coefficient * area_m2 / mass_kg
        magnitude = magnitude_si / config.Units.ACCEL_SCALE_M_S2
        return relative_velocity * (-magnitude / speed)


class SolarRadiationPressure:
    SOLAR_FLUX = config.HPOP.SOLAR_FLUX_W_M2
    SPEED_OF_LIGHT = config.HPOP.SPEED_OF_LIGHT_M_S

    @staticmethod
    def calculate_shadow_factor(spacecraft_position: np.ndarray, sun_position: np.ndarray, sun_radius: float,
                                earth_position: np.ndarray, earth_radius: float) -> float:
        """
        Fraction of sunlight reaching the spacecraft past Earth (0 = umbra, 1 = full sun).

        On the Sun-facing side of Earth the factor is 1.0. Otherwise the spacecraft is
        projected onto the Earth-Sun axis; at distance x behind Earth the umbra cone
        radius is `max(0, Re - x (Rs - Re) / d)` and the penumbra radius is
        `Re + x (Rs + Re) / d`, with d the Earth-Sun distance. The factor is linear in
        the perpendicular distance between the two radii.
        """
        earth_to_spacecraft = spacecraft_position - earth_position
        earth_to_sun = sun_position - earth_position
        d_earth_sun = float(np.linalg.norm(earth_to_sun))
        if d_earth_sun <= 0.0:
            return 1.0
        axis = earth_to_sun / d_earth_sun
        along = float(np.dot(earth_to_spacecraft, axis))
        if along >= 0.0:
            return 1.0

        behind = -along
        perpendicular = float(np.linalg.norm(earth_to_spacecraft - axis * along))
        umbra = max(0.0, earth_radius - behind * (sun_radius - earth_radius) / d_earth_sun)
        penumbra = earth_radius + behind * (sun_radius + earth_radius) / d_earth_sun

        if perpendicular < umbra:
            return 0.0
        if perpendicular < penumbra:
            return (perpendicular - umbra) / (penumbra - umbra)
        return 1.0

    @classmethod
    def calculate(cls, spacecraft_position: np.ndarray, sun_position: np.ndarray, sun_radius: float,
                  area_m2: float, mass_kg: float, reflectivity: float,
                  earth_position: Optional[np.ndarray] = None, earth_radius: float = 0.0) -> np.ndarray:
        """Radiation pressure pushing away from the Sun, dimmed by Earth's shadow when Earth is known."""
        sun_to_spacecraft = spacecraft_position - sun_position
        distance = float(np.linalg.norm(sun_to_spacecraft))
        if distance <= 0.0:
            return np.zeros(3)
        distance_au = distance / config.Units.AU
        flux = cls.SOLAR_FLUX / (distance_au * distance_au)
        pressure = flux / cls.SPEED_OF_LIGHT * (1.0 + reflectivity)
        magnitude = pressure * area_m2 / mass_kg / config.Units.ACCEL_SCALE_M_S2

        acceleration = sun_to_spacecraft * (magnitude / distance)
        if earth_position is not None:
            acceleration = acceleration * cls.calculate_shadow_factor(
                spacecraft_position, sun_position, sun_radius, earth_position, earth_radius)
        return acceleration


class PerturbationModel:
    """Sums the enabled perturbation terms for the registry's spacecraft.

    Terms needing a reference that is unset contribute zero: harmonics, third body
    and drag need Earth; SRP needs the Sun and uses Earth only for shadowing.
    """

    TERMS = ('harmonics', 'third_body', 'drag', 'srp')

    def __init__(self, perturbation_config: Optional[PerturbationConfig] = None):
        self.config = perturbation_config or PerturbationConfig()

    def breakdown(self, registry: BodyRegistry, G: float) -> Dict[str, np.ndarray]:
        """Per-term perturbation accelerations on the spacecraft."""
        terms = {name: np.zeros(3) for name in self.TERMS}
        sc = registry.spacecraft
        if sc is None:
            return terms
        cfg = self.config
        sc_pos = registry.positions[sc]
        sc_vel = registry.velocities[sc]
        earth, sun, moon = cfg.earth, cfg.sun, cfg.moon

        if earth is not None:
            earth_pos = registry.positions[earth]
            earth_radius = registry.radii[earth]
            if cfg.enable_harmonics:
                terms['harmonics'] = GravityHarmonics.calculate(
                    sc_pos - earth_pos, earth_radius, registry.masses[earth], G)
            if cfg.enable_third_body:
                for body in (sun, moon):
                    if body is None or body == earth or body == sc:
                        continue
                    terms['third_body'] = terms['third_body'] + ThirdBodyPerturbation.calculate(
                        sc_pos, registry.positions[body], registry.masses[body], earth_pos, G)
            if cfg.enable_drag:
                terms['drag'] = AtmosphericDrag.calculate(
                    sc_pos - earth_pos, sc_vel - registry.velocities[earth], earth_radius,
                    cfg.area_m2, cfg.spacecraft_mass_kg, cfg.drag_coefficient)

        if cfg.enable_srp and sun is not None:
            terms['srp'] = SolarRadiationPressure.calculate(
                sc_pos, registry.positions[sun], registry.radii[sun],
                cfg.area_m2, cfg.spacecraft_mass_kg, cfg.reflectivity,
                earth_position=registry.positions[earth] if earth is not None else None,
                earth_radius=registry.radii[earth] if earth is not None else 0.0)
        return terms

    def acceleration(self, registry: BodyRegistry, G: float) -> np.ndarray:
        """Total perturbation acceleration on the spacecraft."""
        total = np.zeros(3)
        for term in self.breakdown(registry, G).values():
            total = total + term
        return total

    def log_summary(self):
        cfg = self.config
        logging.info(
            f"HPOP terms - harmonics: {'ON' if cfg.enable_harmonics else 'OFF'}, "
            f"third body: {'ON' if cfg.enable_third_body else 'OFF'}, "
            f"drag: {'ON' if cfg.enable_drag else 'OFF'}, "
            f"SRP: {'ON' if cfg.enable_srp else 'OFF'}"
        )
