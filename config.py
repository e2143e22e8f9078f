# config.py
import numpy as np
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(module)s - %(message)s')

# Fundamental constants in simulation units (G = 1, Earth mass = 1, Earth radius = 2)
GRAVITATIONAL_CONSTANT = 1.0
AU_GAME_UNITS = 15000.0  # 1 AU in simulation length units
EARTH_RADIUS_KM = 6371.0

# Unit scales used to move between simulation units and SI for the HPOP force models
VELOCITY_SCALE_M_S = 11183.0  # m/s per simulation velocity unit
ACCEL_SCALE_M_S2 = 39.28      # m/s^2 per simulation acceleration unit

class ConfigurationError(Exception):
    """Custom exception for simulation configuration errors.

    Raised by `SimulationConfig.validate()`, by `PerturbationConfig` and by
    body registration when settings are invalid, inconsistent, or missing,
    which would prevent the simulation from running correctly.

    Attributes:
        message (str): A human-readable explanation of the configuration error.
                       This is the first argument passed to the exception constructor.
    """
    pass

class SimulationConfig:
    """Centralized, hierarchical configuration for the orbital simulation core.

    Parameters are grouped into nested static classes (e.g., `SimulationConfig.Physics`,
    `SimulationConfig.HPOP`, `SimulationConfig.Trajectory`). An instance named
    `config` is created at the end of this module, so components read their
    defaults via `from config import config`.

    These values are read-only defaults. A `PhysicsEngine` copies the tunable
    ones (time scale, substeps, drag knob, speed cap) into its own instance
    state at construction, so nothing here is mutated while a simulation runs.

    Example Usage:
        >>> from config import config
        >>> print(f"Default substeps: {config.Physics.DEFAULT_SUBSTEPS}")
        >>> print(f"J2: {config.HPOP.J2}")
    """

    # --- Physics Configuration ---
    class Physics:
        """Configuration for the integrator and gravity solver.

        Attributes:
            G (float): Gravitational constant in simulation units.
            MAX_DT (float): Upper clamp for the frame time passed to `update(dt)`, in seconds.
                            Bounds the physical time one call may advance after a frame hitch.
            DEFAULT_TIME_SCALE (float): Multiplier from wall-clock seconds to simulation time.
            DEFAULT_SUBSTEPS (int): Number of semi-implicit Euler substeps per `update(dt)`.
                                    Needed for stiff close orbits such as Phobos around Mars.
            MAX_SPEED (float): Speed cap applied to the spacecraft after every substep.
            DRAG (float): Coarse velocity damping knob for the spacecraft. 1.0 disables it;
                          values below 1.0 multiply velocity by `DRAG ** (dt_sub * 60)`.
            MIN_SOFTENING_DISTANCE (float): Lower bound of the pairwise softening floor.
        """
        G = GRAVITATIONAL_CONSTANT
        MAX_DT = 0.05
        DEFAULT_TIME_SCALE = 0.1
        DEFAULT_SUBSTEPS = 200
        MAX_SPEED = 10000.0
        DRAG = 1.0
        MIN_SOFTENING_DISTANCE = 1.0

    # --- Unit Configuration ---
    class Units:
        """Scales between simulation units and SI.

        Attributes:
            AU (float): One astronomical unit in simulation length units.
            EARTH_RADIUS_KM (float): Real Earth radius, used to map game altitude to km.
            VELOCITY_SCALE_M_S (float): Metres per second per simulation velocity unit.
            ACCEL_SCALE_M_S2 (float): Metres per second squared per simulation acceleration unit.
        """
        AU = AU_GAME_UNITS
        EARTH_RADIUS_KM = EARTH_RADIUS_KM
        VELOCITY_SCALE_M_S = VELOCITY_SCALE_M_S
        ACCEL_SCALE_M_S2 = ACCEL_SCALE_M_S2

    # --- High Precision Orbit Propagator ---
    class HPOP:
        """Configuration for the spacecraft perturbation model.

        Attributes:
            ENABLED (bool): Whether a new engine starts with perturbations switched on.
            ENABLE_HARMONICS (bool): Default toggle for the J2-J6 zonal harmonics term.
            ENABLE_THIRD_BODY (bool): Default toggle for the Sun/Moon third-body term.
            ENABLE_DRAG (bool): Default toggle for atmospheric drag.
            ENABLE_SRP (bool): Default toggle for solar radiation pressure.
            J2..J6 (float): Earth zonal harmonic coefficients (dimensionless).
            HARMONICS_MAX_RADII (float): Harmonics contribute only within this many
                                         Earth radii of Earth's centre.
            POLE_EPSILON (float): Added to cos(latitude) when building the north unit vector.
            DENSITY_TABLE_KM (List[Tuple[float, float]]): Harris-Priester style
                (altitude km, density kg/m^3) pairs, strictly increasing in altitude.
            LOW_ALTITUDE_SCALE_KM (float): e-folding height for the extrapolation below the table.
            HIGH_ALTITUDE_SCALE_KM (float): e-folding height for the extrapolation above the table.
            MIN_DRAG_SPEED (float): Relative speeds below this produce no drag.
            SOLAR_FLUX_W_M2 (float): Solar flux at 1 AU.
            SPEED_OF_LIGHT_M_S (float): Speed of light.
            DEFAULT_AREA_M2 (float): Spacecraft cross-sectional area.
            DEFAULT_SPACECRAFT_MASS_KG (float): Physical spacecraft mass for drag and SRP.
                                                The registry mass is the negligible
                                                gravitational mass and is not used here.
            DEFAULT_DRAG_COEFFICIENT (float): Cd.
            DEFAULT_REFLECTIVITY (float): Surface reflectivity in [0, 1].
        """
        ENABLED = False
        ENABLE_HARMONICS = True
        ENABLE_THIRD_BODY = True
        ENABLE_DRAG = True
        ENABLE_SRP = True

        J2 = 1.08263e-3
        J3 = -2.53266e-6
        J4 = -1.61962e-6
        J5 = -2.28e-7
        J6 = 5.41e-7
        HARMONICS_MAX_RADII = 10.0
        POLE_EPSILON = 1e-10

        DENSITY_TABLE_KM = [
            (100.0, 5.6e-7),
            (150.0, 2.1e-9),
            (200.0, 2.5e-10),
            (300.0, 1.9e-11),
            (400.0, 3.0e-12),
            (500.0, 7.2e-13),
            (600.0, 2.2e-13),
            (800.0, 3.1e-14),
            (1000.0, 7.0e-15),
        ]
        LOW_ALTITUDE_SCALE_KM = 10.0
        HIGH_ALTITUDE_SCALE_KM = 200.0
        MIN_DRAG_SPEED = 1e-6

        SOLAR_FLUX_W_M2 = 1367.0
        SPEED_OF_LIGHT_M_S = 299792458.0

        DEFAULT_AREA_M2 = 10.0
        DEFAULT_SPACECRAFT_MASS_KG = 1000.0
        DEFAULT_DRAG_COEFFICIENT = 2.2
        DEFAULT_REFLECTIVITY = 0.3

    # --- Collision Configuration ---
    class Collision:
        """Configuration for spacecraft collision detection and response.

        Attributes:
            SPACECRAFT_RADIUS (float): Default spacecraft radius used by the scene builder.
            RESTITUTION (float): Multiplier applied to the approaching normal velocity.
            DAMPING (float): Scale applied to the whole velocity after reflection.
            AUTO_RESOLVE (bool): If True, `update(dt)` resolves a detected collision itself.
        """
        SPACECRAFT_RADIUS = 0.4
        RESTITUTION = 1.5
        DAMPING = 0.6
        AUTO_RESOLVE = True

    # --- Trajectory Prediction Configuration ---
    class Trajectory:
        """Configuration for the trajectory predictor and maneuver helpers.

        Attributes:
            SIMPLIFIED_STEPS (int): Default step count of the cheap live preview.
            SIMPLIFIED_STEP_SIZE (float): Default step size of the live preview.
            SIMPLIFIED_SOFTENING_FACTOR (float): Body radius multiple used as the
                                                 live preview's softening floor.
            FULL_STEPS (int): Default step count of the full N-body planning preview.
            FULL_STEP_SIZE (float): Default step size of the planning preview.
            RECORD_INTERVAL (int): Planning preview records a point every this many steps.
            ESCAPE_VELOCITY_FACTOR (float): Tangential speed multiple used by the escape helper.
            RETROGRADE_FACTOR (float): Velocity multiple removed by the retrograde helper.
            INTERCEPT_GAIN (float): Delta-v per unit of distance for the intercept helper.
            INTERCEPT_MAX_DELTA_V (float): Cap on the intercept helper's delta-v.
        """
        SIMPLIFIED_STEPS = 150
        SIMPLIFIED_STEP_SIZE = 0.15
        SIMPLIFIED_SOFTENING_FACTOR = 1.2
        FULL_STEPS = 1000
        FULL_STEP_SIZE = 0.05
        RECORD_INTERVAL = 5
        ESCAPE_VELOCITY_FACTOR = 2.0
        RETROGRADE_FACTOR = 2.0
        INTERCEPT_GAIN = 0.003
        INTERCEPT_MAX_DELTA_V = 0.15

    # --- Solar System Data ---
    class SolarSystem:
        """Default scene: masses relative to Earth, distances in simulation units.

        Attributes:
            BODY_DATA (Dict[str, Dict]): Per-body data keyed by name. Each entry has
                'kind', 'mass', 'radius', and either 'position' (for the central star),
                a circular orbit ('central_body', 'orbit_radius', 'angle') or a
                perihelion seed for an eccentric orbit ('central_body',
                'perihelion_au', 'eccentricity', 'inclination_deg', 'angle').
                Registration order follows dict order; orbiting bodies must come
                after their central body.
            SPACECRAFT (Dict): Spacecraft seed: central body, orbit radius, angle, mass. The radius comes
                             from `Collision.SPACECRAFT_RADIUS`.
            HPOP_REFERENCES (Dict[str, str]): Body names wired as Earth/Sun/Moon references.
        """
        BODY_DATA = {
            'Sun': {
                'kind': 'star', 'mass': 333000.0, 'radius': 100.0,
                'position': [0.0, 0.0, 0.0], 'fixed': True,
            },
            'Mercury': {
                'kind': 'planet', 'mass': 0.055, 'radius': 0.8,
                'central_body': 'Sun', 'orbit_radius': 5850.0, 'angle': 0.0,
            },
            'Venus': {
                'kind': 'planet', 'mass': 0.815, 'radius': 1.9,
                'central_body': 'Sun', 'orbit_radius': 10800.0, 'angle': np.pi * 0.7,
            },
            'Earth': {
                'kind': 'planet', 'mass': 1.0, 'radius': 2.0,
                'central_body': 'Sun', 'orbit_radius': 15000.0, 'angle': 0.0,
            },
            'Moon': {
                'kind': 'moon', 'mass': 0.0123, 'radius': 0.5,
                'central_body': 'Earth', 'orbit_radius': 40.0, 'angle': np.pi / 4,
            },
            'Mars': {
                'kind': 'planet', 'mass': 0.107, 'radius': 1.1,
                'central_body': 'Sun', 'orbit_radius': 22800.0, 'angle': np.pi * 0.4,
            },
            'Phobos': {
                'kind': 'moon', 'mass': 1.0659e-9, 'radius': 0.2,
                'central_body': 'Mars', 'orbit_radius': 0.9401, 'angle': 0.0,
            },
            'Jupiter': {
                'kind': 'planet', 'mass': 317.8, 'radius': 22.0,
                'central_body': 'Sun', 'orbit_radius': 78000.0, 'angle': np.pi * 1.5,
            },
            "Halley's Comet": {
                'kind': 'comet', 'mass': 3.68e-11, 'radius': 1.0,
                'central_body': 'Sun', 'perihelion_au': 0.59278, 'eccentricity': 0.96658,
                'inclination_deg': 161.96, 'angle': np.pi * 0.66,
            },
        }

        SPACECRAFT = {
            'name': 'Spacecraft', 'central_body': 'Earth', 'orbit_radius': 4.22,
            'angle': np.pi / 4, 'mass': 1e-20,
        }

        HPOP_REFERENCES = {'earth': 'Earth', 'sun': 'Sun', 'moon': 'Moon'}

    # --- Monitoring Configuration ---
    class Monitoring:
        """Configuration for system resource monitoring.

        Attributes:
            MEMORY_USAGE_WARN_MB (int): Memory usage threshold in Megabytes. If exceeded,
                                        a warning is logged.
            MEMORY_CHECK_INTERVAL_TICKS (int): Frequency (in ticks) at which
                                               memory usage is checked.
        """
        MEMORY_USAGE_WARN_MB = 1024
        MEMORY_CHECK_INTERVAL_TICKS = 500

    # --- Debug Configuration ---
    class Debug:
        """Configuration for debugging features and logging verbosity.

        Attributes:
            LOG_COLLISIONS (bool): Log every detected collision at DEBUG level.
            LOG_PREDICTIONS (bool): Log prediction early exits at DEBUG level.
            MONITOR_ENERGY_CONSERVATION (bool): If True, the runner periodically logs the
                                                total energy of the system and its drift.
            ENERGY_CHECK_INTERVAL_TICKS (int): Frequency (ticks) for energy checks.
            ENERGY_DRIFT_WARN_FRACTION (float): Relative drift above which a warning is logged.
            LOG_INTERVAL_TICKS (int): Frequency (ticks) for the runner's status line.
        """
        LOG_COLLISIONS = True
        LOG_PREDICTIONS = False
        MONITOR_ENERGY_CONSERVATION = True
        ENERGY_CHECK_INTERVAL_TICKS = 100
        ENERGY_DRIFT_WARN_FRACTION = 0.01
        LOG_INTERVAL_TICKS = 600

    def __init__(self):
        """Initializes the `SimulationConfig` instance and validates it.

        Raises:
            ConfigurationError: If `self.validate()` detects any issues with the
                                configuration values.
        """
        self.validate()

    def validate(self):
        """Performs validation of all simulation configuration settings.

        -   **Physics**: G, MAX_DT, time scale, speed cap positive; substeps >= 1;
            0 < DRAG <= 1.
        -   **Units**: all scales positive.
        -   **HPOP**: density table non-empty, strictly increasing altitude, positive
            densities; extrapolation scales positive; spacecraft parameters valid.
        -   **Collision**: radius, restitution and damping ranges.
        -   **Trajectory**: step counts and sizes positive.
        -   **SolarSystem**: masses > 0, radii >= 0, orbit definitions complete and
            central bodies declared before the bodies orbiting them.

        Raises:
            ConfigurationError: If any configuration setting is found to be invalid.
        """
        # Physics validation
        if self.Physics.G <= 0:
            raise ConfigurationError("Physics.G must be positive.")
        if self.Physics.MAX_DT <= 0:
            raise ConfigurationError("Physics.MAX_DT must be positive.")
        if self.Physics.DEFAULT_TIME_SCALE <= 0:
            raise ConfigurationError("Physics.DEFAULT_TIME_SCALE must be positive.")
        if int(self.Physics.DEFAULT_SUBSTEPS) < 1:
            raise ConfigurationError("Physics.DEFAULT_SUBSTEPS must be at least 1.")
        if self.Physics.MAX_SPEED <= 0:
            raise ConfigurationError("Physics.MAX_SPEED must be positive.")
        if not (0 < self.Physics.DRAG <= 1.0):
            raise ConfigurationError(f"Physics.DRAG ({self.Physics.DRAG}) must be in (0, 1].")
        if self.Physics.MIN_SOFTENING_DISTANCE <= 0:
            raise ConfigurationError("Physics.MIN_SOFTENING_DISTANCE must be positive.")

        # Units validation
        for name in ('AU', 'EARTH_RADIUS_KM', 'VELOCITY_SCALE_M_S', 'ACCEL_SCALE_M_S2'):
            if getattr(self.Units, name) <= 0:
                raise ConfigurationError(f"Units.{name} must be positive.")

        # HPOP validation
        table = self.HPOP.DENSITY_TABLE_KM
        if not table:
            raise ConfigurationError("HPOP.DENSITY_TABLE_KM must not be empty.")
        for i, (altitude_km, density) in enumerate(table):
            if density <= 0:
                raise ConfigurationError(f"HPOP density at {altitude_km} km must be positive.")
            if i > 0 and altitude_km <= table[i - 1][0]:
                raise ConfigurationError("HPOP.DENSITY_TABLE_KM altitudes must be strictly increasing.")
        if self.HPOP.LOW_ALTITUDE_SCALE_KM <= 0 or self.HPOP.HIGH_ALTITUDE_SCALE_KM <= 0:
            raise ConfigurationError("HPOP extrapolation scale heights must be positive.")
        if self.HPOP.HARMONICS_MAX_RADII <= 0:
            raise ConfigurationError("HPOP.HARMONICS_MAX_RADII must be positive.")
        if self.HPOP.SOLAR_FLUX_W_M2 <= 0 or self.HPOP.SPEED_OF_LIGHT_M_S <= 0:
            raise ConfigurationError("HPOP solar flux and speed of light must be positive.")
        if self.HPOP.DEFAULT_AREA_M2 <= 0:
            raise ConfigurationError("HPOP.DEFAULT_AREA_M2 must be positive.")
        if self.HPOP.DEFAULT_SPACECRAFT_MASS_KG <= 0:
            raise ConfigurationError("HPOP.DEFAULT_SPACECRAFT_MASS_KG must be positive.")
        if self.HPOP.DEFAULT_DRAG_COEFFICIENT < 0:
            raise ConfigurationError("HPOP.DEFAULT_DRAG_COEFFICIENT must be non-negative.")
        if not (0.0 <= self.HPOP.DEFAULT_REFLECTIVITY <= 1.0):
            raise ConfigurationError("HPOP.DEFAULT_REFLECTIVITY must be between 0 and 1.")

        # Collision validation
        if self.Collision.SPACECRAFT_RADIUS < 0:
            raise ConfigurationError("Collision.SPACECRAFT_RADIUS must be non-negative.")
        if self.Collision.RESTITUTION < 0:
            raise ConfigurationError("Collision.RESTITUTION must be non-negative.")
        if not (0.0 <= self.Collision.DAMPING <= 1.0):
            raise ConfigurationError("Collision.DAMPING must be between 0 and 1.")

        # Trajectory validation
        if self.Trajectory.SIMPLIFIED_STEPS <= 0 or self.Trajectory.FULL_STEPS <= 0:
            raise ConfigurationError("Trajectory step counts must be positive.")
        if self.Trajectory.SIMPLIFIED_STEP_SIZE <= 0 or self.Trajectory.FULL_STEP_SIZE <= 0:
            raise ConfigurationError("Trajectory step sizes must be positive.")
        if self.Trajectory.RECORD_INTERVAL < 1:
            raise ConfigurationError("Trajectory.RECORD_INTERVAL must be at least 1.")

        # Solar system validation
        declared = set()
        for name, data in self.SolarSystem.BODY_DATA.items():
            mass = data.get('mass', 0.0)
            radius = data.get('radius', -1.0)
            if not (mass > 0):  # also rejects NaN
                raise ConfigurationError(f"Mass of celestial body '{name}' ({mass}) must be positive.")
            if not (radius >= 0):
                raise ConfigurationError(f"Radius of celestial body '{name}' ({radius}) must be non-negative.")

            central_body_name = data.get('central_body')
            if central_body_name is not None:
                if central_body_name == name:
                    raise ConfigurationError(f"Celestial body '{name}' cannot orbit itself.")
                if central_body_name not in declared:
                    raise ConfigurationError(
                        f"Central body '{central_body_name}' for '{name}' must be declared before it in BODY_DATA."
                    )
                if 'orbit_radius' in data:
                    if data['orbit_radius'] <= 0:
                        raise ConfigurationError(f"Orbit radius of '{name}' must be positive.")
                elif 'perihelion_au' in data:
                    if data['perihelion_au'] <= 0:
                        raise ConfigurationError(f"Perihelion of '{name}' must be positive.")
                    if not (0.0 <= data.get('eccentricity', 0.0) < 1.0):
                        raise ConfigurationError(f"Eccentricity of '{name}' must be >= 0 and < 1.")
                else:
                    raise ConfigurationError(f"Celestial body '{name}' needs 'orbit_radius' or 'perihelion_au'.")
            elif 'position' not in data:
                raise ConfigurationError(f"Celestial body '{name}' needs a 'central_body' or a fixed 'position'.")
            declared.add(name)

        spacecraft = self.SolarSystem.SPACECRAFT
        if spacecraft['central_body'] not in declared:
            raise ConfigurationError(f"Spacecraft central body '{spacecraft['central_body']}' not found in BODY_DATA.")
        if not (spacecraft['mass'] > 0) or spacecraft['orbit_radius'] <= 0:
            raise ConfigurationError("Spacecraft mass and orbit radius must be positive.")
        for role, body_name in self.SolarSystem.HPOP_REFERENCES.items():
            if body_name is not None and body_name not in declared:
                raise ConfigurationError(f"HPOP {role} reference '{body_name}' not found in BODY_DATA.")

        logging.info("Configuration validated successfully.")


# --- Instantiate the configuration ---
# This makes the config object available for import and runs validation.
# e.g., from config import config
try:
    config = SimulationConfig()
except ConfigurationError as e:
    logging.error(f"FATAL CONFIGURATION ERROR: {e}", exc_info=True)
    raise
