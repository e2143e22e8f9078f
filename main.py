# main.py
import os
import io
import psutil # For memory monitoring
import logging
import cProfile
import pstats
import argparse
import numpy as np

from config import config, ConfigurationError # Use the global config instance
from physics_engine import PhysicsEngine
from solarsystem import build_solar_system

class OrbitSimulation:
    """Headless host for the orbital core.

    Builds the default solar system, then plays the role of the external frame loop:
    it calls `PhysicsEngine.update(dt)` once per tick and reads the results back.
    Along the way it logs a status line, tracks total energy drift and checks
    process memory through `psutil`.

    Attributes:
        engine (PhysicsEngine): The simulation context.
        handles (Dict[str, int]): Body name to registry handle.
        process (psutil.Process): Current process, for memory monitoring.
        initial_energy (float): Total energy when the run started.
    """
    def __init__(self, time_scale: float = config.Physics.DEFAULT_TIME_SCALE,
                 substeps: int = config.Physics.DEFAULT_SUBSTEPS, use_hpop: bool = config.HPOP.ENABLED):
        """Creates the engine and the scene.

        Raises:
            ConfigurationError: If the engine or any body configuration is invalid.
        """
        try:
            self.engine = PhysicsEngine(time_scale=time_scale, substeps=substeps, use_hpop=use_hpop)
            self.handles = build_solar_system(self.engine)
        except ConfigurationError as e:
            logging.critical(f"Failed to initialize OrbitSimulation due to ConfigurationError: {e}", exc_info=True)
            raise
        self.process = psutil.Process(os.getpid())
        self.initial_energy = self.engine.total_energy()

    def body_name(self, handle):
        return self.engine.registry.names[handle]

    def check_energy(self, tick):
        energy = self.engine.total_energy()
        drift = abs(energy - self.initial_energy) / max(abs(self.initial_energy), 1e-30)
        if drift > config.Debug.ENERGY_DRIFT_WARN_FRACTION:
            logging.warning(f"Energy drift {drift:.3e} at tick {tick} (E={energy:.6e})")
        else:
            logging.debug(f"Energy {energy:.6e} (drift {drift:.3e}) at tick {tick}")

    def check_memory(self, tick):
        try:
            memory_mb = self.process.memory_info().rss / (1024 * 1024)
            if memory_mb > config.Monitoring.MEMORY_USAGE_WARN_MB:
                logging.warning(f"High memory usage: {memory_mb:.2f} MB at tick {tick}")
            else:
                logging.debug(f"Memory usage: {memory_mb:.2f} MB at tick {tick}")
        except psutil.Error as e_psutil:
            logging.error(f"Could not retrieve memory usage: {e_psutil}", exc_info=True)

    def log_status(self, tick):
        nearest = self.engine.nearest_body()
        if nearest is None:
            return
        handle, distance = nearest
        logging.info(
            f"Tick {tick}: t={self.engine.simulation_time:.3f}, speed={self.engine.speed():.4f}, "
            f"nearest={self.body_name(handle)} at {distance:.3f}"
        )

    def run(self, ticks: int, dt: float = 1.0 / 60.0):
        """Advances the engine `ticks` times and returns the number of collision ticks."""
        collisions = 0
        for tick in range(1, ticks + 1):
            event = self.engine.update(dt)
            if event.collided:
                collisions += 1
                logging.info(f"Tick {tick}: spacecraft hit {self.body_name(event.body)} "
                             f"(penetration {event.penetration:.4f})")

            if tick % config.Debug.LOG_INTERVAL_TICKS == 0:
                self.log_status(tick)
            if config.Debug.MONITOR_ENERGY_CONSERVATION and tick % config.Debug.ENERGY_CHECK_INTERVAL_TICKS == 0:
                self.check_energy(tick)
            if tick % config.Monitoring.MEMORY_CHECK_INTERVAL_TICKS == 0:
                self.check_memory(tick)
        return collisions

    def preview(self, delta_v=None):
        """Logs a full planning preview relative to Earth."""
        reference = self.handles.get(config.SolarSystem.HPOP_REFERENCES['earth'])
        prediction = self.engine.plan_trajectory(candidate_delta_v=delta_v, reference=reference)
        relative = prediction.relative_points()
        if len(relative) == 0:
            logging.info("No spacecraft to predict.")
            return prediction
        radii = np.linalg.norm(relative, axis=1)
        logging.info(
            f"Prediction: {len(prediction)} points over {prediction.steps_run} steps, "
            f"Earth distance {radii.min():.3f}..{radii.max():.3f}, collided={prediction.collided}"
        )
        return prediction


if __name__ == "__main__":
    """Entry point: builds the default scene and runs it headless.

    Arguments:
        --ticks N       number of frames to simulate (default 600)
        --dt S          frame time passed to update (default 1/60)
        --time-scale X  simulation time per second (default from config)
        --substeps N    integration substeps per frame
        --hpop          enable the perturbation model
        --predict       log a full planning preview before and after the run
        --profile       run under cProfile and save 'simulation_profile.prof'
    """
    parser = argparse.ArgumentParser(description="Run the orbital simulation core headless.")
    parser.add_argument("--ticks", type=int, default=600, help="Number of frames to simulate.")
    parser.add_argument("--dt", type=float, default=1.0 / 60.0, help="Frame time passed to update().")
    parser.add_argument("--time-scale", type=float, default=config.Physics.DEFAULT_TIME_SCALE)
    parser.add_argument("--substeps", type=int, default=config.Physics.DEFAULT_SUBSTEPS)
    parser.add_argument("--hpop", action="store_true", help="Enable HPOP perturbations.")
    parser.add_argument("--predict", action="store_true", help="Log a trajectory preview.")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable profiling for the simulation. Statistics will be saved to 'simulation_profile.prof'."
    )
    args = parser.parse_args()

    profiler = None
    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        logging.info("cProfile profiling enabled. Output will be saved to simulation_profile.prof upon completion.")

    try:
        simulation = OrbitSimulation(time_scale=args.time_scale, substeps=args.substeps, use_hpop=args.hpop)
        if args.predict:
            simulation.preview()
        logging.info(f"Running {args.ticks} ticks at dt={args.dt:.5f}.")
        collision_ticks = simulation.run(args.ticks, args.dt)
        simulation.log_status(args.ticks)
        simulation.check_energy(args.ticks)
        if args.predict:
            simulation.preview()
        logging.info(f"Run complete: {collision_ticks} collision ticks, t={simulation.engine.simulation_time:.3f}.")
    except ConfigurationError as e_config_main:
        logging.critical(f"Simulation could not be initialized due to a ConfigurationError: {e_config_main}", exc_info=True)
        print(f"FATAL CONFIGURATION ERROR: {e_config_main}. Simulation cannot start. Check logs for details.")
    except Exception as e_main:
        logging.critical(f"An unexpected critical error occurred in the main simulation execution block: {e_main}", exc_info=True)
        print(f"FATAL UNEXPECTED ERROR: {e_main}. Simulation terminated. Check logs for details.")
    finally:
        if profiler:
            profiler.disable()
            stats_file = "simulation_profile.prof"
            try:
                profiler.dump_stats(stats_file)
                logging.info(f"Profiling data successfully saved to {stats_file}")
                s = io.StringIO()
                pstats.Stats(profiler, stream=s).sort_stats('cumulative').print_stats(15)
                logging.info(f"\n--- Top 15 Profiled Functions (Cumulative Time) ---\n{s.getvalue()}")
            except Exception as e_profile_dump:
                logging.error(f"Failed to save or process profiling data from {stats_file}: {e_profile_dump}", exc_info=True)

        logging.info("Orbit simulation terminated.")
