# gravity.py
import numpy as np
from typing import Optional

from config import config
from solarsystem import BodyRegistry

class GravitySolver:
    """Pairwise Newtonian gravity over a body registry.

    Every non-fixed body is accelerated by every other body with `a = G*M/d_eff^2`
    along the true unit vector towards the source, where
    `d_eff = max(d, max(r_target + r_source, MIN_SOFTENING_DISTANCE))`. The floor only
    changes the magnitude, never the direction. Fixed bodies are not accelerated but
    still act as sources. Sums run over sources in registry order so identical inputs
    give identical results.
    """

    def __init__(self, G: float = config.Physics.G,
                 min_softening_distance: float = config.Physics.MIN_SOFTENING_DISTANCE):
        self.G = G
        self.min_softening_distance = min_softening_distance

    def compute_accelerations(self, positions: np.ndarray, masses: np.ndarray,
                              radii: np.ndarray, fixed: np.ndarray) -> np.ndarray:
        """Returns an (n, 3) array of gravitational accelerations."""
        n = positions.shape[0]
        if n < 2:
            return np.zeros_like(positions)

        # separation[i, j] points from body i to body j
        separation = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
        distance = np.sqrt(np.sum(separation * separation, axis=2))
        floor = np.maximum(radii[:, np.newaxis] + radii[np.newaxis, :], self.min_softening_distance)
        effective = np.maximum(distance, floor)

        magnitude = self.G * masses[np.newaxis, :] / (effective * effective)
        np.fill_diagonal(magnitude, 0.0)
        # Coincident bodies have no direction, so they contribute nothing
        inverse_distance = np.divide(1.0, distance, out=np.zeros_like(distance), where=distance > 0.0)

        accelerations = np.sum(separation * (magnitude * inverse_distance)[:, :, np.newaxis], axis=1)
        accelerations[fixed] = 0.0
        return accelerations

    def accumulate(self, registry: BodyRegistry):
        """Resets the registry's acceleration accumulator and fills it with gravity."""
        registry.reset_accelerations()
        registry.accelerations += self.compute_accelerations(
            registry.positions, registry.masses, registry.radii, registry.fixed)

    def acceleration_at(self, point: np.ndarray, positions: np.ndarray, masses: np.ndarray,
                        floors: np.ndarray, exclude: Optional[int] = None) -> np.ndarray:
        """Acceleration at a free point from bodies held at `positions`.

        Args:
            point (np.ndarray): Field point.
            positions (np.ndarray): (n, 3) source positions.
            masses (np.ndarray): (n,) source masses.
            floors (np.ndarray): (n,) per-source softening distance.
            exclude (Optional[int]): Source index to skip (the body at `point` itself).
        """
        separation = positions - point[np.newaxis, :]
        distance = np.sqrt(np.sum(separation * separation, axis=1))
        effective = np.maximum(distance, floors)
        magnitude = self.G * masses / (effective * effective)
        if exclude is not None:
            magnitude[exclude] = 0.0
        inverse_distance = np.divide(1.0, distance, out=np.zeros_like(distance), where=distance > 0.0)
        return np.sum(separation * (magnitude * inverse_distance)[:, np.newaxis], axis=0)
