# physics_utils.py

import numpy as np

class PhysicsError(Exception):
    """Custom exception for physics-related errors, such as invalid orbital inputs."""
    pass

def as_vector(value) -> np.ndarray:
    """Returns `value` as a new float64 array of shape (3,)."""
    vector = np.array(value, dtype=np.float64)
    if vector.shape != (3,):
        raise PhysicsError(f"Expected a 3-vector, got shape {vector.shape}.")
    return vector

def safe_divide(numerator, denominator, epsilon=1e-12, default_on_zero_denom=0.0):
    """
    Divides two numbers, returning a default where the denominator is effectively zero.

    Args:
        numerator (float or np.ndarray): The number(s) to be divided.
        denominator (float or np.ndarray): The number(s) to divide by.
        epsilon (float): Threshold below which the denominator is considered zero.
        default_on_zero_denom (float): Value returned where |denominator| < epsilon.

    Returns:
        float or np.ndarray: The quotient, with `default_on_zero_denom` substituted
                             wherever the denominator is near zero.
    """
    if isinstance(denominator, np.ndarray):
        numerator = np.broadcast_to(np.asarray(numerator, dtype=np.float64), denominator.shape)
        is_zero = np.abs(denominator) < epsilon
        result = np.full(denominator.shape, default_on_zero_denom, dtype=np.float64)
        np.divide(numerator, denominator, out=result, where=~is_zero)
        return result
    if abs(denominator) < epsilon:
        return default_on_zero_denom
    return numerator / denominator

def normalize_vector(vector, epsilon=1e-12):
    """
    Normalizes a vector to unit length.

    Args:
        vector (np.ndarray): The vector to normalize.
        epsilon (float): Threshold below which the vector's magnitude is considered zero.

    Returns:
        np.ndarray: A new unit vector, or a zero vector if the magnitude is below `epsilon`.
    """
    vector = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(vector)
    if norm < epsilon:
        return np.zeros_like(vector)
    return vector / norm

def clamp_magnitude(vector, max_magnitude):
    """Returns a copy of `vector` rescaled so its length does not exceed `max_magnitude`."""
    vector = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(vector)
    if norm > max_magnitude:
        return vector * (max_magnitude / norm)
    return vector.copy()

def planar_direction(angle):
    """Unit vector in the XY plane at `angle` radians from +x."""
    return np.array([np.cos(angle), np.sin(angle), 0.0], dtype=np.float64)

def planar_tangent(angle):
    """Prograde (counter-clockwise about +z) unit tangent at `angle` radians."""
    return np.array([-np.sin(angle), np.cos(angle), 0.0], dtype=np.float64)
