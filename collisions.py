# collisions.py
import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional

from config import config
from physics_utils import normalize_vector
from solarsystem import BodyRegistry

@dataclass(frozen=True)
class CollisionEvent:
    """Result of a spacecraft collision query.

    Attributes:
        collided (bool): True if the spacecraft overlaps a body.
        body (Optional[int]): Handle of the first overlapping body in registry order.
        penetration (float): Sum of radii minus centre distance; 0 when not collided.
        distance (float): Centre distance to `body`.
    """
    collided: bool
    body: Optional[int] = None
    penetration: float = 0.0
    distance: float = 0.0

NO_COLLISION = CollisionEvent(collided=False)

def detect_collision(registry: BodyRegistry) -> CollisionEvent:
    """Finds the first body (in registry order) whose sphere the spacecraft overlaps."""
    sc = registry.spacecraft
    if sc is None or len(registry) < 2:
        return NO_COLLISION
    distances = np.linalg.norm(registry.positions - registry.positions[sc], axis=1)
    limits = registry.radii + registry.radii[sc]
    hits = distances < limits
    hits[sc] = False
    if not np.any(hits):
        return NO_COLLISION
    body = int(np.argmax(hits))
    event = CollisionEvent(
        collided=True,
        body=body,
        penetration=float(limits[body] - distances[body]),
        distance=float(distances[body]),
    )
    if config.Debug.LOG_COLLISIONS:
        logging.debug(
            f"Spacecraft collision with '{registry.names[body]}': distance {event.distance:.4f}, "
            f"penetration {event.penetration:.4f}"
        )
    return event

def resolve_collision(registry: BodyRegistry, event: CollisionEvent,
                      restitution: float = config.Collision.RESTITUTION,
                      damping: float = config.Collision.DAMPING):
    """
    Pushes the spacecraft out of the body it hit and reflects its approach velocity.

    The spacecraft moves along the outward normal by the penetration depth. If its
    velocity still points into the body, the normal component is reflected with
    `v += n * (-restitution * v.n)` and the whole velocity is then scaled by `damping`.
    The other body is never moved. Does nothing for a non-collision event.
    """
    sc = registry.spacecraft
    if sc is None or not event.collided or event.body is None:
        return
    offset = registry.positions[sc] - registry.positions[event.body]
    normal = normalize_vector(offset)
    if not np.any(normal):
        # Centres coincide: push out against the direction of travel
        normal = -normalize_vector(registry.velocities[sc])
        if not np.any(normal):
            normal = np.array([1.0, 0.0, 0.0])
        logging.warning(
            f"Collision with '{registry.names[event.body]}' had no separation; using fallback normal {normal}."
        )
    registry.positions[sc] = registry.positions[sc] + normal * event.penetration

    velocity = registry.velocities[sc]
    normal_speed = float(np.dot(velocity, normal))
    if normal_speed < 0.0:
        velocity = velocity + normal * (-restitution * normal_speed)
        registry.velocities[sc] = velocity * damping
