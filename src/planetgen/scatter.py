"""Scatter placement: structures, monsters and items via rejection sampling."""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Mapping

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

from .config import Placeable, PlacementCategory, PopulationRule
from .heightfield import HeightfieldGrid
from .rng import DeterministicRng

logger = logging.getLogger(__name__)

# Attempts per wanted instance before giving up on a rule
DEFAULT_ATTEMPT_MULTIPLIERS: dict[PlacementCategory, int] = {
    PlacementCategory.STRUCTURE: 15,
    PlacementCategory.MONSTER: 20,
    PlacementCategory.ITEM: 20,
}

# Extra clearance around the landing pad for avoid_landing_zone rules
DEFAULT_EXCLUSION_MARGINS: dict[PlacementCategory, float] = {
    PlacementCategory.STRUCTURE: 2.0,
    PlacementCategory.MONSTER: 3.0,
    PlacementCategory.ITEM: 2.0,
}

UP = np.array([0.0, 1.0, 0.0])
_MIN_NORMAL_SQ = 0.0001


@dataclass(frozen=True)
class PlacementInstance:
    """One placed entity.

    ``orientation`` is a unit quaternion ``(x, y, z, w)``.
    """

    category: PlacementCategory
    placeable: Placeable
    position: tuple[float, float, float]
    orientation: tuple[float, float, float, float]
    rule_index: int
    vertex_index: int

    @property
    def rotation(self) -> Rotation:
        return Rotation.from_quat(self.orientation)


def slope_angles(normals: NDArray[np.float64]) -> NDArray[np.float64]:
    """Angles in degrees between each normal and +Y.

    Zero-length normals count as flat.
    """
    normals = np.atleast_2d(np.asarray(normals, dtype=np.float64))
    lengths = np.linalg.norm(normals, axis=1)
    safe = np.where(lengths > 0, lengths, 1.0)
    cos_angle = np.where(lengths > 0, normals[:, 1] / safe, 1.0)
    return np.degrees(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def tilt_to_normal(normal: NDArray[np.float64]) -> Rotation:
    """Minimal rotation taking +Y onto ``normal``."""
    if float(np.dot(normal, normal)) <= _MIN_NORMAL_SQ:
        return Rotation.identity()
    target = normal / np.linalg.norm(normal)
    axis = np.cross(UP, target)
    axis_length = float(np.linalg.norm(axis))
    angle = math.acos(float(np.clip(np.dot(UP, target), -1.0, 1.0)))
    if axis_length < 1e-9:
        if angle < 1e-6:
            return Rotation.identity()
        # Upside-down normal: any perpendicular axis works
        return Rotation.from_rotvec(np.array([math.pi, 0.0, 0.0]))
    return Rotation.from_rotvec(axis / axis_length * angle)


def ground_snap_offset(placeable: Placeable, rotation: Rotation) -> float:
    """Vertical pivot offset that puts the rotated bounding box on the ground."""
    if not placeable.has_bounds:
        return 0.0
    lo = np.asarray(placeable.bounds_min, dtype=np.float64)
    hi = np.asarray(placeable.bounds_max, dtype=np.float64)
    corners = np.array(
        [[x, y, z] for x in (lo[0], hi[0]) for y in (lo[1], hi[1]) for z in (lo[2], hi[2])]
    )
    lowest = float(rotation.apply(corners)[:, 1].min())
    return -lowest


class ScatterPlacer:
    """Places population rules onto a read-only heightfield grid."""

    def __init__(
        self,
        grid: HeightfieldGrid,
        landing_radius: float,
        attempt_multipliers: Mapping[PlacementCategory, int] | None = None,
        exclusion_margins: Mapping[PlacementCategory, float] | None = None,
    ):
        self.grid = grid
        self.landing_radius = max(0.0, landing_radius)
        self.attempt_multipliers = {**DEFAULT_ATTEMPT_MULTIPLIERS, **(attempt_multipliers or {})}
        self.exclusion_margins = {**DEFAULT_EXCLUSION_MARGINS, **(exclusion_margins or {})}

        self._distance = grid.planar_distance
        self._slopes = slope_angles(grid.normals)

    def rejection_reason(self, rule: PopulationRule, index: int) -> str | None:
        """Why a vertex fails a rule's constraints, or None if it passes."""
        height = float(self.grid.positions[index, 1])
        distance = float(self._distance[index])

        if height < rule.min_height or height > rule.max_height:
            return "height"
        if self._slopes[index] > rule.max_slope:
            return "slope"
        if rule.avoid_landing_zone:
            margin = self.exclusion_margins[rule.category]
            if distance < self.landing_radius + margin:
                return "landing_zone"
        if rule.uses_radius_band:
            if rule.min_radius_from_center is not None and distance < rule.min_radius_from_center:
                return "radius"
            if rule.max_radius_from_center is not None and distance > rule.max_radius_from_center:
                return "radius"
        return None

    def place_rule(
        self,
        rule: PopulationRule,
        rng: DeterministicRng,
        rule_index: int = 0,
    ) -> list[PlacementInstance]:
        """Place up to a random target count of one rule.

        Args:
            rule: Population rule.
            rng: Stream dedicated to this rule.
            rule_index: Position of the rule within its category.

        Returns:
            Placed instances, possibly fewer than the drawn target.
        """
        placeable = rule.placeable
        if placeable is None or not rule.is_active:
            logger.debug(f"Skipping inactive rule {rule.label}")
            return []

        target = rng.next_int(rule.min_count, rule.max_count + 1)
        if target <= 0:
            return []

        placed: list[PlacementInstance] = []
        max_attempts = target * self.attempt_multipliers[rule.category]
        vertex_count = self.grid.vertex_count

        for _ in range(max_attempts):
            if len(placed) >= target:
                break

            index = rng.next_int(0, vertex_count)
            if self.rejection_reason(rule, index) is not None:
                continue

            placed.append(self._instantiate(rule, placeable, rng, rule_index, index))

        if len(placed) < target:
            logger.debug(
                f"Rule {rule.label} placed {len(placed)}/{target} "
                f"after {max_attempts} attempts"
            )
        return placed

    def place_category(
        self,
        rules: Iterable[PopulationRule],
        rng: DeterministicRng,
    ) -> list[PlacementInstance]:
        """Place every rule of a category, each on its own split stream."""
        placed: list[PlacementInstance] = []
        for rule_index, rule in enumerate(rules):
            placed.extend(self.place_rule(rule, rng.split(rule_index), rule_index))
        return placed

    def _instantiate(
        self,
        rule: PopulationRule,
        placeable: Placeable,
        rng: DeterministicRng,
        rule_index: int,
        index: int,
    ) -> PlacementInstance:
        ground = self.grid.positions[index]
        normal = self.grid.normals[index]

        yaw = rng.next_float(0.0, 360.0)
        rotation = Rotation.from_euler("y", yaw, degrees=True)
        if rule.align_to_terrain_normal:
            # Yaw first so it spins about the tilted up-axis
            rotation = tilt_to_normal(normal) * rotation

        y = float(ground[1]) + ground_snap_offset(placeable, rotation) + rule.extra_y_offset

        qx, qy, qz, qw = (float(c) for c in rotation.as_quat())
        return PlacementInstance(
            category=rule.category,
            placeable=placeable,
            position=(float(ground[0]), y, float(ground[2])),
            orientation=(qx, qy, qz, qw),
            rule_index=rule_index,
            vertex_index=int(index),
        )
