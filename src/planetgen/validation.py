"""Post-generation validation of generated worlds."""

import logging
from collections import Counter
from typing import Mapping

import numpy as np

from .config import PlacementCategory
from .generator import GeneratedWorld
from .heightfield import clamp_profile
from .scatter import ScatterPlacer

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of world validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def validate_world(
    world: GeneratedWorld,
    exclusion_margins: Mapping[PlacementCategory, float] | None = None,
) -> ValidationResult:
    """Validate a generated world against its profile.

    Placement shortfalls are reported as warnings, never errors.

    Args:
        world: Generated world.
        exclusion_margins: Landing zone margins used during generation, if not the defaults.

    Returns:
        ValidationResult with any errors/warnings.
    """
    result = ValidationResult()

    # Check 1: Geometry has no NaN/inf
    _check_finite_geometry(world, result)

    # Check 2: Landing pad is exactly flat
    _check_landing_pad(world, result)

    # Check 3: Per-rule counts within bounds
    _check_rule_counts(world, result)

    # Check 4: Every instance satisfies its rule
    _check_placement_constraints(world, exclusion_margins, result)

    if result.passed:
        logger.info("World validation passed")
    else:
        logger.warning(f"World validation failed with {len(result.errors)} errors")
        for error in result.errors:
            logger.error(f"  - {error}")

    for warning in result.warnings:
        logger.warning(f"  - {warning}")

    return result


def _check_finite_geometry(world: GeneratedWorld, result: ValidationResult) -> None:
    """Check mesh and grid contain only finite numbers."""
    arrays = {
        "mesh vertices": world.mesh.vertices,
        "mesh normals": world.mesh.normals,
        "grid normals": world.grid.normals,
    }
    for name, arr in arrays.items():
        bad = int(np.sum(~np.isfinite(arr)))
        if bad > 0:
            result.add_error(f"{name} contain {bad} non-finite values")

    if len(world.mesh.triangles) % 3 != 0:
        result.add_error("Index buffer length is not a multiple of 3")
    elif len(world.mesh.triangles) and int(world.mesh.triangles.max()) >= world.mesh.vertex_count:
        result.add_error("Index buffer references missing vertices")


def _check_landing_pad(world: GeneratedWorld, result: ValidationResult) -> None:
    """Check samples on the pad sit at the base height."""
    params = clamp_profile(world.profile)
    if params.landing_radius <= 0:
        return

    on_pad = world.grid.planar_distance <= params.landing_radius
    heights = world.grid.positions[on_pad, 1]
    off = int(np.sum(heights != params.base_height))
    if off > 0:
        result.add_error(f"Landing pad has {off} samples off the base height")


def _check_rule_counts(world: GeneratedWorld, result: ValidationResult) -> None:
    """Check placed counts per rule against the rule bounds."""
    for category in PlacementCategory:
        rules = world.profile.rules_for(category)
        counts = Counter(p.rule_index for p in world.placements_for(category))

        for index, rule in enumerate(rules):
            placed = counts.get(index, 0)
            if placed > max(rule.max_count, 0):
                result.add_error(
                    f"Rule {rule.label} placed {placed}, above max_count {rule.max_count}"
                )
            elif rule.is_active and placed < rule.min_count:
                result.add_warning(
                    f"Rule {rule.label} placed {placed}, below min_count {rule.min_count}"
                )

        unknown = [i for i in counts if i >= len(rules)]
        if unknown:
            result.add_error(f"{category.value} placements reference unknown rules {unknown}")


def _check_placement_constraints(
    world: GeneratedWorld,
    exclusion_margins: Mapping[PlacementCategory, float] | None,
    result: ValidationResult,
) -> None:
    """Check every instance's sampled vertex passes its rule's constraints."""
    placer = ScatterPlacer(
        world.grid,
        clamp_profile(world.profile).landing_radius,
        exclusion_margins=exclusion_margins,
    )

    violations: Counter[str] = Counter()
    for category in PlacementCategory:
        rules = world.profile.rules_for(category)
        for instance in world.placements_for(category):
            if instance.rule_index >= len(rules):
                continue
            reason = placer.rejection_reason(rules[instance.rule_index], instance.vertex_index)
            if reason is not None:
                violations[reason] += 1

    for reason, count in sorted(violations.items()):
        result.add_error(f"{count} placements violate the {reason} constraint")
