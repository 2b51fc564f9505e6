"""Tests for post-generation world validation."""

import dataclasses
from pathlib import Path

import numpy as np
import pytest
from conftest import make_grid

from planetgen.config import (
    GenerationProfile,
    Placeable,
    PlacementCategory,
    PopulationRule,
    load_profile,
)
from planetgen.generator import GeneratedWorld, generate_world
from planetgen.mesh import TerrainMesh
from planetgen.scatter import PlacementInstance
from planetgen.validation import validate_world


@pytest.fixture
def world(populated_profile: GenerationProfile) -> GeneratedWorld:
    return generate_world(populated_profile, 42)


def centre_index(world: GeneratedWorld) -> int:
    return int(np.argmin(world.grid.planar_distance))


class TestValidateWorld:
    """Tests for validate_world."""

    def test_generated_world_passes(self, world: GeneratedWorld) -> None:
        """A freshly generated world has no errors."""
        result = validate_world(world)
        assert result.passed
        assert result.errors == []

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_bundled_profiles_pass(self, profiles_dir: Path, seed: int) -> None:
        """Worlds from the example profiles validate cleanly."""
        for name in ("rocky", "dunes"):
            profile = load_profile(profiles_dir / f"{name}.toml")
            assert validate_world(generate_world(profile, seed)).passed

    def test_shortfall_is_warning(self, flat_profile: GenerationProfile) -> None:
        """Falling short of min_count warns but passes."""
        rule = PopulationRule(
            category=PlacementCategory.STRUCTURE,
            placeable="hut",
            min_count=2,
            max_count=2,
            max_height=-100.0,
        )
        world = generate_world(flat_profile.model_copy(update={"structures": (rule,)}), 1)
        result = validate_world(world)
        assert result.passed
        assert any("below min_count" in w for w in result.warnings)

    def test_too_many_instances(self, world: GeneratedWorld) -> None:
        """More instances than max_count is an error."""
        assert world.items
        tampered = dataclasses.replace(world, items=(world.items[0],) * 9)
        result = validate_world(tampered)
        assert not result.passed
        assert any("above max_count" in e for e in result.errors)

    def test_unknown_rule_index(self, world: GeneratedWorld) -> None:
        """Instances pointing at missing rules are errors."""
        assert world.monsters
        stray = dataclasses.replace(world.monsters[0], rule_index=7)
        result = validate_world(dataclasses.replace(world, monsters=(stray,)))
        assert any("unknown rules [7]" in e for e in result.errors)

    def test_constraint_violation(self, world: GeneratedWorld) -> None:
        """An instance on the landing pad violates the landing zone."""
        index = centre_index(world)
        instance = PlacementInstance(
            category=PlacementCategory.STRUCTURE,
            placeable=Placeable(asset_id="outpost"),
            position=tuple(float(v) for v in world.grid.positions[index]),
            orientation=(0.0, 0.0, 0.0, 1.0),
            rule_index=0,
            vertex_index=index,
        )
        result = validate_world(dataclasses.replace(world, structures=(instance,)))
        assert not result.passed
        assert result.errors == ["1 placements violate the landing_zone constraint"]

    def test_uneven_pad(self, world: GeneratedWorld) -> None:
        """A grid whose pad is off the base height fails."""
        grid = make_grid(32, 32, tile_size=2.0, height_fn=lambda x, z: np.full_like(x, 0.5))
        result = validate_world(dataclasses.replace(world, grid=grid, structures=(), monsters=(), items=()))
        assert any("Landing pad" in e for e in result.errors)

    def test_non_finite_geometry(self, world: GeneratedWorld) -> None:
        """NaN vertices are reported."""
        vertices = world.mesh.vertices.copy()
        vertices[3, 1] = np.nan
        mesh = TerrainMesh(
            vertices=vertices,
            uvs=world.mesh.uvs,
            triangles=world.mesh.triangles,
            normals=world.mesh.normals,
        )
        result = validate_world(dataclasses.replace(world, mesh=mesh))
        assert "mesh vertices contain 1 non-finite values" in result.errors
