"""Shared test fixtures for planet generation tests."""

from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from planetgen.config import GenerationProfile, Placeable, PlacementCategory, PopulationRule
from planetgen.heightfield import HeightfieldGrid
from planetgen.mesh import build_mesh

PROFILES_DIR = Path(__file__).parent.parent / "profiles"


def make_grid(
    width: int,
    length: int,
    tile_size: float = 1.0,
    height_fn: Callable[[np.ndarray, np.ndarray], np.ndarray] | None = None,
) -> HeightfieldGrid:
    """Centred vertex grid with heights from ``height_fn(x, z)`` (flat by default)."""
    xs = np.arange(width + 1, dtype=np.float64) * tile_size - width * tile_size / 2
    zs = np.arange(length + 1, dtype=np.float64) * tile_size - length * tile_size / 2
    local_x, local_z = np.meshgrid(xs, zs)
    heights = np.zeros_like(local_x) if height_fn is None else height_fn(local_x, local_z)

    positions = np.stack([local_x, heights, local_z], axis=-1).reshape(-1, 3)
    mesh = build_mesh(positions, width, length)
    return HeightfieldGrid(
        positions=mesh.vertices.copy(),
        normals=mesh.normals.copy(),
        rows=length + 1,
        cols=width + 1,
    )


@pytest.fixture
def profiles_dir() -> Path:
    """Directory of bundled example profiles."""
    return PROFILES_DIR


@pytest.fixture
def flat_grid() -> HeightfieldGrid:
    """20x20 flat grid at height 0 with 1-unit cells, spanning -10..10."""
    return make_grid(20, 20)


@pytest.fixture
def flat_profile() -> GenerationProfile:
    """4x4 profile whose noise contributes nothing."""
    return GenerationProfile(
        name="flat",
        map_width=4,
        map_length=4,
        landing_radius=2.0,
        landing_falloff=0.0,
        height_scale=0.0,
    )


@pytest.fixture
def populated_profile() -> GenerationProfile:
    """Small hilly profile with rules in every category."""
    return GenerationProfile(
        name="populated",
        map_width=32,
        map_length=32,
        tile_size=2.0,
        height_scale=6.0,
        noise_scale=0.05,
        landing_radius=6.0,
        landing_falloff=4.0,
        terrain_strategy="mesh",
        structures=(
            PopulationRule(
                category=PlacementCategory.STRUCTURE,
                placeable=Placeable(asset_id="outpost"),
                min_count=1,
                max_count=3,
                max_slope=45.0,
            ),
            PopulationRule(
                category=PlacementCategory.STRUCTURE,
                placeable=Placeable(asset_id="mast"),
                min_count=0,
                max_count=2,
            ),
        ),
        monsters=(
            PopulationRule(
                category=PlacementCategory.MONSTER,
                placeable=Placeable(asset_id="crawler"),
                min_count=2,
                max_count=5,
                min_radius_from_center=10.0,
                max_radius_from_center=40.0,
            ),
        ),
        items=(
            PopulationRule(
                category=PlacementCategory.ITEM,
                placeable=Placeable(asset_id="crate"),
                min_count=3,
                max_count=8,
            ),
        ),
    )


def structure_rule(**kwargs) -> PopulationRule:
    """Structure rule with a placeable unless overridden."""
    kwargs.setdefault("placeable", Placeable(asset_id="structure"))
    return PopulationRule(category=PlacementCategory.STRUCTURE, **kwargs)
