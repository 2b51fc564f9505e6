"""Terrain synthesis strategies selectable per profile."""

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .config import GenerationProfile
from .heightfield import HeightfieldGrid, clamp_profile, shape_heights, synthesize_heightfield
from .mesh import TerrainMesh, build_tile_mesh
from .rng import DeterministicRng

# Height of the landing hint above the pad surface
LANDING_HINT_CLEARANCE = 2.0


@dataclass(frozen=True, eq=False)
class Terrain:
    """Surface produced by a strategy: sample grid plus renderable mesh."""

    grid: HeightfieldGrid
    mesh: TerrainMesh


class TerrainStrategy(Protocol):
    """Something that can turn a profile and a stream into terrain."""

    name: str

    def synthesize(self, profile: GenerationProfile, rng: DeterministicRng) -> Terrain: ...

    def landing_hint(self, profile: GenerationProfile) -> tuple[float, float, float]: ...


def pad_landing_hint(profile: GenerationProfile) -> tuple[float, float, float]:
    """Point just above the centre of the flat landing pad."""
    return (0.0, profile.base_height + LANDING_HINT_CLEARANCE, 0.0)


class MeshStrategy:
    """Continuous heightfield mesh over a vertex grid."""

    name = "mesh"

    def synthesize(self, profile: GenerationProfile, rng: DeterministicRng) -> Terrain:
        grid, mesh = synthesize_heightfield(profile, rng)
        return Terrain(grid=grid, mesh=mesh)

    def landing_hint(self, profile: GenerationProfile) -> tuple[float, float, float]:
        return pad_landing_hint(profile)


class TileStrategy:
    """Discrete flat tiles, one height sample per tile centre.

    Shares the noise, landing pad and corridor shaping of the mesh
    strategy; only the sampling points and surface differ.
    """

    name = "tile"

    def synthesize(self, profile: GenerationProfile, rng: DeterministicRng) -> Terrain:
        params = clamp_profile(profile)

        xs = (np.arange(params.width, dtype=np.float64) + 0.5 - params.width * 0.5) * params.tile_size
        zs = (np.arange(params.length, dtype=np.float64) + 0.5 - params.length * 0.5) * params.tile_size
        local_x, local_z = np.meshgrid(xs, zs)

        heights = shape_heights(local_x, local_z, params, rng)
        centers = np.stack([local_x, heights, local_z], axis=-1).reshape(-1, 3)

        mesh = build_tile_mesh(centers, params.tile_size)
        normals = np.tile(np.array([0.0, 1.0, 0.0]), (len(centers), 1))
        grid = HeightfieldGrid(
            positions=centers,
            normals=normals,
            rows=params.length,
            cols=params.width,
        )
        return Terrain(grid=grid, mesh=mesh)

    def landing_hint(self, profile: GenerationProfile) -> tuple[float, float, float]:
        return pad_landing_hint(profile)


def default_strategies() -> dict[str, TerrainStrategy]:
    """Registry of built-in strategies keyed by name."""
    return {
        MeshStrategy.name: MeshStrategy(),
        TileStrategy.name: TileStrategy(),
    }
