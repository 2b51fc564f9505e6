"""Heightfield synthesis: fBm elevation, landing pad flattening, corridor carving."""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .config import GenerationProfile
from .mesh import TerrainMesh, build_mesh
from .noise import fbm_value_noise
from .rng import DeterministicRng

logger = logging.getLogger(__name__)

# Safe minimums for degenerate profile values
MIN_GRID_CELLS = 1
MIN_TILE_SIZE = 0.1
MIN_NOISE_SCALE = 0.0001
MIN_OCTAVES = 1
MIN_LACUNARITY = 1.0

# Range of the seed-dependent noise sample offset
NOISE_OFFSET_RANGE = 1000.0


@dataclass(frozen=True)
class SynthesisParams:
    """Profile values after clamping to safe ranges."""

    width: int
    length: int
    tile_size: float
    base_height: float
    height_scale: float
    noise_scale: float
    octaves: int
    lacunarity: float
    persistence: float
    landing_radius: float
    landing_falloff: float
    use_corridor: bool
    corridor_half_width: float
    corridor_length: float
    corridor_max_offset: float

    @property
    def corridor_enabled(self) -> bool:
        return (
            self.use_corridor
            and self.corridor_half_width > 0
            and self.corridor_length > 0
            and self.corridor_max_offset > 0
        )


def clamp_profile(profile: GenerationProfile) -> SynthesisParams:
    """Clamp profile values so degenerate input cannot break geometry."""
    return SynthesisParams(
        width=max(MIN_GRID_CELLS, profile.map_width),
        length=max(MIN_GRID_CELLS, profile.map_length),
        tile_size=max(MIN_TILE_SIZE, profile.tile_size),
        base_height=profile.base_height,
        height_scale=profile.height_scale,
        noise_scale=max(MIN_NOISE_SCALE, profile.noise_scale),
        octaves=max(MIN_OCTAVES, profile.noise_octaves),
        lacunarity=max(MIN_LACUNARITY, profile.noise_lacunarity),
        persistence=min(1.0, max(0.0, profile.noise_persistence)),
        landing_radius=max(0.0, profile.landing_radius),
        landing_falloff=max(0.0, profile.landing_falloff),
        use_corridor=profile.use_landing_corridor,
        corridor_half_width=max(0.0, profile.corridor_half_width),
        corridor_length=max(0.0, profile.corridor_length),
        corridor_max_offset=max(0.0, profile.corridor_max_height_offset),
    )


@dataclass(frozen=True, eq=False)
class HeightfieldGrid:
    """Row-major grid of surface samples.

    ``positions`` and ``normals`` have shape ``(rows * cols, 3)``; row ``r``
    holds samples with increasing x at one z. Arrays are read-only.
    """

    positions: NDArray[np.float64]
    normals: NDArray[np.float64]
    rows: int
    cols: int

    def __post_init__(self) -> None:
        expected = (self.rows * self.cols, 3)
        if self.positions.shape != expected or self.normals.shape != expected:
            raise ValueError(
                f"Grid arrays must have shape {expected}, got "
                f"{self.positions.shape} and {self.normals.shape}"
            )
        self.positions.flags.writeable = False
        self.normals.flags.writeable = False

    @property
    def vertex_count(self) -> int:
        return self.rows * self.cols

    @property
    def heights(self) -> NDArray[np.float64]:
        """Elevations as a ``(rows, cols)`` array."""
        return self.positions[:, 1].reshape(self.rows, self.cols)

    @property
    def planar_distance(self) -> NDArray[np.float64]:
        """Distance of every sample from the origin in the XZ plane."""
        return np.hypot(self.positions[:, 0], self.positions[:, 2])


def vertex_coordinates(params: SynthesisParams) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Local XZ coordinates of the ``(length+1) x (width+1)`` vertex grid, centred on the origin."""
    half_width = params.width * params.tile_size * 0.5
    half_length = params.length * params.tile_size * 0.5
    xs = np.arange(params.width + 1, dtype=np.float64) * params.tile_size - half_width
    zs = np.arange(params.length + 1, dtype=np.float64) * params.tile_size - half_length
    local_x, local_z = np.meshgrid(xs, zs)
    return local_x, local_z


def noise_heights(
    local_x: NDArray[np.float64],
    local_z: NDArray[np.float64],
    params: SynthesisParams,
    offset_x: float,
    offset_z: float,
) -> NDArray[np.float64]:
    """Raw fBm heights remapped around the base height."""
    value = fbm_value_noise(
        local_x,
        local_z,
        params.noise_scale,
        octaves=params.octaves,
        lacunarity=params.lacunarity,
        persistence=params.persistence,
        offset_x=offset_x,
        offset_z=offset_z,
    )
    return params.base_height + (value - 0.5) * 2.0 * params.height_scale


def apply_landing_flattening(
    heights: NDArray[np.float64],
    distance: NDArray[np.float64],
    base_height: float,
    landing_radius: float,
    landing_falloff: float,
) -> NDArray[np.float64]:
    """Force a flat pad at the origin and blend it linearly into the terrain.

    Inside ``landing_radius`` the height is exactly ``base_height``. Across
    the falloff band it is a linear blend, so the result stays continuous
    at both band edges.

    Args:
        heights: Noise heights.
        distance: Planar distance of each sample from the origin.
        base_height: Pad height.
        landing_radius: Radius of the flat pad.
        landing_falloff: Width of the blend band.

    Returns:
        New array of flattened heights.
    """
    if landing_radius <= 0 and landing_falloff <= 0:
        return heights.copy()

    result = heights.copy()

    if landing_falloff > 0:
        band = (distance > landing_radius) & (distance <= landing_radius + landing_falloff)
        t = (distance[band] - landing_radius) / landing_falloff
        result[band] = base_height + (heights[band] - base_height) * t

    result[distance <= landing_radius] = base_height
    return result


def carve_corridor(
    heights: NDArray[np.float64],
    local_x: NDArray[np.float64],
    local_z: NDArray[np.float64],
    params: SynthesisParams,
) -> NDArray[np.float64]:
    """Clamp heights along a strip running +X from the pad.

    The allowed band around ``base_height`` widens linearly from zero at
    the pad edge to ``corridor_max_offset`` at the far end.

    Args:
        heights: Heights after landing flattening.
        local_x: Local x coordinates.
        local_z: Local z coordinates.
        params: Clamped synthesis parameters.

    Returns:
        New array with the corridor carved.
    """
    if not params.corridor_enabled:
        return heights.copy()

    start = params.landing_radius
    end = params.landing_radius + params.corridor_length

    inside = (
        (np.abs(local_z) <= params.corridor_half_width)
        & (local_x >= 0.0)
        & (local_x <= end)
    )

    ramp = np.clip((np.maximum(start, local_x) - start) / (end - start), 0.0, 1.0)
    max_offset = ramp * params.corridor_max_offset

    result = heights.copy()
    result[inside] = np.clip(
        heights[inside],
        params.base_height - max_offset[inside],
        params.base_height + max_offset[inside],
    )
    return result


def shape_heights(
    local_x: NDArray[np.float64],
    local_z: NDArray[np.float64],
    params: SynthesisParams,
    rng: DeterministicRng,
) -> NDArray[np.float64]:
    """Run noise, landing flattening and corridor carving over sample coordinates.

    Consumes exactly two floats from ``rng`` for the noise offset.
    """
    offset_x = rng.next_float(-NOISE_OFFSET_RANGE, NOISE_OFFSET_RANGE)
    offset_z = rng.next_float(-NOISE_OFFSET_RANGE, NOISE_OFFSET_RANGE)
    logger.debug(f"Noise offset: ({offset_x:.3f}, {offset_z:.3f})")

    heights = noise_heights(local_x, local_z, params, offset_x, offset_z)
    distance = np.hypot(local_x, local_z)
    heights = apply_landing_flattening(
        heights,
        distance,
        params.base_height,
        params.landing_radius,
        params.landing_falloff,
    )
    return carve_corridor(heights, local_x, local_z, params)


def synthesize_heightfield(
    profile: GenerationProfile,
    rng: DeterministicRng,
) -> tuple[HeightfieldGrid, TerrainMesh]:
    """Build the vertex heightfield and its triangulated surface.

    Normals on the returned grid come from the final mesh, so they reflect
    the flattened and carved geometry.

    Args:
        profile: Generation profile.
        rng: Terrain sub-stream.

    Returns:
        Tuple of (HeightfieldGrid, TerrainMesh).
    """
    params = clamp_profile(profile)
    local_x, local_z = vertex_coordinates(params)
    heights = shape_heights(local_x, local_z, params, rng)

    positions = np.stack([local_x, heights, local_z], axis=-1).reshape(-1, 3)
    mesh = build_mesh(positions, params.width, params.length)

    grid = HeightfieldGrid(
        positions=mesh.vertices.copy(),
        normals=mesh.normals.copy(),
        rows=params.length + 1,
        cols=params.width + 1,
    )

    logger.debug(
        f"Heightfield {grid.cols}x{grid.rows}: "
        f"min {heights.min():.3f}, max {heights.max():.3f}"
    )
    return grid, mesh
