"""Noise functions for heightfield synthesis.

Provides 2D lattice value noise and fBm (fractal Brownian motion) built
on top of it. Both are pure functions of their coordinates: seed
dependence comes from the sample offsets chosen by the caller.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Odd 32-bit multipliers for the lattice hash
_HASH_X = np.uint32(0x8DA6B343)
_HASH_Z = np.uint32(0xD8163841)
_HASH_MIX = np.uint32(0x5BD1E995)
_UINT32_SPAN = float(2**32)


def lattice_values(
    ix: NDArray[np.int64],
    iz: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Hash integer lattice coordinates to values in [0, 1).

    Args:
        ix: Integer lattice x coordinates.
        iz: Integer lattice z coordinates.

    Returns:
        Array of pseudo-random values with the broadcast shape of the inputs.
    """
    # Negative coordinates wrap modulo 2**32
    hx = np.asarray(ix, dtype=np.int64).astype(np.uint32)
    hz = np.asarray(iz, dtype=np.int64).astype(np.uint32)

    # Multiplications wrap modulo 2**32
    with np.errstate(over="ignore"):
        h = (hx * _HASH_X) ^ (hz * _HASH_Z)
        h ^= h >> np.uint32(13)
        h *= _HASH_MIX
        h ^= h >> np.uint32(15)

    return h.astype(np.float64) / _UINT32_SPAN


def value_noise_2d(x: ArrayLike, z: ArrayLike) -> NDArray[np.float64]:
    """Sample smooth 2D value noise.

    Corner values of the unit lattice cell are blended bilinearly with a
    smoothstep fade, so the field is continuous with continuous slope.

    Args:
        x: Sample x coordinates.
        z: Sample z coordinates.

    Returns:
        Noise values in [0, 1).
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)

    x0 = np.floor(x)
    z0 = np.floor(z)
    ux = smoothstep(0.0, 1.0, x - x0)
    uz = smoothstep(0.0, 1.0, z - z0)

    ix = x0.astype(np.int64)
    iz = z0.astype(np.int64)

    v00 = lattice_values(ix, iz)
    v10 = lattice_values(ix + 1, iz)
    v01 = lattice_values(ix, iz + 1)
    v11 = lattice_values(ix + 1, iz + 1)

    near = v00 + (v10 - v00) * ux
    far = v01 + (v11 - v01) * ux
    return near + (far - near) * uz


def fbm_value_noise(
    x: ArrayLike,
    z: ArrayLike,
    frequency: float,
    octaves: int = 4,
    lacunarity: float = 2.0,
    persistence: float = 0.5,
    offset_x: float = 0.0,
    offset_z: float = 0.0,
) -> NDArray[np.float64]:
    """Generate normalized fractal Brownian motion from value noise.

    Sums octaves at increasing frequency and decreasing amplitude. Each
    octave samples at ``(x * f + offset_x, z * f + offset_z)``.

    Args:
        x: Local x coordinates.
        z: Local z coordinates.
        frequency: Frequency of the base octave.
        octaves: Number of noise layers to sum.
        lacunarity: Frequency multiplier between octaves.
        persistence: Amplitude multiplier between octaves.
        offset_x: Seed-dependent x offset added to every sample.
        offset_z: Seed-dependent z offset added to every sample.

    Returns:
        Noise values normalized to [0, 1].
    """
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    result = np.zeros(np.broadcast(x, z).shape, dtype=np.float64)

    amplitude = 1.0
    max_amplitude = 0.0

    for _ in range(octaves):
        result += amplitude * value_noise_2d(x * frequency + offset_x, z * frequency + offset_z)
        max_amplitude += amplitude
        amplitude *= persistence
        frequency *= lacunarity

    if max_amplitude > 0:
        result /= max_amplitude
    return result


def smoothstep(edge0: float, edge1: float, x: NDArray[np.float64]) -> NDArray[np.float64]:
    """Smooth Hermite interpolation between 0 and 1.

    Args:
        edge0: Lower edge of transition.
        edge1: Upper edge of transition.
        x: Input values.

    Returns:
        Smoothly interpolated values in [0, 1].
    """
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)
