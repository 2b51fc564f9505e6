"""Seeded random source with derivable sub-streams."""

import math

import numpy as np

_SEED_MODULUS = 2**64
_INT31_MAX = 2**31 - 1


class DeterministicRng:
    """Deterministic random stream backed by numpy's PCG64.

    Every stream is identified by its root seed and a spawn key path.
    ``split`` extends the path with a salt, so children are a pure
    function of (parent identity, salt) and never consume the parent.
    """

    def __init__(self, seed: int, spawn_key: tuple[int, ...] = ()):
        self.seed = int(seed) % _SEED_MODULUS
        self.spawn_key = tuple(spawn_key)
        sequence = np.random.SeedSequence(entropy=self.seed, spawn_key=self.spawn_key)
        self._generator = np.random.Generator(np.random.PCG64(sequence))

    def next_int(self, min_value: int | None = None, max_value: int | None = None) -> int:
        """Return a random integer.

        With no arguments returns a non-negative int below 2**31 - 1.
        With bounds returns an int in the half-open range [min, max).
        """
        if min_value is None and max_value is None:
            return int(self._generator.integers(0, _INT31_MAX))
        if min_value is None or max_value is None:
            raise TypeError("next_int takes either no bounds or both bounds")
        if min_value >= max_value:
            return int(min_value)
        return int(self._generator.integers(min_value, max_value))

    def next_float(self, min_value: float = 0.0, max_value: float = 1.0) -> float:
        """Return a float in [min, max)."""
        return min_value + float(self._generator.random()) * (max_value - min_value)

    def next_inside_unit_circle(self) -> tuple[float, float]:
        """Return a point uniformly distributed inside the unit disc."""
        angle = self.next_float(0.0, math.pi * 2.0)
        radius = math.sqrt(self.next_float())
        return math.cos(angle) * radius, math.sin(angle) * radius

    def split(self, salt: int) -> "DeterministicRng":
        """Derive an independent child stream without advancing this one."""
        return DeterministicRng(self.seed, self.spawn_key + (int(salt) % _SEED_MODULUS,))

    def __repr__(self) -> str:
        return f"DeterministicRng(seed={self.seed}, spawn_key={self.spawn_key})"
