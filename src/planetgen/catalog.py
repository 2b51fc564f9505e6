"""Weighted selection of planet profiles."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import structlog

from .config import GenerationProfile, load_profile, parse_profile, read_toml
from .exceptions import ConfigurationError
from .rng import DeterministicRng

logger = structlog.get_logger()

# Range of the catalog roll, matching a signed 32-bit draw
ROLL_MIN = -(2**31)
ROLL_MAX = 2**31 - 1


@dataclass(frozen=True)
class CatalogEntry:
    """A profile and its relative pick weight."""

    profile: GenerationProfile | None
    weight: int = 1

    @property
    def is_valid(self) -> bool:
        return self.profile is not None and self.weight > 0


class PlanetCatalog:
    """Picks profiles at random in proportion to their weights.

    The raw roll is returned as the generation seed, so persisting it is
    enough to reproduce both the pick and the world.
    """

    def __init__(self, entries: Sequence[CatalogEntry]):
        self.entries = tuple(entries)

    @property
    def total_weight(self) -> int:
        return sum(e.weight for e in self.entries if e.is_valid)

    def pick(self, rng: DeterministicRng | None = None) -> tuple[GenerationProfile, int]:
        """Pick a profile and the seed to generate it with.

        Args:
            rng: Random stream for the roll (default: fresh entropy).

        Returns:
            Tuple of (profile, seed).

        Raises:
            ConfigurationError: If no entry has a profile and positive weight.
        """
        total = self.total_weight
        if total <= 0:
            raise ConfigurationError("Planet catalog has no selectable profiles")

        if rng is None:
            rng = DeterministicRng(_entropy_seed())

        roll = rng.next_int(ROLL_MIN, ROLL_MAX)
        pick = abs(roll) % total

        accumulated = 0
        for entry in self.entries:
            if entry.profile is None or entry.weight <= 0:
                continue
            accumulated += entry.weight
            if pick < accumulated:
                logger.debug("catalog_pick", profile=entry.profile.name, seed=roll)
                return entry.profile, roll

        # Unreachable while total_weight agrees with the walk above
        for entry in self.entries:
            if entry.profile is not None:
                logger.warning("catalog_fallback", profile=entry.profile.name, seed=roll)
                return entry.profile, roll

        raise ConfigurationError("Planet catalog has no selectable profiles")


def load_catalog(catalog_path: Path) -> PlanetCatalog:
    """Load a planet catalog from a TOML file.

    Each ``[[entries]]`` table has a ``weight`` and a ``profile`` that is
    either a path (relative to the catalog file) or an inline table.

    Args:
        catalog_path: Path to the catalog TOML.

    Returns:
        Parsed PlanetCatalog.

    Raises:
        ConfigurationError: If the catalog or any referenced profile is invalid.
    """
    data = read_toml(catalog_path)
    entries = [
        _parse_entry(raw, catalog_path.parent, index)
        for index, raw in enumerate(data.get("entries", []))
    ]
    return PlanetCatalog(entries)


def _parse_entry(raw: Any, base_dir: Path, index: int) -> CatalogEntry:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Catalog entry {index} must be a table")

    weight = raw.get("weight", 1)
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise ConfigurationError(f"Catalog entry {index} weight must be an integer")

    source = raw.get("profile")
    if isinstance(source, str):
        profile = load_profile(base_dir / source)
    elif isinstance(source, dict):
        profile = parse_profile(source, source=f"catalog entry {index}")
    else:
        profile = None

    return CatalogEntry(profile=profile, weight=weight)


def _entropy_seed() -> int:
    return int(np.random.SeedSequence().entropy)
