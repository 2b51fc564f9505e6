"""Deterministic planet generation.

Builds a bounded terrain surface from a seed and a declarative profile,
then scatters structures, monsters and items over it with constrained
rejection sampling. Equal seeds reproduce identical worlds.
"""

from .catalog import CatalogEntry, PlanetCatalog, load_catalog
from .config import (
    GenerationProfile,
    Placeable,
    PlacementCategory,
    PopulationRule,
    find_profile,
    load_profile,
)
from .exceptions import ConfigurationError, PlanetGenError
from .generator import GeneratedWorld, TerrainGenerator, generate_world, get_landing_hint
from .heightfield import HeightfieldGrid
from .mesh import TerrainMesh
from .rng import DeterministicRng
from .scatter import PlacementInstance, ScatterPlacer
from .strategies import MeshStrategy, TerrainStrategy, TileStrategy
from .validation import ValidationResult, validate_world

__all__ = [
    "CatalogEntry",
    "ConfigurationError",
    "DeterministicRng",
    "GeneratedWorld",
    "GenerationProfile",
    "HeightfieldGrid",
    "MeshStrategy",
    "Placeable",
    "PlacementCategory",
    "PlacementInstance",
    "PlanetCatalog",
    "PlanetGenError",
    "PopulationRule",
    "ScatterPlacer",
    "TerrainGenerator",
    "TerrainMesh",
    "TerrainStrategy",
    "TileStrategy",
    "ValidationResult",
    "find_profile",
    "generate_world",
    "get_landing_hint",
    "load_catalog",
    "load_profile",
    "validate_world",
]
