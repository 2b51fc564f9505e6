"""Generation profile models and TOML loading."""

import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError


class PlacementCategory(str, Enum):
    """Kinds of populated entities."""

    STRUCTURE = "structure"
    MONSTER = "monster"
    ITEM = "item"


# Defaults that differ per category; anything given explicitly wins.
CATEGORY_DEFAULTS: dict[PlacementCategory, dict[str, Any]] = {
    PlacementCategory.STRUCTURE: {
        "max_count": 10,
        "max_slope": 30.0,
        "align_to_terrain_normal": False,
    },
    PlacementCategory.MONSTER: {
        "max_count": 10,
        "max_slope": 35.0,
        "min_radius_from_center": 15.0,
        "max_radius_from_center": 80.0,
        "align_to_terrain_normal": True,
    },
    PlacementCategory.ITEM: {
        "max_count": 20,
        "max_slope": 35.0,
        "min_radius_from_center": 5.0,
        "max_radius_from_center": 80.0,
        "align_to_terrain_normal": False,
    },
}

Vector3 = tuple[float, float, float]


class Placeable(BaseModel, frozen=True):
    """Opaque handle to something the scene layer knows how to spawn."""

    asset_id: str = Field(description="Identifier resolved by the scene layer")
    bounds_min: Vector3 | None = Field(
        default=None, description="Local-space bounding box minimum corner"
    )
    bounds_max: Vector3 | None = Field(
        default=None, description="Local-space bounding box maximum corner"
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "Placeable":
        if (self.bounds_min is None) != (self.bounds_max is None):
            raise ValueError("bounds_min and bounds_max must be given together")
        if self.bounds_min is not None and self.bounds_max is not None:
            if any(lo > hi for lo, hi in zip(self.bounds_min, self.bounds_max)):
                raise ValueError(f"bounds_min exceeds bounds_max for '{self.asset_id}'")
        return self

    @property
    def has_bounds(self) -> bool:
        return self.bounds_min is not None


class PopulationRule(BaseModel, frozen=True):
    """How many of one placeable to scatter, and where it may go."""

    category: PlacementCategory
    placeable: Placeable | None = Field(
        default=None, description="What to place (rule is skipped when missing)"
    )
    min_count: int = Field(default=0, description="Minimum instance count")
    max_count: int = Field(default=10, description="Maximum instance count")
    min_height: float = Field(default=-999.0, description="Lowest allowed ground height")
    max_height: float = Field(default=999.0, description="Highest allowed ground height")
    max_slope: float = Field(default=30.0, description="Max slope angle in degrees")
    avoid_landing_zone: bool = Field(
        default=True, description="Keep clear of the landing pad"
    )
    min_radius_from_center: float | None = Field(
        default=None, description="Inner radius band (monsters and items)"
    )
    max_radius_from_center: float | None = Field(
        default=None, description="Outer radius band (monsters and items)"
    )
    extra_y_offset: float = Field(default=0.0, description="Added after ground snap")
    align_to_terrain_normal: bool = Field(
        default=False, description="Tilt the up-axis onto the surface normal"
    )

    @model_validator(mode="before")
    @classmethod
    def _apply_category_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        try:
            category = PlacementCategory(data.get("category"))
        except ValueError:
            # Let field validation report the bad category
            return data
        return {**CATEGORY_DEFAULTS[category], **data}

    @field_validator("placeable", mode="before")
    @classmethod
    def _placeable_from_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"asset_id": value}
        return value

    @field_validator("min_count")
    @classmethod
    def _clamp_min_count(cls, value: int) -> int:
        return max(0, value)

    @model_validator(mode="after")
    def _check_counts(self) -> "PopulationRule":
        problem = self.count_problem()
        if problem:
            raise ValueError(problem)
        return self

    def count_problem(self) -> str | None:
        """Describe a broken count invariant, or None if the counts are fine.

        Rules with ``max_count <= 0`` are inactive, not malformed.
        """
        if 0 < self.max_count < self.min_count:
            return f"min_count {self.min_count} exceeds max_count {self.max_count}"
        return None

    @property
    def uses_radius_band(self) -> bool:
        """Structures ignore the radius band."""
        return self.category != PlacementCategory.STRUCTURE

    @property
    def is_active(self) -> bool:
        """Whether the rule can place anything at all."""
        return self.placeable is not None and self.max_count > 0

    @property
    def label(self) -> str:
        asset = self.placeable.asset_id if self.placeable else "<none>"
        return f"{self.category.value}:{asset}"


class GenerationProfile(BaseModel, frozen=True):
    """Complete, immutable description of one kind of planet."""

    name: str = Field(default="default", description="Profile name")

    # Grid
    map_width: int = Field(default=64, description="Grid width in cells")
    map_length: int = Field(default=64, description="Grid length in cells")
    tile_size: float = Field(default=2.0, description="Cell size in world units")

    # Height
    base_height: float = Field(default=0.0, description="Height of the landing pad")
    height_scale: float = Field(default=8.0, description="Noise height amplitude")
    noise_scale: float = Field(default=0.02, description="Base noise frequency")
    noise_octaves: int = Field(default=4, description="Number of fBm octaves")
    noise_lacunarity: float = Field(default=2.0, description="Frequency multiplier per octave")
    noise_persistence: float = Field(
        default=0.45, description="Amplitude multiplier per octave"
    )

    # Landing area
    landing_radius: float = Field(default=10.0, description="Flat pad radius")
    landing_falloff: float = Field(default=6.0, description="Blend band width")

    # Landing corridor
    use_landing_corridor: bool = Field(default=True, description="Carve a corridor")
    corridor_half_width: float = Field(default=4.0, description="Corridor half width")
    corridor_length: float = Field(default=30.0, description="Corridor length past the pad")
    corridor_max_height_offset: float = Field(
        default=4.0, description="Height band at the far end of the corridor"
    )

    terrain_strategy: str | None = Field(
        default=None, description="Synthesis strategy name (None = caller default)"
    )

    structures: tuple[PopulationRule, ...] = ()
    monsters: tuple[PopulationRule, ...] = ()
    items: tuple[PopulationRule, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _tag_rule_categories(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, category in _RULE_GROUPS.items():
            rules = data.get(key)
            if not rules:
                continue
            data[key] = [
                {"category": category, **rule} if isinstance(rule, dict) else rule
                for rule in rules
            ]
        return data

    def rules_for(self, category: PlacementCategory) -> tuple[PopulationRule, ...]:
        """Rules of one category, in profile order."""
        if category == PlacementCategory.STRUCTURE:
            return self.structures
        if category == PlacementCategory.MONSTER:
            return self.monsters
        return self.items


_RULE_GROUPS = {
    "structures": PlacementCategory.STRUCTURE,
    "monsters": PlacementCategory.MONSTER,
    "items": PlacementCategory.ITEM,
}


def load_profile(profile_path: Path) -> GenerationProfile:
    """Load a generation profile from a TOML file.

    Args:
        profile_path: Path to the TOML profile.

    Returns:
        Parsed GenerationProfile. The name defaults to the file stem.

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid.
    """
    data = read_toml(profile_path)
    data.setdefault("name", profile_path.stem)
    return parse_profile(data, source=str(profile_path))


def parse_profile(data: dict[str, Any], source: str = "<inline>") -> GenerationProfile:
    """Validate raw profile data, converting failures to ConfigurationError."""
    try:
        return GenerationProfile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid profile {source}: {e}") from e


def find_profile(name: str, search_dir: Path | None = None) -> Path:
    """Find a profile file by name.

    Searches in the following order:
    1. Exact path if name contains a path separator or ends with .toml
    2. {search_dir}/{name}.toml
    3. {search_dir}/{name}

    Args:
        name: Profile name or path.
        search_dir: Directory holding profiles (default: ./profiles).

    Returns:
        Path to the profile file.

    Raises:
        ConfigurationError: If the profile is not found.
    """
    if "/" in name or name.endswith(".toml"):
        path = Path(name)
        if path.exists():
            return path
        raise ConfigurationError(f"Profile file not found: {name}")

    profiles_dir = search_dir if search_dir is not None else Path("profiles")

    candidate = profiles_dir / f"{name}.toml"
    if candidate.exists():
        return candidate

    candidate = profiles_dir / name
    if candidate.exists():
        return candidate

    raise ConfigurationError(
        f"Profile '{name}' not found in {profiles_dir}. "
        f"Available profiles: {list_profiles(profiles_dir)}"
    )


def list_profiles(profiles_dir: Path) -> list[str]:
    """List profile names available in a directory."""
    if not profiles_dir.exists():
        return []
    return sorted(p.stem for p in profiles_dir.glob("*.toml"))


def read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"File not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Malformed TOML in {path}: {e}") from e
