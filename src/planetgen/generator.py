"""Main generation orchestration."""

from dataclasses import dataclass
from typing import Mapping

import structlog

from .config import GenerationProfile, PlacementCategory
from .exceptions import ConfigurationError
from .heightfield import HeightfieldGrid
from .mesh import TerrainMesh
from .rng import DeterministicRng
from .scatter import PlacementInstance, ScatterPlacer
from .strategies import TerrainStrategy, default_strategies

logger = structlog.get_logger()

# Salts for the independent sub-streams split off the root stream
TERRAIN_SALT = 1
STREAM_SALTS: dict[PlacementCategory, int] = {
    PlacementCategory.STRUCTURE: 2,
    PlacementCategory.MONSTER: 3,
    PlacementCategory.ITEM: 4,
}


@dataclass(frozen=True, eq=False)
class GeneratedWorld:
    """Everything one generation call produces."""

    profile: GenerationProfile
    seed: int
    strategy: str
    grid: HeightfieldGrid
    mesh: TerrainMesh
    structures: tuple[PlacementInstance, ...]
    monsters: tuple[PlacementInstance, ...]
    items: tuple[PlacementInstance, ...]
    landing_hint: tuple[float, float, float]

    def placements_for(self, category: PlacementCategory) -> tuple[PlacementInstance, ...]:
        if category == PlacementCategory.STRUCTURE:
            return self.structures
        if category == PlacementCategory.MONSTER:
            return self.monsters
        return self.items

    @property
    def placements(self) -> tuple[PlacementInstance, ...]:
        return self.structures + self.monsters + self.items


def check_rules(profile: GenerationProfile) -> None:
    """Reject malformed population rules before any work is done.

    Raises:
        ConfigurationError: If any rule breaks the count invariant.
    """
    for category in PlacementCategory:
        for index, rule in enumerate(profile.rules_for(category)):
            problem = rule.count_problem()
            if problem:
                raise ConfigurationError(
                    f"Malformed {category.value} rule {index} in profile "
                    f"'{profile.name}': {problem}"
                )


class TerrainGenerator:
    """Resolves profile and strategy, then runs the generation pipeline.

    Instances are caller-owned; the last profile and strategy used are kept
    for the landing hint query.
    """

    def __init__(
        self,
        default_strategy: str | TerrainStrategy | None = None,
        profile_override: GenerationProfile | None = None,
        strategies: Mapping[str, TerrainStrategy] | None = None,
        attempt_multipliers: Mapping[PlacementCategory, int] | None = None,
        exclusion_margins: Mapping[PlacementCategory, float] | None = None,
    ):
        self.default_strategy = default_strategy
        self.profile_override = profile_override
        self.strategies = dict(strategies) if strategies is not None else default_strategies()
        self.attempt_multipliers = attempt_multipliers
        self.exclusion_margins = exclusion_margins

        self.last_profile: GenerationProfile | None = None
        self.last_strategy: TerrainStrategy | None = None

    def resolve_profile(self, profile: GenerationProfile | None) -> GenerationProfile:
        """Pick the override when set, else the given profile."""
        effective = self.profile_override if self.profile_override is not None else profile
        if effective is None:
            raise ConfigurationError("No generation profile given")
        return effective

    def resolve_strategy(self, profile: GenerationProfile) -> TerrainStrategy:
        """Pick the profile's strategy, else the generator default."""
        choice: str | TerrainStrategy | None = profile.terrain_strategy or self.default_strategy
        if choice is None:
            raise ConfigurationError(
                f"Profile '{profile.name}' names no terrain strategy and no default is set"
            )
        if isinstance(choice, str):
            try:
                return self.strategies[choice]
            except KeyError:
                raise ConfigurationError(
                    f"Unknown terrain strategy '{choice}'. "
                    f"Available: {sorted(self.strategies)}"
                ) from None
        return choice

    def generate(self, profile: GenerationProfile | None, seed: int) -> GeneratedWorld:
        """Generate a complete world.

        Args:
            profile: Generation profile (ignored when an override is set).
            seed: Integer seed; equal seeds give identical worlds.

        Returns:
            GeneratedWorld with mesh, grid and placements.

        Raises:
            ConfigurationError: If the profile or strategy cannot be resolved,
                or a population rule is malformed.
        """
        effective = self.resolve_profile(profile)
        strategy = self.resolve_strategy(effective)
        check_rules(effective)

        self.last_profile = effective
        self.last_strategy = strategy

        log = logger.bind(profile=effective.name, seed=seed, strategy=strategy.name)
        log.info("generation_started")

        rng = DeterministicRng(seed)
        terrain = strategy.synthesize(effective, rng.split(TERRAIN_SALT))

        placer = ScatterPlacer(
            terrain.grid,
            effective.landing_radius,
            attempt_multipliers=self.attempt_multipliers,
            exclusion_margins=self.exclusion_margins,
        )
        placements = {
            category: tuple(
                placer.place_category(effective.rules_for(category), rng.split(salt))
            )
            for category, salt in STREAM_SALTS.items()
        }

        world = GeneratedWorld(
            profile=effective,
            seed=seed,
            strategy=strategy.name,
            grid=terrain.grid,
            mesh=terrain.mesh,
            structures=placements[PlacementCategory.STRUCTURE],
            monsters=placements[PlacementCategory.MONSTER],
            items=placements[PlacementCategory.ITEM],
            landing_hint=strategy.landing_hint(effective),
        )

        log.info(
            "generation_finished",
            vertices=world.mesh.vertex_count,
            triangles=world.mesh.triangle_count,
            structures=len(world.structures),
            monsters=len(world.monsters),
            items=len(world.items),
        )
        return world

    def landing_hint(self) -> tuple[float, float, float] | None:
        """Landing hint for the most recent generation, or None before the first."""
        if self.last_profile is None or self.last_strategy is None:
            return None
        return self.last_strategy.landing_hint(self.last_profile)


def get_landing_hint(
    profile: GenerationProfile,
    strategy: str | TerrainStrategy | None = None,
) -> tuple[float, float, float]:
    """Approximate landing point for a profile without generating it.

    Raises:
        ConfigurationError: If no strategy can be resolved.
    """
    generator = TerrainGenerator(default_strategy=strategy)
    return generator.resolve_strategy(profile).landing_hint(profile)


def generate_world(
    profile: GenerationProfile,
    seed: int,
    default_strategy: str | TerrainStrategy | None = "mesh",
) -> GeneratedWorld:
    """Generate a world with the built-in strategies."""
    return TerrainGenerator(default_strategy=default_strategy).generate(profile, seed)
