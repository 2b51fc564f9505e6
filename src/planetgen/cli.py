"""Command-line preview of generated worlds."""

import argparse
import logging
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """CLI entry point: generate a world and print a summary."""
    parser = argparse.ArgumentParser(
        description="Generate a planet from a profile and summarize the result"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--profile", "-p", type=str, help="Profile name (in --profiles-dir) or TOML path"
    )
    source.add_argument(
        "--catalog", "-c", type=str, help="Catalog TOML to pick a profile from"
    )
    parser.add_argument(
        "--profiles-dir",
        type=str,
        default="profiles",
        help="Directory searched for profile names (default: profiles)",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (default: 12345, or the catalog roll)"
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default="mesh",
        help="Strategy used when the profile names none (default: mesh)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Import here to avoid slow startup for --help
    from .catalog import load_catalog
    from .config import find_profile, load_profile
    from .exceptions import ConfigurationError
    from .generator import TerrainGenerator
    from .rng import DeterministicRng
    from .validation import validate_world

    try:
        if args.catalog:
            rng = DeterministicRng(args.seed) if args.seed is not None else None
            profile, seed = load_catalog(Path(args.catalog)).pick(rng)
        else:
            profile = load_profile(find_profile(args.profile, Path(args.profiles_dir)))
            seed = args.seed if args.seed is not None else 12345

        print(f"Generating '{profile.name}' with seed {seed}")

        start_time = time.time()
        world = TerrainGenerator(default_strategy=args.strategy).generate(profile, seed)
        gen_time = time.time() - start_time
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    heights = world.grid.heights
    print()
    print(f"Generation complete in {gen_time:.2f}s ({world.strategy} strategy)")
    print(f"  grid: {world.grid.cols}x{world.grid.rows} samples")
    print(f"  mesh: {world.mesh.vertex_count} vertices, {world.mesh.triangle_count} triangles")
    print(f"  height: {heights.min():.2f} .. {heights.max():.2f}")
    print(f"  structures: {len(world.structures)}")
    print(f"  monsters: {len(world.monsters)}")
    print(f"  items: {len(world.items)}")
    print(f"  landing hint: {world.landing_hint}")

    result = validate_world(world)
    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
