"""Tests for scatter placement."""

import numpy as np
import pytest
from conftest import make_grid, structure_rule
from scipy.spatial.transform import Rotation

from planetgen.config import Placeable, PlacementCategory, PopulationRule
from planetgen.heightfield import HeightfieldGrid
from planetgen.rng import DeterministicRng
from planetgen.scatter import (
    ScatterPlacer,
    ground_snap_offset,
    slope_angles,
    tilt_to_normal,
)

UP = np.array([0.0, 1.0, 0.0])


class CountingRng(DeterministicRng):
    """DeterministicRng that counts integer draws."""

    def __init__(self, seed: int):
        super().__init__(seed)
        self.int_calls = 0

    def next_int(self, min_value=None, max_value=None):
        self.int_calls += 1
        return super().next_int(min_value, max_value)


def hilly_grid() -> HeightfieldGrid:
    return make_grid(30, 30, height_fn=lambda x, z: 3.0 * np.sin(x * 0.4) * np.cos(z * 0.3))


class TestSingleStructure:
    """Tests for the unconstrained single-structure scenario."""

    @pytest.mark.parametrize("seed", [0, 1, 42, 12345])
    def test_places_exactly_one(self, flat_grid: HeightfieldGrid, seed: int) -> None:
        """An unconstrained rule with count 1 always places one instance."""
        rule = structure_rule(min_count=1, max_count=1, max_slope=90.0, avoid_landing_zone=False)
        placed = ScatterPlacer(flat_grid, 2.0).place_rule(rule, DeterministicRng(seed))
        assert len(placed) == 1

    def test_places_one_on_hills(self) -> None:
        """The scenario holds on uneven ground too."""
        rule = structure_rule(min_count=1, max_count=1, max_slope=90.0, avoid_landing_zone=False)
        placed = ScatterPlacer(hilly_grid(), 2.0).place_rule(rule, DeterministicRng(3))
        assert len(placed) == 1


class TestCounts:
    """Tests for count bounds and attempt budgets."""

    def test_count_within_bounds(self, flat_grid: HeightfieldGrid) -> None:
        """With easy constraints the placed count lands in [min, max]."""
        rule = PopulationRule(
            category=PlacementCategory.ITEM, placeable="crate", min_count=3, max_count=8
        )
        placer = ScatterPlacer(flat_grid, 2.0)
        for seed in range(20):
            placed = placer.place_rule(rule, DeterministicRng(seed))
            assert 3 <= len(placed) <= 8

    def test_never_above_max(self) -> None:
        """Placed counts never exceed max_count."""
        rule = structure_rule(min_count=0, max_count=4, max_slope=90.0, avoid_landing_zone=False)
        placer = ScatterPlacer(hilly_grid(), 2.0)
        for seed in range(20):
            assert len(placer.place_rule(rule, DeterministicRng(seed))) <= 4

    def test_structure_attempt_budget(self, flat_grid: HeightfieldGrid) -> None:
        """An impossible structure rule gives up after 15 attempts per target."""
        rule = structure_rule(min_count=3, max_count=3, max_height=-100.0)
        rng = CountingRng(1)
        placed = ScatterPlacer(flat_grid, 2.0).place_rule(rule, rng)
        assert placed == []
        # One draw for the target count, then one per attempt
        assert rng.int_calls == 1 + 45

    def test_monster_attempt_budget(self, flat_grid: HeightfieldGrid) -> None:
        """An impossible monster rule gives up after 20 attempts per target."""
        rule = PopulationRule(
            category=PlacementCategory.MONSTER,
            placeable="crawler",
            min_count=3,
            max_count=3,
            max_height=-100.0,
        )
        rng = CountingRng(1)
        assert ScatterPlacer(flat_grid, 2.0).place_rule(rule, rng) == []
        assert rng.int_calls == 1 + 60

    def test_custom_attempt_multiplier(self, flat_grid: HeightfieldGrid) -> None:
        """Attempt multipliers can be overridden."""
        rule = structure_rule(min_count=2, max_count=2, max_height=-100.0)
        rng = CountingRng(1)
        placer = ScatterPlacer(flat_grid, 2.0, attempt_multipliers={PlacementCategory.STRUCTURE: 4})
        placer.place_rule(rule, rng)
        assert rng.int_calls == 1 + 8

    def test_inactive_rule_draws_nothing(self, flat_grid: HeightfieldGrid) -> None:
        """Rules without a placeable or with max_count 0 are skipped."""
        placer = ScatterPlacer(flat_grid, 2.0)
        for rule in (
            PopulationRule(category=PlacementCategory.ITEM, min_count=1, max_count=3),
            PopulationRule(category=PlacementCategory.ITEM, placeable="x", max_count=0),
        ):
            rng = CountingRng(1)
            assert placer.place_rule(rule, rng) == []
            assert rng.int_calls == 0


class TestConstraints:
    """Tests for per-instance constraint satisfaction."""

    def test_structures_satisfy_rule(self) -> None:
        """Placed structures respect height, slope and landing clearance."""
        grid = hilly_grid()
        rule = structure_rule(min_count=5, max_count=10, min_height=-1.0, max_height=2.0, max_slope=25.0)
        placer = ScatterPlacer(grid, 4.0)
        slopes = slope_angles(grid.normals)

        placed = placer.place_rule(rule, DeterministicRng(7))
        assert placed
        for instance in placed:
            index = instance.vertex_index
            height = grid.positions[index, 1]
            assert -1.0 <= height <= 2.0
            assert slopes[index] <= 25.0
            assert grid.planar_distance[index] >= 4.0 + 2.0
            assert placer.rejection_reason(rule, index) is None

    def test_monsters_respect_radius_band(self) -> None:
        """Monsters stay inside their radius band and clear of the pad."""
        grid = make_grid(40, 40)
        rule = PopulationRule(
            category=PlacementCategory.MONSTER,
            placeable="crawler",
            min_count=10,
            max_count=10,
            min_radius_from_center=8.0,
            max_radius_from_center=14.0,
        )
        placed = ScatterPlacer(grid, 2.0).place_rule(rule, DeterministicRng(11))
        assert placed
        for instance in placed:
            distance = grid.planar_distance[instance.vertex_index]
            assert 8.0 <= distance <= 14.0

    def test_structures_ignore_radius_band(self, flat_grid: HeightfieldGrid) -> None:
        """Radius fields do not constrain structures."""
        rule = structure_rule(min_radius_from_center=100.0, avoid_landing_zone=False)
        placer = ScatterPlacer(flat_grid, 2.0)
        assert placer.rejection_reason(rule, 0) is None

    def test_rejection_reasons(self, flat_grid: HeightfieldGrid) -> None:
        """Each failing constraint is reported by name."""
        placer = ScatterPlacer(flat_grid, 2.0)
        centre = 10 * 21 + 10
        corner = 0

        assert placer.rejection_reason(structure_rule(min_height=1.0), corner) == "height"
        assert placer.rejection_reason(structure_rule(), centre) == "landing_zone"
        assert placer.rejection_reason(structure_rule(), corner) is None

        monster = PopulationRule(category=PlacementCategory.MONSTER, placeable="m")
        assert placer.rejection_reason(monster, corner) == "radius"

    def test_slope_rejection(self) -> None:
        """Steep vertices are rejected."""
        grid = make_grid(10, 10, height_fn=lambda x, z: x * 2.0)
        placer = ScatterPlacer(grid, 0.0)
        assert placer.rejection_reason(structure_rule(avoid_landing_zone=False), 0) == "slope"

    def test_custom_exclusion_margin(self, flat_grid: HeightfieldGrid) -> None:
        """A wider landing margin keeps placements further out."""
        rule = structure_rule(min_count=5, max_count=5)
        placer = ScatterPlacer(flat_grid, 2.0, exclusion_margins={PlacementCategory.STRUCTURE: 5.0})
        for instance in placer.place_rule(rule, DeterministicRng(2)):
            assert flat_grid.planar_distance[instance.vertex_index] >= 7.0


class TestInstances:
    """Tests for instance position and orientation."""

    def test_position_on_sampled_vertex(self, flat_grid: HeightfieldGrid) -> None:
        """Instances sit on the x and z of their sampled vertex."""
        rule = structure_rule(min_count=3, max_count=3)
        for instance in ScatterPlacer(flat_grid, 2.0).place_rule(rule, DeterministicRng(4)):
            vertex = flat_grid.positions[instance.vertex_index]
            assert instance.position[0] == vertex[0]
            assert instance.position[2] == vertex[2]
            assert instance.position[1] == pytest.approx(vertex[1])
            assert instance.category == PlacementCategory.STRUCTURE
            assert instance.placeable.asset_id == "structure"

    def test_yaw_only_when_not_aligned(self, flat_grid: HeightfieldGrid) -> None:
        """Unaligned orientations rotate only about +Y."""
        rule = structure_rule(min_count=4, max_count=4)
        for instance in ScatterPlacer(flat_grid, 2.0).place_rule(rule, DeterministicRng(5)):
            qx, qy, qz, qw = instance.orientation
            assert qx == pytest.approx(0.0, abs=1e-12)
            assert qz == pytest.approx(0.0, abs=1e-12)
            assert np.hypot(qy, qw) == pytest.approx(1.0)

    def test_aligned_up_matches_normal(self) -> None:
        """Aligned instances have their up-axis on the surface normal."""
        grid = make_grid(20, 20, height_fn=lambda x, z: x * 0.5)
        rule = PopulationRule(
            category=PlacementCategory.MONSTER,
            placeable="crawler",
            min_count=4,
            max_count=4,
            min_radius_from_center=0.0,
        )
        placed = ScatterPlacer(grid, 2.0).place_rule(rule, DeterministicRng(6))
        assert placed
        for instance in placed:
            up = instance.rotation.apply(UP)
            np.testing.assert_allclose(up, grid.normals[instance.vertex_index], atol=1e-9)

    def test_ground_snap_and_offset(self, flat_grid: HeightfieldGrid) -> None:
        """The bounding box bottom rests on the ground, then extra_y_offset lifts it."""
        placeable = Placeable(asset_id="hut", bounds_min=(-1.0, -0.5, -1.0), bounds_max=(1.0, 2.0, 1.0))
        rule = structure_rule(placeable=placeable, min_count=2, max_count=2, extra_y_offset=0.25)
        for instance in ScatterPlacer(flat_grid, 2.0).place_rule(rule, DeterministicRng(8)):
            assert instance.position[1] == pytest.approx(0.75)

    def test_deterministic(self) -> None:
        """Equal streams give identical placements."""
        grid = hilly_grid()
        rule = structure_rule(min_count=2, max_count=6, max_slope=60.0)
        placer = ScatterPlacer(grid, 2.0)
        assert placer.place_rule(rule, DeterministicRng(9)) == placer.place_rule(rule, DeterministicRng(9))


class TestRuleIsolation:
    """Tests for per-rule sub-streams."""

    def test_removing_later_rule_keeps_earlier(self, flat_grid: HeightfieldGrid) -> None:
        """Dropping a later rule leaves earlier placements unchanged."""
        first = structure_rule(min_count=2, max_count=5)
        second = structure_rule(placeable=Placeable(asset_id="other"), min_count=2, max_count=5)
        placer = ScatterPlacer(flat_grid, 2.0)

        both = placer.place_category([first, second], DeterministicRng(10))
        alone = placer.place_category([first], DeterministicRng(10))
        assert [p for p in both if p.rule_index == 0] == alone

    def test_changing_later_rule_keeps_earlier(self, flat_grid: HeightfieldGrid) -> None:
        """A later rule's draws do not shift an earlier rule's stream."""
        first = structure_rule(min_count=2, max_count=5)
        placer = ScatterPlacer(flat_grid, 2.0)

        a = placer.place_category([first, structure_rule(min_count=1, max_count=1)], DeterministicRng(10))
        b = placer.place_category([first, structure_rule(min_count=9, max_count=9)], DeterministicRng(10))
        assert [p for p in a if p.rule_index == 0] == [p for p in b if p.rule_index == 0]

    def test_rule_index_recorded(self, flat_grid: HeightfieldGrid) -> None:
        """Instances carry the index of the rule that placed them."""
        rules = [structure_rule(min_count=1, max_count=1), structure_rule(min_count=2, max_count=2)]
        placed = ScatterPlacer(flat_grid, 2.0).place_category(rules, DeterministicRng(12))
        assert sorted(p.rule_index for p in placed) == [0, 1, 1]


class TestOrientationHelpers:
    """Tests for slope and rotation helpers."""

    def test_slope_angles(self) -> None:
        """Slope is the angle from +Y in degrees; zero normals are flat."""
        normals = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 1.0, 0.0]])
        np.testing.assert_allclose(slope_angles(normals), [0.0, 90.0, 0.0, 45.0])

    def test_tilt_identity_for_up(self) -> None:
        """Up and degenerate normals need no tilt."""
        for normal in (UP, np.zeros(3)):
            np.testing.assert_allclose(tilt_to_normal(normal).as_quat(), [0.0, 0.0, 0.0, 1.0])

    def test_tilt_maps_up_to_normal(self) -> None:
        """The tilt takes +Y onto any normal, including straight down."""
        for normal in ([0.3, 0.9, -0.2], [1.0, 0.0, 0.0], [0.0, -1.0, 0.0]):
            target = np.asarray(normal) / np.linalg.norm(normal)
            np.testing.assert_allclose(tilt_to_normal(target).apply(UP), target, atol=1e-12)

    def test_ground_snap_offset(self) -> None:
        """The offset lifts the lowest rotated corner to zero."""
        placeable = Placeable(asset_id="a", bounds_min=(-1.0, 0.0, -3.0), bounds_max=(1.0, 2.0, 1.0))
        assert ground_snap_offset(placeable, Rotation.identity()) == pytest.approx(0.0)
        rotated = Rotation.from_euler("x", 90, degrees=True)
        assert ground_snap_offset(placeable, rotated) == pytest.approx(1.0)
        assert ground_snap_offset(Placeable(asset_id="b"), rotated) == 0.0
