import numpy as np
import pytest

from clarion.strategies.softmax import SUM_TOLERANCE, softmax, softmax_allocation
from clarion.strategies.zone_based import (
    calculate_zone_allocations,
    create_zones,
    zone_based_allocation,
)


class TestSoftmax:
    def test_weights_sum_to_one(self):
        z = np.random.default_rng(1).normal(size=500)
        for temperature in (0.1, 1.0, 10.0):
            weights = softmax(z, temperature)
            assert abs(weights.sum() - 1.0) < SUM_TOLERANCE
            assert (weights >= 0).all()

    def test_large_values_are_stable(self):
        weights = softmax([1000.0, 999.0, -1000.0])
        assert np.isfinite(weights).all()
        assert weights[0] > weights[1] > weights[2]

    def test_empty_input(self):
        assert len(softmax([])) == 0

    @pytest.mark.parametrize("temperature", [0, -1.0])
    def test_non_positive_temperature_raises(self, temperature):
        with pytest.raises(ValueError, match="Temperature must be positive"):
            softmax([1.0, 2.0], temperature)

    def test_nan_treated_as_zero(self):
        weights = softmax([np.nan, 0.0])
        assert weights == pytest.approx([0.5, 0.5])

    def test_allocation_is_budget_neutral(self):
        z = np.array([-2.0, -1.0, 0.0, 1.0, 2.0])
        multipliers = softmax_allocation(z)
        assert multipliers.sum() == pytest.approx(len(z))
        # Lowest z-score gets the largest multiplier
        assert multipliers.argmax() == 0


class TestZoneBased:
    def test_zones_cover_range(self):
        z = np.array([-1.0, -0.6, -0.1, 0.0, 0.4, 0.9])
        zones = create_zones(z, zone_size=0.5)
        assert zones[0].min_z == -1.0
        assert zones[-1].max_z >= 0.9
        assert sum(zone.day_count for zone in zones) == len(z)
        assert sum(zone.rarity for zone in zones) == pytest.approx(1.0)

    def test_zero_width_range_gives_one_zone(self):
        zones = create_zones([0.5, 0.5, 0.5], zone_size=0.25)
        assert len(zones) == 1
        assert zones[0].day_count == 3

    def test_no_finite_values(self):
        assert create_zones([np.nan, np.inf]) == []

    def test_invalid_zone_size(self):
        with pytest.raises(ValueError):
            create_zones([1.0, 2.0], zone_size=0)

    def test_only_undervalued_zones_get_bonus(self):
        zones = create_zones([-2.0, -1.9, 0.5, 0.6, 0.7, 0.8], zone_size=0.5)
        allocations = calculate_zone_allocations(zones, baseline_multiplier=1.0, max_bonus=1.5)
        for allocation in allocations:
            if allocation.zone.max_z < 0:
                expected = 1.0 + (1 - allocation.zone.rarity) * 1.5
                assert allocation.allocation_multiplier == pytest.approx(expected)
            else:
                assert allocation.allocation_multiplier == 1.0

    def test_multipliers_within_bounds(self):
        z = np.random.default_rng(3).normal(size=300)
        multipliers = zone_based_allocation(z, zone_size=0.25, max_bonus=1.5)
        assert len(multipliers) == len(z)
        assert (multipliers >= 1.0).all()
        assert (multipliers <= 2.5).all()
        # Above-zero days never get a bonus
        assert (multipliers[z >= 0] == 1.0).all()

    def test_non_finite_days_get_baseline(self):
        multipliers = zone_based_allocation([np.nan, -3.0, 0.0, 1.0], zone_size=0.5)
        assert multipliers[0] == 1.0
        assert multipliers[1] > 1.0

    def test_tiny_zone_size_only_builds_occupied_zones(self):
        z = np.linspace(-2.0, 2.0, 60)
        zones = create_zones(z, zone_size=1e-11)
        assert 0 < len(zones) <= len(z)
        assert sum(zone.day_count for zone in zones) == len(z)
        assert [zone.index for zone in zones] == sorted(zone.index for zone in zones)

        multipliers = zone_based_allocation(z, zone_size=1e-11, max_bonus=1.5)
        assert len(multipliers) == len(z)
        assert (multipliers >= 1.0).all()
        assert (multipliers <= 2.5).all()
        assert (multipliers[z >= 0] == 1.0).all()

    def test_zone_size_too_small_for_range(self):
        with pytest.raises(ValueError, match="too small"):
            create_zones([-1e300, 1e300], zone_size=1e-300)
