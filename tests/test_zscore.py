import math

import numpy as np
import pytest

from clarion.zscore import Z_SCORE_WINDOWS, calculate_z_scores, resolve_window


class TestCalculateZScores:
    def test_output_length_matches_input(self):
        series = np.linspace(1, 50, 50)
        for window in (3, 10, 100, math.inf):
            assert len(calculate_z_scores(series, window)) == 50

    def test_empty_series(self):
        assert len(calculate_z_scores([], 10)) == 0

    def test_first_sample_is_nan(self):
        z = calculate_z_scores([1.0, 2.0, 3.0], 3)
        assert math.isnan(z[0])
        assert z[1] == pytest.approx(1.0)
        assert z[2] == pytest.approx(1 / math.sqrt(2 / 3))

    def test_nan_sample_stays_nan(self):
        z = calculate_z_scores([1.0, 2.0, np.nan, 4.0], 10)
        assert math.isnan(z[2])
        assert not math.isnan(z[3])

    def test_none_is_treated_as_nan(self):
        z = calculate_z_scores([1.0, None, 3.0], 10)
        assert math.isnan(z[1])
        assert z[2] == pytest.approx(1.0)

    def test_fewer_than_two_valid_samples(self):
        z = calculate_z_scores([np.nan, np.nan, 5.0, np.nan], 2)
        assert np.isnan(z).all()

    def test_constant_window_is_zero(self):
        z = calculate_z_scores([0.1] * 10, 5)
        assert math.isnan(z[0])
        assert (z[1:] == 0.0).all()

    def test_window_only_uses_trailing_samples(self):
        # Last three samples are constant, so the old outlier must not leak in
        z = calculate_z_scores([100.0, 1.0, 1.0, 1.0], 3)
        assert z[3] == 0.0

    def test_infinite_window_uses_all_history(self):
        series = [100.0, 1.0, 1.0, 1.0]
        z = calculate_z_scores(series, math.inf)
        values = np.array(series)
        expected = (1.0 - values.mean()) / values.std()
        assert z[3] == pytest.approx(expected)
        assert np.array_equal(z, calculate_z_scores(series, None), equal_nan=True)

    def test_no_lookahead(self):
        series = np.random.default_rng(7).normal(size=60)
        full = calculate_z_scores(series, 20)
        prefix = calculate_z_scores(series[:40], 20)
        assert np.allclose(full[:40], prefix, equal_nan=True)

    def test_non_positive_window_raises(self):
        with pytest.raises(ValueError):
            calculate_z_scores([1.0, 2.0], 0)


class TestResolveWindow:
    def test_presets(self):
        assert resolve_window("2yr") == 730
        assert resolve_window("4yr") == 1460
        assert resolve_window("8yr") == 2920
        assert resolve_window("all") == math.inf
        assert set(Z_SCORE_WINDOWS) == {"2yr", "4yr", "8yr", "all"}

    def test_day_counts(self):
        assert resolve_window("365") == 365
        assert resolve_window(90) == 90
        assert resolve_window(None) == math.inf

    @pytest.mark.parametrize("window", ["3yr", "-5", "0", 0, -1])
    def test_invalid(self, window):
        with pytest.raises(ValueError):
            resolve_window(window)
