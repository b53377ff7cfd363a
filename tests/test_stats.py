import math

import pytest

from engines.stats import clamp, gini_index, jaccard_similarity, median, trend_slope


def test_gini_is_zero_for_identical_values():
    assert gini_index([0.4, 0.4, 0.4, 0.4]) == 0.0


def test_gini_handles_empty_and_zero_mean():
    assert gini_index([]) == 0.0
    assert gini_index([0, 0, 0]) == 0.0


def test_gini_matches_formula_on_unsorted_input():
    # sorted: 1, 2, 3 -> (-2*1 + 0*2 + 2*3) / (9 * 2) = 4 / 18
    assert gini_index([3, 1, 2]) == pytest.approx(4 / 18)


def test_gini_single_concentrated_value():
    # sorted: 0, 0, 0, 1 -> (3 * 1) / (16 * 0.25) = 0.75
    assert gini_index([0, 1, 0, 0]) == pytest.approx(0.75)


def test_median_odd_even_and_empty():
    assert median([5, 1, 3]) == 3.0
    assert median([4, 1, 3, 2]) == 2.5
    with pytest.raises(ValueError):
        median([])


def test_trend_slope_of_line():
    assert trend_slope([1, 3, 5, 7]) == pytest.approx(2.0)
    assert trend_slope([10, 8, 6], xs=[0, 1, 2]) == pytest.approx(-2.0)


def test_trend_slope_degenerate_inputs():
    assert trend_slope([]) == 0.0
    assert trend_slope([4]) == 0.0
    assert trend_slope([1, 2, 3], xs=[5, 5, 5]) == 0.0
    with pytest.raises(ValueError):
        trend_slope([1, 2], xs=[1])


def test_jaccard_similarity_examples():
    assert jaccard_similarity({"a", "b", "c"}, {"a", "b", "d"}) == pytest.approx(0.5)
    assert jaccard_similarity(["x"], ["x"]) == 1.0
    assert jaccard_similarity([], []) == 0.0


def test_clamp_bounds():
    assert clamp(-5) == 0.0
    assert clamp(150) == 100.0
    assert clamp(42.5) == 42.5
    assert clamp(500, 30, 300) == 300
    assert not math.isnan(clamp(0.0))
