import pytest

from geo_engine.grid import build_grid_key, round_coordinate


def test_build_grid_key_rounds_to_precision() -> None:
    assert build_grid_key(-23.550512, -46.633309) == "-23.55051,-46.63331"


def test_build_grid_key_drops_trailing_zeros() -> None:
    assert build_grid_key(-23.5505, -46.6333) == "-23.5505,-46.6333"
    assert build_grid_key(10, 20) == "10,20"
    assert build_grid_key(0.00001, 0) == "0.00001,0"


def test_nearby_points_share_a_cell() -> None:
    assert build_grid_key(-23.5505101, -46.6333102) == build_grid_key(-23.5505099, -46.6333098)


def test_coarser_precision_merges_more() -> None:
    assert build_grid_key(-23.551, -46.634, precision=2) == build_grid_key(-23.554, -46.631, precision=2)


def test_build_grid_key_accepts_numeric_strings() -> None:
    assert build_grid_key("-23.5505", "-46.6333") == "-23.5505,-46.6333"


@pytest.mark.parametrize("lat,lng", [(None, 1.0), ("abc", 1.0), (float("nan"), 1.0), (1.0, float("inf")), (True, 1.0)])
def test_build_grid_key_rejects_invalid_input(lat, lng) -> None:
    assert build_grid_key(lat, lng) is None


def test_negative_zero_shares_cell_with_zero() -> None:
    assert round_coordinate(-0.000001) == 0.0
    assert build_grid_key(-0.000001, 0.000001) == "0,0"


def test_negative_precision_raises() -> None:
    with pytest.raises(ValueError):
        build_grid_key(1.0, 1.0, precision=-1)
