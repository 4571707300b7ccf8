import pytest

from argthread.rate_map import RateMap


@pytest.fixture
def rate_map(tmp_path):
    path = tmp_path / "map.txt"
    path.write_text("0 10 1.0\n10 20 3.0\n")
    return RateMap.load(path)


def test_load_sets_breakpoints(rate_map):
    assert rate_map.coordinates == [0.0, 10.0, 20.0]
    assert rate_map.sequence_length == 20.0
    assert len(rate_map.rate_distances) == len(rate_map.coordinates)
    assert rate_map.rate_distances[0] == 0.0


def test_cumulative_distance_matches_breakpoints(rate_map):
    for coordinate, distance in zip(rate_map.coordinates, rate_map.rate_distances):
        assert rate_map.cumulative_distance(coordinate) == pytest.approx(distance)


def test_interpolated_values(rate_map):
    assert rate_map.cumulative_distance(5) == pytest.approx(5.0)
    assert rate_map.cumulative_distance(15) == pytest.approx(25.0)


def test_mean_rate(rate_map):
    assert rate_map.mean_rate() == pytest.approx(2.0)


def test_segment_distance_is_difference(rate_map):
    whole = rate_map.segment_distance(0, 20)
    assert whole == pytest.approx(rate_map.rate_distances[-1])
    parts = rate_map.segment_distance(0, 7) + rate_map.segment_distance(7, 20)
    assert parts == pytest.approx(whole)


def test_cumulative_distance_monotone(rate_map):
    positions = [0, 2.5, 9.9, 10, 12, 19.5, 20]
    distances = [rate_map.cumulative_distance(x) for x in positions]
    assert distances == sorted(distances)


def test_find_index_brackets_position(rate_map):
    for x in (0, 3, 10, 14.2, 19.99):
        index = rate_map.find_index(x)
        assert rate_map.coordinates[index] <= x < rate_map.coordinates[index + 1]


def test_find_index_before_start_raises(rate_map):
    with pytest.raises(ValueError):
        rate_map.find_index(-1)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        RateMap.load(tmp_path / "absent.txt")


def test_empty_file_raises(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("")
    with pytest.raises(ValueError):
        RateMap.load(path)


def test_malformed_file_raises(tmp_path):
    path = tmp_path / "bad.txt"
    path.write_text("0 ten 1.0\n")
    with pytest.raises(ValueError):
        RateMap.load(path)