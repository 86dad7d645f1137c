from datetime import datetime, timedelta

import numpy as np
import pytest

from routecast.backend.route_sampling import (
    cumulative_distances,
    haversine_km,
    index_at_distance,
    sample_route_points,
)

T0 = datetime(2026, 10, 18, 9, 0)
ONE_DEG_KM = 6371.0 * np.pi / 180.0


def test_cumulative_distances_single_point():
    table = cumulative_distances([(40.0, -3.0)])
    assert table.tolist() == [0.0]


def test_cumulative_distances_monotonic_and_sized():
    poly = [(40.4, -3.7), (40.5, -3.5), (40.5, -3.5), (41.0, -2.0), (41.6, -0.9)]
    table = cumulative_distances(poly)
    assert len(table) == len(poly)
    assert table[0] == 0.0
    assert all(table[i] <= table[i + 1] for i in range(len(table) - 1))
    # Coincident points add nothing
    assert table[2] == table[1]


def test_cumulative_distances_matches_scalar_haversine():
    poly = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
    table = cumulative_distances(poly)
    assert table[1] == pytest.approx(ONE_DEG_KM, rel=1e-9)
    expected = haversine_km(0.0, 0.0, 0.0, 1.0) + haversine_km(0.0, 1.0, 1.0, 1.0)
    assert table[-1] == pytest.approx(expected, rel=1e-9)


def test_index_at_distance_prefers_earliest_tie():
    table = np.array([0.0, 5.0, 5.0, 9.0])
    assert index_at_distance(table, 5.0) == 1
    assert index_at_distance(table, 0.0) == 0
    assert index_at_distance(table, 6.0) == 3
    # Past the end resolves to the last index
    assert index_at_distance(table, 99.0) == 3


def test_scenario_equator_two_hours_hourly():
    poly = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]
    pts = sample_route_points(poly, 7200, T0, 60)
    assert len(pts) == 3
    assert pts[0].is_start and pts[0].time == T0 and pts[0].position == (0.0, 0.0)
    assert pts[1].time == T0 + timedelta(hours=1)
    assert pts[1].lat == pytest.approx(0.0)
    assert pts[1].lon == pytest.approx(1.0)
    assert pts[2].is_end and pts[2].time == T0 + timedelta(hours=2)
    assert pts[2].position == (0.0, 2.0)
    assert not pts[1].is_start and not pts[1].is_end


def test_end_sample_appended_when_far_from_destination():
    poly = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]
    pts = sample_route_points(poly, 7200, T0, 50)
    # 0, 50, 100 minutes, then the end at 120 minutes about 37 km further on
    assert [p.time for p in pts] == [T0 + timedelta(minutes=m) for m in (0, 50, 100, 120)]
    assert pts[-1].is_end and pts[-1].position == (0.0, 2.0)
    assert pts[-1].geometry_index == 2
    assert sum(p.is_end for p in pts) == 1
    assert sum(p.is_start for p in pts) == 1


def test_interval_spacing_and_coverage():
    poly = [(40.0 + 0.01 * i, -3.0 + 0.02 * i) for i in range(60)]
    duration = 3 * 3600 + 1234
    pts = sample_route_points(poly, duration, T0, 15)
    assert pts[0].is_start and pts[0].time == T0
    assert pts[-1].is_end and pts[-1].time == T0 + timedelta(seconds=duration)
    assert pts[-1].position == poly[-1]
    gaps = [(pts[i + 1].time - pts[i].time).total_seconds() for i in range(len(pts) - 1)]
    assert all(g == 900 for g in gaps[:-1]), gaps
    assert 0 < gaps[-1] <= 900


def test_interpolation_stays_on_segment():
    poly = [(10.0, 10.0), (10.0, 11.0)]
    pts = sample_route_points(poly, 4 * 3600, T0, 60)
    mid = pts[2]
    assert mid.geometry_index == 1
    assert mid.lat == pytest.approx(10.0)
    assert 10.0 < mid.lon < 11.0


def test_duplicate_points_resolve_to_first_index():
    poly = [(0.0, 0.0), (0.0, 1.0), (0.0, 1.0), (0.0, 2.0)]
    pts = sample_route_points(poly, 7200, T0, 60)
    assert pts[1].geometry_index == 1
    assert pts[1].lon == pytest.approx(1.0)


def test_zero_length_route_brackets_from_index_one():
    poly = [(0.0, 0.0), (0.0, 0.0), (0.0, 0.0)]
    pts = sample_route_points(poly, 3600, T0, 30)
    assert len(pts) == 3
    assert pts[1].geometry_index == 1
    assert pts[1].position == (0.0, 0.0)
    assert pts[-1].is_end and pts[-1].geometry_index == 2


def test_short_trip_keeps_start_and_adds_end():
    # Under one interval and under 2 km: nothing in between, start must stay put
    poly = [(40.0, -3.0), (40.005, -3.0)]
    pts = sample_route_points(poly, 300, T0, 15)
    assert len(pts) == 2
    assert pts[0].is_start and not pts[0].is_end
    assert pts[0].time == T0 and pts[0].position == (40.0, -3.0)
    assert pts[1].is_end and not pts[1].is_start
    assert pts[1].time == T0 + timedelta(seconds=300)
    assert pts[1].position == (40.005, -3.0)


@pytest.mark.parametrize("poly,duration,interval", [
    ([(0.0, 0.0)], 3600, 15),
    ([(0.0, 0.0), (0.0, 1.0)], 0, 15),
    ([(0.0, 0.0), (0.0, 1.0)], 3600, 0),
])
def test_invalid_input_returns_empty(poly, duration, interval):
    assert sample_route_points(poly, duration, T0, interval) == []
