from datetime import datetime, timedelta

import pytest

from routecast.backend.route_sampling import WeatherSamplePoint, sample_route_points
from routecast.backend.route_segments import NEUTRAL_COLOR, create_route_segments, weather_to_color
from routecast.backend.weather import WeatherObservation

T0 = datetime(2026, 10, 18, 9, 0)
DRY = WeatherObservation(temperature=18.0, precipitation=0.0, weather_code=0)
WET = WeatherObservation(temperature=14.0, precipitation=1.2, weather_code=63)


def _wsp(lat, lon, minutes, weather, **flags):
    return WeatherSamplePoint(lat=lat, lon=lon, time=T0 + timedelta(minutes=minutes),
                              geometry_index=0, weather=weather, **flags)


@pytest.mark.parametrize("precip,expected", [
    (0.0, '#22c55e'),
    (0.2, '#fbbf24'),
    (0.5, '#f97316'),
    (1.9, '#f97316'),
    (2.0, '#ef4444'),
    (12.0, '#ef4444'),
])
def test_color_by_precipitation(precip, expected):
    assert weather_to_color(WeatherObservation(12.0, precip, 61)) == expected


@pytest.mark.parametrize("code", [56, 57, 66, 67, 71, 73, 75, 77, 85, 86, 95, 96, 99])
def test_dangerous_codes_are_red_without_precipitation(code):
    assert weather_to_color(WeatherObservation(0.0, 0.0, code)) == '#ef4444'


def test_thunderstorm_beats_zero_precipitation():
    assert weather_to_color(WeatherObservation(20.0, 0.0, 95)) == '#ef4444'


def test_missing_weather_is_grey():
    assert weather_to_color(None) == '#94a3b8'


def test_two_clear_samples_give_two_green_halves():
    poly = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]
    samples = [_wsp(0.0, 0.0, 0, DRY, is_start=True), _wsp(0.0, 2.0, 120, DRY, is_end=True)]
    segs = create_route_segments(poly, samples, 7200, T0)
    assert len(segs) == 2
    assert all(s.color == '#22c55e' for s in segs)
    assert segs[0].positions == [(0.0, 0.0), (0.0, 1.0)]
    assert segs[1].positions == [(0.0, 1.0), (0.0, 2.0)]


def test_halves_take_their_own_sample_colors():
    poly = [(0.0, 0.1 * i) for i in range(5)]
    samples = [_wsp(0.0, 0.0, 0, DRY), _wsp(0.0, 0.4, 60, WET)]
    segs = create_route_segments(poly, samples, 3600, T0)
    assert [s.color for s in segs] == ['#22c55e', '#f97316']
    assert segs[0].weather == DRY and segs[1].weather == WET
    # Shared boundary vertex
    assert segs[0].positions[-1] == segs[1].positions[0]


def test_fewer_than_two_samples_falls_back_to_whole_route():
    poly = [(0.0, 0.0), (0.0, 1.0)]
    segs = create_route_segments(poly, [_wsp(0.0, 0.0, 0, DRY)], 3600, T0)
    assert len(segs) == 1
    assert segs[0].color == NEUTRAL_COLOR
    assert segs[0].positions == poly
    assert segs[0].weather is None


def test_all_degenerate_pairs_fall_back_to_whole_route():
    poly = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]
    samples = [_wsp(0.0, 0.0, 0, DRY), _wsp(0.0, 0.0, 0, WET)]
    segs = create_route_segments(poly, samples, 7200, T0)
    assert len(segs) == 1 and segs[0].color == NEUTRAL_COLOR


def test_segments_form_contiguous_subpath():
    poly = [(41.0 + 0.013 * i, 2.0 - 0.021 * i) for i in range(37)]
    duration = 2 * 3600 + 600
    samples = sample_route_points(poly, duration, T0, 10)
    annotated = [WeatherSamplePoint.from_sample(s, DRY if i % 2 else WET) for i, s in enumerate(samples)]
    segs = create_route_segments(poly, annotated, duration, T0)
    assert all(len(s.positions) >= 2 for s in segs)

    joined = []
    for s in segs:
        for pos in s.positions:
            if joined and joined[-1] == pos:
                continue
            joined.append(pos)
    indices = [poly.index(p) for p in joined]
    assert indices == list(range(indices[0], indices[-1] + 1))
    assert indices[0] == 0 and indices[-1] == len(poly) - 1
