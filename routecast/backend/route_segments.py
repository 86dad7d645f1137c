import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from routecast.backend.route_sampling import LatLon, WeatherSamplePoint, cumulative_distances, index_at_distance
from routecast.backend.weather import (
    COLOR_CLEAR,
    COLOR_HEAVY,
    COLOR_LIGHT,
    COLOR_RAIN,
    COLOR_UNKNOWN,
    HEAVY_PRECIP_MM,
    LIGHT_PRECIP_MM,
    WeatherObservation,
)

log = logging.getLogger('pipeline.segments')

NEUTRAL_COLOR = '#58a6ff'

# Freezing drizzle/rain, snow, snow showers, thunderstorms
DANGEROUS_CODES = frozenset({56, 57, 66, 67, 71, 73, 75, 77, 85, 86, 95, 96, 99})


@dataclass
class RouteSegment:
    positions: List[LatLon]
    color: str
    weather: Optional[WeatherObservation] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'positions': [[lat, lon] for lat, lon in self.positions],
            'color': self.color,
            'weather': self.weather.to_dict() if self.weather is not None else None,
        }


def weather_to_color(weather: Optional[WeatherObservation]) -> str:
    """Map an observation to a route color; dangerous codes win over precipitation."""
    if weather is None:
        return COLOR_UNKNOWN
    if weather.weather_code in DANGEROUS_CODES:
        return COLOR_HEAVY
    p = weather.precipitation
    if p <= 0:
        return COLOR_CLEAR
    if p < LIGHT_PRECIP_MM:
        return COLOR_LIGHT
    if p < HEAVY_PRECIP_MM:
        return COLOR_RAIN
    return COLOR_HEAVY


def _whole_route(polyline: Sequence[LatLon]) -> List[RouteSegment]:
    return [RouteSegment(positions=list(polyline), color=NEUTRAL_COLOR)]


def create_route_segments(
    polyline: Sequence[LatLon],
    samples: Sequence[WeatherSamplePoint],
    total_duration_s: float,
    start_time: datetime,
) -> List[RouteSegment]:
    """Split the route into colored runs between consecutive weather samples.

    The stretch between samples A and B is cut at its middle vertex: the
    first half takes A's color, the second half B's, and both halves share
    the middle vertex.
    """
    if len(samples) < 2 or total_duration_s <= 0:
        return _whole_route(polyline)

    table = cumulative_distances(polyline)
    total_km = float(table[-1])
    last_idx = len(polyline) - 1

    def _index_at(when: datetime) -> int:
        progress = (when - start_time).total_seconds() / total_duration_s
        return max(0, min(last_idx, index_at_distance(table, progress * total_km)))

    segments: List[RouteSegment] = []
    for a, b in zip(samples, samples[1:]):
        start_idx = _index_at(a.time)
        end_idx = _index_at(b.time)
        if start_idx > end_idx:
            start_idx = end_idx
        stretch = list(polyline[start_idx:end_idx + 1])
        if len(stretch) < 2:
            continue

        mid = len(stretch) // 2
        first_half = stretch[:mid + 1]
        second_half = stretch[mid:]
        if len(first_half) > 1:
            segments.append(RouteSegment(positions=first_half, color=weather_to_color(a.weather), weather=a.weather))
        if len(second_half) > 1:
            segments.append(RouteSegment(positions=second_half, color=weather_to_color(b.weather), weather=b.weather))

    if not segments:
        log.info('[SEGMENTS] all %d sample pairs degenerate; using whole route', len(samples) - 1)
        return _whole_route(polyline)
    return segments
