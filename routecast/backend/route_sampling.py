import math
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from routecast.backend.weather import WeatherObservation

log = logging.getLogger('pipeline.route')

EARTH_RADIUS_KM = 6371.0
# A last interval sample this close to the destination becomes the end sample
END_MERGE_KM = 2.0

LatLon = Tuple[float, float]


@dataclass
class SamplePoint:
    lat: float
    lon: float
    time: datetime
    geometry_index: int
    is_start: bool = False
    is_end: bool = False

    @property
    def position(self) -> LatLon:
        return (self.lat, self.lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lat': self.lat,
            'lon': self.lon,
            'time': self.time.isoformat(),
            'geometry_index': self.geometry_index,
            'is_start': self.is_start,
            'is_end': self.is_end,
        }


@dataclass
class WeatherSamplePoint(SamplePoint):
    weather: Optional[WeatherObservation] = None
    significant_reason: Optional[str] = None

    @classmethod
    def from_sample(cls, sample: SamplePoint, weather: Optional[WeatherObservation]) -> 'WeatherSamplePoint':
        return cls(
            lat=sample.lat,
            lon=sample.lon,
            time=sample.time,
            geometry_index=sample.geometry_index,
            is_start=sample.is_start,
            is_end=sample.is_end,
            weather=weather,
        )

    def with_reason(self, reason: str) -> 'WeatherSamplePoint':
        return replace(self, significant_reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['weather'] = self.weather.to_dict() if self.weather is not None else None
        if self.significant_reason is not None:
            d['significant_reason'] = self.significant_reason
        return d


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute haversine distance between two lat/lon points in kilometers."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def cumulative_distances(polyline: Sequence[LatLon]) -> np.ndarray:
    """Cumulative great-circle distance (km) at each vertex; first entry is 0."""
    coords = np.asarray(polyline, dtype=float).reshape(-1, 2)
    if len(coords) < 2:
        return np.zeros(len(coords), dtype=float)
    lat = np.radians(coords[:, 0])
    lon = np.radians(coords[:, 1])
    dphi = np.diff(lat)
    dlambda = np.diff(lon)
    a = np.sin(dphi / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(dlambda / 2) ** 2
    seg_km = EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return np.concatenate(([0.0], np.cumsum(seg_km)))


def index_at_distance(table: np.ndarray, target_km: float) -> int:
    """First index whose cumulative distance reaches `target_km`.

    Ties resolve to the earliest index. A target past the end of the table
    resolves to the last index.
    """
    idx = int(np.searchsorted(table, target_km, side='left'))
    return min(idx, len(table) - 1)


def sample_route_points(
    polyline: Sequence[LatLon],
    total_duration_s: float,
    start_time: datetime,
    interval_minutes: float = 15,
) -> List[SamplePoint]:
    """Sample the route every `interval_minutes` of travel time.

    Progress along the route is assumed proportional to distance, so each
    sample sits at `elapsed / total_duration` of the route length. The first
    sample is the route start at `start_time`; the last is the route end at
    `start_time + total_duration_s`.
    """
    if len(polyline) < 2 or total_duration_s <= 0 or interval_minutes <= 0:
        log.warning('[ROUTE] nothing to sample (points=%d duration=%s interval=%s)',
                    len(polyline), total_duration_s, interval_minutes)
        return []

    table = cumulative_distances(polyline)
    total_km = float(table[-1])
    interval_s = interval_minutes * 60
    n_intervals = int(math.floor(total_duration_s / interval_s))

    first_lat, first_lon = polyline[0]
    points: List[SamplePoint] = [
        SamplePoint(lat=first_lat, lon=first_lon, time=start_time, geometry_index=0, is_start=True)
    ]

    for i in range(1, n_intervals + 1):
        elapsed = i * interval_s
        target_km = (elapsed / total_duration_s) * total_km
        j = index_at_distance(table, target_km)
        if j <= 0:
            j = 1
        seg_start = float(table[j - 1])
        seg_end = float(table[j])
        t = (target_km - seg_start) / (seg_end - seg_start) if seg_end > seg_start else 0.0
        lat1, lon1 = polyline[j - 1]
        lat2, lon2 = polyline[j]
        points.append(SamplePoint(
            lat=lat1 + t * (lat2 - lat1),
            lon=lon1 + t * (lon2 - lon1),
            time=start_time + timedelta(seconds=elapsed),
            geometry_index=j,
        ))

    end_lat, end_lon = polyline[-1]
    end_time = start_time + timedelta(seconds=total_duration_s)
    last = points[-1]
    # The start sample is never moved onto the end
    if len(points) == 1 or haversine_km(last.lat, last.lon, end_lat, end_lon) > END_MERGE_KM:
        points.append(SamplePoint(
            lat=end_lat, lon=end_lon, time=end_time,
            geometry_index=len(polyline) - 1, is_end=True,
        ))
    else:
        # Snap onto the true end so the drawn path covers the whole geometry
        last.lat = end_lat
        last.lon = end_lon
        last.time = end_time
        last.geometry_index = len(polyline) - 1
        last.is_end = True

    log.info('[ROUTE] sampled %d points over %.1f km every %.0f min', len(points), total_km, interval_minutes)
    return points
