"""Explicit trip pipeline: stops -> route -> samples -> weather -> markers and segments.

The pipeline keeps no state between calls. Callers re-run it whenever the
stops, the start time or the speed change, or on a timer to pick up fresher
forecasts.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from routecast.backend import config
from routecast.backend.geocoding import Stop
from routecast.backend.route_sampling import LatLon, WeatherSamplePoint, sample_route_points
from routecast.backend.route_segments import RouteSegment, create_route_segments
from routecast.backend.routing import RouteResult, get_route
from routecast.backend.significance import filter_significant_points
from routecast.backend.weather_service import WeatherService

log = logging.getLogger('pipeline')

Router = Callable[[Sequence[LatLon]], Optional[RouteResult]]


@dataclass
class TripSummary:
    distance_meters: float
    base_duration_seconds: float
    adjusted_duration_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distance_meters': self.distance_meters,
            'base_duration_seconds': self.base_duration_seconds,
            'adjusted_duration_seconds': self.adjusted_duration_seconds,
            'adjusted_duration_text': format_duration(self.adjusted_duration_seconds),
        }


@dataclass
class TripPlan:
    route_name: str
    stops: List[Stop]
    start_time: datetime
    geometry: List[LatLon] = field(default_factory=list)
    samples: List[WeatherSamplePoint] = field(default_factory=list)
    significant: List[WeatherSamplePoint] = field(default_factory=list)
    segments: List[RouteSegment] = field(default_factory=list)
    summary: Optional[TripSummary] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'route_name': self.route_name,
            'stops': [s.to_dict() for s in self.stops],
            'start_time': self.start_time.isoformat(),
            'geometry': [[lat, lon] for lat, lon in self.geometry],
            'samples': [p.to_dict() for p in self.samples],
            'significant': [p.to_dict() for p in self.significant],
            'segments': [s.to_dict() for s in self.segments],
            'summary': self.summary.to_dict() if self.summary is not None else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at is not None else None,
        }


def default_start_time(now: Optional[datetime] = None) -> datetime:
    """Top of the next hour."""
    now = now or datetime.now()
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes}min"


def speed_multiplier_from_percent(speed_percent: float) -> float:
    """Travel-time multiplier for a speed given as a percentage of the routed speed."""
    if not math.isfinite(speed_percent) or speed_percent <= 0:
        raise ValueError('speed percent must be a positive number')
    return 1.0 / (speed_percent / 100.0)


def route_name(stops: Sequence[Stop]) -> str:
    resolved = [s for s in stops if s.resolved]
    if len(resolved) < 2:
        return ''
    start = resolved[0].name.split(',')[0] if resolved[0].name else 'Start'
    end = resolved[-1].name.split(',')[0] if resolved[-1].name else 'Destination'
    return f"Route from {start} to {end}"


def plan_trip(
    stops: Sequence[Stop],
    start_time: datetime,
    speed_multiplier: float = 1.0,
    interval_minutes: Optional[float] = None,
    max_points: Optional[int] = None,
    router: Router = get_route,
    weather: Optional[WeatherService] = None,
) -> Optional[TripPlan]:
    """Run the whole pipeline once.

    Returns an empty plan when fewer than two stops are resolved, and None
    when the router finds no drivable path.
    """
    interval = interval_minutes if interval_minutes is not None else config.SAMPLE_INTERVAL_MINUTES
    limit = max_points if max_points is not None else config.MAX_SIGNIFICANT_POINTS
    resolved = [s for s in stops if s.resolved]
    plan = TripPlan(route_name=route_name(stops), stops=list(stops), start_time=start_time)
    if len(resolved) < 2:
        log.info('[TRIP] %d resolved stops; nothing to plan', len(resolved))
        return plan

    route = router([(s.lat, s.lon) for s in resolved])
    if route is None:
        log.warning('[TRIP] no route between %d stops', len(resolved))
        return None

    adjusted = route.duration_seconds * speed_multiplier
    log.info('[TRIP] %s: %.1f km, %s (x%.2f)', plan.route_name or 'trip',
             route.distance_meters / 1000.0, format_duration(adjusted), speed_multiplier)

    samples = sample_route_points(route.geometry, adjusted, start_time, interval)
    service = weather or WeatherService()
    annotated = service.weather_for_route(samples)

    plan.geometry = list(route.geometry)
    plan.samples = annotated
    plan.segments = create_route_segments(route.geometry, annotated, adjusted, start_time)
    plan.significant = filter_significant_points(annotated, max_points=limit)
    plan.summary = TripSummary(
        distance_meters=route.distance_meters,
        base_duration_seconds=route.duration_seconds,
        adjusted_duration_seconds=adjusted,
    )
    plan.updated_at = datetime.now()
    return plan
