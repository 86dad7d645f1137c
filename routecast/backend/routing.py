import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from routecast.backend import config
from routecast.backend.http_client import TemporaryAPIUnavailable, get_json
from routecast.backend.route_sampling import LatLon

log = logging.getLogger('pipeline.routing')


@dataclass
class RouteResult:
    geometry: List[LatLon]
    distance_meters: float
    duration_seconds: float
    legs: List[Dict[str, float]] = field(default_factory=list)


def _build_url(waypoints: Sequence[LatLon]) -> str:
    # OSRM wants lon,lat pairs
    coords = ';'.join(f"{lon:.6f},{lat:.6f}" for lat, lon in waypoints)
    return f"{config.OSRM_BASE_URL}/route/v1/driving/{coords}"


def get_route(waypoints: Sequence[LatLon], session: Optional[requests.Session] = None) -> Optional[RouteResult]:
    """Driving route through `waypoints` in order; None when no drivable path exists."""
    if len(waypoints) < 2:
        return None
    params = {'overview': 'full', 'geometries': 'geojson', 'steps': 'true'}
    try:
        data = get_json(_build_url(waypoints), params=params, session=session)
    except (requests.RequestException, TemporaryAPIUnavailable) as e:
        log.warning('[ROUTING] request failed: %s', e)
        return None

    data = data or {}
    routes = data.get('routes') or []
    if data.get('code') != 'Ok' or not routes:
        log.info('[ROUTING] no route (code=%s)', data.get('code'))
        return None
    route: Dict[str, Any] = routes[0]
    coords = (route.get('geometry') or {}).get('coordinates') or []
    geometry = [(float(lat), float(lon)) for lon, lat in coords]
    if len(geometry) < 2:
        log.info('[ROUTING] route geometry too short (%d points)', len(geometry))
        return None
    legs = [
        {'distance_meters': float(leg.get('distance', 0.0)), 'duration_seconds': float(leg.get('duration', 0.0))}
        for leg in route.get('legs') or []
    ]
    result = RouteResult(
        geometry=geometry,
        distance_meters=float(route.get('distance', 0.0)),
        duration_seconds=float(route.get('duration', 0.0)),
        legs=legs,
    )
    log.info('[ROUTING] %d points, %.1f km, %.0f min',
             len(geometry), result.distance_meters / 1000.0, result.duration_seconds / 60.0)
    return result
