"""Resolve trip stops to coordinates.

Coordinates typed as ``"lat, lon"`` are parsed locally; anything else goes to
the Open-Meteo geocoding API. Free text is simplified first so that street
addresses and "Town, Province" inputs still find the right town:

- ``"Town"``                       -> search "Town"
- ``"Town, Province"``             -> search "Town", prefer results in Province
- ``"Street 12, Town"``            -> search "Town"
- ``"A, B, C"``                    -> search "C", prefer results matching "B"
- ``"A, B, Spain"``                -> search "B", prefer results matching "A"
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from routecast.backend import config
from routecast.backend.http_client import TemporaryAPIUnavailable, get_json

log = logging.getLogger('pipeline.geocode')

COUNTRY_NAMES = {'españa', 'spain', 'portugal', 'france', 'francia', 'andorra'}
STREET_KEYWORDS = ('calle', 'avenida', 'avda', 'av.', 'plaza', 'paseo', 'camino', 'carretera', 'c/', 'pº', 'plz')
_COORD_RE = re.compile(r'^(-?\d+\.?\d*)\s*,\s*(-?\d+\.?\d*)$')


@dataclass
class Stop:
    query: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    name: str = ''
    country: str = ''
    admin1: str = ''
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.lat is not None and self.lon is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query': self.query,
            'lat': self.lat,
            'lon': self.lon,
            'name': self.name,
            'country': self.country,
            'admin1': self.admin1,
            'resolved': self.resolved,
            'error': self.error,
        }


def coordinate_label(lat: float, lon: float) -> str:
    return f"{lat:.4f}, {lon:.4f}"


def parse_coordinates(text: str) -> Optional[Stop]:
    """Parse "lat, lon" into a resolved stop; None if not a valid coordinate pair."""
    m = _COORD_RE.match(text.strip())
    if not m:
        return None
    lat = float(m.group(1))
    lon = float(m.group(2))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return Stop(query=text, lat=lat, lon=lon, name=coordinate_label(lat, lon))


def split_query(text: str) -> Tuple[str, Optional[str]]:
    """Return (search term, optional lower-case filter for admin/country matching)."""
    search = text.strip()
    location_filter: Optional[str] = None
    if ',' in search:
        parts = [p.strip() for p in search.split(',') if p.strip()]
        if len(parts) >= 3:
            search = parts[-1]
            location_filter = parts[-2].lower()
            if search.lower() in COUNTRY_NAMES:
                search = parts[-2]
                location_filter = parts[-3].lower()
        elif len(parts) == 2:
            first = parts[0].lower()
            is_street = any(kw in first for kw in STREET_KEYWORDS) or bool(re.search(r'\d', parts[0]))
            if is_street:
                search = parts[1]
            else:
                search = parts[0]
                location_filter = parts[1].lower()
    # Leftover house numbers confuse the place search
    search = re.sub(r'^\d+\s*', '', search)
    search = re.sub(r'\s+\d+$', '', search).strip()
    return search, location_filter


def _matches(result: Dict[str, Any], needle: str) -> bool:
    for field in ('name', 'admin1', 'admin2', 'admin3', 'country'):
        value = result.get(field)
        if value and needle in str(value).lower():
            return True
    return False


def geocode(query: str, session: Optional[requests.Session] = None) -> Optional[Stop]:
    """Look up a place name; None when nothing matches or the lookup fails."""
    search, location_filter = split_query(query)
    if not search:
        return None
    params = {
        'name': search,
        'count': config.GEOCODING_RESULT_COUNT,
        'language': config.GEOCODING_LANGUAGE,
        'format': 'json',
    }
    try:
        data = get_json(config.OPEN_METEO_GEOCODING_URL, params=params, session=session)
    except (requests.RequestException, TemporaryAPIUnavailable) as e:
        log.warning('[GEOCODE] lookup failed query=%r: %s', query, e)
        return None

    results = (data or {}).get('results') or []
    if not results:
        log.info('[GEOCODE] no match query=%r search=%r', query, search)
        return None
    result = results[0]
    if location_filter:
        preferred = next((r for r in results if _matches(r, location_filter)), None)
        if preferred is not None:
            result = preferred
    stop = Stop(
        query=query,
        lat=float(result['latitude']),
        lon=float(result['longitude']),
        name=result.get('name') or search,
        country=result.get('country') or '',
        admin1=result.get('admin1') or '',
    )
    log.info('[GEOCODE] %r -> %s (%.4f, %.4f)', query, stop.name, stop.lat, stop.lon)
    return stop


def resolve_stop(query: str, session: Optional[requests.Session] = None) -> Stop:
    """Coordinates first, then geocoding; an unresolved stop carries an error message."""
    parsed = parse_coordinates(query)
    if parsed is not None:
        return parsed
    found = geocode(query, session=session)
    if found is not None:
        return found
    return Stop(query=query, name=query, error='Location not found')
