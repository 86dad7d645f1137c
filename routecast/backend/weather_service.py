"""WeatherService: hourly forecast lookups for points along a route.
- Coordinates quantized to 0.01° for request keys
- One request per (quantized point, local day window), shared by all samples that map to it
- Concurrent fan-out on a thread pool; results re-associated by position
- A failed lookup yields no weather for its samples only
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date as _date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import requests

from routecast.backend import config
from routecast.backend.http_client import TemporaryAPIUnavailable, get_json
from routecast.backend.route_sampling import SamplePoint, WeatherSamplePoint
from routecast.backend.weather import WeatherObservation, observation_from_hourly

log = logging.getLogger('pipeline.weather.service')

HOURLY_FIELDS = 'temperature_2m,precipitation,weather_code'


class WeatherService:
    def __init__(self, session: Optional[requests.Session] = None, max_workers: Optional[int] = None,
                 timezone_name: Optional[str] = None):
        self.session = session
        self.max_workers = max(1, int(max_workers or config.WEATHER_MAX_WORKERS))
        self.timezone_name = timezone_name or config.WEATHER_TIMEZONE

    @staticmethod
    def _quantize(v: float) -> float:
        return round(float(v), 2)

    @staticmethod
    def _request_window(when: datetime) -> Tuple[_date, _date]:
        # Naive times are already local: that day and the next, as the forecast
        # may roll past midnight. Aware times get a day of slack on each side
        # until the point's UTC offset is known from the response.
        if when.tzinfo is None:
            d = when.date()
            return d, d + timedelta(days=1)
        d = when.astimezone(timezone.utc).date()
        return d - timedelta(days=1), d + timedelta(days=1)

    @classmethod
    def _key(cls, lat: float, lon: float, when: datetime) -> str:
        start, end = cls._request_window(when)
        return f"{cls._quantize(lat):.2f}_{cls._quantize(lon):.2f}_{start.isoformat()}_{end.isoformat()}"

    def _fetch_forecast(self, lat: float, lon: float, when: datetime) -> Dict[str, Any]:
        start, end = self._request_window(when)
        params = {
            'latitude': f"{self._quantize(lat):.2f}",
            'longitude': f"{self._quantize(lon):.2f}",
            'hourly': HOURLY_FIELDS,
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
            'timezone': self.timezone_name,
        }
        return get_json(config.OPEN_METEO_WEATHER_URL, params=params, session=self.session) or {}

    @staticmethod
    def pick_hour(data: Dict[str, Any], when: datetime) -> Optional[WeatherObservation]:
        """Observation for the forecast hour containing `when`.

        Falls back to the first hour of the same local day, then to None.
        """
        hourly = data.get('hourly') or {}
        times = hourly.get('time') or []
        temps = hourly.get('temperature_2m') or []
        precs = hourly.get('precipitation') or []
        codes = hourly.get('weather_code') or []
        if not times or not (len(times) == len(temps) == len(precs) == len(codes)):
            return None
        if when.tzinfo is not None:
            offset = timedelta(seconds=float(data.get('utc_offset_seconds') or 0))
            local = when.astimezone(timezone.utc).replace(tzinfo=None) + offset
        else:
            local = when
        df = pd.DataFrame({
            'time': pd.to_datetime(times),
            'temperature': temps,
            'precipitation': precs,
            'weather_code': codes,
        })
        same_day = df['time'].dt.normalize() == pd.Timestamp(local.date())
        match = df[same_day & (df['time'].dt.hour == local.hour)]
        if match.empty:
            match = df[same_day]
        if match.empty:
            return None
        row = match.iloc[0]
        return observation_from_hourly(row['temperature'], row['precipitation'], row['weather_code'])

    @staticmethod
    def _observation(data: Dict[str, Any], when: datetime) -> Optional[WeatherObservation]:
        try:
            return WeatherService.pick_hour(data, when)
        except (ValueError, TypeError, KeyError) as e:
            log.warning('[WEATHER] unreadable hourly data time=%s: %s', when.isoformat(), e)
            return None

    def weather_at(self, lat: float, lon: float, when: datetime) -> Optional[WeatherObservation]:
        try:
            data = self._fetch_forecast(lat, lon, when)
        except (requests.RequestException, TemporaryAPIUnavailable) as e:
            log.warning('[WEATHER] lookup failed lat=%.4f lon=%.4f time=%s: %s', lat, lon, when.isoformat(), e)
            return None
        return self._observation(data, when)

    def weather_for_route(self, samples: Sequence[SamplePoint]) -> List[WeatherSamplePoint]:
        """Annotate every sample with its forecast, preserving input order."""
        if not samples:
            return []
        keys = [self._key(s.lat, s.lon, s.time) for s in samples]
        unique: Dict[str, SamplePoint] = {}
        for key, s in zip(keys, samples):
            unique.setdefault(key, s)
        log.info('[WEATHER] %d samples -> %d forecast requests', len(samples), len(unique))

        responses: Dict[str, Optional[Dict[str, Any]]] = {}
        workers = min(self.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='weather') as pool:
            futures = {key: pool.submit(self._fetch_forecast, s.lat, s.lon, s.time) for key, s in unique.items()}
            for key, fut in futures.items():
                try:
                    responses[key] = fut.result()
                except (requests.RequestException, TemporaryAPIUnavailable) as e:
                    log.warning('[WEATHER] lookup failed key=%s: %s', key, e)
                    responses[key] = None

        out: List[WeatherSamplePoint] = []
        missing = 0
        for key, s in zip(keys, samples):
            data = responses.get(key)
            weather = self._observation(data, s.time) if data is not None else None
            if weather is None:
                missing += 1
            out.append(WeatherSamplePoint.from_sample(s, weather))
        if missing:
            log.info('[WEATHER] %d/%d samples without data', missing, len(samples))
        return out
