"""Reduce a dense list of weather samples to a handful of map markers.

A sample is kept when it is the trip start or end, or when conditions change
against the previous sample: precipitation starts or stops, temperature jumps
by more than 3 °C, or the WMO category changes (the last matching check names
the reason). Short selections are padded with evenly spaced samples and long
ones are trimmed by reason priority.
"""
import logging
from typing import Dict, List, Sequence

from routecast.backend.route_sampling import WeatherSamplePoint
from routecast.backend.weather import is_wet, weather_category

log = logging.getLogger('pipeline.significance')

TEMP_CHANGE_C = 3.0
MIN_MARKERS = 4

REASON_PRIORITY: Dict[str, int] = {
    'start': 0,
    'end': 1,
    'rain_start': 2,
    'rain_end': 3,
    'weather_change': 4,
    'temp_change': 5,
    'interval': 6,
}
DEFAULT_PRIORITY = 6


def _classify(point: WeatherSamplePoint, prev: WeatherSamplePoint) -> str:
    """Reason for `point` being significant against `prev`, or '' if it is not."""
    reason = ''
    if point.weather is None or prev.weather is None:
        return reason
    wet_now = is_wet(point.weather)
    if wet_now != is_wet(prev.weather):
        reason = 'rain_start' if wet_now else 'rain_end'
    if abs(point.weather.temperature - prev.weather.temperature) > TEMP_CHANGE_C:
        reason = 'temp_change'
    if weather_category(point.weather.weather_code) != weather_category(prev.weather.weather_code):
        reason = 'weather_change'
    return reason


def filter_significant_points(samples: Sequence[WeatherSamplePoint], max_points: int = 8) -> List[WeatherSamplePoint]:
    if len(samples) <= 3:
        return list(samples)

    significant: List[WeatherSamplePoint] = []
    for i, point in enumerate(samples):
        # Trip endpoints keep their own reason so ranking never drops them
        if point.is_start or point.is_end:
            reason = 'start' if point.is_start else 'end'
        elif i > 0:
            reason = _classify(point, samples[i - 1])
        else:
            reason = ''
        if reason:
            significant.append(point.with_reason(reason))

    if len(significant) < MIN_MARKERS and len(samples) > MIN_MARKERS:
        stride = len(samples) // MIN_MARKERS
        seen = {p.time for p in significant}
        for i in range(stride, len(samples) - 1, stride):
            if samples[i].time not in seen:
                significant.append(samples[i].with_reason('interval'))
                seen.add(samples[i].time)
        significant.sort(key=lambda p: p.time)

    if len(significant) > max_points:
        ranked = sorted(significant, key=lambda p: REASON_PRIORITY.get(p.significant_reason or '', DEFAULT_PRIORITY))
        kept = sorted(ranked[:max_points], key=lambda p: p.time)
        log.info('[MARKERS] trimmed %d significant points to %d', len(significant), len(kept))
        return kept

    return significant
