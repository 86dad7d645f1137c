from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import pandas as pd

log = logging.getLogger('pipeline.weather')

# WMO present-weather codes as reported by Open-Meteo
WMO_DESCRIPTIONS: Dict[int, str] = {
    0: 'Clear sky',
    1: 'Mainly clear',
    2: 'Partly cloudy',
    3: 'Overcast',
    45: 'Fog',
    48: 'Depositing rime fog',
    51: 'Light drizzle',
    53: 'Moderate drizzle',
    55: 'Dense drizzle',
    56: 'Light freezing drizzle',
    57: 'Dense freezing drizzle',
    61: 'Slight rain',
    63: 'Moderate rain',
    65: 'Heavy rain',
    66: 'Light freezing rain',
    67: 'Heavy freezing rain',
    71: 'Slight snow',
    73: 'Moderate snow',
    75: 'Heavy snow',
    77: 'Snow grains',
    80: 'Slight rain showers',
    81: 'Moderate rain showers',
    82: 'Violent rain showers',
    85: 'Slight snow showers',
    86: 'Heavy snow showers',
    95: 'Thunderstorm',
    96: 'Thunderstorm with slight hail',
    99: 'Thunderstorm with heavy hail',
}

WMO_ICONS: Dict[int, str] = {
    0: '☀️',
    1: '\U0001f324️',
    2: '⛅',
    3: '☁️',
    45: '\U0001f32b️',
    48: '\U0001f32b️',
    80: '\U0001f326️',
    81: '\U0001f326️',
    82: '\U0001f326️',
    95: '⛈️',
    96: '⛈️',
    97: '⛈️',
    99: '⛈️',
}
for _code in (51, 53, 55, 56, 57, 61, 63, 65, 66, 67):
    WMO_ICONS[_code] = '\U0001f327️'
for _code in (71, 73, 75, 77, 85, 86):
    WMO_ICONS[_code] = '\U0001f328️'

UNKNOWN_DESCRIPTION = 'Unknown'
UNKNOWN_ICON = '❓'

# Legend colors, shared with segment coloring
COLOR_CLEAR = '#22c55e'
COLOR_LIGHT = '#fbbf24'
COLOR_RAIN = '#f97316'
COLOR_HEAVY = '#ef4444'
COLOR_UNKNOWN = '#94a3b8'

LIGHT_PRECIP_MM = 0.5
HEAVY_PRECIP_MM = 2.0


@dataclass(frozen=True)
class WeatherObservation:
    temperature: float  # °C
    precipitation: float  # mm
    weather_code: int  # WMO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'temperature': self.temperature,
            'precipitation': self.precipitation,
            'weather_code': self.weather_code,
            'description': weather_description(self.weather_code),
            'icon': weather_icon(self.weather_code),
        }


def weather_description(code: Optional[int]) -> str:
    if code is None:
        return UNKNOWN_DESCRIPTION
    return WMO_DESCRIPTIONS.get(int(code), UNKNOWN_DESCRIPTION)


def weather_icon(code: Optional[int]) -> str:
    if code is None:
        return UNKNOWN_ICON
    return WMO_ICONS.get(int(code), UNKNOWN_ICON)


def weather_category(code: int) -> str:
    """Coarse bucket of a WMO code: clear, fog, rain, snow, showers or storm."""
    if code <= 3:
        return 'clear'
    if code <= 48:
        return 'fog'
    if code <= 67:
        return 'rain'
    if code <= 77:
        return 'snow'
    if code <= 82:
        return 'showers'
    return 'storm'


def is_wet(weather: WeatherObservation) -> bool:
    """Measurable precipitation, or a code in the drizzle-and-above range."""
    return weather.precipitation > 0 or weather.weather_code >= 51


def precipitation_color(precipitation: float) -> str:
    """Legend color for a precipitation amount in mm."""
    if precipitation <= 0:
        return COLOR_CLEAR
    if precipitation < LIGHT_PRECIP_MM:
        return COLOR_LIGHT
    if precipitation < HEAVY_PRECIP_MM:
        return COLOR_RAIN
    return COLOR_HEAVY


def precipitation_legend() -> list:
    return [
        {'label': 'No precipitation', 'color': COLOR_CLEAR, 'max_mm': 0.0},
        {'label': 'Light', 'color': COLOR_LIGHT, 'max_mm': LIGHT_PRECIP_MM},
        {'label': 'Rain', 'color': COLOR_RAIN, 'max_mm': HEAVY_PRECIP_MM},
        {'label': 'Heavy or dangerous', 'color': COLOR_HEAVY, 'max_mm': None},
        {'label': 'No data', 'color': COLOR_UNKNOWN, 'max_mm': None},
    ]


def observation_from_hourly(temperature: Any, precipitation: Any, weather_code: Any) -> Optional[WeatherObservation]:
    """Build an observation from one hourly forecast row; null fields mean no data."""
    try:
        if pd.isna(temperature) or pd.isna(precipitation) or pd.isna(weather_code):
            return None
        return WeatherObservation(
            temperature=float(temperature),
            precipitation=max(0.0, float(precipitation)),
            weather_code=int(weather_code),
        )
    except (TypeError, ValueError) as e:
        log.warning('[WEATHER] unusable hourly row: %s', e)
        return None
