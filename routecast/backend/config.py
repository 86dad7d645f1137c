"""Environment-driven settings shared by the collaborators, the web app and the CLI."""
import os

OSRM_BASE_URL = os.environ.get('OSRM_BASE_URL', 'https://router.project-osrm.org')
OPEN_METEO_GEOCODING_URL = os.environ.get('OPEN_METEO_GEOCODING_URL', 'https://geocoding-api.open-meteo.com/v1/search')
OPEN_METEO_WEATHER_URL = os.environ.get('OPEN_METEO_WEATHER_URL', 'https://api.open-meteo.com/v1/forecast')

# Forecast rows are requested in this zone; 'auto' lets Open-Meteo use the point's own zone
WEATHER_TIMEZONE = os.environ.get('WEATHER_TIMEZONE', 'Europe/Madrid')
GEOCODING_LANGUAGE = os.environ.get('GEOCODING_LANGUAGE', 'es')
GEOCODING_RESULT_COUNT = int(os.environ.get('GEOCODING_RESULT_COUNT', '15'))

REQUEST_TIMEOUT_SEC = float(os.environ.get('REQUEST_TIMEOUT_SEC', '30'))
API_MIN_INTERVAL_SEC = float(os.environ.get('API_MIN_INTERVAL_SEC', '0'))
WEATHER_MAX_WORKERS = int(os.environ.get('WEATHER_MAX_WORKERS', '8'))

SAMPLE_INTERVAL_MINUTES = float(os.environ.get('SAMPLE_INTERVAL_MINUTES', '15'))
MAX_SIGNIFICANT_POINTS = int(os.environ.get('MAX_SIGNIFICANT_POINTS', '8'))

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
PORT = int(os.environ.get('PORT', '5000'))
