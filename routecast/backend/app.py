from flask import Flask, jsonify, request
from datetime import datetime
import math
from typing import Any, List
import logging

from routecast.backend import config
from routecast.backend.geocoding import Stop, coordinate_label, resolve_stop
from routecast.backend.pipeline import default_start_time, plan_trip, speed_multiplier_from_percent
from routecast.backend.routing import get_route
from routecast.backend.weather import WMO_DESCRIPTIONS, precipitation_legend, weather_icon
from routecast.backend.weather_service import WeatherService

app = Flask(__name__)

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO), format='[%(levelname)s] %(message)s')
log = logging.getLogger('pipeline')

MAX_STOPS = 25


def _stop_from_payload(item: Any) -> Stop:
    """Accept a free-text query or a {lat, lon, name?} map click."""
    if isinstance(item, str):
        if not item.strip():
            raise ValueError('Empty stop')
        return resolve_stop(item)
    if isinstance(item, dict) and 'lat' in item and 'lon' in item:
        lat = float(item['lat'])
        lon = float(item['lon'])
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            raise ValueError(f"Coordinates out of range: {lat}, {lon}")
        label = item.get('name') or coordinate_label(lat, lon)
        return Stop(query=label, lat=lat, lon=lon, name=label)
    raise ValueError(f"Unsupported stop: {item!r}")


@app.route('/api/geocode')
def api_geocode():
    q = (request.args.get('q') or '').strip()
    if not q:
        return jsonify({"error": "Missing 'q'"}), 400
    stop = resolve_stop(q)
    if not stop.resolved:
        return jsonify({"error": stop.error or 'Location not found', "query": q}), 404
    return jsonify(stop.to_dict())


@app.route('/api/trip', methods=['POST'])
def api_trip():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Expected a JSON object"}), 400
    raw_stops = body.get('stops')
    if not isinstance(raw_stops, list):
        return jsonify({"error": "'stops' must be a list"}), 400
    if len(raw_stops) > MAX_STOPS:
        return jsonify({"error": f"At most {MAX_STOPS} stops"}), 400

    try:
        stops: List[Stop] = [_stop_from_payload(item) for item in raw_stops]
        raw_start = body.get('start_time')
        start_time = datetime.fromisoformat(raw_start) if raw_start else default_start_time()
        if body.get('speed_percent') is not None:
            multiplier = speed_multiplier_from_percent(float(body['speed_percent']))
        else:
            multiplier = float(body.get('speed_multiplier', 1.0))
        interval = float(body.get('interval_minutes', config.SAMPLE_INTERVAL_MINUTES))
        max_points = int(body.get('max_points', config.MAX_SIGNIFICANT_POINTS))
    except (TypeError, ValueError, OverflowError) as e:
        return jsonify({"error": str(e)}), 400
    if not (math.isfinite(multiplier) and math.isfinite(interval)):
        return jsonify({"error": "speed and interval must be finite numbers"}), 400
    if multiplier <= 0 or interval <= 0 or max_points < 2:
        return jsonify({"error": "speed, interval and max_points must be positive (max_points >= 2)"}), 400

    log.info('[API] trip stops=%d start=%s speed=x%.2f', len(stops), start_time.isoformat(), multiplier)
    plan = plan_trip(
        stops,
        start_time,
        speed_multiplier=multiplier,
        interval_minutes=interval,
        max_points=max_points,
        router=get_route,
        weather=WeatherService(),
    )
    if plan is None:
        return jsonify({"error": "Route not found; check that the stops are reachable by road"}), 404
    return jsonify(plan.to_dict())


@app.route('/api/legend')
def api_legend():
    codes = [
        {"code": code, "description": desc, "icon": weather_icon(code)}
        for code, desc in sorted(WMO_DESCRIPTIONS.items())
    ]
    return jsonify({"precipitation": precipitation_legend(), "weather_codes": codes})


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=config.PORT, debug=True, use_reloader=False)
