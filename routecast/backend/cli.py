"""Plan a trip from the command line.

    routecast "Madrid" "Zaragoza" "40.4168, -3.7038" --start 2026-10-18T09:00 --speed-percent 90

With --refresh SECONDS the same plan is recomputed on a timer so newer
forecasts show up, until interrupted.
"""
import argparse
import json
import logging
import sys
import time
from datetime import datetime
from typing import List, Optional

from routecast.backend import config
from routecast.backend.geocoding import resolve_stop
from routecast.backend.pipeline import (
    TripPlan,
    default_start_time,
    format_duration,
    plan_trip,
    speed_multiplier_from_percent,
)
from routecast.backend.weather import weather_description

log = logging.getLogger('pipeline.cli')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog='routecast', description='Weather along a driving route')
    p.add_argument('stops', nargs='+', help='Place names or "lat, lon" pairs, in visit order')
    p.add_argument('--start', type=datetime.fromisoformat, default=None,
                   help='Departure time, ISO-8601 (default: top of the next hour)')
    p.add_argument('--interval', type=float, default=config.SAMPLE_INTERVAL_MINUTES,
                   help='Minutes of driving between weather samples')
    p.add_argument('--speed-percent', type=float, default=100.0,
                   help='Driving speed relative to the routed speed (100 = as routed)')
    p.add_argument('--max-points', type=int, default=config.MAX_SIGNIFICANT_POINTS)
    p.add_argument('--json', action='store_true', help='Print the full plan as JSON')
    p.add_argument('--refresh', type=float, default=0.0, metavar='SECONDS',
                   help='Recompute the plan every SECONDS (0 = run once)')
    p.add_argument('--log-level', default=config.LOG_LEVEL)
    return p.parse_args(argv)


def render_text(plan: TripPlan) -> str:
    lines = []
    if plan.route_name:
        lines.append(plan.route_name)
    if plan.summary is not None:
        lines.append(f"Distance: {plan.summary.distance_meters / 1000.0:.1f} km  "
                     f"Duration: {format_duration(plan.summary.adjusted_duration_seconds)}")
    for p in plan.significant:
        w = p.weather
        cond = (f"{w.temperature:.1f}°C {w.precipitation:.1f} mm {weather_description(w.weather_code)}"
                if w is not None else 'no data')
        lines.append(f"  {p.time:%Y-%m-%d %H:%M}  {p.lat:8.4f} {p.lon:9.4f}  {cond}  [{p.significant_reason}]")
    return '\n'.join(lines)


def run_once(args: argparse.Namespace, start: datetime) -> int:
    stops = [resolve_stop(q) for q in args.stops]
    for s in stops:
        if not s.resolved:
            print(f"[WARNING] {s.query}: {s.error}", file=sys.stderr)
    plan = plan_trip(
        stops,
        start,
        speed_multiplier=speed_multiplier_from_percent(args.speed_percent),
        interval_minutes=args.interval,
        max_points=args.max_points,
    )
    if plan is None:
        print('[ERROR] Route not found; check that the stops are reachable by road', file=sys.stderr)
        return 2
    if plan.summary is None:
        print('[ERROR] Need at least two resolved stops', file=sys.stderr)
        return 1
    print(json.dumps(plan.to_dict(), ensure_ascii=False, indent=2) if args.json else render_text(plan))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO),
                        format='[%(levelname)s] %(message)s')
    if args.speed_percent <= 0 or args.interval <= 0:
        print('[ERROR] --speed-percent and --interval must be positive', file=sys.stderr)
        return 1
    start = args.start or default_start_time()

    code = run_once(args, start)
    while args.refresh > 0:
        try:
            time.sleep(args.refresh)
        except KeyboardInterrupt:
            break
        log.info('[REFRESH] recomputing plan')
        code = run_once(args, start)
    return code


if __name__ == '__main__':
    sys.exit(main())
