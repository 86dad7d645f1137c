"""Shared HTTP access for the geocoding, routing and forecast collaborators.
- One pooled requests.Session
- Optional global pacing between requests
- 429 / network retries with delays 1s, 2s, 4s
- Circuit breaker: 60s without outbound calls after retries are exhausted on 429
"""
from __future__ import annotations
import threading
import time
import logging
from typing import Any, Dict, Optional

import requests

from routecast.backend import config

log = logging.getLogger('pipeline.http')

RETRY_DELAYS = [1, 2, 4]
BREAKER_SECONDS = 60.0

_session = requests.Session()
_rate_lock = threading.Lock()
_last_request_ts: float = 0.0
_api_disabled_until: float = 0.0


class TemporaryAPIUnavailable(Exception):
    pass


def reset_api_disable() -> None:
    """Re-enable outbound calls and reset pacing state."""
    global _api_disabled_until, _last_request_ts
    _api_disabled_until = 0.0
    _last_request_ts = 0.0
    log.info('[API] circuit breaker reset; requests re-enabled')


def _pace() -> None:
    global _last_request_ts
    if config.API_MIN_INTERVAL_SEC <= 0:
        return
    with _rate_lock:
        elapsed = time.time() - _last_request_ts
        if elapsed < config.API_MIN_INTERVAL_SEC:
            sleep_s = config.API_MIN_INTERVAL_SEC - elapsed
            log.info('[API] queued (rate limiter) sleep=%.2fs', sleep_s)
            time.sleep(sleep_s)
        _last_request_ts = time.time()


def get_json(url: str, params: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None) -> Any:
    """GET `url` and decode the JSON body.

    Raises TemporaryAPIUnavailable when rate limited (or while the breaker is
    open) and requests.RequestException on network or HTTP errors.
    """
    global _api_disabled_until
    if time.time() < _api_disabled_until:
        log.warning('[API] skipped (circuit breaker active) url=%s', url)
        raise TemporaryAPIUnavailable('Circuit breaker active')

    sess = session or _session
    resp = None
    for attempt in range(len(RETRY_DELAYS) + 1):
        _pace()
        try:
            log.debug('[API] start %s params=%s', url, params)
            resp = sess.get(url, params=params, timeout=config.REQUEST_TIMEOUT_SEC)
        except requests.RequestException as e:
            if attempt < len(RETRY_DELAYS):
                log.warning('[API] network error: %s; retrying in %ds', e, RETRY_DELAYS[attempt])
                time.sleep(RETRY_DELAYS[attempt])
                continue
            raise
        if resp.status_code != 429:
            break
        if attempt < len(RETRY_DELAYS):
            delay = RETRY_DELAYS[attempt]
            log.warning('[API] 429; retrying in %ds (attempt %d)', delay, attempt + 1)
            time.sleep(delay)

    if resp is not None and resp.status_code == 429:
        _api_disabled_until = time.time() + BREAKER_SECONDS
        log.error('[API] circuit breaker activated for %ds (429)', int(BREAKER_SECONDS))
        raise TemporaryAPIUnavailable('429 rate-limited')

    resp.raise_for_status()
    return resp.json()
