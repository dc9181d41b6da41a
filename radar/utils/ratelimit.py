import time, random, threading
from typing import Optional

import requests

from radar.utils.logger import log

# Default QPS (requests per second) for explorer APIs (Etherscan V2 / legacy V1 hosts).
# Override at runtime with set_default_qps (batch_cli --etherscan-qps).
DEFAULT_QPS = 4.0

MAX_BACKOFF = 8.0
RETRY_STATUSES = (429, 500, 502, 503, 504)

# One limiter per "host key" (e.g. 'etherscan_v2', 'api.bscscan.com_v1')
_LIMITERS = {}
_LOCK = threading.Lock()


class RateLimiter:
    """Spaces calls at least 1/max_per_sec apart. Shared by every thread hitting one host."""

    def __init__(self, max_per_sec: float):
        self.max_per_sec = max(0.1, float(max_per_sec))
        self.interval = 1.0 / self.max_per_sec
        self._next_slot = 0.0
        self.lock = threading.Lock()

    def wait(self):
        # reserve a slot under the lock, sleep outside it
        with self.lock:
            now = time.monotonic()
            delay = self._next_slot - now
            self._next_slot = max(now, self._next_slot) + self.interval
        if delay > 0:
            time.sleep(delay)


def _get_limiter(host_key: str, max_qps: Optional[float]) -> RateLimiter:
    qps = max(0.1, DEFAULT_QPS if max_qps is None else float(max_qps))
    with _LOCK:
        lim = _LIMITERS.get(host_key)
        if lim is None or lim.max_per_sec != qps:
            lim = RateLimiter(qps)
            _LIMITERS[host_key] = lim
        return lim


def is_throttled(data) -> bool:
    """Etherscan-style explorers report rate limiting as HTTP 200 with status "0"."""
    if not isinstance(data, dict) or str(data.get("status")) != "0":
        return False
    text = f"{data.get('message', '')} {data.get('result', '')}".lower()
    return "rate limit" in text or "max calls" in text


def _backoff(attempt: int, resp: Optional[requests.Response] = None) -> float:
    if resp is not None:
        try:
            return min(float(resp.headers.get("Retry-After", "")), MAX_BACKOFF)
        except ValueError:
            pass
    return min(0.5 * 2 ** attempt, MAX_BACKOFF) + random.uniform(0, 0.2)


def http_get_json(host_key: str, url: str, params: dict, max_qps: Optional[float] = None,
                  timeout: int = 15, attempts: int = 5) -> dict:
    """
    GET with per-host rate limiting + retries. Returns response.json() or raises.
    Retries connection errors, 429/5xx and in-body throttling answers; once the
    attempts run out the last error is raised.
    """
    lim = _get_limiter(host_key, max_qps)
    last_error: Exception = requests.HTTPError(f"{host_key}: no attempt made")
    for attempt in range(attempts):
        lim.wait()
        try:
            resp = requests.get(url, params=params, timeout=timeout)
        except requests.RequestException as e:
            log("ratelimit", f"{host_key} request error ({attempt + 1}/{attempts}): {e}")
            last_error = e
            time.sleep(_backoff(attempt))
            continue

        if resp.status_code in RETRY_STATUSES:
            log("ratelimit", f"{host_key} HTTP {resp.status_code} ({attempt + 1}/{attempts})")
            last_error = requests.HTTPError(f"{host_key}: HTTP {resp.status_code}", response=resp)
            time.sleep(_backoff(attempt, resp))
            continue

        resp.raise_for_status()
        data = resp.json()
        if is_throttled(data):
            log("ratelimit", f"{host_key} throttled: {data.get('result')} ({attempt + 1}/{attempts})")
            last_error = requests.HTTPError(f"{host_key}: {data.get('result') or 'rate limited'}")
            time.sleep(_backoff(attempt))
            continue
        return data

    raise last_error


def set_default_qps(qps: float):
    global DEFAULT_QPS
    DEFAULT_QPS = max(0.1, float(qps))
