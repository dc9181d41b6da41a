# radar/utils/cache.py
import threading
import time
from functools import wraps
from typing import Callable, Any, Tuple


def memoize_ttl(ttl_seconds: int = 300, maxsize: int = 4096, cache_none: bool = False):
    """
    In-process TTL cache decorator, safe to share between worker threads.
    Uses (args, sorted(kwargs)) as the key. None results are not cached unless
    cache_none is set, so a miss is retried on the next call.
    """
    def deco(fn: Callable):
        cache: dict[Tuple[Any, ...], Tuple[Any, float]] = {}
        lock = threading.Lock()

        @wraps(fn)
        def wrapped(*args, **kwargs):
            key = (args, tuple(sorted(kwargs.items())))
            now = time.time()
            with lock:
                if key in cache:
                    val, exp = cache[key]
                    if now < exp:
                        return val
                    del cache[key]
            val = fn(*args, **kwargs)
            if val is None and not cache_none:
                return val
            with lock:
                if len(cache) >= maxsize:
                    # drop the entry closest to expiry
                    oldest = min(cache, key=lambda k: cache[k][1])
                    del cache[oldest]
                cache[key] = (val, now + ttl_seconds)
            return val

        def cache_clear():
            with lock:
                cache.clear()

        wrapped.cache_clear = cache_clear  # type: ignore[attr-defined]
        return wrapped
    return deco
