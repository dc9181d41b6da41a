# radar/utils/retry.py
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from radar.utils.logger import warn

T = TypeVar("T")


def retry(fn: Callable[[], T], times: int, interval: float,
          retry_on: Tuple[Type[BaseException], ...] = (Exception,),
          sleep: Callable[[float], None] = time.sleep,
          tag: str = "retry",
          on_error: Optional[Callable[[int, BaseException], None]] = None) -> T:
    """
    Call fn until it succeeds, at most `times` attempts with a fixed `interval`
    between them. The last exception is re-raised once attempts run out.
    """
    if times < 1:
        raise ValueError("times must be >= 1")
    for attempt in range(times):
        try:
            return fn()
        except retry_on as e:
            warn(tag, f"Attempt {attempt + 1}/{times}: {e}")
            if on_error is not None:
                on_error(attempt, e)
            if attempt + 1 >= times:
                raise
            sleep(interval)
    raise AssertionError("unreachable")
