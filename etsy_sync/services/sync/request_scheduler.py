"""
Request Scheduler - Throttled, concurrency-capped dispatch of outbound calls

Every request to the Etsy API goes through one scheduler per run. Request
starts are spaced at least ``min_interval`` seconds apart and at most
``max_concurrent`` requests are in flight at any time. Waiting callers are
served strictly in submission order.
"""
import threading
import time
from typing import Any, Callable, Dict, Optional

from ...utils.logger import get_logger

logger = get_logger('request_scheduler')


class RequestScheduler:
    """FIFO request scheduler with start spacing and an in-flight cap.

    Each submit() takes a ticket. A ticket is dispatched once it is at the
    head of the queue, a concurrency slot is free and ``min_interval`` has
    passed since the previous dispatch. The scheduler only delays calls: it
    never fails or retries them, and exceptions raised by the call reach the
    caller unchanged.

    Example:
        >>> scheduler = RequestScheduler(min_interval=0.15, max_concurrent=6, transport=pool)
        >>> payload = scheduler.get('https://openapi.etsy.com/v2/listings/1/images', params={...})
        >>> scheduler.get_stats()
    """

    def __init__(
        self,
        min_interval: float = 0.15,
        max_concurrent: int = 6,
        transport=None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the scheduler.

        Args:
            min_interval: Minimum seconds between two request starts
            max_concurrent: Maximum number of requests in flight
            transport: Object with ``get_json(url, params=None)`` used by get()
            clock: Monotonic time source

        Raises:
            ValueError: If min_interval is negative or max_concurrent < 1
        """
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self.transport = transport
        self._clock = clock

        self._cond = threading.Condition()
        self._next_ticket = 0
        self._now_serving = 0
        self._in_flight = 0
        self._last_start: Optional[float] = None
        self._stats = {'dispatched': 0, 'failed': 0, 'peak_in_flight': 0}

        logger.info(
            f"[RequestScheduler] Initialized: min_interval={min_interval}s, "
            f"max_concurrent={max_concurrent}"
        )

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run ``fn(*args, **kwargs)`` once the rate and concurrency limits allow.

        Blocks the calling thread until the call has been dispatched and
        has returned.
        """
        self._acquire()
        try:
            return fn(*args, **kwargs)
        except Exception:
            with self._cond:
                self._stats['failed'] += 1
            raise
        finally:
            self._release()

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Scheduled GET through the transport, returning the decoded JSON body."""
        if self.transport is None:
            raise RuntimeError("RequestScheduler has no transport")
        return self.submit(self.transport.get_json, url, params=params)

    def _acquire(self) -> None:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1

            while True:
                if ticket == self._now_serving and self._in_flight < self.max_concurrent:
                    wait = self._time_until_next_start()
                    if wait <= 0:
                        break
                    self._cond.wait(wait)
                else:
                    self._cond.wait()

            self._now_serving += 1
            self._in_flight += 1
            self._last_start = self._clock()
            self._stats['dispatched'] += 1
            self._stats['peak_in_flight'] = max(self._stats['peak_in_flight'], self._in_flight)
            # Next ticket is now at the head and may start its interval wait
            self._cond.notify_all()

    def _release(self) -> None:
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()

    def _time_until_next_start(self) -> float:
        if self._last_start is None:
            return 0.0
        return self._last_start + self.min_interval - self._clock()

    def get_stats(self) -> Dict:
        """Get scheduler statistics.

        Returns:
            Dictionary with dispatched, failed, in_flight, queued and peak_in_flight
        """
        with self._cond:
            return {
                'dispatched': self._stats['dispatched'],
                'failed': self._stats['failed'],
                'in_flight': self._in_flight,
                'queued': self._next_ticket - self._now_serving,
                'peak_in_flight': self._stats['peak_in_flight'],
            }
