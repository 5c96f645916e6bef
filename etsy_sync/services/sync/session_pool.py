"""
Request Session Pool - Pooled HTTP transport for the Etsy API

Wraps a requests.Session with a connection pool sized to the scheduler's
concurrency cap. Non-2xx responses and network errors surface as
TransportError; retrying is left to the caller.
"""
import threading
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from ...exceptions import TransportError
from ...utils.logger import get_logger

logger = get_logger('session_pool')


class RequestSessionPool:
    """HTTP session pool used as the scheduler's transport.

    One pool is created per sync run and closed when the run ends.

    Example:
        >>> pool = RequestSessionPool(pool_maxsize=6, timeout=30)
        >>> data = pool.get_json('https://openapi.etsy.com/v2/listings/1/images', params={'api_key': key})
        >>> pool.close()
    """

    POOL_CONNECTIONS = 10  # Number of host pools to cache

    def __init__(self, pool_maxsize: int = 10, timeout: float = 30.0, headers: Optional[Dict[str, str]] = None):
        """Initialize the pool.

        Args:
            pool_maxsize: Max connections kept per host
            timeout: Per-request timeout in seconds
            headers: Default headers sent with every request
        """
        self.timeout = timeout
        self._session = requests.Session()

        # No transport-level retries: failures must reach the caller unmodified
        adapter = HTTPAdapter(
            pool_connections=self.POOL_CONNECTIONS,
            pool_maxsize=pool_maxsize,
            max_retries=0,
            pool_block=False
        )
        self._session.mount('http://', adapter)
        self._session.mount('https://', adapter)
        if headers:
            self._session.headers.update(headers)

        self._stats = {'requests': 0, 'errors': 0}
        self._stats_lock = threading.Lock()

        logger.debug(f"[RequestSessionPool] Initialized: pool_maxsize={pool_maxsize}, timeout={timeout}s")

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        """Send a GET request and check its status.

        Args:
            url: Target URL
            params: Query parameters
            **kwargs: Extra arguments for requests.Session.get

        Returns:
            The successful requests.Response

        Raises:
            TransportError: On network failure or non-2xx status
        """
        with self._stats_lock:
            self._stats['requests'] += 1

        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self._session.get(url, params=params, **kwargs)
        except requests.RequestException as e:
            self._record_error()
            raise TransportError(f"GET {url} failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            self._record_error()
            response.close()
            raise TransportError(
                f"GET {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code
            )
        return response

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a URL and decode its JSON body.

        Returns:
            Decoded JSON, or None when the body is not valid JSON
        """
        response = self.get(url, params=params)
        try:
            return response.json()
        except ValueError:
            logger.warning(f"[RequestSessionPool] Non-JSON body from {url}")
            return None

    def _record_error(self) -> None:
        with self._stats_lock:
            self._stats['errors'] += 1

    @property
    def session(self) -> requests.Session:
        """The underlying requests.Session."""
        return self._session

    def get_stats(self) -> Dict:
        """Get request statistics.

        Returns:
            Dictionary with request and error counts
        """
        with self._stats_lock:
            return self._stats.copy()

    def close(self) -> None:
        """Close all pooled connections."""
        self._session.close()
        logger.debug("[RequestSessionPool] Session pool closed")
