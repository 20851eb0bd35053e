"""HTTP client with mirror fallback, backoff and cooperative cancellation."""
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from . import config

logger = logging.getLogger(__name__)

RATE_LIMITED = 429


class SearchError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class NonRetryableError(SearchError):
    pass


class FetchCancelled(Exception):
    pass


class CancelToken:
    """Shared cancellation signal checked before dispatch and after each call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelled()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))


@dataclass
class RequestMetrics:
    network_requests: int = 0
    failed_requests: int = 0
    fallbacks: int = 0
    cancelled_requests: int = 0
    cache_hits: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, name: str, count: int = 1) -> None:
        if name not in ("network_requests", "failed_requests", "fallbacks", "cancelled_requests", "cache_hits"):
            raise ValueError(f"Unknown metric: {name}")
        with self._lock:
            setattr(self, name, getattr(self, name) + count)


class HttpClient:
    def __init__(
        self,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        backoff_base: float = config.HTTP_BACKOFF_BASE,
        backoff_max: float = config.HTTP_BACKOFF_MAX,
        user_agent: str = config.USER_AGENT,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.timeout = timeout
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

    def get_json(
        self,
        endpoints: Sequence[str],
        params: Dict[str, Any],
        token: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        return self._request_json("GET", endpoints, token, params=params)

    def post_form(
        self,
        endpoints: Sequence[str],
        data: Dict[str, Any],
        token: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        return self._request_json("POST", endpoints, token, data=data)

    def _request_json(
        self,
        method: str,
        endpoints: Sequence[str],
        token: Optional[CancelToken],
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Try each endpoint once, in order.

        Non-retryable 4xx stops immediately; 429/5xx, network errors and
        non-JSON bodies back off and move on to the next endpoint.
        """
        urls: List[str] = list(endpoints)
        if not urls:
            raise ValueError("At least one endpoint is required")
        last_error: Optional[SearchError] = None

        for attempt, url in enumerate(urls, start=1):
            if token is not None:
                token.raise_if_cancelled()
            if attempt > 1 and self.metrics is not None:
                self.metrics.inc("fallbacks")
            if self.metrics is not None:
                self.metrics.inc("network_requests")
            try:
                if method == "GET":
                    resp = self.session.get(url, params=params, timeout=self.timeout)
                else:
                    resp = self.session.post(url, data=data, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.warning("%s %s failed (attempt %s): %s", method, url, attempt, exc)
                last_error = SearchError(f"Request to {url} failed: {exc}")
                self._backoff(attempt, len(urls), token)
                continue

            if token is not None and token.cancelled:
                raise FetchCancelled()

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.warning("Non-JSON response from %s (attempt %s)", url, attempt)
                    last_error = SearchError(f"Malformed response from {url}", status)
                    self._backoff(attempt, len(urls), token)
                    continue

            if status == RATE_LIMITED or status >= 500:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                last_error = SearchError(f"HTTP {status} from {url}", status)
                if attempt < len(urls) and not self._sleep_retry_after(resp, token):
                    self._backoff(attempt, len(urls), token)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            if self.metrics is not None:
                self.metrics.inc("failed_requests")
            raise NonRetryableError(f"HTTP {status} from {url}", status)

        if self.metrics is not None:
            self.metrics.inc("failed_requests")
        if last_error is not None:
            raise last_error
        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _backoff(self, attempt: int, total: int, token: Optional[CancelToken]) -> None:
        if attempt >= total:
            return
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        self._sleep(base + jitter, token)

    def _sleep_retry_after(self, resp: requests.Response, token: Optional[CancelToken]) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        self._sleep(max(0.0, min(delay, self.backoff_max)), token)
        return True

    def _sleep(self, seconds: float, token: Optional[CancelToken]) -> None:
        if seconds <= 0:
            return
        if token is None:
            time.sleep(seconds)
            return
        if token.wait(seconds):
            raise FetchCancelled()
