"""Bounded-concurrency fan-out of one backend query per cell."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from . import config
from .coverage import Cell
from .http import CancelToken, FetchCancelled, NonRetryableError, RequestMetrics, SearchError
from .models import RawResult
from .reporting import ProgressReporter
from .search_client import SearchBackend

logger = logging.getLogger(__name__)


@dataclass
class CellError:
    cell_index: int
    message: str
    status: Optional[int] = None
    retryable: bool = True


@dataclass
class FetchOutcome:
    results: List[RawResult] = field(default_factory=list)
    errors: List[CellError] = field(default_factory=list)
    attempted: int = 0
    cancelled: bool = False


class FetchCoordinator:
    """Fixed pool of workers draining a shared, indexed queue of cells.

    Each worker takes the next unprocessed index and issues exactly one backend
    search for it. A failed cell is logged and recorded; its siblings carry on.
    Cancellation stops dispatch, and results that arrive after it are dropped.
    """

    def __init__(
        self,
        backend: SearchBackend,
        concurrency: int = config.FETCH_CONCURRENCY,
        on_results: Optional[Callable[[List[RawResult]], None]] = None,
        progress: Optional[ProgressReporter] = None,
        metrics: Optional[RequestMetrics] = None,
        poll_interval: float = 0.05,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.backend = backend
        self.concurrency = int(concurrency)
        self.on_results = on_results
        self.progress = progress
        self.metrics = metrics
        self.poll_interval = poll_interval

    def fetch_all(self, cells: Sequence[Cell], token: Optional[CancelToken] = None) -> FetchOutcome:
        token = token or CancelToken()
        outcome = FetchOutcome()
        if not cells:
            return outcome

        lock = threading.Lock()
        next_index = [0]

        def take_next() -> Optional[int]:
            with lock:
                if next_index[0] >= len(cells):
                    return None
                idx = next_index[0]
                next_index[0] += 1
                return idx

        def record_error(error: CellError) -> None:
            with lock:
                outcome.errors.append(error)
                outcome.attempted += 1

        def worker() -> None:
            while not token.cancelled:
                idx = take_next()
                if idx is None:
                    return
                cell = cells[idx]
                try:
                    found = self.backend.search(cell, token)
                except FetchCancelled:
                    if self.metrics is not None:
                        self.metrics.inc("cancelled_requests")
                    return
                except NonRetryableError as exc:
                    logger.error("Cell %s dropped: %s", idx, exc)
                    record_error(CellError(idx, str(exc), exc.status, retryable=False))
                    self._advance()
                    continue
                except SearchError as exc:
                    logger.warning("Cell %s failed after fallbacks: %s", idx, exc)
                    record_error(CellError(idx, str(exc), exc.status))
                    self._advance()
                    continue
                except Exception as exc:
                    logger.warning("Cell %s failed: %s: %s", idx, type(exc).__name__, exc)
                    record_error(CellError(idx, f"{type(exc).__name__}: {exc}"))
                    self._advance()
                    continue

                if token.cancelled:
                    # late arrival from an abandoned run
                    return
                with lock:
                    outcome.results.extend(found)
                    outcome.attempted += 1
                if self.on_results is not None and found:
                    self.on_results(list(found))
                self._advance()

        workers = min(self.concurrency, len(cells))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cell-worker")
        futures = [executor.submit(worker) for _ in range(workers)]
        try:
            pending = set(futures)
            while pending and not token.cancelled:
                done, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    exc = future.exception()
                    if exc is not None:
                        raise exc
        except BaseException:
            # the caller is gone; workers must not take another cell
            token.cancel()
            raise
        finally:
            # in-flight requests of a cancelled run are abandoned, not awaited
            executor.shutdown(wait=not token.cancelled, cancel_futures=True)

        outcome.cancelled = token.cancelled
        with lock:
            outcome.results = list(outcome.results)
            outcome.errors = sorted(outcome.errors, key=lambda e: e.cell_index)
        return outcome

    def _advance(self) -> None:
        if self.progress is not None:
            self.progress.advance()
