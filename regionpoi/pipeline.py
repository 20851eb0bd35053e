"""Discovery orchestration: sample, fetch, merge, cache, view."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .cache import RegionCache
from .coverage import sample_cells
from .fetch import CellError, FetchCoordinator
from .filtering import count_by_category, filter_and_limit
from .http import CancelToken, RequestMetrics
from .merge import MergeStats, ResultMerger
from .models import ClassifiedPoint, Region
from .reporting import ProgressReporter, utc_now_iso
from .search_client import SearchBackend

logger = logging.getLogger(__name__)


@dataclass
class PoiView:
    points: List[ClassifiedPoint]
    loading: bool


@dataclass
class DiscoveryRun:
    region: str
    generation: int
    points: List[ClassifiedPoint] = field(default_factory=list)
    cache_hit: bool = False
    cancelled: bool = False
    cells: int = 0
    raw_results: int = 0
    errors: List[CellError] = field(default_factory=list)
    merge_stats: Optional[MergeStats] = None


def default_sampling(mode: str) -> config.SamplingConfig:
    return config.SamplingConfig(
        mode=mode,
        tile_rows=config.TILE_ROWS,
        tile_cols=config.TILE_COLS,
        hex_radius_m=config.HEX_RADIUS_M,
        hex_min_centers=config.HEX_MIN_CENTERS,
        hex_shrink_factor=config.HEX_SHRINK_FACTOR,
        hex_max_refinements=config.HEX_MAX_REFINEMENTS,
    )


class DiscoveryEngine:
    """Region-scoped POI discovery with a write-once region cache.

    Each cache-miss run gets a fresh cancellation token and generation number.
    Starting a run, selecting another region or calling cancel() supersedes the
    current run; a superseded run never writes the cache.
    """

    def __init__(
        self,
        backend: SearchBackend,
        cache: Optional[RegionCache] = None,
        sampling: Optional[config.SamplingConfig] = None,
        concurrency: Optional[int] = None,
        metrics: Optional[RequestMetrics] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> None:
        self.backend = backend
        self.cache = cache if cache is not None else RegionCache()
        self.sampling = sampling or default_sampling(backend.sampling_mode)
        self.concurrency = concurrency or config.FETCH_CONCURRENCY
        self.metrics = metrics
        self.progress = progress
        self._lock = threading.Lock()
        self._generation = 0
        self._token: Optional[CancelToken] = None
        self._active_region: Optional[str] = None
        self._loading = False

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def select(self, region: Optional[Region]) -> None:
        """Change the active region; a batch for any other region is cancelled."""
        with self._lock:
            key = region.key if region is not None else None
            if key != self._active_region and self._token is not None:
                logger.info("Region changed to %s; cancelling run for %s", key, self._active_region)
                self._token.cancel()
            self._active_region = key

    def cancel(self) -> None:
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def discover(self, region: Region) -> DiscoveryRun:
        cached = self.cache.get(region.key, region.fingerprint)
        if cached is not None:
            if self.metrics is not None:
                self.metrics.inc("cache_hits")
            logger.info("Region %s served from cache (%s points)", region.key, len(cached))
            return DiscoveryRun(region=region.key, generation=self.generation, points=cached, cache_hit=True)

        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._generation += 1
            generation = self._generation
            token = CancelToken()
            self._token = token
            self._active_region = region.key
            self._loading = True

        run = DiscoveryRun(region=region.key, generation=generation)
        try:
            logger.info("Stage 1: sampling cells (%s)", region.key)
            cells = sample_cells(region.bbox, region.polygons, self.sampling)
            run.cells = len(cells)
            if not cells:
                logger.warning("Region %s has no usable geometry; nothing to fetch", region.key)
                return run

            logger.info("Stage 2: fetch (%s cells, concurrency=%s)", len(cells), self.concurrency)
            merger = ResultMerger(region.polygons)
            if self.progress is not None:
                self.progress.set_stage(f"fetch:{region.key}", total_estimate=len(cells))
            coordinator = FetchCoordinator(
                self.backend,
                concurrency=self.concurrency,
                on_results=merger.add_many,
                progress=self.progress,
                metrics=self.metrics,
            )
            outcome = coordinator.fetch_all(cells, token)
            run.errors = outcome.errors
            run.raw_results = len(outcome.results)
            if outcome.cancelled:
                run.cancelled = True
                logger.info("Run %s for %s cancelled; results discarded", generation, region.key)
                return run

            logger.info("Stage 3: merge (%s raw results)", len(outcome.results))
            points = merger.results()
            run.merge_stats = merger.stats
            if outcome.errors and len(outcome.errors) >= len(cells):
                logger.warning("Every cell failed for %s; not caching an empty result", region.key)
                run.points = points
                return run

            with self._lock:
                if token.cancelled or generation != self._generation:
                    run.cancelled = True
                    return run
                run.points = self.cache.put(region.key, points, region.fingerprint)
            logger.info(
                "Stage 4: cached %s points for %s (%s failed cells)",
                len(run.points),
                region.key,
                len(outcome.errors),
            )
            return run
        except BaseException:
            token.cancel()
            raise
        finally:
            with self._lock:
                if generation == self._generation:
                    self._loading = False
                    self._token = None

    def view(
        self,
        region: Region,
        active_categories: Iterable[str],
        per_category_cap: int = config.PER_CATEGORY_CAP,
    ) -> PoiView:
        """Displayed points for a region from the cache alone; no network."""
        cached = self.cache.get(region.key, region.fingerprint)
        with self._lock:
            loading = self._loading and self._active_region == region.key
        if cached is None:
            return PoiView(points=[], loading=loading)
        return PoiView(points=filter_and_limit(cached, active_categories, per_category_cap), loading=False)


def build_summary(
    run: DiscoveryRun,
    displayed: List[ClassifiedPoint],
    backend_name: str,
    metrics: Optional[RequestMetrics] = None,
) -> Dict[str, Any]:
    return {
        "region": run.region,
        "backend": backend_name,
        "generated_at": utc_now_iso(),
        "cache_hit": run.cache_hit,
        "cancelled": run.cancelled,
        "cells": run.cells,
        "failed_cells": len(run.errors),
        "network_requests": metrics.network_requests if metrics is not None else 0,
        "raw_results": run.raw_results,
        "discovered": len(run.points),
        "displayed": len(displayed),
        "by_category": count_by_category(displayed),
    }
