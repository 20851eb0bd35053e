"""Output reporting helpers."""
from __future__ import annotations

import csv
import json
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, TextIO

from .models import ClassifiedPoint


class RequestCounters(Protocol):
    network_requests: int
    failed_requests: int


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


POINT_FIELDS = ["id", "name", "category", "score", "lat", "lng", "description", "thumbnail", "url"]


def write_points_csv(path: str, points: Iterable[ClassifiedPoint]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=POINT_FIELDS)
        writer.writeheader()
        for point in points:
            writer.writerow(point.to_dict())


def write_points_json(path: str, points: Iterable[ClassifiedPoint]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump([p.to_dict() for p in points], f, ensure_ascii=False, indent=2)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def write_summary(path: str, lines: List[str]) -> None:
    atomic_write_text(path, "\n".join(lines) + "\n")


def render_summary(summary: Dict[str, Any]) -> List[str]:
    lines = [
        f"Region: {summary.get('region')}",
        f"Backend: {summary.get('backend')}",
        f"Generated: {summary.get('generated_at')}",
        f"Cache hit: {summary.get('cache_hit')}",
        f"Cells: {summary.get('cells', 0)} (failed: {summary.get('failed_cells', 0)})",
        f"Network requests: {summary.get('network_requests', 0)}",
        f"Raw results: {summary.get('raw_results', 0)}",
        f"Discovered points: {summary.get('discovered', 0)}",
        f"Displayed points: {summary.get('displayed', 0)}",
    ]
    by_category = summary.get("by_category") or {}
    if by_category:
        lines.append("By category:")
        for category in sorted(by_category):
            lines.append(f"- {category}: {by_category[category]}")
    return lines


class ProgressReporter:
    """Counts processed cells; logs every N and optionally writes a progress JSON."""

    def __init__(
        self,
        output_path: Optional[str] = None,
        log_every: int = 5,
        write_interval_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        counters: Optional[RequestCounters] = None,
    ) -> None:
        self.output_path = output_path
        self.log_every = max(1, int(log_every)) if log_every else 0
        self.write_interval_seconds = float(write_interval_seconds)
        self.logger = logger or logging.getLogger(__name__)
        self._counters = counters
        self.stage = "init"
        self.processed_count = 0
        self.total_estimate: Optional[int] = None
        self._next_log = self.log_every if self.log_every else 0
        self._last_write = 0.0
        self._lock = threading.Lock()

    def set_stage(self, stage: str, total_estimate: Optional[int] = None) -> None:
        with self._lock:
            self.stage = stage
            self.processed_count = 0
            self.total_estimate = total_estimate
            self._next_log = self.log_every if self.log_every else 0
            self._write_if_due(force=True)

    def advance(self, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self.processed_count += count
            if self.log_every and self.processed_count >= self._next_log:
                total = "" if self.total_estimate is None else f"/{self.total_estimate}"
                self.logger.info(
                    "Progress: stage=%s processed=%s%s requests=%s",
                    self.stage,
                    self.processed_count,
                    total,
                    self._network_count(),
                )
                self._next_log += self.log_every
            self._write_if_due()

    def _network_count(self) -> int:
        if self._counters is None:
            return 0
        return int(getattr(self._counters, "network_requests", 0))

    def _write_if_due(self, force: bool = False) -> None:
        if not self.output_path:
            return
        now = time.monotonic()
        if not force and now - self._last_write < self.write_interval_seconds:
            return
        self._last_write = now
        write_json_object(
            self.output_path,
            {
                "stage": self.stage,
                "processed": self.processed_count,
                "total_estimate": self.total_estimate,
                "network_requests": self._network_count(),
                "updated_at": utc_now_iso(),
            },
        )
