"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv as _load_dotenv

from regionpoi import config
from regionpoi.http import HttpClient, RequestMetrics
from regionpoi.pipeline import DiscoveryEngine, build_summary
from regionpoi.regions import find_region, load_regions
from regionpoi.reporting import (
    ProgressReporter,
    ensure_dir,
    render_summary,
    write_points_csv,
    write_points_json,
    write_summary,
)
from regionpoi.search_client import OverpassBackend, SearchBackend, WikipediaGeoBackend

BACKENDS = ("overpass", "wikipedia")


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_categories(value: Optional[str]) -> List[str]:
    if not value:
        return list(config.CATEGORIES)
    wanted = [v.strip().lower() for v in value.split(",") if v.strip()]
    unknown = [v for v in wanted if v not in config.CATEGORIES]
    if unknown:
        raise ValueError(f"Unknown categories: {', '.join(unknown)}")
    return wanted


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover and rank points of interest inside a region")
    parser.add_argument("--regions", type=str, default=str(_repo_root() / "geo" / "voivodeships.json"))
    parser.add_argument("--list-regions", action="store_true", help="Print region names and exit")
    parser.add_argument("--region", type=str, default=None, help="Region name to discover")
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=os.environ.get("REGIONPOI_BACKEND") or "overpass",
        help="overpass (tile grid) or wikipedia (hex grid)",
    )
    parser.add_argument("--categories", type=str, default=None, help="Comma-separated active categories")
    parser.add_argument("--per-category-cap", type=int, default=None)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--tile-rows", type=int, default=None)
    parser.add_argument("--tile-cols", type=int, default=None)
    parser.add_argument("--hex-radius-m", type=float, default=None)
    parser.add_argument("--config", type=str, default=None, help="Path to poi_config.json")
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    return parser.parse_args(argv)


def build_backend(name: str, http_client: HttpClient) -> SearchBackend:
    if name == "wikipedia":
        return WikipediaGeoBackend(http_client)
    if name == "overpass":
        return OverpassBackend(http_client)
    raise ValueError(f"Unknown backend: {name}")


def build_sampling(args: argparse.Namespace, mode: str) -> config.SamplingConfig:
    return config.SamplingConfig(
        mode=mode,
        tile_rows=args.tile_rows if args.tile_rows is not None else config.TILE_ROWS,
        tile_cols=args.tile_cols if args.tile_cols is not None else config.TILE_COLS,
        hex_radius_m=args.hex_radius_m if args.hex_radius_m is not None else config.HEX_RADIUS_M,
        hex_min_centers=config.HEX_MIN_CENTERS,
        hex_shrink_factor=config.HEX_SHRINK_FACTOR,
        hex_max_refinements=config.HEX_MAX_REFINEMENTS,
    )


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_search_config(args.config)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    regions_path = Path(args.regions).expanduser()
    if not regions_path.exists():
        print(f"Regions file missing: {regions_path}", file=sys.stderr)
        return 1
    regions = load_regions(str(regions_path))

    if args.list_regions or not args.region:
        for region in regions:
            print(region.name)
        return 0

    region = find_region(regions, args.region)
    if region is None:
        print(f"Unknown region: {args.region}", file=sys.stderr)
        return 1

    try:
        categories = parse_categories(args.categories)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    cap = args.per_category_cap if args.per_category_cap is not None else config.PER_CATEGORY_CAP

    metrics = RequestMetrics()
    http_client = HttpClient(
        timeout=config.HTTP_TIMEOUT_SECONDS,
        backoff_base=config.HTTP_BACKOFF_BASE,
        backoff_max=config.HTTP_BACKOFF_MAX,
        user_agent=os.environ.get("REGIONPOI_USER_AGENT") or config.USER_AGENT,
        metrics=metrics,
    )
    backend = build_backend(args.backend, http_client)
    ensure_dir(args.out)
    progress = ProgressReporter(
        output_path=os.path.join(args.out, "progress.json"),
        log_every=config.PROGRESS_LOG_EVERY,
        counters=metrics,
    )
    engine = DiscoveryEngine(
        backend,
        sampling=build_sampling(args, backend.sampling_mode),
        concurrency=args.concurrency,
        metrics=metrics,
        progress=progress,
    )

    engine.select(region)
    try:
        run = engine.discover(region)
    except KeyboardInterrupt:
        engine.cancel()
        print("Discovery cancelled", file=sys.stderr)
        return 130

    displayed = engine.view(region, categories, cap).points
    write_points_json(os.path.join(args.out, "points.json"), displayed)
    write_points_csv(os.path.join(args.out, "points.csv"), displayed)
    lines = render_summary(build_summary(run, displayed, backend.name, metrics))
    write_summary(os.path.join(args.out, "summary.txt"), lines)
    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
