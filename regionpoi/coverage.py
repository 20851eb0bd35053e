"""Cell sampling: cover a region's bounds with query cells."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from . import config
from .geo import meters_to_degrees, point_in_polygons
from .models import BBox, Polygon

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cell:
    """One query unit: either center+radius or a south/west/north/east box."""

    index: int
    lat: float
    lng: float
    radius_m: Optional[float] = None
    bbox: Optional[BBox] = None

    @property
    def is_bbox(self) -> bool:
        return self.bbox is not None


@dataclass
class HexSampling:
    cells: List[Cell]
    radius_m: float
    pass_counts: List[int] = field(default_factory=list)
    passes: int = 1


def build_tile_grid(bbox: BBox, rows: int, cols: int) -> List[Cell]:
    """Split bbox into rows x cols boxes, south-west first, row-major."""
    if rows <= 0 or cols <= 0:
        raise ValueError("Tile grid rows and cols must be positive")
    d_lat = (bbox.north - bbox.south) / rows
    d_lng = (bbox.east - bbox.west) / cols

    cells: List[Cell] = []
    for r in range(rows):
        for c in range(cols):
            s = bbox.south + r * d_lat
            n = bbox.north if r == rows - 1 else bbox.south + (r + 1) * d_lat
            w = bbox.west + c * d_lng
            e = bbox.east if c == cols - 1 else bbox.west + (c + 1) * d_lng
            tile = BBox(south=s, west=w, north=n, east=e)
            center_lat, center_lng = tile.center
            cells.append(Cell(index=len(cells), lat=center_lat, lng=center_lng, bbox=tile))
    return cells


def build_hex_centers(bbox: BBox, polygons: Sequence[Polygon], radius_m: float) -> List[Cell]:
    """Offset-row hex centers spaced from radius_m, kept only inside the polygons."""
    if radius_m <= 0:
        raise ValueError("Hex radius must be positive")
    mid_lat = (bbox.south + bbox.north) / 2
    dx = meters_to_degrees(2 * radius_m * config.HEX_SPACING_FACTOR, mid_lat)["lng"]
    dy = meters_to_degrees(math.sqrt(3) * radius_m, mid_lat)["lat"]

    cells: List[Cell] = []
    row = 0
    lat = bbox.south
    epsilon = 1e-9
    while lat <= bbox.north + epsilon:
        lng = bbox.west + (dx / 2 if row % 2 else 0.0)
        while lng <= bbox.east + epsilon:
            if bbox.contains(lat, lng) and point_in_polygons(lat, lng, polygons):
                cells.append(Cell(index=len(cells), lat=lat, lng=lng, radius_m=radius_m))
            lng += dx
        row += 1
        lat = bbox.south + row * dy
    return cells


def build_hex_grid(
    bbox: BBox,
    polygons: Sequence[Polygon],
    radius_m: float,
    min_centers: int = config.HEX_MIN_CENTERS,
    shrink_factor: float = config.HEX_SHRINK_FACTOR,
    max_refinements: int = config.HEX_MAX_REFINEMENTS,
) -> HexSampling:
    """Hex centers with shrink-and-regenerate passes for small or thin regions.

    A refinement pass that yields fewer centers than the one before it is
    discarded and refinement stops, so accepted pass counts never decrease.
    """
    if not 0 < shrink_factor < 1:
        raise ValueError("shrink_factor must be in (0, 1)")
    cells = build_hex_centers(bbox, polygons, radius_m)
    sampling = HexSampling(cells=cells, radius_m=radius_m, pass_counts=[len(cells)])

    for _ in range(max(0, max_refinements)):
        if len(sampling.cells) >= min_centers:
            break
        next_radius = sampling.radius_m * shrink_factor
        next_cells = build_hex_centers(bbox, polygons, next_radius)
        sampling.passes += 1
        if len(next_cells) < len(sampling.cells):
            break
        logger.info(
            "Hex refinement: radius %.0fm -> %.0fm, centers %s -> %s",
            sampling.radius_m,
            next_radius,
            len(sampling.cells),
            len(next_cells),
        )
        sampling.cells = next_cells
        sampling.radius_m = next_radius
        sampling.pass_counts.append(len(next_cells))
    return sampling


def sample_cells(
    bbox: Optional[BBox],
    polygons: Sequence[Polygon],
    sampling: Optional[config.SamplingConfig] = None,
) -> List[Cell]:
    """Cells covering a region; empty for degenerate geometry."""
    if sampling is None:
        sampling = config.SamplingConfig(
            tile_rows=config.TILE_ROWS,
            tile_cols=config.TILE_COLS,
            hex_radius_m=config.HEX_RADIUS_M,
            hex_min_centers=config.HEX_MIN_CENTERS,
            hex_shrink_factor=config.HEX_SHRINK_FACTOR,
            hex_max_refinements=config.HEX_MAX_REFINEMENTS,
        )
    if bbox is None or not polygons:
        return []
    if sampling.mode == config.SAMPLING_MODE_TILES:
        return build_tile_grid(bbox, sampling.tile_rows, sampling.tile_cols)
    if sampling.mode == config.SAMPLING_MODE_HEX:
        return build_hex_grid(
            bbox,
            polygons,
            sampling.hex_radius_m,
            min_centers=sampling.hex_min_centers,
            shrink_factor=sampling.hex_shrink_factor,
            max_refinements=sampling.hex_max_refinements,
        ).cells
    raise ValueError(f"Unknown sampling mode: {sampling.mode}")
