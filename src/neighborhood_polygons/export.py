from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
import pandas as pd
import pyogrio


logger = logging.getLogger(__name__)


def pick_polygon_layer(gpkg_path: Path) -> str:
    layers = pyogrio.list_layers(str(gpkg_path))  # list of (name, geometry_type)
    for name, gtype in layers:
        if "neighborhood" in name.lower() and str(gtype).lower() in {"polygon", "multipolygon"}:
            return name
    for name, gtype in layers:
        if str(gtype).lower() in {"polygon", "multipolygon"}:
            return name
    raise ValueError(f"No polygon layer found in {gpkg_path}. Layers: {layers}")


def select_polygons(
    polygons: gpd.GeoDataFrame,
    matched: pd.DataFrame,
    id_column: str = "neighborhood_id",
) -> gpd.GeoDataFrame:
    """
    Keep the polygons whose id appears in the matched table, with the
    matched attributes joined on. One polygon per matched row, so a
    neighborhood listed twice appears twice.
    """
    if id_column not in polygons.columns:
        raise ValueError(f"Polygon layer has no {id_column!r} column. Columns: {list(polygons.columns)}")

    left = polygons.copy()
    left[id_column] = pd.to_numeric(left[id_column], errors="coerce").astype("Int64")
    right = matched.copy()
    right[id_column] = right[id_column].astype("Int64")

    # suffix only the polygon side; matched columns keep their names
    out = left.merge(right, on=id_column, how="inner", suffixes=("_ref", ""))
    out = gpd.GeoDataFrame(out, geometry=polygons.geometry.name)
    if out.crs is None and polygons.crs is not None:
        out = out.set_crs(polygons.crs)

    missing = set(right[id_column].dropna()) - set(out[id_column].dropna())
    if missing:
        logger.warning("%d matched ids have no polygon: %s", len(missing), sorted(missing)[:20])
    return out


def export_polygons(
    gpkg_path: Union[str, Path],
    matched: pd.DataFrame,
    out_path: Union[str, Path],
    layer: Optional[str] = None,
    out_layer: str = "affected_neighborhoods",
    id_column: str = "neighborhood_id",
) -> gpd.GeoDataFrame:
    gpkg_path = Path(gpkg_path)
    if not gpkg_path.exists():
        raise FileNotFoundError(f"Could not find GPKG at: {gpkg_path}")

    layer = layer or pick_polygon_layer(gpkg_path)
    logger.info("Using polygon layer %r from %s", layer, gpkg_path)

    polygons = gpd.read_file(gpkg_path, layer=layer)
    selected = select_polygons(polygons, matched, id_column=id_column)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    selected.to_file(out_path, layer=out_layer, driver="GPKG")
    logger.info("Wrote %d polygons to %s (layer=%s)", len(selected), out_path, out_layer)
    return selected
