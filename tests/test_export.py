from __future__ import annotations

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point, box

from neighborhood_polygons.export import export_polygons, pick_polygon_layer, select_polygons


def build_polygons() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "neighborhood_id": [5001, 5002, 5005, 40319],
            "name": ["BOTA MH.", "KARSLILAR MH.", "SEYHANLI MH.", "KIRISKAL MH."],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(2, 0, 3, 1), box(10, 10, 11, 11)],
        crs="EPSG:4326",
    )


def build_matched() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "province_code": ["TR-01", "TR-01", "TR-27", "TR-01"],
            "district_id": [101, 101, 1718, 101],
            "neighborhood_id": [5001, 5001, 40319, 9999],
            "subdivision": ["", "Yukarı Mevkii", "", ""],
        }
    )


def test_select_polygons_keeps_one_row_per_match(caplog):
    with caplog.at_level("WARNING"):
        out = select_polygons(build_polygons(), build_matched())

    assert isinstance(out, gpd.GeoDataFrame)
    assert out.crs == "EPSG:4326"
    assert sorted(out["neighborhood_id"].tolist()) == [5001, 5001, 40319]
    assert set(out["province_code"]) == {"TR-01", "TR-27"}
    assert "9999" in caplog.text


def test_select_polygons_requires_id_column():
    with pytest.raises(ValueError, match="neighborhood_id"):
        select_polygons(build_polygons().rename(columns={"neighborhood_id": "id"}), build_matched())


def test_export_polygons_roundtrip(tmp_path):
    gpkg = tmp_path / "reference.gpkg"
    points = gpd.GeoDataFrame({"label": ["a"]}, geometry=[Point(0, 0)], crs="EPSG:4326")
    points.to_file(gpkg, layer="centroids", driver="GPKG")
    build_polygons().to_file(gpkg, layer="neighborhoods", driver="GPKG")

    assert pick_polygon_layer(gpkg) == "neighborhoods"

    out_path = tmp_path / "out" / "affected.gpkg"
    selected = export_polygons(gpkg, build_matched(), out_path)
    assert len(selected) == 3

    written = gpd.read_file(out_path, layer="affected_neighborhoods")
    assert sorted(written["neighborhood_id"].tolist()) == [5001, 5001, 40319]


def test_pick_polygon_layer_without_polygons(tmp_path):
    gpkg = tmp_path / "points.gpkg"
    gpd.GeoDataFrame({"label": ["a"]}, geometry=[Point(0, 0)], crs="EPSG:4326").to_file(
        gpkg, layer="centroids", driver="GPKG"
    )
    with pytest.raises(ValueError, match="No polygon layer"):
        pick_polygon_layer(gpkg)


def test_export_polygons_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        export_polygons(tmp_path / "nope.gpkg", build_matched(), tmp_path / "out.gpkg")
