from __future__ import annotations

import pandas as pd
import pytest

from neighborhood_polygons.reference import ReferenceIndex


def build_towns() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "province_id": [1, 1, 1, 27, 27],
            "district_id": [None, 101, 102, None, 1718],
            "name": ["Adana", "Çukurova", "Seyhan", "Gaziantep", "Nurdağı"],
        }
    )


def build_neighborhoods() -> pd.DataFrame:
    return pd.DataFrame(
        [
            (1, 101, 5001, "BOTA MH."),
            (1, 101, 5002, "KARSLILAR MH."),
            (1, 101, 5005, "SEYHANLI MH."),
            (1, 102, 5010, "BOTA MH."),
            (1, 102, 5021, "GÜRSELPAŞA MH."),
            (1, 102, 5020, "GÜRSELPAŞA MH."),
            (27, 1718, 40319, "KIRIŞKAL MH."),
            (27, 1718, 40330, "TÜRKMEN MH."),
        ],
        columns=["province_id", "district_id", "neighborhood_id", "name"],
    )


def build_province_codes() -> pd.DataFrame:
    return pd.DataFrame({"province": ["ADANA", "Adana", "Gaziantep"], "code": [None, "TR-01", "TR-27"]})


def build_source(rows) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["province", "district", "neighborhood"])


@pytest.fixture
def index() -> ReferenceIndex:
    return ReferenceIndex.from_frames(build_towns(), build_neighborhoods(), build_province_codes())


@pytest.fixture
def towns() -> pd.DataFrame:
    return build_towns()


@pytest.fixture
def neighborhoods() -> pd.DataFrame:
    return build_neighborhoods()


@pytest.fixture
def province_codes() -> pd.DataFrame:
    return build_province_codes()


@pytest.fixture
def make_source():
    return build_source
