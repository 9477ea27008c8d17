from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from neighborhood_polygons.normalize import normalize, normalize_neighborhood


logger = logging.getLogger(__name__)


TOWN_COLUMNS = ["province_id", "district_id", "name"]
NEIGHBORHOOD_COLUMNS = ["province_id", "district_id", "neighborhood_id", "name"]
PROVINCE_CODE_COLUMNS = ["province", "code"]


class ReferenceDataError(ValueError):
    """Reference dataset is missing, empty or malformed."""


class NotFound(KeyError):
    pass


# -----------------------------
# Entities
# -----------------------------

@dataclass(frozen=True)
class Province:
    id: int
    name: str
    canonical: str
    code: Optional[str] = None


@dataclass(frozen=True)
class District:
    id: int
    name: str
    canonical: str
    province_id: int


@dataclass(frozen=True)
class Neighborhood:
    id: int
    name: str
    canonical: str
    district_id: int
    province_id: int


# -----------------------------
# Index
# -----------------------------

class ReferenceIndex:
    """
    Province -> district -> neighborhood lookup built once from the
    reference tables.

    Children are grouped by parent id and sorted by their own id, so the
    candidate set of a record is a single dict lookup.
    """

    def __init__(
        self,
        provinces: Iterable[Province],
        districts: Iterable[District],
        neighborhoods: Iterable[Neighborhood],
    ) -> None:
        self._provinces: Dict[str, Province] = {}
        for p in sorted(provinces, key=lambda p: p.id):
            # first (lowest id) wins if two provinces share a canonical name
            self._provinces.setdefault(p.canonical, p)

        by_province: Dict[int, List[District]] = defaultdict(list)
        for d in districts:
            by_province[d.province_id].append(d)
        self._districts: Dict[int, Tuple[District, ...]] = {
            k: tuple(sorted(v, key=lambda d: d.id)) for k, v in by_province.items()
        }

        by_district: Dict[int, List[Neighborhood]] = defaultdict(list)
        for n in neighborhoods:
            by_district[n.district_id].append(n)
        self._neighborhoods: Dict[int, Tuple[Neighborhood, ...]] = {
            k: tuple(sorted(v, key=lambda n: n.id)) for k, v in by_district.items()
        }

        if not self._provinces:
            raise ReferenceDataError("Reference data has no provinces")
        if not self._districts:
            raise ReferenceDataError("Reference data has no districts")
        if not self._neighborhoods:
            raise ReferenceDataError("Reference data has no neighborhoods")

    # -- lookups --

    def districts_in(self, province_id: int) -> Tuple[District, ...]:
        return self._districts.get(province_id, ())

    def neighborhoods_in(self, district_id: int) -> Tuple[Neighborhood, ...]:
        return self._neighborhoods.get(district_id, ())

    def province_by_canonical_name(self, name: str) -> Province:
        try:
            return self._provinces[name]
        except KeyError:
            raise NotFound(name) from None

    @property
    def provinces(self) -> Tuple[Province, ...]:
        return tuple(self._provinces.values())

    def __repr__(self) -> str:
        n_districts = sum(len(v) for v in self._districts.values())
        n_neighborhoods = sum(len(v) for v in self._neighborhoods.values())
        return (
            f"ReferenceIndex(provinces={len(self._provinces)}, "
            f"districts={n_districts}, neighborhoods={n_neighborhoods})"
        )

    # -- construction from tables --

    @classmethod
    def from_frames(
        cls,
        towns: pd.DataFrame,
        neighborhoods: pd.DataFrame,
        province_codes: Optional[pd.DataFrame] = None,
    ) -> "ReferenceIndex":
        """
        Build the index from already-loaded tables.

        towns:          province_id, district_id, name
                        (rows with an empty district_id are provinces)
        neighborhoods:  province_id, district_id, neighborhood_id, name
        province_codes: province, code  (optional, joined on canonical name)
        """
        _check_frame(towns, TOWN_COLUMNS, "towns")
        _check_frame(neighborhoods, NEIGHBORHOOD_COLUMNS, "neighborhoods")

        codes: Dict[str, str] = {}
        if province_codes is not None:
            _check_frame(province_codes, PROVINCE_CODE_COLUMNS, "province_codes")
            for _, row in province_codes.iterrows():
                code = row["code"]
                if code is None or (isinstance(code, float) and pd.isna(code)):
                    continue
                codes[normalize(row["province"])] = str(code).strip()

        is_province = towns["district_id"].isna()
        province_rows = towns[is_province]
        district_rows = towns[~is_province]

        provinces = []
        for _, row in province_rows.iterrows():
            canonical = normalize(row["name"])
            code = codes.get(canonical)
            if province_codes is not None and code is None:
                logger.warning("No external code for province %r", row["name"])
            provinces.append(
                Province(
                    id=_as_id(row["province_id"], "towns.province_id"),
                    name=str(row["name"]).strip(),
                    canonical=canonical,
                    code=code,
                )
            )

        districts = [
            District(
                id=_as_id(row["district_id"], "towns.district_id"),
                name=str(row["name"]).strip(),
                canonical=normalize(row["name"]),
                province_id=_as_id(row["province_id"], "towns.province_id"),
            )
            for _, row in district_rows.iterrows()
        ]

        hoods = [
            Neighborhood(
                id=_as_id(row["neighborhood_id"], "neighborhoods.neighborhood_id"),
                name=str(row["name"]).strip(),
                canonical=normalize_neighborhood(row["name"]),
                district_id=_as_id(row["district_id"], "neighborhoods.district_id"),
                province_id=_as_id(row["province_id"], "neighborhoods.province_id"),
            )
            for _, row in neighborhoods.iterrows()
        ]

        index = cls(provinces, districts, hoods)
        logger.info("Built %r", index)
        return index


def load_reference_csv(path: Union[str, Path], required: Sequence[str]) -> pd.DataFrame:
    """
    Load one reference table and check its columns by name.
    """
    path = Path(path)
    if not path.exists():
        raise ReferenceDataError(f"Reference file not found: {path}")

    df = pd.read_csv(path, dtype=object)
    df.columns = [str(c).strip() for c in df.columns]
    _check_frame(df, required, str(path))

    # id columns come in as text; make them numeric (nullable) for the index
    for col in required:
        if not col.endswith("_id"):
            continue
        numeric = pd.to_numeric(df[col], errors="coerce")
        bad = df[col].notna() & (numeric.isna() | (numeric % 1 != 0))
        if bad.any():
            raise ReferenceDataError(
                f"Non-integer ids in {path} column {col}: {df.loc[bad, col].tolist()[:20]}"
            )
        df[col] = numeric.astype("Int64")
    return df


# -----------------------------
# Small helpers
# -----------------------------

def _check_frame(df: Optional[pd.DataFrame], required: Sequence[str], what: str) -> None:
    if df is None:
        raise ReferenceDataError(f"Reference table {what} is missing")
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ReferenceDataError(f"Missing required columns in {what}: {missing}")
    if df.empty:
        raise ReferenceDataError(f"Reference table {what} is empty")


def _as_id(x, what: str) -> int:
    if x is None or pd.isna(x):
        raise ReferenceDataError(f"Missing id in {what}")
    if isinstance(x, float):
        if not x.is_integer():
            raise ReferenceDataError(f"Non-integer id in {what}: {x!r}")
        return int(x)
    try:
        return int(str(x).strip())
    except ValueError:
        raise ReferenceDataError(f"Non-integer id in {what}: {x!r}") from None
