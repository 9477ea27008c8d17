from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from neighborhood_polygons.config import MatchConfig, SourceColumns


logger = logging.getLogger(__name__)


class SourceDataError(ValueError):
    """The affected-neighborhoods listing cannot be read."""


class MatchFailure(str, enum.Enum):
    NO_PROVINCE = "NoProvinceMatch"
    NO_DISTRICT = "NoDistrictMatch"
    NO_NEIGHBORHOOD = "NoNeighborhoodMatch"
    EMPTY_NAME = "EmptyName"


@dataclass
class SourceRecord:
    """
    One row of the listing, enriched level by level as the matcher resolves it.
    """

    row: int
    province_raw: str
    district_raw: str
    neighborhood_raw: str
    subdivision: str = ""

    province_id: Optional[int] = None
    province_code: Optional[str] = None
    province_name: Optional[str] = None
    district_id: Optional[int] = None
    district_name: Optional[str] = None
    district_score: Optional[float] = None
    neighborhood_id: Optional[int] = None
    neighborhood_name: Optional[str] = None
    neighborhood_score: Optional[float] = None
    # how the neighborhood was resolved: "pass1", "pass2", "override"
    matched_by: Optional[str] = None
    reason: Optional[MatchFailure] = None
    ambiguous: List[str] = field(default_factory=list)
    # identical listing rows folded into this one
    duplicates: int = 0

    @property
    def is_matched(self) -> bool:
        return self.neighborhood_id is not None

    def key(self) -> Tuple[str, str, str, str]:
        return (self.province_raw, self.district_raw, self.neighborhood_raw, self.subdivision)


# -----------------------------
# Public API
# -----------------------------

def load_source_listing(path: Union[str, Path], sheet_name: int | str = 0) -> pd.DataFrame:
    """
    Load the listing from XLSX or CSV, keeping every cell as text.
    """
    path = Path(path)
    if not path.exists():
        raise SourceDataError(f"Source listing not found: {path}")

    if path.suffix.lower() in {".xlsx", ".xls"}:
        df = pd.read_excel(path, sheet_name=sheet_name, dtype=object)
    else:
        df = pd.read_csv(path, dtype=object)

    # Normalize column names (strip whitespace)
    df.columns = [str(c).strip() for c in df.columns]
    return df


def parse_source_listing(
    df: pd.DataFrame,
    columns: SourceColumns = SourceColumns(),
    cfg: MatchConfig = MatchConfig(),
) -> List[SourceRecord]:
    """
    Turn listing rows into SourceRecords.

    - district "Merkez / Köy" keeps only "Merkez"
    - neighborhood "Bota Mahallesi, Yukarı Mevkii" keeps the subdivision
      "Yukarı Mevkii" apart
    - rows that are identical after this split collapse into one, counted
      in `duplicates` of the row kept
    - rows with an empty name stay as records failed with EmptyName
    """
    required = [columns.province, columns.district, columns.neighborhood]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SourceDataError(f"Missing required columns in source listing: {missing}")

    records: List[SourceRecord] = []
    seen: Dict[Tuple[str, str, str, str], SourceRecord] = {}
    empty = 0
    collapsed = 0

    for i, (_, row) in enumerate(df.iterrows()):
        province = _safe_str(row.get(columns.province))
        district = _safe_str(row.get(columns.district))
        neighborhood = _safe_str(row.get(columns.neighborhood))

        if not province or not district or not neighborhood:
            # kept so the drop shows up in the report
            empty += 1
            logger.warning("Source row %d has an empty name: %r", i, row.to_dict())
            records.append(
                SourceRecord(
                    row=i,
                    province_raw=province or "",
                    district_raw=district or "",
                    neighborhood_raw=neighborhood or "",
                    reason=MatchFailure.EMPTY_NAME,
                )
            )
            continue

        district = split_district(district, cfg.district_separator)
        neighborhood, subdivision = split_subdivision(neighborhood, cfg.subdivision_separator)

        rec = SourceRecord(
            row=i,
            province_raw=province,
            district_raw=district,
            neighborhood_raw=neighborhood,
            subdivision=subdivision,
        )
        first = seen.get(rec.key())
        if first is not None:
            first.duplicates += 1
            collapsed += 1
            logger.debug("Source row %d duplicates row %d", i, first.row)
            continue
        seen[rec.key()] = rec
        records.append(rec)

    logger.info(
        "Parsed %d source records (%d duplicate rows collapsed, %d rows with empty names)",
        len(records),
        collapsed,
        empty,
    )
    return records


def split_district(text: str, separator: str = "/") -> str:
    return text.split(separator, 1)[0].strip()


def split_subdivision(text: str, separator: str = ",") -> Tuple[str, str]:
    head, _, tail = text.partition(separator)
    return head.strip(), tail.strip()


# -----------------------------
# Small helpers
# -----------------------------

def _safe_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    if isinstance(x, float) and pd.isna(x):
        return None
    s = str(x).strip()
    return s if s else None
