from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import pandas as pd

from neighborhood_polygons.config import MatchConfig, SourceColumns
from neighborhood_polygons.matcher import HierarchicalMatcher
from neighborhood_polygons.reconcile import OVERRIDES, OverrideKey, reconcile
from neighborhood_polygons.reference import ReferenceIndex
from neighborhood_polygons.source_parser import SourceRecord, parse_source_listing


logger = logging.getLogger(__name__)


OUTPUT_COLUMNS = [
    "province_code",
    "district_id",
    "province_district",
    "district_neighborhood",
    "neighborhood_id",
    "subdivision",
]

DROPPED_COLUMNS = [
    "row",
    "province",
    "district",
    "neighborhood",
    "subdivision",
    "reason",
    "province_id",
    "district_id",
    "district_score",
    "neighborhood_score",
]


@dataclass
class MatchReport:
    total: int = 0
    # identical listing rows folded into a kept record
    collapsed: int = 0
    matched: int = 0
    dropped: int = 0
    by_method: Dict[str, int] = field(default_factory=dict)
    by_reason: Dict[str, int] = field(default_factory=dict)
    ambiguous: int = 0
    expected_total: Optional[int] = None

    @property
    def source_rows(self) -> int:
        return self.total + self.collapsed

    @property
    def expected_difference(self) -> Optional[int]:
        if self.expected_total is None:
            return None
        return self.matched - self.expected_total

    def lines(self) -> List[str]:
        out = [
            f"Source rows:      {self.source_rows}",
            f"Source records:   {self.total} ({self.collapsed} duplicate rows collapsed)",
            f"Matched:          {self.matched}",
            f"Dropped:          {self.dropped}",
        ]
        for method, n in sorted(self.by_method.items()):
            out.append(f"  matched by {method}: {n}")
        for reason, n in sorted(self.by_reason.items()):
            out.append(f"  dropped, {reason}: {n}")
        out.append(f"Ambiguous (ties): {self.ambiguous}")
        if self.expected_total is not None:
            out.append(f"Published total:  {self.expected_total} (difference {self.expected_difference:+d})")
        return out


@dataclass
class PipelineResult:
    records: List[SourceRecord]
    output: pd.DataFrame
    dropped: pd.DataFrame
    report: MatchReport


def run_pipeline(
    index: ReferenceIndex,
    source: pd.DataFrame,
    cfg: MatchConfig = MatchConfig(),
    columns: SourceColumns = SourceColumns(),
    overrides: Mapping[OverrideKey, int] = OVERRIDES,
    expected_total: Optional[int] = None,
) -> PipelineResult:
    records = parse_source_listing(source, columns=columns, cfg=cfg)
    records = HierarchicalMatcher(index, cfg).match(records)
    matched = reconcile(records, overrides, index=index)
    kept = {r.row for r in matched}
    unmatched = [r for r in records if r.row not in kept]
    records = sorted(matched + unmatched, key=lambda r: r.row)

    report = build_report(records, expected_total=expected_total)
    logger.info("Matched %d of %d source records, dropped %d", report.matched, report.total, report.dropped)

    return PipelineResult(
        records=records,
        output=to_output_frame(matched),
        dropped=to_dropped_frame(unmatched),
        report=report,
    )


def build_report(records: List[SourceRecord], expected_total: Optional[int] = None) -> MatchReport:
    matched = [r for r in records if r.is_matched]
    unmatched = [r for r in records if not r.is_matched]
    return MatchReport(
        total=len(records),
        collapsed=sum(r.duplicates for r in records),
        matched=len(matched),
        dropped=len(unmatched),
        by_method=dict(Counter(r.matched_by for r in matched)),
        by_reason=dict(Counter(r.reason.value for r in unmatched if r.reason is not None)),
        ambiguous=sum(1 for r in records if r.ambiguous),
        expected_total=expected_total,
    )


def to_output_frame(records: List[SourceRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        if r.neighborhood_id is None:
            raise ValueError(f"Row {r.row} has no neighborhood id and cannot be emitted")
        district = r.district_name or r.district_raw
        rows.append(
            {
                "province_code": r.province_code or "",
                "district_id": r.district_id,
                "province_district": f"{r.province_name or r.province_raw} / {district}",
                "district_neighborhood": f"{district} / {r.neighborhood_name or r.neighborhood_raw}",
                "neighborhood_id": r.neighborhood_id,
                "subdivision": r.subdivision or "",
            }
        )
    df = pd.DataFrame(rows, columns=OUTPUT_COLUMNS)
    return df.astype({"district_id": "int64", "neighborhood_id": "int64"})


def to_dropped_frame(records: List[SourceRecord]) -> pd.DataFrame:
    rows = [
        {
            "row": r.row,
            "province": r.province_raw,
            "district": r.district_raw,
            "neighborhood": r.neighborhood_raw,
            "subdivision": r.subdivision,
            "reason": r.reason.value if r.reason is not None else None,
            "province_id": r.province_id,
            "district_id": r.district_id,
            "district_score": r.district_score,
            "neighborhood_score": r.neighborhood_score,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=DROPPED_COLUMNS)
