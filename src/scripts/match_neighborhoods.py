from __future__ import annotations

import argparse
import logging
from pathlib import Path

from neighborhood_polygons.config import MatchConfig, SourceColumns
from neighborhood_polygons.pipeline import run_pipeline
from neighborhood_polygons.reconcile import OVERRIDES, load_overrides_csv
from neighborhood_polygons.reference import (
    NEIGHBORHOOD_COLUMNS,
    PROVINCE_CODE_COLUMNS,
    TOWN_COLUMNS,
    ReferenceIndex,
    load_reference_csv,
)
from neighborhood_polygons.source_parser import load_source_listing


DATA_DIR = Path("src/data")


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Match the affected-neighborhoods listing to reference ids.")
    p.add_argument("--source", type=Path, default=DATA_DIR / "raw" / "affected_neighborhoods.xlsx")
    p.add_argument("--towns", type=Path, default=DATA_DIR / "reference" / "towns.csv")
    p.add_argument("--neighborhoods", type=Path, default=DATA_DIR / "reference" / "neighborhoods.csv")
    p.add_argument("--province-codes", type=Path, default=DATA_DIR / "reference" / "province_codes.csv")
    p.add_argument("--overrides", type=Path, default=None, help="extra overrides CSV")
    p.add_argument("--out", type=Path, default=DATA_DIR / "processed" / "affected_neighborhoods.csv")
    p.add_argument("--expected-total", type=int, default=None, help="published count to compare against")
    p.add_argument("--district-threshold", type=float, default=MatchConfig.district_threshold)
    p.add_argument(
        "--neighborhood-thresholds",
        type=float,
        nargs="+",
        default=list(MatchConfig.neighborhood_thresholds),
    )
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cfg = MatchConfig(
        district_threshold=args.district_threshold,
        neighborhood_thresholds=tuple(args.neighborhood_thresholds),
    )

    print("[1/4] Loading reference tables…")
    towns = load_reference_csv(args.towns, TOWN_COLUMNS)
    neighborhoods = load_reference_csv(args.neighborhoods, NEIGHBORHOOD_COLUMNS)
    codes = load_reference_csv(args.province_codes, PROVINCE_CODE_COLUMNS) if args.province_codes.exists() else None
    index = ReferenceIndex.from_frames(towns, neighborhoods, codes)

    overrides = dict(OVERRIDES)
    if args.overrides is not None:
        overrides.update(load_overrides_csv(args.overrides))

    print(f"[2/4] Loading source listing {args.source}…")
    source = load_source_listing(args.source)

    print("[3/4] Matching…")
    result = run_pipeline(
        index,
        source,
        cfg=cfg,
        columns=SourceColumns(),
        overrides=overrides,
        expected_total=args.expected_total,
    )

    print(f"[4/4] Writing {args.out}")
    args.out.parent.mkdir(parents=True, exist_ok=True)
    result.output.to_csv(args.out, index=False)
    dropped_path = args.out.with_name(args.out.stem + "_dropped.csv")
    result.dropped.to_csv(dropped_path, index=False)

    print("Done.")
    for line in result.report.lines():
        print(f"- {line}")
    print(f"- Output:  {args.out}")
    print(f"- Dropped: {dropped_path}")


if __name__ == "__main__":
    main()
