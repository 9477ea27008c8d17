from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pandas as pd

from neighborhood_polygons.export import export_polygons


def main() -> None:
    p = argparse.ArgumentParser(description="Select the matched neighborhood polygons from a GeoPackage.")
    p.add_argument("--matched", type=Path, default=Path("src/data/processed/affected_neighborhoods.csv"))
    p.add_argument("--gpkg", type=Path, default=Path("src/data/reference/neighborhoods.gpkg"))
    p.add_argument("--layer", default=None, help="polygon layer (default: first polygon layer)")
    p.add_argument("--out", type=Path, default=Path("src/data/processed/affected_neighborhoods.gpkg"))
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    matched = pd.read_csv(args.matched, dtype={"neighborhood_id": "Int64", "district_id": "Int64"})
    if matched.empty:
        raise ValueError(f"{args.matched} has no rows. Run match_neighborhoods.py first.")

    selected = export_polygons(args.gpkg, matched, args.out, layer=args.layer)

    print(f"Selected polygons: {len(selected)} for {len(matched)} matched rows")
    print(f"Wrote {args.out}")


if __name__ == "__main__":
    main()
