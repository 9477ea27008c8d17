from __future__ import annotations

import pandas as pd
import pytest

from neighborhood_polygons.matcher import HierarchicalMatcher
from neighborhood_polygons.reconcile import (
    OVERRIDES,
    apply_overrides,
    load_overrides_csv,
    override_key,
    reconcile,
)
from neighborhood_polygons.reference import ReferenceDataError
from neighborhood_polygons.source_parser import MatchFailure, SourceRecord


def matched_records(index, rows):
    records = [
        SourceRecord(row=i, province_raw=p, district_raw=d, neighborhood_raw=n)
        for i, (p, d, n) in enumerate(rows)
    ]
    return HierarchicalMatcher(index).match(records)


def test_override_table_keys_are_normalized():
    for (district_id, text), neighborhood_id in OVERRIDES.items():
        assert isinstance(district_id, int)
        assert isinstance(neighborhood_id, int)
        assert text == text.upper()
        assert text.endswith(" MH.")


def test_override_wins_over_fuzzy_score(index):
    records = matched_records(index, [("Gaziantep", "Nurdağı", "Türkmenler Mahallesi")])
    assert override_key(records[0]) == (1718, "TURKMENLER MH.")

    out = reconcile(records, index=index)
    assert len(out) == 1
    assert out[0].neighborhood_id == OVERRIDES[(1718, "TURKMENLER MH.")] == 40319
    assert out[0].neighborhood_name == "KIRIŞKAL MH."
    assert out[0].matched_by == "override"
    assert out[0].reason is None


def test_override_rescues_unmatched_record(index):
    overrides = {(101, "YENIDOGAN MH."): 5002}
    records = matched_records(index, [("Adana", "Çukurova", "Yenidoğan Mahallesi")])
    assert records[0].reason is MatchFailure.NO_NEIGHBORHOOD

    out = reconcile(records, overrides)
    assert [r.neighborhood_id for r in out] == [5002]


def test_override_outside_district_is_ignored(index):
    overrides = {(101, "YENIDOGAN MH."): 40319}
    records = matched_records(index, [("Adana", "Çukurova", "Yenidoğan Mahallesi")])
    assert reconcile(records, overrides, index=index) == []


def test_unmatched_records_are_dropped(index):
    records = matched_records(
        index,
        [
            ("Adana", "Çukurova", "BOTA MAHALLESİ"),
            ("Adana", "Çukurova", "Yenidoğan Mahallesi"),
            ("Adna", "Çukurova", "BOTA MAHALLESİ"),
        ],
    )
    out = reconcile(records, index=index)
    assert [r.row for r in out] == [0]
    assert all(r.neighborhood_id is not None for r in out)


def test_reconcile_is_idempotent(index):
    records = matched_records(
        index,
        [
            ("Adana", "Çukurova", "BOTA MAHALLESİ"),
            ("Gaziantep", "Nurdağı", "Türkmenler Mahallesi"),
            ("Adana", "Seyhan", "Yenidoğan"),
        ],
    )
    once = reconcile(records, index=index)
    twice = reconcile(once, index=index)
    assert once == twice


def test_apply_overrides_does_not_mutate_input(index):
    records = matched_records(index, [("Gaziantep", "Nurdağı", "Türkmenler Mahallesi")])
    before = records[0].neighborhood_id
    apply_overrides(records, index=index)
    assert records[0].neighborhood_id == before


def test_distinct_rows_reaching_same_id_are_kept(index):
    records = matched_records(
        index,
        [
            ("Adana", "Çukurova", "BOTA MAHALLESİ"),
            ("Adana", "Çukurova", "Bota Mah."),
        ],
    )
    out = reconcile(records, index=index)
    assert [r.neighborhood_id for r in out] == [5001, 5001]


def test_load_overrides_csv(tmp_path):
    path = tmp_path / "overrides.csv"
    pd.DataFrame(
        {"district_id": [101], "neighborhood": ["Yenidoğan Mahallesi"], "neighborhood_id": [5002]}
    ).to_csv(path, index=False)
    assert load_overrides_csv(path) == {(101, "YENIDOGAN MH."): 5002}


def test_load_overrides_csv_rejects_bad_rows(tmp_path):
    path = tmp_path / "overrides.csv"
    pd.DataFrame({"district_id": ["x"], "neighborhood": ["Bota"], "neighborhood_id": [1]}).to_csv(path, index=False)
    with pytest.raises(ReferenceDataError, match="Bad override row"):
        load_overrides_csv(path)

    path.write_text("district_id,name\n1,Bota\n", encoding="utf-8")
    with pytest.raises(ReferenceDataError, match="Missing required columns"):
        load_overrides_csv(path)
