from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

import jellyfish

from neighborhood_polygons.config import MatchConfig
from neighborhood_polygons.normalize import normalize, normalize_neighborhood
from neighborhood_polygons.reference import NotFound, ReferenceIndex
from neighborhood_polygons.source_parser import MatchFailure, SourceRecord


logger = logging.getLogger(__name__)

T = TypeVar("T")


def similarity(a: str, b: str) -> float:
    """Jaro-Winkler similarity in [0, 1]."""
    if not a or not b:
        return 0.0
    return jellyfish.jaro_winkler_similarity(a, b)


@dataclass(frozen=True)
class Scored(Generic[T]):
    """
    Best candidate for a query.

    `candidate` is None when the top score is below the threshold; `score`
    is always the top score seen (0.0 without candidates). `tied` counts
    the other candidates that reached the same top score.
    """

    candidate: Optional[T]
    score: float
    tied: int = 0

    @property
    def accepted(self) -> bool:
        return self.candidate is not None


def best_match(
    query: str,
    candidates: Sequence[T],
    threshold: float,
    key: Callable[[T], str] = lambda c: c.canonical,
) -> Scored[T]:
    """
    Score `query` against every candidate and keep the maximum.

    Candidates are expected in reference id order; on equal scores the
    first one (lowest id) wins.
    """
    best: Optional[T] = None
    best_score = 0.0
    tied = 0

    for cand in candidates:
        score = similarity(query, key(cand))
        if best is None or score > best_score:
            best, best_score, tied = cand, score, 0
        elif score == best_score:
            tied += 1

    if best is None or best_score < threshold:
        return Scored(None, best_score, tied)
    return Scored(best, best_score, tied)


class HierarchicalMatcher:
    """
    Resolves province -> district -> neighborhood for each SourceRecord.

    Each level is scoped by the id resolved at the level above; records
    that fail a level keep the failure in `reason` and stop there.
    """

    def __init__(self, index: ReferenceIndex, cfg: MatchConfig = MatchConfig()) -> None:
        self.index = index
        self.cfg = cfg

    # -- levels --

    def resolve_province(self, rec: SourceRecord) -> bool:
        if rec.reason is MatchFailure.EMPTY_NAME:
            return False
        canonical = normalize(rec.province_raw)
        try:
            province = self.index.province_by_canonical_name(canonical)
        except NotFound:
            rec.reason = MatchFailure.NO_PROVINCE
            logger.debug("Row %d: no province named %r", rec.row, canonical)
            return False

        rec.province_id = province.id
        rec.province_code = province.code
        rec.province_name = province.name
        return True

    def resolve_district(self, rec: SourceRecord) -> bool:
        if rec.province_id is None:
            return False

        query = normalize(rec.district_raw)
        result = best_match(query, self.index.districts_in(rec.province_id), self.cfg.district_threshold)
        rec.district_score = result.score
        self._note_tie(rec, "district", query, result)

        if not result.accepted:
            rec.reason = MatchFailure.NO_DISTRICT
            logger.debug("Row %d: district %r best score %.3f below threshold", rec.row, query, result.score)
            return False

        rec.district_id = result.candidate.id
        rec.district_name = result.candidate.name
        return True

    def resolve_neighborhood(self, rec: SourceRecord, threshold: float) -> bool:
        if rec.district_id is None:
            return False

        query = normalize_neighborhood(rec.neighborhood_raw)
        candidates = [n for n in self.index.neighborhoods_in(rec.district_id) if n.district_id == rec.district_id]
        result = best_match(query, candidates, threshold)
        rec.neighborhood_score = result.score

        if not result.accepted:
            rec.reason = MatchFailure.NO_NEIGHBORHOOD
            return False

        self._note_tie(rec, "neighborhood", query, result)
        rec.neighborhood_id = result.candidate.id
        rec.neighborhood_name = result.candidate.name
        rec.reason = None
        return True

    # -- whole batch --

    def match(self, records: List[SourceRecord]) -> List[SourceRecord]:
        for rec in records:
            if self.resolve_province(rec):
                self.resolve_district(rec)

        with_district = [r for r in records if r.district_id is not None]
        logger.info(
            "Districts resolved for %d/%d records (threshold %.2f)",
            len(with_district),
            len(records),
            self.cfg.district_threshold,
        )

        for n, threshold in enumerate(self.cfg.neighborhood_thresholds, start=1):
            pending = [r for r in with_district if r.neighborhood_id is None]
            matched = 0
            for rec in pending:
                if self.resolve_neighborhood(rec, threshold):
                    rec.matched_by = f"pass{n}"
                    matched += 1
            logger.info(
                "Neighborhood pass %d (threshold %.2f): matched %d of %d pending",
                n,
                threshold,
                matched,
                len(pending),
            )

        return records

    @staticmethod
    def _note_tie(rec: SourceRecord, level: str, query: str, result: Scored) -> None:
        if result.tied and result.candidate is not None:
            rec.ambiguous.append(level)
            logger.warning(
                "Row %d: %d %s candidates tie with %r for %r at %.3f; lowest id %d kept",
                rec.row,
                result.tied + 1,
                level,
                result.candidate.name,
                query,
                result.score,
                result.candidate.id,
            )
