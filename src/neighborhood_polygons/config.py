from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MatchConfig:
    district_threshold: float = 0.90
    # one entry per neighborhood pass, strictest first
    neighborhood_thresholds: Tuple[float, ...] = (0.93, 0.85)
    district_separator: str = "/"
    subdivision_separator: str = ","

    def __post_init__(self) -> None:
        if not 0.0 <= self.district_threshold <= 1.0:
            raise ValueError(f"district_threshold must be in [0, 1], got {self.district_threshold}")
        if not self.neighborhood_thresholds:
            raise ValueError("At least one neighborhood threshold is required")
        for t in self.neighborhood_thresholds:
            if not 0.0 <= t <= 1.0:
                raise ValueError(f"neighborhood thresholds must be in [0, 1], got {t}")
        ordered = sorted(self.neighborhood_thresholds, reverse=True)
        if list(self.neighborhood_thresholds) != ordered:
            raise ValueError(
                f"Later neighborhood passes must not be stricter: {self.neighborhood_thresholds}"
            )


@dataclass(frozen=True)
class SourceColumns:
    """Column names of the affected-neighborhoods listing."""

    province: str = "province"
    district: str = "district"
    neighborhood: str = "neighborhood"
