"""Run statistics: accepted and rejected candidate counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class RunStats:
    """Counters for one search run.

    Attributes:
        comparisons: Candidates that were fully scored.
        reject_length: Candidates longer than the max shell length.
        reject_velocity: Candidates below the min velocity.
        reject_range: Candidates below the min effective range.
    """

    comparisons: int = 0
    reject_length: int = 0
    reject_velocity: int = 0
    reject_range: int = 0

    @property
    def total(self) -> int:
        """Comparisons plus length and velocity rejections.

        Range rejections are deliberately left out of this total, matching the
        figure the tool has always reported. Use ``candidates`` for the count
        of every tuple examined.
        """
        return self.comparisons + self.reject_length + self.reject_velocity

    @property
    def candidates(self) -> int:
        return self.total + self.reject_range

    def merge(self, other: RunStats) -> RunStats:
        self.comparisons += other.comparisons
        self.reject_length += other.reject_length
        self.reject_velocity += other.reject_velocity
        self.reject_range += other.reject_range
        return self

    def to_dict(self) -> dict[str, int]:
        return {**asdict(self), "total": self.total}
