"""Best shell per loader-length bracket.

The leaderboard is a reducer over the candidate stream: ``offer`` folds one
scored shell in, ``merge`` folds another leaderboard in. Both use the same
strict greater-than rule, so the first shell to reach a score keeps its slot.
"""

from __future__ import annotations

from ..ballistics.shell import Shell
from ..core.constants import BELT_LABEL, BELT_MAX_LENGTH_MM, LENGTH_BRACKETS
from ..core.types import DamageType

# Export order: belt first, then ascending length
BRACKET_LABELS: tuple[str, ...] = (BELT_LABEL,) + tuple(label for label, _ in LENGTH_BRACKETS)


def bracket_for_length(total_length: float) -> str | None:
    """Label of the first length bracket the shell fits in, or None if it fits none."""
    for label, limit in LENGTH_BRACKETS:
        if total_length <= limit:
            return label
    return None


class Leaderboard:
    """Best shell seen so far per bracket, for one damage type."""

    def __init__(self, damage_type: DamageType = DamageType.KINETIC) -> None:
        self.damage_type = DamageType.parse(damage_type)
        self._best: dict[str, Shell] = {}
        self._scores: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._best)

    def __contains__(self, label: str) -> bool:
        return label in self._best

    def get(self, label: str) -> Shell | None:
        return self._best.get(label)

    def score_of(self, label: str) -> float:
        """Stored score for a bracket (0.0 when empty)."""
        return self._scores.get(label, 0.0)

    def _consider(self, label: str, shell: Shell, score: float, snapshot: bool) -> bool:
        if score <= 0 or score <= self._scores.get(label, 0.0):
            return False
        self._best[label] = shell.copy() if snapshot else shell
        self._scores[label] = score
        return True

    def offer(self, shell: Shell) -> list[str]:
        """Fold a fully scored shell into the leaderboard.

        The stored entry is a snapshot, so the caller may keep mutating
        ``shell`` afterwards.

        Returns:
            Labels of the brackets whose winner was replaced.
        """
        label = bracket_for_length(shell.total_length)
        if label is None:
            return []

        replaced: list[str] = []
        if self._consider(label, shell, shell.score(self.damage_type), snapshot=True):
            replaced.append(label)
        if shell.total_length <= BELT_MAX_LENGTH_MM:
            stored = self._best.get(label)
            # Reuse the snapshot when the same shell also won the main bracket
            source = stored if replaced and stored is not None else shell
            if self._consider(
                BELT_LABEL, source, shell.belt_score(self.damage_type), snapshot=source is shell
            ):
                replaced.append(BELT_LABEL)
        return replaced

    def merge(self, other: Leaderboard) -> Leaderboard:
        """Fold ``other`` into this leaderboard in fixed bracket order.

        On equal scores the entry already held here wins.
        """
        if other.damage_type != self.damage_type:
            raise ValueError(
                f"Cannot merge {other.damage_type.name} leaderboard into "
                f"{self.damage_type.name} leaderboard"
            )
        for label in BRACKET_LABELS:
            shell = other._best.get(label)
            if shell is not None:
                self._consider(label, shell, other._scores[label], snapshot=False)
        return self

    def top_shells(self) -> dict[str, Shell]:
        """Winning shell per bracket in bracket order, brackets without a winner omitted."""
        return {
            label: self._best[label]
            for label in BRACKET_LABELS
            if label in self._best and self._scores[label] > 0
        }

    def scores(self) -> dict[str, float]:
        return {label: self._scores[label] for label in self.top_shells()}
