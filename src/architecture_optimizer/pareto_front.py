"""Pareto front of non-dominated architecture variants."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import ScoreResult, Variant
from .scorer import dominates


@dataclass
class ParetoStats:
    """Summary statistics of a Pareto front."""
    size: int = 0
    objective_ranges: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    best_weighted: float = 0.0
    worst_weighted: float = 0.0
    avg_weighted: float = 0.0


class ParetoFront:
    """
    Bounded set of mutually non-dominated variants.

    Members keep insertion order. When the front exceeds ``max_size`` the
    member with the lowest weighted score is evicted; among equal weighted
    scores the most recently inserted one goes first.
    """

    def __init__(self, max_size: int = 5):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._members: List[Tuple[int, Variant]] = []
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, variant_id: str) -> bool:
        return any(v.id == variant_id for _, v in self._members)

    def add(self, variant: Variant) -> bool:
        """
        Offer a variant to the front.

        Args:
            variant: Candidate variant

        Returns:
            True iff the variant is a member after insertion
        """
        candidate = variant.score
        for _, existing in self._members:
            if dominates(existing.score, candidate):
                return False
            if self._same_objectives(existing.score, candidate):
                return False

        self._members = [
            (seq, existing) for seq, existing in self._members
            if not dominates(candidate, existing.score)
        ]
        seq = self._sequence
        self._sequence += 1
        self._members.append((seq, variant))

        while len(self._members) > self.max_size:
            index = min(
                range(len(self._members)),
                key=lambda i: (self._members[i][1].score.weighted, -self._members[i][0]),
            )
            evicted_seq, _ = self._members.pop(index)
            if evicted_seq == seq:
                return False

        return True

    def get_variants(self) -> List[Variant]:
        """Members in insertion order."""
        return [v for _, v in self._members]

    def get_best(self) -> Optional[Variant]:
        """Member with the highest weighted score; earliest inserted wins ties."""
        best = None
        for _, variant in self._members:
            if best is None or variant.score.weighted > best.score.weighted:
                best = variant
        return best

    def sorted_by(self, objective: str) -> List[Variant]:
        """Members sorted by one objective, descending (stable)."""
        return sorted(self.get_variants(), key=lambda v: -v.score.objective(objective))

    def would_be_non_dominated(self, score: ScoreResult) -> bool:
        return not any(dominates(v.score, score) for _, v in self._members)

    def is_consistent(self) -> bool:
        """True when no two members dominate each other."""
        variants = self.get_variants()
        return not any(
            dominates(a.score, b.score)
            for a in variants for b in variants if a is not b
        )

    def clear(self):
        self._members = []

    def stats(self) -> ParetoStats:
        if not self._members:
            return ParetoStats()

        variants = self.get_variants()
        ranges: Dict[str, Tuple[float, float]] = {}
        for variant in variants:
            for name, value in variant.score.per_objective.items():
                low, high = ranges.get(name, (value, value))
                ranges[name] = (min(low, value), max(high, value))

        weighted = [v.score.weighted for v in variants]
        return ParetoStats(
            size=len(variants),
            objective_ranges=ranges,
            best_weighted=max(weighted),
            worst_weighted=min(weighted),
            avg_weighted=sum(weighted) / len(weighted),
        )

    @staticmethod
    def _same_objectives(a: ScoreResult, b: ScoreResult) -> bool:
        keys = set(a.per_objective) | set(b.per_objective)
        return all(a.objective(k) == b.objective(k) for k in keys)


def format_pareto_front(front: ParetoFront) -> str:
    """Multi-line rendering of a front for logs and the CLI."""
    stats = front.stats()
    lines = [
        f"Pareto Front ({stats.size} variants):",
        f"  Weighted score range: {stats.worst_weighted:.3f} - {stats.best_weighted:.3f}",
    ]
    for name, (low, high) in stats.objective_ranges.items():
        lines.append(f"  {name}: {low:.3f} - {high:.3f}")

    lines.append("")
    lines.append("Variants:")
    for variant in front.get_variants():
        scores = " ".join(f"{name[:4]}={value:.2f}" for name, value in variant.score.per_objective.items())
        lines.append(f"  [{variant.id}] w={variant.score.weighted:.3f} | {scores}")

    return "\n".join(lines)
