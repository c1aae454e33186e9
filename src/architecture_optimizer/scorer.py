"""Multi-objective scoring of architecture snapshots."""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from .config import ScoringConfig
from .models import Architecture, ScoreResult, Violation
from .violation_detector import (
    ALLOCATION_COHESION,
    FUNCTION_REQUIREMENTS,
    ISOLATION,
    MILLERS_LAW,
    REQUIREMENTS_VERIFICATION,
    SIMILARITY_RULES,
    VOLATILITY_ISOLATION,
)


# Objective -> rule ids it aggregates
OBJECTIVE_RULES: Dict[str, Tuple[str, ...]] = {
    "cohesion": (MILLERS_LAW, ALLOCATION_COHESION),
    "volatility": (VOLATILITY_ISOLATION,),
    "traceability": (FUNCTION_REQUIREMENTS, REQUIREMENTS_VERIFICATION),
    "connectivity": (ISOLATION,),
    "redundancy": SIMILARITY_RULES,
}

# Rules outside the known catalog
FALLBACK_OBJECTIVE = "conformance"

OBJECTIVES: Tuple[str, ...] = (*OBJECTIVE_RULES, FALLBACK_OBJECTIVE)

_RULE_OBJECTIVE: Dict[str, str] = {
    rule: objective
    for objective, rules in OBJECTIVE_RULES.items()
    for rule in rules
}


def objective_for(rule_id: str) -> str:
    return _RULE_OBJECTIVE.get(rule_id, FALLBACK_OBJECTIVE)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class MultiObjectiveScorer:
    """
    Scores an architecture from its violations.

    Each rule contributes ``weight × count / normalization_base`` of penalty.
    The weighted scalar is ``1 − Σ penalty``; each objective sums only the
    penalties of its own rules. Any hard violation scales the scalar into
    ``[0, hard_violation_ceiling)`` so invalid candidates stay rankable but
    never reach the acceptance threshold.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def penalties(self, violations: Iterable[Violation]) -> Dict[str, float]:
        """Penalty per rule id, sorted by rule id."""
        counts = Counter(v.rule_id for v in violations)
        base = self.config.normalization_base
        return {
            rule_id: self.config.weight_for(rule_id) * count / base
            for rule_id, count in sorted(counts.items())
        }

    def score(self, architecture: Architecture, violations: List[Violation]) -> ScoreResult:
        """
        Score an architecture.

        Args:
            architecture: Snapshot the violations were detected on
            violations: Output of the detector for that snapshot

        Returns:
            ScoreResult with every objective of OBJECTIVES reported
        """
        penalties = self.penalties(violations)

        objective_penalty = {objective: 0.0 for objective in OBJECTIVES}
        for rule_id, penalty in penalties.items():
            objective_penalty[objective_for(rule_id)] += penalty

        per_objective = {
            objective: _clamp(1.0 - penalty)
            for objective, penalty in objective_penalty.items()
        }

        hard = sum(1 for v in violations if v.is_hard)
        weighted = _clamp(1.0 - sum(penalties.values()))
        if hard:
            weighted *= self.config.hard_violation_ceiling

        return ScoreResult(
            per_objective=per_objective,
            weighted=weighted,
            hard_violations=hard,
            soft_violations=len(violations) - hard,
        )


def score_architecture(architecture: Architecture, violations: List[Violation],
                       config: Optional[ScoringConfig] = None) -> ScoreResult:
    """Score with a fresh scorer."""
    return MultiObjectiveScorer(config).score(architecture, violations)


def dominates(a: ScoreResult, b: ScoreResult) -> bool:
    """
    True when ``a`` is at least as good as ``b`` on every objective and
    strictly better on at least one. Objectives missing on one side count as 0.
    """
    keys = sorted(set(a.per_objective) | set(b.per_objective))
    strictly_better = False
    for key in keys:
        av, bv = a.objective(key), b.objective(key)
        if av < bv:
            return False
        if av > bv:
            strictly_better = True
    return strictly_better


def compare_dominance(a: ScoreResult, b: ScoreResult) -> int:
    """1 if a dominates b, -1 if b dominates a, 0 otherwise."""
    if dominates(a, b):
        return 1
    if dominates(b, a):
        return -1
    return 0


def format_score(score: ScoreResult) -> str:
    """One-line rendering of a score for logs."""
    parts = [f"{name}={value:.2f}" for name, value in score.per_objective.items()]
    return f"[{', '.join(parts)}] = {score.weighted:.3f}"
