"""Violation-guided local search with simulated-annealing acceptance."""

import math
import random
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Union

from .config import ScoringConfig, SearchConfig
from .lineage import VariantArena
from .logger import get_logger
from .models import Architecture, OperatorKind, Variant
from .move_operators import MoveOperator, build_operator_table, get_applicable_operators, operators_for
from .pareto_front import ParetoFront, format_pareto_front
from .scorer import MultiObjectiveScorer, format_score
from .violation_detector import ViolationDetector


# Convergence reasons
THRESHOLD = "threshold"
NO_IMPROVEMENT = "no_improvement"
MAX_ITERATIONS = "max_iterations"
CANCELLED = "cancelled"

ROOT_VARIANT_ID = "v0"


@dataclass
class IterationRecord:
    """What happened in one search iteration."""
    iteration: int
    temperature: float
    violations: int
    candidates: int
    rejected: int
    proposal_id: Optional[str] = None
    delta: Optional[float] = None
    accepted: bool = False
    current_id: str = ROOT_VARIANT_ID
    current_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchStats:
    total_variants_generated: int = 0
    variants_rejected: int = 0
    operator_usage: Dict[str, int] = field(default_factory=dict)
    score_history: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_variants_generated": self.total_variants_generated,
            "variants_rejected": self.variants_rejected,
            "operator_usage": dict(sorted(self.operator_usage.items())),
            "score_history": list(self.score_history),
        }


@dataclass
class SearchState:
    """
    Everything one search call mutates.

    Owned by a single ``violation_guided_search`` call and handed to
    callbacks read-only.
    """
    config: SearchConfig
    rng: random.Random
    current: Variant
    front: ParetoFront
    arena: VariantArena
    temperature: float
    deltas: Deque[float]
    iteration: int = 0
    best_weighted: float = -1.0
    stats: SearchStats = field(default_factory=SearchStats)
    trace: List[IterationRecord] = field(default_factory=list)


@dataclass
class SearchCallbacks:
    """Optional hooks invoked by the search loop."""
    on_iteration: Optional[Callable[[SearchState], None]] = None
    on_new_best: Optional[Callable[[Variant], None]] = None
    on_pareto_update: Optional[Callable[[ParetoFront], None]] = None
    # Checked between iterations; True ends the search as "cancelled"
    should_stop: Optional[Callable[[SearchState], bool]] = None


@dataclass
class SearchResult:
    """Outcome of one search call."""
    success: bool
    iterations: int
    pareto_front: List[Variant]
    best_variant: Optional[Variant]
    convergence_reason: str
    stats: SearchStats
    trace: List[IterationRecord]
    lineage: VariantArena

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible rendering; identical inputs give identical output."""
        return {
            "success": self.success,
            "iterations": self.iterations,
            "convergence_reason": self.convergence_reason,
            "best_variant": self.best_variant.to_dict() if self.best_variant else None,
            "pareto_front": [v.to_dict() for v in self.pareto_front],
            "stats": self.stats.to_dict(),
            "trace": [record.to_dict() for record in self.trace],
            "lineage": self.lineage.to_dict(),
        }


class ArchitectureOptimizer:
    """
    Detector, scorer and operator table wired into one search engine.

    Configuration is validated once at construction; every ``optimize`` call
    then runs with its own RNG and state.
    """

    def __init__(self, search_config: Optional[SearchConfig] = None,
                 scoring_config: Optional[ScoringConfig] = None):
        """Initialize the optimizer."""
        self.config = (search_config or SearchConfig()).validate()
        self.scoring_config = (scoring_config or ScoringConfig()).validate(self.config.success_threshold)
        self.detector = ViolationDetector(self.scoring_config)
        self.scorer = MultiObjectiveScorer(self.scoring_config)
        self.operators: Mapping[OperatorKind, MoveOperator] = build_operator_table(self.scoring_config)
        self.logger = get_logger("search")

    def evaluate(self, variant_id: str, architecture: Architecture, parent: Optional[Variant] = None,
                 operator: Optional[OperatorKind] = None, generation: int = 0) -> Variant:
        """Detect, score and wrap an architecture as a Variant."""
        violations = self.detector.detect(architecture)
        score = self.scorer.score(architecture, violations)
        return Variant(
            id=variant_id,
            architecture=architecture,
            score=score,
            parent_id=parent.id if parent else None,
            applied_operator=operator,
            generation=generation,
            violations=violations,
        )

    def analyze(self, architecture: Union[Architecture, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Violation report for one architecture, without searching.

        Returns:
            Dictionary with violations, per-rule summary and score
        """
        if not isinstance(architecture, Architecture):
            architecture = Architecture.from_dict(architecture)
        violations = self.detector.detect(architecture)
        score = self.scorer.score(architecture, violations)
        return {
            "architecture_id": architecture.id,
            "total_violations": len(violations),
            "hard_violations": score.hard_violations,
            "summary": self.detector.summarize(violations),
            "violations": [v.to_dict() for v in self.detector.prioritize(violations)],
            "score": score.to_dict(),
        }

    def optimize(self, architecture: Union[Architecture, Mapping[str, Any]],
                 callbacks: Optional[SearchCallbacks] = None) -> SearchResult:
        """
        Run the violation-guided search from a baseline.

        Args:
            architecture: Baseline snapshot (or its dict interchange form)
            callbacks: Optional progress and cancellation hooks

        Returns:
            SearchResult
        """
        if not isinstance(architecture, Architecture):
            architecture = Architecture.from_dict(architecture)
        callbacks = callbacks or SearchCallbacks()
        config = self.config

        baseline = self.evaluate(ROOT_VARIANT_ID, architecture)
        state = SearchState(
            config=config,
            rng=random.Random(config.random_seed),
            current=baseline,
            front=ParetoFront(config.pareto_front_size),
            arena=VariantArena(),
            temperature=config.annealing_initial_temp,
            deltas=deque(maxlen=config.convergence_window),
        )
        state.arena.add(baseline)
        state.stats.score_history.append(baseline.score.weighted)
        if not baseline.has_hard_violation:
            self._offer(state, baseline, callbacks)

        self.logger.info(
            f"Starting search on {architecture.id}: {len(architecture.nodes)} nodes, "
            f"{len(baseline.violations)} violations, baseline {format_score(baseline.score)}"
        )

        reason = self._run(state, callbacks)

        best = state.front.get_best()
        success = best is not None and best.score.weighted >= config.success_threshold
        self.logger.info(
            f"Search finished after {state.iteration} iterations ({reason}): "
            f"best={best.id if best else None} "
            f"score={best.score.weighted if best else 0.0:.3f} success={success}"
        )
        return SearchResult(
            success=success,
            iterations=state.iteration,
            pareto_front=state.front.get_variants(),
            best_variant=best,
            convergence_reason=reason,
            stats=state.stats,
            trace=state.trace,
            lineage=state.arena,
        )

    def _run(self, state: SearchState, callbacks: SearchCallbacks) -> str:
        config = state.config
        while True:
            if not state.current.violations:
                return THRESHOLD
            if state.iteration >= config.max_iterations:
                return MAX_ITERATIONS
            if callbacks.should_stop and callbacks.should_stop(state):
                self.logger.info(f"Search cancelled at iteration {state.iteration}")
                return CANCELLED

            state.iteration += 1
            record = self._iterate(state, callbacks)
            state.trace.append(record)
            state.stats.score_history.append(state.current.score.weighted)
            state.temperature *= config.annealing_decay

            if callbacks.on_iteration:
                callbacks.on_iteration(state)

            if len(state.deltas) == config.convergence_window:
                mean_delta = sum(abs(d) for d in state.deltas) / len(state.deltas)
                if mean_delta < config.convergence_threshold:
                    return NO_IMPROVEMENT

    def _iterate(self, state: SearchState, callbacks: SearchCallbacks) -> IterationRecord:
        current = state.current
        violations = current.violations
        record = IterationRecord(
            iteration=state.iteration,
            temperature=state.temperature,
            violations=len(violations),
            candidates=0,
            rejected=0,
            current_id=current.id,
            current_score=current.score.weighted,
        )

        if not get_applicable_operators(violations, self.operators):
            self.logger.debug(f"Iteration {state.iteration}: no applicable operators")
            return record

        survivors: List[Variant] = []
        usage = Counter(state.stats.operator_usage)
        for violation in violations:
            kinds = operators_for(violation, self.operators)
            if not kinds:
                continue
            if violation.suggested_operator in kinds:
                kind = violation.suggested_operator
            else:
                kind = state.rng.choice(kinds)

            move = self.operators[kind].apply(current.architecture, violation)
            if not move.success:
                continue

            candidate = self.evaluate(
                f"v{state.iteration}_{record.candidates}",
                move.architecture,
                parent=current,
                operator=kind,
                generation=state.iteration,
            )
            state.arena.add(candidate)
            record.candidates += 1
            usage[kind.value] += 1

            if candidate.has_hard_violation:
                record.rejected += 1
                continue
            survivors.append(candidate)

        state.stats.operator_usage = dict(usage)
        state.stats.total_variants_generated += record.candidates
        state.stats.variants_rejected += record.rejected

        if not survivors:
            self.logger.debug(f"Iteration {state.iteration}: no valid candidates")
            return record

        # Stable sort keeps generation order among equal scores
        survivors.sort(key=lambda v: -v.score.weighted)
        proposal = survivors[0]
        delta = proposal.score.weighted - current.score.weighted
        record.proposal_id = proposal.id
        record.delta = delta

        if delta > 0:
            accepted = True
        elif state.temperature <= 0:
            # Decay underflowed: only strict improvements are taken
            accepted = False
        else:
            accepted = state.rng.random() < math.exp(delta / state.temperature)

        if accepted:
            record.accepted = True
            state.current = proposal
            state.deltas.append(delta)
            self._offer(state, proposal, callbacks)
            record.current_id = proposal.id
            record.current_score = proposal.score.weighted

        self.logger.debug(
            f"Iteration {state.iteration}: {record.candidates} candidates, {record.rejected} rejected, "
            f"proposal {proposal.id} delta={delta:+.4f} accepted={accepted}"
        )
        return record

    def _offer(self, state: SearchState, variant: Variant, callbacks: SearchCallbacks):
        if state.front.add(variant) and callbacks.on_pareto_update:
            callbacks.on_pareto_update(state.front)
        if variant.score.weighted > state.best_weighted:
            state.best_weighted = variant.score.weighted
            if callbacks.on_new_best:
                callbacks.on_new_best(variant)


def violation_guided_search(architecture: Union[Architecture, Mapping[str, Any]],
                            config: Optional[SearchConfig] = None,
                            scoring_config: Optional[ScoringConfig] = None,
                            callbacks: Optional[SearchCallbacks] = None) -> SearchResult:
    """
    Optimize an architecture.

    Args:
        architecture: Baseline snapshot
        config: Search parameters (validated before the loop starts)
        scoring_config: Rule weights and thresholds
        callbacks: Optional progress and cancellation hooks

    Returns:
        SearchResult

    Raises:
        ConfigurationError: if either configuration is out of range
    """
    return ArchitectureOptimizer(config, scoring_config).optimize(architecture, callbacks)


def run_search_with_progress(architecture: Union[Architecture, Mapping[str, Any]],
                             config: Optional[SearchConfig] = None,
                             scoring_config: Optional[ScoringConfig] = None) -> SearchResult:
    """Run a search that logs every iteration and the final Pareto front."""
    logger = get_logger("progress")
    fronts: List[ParetoFront] = []

    def on_iteration(state: SearchState):
        logger.info(
            f"[{state.iteration}/{state.config.max_iterations}] "
            f"current={state.current.id} score={state.current.score.weighted:.3f} "
            f"T={state.temperature:.4f} front={len(state.front)}"
        )

    def on_new_best(variant: Variant):
        logger.info(f"New best {variant.id}: {format_score(variant.score)}")

    def on_pareto_update(front: ParetoFront):
        if not fronts:
            fronts.append(front)

    callbacks = SearchCallbacks(
        on_iteration=on_iteration,
        on_new_best=on_new_best,
        on_pareto_update=on_pareto_update,
    )
    result = ArchitectureOptimizer(config, scoring_config).optimize(architecture, callbacks)

    if fronts:
        logger.info(format_pareto_front(fronts[0]))
    else:
        logger.warning("No variant without hard violations was found")
    return result
