"""Architecture Optimizer package for violation-guided multi-objective search."""

from .models import (
    Architecture,
    ArchitectureError,
    Edge,
    EdgeType,
    MoveResult,
    Node,
    NodeType,
    OperatorKind,
    ScoreResult,
    Severity,
    Variant,
    Violation,
)
from .config import ConfigurationError, ScoringConfig, SearchConfig, load_scoring_config
from .violation_detector import ViolationDetector, detect_violations
from .scorer import MultiObjectiveScorer, compare_dominance, dominates, score_architecture
from .pareto_front import ParetoFront
from .move_operators import OPERATOR_TABLE, apply_operator, get_applicable_operators, try_all_operators
from .lineage import VariantArena
from .search import (
    ArchitectureOptimizer,
    SearchCallbacks,
    SearchResult,
    run_search_with_progress,
    violation_guided_search,
)

__all__ = [
    "Architecture",
    "ArchitectureError",
    "Edge",
    "EdgeType",
    "MoveResult",
    "Node",
    "NodeType",
    "OperatorKind",
    "ScoreResult",
    "Severity",
    "Variant",
    "Violation",
    "ConfigurationError",
    "ScoringConfig",
    "SearchConfig",
    "load_scoring_config",
    "ViolationDetector",
    "detect_violations",
    "MultiObjectiveScorer",
    "compare_dominance",
    "dominates",
    "score_architecture",
    "ParetoFront",
    "OPERATOR_TABLE",
    "apply_operator",
    "get_applicable_operators",
    "try_all_operators",
    "VariantArena",
    "ArchitectureOptimizer",
    "SearchCallbacks",
    "SearchResult",
    "run_search_with_progress",
    "violation_guided_search",
]
