"""Violation detection engine for the Architecture Optimizer."""

from collections import Counter
from typing import Dict, List, Optional, Tuple

from .config import ScoringConfig
from .logger import get_logger
from .models import (
    Architecture,
    EdgeType,
    Node,
    NodeType,
    OperatorKind,
    Severity,
    Violation,
)
from .similarity import SimilarityScorer


# Rule identifiers
MILLERS_LAW = "millers_law_func"
VOLATILITY_ISOLATION = "volatile_func_isolation"
FUNCTION_REQUIREMENTS = "function_requirements"
REQUIREMENTS_VERIFICATION = "requirements_verification"
ISOLATION = "isolation"
ALLOCATION_COHESION = "allocation_cohesion"
FUNC_NEAR_DUPLICATE = "func_near_duplicate"
FUNC_MERGE_CANDIDATE = "func_merge_candidate"
SCHEMA_NEAR_DUPLICATE = "schema_near_duplicate"
SCHEMA_MERGE_CANDIDATE = "schema_merge_candidate"

SIMILARITY_RULES = (
    FUNC_NEAR_DUPLICATE,
    FUNC_MERGE_CANDIDATE,
    SCHEMA_NEAR_DUPLICATE,
    SCHEMA_MERGE_CANDIDATE,
)


def allocation_map(architecture: Architecture) -> Dict[str, List[str]]:
    """
    FUNC -> MODs it is allocated to.

    Allocate edges may point either way (FUNC->MOD or MOD->FUNC); both
    directions resolve into the same mapping. Order follows edge order.
    """
    funcs = {n.id for n in architecture.nodes_of_type(NodeType.FUNC)}
    mods = {n.id for n in architecture.nodes_of_type(NodeType.MOD)}
    func_to_mods: Dict[str, List[str]] = {}

    for edge in architecture.edges_of_type(EdgeType.ALLOCATE):
        if edge.source in funcs and edge.target in mods:
            func_id, mod_id = edge.source, edge.target
        elif edge.source in mods and edge.target in funcs:
            func_id, mod_id = edge.target, edge.source
        else:
            continue
        targets = func_to_mods.setdefault(func_id, [])
        if mod_id not in targets:
            targets.append(mod_id)

    return func_to_mods


def module_members(architecture: Architecture) -> Dict[str, List[str]]:
    """MOD -> allocated FUNCs, for every MOD in snapshot order (possibly empty)."""
    members: Dict[str, List[str]] = {m.id: [] for m in architecture.nodes_of_type(NodeType.MOD)}
    func_order = {n.id: i for i, n in enumerate(architecture.nodes)}
    for func_id, mod_ids in allocation_map(architecture).items():
        for mod_id in mod_ids:
            members[mod_id].append(func_id)
    for funcs in members.values():
        funcs.sort(key=func_order.__getitem__)
    return members


def volatility_of(node: Node) -> float:
    value = node.properties.get("volatility", 0.0)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class ViolationDetector:
    """
    Detects structural-quality violations in an architecture snapshot.

    Rules:
    - Miller's Law cardinality of FUNCs per MOD
    - Volatility isolation of high-volatility FUNCs
    - Requirement traceability (satisfy / verify)
    - FUNC isolation (no io edges)
    - Allocation cohesion (one MOD per FUNC)
    - FUNC and SCHEMA similarity (near-duplicates and merge candidates)

    ``detect`` is pure: the same snapshot always yields the same violations
    in the same order.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        """Initialize the violation detector."""
        self.config = config or ScoringConfig()
        self.logger = get_logger("violation_detector")

    def detect(self, architecture: Architecture) -> List[Violation]:
        """
        Detect all violations in an architecture.

        Args:
            architecture: Snapshot to analyze

        Returns:
            List of Violation objects in rule order
        """
        func_to_mods = allocation_map(architecture)
        members = module_members(architecture)

        violations: List[Violation] = []
        violations.extend(self._check_millers_law(members))
        violations.extend(self._check_volatility_isolation(architecture, members))
        violations.extend(self._check_traceability(architecture))
        violations.extend(self._check_isolation(architecture))
        violations.extend(self._check_allocation_cohesion(architecture, func_to_mods))
        violations.extend(self._check_similarity(architecture))

        self.logger.debug(
            f"Detected {len(violations)} violations in {architecture.id} "
            f"({sum(1 for v in violations if v.is_hard)} hard)"
        )
        return violations

    def summarize(self, violations: List[Violation]) -> Dict[str, int]:
        """Violation counts per rule id, sorted by rule id."""
        return dict(sorted(Counter(v.rule_id for v in violations).items()))

    def prioritize(self, violations: List[Violation]) -> List[Violation]:
        """
        Order violations by impact: hard first, then by rule weight.

        Args:
            violations: Violations to order

        Returns:
            New list, stable for equal keys
        """
        return sorted(
            violations,
            key=lambda v: (not v.is_hard, -self.config.weight_for(v.rule_id)),
        )

    def _check_millers_law(self, members: Dict[str, List[str]]) -> List[Violation]:
        low, high = self.config.min_funcs_per_mod, self.config.max_funcs_per_mod
        violations = []
        for mod_id, funcs in members.items():
            count = len(funcs)
            if count > high:
                violations.append(Violation(
                    rule_id=MILLERS_LAW,
                    severity=Severity.SOFT,
                    affected_nodes=(mod_id, *funcs),
                    message=f"MOD {mod_id} has {count} FUNCs (max {high})",
                    suggested_operator=OperatorKind.MOD_SPLIT,
                ))
            elif 0 < count < low:
                violations.append(Violation(
                    rule_id=MILLERS_LAW,
                    severity=Severity.SOFT,
                    affected_nodes=(mod_id, *funcs),
                    message=f"MOD {mod_id} has only {count} FUNCs (min {low})",
                    suggested_operator=OperatorKind.FUNC_MERGE,
                ))
        return violations

    def _check_volatility_isolation(self, architecture: Architecture,
                                    members: Dict[str, List[str]]) -> List[Violation]:
        threshold = self.config.high_volatility_threshold
        violations = []
        for mod_id, funcs in members.items():
            high = [f for f in funcs if volatility_of(architecture.node(f)) >= threshold]
            low_count = len(funcs) - len(high)
            if high and low_count:
                violations.append(Violation(
                    rule_id=VOLATILITY_ISOLATION,
                    severity=Severity.SOFT,
                    affected_nodes=(mod_id, *high),
                    message=(
                        f"MOD {mod_id} mixes high-vol ({len(high)}) with low-vol ({low_count}) FUNCs"
                    ),
                    suggested_operator=OperatorKind.ALLOC_SHIFT,
                ))
        return violations

    def _check_traceability(self, architecture: Architecture) -> List[Violation]:
        satisfied = {e.target for e in architecture.edges_of_type(EdgeType.SATISFY)}
        verified = {e.source for e in architecture.edges_of_type(EdgeType.VERIFY)}
        violations = []
        for req in architecture.nodes_of_type(NodeType.REQ):
            if req.id not in satisfied:
                violations.append(Violation(
                    rule_id=FUNCTION_REQUIREMENTS,
                    severity=Severity.SOFT,
                    affected_nodes=(req.id,),
                    message=f"REQ {req.id} has no satisfying FUNC",
                    suggested_operator=OperatorKind.REQ_LINK,
                ))
            if req.id not in verified:
                violations.append(Violation(
                    rule_id=REQUIREMENTS_VERIFICATION,
                    severity=Severity.SOFT,
                    affected_nodes=(req.id,),
                    message=f"REQ {req.id} has no verifying TEST",
                    suggested_operator=OperatorKind.TEST_LINK,
                ))
        return violations

    def _check_isolation(self, architecture: Architecture) -> List[Violation]:
        with_io = set()
        for edge in architecture.edges_of_type(EdgeType.IO):
            with_io.add(edge.source)
            with_io.add(edge.target)
        return [
            Violation(
                rule_id=ISOLATION,
                severity=Severity.SOFT,
                affected_nodes=(func.id,),
                message=f"FUNC {func.id} is isolated (no io edges)",
                suggested_operator=OperatorKind.FLOW_REDIRECT,
            )
            for func in architecture.nodes_of_type(NodeType.FUNC)
            if func.id not in with_io
        ]

    def _check_allocation_cohesion(self, architecture: Architecture,
                                   func_to_mods: Dict[str, List[str]]) -> List[Violation]:
        violations = []
        for func in architecture.nodes_of_type(NodeType.FUNC):
            mods = func_to_mods.get(func.id, [])
            if len(mods) > 1:
                violations.append(Violation(
                    rule_id=ALLOCATION_COHESION,
                    severity=Severity.SOFT,
                    affected_nodes=(func.id, *mods),
                    message=f"FUNC {func.id} is allocated to {len(mods)} MODs: {', '.join(mods)}",
                    suggested_operator=OperatorKind.REALLOC,
                ))
        return violations

    def _check_similarity(self, architecture: Architecture) -> List[Violation]:
        scorer = SimilarityScorer(architecture)
        config = self.config
        rules: Tuple[Tuple[NodeType, str, str, float, float], ...] = (
            (NodeType.FUNC, FUNC_NEAR_DUPLICATE, FUNC_MERGE_CANDIDATE,
             config.near_duplicate_threshold, config.merge_candidate_threshold),
            (NodeType.SCHEMA, SCHEMA_NEAR_DUPLICATE, SCHEMA_MERGE_CANDIDATE,
             config.schema_near_duplicate_threshold, config.schema_merge_candidate_threshold),
        )
        violations = []
        for node_type, duplicate_rule, candidate_rule, duplicate_at, candidate_at in rules:
            for match in scorer.find_pairs(node_type, candidate_at):
                if match.score >= duplicate_at:
                    violations.append(Violation(
                        rule_id=duplicate_rule,
                        severity=Severity.HARD,
                        affected_nodes=(match.node_a, match.node_b),
                        message=(
                            f"{node_type.value} {match.node_a} and {match.node_b} are near-duplicates "
                            f"(similarity {match.score:.2f})"
                        ),
                        suggested_operator=OperatorKind.MERGE,
                    ))
                else:
                    violations.append(Violation(
                        rule_id=candidate_rule,
                        severity=Severity.SOFT,
                        affected_nodes=(match.node_a, match.node_b),
                        message=(
                            f"{node_type.value} {match.node_a} and {match.node_b} are merge candidates "
                            f"(similarity {match.score:.2f})"
                        ),
                        suggested_operator=OperatorKind.MERGE,
                    ))
        return violations


def detect_violations(architecture: Architecture,
                      config: Optional[ScoringConfig] = None) -> List[Violation]:
    """Detect violations with a fresh detector."""
    return ViolationDetector(config).detect(architecture)
