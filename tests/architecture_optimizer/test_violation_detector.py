"""Tests for the violation detection engine."""

import pytest
from hypothesis import given, settings, strategies as st

from src.architecture_optimizer.config import ScoringConfig
from src.architecture_optimizer.models import (
    Architecture,
    Edge,
    EdgeType,
    Node,
    NodeType,
    OperatorKind,
    Severity,
)
from src.architecture_optimizer.violation_detector import (
    ALLOCATION_COHESION,
    FUNC_MERGE_CANDIDATE,
    FUNC_NEAR_DUPLICATE,
    FUNCTION_REQUIREMENTS,
    ISOLATION,
    MILLERS_LAW,
    REQUIREMENTS_VERIFICATION,
    SCHEMA_MERGE_CANDIDATE,
    SCHEMA_NEAR_DUPLICATE,
    VOLATILITY_ISOLATION,
    ViolationDetector,
    allocation_map,
    detect_violations,
    module_members,
)


def rules(violations):
    return [v.rule_id for v in violations]


class TestStructuralRules:
    """Test the structural rules one by one."""

    def test_oversized_module(self, oversized_module):
        """Test an oversized module with isolated FUNCs."""
        violations = detect_violations(oversized_module)

        assert len(violations) == 12
        millers = violations[0]
        assert millers.rule_id == MILLERS_LAW
        assert "11 FUNCs (max 9)" in millers.message
        assert millers.suggested_operator is OperatorKind.MOD_SPLIT
        assert millers.affected_nodes[0] == "M1"
        isolation = violations[1:]
        assert all(v.rule_id == ISOLATION for v in isolation)
        assert all(v.suggested_operator is OperatorKind.FLOW_REDIRECT for v in isolation)
        assert [v.affected_nodes[0] for v in isolation] == [f"F{i}" for i in range(1, 12)]

    def test_clean_architecture_has_no_violations(self, clean_architecture):
        """Test a clean architecture has no violations."""
        assert detect_violations(clean_architecture) == []

    def test_undersized_module(self):
        """Test an undersized module suggests merging."""
        arch = Architecture(
            nodes=[Node("M1", NodeType.MOD), Node("F1", NodeType.FUNC), Node("F2", NodeType.FUNC)],
            edges=[Edge("F1", "M1", EdgeType.ALLOCATE), Edge("M1", "F2", EdgeType.ALLOCATE)],
        )
        millers = [v for v in detect_violations(arch) if v.rule_id == MILLERS_LAW]
        assert len(millers) == 1
        assert "only 2 FUNCs (min 5)" in millers[0].message
        assert millers[0].suggested_operator is OperatorKind.FUNC_MERGE

    def test_empty_module_not_flagged(self):
        """Test an empty module is not flagged."""
        arch = Architecture(nodes=[Node("M1", NodeType.MOD)])
        assert detect_violations(arch) == []

    def test_volatility_isolation(self, clean_architecture):
        """Test mixed volatility in one module is flagged."""
        nodes = [
            n.with_properties(volatility=0.9) if n.id == "F3" else n
            for n in clean_architecture.nodes
        ]
        violations = detect_violations(clean_architecture.replace(nodes=nodes))
        assert rules(violations) == [VOLATILITY_ISOLATION]
        assert violations[0].affected_nodes == ("M1", "F3")
        assert violations[0].suggested_operator is OperatorKind.ALLOC_SHIFT

    def test_all_high_volatility_module_is_fine(self, clean_architecture):
        """Test a purely volatile module is not flagged."""
        nodes = [
            n.with_properties(volatility=0.8) if n.type == NodeType.FUNC else n
            for n in clean_architecture.nodes
        ]
        assert detect_violations(clean_architecture.replace(nodes=nodes)) == []

    def test_traceability(self):
        """Test unsatisfied and unverified requirements are flagged."""
        arch = Architecture(nodes=[Node("R1", NodeType.REQ)])
        violations = detect_violations(arch)
        assert rules(violations) == [FUNCTION_REQUIREMENTS, REQUIREMENTS_VERIFICATION]
        assert violations[0].suggested_operator is OperatorKind.REQ_LINK
        assert violations[1].suggested_operator is OperatorKind.TEST_LINK

    def test_allocation_cohesion(self, clean_architecture):
        """Test a FUNC in two modules is flagged."""
        arch = clean_architecture.replace(
            nodes=[*clean_architecture.nodes, Node("M2", NodeType.MOD)],
            edges=[*clean_architecture.edges, Edge("F1", "M2", EdgeType.ALLOCATE)],
        )
        cohesion = [v for v in detect_violations(arch) if v.rule_id == ALLOCATION_COHESION]
        assert len(cohesion) == 1
        assert cohesion[0].affected_nodes == ("F1", "M1", "M2")


class TestSimilarityRules:
    """Test similarity-driven violations."""

    def test_near_duplicate_pair(self, duplicate_funcs):
        """Test a near-duplicate FUNC pair is a hard violation."""
        violations = detect_violations(duplicate_funcs)
        duplicates = [v for v in violations if v.rule_id == FUNC_NEAR_DUPLICATE]
        assert len(duplicates) == 1
        assert duplicates[0].severity is Severity.HARD
        assert duplicates[0].affected_nodes == ("A", "B")
        assert duplicates[0].suggested_operator is OperatorKind.MERGE

    def test_merge_candidate_below_near_duplicate(self, duplicate_funcs):
        """Test a pair below the near-duplicate threshold is a merge candidate."""
        config = ScoringConfig(near_duplicate_threshold=0.99)
        violations = detect_violations(duplicate_funcs, config)
        assert FUNC_NEAR_DUPLICATE not in rules(violations)
        candidates = [v for v in violations if v.rule_id == FUNC_MERGE_CANDIDATE]
        assert len(candidates) == 1
        assert candidates[0].severity is Severity.SOFT

    def test_schema_similarity_levels(self):
        """Test SCHEMA similarity levels with and without a shared FLOW."""
        struct = {"id": "int", "total": "float"}
        schemas = [
            Node("S1", NodeType.SCHEMA, "OrderData", {"struct": struct}),
            Node("S2", NodeType.SCHEMA, "OrderData", {"struct": struct}),
        ]
        # Struct and name match but no FLOW uses either: 0.75
        unused = Architecture(nodes=schemas)
        assert rules(detect_violations(unused)) == [SCHEMA_MERGE_CANDIDATE]

        shared = Architecture(
            nodes=[*schemas, Node("FL1", NodeType.FLOW)],
            edges=[Edge("FL1", "S1", EdgeType.RELATION), Edge("FL1", "S2", EdgeType.RELATION)],
        )
        assert rules(detect_violations(shared)) == [SCHEMA_NEAR_DUPLICATE]

    def test_schema_thresholds_independent_of_func_thresholds(self):
        """Test SCHEMA pairs are judged by the SCHEMA thresholds only."""
        struct = {"id": "int", "total": "float"}
        unused = Architecture(nodes=[
            Node("S1", NodeType.SCHEMA, "OrderData", {"struct": struct}),
            Node("S2", NodeType.SCHEMA, "OrderData", {"struct": struct}),
        ])

        func_only = ScoringConfig(near_duplicate_threshold=0.75)
        assert rules(detect_violations(unused, func_only)) == [SCHEMA_MERGE_CANDIDATE]

        strict = ScoringConfig(schema_near_duplicate_threshold=0.75)
        assert rules(detect_violations(unused, strict)) == [SCHEMA_NEAR_DUPLICATE]

        lenient = ScoringConfig(schema_merge_candidate_threshold=0.8, schema_near_duplicate_threshold=0.9)
        assert rules(detect_violations(unused, lenient)) == []


class TestDetectorHelpers:
    """Test allocation helpers, summary and prioritization."""

    def test_allocation_map_resolves_both_directions(self):
        """Test allocation mapping in both edge directions."""
        arch = Architecture(
            nodes=[Node("M1", NodeType.MOD), Node("M2", NodeType.MOD), Node("F1", NodeType.FUNC)],
            edges=[Edge("F1", "M1", EdgeType.ALLOCATE), Edge("M2", "F1", EdgeType.ALLOCATE)],
        )
        assert allocation_map(arch) == {"F1": ["M1", "M2"]}
        assert module_members(arch) == {"M1": ["F1"], "M2": ["F1"]}

    def test_summarize_and_prioritize(self, duplicate_funcs):
        """Test summary counts and hard-first ordering."""
        detector = ViolationDetector()
        violations = detector.detect(duplicate_funcs)
        summary = detector.summarize(violations)
        assert summary[FUNC_NEAR_DUPLICATE] == 1
        assert list(summary) == sorted(summary)
        assert detector.prioritize(violations)[0].is_hard

    @settings(max_examples=30, deadline=None)
    @given(st.lists(st.floats(min_value=0.0, max_value=1.0), min_size=1, max_size=8))
    def test_detection_is_idempotent(self, volatilities):
        """Test detection gives the same result twice."""
        nodes = [Node("M1", NodeType.MOD)] + [
            Node(f"F{i}", NodeType.FUNC, properties={"volatility": v})
            for i, v in enumerate(volatilities)
        ]
        edges = [Edge("M1", f"F{i}", EdgeType.ALLOCATE) for i in range(len(volatilities))]
        arch = Architecture(nodes=nodes, edges=edges)
        detector = ViolationDetector()
        assert detector.detect(arch) == detector.detect(arch)
