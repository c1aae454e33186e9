#!/usr/bin/env python3
"""
Architecture Optimizer Demo Script

This script demonstrates the complete functionality of the Architecture Optimizer,
including violation detection, multi-objective scoring, move operators and the
violation-guided search with its Pareto front.
"""

from src.architecture_optimizer.config import SearchConfig
from src.architecture_optimizer.logger import set_log_level
from src.architecture_optimizer.models import Architecture
from src.architecture_optimizer.pareto_front import ParetoFront, format_pareto_front
from src.architecture_optimizer.scorer import format_score
from src.architecture_optimizer.search import ArchitectureOptimizer


def sample_architecture() -> Architecture:
    """An order-handling system with an overloaded module and a duplicated function."""
    funcs = [
        ("F1", "ValidateOrder", "validate the incoming order payload", 0.2),
        ("F2", "CheckOrder", "validate the incoming order payload", 0.2),
        ("F3", "ComputeTotal", "sum line prices and apply tax", 0.3),
        ("F4", "ApplyDiscount", "reduce total by active promotion", 0.9),
        ("F5", "ReserveStock", "lock inventory for each line", 0.4),
        ("F6", "SendConfirmation", "email the customer a receipt", 0.1),
        ("F7", "StoreOrder", "persist the order record", 0.1),
        ("F8", "PublishEvent", "emit order created event", 0.2),
        ("F9", "RefreshPricing", "pull latest price list", 0.95),
        ("F10", "AuditTrail", "append change history entry", 0.1),
        ("F11", "ExportReport", "render daily sales summary", 0.3),
    ]
    nodes = [
        {"id": "SYS", "type": "SYS", "label": "OrderSystem"},
        {"id": "M1", "type": "MOD", "label": "OrderCore"},
        {"id": "FL_IN", "type": "FLOW", "label": "OrderRequest"},
        {"id": "FL_OUT", "type": "FLOW", "label": "OrderResult"},
        {"id": "S1", "type": "SCHEMA", "label": "OrderData",
         "properties": {"struct": {"id": "str", "lines": "list", "total": "float"}}},
        {"id": "R1", "type": "REQ", "label": "OrdersAreValidated",
         "properties": {"descr": "every order is validated before processing"}},
        {"id": "R2", "type": "REQ", "label": "CustomerIsNotified",
         "properties": {"descr": "customer receives an email receipt"}},
    ]
    nodes += [
        {"id": fid, "type": "FUNC", "label": label, "properties": {"descr": descr, "volatility": vol}}
        for fid, label, descr, vol in funcs
    ]
    edges = [
        {"source": "SYS", "target": "M1", "type": "compose"},
        {"source": "FL_IN", "target": "S1", "type": "relation"},
        {"source": "FL_IN", "target": "F1", "type": "io"},
        {"source": "FL_IN", "target": "F2", "type": "io"},
        {"source": "F1", "target": "FL_OUT", "type": "io"},
        {"source": "F2", "target": "FL_OUT", "type": "io"},
        {"source": "F1", "target": "R1", "type": "satisfy"},
        {"source": "F3", "target": "FL_OUT", "type": "io"},
    ]
    edges += [{"source": "M1", "target": fid, "type": "allocate"} for fid, *_ in funcs]
    return Architecture.from_dict({"id": "order-system", "nodes": nodes, "edges": edges})


def main():
    """Run the Architecture Optimizer demonstration."""

    print("🚀 Architecture Optimizer Demo")
    print("=" * 50)

    # Set log level for demo
    set_log_level("WARNING")  # Reduce log noise for demo

    architecture = sample_architecture()
    optimizer = ArchitectureOptimizer(SearchConfig(max_iterations=30, random_seed=42))

    print("\n📊 Analyzing Baseline Architecture...")
    report = optimizer.analyze(architecture)
    print(f"   • Nodes: {len(architecture.nodes)}, edges: {len(architecture.edges)}")
    print(f"   • Total violations: {report['total_violations']} ({report['hard_violations']} hard)")
    for rule_id, count in report["summary"].items():
        print(f"      - {rule_id}: {count}")

    print(f"\n🔍 Top Violations:")
    for i, violation in enumerate(report["violations"][:5], 1):
        print(f"   {i}. [{violation['severity']}] {violation['message']}")
        print(f"      Suggested operator: {violation['suggested_operator']}")

    print(f"\n🔄 Running Violation-Guided Search...")
    result = optimizer.optimize(architecture)

    print(f"   • Iterations: {result.iterations} ({result.convergence_reason})")
    print(f"   • Variants generated: {result.stats.total_variants_generated}")
    print(f"   • Variants rejected (hard violations): {result.stats.variants_rejected}")
    print(f"   • Operator usage: {result.stats.operator_usage}")

    if result.best_variant is None:
        print("❌ No variant without hard violations was found")
        return

    best = result.best_variant
    print(f"\n🏆 Best Variant: {best.id}")
    print(f"   • Score: {format_score(best.score)}")
    print(f"   • Remaining violations: {len(best.violations)}")
    print(f"   • Lineage: {' → '.join(v.id for v in result.lineage.ancestry(best.id))}")
    print(f"   • Operators applied: "
          f"{[v.applied_operator.value for v in result.lineage.ancestry(best.id) if v.applied_operator]}")

    front = ParetoFront(max(1, len(result.pareto_front)))
    for variant in result.pareto_front:
        front.add(variant)
    print(f"\n📈 {format_pareto_front(front)}")

    print(f"\n✨ Demo completed: {'✅ Success' if result.success else '⚠️ Below threshold'}")


if __name__ == "__main__":
    main()
