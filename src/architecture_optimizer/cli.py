"""Command line entry point: optimize an architecture JSON file."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import (
    ConfigurationError,
    SearchConfig,
    load_scoring_config,
    load_success_threshold,
)
from .logger import set_log_level
from .models import Architecture, ArchitectureError
from .scorer import format_score
from .search import run_search_with_progress


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_text(path: Path) -> str:
    """Load text file with UTF-8 encoding."""
    if not path.exists():
        raise FileNotFoundError(f"Missing file: {path}")
    return path.read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="architecture_optimizer",
        description="Violation-guided multi-objective optimization of a system architecture graph.",
    )
    parser.add_argument("architecture", type=Path, help="Architecture JSON file (nodes and edges)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (overrides OPTIMIZER_RANDOM_SEED)")
    parser.add_argument("--max-iterations", type=int, default=None, help="Iteration budget")
    parser.add_argument("--rules", type=Path, default=None, help="Rules JSON with rule weights and thresholds")
    parser.add_argument("--output", type=Path, default=None, help="Write the full result as JSON here")
    parser.add_argument("--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS,
                        help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the optimizer.

    Returns:
        0 when the best variant reaches the success threshold, 1 when it
        does not, 2 on invalid input
    """
    args = build_parser().parse_args(argv)
    set_log_level(args.log_level)

    try:
        architecture = Architecture.from_dict(json.loads(load_text(args.architecture)))

        config = SearchConfig.from_env()
        if args.seed is not None:
            config.random_seed = args.seed
        if args.max_iterations is not None:
            config.max_iterations = args.max_iterations

        scoring_config = None
        if args.rules is not None:
            scoring_config = load_scoring_config(args.rules)
            config.success_threshold = load_success_threshold(args.rules, config.success_threshold)

        result = run_search_with_progress(architecture, config, scoring_config)
    except (FileNotFoundError, json.JSONDecodeError, ArchitectureError, ConfigurationError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    print("📊 Optimization Results:")
    print(f"   • Iterations: {result.iterations} ({result.convergence_reason})")
    print(f"   • Variants generated: {result.stats.total_variants_generated}")
    print(f"   • Variants rejected: {result.stats.variants_rejected}")
    print(f"   • Pareto front size: {len(result.pareto_front)}")
    if result.best_variant is not None:
        best = result.best_variant
        print(f"   • Best variant: {best.id} {format_score(best.score)}")
        print(f"   • Remaining violations: {len(best.violations)}")
    else:
        print("   • Best variant: none (every variant has hard violations)")
    print(f"   • Final status: {'✅ Success' if result.success else '⚠️ Below threshold'}")

    if args.output is not None:
        args.output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        print(f"\n💾 Result written to {args.output}")

    return 0 if result.success else 1
