"""Configuration settings for the Architecture Optimizer."""

import json
import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional, Union

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised when a configuration value is out of range."""


# Structural rule weights used when the host supplies no rule table.
DEFAULT_RULE_WEIGHTS: Dict[str, float] = {
    "millers_law_func": 0.05,
    "volatile_func_isolation": 0.05,
    "function_requirements": 0.05,
    "requirements_verification": 0.03,
    "isolation": 0.03,
    "allocation_cohesion": 0.05,
    "func_merge_candidate": 0.03,
    "schema_merge_candidate": 0.03,
    "func_near_duplicate": 0.10,
    "schema_near_duplicate": 0.10,
}


def is_number(value: Any) -> bool:
    """Finite int or float; bools and NaN/inf do not count."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class SearchConfig:
    """Configuration class for the violation-guided local search."""

    # Budget
    max_iterations: int = 50

    # Convergence: stop when the mean |delta| over the window drops below threshold
    convergence_threshold: float = 0.01
    convergence_window: int = 5

    # Simulated annealing
    annealing_initial_temp: float = 0.3
    annealing_decay: float = 0.95

    # Pareto front
    pareto_front_size: int = 5

    # Reproducibility
    random_seed: int = 42

    # Acceptance of the final result
    success_threshold: float = 0.7

    def validate(self) -> "SearchConfig":
        """
        Check every field is within range.

        Returns:
            The config itself, so calls can be chained

        Raises:
            ConfigurationError: if any field is out of range
        """
        problems = []
        if not is_integer(self.max_iterations) or self.max_iterations < 0:
            problems.append(f"max_iterations must be a non-negative integer, got {self.max_iterations!r}")
        if not is_integer(self.pareto_front_size) or self.pareto_front_size < 1:
            problems.append(f"pareto_front_size must be a positive integer, got {self.pareto_front_size!r}")
        if not is_integer(self.convergence_window) or self.convergence_window < 1:
            problems.append(f"convergence_window must be a positive integer, got {self.convergence_window!r}")
        if not is_number(self.convergence_threshold) or self.convergence_threshold < 0:
            problems.append(f"convergence_threshold must be a finite number >= 0, got {self.convergence_threshold!r}")
        if not is_number(self.annealing_initial_temp) or self.annealing_initial_temp <= 0:
            problems.append(f"annealing_initial_temp must be a finite number > 0, got {self.annealing_initial_temp!r}")
        if not is_number(self.annealing_decay) or not 0 < self.annealing_decay <= 1:
            problems.append(f"annealing_decay must be a number in (0, 1], got {self.annealing_decay!r}")
        if not is_integer(self.random_seed):
            problems.append(f"random_seed must be an integer, got {self.random_seed!r}")
        if not is_number(self.success_threshold) or not 0 <= self.success_threshold <= 1:
            problems.append(f"success_threshold must be a number in [0, 1], got {self.success_threshold!r}")

        if problems:
            raise ConfigurationError("Invalid search configuration: " + "; ".join(problems))
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "max_iterations": self.max_iterations,
            "convergence_threshold": self.convergence_threshold,
            "convergence_window": self.convergence_window,
            "annealing_initial_temp": self.annealing_initial_temp,
            "annealing_decay": self.annealing_decay,
            "pareto_front_size": self.pareto_front_size,
            "random_seed": self.random_seed,
            "success_threshold": self.success_threshold,
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SearchConfig":
        """Create configuration from dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ConfigurationError(f"Unknown search configuration keys: {unknown}")
        return cls(**config_dict)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "SearchConfig":
        """
        Create configuration from OPTIMIZER_* environment variables.

        A .env file is loaded first; variables already set in the process
        environment take precedence over it.

        Args:
            dotenv_path: Optional explicit path to a .env file

        Returns:
            SearchConfig with environment overrides applied
        """
        load_dotenv(dotenv_path)
        config = cls()
        for f in fields(cls):
            raw = os.getenv(f"OPTIMIZER_{f.name.upper()}")
            if raw is None:
                continue
            caster = int if isinstance(getattr(config, f.name), int) else float
            try:
                setattr(config, f.name, caster(raw))
            except ValueError as e:
                raise ConfigurationError(
                    f"OPTIMIZER_{f.name.upper()}={raw!r} is not a valid {caster.__name__}"
                ) from e
        return config


@dataclass
class ScoringConfig:
    """Rule weights and thresholds consumed by the detector and scorer."""

    rule_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_RULE_WEIGHTS))
    default_rule_weight: float = 0.05
    normalization_base: float = 1.0

    # Hard violations scale the scalar score into [0, ceiling)
    hard_violation_ceiling: float = 0.5

    # FUNC similarity thresholds
    near_duplicate_threshold: float = 0.85
    merge_candidate_threshold: float = 0.70

    # SCHEMA similarity thresholds
    schema_near_duplicate_threshold: float = 0.85
    schema_merge_candidate_threshold: float = 0.70

    # Structural rule parameters
    high_volatility_threshold: float = 0.7
    min_funcs_per_mod: int = 5
    max_funcs_per_mod: int = 9

    def weight_for(self, rule_id: str) -> float:
        """Weight of a rule, falling back to the default weight."""
        return self.rule_weights.get(rule_id, self.default_rule_weight)

    def validate(self, success_threshold: float = 0.7) -> "ScoringConfig":
        """
        Check every field is within range.

        Args:
            success_threshold: Acceptance threshold the hard-violation ceiling must stay below

        Raises:
            ConfigurationError: if any field is out of range
        """
        problems = []
        if not is_number(self.normalization_base) or self.normalization_base <= 0:
            problems.append(f"normalization_base must be a finite number > 0, got {self.normalization_base!r}")
        if not is_number(self.default_rule_weight) or self.default_rule_weight < 0:
            problems.append(f"default_rule_weight must be a finite number >= 0, got {self.default_rule_weight!r}")
        if not isinstance(self.rule_weights, dict):
            problems.append(f"rule_weights must be a mapping, got {self.rule_weights!r}")
        else:
            bad = sorted(
                rule for rule, weight in self.rule_weights.items()
                if not is_number(weight) or weight < 0
            )
            if bad:
                problems.append(f"rule weights must be finite numbers >= 0: {bad}")
        if not is_number(self.hard_violation_ceiling) or not 0 <= self.hard_violation_ceiling < success_threshold:
            problems.append(
                f"hard_violation_ceiling must be in [0, {success_threshold}), got {self.hard_violation_ceiling!r}"
            )
        for prefix, low, high in (
            ("", self.merge_candidate_threshold, self.near_duplicate_threshold),
            ("schema_", self.schema_merge_candidate_threshold, self.schema_near_duplicate_threshold),
        ):
            if not (is_number(low) and is_number(high) and 0 < low <= high <= 1):
                problems.append(
                    f"{prefix}similarity thresholds must satisfy "
                    f"0 < {prefix}merge_candidate <= {prefix}near_duplicate <= 1"
                )
        if not is_number(self.high_volatility_threshold) or not 0 <= self.high_volatility_threshold <= 1:
            problems.append(f"high_volatility_threshold must be in [0, 1], got {self.high_volatility_threshold!r}")
        if not (is_integer(self.min_funcs_per_mod) and is_integer(self.max_funcs_per_mod)
                and 0 < self.min_funcs_per_mod <= self.max_funcs_per_mod):
            problems.append("funcs-per-mod bounds must be integers with 0 < min <= max")

        if problems:
            raise ConfigurationError("Invalid scoring configuration: " + "; ".join(problems))
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "rule_weights": dict(self.rule_weights),
            "default_rule_weight": self.default_rule_weight,
            "normalization_base": self.normalization_base,
            "hard_violation_ceiling": self.hard_violation_ceiling,
            "near_duplicate_threshold": self.near_duplicate_threshold,
            "merge_candidate_threshold": self.merge_candidate_threshold,
            "schema_near_duplicate_threshold": self.schema_near_duplicate_threshold,
            "schema_merge_candidate_threshold": self.schema_merge_candidate_threshold,
            "high_volatility_threshold": self.high_volatility_threshold,
            "min_funcs_per_mod": self.min_funcs_per_mod,
            "max_funcs_per_mod": self.max_funcs_per_mod,
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ScoringConfig":
        """Create configuration from dictionary."""
        return cls(**config_dict)


def _read_rules(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing rules file: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Rules file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Rules file {path} must hold a JSON object, got {type(data).__name__}")
    return data


def _section(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Nested object at ``keys``; missing sections read as empty."""
    for key in keys:
        data = data.get(key, {})
        if not isinstance(data, dict):
            raise ConfigurationError(f"Rules section {'.'.join(keys)} must be a JSON object")
    return data


def _number(raw: Any, name: str) -> float:
    if not is_number(raw):
        raise ConfigurationError(f"Rules value {name} must be a finite number, got {raw!r}")
    return float(raw)


def load_scoring_config(path: Union[str, Path]) -> ScoringConfig:
    """
    Load rule weights from a rules JSON file.

    The file follows the ontology rules layout: weights live under
    ``rewardCalculation.structuralRuleWeights``, FUNC thresholds under
    ``funcSimilarity.thresholds`` and SCHEMA thresholds under
    ``schemaSimilarity.thresholds``. Missing sections keep defaults.

    Args:
        path: Path to the rules JSON file

    Returns:
        ScoringConfig built from the file

    Raises:
        FileNotFoundError: if the file does not exist
        ConfigurationError: if the file is not a well-formed rules object
    """
    data = _read_rules(path)

    config = ScoringConfig()
    weights = _section(data, "rewardCalculation", "structuralRuleWeights")
    if weights:
        config.rule_weights = {
            **DEFAULT_RULE_WEIGHTS,
            **{rule: _number(weight, rule) for rule, weight in weights.items()},
        }

    for section, prefix in (("funcSimilarity", ""), ("schemaSimilarity", "schema_")):
        thresholds = _section(data, section, "thresholds")
        if "nearDuplicate" in thresholds:
            setattr(config, f"{prefix}near_duplicate_threshold",
                    _number(thresholds["nearDuplicate"], f"{section}.thresholds.nearDuplicate"))
        if "mergeCandidate" in thresholds:
            setattr(config, f"{prefix}merge_candidate_threshold",
                    _number(thresholds["mergeCandidate"], f"{section}.thresholds.mergeCandidate"))

    return config


def load_success_threshold(path: Union[str, Path], default: float = 0.7) -> float:
    """Read ``rewardCalculation.successThreshold`` from a rules JSON file."""
    reward = _section(_read_rules(path), "rewardCalculation")
    if "successThreshold" not in reward:
        return default
    return _number(reward["successThreshold"], "rewardCalculation.successThreshold")
