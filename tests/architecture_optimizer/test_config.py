"""Tests for Architecture Optimizer configuration."""

import json

import pytest

from src.architecture_optimizer.config import (
    DEFAULT_RULE_WEIGHTS,
    ConfigurationError,
    ScoringConfig,
    SearchConfig,
    load_scoring_config,
    load_success_threshold,
)


class TestSearchConfig:
    """Test the search configuration class."""

    def test_default_config_creation(self):
        """Test creating config with default values."""
        config = SearchConfig()

        assert config.max_iterations == 50
        assert config.convergence_threshold == 0.01
        assert config.convergence_window == 5
        assert config.annealing_initial_temp == 0.3
        assert config.annealing_decay == 0.95
        assert config.pareto_front_size == 5
        assert config.random_seed == 42
        assert config.success_threshold == 0.7

    def test_config_to_dict(self):
        """Test converting config to dictionary."""
        config_dict = SearchConfig(max_iterations=10).to_dict()

        assert config_dict["max_iterations"] == 10
        assert len(config_dict) == 8  # All config fields

    def test_config_from_dict(self):
        """Test creating config from dictionary."""
        config = SearchConfig.from_dict({"max_iterations": 7, "random_seed": 3})
        assert config.max_iterations == 7
        assert config.random_seed == 3
        assert config.pareto_front_size == 5

    def test_from_dict_rejects_unknown_keys(self):
        """Test unknown keys are reported by name."""
        with pytest.raises(ConfigurationError, match="max_iter"):
            SearchConfig.from_dict({"max_iter": 7})

    def test_validate_returns_self(self):
        """Test validate returns the config for chaining."""
        config = SearchConfig()
        assert config.validate() is config

    @pytest.mark.parametrize("overrides", [
        {"max_iterations": -1},
        {"pareto_front_size": 0},
        {"convergence_window": 0},
        {"annealing_initial_temp": 0.0},
        {"annealing_decay": 0.0},
        {"annealing_decay": 1.5},
        {"success_threshold": 1.2},
    ])
    def test_invalid_values_rejected(self, overrides):
        """Test out-of-range values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            SearchConfig(**overrides).validate()

    @pytest.mark.parametrize("overrides", [
        {"annealing_decay": "0.5"},
        {"annealing_initial_temp": float("nan")},
        {"convergence_threshold": float("nan")},
        {"success_threshold": float("inf")},
        {"max_iterations": True},
        {"max_iterations": 2.5},
        {"random_seed": "42"},
    ])
    def test_wrong_types_and_non_finite_values_rejected(self, overrides):
        """Test wrong types and NaN or infinite values raise ConfigurationError, not TypeError."""
        with pytest.raises(ConfigurationError):
            SearchConfig.from_dict(overrides).validate()

    def test_validation_reports_every_problem(self):
        """Test one error lists every bad field."""
        with pytest.raises(ConfigurationError) as excinfo:
            SearchConfig(max_iterations=-1, pareto_front_size=0).validate()
        assert "max_iterations" in str(excinfo.value)
        assert "pareto_front_size" in str(excinfo.value)

    def test_from_env(self, monkeypatch, tmp_path):
        """Test environment variables override defaults."""
        monkeypatch.setenv("OPTIMIZER_MAX_ITERATIONS", "12")
        monkeypatch.setenv("OPTIMIZER_ANNEALING_DECAY", "0.9")
        config = SearchConfig.from_env(dotenv_path=str(tmp_path / "missing.env"))
        assert config.max_iterations == 12
        assert config.annealing_decay == 0.9

    def test_from_env_reads_dotenv_file(self, monkeypatch, tmp_path):
        """Test values are picked up from a .env file."""
        # Registers the variable with monkeypatch so the value loaded from .env is undone
        monkeypatch.setenv("OPTIMIZER_RANDOM_SEED", "1")
        monkeypatch.delenv("OPTIMIZER_RANDOM_SEED")
        env_file = tmp_path / ".env"
        env_file.write_text("OPTIMIZER_RANDOM_SEED=99\n", encoding="utf-8")
        config = SearchConfig.from_env(dotenv_path=str(env_file))
        assert config.random_seed == 99

    def test_from_env_bad_value(self, monkeypatch, tmp_path):
        """Test an unparsable environment value names the variable."""
        monkeypatch.setenv("OPTIMIZER_MAX_ITERATIONS", "many")
        with pytest.raises(ConfigurationError, match="OPTIMIZER_MAX_ITERATIONS"):
            SearchConfig.from_env(dotenv_path=str(tmp_path / "missing.env"))


class TestScoringConfig:
    """Test rule weights and thresholds."""

    def test_defaults(self):
        """Test default rule weights and fallback weight."""
        config = ScoringConfig()
        assert config.rule_weights == DEFAULT_RULE_WEIGHTS
        assert config.weight_for("func_near_duplicate") == 0.10
        assert config.weight_for("unknown_rule") == config.default_rule_weight

    def test_default_weights_not_shared(self):
        """Test instances do not share one weight table."""
        a, b = ScoringConfig(), ScoringConfig()
        a.rule_weights["isolation"] = 1.0
        assert b.rule_weights["isolation"] == 0.03

    def test_ceiling_must_stay_below_success_threshold(self):
        """Test the hard-violation ceiling must stay below the success threshold."""
        with pytest.raises(ConfigurationError, match="hard_violation_ceiling"):
            ScoringConfig(hard_violation_ceiling=0.8).validate(success_threshold=0.7)

    def test_negative_weight_rejected(self):
        """Test negative rule weights are rejected."""
        with pytest.raises(ConfigurationError, match="isolation"):
            ScoringConfig(rule_weights={"isolation": -0.1}).validate()

    def test_threshold_ordering(self):
        """Test merge-candidate threshold may not exceed near-duplicate threshold."""
        with pytest.raises(ConfigurationError):
            ScoringConfig(near_duplicate_threshold=0.6, merge_candidate_threshold=0.7).validate()

    @pytest.mark.parametrize("overrides", [
        {"normalization_base": "1"},
        {"default_rule_weight": float("nan")},
        {"rule_weights": {"isolation": "0.1"}},
        {"hard_violation_ceiling": None},
        {"schema_merge_candidate_threshold": 0.9, "schema_near_duplicate_threshold": 0.8},
        {"min_funcs_per_mod": 2.0},
    ])
    def test_invalid_scoring_values_rejected(self, overrides):
        """Test malformed scoring values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ScoringConfig(**overrides).validate()

    def test_round_trip(self):
        """Test converting to and from dictionary."""
        config = ScoringConfig(min_funcs_per_mod=3)
        assert ScoringConfig.from_dict(config.to_dict()) == config


class TestRulesFile:
    """Test loading rule tables from JSON."""

    def test_load_scoring_config(self, tmp_path):
        """Test loading rule weights and thresholds from JSON."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "rewardCalculation": {
                "structuralRuleWeights": {"isolation": 0.2},
                "successThreshold": 0.8,
            },
            "funcSimilarity": {"thresholds": {"nearDuplicate": 0.9, "mergeCandidate": 0.6}},
        }), encoding="utf-8")

        config = load_scoring_config(path)
        assert config.weight_for("isolation") == 0.2
        assert config.weight_for("millers_law_func") == DEFAULT_RULE_WEIGHTS["millers_law_func"]
        assert config.near_duplicate_threshold == 0.9
        assert config.merge_candidate_threshold == 0.6
        assert load_success_threshold(path) == 0.8

    def test_missing_sections_keep_defaults(self, tmp_path):
        """Test an empty rules file keeps every default."""
        path = tmp_path / "rules.json"
        path.write_text("{}", encoding="utf-8")
        assert load_scoring_config(path) == ScoringConfig()
        assert load_success_threshold(path) == 0.7

    def test_missing_file(self, tmp_path):
        """Test a missing rules file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_scoring_config(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        """Test invalid JSON raises ConfigurationError."""
        path = tmp_path / "rules.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_scoring_config(path)

    def test_schema_thresholds_are_separate(self, tmp_path):
        """Test SCHEMA thresholds load from their own section without touching FUNC ones."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "schemaSimilarity": {"thresholds": {"nearDuplicate": 0.95, "mergeCandidate": 0.8}},
        }), encoding="utf-8")

        config = load_scoring_config(path)
        assert config.schema_near_duplicate_threshold == 0.95
        assert config.schema_merge_candidate_threshold == 0.8
        assert config.near_duplicate_threshold == 0.85
        assert config.merge_candidate_threshold == 0.70

    @pytest.mark.parametrize("content", [
        "[1, 2]",
        '{"rewardCalculation": []}',
        '{"rewardCalculation": {"structuralRuleWeights": {"isolation": "heavy"}}}',
        '{"funcSimilarity": {"thresholds": {"nearDuplicate": "high"}}}',
    ])
    def test_malformed_rules_rejected(self, tmp_path, content):
        """Test malformed rules content raises ConfigurationError."""
        path = tmp_path / "rules.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_scoring_config(path)

    @pytest.mark.parametrize("content", [
        "{not json",
        '{"rewardCalculation": {"successThreshold": "high"}}',
        '{"rewardCalculation": {"successThreshold": null}}',
    ])
    def test_malformed_success_threshold_rejected(self, tmp_path, content):
        """Test a bad success threshold raises ConfigurationError."""
        path = tmp_path / "rules.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_success_threshold(path)
