"""Tests for the command line entry point."""

import json

import pytest

from src.architecture_optimizer.cli import build_parser, main


class TestCli:
    """Test argument handling and exit codes."""

    def test_parser_defaults(self):
        """Test parser defaults leave overrides unset."""
        args = build_parser().parse_args(["arch.json"])
        assert args.seed is None
        assert args.max_iterations is None
        assert args.log_level == "INFO"

    def test_clean_architecture_succeeds(self, clean_architecture, tmp_path, capsys):
        """Test a clean architecture exits 0 and writes the result file."""
        arch_path = tmp_path / "arch.json"
        out_path = tmp_path / "result.json"
        arch_path.write_text(json.dumps(clean_architecture.to_dict()), encoding="utf-8")

        code = main([str(arch_path), "--output", str(out_path), "--log-level", "WARNING"])

        assert code == 0
        assert "Success" in capsys.readouterr().out
        result = json.loads(out_path.read_text(encoding="utf-8"))
        assert result["convergence_reason"] == "threshold"
        assert result["best_variant"]["id"] == "v0"

    def test_seed_and_budget_flags(self, oversized_module, tmp_path):
        """Test seed and iteration budget flags reach the search."""
        arch_path = tmp_path / "arch.json"
        out_path = tmp_path / "result.json"
        arch_path.write_text(json.dumps(oversized_module.to_dict()), encoding="utf-8")

        main([str(arch_path), "--seed", "3", "--max-iterations", "2",
              "--output", str(out_path), "--log-level", "ERROR"])

        result = json.loads(out_path.read_text(encoding="utf-8"))
        assert result["iterations"] <= 2

    def test_rules_file(self, clean_architecture, tmp_path):
        """Test loading weights and success threshold from a rules file."""
        arch_path = tmp_path / "arch.json"
        rules_path = tmp_path / "rules.json"
        arch_path.write_text(json.dumps(clean_architecture.to_dict()), encoding="utf-8")
        rules_path.write_text(json.dumps({"rewardCalculation": {"successThreshold": 0.9}}), encoding="utf-8")

        assert main([str(arch_path), "--rules", str(rules_path), "--log-level", "ERROR"]) == 0

    def test_missing_file(self, tmp_path, capsys):
        """Test a missing architecture file exits with status 2."""
        assert main([str(tmp_path / "absent.json")]) == 2
        assert "Missing file" in capsys.readouterr().err

    def test_malformed_architecture(self, tmp_path, capsys):
        """Test an unknown node type exits with status 2."""
        arch_path = tmp_path / "arch.json"
        arch_path.write_text(json.dumps({"nodes": [{"id": "A", "type": "WIDGET"}]}), encoding="utf-8")
        assert main([str(arch_path)]) == 2
        assert "WIDGET" in capsys.readouterr().err

    def test_unknown_log_level_exits_with_usage_error(self, tmp_path):
        """Test an unknown log level stops argument parsing with status 2."""
        with pytest.raises(SystemExit) as excinfo:
            main([str(tmp_path / "arch.json"), "--log-level", "bogus"])
        assert excinfo.value.code == 2

    def test_log_level_is_case_insensitive(self):
        """Test lower-case log levels are accepted."""
        assert build_parser().parse_args(["arch.json", "--log-level", "debug"]).log_level == "DEBUG"

    def test_top_level_list_rejected(self, tmp_path, capsys):
        """Test a JSON array instead of an architecture object exits with status 2."""
        arch_path = tmp_path / "arch.json"
        arch_path.write_text("[]", encoding="utf-8")
        assert main([str(arch_path)]) == 2
        assert "JSON object" in capsys.readouterr().err

    def test_bad_success_threshold_rejected(self, clean_architecture, tmp_path, capsys):
        """Test a non-numeric success threshold in the rules file exits with status 2."""
        arch_path = tmp_path / "arch.json"
        rules_path = tmp_path / "rules.json"
        arch_path.write_text(json.dumps(clean_architecture.to_dict()), encoding="utf-8")
        rules_path.write_text(json.dumps({"rewardCalculation": {"successThreshold": "high"}}), encoding="utf-8")

        assert main([str(arch_path), "--rules", str(rules_path)]) == 2
        assert "successThreshold" in capsys.readouterr().err
