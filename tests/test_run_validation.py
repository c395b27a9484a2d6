"""
Tests for the scripts/run_validation.py command line.
"""

import pandas as pd
import pytest

from scripts.run_validation import build_config, main, parse_args


@pytest.fixture
def tiny_config(tmp_path):
    path = tmp_path / "tiny.yaml"
    path.write_text(
        "name: tiny\n"
        "dispatchers: [SingleHeuristic]\n"
        "n_agents: 10\n"
        "fleet_size: 10\n"
    )
    return path


class TestBuildConfig:
    """Tests for CLI overrides."""

    def test_defaults_without_config(self):
        """Without --config the standard scenario should be used."""
        config = build_config(parse_args([]))
        assert config.name == "standard_scenario"
        assert config.fleet_size == 100

    def test_overrides_applied(self, tiny_config):
        """Verify command-line options override the YAML settings."""
        args = parse_args(
            [
                "--config", str(tiny_config),
                "--dispatcher", "SingleHeuristic",
                "--dispatcher", "GlobalBipartiteMatchingDispatcher",
                "--fleet-size", "7",
                "--zones", "3",
                "--seed", "9",
            ]
        )
        config = build_config(args)

        assert config.name == "tiny"
        assert config.dispatchers == ["SingleHeuristic", "GlobalBipartiteMatchingDispatcher"]
        assert config.fleet_size == 7
        assert config.n_agents == 10
        assert config.n_zones == 3
        assert config.random_seed == 9


class TestMain:
    """Exit status of the command line."""

    def test_passing_run(self, tiny_config, tmp_path, capsys):
        """A passing run should exit 0 and write the CSV summary."""
        output = tmp_path / "out" / "summary.csv"
        code = main(["--config", str(tiny_config), "--output", str(output)])

        assert code == 0
        assert "Overall: PASS" in capsys.readouterr().out
        df = pd.read_csv(output)
        assert list(df["policy"]) == ["SingleHeuristic"]
        assert df["discrepancy"].iloc[0] == 0

    def test_setup_error_exit_code(self, tiny_config):
        """Verify a missing corridor node exits with status 2."""
        assert main(["--config", str(tiny_config), "--corridor-range", "10"]) == 2

    def test_unknown_dispatcher_exit_code(self, tiny_config):
        """Verify an unknown dispatcher exits with status 2."""
        assert main(["--config", str(tiny_config), "--dispatcher", "Nope"]) == 2

    def test_missing_config_exit_code(self, tmp_path):
        """A missing config file should exit with status 2."""
        assert main(["--config", str(tmp_path / "absent.yaml")]) == 2
