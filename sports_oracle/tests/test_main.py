"""Unit tests for the command-line entry point."""

import os

import pytest

from sports_oracle.main import (
    build_config,
    build_parser,
    env_flag,
    parse_env_prefixed,
    parse_keyed_list,
)

CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

ORACLE_VARIABLES = (
    "PROVIDERS",
    "CONFIRMATION_THRESHOLD",
    "CYCLE_INTERVAL",
    "RETRY_ATTEMPTS",
    "RETRY_DELAY",
    "REQUEST_TIMEOUT",
    "FETCH_TIMEOUT",
    "LOOKBACK_DAYS",
    "RPC_URL",
    "BETTING_POOL_ADDRESS",
    "ORACLE_PRIVATE_KEY",
    "PRIVATE_KEY",
    "CONFIRMATIONS",
    "RECEIPT_TIMEOUT",
    "LEDGER_PATH",
    "SEED_FROM_BLOCK",
    "CREATE_GAMES",
    "SPORTSDATAIO_COMPETITION",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every oracle variable from the environment."""
    for name in list(os.environ):
        if name in ORACLE_VARIABLES or name.startswith(("API_KEY", "APIKEY_", "BASE_URL")):
            monkeypatch.delenv(name)
    return monkeypatch


def _config(argv):
    parser = build_parser()
    return build_config(parser.parse_args(argv), parser)


class TestParseKeyedList:
    """Test name=value list parsing."""

    def test_pairs(self) -> None:
        assert parse_keyed_list("Football_Data=abc, api_football = x=y") == {
            "football_data": "abc",
            "api_football": "x=y",
        }

    def test_empty(self) -> None:
        assert parse_keyed_list(None) == {}
        assert parse_keyed_list("") == {}

    def test_items_without_value_ignored(self) -> None:
        assert parse_keyed_list("football_data,api_football=k") == {"api_football": "k"}


class TestEnvironment:
    """Test environment helpers."""

    def test_prefixed(self, clean_env) -> None:
        clean_env.setenv("API_KEY_FOOTBALL_DATA", "k1")
        clean_env.setenv("APIKEY_SPORTSDATAIO", "k2")
        assert parse_env_prefixed(["API_KEY_", "APIKEY_"]) == {
            "football_data": "k1",
            "sportsdataio": "k2",
        }

    def test_env_flag(self, clean_env) -> None:
        clean_env.setenv("CREATE_GAMES", "Yes")
        assert env_flag("CREATE_GAMES") is True
        clean_env.setenv("CREATE_GAMES", "0")
        assert env_flag("CREATE_GAMES") is False


class TestBuildConfig:
    """Test configuration assembly and validation."""

    def test_from_environment(self, clean_env) -> None:
        clean_env.setenv("PROVIDERS", "football_data,api_football")
        clean_env.setenv("API_KEY_FOOTBALL_DATA", "k1")
        clean_env.setenv("API_KEY_API_FOOTBALL", "k2")
        clean_env.setenv("RPC_URL", "http://node:8545")
        clean_env.setenv("BETTING_POOL_ADDRESS", CONTRACT)
        clean_env.setenv("ORACLE_PRIVATE_KEY", KEY)
        clean_env.setenv("SEED_FROM_BLOCK", "1200")
        clean_env.setenv("CREATE_GAMES", "true")

        config = _config([])

        assert config.providers == ("football_data", "api_football")
        assert config.api_keys == {"football_data": "k1", "api_football": "k2"}
        assert config.confirmation_threshold == 2
        assert config.cycle_interval == 60.0
        assert config.private_key == KEY
        assert config.seed_from_block == 1200
        assert config.create_games is True
        assert config.provider_options == {"sportsdataio": {"competition": "EPL"}}

    def test_cli_overrides_environment(self, clean_env) -> None:
        clean_env.setenv("API_KEY_FOOTBALL_DATA", "from-env")
        clean_env.setenv("PRIVATE_KEY", KEY)

        config = _config(
            [
                "--providers", "football_data",
                "--api-keys", "football_data=from-cli",
                "--threshold", "1",
                "--interval", "15",
                "--rpc-url", "localhost",
                "--contract-address", CONTRACT,
                "--confirmations", "3",
                "--ledger-path", "/tmp/ledger.json",
            ]
        )

        assert config.api_keys["football_data"] == "from-cli"
        assert config.confirmation_threshold == 1
        assert config.cycle_interval == 15.0
        assert config.confirmations == 3
        assert config.ledger_path == "/tmp/ledger.json"
        assert config.seed_from_block is None
        assert config.create_games is False

    def test_private_key_hidden_from_repr(self, clean_env) -> None:
        clean_env.setenv("ORACLE_PRIVATE_KEY", KEY)
        config = _config(
            [
                "--providers", "football_data",
                "--api-keys", "football_data=secret-api-key",
                "--threshold", "1",
                "--rpc-url", "localhost",
                "--contract-address", CONTRACT,
            ]
        )

        assert KEY not in repr(config)
        assert "secret-api-key" not in repr(config)

    def test_unknown_provider(self, clean_env, capsys) -> None:
        with pytest.raises(SystemExit):
            _config(["--providers", "football_data,espn"])
        assert "Unknown providers" in capsys.readouterr().err

    def test_missing_values_reported_together(self, clean_env, capsys) -> None:
        with pytest.raises(SystemExit):
            _config(["--providers", "football_data", "--threshold", "1"])

        err = capsys.readouterr().err
        assert "missing API keys" in err
        assert "RPC URL is required" in err
        assert "oracle private key is required" in err

    def test_threshold_above_provider_count(self, clean_env, capsys) -> None:
        clean_env.setenv("ORACLE_PRIVATE_KEY", KEY)
        with pytest.raises(SystemExit):
            _config(
                [
                    "--providers", "football_data",
                    "--api-keys", "football_data=k",
                    "--threshold", "2",
                    "--rpc-url", "localhost",
                    "--contract-address", CONTRACT,
                ]
            )

        assert "exceeds the 1 configured providers" in capsys.readouterr().err

    def test_interval_below_minimum(self, clean_env, capsys) -> None:
        clean_env.setenv("ORACLE_PRIVATE_KEY", KEY)
        with pytest.raises(SystemExit):
            _config(
                [
                    "--providers", "football_data",
                    "--api-keys", "football_data=k",
                    "--threshold", "1",
                    "--interval", "0.5",
                    "--rpc-url", "localhost",
                    "--contract-address", CONTRACT,
                ]
            )

        assert "cycle interval must be at least 1 second" in capsys.readouterr().err

    def test_malformed_numeric_env_is_usage_error(self, clean_env, capsys) -> None:
        clean_env.setenv("CONFIRMATION_THRESHOLD", "abc")
        with pytest.raises(SystemExit):
            _config([])

        assert "argument --threshold: invalid int value: 'abc'" in capsys.readouterr().err

    def test_malformed_seed_block_env_is_usage_error(self, clean_env, capsys) -> None:
        clean_env.setenv("SEED_FROM_BLOCK", "latest")
        with pytest.raises(SystemExit):
            _config([])

        assert "argument --seed-from-block: invalid int value" in capsys.readouterr().err

    def test_create_games_disabled_from_cli(self, clean_env) -> None:
        clean_env.setenv("CREATE_GAMES", "1")
        clean_env.setenv("ORACLE_PRIVATE_KEY", KEY)
        argv = [
            "--providers", "football_data",
            "--api-keys", "football_data=k",
            "--threshold", "1",
            "--rpc-url", "localhost",
            "--contract-address", CONTRACT,
        ]

        assert _config(argv).create_games is True
        assert _config(argv + ["--no-create-games"]).create_games is False
