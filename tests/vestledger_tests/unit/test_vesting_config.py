"""
Configuration tests - environment parsing and network selection.
"""

import importlib

import pytest

from vestledger.core import config
from vestledger.core.vesting_exceptions import ConfigurationError


@pytest.fixture
def reload_config(monkeypatch):
    """Reload the config module under a patched environment, restoring it afterwards."""

    def _reload(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


class TestDefaults:
    def test_testnet_is_default(self, reload_config, monkeypatch):
        monkeypatch.delenv("VESTLEDGER_NETWORK", raising=False)
        module = reload_config()
        assert module.Config is module.TestnetConfig
        assert module.Config.ALLOW_STATE_RESET is True
        assert module.Config.STATE_FILE.endswith("vesting_state.json")

    def test_default_values(self, reload_config, monkeypatch):
        for key in (
            "VESTLEDGER_DEFAULT_SLICE_SECONDS",
            "VESTLEDGER_TOKEN_DECIMALS",
            "VESTLEDGER_INITIAL_SUPPLY",
        ):
            monkeypatch.delenv(key, raising=False)
        module = reload_config()
        assert module.DEFAULT_SLICE_PERIOD_SECONDS == 86400
        assert module.TestnetConfig.TOKEN_DECIMALS == 18
        assert module.TestnetConfig.INITIAL_SUPPLY == 1_000_000 * 10**18
        assert module.MainnetConfig.INITIAL_SUPPLY == 0


class TestEnvironmentOverrides:
    def test_mainnet_selection(self, reload_config):
        module = reload_config(VESTLEDGER_NETWORK="mainnet")
        assert module.Config is module.MainnetConfig
        assert module.Config.ALLOW_STATE_RESET is False
        assert module.Config.ENVIRONMENT == "production"

    def test_state_file_override(self, reload_config, tmp_path):
        target = str(tmp_path / "ledger.json")
        module = reload_config(VESTLEDGER_STATE_FILE=target)
        assert module.Config.STATE_FILE == target

    def test_integer_settings(self, reload_config):
        module = reload_config(
            VESTLEDGER_DEFAULT_SLICE_SECONDS="3600",
            VESTLEDGER_TOKEN_DECIMALS="6",
        )
        assert module.Config.DEFAULT_SLICE_PERIOD_SECONDS == 3600
        assert module.Config.TOKEN_DECIMALS == 6

    def test_metrics_flag(self, reload_config):
        module = reload_config(VESTLEDGER_METRICS_ENABLED="yes")
        assert module.Config.METRICS_ENABLED is True


class TestInvalidConfiguration:
    def test_unknown_network(self):
        with pytest.raises(ConfigurationError):
            config.select_config("devnet")

    def test_select_config_is_case_insensitive(self):
        assert config.select_config(" MAINNET ") is config.MainnetConfig

    @pytest.mark.parametrize(
        "env",
        [
            {"VESTLEDGER_DEFAULT_SLICE_SECONDS": "0"},
            {"VESTLEDGER_DEFAULT_SLICE_SECONDS": "daily"},
            {"VESTLEDGER_TOKEN_DECIMALS": "19"},
            {"VESTLEDGER_LOG_LEVEL": "LOUD"},
            {"VESTLEDGER_METRICS_ENABLED": "maybe"},
        ],
    )
    def test_bad_values_raise(self, monkeypatch, env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        try:
            with pytest.raises(ConfigurationError):
                importlib.reload(config)
        finally:
            monkeypatch.undo()
            importlib.reload(config)
