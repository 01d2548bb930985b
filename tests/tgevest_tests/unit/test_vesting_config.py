"""
Unit tests for vault settings loading.
"""

import pytest

from tgevest.core.config import VestingSettings, load_settings
from tgevest.core.constants import DEFAULT_UNLOCK_PERIOD
from tgevest.core.contracts.erc20 import ERC20Token
from tgevest.core.defi.vesting import VestingVault
from tgevest.core.exceptions import ConfigurationError
from tests.tgevest_tests.vesting_test_utils import ADMIN, DAY


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(env={})
        assert settings.unlock_period == DEFAULT_UNLOCK_PERIOD
        assert settings.log_level == "INFO"
        assert settings.network == "testnet"

    def test_yaml_file(self, tmp_path):
        config_file = tmp_path / "vesting.yaml"
        config_file.write_text(
            "network: mainnet\n"
            f"admin_address: {ADMIN}\n"
            "unlock_period: 86400\n"
            "log_level: debug\n"
        )

        settings = load_settings(config_file, env={})

        assert settings.network == "mainnet"
        assert settings.admin_address == ADMIN.lower()
        assert settings.unlock_period == DAY
        assert settings.log_level == "DEBUG"

    def test_yaml_vesting_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("vesting:\n  unlock_period: 3600\n")
        assert load_settings(config_file, env={}).unlock_period == 3600

    def test_env_overrides_file(self, tmp_path):
        config_file = tmp_path / "vesting.yaml"
        config_file.write_text("unlock_period: 3600\nnetwork: mainnet\n")

        settings = load_settings(config_file, env={"TGEVEST_UNLOCK_PERIOD": "7200"})

        assert settings.unlock_period == 7200
        assert settings.network == "mainnet"

    def test_blank_env_values_ignored(self):
        settings = load_settings(env={"TGEVEST_NETWORK": "  "})
        assert settings.network == "testnet"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(tmp_path / "missing.yaml", env={})

    def test_non_mapping_file(self, tmp_path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_settings(config_file, env={})

    @pytest.mark.parametrize("value", ["0", "-5", "monthly"])
    def test_invalid_unlock_period(self, value):
        with pytest.raises(ConfigurationError):
            load_settings(env={"TGEVEST_UNLOCK_PERIOD": value})

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            load_settings(env={"TGEVEST_LOG_LEVEL": "verbose"})


class TestVaultFromSettings:
    def test_vault_uses_settings(self):
        settings = VestingSettings(
            admin_address=ADMIN,
            vault_address="0xVAULT0000000000000000000000000000000000aa",
            unlock_period=7 * DAY,
        )
        token = ERC20Token(name="Vest Token", symbol="VST", owner=ADMIN)

        vault = VestingVault.from_settings(settings, token, time_provider=lambda: 0)

        assert vault.unlock_period == 7 * DAY
        assert vault.address == "0xvault0000000000000000000000000000000000aa"
        assert vault.admin_address == ADMIN.lower()
        vault.grant_admin(ADMIN)
