"""
Configuration Tests.

============================================================
PURPOSE
============================================================
Credential resolution, capability flags and config file handling.

TEST CATEGORIES:
- Precedence: environment > local file > global file
- Capabilities: multi-secret providers, tool-gated providers
- Loader: malformed files, timeout, tag lists, config set

============================================================
"""

import pytest
import yaml

from onchain.config import (
    AppConfig,
    CredentialSet,
    ProviderId,
    missing_credentials_message,
    resolve_credentials,
    set_config_value,
    validate_credentials,
)
from onchain.exceptions import ConfigurationError


def _no_tools(name):
    return None


# ============================================================
# CREDENTIAL RESOLVER TESTS
# ============================================================

class TestCredentialResolver:
    """Tests for resolve_credentials."""

    def test_environment_wins_over_files(self):
        """Test env var beats both config files."""
        creds = resolve_credentials(
            {"ZERION_API_KEY": "from-env"},
            {"zerion_api_key": "from-global"},
            {"zerion_api_key": "from-local"},
        )

        assert creds.get("zerion_api_key") == "from-env"
        assert creds.origin("zerion_api_key") == "env"

    def test_local_wins_over_global(self):
        """Test local file beats global file."""
        creds = resolve_credentials({}, {"debank_api_key": "g"}, {"debank_api_key": "l"})

        assert creds.get("debank_api_key") == "l"
        assert creds.origin("debank_api_key") == "local"

    def test_global_used_when_nothing_else(self):
        """Test global file is the last layer."""
        creds = resolve_credentials({}, {"helius_api_key": "g"}, {})

        assert creds.get("helius_api_key") == "g"
        assert creds.origin("helius_api_key") == "global"

    def test_empty_string_does_not_shadow(self):
        """Test an empty env var falls through to the file value."""
        creds = resolve_credentials({"ETHERSCAN_API_KEY": ""}, {}, {"etherscan_api_key": "local"})

        assert creds.get("etherscan_api_key") == "local"

    def test_camel_case_config_keys(self):
        """Test camelCase keys in config files are accepted."""
        creds = resolve_credentials({}, {"coinmarketcapApiKey": "cmc"}, {})

        assert creds.get("coinmarketcap_api_key") == "cmc"

    def test_unknown_credential_raises(self):
        """Test asking for an unknown name is a programming error."""
        with pytest.raises(KeyError):
            CredentialSet().get("not_a_credential")

    def test_missing_is_none(self):
        """Test unset credentials read as None."""
        creds = resolve_credentials({}, {}, {})

        assert creds.get("binance_api_key") is None
        assert creds.origin("binance_api_key") is None
        assert creds.has("binance_api_key") is False


# ============================================================
# CAPABILITY VALIDATOR TESTS
# ============================================================

class TestCapabilityValidator:
    """Tests for validate_credentials."""

    def test_key_without_secret_not_capable(self):
        """Test Binance needs both key and secret."""
        creds = resolve_credentials({"BINANCE_API_KEY": "k"}, {}, {})
        flags = validate_credentials(creds, which=_no_tools)

        assert flags.is_capable(ProviderId.BINANCE) is False

    def test_key_and_secret_capable(self):
        """Test Binance with both fields set."""
        creds = resolve_credentials(
            {"BINANCE_API_KEY": "k", "BINANCE_API_SECRET": "s"}, {}, {}
        )
        flags = validate_credentials(creds, which=_no_tools)

        assert flags.is_capable(ProviderId.BINANCE) is True

    def test_coinbase_empty_secret_not_capable(self):
        """Test an empty PEM leaves Coinbase unusable."""
        creds = resolve_credentials(
            {"COINBASE_API_KEY_ID": "id", "COINBASE_API_KEY_SECRET": ""}, {}, {}
        )
        flags = validate_credentials(creds, which=_no_tools)

        assert flags.is_capable(ProviderId.COINBASE) is False

    def test_free_tier_always_capable(self):
        """Test CoinGecko and Polymarket need nothing."""
        flags = validate_credentials(CredentialSet(), which=_no_tools)

        assert flags.is_capable(ProviderId.COINGECKO) is True
        assert flags.is_capable(ProviderId.POLYMARKET) is True

    def test_tool_gated_providers(self):
        """Test Nansen and the browser scraper depend on PATH lookups."""
        installed = {"nansen": "/usr/bin/nansen"}
        flags = validate_credentials(CredentialSet(), which=installed.get)

        assert flags.is_capable(ProviderId.NANSEN) is True
        assert flags.is_capable(ProviderId.BROWSER) is False

    def test_missing_message_names_env_vars(self):
        """Test the NotConfigured message lists what to set."""
        message = missing_credentials_message("Wallet balances", [ProviderId.ZERION, ProviderId.DEBANK])

        assert "ZERION_API_KEY" in message
        assert "DEBANK_API_KEY" in message
        assert "onchain config set" in message


# ============================================================
# LOADER TESTS
# ============================================================

class TestAppConfig:
    """Tests for AppConfig.load and config set."""

    def test_load_layers(self, tmp_path):
        """Test both files and the environment are merged."""
        global_path = tmp_path / "global.yaml"
        local_path = tmp_path / "local.yaml"
        global_path.write_text(yaml.safe_dump({"zerionApiKey": "g", "timeoutSeconds": 12}))
        local_path.write_text(yaml.safe_dump({"polymarket": {"excludeTags": ["Sports", "pop-culture"]}}))

        config = AppConfig.load(env={"DEBANK_API_KEY": "d"}, global_path=global_path, local_path=local_path)

        assert config.credentials.get("zerion_api_key") == "g"
        assert config.credentials.get("debank_api_key") == "d"
        assert config.timeout_seconds == 12
        assert config.polymarket_exclude_tags == ("sports", "pop-culture")
        assert config.warnings == ()

    def test_malformed_file_is_warning(self, tmp_path):
        """Test a broken file is treated as empty with a warning."""
        global_path = tmp_path / "global.yaml"
        global_path.write_text("key: [unclosed")

        config = AppConfig.load(env={}, global_path=global_path, local_path=tmp_path / "missing.yaml")

        assert config.credentials.values == {}
        assert len(config.warnings) == 1

    def test_non_mapping_section_is_warning(self, tmp_path):
        """Test a scalar polymarket section is ignored with a warning."""
        global_path = tmp_path / "global.yaml"
        local_path = tmp_path / "local.yaml"
        global_path.write_text("polymarket: crypto\nzerionApiKey: g\n")
        local_path.write_text(yaml.safe_dump({"polymarket": {"includeTags": "crypto,Politics"}}))

        config = AppConfig.load(env={}, global_path=global_path, local_path=local_path)

        assert config.credentials.get("zerion_api_key") == "g"
        assert config.polymarket_include_tags == ("crypto", "politics")
        assert len(config.warnings) == 1
        assert "expected a mapping, got str" in config.warnings[0]

    def test_non_positive_timeout_is_warning(self, tmp_path):
        """Test a zero or negative timeout falls back to the default."""
        for value in (0, -5):
            global_path = tmp_path / f"global{value}.yaml"
            global_path.write_text(yaml.safe_dump({"timeoutSeconds": value}))

            config = AppConfig.load(env={}, global_path=global_path, local_path=tmp_path / "missing.yaml")

            assert config.timeout_seconds == 30.0
            assert len(config.warnings) == 1
            assert "must be positive" in config.warnings[0]

    def test_timeout_defaults_and_override(self, tmp_path):
        """Test default timeout and the CLI override."""
        config = AppConfig.load(env={}, global_path=tmp_path / "a", local_path=tmp_path / "b")

        assert config.timeout_seconds == 30.0
        assert config.with_timeout(None) is config
        assert config.with_timeout(5).timeout_seconds == 5

    def test_set_credential(self, tmp_path):
        """Test config set writes a YAML key."""
        path = tmp_path / "cfg" / "config.yaml"

        set_config_value("etherscanApiKey", "abc", path)

        assert yaml.safe_load(path.read_text()) == {"etherscan_api_key": "abc"}

    def test_set_nested_tags(self, tmp_path):
        """Test dotted keys write nested tag lists."""
        path = tmp_path / "config.yaml"

        set_config_value("polymarket.exclude_tags", "sports, Crypto", path)

        assert yaml.safe_load(path.read_text()) == {"polymarket": {"exclude_tags": ["sports", "crypto"]}}

    def test_set_unknown_key_raises(self, tmp_path):
        """Test unknown keys are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown config key"):
            set_config_value("nope", "1", tmp_path / "config.yaml")

    def test_set_bad_timeout_raises(self, tmp_path):
        """Test non-numeric timeout is rejected."""
        with pytest.raises(ConfigurationError):
            set_config_value("timeout_seconds", "soon", tmp_path / "config.yaml")
