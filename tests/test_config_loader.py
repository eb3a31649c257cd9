"""
Tests for config.loader and config.schema modules.

This module tests configuration loading and validation:
- Built-in defaults when no file is given
- $HYPERCHAT_CONFIG path resolution
- Merging partial service entries onto the built-in catalog
- Pydantic schema validation (all validators)
- Error handling for missing files, invalid YAML and bad structure
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from hyperchat.config.loader import load_config, merge_services, resolve_config_path
from hyperchat.config.schema import (
    EngineSettings,
    HyperchatConfig,
    ServiceDescriptor,
    WindowSettings,
    default_services,
)
from hyperchat.config.selectors import GENERIC_INPUT_SELECTORS, INPUT_SELECTORS
from hyperchat.exceptions import ConfigFileNotFoundError, ConfigValidationError

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clear_config_env(monkeypatch):
    """Make sure a developer's $HYPERCHAT_CONFIG never leaks into tests."""
    monkeypatch.delenv("HYPERCHAT_CONFIG", raising=False)


@pytest.fixture
def write_config(tmp_path):
    """Write a dict as YAML and return the file path."""

    def _write(data, name="hyperchat.yaml") -> Path:
        config_file = tmp_path / name
        with config_file.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return config_file

    return _write


# ============================================================================
# Defaults and path resolution
# ============================================================================


class TestDefaults:
    """Test loading without a configuration file."""

    def test_no_path_returns_builtin_services(self):
        """load_config() without a path uses the built-in catalog."""
        config = load_config()

        assert [s.id for s in config.services] == ["chatgpt", "perplexity", "google", "claude"]
        assert [s.id for s in config.enabled_services()] == ["chatgpt", "perplexity", "google"]
        assert config.reply_to_all is True
        assert config.engine.browser == "chromium"
        assert config.window.width == 1200
        assert config.window.height == 800

    def test_google_defaults(self):
        """Google carries its extra params and the iPad user agent."""
        google = load_config().get_service("google")

        assert google is not None
        assert google.base_url == "https://www.google.com/search"
        assert google.additional_params == {"hl": "en", "safe": "off"}
        assert "iPad" in google.user_agent

    def test_perplexity_skips_focus(self):
        """Perplexity is marked skip_focus and submits to /search/new."""
        perplexity = load_config().get_service("perplexity")

        assert perplexity.skip_focus is True
        assert perplexity.base_url == "https://www.perplexity.ai/search/new"
        assert perplexity.home_url == "https://www.perplexity.ai"

    def test_claude_is_simulated_input_and_disabled(self):
        """Claude uses simulated input and is disabled by default."""
        claude = load_config().get_service("claude")

        assert claude.strategy == "simulated_input"
        assert claude.enabled is False
        assert claude.input_selectors == INPUT_SELECTORS["claude"]

    def test_default_services_matches_loader(self):
        """default_services() builds the same catalog the loader uses."""
        assert [s.id for s in default_services()] == [s.id for s in load_config().services]


class TestResolveConfigPath:
    """Test resolve_config_path()."""

    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        """An explicit path is used even when the env var is set."""
        monkeypatch.setenv("HYPERCHAT_CONFIG", str(tmp_path / "env.yaml"))

        assert resolve_config_path(tmp_path / "cli.yaml") == tmp_path / "cli.yaml"

    def test_env_var_used_when_no_path(self, monkeypatch, tmp_path):
        """$HYPERCHAT_CONFIG is used when no path is passed."""
        monkeypatch.setenv("HYPERCHAT_CONFIG", str(tmp_path / "env.yaml"))

        assert resolve_config_path(None) == tmp_path / "env.yaml"

    def test_none_without_env(self):
        """No path and no env var means built-in defaults."""
        assert resolve_config_path(None) is None

    def test_load_config_reads_env_path(self, monkeypatch, write_config):
        """load_config() loads the file named by $HYPERCHAT_CONFIG."""
        path = write_config({"reply_to_all": False})
        monkeypatch.setenv("HYPERCHAT_CONFIG", str(path))

        assert load_config().reply_to_all is False


# ============================================================================
# Merging
# ============================================================================


class TestMergeServices:
    """Test merging YAML service entries onto the catalog."""

    def test_partial_override_keeps_other_fields(self, write_config):
        """An entry with a known id only changes the fields it names."""
        config = load_config(write_config({"services": [{"id": "claude", "enabled": True}]}))
        claude = config.get_service("claude")

        assert claude.enabled is True
        assert claude.strategy == "simulated_input"
        assert claude.base_url == "https://claude.ai"
        assert [s.id for s in config.enabled_services()][-1] == "claude"

    def test_new_service_is_appended(self, write_config):
        """An entry with a new id is added after the built-ins."""
        path = write_config(
            {
                "services": [
                    {
                        "id": "mistral",
                        "name": "Le Chat",
                        "order": 5,
                        "strategy": "simulated_input",
                        "base_url": "https://chat.mistral.ai/chat",
                    }
                ]
            }
        )
        config = load_config(path)
        mistral = config.get_service("mistral")

        assert mistral is not None
        assert mistral.home_url == "https://chat.mistral.ai/chat"
        assert mistral.input_selectors == GENERIC_INPUT_SELECTORS

    def test_order_override_changes_column_order(self, write_config):
        """Changing order weights reorders enabled_services()."""
        config = load_config(write_config({"services": [{"id": "chatgpt", "order": 10}]}))

        assert [s.id for s in config.enabled_services()] == ["perplexity", "google", "chatgpt"]

    def test_non_mapping_entry_rejected(self):
        """A service entry that is not a mapping is rejected."""
        with pytest.raises(ConfigValidationError, match=r"services\[0\] must be a mapping"):
            merge_services(["chatgpt"])

    def test_entry_without_id_rejected(self):
        """A service entry without id is rejected."""
        with pytest.raises(ConfigValidationError, match=r"services\[1\] is missing 'id'"):
            merge_services([{"id": "chatgpt"}, {"name": "Nameless"}])

    def test_merge_does_not_mutate_catalog(self):
        """Merging never modifies the built-in catalog."""
        merge_services([{"id": "claude", "enabled": True}])

        assert load_config().get_service("claude").enabled is False


# ============================================================================
# Errors
# ============================================================================


class TestLoadConfigErrors:
    """Test error handling in load_config()."""

    def test_missing_file(self, tmp_path):
        """A missing file raises ConfigFileNotFoundError."""
        with pytest.raises(ConfigFileNotFoundError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Malformed YAML raises ConfigValidationError."""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("services: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigValidationError, match="Invalid YAML syntax"):
            load_config(config_file)

    def test_empty_file_means_defaults(self, tmp_path):
        """An empty file loads the built-in defaults."""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")

        assert len(load_config(config_file).enabled_services()) == 3

    def test_root_must_be_mapping(self, tmp_path):
        """A YAML list at the root is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- chatgpt\n", encoding="utf-8")

        with pytest.raises(ConfigValidationError, match="root must be a mapping"):
            load_config(config_file)

    def test_services_must_be_list(self, write_config):
        """'services' must be a list."""
        with pytest.raises(ConfigValidationError, match="'services' must be a list"):
            load_config(write_config({"services": {"id": "chatgpt"}}))

    def test_schema_errors_are_listed(self, write_config):
        """Pydantic errors are reported as '  - loc: msg' lines."""
        path = write_config({"services": [{"id": "chatgpt", "base_url": "ftp://chatgpt.com"}]})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        message = str(exc_info.value)
        assert "  - services.0.base_url:" in message
        assert "http(s)" in message

    def test_all_disabled_rejected(self, write_config):
        """At least one service must stay enabled."""
        path = write_config(
            {
                "services": [
                    {"id": "chatgpt", "enabled": False},
                    {"id": "perplexity", "enabled": False},
                    {"id": "google", "enabled": False},
                ]
            }
        )

        with pytest.raises(ConfigValidationError, match="At least one service must be enabled"):
            load_config(path)


# ============================================================================
# Schema validators
# ============================================================================


class TestServiceDescriptor:
    """Test ServiceDescriptor validators."""

    def test_home_url_defaults_to_base_url(self):
        """home_url falls back to base_url."""
        service = ServiceDescriptor(
            id="svc", name="Svc", order=1, strategy="url_parameter",
            base_url="https://svc.example.com/ask",
        )

        assert service.home_url == "https://svc.example.com/ask"
        assert service.origin == "https://svc.example.com"

    def test_uppercase_id_rejected(self):
        """Ids must be lowercase slugs."""
        with pytest.raises(ValidationError, match="lowercase"):
            ServiceDescriptor(
                id="ChatGPT", name="ChatGPT", order=1, strategy="url_parameter",
                base_url="https://chatgpt.com",
            )

    def test_blank_name_rejected(self):
        """name cannot be whitespace only."""
        with pytest.raises(ValidationError, match="name cannot be empty"):
            ServiceDescriptor(
                id="svc", name="   ", order=1, strategy="url_parameter",
                base_url="https://svc.example.com",
            )

    def test_unknown_strategy_rejected(self):
        """Only the two strategy families are accepted."""
        with pytest.raises(ValidationError):
            ServiceDescriptor(
                id="svc", name="Svc", order=1, strategy="telepathy",
                base_url="https://svc.example.com",
            )

    def test_blank_selector_rejected(self):
        """Selector lists cannot contain blank entries."""
        with pytest.raises(ValidationError, match="selectors cannot be empty"):
            ServiceDescriptor(
                id="svc", name="Svc", order=1, strategy="simulated_input",
                base_url="https://svc.example.com", input_selectors=["textarea", " "],
            )

    def test_descriptor_is_frozen(self):
        """Descriptors are immutable once built."""
        service = default_services()[0]

        with pytest.raises(ValidationError):
            service.order = 99

    def test_duplicate_ids_rejected(self):
        """HyperchatConfig rejects duplicate service ids."""
        service = default_services()[0]

        with pytest.raises(ValidationError, match="Duplicate service ids found: chatgpt"):
            HyperchatConfig(services=[service, service])


class TestEngineAndWindowSettings:
    """Test EngineSettings and WindowSettings validators."""

    def test_cdp_and_profile_dir_exclusive(self, tmp_path):
        """cdp_endpoint cannot be combined with persistent profiles."""
        with pytest.raises(ValidationError, match="cannot be combined"):
            EngineSettings(cdp_endpoint="http://localhost:9222", profile_dir=tmp_path)

    def test_cdp_requires_chromium(self):
        """CDP connections only work with Chromium."""
        with pytest.raises(ValidationError, match="requires browser 'chromium'"):
            EngineSettings(browser="firefox", cdp_endpoint="http://localhost:9222")

    def test_profile_dir_coerced_to_path(self):
        """profile_dir strings become Path objects."""
        settings = EngineSettings(profile_dir="~/profiles")

        assert isinstance(settings.profile_dir, Path)

    def test_window_dimensions_positive(self):
        """Window dimensions must be positive."""
        with pytest.raises(ValidationError, match="must be positive"):
            WindowSettings(width=0)
