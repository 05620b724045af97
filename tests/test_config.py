"""Tests for the layered configuration loader."""

from __future__ import annotations

import pytest

from codeh.config import CodehConfig, LLMConfig, load_config
from codeh.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "CODEH_PROVIDER", "CODEH_MODEL", "CODEH_BASE_URL", "CODEH_API_KEY",
        "CODEH_API_KEY_ENV", "CODEH_MAX_TOKENS", "CODEH_TEMPERATURE",
        "CODEH_TIMEOUT", "CODEH_MAX_ITERATIONS", "CODEH_LOGGING",
        "CODEH_LOG_LEVEL", "CODEH_LOG_DIR", "CODEH_TOOLS_DISABLED",
        "ANTHROPIC_API_KEY", "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "codeh.yaml"
    path.write_text(
        """
llm:
  provider: openai
  model: gpt-4o-mini
  temperature: 0.2
agent:
  max_iterations: 8
tools:
  disabled: [shell]
profiles:
  local:
    llm:
      provider: ollama
      model: qwen2.5-coder
""",
        encoding="utf-8",
    )
    return path


class TestLoadConfig:
    def test_defaults_without_file(self):
        cfg = load_config(None)
        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.max_tokens == 4096
        assert cfg.agent.max_iterations == 5
        assert cfg.logging.enabled is False

    def test_missing_file_is_skipped(self, tmp_path):
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg == CodehConfig()

    def test_file_values(self, config_file):
        cfg = load_config(config_file)
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model == "gpt-4o-mini"
        assert cfg.llm.temperature == 0.2
        assert cfg.agent.max_iterations == 8
        assert cfg.tools.disabled == ["shell"]

    def test_profile_overlay(self, config_file):
        cfg = load_config(config_file, profile="local")
        assert cfg.llm.provider == "ollama"
        assert cfg.llm.model == "qwen2.5-coder"
        assert cfg.llm.temperature == 0.2

    def test_unknown_profile(self, config_file):
        with pytest.raises(ConfigurationError, match="Unknown profile"):
            load_config(config_file, profile="missing")

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("CODEH_MODEL", "gpt-4.1")
        monkeypatch.setenv("CODEH_MAX_ITERATIONS", "3")
        monkeypatch.setenv("CODEH_LOGGING", "yes")
        monkeypatch.setenv("CODEH_TOOLS_DISABLED", "a, b")
        cfg = load_config(config_file)
        assert cfg.llm.model == "gpt-4.1"
        assert cfg.agent.max_iterations == 3
        assert cfg.logging.enabled is True
        assert cfg.tools.disabled == ["a", "b"]

    def test_cli_overrides_env(self, config_file, monkeypatch):
        monkeypatch.setenv("CODEH_PROVIDER", "ollama")
        cfg = load_config(
            config_file,
            cli_overrides={"llm.provider": "generic", "llm.model": None},
        )
        assert cfg.llm.provider == "generic"
        assert cfg.llm.model == "gpt-4o-mini"

    def test_bad_env_number(self, monkeypatch):
        monkeypatch.setenv("CODEH_MAX_TOKENS", "lots")
        with pytest.raises(ConfigurationError, match="as int"):
            load_config(None)

    def test_unknown_cli_setting(self):
        with pytest.raises(ConfigurationError, match="Unknown setting"):
            load_config(None, cli_overrides={"llm.flavour": "x"})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("llm: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"llm.provider": "nope"},
            {"llm.max_tokens": 0},
            {"llm.temperature": 2.5},
            {"agent.max_iterations": 0},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ConfigurationError):
            load_config(None, cli_overrides=overrides)

    def test_redacted_dict(self):
        cfg = CodehConfig(llm=LLMConfig(api_key="secret"))
        assert cfg.to_dict()["llm"]["api_key"] == "***"
        assert cfg.to_dict(redact=False)["llm"]["api_key"] == "secret"


class TestApiKeyResolution:
    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env")
        assert LLMConfig(api_key="explicit").resolve_api_key() == "explicit"

    def test_named_env(self, monkeypatch):
        monkeypatch.setenv("TEAM_KEY", "team")
        assert LLMConfig(provider="openai", api_key_env="TEAM_KEY").resolve_api_key() == "team"

    def test_provider_default_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "oa")
        assert LLMConfig(provider="openai").resolve_api_key() == "oa"

    def test_ollama_has_no_default(self):
        assert LLMConfig(provider="ollama").resolve_api_key() is None
