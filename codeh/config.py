"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml

from codeh.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "~/.codeh/config.yaml"

PROVIDERS = ("anthropic", "openai", "ollama", "generic")

# Where the key is looked up when ``api_key_env`` is not set.
_DEFAULT_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LLMConfig:
    provider: str = "anthropic"
    model: str = ""
    base_url: str = ""
    api_key: str = ""
    api_key_env: str = ""
    max_tokens: int = 4_096
    temperature: float = 0.7
    timeout_seconds: float = 120.0

    def resolve_api_key(self) -> str | None:
        """
        The credential for this provider: an explicit ``api_key`` wins, then
        the variable named by ``api_key_env``, then the provider's
        conventional variable.
        """
        if self.api_key:
            return self.api_key
        env_name = self.api_key_env or _DEFAULT_KEY_ENV.get(self.provider)
        if env_name:
            return os.environ.get(env_name) or None
        return None


@dataclass
class AgentConfig:
    max_iterations: int = 5
    system_prompt: str = ""


@dataclass
class LoggingConfig:
    enabled: bool = False
    level: str = "INFO"
    log_dir: str = "~/.codeh/logs"


@dataclass
class ToolsConfig:
    disabled: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class CodehConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self, redact: bool = True) -> dict:
        d = asdict(self)
        if redact and d["llm"].get("api_key"):
            d["llm"]["api_key"] = "***"
        return d

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for settings no provider can use."""
        if self.llm.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown provider {self.llm.provider!r}. "
                f"Supported: {', '.join(PROVIDERS)}",
                {"field": "llm.provider", "value": self.llm.provider},
            )
        if self.llm.max_tokens <= 0:
            raise ConfigurationError(
                "llm.max_tokens must be positive",
                {"field": "llm.max_tokens", "value": self.llm.max_tokens},
            )
        if not 0.0 <= self.llm.temperature <= 2.0:
            raise ConfigurationError(
                "llm.temperature must be between 0 and 2",
                {"field": "llm.temperature", "value": self.llm.temperature},
            )
        if self.agent.max_iterations < 1:
            raise ConfigurationError(
                "agent.max_iterations must be at least 1",
                {"field": "agent.max_iterations", "value": self.agent.max_iterations},
            )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    if not hasattr(obj, parts[-1]):
        raise ConfigurationError(f"Unknown setting {dotpath!r}", {"field": dotpath})
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    try:
        if target_type is int:
            return int(value)
        if target_type is float:
            return float(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Cannot read {value!r} as {target_type.__name__}"
        ) from exc
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config section for {cls.__name__} must be a mapping",
        )
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "CODEH_PROVIDER":        ("llm.provider", str),
    "CODEH_MODEL":           ("llm.model", str),
    "CODEH_BASE_URL":        ("llm.base_url", str),
    "CODEH_API_KEY":         ("llm.api_key", str),
    "CODEH_API_KEY_ENV":     ("llm.api_key_env", str),
    "CODEH_MAX_TOKENS":      ("llm.max_tokens", int),
    "CODEH_TEMPERATURE":     ("llm.temperature", float),
    "CODEH_TIMEOUT":         ("llm.timeout_seconds", float),
    "CODEH_MAX_ITERATIONS":  ("agent.max_iterations", int),
    "CODEH_LOGGING":         ("logging.enabled", bool),
    "CODEH_LOG_LEVEL":       ("logging.level", str),
    "CODEH_LOG_DIR":         ("logging.log_dir", str),
    "CODEH_TOOLS_DISABLED":  ("tools.disabled", list),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> CodehConfig:
    """
    Build a CodehConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional; a missing file is skipped)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            try:
                with p.open("r", encoding="utf-8") as f:
                    file_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Invalid YAML in {p}: {exc}", {"path": str(p)}
                ) from exc
            if not isinstance(file_data, dict):
                raise ConfigurationError(
                    f"Config file {p} must contain a mapping", {"path": str(p)}
                )
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile:
        profile_data = raw.get("profiles", {}).get(profile)
        if profile_data is None:
            raise ConfigurationError(
                f"Unknown profile {profile!r}", {"profile": profile}
            )
        raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = CodehConfig(
        llm=_build_section(LLMConfig, raw.get("llm", {})),
        agent=_build_section(AgentConfig, raw.get("agent", {})),
        logging=_build_section(LoggingConfig, raw.get("logging", {})),
        tools=_build_section(ToolsConfig, raw.get("tools", {})),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            if value is not None:
                _apply_dotpath(cfg, dotpath, value)

    cfg.validate()
    return cfg
