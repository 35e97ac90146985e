# src/config/settings.py — v2
"""Typed configuration loaded from .git-doc/config.toml, .env and GITDOC_* vars.

Single source of truth for everything the updater needs: generation
provider routing, documentation targets, git behaviour, state location
and logging.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitdoc.core.errors import ConfigurationError

DEFAULT_CONFIG_PATH = ".git-doc/config.toml"
DEFAULT_SECTION = "Recent Changes"

SUPPORTED_PROVIDERS: frozenset[str] = frozenset(
    {"mock", "openai", "anthropic", "google", "gemini", "groq", "ollama"}
)
# Hosted providers refuse to start without a key.
_KEYED_PROVIDERS: frozenset[str] = frozenset(
    {"openai", "anthropic", "google", "gemini", "groq"}
)


class DocMapping(BaseModel):
    """Routes changed code paths to a documentation file and section."""

    code_pattern: str
    doc_file: str
    section: str


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="GITDOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === GENERATION ===
    llm_provider: str = "mock"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout: int = 60
    llm_max_retries: int = 3
    llm_failover_enabled: bool = True
    llm_fallback_providers: list[str] = []
    llm_base_url: str = ""

    # === DOCUMENTATION TARGETS ===
    doc_files: list[str] = ["README.md", "docs/**/*.md"]
    mappings: list[DocMapping] = []
    default_section: str = DEFAULT_SECTION

    # === GIT ===
    git_commit_doc_updates: bool = True
    git_amend_original: bool = False
    git_doc_commit_message: str = "docs: auto-update for {hash}"

    # === STATE ===
    state_db_path: str = ".git-doc/state.db"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: str = ""
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("llm_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("llm_fallback_providers")
    @classmethod
    def normalize_fallbacks(cls, v: list[str]) -> list[str]:
        return [p.strip().lower() for p in v]

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Reject unusable provider setups and fill soft defaults."""
        errors: list[str] = []

        if not self.llm_provider:
            errors.append("llm.provider is required")
        elif self.llm_provider not in SUPPORTED_PROVIDERS:
            errors.append(f"unsupported llm.provider: {self.llm_provider}")

        for fallback in self.llm_fallback_providers:
            if fallback and fallback not in SUPPORTED_PROVIDERS:
                errors.append(f"unsupported llm.fallback_provider: {fallback}")

        if self.llm_provider in _KEYED_PROVIDERS and not self.llm_api_key.strip():
            errors.append(f"llm.api_key is required for {self.llm_provider} provider")

        if not self.state_db_path.strip():
            errors.append("state.db_path is required")

        if errors:
            raise ConfigurationError("; ".join(errors))

        if not self.default_section.strip():
            self.default_section = DEFAULT_SECTION
        if self.llm_timeout <= 0:
            self.llm_timeout = 60
        if self.llm_max_retries <= 0:
            self.llm_max_retries = 3
        return self

    # --- Helpers ---

    def resolve_state_path(self, repo_root: Path | str) -> Path:
        """Return the state database path, anchored at the repo root when relative."""
        path = Path(self.state_db_path).expanduser()
        if not path.is_absolute():
            path = Path(repo_root) / path
        return path

    def doc_commit_message_for(self, commit_id: str) -> str:
        return self.git_doc_commit_message.replace("{hash}", commit_id)


def load_settings(config_path: Path | str | None = None, **overrides: Any) -> Settings:
    """Load settings from a TOML config file, environment and overrides.

    Args:
        config_path: Path to a config.toml. ``None`` skips the file.
        **overrides: Field-level overrides (tests, CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the file is missing or unparsable, or the
            resulting configuration is inconsistent.
    """
    values: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(f"config file {path} not found")
        try:
            with path.open("rb") as fh:
                raw = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"parse config: {exc}") from exc
        values = _expand_env(_flatten_toml(raw))

    values.update(overrides)
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def _flatten_toml(raw: dict[str, Any]) -> dict[str, Any]:
    """Map the sectioned TOML layout onto flat Settings field names."""
    prefixes = {"llm": "llm_", "git": "git_", "state": "state_", "logging": "log_"}
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if key in prefixes and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                out[f"{prefixes[key]}{sub_key}"] = sub_value
        elif key == "runtime" and isinstance(value, dict):
            out.update(value)
        else:
            out[key] = value
    return out


def _expand_env(values: dict[str, Any]) -> dict[str, Any]:
    """Expand ${VAR} references in the fields that may carry secrets or paths."""
    for key in ("llm_api_key", "state_db_path"):
        if isinstance(values.get(key), str):
            values[key] = os.path.expandvars(values[key])
    if isinstance(values.get("doc_files"), list):
        values["doc_files"] = [os.path.expandvars(str(f)) for f in values["doc_files"]]
    if isinstance(values.get("mappings"), list):
        values["mappings"] = [
            {k: os.path.expandvars(str(v)) for k, v in m.items()}
            for m in values["mappings"]
            if isinstance(m, dict)
        ]
    return values


def default_toml() -> str:
    """Starter configuration written by ``gitdoc init``."""
    return """doc_files = ["README.md", "docs/**/*.md"]

# LLM settings
[llm]
provider = "mock"
api_key = "${GITDOC_OPENAI_KEY}"
model = "gpt-4o-mini"
timeout = 60
max_retries = 3
failover_enabled = true
fallback_providers = []

# [[mappings]]
# code_pattern = "src/api/*"
# doc_file = "docs/api.md"
# section = "Endpoints"

[git]
commit_doc_updates = true
amend_original = false
doc_commit_message = "docs: auto-update for {hash}"

[state]
db_path = ".git-doc/state.db"

[runtime]
default_section = "Recent Changes"
"""
