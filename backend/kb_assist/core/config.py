"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

from kb_assist.core.errors import ConfigurationError

ENV_PREFIX = "KBA_"
DEFAULT_CONFIG_PATH = Path("~/.config/kb-assist/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "timeout"): "store_timeout",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "url"): "embedding_url",
    ("embeddings", "timeout"): "embed_timeout",
    ("embeddings", "max_chars"): "embedding_char_limit",
    ("generation", "model"): "generation_model",
    ("generation", "url"): "generation_url",
    ("generation", "temperature"): "temperature",
    ("generation", "max_tokens"): "max_tokens",
    ("generation", "timeout"): "generate_timeout",
    ("ingest", "mode"): "ingest_mode",
    ("ingest", "max_chars"): "storage_char_limit",
    ("ingest", "chunk_size"): "chunk_size",
    ("ingest", "fetch_timeout"): "fetch_timeout",
    ("ingest", "user_agent"): "user_agent",
    ("retrieval", "mode"): "retrieval_mode",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "min_similarity"): "min_similarity",
    ("chat", "max_history_turns"): "max_history_turns",
    ("http", "cors_origins"): "cors_origins",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".kb-assist" / "kb.db")
    store_timeout: float = 10.0

    api_key: SecretStr = SecretStr("")
    embedding_backend: Literal["remote", "hashed"] = "remote"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dim: int = Field(default=1536, gt=0)
    embedding_url: str = "https://api.openai.com/v1/embeddings"
    embed_timeout: float = 30.0
    embedding_char_limit: int = Field(default=8000, gt=0)

    generation_model: str = "gpt-4"
    generation_url: str = "https://api.openai.com/v1/chat/completions"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    generate_timeout: float = 60.0

    ingest_mode: Literal["single", "chunked"] = "single"
    storage_char_limit: int = Field(default=4000, gt=0)
    chunk_size: int = Field(default=1000, gt=0)
    fetch_timeout: float = 15.0
    user_agent: str = "kb-assist/0.1"

    retrieval_mode: Literal["lexical", "vector"] = "lexical"
    top_k: int = Field(default=5, ge=1, le=50)
    min_similarity: float = Field(default=0.0, ge=0.0, le=1.0)

    max_history_turns: int = Field(default=10, ge=0)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise ValueError("db_path must be a path or string")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from the YAML file, then ``KBA_*`` environment overrides.

        The file is optional; without one only defaults and the environment
        apply. A file that is not valid YAML, or whose top level is not a
        mapping, raises ``ConfigurationError``.
        """
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        config_path = _resolve_config_path(path, environ)
        if config_path is not None and config_path.exists():
            data.update(_flatten_yaml(_read_yaml(config_path)))
        data.update(_load_env_overrides(environ))
        return cls(**data)


def _resolve_config_path(path: Path | None, environ: Mapping[str, str]) -> Path | None:
    if path is not None:
        return path.expanduser()
    env_path = environ.get(f"{ENV_PREFIX}CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    default_path = DEFAULT_CONFIG_PATH.expanduser()
    return default_path if default_path.exists() else None


def _read_yaml(config_path: Path) -> Mapping[str, Any]:
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {config_path} is not valid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping at the top level")
    return raw


def _flatten_yaml(raw: Mapping[str, Any], section: tuple[str, ...] = ()) -> dict[str, Any]:
    """Map nested YAML sections onto flat Settings field names.

    Keys listed in ``_YAML_KEY_MAP`` are renamed; any other leaf whose key is
    already a field name is taken as is, so ``top_k: 3`` works at any depth.
    Unknown keys are ignored.
    """
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        path = section + (str(key),)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, section=path))
        elif path in _YAML_KEY_MAP:
            flat[_YAML_KEY_MAP[path]] = value
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if key.startswith(ENV_PREFIX):
            field_name = key[len(ENV_PREFIX) :].lower()
            if field_name in Settings.model_fields:
                overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings.from_yaml()


__all__ = ["DEFAULT_CONFIG_PATH", "ENV_PREFIX", "Settings", "get_settings"]
