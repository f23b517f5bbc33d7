"""
Configuration for the vault context server.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from vault_context.utils.exceptions import ConfigurationError


class VaultConfig(BaseModel):
    """Vault location and traversal settings."""

    path: str = ""
    max_concurrent_io: int = Field(default=20, ge=1)
    allowed_extensions: list[str] = Field(default_factory=lambda: [".md", ".mdx"])

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]


class CollectContextConfig(BaseModel):
    """Context collection cache and memory snapshot settings."""

    cache_max_entries: int = Field(default=200, ge=1)
    memory_note_path: str = "memory/context_memory_snapshot.v1.md"
    schema_version: str = "context_memory_snapshot.v1"


class MetricsConfig(BaseModel):
    """Response metrics settings. Metrics are written only when log_path is set."""

    log_path: str | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class Config(BaseModel):
    """Main configuration."""

    vault: VaultConfig = Field(default_factory=VaultConfig)
    collect_context: CollectContextConfig = Field(default_factory=CollectContextConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def validate_vault_path(self) -> Path:
        """
        Check that the configured vault path exists and is a directory.

        Returns:
            Resolved vault root

        Raises:
            ConfigurationError: If the path is unset, missing or not a directory
        """
        if not self.vault.path:
            raise ConfigurationError("Vault path is not configured (set VAULT_DIR_PATH)")

        root = Path(self.vault.path).expanduser().resolve()
        if not root.exists():
            raise ConfigurationError(
                f"Vault directory does not exist: {root}", context={"vault_path": str(root)}
            )
        if not root.is_dir():
            raise ConfigurationError(
                f"Vault path is not a directory: {root}", context={"vault_path": str(root)}
            )
        return root

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            VAULT_DIR_PATH: Root directory of the markdown vault
            VAULT_MAX_CONCURRENT_IO: Concurrent file operations (default 20)
            VAULT_CACHE_MAX_ENTRIES: collect_context cache capacity
            VAULT_MEMORY_NOTE_PATH: Vault-relative path of the memory snapshot note
            VAULT_METRICS_LOG_PATH: JSONL file receiving response metrics
            VAULT_LOG_LEVEL: Log level
            VAULT_SERVER_HOST / VAULT_SERVER_PORT: HTTP bind address
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            vault=VaultConfig(
                path=get_env("VAULT_DIR_PATH", ""),
                max_concurrent_io=get_env("VAULT_MAX_CONCURRENT_IO", 20),
            ),
            collect_context=CollectContextConfig(
                cache_max_entries=get_env("VAULT_CACHE_MAX_ENTRIES", 200),
                memory_note_path=get_env(
                    "VAULT_MEMORY_NOTE_PATH", "memory/context_memory_snapshot.v1.md"
                ),
            ),
            metrics=MetricsConfig(
                log_path=get_env("VAULT_METRICS_LOG_PATH"),
            ),
            logging=LoggingConfig(
                level=get_env("VAULT_LOG_LEVEL", "INFO"),
                log_to_file=get_env("VAULT_LOG_TO_FILE", True),
                log_dir=get_env("VAULT_LOG_DIR", "logs"),
                file_rotation=get_env("VAULT_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("VAULT_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("VAULT_LOG_COMPRESSION", "zip"),
                serialize=get_env("VAULT_LOG_SERIALIZE", True),
            ),
            server=ServerConfig(
                host=get_env("VAULT_SERVER_HOST", "0.0.0.0"),
                port=get_env("VAULT_SERVER_PORT", 8000),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        final_dict = {**config_dict}

        # Only sections that differ from the defaults override the YAML
        default = cls()
        for section in ("vault", "collect_context", "metrics", "logging", "server"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config
