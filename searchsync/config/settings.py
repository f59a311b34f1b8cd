"""
Configuration management for the search synchronization service.

Uses pydantic-settings to load configuration from environment variables
and YAML files with proper validation.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    CONTENT_TABLE,
    DEFAULT_DOCUMENT_ID_NAMESPACE,
    DEFAULT_DOCUMENTS_TO_INDEX,
    FILE_METADATA_TABLE,
    NEWS_TABLE,
    PAGES_TABLE,
)
from ..schema.models import TableSchema


class IndexerTypeSettings(BaseModel):
    """Per-table indexer configuration (``indexer.<table>`` in YAML)."""

    # record column -> document field
    fields: Dict[str, str] = Field(default_factory=dict)
    # allow-listed file extensions, only used by the file indexer
    extensions: List[str] = Field(default_factory=list)

    @field_validator("extensions", mode="before")
    @classmethod
    def split_extensions(cls, v: Union[str, List[str], None]) -> List[str]:
        """Accept a comma separated string or a list"""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [ext.strip().lower().lstrip(".") for ext in v if ext and ext.strip()]


def default_table_schemas() -> Dict[str, TableSchema]:
    return {
        PAGES_TABLE: TableSchema(),
        CONTENT_TABLE: TableSchema(),
        NEWS_TABLE: TableSchema(),
        FILE_METADATA_TABLE: TableSchema(delete=None, disabled=None, starttime=None),
    }


class SyncSettings(BaseSettings):
    """
    Main settings class that loads configuration from environment variables
    and configuration files.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEARCHSYNC_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Environment
    environment: str = Field("dev", description="Environment name (dev/devlocal/staging/prod)")

    # AWS Configuration
    aws_region: str = Field("us-east-1")
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    localstack_endpoint: Optional[str] = Field(None, description="LocalStack endpoint for local development")

    # Queue storage
    queue_backend: str = Field("dynamodb", description="Queue storage backend (dynamodb/local)")
    dynamodb_queue_table: str = Field("searchsync-indexing-queue", description="DynamoDB table for queue items")
    local_queue_file: Path = Field(Path(".searchsync/queue.json"), description="Queue file for the local backend")
    status_file: Path = Field(Path(".searchsync/status.json"), description="Worker progress and backoff state")

    # Algolia
    algolia_app_id: Optional[str] = None
    algolia_api_key: Optional[str] = None
    algolia_timeout: int = Field(30, ge=1, le=300)

    # OpenSearch
    opensearch_endpoint: Optional[str] = None
    opensearch_username: Optional[str] = None
    opensearch_password: Optional[str] = None
    opensearch_use_ssl: bool = True
    opensearch_verify_certs: bool = True
    opensearch_timeout: int = Field(30, ge=1, le=300)

    # Documents
    document_id_namespace: str = Field(DEFAULT_DOCUMENT_ID_NAMESPACE, min_length=1)

    # Worker
    documents_to_index: int = Field(DEFAULT_DOCUMENTS_TO_INDEX, ge=1)
    max_runtime_seconds: Optional[float] = Field(None, gt=0)
    rate_limit_base_delay: float = Field(30.0, ge=0)
    rate_limit_max_delay: float = Field(3600.0, ge=1)

    # Sites: root page uid -> base URL
    sites: Dict[int, str] = Field(default_factory=dict)

    # Indexer and table configuration
    indexer: Dict[str, IndexerTypeSettings] = Field(default_factory=dict)
    tables: Dict[str, TableSchema] = Field(default_factory=default_table_schemas)

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    json_logs: bool = Field(True, description="Whether to output JSON format logs")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["dev", "devlocal", "staging", "prod"]
        if v not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v

    @field_validator("queue_backend")
    @classmethod
    def validate_queue_backend(cls, v: str) -> str:
        valid_backends = ["dynamodb", "local"]
        if v.lower() not in valid_backends:
            raise ValueError(f"Invalid queue backend: {v}. Must be one of {valid_backends}")
        return v.lower()

    @field_validator("indexer", "tables", "sites", mode="before")
    @classmethod
    def parse_json_mapping(cls, v: Union[str, dict, None]) -> Dict[str, Any]:
        """Parse mappings given as JSON strings (environment variables)"""
        if v is None or v == "":
            return {}
        if isinstance(v, dict):
            return v
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON string: {e}")
            if not isinstance(parsed, dict):
                raise ValueError("JSON must be an object/dictionary")
            return parsed
        raise ValueError(f"Expected a dict or JSON string, got {type(v)}")

    @model_validator(mode="after")
    def validate_backend_config(self) -> "SyncSettings":
        """Validate queue backend configuration based on environment"""
        if self.environment == "devlocal" and self.queue_backend == "dynamodb":
            if not self.localstack_endpoint:
                raise ValueError("localstack_endpoint is required for the dynamodb backend in devlocal")

        # Explicitly configured tables keep the defaults for the built-in ones
        merged = default_table_schemas()
        merged.update(self.tables)
        self.tables = merged
        return self

    def get_indexer_settings(self, table: str) -> IndexerTypeSettings:
        return self.indexer.get(table) or IndexerTypeSettings()

    def get_table_schema(self, table: str) -> TableSchema:
        return self.tables.get(table) or TableSchema()


def _expand_env_variables(obj: Any) -> Any:
    """Recursively expand environment variables in configuration values."""
    if isinstance(obj, str):
        # ${VAR_NAME} or ${VAR_NAME:default_value}
        def replace_env_var(match):
            var_with_default = match.group(1)
            if ":" in var_with_default:
                var_name, default_value = var_with_default.split(":", 1)
                return os.getenv(var_name, default_value)
            return os.getenv(var_with_default, match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, obj)
    elif isinstance(obj, dict):
        return {key: _expand_env_variables(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_variables(item) for item in obj]
    return obj


def load_config_from_yaml(file_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML file with environment variable expansion.

    Args:
        file_path: Path to YAML configuration file

    Returns:
        Dictionary containing configuration values with env vars expanded

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        yaml.YAMLError: If YAML file is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
        return _expand_env_variables(config)


def get_config_file_path(environment: str) -> Path:
    """Get the path to the bundled configuration file for the given environment."""
    return Path(__file__).parent / f"{environment}.yaml"


def load_settings(
    environment: Optional[str] = None, config_file: Optional[Path] = None, **overrides: Any
) -> SyncSettings:
    """
    Load settings from environment variables and configuration files.

    Args:
        environment: Environment name. If None, read from SEARCHSYNC_ENVIRONMENT
        config_file: Path to configuration file. If None, use the bundled file for the environment
        **overrides: Additional configuration overrides

    Returns:
        Configured SyncSettings instance

    Raises:
        ValueError: If configuration is invalid
        FileNotFoundError: If an explicitly given configuration file is missing
    """
    if environment is None:
        environment = os.getenv("SEARCHSYNC_ENVIRONMENT", "dev")

    config_data: Dict[str, Any] = {}

    if config_file:
        config_data = load_config_from_yaml(config_file)
    else:
        default_config_file = get_config_file_path(environment)
        if default_config_file.exists():
            config_data = load_config_from_yaml(default_config_file)

    config_data["environment"] = environment
    config_data.update(overrides)

    return SyncSettings(**config_data)


# Global settings instance (lazy-loaded)
_settings: Optional[SyncSettings] = None


def get_cached_settings() -> SyncSettings:
    """
    Get cached settings instance.

    Returns:
        Cached SyncSettings instance
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings_cache() -> None:
    """Reset the cached settings instance (useful for testing)"""
    global _settings
    _settings = None
