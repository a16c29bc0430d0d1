"""
Configuration loader for function-chat.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError
from .models import (
    AppConfig,
    CompletionConfig,
    CompletionProvider,
    DataverseConfig,
    DocumentSearchConfig,
    FunctionsConfig,
    GraphConfig,
    LangfuseConfig,
    LoggingConfig,
    OAuthConfig,
    SamplingConfig,
    SessionConfig,
)

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """
    Recursively substitute environment variables in a data structure.

    Args:
        data: Any data structure (dict, list, str, etc.)

    Returns:
        Data structure with env vars resolved
    """
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_str(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _parse_completion_config(data: dict) -> CompletionConfig:
    """Parse completion endpoint configuration from dict."""
    provider_str = _as_str(data.get("provider"), "azure").strip().lower()
    try:
        provider = CompletionProvider(provider_str)
    except ValueError:
        raise ConfigurationError(f"Unknown completion provider: {provider_str}") from None

    return CompletionConfig(
        provider=provider,
        base_url=_as_str(data.get("base_url")),
        azure_endpoint=_as_str(data.get("azure_endpoint")),
        api_key=_as_str(data.get("api_key")),
        api_version=_as_str(data.get("api_version"), "2023-07-01-preview"),
        model=_as_str(data.get("model"), "gpt35t"),
        timeout=float(data.get("timeout", 60.0)),
    )


def _parse_sampling_config(data: dict) -> SamplingConfig:
    """Parse sampling configuration from dict."""
    return SamplingConfig(
        temperature=float(data.get("temperature", 0.7)),
        max_tokens=int(data.get("max_tokens", 800)),
        frequency_penalty=float(data.get("frequency_penalty", 0.0)),
        presence_penalty=float(data.get("presence_penalty", 0.0)),
    )


def _parse_session_config(data: dict) -> SessionConfig:
    """Parse session configuration from dict."""
    max_calls = int(data.get("max_function_calls", 10))
    if max_calls < 0:
        raise ConfigurationError("session.max_function_calls must be >= 0")
    return SessionConfig(
        system_prompt_path=_as_str(data.get("system_prompt_path"), "systemprompt.txt"),
        max_function_calls=max_calls,
    )


def _parse_functions_config(data: dict) -> FunctionsConfig:
    """Parse the list of enabled functions."""
    enabled = data.get("enabled") or []
    if isinstance(enabled, str):
        enabled = [name.strip() for name in enabled.split(",") if name.strip()]
    return FunctionsConfig(enabled=[str(name) for name in enabled])


def _parse_oauth_config(data: dict) -> OAuthConfig:
    """Parse OAuth credentials from dict."""
    return OAuthConfig(
        tenant_id=_as_str(data.get("tenant_id")),
        client_id=_as_str(data.get("client_id")),
        client_secret=_as_str(data.get("client_secret")),
        access_token=_as_str(data.get("access_token")),
    )


def _parse_dataverse_config(data: dict) -> DataverseConfig:
    """Parse Dataverse configuration from dict."""
    return DataverseConfig(
        base_url=_as_str(data.get("base_url")).rstrip("/"),
        api_version=_as_str(data.get("api_version"), "v9.2"),
        timeout=float(data.get("timeout", 30.0)),
        top=int(data.get("top", 10)),
        auth=_parse_oauth_config(data.get("auth") or {}),
    )


def _parse_graph_config(data: dict) -> GraphConfig:
    """Parse Microsoft Graph configuration from dict."""
    return GraphConfig(
        base_url=_as_str(data.get("base_url"), "https://graph.microsoft.com/v1.0").rstrip("/"),
        mailbox=_as_str(data.get("mailbox"), "me").strip("/") or "me",
        region=_as_str(data.get("region")),
        result_size=int(data.get("result_size", 3)),
        timeout=float(data.get("timeout", 30.0)),
        auth=_parse_oauth_config(data.get("auth") or {}),
    )


def _parse_document_search_config(data: dict) -> DocumentSearchConfig:
    """Parse Azure Cognitive Search configuration from dict."""
    return DocumentSearchConfig(
        endpoint=_as_str(data.get("endpoint")).rstrip("/"),
        index_name=_as_str(data.get("index_name")),
        api_key=_as_str(data.get("api_key")),
        api_version=_as_str(data.get("api_version"), "2023-11-01"),
        semantic_configuration=_as_str(data.get("semantic_configuration"), "default"),
        top=int(data.get("top", 3)),
        timeout=float(data.get("timeout", 30.0)),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=_as_str(data.get("level"), "INFO").upper(),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=_as_str(data.get("public_key")),
        secret_key=_as_str(data.get("secret_key")),
        host=_as_str(data.get("host"), "https://cloud.langfuse.com"),
        debug=_as_bool(data.get("debug", False)),
    )


def parse_app_config(raw_config: dict, base_dir: Optional[str] = None) -> AppConfig:
    """
    Build an AppConfig from an already loaded mapping.

    Environment variables are substituted before parsing.
    """
    raw_config = _substitute_env_vars_recursive(raw_config)

    try:
        return AppConfig(
            version=_as_str(raw_config.get("version"), "1.0"),
            completion=_parse_completion_config(raw_config.get("completion") or {}),
            sampling=_parse_sampling_config(raw_config.get("sampling") or {}),
            session=_parse_session_config(raw_config.get("session") or {}),
            functions=_parse_functions_config(raw_config.get("functions") or {}),
            dataverse=_parse_dataverse_config(raw_config.get("dataverse") or {}),
            graph=_parse_graph_config(raw_config.get("graph") or {}),
            document_search=_parse_document_search_config(
                raw_config.get("document_search") or {}
            ),
            logging=_parse_logging_config(raw_config.get("logging") or {}),
            langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
            base_dir=base_dir,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        ConfigurationError: If the config file is missing, empty or invalid
    """
    global _app_config

    # Return cached config if available and not reloading
    if _app_config is not None and not reload:
        return _app_config

    # Determine config path
    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml or set CONFIG_PATH env var."
        )

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Configuration file {config_path} is not valid YAML: {e}") from e

    if raw_config is None:
        raise ConfigurationError(f"Configuration file {config_path} is empty")
    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

    app_config = parse_app_config(raw_config, base_dir=str(config_path.parent.resolve()))

    # Cache the config
    _app_config = app_config

    logger.debug(
        f"Configuration loaded: version={app_config.version}, "
        f"functions={app_config.functions.enabled}"
    )

    return app_config


def resolve_path(app_config: AppConfig, path: str) -> Path:
    """Resolve a config-relative path against the config file's directory."""
    candidate = Path(path)
    if candidate.is_absolute() or app_config.base_dir is None:
        return candidate
    return Path(app_config.base_dir) / candidate


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
