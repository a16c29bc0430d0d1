"""
Configuration models for function-chat.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CompletionProvider(str, Enum):
    """Hosted chat-completion flavours."""

    OPENAI = "openai"
    AZURE = "azure"


@dataclass
class CompletionConfig:
    """Connection settings for the chat-completion endpoint."""
    provider: CompletionProvider = CompletionProvider.AZURE
    base_url: str = ""
    azure_endpoint: str = ""
    api_key: str = ""
    api_version: str = "2023-07-01-preview"
    model: str = "gpt35t"
    timeout: float = 60.0


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling knobs sent with every completion request."""
    temperature: float = 0.7
    max_tokens: int = 800
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def to_request_kwargs(self) -> dict:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@dataclass
class SessionConfig:
    """Configuration for a conversation session."""
    system_prompt_path: str = "systemprompt.txt"
    # 0 disables the per-turn limit.
    max_function_calls: int = 10


@dataclass
class FunctionsConfig:
    """Which functions are registered, in advertised order."""
    enabled: list[str] = field(default_factory=list)


@dataclass
class OAuthConfig:
    """Microsoft identity platform credentials for a back-end."""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    # Pre-acquired bearer token; takes precedence over client credentials.
    access_token: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token or (self.tenant_id and self.client_id and self.client_secret))


@dataclass
class DataverseConfig:
    """Configuration for the Dataverse Web API and relevancy search."""
    base_url: str = ""
    api_version: str = "v9.2"
    timeout: float = 30.0
    top: int = 10
    auth: OAuthConfig = field(default_factory=OAuthConfig)


@dataclass
class GraphConfig:
    """Configuration for Microsoft Graph search."""
    base_url: str = "https://graph.microsoft.com/v1.0"
    # "me" for delegated tokens, "users/<id>" for application tokens.
    mailbox: str = "me"
    region: str = ""
    result_size: int = 3
    timeout: float = 30.0
    auth: OAuthConfig = field(default_factory=OAuthConfig)


@dataclass
class DocumentSearchConfig:
    """Configuration for Azure Cognitive Search semantic queries."""
    endpoint: str = ""
    index_name: str = ""
    api_key: str = ""
    api_version: str = "2023-11-01"
    semantic_configuration: str = "default"
    top: int = 3
    timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    functions: FunctionsConfig = field(default_factory=FunctionsConfig)
    dataverse: DataverseConfig = field(default_factory=DataverseConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    document_search: DocumentSearchConfig = field(default_factory=DocumentSearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    # Directory of the loaded config file; relative paths resolve against it.
    base_dir: Optional[str] = None

    @property
    def log_level(self) -> str:
        return self.logging.level
