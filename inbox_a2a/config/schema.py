"""Pydantic models for inbox_a2a configuration validation."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ServerConfig(BaseModel):
    """HTTP listener settings."""

    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    """Interface to bind."""

    port: int = Field(default=8765, ge=1, le=65535)
    """TCP port to listen on."""

    rpc_path: str = "/a2a/rpc"
    """Path of the single JSON-RPC endpoint."""

    max_concurrent: int = Field(default=32, gt=0)
    """Maximum connections handled at once."""

    log_dir: str = ".inbox_a2a/logs"
    """Directory for the rotating server log."""

    public_url: str | None = None
    """Externally visible base URL advertised in the agent card."""


class AuthConfig(BaseModel):
    """Caller authentication settings.

    Secrets are never stored here; ``shared_secret_env`` names the variable
    that holds the shared secret.
    """

    model_config = ConfigDict(extra="forbid")

    shared_secret_env: str = "A2A_DEV_SHARED_SECRET"
    """Environment variable containing the shared secret."""

    shared_secret_header: str = "x-a2a-dev-secret"
    """Header callers use to present the shared secret."""

    audience: str | None = None
    """Expected ``aud`` claim of bearer tokens. None skips the audience check."""

    trusted_issuers: list[str] = Field(
        default_factory=lambda: ["https://accounts.google.com", "accounts.google.com"]
    )
    """Issuers accepted in bearer tokens."""


class MailboxConfig(BaseModel):
    """Mailbox provider (Nylas v3) settings."""

    model_config = ConfigDict(extra="forbid")

    api_key_env: str = "NYLAS_API_KEY"
    """Environment variable containing the provider API key."""

    base_url: str = "https://api.us.nylas.com"
    """Provider API base URL."""

    request_timeout: float = Field(default=30.0, gt=0)
    """Per-request timeout in seconds."""


class LLMConfig(BaseModel):
    """OpenAI-compatible LLM settings used for intent extraction."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = "https://api.openai.com/v1"
    """Base URL of the chat completions API."""

    api_key_env: str = "OPENAI_API_KEY"
    """Environment variable containing the API key."""

    model: str = "gpt-4o-mini"
    """Model identifier sent with each request."""

    request_timeout: float = Field(default=60.0, gt=0)
    """Per-request timeout in seconds."""

    max_retries: int = Field(default=3, ge=0, le=10)
    """Retries for 429/5xx and transport failures."""

    retry_backoff: float = Field(default=1.5, ge=1.0, le=5.0)
    """Exponential backoff base between retries."""


class BatchConfig(BaseModel):
    """Batch executor tuning."""

    model_config = ConfigDict(extra="forbid")

    batch_size: int = Field(default=8, ge=1)
    """Items processed concurrently per chunk."""

    jitter_min_ms: int = Field(default=25, ge=0)
    """Lower bound of the stagger before an item's first attempt."""

    jitter_max_ms: int = Field(default=75, ge=0)
    """Upper bound of the stagger before an item's first attempt."""

    max_retries: int = Field(default=3, ge=0)
    """Additional attempts for retryable failures."""

    base_retry_delay_ms: int = Field(default=100, ge=0)
    """Base of the exponential retry delay."""

    retry_jitter_ratio: float = Field(default=0.2, ge=0.0, le=1.0)
    """Fraction of each retry delay applied as +/- random jitter."""

    @model_validator(mode="after")
    def _check_jitter_range(self) -> "BatchConfig":
        if self.jitter_min_ms > self.jitter_max_ms:
            raise ValueError(
                f"jitter_min_ms ({self.jitter_min_ms}) must not exceed "
                f"jitter_max_ms ({self.jitter_max_ms})"
            )
        return self


class RiskConfig(BaseModel):
    """Thresholds used when composing preview risk strings."""

    model_config = ConfigDict(extra="forbid")

    internal_email_domain: str | None = None
    """Domain treated as internal. None disables the external-recipient warning."""

    recipient_warning_threshold: int = Field(default=5, ge=1)
    """Warn when an email goes to more recipients than this."""

    large_batch_threshold: int = Field(default=50, ge=1)
    """Warn when a bulk action touches more messages than this."""


class Config(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    server: ServerConfig = ServerConfig()
    auth: AuthConfig = AuthConfig()
    mailbox: MailboxConfig = MailboxConfig()
    llm: LLMConfig = LLMConfig()
    batch: BatchConfig = BatchConfig()
    risk: RiskConfig = RiskConfig()
