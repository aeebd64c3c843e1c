"""Configuration management for Doko Runtime."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration settings.

    Every field can be overridden with a ``DOKO_`` prefixed environment
    variable or a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOKO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Node
    node_endpoint: Optional[str] = Field(None, description="Override for the network endpoint in aleo-config.yaml")
    network_name: str = Field("testnet", description="Network path segment used by the node API")
    request_timeout_seconds: float = Field(30.0, description="HTTP timeout for node requests")
    poll_interval_seconds: float = Field(1.0, description="Delay between confirmation polls")
    poll_timeout_seconds: float = Field(60.0, description="Give up waiting for confirmation after this long")

    # External tools
    snarkos_bin: str = Field("snarkos", description="snarkos executable")
    leo_bin: str = Field("leo", description="leo executable")
    command_timeout_seconds: Optional[float] = Field(None, description="Kill external commands after this long")
    decryptor: Optional[str] = Field(
        None,
        description="module:function of the callable used to decrypt private outputs",
    )

    # Project
    config_file: str = Field("aleo-config.yaml", description="Project configuration file name")

    # API server
    host: str = Field("127.0.0.1", description="Server host")
    port: int = Field(8000, description="Server port")

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("console")
    metrics_enabled: bool = Field(True)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and console renderers are supported."""
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError(f"Unsupported log format: {v}")
        return v

    @field_validator("node_endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v:
            return v.rstrip("/")
        return v
