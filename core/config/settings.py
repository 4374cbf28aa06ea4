"""Core configuration settings using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Environment
    environment: str = Field(default="development", description="Application environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Listener
    gateway_host: str = Field(default="0.0.0.0", description="Gateway bind address")
    gateway_port: int = Field(default=3000, description="Gateway port")

    # Backend Service URLs
    auth_service_url: str = Field(
        default="https://dha-soa-auth.onrender.com",
        description="Auth service base URL (also hosts the verification endpoint)",
    )
    forum_service_url: str = Field(
        default="https://dha-soa-forum.onrender.com",
        description="Forum service base URL",
    )
    assistant_service_url: str = Field(
        default="https://dauduchieu-dha-soa-assistant.hf.space",
        description="Assistant service base URL",
    )
    rag_service_url: str = Field(
        default="https://dauduchieu-dha-soa-rag.hf.space",
        description="Document/RAG service base URL",
    )

    # Identity Verification
    verify_path: str = Field(
        default="/auth/verify",
        description="Path of the verification endpoint on the auth service",
    )
    verify_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout in seconds for the verification call",
    )
    verifier_failure_policy: Literal["deny", "bad_gateway"] = Field(
        default="deny",
        description=(
            "How an unreachable auth service is reported: 'deny' answers 401 "
            "like an invalid credential, 'bad_gateway' answers 502"
        ),
    )

    # Forwarding Timeouts
    forward_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Forward timeout in seconds for the auth and forum services",
    )
    assistant_forward_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Forward timeout in seconds for the assistant service",
    )
    rag_forward_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Forward timeout in seconds for the document/RAG service",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Prometheus Metrics
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics at /metrics")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
