"""Application configuration and settings."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator


DOCKER_HUB_REGISTRY = "docker.io/"
DEFAULT_CERT_FILE = "/etc/webhook/certs/tls.crt"
DEFAULT_KEY_FILE = "/etc/webhook/certs/tls.key"
DEFAULT_PORT = 8443


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""


def parse_registries(raw: str | list[str] | None) -> list[str]:
    """Turn a comma separated registry list into catalog entries.

    Each entry ends with exactly one ``/``; blank entries are dropped and an
    empty result falls back to Docker Hub.
    """
    if raw is None:
        items: list[str] = []
    elif isinstance(raw, str):
        items = raw.split(",")
    else:
        items = list(raw)

    registries: list[str] = []
    for item in items:
        item = item.strip()
        if item:
            registries.append(item.rstrip("/") + "/")
    return registries or [DOCKER_HUB_REGISTRY]


def _env_port() -> int:
    raw = os.environ.get("WEBHOOK_PORT", "").strip()
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"WEBHOOK_PORT must be an integer, got {raw!r}.") from None


class Settings(BaseModel):
    """Runtime settings resolved from env vars and CLI flags."""

    model_config = ConfigDict(frozen=True)

    # ECR cache identity
    aws_account_id: str = Field(
        default_factory=lambda: os.environ.get("ECR_AWS_ACCOUNT_ID", ""),
        description="AWS account that owns the pull-through cache.",
    )
    aws_region: str = Field(
        default_factory=lambda: os.environ.get("ECR_AWS_REGION", ""),
        description="AWS region of the pull-through cache.",
    )
    registries: list[str] = Field(
        default_factory=lambda: parse_registries(os.environ.get("ECR_REGISTRIES")),
        description="Ordered source registry prefixes. First match wins.",
    )

    # ── Serving ──────────────────────────────────────────────────────
    host: str = Field(default_factory=lambda: os.environ.get("WEBHOOK_HOST", "0.0.0.0"))
    port: int = Field(default_factory=_env_port)
    cert_file: str = Field(
        default_factory=lambda: os.environ.get("WEBHOOK_CERT_FILE", DEFAULT_CERT_FILE),
        description="TLS certificate path. Missing file = serve plain HTTP.",
    )
    key_file: str = Field(
        default_factory=lambda: os.environ.get("WEBHOOK_KEY_FILE", DEFAULT_KEY_FILE),
        description="TLS private key path. Missing file = serve plain HTTP.",
    )

    # Behaviour
    verbose: bool = False

    @field_validator("registries", mode="before")
    @classmethod
    def _normalize_registries(cls, value: str | list[str] | None) -> list[str]:
        return parse_registries(value)

    @property
    def cache_hostname(self) -> str:
        """Destination prefix every rewritten image is rooted under."""
        return f"{self.aws_account_id}.dkr.ecr.{self.aws_region}.amazonaws.com/"

    @property
    def tls_enabled(self) -> bool:
        return os.path.exists(self.cert_file) and os.path.exists(self.key_file)

    def validate_identity(self) -> None:
        if not self.aws_account_id:
            raise ConfigError(
                "ECR_AWS_ACCOUNT_ID is required. "
                "Export it as an environment variable or pass --account-id."
            )
        if not self.aws_region:
            raise ConfigError(
                "ECR_AWS_REGION is required. "
                "Export it as an environment variable or pass --region."
            )
