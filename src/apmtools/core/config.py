# src/apmtools/core/config.py
"""
Connection settings for Elasticsearch.

Uses Pydantic for validation. Settings are frozen (immutable) after
construction. Values normally arrive from CLI flags, which fall back to
environment variables (optionally loaded from a .env file).
"""

from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator

# Credentials of the local development stack.
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "changeme"


class ElasticsearchSettings(BaseModel):
    """How to reach and authenticate against Elasticsearch.

    An API key, when set, takes precedence over basic auth.
    """

    model_config = {"frozen": True}

    url: str = Field(description="Elasticsearch base URL, e.g. https://localhost:9200")
    username: str = Field(default=DEFAULT_USERNAME, description="Basic auth username")
    password: SecretStr = Field(default=SecretStr(DEFAULT_PASSWORD), description="Basic auth password")
    api_key: SecretStr | None = Field(default=None, description="Encoded API key")
    tls_skip_verify: bool = Field(default=False, description="Skip TLS certificate verification")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request HTTP timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and drop trailing slashes."""
        v = v.strip()
        if not v:
            raise ValueError("Elasticsearch URL must be set (flag or $ELASTICSEARCH_URL)")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Elasticsearch URL must start with http:// or https://, got {v!r}")
        return v.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def empty_api_key_is_unset(cls, v: SecretStr | None) -> SecretStr | None:
        if v is not None and not v.get_secret_value():
            return None
        return v

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for API key auth, empty when basic auth is used."""
        if self.api_key is not None:
            return {"Authorization": f"ApiKey {self.api_key.get_secret_value()}"}
        return {}

    def basic_auth(self) -> tuple[str, str] | None:
        """Basic auth credentials, None when an API key is configured."""
        if self.api_key is not None or not self.username:
            return None
        return (self.username, self.password.get_secret_value())

    def httpx_client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for constructing an httpx.Client."""
        return {
            "base_url": self.url,
            "auth": self.basic_auth(),
            "headers": self.auth_headers(),
            "verify": not self.tls_skip_verify,
            "timeout": self.request_timeout,
        }
