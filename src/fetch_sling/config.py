"""
Configuration models and validation for fetch-sling.
"""
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

# Constants
DEFAULT_TIMEOUT_CONNECT = 5.0
DEFAULT_TIMEOUT_READ = 30.0
DEFAULT_TIMEOUT_WRITE = 10.0
DEFAULT_ENV_PREFIX = "FETCH_SLING_"


class TimeoutConfig(BaseModel):
    """Timeout configuration."""
    connect: float = DEFAULT_TIMEOUT_CONNECT
    read: float = DEFAULT_TIMEOUT_READ
    write: float = DEFAULT_TIMEOUT_WRITE
    pool: Optional[float] = None


class ClientConfig(BaseModel):
    """Client configuration."""
    model_config = {"arbitrary_types_allowed": True}

    base_url: str
    timeout: Optional[Union[float, TimeoutConfig]] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    follow_redirects: bool = False

    # Optional pre-configured transport (httpx.AsyncClient or compatible)
    transport: Any = None

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        # Trailing slash is kept: it decides how relative paths resolve.
        return v


def normalize_timeout(timeout: Optional[Union[float, TimeoutConfig]]) -> TimeoutConfig:
    """Normalize timeout to TimeoutConfig object."""
    if timeout is None:
        return TimeoutConfig()
    if isinstance(timeout, (int, float)):
        return TimeoutConfig(connect=float(timeout), read=float(timeout), write=float(timeout))
    return timeout


@dataclass
class ResolvedConfig:
    """Fully resolved configuration ready for usage."""
    base_url: str
    timeout: TimeoutConfig
    headers: Dict[str, str]
    follow_redirects: bool
    transport: Any


def resolve_config(config: ClientConfig) -> ResolvedConfig:
    """Apply defaults and return resolved config."""
    return ResolvedConfig(
        base_url=config.base_url,
        timeout=normalize_timeout(config.timeout),
        headers=dict(config.headers),
        follow_redirects=config.follow_redirects,
        transport=config.transport,
    )


def load_config_from_env(
    prefix: str = DEFAULT_ENV_PREFIX,
    env_file: Optional[str] = None,
    **overrides: Any,
) -> ClientConfig:
    """
    Build a ClientConfig from environment variables.

    Reads <prefix>BASE_URL, <prefix>TIMEOUT and <prefix>FOLLOW_REDIRECTS.
    Values from `env_file` (a .env file) fill in anything the process
    environment does not set. Keyword overrides that are not None take
    priority over both.
    """
    env: Dict[str, Optional[str]] = {}
    if env_file is not None and os.path.exists(env_file):
        env.update(dotenv_values(env_file))
    env.update(os.environ)

    values: Dict[str, Any] = {}
    base_url = env.get(f"{prefix}BASE_URL")
    if base_url is not None:
        values["base_url"] = base_url
    timeout = env.get(f"{prefix}TIMEOUT")
    if timeout is not None:
        values["timeout"] = float(timeout)
    follow_redirects = env.get(f"{prefix}FOLLOW_REDIRECTS")
    if follow_redirects is not None:
        values["follow_redirects"] = follow_redirects.lower() in ("true", "1", "yes", "on")
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ClientConfig(**values)
