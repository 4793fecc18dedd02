# src/village_client/config.py
"""
Client configuration.

All values can be overridden via environment variables:
    VILLAGE_API_BASE_URL   - Backend base URL (default: http://localhost:3000)
    VILLAGE_SESSION_FILE   - Persisted session document (default: ./session.json)
    VILLAGE_TIMEOUT_CONNECT - Connection establishment timeout (default: 10s)
    VILLAGE_TIMEOUT_READ    - Response read timeout (default: 30s)
    VILLAGE_TIMEOUT_WRITE   - Request body send timeout (default: 30s)
    VILLAGE_TIMEOUT_POOL    - Connection pool acquisition timeout (default: 30s)
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.parse import urlparse

import httpx

from .errors import ConfigError
from .utils.paths import get_session_file

lib_logger = logging.getLogger("village_client")

DEFAULT_BASE_URL = "http://localhost:3000"


class TimeoutConfig:
    """
    Centralized timeout configuration for HTTP requests.

    All values can be overridden via environment variables.
    """

    _CONNECT = 10.0
    _READ = 30.0
    _WRITE = 30.0
    _POOL = 30.0

    @classmethod
    def _get_env_float(
        cls, key: str, default: float, env: Optional[Mapping[str, str]] = None
    ) -> float:
        """Get a float value from environment variable, or return default."""
        value = (os.environ if env is None else env).get(key)
        if value is not None:
            try:
                parsed = float(value)
                if parsed > 0:
                    return parsed
            except ValueError:
                pass
            lib_logger.warning(
                f"Invalid value for {key}: {value}. Using default: {default}"
            )
        return default

    @classmethod
    def default(cls, env: Optional[Mapping[str, str]] = None) -> httpx.Timeout:
        """Timeout used for every API call, including the refresh exchange."""
        return httpx.Timeout(
            connect=cls._get_env_float("VILLAGE_TIMEOUT_CONNECT", cls._CONNECT, env),
            read=cls._get_env_float("VILLAGE_TIMEOUT_READ", cls._READ, env),
            write=cls._get_env_float("VILLAGE_TIMEOUT_WRITE", cls._WRITE, env),
            pool=cls._get_env_float("VILLAGE_TIMEOUT_POOL", cls._POOL, env),
        )


def normalize_base_url(base_url: str) -> str:
    """
    Validate and normalise a backend base URL.

    Raises:
        ConfigError: if the URL is not an absolute http(s) URL
    """
    base_url = (base_url or "").strip()
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(
            f"Invalid API base URL '{base_url}': expected an absolute http(s) URL"
        )
    return base_url.rstrip("/")


@dataclass
class ClientConfig:
    """Everything an ApiClient needs to know about its environment."""

    base_url: str = DEFAULT_BASE_URL
    session_file: Optional[Path] = None
    timeout: httpx.Timeout = field(default_factory=TimeoutConfig.default)

    def __post_init__(self):
        self.base_url = normalize_base_url(self.base_url)
        if self.session_file is not None:
            self.session_file = Path(self.session_file)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        base_url: Optional[str] = None,
        session_file: Optional[Union[str, Path]] = None,
    ) -> "ClientConfig":
        """
        Build configuration from environment variables. Explicit arguments
        take precedence over the environment.
        """
        env = os.environ if env is None else env

        resolved_session = session_file or env.get("VILLAGE_SESSION_FILE")
        return cls(
            base_url=base_url or env.get("VILLAGE_API_BASE_URL") or DEFAULT_BASE_URL,
            session_file=Path(resolved_session) if resolved_session else get_session_file(),
            timeout=TimeoutConfig.default(env),
        )
