"""
Server configuration.

Values are read once at startup from environment variables:

    MCP_CACHE_TTL          result cache TTL in seconds (default 300)
    MCP_DEFAULT_ENGINE     engine used when a call names none (default duckduckgo)
    MCP_REQUEST_TIMEOUT    per-request fetch timeout in seconds (default 30)
    MCP_CONNECT_TIMEOUT    curl connection timeout in seconds (default 10)
    MCP_MAX_CONCURRENT     concurrent curl processes (default 10)
    MCP_HEADLESS           run the browser headless (default true)
    MCP_LOG_LEVEL          log level (default INFO)
    MCP_LOG_FORMAT         "console" or "json" (default console)
    OLLAMA_BASE_URL        Ollama service root (default http://localhost:11434)
    OLLAMA_HOST / OLLAMA_PORT  used when OLLAMA_BASE_URL is unset
    OLLAMA_DEFAULT_MODEL   default model (default llama2)
    OLLAMA_TIMEOUT         Ollama request timeout in seconds (default 60)

An invalid value aborts startup with ConfigError.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

import chz

from .tools.validation import SEARCH_ENGINES, coerce_bool

LOG_FORMATS = ("console", "json")


class ConfigError(ValueError):
    """Raised when the environment holds an unusable setting."""


@chz.chz(typecheck=True)
class ServerConfig:
    cache_ttl: float = chz.field(default=300.0, doc="Result cache TTL in seconds")
    default_engine: str = chz.field(default="duckduckgo", doc="Engine used when none is given")
    request_timeout: float = chz.field(default=30.0, doc="Fetch timeout in seconds")
    connect_timeout: float = chz.field(default=10.0, doc="Connection timeout in seconds")
    max_concurrent: int = chz.field(default=10, doc="Maximum concurrent curl fetches")
    headless: bool = chz.field(default=True, doc="Run the browser without a window")
    log_level: str = chz.field(default="INFO", doc="Log level name")
    log_format: str = chz.field(default="console", doc="Log renderer: console or json")
    ollama_base_url: str = chz.field(default="http://localhost:11434", doc="Ollama service root")
    ollama_default_model: str = chz.field(default="llama2", doc="Default Ollama model")
    ollama_timeout: float = chz.field(default=60.0, doc="Ollama request timeout in seconds")

    def check(self) -> ServerConfig:
        """Raise ConfigError for out-of-range values; returns self."""
        if self.cache_ttl <= 0:
            raise ConfigError(f"MCP_CACHE_TTL must be positive, got {self.cache_ttl:g}")
        if self.request_timeout <= 0:
            raise ConfigError(
                f"MCP_REQUEST_TIMEOUT must be positive, got {self.request_timeout:g}"
            )
        if self.connect_timeout <= 0:
            raise ConfigError(
                f"MCP_CONNECT_TIMEOUT must be positive, got {self.connect_timeout:g}"
            )
        if self.max_concurrent < 1:
            raise ConfigError(f"MCP_MAX_CONCURRENT must be at least 1, got {self.max_concurrent}")
        if self.default_engine not in SEARCH_ENGINES:
            raise ConfigError(
                f"MCP_DEFAULT_ENGINE must be one of: {', '.join(SEARCH_ENGINES)}; "
                f"got {self.default_engine!r}"
            )
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"MCP_LOG_LEVEL is not a log level: {self.log_level!r}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"MCP_LOG_FORMAT must be one of: {', '.join(LOG_FORMATS)}")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        base_url = env.get("OLLAMA_BASE_URL") or (
            f"http://{env.get('OLLAMA_HOST', 'localhost')}:{env.get('OLLAMA_PORT', '11434')}"
        )
        config = cls(
            cache_ttl=_number(env, "MCP_CACHE_TTL", 300.0),
            default_engine=env.get("MCP_DEFAULT_ENGINE", "duckduckgo").strip().lower(),
            request_timeout=_number(env, "MCP_REQUEST_TIMEOUT", 30.0),
            connect_timeout=_number(env, "MCP_CONNECT_TIMEOUT", 10.0),
            max_concurrent=_integer(env, "MCP_MAX_CONCURRENT", 10),
            headless=coerce_bool(env.get("MCP_HEADLESS"), True),
            log_level=env.get("MCP_LOG_LEVEL", "INFO").strip().upper(),
            log_format=env.get("MCP_LOG_FORMAT", "console").strip().lower(),
            ollama_base_url=base_url.rstrip("/"),
            ollama_default_model=env.get("OLLAMA_DEFAULT_MODEL", "llama2"),
            ollama_timeout=_number(env, "OLLAMA_TIMEOUT", 60.0),
        )
        return config.check()


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _integer(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
