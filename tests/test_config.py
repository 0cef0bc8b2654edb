import json
import logging

import pytest
import structlog

from browser_search.__main__ import main, parse_args
from browser_search.config import ConfigError, ServerConfig
from browser_search.logging_config import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_defaults_from_empty_environment():
    config = ServerConfig.from_env({})
    assert config.cache_ttl == 300.0
    assert config.default_engine == "duckduckgo"
    assert config.request_timeout == 30.0
    assert config.max_concurrent == 10
    assert config.headless is True
    assert config.log_level == "INFO"
    assert config.ollama_base_url == "http://localhost:11434"
    assert config.ollama_default_model == "llama2"


def test_values_from_environment():
    config = ServerConfig.from_env(
        {
            "MCP_CACHE_TTL": "60",
            "MCP_DEFAULT_ENGINE": "Bing",
            "MCP_REQUEST_TIMEOUT": "7.5",
            "MCP_CONNECT_TIMEOUT": "2",
            "MCP_MAX_CONCURRENT": "4",
            "MCP_HEADLESS": "false",
            "MCP_LOG_LEVEL": "debug",
            "MCP_LOG_FORMAT": "JSON",
            "OLLAMA_DEFAULT_MODEL": "mistral",
            "OLLAMA_TIMEOUT": "120",
        }
    )
    assert config.cache_ttl == 60.0
    assert config.default_engine == "bing"
    assert config.request_timeout == 7.5
    assert config.connect_timeout == 2.0
    assert config.max_concurrent == 4
    assert config.headless is False
    assert config.log_level == "DEBUG"
    assert config.log_format == "json"
    assert config.ollama_default_model == "mistral"
    assert config.ollama_timeout == 120.0


def test_ollama_url_from_host_and_port():
    config = ServerConfig.from_env({"OLLAMA_HOST": "gpu-box", "OLLAMA_PORT": "8080"})
    assert config.ollama_base_url == "http://gpu-box:8080"
    explicit = ServerConfig.from_env(
        {"OLLAMA_BASE_URL": "http://ollama:11434/", "OLLAMA_HOST": "ignored"}
    )
    assert explicit.ollama_base_url == "http://ollama:11434"


@pytest.mark.parametrize(
    "environ, message",
    [
        ({"MCP_CACHE_TTL": "soon"}, "MCP_CACHE_TTL must be a number"),
        ({"MCP_CACHE_TTL": "0"}, "MCP_CACHE_TTL must be positive"),
        ({"MCP_REQUEST_TIMEOUT": "-1"}, "MCP_REQUEST_TIMEOUT must be positive"),
        ({"MCP_CONNECT_TIMEOUT": "0"}, "MCP_CONNECT_TIMEOUT must be positive"),
        ({"MCP_MAX_CONCURRENT": "2.5"}, "MCP_MAX_CONCURRENT must be an integer"),
        ({"MCP_MAX_CONCURRENT": "0"}, "MCP_MAX_CONCURRENT must be at least 1"),
        ({"MCP_DEFAULT_ENGINE": "altavista"}, "MCP_DEFAULT_ENGINE must be one of"),
        ({"MCP_LOG_LEVEL": "chatty"}, "MCP_LOG_LEVEL is not a log level"),
        ({"MCP_LOG_FORMAT": "xml"}, "MCP_LOG_FORMAT must be one of"),
    ],
)
def test_invalid_settings(environ, message):
    with pytest.raises(ConfigError, match=message):
        ServerConfig.from_env(environ)


def test_invalid_environment_exits_with_usage_error(monkeypatch):
    monkeypatch.setenv("MCP_CACHE_TTL", "-5")
    assert main([]) == 2


def test_parse_args():
    args = parse_args(["--variant", "ollama", "--log-level", "DEBUG"])
    assert args.variant == "ollama"
    assert args.log_level == "DEBUG"
    assert parse_args([]).variant == "browser"
    with pytest.raises(SystemExit):
        parse_args(["--variant", "turbo"])


def test_json_logs_go_to_stderr(capsys):
    configure_logging("INFO", "json")
    structlog.stdlib.get_logger("test").info("hello_event", answer=42)
    logging.getLogger("plain").warning("from stdlib")
    captured = capsys.readouterr()

    assert captured.out == ""
    lines = [json.loads(line) for line in captured.err.splitlines() if line.strip()]
    assert lines[0]["event"] == "hello_event"
    assert lines[0]["answer"] == 42
    assert lines[0]["level"] == "info"
    assert lines[1]["event"] == "from stdlib"
    assert lines[1]["level"] == "warning"
