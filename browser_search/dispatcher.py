"""
Tool dispatch.

The Dispatcher owns the tool registry of one server. For each call it looks
up the tool, validates the raw arguments, runs the tool and wraps the outcome
in an MCP CallToolResult:

- success: one text item holding the pretty-printed JSON payload
- failure: one text item "Error: <message>" with isError set

Nothing raised by a tool escapes `call()`.
"""

from __future__ import annotations

import dataclasses
import json
import os
import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from mcp import types

from .tools.tool import Tool
from .tools.validation import ValidationError, validate_arguments

logger = structlog.stdlib.get_logger(component=__name__)


def success_result(data: Any) -> types.CallToolResult:
    text = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


def error_result(message: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Error: {message}")],
        isError=True,
    )


@dataclasses.dataclass
class ServerInfo:
    name: str
    version: str
    started_at: float = dataclasses.field(default_factory=time.monotonic)

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "uptime": round(time.monotonic() - self.started_at, 3),
            "pid": os.getpid(),
        }


class UnknownToolError(LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class Dispatcher:
    def __init__(self, tools: Iterable[Tool]):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool
        self._accepting = True

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def list_tools(self) -> list[types.Tool]:
        return [tool.definition() for tool in self._tools.values()]

    @property
    def accepting(self) -> bool:
        return self._accepting

    def close(self) -> None:
        """Stop accepting new calls. Calls already running are not interrupted."""
        self._accepting = False

    async def call(self, name: str, arguments: Mapping[str, Any] | None) -> types.CallToolResult:
        logger.debug("tool_call_received", tool=name)
        if not self._accepting:
            return error_result("Server is shutting down")
        try:
            tool = self.get_tool(name)
        except UnknownToolError as e:
            logger.warning("unknown_tool", tool=name)
            return error_result(str(e))

        options = validate_arguments(
            tool.options_model, arguments, context=tool.validation_context()
        )
        if isinstance(options, ValidationError):
            logger.info("tool_call_rejected", tool=name, field=options.field, error=options.message)
            return error_result(f"Validation error: {options.message}")

        started = time.monotonic()
        try:
            data = await tool.run(options)
        except Exception as e:
            logger.warning(
                "tool_call_failed",
                tool=name,
                error=str(e),
                error_type=e.__class__.__name__,
                exc_info=True,
            )
            return error_result(str(e) or e.__class__.__name__)
        logger.info("tool_call_completed", tool=name, duration=round(time.monotonic() - started, 3))
        return success_result(data)
