"""
Base Tool Abstract Class

This module defines the interface every MCP tool in this package implements.
A tool is something a client can call by name: it advertises a name, a
description and a JSON schema, and it runs with already-validated options.

Key Concepts:
-------------
1. Tool Listing: `definition()` produces the MCP tool entry shown to clients
2. Validation: raw arguments are checked against `options_model` before the
   tool runs; the tool itself only sees a typed options object
3. Results: `run()` returns JSON-serializable data; the dispatcher wraps it
   in an MCP result envelope
4. Errors: exceptions raised by `run()` become error results, they never
   escape to the transport
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from mcp import types

from .validation import NoOptions, ToolOptions


class ToolUsageError(Exception):
    """A well-formed call that the tool cannot serve."""


class Tool(ABC):
    """
    Something a client can call.

    Subclasses set `options_model` and implement `run()`. Name, description
    and schema are instance attributes so the same tool class can be exposed
    under different names by different server variants.
    """

    options_model: ClassVar[type[ToolOptions]] = NoOptions

    def __init__(self, name: str, description: str, input_schema: Mapping[str, Any]):
        self._name = name
        self._description = description
        self._input_schema = dict(input_schema)

    @property
    def name(self) -> str:
        """The identifier clients use to call the tool."""
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    def validation_context(self) -> Mapping[str, Any] | None:
        """Extra context passed to the options model, e.g. the default engine."""
        return None

    def definition(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )

    @abstractmethod
    async def run(self, options: Any) -> Any:
        """
        Execute the tool.

        Args:
            options: An instance of `options_model`

        Returns:
            JSON-serializable result data

        Raises:
            Exception: Any failure; reported to the caller as an error result
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
