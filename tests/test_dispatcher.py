import json
from typing import Any

import pytest

from browser_search.dispatcher import Dispatcher, ServerInfo, UnknownToolError
from browser_search.tools.tool import Tool
from browser_search.tools.validation import SearchOptions


class EchoTool(Tool):
    options_model = SearchOptions

    def __init__(self, name: str = "echo", *, fail_with: Exception | None = None):
        super().__init__(name, "Echo the validated options", {"type": "object"})
        self.fail_with = fail_with
        self.seen: list[SearchOptions] = []

    def validation_context(self):
        return {"default_engine": "bing"}

    async def run(self, options: SearchOptions) -> Any:
        self.seen.append(options)
        if self.fail_with is not None:
            raise self.fail_with
        return {"query": options.query, "engine": options.engine, "note": "café"}


def text_of(result) -> str:
    assert len(result.content) == 1
    return result.content[0].text


@pytest.mark.asyncio
async def test_success_is_pretty_json():
    tool = EchoTool()
    result = await Dispatcher([tool]).call("echo", {"query": " hi "})
    assert not result.isError
    text = text_of(result)
    assert json.loads(text) == {"query": "hi", "engine": "bing", "note": "café"}
    assert text == json.dumps(json.loads(text), indent=2, ensure_ascii=False)


@pytest.mark.asyncio
async def test_unknown_tool():
    result = await Dispatcher([EchoTool()]).call("nope", {})
    assert result.isError
    assert text_of(result) == "Error: Unknown tool: nope"


@pytest.mark.asyncio
async def test_validation_failure_does_not_run_the_tool():
    tool = EchoTool()
    result = await Dispatcher([tool]).call("echo", {"query": ""})
    assert result.isError
    assert text_of(result) == "Error: Validation error: Query cannot be empty"
    assert tool.seen == []


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result():
    dispatcher = Dispatcher([EchoTool(fail_with=RuntimeError("boom"))])
    result = await dispatcher.call("echo", {"query": "q"})
    assert result.isError
    assert text_of(result) == "Error: boom"


@pytest.mark.asyncio
async def test_exception_without_message_reports_its_type():
    dispatcher = Dispatcher([EchoTool(fail_with=TimeoutError())])
    result = await dispatcher.call("echo", {"query": "q"})
    assert text_of(result) == "Error: TimeoutError"


@pytest.mark.asyncio
async def test_closed_dispatcher_rejects_calls():
    tool = EchoTool()
    dispatcher = Dispatcher([tool])
    dispatcher.close()
    assert not dispatcher.accepting
    result = await dispatcher.call("echo", {"query": "q"})
    assert text_of(result) == "Error: Server is shutting down"
    assert tool.seen == []


def test_registry():
    dispatcher = Dispatcher([EchoTool("a"), EchoTool("b")])
    assert dispatcher.tool_names == ["a", "b"]
    assert dispatcher.has_tool("a")
    assert [tool.name for tool in dispatcher.list_tools()] == ["a", "b"]
    assert dispatcher.list_tools()[0].inputSchema == {"type": "object"}
    with pytest.raises(UnknownToolError):
        dispatcher.get_tool("c")


def test_duplicate_tool_names_are_rejected():
    with pytest.raises(ValueError, match="Duplicate tool name"):
        Dispatcher([EchoTool("a"), EchoTool("a")])


def test_server_info_stats():
    stats = ServerInfo("srv", "1.2.3").stats()
    assert stats["name"] == "srv"
    assert stats["version"] == "1.2.3"
    assert stats["uptime"] >= 0
    assert isinstance(stats["pid"], int)
