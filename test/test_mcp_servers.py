"""Tests for the tool gateway."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp import types

from mcp_chat_client.config import ServerConfig
from mcp_chat_client.errors import (
    ArgumentParseError,
    ServerConnectionError,
    ToolInvocationError,
)
from mcp_chat_client.mcp_servers import (
    EMPTY_RESULT_TEXT,
    ToolGateway,
    call_result_to_text,
    mcp_tool_to_descriptor,
    parse_arguments,
)


def _tool(name, description="", required=None):
    schema = {
        "type": "object",
        "properties": {
            "a": {"type": "string", "description": "first"},
            "b": {"type": "integer", "description": "second"},
        },
    }
    if required is not None:
        schema["required"] = required
    return types.Tool(name=name, description=description, inputSchema=schema)


def _session(*tools):
    session = MagicMock()
    session.list_tools = AsyncMock(return_value=types.ListToolsResult(tools=list(tools)))
    session.call_tool = AsyncMock(
        return_value=types.CallToolResult(
            content=[types.TextContent(type="text", text="ok")]
        )
    )
    return session


class TestTranslation:
    def test_required_list_is_empty_but_schema_kept(self):
        descriptor = mcp_tool_to_descriptor(_tool("echo", required=["a", "b"]), "s1")
        assert descriptor.required == []
        assert descriptor.parameters["required"] == ["a", "b"]
        assert descriptor.strict is True

        fn = descriptor.to_openai_tool()["function"]
        assert fn["required"] == []
        assert fn["parameters"]["required"] == ["a", "b"]

    def test_missing_schema_gets_defaults(self):
        tool = types.Tool(name="ping", inputSchema={})
        descriptor = mcp_tool_to_descriptor(tool, "s1")
        assert descriptor.parameters == {"type": "object", "properties": {}}

    def test_openai_shape(self):
        descriptor = mcp_tool_to_descriptor(_tool("echo", "Echo text"), "s1")
        entry = descriptor.to_openai_tool()
        assert entry["type"] == "function"
        fn = entry["function"]
        assert fn["name"] == "echo"
        assert fn["description"] == "Echo text"
        assert fn["strict"] is True
        assert fn["required"] == []
        assert set(fn["parameters"]["properties"]) == {"a", "b"}

    def test_source_schema_untouched(self):
        tool = _tool("echo", required=["a"])
        mcp_tool_to_descriptor(tool, "s1")
        assert tool.inputSchema["required"] == ["a"]


class TestParseArguments:
    def test_object(self):
        assert parse_arguments('{"msg": "hi"}') == {"msg": "hi"}

    def test_empty(self):
        assert parse_arguments("") == {}
        assert parse_arguments(None) == {}

    def test_invalid_json(self):
        with pytest.raises(ArgumentParseError):
            parse_arguments("{msg: hi")

    def test_not_an_object(self):
        with pytest.raises(ArgumentParseError):
            parse_arguments("[1, 2]")


class TestCallResultToText:
    def test_joins_text_parts(self):
        result = types.CallToolResult(
            content=[
                types.TextContent(type="text", text="one"),
                types.TextContent(type="text", text="two"),
            ]
        )
        assert call_result_to_text(result) == "one\ntwo"

    def test_empty(self):
        assert call_result_to_text(types.CallToolResult(content=[])) == EMPTY_RESULT_TEXT


class TestToolGateway:
    @pytest.mark.asyncio
    async def test_catalog_merges_all_servers(self):
        gateway = ToolGateway()
        await gateway.list_tools(_session(_tool("a1"), _tool("a2")), "s1")
        await gateway.list_tools(_session(_tool("b1")), "s2")
        assert [t.name for t in gateway.tools] == ["a1", "a2", "b1"]
        assert len(gateway.openai_tools()) == 3
        assert gateway.tools[2].server_name == "s2"

    @pytest.mark.asyncio
    async def test_call_routes_to_owner(self):
        gateway = ToolGateway()
        first = _session(_tool("a1"))
        second = _session(_tool("b1"))
        await gateway.list_tools(first, "s1")
        await gateway.list_tools(second, "s2")

        text = await gateway.call_tool("b1", {"msg": "hi"})

        assert text == "ok"
        second.call_tool.assert_awaited_once_with(name="b1", arguments={"msg": "hi"})
        first.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_name_routes_to_latest(self):
        gateway = ToolGateway()
        first = _session(_tool("echo"))
        second = _session(_tool("echo"))
        await gateway.list_tools(first, "s1")
        await gateway.list_tools(second, "s2")

        await gateway.call_tool("echo", {})

        assert len(gateway.tools) == 2
        second.call_tool.assert_awaited_once()
        first.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_call_accepts_json_string(self):
        gateway = ToolGateway()
        session = _session(_tool("echo"))
        await gateway.list_tools(session, "s1")
        await gateway.call_tool("echo", '{"msg": "hi"}')
        session.call_tool.assert_awaited_once_with(name="echo", arguments={"msg": "hi"})

    @pytest.mark.asyncio
    async def test_bad_json_does_not_call(self):
        gateway = ToolGateway()
        session = _session(_tool("echo"))
        await gateway.list_tools(session, "s1")
        with pytest.raises(ToolInvocationError):
            await gateway.call_tool("echo", "{oops")
        session.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        gateway = ToolGateway()
        with pytest.raises(ToolInvocationError, match="not found"):
            await gateway.call_tool("missing", {})

    @pytest.mark.asyncio
    async def test_remote_failure(self):
        gateway = ToolGateway()
        session = _session(_tool("echo"))
        session.call_tool.side_effect = RuntimeError("boom")
        await gateway.list_tools(session, "s1")
        with pytest.raises(ToolInvocationError):
            await gateway.call_tool("echo", {})

    @pytest.mark.asyncio
    async def test_error_result_is_forwarded(self):
        gateway = ToolGateway()
        session = _session(_tool("echo"))
        session.call_tool.return_value = types.CallToolResult(
            content=[types.TextContent(type="text", text="bad input")], isError=True
        )
        await gateway.list_tools(session, "s1")
        assert await gateway.call_tool("echo", {}) == "bad input"

    @pytest.mark.asyncio
    async def test_sse_is_rejected(self):
        gateway = ToolGateway()
        with pytest.raises(ServerConnectionError):
            await gateway.connect(ServerConfig(name="s", command="x", transport="sse"))

    @pytest.mark.asyncio
    async def test_spawn_failure(self):
        @asynccontextmanager
        async def broken_stdio_client(params):
            raise FileNotFoundError(params.command)
            yield

        gateway = ToolGateway()
        with patch("mcp_chat_client.mcp_servers.stdio_client", broken_stdio_client):
            with pytest.raises(ServerConnectionError) as excinfo:
                await gateway.connect(ServerConfig(name="s", command="missing-bin"))
        assert isinstance(excinfo.value, ConnectionError)
        await gateway.close_all()

    @pytest.mark.asyncio
    async def test_add_server_and_close_all(self):
        spawned = []
        closed = []

        @asynccontextmanager
        async def fake_stdio_client(params):
            spawned.append(params)
            try:
                yield ("read", "write")
            finally:
                closed.append(params.command)

        class FakeSession:
            def __init__(self, read_stream, write_stream):
                self.initialized = False

            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc):
                return False

            async def initialize(self):
                self.initialized = True

            async def list_tools(self):
                return types.ListToolsResult(tools=[_tool("echo")])

        gateway = ToolGateway()
        with patch("mcp_chat_client.mcp_servers.stdio_client", fake_stdio_client), patch(
            "mcp_chat_client.mcp_servers.ClientSession", FakeSession
        ):
            tools = await gateway.add_server(
                ServerConfig(name="s", command="node", args=("srv.js",), env={"K": "v"})
            )
            await gateway.close_all()
            await gateway.close_all()

        assert [t.name for t in tools] == ["echo"]
        assert spawned[0].command == "node"
        assert spawned[0].args == ["srv.js"]
        assert spawned[0].env == {"K": "v"}
        assert closed == ["node"]
