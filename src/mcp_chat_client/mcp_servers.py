"""MCP server connections and the merged tool catalog.

This module defines:

- :class:`ToolDescriptor` for one tool in the OpenAI function-calling shape.
- :func:`mcp_tool_to_descriptor` to translate MCP tools into descriptors.
- :func:`parse_arguments` to decode tool call arguments.
- :class:`ToolGateway` to spawn MCP servers, collect their tools and route
  tool calls to the server that registered them.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from mcp import ClientSession, StdioServerParameters, types
from mcp.client.stdio import stdio_client

from .config import TRANSPORT_STDIO, ServerConfig
from .errors import ArgumentParseError, ServerConnectionError, ToolInvocationError

logger = logging.getLogger(__name__)

EMPTY_RESULT_TEXT = "Tool returned no content."


@dataclass(frozen=True)
class ToolDescriptor:
    """A single entry of the merged tool catalog.

    Attributes:
        name: Tool name as exposed by the MCP server.
        description: Human-readable description, if the server gave one.
        parameters: JSON schema object describing the arguments.
        required: Names of required arguments.
        strict: Whether the model should follow the schema strictly.
        server_name: Logical name of the server exposing the tool.
    """

    name: str
    description: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    strict: bool = True
    server_name: str = ""

    def to_openai_tool(self) -> dict:
        """Render this descriptor as an OpenAI ``tools=[...]`` entry."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description or "",
                "parameters": self.parameters,
                "strict": self.strict,
                "required": list(self.required),
            },
        }


def mcp_tool_to_descriptor(tool: types.Tool, server_name: str) -> ToolDescriptor:
    """Convert an MCP :class:`Tool` to a :class:`ToolDescriptor`.

    The tool keeps its original name and input schema. The descriptor's own
    ``required`` list is always empty, whatever the schema declares; every
    tool is marked strict.

    Args:
        tool: Tool definition from an MCP server.
        server_name: Logical name of the server exposing the tool.

    Returns:
        ToolDescriptor: The translated catalog entry.
    """
    schema = dict(tool.inputSchema or {})
    schema.setdefault("type", "object")
    schema.setdefault("properties", {})
    return ToolDescriptor(
        name=tool.name,
        description=tool.description,
        parameters=schema,
        required=[],
        strict=True,
        server_name=server_name,
    )


def parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    """Decode a tool call's JSON arguments.

    An empty string means no arguments.

    Raises:
        ArgumentParseError: If ``raw`` is not valid JSON or not an object.
    """
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ArgumentParseError(f"Invalid tool arguments {raw!r}: {exc}") from exc
    if not isinstance(args, dict):
        raise ArgumentParseError(f"Tool arguments must be a JSON object, got {raw!r}")
    return args


def call_result_to_text(result: types.CallToolResult) -> str:
    """Convert an :class:`CallToolResult` into a plain text string.

    Text content is concatenated in order. Non-text content is stringified
    using :func:`str`.
    """
    if not result.content:
        return EMPTY_RESULT_TEXT

    parts: List[str] = []
    for c in result.content:
        if isinstance(c, types.TextContent):
            parts.append(c.text)
        else:
            parts.append(str(c))
    return "\n".join(parts)


class ToolGateway:
    """Owner of every MCP server connection and of the merged tool catalog.

    Each server is spawned inside a single :class:`AsyncExitStack`, so
    :meth:`close_all` tears down every process and session at once. Tool
    calls are routed to the session that registered the tool name.
    """

    def __init__(self) -> None:
        self.tools: List[ToolDescriptor] = []
        self._routes: Dict[str, ClientSession] = {}
        self._stack = AsyncExitStack()
        self._closed = False

    async def connect(self, config: ServerConfig) -> ClientSession:
        """Spawn an MCP server and run the initialization handshake.

        Only the stdio transport is supported.

        Raises:
            ServerConnectionError: If the transport is not stdio, the process
                cannot be started or the handshake fails.
        """
        if config.transport != TRANSPORT_STDIO:
            logger.error(
                "Server '%s' uses unsupported transport '%s'",
                config.name,
                config.transport,
            )
            raise ServerConnectionError(
                f"Transport '{config.transport}' is not supported "
                f"(server '{config.name}')"
            )

        params = StdioServerParameters(
            command=config.command,
            args=list(config.args),
            env=dict(config.env) if config.env else None,
        )
        try:
            read_stream, write_stream = await self._stack.enter_async_context(
                stdio_client(params)
            )
            session = await self._stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )
            await session.initialize()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to connect to MCP server '%s'", config.name)
            raise ServerConnectionError(
                f"Failed to connect to MCP server '{config.name}': {exc!r}"
            ) from exc

        logger.info("Connected to MCP server '%s'", config.name)
        return session

    async def list_tools(
        self, session: ClientSession, server_name: str
    ) -> List[ToolDescriptor]:
        """Fetch a server's tools and merge them into the catalog.

        A tool name that is already registered is logged and its calls are
        routed to ``session`` from then on.
        """
        result = await session.list_tools()
        descriptors = [mcp_tool_to_descriptor(t, server_name) for t in result.tools]
        for descriptor in descriptors:
            if descriptor.name in self._routes:
                logger.warning(
                    "Tool '%s' from server '%s' shadows an existing tool",
                    descriptor.name,
                    server_name,
                )
            self._routes[descriptor.name] = session
        self.tools.extend(descriptors)
        logger.info(
            "Connected to server with tools: %s", [t.name for t in self.tools]
        )
        return descriptors

    async def add_server(self, config: ServerConfig) -> List[ToolDescriptor]:
        """Connect to ``config`` and register its tools."""
        session = await self.connect(config)
        return await self.list_tools(session, config.name)

    def openai_tools(self) -> List[dict]:
        """Return the merged catalog in OpenAI function-calling format."""
        return [t.to_openai_tool() for t in self.tools]

    async def call_tool(
        self, name: str, arguments: Union[str, Mapping[str, Any], None]
    ) -> str:
        """Run a tool on the server that registered it.

        Args:
            name: Tool name from the catalog.
            arguments: Decoded arguments, or the raw JSON string.

        Returns:
            str: Text rendering of the tool result.

        Raises:
            ArgumentParseError: If ``arguments`` is a string that is not a
                JSON object.
            ToolInvocationError: If the tool is unknown or the remote call
                fails.
        """
        if arguments is None or isinstance(arguments, str):
            arguments = parse_arguments(arguments)

        session = self._routes.get(name)
        if session is None:
            raise ToolInvocationError(f"Tool '{name}' not found")

        try:
            result = await session.call_tool(name=name, arguments=dict(arguments))
        except Exception as exc:  # noqa: BLE001
            logger.exception("MCP tool '%s' failed", name)
            raise ToolInvocationError(
                f"Error while executing MCP tool '{name}': {exc!r}"
            ) from exc

        text = call_result_to_text(result)
        if result.isError:
            logger.warning("MCP tool '%s' reported an error: %s", name, text)
        return text

    async def close_all(self) -> None:
        """Shut down every server process. Only the first call has an effect."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._stack.aclose()
        except Exception:  # noqa: BLE001
            logger.exception("Error while closing MCP server connections")
