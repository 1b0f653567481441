"""Exception hierarchy for the MCP chat client."""


class MCPChatClientError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(MCPChatClientError):
    """The server configuration file is missing or malformed."""


class ServerConnectionError(MCPChatClientError, ConnectionError):
    """An MCP server could not be spawned or failed its handshake."""


class ToolInvocationError(MCPChatClientError):
    """A tool call could not be routed or the remote call failed."""


class ArgumentParseError(ToolInvocationError, ValueError):
    """Tool call arguments are not a JSON object."""


class ChatApiError(MCPChatClientError):
    """The chat completion endpoint returned an error."""
