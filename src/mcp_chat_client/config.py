"""Server registry and environment settings.

This module defines:

- :class:`ServerConfig` dataclass describing one MCP server entry.
- :func:`build_servers` to materialize :class:`ServerConfig` objects.
- :func:`load_servers` to read them from a JSON configuration file.
- The environment-driven settings shared by the rest of the package.

The configuration file has the same shape as the one used by most MCP
hosts::

    {
      "mcpServers": {
        "filesystem": {
          "command": "npx",
          "args": ["-y", "@modelcontextprotocol/server-filesystem", "."]
        }
      }
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

load_dotenv()

SERVERS_KEY = "mcpServers"
TRANSPORT_STDIO = "stdio"
TRANSPORT_SSE = "sse"

# Defaults match the DashScope compatible-mode endpoint and can be overridden
# via the environment variables in .env.
CONFIG_PATH = os.getenv("MCP_SERVERS_CONFIG", "mcp_servers.json")
MODEL_NAME = os.getenv("MODEL_NAME", "qwen2.5-vl-72b-instruct")
BASE_URL = os.getenv(
    "BASE_URL", "https://dashscope.aliyuncs.com/compatible-mode/v1"
)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class ServerConfig:
    """Definition of a single MCP server.

    Attributes:
        name: Logical server name, the key under ``mcpServers``.
        command: Executable used to start the server (for example, ``"npx"``).
        args: Command-line arguments passed to :attr:`command`.
        transport: ``"stdio"`` (default) or ``"sse"``.
        env: Optional environment variables for the server process.
    """

    name: str
    command: str
    args: Tuple[str, ...] = ()
    transport: str = TRANSPORT_STDIO
    env: Optional[Mapping[str, str]] = None


def build_servers(raw: Mapping[str, Any]) -> Dict[str, ServerConfig]:
    """Build :class:`ServerConfig` instances from a raw configuration map.

    Args:
        raw: A mapping from a logical server name to a configuration
            dictionary. Each configuration must contain a ``"command"`` key;
            ``"args"``, ``"type"`` and ``"env"`` are optional.

    Returns:
        Dict[str, ServerConfig]: Server configs keyed by name, in the order
        they appear in ``raw``.

    Raises:
        ConfigError: If an entry is not an object or has no command.
    """
    servers: Dict[str, ServerConfig] = {}
    for name, cfg in raw.items():
        if not isinstance(cfg, dict):
            raise ConfigError(f"Server '{name}' must be an object")
        if "command" not in cfg:
            raise ConfigError(f"Server '{name}' has no 'command'")
        env = cfg.get("env")
        servers[name] = ServerConfig(
            name=name,
            command=cfg["command"],
            args=tuple(cfg.get("args") or ()),
            transport=cfg.get("type") or TRANSPORT_STDIO,
            env={k: str(v) for k, v in env.items()} if env else None,
        )
    return servers


def load_servers(path: Union[str, Path] = CONFIG_PATH) -> Dict[str, ServerConfig]:
    """Load server definitions from a JSON file.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid JSON, or
            lacks an ``mcpServers`` object.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read server config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Server config {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get(SERVERS_KEY), dict):
        raise ConfigError(f"Server config {path} has no '{SERVERS_KEY}' object")

    servers = build_servers(data[SERVERS_KEY])
    logger.info("Loaded %d server(s) from %s", len(servers), path)
    return servers
