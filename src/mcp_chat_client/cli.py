"""CLI interface for the MCP chat client.

This module implements a simple interactive loop that:

- Loads server definitions using :func:`load_servers`.
- Connects every server through a :class:`ToolGateway`.
- Reads user queries from standard input.
- Delegates each query to :meth:`ChatOrchestrator.process_query`.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Union

from openai import OpenAI

from .agent_core import ChatOrchestrator
from .config import CONFIG_PATH, LOG_LEVEL, MODEL_NAME, load_servers
from .errors import MCPChatClientError
from .llm_client import create_llm_client
from .mcp_servers import ToolGateway

logger = logging.getLogger(__name__)

QUIT_COMMAND = "quit"


async def chat_loop(orchestrator: ChatOrchestrator) -> bool:
    """Run an interactive CLI chat loop.

    Typing ``quit`` (any case), EOF or Ctrl-C ends the loop. An error raised
    while answering a query is logged and also ends the loop.

    Args:
        orchestrator: Orchestrator used to answer each query.

    Returns:
        bool: ``False`` if the loop ended because of an error.
    """
    print("\nMCP Client Started!")
    print(f"Type your queries or '{QUIT_COMMAND}' to exit.")

    try:
        while True:
            try:
                user_text = await asyncio.to_thread(input, "\nQuery: ")
            except (EOFError, KeyboardInterrupt):
                print("\nExiting.")
                break

            if not user_text.strip():
                continue
            if user_text.strip().lower() == QUIT_COMMAND:
                print("Bye.")
                break

            answer = await orchestrator.process_query(user_text)
            print("\n" + answer)
    except Exception:  # noqa: BLE001
        logger.exception("Error in chat loop")
        return False
    return True


async def run_session(
    config_path: Union[str, Path] = CONFIG_PATH,
    llm_client: Optional[OpenAI] = None,
    gateway: Optional[ToolGateway] = None,
) -> int:
    """Connect all servers, run the chat loop and clean up.

    Servers are connected one by one in configuration order; the first
    failure aborts startup. :meth:`ToolGateway.close_all` runs exactly once
    however the session ends.

    Unlike a client that always exits 0, a failed session is reported to
    the calling shell: config, startup and query errors all map to ``1``.

    Returns:
        int: Process exit status, ``0`` on a normal exit and ``1`` otherwise.
    """
    try:
        servers = load_servers(config_path)
    except MCPChatClientError:
        logger.exception("Could not load server configuration")
        return 1

    gateway = gateway or ToolGateway()
    try:
        for name, server in servers.items():
            logger.info("Server name: %s", name)
            logger.info("Server config: %s", server)
            await gateway.add_server(server)

        print("=== Available MCP tools ===")
        for t in gateway.tools:
            print(f"- {t.name}: {t.description or ''}")

        orchestrator = ChatOrchestrator(
            llm_client=llm_client or create_llm_client(),
            gateway=gateway,
            model_name=MODEL_NAME,
        )
        ok = await chat_loop(orchestrator)
    except Exception:  # noqa: BLE001
        logger.exception("MCP client startup failed")
        ok = False
    finally:
        await gateway.close_all()

    return 0 if ok else 1


def main() -> None:
    """Entry point for the mcp-chat-client CLI."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    sys.exit(asyncio.run(run_session()))
