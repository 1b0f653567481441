"""Core query logic for the MCP chat client.

This module defines :class:`ChatOrchestrator`, which answers a single user
query with at most one tool call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from openai import OpenAI, OpenAIError

from .errors import ChatApiError
from .mcp_servers import ToolGateway, parse_arguments

logger = logging.getLogger(__name__)
MAX_TOKENS = 500
TOOL_LOG_PREVIEW_LIMIT = 200


def _preview_text(text: str, limit: int = TOOL_LOG_PREVIEW_LIMIT) -> str:
    """Create a single-line preview for logging."""
    text = text.replace("\n", " ").strip()
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...(truncated)..."


class ChatOrchestrator:
    """Runs the request/response cycle for one query at a time.

    Args:
        llm_client: OpenAI-compatible LLM client.
        gateway: Tool gateway holding the merged catalog.
        model_name: Name of the model to use.
        max_tokens: Response length cap for every completion.
    """

    def __init__(
        self,
        llm_client: OpenAI,
        gateway: ToolGateway,
        model_name: str,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self.llm_client = llm_client
        self.gateway = gateway
        self.model_name = model_name
        self.max_tokens = max_tokens

    def _complete(self, messages: List[Dict[str, Any]], tools: List[dict]) -> Any:
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "stop": None,
        }
        if tools:
            kwargs["tools"] = tools
        try:
            resp = self.llm_client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            logger.error("Chat completion failed: %s", exc)
            raise ChatApiError(f"Chat completion failed: {exc}") from exc
        return resp.choices[0].message

    async def process_query(self, query: str) -> str:
        """Answer ``query``, running at most one tool call.

        1. Send the user's question with the full tool catalog.
        2. If the model answers directly, return that answer.
        3. Otherwise run the first requested tool call, add its result as a
           ``role="tool"`` message and ask again without tools.

        Raises:
            ArgumentParseError: If the tool call arguments are not a JSON
                object. No tool is called in that case.
            ToolInvocationError: If the tool call fails.
            ChatApiError: If either completion request fails.
        """
        messages: List[Dict[str, Any]] = [{"role": "user", "content": query}]

        msg = self._complete(messages, self.gateway.openai_tools())
        tool_calls = msg.tool_calls or []
        if not tool_calls:
            return msg.content or ""

        if len(tool_calls) > 1:
            logger.debug("Ignoring %d extra tool call(s)", len(tool_calls) - 1)

        tc = tool_calls[0]
        tool_name = tc.function.name
        raw_args = tc.function.arguments
        args = parse_arguments(raw_args)

        logger.info("[Calling tool %s with args %s]", tool_name, raw_args)
        tool_output = await self.gateway.call_tool(tool_name, args)
        logger.info("Tool result: %s -> %s", tool_name, _preview_text(tool_output))

        messages.append(
            {
                "role": "assistant",
                "content": msg.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tool_name,
                            "arguments": raw_args or "{}",
                        },
                    }
                ],
            }
        )
        messages.append(
            {"role": "tool", "tool_call_id": tc.id, "content": tool_output}
        )

        second = self._complete(messages, [])
        return second.content or ""
