"""Top-level package for the MCP chat client.

This package provides:

- A server registry that loads MCP server definitions from ``mcp_servers.json``.
- A tool gateway that spawns each server over stdio and merges their tools.
- A chat orchestrator that answers a query with at most one tool call.
- A CLI entrypoint for interactive usage.
"""
