"""Tool host adapter backed by the GitHub MCP server over stdio.

The adapter owns the single MCP session of a run. It is acquired once, shared
serially by discovery and every repository conversation, and released on every
exit path (use it as an async context manager).
"""

import json
import os
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

from loguru import logger
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from githerald.config import DEFAULT_MCP_IMAGE
from githerald.tools.catalog import ToolCatalog, ToolMappingError, default_catalog
from githerald.types.conversation import ContentSegment, ToolResult

TOKEN_ENV_VAR = "GITHUB_PERSONAL_ACCESS_TOKEN"

SERVER_NOT_FOUND_HELP = (
    "GitHub MCP server not found. Install it from https://github.com/github/github-mcp-server, "
    "set GITHUB_MCP_BINARY_PATH (or mcp.binaryPath in the config) to the server binary, "
    "or make sure docker is available on PATH."
)


class ToolHostConnectionError(Exception):
    """Raised when the MCP session cannot be established."""


def build_server_parameters(
    token: str, binary_path: Optional[str] = None, docker_image: str = DEFAULT_MCP_IMAGE
) -> StdioServerParameters:
    """Build the command used to launch the GitHub MCP server.

    A local binary is used when ``binary_path`` is given, docker otherwise.
    The token is passed through the environment, never on the command line.
    """
    env = {key: value for key, value in os.environ.items() if value is not None}
    env[TOKEN_ENV_VAR] = token

    if binary_path:
        return StdioServerParameters(command=binary_path, args=["stdio"], env=env)

    return StdioServerParameters(
        command="docker",
        args=["run", "-i", "--rm", "-e", TOKEN_ENV_VAR, docker_image],
        env=env,
    )


def _segment_from_content(item: Any) -> ContentSegment:
    kind = getattr(item, "type", "unknown")
    text = getattr(item, "text", None)
    if text is None:
        resource = getattr(item, "resource", None)
        text = getattr(resource, "text", None)
    if text is None:
        text = item.model_dump_json() if hasattr(item, "model_dump_json") else json.dumps(item, default=str)
    return ContentSegment(kind=kind, text=text)


class ToolHostAdapter:
    """Invokes abstract tools on the MCP server and normalizes their results."""

    def __init__(
        self,
        server: StdioServerParameters,
        catalog: Optional[ToolCatalog] = None,
        validate_catalog: bool = True,
    ):
        self.server = server
        self.catalog = catalog or default_catalog()
        self.validate_catalog = validate_catalog
        self.available_tools: List[str] = []
        self._session: Optional[ClientSession] = None
        self._exit_stack: Optional[AsyncExitStack] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def __aenter__(self) -> "ToolHostAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Start the server process and complete the MCP handshake."""
        if self._session is not None:
            return

        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(self.server))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except FileNotFoundError as e:
            await stack.aclose()
            raise ToolHostConnectionError(SERVER_NOT_FOUND_HELP) from e
        except Exception as e:
            await stack.aclose()
            if "not found" in str(e).lower() or "ENOENT" in str(e):
                raise ToolHostConnectionError(SERVER_NOT_FOUND_HELP) from e
            raise ToolHostConnectionError(f"Could not connect to the GitHub MCP server: {e}") from e

        self._exit_stack = stack
        self._session = session
        logger.info(f"Connected to tool host via {self.server.command}")

        self.available_tools = await self.list_available_tools()
        if self.available_tools:
            logger.debug(f"Available MCP tools: {', '.join(self.available_tools)}")
            if self.validate_catalog:
                try:
                    self.catalog.validate(self.available_tools)
                except ToolMappingError:
                    await self.disconnect()
                    raise

    async def list_available_tools(self) -> List[str]:
        """Best effort listing of the host's tool names; empty when unsupported."""
        if self._session is None:
            return []
        try:
            response = await self._session.list_tools()
        except Exception as e:
            logger.warning(f"Could not list MCP tools (this is okay): {e}")
            return []
        return [tool.name for tool in getattr(response, "tools", []) or []]

    async def invoke(self, abstract_name: str, arguments: Dict[str, Any]) -> ToolResult:
        """Run one abstract tool call. Never raises; failures come back as error envelopes."""
        if self._session is None:
            return ToolResult.error(f"Error calling tool {abstract_name}: MCP client not connected")

        try:
            concrete_name, concrete_args = self.catalog.resolve(abstract_name, arguments)
        except Exception as e:
            return ToolResult.error(f"Error calling tool {abstract_name}: {e}")

        logger.debug(f"MCP: calling {concrete_name} with args: {json.dumps(concrete_args, default=str)}")

        try:
            result = await self._session.call_tool(concrete_name, arguments=concrete_args)
        except Exception as e:
            logger.error(f"Error calling tool {abstract_name}: {e}")
            return ToolResult.error(f"Error calling tool {abstract_name}: {e}")

        try:
            segments = [_segment_from_content(item) for item in (result.content or [])]
        except Exception as e:
            return ToolResult.error(f"Error calling tool {abstract_name}: malformed response ({e})")

        is_error = bool(getattr(result, "isError", False))
        if is_error and not segments:
            segments = [ContentSegment(kind="text", text=f"Tool {abstract_name} failed without details")]
        return ToolResult(segments=segments, is_error=is_error)

    async def disconnect(self) -> None:
        """Close the session and stop the server. Safe to call any number of times."""
        stack, self._exit_stack = self._exit_stack, None
        self._session = None
        if stack is not None:
            await stack.aclose()
            logger.debug("Disconnected from tool host")
