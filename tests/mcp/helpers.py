from __future__ import annotations

import json
from typing import Any

from mcp import Tool as MCPTool
from mcp.types import CallToolResult, TextContent

from agentloop.mcp import MCPServer


class FakeMCPServer(MCPServer):
    def __init__(self, tools: list[MCPTool] | None = None, server_name: str = "fake_mcp_server"):
        self.tools: list[MCPTool] = tools or []
        self.tool_calls: list[str] = []
        self.tool_results: list[str] = []
        self.server_name = server_name

    def add_tool(self, name: str, input_schema: dict[str, Any]):
        self.tools.append(MCPTool(name=name, inputSchema=input_schema))

    async def connect(self):
        pass

    async def cleanup(self):
        pass

    async def list_tools(self):
        return self.tools

    async def call_tool(self, tool_name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        self.tool_calls.append(tool_name)
        self.tool_results.append(f"result_{tool_name}_{json.dumps(arguments)}")
        return CallToolResult(
            content=[TextContent(text=self.tool_results[-1], type="text")],
        )

    @property
    def name(self) -> str:
        return self.server_name


class CrashingMCPServer(FakeMCPServer):
    async def call_tool(self, tool_name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        raise RuntimeError("connection lost")
