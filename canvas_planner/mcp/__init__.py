"""Workflow plan MCP tool surface + stdio server."""

from canvas_planner.mcp.server import create_server
from canvas_planner.mcp.tools import PlanMCPTools, ToolResult

__all__ = ["PlanMCPTools", "ToolResult", "create_server"]
