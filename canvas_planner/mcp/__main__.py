"""Entry point: ``python -m canvas_planner.mcp`` (or ``canvas-planner-mcp``)

Starts the workflow plan MCP server over stdio (default) so agent hosts can
discover the validate / compile / patch / summary tools.

Environment variables
---------------------
CANVAS_PLANNER_LOG_LEVEL             Python log level (default ``WARNING``).
CANVAS_PLANNER_AUTO_LAYOUT           Default for compile ``auto_layout`` (default ``false``).
CANVAS_PLANNER_SUMMARY_PROMPT_CHARS  Prompt preview length in summaries (default ``100``).
MCP_TRANSPORT                        ``stdio`` (default) or ``sse`` (not yet implemented).
"""

from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from canvas_planner.config import Settings  # noqa: E402
from canvas_planner.mcp.server import create_server  # noqa: E402
from canvas_planner.mcp.tools import PlanMCPTools  # noqa: E402


async def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    server = create_server(PlanMCPTools(settings))

    if settings.transport == "sse":
        raise NotImplementedError("SSE transport not yet wired, use stdio")

    from mcp.server.stdio import stdio_server  # noqa: E402

    async with stdio_server() as (read_stream, write_stream):
        init_options = server.create_initialization_options()
        await server.run(read_stream, write_stream, init_options)


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
