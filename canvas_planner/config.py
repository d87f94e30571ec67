"""Configuration for the canvas planner tool server."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class Settings:
    """Immutable settings loaded from environment variables."""

    log_level: str = "WARNING"
    auto_layout: bool = False
    summary_prompt_chars: int = 100
    transport: str = "stdio"

    @classmethod
    def from_env(cls) -> Settings:
        log_level = os.getenv("CANVAS_PLANNER_LOG_LEVEL", "WARNING").upper()
        auto_layout = os.getenv("CANVAS_PLANNER_AUTO_LAYOUT", "false").strip().lower() in _TRUTHY
        summary_prompt_chars = int(os.getenv("CANVAS_PLANNER_SUMMARY_PROMPT_CHARS", "100"))
        transport = os.getenv("MCP_TRANSPORT", "stdio").strip().lower()
        return cls(
            log_level=log_level,
            auto_layout=auto_layout,
            summary_prompt_chars=summary_prompt_chars,
            transport=transport,
        )
