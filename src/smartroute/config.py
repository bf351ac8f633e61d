from __future__ import annotations

"""Static router configuration.

Values come from `config/router_config.yaml` (or the file named by the
`ROUTER_CONFIG` env variable) and fall back to the defaults below when the
file is missing. A couple of deployment knobs can also be overridden from
the environment, which `app.py` populates from `.env` via python-dotenv.
"""

import logging
import os
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config/router_config.yaml"
DEFAULT_WORKSPACE_URL = "http://127.0.0.1:8000/mcp"

logger = logging.getLogger(__name__)


class RateLimitConfig(BaseModel):
    max_requests: int = Field(gt=0)
    window_seconds: float = Field(gt=0)
    retry_after_seconds: float = Field(ge=0)


def default_rate_limits() -> Dict[str, RateLimitConfig]:
    return {
        "openai": RateLimitConfig(max_requests=3, window_seconds=60, retry_after_seconds=20),
        "anthropic": RateLimitConfig(max_requests=2, window_seconds=60, retry_after_seconds=30),
        "mcp": RateLimitConfig(max_requests=1, window_seconds=10, retry_after_seconds=5),
        # unknown keys land here, keep it the most conservative entry
        "default": RateLimitConfig(max_requests=1, window_seconds=10, retry_after_seconds=5),
    }


class ToolServerConfig(BaseModel):
    """One MCP server reachable over streamable HTTP."""

    id: str
    name: str = ""
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    tools: List[str] = Field(default_factory=list)  # service families advertised to the UI


def default_tool_servers(workspace_url: str = DEFAULT_WORKSPACE_URL) -> Dict[str, ToolServerConfig]:
    return {
        "google_workspace": ToolServerConfig(
            id="google_workspace",
            name="Google Workspace",
            url=workspace_url,
            tools=["gmail", "drive", "calendar", "sheets", "slides", "forms", "tasks", "chat", "search", "docs"],
        )
    }


class RouterConfig(BaseModel):
    rate_limits: Dict[str, RateLimitConfig] = Field(default_factory=default_rate_limits)
    default_rate_limit_key: str = "default"
    workspace_url: str = DEFAULT_WORKSPACE_URL
    tool_servers: Dict[str, ToolServerConfig] = Field(default_factory=default_tool_servers)
    tool_call_delay: float = Field(default=2.0, ge=0)
    workspace_max_steps: int = Field(default=20, gt=0)
    generic_max_steps: int = Field(default=10, gt=0)
    agent_temperature: float = 0.5
    model_timeout: float = Field(default=60.0, gt=0)
    tool_timeout: float = Field(default=30.0, gt=0)

    def enabled_tool_servers(self) -> List[ToolServerConfig]:
        return [s for s in self.tool_servers.values() if s.enabled]


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    url = os.getenv("WORKSPACE_MCP_URL")
    if url:
        raw["workspace_url"] = url
    delay = os.getenv("TOOL_CALL_DELAY")
    if delay:
        raw["tool_call_delay"] = float(delay)
    return raw


def load_config(path: str | None = None) -> RouterConfig:
    """Read the YAML config file, falling back to defaults when absent."""
    path = path or os.getenv("ROUTER_CONFIG", DEFAULT_CONFIG_PATH)
    try:
        with open(path, "r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or {}
    except FileNotFoundError:
        logger.info("[config] %s not found, using defaults", path)
        raw = {}

    raw = _apply_env_overrides(dict(raw))

    # Rate limits in the file extend the defaults rather than replacing them
    limits = default_rate_limits()
    limits.update({k: RateLimitConfig(**v) for k, v in (raw.pop("rate_limits", None) or {}).items()})
    raw["rate_limits"] = limits

    servers = raw.pop("tool_servers", None)
    if servers is None:
        raw["tool_servers"] = default_tool_servers(raw.get("workspace_url", DEFAULT_WORKSPACE_URL))
    else:
        raw["tool_servers"] = {sid: {"id": sid, **cfg} for sid, cfg in servers.items()}

    config = RouterConfig(**raw)
    logger.debug(
        "[config] rate_limits=%s tool_servers=%s",
        sorted(config.rate_limits),
        sorted(config.tool_servers),
    )
    return config
