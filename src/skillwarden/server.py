"""
FastMCP server exposing the skillwarden tools.
"""

import inspect
import logging
from typing import Callable, List, Optional

from mcp.server.fastmcp.server import FastMCP

from .tools import (
    SkillAuditTool,
    SkillDiffTool,
    SkillPackAuditTool,
    SkillPinTool,
    SkillUnpinTool,
    SkillUpdatesTool,
)
from .tools_base import Tool
from .workspace import Workspace

logger = logging.getLogger(__name__)


class SkillwardenServer:
    """FastMCP-based skillwarden server."""

    def __init__(self, workspace: Optional[Workspace] = None):
        self.workspace = workspace
        self.tools: List[Tool] = [
            SkillPinTool(workspace),
            SkillUnpinTool(workspace),
            SkillDiffTool(workspace),
            SkillPackAuditTool(workspace),
            SkillAuditTool(workspace),
            SkillUpdatesTool(workspace),
        ]

    @staticmethod
    def _wrap_tool(tool: Tool) -> Callable[..., str]:
        """Plain function with ``apply``'s signature that routes through ``apply_ex``.

        FastMCP builds the input schema from the registered function's
        signature, so ``apply_ex``'s ``**kwargs`` must not leak into it.
        """

        def wrapper(**kwargs) -> str:
            return tool.apply_ex(log_call=True, catch_exceptions=True, **kwargs)

        wrapper.__signature__ = inspect.signature(tool.apply)
        wrapper.__name__ = tool.get_name()
        wrapper.__doc__ = tool.get_apply_docstring()
        return wrapper

    def create_fastmcp_server(self) -> FastMCP:
        """Create a FastMCP server instance with every tool registered."""
        mcp = FastMCP("skillwarden")
        for tool in self.tools:
            mcp.add_tool(
                self._wrap_tool(tool),
                name=tool.get_name(),
                description=tool.get_apply_docstring(),
            )
        logger.info(
            "Registered %d tools: %s", len(self.tools), ", ".join(t.get_name() for t in self.tools)
        )
        return mcp
