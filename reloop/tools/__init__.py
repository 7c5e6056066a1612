from reloop.tools.base import Tool
from reloop.tools.decorator import tool
from reloop.tools.executor import ApprovalHandler, ToolExecutor
from reloop.tools.local import FunctionTool
from reloop.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "FunctionTool",
    "tool",
    "ToolRegistry",
    "ToolExecutor",
    "ApprovalHandler",
]
