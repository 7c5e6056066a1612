"""
Tool decorator
"""

from typing import Callable

from .local import FunctionTool


def tool(
    func: Callable | None = None,
    *,
    name: str | None = None,
    requires_approval: bool = False,
):
    """
    Decorator to convert a function into a FunctionTool.

    Usable bare (``@tool``) or with options
    (``@tool(name="search", requires_approval=True)``).
    """

    def wrap(f: Callable) -> FunctionTool:
        return FunctionTool(f, name=name, requires_approval=requires_approval)

    if func is not None:
        return wrap(func)
    return wrap
