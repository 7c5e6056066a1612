"""
Unified tool executor.
"""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable
from uuid import uuid4

from pydantic import ValidationError

from reloop.domain import ToolApproval, ToolResult
from reloop.tools.base import Tool
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

# (tool_name, args) -> (approved, reason)
ApprovalHandler = Callable[[str, dict[str, Any]], Awaitable[tuple[bool, str | None]]]


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Decode OpenAI-style JSON arguments. Raises ValueError when malformed."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON arguments: {e}") from e
    if not isinstance(args, dict):
        raise ValueError("Tool arguments must be a JSON object")
    return args


class ToolExecutor:
    """Executes tool calls; application failures become error results, never exceptions."""

    def __init__(self, tools: list[Tool], approval_handler: ApprovalHandler | None = None):
        self.tools_map = {t.name: t for t in tools}
        self.approval_handler = approval_handler

    async def execute(self, tool_call: dict[str, Any]) -> ToolResult:
        """
        Execute a single tool call.

        Args:
            tool_call: OpenAI format tool call

        Returns:
            ToolResult: Tool execution result
        """
        fn_name = tool_call.get("function", {}).get("name")
        raw_args = tool_call.get("function", {}).get("arguments")
        call_id = tool_call.get("id")
        start_time = time.time()

        if not fn_name:
            return self._create_error_result(call_id, "unknown", "Tool name missing in tool call")

        tool = self.tools_map.get(fn_name)
        if not tool:
            return self._create_error_result(call_id, fn_name, f"Tool {fn_name} not found")

        try:
            args = parse_arguments(raw_args)
        except ValueError as e:
            return self._create_error_result(call_id, fn_name, str(e))

        if tool.args_schema is not None:
            try:
                args = tool.args_schema.model_validate(args).model_dump()
            except ValidationError as e:
                return self._create_error_result(call_id, fn_name, f"Invalid arguments: {e}")

        if tool.requires_approval:
            approval = await self._request_approval(fn_name, args)
            if not approval.approved:
                logger.info("tool_call_denied", tool_name=fn_name, tool_call_id=call_id)
                return ToolResult(
                    tool_name=fn_name,
                    tool_call_id=call_id,
                    error=approval.reason,
                    is_success=False,
                    approval=approval,
                )

        try:
            logger.debug("executing_tool", tool_name=fn_name, tool_call_id=call_id)
            output = await tool.execute(**args)
        except Exception as e:
            logger.error(
                "tool_execution_exception",
                tool_name=fn_name,
                tool_call_id=call_id,
                error=str(e),
                exc_info=True,
            )
            return self._create_error_result(call_id, fn_name, f"Tool execution failed: {e}")

        logger.debug(
            "tool_execution_completed",
            tool_name=fn_name,
            duration=time.time() - start_time,
        )
        return ToolResult(tool_name=fn_name, tool_call_id=call_id, output=output)

    async def execute_batch(self, tool_calls: list[dict[str, Any]]) -> list[ToolResult]:
        """
        Execute multiple tool calls concurrently.

        Returns:
            list[ToolResult]: Results in the order of ``tool_calls``
        """
        tasks = [self.execute(tc) for tc in tool_calls]
        return await asyncio.gather(*tasks)

    async def _request_approval(self, tool_name: str, args: dict[str, Any]) -> ToolApproval:
        approval_id = str(uuid4())
        if self.approval_handler is None:
            return ToolApproval(id=approval_id, approved=False, reason="No approval handler configured")
        approved, reason = await self.approval_handler(tool_name, args)
        return ToolApproval(id=approval_id, approved=approved, reason=reason)

    def _create_error_result(self, call_id: str, tool_name: str, error: str) -> ToolResult:
        """Create error result."""
        return ToolResult(
            tool_name=tool_name,
            tool_call_id=call_id,
            error=error,
            is_success=False,
        )


__all__ = ["ApprovalHandler", "ToolExecutor", "parse_arguments"]
