from typing import Any

from pydantic import BaseModel

from .parts import ToolApproval, ToolState


class ToolResult(BaseModel):
    tool_name: str
    tool_call_id: str
    output: Any = None  # Raw execution result
    error: str | None = None
    is_success: bool = True
    approval: ToolApproval | None = None

    @property
    def state(self) -> ToolState:
        if self.approval is not None and not self.approval.approved:
            return ToolState.OUTPUT_DENIED
        if not self.is_success:
            return ToolState.OUTPUT_ERROR
        return ToolState.OUTPUT_AVAILABLE
