"""
Run execution: the stream bridge, step executor, tool loop and the
durable run coordinator.
"""

from reloop.runtime.agents import Agent, ModelRouter, Router, RouterDecision, builtin_agents
from reloop.runtime.assembler import MessageAssembler
from reloop.runtime.bridge import pipe
from reloop.runtime.context import RunContext
from reloop.runtime.coordinator import RunCoordinator, RunHandle, Workflow
from reloop.runtime.errors import (
    InvalidOffsetError,
    NoResponseError,
    RunError,
    RoutingError,
    RunNotFoundError,
    WireClosedError,
)
from reloop.runtime.event_log import RunEventLog
from reloop.runtime.naming import ChatNamer
from reloop.runtime.step_executor import StepExecutor
from reloop.runtime.tool_loop import DEFAULT_MAX_STEPS, run_tool_loop
from reloop.runtime.wire import Sink, Wire
from reloop.runtime.workflow import ChatRunInput, ChatRunOutput, ChatWorkflow

__all__ = [
    # Bridge
    "Sink",
    "Wire",
    "pipe",
    # Steps
    "MessageAssembler",
    "StepExecutor",
    "run_tool_loop",
    "DEFAULT_MAX_STEPS",
    # Runs
    "RunContext",
    "RunCoordinator",
    "RunEventLog",
    "RunHandle",
    "Workflow",
    "ChatRunInput",
    "ChatRunOutput",
    "ChatWorkflow",
    # Agents
    "Agent",
    "ChatNamer",
    "ModelRouter",
    "Router",
    "RouterDecision",
    "builtin_agents",
    # Errors
    "RunError",
    "NoResponseError",
    "RunNotFoundError",
    "InvalidOffsetError",
    "WireClosedError",
    "RoutingError",
]
