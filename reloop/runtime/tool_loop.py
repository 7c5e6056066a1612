"""
Tool loop controller.

Drives steps until the model stops requesting tools or the step budget is
spent. History is converted to model messages afresh before every step.
"""

from typing import Any, Awaitable, Callable

from reloop.domain import (
    Message,
    MessageAdapter,
    Part,
    StepResult,
    StopReason,
    ToolLoopResult,
)
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_STEPS = 20

StepFn = Callable[[list[dict[str, Any]]], Awaitable[StepResult]]
IterationHook = Callable[[list[Part]], Awaitable[None]]


async def run_tool_loop(
    history: list[Message],
    step: StepFn,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
    on_iteration_complete: IterationHook | None = None,
) -> ToolLoopResult:
    """
    Run steps until the model finishes or ``max_steps`` is reached.

    Args:
        history: Conversation so far, oldest first. Not modified.
        step: Executes one step against OpenAI-format messages
        max_steps: Step budget; reaching it is a normal stop
        on_iteration_complete: Awaited with each step's parts before the
            next step starts. Its failure fails the loop.

    Returns:
        ToolLoopResult: Accumulated parts, step count and stop reason
    """
    if max_steps < 1:
        raise ValueError(f"max_steps must be at least 1, got {max_steps}")

    history = list(history)
    parts: list[Part] = []
    step_count = 0

    while True:
        result = await step(MessageAdapter.to_model_messages(history))
        step_count += 1

        step_parts = result.message.parts
        if on_iteration_complete is not None:
            await on_iteration_complete(step_parts)

        parts.extend(step_parts)
        history.append(result.message)

        logger.debug(
            "tool_loop_step_finished",
            step=step_count,
            finish_reason=result.finish_reason.value,
            should_continue=result.should_continue,
        )

        if not result.should_continue:
            stop_reason = StopReason.FINISHED
            break
        if step_count >= max_steps:
            stop_reason = StopReason.MAX_STEPS
            logger.warning("tool_loop_step_budget_exhausted", max_steps=max_steps)
            break

    return ToolLoopResult(
        parts=parts,
        step_count=step_count,
        stop_reason=stop_reason,
        finish_reason=result.finish_reason,
    )


__all__ = ["DEFAULT_MAX_STEPS", "IterationHook", "StepFn", "run_tool_loop"]
