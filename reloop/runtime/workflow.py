"""
Chat workflow - the body a run executes for one chat turn.

    persist user message
    -> name the chat if it still has the default title
    -> create assistant placeholder (carries the run id)
    -> load history, leaving out interrupted placeholders
    -> route to an agent
    -> start chunk
    -> tool loop; each step writes the agent's progress note, then streams,
       and its parts are persisted as it completes
    -> progress note if the step budget ran out
    -> finish chunk
"""

from uuid import uuid4

from pydantic import BaseModel, Field

from reloop.config import StepConfig
from reloop.domain import (
    DataProgressChunk,
    DataProgressPart,
    FinishChunk,
    FinishReason,
    Message,
    MessageAdapter,
    MessageRole,
    Part,
    StartChunk,
    StopReason,
    prepare_history,
)
from reloop.runtime.agents import Agent, Router
from reloop.runtime.context import RunContext
from reloop.runtime.coordinator import RunCoordinator, RunHandle
from reloop.runtime.errors import RoutingError
from reloop.runtime.naming import ChatNamer
from reloop.runtime.step_executor import StepExecutor
from reloop.runtime.tool_loop import DEFAULT_MAX_STEPS, run_tool_loop
from reloop.storage import MessageStore
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


class ChatRunInput(BaseModel):
    """Serializable input of a chat run."""

    chat_id: str
    user_message: Message
    message_id: str = Field(default_factory=lambda: str(uuid4()))
    # Explicit step configuration; bypasses routing
    step: StepConfig | None = None
    max_steps: int | None = Field(default=None, ge=1)


class ChatRunOutput(BaseModel):
    message_id: str
    agent: str
    step_count: int
    stop_reason: StopReason
    finish_reason: FinishReason | None = None


class ChatWorkflow:
    def __init__(
        self,
        coordinator: RunCoordinator,
        messages: MessageStore,
        executor: StepExecutor,
        default_step: StepConfig | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        router: Router | None = None,
        agents: dict[str, Agent] | None = None,
        namer: ChatNamer | None = None,
    ):
        if router is not None and not agents:
            raise ValueError("A router needs agents to route to")
        self.coordinator = coordinator
        self.messages = messages
        self.executor = executor
        self.default_step = default_step or StepConfig()
        self.max_steps = max_steps
        self.router = router
        self.agents = dict(agents or {})
        self.namer = namer

    async def start(
        self,
        chat_id: str,
        user_message: Message,
        step: StepConfig | None = None,
        max_steps: int | None = None,
    ) -> RunHandle:
        """Start a run for a new user message. Returns without waiting for it."""
        if user_message.role != MessageRole.USER:
            raise ValueError(f"Expected a user message, got {user_message.role.value}")

        run_input = ChatRunInput(
            chat_id=chat_id,
            user_message=user_message,
            step=step,
            max_steps=max_steps,
        )
        return await self.coordinator.start(
            lambda ctx: self.run(ctx, run_input),
            chat_id=chat_id,
            message_id=run_input.message_id,
        )

    async def run(self, ctx: RunContext, run_input: ChatRunInput) -> ChatRunOutput:
        chat_id = run_input.chat_id
        message_id = run_input.message_id

        await self.messages.persist_message(chat_id, run_input.user_message)
        if self.namer is not None:
            await self.namer.name_chat(chat_id, run_input.user_message)
        await self.messages.create_message(chat_id, message_id, ctx.run_id)

        stored = await self.messages.get_chat_messages(chat_id)
        history, _ = prepare_history(stored)
        agent = await self.select_agent(history, run_input)

        await ctx.write(StartChunk(message_id=message_id))

        async def agent_step(model_messages):
            if agent.progress:
                await self.write_progress(ctx, chat_id, message_id, agent.progress)
            return await self.executor.execute(model_messages, agent.step, ctx.wire)

        async def persist_step(parts: list[Part]) -> None:
            await self.messages.insert_parts(chat_id, message_id, parts)

        result = await run_tool_loop(
            history,
            agent_step,
            max_steps=run_input.max_steps or self.max_steps,
            on_iteration_complete=persist_step,
        )

        if result.stop_reason == StopReason.MAX_STEPS:
            await self.write_progress(
                ctx,
                chat_id,
                message_id,
                f"Stopped after {result.step_count} steps: step limit reached.",
            )

        await ctx.write(
            FinishChunk(
                finish_reason=(result.finish_reason or FinishReason.OTHER).value,
                stop_reason=result.stop_reason.value,
            )
        )

        logger.info(
            "chat_run_finished",
            message_id=message_id,
            agent=agent.name,
            steps=result.step_count,
            stop_reason=result.stop_reason.value,
        )
        return ChatRunOutput(
            message_id=message_id,
            agent=agent.name,
            step_count=result.step_count,
            stop_reason=result.stop_reason,
            finish_reason=result.finish_reason,
        )

    async def select_agent(self, history: list[Message], run_input: ChatRunInput) -> Agent:
        """
        Raises:
            RoutingError: The router chose an agent that is not configured
        """
        if run_input.step is not None:
            return Agent(name="custom", step=run_input.step)
        if self.router is None:
            return Agent(name="default", step=self.default_step)

        decision = await self.router.route(MessageAdapter.to_model_messages(history))
        agent = self.agents.get(decision.next)
        if agent is None:
            raise RoutingError(
                f"Router chose unknown agent {decision.next!r}. Available: {sorted(self.agents)}"
            )
        logger.info("chat_routed", agent=agent.name, reasoning=decision.reasoning)
        return agent

    async def write_progress(
        self, ctx: RunContext, chat_id: str, message_id: str, text: str
    ) -> None:
        """Stream a progress note and persist it right away."""
        part = DataProgressPart(data={"text": text})
        await ctx.write(DataProgressChunk(data=part.data))
        await self.messages.insert_parts(chat_id, message_id, [part])

    async def load_history(self, chat_id: str) -> tuple[list[Message], str | None]:
        """Persisted conversation without interrupted placeholders, plus the run to resume."""
        return prepare_history(await self.messages.get_chat_messages(chat_id))


__all__ = ["ChatRunInput", "ChatRunOutput", "ChatWorkflow"]
