"""
Service wiring.

``build_services`` assembles stores, registries, the step executor and the
run coordinator from settings. The API builds them once at startup; tests
construct ``Services`` directly with in-memory stores and mock models.
"""

import os
from dataclasses import dataclass, field

from reloop.config import ReloopSettings, StepConfig
from reloop.llm import ModelRegistry, OpenAIModel
from reloop.runtime import (
    Agent,
    ChatNamer,
    ChatWorkflow,
    ModelRouter,
    Router,
    RunCoordinator,
    StepExecutor,
    builtin_agents,
)
from reloop.storage import InMemoryMessageStore, InMemoryRunStore, MessageStore, RunStore
from reloop.tools import ApprovalHandler, ToolRegistry
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    message_store: MessageStore
    run_store: RunStore
    coordinator: RunCoordinator
    workflow: ChatWorkflow
    closers: list = field(default_factory=list)

    async def aclose(self) -> None:
        await self.coordinator.shutdown()
        for close in self.closers:
            await close()


def create_services(
    message_store: MessageStore,
    run_store: RunStore,
    models: ModelRegistry,
    tools: ToolRegistry,
    *,
    default_step: StepConfig | None = None,
    max_steps: int = 20,
    step_timeout: float | None = None,
    poll_interval: float = 0.25,
    approval_handler: ApprovalHandler | None = None,
    router: Router | None = None,
    agents: dict[str, Agent] | None = None,
    namer: ChatNamer | None = None,
) -> Services:
    coordinator = RunCoordinator(run_store, poll_interval=poll_interval)
    executor = StepExecutor(
        models, tools, approval_handler=approval_handler, default_timeout=step_timeout
    )
    workflow = ChatWorkflow(
        coordinator,
        message_store,
        executor,
        default_step=default_step,
        max_steps=max_steps,
        router=router,
        agents=agents,
        namer=namer,
    )
    return Services(
        message_store=message_store,
        run_store=run_store,
        coordinator=coordinator,
        workflow=workflow,
    )


def build_models(settings: ReloopSettings) -> ModelRegistry:
    registry = ModelRegistry()
    if settings.openai_api_key is None and not os.getenv("OPENAI_API_KEY"):
        logger.warning("no_model_configured", reason="OpenAI API key not set")
        return registry

    registry.register(
        "default",
        OpenAIModel(
            id=f"openai/{settings.default_model}",
            name=settings.default_model,
            model_name=settings.default_model,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            max_attempts=settings.llm_max_attempts,
        ),
    )
    return registry


def build_services(settings: ReloopSettings) -> Services:
    """Services for the configured storage backend."""
    closers = []
    if settings.storage == "mongo":
        from reloop.storage.mongo import MongoDatabase, MongoMessageStore, MongoRunStore

        database = MongoDatabase(settings.mongo_uri, settings.mongo_db_name)
        message_store: MessageStore = MongoMessageStore(database)
        run_store: RunStore = MongoRunStore(database)
        closers.append(database.close)
    else:
        message_store = InMemoryMessageStore()
        run_store = InMemoryRunStore()

    models = build_models(settings)
    agents = builtin_agents()
    has_model = "default" in models
    router = ModelRouter(models) if settings.routing and has_model else None
    namer = ChatNamer(models, message_store) if settings.chat_naming and has_model else None

    services = create_services(
        message_store,
        run_store,
        models,
        ToolRegistry.with_builtins(),
        # Without routing every turn goes to the drafting agent
        default_step=agents["drafting"].step,
        max_steps=settings.max_steps,
        step_timeout=settings.step_timeout,
        poll_interval=settings.run_poll_interval,
        router=router,
        agents=agents,
        namer=namer,
    )
    services.closers.extend(closers)

    logger.info(
        "services_built",
        storage=settings.storage,
        max_steps=settings.max_steps,
        routing=router is not None,
        chat_naming=namer is not None,
    )
    return services


__all__ = ["Services", "build_models", "build_services", "create_services"]
