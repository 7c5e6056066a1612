import pytest
from sse_starlette.sse import AppStatus

from reloop.config import StepConfig
from reloop.container import create_services
from reloop.llm import ModelRegistry
from reloop.storage import InMemoryMessageStore, InMemoryRunStore
from reloop.tools import ToolRegistry
from tests.mocks import TEST_TOOLS, ScriptedModel


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first event loop."""
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def run_store():
    return InMemoryRunStore()


@pytest.fixture
def tool_registry():
    registry = ToolRegistry.with_builtins()
    registry.register_set("test", TEST_TOOLS)
    return registry


@pytest.fixture
def make_services(message_store, run_store, tool_registry):
    """Build services around a scripted model."""

    def _make(model: ScriptedModel, **kwargs):
        kwargs.setdefault("default_step", StepConfig(tool_set="test"))
        kwargs.setdefault("poll_interval", 0.01)
        return create_services(
            message_store,
            run_store,
            ModelRegistry({"default": model}),
            tool_registry,
            **kwargs,
        )

    return _make
