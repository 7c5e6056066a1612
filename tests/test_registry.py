import pytest

from reloop.config import ModelNotFoundError, ToolSetNotFoundError
from reloop.llm import ModelRegistry
from reloop.tools import ToolRegistry
from reloop.tools.builtin import count_characters
from tests.mocks import ScriptedModel, echo


def test_builtin_tool_sets():
    registry = ToolRegistry.with_builtins()

    assert registry.list_available() == ["drafting", "research"]
    assert [t.name for t in registry.resolve("drafting")] == ["count_characters"]
    assert registry.resolve("research") == []


def test_no_tool_set_means_no_tools():
    assert ToolRegistry().resolve(None) == []


def test_unknown_tool_set():
    with pytest.raises(ToolSetNotFoundError):
        ToolRegistry().resolve("web")


def test_duplicate_tool_names_are_rejected():
    with pytest.raises(ValueError):
        ToolRegistry({"dupes": [echo, echo]})


def test_model_registry():
    model = ScriptedModel()
    registry = ModelRegistry({"default": model})

    assert registry.resolve("default") is model
    assert "default" in registry
    with pytest.raises(ModelNotFoundError):
        registry.resolve("other")


@pytest.mark.asyncio
async def test_count_characters_within_limit():
    result = await count_characters.execute(text="hello world")

    assert result["characterCount"] == 11
    assert result["characterCountWithoutSpaces"] == 10
    assert result["remainingCharacters"] == 269
    assert result["isWithinLimit"] is True
    assert result["status"] == "11/280 characters (269 remaining)"


@pytest.mark.asyncio
async def test_count_characters_over_limit():
    result = await count_characters.execute(text="x" * 300)

    assert result["isWithinLimit"] is False
    assert result["remainingCharacters"] == -20
    assert result["status"] == "300/280 characters (20 over limit)"
