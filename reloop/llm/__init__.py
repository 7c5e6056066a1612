from reloop.llm.base import Model, StreamChunk
from reloop.llm.openai import OpenAIModel
from reloop.llm.registry import ModelRegistry

__all__ = ["Model", "StreamChunk", "OpenAIModel", "ModelRegistry"]
