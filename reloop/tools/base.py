from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class Tool(ABC):
    name: str
    description: str
    args_schema: type[BaseModel] | None = None
    requires_approval: bool = False

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Run the tool with validated arguments."""
        pass

    @abstractmethod
    def to_openai_schema(self) -> dict:
        """OpenAI function-calling schema."""
        pass
