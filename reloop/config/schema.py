"""
Serializable execution configuration.

Step configuration is plain data: model and tool set are referenced by key
and re-resolved against the injected registries at every step, so a pending
run can be serialized and resumed in another process.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StepConfig(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    version: int = 1
    model: str = "default"
    system: str | None = None
    tool_set: str | None = None
    provider_options: dict[str, Any] = Field(default_factory=dict)
    timeout: float | None = Field(default=None, gt=0)
