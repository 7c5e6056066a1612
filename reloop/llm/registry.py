from reloop.config.exceptions import ModelNotFoundError
from reloop.llm.base import Model


class ModelRegistry:
    """Models addressable by key, injected into the step executor."""

    def __init__(self, models: dict[str, Model] | None = None):
        self._models: dict[str, Model] = dict(models or {})

    def register(self, key: str, model: Model) -> None:
        self._models[key] = model

    def resolve(self, key: str) -> Model:
        try:
            return self._models[key]
        except KeyError:
            raise ModelNotFoundError(
                f"Model not found: {key}. Available: {sorted(self._models)}"
            ) from None

    def __contains__(self, key: str) -> bool:
        return key in self._models
