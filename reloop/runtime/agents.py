"""
Agents and routing.

An agent is a named, serializable step configuration plus the progress
note written before each of its steps. The router reads the conversation
and picks the agent that handles the next turn:

    research  - gathers context on the tweet topic, then asks for confirmation
    drafting  - drafts the tweet and checks its length with count_characters
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from reloop.config import StepConfig
from reloop.llm import ModelRegistry
from reloop.runtime.errors import NoResponseError, RoutingError
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

RESEARCH_PROMPT = """You are a research agent for a tweet authoring system.

Your job is to:
1. Analyze the user's tweet topic or idea
2. Research relevant information
3. Find authoritative sources and context
4. Summarize your findings clearly
5. Ask the user to confirm your understanding before proceeding

When researching:
- Look up companies, technologies, people, or concepts mentioned
- Find recent news or updates if relevant
- Cite your sources so the user can verify

After presenting your research, ask the user:
"Does this capture what you want to convey? Should I proceed to drafting the tweet?"

Do NOT draft the tweet yet - just gather and present research."""

DRAFTING_PROMPT = """You are a tweet drafting agent.

Based on the research already gathered in the conversation, your job is to:
1. Draft a compelling tweet
2. Use the count_characters tool to verify it's within Twitter's 280 character limit
3. Revise if needed to fit the limit while maintaining impact
4. Present the final tweet clearly for easy copying

Guidelines for great tweets:
- Be concise and punchy
- Lead with the hook
- Use line breaks strategically
- Avoid quotation marks around the tweet content
- No meta-commentary - just the tweet itself

After drafting, present the tweet in a code block for easy copying."""

ROUTER_PROMPT = """You are an orchestrator agent for a tweet author system.

Analyze the conversation and determine what should happen next:

1. If the user provides a draft tweet idea, prompt, or topic that needs research:
   - next is "research"

2. If research has been completed and the user confirms they want to proceed with drafting:
   - next is "drafting"

3. If the user has feedback or questions about the research, or wants more information:
   - next is "research"

4. If the conversation is just starting with a new tweet request:
   - next is "research"

Look at the conversation history to understand the current state.

Respond with a JSON object only:
{"next": "research" | "drafting", "reasoning": "<brief explanation of why this route was chosen>"}"""


class Agent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    step: StepConfig
    progress: str | None = None


class RouterDecision(BaseModel):
    next: str
    reasoning: str = ""


def builtin_agents(model: str = "default") -> dict[str, Agent]:
    """The research and drafting agents, both running on ``model``."""
    return {
        "research": Agent(
            name="research",
            step=StepConfig(model=model, system=RESEARCH_PROMPT, tool_set="research"),
            progress="Researching the topic...",
        ),
        "drafting": Agent(
            name="drafting",
            step=StepConfig(model=model, system=DRAFTING_PROMPT, tool_set="drafting"),
            progress="Drafting the tweet...",
        ),
    }


class Router(ABC):
    @abstractmethod
    async def route(self, messages: list[dict[str, Any]]) -> RouterDecision:
        """Pick the agent for the next turn from OpenAI-format history."""
        pass


class ModelRouter(Router):
    """Asks a model for a structured routing decision."""

    def __init__(
        self,
        models: ModelRegistry,
        model: str = "default",
        system_prompt: str = ROUTER_PROMPT,
    ):
        self.models = models
        self.model = model
        self.system_prompt = system_prompt

    async def route(self, messages: list[dict[str, Any]]) -> RouterDecision:
        """
        Raises:
            NoResponseError: The model call failed
            RoutingError: The response is not a valid decision
        """
        model = self.models.resolve(self.model)
        request = [{"role": "system", "content": self.system_prompt}, *messages]

        text = ""
        try:
            async for chunk in model.arun_stream(
                request, options={"response_format": {"type": "json_object"}}
            ):
                if chunk.content:
                    text += chunk.content
        except Exception as e:
            logger.error("router_failed", error=str(e), messages_count=len(messages), exc_info=True)
            raise NoResponseError(f"Router call failed: {e}") from e

        try:
            return RouterDecision.model_validate_json(text)
        except ValidationError as e:
            logger.error("router_invalid_decision", response=text)
            raise RoutingError(f"Router returned an invalid decision: {text!r}") from e


__all__ = [
    "Agent",
    "ModelRouter",
    "Router",
    "RouterDecision",
    "builtin_agents",
    "DRAFTING_PROMPT",
    "RESEARCH_PROMPT",
    "ROUTER_PROMPT",
]
