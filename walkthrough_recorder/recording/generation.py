"""Walkthrough script and step generation with provider fallback.

Providers are tried in order (OpenAI, then Gemini in the default wiring).
Any provider error or unusable response falls through to the next provider,
and a fixed default ends the chain, so neither public operation raises.
"""

import json
from typing import Any, Callable, Optional, Sequence, TypeVar

import structlog
from pydantic import ValidationError

from walkthrough_recorder.core.providers import (
    BaseProvider,
    ChatMessage,
    GeminiProvider,
    OpenAIProvider,
    ProviderError,
)
from walkthrough_recorder.config import Settings
from walkthrough_recorder.recording.models import StepActionType, WalkthroughStep
from walkthrough_recorder.utils.prompts import (
    SCRIPT_SYSTEM_PROMPT,
    STEPS_SYSTEM_PROMPT,
    get_prompt,
)

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TARGET_APP = "Web Application"

DEFAULT_SCRIPT = "Welcome to this walkthrough. We'll guide you through each step."


class MalformedResponseError(ProviderError):
    """Provider output that is not JSON of the expected shape."""
    pass


def default_steps(target_url: str) -> list[WalkthroughStep]:
    """Skeleton plan used when no provider produced steps."""
    return [
        WalkthroughStep(
            step_number=1,
            action_type=StepActionType.NAVIGATE,
            target_element="url",
            instructions="Navigate to the target application",
            data=target_url,
        ),
        WalkthroughStep(
            step_number=2,
            action_type=StepActionType.TOOLTIP,
            target_element="body",
            instructions="Welcome! This walkthrough will guide you through the process step by step.",
            data="Follow each step carefully to complete the task successfully.",
        ),
        WalkthroughStep(
            step_number=3,
            action_type=StepActionType.CLICK,
            target_element="[data-main-action]",
            instructions="Look for the main action button and click it to begin",
        ),
    ]


def _load_json(content: str) -> Any:
    """Parse JSON from model output, unwrapping markdown code blocks."""
    if not content:
        raise MalformedResponseError("Empty response")

    if "```json" in content:
        content = content.split("```json")[1].split("```")[0]
    elif "```" in content:
        parts = content.split("```")
        if len(parts) >= 2:
            content = parts[1]

    try:
        return json.loads(content.strip())
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e


def parse_script(content: str) -> str:
    """Extract the narration from a ``{"script": "..."}`` response."""
    data = _load_json(content)
    script = data.get("script") if isinstance(data, dict) else None
    if not isinstance(script, str) or not script.strip():
        raise MalformedResponseError("Response has no script")
    return script.strip()


def parse_steps(content: str) -> list[WalkthroughStep]:
    """Extract steps from a bare array or an object with a ``steps`` array.

    Items that are not objects or have an unknown action type are dropped.
    Step numbers are reassigned 1..n in response order.
    """
    data = _load_json(content)
    if isinstance(data, dict):
        data = data.get("steps")
    if not isinstance(data, list):
        raise MalformedResponseError("Response has no steps array")

    steps = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            steps.append(WalkthroughStep.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping invalid step", error=str(e), item=item)

    if not steps:
        raise MalformedResponseError("Response contains no usable steps")

    return renumber_steps(steps)


def renumber_steps(steps: Sequence[WalkthroughStep]) -> list[WalkthroughStep]:
    return [
        step.model_copy(update={"step_number": index})
        for index, step in enumerate(steps, start=1)
    ]


class WalkthroughGenerator:
    """Fallback chain over AI providers.

    Unconfigured providers are skipped. Each provider gets exactly one
    attempt per call; there are no retries of the same provider.
    """

    def __init__(self, providers: Sequence[BaseProvider], temperature: float = 0.7):
        self.providers = list(providers)
        self.temperature = temperature
        self.log = logger.bind(component="generation")

    @property
    def active_providers(self) -> list[BaseProvider]:
        return [provider for provider in self.providers if provider.is_configured]

    async def _first_success(
        self,
        operation: str,
        messages: list[ChatMessage],
        parse: Callable[[str], T],
    ) -> Optional[T]:
        for provider in self.active_providers:
            try:
                response = await provider.chat(
                    messages,
                    temperature=self.temperature,
                    json_mode=True,
                )
                result = parse(response.content)
            except Exception as e:
                self.log.warning(
                    "Generation provider failed, falling back",
                    operation=operation,
                    provider=provider.provider_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            self.log.info(
                "Generation succeeded",
                operation=operation,
                provider=provider.provider_id,
                model=response.model,
            )
            return result

        return None

    async def generate_script(self, prompt: str, target_app: str = DEFAULT_TARGET_APP) -> str:
        """Generate a short narration script. Never raises."""
        try:
            messages = [
                ChatMessage.system(SCRIPT_SYSTEM_PROMPT),
                ChatMessage.user(
                    get_prompt("walkthrough_script", user_prompt=prompt, target_app=target_app)
                ),
            ]
            script = await self._first_success("generate_script", messages, parse_script)
        except Exception as e:
            self.log.error("Script generation failed unexpectedly", error=str(e))
            script = None

        if script is None:
            self.log.info("Using default narration script")
            return DEFAULT_SCRIPT
        return script

    async def generate_step_suggestions(
        self,
        description: str,
        target_app: str,
        target_url: str,
    ) -> list[WalkthroughStep]:
        """Generate an ordered step plan numbered 1..n. Never raises."""
        try:
            messages = [
                ChatMessage.system(STEPS_SYSTEM_PROMPT),
                ChatMessage.user(
                    get_prompt(
                        "walkthrough_steps",
                        description=description,
                        target_app=target_app,
                        target_url=target_url,
                    )
                ),
            ]
            steps = await self._first_success("generate_steps", messages, parse_steps)
        except Exception as e:
            self.log.error("Step generation failed unexpectedly", error=str(e))
            steps = None

        if steps is None:
            self.log.info("Using default step skeleton")
            return default_steps(target_url)
        return steps


def create_generator(settings: Settings) -> WalkthroughGenerator:
    """Build the OpenAI -> Gemini chain from settings."""
    openai_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
    gemini_key = settings.gemini_api_key.get_secret_value() if settings.gemini_api_key else None

    providers: list[BaseProvider] = [
        OpenAIProvider(
            api_key=openai_key,
            model=settings.openai_model,
            timeout=settings.ai_timeout_seconds,
        ),
        GeminiProvider(api_key=gemini_key, model=settings.gemini_model),
    ]
    generator = WalkthroughGenerator(providers, temperature=settings.ai_temperature)
    logger.info(
        "Walkthrough generator configured",
        providers=[p.provider_id for p in generator.active_providers],
    )
    return generator
