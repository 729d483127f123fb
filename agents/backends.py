"""LLM backends behind one completion interface.

The digest stages only need three capabilities from a language model:

complete(template, variables) -> str:
    Render a prompt template and return the completion text.

complete_batch(template, variables_list) -> list[str]:
    Order-preserving batch. A failure on one item (bad template variables,
    provider error after retries) yields "" for that item only.

complete_structured(template, variables, output_type):
    Completion parsed as JSON and validated into ``output_type``.

Two providers implement it: OpenAIBackend and AnthropicBackend. Both wrap
a PydanticAI Agent with plain-text output; they differ in how the
underlying model and client are built.

Prompt templates use ``str.format`` placeholders (``{title}``). Literal
braces in a template must be doubled.
"""

import asyncio
import json
import logging
from typing import Any, TypeVar

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import TypeAdapter, ValidationError
from pydantic_ai import Agent
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.models.openai import OpenAIModel
from pydantic_ai.providers.anthropic import AnthropicProvider
from pydantic_ai.providers.openai import OpenAIProvider

from config import Config
from errors import ProviderError
from tools.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUPPORTED_PROVIDERS = ("anthropic", "openai")


def render_prompt(template: str, variables: dict[str, Any]) -> str:
    """Fill a prompt template.

    Raises:
        KeyError: If the template references a missing variable
        ValueError: If the template is malformed
    """
    return template.format(**variables)


def parse_json_response(text: str) -> Any:
    """Extract a JSON value from a model response.

    Handles markdown code fences and leading/trailing prose around the
    outermost array or object.

    Raises:
        ValueError: If no JSON value can be decoded
    """
    content = text.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (content.find("["), content.find("{")) if i != -1]
    end = max(content.rfind("]"), content.rfind("}"))
    if not starts or end == -1:
        raise ValueError(f"No JSON found in response: {content[:80]!r}")
    try:
        return json.loads(content[min(starts):end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in response: {e}") from e


class LLMBackend:
    """Completion interface over a PydanticAI model.

    Args:
        model: PydanticAI model instance or model string
        policy: Timeout and retry settings per completion
        max_concurrent: Concurrent completions in a batch
    """

    name = "llm"

    def __init__(self, model: Any, policy: RetryPolicy | None = None, max_concurrent: int = 8):
        self.policy = policy or RetryPolicy(timeout=180.0)
        self.max_concurrent = max_concurrent
        self._agent = Agent(model, output_type=str, retries=2)

    async def _run(self, prompt: str) -> str:
        try:
            result = await call_with_retry(
                lambda: self._agent.run(prompt),
                self.policy,
                retry_on=(Exception,),
            )
        except Exception as e:
            raise ProviderError(f"{self.name} completion failed ({type(e).__name__}): {e}") from e
        logger.debug("Completion done | backend=%s requests=%d chars=%d", self.name, result.usage().requests, len(result.output))
        return result.output

    async def complete(self, template: str, variables: dict[str, Any]) -> str:
        """Render ``template`` with ``variables`` and complete it.

        Raises:
            ProviderError: If the template cannot be rendered or the call fails
        """
        try:
            prompt = render_prompt(template, variables)
        except (KeyError, IndexError, ValueError) as e:
            raise ProviderError(f"Prompt template error: {e!r}") from e
        return await self._run(prompt)

    async def complete_batch(self, template: str, variables_list: list[dict[str, Any]]) -> list[str]:
        """Complete one prompt per variables dict, preserving order.

        Failed items come back as empty strings.
        """
        total = len(variables_list)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        logger.info("Batch completion started | backend=%s total=%d max_concurrent=%d", self.name, total, self.max_concurrent)

        async def complete_one(index: int, variables: dict[str, Any]) -> str:
            async with semaphore:
                try:
                    return await self.complete(template, variables)
                except ProviderError as e:
                    logger.error("Batch item %d/%d failed | backend=%s error=%s", index + 1, total, self.name, e)
                    return ""

        results = await asyncio.gather(*(complete_one(i, v) for i, v in enumerate(variables_list)))
        logger.info(
            "Batch completion done | backend=%s total=%d empty=%d",
            self.name, total, sum(1 for r in results if not r),
        )
        return list(results)

    async def complete_structured(self, template: str, variables: dict[str, Any], output_type: type[T]) -> T:
        """Complete and validate a JSON answer.

        Raises:
            ProviderError: If the call fails or the answer does not validate
        """
        text = await self.complete(template, variables)
        try:
            return TypeAdapter(output_type).validate_python(parse_json_response(text))
        except (ValueError, ValidationError) as e:
            raise ProviderError(f"{self.name} returned unusable JSON: {e}") from e


class OpenAIBackend(LLMBackend):
    """OpenAI chat models (or any OpenAI-compatible endpoint)."""

    name = "openai"

    @classmethod
    def from_config(cls, config: Config) -> "OpenAIBackend":
        client = AsyncOpenAI(
            api_key=config.openai_api_key or None,
            base_url=config.openai_base_url or None,
        )
        model = OpenAIModel(
            model_name=config.openai_model,
            provider=OpenAIProvider(openai_client=client),
        )
        logger.info("Using OpenAI model | model=%s", config.openai_model)
        return cls(
            model,
            policy=RetryPolicy.from_config(config, timeout=config.llm_timeout),
            max_concurrent=config.max_workers,
        )


class AnthropicBackend(LLMBackend):
    """Anthropic Claude models."""

    name = "anthropic"

    @classmethod
    def from_config(cls, config: Config) -> "AnthropicBackend":
        client = AsyncAnthropic(api_key=config.anthropic_api_key or None)
        model = AnthropicModel(
            config.anthropic_model,
            provider=AnthropicProvider(anthropic_client=client),
        )
        logger.info("Using Anthropic model | model=%s", config.anthropic_model)
        return cls(
            model,
            policy=RetryPolicy.from_config(config, timeout=config.llm_timeout),
            max_concurrent=config.max_workers,
        )


def create_backend(name: str, config: Config) -> LLMBackend:
    """Build the backend for a provider name ('openai' or 'anthropic')."""
    if name == "anthropic":
        return AnthropicBackend.from_config(config)
    if name == "openai":
        return OpenAIBackend.from_config(config)
    raise ValueError(f"Unknown LLM provider '{name}' - must be one of {SUPPORTED_PROVIDERS}")
