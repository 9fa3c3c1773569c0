"""LiteLLM adapter - completion and embedding collaborators for any provider."""

from typing import Any

import litellm
from litellm import acompletion, aembedding

from strata.core.config import Settings
from strata.core.errors import ExternalServiceError
from strata.core.logging import get_logger
from strata.core.typing import MessageDict
from strata.llm.base import LLMConfig, LLMProvider, LLMResponse, TaskType
from strata.memory.vector import Embedding, EmbeddingProvider

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True


def _connection_params(api_key: str | None, api_base: str | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if api_key:
        params["api_key"] = api_key
    # Base URL for local/OpenAI-compatible models
    if api_base:
        params["api_base"] = api_base
    return params


class LiteLLMProvider(LLMProvider):
    """Chat completions through litellm.acompletion."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        defaults: LLMConfig | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.defaults = defaults or LLMConfig(model=model)

    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig | None = None,
        task: TaskType | None = None,
    ) -> LLMResponse:
        config = config or self.defaults
        if config.system_prompt:
            messages = [{"role": "system", "content": config.system_prompt}, *messages]

        params = {
            "model": config.model or self.model,
            "messages": messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            **_connection_params(self.api_key, self.api_base),
        }

        logger.debug(
            f"LiteLLM request: model={params['model']}, messages={len(messages)}, "
            f"task={task.value if task else None}"
        )

        try:
            response = await acompletion(**params)
        except Exception as e:
            logger.error(f"LiteLLM error for {params['model']}: {e}")
            raise

        message = response.choices[0].message
        usage = getattr(response, "usage", None)
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(
            f"LiteLLM response: model={response.model}, tokens={input_tokens}+{output_tokens}"
        )

        return LLMResponse(
            content=message.content or "",
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def health_check(self) -> bool:
        try:
            await self.complete(
                [{"role": "user", "content": "ping"}],
                LLMConfig(model=self.model, max_tokens=1, temperature=0.0),
            )
            return True
        except Exception as e:
            logger.warning(f"Health check failed for {self.model}: {e}")
            return False


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embeddings through litellm.aembedding."""

    def __init__(
        self,
        model: str,
        dimensions: int | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
    ):
        self.model = model
        self.requested_dimensions = dimensions
        self._observed_dimensions = 0
        self.api_key = api_key
        self.api_base = api_base

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def dimensions(self) -> int:
        """Requested dimensions, or those of the last embedding (0 if unknown)."""
        return self.requested_dimensions or self._observed_dimensions

    async def embed(self, text: str) -> Embedding:
        params: dict[str, Any] = {
            "model": self.model,
            "input": [text],
            **_connection_params(self.api_key, self.api_base),
        }
        if self.requested_dimensions:
            params["dimensions"] = self.requested_dimensions

        try:
            response = await aembedding(**params)
            item = response.data[0]
            vector = item["embedding"] if isinstance(item, dict) else item.embedding
        except Exception as e:
            logger.error(f"LiteLLM embedding error for {self.model}: {e}")
            raise ExternalServiceError("embedding", e) from e

        self._observed_dimensions = len(vector)
        return Embedding(vector=[float(x) for x in vector], model=self.model)


def create_llm(settings: Settings) -> LiteLLMProvider | None:
    """Summarization provider from settings, or None when no model is set."""
    if not settings.llm_model:
        return None
    return LiteLLMProvider(
        settings.llm_model,
        api_key=settings.llm_api_key or None,
        api_base=settings.llm_api_base or None,
    )


def create_embedding_provider(settings: Settings) -> LiteLLMEmbeddingProvider | None:
    """Embedding provider from settings, or None when no model is set."""
    if not settings.embedding_model:
        return None
    return LiteLLMEmbeddingProvider(
        settings.embedding_model,
        api_key=settings.llm_api_key or None,
        api_base=settings.llm_api_base or None,
    )
