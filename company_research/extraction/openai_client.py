"""
OpenAI Chat Completions

ExtractionProvider backed by the OpenAI chat completions endpoint,
called through the shared HttpGateway (pacing, retries, cache).
Returns the raw message text; parsing is the extractor's job.
"""

import logging
from typing import Optional

from ..config import EXTRACTION, PROCESSING, ExtractionConfig, ProcessingConfig
from ..errors import ConfigurationError, NoResponse
from ..gateway import HttpGateway

logger = logging.getLogger(__name__)


class OpenAIExtractionProvider:
    """
    Chat completion calls over the HttpGateway.

    Args:
        gateway: Shared HTTP gateway.
        api_key: OpenAI API key. Required.
        config: Model, base URL and context window.
        processing: Timeout and cache TTL settings.

    Raises:
        ConfigurationError: If the API key is empty.
    """

    def __init__(
        self,
        gateway: HttpGateway,
        api_key: str,
        config: ExtractionConfig = EXTRACTION,
        processing: ProcessingConfig = PROCESSING,
    ):
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key not set. Add to credentials/openai_api_key.txt or OPENAI_API_KEY"
            )
        self.gateway = gateway
        self.api_key = api_key
        self.config = config
        self.processing = processing
        self.context_window = config.context_window_tokens
        self.last_usage: Optional[dict] = None

    @property
    def completions_url(self) -> str:
        return self.config.base_url.rstrip("/") + "/chat/completions"

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
        cache_ttl: Optional[int] = None,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The request, including the search context.
            max_tokens: Response token budget.
            temperature: Sampling temperature.
            json_mode: Ask for a JSON object response.
            cache_ttl: Response cache TTL; defaults to the medium TTL.

        Raises:
            NoResponse: The API answered without any choices.
        """
        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = self.gateway.post(
            self.completions_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.processing.extraction_timeout,
            cache_ttl=self.processing.cache_ttl_medium if cache_ttl is None else cache_ttl,
            operation_name=f"openai_complete({self.config.model})",
        )

        choices = (data or {}).get("choices") or []
        if not choices:
            raise NoResponse()

        self.last_usage = data.get("usage")
        if self.last_usage:
            logger.debug(
                "OpenAI usage: %s prompt + %s completion tokens",
                self.last_usage.get("prompt_tokens"), self.last_usage.get("completion_tokens"),
            )

        content = (choices[0].get("message") or {}).get("content")
        if not content or not content.strip():
            raise NoResponse("empty message content in completion; response format unusable")
        return content

    def test_connection(self) -> bool:
        """Send a one-token prompt; True when OpenAI answered."""
        self.complete(
            "Reply with the word ok.", "ok",
            max_tokens=5, temperature=0.0, json_mode=False, cache_ttl=0,
        )
        return True
