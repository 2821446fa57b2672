"""OpenAI-compatible client returning schema-constrained JSON.

Requests use the chat completions API with a ``json_schema`` response format.
The decoded object is checked against the same schema before it is returned.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
from typing import Any

import httpx

from inbox_a2a.config.schema import LLMConfig
from inbox_a2a.core.errors import ProviderError, ValidationError
from inbox_a2a.core.validation import validate_payload

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY = 10.0  # Maximum delay between retries in seconds
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_ERROR_BODY_SIZE = 10 * 1024


class LLMClient:
    """Structured-output LLM client.

    Args:
        config: LLM section of the configuration.
        api_key: API key. Read from ``config.api_key_env`` when omitted.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        config: LLMConfig,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._api_key = api_key or os.environ.get(config.api_key_env)
        if not self._api_key:
            raise ProviderError(
                f"API key not found. Set the {config.api_key_env} environment variable."
            )
        self._transport = transport
        self._max_retries = config.max_retries
        self._retry_backoff = config.retry_backoff
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_env(cls, config: LLMConfig) -> LLMClient | None:
        """Build a client when the API key variable is set, otherwise None."""
        if not os.environ.get(config.api_key_env):
            return None
        return cls(config)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = (self._retry_backoff ** attempt) + random.uniform(0, 1)
        return min(delay, MAX_RETRY_DELAY)

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        """POST a completion request with retries.

        Raises:
            ProviderError: On failure after all retries.
        """
        url = f"{self._config.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                client = await self._ensure_client()
                response = await client.post(url, headers=headers, json=body)

                if response.status_code in (401, 403):
                    raise ProviderError("Authentication failed. Check your API key.")

                if response.status_code in RETRYABLE_STATUS_CODES:
                    detail = response.content[:MAX_ERROR_BODY_SIZE].decode(errors="replace")
                    last_error = ProviderError(
                        f"API request failed with status {response.status_code}: {detail}"
                    )
                    if attempt < self._max_retries:
                        await asyncio.sleep(self._calculate_retry_delay(attempt))
                        continue
                    raise last_error

                if response.status_code >= 400:
                    detail = response.content[:MAX_ERROR_BODY_SIZE].decode(errors="replace")
                    raise ProviderError(
                        f"API request failed with status {response.status_code}: {detail}"
                    )

                return response.json()

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_error = e
                if attempt < self._max_retries:
                    await asyncio.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise ProviderError(
                    f"LLM request failed after {self._max_retries + 1} attempts: {e}"
                ) from e
            except httpx.HTTPError as e:
                raise ProviderError(f"HTTP error occurred: {e}") from e

        raise ProviderError("Request failed unexpectedly") from last_error

    async def complete_json(
        self,
        system: str,
        prompt: str,
        schema: dict[str, Any],
        schema_name: str,
    ) -> dict[str, Any]:
        """Ask the model for an object matching ``schema``.

        Returns:
            The decoded object.

        Raises:
            ProviderError: If the request fails or the output does not match.
        """
        body = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
        }
        data = await self._post(body)

        try:
            content = data["choices"][0]["message"]["content"]
            result = json.loads(content)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise ProviderError(f"Malformed {schema_name} response: {e}") from e

        try:
            validate_payload(result, schema, schema_name)
        except ValidationError as e:
            raise ProviderError(e.message) from e

        logger.debug("%s -> %s", schema_name, result)
        return result
