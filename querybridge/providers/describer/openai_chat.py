from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from querybridge.core.config import get_settings
from querybridge.core.errors import DescriberConfigError, DescriberError
from querybridge.providers.adapters.base import ColumnSchema
from querybridge.services.resilience import retry_async


logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a database expert who provides concise, accurate descriptions of database tables."
)
_MAX_DESCRIPTION_CHARS = 500


def build_prompt(table_name: str, columns: Sequence[ColumnSchema]) -> str:
    column_info = ", ".join(f"{column.name} ({column.type})" for column in columns)
    return (
        f'Generate a concise and accurate description for a database table named "{table_name}" '
        f"with the following columns: {column_info}. "
        "Describe the likely purpose of this table and what data it might store based on its name "
        "and column structure. Keep the description under 500 characters and focus on business purpose."
    )


class OpenAIChatDescriber:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self._client = client
        # A caller-supplied client belongs to the caller and is never closed here.
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per provider for connection pooling.
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def describe(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        api_key = self._settings.openai_api_key
        if not api_key:
            raise DescriberConfigError("OPENAI_API_KEY is required for the OpenAI describer")

        payload: dict[str, Any] = {
            "model": self._settings.openai_describer_model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(table_name, columns)},
            ],
            "max_tokens": 150,
            "temperature": 0.7,
        }
        headers = {"Authorization": f"Bearer {api_key}"}
        url = f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"
        client = self._get_client()

        async def _call() -> httpx.Response:
            response = await client.post(url, json=payload, headers=headers)
            if response.status_code >= 500:
                # Surface 5xx as an exception so the retry policy can see the status.
                error = DescriberError(f"OpenAI describer error: {response.status_code}")
                setattr(error, "status_code", response.status_code)
                raise error
            return response

        def _retryable(exc: Exception) -> bool:
            if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
                return True
            status = getattr(exc, "status_code", None)
            return isinstance(status, int) and status >= 500

        start = time.monotonic()
        try:
            response = await retry_async(_call, retryable=_retryable, name="describer.openai")
        except httpx.HTTPError as exc:
            raise DescriberError("OpenAI describer request failed") from exc

        latency_ms = (time.monotonic() - start) * 1000.0
        if response.status_code in {401, 403}:
            raise DescriberConfigError("OpenAI describer auth error: check OPENAI_API_KEY")
        if response.status_code >= 400:
            raise DescriberError(f"OpenAI describer error: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise DescriberError("OpenAI describer returned an unexpected payload") from exc

        logger.debug("describer_call_complete table=%s latency_ms=%.1f", table_name, latency_ms)
        return content.strip()[:_MAX_DESCRIPTION_CHARS]
