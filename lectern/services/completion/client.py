"""HTTP client for the completion endpoint."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from lectern.config import settings
from lectern.exceptions import CompletionRequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResponse:
    text: str
    provider: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None


class CompletionClient:
    """POST a prompt to the completion endpoint and parse its JSON reply.

    Cancelling the awaiting task aborts the underlying request.
    """

    def __init__(
        self,
        url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.url = url or settings.completion_url
        self.timeout = timeout or settings.completion_timeout_seconds
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        model: str | None = None,
        provider: str | None = None,
    ) -> CompletionResponse:
        """
        Request a continuation.

        Raises:
            CompletionRequestError: On a non-2xx response or a network failure
        """
        payload: dict = {"prompt": prompt}
        if system:
            payload["system"] = system
        if model:
            payload["model"] = model
        if provider:
            payload["provider"] = provider

        async with self._client() as client:
            try:
                response = await client.post(self.url, json=payload)
            except httpx.HTTPError as e:
                raise CompletionRequestError(f"Completion request failed: {e}") from e

        if not response.is_success:
            raise CompletionRequestError(
                f"Completion failed with status {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json() or {}
        usage = data.get("usage") or {}
        return CompletionResponse(
            text=data.get("text") or "",
            provider=data.get("provider"),
            model=data.get("model"),
            input_tokens=usage.get("inputTokens"),
            output_tokens=usage.get("outputTokens"),
        )
