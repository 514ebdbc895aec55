import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from jargon_api.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Generated text plus the token usage reported by the API."""
    text: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class LLMClient:
    """Chat-completion client for the OpenAI API with an explicit lifecycle."""

    def __init__(self, api_key: Optional[str], timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            api_key: OpenAI API key. Without one every call fails with UpstreamError.
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self._http_client = httpx.AsyncClient(timeout=timeout)
        self._client = AsyncOpenAI(
            api_key=api_key or "missing",
            http_client=self._http_client,
            max_retries=0,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        """
        Request one chat completion.

        Raises:
            UpstreamError: the API rejected the request or could not be reached.
                status_code carries the upstream HTTP status when there is one.
        """
        if not self.configured:
            raise UpstreamError("API key is not configured")

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APIStatusError as e:
            logger.error(f"[LLM] {model} returned {e.status_code}: {e.message}")
            raise UpstreamError(self._error_message(e), status_code=e.status_code) from e
        except APIConnectionError as e:
            logger.error(f"[LLM] Could not reach the API: {e}")
            raise UpstreamError(str(e) or "connection failed") from e
        except APIError as e:
            logger.error(f"[LLM] API error: {e}")
            raise UpstreamError(e.message) from e

        if not response.choices:
            raise UpstreamError("response contained no choices")

        usage = response.usage
        return Completion(
            text=(response.choices[0].message.content or "").strip(),
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )

    @staticmethod
    def _error_message(error: APIStatusError) -> str:
        body = error.body
        if isinstance(body, dict):
            detail = body.get("error", body)
            if isinstance(detail, dict) and detail.get("message"):
                return detail["message"]
        return error.message

    async def aclose(self) -> None:
        await self._client.close()
        await self._http_client.aclose()
