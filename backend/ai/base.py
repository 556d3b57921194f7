# backend/ai/base.py
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

log = logging.getLogger(__name__)


class ProviderError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    pass


class ProviderRateLimitError(ProviderError):
    pass


class ProviderResponseError(ProviderError):
    """Backend answered 2xx but the payload was not what we expected."""


def raise_for_provider_status(provider: str, resp: httpx.Response) -> None:
    code = resp.status_code
    if code < 400:
        return
    detail = resp.text[:300]
    if code in (401, 403):
        raise ProviderAuthError(f"{provider} rejected credentials ({code}): {detail}", code)
    if code == 429:
        raise ProviderRateLimitError(f"{provider} rate limited: {detail}", code)
    raise ProviderError(f"{provider} returned {code}: {detail}", code)


class LLMBackend:
    """
    One text-generation backend. Subclasses describe the HTTP request and how to
    pull the text back out of the JSON body; `complete` owns transport and errors.
    """

    name = "base"
    requires_key = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport  # tests plug an httpx.MockTransport in here

    def build_request(
        self, system: str, prompt: str, model: str, max_tokens: int
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        raise NotImplementedError

    def parse_response(self, body: Any) -> str:
        raise NotImplementedError

    async def complete(self, system: str, prompt: str, model: str, max_tokens: int) -> str:
        if self.requires_key and not self.api_key:
            raise ProviderAuthError(f"{self.name} API key not configured")

        url, headers, payload = self.build_request(system, prompt, model, max_tokens)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {self.name} failed: {e}") from e

        raise_for_provider_status(self.name, r)

        try:
            text = self.parse_response(r.json())
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProviderResponseError(f"Unexpected {self.name} payload: {e}") from e
        if not isinstance(text, str):
            raise ProviderResponseError(f"Unexpected {self.name} payload: text is {type(text).__name__}")
        return text
