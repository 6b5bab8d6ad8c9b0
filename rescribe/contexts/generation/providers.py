"""
LLM provider abstraction for LaTeX generation.

Providers hold an ordered list of API keys and rotate to the next key when a call is
rejected with a rate-limit-class status (429 Too Many Requests, 413 Payload Too
Large). Any other failure abandons the provider so the chain can move on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import openai

from rescribe.contexts.generation.logger import _log_debug, _log_warning

RATE_LIMIT_STATUS_CODES = frozenset({413, 429})

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT_S = 90.0


class ProviderRole(str, Enum):
    """Position of a provider in the generation chain."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    FALLBACK = "fallback"


class ProviderError(Exception):
    """
    Normalized provider failure.

    Attributes:
        provider: Provider name (e.g., "groq/llama-3.3-70b-versatile")
        status_code: HTTP-like status code, None for transport errors
    """

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code in RATE_LIMIT_STATUS_CODES


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    key_index: int = 0


def parse_api_keys(*values: Optional[Any]) -> List[str]:
    """
    Merge API key settings into an ordered, de-duplicated list.

    Each value may be a comma-separated string, a list of strings, or empty.

    Example:
        >>> parse_api_keys("k1,k2", "k1", None)
        ['k1', 'k2']
    """
    keys: List[str] = []
    for value in values:
        if not value:
            continue
        items: Iterable[Any] = value.split(",") if isinstance(value, str) else value
        for item in items:
            key = str(item).strip()
            if key and key not in keys:
                keys.append(key)
    return keys


class LLMProvider(ABC):
    """
    Abstract base for LLM providers.

    Subclasses must:
    - Set _provider_prefix class attribute (e.g., "groq", "gemini")
    - Implement _call_api() for a single call with one API key, raising ProviderError
    """

    _provider_prefix: str

    name: str
    model: str

    def __init__(
        self,
        api_keys: List[str],
        model: str,
        role: ProviderRole,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT_S,
    ):
        self.api_keys = list(api_keys)
        self.role = role
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.update_model(model)

    def update_model(self, model: str):
        """Update the model and refresh the provider name."""
        self.model = model
        self.name = f"{self._provider_prefix}/{model}"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_keys)

    @abstractmethod
    async def _call_api(self, prompt: str, api_key: str) -> LLMResponse:
        """Make a single API call (no rotation). Implemented by subclasses."""

    async def generate(self, prompt: str) -> LLMResponse:
        """
        Generate a completion, rotating API keys on rate-limit errors.

        Raises:
            ProviderError: When no key is configured, a non-rate-limit error occurs,
                or every key was rate limited
        """
        if not self.api_keys:
            raise ProviderError(self.name, "No API key configured")

        for index, api_key in enumerate(self.api_keys):
            try:
                response = await self._call_api(prompt, api_key)
            except ProviderError as e:
                has_next = index < len(self.api_keys) - 1
                if e.is_rate_limited and has_next:
                    _log_warning(
                        f"{self.name} key {index + 1}/{len(self.api_keys)} rate limited "
                        f"(HTTP {e.status_code}), rotating to next key"
                    )
                    continue
                raise
            response.key_index = index
            _log_debug(f"{self.name} answered with key {index + 1}/{len(self.api_keys)}")
            return response

        # Unreachable: the last key either returns or re-raises
        raise ProviderError(self.name, "All API keys exhausted")


class GroqProvider(LLMProvider):
    """Groq chat completions through its OpenAI-compatible endpoint."""

    _provider_prefix = "groq"

    def __init__(
        self,
        api_keys: List[str],
        model: str = "llama-3.3-70b-versatile",
        role: ProviderRole = ProviderRole.PRIMARY,
        base_url: str = "https://api.groq.com/openai/v1",
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(api_keys, model, role, **kwargs)
        self.base_url = base_url
        self._http_client = http_client
        self._clients: Dict[str, openai.AsyncOpenAI] = {}

    def _client_for(self, api_key: str) -> openai.AsyncOpenAI:
        if api_key not in self._clients:
            self._clients[api_key] = openai.AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                http_client=self._http_client,
            )
        return self._clients[api_key]

    async def _call_api(self, prompt: str, api_key: str) -> LLMResponse:
        client = self._client_for(api_key)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise ProviderError(self.name, e.message, status_code=e.status_code) from e
        except openai.APIError as e:
            raise ProviderError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(self.name, "Empty completion")

        return LLMResponse(content=content.strip(), model=self.model)


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent REST endpoint."""

    _provider_prefix = "gemini"

    def __init__(
        self,
        api_keys: List[str],
        model: str = "gemini-2.5-flash",
        role: ProviderRole = ProviderRole.SECONDARY,
        base_url: str = "https://generativelanguage.googleapis.com/v1",
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(api_keys, model, role, **kwargs)
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client

    async def _post(self, url: str, payload: dict, api_key: str) -> httpx.Response:
        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload, headers=headers)

    async def _call_api(self, prompt: str, api_key: str) -> LLMResponse:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

        try:
            response = await self._post(url, payload, api_key)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name,
                f"Gemini API error: {e.response.status_code} - {e.response.text[:500]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Gemini request failed: {e}") from e

        try:
            parts = response.json()["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Unexpected Gemini response shape: {e}") from e

        content = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not content:
            raise ProviderError(self.name, "Empty completion")

        return LLMResponse(content=content.strip(), model=self.model)


# --- Provider Factory ---

PROVIDER_CLASSES: Dict[str, Callable[..., LLMProvider]] = {
    "groq": GroqProvider,
    "gemini": GeminiProvider,
}


def build_provider(
    provider_cfg: Any,
    role: ProviderRole,
    defaults: Any = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> LLMProvider:
    """
    Build one provider from its config node.

    Args:
        provider_cfg: Mapping with name, model, base_url, api_key, api_keys
        role: Chain position for the provider
        defaults: Mapping with temperature, max_tokens, timeout_s shared by providers
        http_client: Optional shared httpx client

    Raises:
        ValueError: If the provider name is unknown
    """
    name = str(provider_cfg["name"]).lower()
    if name not in PROVIDER_CLASSES:
        raise ValueError(f"Unknown provider: {name}. Use one of {sorted(PROVIDER_CLASSES)}")

    defaults = defaults or {}
    api_keys = parse_api_keys(provider_cfg.get("api_keys"), provider_cfg.get("api_key"))

    return PROVIDER_CLASSES[name](
        api_keys=api_keys,
        model=provider_cfg["model"],
        role=role,
        base_url=provider_cfg["base_url"],
        temperature=float(defaults.get("temperature", DEFAULT_TEMPERATURE)),
        max_tokens=int(defaults.get("max_tokens", DEFAULT_MAX_TOKENS)),
        timeout=float(defaults.get("timeout_s", DEFAULT_TIMEOUT_S)),
        http_client=http_client,
    )
