"""
Generation Context

Responsibilities:
- Builds the resume prompt from extracted text
- Calls AI providers in priority order with API key rotation
- Validates and sanitizes candidate LaTeX
- Falls back to a deterministic local template

Owns: Prompt asset, provider clients, generation chain
Never: Compiles LaTeX or touches storage
"""

from rescribe.contexts.generation.chain import (
    GenerationChain,
    GenerationResult,
    build_fallback_document,
    clean_candidate,
)
from rescribe.contexts.generation.providers import (
    GeminiProvider,
    GroqProvider,
    LLMProvider,
    LLMResponse,
    ProviderError,
    ProviderRole,
    build_provider,
    parse_api_keys,
)

__all__ = [
    "GenerationChain",
    "GenerationResult",
    "GeminiProvider",
    "GroqProvider",
    "LLMProvider",
    "LLMResponse",
    "ProviderError",
    "ProviderRole",
    "build_fallback_document",
    "build_provider",
    "clean_candidate",
    "parse_api_keys",
]
