"""
AI Generation Chain

Turns extracted resume text into LaTeX by trying providers in priority order.
A candidate is accepted only if, after fence stripping, document extraction and
sanitization, it is a complete \\documentclass ... \\end{document} document. When
every provider is unconfigured, fails, or returns invalid output, a deterministic
local template is used instead, so generate() always returns compilable LaTeX.
"""

from dataclasses import dataclass
from string import Template
from typing import Optional, Sequence

from rescribe.contexts.generation.logger import (
    _log_debug,
    _log_info,
    _log_warning,
    log_generation_source,
    log_provider_failure,
)
from rescribe.contexts.generation.prompts import RESUME_PROMPT_TEMPLATE, render_prompt
from rescribe.contexts.generation.providers import LLMProvider, ProviderError, ProviderRole
from rescribe.utils.latex_sanitizer import (
    escape_latex,
    extract_latex_document,
    is_valid_latex_document,
    sanitize_latex,
    strip_bad_unicode,
    strip_markdown_fences,
    to_ascii,
)

FALLBACK_PROVIDER_NAME = "local/fallback"
LINE_BREAK = " \\\\\\relax\n"

FALLBACK_TEMPLATE = Template(
    r"""\documentclass[11pt]{article}
\usepackage[T1]{fontenc}
\usepackage[margin=1in]{geometry}
\begin{document}
\section*{Resume}
$body
\end{document}"""
)


@dataclass
class GenerationResult:
    """
    LaTeX produced for one request.

    Attributes:
        latex: Sanitized, complete LaTeX document
        provider: Which chain position supplied it (primary, secondary, fallback)
        provider_name: Concrete provider (e.g., "groq/llama-3.3-70b-versatile")
    """

    latex: str
    provider: ProviderRole
    provider_name: str


def clean_candidate(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a provider completion into a LaTeX document, or None if invalid.

    Steps: strip bad unicode, strip fences, extract the document span, sanitize,
    then require the whole result to match \\documentclass ... \\end{document}.
    """
    latex = strip_markdown_fences(strip_bad_unicode(raw))
    latex = sanitize_latex(extract_latex_document(latex))
    return latex if is_valid_latex_document(latex) else None


def build_fallback_document(source_text: str) -> str:
    """
    Wrap raw resume text in a minimal one-section document.

    Text is transliterated to ASCII and escaped; non-blank lines are joined with
    explicit line breaks so the original line structure survives. Each break is
    followed by \\relax so a line starting with [ or * is not read as its argument.
    """
    lines = [escape_latex(line.strip()) for line in to_ascii(source_text).splitlines()]
    body = LINE_BREAK.join(line for line in lines if line)
    return sanitize_latex(FALLBACK_TEMPLATE.substitute(body=body))


class GenerationChain:
    """
    Ordered provider chain with validation and a deterministic fallback.

    Args:
        providers: Providers in priority order (primary first). Each provider owns
            its credential list and rotates keys on rate-limit errors.
        prompt_template: Prompt with a $resume_text placeholder

    Example:
        >>> chain = GenerationChain([GroqProvider(["key"]), GeminiProvider([])])
        >>> result = await chain.generate("Jane Doe, Engineer")
        >>> result.provider
        <ProviderRole.PRIMARY: 'primary'>
    """

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        prompt_template: Template = RESUME_PROMPT_TEMPLATE,
    ):
        self.providers = list(providers)
        self.prompt_template = prompt_template

    async def generate(self, source_text: str) -> GenerationResult:
        """Produce LaTeX for source_text. Never raises."""
        prompt = render_prompt(source_text or "", self.prompt_template)

        for provider in self.providers:
            if not provider.is_configured:
                _log_debug(f"Skipping {provider.name}: no API key configured")
                continue

            _log_info(f"Requesting LaTeX from {provider.role.value} provider {provider.name}")
            try:
                response = await provider.generate(prompt)
            except ProviderError as e:
                log_provider_failure(provider.name, e)
                continue
            except Exception as e:
                # Unexpected SDK or parsing failures must not escape the chain
                log_provider_failure(provider.name, e)
                continue

            latex = clean_candidate(response.content)
            if latex is None:
                _log_warning(f"{provider.name} returned output that is not a LaTeX document")
                _log_debug(f"  Rejected output: {response.content[:300]!r}")
                continue

            log_generation_source(provider.name, provider.role.value, latex)
            return GenerationResult(latex=latex, provider=provider.role, provider_name=provider.name)

        _log_warning("All providers exhausted, using local fallback template")
        latex = build_fallback_document(source_text or "")
        log_generation_source(FALLBACK_PROVIDER_NAME, ProviderRole.FALLBACK.value, latex)
        return GenerationResult(
            latex=latex, provider=ProviderRole.FALLBACK, provider_name=FALLBACK_PROVIDER_NAME
        )
