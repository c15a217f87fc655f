"""Text generation client with OpenAI integration.

Security: Reads API key from settings/environment only, never hardcoded.
Provides a deterministic stub when no key is configured, for local runs and tests.
"""

import logging
import re
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from backend.drafting.config import Settings, get_settings
from backend.drafting.errors import (
    AuthenticationError,
    EmptyResponseError,
    ExternalServiceError,
    GenerationTimeoutError,
    RateLimitError,
)
from backend.drafting.llm.prompts import (
    POLISH_SYSTEM_PROMPT,
    build_generation_prompt,
    build_polish_prompt,
)
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.template import Template

logger = logging.getLogger(__name__)

_ANY_HEADING_RE = re.compile(r"^#+\s+.+", re.MULTILINE)
_EXCESS_BLANK_RE = re.compile(r"\n{4,}")
_PLACEHOLDER_RE = re.compile(r"\{\{[^}]+\}\}")


class TextGenerationService(Protocol):
    """Protocol for text generation implementations."""

    async def generate(
        self,
        template: Template,
        explanation: str,
        field_data: dict[str, Any],
        model_override: str | None = None,
        context_bundle: ContextBundle | None = None,
    ) -> str:
        """Draft Markdown for every section of ``template``.

        Args:
            template: Template (possibly a section subset) to draft
            explanation: Drafting guidelines, including any subset instruction
            field_data: Matter field data used to fill the document
            model_override: Model to use instead of the premium model
            context_bundle: Retrieved precedents (optional)

        Returns:
            Markdown document body

        Raises:
            ExternalServiceError: Service failure (see subclasses)
        """
        ...

    async def polish(
        self,
        markdown: str,
        explanation: str,
        model_override: str | None = None,
    ) -> str:
        """Harmonize tone across a merged document without changing structure."""
        ...


def _fill_placeholders(content: str, field_data: dict[str, Any]) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        return str(field_data[key]) if key in field_data else match.group(0)

    return re.sub(r"\{\{([^}]+)\}\}", replace, content)


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required).

    Renders each template section as a ``## `` heading followed by the
    section's content template with known placeholders filled in. Polish
    returns its input unchanged.
    """

    async def generate(
        self,
        template: Template,
        explanation: str,
        field_data: dict[str, Any],
        model_override: str | None = None,
        context_bundle: ContextBundle | None = None,
    ) -> str:
        """Generate deterministic stub document."""
        blocks = []
        for section in template.sections:
            body = _fill_placeholders(section.content, field_data).strip()
            if not body:
                body = (
                    f"This section sets out the {section.title.lower()} "
                    "agreed between the parties."
                )
            blocks.append(f"## {section.title}\n\n{body}")
        return "\n\n".join(blocks)

    async def polish(
        self,
        markdown: str,
        explanation: str,
        model_override: str | None = None,
    ) -> str:
        return markdown


class OpenAIGenerationClient:
    """OpenAI-backed text generation client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        *,
        timeout_ms: int = 60_000,
        max_tokens: int = 4000,
        temperature: float = 0.2,
        max_document_chars: int = 60_000,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Premium model, used when no override is given
            timeout_ms: Per-request timeout
            max_tokens: Completion token limit
            temperature: Sampling temperature
            max_document_chars: Length above which a response is logged as suspicious
        """
        # Retries are owned by the worker executor
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout_ms / 1000, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_document_chars = max_document_chars

    async def generate(
        self,
        template: Template,
        explanation: str,
        field_data: dict[str, Any],
        model_override: str | None = None,
        context_bundle: ContextBundle | None = None,
    ) -> str:
        """Generate document Markdown using the OpenAI API."""
        prompt = build_generation_prompt(template, explanation, field_data, context_bundle)
        model = model_override or self.model
        logger.info(
            f"Starting generation for template {template.id}",
            extra={
                "structured": {
                    "template_id": template.id,
                    "model": model,
                    "sections": len(template.sections),
                    "context_snippets": len(context_bundle.snippets) if context_bundle else 0,
                    "prompt_chars": len(prompt),
                }
            },
        )

        content = await self._complete(
            model, [{"role": "user", "content": prompt}], label=template.id
        )
        self._warn_on_shape(content, template.id)
        return content

    async def polish(
        self,
        markdown: str,
        explanation: str,
        model_override: str | None = None,
    ) -> str:
        """Run the final consistency pass over a merged document."""
        model = model_override or self.model
        content = await self._complete(
            model,
            [
                {"role": "system", "content": POLISH_SYSTEM_PROMPT},
                {"role": "user", "content": build_polish_prompt(markdown, explanation)},
            ],
            label="polish",
        )
        self._warn_on_shape(content, "polish")
        return content

    async def _complete(self, model: str, messages: list[dict[str, str]], label: str) -> str:
        """Call chat completions and map SDK errors onto the pipeline taxonomy."""
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI request timed out ({label})")
            raise GenerationTimeoutError() from e
        except openai.APIConnectionError as e:
            logger.error(f"Cannot connect to OpenAI ({label}): {e}")
            raise ExternalServiceError(
                "Cannot connect to text generation service", retriable=True
            ) from e
        except openai.APIStatusError as e:
            logger.error(
                f"OpenAI API error ({label}): {e.status_code}",
                extra={"structured": {"status": e.status_code, "label": label}},
            )
            raise map_status_error(e.status_code, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise EmptyResponseError()

        if response.usage:
            logger.info(
                f"Generation completed ({label})",
                extra={
                    "structured": {
                        "label": label,
                        "model": model,
                        "prompt_tokens": response.usage.prompt_tokens,
                        "completion_tokens": response.usage.completion_tokens,
                        "total_tokens": response.usage.total_tokens,
                    }
                },
            )
        return content

    def _warn_on_shape(self, content: str, label: str) -> None:
        """Log response-shape issues; never fails the call."""
        issues = []
        if not _ANY_HEADING_RE.search(content):
            issues.append("no markdown headings")
        if _EXCESS_BLANK_RE.search(content):
            issues.append("excessive blank lines")
        if _PLACEHOLDER_RE.search(content):
            issues.append("unresolved placeholders")
        if len(content) > self.max_document_chars:
            issues.append(f"unexpectedly long ({len(content)} chars)")
        for issue in issues:
            logger.warning(f"Generated document validation warning ({label}): {issue}")


def map_status_error(status_code: int, message: str) -> ExternalServiceError:
    """Translate an HTTP status from the service into a pipeline error."""
    if status_code == 401:
        return AuthenticationError()
    if status_code == 429:
        return RateLimitError()
    if status_code >= 500:
        return ExternalServiceError(
            "Text generation service is currently unavailable. Please try again later.",
            status_code=status_code,
            retriable=True,
        )
    return ExternalServiceError(
        f"Text generation API error: {message}", status_code=status_code, retriable=False
    )


def get_generation_client(settings: Settings | None = None) -> TextGenerationService:
    """Factory function to get appropriate generation client based on config.

    Returns:
        OpenAIGenerationClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for document generation")
        return OpenAIGenerationClient(
            api_key=api_key.get_secret_value(),
            model=settings.premium_model,
            timeout_ms=settings.llm_timeout_ms,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            max_document_chars=settings.max_document_chars,
        )
    else:
        logger.warning("No OpenAI API key configured, using deterministic stub client")
        return DeterministicStubClient()
