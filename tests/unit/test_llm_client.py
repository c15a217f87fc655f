"""Tests for the text generation client and prompts.

All tests are deterministic and do not make real network calls.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from backend.drafting.config import Settings
from backend.drafting.errors import (
    AuthenticationError,
    EmptyResponseError,
    ExternalServiceError,
    GenerationTimeoutError,
    RateLimitError,
)
from backend.drafting.llm.client import (
    DeterministicStubClient,
    OpenAIGenerationClient,
    get_generation_client,
    map_status_error,
)
from backend.drafting.llm.prompts import (
    MARKER_RULES,
    MAX_SNIPPET_CHARS,
    POLISH_SYSTEM_PROMPT,
    build_generation_prompt,
    build_polish_prompt,
    format_context_bundle,
    format_field_data,
)
from backend.drafting.models.context import ContextBundle, ContextSnippet
from backend.drafting.models.template import Section, Template

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.fixture
def placeholder_template() -> Template:
    """Two-section template with placeholders."""
    return Template(
        id="nda",
        name="NDA",
        sections=[
            Section(id="parties", title="Parties", order=1, content="Between {{client}} and {{ counterparty }}."),
            Section(id="term", title="Term", order=2),
        ],
    )


def mock_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = None
    return response


def openai_client_with(create: AsyncMock) -> OpenAIGenerationClient:
    client = OpenAIGenerationClient(api_key="test-key", model="premium-model")
    client.client = MagicMock()
    client.client.chat.completions.create = create
    return client


def bundle_of(count: int, content: str = "precedent text") -> ContextBundle:
    return ContextBundle(
        snippets=[
            ContextSnippet(
                id=f"p{i}", title=f"Precedent {i}", content=content, similarity=0.8, citation="Lib"
            )
            for i in range(count)
        ],
        total_tokens=10,
    )


class TestDeterministicStub:
    """Stub client behavior."""

    @pytest.mark.asyncio
    async def test_renders_sections_and_fills_known_placeholders(
        self, placeholder_template: Template
    ) -> None:
        markdown = await DeterministicStubClient().generate(
            placeholder_template, "", {"client": "Acme Corp"}
        )

        assert markdown == (
            "## Parties\n\nBetween Acme Corp and {{ counterparty }}.\n\n"
            "## Term\n\nThis section sets out the term agreed between the parties."
        )

    @pytest.mark.asyncio
    async def test_output_is_deterministic(self, make_template: Callable[..., Template]) -> None:
        stub = DeterministicStubClient()
        template = make_template(3)

        first = await stub.generate(template, "x", {}, model_override="a")
        second = await stub.generate(template, "y", {}, model_override="b")

        assert first == second

    @pytest.mark.asyncio
    async def test_polish_is_identity(self) -> None:
        assert await DeterministicStubClient().polish("## A\n\nText", "guidelines") == "## A\n\nText"


class TestPrompts:
    """Prompt construction."""

    def test_generation_prompt_contains_inputs_and_marker_rules(
        self, placeholder_template: Template
    ) -> None:
        prompt = build_generation_prompt(placeholder_template, "Be precise.", {"client": "Acme"})

        assert "Section 1: Parties" in prompt
        assert "TEMPLATE EXPLANATION AND GUIDELINES:\nBe precise." in prompt
        assert "client: Acme" in prompt
        assert MARKER_RULES in prompt
        assert "RELEVANT FIRM PRECEDENTS" not in prompt

    def test_context_adds_precedent_instruction(self, placeholder_template: Template) -> None:
        prompt = build_generation_prompt(placeholder_template, "", {}, bundle_of(1))

        assert "RELEVANT FIRM PRECEDENTS AND CONTEXT" in prompt
        assert "Incorporate relevant precedents" in prompt

    def test_context_snippets_truncated_and_limited(self) -> None:
        rendered = format_context_bundle(bundle_of(7, content="x" * (MAX_SNIPPET_CHARS + 50)))

        assert rendered.count("### Context") == 5
        assert "x" * MAX_SNIPPET_CHARS + "..." in rendered
        assert "x" * (MAX_SNIPPET_CHARS + 1) not in rendered
        assert "**Relevance Score**: 80.0%" in rendered

    def test_empty_context_renders_nothing(self) -> None:
        assert format_context_bundle(None) == ""
        assert format_context_bundle(ContextBundle.empty()) == ""

    def test_nested_field_data_rendered_as_yaml(self) -> None:
        rendered = format_field_data({"client": "Acme", "parties": [{"name": "Beta"}]})

        assert rendered == "client: Acme\nparties:\n  - name: Beta"

    def test_polish_prompt(self) -> None:
        prompt = build_polish_prompt("## A\n\nBody", "Formal tone.")

        assert prompt.startswith("DOCUMENT GUIDELINES:\nFormal tone.")
        assert prompt.endswith("DOCUMENT:\n## A\n\nBody")
        assert "Do NOT add, remove, rename, or reorder headings." in POLISH_SYSTEM_PROMPT


class TestStatusMapping:
    """HTTP status translation."""

    @pytest.mark.parametrize(
        ("status", "error_type", "retriable"),
        [
            (401, AuthenticationError, False),
            (429, RateLimitError, True),
            (500, ExternalServiceError, True),
            (503, ExternalServiceError, True),
            (400, ExternalServiceError, False),
        ],
    )
    def test_map_status_error(self, status: int, error_type: type, retriable: bool) -> None:
        error = map_status_error(status, "message")

        assert type(error) is error_type
        assert error.retriable is retriable
        assert error.status_code == status


class TestOpenAIClient:
    """OpenAI client with a mocked SDK."""

    @pytest.mark.asyncio
    async def test_generate_uses_model_override(self, placeholder_template: Template) -> None:
        create = AsyncMock(return_value=mock_response("## Parties\n\nText"))
        client = openai_client_with(create)

        result = await client.generate(
            placeholder_template, "", {"client": "Acme"}, model_override="worker-model"
        )

        assert result == "## Parties\n\nText"
        assert create.call_args.kwargs["model"] == "worker-model"
        assert create.call_args.kwargs["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_generate_defaults_to_premium_model(self, placeholder_template: Template) -> None:
        create = AsyncMock(return_value=mock_response("## Parties\n\nText"))

        await openai_client_with(create).generate(placeholder_template, "", {})

        assert create.call_args.kwargs["model"] == "premium-model"

    @pytest.mark.asyncio
    async def test_polish_sends_system_prompt(self) -> None:
        create = AsyncMock(return_value=mock_response("## A\n\nPolished"))

        result = await openai_client_with(create).polish("## A\n\nRaw", "Formal.")

        messages = create.call_args.kwargs["messages"]
        assert result == "## A\n\nPolished"
        assert messages[0] == {"role": "system", "content": POLISH_SYSTEM_PROMPT}
        assert messages[1]["content"].endswith("## A\n\nRaw")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   \n"])
    async def test_empty_content_raises(
        self, placeholder_template: Template, content: str | None
    ) -> None:
        client = openai_client_with(AsyncMock(return_value=mock_response(content)))

        with pytest.raises(EmptyResponseError) as exc_info:
            await client.generate(placeholder_template, "", {})
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_timeout_maps_to_retriable_error(self, placeholder_template: Template) -> None:
        client = openai_client_with(AsyncMock(side_effect=openai.APITimeoutError(request=REQUEST)))

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await client.generate(placeholder_template, "", {})
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_connection_error_is_retriable(self, placeholder_template: Template) -> None:
        client = openai_client_with(
            AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST))
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.generate(placeholder_template, "", {})
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [(401, AuthenticationError), (429, RateLimitError), (503, ExternalServiceError)],
    )
    async def test_status_errors_are_mapped(
        self, placeholder_template: Template, status: int, error_type: type
    ) -> None:
        error = openai.APIStatusError(
            "upstream error", response=httpx.Response(status, request=REQUEST), body=None
        )
        client = openai_client_with(AsyncMock(side_effect=error))

        with pytest.raises(error_type) as exc_info:
            await client.generate(placeholder_template, "", {})
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_shape_issues_only_warn(
        self, placeholder_template: Template, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = openai_client_with(AsyncMock(return_value=mock_response("No headings {{x}}")))

        with caplog.at_level("WARNING", logger="backend.drafting.llm.client"):
            result = await client.generate(placeholder_template, "", {})

        assert result == "No headings {{x}}"
        assert "no markdown headings" in caplog.text
        assert "unresolved placeholders" in caplog.text


class TestFactory:
    """Client selection."""

    def test_stub_without_api_key(self) -> None:
        client = get_generation_client(Settings(openai_api_key=""))

        assert isinstance(client, DeterministicStubClient)

    def test_openai_client_with_api_key(self) -> None:
        client = get_generation_client(
            Settings(openai_api_key="sk-test", premium_model="premium-model")
        )

        assert isinstance(client, OpenAIGenerationClient)
        assert client.model == "premium-model"
