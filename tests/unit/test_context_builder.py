"""Unit tests for the context builder agent."""

import pytest

from backend.drafting.agents.context_builder import ContextBuilderAgent, ContextBuilderInput
from backend.drafting.errors import RetrievalError, ValidationError
from backend.drafting.models.context import ContextBundle, ContextSnippet
from backend.drafting.models.matter import MatterContext
from backend.drafting.retrieval.retriever import NullContextRetriever


class FixedRetriever:
    """Retriever returning a preset bundle or raising a preset error."""

    def __init__(self, bundle: ContextBundle | None = None, error: Exception | None = None) -> None:
        self.bundle = bundle or ContextBundle.empty()
        self.error = error
        self.calls = 0

    async def search(self, matter_context: MatterContext) -> ContextBundle:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.bundle


def snippet(i: int, similarity: float, citation: str = "Library") -> ContextSnippet:
    return ContextSnippet(
        id=f"p{i}", title=f"Precedent {i}", content="text", similarity=similarity, citation=citation
    )


@pytest.mark.asyncio
async def test_strong_results_pass_all_checkpoints(matter_context: MatterContext) -> None:
    bundle = ContextBundle(snippets=[snippet(i, 0.9) for i in range(3)], total_tokens=300)
    agent = ContextBuilderAgent(FixedRetriever(bundle))

    result = await agent.run(ContextBuilderInput(matter_context=matter_context))

    assert result.unwrap() == bundle
    assert result.failed_checkpoints == []
    assert [c.name for c in result.post_checkpoints] == [
        "high_similarity_results",
        "token_count_reasonable",
        "sources_have_citations",
    ]


@pytest.mark.asyncio
async def test_weak_results_are_diagnostic_only(matter_context: MatterContext) -> None:
    bundle = ContextBundle(
        snippets=[snippet(1, 0.9), snippet(2, 0.75, citation="")], total_tokens=5000
    )

    result = await ContextBuilderAgent(FixedRetriever(bundle)).run(
        ContextBuilderInput(matter_context=matter_context)
    )

    assert result.success is True
    failed = {c.name: c.message for c in result.failed_checkpoints}
    assert failed == {
        "high_similarity_results": "1 result(s) above 0.75 similarity",
        "token_count_reasonable": "Context uses 5000 tokens",
        "sources_have_citations": "Missing citations: p2",
    }


@pytest.mark.asyncio
async def test_empty_bundle_is_a_success(matter_context: MatterContext) -> None:
    result = await ContextBuilderAgent(NullContextRetriever()).run(
        ContextBuilderInput(matter_context=matter_context)
    )

    assert result.success is True
    assert result.unwrap().is_empty


@pytest.mark.asyncio
async def test_retriever_failure_is_returned_as_error(matter_context: MatterContext) -> None:
    error = RetrievalError("store offline")

    result = await ContextBuilderAgent(FixedRetriever(error=error)).run(
        ContextBuilderInput(matter_context=matter_context)
    )

    assert result.success is False
    assert result.error is error


@pytest.mark.asyncio
async def test_missing_document_type_fails_validation() -> None:
    retriever = FixedRetriever()
    matter = MatterContext(document_type="", client="Acme")

    result = await ContextBuilderAgent(retriever).run(ContextBuilderInput(matter_context=matter))

    assert isinstance(result.error, ValidationError)
    assert retriever.calls == 0


@pytest.mark.asyncio
async def test_empty_field_data_fails_pre_checkpoint() -> None:
    matter = MatterContext(document_type="nda", client="Acme")

    result = await ContextBuilderAgent(FixedRetriever()).run(
        ContextBuilderInput(matter_context=matter)
    )

    assert [c.name for c in result.pre_checkpoints if not c.passed] == ["field_data_present"]
