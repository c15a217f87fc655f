"""FastAPI dependencies for pipeline collaborators (overridable in tests)."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from backend.drafting.config import Settings, get_settings
from backend.drafting.llm.client import TextGenerationService, get_generation_client
from backend.drafting.orchestration.factory import get_context_retriever
from backend.drafting.retrieval.retriever import ContextRetriever
from backend.drafting.templates.loader import TemplateLoader


@lru_cache
def get_generation_service() -> TextGenerationService:
    """Process-wide text generation client."""
    return get_generation_client(get_settings())


@lru_cache
def get_retriever() -> ContextRetriever:
    """Process-wide context retriever (precedents are loaded once)."""
    return get_context_retriever(get_settings())


def get_template_loader(settings: Annotated[Settings, Depends(get_settings)]) -> TemplateLoader:
    return TemplateLoader(settings.templates_dir)
