"""Document generation endpoint - POST /documents/generate."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.drafting.api.deps import get_generation_service, get_retriever, get_template_loader
from backend.drafting.config import PipelineConfig, Settings, get_settings
from backend.drafting.errors import (
    CheckpointFailure,
    ExternalServiceError,
    FanOutError,
    TemplateLoadError,
    ValidationError,
)
from backend.drafting.llm.client import TextGenerationService
from backend.drafting.models.drafts import FinalDocument
from backend.drafting.orchestration.factory import build_orchestrator
from backend.drafting.orchestration.parallel import ParallelOrchestrator
from backend.drafting.retrieval.retriever import ContextRetriever
from backend.drafting.templates.loader import TemplateLoader
from backend.drafting.templates.matter import parse_matter_data

router = APIRouter(prefix="/documents", tags=["documents"])


class GenerateDocumentRequest(BaseModel):
    """Request body for POST /documents/generate."""

    document_type: str = Field(..., min_length=1, description="Template identifier")
    client: str = Field(..., min_length=1)
    attorney: str | None = None
    field_data: dict[str, Any] = Field(default_factory=dict)
    parallel: bool | None = Field(None, description="Override PARALLEL_BY_DEFAULT")
    max_workers: int | None = Field(None, ge=1, description="Parallel worker bound")


@router.post("/generate", response_model=FinalDocument)
async def generate_document(
    request: GenerateDocumentRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    generator: Annotated[TextGenerationService, Depends(get_generation_service)],
    retriever: Annotated[ContextRetriever, Depends(get_retriever)],
    template_loader: Annotated[TemplateLoader, Depends(get_template_loader)],
) -> FinalDocument:
    """Generate a document for a matter.

    Returns:
        Final document with metadata

    Raises:
        HTTPException: 422 invalid matter data, 404 unknown template,
            409 coverage gate failed, 502 drafting or service failure
    """
    data = {**request.field_data, "document_type": request.document_type, "client": request.client}
    if request.attorney is not None:
        data["attorney"] = request.attorney

    orchestrator = build_orchestrator(
        PipelineConfig.from_settings(settings),
        request.parallel,
        settings=settings,
        generator=generator,
        retriever=retriever,
        template_loader=template_loader,
    )

    try:
        matter = parse_matter_data(data)
        if isinstance(orchestrator, ParallelOrchestrator):
            return await orchestrator.run(matter, request.max_workers)
        return await orchestrator.run(matter)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "field": e.field},
        ) from e
    except TemplateLoadError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(e), "document_type": e.document_type},
        ) from e
    except CheckpointFailure as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "checkpoints": [c.name for c in e.checkpoints]},
        ) from e
    except FanOutError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "failed_sections": e.failed_section_ids},
        ) from e
    except ExternalServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "upstream_status": e.status_code},
        ) from e
