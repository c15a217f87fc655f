"""Matter context - immutable input bundle for one generation run."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MatterContext(BaseModel):
    """Client matter data produced by the input loader before the pipeline starts."""

    model_config = ConfigDict(frozen=True)

    document_type: str
    client: str
    attorney: str | None = None
    field_data: dict[str, Any] = Field(default_factory=dict)
