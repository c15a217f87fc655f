"""Template models - document structure the pipeline drafts against."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

FieldType = Literal["text", "date", "number", "select", "multiselect", "boolean", "textarea"]


class RequiredField(BaseModel):
    """Input field a template expects in the matter's field data."""

    id: str
    name: str
    type: FieldType = "text"
    description: str = ""
    required: bool = True


class Section(BaseModel):
    """One ordered section of a template."""

    id: str
    title: str
    order: int = Field(..., ge=1)
    required: bool = True
    content: str = ""
    help_text: str | None = None


class Template(BaseModel):
    """Structured document template.

    Section orders must be unique and dense from 1; sections are stored sorted
    by order so list position and document position always agree.
    """

    id: str
    name: str = ""
    description: str = ""
    explanation_text: str = ""
    required_fields: list[RequiredField] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_section_order(self) -> "Template":
        """Reject duplicate or gapped section orders."""
        orders = sorted(s.order for s in self.sections)
        if orders != list(range(1, len(orders) + 1)):
            raise ValueError(
                f"Section orders must be unique and contiguous from 1, got {orders}"
            )
        ids = [s.id for s in self.sections]
        if len(set(ids)) != len(ids):
            raise ValueError("Section ids must be unique")
        self.sections = sorted(self.sections, key=lambda s: s.order)
        return self

    @property
    def section_titles(self) -> list[str]:
        """Section titles in document order."""
        return [s.title for s in self.sections]

    def subset(self, section_ids: list[str]) -> "Template":
        """Copy of this template restricted to the given section ids.

        Keeps template order regardless of the order of ``section_ids`` and
        renumbers orders densely so the copy is still a valid template.
        """
        wanted = set(section_ids)
        kept = [s for s in self.sections if s.id in wanted]
        renumbered = [s.model_copy(update={"order": i + 1}) for i, s in enumerate(kept)]
        return self.model_copy(update={"sections": renumbered})
