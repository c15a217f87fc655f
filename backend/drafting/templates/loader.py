"""Template loader - JSON templates and Markdown explanations from disk.

Layout under the templates directory:
    core/{document_type}.json          template structure
    explanations/{document_type}.md    drafting guidelines
"""

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from backend.drafting.errors import TemplateLoadError
from backend.drafting.models.template import Template

logger = logging.getLogger(__name__)

_DOCUMENT_TYPE_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class TemplateLoader:
    """Loads and validates templates for a document type."""

    def __init__(self, templates_dir: str | Path = "templates") -> None:
        self.templates_dir = Path(templates_dir)

    def template_path(self, document_type: str) -> Path:
        self._check_document_type(document_type)
        return self.templates_dir / "core" / f"{document_type}.json"

    def explanation_path(self, document_type: str) -> Path:
        self._check_document_type(document_type)
        return self.templates_dir / "explanations" / f"{document_type}.md"

    def load(self, document_type: str) -> Template:
        """Load a template with its explanation text attached.

        Raises:
            TemplateLoadError: File missing, invalid JSON, schema mismatch,
                no sections, or missing explanation
        """
        path = self.template_path(document_type)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TemplateLoadError(
                f"Template file not found: {path}", document_type, str(path)
            ) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TemplateLoadError(
                f"Invalid JSON in template file: {e}", document_type, str(path)
            ) from e

        try:
            template = Template.model_validate(data)
        except PydanticValidationError as e:
            raise TemplateLoadError(
                f"Template file does not match expected schema: {e}", document_type, str(path)
            ) from e

        if not template.sections:
            raise TemplateLoadError(
                "Template must have at least one section", document_type, str(path)
            )

        template = template.model_copy(
            update={"explanation_text": self.load_explanation(document_type)}
        )
        logger.debug(
            f"Template loaded: {template.id} ({len(template.sections)} sections)",
            extra={"structured": {"document_type": document_type, "path": str(path)}},
        )
        return template

    def load_explanation(self, document_type: str) -> str:
        """Load the Markdown explanation for a document type.

        Raises:
            TemplateLoadError: File missing or empty
        """
        path = self.explanation_path(document_type)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TemplateLoadError(
                f"Explanation file not found: {path}", document_type, str(path)
            ) from e

        if not text.strip():
            raise TemplateLoadError("Explanation file is empty", document_type, str(path))
        return text

    def _check_document_type(self, document_type: str) -> None:
        if not _DOCUMENT_TYPE_RE.match(document_type):
            raise TemplateLoadError(
                f"Invalid document type: {document_type!r}", document_type=document_type
            )
