"""Matter input loader - YAML scenario files into MatterContext."""

from pathlib import Path
from typing import Any

import yaml

from backend.drafting.errors import ValidationError
from backend.drafting.models.matter import MatterContext

REQUIRED_KEYS = ("client", "document_type")


def parse_matter_data(data: Any, document_type: str | None = None) -> MatterContext:
    """Validate parsed YAML data and build a MatterContext.

    Every top-level key (including ``client`` and ``document_type``) is kept
    in ``field_data`` so templates can reference it as a placeholder.

    Args:
        data: Parsed YAML document
        document_type: Overrides the document type in the file when given

    Raises:
        ValidationError: Not a mapping, or required fields missing/blank
    """
    if not isinstance(data, dict):
        raise ValidationError("Matter data must be a mapping")

    data = dict(data)
    if document_type is not None:
        data["document_type"] = document_type

    missing = [key for key in REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    for key in (*REQUIRED_KEYS, "attorney"):
        value = data.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValidationError(f'Field "{key}" must be a non-empty string', field=key)

    return MatterContext(
        document_type=data["document_type"],
        client=data["client"],
        attorney=data.get("attorney"),
        field_data=data,
    )


def load_matter_context(path: str | Path, document_type: str | None = None) -> MatterContext:
    """Load a YAML matter file.

    Raises:
        ValidationError: File unreadable, invalid YAML, or invalid content
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ValidationError(f"Cannot read matter file {path}: {e}", field="path") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"YAML parsing error in {path}: {e}", field="path") from e

    return parse_matter_data(data, document_type)
