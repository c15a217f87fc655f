"""Prompt construction for document generation and polish."""

from typing import Any

import yaml

from backend.drafting.models.context import ContextBundle
from backend.drafting.models.template import Template

MAX_CONTEXT_SNIPPETS = 5
MAX_SNIPPET_CHARS = 800

MARKER_RULES = """- PRESERVE these special markers exactly as they appear in the template:
  - [SIGNATURE_BLOCK:*] - placement markers for signature areas
  - [INITIALS_BLOCK:*] - placement markers for initial areas
  - [NOTARY_BLOCK:*] - placement markers for notary sections
  These markers must appear literally in your output - do NOT replace or remove them"""


def format_template_structure(template: Template) -> str:
    """Render sections and required fields for the prompt."""
    sections = []
    for section in template.sections:
        block = (
            f"Section {section.order}: {section.title}\n"
            f"Required: {str(section.required).lower()}\n"
            f"Content Template:\n{section.content}"
        )
        if section.help_text:
            block += f"\nGuidance: {section.help_text}"
        sections.append(block)

    fields = "\n".join(
        f"- {f.name} ({f.type}): {f.description}" for f in template.required_fields
    )
    return (
        f"Document Type: {template.name or template.id}\n"
        f"Description: {template.description}\n\n"
        f"SECTIONS:\n" + "\n\n".join(sections) + f"\n\nREQUIRED FIELDS:\n{fields}"
    )


def format_field_data(field_data: dict[str, Any]) -> str:
    """Render matter field data; nested values are dumped as indented YAML."""
    lines = []
    for key, value in field_data.items():
        if isinstance(value, (dict, list)):
            dumped = yaml.safe_dump(value, sort_keys=False, default_flow_style=False).rstrip()
            indented = "\n".join(f"  {line}" for line in dumped.splitlines())
            lines.append(f"{key}:\n{indented}")
        else:
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


def format_context_bundle(bundle: ContextBundle | None) -> str:
    """Render the top precedent snippets, truncated for context efficiency."""
    if bundle is None or bundle.is_empty:
        return ""

    blocks = []
    for i, snippet in enumerate(bundle.snippets[:MAX_CONTEXT_SNIPPETS], start=1):
        content = snippet.content
        if len(content) > MAX_SNIPPET_CHARS:
            content = content[:MAX_SNIPPET_CHARS] + "..."
        blocks.append(
            f"### Context {i}: {snippet.title or 'Related Document'}\n"
            f"**Source**: {snippet.citation or 'Unknown'}\n"
            f"**Relevance Score**: {snippet.similarity * 100:.1f}%\n\n"
            f"{content}"
        )

    return (
        "RELEVANT FIRM PRECEDENTS AND CONTEXT:\n"
        "The following are similar documents and precedents that should inform "
        "your writing style and approach:\n\n" + "\n\n".join(blocks)
    )


def section_subset_instruction(section_titles: list[str]) -> str:
    """Instruction appended to the explanation when a worker drafts a subset."""
    listed = "\n".join(f"{i}. {title}" for i, title in enumerate(section_titles, start=1))
    return (
        "SECTION ASSIGNMENT:\n"
        "You are drafting ONLY the following sections, in this exact order:\n"
        f"{listed}\n\n"
        "Write one Markdown '## ' heading per section using the titles above verbatim. "
        "Do NOT write a document title, preamble, closing remarks, or any section not "
        "listed above. Do NOT add signature blocks unless a listed section calls for one."
    )


def build_generation_prompt(
    template: Template,
    explanation: str,
    field_data: dict[str, Any],
    context_bundle: ContextBundle | None = None,
) -> str:
    """Build the user prompt for drafting a document (or a section subset)."""
    context_section = format_context_bundle(context_bundle)
    has_context = bool(context_section)

    instructions = [
        "Generate the document in Markdown format",
        "Follow the exact structure defined in the template",
        "Use professional language appropriate for the document type",
        "Fill in all placeholders with the provided data",
        "Ensure all sections are complete and properly formatted",
        "Return ONLY the document without any additional commentary",
    ]
    if has_context:
        instructions.append("Incorporate relevant precedents and writing style from the provided context")
    numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(instructions, start=1))

    return (
        "You are a professional document generator. Create a professionally formatted "
        "document from the provided template, explanation, and client data.\n\n"
        f"INSTRUCTIONS:\n{numbered}\n\n"
        f"TEMPLATE STRUCTURE:\n{format_template_structure(template)}\n\n"
        f"TEMPLATE EXPLANATION AND GUIDELINES:\n{explanation}\n\n"
        f"CLIENT DATA:\n{format_field_data(field_data)}\n\n"
        + (f"{context_section}\n\n" if has_context else "")
        + "IMPORTANT:\n"
        "- Ensure all variable placeholders are replaced with actual data\n"
        "- Use proper markdown syntax for headers, lists, and emphasis\n"
        f"{MARKER_RULES}\n\n"
        "Generate the document now:"
    )


POLISH_SYSTEM_PROMPT = """You are an editor reviewing a document assembled from sections written by
several drafters. Harmonize tone, terminology, and transitions across section boundaries.

CRITICAL CONSTRAINTS:
- Do NOT change facts, names, dates, amounts, or defined terms.
- Do NOT add, remove, rename, or reorder headings.
- Do NOT add commentary before or after the document.
- Return the complete document in Markdown."""


def build_polish_prompt(markdown: str, explanation: str) -> str:
    """Build the user prompt for the final consistency pass."""
    return (
        f"DOCUMENT GUIDELINES:\n{explanation}\n\n"
        f"IMPORTANT:\n{MARKER_RULES}\n\n"
        f"DOCUMENT:\n{markdown}"
    )
