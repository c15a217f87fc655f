"""Markdown analysis and merging for partial drafts (pure functions).

Heading detection rule: a line outside a fenced code block that begins with
one or more ``#`` characters followed by whitespace. A heading is a *section
heading* when its normalized text equals the normalized title of a template
section; normalization lowercases, drops emphasis markers, leading numbering
("1.", "IV.", "Section 2:") and trailing punctuation. This is a best-effort
classifier: headings the model reworded beyond that are not recognized.
"""

import math
import re
from collections.abc import Sequence

from backend.drafting.errors import ValidationError
from backend.drafting.models.drafts import PartialDraft
from backend.drafting.models.template import Template

CHARS_PER_TOKEN = 4

HEADING_RE = re.compile(r"^(#+)\s+(.*?)\s*#*\s*$")
PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")

_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_EMPHASIS_RE = re.compile(r"[*_`]+")
_NUMBERING_RE = re.compile(
    r"^(?:(?:section|article|part)\s+)?(?:\d+(?:\.\d+)*[.):]?|[ivxlc]{1,5}[.)])\s+",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_title(text: str) -> str:
    """Normalize heading or section title text for comparison."""
    cleaned = _EMPHASIS_RE.sub("", text).strip()
    cleaned = _NUMBERING_RE.sub("", cleaned)
    cleaned = cleaned.rstrip(" :.;-").strip()
    return _WHITESPACE_RE.sub(" ", cleaned).lower()


def extract_headings(markdown: str) -> list[tuple[int, str]]:
    """Return (level, text) for every heading line in document order."""
    headings: list[tuple[int, str]] = []
    in_fence = False
    for line in markdown.splitlines():
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = HEADING_RE.match(line)
        if match:
            headings.append((len(match.group(1)), match.group(2).strip()))
    return headings


def _title_lookup(titles: Sequence[str]) -> dict[str, str]:
    return {normalize_title(t): t for t in titles}


def classify_headings(markdown: str, section_titles: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split headings into recognized section titles and everything else.

    Returns:
        (sections_generated, extra_headings). Section titles are returned in
        their canonical template spelling, first occurrence only, in document
        order; extra headings keep their original text.
    """
    lookup = _title_lookup(section_titles)
    sections: list[str] = []
    extras: list[str] = []
    for _level, text in extract_headings(markdown):
        canonical = lookup.get(normalize_title(text))
        if canonical is None:
            extras.append(text)
        elif canonical not in sections:
            sections.append(canonical)
    return sections, extras


def find_placeholders(markdown: str) -> list[str]:
    """Unresolved ``{{name}}`` placeholders, in order of appearance."""
    return [m.group(1).strip() for m in PLACEHOLDER_RE.finditer(markdown)]


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Rough token estimate from character count."""
    return math.ceil(len(text) / chars_per_token)


def order_drafts(partial_drafts: Sequence[PartialDraft], template: Template) -> list[PartialDraft]:
    """Order drafts by the template position of their first generated section.

    Stable: drafts that tie (or recognize no section) keep their input order,
    and drafts with no recognized section go last.
    """
    positions = {title: i for i, title in enumerate(template.section_titles)}
    unknown = len(positions)

    def first_position(draft: PartialDraft) -> int:
        known = [positions[t] for t in draft.sections_generated if t in positions]
        return min(known) if known else unknown

    return sorted(partial_drafts, key=first_position)


def remove_duplicate_sections(markdown: str, section_titles: Sequence[str]) -> str:
    """Drop repeated section blocks, keeping the first occurrence.

    A block runs from a section heading to the next section heading; nested
    sub-headings belong to the block they appear in.
    """
    lookup = _title_lookup(section_titles)
    seen: set[str] = set()
    output: list[str] = []
    skip = False
    in_fence = False

    for line in markdown.split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        elif not in_fence:
            match = HEADING_RE.match(line)
            canonical = lookup.get(normalize_title(match.group(2))) if match else None
            if canonical is not None:
                skip = canonical in seen
                seen.add(canonical)
        if not skip:
            output.append(line)

    return "\n".join(output).strip()


def _normalize_chunk(body: str, lookup: dict[str, str], heading_level: int, drop_title: bool) -> str:
    lines: list[str] = []
    in_fence = False
    for line in body.split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            lines.append(line)
            continue
        match = None if in_fence else HEADING_RE.match(line)
        if match is None:
            lines.append(line)
            continue
        level, text = len(match.group(1)), match.group(2).strip()
        if normalize_title(text) in lookup:
            lines.append(f"{'#' * heading_level} {text}")
        elif level == 1 and drop_title:
            # Workers sometimes repeat the document title
            continue
        else:
            lines.append(line)
    return "\n".join(lines).strip()


def merge_markdown(
    partial_drafts: Sequence[PartialDraft],
    template: Template,
    *,
    heading_level: int = 2,
) -> str:
    """Merge partial drafts into one document body.

    Drafts are concatenated in template order (see ``order_drafts``), joined
    by a single blank line. Top-level titles are stripped from every chunk
    after the first, section headings are rendered at ``heading_level`` and
    later duplicate section blocks are removed.

    Raises:
        ValidationError: No drafts to merge
    """
    if not partial_drafts:
        raise ValidationError("No partial drafts provided for merging", field="partial_drafts")

    lookup = _title_lookup(template.section_titles)
    chunks = [
        _normalize_chunk(draft.markdown_body, lookup, heading_level, drop_title=i > 0)
        for i, draft in enumerate(order_drafts(partial_drafts, template))
    ]
    merged = "\n\n".join(chunk for chunk in chunks if chunk)
    return remove_duplicate_sections(merged, template.section_titles)


def section_order_matches(markdown: str, section_titles: Sequence[str]) -> tuple[bool, list[str]]:
    """Check that every section heading appears once-first, in template order.

    Returns:
        (ok, found) where ``found`` lists recognized section titles in the
        order they appear in ``markdown``.
    """
    found, _extras = classify_headings(markdown, section_titles)
    return found == list(section_titles), found
