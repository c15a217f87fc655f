"""Task splitter - contiguous partitioning of template sections (pure).

Chunks are balanced with ``divmod`` instead of being sliced at a fixed width of
``ceil(n / w)``. Fixed-width slicing can emit fewer than ``min(w, n)`` chunks:
5 sections over 4 workers slices into 2,2,1 (three workers) where the balanced
split gives 2,1,1,1. Contiguity and section order are the same under both.
"""

from collections.abc import Sequence

from backend.drafting.errors import ValidationError
from backend.drafting.models.drafts import DraftTask
from backend.drafting.models.template import Section


def split_into_tasks(
    sections: Sequence[Section],
    max_workers: int,
    model_override: str | None = None,
) -> list[DraftTask]:
    """Split ordered sections into balanced, contiguous drafting tasks.

    Pure function with no I/O. Produces exactly ``min(max_workers, n)`` tasks
    whose sizes differ by at most one (the largest is ``ceil(n / w)``); the
    larger runs come first.

    Args:
        sections: Template sections in document order
        max_workers: Upper bound on concurrent workers (must be >= 1)
        model_override: Model identifier stamped on every task

    Returns:
        Tasks in emission order. Concatenating their ``section_ids``
        reproduces the original section order exactly.

    Raises:
        ValidationError: No sections, or a non-positive worker bound
    """
    if max_workers < 1:
        raise ValidationError(f"max_workers must be >= 1, got {max_workers}", field="max_workers")
    if not sections:
        raise ValidationError("Template has no sections to split", field="sections")

    n = len(sections)
    num_tasks = min(max_workers, n)
    base, remainder = divmod(n, num_tasks)

    tasks: list[DraftTask] = []
    start = 0
    for i in range(num_tasks):
        size = base + (1 if i < remainder else 0)
        chunk = sections[start : start + size]
        start += size
        tasks.append(
            DraftTask(
                task_id=f"task-{i + 1}",
                index=i,
                section_ids=[s.id for s in chunk],
                model_override=model_override,
            )
        )

    return tasks
