"""Generate a document from a YAML matter file.

Usage:
    python -m scripts.generate_document nda-ip-specific matter.yaml --parallel --workers 4
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from backend.drafting.errors import DraftingError, FanOutError
from backend.drafting.orchestration.factory import build_orchestrator
from backend.drafting.orchestration.parallel import ParallelOrchestrator
from backend.drafting.templates.matter import load_matter_context

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(description="Generate a document from a matter file")
    parser.add_argument("document_type", help="Template identifier, e.g. nda-ip-specific")
    parser.add_argument("input", type=Path, help="YAML matter file")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--parallel",
        dest="parallel",
        action="store_true",
        default=None,
        help="Draft sections concurrently",
    )
    mode.add_argument(
        "--sequential",
        dest="parallel",
        action="store_false",
        help="Draft the whole document in one call",
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel worker bound")
    parser.add_argument("--output", type=Path, default=None, help="Write markdown here")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


async def main() -> int:
    """Run the pipeline and print or write the document."""
    args = _create_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        matter = load_matter_context(args.input, document_type=args.document_type)
        orchestrator = build_orchestrator(parallel=args.parallel)
        if isinstance(orchestrator, ParallelOrchestrator):
            document = await orchestrator.run(matter, args.workers)
        else:
            document = await orchestrator.run(matter)
    except FanOutError as e:
        logger.error(f"Drafting failed for sections: {', '.join(e.failed_section_ids)}")
        return 1
    except DraftingError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(document.content + "\n", encoding="utf-8")
        print(f"Wrote {document.metadata.mode} document to {args.output}")
    else:
        print(document.content)

    meta = document.metadata
    logger.info(
        f"{len(meta.sections_generated)} sections, {meta.worker_count} worker(s), "
        f"{meta.total_duration_ms:.0f}ms"
    )
    if meta.missing_sections:
        logger.warning(f"Missing sections: {', '.join(meta.missing_sections)}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
