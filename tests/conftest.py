"""Shared pytest fixtures for all test suites."""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from backend.drafting.config import PipelineConfig
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import RequiredField, Section, Template
from backend.drafting.pipeline.executor import WorkerExecutor
from backend.drafting.templates.loader import TemplateLoader

DOCUMENT_TYPE = "test-agreement"


class FakeGenerator:
    """Scriptable text generation service.

    Renders each section of the template it receives as ``## {title}`` plus a
    sentence of prose. Attributes tweak behavior per section id:
        fail_sections: section id -> exception raised on every call
        fail_times: section id -> number of calls that raise before succeeding
        delays: section id -> seconds to sleep (permutes completion order)
        omit_sections: section ids left out of the output
        extra_titles: section id -> titles appended after that section
        title: top-level heading prepended to every output
    """

    def __init__(self) -> None:
        self.fail_sections: dict[str, Exception] = {}
        self.fail_times: dict[str, tuple[int, Exception]] = {}
        self.delays: dict[str, float] = {}
        self.omit_sections: set[str] = set()
        self.extra_titles: dict[str, list[str]] = {}
        self.title: str | None = None
        self.polish_suffix = ""
        self.calls: list[dict[str, Any]] = []
        self.polish_calls: list[str] = []
        self.completed: list[str] = []

    async def generate(
        self,
        template: Template,
        explanation: str,
        field_data: dict[str, Any],
        model_override: str | None = None,
        context_bundle: ContextBundle | None = None,
    ) -> str:
        ids = [s.id for s in template.sections]
        self.calls.append(
            {
                "section_ids": ids,
                "model_override": model_override,
                "explanation": explanation,
                "context_bundle": context_bundle,
            }
        )

        delay = max((self.delays.get(sid, 0.0) for sid in ids), default=0.0)
        if delay:
            await asyncio.sleep(delay)

        for sid in ids:
            if sid in self.fail_sections:
                raise self.fail_sections[sid]
            if sid in self.fail_times:
                remaining, error = self.fail_times[sid]
                if remaining > 0:
                    self.fail_times[sid] = (remaining - 1, error)
                    raise error

        blocks = [f"# {self.title}"] if self.title else []
        for section in template.sections:
            if section.id in self.omit_sections:
                continue
            blocks.append(
                f"## {section.title}\n\n"
                f"The {section.title.lower()} provisions for {field_data.get('client', 'the client')} "
                "are set out in this section."
            )
            for extra in self.extra_titles.get(section.id, []):
                blocks.append(f"## {extra}\n\nRepeated content.")

        if ids:
            self.completed.append(ids[0])
        return "\n\n".join(blocks)

    async def polish(
        self,
        markdown: str,
        explanation: str,
        model_override: str | None = None,
    ) -> str:
        self.polish_calls.append(markdown)
        return markdown + self.polish_suffix


def build_template(section_count: int = 12, template_id: str = DOCUMENT_TYPE) -> Template:
    return Template(
        id=template_id,
        name="Test Agreement",
        description="Agreement used in tests",
        explanation_text="Draft formally.",
        required_fields=[
            RequiredField(id="client", name="Client", description="Client name"),
            RequiredField(id="effective_date", name="Effective Date", type="date"),
        ],
        sections=[
            Section(id=f"s{i}", title=f"Section Title {i}", order=i, content=f"Content {i}")
            for i in range(1, section_count + 1)
        ],
    )


@pytest.fixture
def make_template() -> Callable[..., Template]:
    """Factory for templates with N sections titled 'Section Title i'."""
    return build_template


@pytest.fixture
def template() -> Template:
    """12-section template."""
    return build_template(12)


@pytest.fixture
def matter_context() -> MatterContext:
    """Matter for the test template."""
    return MatterContext(
        document_type=DOCUMENT_TYPE,
        client="Acme Corp",
        attorney="J. Doe",
        field_data={
            "client": "Acme Corp",
            "document_type": DOCUMENT_TYPE,
            "effective_date": "2025-01-01",
        },
    )


@pytest.fixture
def fake_generator() -> FakeGenerator:
    """Fresh scriptable generator."""
    return FakeGenerator()


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    """Templates directory holding the 12-section test template."""
    core = tmp_path / "core"
    explanations = tmp_path / "explanations"
    core.mkdir()
    explanations.mkdir()
    data = build_template(12).model_dump(exclude={"explanation_text"})
    (core / f"{DOCUMENT_TYPE}.json").write_text(json.dumps(data), encoding="utf-8")
    (explanations / f"{DOCUMENT_TYPE}.md").write_text("Draft formally.\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def template_loader(templates_dir: Path) -> TemplateLoader:
    return TemplateLoader(templates_dir)


@pytest.fixture
def repo_templates_dir() -> Path:
    """Templates shipped with the repository."""
    return Path(__file__).resolve().parents[1] / "templates"


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Pipeline config with one retry and zero backoff."""
    return PipelineConfig(
        max_parallel_workers=4,
        worker_model="worker-model",
        worker_retry_count=1,
        retry_backoff_base_ms=0,
        retry_backoff_max_ms=0,
        retry_jitter_max_ms=0,
    )


@pytest.fixture
def no_sleep_executor() -> WorkerExecutor:
    """Executor whose backoff sleeps return immediately."""

    async def no_sleep(_seconds: float) -> None:
        return None

    return WorkerExecutor(sleep_fn=no_sleep)
