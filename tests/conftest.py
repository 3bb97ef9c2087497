"""Pytest configuration and fixtures."""

import asyncio
import os
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Any

import pytest

from docbatch.config.settings import DocbatchSettings
from docbatch.core.job import Job, ProcessingConfig
from docbatch.services.error_reporter import ErrorReporter

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class FakePipeline:
    """Scriptable in-memory pipeline.

    ``failures`` maps a source reference to a list of exceptions raised by
    successive parse calls; once the list is exhausted parsing succeeds.
    Tracks call counts and the highest number of concurrently running
    parses.
    """

    def __init__(
        self,
        failures: dict[str, list[BaseException]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.delay = delay
        self.calls: dict[str, int] = defaultdict(int)
        self.configs: dict[str, list[ProcessingConfig]] = defaultdict(list)
        self.in_flight = 0
        self.max_in_flight = 0

    async def parse(self, source_ref: str, config: ProcessingConfig) -> dict[str, Any]:
        self.calls[source_ref] += 1
        self.configs[source_ref].append(config)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            pending = self.failures.get(source_ref)
            if pending:
                raise pending.pop(0)
            return {"source": source_ref, "format": config.output_format.value}
        finally:
            self.in_flight -= 1

    async def clean(self, document: dict[str, Any], config: ProcessingConfig) -> str:
        return f"cleaned:{document['source']}"


class RenderingPipeline(FakePipeline):
    """Fake pipeline that can also render."""

    def render(self, content: str, config: ProcessingConfig) -> str:
        return f"{config.output_format.value}:{content}"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run in an isolated directory without docbatch.yaml or DOCBATCH_ env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("DOCBATCH_"):
            monkeypatch.delenv(key, raising=False)

    from docbatch.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def settings(isolated_settings) -> DocbatchSettings:  # noqa: ARG001
    """Settings with no retry backoff, so recovery tests run instantly."""
    return DocbatchSettings(
        recovery={"max_attempts": 3, "retry_base_delay": 0.0},
    )


@pytest.fixture
def reporter() -> ErrorReporter:
    """A fresh error reporter, isolated from the process-wide one."""
    return ErrorReporter()


@pytest.fixture
def pipeline() -> FakePipeline:
    """A pipeline where every job succeeds."""
    return FakePipeline()


@pytest.fixture
def make_pipeline():
    """Factory for scripted pipelines, see FakePipeline."""
    return FakePipeline


@pytest.fixture
def rendering_pipeline() -> RenderingPipeline:
    """A pipeline that can also render its cleaned content."""
    return RenderingPipeline()


@pytest.fixture
def make_jobs():
    """Factory creating jobs for the given source references."""

    def _make(*source_refs: str, config: ProcessingConfig | None = None) -> list[Job]:
        return [Job.create(ref, config) for ref in source_refs]

    return _make


@pytest.fixture
def low_memory():
    """Memory probe that always reports a small footprint."""
    return lambda: 50.0
