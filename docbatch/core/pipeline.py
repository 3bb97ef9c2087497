"""Collaborator interfaces for the parse, clean, and render stages.

The batch engine does not know how documents are parsed or cleaned. Callers
hand it a pipeline object providing these stages. Stage methods may be
plain functions or coroutines; plain ones run in a worker thread so a slow
parser never blocks the event loop.
"""

import importlib
import inspect
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import anyio

from docbatch.core.job import ProcessingConfig
from docbatch.exceptions import ProcessingError, ValidationError
from docbatch.utils.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class DocumentPipeline(Protocol):
    """Parse and clean stages consumed by the batch coordinator.

    ``parse`` raises a parsing or file-access ``DocbatchError`` on failure,
    ``clean`` a processing one. Any other exception is classified as a
    system error.
    """

    def parse(self, source_ref: str, config: ProcessingConfig) -> Any:
        """Extract a raw document from ``source_ref``."""
        ...

    def clean(self, document: Any, config: ProcessingConfig) -> Any:
        """Turn a raw document into structured content."""
        ...


@runtime_checkable
class ContentRenderer(Protocol):
    """Render stage, used by consumers of a batch result."""

    def render(self, content: Any, config: ProcessingConfig) -> str:
        """Render structured content into the configured output format."""
        ...


async def call_stage(func: Callable[..., Any], *args: Any) -> Any:
    """Invoke a stage method, awaiting coroutines and threading plain callables."""
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    result = await anyio.to_thread.run_sync(func, *args)
    if inspect.isawaitable(result):
        return await result
    return result


async def run_pipeline(
    pipeline: DocumentPipeline, source_ref: str, config: ProcessingConfig
) -> Any:
    """Parse then clean one source with the given config snapshot.

    Raises:
        ProcessingError: If the clean stage returns no content.
    """
    log.debug("Parsing document", output_format=config.output_format.value)
    document = await call_stage(pipeline.parse, source_ref, config)
    log.debug("Cleaning content", cleanup_level=config.cleanup_level.value)
    content = await call_stage(pipeline.clean, document, config)
    if content is None:
        raise ProcessingError("Pipeline returned no content", stage="clean")
    return content


def load_pipeline(reference: str) -> DocumentPipeline:
    """Import a pipeline from a ``module:attribute`` reference.

    The attribute may be a pipeline object, a class, or a zero-argument
    factory; classes and factories are called.

    Raises:
        ValidationError: If the reference is malformed, cannot be imported,
            or does not provide ``parse`` and ``clean``.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValidationError(
            f"Invalid pipeline reference '{reference}', expected 'module:attribute'",
            field="pipeline",
            value=reference,
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValidationError(
            f"Cannot import pipeline module '{module_name}': {e}",
            field="pipeline",
            value=reference,
        ) from e

    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise ValidationError(
            f"Module '{module_name}' has no attribute '{attr}'",
            field="pipeline",
            value=reference,
        ) from e

    pipeline = target() if inspect.isclass(target) or inspect.isfunction(target) else target

    if not isinstance(pipeline, DocumentPipeline):
        raise ValidationError(
            f"'{reference}' does not provide parse() and clean()",
            field="pipeline",
            value=reference,
        )

    log.debug(
        "Pipeline loaded", pipeline=reference, renders=isinstance(pipeline, ContentRenderer)
    )
    return pipeline
