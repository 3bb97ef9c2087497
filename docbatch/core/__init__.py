"""Core batch model for docbatch."""

from docbatch.core.cancellation import CancellationToken
from docbatch.core.job import CleanupLevel, Job, OutputFormat, ProcessingConfig
from docbatch.core.pipeline import ContentRenderer, DocumentPipeline, load_pipeline, run_pipeline
from docbatch.core.state import BatchProgress, BatchResult, JobOutcome, ProgressTracker

__all__ = [
    # Jobs
    "Job",
    "ProcessingConfig",
    "OutputFormat",
    "CleanupLevel",
    # Results and progress
    "JobOutcome",
    "BatchResult",
    "BatchProgress",
    "ProgressTracker",
    "CancellationToken",
    # Pipeline collaborators
    "DocumentPipeline",
    "ContentRenderer",
    "load_pipeline",
    "run_pipeline",
]
