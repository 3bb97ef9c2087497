"""Run command for batch document conversion."""

import asyncio
import signal
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from docbatch.config import get_settings
from docbatch.config.constants import CLEANUP_LEVELS, FORMAT_EXTENSIONS, OUTPUT_FORMATS
from docbatch.config.settings import DocbatchSettings
from docbatch.core.coordinator import BatchCoordinator
from docbatch.core.job import Job, ProcessingConfig
from docbatch.core.pipeline import ContentRenderer, DocumentPipeline, call_stage, load_pipeline
from docbatch.core.state import BatchProgress, BatchResult
from docbatch.exceptions import DocbatchError, OutputError
from docbatch.services.error_reporter import get_error_reporter
from docbatch.utils.logging import get_console, get_logger, setup_task_logging

console = get_console()
log = get_logger(__name__)


def run(
    sources: Annotated[
        list[str],
        typer.Argument(help="Source references (usually file paths) to convert."),
    ],
    pipeline: Annotated[
        str,
        typer.Option(
            "--pipeline",
            "-p",
            help="Pipeline providing parse() and clean(), as 'module:attribute'.",
        ),
    ],
    output_format: Annotated[
        str | None,
        typer.Option(
            "--format",
            "-f",
            help=f"Output format. Options: {', '.join(OUTPUT_FORMATS)}",
        ),
    ] = None,
    cleanup: Annotated[
        str | None,
        typer.Option(
            "--cleanup",
            help=f"Cleanup level. Options: {', '.join(CLEANUP_LEVELS)}",
        ),
    ] = None,
    no_images: Annotated[
        bool,
        typer.Option(
            "--no-images",
            help="Do not preserve images.",
        ),
    ] = False,
    metadata: Annotated[
        bool | None,
        typer.Option(
            "--metadata/--no-metadata",
            help="Include document metadata.",
        ),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option(
            "--concurrency",
            "-c",
            help="Number of documents processed concurrently (1-10).",
        ),
    ] = None,
    ceiling: Annotated[
        float | None,
        typer.Option(
            "--ceiling",
            help="Memory ceiling in MB checked before each group (min 100).",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Directory for rendered output (requires a pipeline with render()).",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """Convert a batch of documents.

    Examples:
        docbatch run a.docx b.pdf --pipeline mypkg.pipeline:Pipeline
        docbatch run *.docx -p mypkg.pipeline:Pipeline -f html -o ./out
        docbatch run *.pdf -p mypkg.pipeline:Pipeline --concurrency 5
    """
    settings = get_settings()

    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="run",
        verbose=verbose,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))

    log.info("Task Configuration", task_id=task_id, config=settings.model_dump())

    if output_format and output_format not in OUTPUT_FORMATS:
        console.print(
            f"[red]Error:[/red] Invalid output format '{output_format}'. "
            f"Options: {', '.join(OUTPUT_FORMATS)}"
        )
        raise typer.Exit(1)

    if cleanup and cleanup not in CLEANUP_LEVELS:
        console.print(
            f"[red]Error:[/red] Invalid cleanup level '{cleanup}'. "
            f"Options: {', '.join(CLEANUP_LEVELS)}"
        )
        raise typer.Exit(1)

    try:
        doc_pipeline = load_pipeline(pipeline)
    except DocbatchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e

    config = _build_config(settings, output_format, cleanup, no_images, metadata)
    jobs = [Job.create(source, config) for source in sources]

    log.info(
        "Starting batch conversion",
        jobs=len(jobs),
        pipeline=pipeline,
        output_format=config.output_format.value,
        output_dir=str(output) if output else None,
    )

    try:
        result = asyncio.run(
            _execute_run(
                jobs=jobs,
                pipeline=doc_pipeline,
                settings=settings,
                concurrency=concurrency,
                ceiling=ceiling,
                output_dir=output,
            )
        )
    except DocbatchError as e:
        console.print(f"[red]Error:[/red] {get_error_reporter().user_message(e)}")
        log.error("Batch aborted", code=e.code, error=e.message)
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        log.error("Batch conversion failed", error=str(e), exc_info=True)
        raise typer.Exit(1) from e

    _display_summary(result)

    if result.failed:
        raise typer.Exit(1)


def _build_config(
    settings: DocbatchSettings,
    output_format: str | None,
    cleanup: str | None,
    no_images: bool,
    metadata: bool | None,
) -> ProcessingConfig:
    """Apply command-line overrides to the configured processing defaults."""
    config = ProcessingConfig.from_settings(settings)
    changes: dict[str, object] = {}
    if output_format:
        changes["output_format"] = output_format
    if cleanup:
        changes["cleanup_level"] = cleanup
    if no_images:
        changes["preserve_images"] = False
    if metadata is not None:
        changes["include_metadata"] = metadata
    return config.derive(**changes) if changes else config


async def _execute_run(
    jobs: list[Job],
    pipeline: DocumentPipeline,
    settings: DocbatchSettings,
    concurrency: int | None,
    ceiling: float | None,
    output_dir: Path | None,
) -> BatchResult:
    """Run the batch with a progress bar, cancelling on Ctrl+C."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("({task.completed}/{task.total})"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        progress_task_id = progress.add_task("[cyan]Converting documents...", total=len(jobs))

        def on_progress(snapshot: BatchProgress) -> None:
            progress.update(
                progress_task_id,
                completed=snapshot.completed,
                description=f"[cyan]{Path(snapshot.current_job).name}",
            )

        coordinator = BatchCoordinator(
            pipeline,
            concurrency_limit=concurrency,
            resource_ceiling=ceiling,
            on_progress=on_progress,
            settings=settings,
        )

        loop = asyncio.get_running_loop()
        handler_installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, _request_cancel, coordinator)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            log.debug("Signal handlers not supported, Ctrl+C will not cancel gracefully")

        try:
            result = await coordinator.run_batch(jobs)
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

    if output_dir is not None:
        await _write_outputs(result, pipeline, jobs, output_dir)

    return result


def _request_cancel(coordinator: BatchCoordinator) -> None:
    console.print("\n[yellow]Cancelling, waiting for running documents to finish...[/yellow]")
    coordinator.cancel_batch()


async def _write_outputs(
    result: BatchResult,
    pipeline: DocumentPipeline,
    jobs: list[Job],
    output_dir: Path,
) -> None:
    """Render successful outcomes into ``output_dir``.

    A document that fails to render or write is reported and the remaining
    documents are still written.
    """
    if not isinstance(pipeline, ContentRenderer):
        console.print("[yellow]Pipeline has no render(), skipping output files.[/yellow]")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    reporter = get_error_reporter()
    used: set[Path] = set()

    for job, outcome in zip(jobs, result.outcomes, strict=True):
        if not outcome.success:
            continue

        extension = FORMAT_EXTENSIONS[job.config.output_format.value]
        output_path = _unique_output_path(output_dir, Path(job.source_ref).stem, extension, used)
        try:
            rendered = await call_stage(pipeline.render, outcome.output, job.config)
            output_path.write_text(rendered, encoding="utf-8")
        except Exception as e:
            if isinstance(e, OSError):
                error: DocbatchError = OutputError(
                    f"Failed to write {output_path}: {e}", cause=e, source_ref=job.source_ref
                )
            else:
                error = reporter.classify(e)
            reporter.record(error, reporter.create_context("write_output", job.source_ref))
            console.print(
                f"[red]Failed to write[/red] {output_path}: {reporter.user_message(error)}"
            )
            continue

        log.debug("Output written", source_ref=job.source_ref, output=str(output_path))


def _unique_output_path(output_dir: Path, stem: str, extension: str, used: set[Path]) -> Path:
    """Pick an output path not yet taken by this batch, adding ``_N`` on collision."""
    output_path = output_dir / f"{stem}{extension}"
    counter = 1
    while output_path in used:
        output_path = output_dir / f"{stem}_{counter}{extension}"
        counter += 1
    used.add(output_path)
    return output_path


def _display_summary(result: BatchResult) -> None:
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Summary", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Total Documents", str(result.total_jobs))
    table.add_row("Succeeded", f"[green]{result.succeeded}[/green]")
    table.add_row("Failed", f"[red]{result.failed}[/red]")
    if result.skipped:
        table.add_row("Skipped", f"[yellow]{result.skipped}[/yellow]")
    if result.cancelled:
        table.add_row("Cancelled", f"[yellow]{result.cancelled}[/yellow]")
    if result.total_jobs > 0:
        table.add_row("Success Rate", f"{result.success_rate:.1f}%")
    table.add_row("Duration", f"{result.total_elapsed_ms / 1000:.1f}s")

    console.print(table)

    failed = [o for o in result.outcomes if not o.success and not o.cancelled]
    if failed:
        console.print()
        console.print("[bold red]Failed Documents:[/bold red]")
        for outcome in failed[:10]:
            console.print(f"  [dim]-[/dim] {Path(outcome.source_ref).name}")
            console.print(f"    [dim]{outcome.error_message}[/dim]")
        if len(failed) > 10:
            console.print(f"  [dim]... and {len(failed) - 10} more[/dim]")
