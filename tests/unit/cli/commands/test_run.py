"""Tests for run command."""

import sys
import types
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from docbatch.cli.commands.run import _build_config
from docbatch.cli.main import app
from docbatch.config.settings import DocbatchSettings
from docbatch.core.job import CleanupLevel, OutputFormat
from docbatch.exceptions import FormatConversionError, SourceNotFoundError

runner = CliRunner()

MODULE = "docbatch_cli_test_pipelines"


class TextPipeline:
    """Reads plain text files."""

    def parse(self, source_ref, config):
        path = Path(source_ref)
        if not path.exists():
            raise SourceNotFoundError(source_ref)
        return path.read_text(encoding="utf-8")

    def clean(self, document, config):
        return document.strip()


class RenderingTextPipeline(TextPipeline):
    """Reads plain text files and renders them."""

    def render(self, content, config):
        return f"[{config.output_format.value}] {content}"


class PickyRenderPipeline(TextPipeline):
    """Renders every document except the one reading "alpha"."""

    def render(self, content, config):
        if content == "alpha":
            raise FormatConversionError(config.output_format.value, "unsupported table")
        return content


@pytest.fixture
def workspace(isolated_settings):
    """Working directory with two documents and an importable pipeline module."""
    (isolated_settings / "a.txt").write_text("alpha\n", encoding="utf-8")
    (isolated_settings / "b.txt").write_text("beta\n", encoding="utf-8")

    module = types.ModuleType(MODULE)
    module.TextPipeline = TextPipeline
    module.RenderingTextPipeline = RenderingTextPipeline
    module.PickyRenderPipeline = PickyRenderPipeline
    sys.modules[MODULE] = module
    yield isolated_settings
    sys.modules.pop(MODULE, None)


class TestRunCommand:
    """Tests for `docbatch run`."""

    def test_all_succeed(self, workspace):  # noqa: ARG002
        """Test a successful batch exits 0 and prints the summary."""
        result = runner.invoke(
            app, ["run", "a.txt", "b.txt", "--pipeline", f"{MODULE}:TextPipeline"]
        )

        assert result.exit_code == 0
        assert "Batch Summary" in result.output

    def test_failure_exits_nonzero(self, workspace):  # noqa: ARG002
        """Test a failed document gives exit code 1 and is listed."""
        result = runner.invoke(
            app, ["run", "a.txt", "missing.txt", "--pipeline", f"{MODULE}:TextPipeline"]
        )

        assert result.exit_code == 1
        assert "Failed Documents" in result.output
        assert "missing.txt" in result.output

    def test_writes_rendered_output(self, workspace):
        """Test rendered content lands in the output directory."""
        result = runner.invoke(
            app,
            [
                "run",
                "a.txt",
                "b.txt",
                "--pipeline",
                f"{MODULE}:RenderingTextPipeline",
                "--format",
                "html",
                "--output",
                "out",
            ],
        )

        assert result.exit_code == 0
        assert (workspace / "out" / "a.html").read_text(encoding="utf-8") == "[html] alpha"
        assert (workspace / "out" / "b.html").exists()

    def test_output_without_renderer(self, workspace):
        """Test output is skipped when the pipeline cannot render."""
        result = runner.invoke(
            app, ["run", "a.txt", "-p", f"{MODULE}:TextPipeline", "-o", "out"]
        )

        assert result.exit_code == 0
        assert "no render()" in result.output
        assert not (workspace / "out" / "a.md").exists()

    def test_render_failure_keeps_writing(self, workspace):
        """Test a document that fails to render does not stop the other outputs."""
        result = runner.invoke(
            app, ["run", "a.txt", "b.txt", "-p", f"{MODULE}:PickyRenderPipeline", "-o", "out"]
        )

        assert result.exit_code == 0
        assert "Failed to write" in result.output
        assert "Batch Summary" in result.output
        assert not (workspace / "out" / "a.md").exists()
        assert (workspace / "out" / "b.md").read_text(encoding="utf-8") == "beta"

    def test_same_stem_outputs_do_not_collide(self, workspace):
        """Test documents sharing a file name get distinct output files."""
        for folder, text in (("x", "first\n"), ("y", "second\n")):
            (workspace / folder).mkdir()
            (workspace / folder / "a.txt").write_text(text, encoding="utf-8")

        result = runner.invoke(
            app, ["run", "x/a.txt", "y/a.txt", "-p", f"{MODULE}:RenderingTextPipeline", "-o", "out"]
        )

        assert result.exit_code == 0
        assert (workspace / "out" / "a.md").read_text(encoding="utf-8") == "[markdown] first"
        assert (workspace / "out" / "a_1.md").read_text(encoding="utf-8") == "[markdown] second"

    def test_invalid_format(self, workspace):  # noqa: ARG002
        """Test unknown output formats are rejected."""
        result = runner.invoke(
            app, ["run", "a.txt", "-p", f"{MODULE}:TextPipeline", "--format", "docx"]
        )

        assert result.exit_code == 1
        assert "Invalid output format" in result.output

    def test_invalid_cleanup(self, workspace):  # noqa: ARG002
        """Test unknown cleanup levels are rejected."""
        result = runner.invoke(
            app, ["run", "a.txt", "-p", f"{MODULE}:TextPipeline", "--cleanup", "extreme"]
        )

        assert result.exit_code == 1
        assert "Invalid cleanup level" in result.output

    def test_invalid_pipeline(self, workspace):  # noqa: ARG002
        """Test a malformed pipeline reference is rejected."""
        result = runner.invoke(app, ["run", "a.txt", "--pipeline", "not-a-reference"])

        assert result.exit_code == 1
        assert "Invalid pipeline reference" in result.output

    def test_memory_ceiling_aborts(self, workspace):  # noqa: ARG002
        """Test a resource ceiling breach aborts the batch."""
        with patch("docbatch.core.coordinator.get_memory_mb", return_value=10_000.0):
            result = runner.invoke(
                app, ["run", "a.txt", "-p", f"{MODULE}:TextPipeline", "--ceiling", "200"]
            )

        assert result.exit_code == 1
        assert "Not enough memory" in result.output


class TestBuildConfig:
    """Tests for command-line overrides of processing defaults."""

    def test_defaults(self, isolated_settings):  # noqa: ARG002
        """Test settings defaults are used without overrides."""
        config = _build_config(DocbatchSettings(), None, None, False, None)

        assert config.output_format == OutputFormat.MARKDOWN
        assert config.preserve_images is True

    def test_overrides(self, isolated_settings):  # noqa: ARG002
        """Test every override is applied."""
        config = _build_config(DocbatchSettings(), "plaintext", "aggressive", True, False)

        assert config.output_format == OutputFormat.PLAINTEXT
        assert config.cleanup_level == CleanupLevel.AGGRESSIVE
        assert config.preserve_images is False
        assert config.include_metadata is False
