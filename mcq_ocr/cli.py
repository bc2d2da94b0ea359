"""
CLI Interface
=============
Command-line interface for the question sheet OCR pipeline.

Usage:
    python -m mcq_ocr process [image_path] [options]
    python -m mcq_ocr parse-text <text_file> [options]
    python -m mcq_ocr clean [text_file]
    python -m mcq_ocr info <image_path>
    python -m mcq_ocr validate <json_path>
"""

from __future__ import annotations

import json
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .engine import PipelineConfig, OcrPipeline
from .errors import (
    EXIT_MISSING_IMAGE,
    EXIT_NO_QUESTIONS,
    EXIT_PROCESSING_FAILED,
    OcrPipelineError,
)
from .image_processor import (
    BINARIZE_THRESHOLD,
    ImageProcessor,
    compute_column_regions,
)
from .models import ColumnName, ResultDocument
from .normalizer import clean_ocr_text
from .state_machine import parse_questions
from .storage import DEFAULT_IMAGE_NAME, resolve_image_path
from .validator import ValidationEngine, dedupe_and_sort
from .writer import ResultWriter

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="mcq-ocr")
def cli():
    """Question Sheet OCR — two-column multiple-choice sheet extractor."""
    pass


@cli.command()
@click.argument("image_path", required=False, default=None)
@click.option(
    "--output", "-o",
    default=None,
    help="Output JSON path (default: ocr_output.json beside the image)",
)
@click.option(
    "--work-dir",
    default=None,
    help="Directory for intermediate images (default: image directory)",
)
@click.option(
    "--threshold",
    default=BINARIZE_THRESHOLD,
    type=click.IntRange(0, 255),
    help="Binarization threshold (0-255)",
)
@click.option(
    "--lang",
    default="eng",
    help="Tesseract language",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def process(
    image_path: str,
    output: str,
    work_dir: str,
    threshold: int,
    lang: str,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Run OCR on a two-column sheet and write the questions as JSON.

    IMAGE_PATH defaults to image.jpg next to the program.
    """

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = PipelineConfig(
        image_path=image_path,
        output_path=output,
        work_dir=work_dir,
        threshold=threshold,
        language=lang,
        log_level=log_level,
        log_file=log_file,
    )

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]Question Sheet OCR v{__version__}[/]\n"
                f"[dim]Processing: {image_path or DEFAULT_IMAGE_NAME}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        if json_output:
            pipeline = OcrPipeline(config, echo=click.echo)
            result = pipeline.run(progress_callback=lambda column, percent: None)
        else:
            pipeline = OcrPipeline(config, echo=_echo_json)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>6.2f}%"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                tasks = {
                    column: progress.add_task(
                        f"Recognizing {column.value} column...", total=100
                    )
                    for column in ColumnName
                }

                def on_progress(column: ColumnName, percent: float):
                    progress.update(tasks[column], completed=percent)

                result = pipeline.run(progress_callback=on_progress)

            _display_questions(result.document)
            _display_validation_table(result.validation.model_dump())
            console.print(f"[dim]Output saved to: {result.output_path}[/]")
            console.print()

    except FileNotFoundError as e:
        console.print(f"[red]FATAL ERROR:[/] {e}")
        sys.exit(EXIT_MISSING_IMAGE)
    except OcrPipelineError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(e.exit_code)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(EXIT_PROCESSING_FAILED)

    if not result.document.questions:
        if not json_output:
            console.print("[yellow]No questions passed the filters.[/]")
        sys.exit(EXIT_NO_QUESTIONS)


@cli.command(name="parse-text")
@click.argument("text_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--image-name",
    default=DEFAULT_IMAGE_NAME,
    help="Value for the imageFile field",
)
@click.option(
    "--output", "-o",
    default=None,
    help="Also write the JSON document to this path",
)
def parse_text(text_file, image_name: str, output: str):
    """Parse already-recognized text into the JSON result document."""

    normalized = clean_ocr_text(text_file.read())
    document = ResultDocument(
        image_file=image_name,
        questions=dedupe_and_sort(parse_questions(normalized)),
    )

    if output:
        ResultWriter(echo=click.echo).write(document, output)
    else:
        click.echo(document.to_json())

    if not document.questions:
        sys.exit(EXIT_NO_QUESTIONS)


@cli.command()
@click.argument("text_file", type=click.File("r", encoding="utf-8"), default="-")
def clean(text_file):
    """Print TEXT_FILE (default: stdin) after OCR text cleanup."""
    click.echo(clean_ocr_text(text_file.read()))


@cli.command()
@click.argument("image_path")
def info(image_path: str):
    """Display image size and the two column regions."""

    try:
        path = resolve_image_path(image_path)
        width, height = ImageProcessor().read_dimensions(path)
        regions = compute_column_regions(width, height)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_MISSING_IMAGE)
    except OcrPipelineError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(e.exit_code)

    console.print()
    table = Table(title="Image Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("File", path.name)
    table.add_row("Size", f"{width} x {height}")
    table.add_row("File Size", f"{path.stat().st_size / 1024:.1f} KB")
    for column, region in regions.items():
        table.add_row(
            f"{column.value.title()} Column",
            f"left={region.left} top={region.top} "
            f"width={region.width} height={region.height}",
        )
    console.print(table)
    console.print()


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
def validate(json_path: str):
    """Validate a previously generated ocr_output.json."""

    try:
        with open(json_path, "r", encoding="utf-8") as f:
            document = ResultDocument.model_validate(json.load(f))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid result document:[/] {e}")
        sys.exit(EXIT_PROCESSING_FAILED)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Validation Report[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )

    report = ValidationEngine().validate(document.questions)
    _display_validation_table(report.model_dump())

    numbers = [q.question_number for q in document.questions]
    if numbers != sorted(set(numbers)):
        console.print("[red]✗ Questions are not strictly ascending[/]")
        sys.exit(EXIT_PROCESSING_FAILED)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _echo_json(payload: str):
    console.print()
    console.print("[bold]--- Structured OCR Result ---[/]")
    console.print_json(payload, indent=2)


def _display_questions(document: ResultDocument):
    """Display extracted questions in a table."""
    table = Table(title="Extracted Questions", border_style="cyan")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Question")
    table.add_column("Options", justify="right")

    for q in document.questions:
        text = q.text if len(q.text) <= 60 else q.text[:57] + "..."
        table.add_row(str(q.question_number), text, str(len(q.options)))

    console.print(table)
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    unique = validation.get("unique_questions", 0)
    table.add_row(
        "Questions Extracted",
        str(unique),
        "[green]✓[/]" if unique > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Accepted Blocks",
        str(validation.get("total_blocks_accepted", 0)),
        "",
    )
    table.add_row(
        "Rejected Blocks",
        str(validation.get("rejected_blocks", 0)),
        "[yellow]⚠[/]" if validation.get("rejected_blocks", 0) else "[green]✓[/]",
    )

    dupes = validation.get("duplicate_question_numbers", [])
    table.add_row(
        "Duplicate Question Numbers",
        ", ".join(map(str, dupes)) or "0",
        status_icon(len(dupes)),
    )

    missing = validation.get("missing_question_numbers", [])
    table.add_row(
        "Missing Question Numbers",
        ", ".join(map(str, missing)) or "0",
        status_icon(len(missing)),
    )

    console.print(table)
    console.print()


# ─── Entry point (for python -m mcq_ocr.cli) ──────────────────────────────────


if __name__ == "__main__":
    cli()
