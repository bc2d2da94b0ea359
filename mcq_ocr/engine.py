"""
OCR Pipeline Engine
===================
Main orchestrator that combines column splitting, image enhancement,
text recognition, normalization, question parsing, deduplication and
output writing into one sequential run.

Usage:
    pipeline = OcrPipeline(PipelineConfig(image_path="image.jpg"))
    result = pipeline.run()
    # result.document is the ResultDocument written to ocr_output.json

Architecture:
    image → ImageProcessor (left, then right) → TextRecognizer →
    clean_ocr_text → QuestionStateMachine → dedupe_and_sort →
    ResultWriter (JSON)
"""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from . import storage
from .errors import EmptyRecognitionError
from .image_processor import (
    BINARIZE_THRESHOLD,
    SHARPEN_PERCENT,
    SHARPEN_RADIUS,
    SHARPEN_THRESHOLD,
    UPSCALE_FACTOR,
    ImageProcessor,
)
from .models import (
    ColumnName,
    ColumnRegion,
    ColumnText,
    PipelineResult,
    ResultDocument,
)
from .normalizer import clean_ocr_text
from .recognizer import (
    CHAR_WHITELIST,
    PSM_SINGLE_COLUMN,
    TesseractRecognizer,
    TextRecognizer,
)
from .state_machine import (
    QuestionStateMachine,
    mark_question_boundaries,
    split_question_blocks,
)
from .validator import ValidationEngine, dedupe_and_sort
from .writer import ResultWriter

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Separates the left and right column text in the combined text
COLUMN_SEPARATOR = "\n\n"

ColumnProgressCallback = Callable[[ColumnName, float], None]


@dataclass
class PipelineConfig:
    """Configuration for one pipeline run."""

    # Input / output (None = fixed defaults, see storage)
    image_path: Optional[str] = None
    output_path: Optional[str] = None
    work_dir: Optional[str] = None

    # Image enhancement
    threshold: int = BINARIZE_THRESHOLD
    upscale_factor: int = UPSCALE_FACTOR
    sharpen_radius: float = SHARPEN_RADIUS
    sharpen_percent: int = SHARPEN_PERCENT
    sharpen_threshold: int = SHARPEN_THRESHOLD

    # Text recognition
    language: str = "eng"
    psm: int = PSM_SINGLE_COLUMN
    char_whitelist: str = CHAR_WHITELIST

    # Output
    echo_json: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


RecognizerFactory = Callable[[PipelineConfig], TextRecognizer]


def default_recognizer_factory(config: PipelineConfig) -> TextRecognizer:
    return TesseractRecognizer(
        language=config.language,
        psm=config.psm,
        char_whitelist=config.char_whitelist,
    )


def _log_progress(column: ColumnName, percent: float):
    logger.info(f"Progress ({column.value}): {percent:.2f}%")


class OcrPipeline:
    """
    One-shot OCR pipeline for a two-column question sheet.

    Orchestrates:
        1. Column split (fixed 50/50)
        2. Enhancement + recognition, left column then right column
        3. Text normalization
        4. State machine parsing
        5. Deduplication and validation
        6. JSON output

    The recognizer is acquired once and released, and intermediate images
    are deleted, on every exit path.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        recognizer_factory: Optional[RecognizerFactory] = None,
        echo: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or PipelineConfig()
        self.recognizer_factory = recognizer_factory or default_recognizer_factory
        if echo is None and self.config.echo_json:
            echo = print
        self.echo = echo
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the package
        package_logger = logging.getLogger("mcq_ocr")
        package_logger.setLevel(log_level)

        # Console handler (skipped when the root logger is already set up)
        if not package_logger.handlers and not logging.getLogger().handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(file_handler)

    def run(
        self,
        progress_callback: Optional[ColumnProgressCallback] = None,
    ) -> PipelineResult:
        """
        Process the configured image into a result document.

        Args:
            progress_callback: Callback(column, percent) during recognition.

        Returns:
            PipelineResult with the document, column texts and validation.

        Raises:
            FileNotFoundError: If the source image doesn't exist.
            ImageMetadataError: If the image size can't be read.
            RecognitionError: If the OCR engine fails.
            EmptyRecognitionError: If neither column yields any text.
        """
        image_path = storage.resolve_image_path(self.config.image_path)
        output_path = (
            Path(self.config.output_path)
            if self.config.output_path
            else storage.output_path_for(image_path)
        )
        work_dir = Path(self.config.work_dir) if self.config.work_dir else image_path.parent
        progress_callback = progress_callback or _log_progress

        start_time = time.time()
        logger.info(f"Processing image from path: {image_path}")

        processor = ImageProcessor(
            threshold=self.config.threshold,
            upscale_factor=self.config.upscale_factor,
            sharpen_radius=self.config.sharpen_radius,
            sharpen_percent=self.config.sharpen_percent,
            sharpen_threshold=self.config.sharpen_threshold,
        )
        enhanced_paths = {
            column: storage.enhanced_image_path(work_dir, column)
            for column in ColumnName
        }

        try:
            with ExitStack() as stack:
                recognizer = stack.enter_context(
                    self.recognizer_factory(self.config)
                )
                stack.enter_context(
                    storage.temporary_files(*enhanced_paths.values())
                )

                # ── Step 1: Column regions ────────────────────────────
                regions = processor.split(image_path)

                # ── Step 2: Enhance + recognize, one column at a time ─
                columns = [
                    self._process_column(
                        processor,
                        recognizer,
                        image_path,
                        column,
                        regions[column],
                        enhanced_paths[column],
                        progress_callback,
                    )
                    for column in (ColumnName.LEFT, ColumnName.RIGHT)
                ]

                if all(c.is_empty for c in columns):
                    logger.error(
                        "Tesseract could not find any text in the image."
                    )
                    raise EmptyRecognitionError(
                        f"No text recognized in {image_path.name}"
                    )
                for c in columns:
                    if c.is_empty:
                        logger.warning(f"No text recognized in {c.name.value} column")

                # ── Step 3-5: Normalize, parse, deduplicate ───────────
                result = self._build_result(image_path, columns)

                # ── Step 6: Save output ───────────────────────────────
                writer = ResultWriter(echo=self.echo)
                result.output_path = writer.write(result.document, output_path)

        except Exception as e:
            logger.error(f"An error occurred during OCR processing: {e}")
            raise

        elapsed = time.time() - start_time
        logger.info(
            f"Run complete in {elapsed:.2f}s — "
            f"{len(result.document.questions)} questions extracted"
        )
        return result

    def _process_column(
        self,
        processor: ImageProcessor,
        recognizer: TextRecognizer,
        image_path: Path,
        column: ColumnName,
        region: ColumnRegion,
        enhanced_path: Path,
        progress_callback: ColumnProgressCallback,
    ) -> ColumnText:
        logger.info(f"Preprocessing {column.value} column {region.box}")
        processor.enhance_region(image_path, region, enhanced_path)

        logger.info(f"Recognizing text from {column.value} column...")
        raw_text = recognizer.recognize(
            enhanced_path,
            progress_callback=lambda percent: progress_callback(column, percent),
        )
        cleaned = clean_ocr_text(raw_text)
        logger.info(f"--- Raw {column.value.title()} Column Text ---\n{cleaned}")

        return ColumnText(
            name=column,
            region=region,
            raw_text=raw_text,
            cleaned_text=cleaned,
        )

    def _build_result(
        self, image_path: Path, columns: list[ColumnText]
    ) -> PipelineResult:
        full_text = COLUMN_SEPARATOR.join(c.cleaned_text for c in columns)
        normalized = clean_ocr_text(full_text)

        machine = QuestionStateMachine()
        accepted = machine.parse(
            split_question_blocks(mark_question_boundaries(normalized))
        )
        questions = dedupe_and_sort(accepted)

        validation = ValidationEngine().validate(
            accepted,
            questions,
            rejected_blocks=len(machine.rejected_numbers),
        )

        return PipelineResult(
            document=ResultDocument(
                image_file=image_path.name,
                questions=questions,
            ),
            columns=columns,
            validation=validation,
        )
