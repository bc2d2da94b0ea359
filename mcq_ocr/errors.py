"""
Pipeline Errors
===============
Exception types raised by the OCR pipeline and the process exit code each
one maps to. A missing source image is reported with the builtin
FileNotFoundError.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_MISSING_IMAGE = 1
EXIT_PROCESSING_FAILED = 3
EXIT_NO_TEXT = 4
EXIT_NO_QUESTIONS = 5


class OcrPipelineError(RuntimeError):
    """Base class for failures after the source image was found."""
    exit_code = EXIT_PROCESSING_FAILED


class ImageMetadataError(OcrPipelineError):
    """Source image dimensions could not be read."""


class RecognitionError(OcrPipelineError):
    """The OCR engine failed or is not installed."""


class EmptyRecognitionError(OcrPipelineError):
    """Neither column produced any text."""
    exit_code = EXIT_NO_TEXT


def exit_code_for(error: BaseException) -> int:
    """Map an exception raised by a pipeline run to a process exit code."""
    if isinstance(error, FileNotFoundError):
        return EXIT_MISSING_IMAGE
    if isinstance(error, OcrPipelineError):
        return error.exit_code
    return EXIT_PROCESSING_FAILED
