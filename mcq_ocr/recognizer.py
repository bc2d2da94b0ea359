"""
Text Recognizer
===============
Capability interface for OCR engines plus the Tesseract implementation.

The pipeline only talks to `TextRecognizer`, so tests can inject a stub
instead of the real engine. Recognizers are context managers: the engine
is acquired on enter and released on exit, on every exit path.
"""

from __future__ import annotations

import logging
import shlex
import string
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import pytesseract
from PIL import Image

from .errors import RecognitionError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Letters, digits, math/punctuation symbols and space
CHAR_WHITELIST = (
    string.ascii_lowercase
    + string.ascii_uppercase
    + string.digits
    + "+-=()[]{}.,?!/\\^_*~|<>:\"'@ "
)

# Tesseract page segmentation mode 4: a single column of variable-size text
PSM_SINGLE_COLUMN = 4


class TextRecognizer(ABC):
    """
    Interface for OCR engines.

    Engines return the literal recognized text; cleanup is the
    normalizer's job.
    """

    def __enter__(self) -> "TextRecognizer":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def open(self):
        """Acquire engine resources."""

    def close(self):
        """Release engine resources."""

    @abstractmethod
    def recognize(
        self,
        image_path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        raise NotImplementedError


class TesseractRecognizer(TextRecognizer):
    """Tesseract OCR through pytesseract."""

    def __init__(
        self,
        language: str = "eng",
        psm: int = PSM_SINGLE_COLUMN,
        char_whitelist: str = CHAR_WHITELIST,
        preserve_interword_spaces: bool = True,
    ):
        self.language = language
        self.psm = psm
        self.char_whitelist = char_whitelist
        self.preserve_interword_spaces = preserve_interword_spaces
        self.version: Optional[str] = None

    def build_config(self) -> str:
        """Command-line flags passed through pytesseract (shlex-split there)."""
        parts = [f"--psm {self.psm}"]
        if self.preserve_interword_spaces:
            parts.append("-c preserve_interword_spaces=1")
        if self.char_whitelist:
            whitelist = f"tessedit_char_whitelist={self.char_whitelist}"
            parts.append(f"-c {shlex.quote(whitelist)}")
        return " ".join(parts)

    def open(self):
        try:
            self.version = str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(
                "tesseract binary not found on PATH"
            ) from e
        logger.info(f"Tesseract {self.version} ready (lang={self.language})")

    def close(self):
        if self.version is not None:
            logger.info("Tesseract worker released")
        self.version = None

    def recognize(
        self,
        image_path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        if progress_callback:
            progress_callback(0.0)

        try:
            with Image.open(image_path) as image:
                text = pytesseract.image_to_string(
                    image,
                    lang=self.language,
                    config=self.build_config(),
                )
        except (pytesseract.TesseractError, OSError) as e:
            raise RecognitionError(
                f"Tesseract failed on {Path(image_path).name}: {e}"
            ) from e

        if progress_callback:
            progress_callback(100.0)
        return text
