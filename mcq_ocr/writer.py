"""
Result Writer
=============
Serializes the result document, echoes it, and writes it to disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from .models import ResultDocument

logger = logging.getLogger(__name__)


class ResultWriter:
    """Writes `ResultDocument`s as pretty-printed JSON."""

    def __init__(self, echo: Optional[Callable[[str], None]] = None):
        self.echo = echo

    def write(self, document: ResultDocument, output_path: Path) -> Path:
        """
        Echo the JSON (if an echo callable is set), then write it.

        Returns:
            The path written to.
        """
        payload = document.to_json()

        if self.echo:
            self.echo(payload)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(payload, encoding="utf-8")
        logger.info(f"Output saved to: {output_path}")
        return output_path
