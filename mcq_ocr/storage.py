"""
Filesystem Layout
=================
Fixed file locations for a run and the scoped lifetime of intermediate
images.

Layout (defaults):
    <project root>/
    ├── image.jpg                 # Source sheet
    ├── ocr_output.json           # Result document, beside the source
    ├── left-preprocessed.png     # Transient, removed at end of run
    └── right-preprocessed.png    # Transient, removed at end of run
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .models import ColumnName

logger = logging.getLogger(__name__)

# Project root: one level up from /mcq_ocr/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

DEFAULT_IMAGE_NAME = "image.jpg"
OUTPUT_FILE_NAME = "ocr_output.json"

ENHANCED_IMAGE_NAMES = {
    ColumnName.LEFT: "left-preprocessed.png",
    ColumnName.RIGHT: "right-preprocessed.png",
}

PathLike = Union[str, Path]


def get_project_root() -> Path:
    return _PROJECT_ROOT


def default_image_path() -> Path:
    """The source sheet expected next to the program."""
    return _PROJECT_ROOT / DEFAULT_IMAGE_NAME


def output_path_for(image_path: PathLike) -> Path:
    """`ocr_output.json` in the directory of the source image."""
    return Path(image_path).absolute().parent / OUTPUT_FILE_NAME


def enhanced_image_path(work_dir: PathLike, column: ColumnName) -> Path:
    """Where the enhanced PNG for `column` is written."""
    return Path(work_dir) / ENHANCED_IMAGE_NAMES[column]


# ─── Transient Files ──────────────────────────────────────────────────────────


def delete_file(path: PathLike) -> bool:
    """Delete a file if it exists. Returns True when something was removed."""
    p = Path(path)
    if p.exists():
        p.unlink()
        logger.debug(f"Deleted intermediate file: {p}")
        return True
    return False


@contextmanager
def temporary_files(*paths: PathLike) -> Iterator[list[Path]]:
    """
    Scope for intermediate files.

    Yields the paths; on exit every one of them that exists is deleted,
    whether the body finished normally or raised.
    """
    resolved = [Path(p) for p in paths]
    try:
        yield resolved
    finally:
        removed = 0
        for p in resolved:
            try:
                if delete_file(p):
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not delete intermediate file {p}: {e}")
        if removed:
            logger.info(f"Removed {removed} intermediate file(s)")


def resolve_image_path(image_path: Optional[PathLike] = None) -> Path:
    """
    Absolute path of the source image, defaulting to `image.jpg` in the
    project root.

    Raises:
        FileNotFoundError: If the image does not exist.
    """
    path = Path(image_path) if image_path else default_image_path()
    path = path.absolute()
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found at path: {path}")
    return path
