"""
Data Models
===========
Pydantic models for the structured OCR output.
Field names serialize to camelCase so the JSON document matches the
published `ocr_output.json` layout.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ─── Enums ────────────────────────────────────────────────────────────────────


class ColumnName(str, Enum):
    """Which half of the source image a region covers."""
    LEFT = "left"
    RIGHT = "right"


# ─── Geometry ─────────────────────────────────────────────────────────────────


class ColumnRegion(BaseModel):
    """
    A crop rectangle inside the source image, in source pixels.
    """
    left: int = Field(ge=0)
    top: int = Field(ge=0)
    width: int = Field(ge=1)
    height: int = Field(ge=1)

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Pillow crop box as (left, upper, right, lower)."""
        return (
            self.left,
            self.top,
            self.left + self.width,
            self.top + self.height,
        )


# ─── Question Models ─────────────────────────────────────────────────────────


class QuestionOption(BaseModel):
    """One lettered answer choice."""
    key: str = Field(pattern=r"^[a-d]$")
    text: str = ""


class Question(BaseModel):
    """A parsed multiple-choice question."""
    model_config = ConfigDict(populate_by_name=True)

    question_number: int = Field(alias="questionNumber", ge=1)
    text: str
    options: list[QuestionOption] = Field(default_factory=list)


class ResultDocument(BaseModel):
    """
    The sole durable artifact of a run.
    This is the top-level JSON structure written to `ocr_output.json`.
    """
    model_config = ConfigDict(populate_by_name=True)

    image_file: str = Field(alias="imageFile")
    questions: list[Question] = Field(default_factory=list)

    def to_json(self) -> str:
        """Pretty-printed JSON with camelCase keys (2-space indent)."""
        return json.dumps(
            self.model_dump(by_alias=True, mode="json"),
            indent=2,
            ensure_ascii=False,
        )


# ─── Diagnostics ─────────────────────────────────────────────────────────────


class ColumnText(BaseModel):
    """Recognized text for one column, kept for console diagnostics."""
    model_config = ConfigDict(populate_by_name=True)

    name: ColumnName
    region: ColumnRegion
    raw_text: str = Field(default="", alias="rawText")
    cleaned_text: str = Field(default="", alias="cleanedText")

    @property
    def is_empty(self) -> bool:
        return not self.raw_text.strip()


class ValidationReport(BaseModel):
    """Post-parse report over the accepted question blocks."""
    total_blocks_accepted: int = 0
    unique_questions: int = 0
    rejected_blocks: int = 0
    duplicate_question_numbers: list[int] = Field(default_factory=list)
    missing_question_numbers: list[int] = Field(default_factory=list)

    @computed_field
    @property
    def duplicates_dropped(self) -> int:
        return self.total_blocks_accepted - self.unique_questions


class PipelineResult(BaseModel):
    """
    Everything a pipeline run produced.
    Only `document` is written to disk; the rest feeds console output.
    """
    document: ResultDocument
    columns: list[ColumnText] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)
    output_path: Optional[Path] = None
