"""
Deduplication & Validation
==========================
Turns the parser's accepted blocks into the final question list and
reports on what was dropped:
    - Duplicate Question Numbers (first occurrence wins)
    - Missing Question Numbers (gaps in sequence)
    - Rejected blocks (failed the minimum-content filters)
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Optional

from .models import Question, ValidationReport

logger = logging.getLogger(__name__)


def dedupe_and_sort(questions: Iterable[Question]) -> list[Question]:
    """
    Keep the first question seen for each number, then sort ascending.

    Pure: the input sequence is not modified.
    """
    seen: set[int] = set()
    unique: list[Question] = []
    for q in questions:
        if q.question_number in seen:
            continue
        seen.add(q.question_number)
        unique.append(q)
    return sorted(unique, key=lambda q: q.question_number)


class ValidationEngine:
    """
    Validates parsed questions and produces a report.
    """

    def validate(
        self,
        accepted: list[Question],
        final: Optional[list[Question]] = None,
        rejected_blocks: int = 0,
    ) -> ValidationReport:
        """
        Build the report for one run.

        Args:
            accepted: Every block the parser accepted, in block order.
            final: The deduplicated, sorted list (computed if omitted).
            rejected_blocks: Marker blocks dropped by the parser filters.

        Returns:
            ValidationReport with duplicate and missing numbers.
        """
        if final is None:
            final = dedupe_and_sort(accepted)

        report = ValidationReport(
            total_blocks_accepted=len(accepted),
            unique_questions=len(final),
            rejected_blocks=rejected_blocks,
        )

        if not final:
            logger.warning("No questions to validate")
            return report

        number_counts = Counter(q.question_number for q in accepted)
        report.duplicate_question_numbers = sorted(
            num for num, count in number_counts.items() if count > 1
        )

        numbers = [q.question_number for q in final]
        expected = set(range(numbers[0], numbers[-1] + 1))
        report.missing_question_numbers = sorted(expected - set(numbers))

        logger.info(
            f"Questions: {report.unique_questions} unique from "
            f"{report.total_blocks_accepted} accepted blocks "
            f"({report.rejected_blocks} rejected)"
        )
        if report.duplicate_question_numbers:
            logger.warning(
                f"Duplicate question numbers (first kept): "
                f"{report.duplicate_question_numbers}"
            )
        if report.missing_question_numbers:
            logger.warning(
                f"Missing question numbers: {report.missing_question_numbers}"
            )

        return report
