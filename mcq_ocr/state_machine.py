"""
State Machine Parser
====================
Deterministic state machine that turns normalized OCR text into
multiple-choice questions.

Normalized text is first marked up (one line per question-number marker)
and split into blocks. Each block is tokenized into MARKER / OPTION / WORD
tokens, and the tokens drive the machine:

    SEEK_MARKER --MARKER--> IN_QUESTION_BODY --OPTION--> IN_OPTIONS
         ^                        |                          |
         +-------- MARKER --------+---------- MARKER --------+
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .models import Question, QuestionOption
from .normalizer import clean_ocr_text

logger = logging.getLogger(__name__)

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# "12. " anywhere in the text; gets a newline in front of it
BOUNDARY_PATTERN = re.compile(r"(\d+\.)\s+")

# Split point in front of a 1-2 digit marker. The look-behind stops "12."
# from also splitting between its two digits.
BLOCK_SPLIT_PATTERN = re.compile(r"(?<!\d)(?=\d{1,2}\.\s)")

# Leading marker of a block, remainder captured across newlines
LEADING_MARKER_PATTERN = re.compile(r"^(\d{1,2})\.\s+(.*)", re.DOTALL)

# Exam session annotation, e.g. "[09 April, 2024 (Shift-II)]"
SESSION_TAG_PATTERN = re.compile(
    r"\[\d{2}\s+\w+,\s+\d{4}\s+\(Shift-I+\)\]", re.IGNORECASE
)

# "( b )" -> "(b)", "| c)" -> "|c)"
OPTION_SPACING_PATTERN = re.compile(r"([(|])\s*([a-d])\s*\)", re.IGNORECASE)

# "a)", "(a)", "|a)" anywhere in a word ("3b)", "2+2?(a)"), but not after a
# letter or operator so "f(a)", "data)" and "(a+b)" stay plain text
OPTION_MARKER_PATTERN = re.compile(
    r"(?<![A-Za-z(|+\-*/=^])[(|]?([a-d])\)", re.IGNORECASE
)

MIN_QUESTION_TEXT_LENGTH = 10
MIN_OPTION_COUNT = 2


class TokenKind(Enum):
    MARKER = "MARKER"
    OPTION = "OPTION"
    WORD = "WORD"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str


class ParserState(Enum):
    """Where the machine is inside the current question block."""
    SEEK_MARKER = "SEEK_MARKER"
    IN_QUESTION_BODY = "IN_QUESTION_BODY"
    IN_OPTIONS = "IN_OPTIONS"


# ─── Text Preparation ────────────────────────────────────────────────────────


def mark_question_boundaries(text: str) -> str:
    """Flatten newlines, then start a new line at every question marker."""
    flat = re.sub(r"\n+", " ", text)
    return BOUNDARY_PATTERN.sub(r"\n\1 ", flat)


def split_question_blocks(marked_text: str) -> list[str]:
    """Split marked-up text in front of each marker, dropping blank blocks."""
    return [
        block for block in BLOCK_SPLIT_PATTERN.split(marked_text)
        if block.strip()
    ]


def _option_tokens(word: str) -> list[Token]:
    """Split one word into WORD / OPTION tokens at every option marker."""
    tokens: list[Token] = []
    pos = 0
    for match in OPTION_MARKER_PATTERN.finditer(word):
        if match.start() > pos:
            tokens.append(Token(TokenKind.WORD, word[pos:match.start()]))
        tokens.append(Token(TokenKind.OPTION, match.group(1).lower()))
        pos = match.end()
    if pos < len(word):
        tokens.append(Token(TokenKind.WORD, word[pos:]))
    return tokens


def tokenize_block(block: str) -> list[Token]:
    """
    Tokenize one question block.

    Returns an empty list when the block does not open with a question
    marker (e.g. a page header before the first question).
    """
    match = LEADING_MARKER_PATTERN.match(block)
    if not match:
        return []

    content = SESSION_TAG_PATTERN.sub("", match.group(2))
    content = OPTION_SPACING_PATTERN.sub(r"\1\2)", content)

    tokens = [Token(TokenKind.MARKER, match.group(1))]
    for word in content.split():
        tokens.extend(_option_tokens(word))
    return tokens


# ─── State Machine ───────────────────────────────────────────────────────────


class QuestionStateMachine:
    """
    Finite state machine that transforms a token stream into accepted
    Question records, in the order their blocks appear.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = ParserState.SEEK_MARKER
        self.current_number: Optional[int] = None
        self.body_words: list[str] = []
        self.options: list[tuple[str, list[str]]] = []
        self.questions: list[Question] = []
        self.rejected_numbers: list[int] = []

    def parse(self, blocks: Iterable[str]) -> list[Question]:
        """Parse question blocks into accepted questions."""
        self.reset()

        for block in blocks:
            tokens = tokenize_block(block)
            if not tokens:
                logger.debug(f"Skipping block without marker: {block[:40]!r}")
                continue
            for token in tokens:
                self.feed(token)

        self.finalize()
        return self.questions

    def feed(self, token: Token):
        """Advance the machine by one token."""
        if token.kind == TokenKind.MARKER:
            self._start_new_question(int(token.value))
            return

        if self.state == ParserState.SEEK_MARKER:
            return

        if token.kind == TokenKind.OPTION:
            self._start_new_option(token.value)
            return

        self._append_text(token.value)

    def finalize(self):
        """Finalize any pending question at end of input."""
        if self.state != ParserState.SEEK_MARKER:
            self._finalize_question()
        self.state = ParserState.SEEK_MARKER

    def _start_new_question(self, number: int):
        if self.state != ParserState.SEEK_MARKER:
            self._finalize_question()

        self.current_number = number
        self.body_words = []
        self.options = []
        self.state = ParserState.IN_QUESTION_BODY

    def _start_new_option(self, key: str):
        self.state = ParserState.IN_OPTIONS
        self.options.append((key, []))

    def _append_text(self, word: str):
        if self.state == ParserState.IN_QUESTION_BODY:
            self.body_words.append(word)
        elif self.state == ParserState.IN_OPTIONS:
            self.options[-1][1].append(word)

    def _finalize_question(self):
        """Apply the minimum-content filters and store the question."""
        number = self.current_number
        text = clean_ocr_text(" ".join(self.body_words))
        options = [
            QuestionOption(key=key, text=clean_ocr_text(" ".join(words)))
            for key, words in self.options
        ]

        if number is None or number < 1:
            reason = "invalid question number"
        elif len(text) <= MIN_QUESTION_TEXT_LENGTH:
            reason = f"question text too short ({len(text)} chars)"
        elif len(options) < MIN_OPTION_COUNT:
            reason = f"only {len(options)} option(s)"
        else:
            reason = None

        if reason:
            logger.debug(f"Dropping block {number}: {reason}")
            self.rejected_numbers.append(number if number is not None else 0)
        else:
            logger.debug(
                f"Detected question {number} with {len(options)} options"
            )
            self.questions.append(Question(
                question_number=number,
                text=text,
                options=options,
            ))

        self.current_number = None
        self.body_words = []
        self.options = []
        self.state = ParserState.SEEK_MARKER


def parse_questions(normalized_text: str) -> list[Question]:
    """
    Parse normalized text into questions, duplicates included.

    Args:
        normalized_text: Output of `clean_ocr_text` over the full text.

    Returns:
        Accepted questions in block order.
    """
    blocks = split_question_blocks(mark_question_boundaries(normalized_text))
    return QuestionStateMachine().parse(blocks)
