"""
Text Normalizer
===============
Ordered rule table that repairs systematic Tesseract misreads.

Each rule is a (pattern, replacement) pair applied with `re.sub` to the
output of the previous rule. Order matters: the hyphen rule must run after
the em-dash rule, and whitespace collapsing runs last.
"""

from __future__ import annotations

import re
from typing import Callable, Union

Replacement = Union[str, Callable[[re.Match], str]]
Rule = tuple[re.Pattern, Replacement]

# Every rule either removes its trigger or maps onto text no rule matches,
# so the chain settles within a few passes.
MAX_PASSES = 8


def _spaced_or_tight_hyphen(match: re.Match) -> str:
    # " - " survives (em-dash output, spaced dash); anything lopsided is a hyphen.
    # String edges count as whitespace so a leading "- " stays put.
    text = match.group(0)
    spaced_left = text[0].isspace() or match.start() == 0
    spaced_right = text[-1].isspace() or match.end() == len(match.string)
    if spaced_left and spaced_right:
        return " - "
    return "-"


# ─── Rule Tables ──────────────────────────────────────────────────────────────

# Whole-word misreads seen on math sheets
WORD_MISREADS: list[Rule] = [
    (re.compile(r"cquation"), "equation"),
    (re.compile(r"cqual"), "equal"),
    (re.compile(r"r00t|r0ot|ro0t|rnot|rrot"), "root"),
]

PUNCTUATION_RULES: list[Rule] = [
    (re.compile(r"\s*—\s*"), " - "),
    (re.compile(r"\s*-\s*"), _spaced_or_tight_hyphen),
    (re.compile("ﬁ"), "fi"),
    (re.compile("ﬂ"), "fl"),
    (re.compile(r"\[ "), "["),
    (re.compile(r" \]"), "]"),
    (re.compile(r"\( Shift"), "(Shift"),
    (re.compile(r"\|\)"), "1)"),
]

# Confusable-character remapping. Applied unconditionally, so genuine
# letters are rewritten too ("Only" -> "0n1y"); question parsing was tuned
# against this output.
CONFUSABLE_CHARACTERS: list[Rule] = [
    (re.compile(r"O"), "0"),
    (re.compile(r"l"), "1"),
]

SYMBOL_RULES: list[Rule] = [
    (re.compile("§"), "S"),
]

WHITESPACE_RULES: list[Rule] = [
    (re.compile(r"\s+"), " "),
]

CLEANUP_RULES: list[Rule] = [
    *WORD_MISREADS,
    *PUNCTUATION_RULES,
    *CONFUSABLE_CHARACTERS,
    *SYMBOL_RULES,
    *WHITESPACE_RULES,
]


def apply_rules(text: str, rules: list[Rule]) -> str:
    """Apply `rules` in order, each on the previous result."""
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def clean_ocr_text(text: str) -> str:
    """
    Normalize raw OCR output.

    The rule chain is re-run until the text stops changing. A single pass
    can leave work for a later rule (whitespace collapsing produces "[ ",
    the O->0 remap produces "r00t"), so one call already returns the
    stable form and `clean_ocr_text(clean_ocr_text(x)) == clean_ocr_text(x)`.

    Args:
        text: Text as returned by the recognizer (or any later stage).

    Returns:
        Single-line text with all cleanup rules applied and no leading or
        trailing whitespace.
    """
    for _ in range(MAX_PASSES):
        cleaned = apply_rules(text, CLEANUP_RULES).strip()
        if cleaned == text:
            break
        text = cleaned
    return text
