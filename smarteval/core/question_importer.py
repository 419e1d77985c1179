"""Utilities for importing assessment questions from a plain-text document.

Format (repeat blocks separated by blank lines or '---'):

    Q: Question text (markdown + LaTeX). Further lines until the next
       marker belong to the question.
    A: First option
    B: Second option
    C: Third option (options run A-H, at least two, no gaps)
    CORRECT: B

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 5
    CORRECT: B
"""

from __future__ import annotations

from pathlib import Path
import re

from smarteval.constants.assessment_constants import MIN_OPTIONS_PER_QUESTION
from smarteval.core.models import Question


class QuestionImportError(Exception):
    """Raised when a question document cannot be parsed."""


_OPTION_LETTERS = ["A", "B", "C", "D", "E", "F", "G", "H"]
_BLOCK_SEPARATOR = re.compile(r"\n\s*\n")
_MARKER = re.compile(r"^(Q|CORRECT|[A-H])\s*:\s*(.*)$", re.IGNORECASE)


def load_questions_from_file(file_path: Path) -> list[Question]:
    return parse_questions(file_path.read_text(encoding="utf-8"))


def parse_questions(text: str) -> list[Question]:
    # '---' lines separate blocks just like blank lines do.
    lines = ["" if line.strip() == "---" else line for line in text.splitlines()]
    blocks = [block.strip() for block in _BLOCK_SEPARATOR.split("\n".join(lines))]
    questions = [_parse_block(block, number) for number, block in enumerate(filter(None, blocks), start=1)]
    if not questions:
        raise QuestionImportError("Document did not contain any questions.")
    return questions


def _parse_block(block: str, number: int) -> Question:
    sections: dict[str, list[str]] = {}
    current: str | None = None
    for line in (raw.strip() for raw in block.splitlines()):
        if not line:
            continue
        match = _MARKER.match(line)
        if match:
            current = match.group(1).upper()
            sections[current] = [match.group(2).strip()]
        elif current is None or current == "CORRECT":
            raise QuestionImportError(f"Question {number}: text outside of a known section: '{line}'.")
        else:
            sections[current].append(line)

    question_text = "\n".join(sections.get("Q", [])).strip()
    if not question_text:
        raise QuestionImportError(f"Question {number}: question text missing (Q: ...).")

    present = [letter for letter in _OPTION_LETTERS if letter in sections]
    letters = _OPTION_LETTERS[: len(present)]
    if len(present) < MIN_OPTIONS_PER_QUESTION or present != letters:
        raise QuestionImportError(
            f"Question {number}: define at least {MIN_OPTIONS_PER_QUESTION} options lettered from A without gaps."
        )
    options = ["\n".join(sections[letter]).strip() for letter in letters]
    if not all(options):
        raise QuestionImportError(f"Question {number}: option text cannot be empty.")

    if "CORRECT" not in sections:
        raise QuestionImportError(f"Question {number}: CORRECT is required.")
    correct_letter = " ".join(sections["CORRECT"]).strip().upper()
    if correct_letter not in letters:
        raise QuestionImportError(f"Question {number}: CORRECT must be one of {', '.join(letters)}.")

    return Question(question_text=question_text, options=options, correct_answer=letters.index(correct_letter))
