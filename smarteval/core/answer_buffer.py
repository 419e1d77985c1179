"""In-progress answers of a single assessment-taking session."""

from __future__ import annotations

from collections.abc import Sequence

from smarteval.constants.assessment_constants import UNANSWERED


class AnswerBuffer:
    """One slot per question, each holding an option index or ``UNANSWERED``."""

    def __init__(self, question_count: int, option_counts: Sequence[int] | None = None) -> None:
        if question_count < 0:
            raise ValueError("Question count cannot be negative.")
        if option_counts is not None and len(option_counts) != question_count:
            raise ValueError("Option counts must match the number of questions.")
        self._slots: list[int] = [UNANSWERED] * question_count
        self._option_counts = list(option_counts) if option_counts is not None else None

    @classmethod
    def for_questions(cls, option_counts: Sequence[int]) -> "AnswerBuffer":
        return cls(len(option_counts), option_counts)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index: int) -> int:
        return self._slots[index]

    def set(self, index: int, option_index: int) -> None:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"Question index {index} out of range")
        if self._option_counts is not None and not 0 <= option_index < self._option_counts[index]:
            raise ValueError(f"Option index {option_index} out of range for question {index}")
        self._slots[index] = option_index

    def clear(self, index: int) -> None:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"Question index {index} out of range")
        self._slots[index] = UNANSWERED

    def answered_count(self) -> int:
        return sum(1 for slot in self._slots if slot != UNANSWERED)

    def unanswered_count(self) -> int:
        return len(self._slots) - self.answered_count()

    def snapshot(self) -> tuple[int, ...]:
        return tuple(self._slots)
