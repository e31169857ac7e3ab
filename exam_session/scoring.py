"""
Pure scoring logic: no store access, no clock, no side effects.

Scoring: one point per question whose recorded option equals its
correct_option; unanswered counts as incorrect. Percentage is rounded
half-up to a whole number.
"""
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, NamedTuple, Optional

from exam_session import config
from exam_session.errors import InvalidArgument
from exam_session.models import Exam, Question, QuestionReview


class ScoreCard(NamedTuple):
    correct: int
    total: int
    percentage: int


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score(questions: List[Question], answers: Dict[str, int]) -> ScoreCard:
    """
    Score an answer set against the attempt's questions.

    Args:
        questions: Frozen question list of the attempt (must be non-empty).
        answers: {question_id: selected option index}

    Returns:
        ScoreCard(correct, total, percentage) with 0 <= percentage <= 100.
    """
    total = len(questions)
    if total == 0:
        raise InvalidArgument("cannot score an attempt with no questions")

    correct = sum(1 for q in questions if answers.get(q.id) == q.correct_option)
    percentage = round_half_up(Decimal(correct) * 100 / Decimal(total))
    return ScoreCard(correct=correct, total=total, percentage=percentage)


def passing_threshold(exam: Optional[Exam], default: int = config.DEFAULT_PASSING_SCORE) -> int:
    """The exam's own passing_score, or the configured default when the exam has none."""
    if exam is not None and exam.passing_score is not None:
        return exam.passing_score
    return default


def is_passed(percentage: int, passing_score: int) -> bool:
    return percentage >= passing_score


def time_taken_minutes(budget_seconds: int, remaining_seconds: int) -> int:
    """Minutes used, rounded half-up. Remaining time is clamped into [0, budget]."""
    remaining = min(max(0, remaining_seconds), budget_seconds)
    return round_half_up(Decimal(budget_seconds - remaining) / 60)


def review(questions: List[Question], answers: Dict[str, int]) -> List[QuestionReview]:
    """Per-question breakdown for the result page."""
    items = []
    for index, q in enumerate(questions):
        chosen = answers.get(q.id)
        your_answer = q.options[chosen] if chosen is not None and 0 <= chosen < len(q.options) else None
        items.append(
            QuestionReview(
                index=index,
                question_id=q.id,
                question=q.question,
                your_answer=your_answer,
                correct_answer=q.options[q.correct_option],
                is_correct=chosen == q.correct_option,
            )
        )
    return items


def category_breakdown(questions: List[Question], answers: Dict[str, int]) -> Dict[str, Dict[str, int]]:
    """{category: {"total", "correct"}} for one attempt, sorted by category."""
    stats: Dict[str, Dict[str, int]] = defaultdict(lambda: {"total": 0, "correct": 0})
    for q in questions:
        cat = q.category or "uncategorized"
        stats[cat]["total"] += 1
        if answers.get(q.id) == q.correct_option:
            stats[cat]["correct"] += 1
    return {cat: stats[cat] for cat in sorted(stats)}
