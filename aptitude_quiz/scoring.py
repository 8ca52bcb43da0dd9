"""
Scoring rules for aptitude quiz answers.

A correct answer earns the question's points plus a time bonus of up to 30%
of the points, proportional to the unused time. A wrong answer costs 25% of
the points and a timeout costs 20%; both penalties round down. Arithmetic is
done on integers so the documented floors hold exactly.
"""
from dataclasses import dataclass

from .models import AnsweredSlot, Question


# Ratios expressed as (numerator, denominator) to keep the floors exact
TIME_BONUS_RATIO = (3, 10)
INCORRECT_PENALTY_RATIO = (25, 100)
TIMEOUT_PENALTY_RATIO = (20, 100)


def _floor_share(points: int, ratio) -> int:
    numerator, denominator = ratio
    return (points * numerator) // denominator


def time_bonus(question: Question, time_remaining: int) -> int:
    """floor((time_remaining / time_limit) * points * 0.3), clamped to the time limit."""
    remaining = min(max(int(time_remaining), 0), question.time_limit_seconds)
    numerator, denominator = TIME_BONUS_RATIO
    return (remaining * question.points * numerator) // (question.time_limit_seconds * denominator)


def is_correct(question: Question, slot: AnsweredSlot) -> bool:
    return slot.is_selected and slot.index == question.correct_answer_index


def score_delta(question: Question, slot: AnsweredSlot, time_remaining: int) -> int:
    """
    Points gained or lost for one answered question.

    Args:
        question: Question that was answered
        slot: Selected option, timeout sentinel, or unanswered
        time_remaining: Whole seconds left on the countdown when answering

    Returns:
        Signed point delta
    """
    if slot.is_timed_out:
        return -_floor_share(question.points, TIMEOUT_PENALTY_RATIO)
    if not slot.is_selected:
        return 0
    if slot.index == question.correct_answer_index:
        return question.points + time_bonus(question, time_remaining)
    return -_floor_share(question.points, INCORRECT_PENALTY_RATIO)


def display_score(raw_score: int) -> int:
    """Score shown to the user; the running total may dip below zero."""
    return max(0, raw_score)


@dataclass(frozen=True)
class PerformanceLevel:
    level: str
    emoji: str


PERFORMANCE_BANDS = (
    (90, PerformanceLevel("Exceptional", "🏆")),
    (80, PerformanceLevel("Excellent", "🌟")),
    (70, PerformanceLevel("Good", "👍")),
    (60, PerformanceLevel("Average", "👌")),
)
NEEDS_IMPROVEMENT = PerformanceLevel("Needs Improvement", "📚")


def performance_level(accuracy_percent: float) -> PerformanceLevel:
    """Map an accuracy percentage to the result banner shown after a run."""
    for threshold, level in PERFORMANCE_BANDS:
        if accuracy_percent >= threshold:
            return level
    return NEEDS_IMPROVEMENT
