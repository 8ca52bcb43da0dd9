"""
Unit tests for answer scoring.
"""
import unittest

from aptitude_quiz.models import TIMED_OUT, UNANSWERED, AnsweredSlot
from aptitude_quiz.scoring import display_score, is_correct, performance_level, score_delta, time_bonus
from tests.test_fixtures import TestFixtures


class TestScoreDelta(unittest.TestCase):
    """Point deltas for correct, incorrect, timed-out and unanswered slots."""

    def setUp(self):
        self.question = TestFixtures.make_question(points=100, time_limit_seconds=30, correct_answer_index=2)

    def test_correct_with_half_time_left(self):
        self.assertEqual(score_delta(self.question, AnsweredSlot.selected(2), 15), 115)

    def test_correct_with_no_time_left_earns_exactly_points(self):
        self.assertEqual(score_delta(self.question, AnsweredSlot.selected(2), 0), 100)

    def test_correct_with_full_time_left(self):
        for points in (7, 10, 15, 25, 100, 150):
            with self.subTest(points=points):
                question = TestFixtures.make_question(points=points, time_limit_seconds=45)
                self.assertEqual(score_delta(question, AnsweredSlot.selected(0), 45), points + (points * 3) // 10)

    def test_time_remaining_is_clamped(self):
        self.assertEqual(score_delta(self.question, AnsweredSlot.selected(2), 99), 130)
        self.assertEqual(score_delta(self.question, AnsweredSlot.selected(2), -4), 100)

    def test_incorrect_penalty(self):
        self.assertEqual(score_delta(self.question, AnsweredSlot.selected(0), 20), -25)
        odd = TestFixtures.make_question(points=15)
        self.assertEqual(score_delta(odd, AnsweredSlot.selected(1), 20), -3)

    def test_timeout_penalty(self):
        question = TestFixtures.make_question(points=150)
        self.assertEqual(score_delta(question, TIMED_OUT, 0), -30)
        odd = TestFixtures.make_question(points=12)
        self.assertEqual(score_delta(odd, TIMED_OUT, 0), -2)

    def test_unanswered_scores_nothing(self):
        self.assertEqual(score_delta(self.question, UNANSWERED, 30), 0)

    def test_time_bonus_floors(self):
        question = TestFixtures.make_question(points=10, time_limit_seconds=45)
        # 10 * 0.3 * 20/45 = 1.33
        self.assertEqual(time_bonus(question, 20), 1)

    def test_is_correct(self):
        self.assertTrue(is_correct(self.question, AnsweredSlot.selected(2)))
        self.assertFalse(is_correct(self.question, AnsweredSlot.selected(1)))
        self.assertFalse(is_correct(self.question, TIMED_OUT))
        self.assertFalse(is_correct(self.question, UNANSWERED))


class TestDisplayAndPerformance(unittest.TestCase):

    def test_display_score_never_negative(self):
        self.assertEqual(display_score(-30), 0)
        self.assertEqual(display_score(0), 0)
        self.assertEqual(display_score(115), 115)

    def test_performance_bands(self):
        cases = [
            (100, "Exceptional"), (90, "Exceptional"), (89, "Excellent"), (80, "Excellent"),
            (75, "Good"), (60, "Average"), (59, "Needs Improvement"), (0, "Needs Improvement"),
        ]
        for percent, level in cases:
            with self.subTest(percent=percent):
                self.assertEqual(performance_level(percent).level, level)


if __name__ == '__main__':
    unittest.main()
