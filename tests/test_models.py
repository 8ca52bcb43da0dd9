"""
Unit tests for the quiz data models.
"""
import unittest
from datetime import datetime

from aptitude_quiz.models import (
    TIMED_OUT, TIMEOUT_MARKER, UNANSWERED, AnsweredSlot, Category, Difficulty, Question, QuestionType,
    QuizSession, SlotKind,
)
from tests.test_fixtures import TestFixtures


class TestQuestion(unittest.TestCase):
    """Construction invariants of Question."""

    def test_valid_question_normalises_fields(self):
        question = Question(
            id="q1", text="Next in 2, 4, 8?", type="pattern", category="reasoning",
            options=["12", "16"], correct_answer_index=1, explanation="Doubles",
            difficulty="easy", points=10, time_limit_seconds=30,
            hints=["Look at ratios"], tags={"series"}
        )

        self.assertIs(question.type, QuestionType.PATTERN)
        self.assertIs(question.category, Category.REASONING)
        self.assertIs(question.difficulty, Difficulty.EASY)
        self.assertEqual(question.options, ("12", "16"))
        self.assertEqual(question.hints, ("Look at ratios",))
        self.assertEqual(question.tags, frozenset({"series"}))

    def test_question_is_immutable(self):
        question = TestFixtures.make_question()
        with self.assertRaises(AttributeError):
            question.points = 500

    def test_correct_answer_index_out_of_range(self):
        for index in (-1, 4):
            with self.subTest(index=index):
                with self.assertRaises(ValueError):
                    TestFixtures.make_question(correct_answer_index=index)

    def test_non_positive_points_and_time_limit(self):
        with self.assertRaises(ValueError):
            TestFixtures.make_question(points=0)
        with self.assertRaises(ValueError):
            TestFixtures.make_question(time_limit_seconds=0)

    def test_empty_options_rejected(self):
        with self.assertRaises(ValueError):
            TestFixtures.make_question(option_count=0)

    def test_unknown_enum_value_rejected(self):
        with self.assertRaises(ValueError):
            TestFixtures.make_question(category="astrology")

    def test_dict_layout_keeps_optional_image_pattern(self):
        data = TestFixtures.make_question().to_dict()
        data['image_pattern'] = "🔺🔺🔵"

        question = Question.from_dict(data)

        self.assertEqual(question.image_pattern, "🔺🔺🔵")
        self.assertEqual(question.to_dict()['image_pattern'], "🔺🔺🔵")
        self.assertNotIn('image_pattern', TestFixtures.make_question().to_dict())


class TestAnsweredSlot(unittest.TestCase):
    """Storage encoding of answer slots."""

    def test_storage_values(self):
        self.assertIsNone(UNANSWERED.to_value())
        self.assertEqual(AnsweredSlot.selected(2).to_value(), 2)
        self.assertEqual(TIMED_OUT.to_value(), TIMEOUT_MARKER)

    def test_timeout_is_never_an_option_index(self):
        slot = AnsweredSlot.from_value("timeout")
        self.assertTrue(slot.is_timed_out)
        self.assertFalse(slot.is_selected)
        self.assertIsNone(slot.index)

    def test_selected_zero_is_not_unanswered(self):
        slot = AnsweredSlot.from_value(0)
        self.assertIs(slot.kind, SlotKind.SELECTED)
        self.assertEqual(slot.index, 0)
        self.assertTrue(AnsweredSlot.from_value(None).is_unanswered)


class TestQuizSession(unittest.TestCase):

    def test_dict_layout(self):
        questions = tuple(TestFixtures.create_sample_questions()[:3])
        session = QuizSession(
            user_id="user-1",
            questions=questions,
            answers=[AnsweredSlot.selected(1), TIMED_OUT, UNANSWERED],
            start_time=datetime(2024, 3, 1, 10, 0, 0),
            score=-5,
            end_time=datetime(2024, 3, 1, 10, 2, 30),
            completed=True,
            total_time_seconds=150.0,
        )

        data = session.to_dict()
        self.assertEqual(data['answers'], [1, "timeout", None])
        self.assertEqual(data['start_time'], "2024-03-01T10:00:00")
        self.assertNotIn('id', data)

        restored = QuizSession.from_dict(data, session_id=7)
        self.assertEqual(restored.id, 7)
        self.assertEqual(restored.questions, questions)
        self.assertEqual(restored.answers, session.answers)
        self.assertEqual(restored.end_time, session.end_time)


if __name__ == '__main__':
    unittest.main()
