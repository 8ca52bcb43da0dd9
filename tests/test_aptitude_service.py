"""
Unit tests for AptitudeService, the engine's public interface.
"""
import tempfile
import unittest
import logging
from collections import Counter

from aptitude_quiz.aptitude_service import AptitudeService
from aptitude_quiz.config_manager import ConfigManager
from aptitude_quiz.models import Category, Difficulty, QuestionType, QuizMode
from aptitude_quiz.session import SessionState
from aptitude_quiz.storage import InMemoryBackend
from aptitude_quiz.timer import ManualClock
from tests.test_fixtures import TestFixtures


class TestQuestionQueries(unittest.TestCase):
    """Retrieval entry points and argument coercion."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.service = TestFixtures.create_service()

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_mixed_questions_default_composition(self):
        questions = self.service.get_mixed_questions(10)
        tiers = Counter(q.difficulty for q in questions)

        self.assertEqual(len(questions), 10)
        self.assertEqual(tiers, {Difficulty.EASY: 4, Difficulty.MEDIUM: 4, Difficulty.HARD: 2})

    def test_category_accepts_enum_or_string(self):
        by_enum = self.service.get_questions_by_category(Category.QUANTITATIVE)
        by_string = self.service.get_questions_by_category(" Quantitative ")

        self.assertEqual(len(by_enum), 5)
        self.assertEqual({q.id for q in by_enum}, {q.id for q in by_string})

    def test_category_with_difficulty(self):
        questions = self.service.get_questions_by_category("english", "medium", count=10)
        self.assertEqual({q.id for q in questions}, {"medium_2", "medium_6"})

    def test_unknown_value_is_logged(self):
        logging.disable(logging.NOTSET)
        with self.assertLogs('aptitude_quiz.aptitude_service', level='WARNING') as logs:
            self.assertEqual(self.service.get_questions_by_category("astrology"), [])
        self.assertIn("astrology", logs.output[0])

    def test_unknown_values_return_no_questions(self):
        self.assertEqual(self.service.get_questions_by_category("english", "impossible"), [])
        self.assertEqual(self.service.get_random_questions(5, difficulty="extreme"), [])
        self.assertEqual(self.service.get_questions_by_type("telepathic"), [])

    def test_missing_required_filter_returns_no_questions(self):
        self.assertEqual(self.service.get_questions_by_category(None), [])
        self.assertEqual(self.service.get_questions_by_type(None), [])

    def test_random_questions(self):
        self.assertEqual(len(self.service.get_random_questions(7)), 7)
        hard = self.service.get_random_questions(10, difficulty=Difficulty.HARD)
        self.assertEqual(len(hard), 4)

    def test_questions_by_type_default_count(self):
        questions = self.service.get_questions_by_type(QuestionType.LOGICAL)
        self.assertEqual(len(questions), 5)
        self.assertTrue(all(q.type is QuestionType.LOGICAL for q in questions))

    def test_questions_for_settings(self):
        settings = TestFixtures.create_sample_quiz_settings(mode=QuizMode.DIFFICULTY, difficulty=Difficulty.MEDIUM)
        questions = self.service.get_questions_for_settings(settings)

        self.assertEqual(len(questions), 5)
        self.assertTrue(all(q.difficulty is Difficulty.MEDIUM for q in questions))

    def test_same_seed_same_draw(self):
        first = TestFixtures.create_service(seed=3).get_mixed_questions(10)
        second = TestFixtures.create_service(seed=3).get_mixed_questions(10)
        self.assertEqual([q.id for q in first], [q.id for q in second])

    def test_stats(self):
        stats = self.service.get_question_stats()
        self.assertEqual(stats.total, 20)
        self.assertEqual(stats.by_category['reasoning'], 5)


class TestSessions(unittest.TestCase):
    """Running quizzes through the service and reading history back."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.clock = ManualClock()
        self.service = TestFixtures.create_service(clock=self.clock)

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def _run(self, user_id, questions):
        machine = self.service.start_session(user_id, questions)
        for question in questions:
            machine.answer(question.correct_answer_index)
            self.clock.advance(3)
        return machine

    def test_full_run_is_archived(self):
        questions = self.service.get_mixed_questions(5)
        machine = self._run("player", questions)

        self.assertIs(machine.state, SessionState.COMPLETED)
        history = self.service.get_user_quiz_history("player")
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].score, machine.score)
        self.assertEqual([q.id for q in history[0].questions], [q.id for q in questions])

    def test_start_session_delay_override(self):
        machine = self.service.start_session("player", self.service.get_random_questions(2), answer_delay=1.0)
        machine.answer(0)
        self.clock.advance(1)
        self.assertEqual(machine.current_index, 1)

    def test_empty_question_list_stays_loading(self):
        machine = self.service.start_session("player", [])
        self.assertIs(machine.state, SessionState.LOADING)

    def test_history_is_per_user_and_limited(self):
        questions = self.service.get_random_questions(1)
        for _ in range(3):
            self._run("a", questions)
        self._run("b", questions)

        self.assertEqual(len(self.service.get_user_quiz_history("a", limit=2)), 2)
        self.assertEqual(len(self.service.get_user_quiz_history("b")), 1)
        self.assertEqual(self.service.get_user_summary("a")['sessions'], 3)

    def test_clear_all_data(self):
        self._run("player", self.service.get_random_questions(2))
        self.service.clear_all_data()

        self.assertEqual(self.service.get_user_quiz_history("player"), [])
        self.assertEqual(self.service.get_question_stats().total, 20)


class TestFromConfig(unittest.TestCase):
    """Building the service from ConfigManager settings."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()
        logging.disable(logging.NOTSET)

    def test_from_config(self):
        path = TestFixtures.write_question_bank(self.temp_dir.name, TestFixtures.create_question_bank_json())
        config = ConfigManager()
        config.apply_config({
            'quiz': {'random_seed': 11, 'answer_delay': 1.5},
            'storage': {'database_url': 'memory://', 'question_bank_path': str(path)},
        })

        service = AptitudeService.from_config(config, clock_factory=ManualClock)
        try:
            self.assertIsInstance(service.backend, InMemoryBackend)
            self.assertEqual(service.settings.answer_delay, 1.5)
            self.assertEqual(service.get_question_stats().total, 20)
            self.assertIsInstance(service.start_session("u", service.get_random_questions(1)).clock, ManualClock)
        finally:
            service.close()

    def test_seeded_config_is_reproducible(self):
        path = TestFixtures.write_question_bank(self.temp_dir.name, TestFixtures.create_question_bank_json())
        draws = []
        for _ in range(2):
            config = ConfigManager()
            config.apply_config({'quiz': {'random_seed': 5},
                                 'storage': {'database_url': 'memory://', 'question_bank_path': str(path)}})
            draws.append([q.id for q in AptitudeService.from_config(config, ManualClock).get_mixed_questions(10)])
        self.assertEqual(draws[0], draws[1])


if __name__ == '__main__':
    unittest.main()
