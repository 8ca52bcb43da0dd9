"""
Unit tests for ConfigManager class.
"""
import os
import tempfile
import unittest
import logging

from aptitude_quiz.config_manager import ConfigManager
from aptitude_quiz.models import Category, QuizMode, QuizSettings
from aptitude_quiz.storage import DEFAULT_DATABASE_URL


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        self.assertEqual(self.config_manager.get_question_count(), 10)
        self.assertEqual(self.config_manager.get_quick_quiz_count(), 20)
        self.assertEqual(self.config_manager.get_answer_delay(), 3.0)
        self.assertEqual(self.config_manager.get_timeout_delay(), 2.5)
        self.assertEqual(self.config_manager.get_history_limit(), 10)
        self.assertIsNone(self.config_manager.random_seed)
        self.assertIsNone(self.config_manager.question_bank_path)
        self.assertEqual(self.config_manager.database_url, DEFAULT_DATABASE_URL)

    def test_set_question_count_valid_values(self):
        """Test setting valid question count values."""
        for count in (1, 5, 100):
            with self.subTest(count=count):
                result = self.config_manager.set_question_count(count)
                self.assertTrue(result['success'])
                self.assertEqual(self.config_manager.get_question_count(), count)
                self.assertIn(str(count), result['user_message'])

    def test_set_question_count_invalid_values(self):
        """Test setting invalid question count values."""
        for value in ("5", 5.5, None, True, 0, -1, 101):
            with self.subTest(value=value):
                result = self.config_manager.set_question_count(value)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))

        # Invalid values leave the previous setting in place
        self.assertEqual(self.config_manager.get_question_count(), 10)

    def test_question_count_error_messages(self):
        """Test that boundary errors name the limit."""
        self.assertIn("Minimum", self.config_manager.set_question_count(0)['user_message'])
        self.assertIn("Maximum", self.config_manager.set_question_count(101)['user_message'])

    def test_delays(self):
        """Test answer and timeout delay validation."""
        self.assertTrue(self.config_manager.set_answer_delay(0)['success'])
        self.assertEqual(self.config_manager.get_answer_delay(), 0.0)
        self.assertTrue(self.config_manager.set_timeout_delay(4.5)['success'])
        self.assertEqual(self.config_manager.get_timeout_delay(), 4.5)

        for value in (-0.5, 31, "3", False):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_answer_delay(value)['success'])
                self.assertFalse(self.config_manager.set_timeout_delay(value)['success'])

    def test_history_limit(self):
        self.assertTrue(self.config_manager.set_history_limit(50)['success'])
        self.assertFalse(self.config_manager.set_history_limit(51)['success'])
        self.assertEqual(self.config_manager.get_history_limit(), 50)

    def test_random_seed(self):
        """Test fixed and fresh shuffle seeds."""
        self.assertTrue(self.config_manager.set_random_seed(1234)['success'])
        self.assertEqual(self.config_manager.random_seed, 1234)

        self.assertTrue(self.config_manager.set_random_seed(None)['success'])
        self.assertIsNone(self.config_manager.random_seed)

        self.assertFalse(self.config_manager.set_random_seed("1234")['success'])

    def test_database_url(self):
        """Test storage URL validation."""
        self.assertTrue(self.config_manager.set_database_url("memory://")['success'])
        self.assertEqual(self.config_manager.database_url, "memory://")

        for value in ("", "   ", "aptitude.db", 42):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_database_url(value)['success'])
        self.assertEqual(self.config_manager.database_url, "memory://")

    def test_question_bank_path(self):
        """Test that paths are normalized and None selects the bundled bank."""
        result = self.config_manager.set_question_bank_path("./banks/../bank.json")
        self.assertTrue(result['success'])
        self.assertTrue(os.path.isabs(self.config_manager.question_bank_path))
        self.assertNotIn("..", self.config_manager.question_bank_path)

        self.assertTrue(self.config_manager.set_question_bank_path(None)['success'])
        self.assertIsNone(self.config_manager.question_bank_path)

        self.assertFalse(self.config_manager.set_question_bank_path("")['success'])

    def test_get_quiz_settings(self):
        """Test that launch settings carry configured values and overrides."""
        self.config_manager.set_question_count(15)
        self.config_manager.set_answer_delay(1.0)

        settings = self.config_manager.get_quiz_settings()
        self.assertIsInstance(settings, QuizSettings)
        self.assertIs(settings.mode, QuizMode.MIXED)
        self.assertEqual(settings.question_count, 15)
        self.assertEqual(settings.answer_delay, 1.0)
        self.assertEqual(settings.timeout_delay, 2.5)

        settings = self.config_manager.get_quiz_settings(QuizMode.CATEGORY, 5, category=Category.ENGLISH)
        self.assertEqual(settings.question_count, 5)
        self.assertIs(settings.category, Category.ENGLISH)
        self.assertIsNone(settings.difficulty)

    def test_apply_config(self):
        """Test applying the quiz and storage sections of config.json."""
        result = self.config_manager.apply_config({
            'quiz': {'default_question_count': 12, 'timeout_delay': 1.0, 'random_seed': 9},
            'storage': {'database_url': 'memory://'},
            'bot': {'token': 'ignored'},
        })

        self.assertTrue(result['success'])
        self.assertEqual(
            sorted(result['applied']),
            ['quiz.default_question_count', 'quiz.random_seed', 'quiz.timeout_delay', 'storage.database_url']
        )
        self.assertEqual(self.config_manager.get_question_count(), 12)
        self.assertEqual(self.config_manager.random_seed, 9)

    def test_apply_config_keeps_defaults_for_invalid_values(self):
        result = self.config_manager.apply_config({
            'quiz': {'default_question_count': 0, 'answer_delay': 2},
            'storage': None,
        })

        self.assertFalse(result['success'])
        self.assertEqual(result['applied'], ['quiz.answer_delay'])
        self.assertEqual(len(result['errors']), 1)
        self.assertEqual(self.config_manager.get_question_count(), 10)

    def test_reset_to_defaults(self):
        self.config_manager.set_question_count(50)
        self.config_manager.set_database_url("memory://")
        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_question_count(), 10)
        self.assertEqual(self.config_manager.database_url, DEFAULT_DATABASE_URL)

    def test_validate_settings(self):
        self.assertEqual(self.config_manager.validate_settings(), {"valid": True, "issues": []})

        # Corrupt internal state directly to exercise the validator
        self.config_manager._timeout_delay = -1
        validation = self.config_manager.validate_settings()
        self.assertFalse(validation["valid"])
        self.assertIn("Invalid timeout delay: -1", validation["issues"])

    def test_settings_summary(self):
        self.config_manager.set_random_seed(7)
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Questions: 10", summary)
        self.assertIn("Shuffle seed: 7", summary)
        self.assertIn("Question bank: bundled", summary)

    def test_health_check(self):
        """Test health check warnings and errors."""
        health = self.config_manager.get_configuration_health_check()
        self.assertTrue(health['healthy'])
        self.assertEqual(health['errors'], [])

        self.config_manager.set_database_url("memory://")
        self.config_manager.set_question_count(60)
        health = self.config_manager.get_configuration_health_check()
        self.assertTrue(health['healthy'])
        self.assertEqual(len(health['warnings']), 2)

    def test_health_check_missing_question_bank(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            self.config_manager.set_question_bank_path(os.path.join(temp_dir, "missing.json"))
            health = self.config_manager.get_configuration_health_check()

        self.assertFalse(health['healthy'])
        self.assertIn("Question bank not found", health['errors'][0])
        self.assertTrue(health['recommendations'])


if __name__ == '__main__':
    unittest.main()
