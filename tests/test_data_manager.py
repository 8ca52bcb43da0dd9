"""
Unit tests for DataManager question bank loading and validation.
"""
import unittest
import tempfile
import logging
from collections import Counter

from aptitude_quiz.data_manager import DEFAULT_QUESTION_BANK, DataManager
from aptitude_quiz.models import Question
from tests.test_fixtures import ErrorScenarios, TestFixtures


class TestBundledQuestionBank(unittest.TestCase):
    """The asset shipped with the package."""

    def test_bundled_bank_loads_cleanly(self):
        data_manager = DataManager()
        questions = data_manager.load_question_bank()

        self.assertEqual(data_manager.question_bank_path, DEFAULT_QUESTION_BANK)
        self.assertFalse(data_manager.has_load_errors(), data_manager.get_load_errors())
        self.assertGreaterEqual(len(questions), 50)
        self.assertTrue(all(isinstance(q, Question) for q in questions))
        self.assertEqual(len({q.id for q in questions}), len(questions))

    def test_bundled_bank_supports_a_default_mixed_quiz(self):
        tiers = Counter(q.difficulty.value for q in DataManager().load_question_bank())
        self.assertGreaterEqual(tiers['easy'], 4)
        self.assertGreaterEqual(tiers['medium'], 4)
        self.assertGreaterEqual(tiers['hard'], 2)


class TestDataManagerValidation(unittest.TestCase):
    """Loading from temporary question bank files."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)
        self.temp_dir.cleanup()

    def _load(self, data):
        path = TestFixtures.write_question_bank(self.temp_dir.name, data)
        data_manager = DataManager(str(path))
        return data_manager, data_manager.load_question_bank()

    def test_valid_file(self):
        data_manager, questions = self._load(TestFixtures.create_question_bank_json())

        self.assertEqual(len(questions), 20)
        self.assertEqual(questions[0].id, "easy_0")
        self.assertFalse(data_manager.has_load_errors())

    def test_invalid_entries_are_skipped(self):
        valid = [q.to_dict() for q in TestFixtures.create_sample_questions()[:3]]
        invalid = ErrorScenarios.get_invalid_question_entries()
        data_manager, questions = self._load({"questions": valid + invalid})

        self.assertEqual([q.id for q in questions], [entry['id'] for entry in valid])
        self.assertEqual(data_manager.skipped_questions, len(invalid))
        self.assertEqual(len(data_manager.get_load_errors()), len(invalid))

    def test_duplicate_ids_keep_first(self):
        first = TestFixtures.make_question("dup", points=10).to_dict()
        second = TestFixtures.make_question("dup", points=20).to_dict()
        data_manager, questions = self._load({"questions": [first, second]})

        self.assertEqual(len(questions), 1)
        self.assertEqual(questions[0].points, 10)
        self.assertIn("duplicates id", data_manager.get_load_errors()[0])

    def test_invalid_structures(self):
        for data in ([], {"version": 2}, {"questions": {}}, {"questions": []}):
            with self.subTest(data=data):
                data_manager, questions = self._load(data)
                self.assertEqual(questions, [])
                self.assertTrue(data_manager.has_load_errors())

    def test_invalid_json(self):
        data_manager, questions = self._load('{"questions": [')
        self.assertEqual(questions, [])
        self.assertTrue(data_manager.has_load_errors())

    def test_missing_file(self):
        data_manager = DataManager(f"{self.temp_dir.name}/absent.json")

        self.assertEqual(data_manager.load_question_bank(), [])
        self.assertIn("not found", data_manager.get_load_errors()[0])

    def test_all_entries_invalid(self):
        data_manager, questions = self._load({"questions": ErrorScenarios.get_invalid_question_entries()})
        self.assertEqual(questions, [])
        self.assertIn("no valid questions", data_manager.get_load_errors()[-1])

    def test_loading_summary(self):
        data_manager, _ = self._load({"questions": [TestFixtures.make_question().to_dict(), "junk"]})
        summary = data_manager.get_loading_summary()

        self.assertTrue(summary['has_errors'])
        self.assertEqual(summary['error_count'], 1)
        self.assertEqual(summary['skipped_questions'], 1)


if __name__ == '__main__':
    unittest.main()
