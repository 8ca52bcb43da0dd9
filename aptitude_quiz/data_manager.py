"""
Data manager for the bundled question bank asset and its validation.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import Category, Difficulty, Question, QuestionType


DEFAULT_QUESTION_BANK = Path(__file__).parent / "data" / "question_bank.json"


class DataManager:
    """Manages loading and validation of the question bank JSON file."""

    REQUIRED_FIELDS = {
        'id': str,
        'text': str,
        'type': str,
        'category': str,
        'options': list,
        'correct_answer_index': int,
        'difficulty': str,
        'points': int,
        'time_limit_seconds': int,
    }
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, question_bank_path: Optional[str] = None):
        """
        Initialize DataManager with the question bank path.

        Args:
            question_bank_path: Path to the question bank JSON file; the bundled
                asset is used when omitted
        """
        self.question_bank_path = Path(question_bank_path) if question_bank_path else DEFAULT_QUESTION_BANK
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for diagnostics
        self.skipped_questions = 0

    def load_question_bank(self) -> List[Question]:
        """
        Load and validate the question bank.

        A structurally broken file yields an empty list. Individual invalid or
        duplicate entries are skipped and recorded in load_errors.

        Returns:
            List of Question objects in file order
        """
        self.load_errors.clear()
        self.skipped_questions = 0

        access_result = self._check_file_access(self.question_bank_path)
        if not access_result['success']:
            self.load_errors.append(access_result['error'])
            self.logger.error(access_result['error'])
            return []

        data = self._load_single_file(self.question_bank_path)
        if data is None:
            self.load_errors.append(f"{self.question_bank_path.name}: invalid JSON structure")
            return []

        questions = self._parse_questions(data)
        if not questions:
            self.load_errors.append(f"{self.question_bank_path.name}: no valid questions")
            self.logger.error(f"No valid questions found in {self.question_bank_path}")
            return []

        self.logger.info(
            f"Loaded {len(questions)} questions from {self.question_bank_path}"
            + (f" ({self.skipped_questions} skipped)" if self.skipped_questions else "")
        )
        return questions

    def _check_file_access(self, file_path: Path) -> Dict[str, Any]:
        """Check that the file exists, is readable and has a sane size."""
        try:
            if not file_path.exists():
                return {'success': False, 'error': f"Question bank not found: {file_path}"}

            if not os.access(file_path, os.R_OK):
                return {'success': False, 'error': f"Permission denied: Cannot read {file_path}"}

            file_size = file_path.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"Question bank too large ({file_size / 1024 / 1024:.1f}MB). "
                             f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            return {'success': True}

        except OSError as e:
            return {'success': False, 'error': f"System error accessing {file_path}: {e}"}

    def _load_single_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and parse a single JSON file.

        Args:
            file_path: Path to the JSON file

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                if self.validate_question_bank_structure(data):
                    return data
                else:
                    self.logger.error(f"Invalid question bank structure in {file_path}")
                    return None
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except FileNotFoundError:
            self.logger.error(f"Question bank not found: {file_path}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read question bank {file_path}: {e}")
            return None

    def validate_question_bank_structure(self, data: dict) -> bool:
        """
        Validate the top-level layout of the question bank.

        Expected structure:
        {
            "version": int,         # Optional
            "questions": [ {...}, ... ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Question bank must be a JSON object")
            return False

        if "questions" not in data:
            self.logger.error("Question bank must contain a 'questions' key")
            return False

        questions = data["questions"]
        if not isinstance(questions, list):
            self.logger.error("'questions' value must be an array")
            return False

        if not questions:
            self.logger.error("Question array cannot be empty")
            return False

        return True

    def validate_question_data(self, position: int, question_data: Any) -> Optional[str]:
        """
        Check one raw question entry.

        Returns:
            None when valid, otherwise a description of the problem
        """
        if not isinstance(question_data, dict):
            return f"Question {position} must be an object"

        for name, expected_type in self.REQUIRED_FIELDS.items():
            if name not in question_data:
                return f"Question {position} missing '{name}' field"
            value = question_data[name]
            # bool is an int subclass and never a valid count or index
            if isinstance(value, bool) or not isinstance(value, expected_type):
                return f"Question {position} '{name}' field must be of type {expected_type.__name__}"

        if question_data['type'] not in {t.value for t in QuestionType}:
            return f"Question {position} has unknown type '{question_data['type']}'"
        if question_data['category'] not in {c.value for c in Category}:
            return f"Question {position} has unknown category '{question_data['category']}'"
        if question_data['difficulty'] not in {d.value for d in Difficulty}:
            return f"Question {position} has unknown difficulty '{question_data['difficulty']}'"

        for optional in ('hints', 'tags'):
            if optional in question_data and not isinstance(question_data[optional], list):
                return f"Question {position} '{optional}' field must be an array"

        return None

    def _parse_questions(self, bank_data: dict) -> List[Question]:
        """
        Parse validated question bank data into Question objects.

        Args:
            bank_data: Validated question bank dictionary

        Returns:
            List of Question objects
        """
        questions = []
        seen_ids = set()

        for position, question_data in enumerate(bank_data["questions"]):
            problem = self.validate_question_data(position, question_data)
            if problem is None and question_data['id'] in seen_ids:
                problem = f"Question {position} duplicates id '{question_data['id']}'"

            if problem is None:
                try:
                    question = Question.from_dict(question_data)
                except (ValueError, KeyError) as e:
                    problem = f"Question {position} is invalid: {e}"

            if problem is not None:
                self.logger.warning(problem)
                self.load_errors.append(problem)
                self.skipped_questions += 1
                continue

            seen_ids.add(question.id)
            questions.append(question)

        return questions

    def get_load_errors(self) -> List[str]:
        """
        Get list of errors encountered during the last load operation.

        Returns:
            List of error messages
        """
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        """
        Check if there were any errors during the last load operation.

        Returns:
            True if there were loading errors, False otherwise
        """
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'question_bank': str(self.question_bank_path),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'skipped_questions': self.skipped_questions,
        }
