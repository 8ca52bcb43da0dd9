"""
Configuration manager for aptitude quiz settings and storage locations.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import QuizMode, QuizSettings
from .storage import DEFAULT_DATABASE_URL


class ConfigManager:
    """Manages validated runtime settings for the quiz engine and bot."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 10
    DEFAULT_QUICK_QUIZ_COUNT = 20
    DEFAULT_ANSWER_DELAY = 3.0
    DEFAULT_TIMEOUT_DELAY = 2.5
    DEFAULT_HISTORY_LIMIT = 10
    DEFAULT_DATABASE_URL = DEFAULT_DATABASE_URL

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_DELAY = 0.0
    MAX_DELAY = 30.0
    MIN_HISTORY_LIMIT = 1
    MAX_HISTORY_LIMIT = 50

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self.reset_to_defaults()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._question_count = self.DEFAULT_QUESTION_COUNT
        self._quick_quiz_count = self.DEFAULT_QUICK_QUIZ_COUNT
        self._answer_delay = self.DEFAULT_ANSWER_DELAY
        self._timeout_delay = self.DEFAULT_TIMEOUT_DELAY
        self._history_limit = self.DEFAULT_HISTORY_LIMIT
        self._random_seed: Optional[int] = None
        self._database_url = self.DEFAULT_DATABASE_URL
        self._question_bank_path: Optional[str] = None
        self.logger.info("All settings reset to default values")

    def apply_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply the 'quiz' and 'storage' sections of a loaded config.json.

        Invalid values are reported and the previous (default) value is kept.

        Returns:
            Dictionary with 'success', the applied keys and user-facing errors
        """
        setters = {
            ('quiz', 'default_question_count'): self.set_question_count,
            ('quiz', 'quick_quiz_count'): self.set_quick_quiz_count,
            ('quiz', 'answer_delay'): self.set_answer_delay,
            ('quiz', 'timeout_delay'): self.set_timeout_delay,
            ('quiz', 'history_limit'): self.set_history_limit,
            ('quiz', 'random_seed'): self.set_random_seed,
            ('storage', 'database_url'): self.set_database_url,
            ('storage', 'question_bank_path'): self.set_question_bank_path,
        }

        applied: List[str] = []
        errors: List[str] = []
        for (section, key), setter in setters.items():
            section_values = config.get(section) or {}
            if key not in section_values:
                continue
            result = setter(section_values[key])
            if result['success']:
                applied.append(f"{section}.{key}")
            else:
                errors.append(result['user_message'])

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} invalid value(s); defaults kept for those")
        return {'success': not errors, 'applied': applied, 'errors': errors}

    def _invalid(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {'success': False, 'error': error_msg, 'user_message': user_message}

    def _check_count(self, value: Any, name: str, minimum: int, maximum: int) -> Optional[Dict[str, Any]]:
        """Shared validation for integer settings; None when valid."""
        if isinstance(value, bool) or not isinstance(value, int):
            return self._invalid(
                f"{name.capitalize()} must be an integer, got {type(value).__name__}",
                f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            )
        if value < minimum:
            return self._invalid(
                f"{name.capitalize()} must be at least {minimum}",
                f"❌ Too small: Minimum {name} is {minimum}"
            )
        if value > maximum:
            return self._invalid(
                f"{name.capitalize()} cannot exceed {maximum}",
                f"❌ Too large: Maximum {name} is {maximum}"
            )
        return None

    def _check_delay(self, value: Any, name: str) -> Optional[Dict[str, Any]]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self._invalid(
                f"{name.capitalize()} must be a number, got {type(value).__name__}",
                f"❌ Invalid input: Expected seconds, got {type(value).__name__}"
            )
        if not self.MIN_DELAY <= value <= self.MAX_DELAY:
            return self._invalid(
                f"{name.capitalize()} must be between {self.MIN_DELAY} and {self.MAX_DELAY} seconds",
                f"❌ {name.capitalize()} must be between {self.MIN_DELAY:g} and {self.MAX_DELAY:g} seconds"
            )
        return None

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the default number of questions for a quiz.

        Args:
            count: Number of questions per quiz

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        problem = self._check_count(count, "question count", self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT)
        if problem:
            return problem

        self._question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> int:
        return self._question_count

    def set_quick_quiz_count(self, count: int) -> Dict[str, Any]:
        """Set the number of mixed questions used by the quick quiz."""
        problem = self._check_count(count, "quick quiz count", self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT)
        if problem:
            return problem

        self._quick_quiz_count = count
        self.logger.info(f"Quick quiz count set to {count}")
        return {
            'success': True,
            'message': f"Quick quiz count set to {count}",
            'user_message': f"✅ Quick quiz will ask {count} questions"
        }

    def get_quick_quiz_count(self) -> int:
        return self._quick_quiz_count

    def set_answer_delay(self, delay: float) -> Dict[str, Any]:
        """
        Set how long the result stays on screen after a selection.

        Args:
            delay: Seconds before the next question

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        problem = self._check_delay(delay, "answer delay")
        if problem:
            return problem

        self._answer_delay = float(delay)
        self.logger.info(f"Answer delay set to {delay} seconds")
        return {
            'success': True,
            'message': f"Answer delay set to {delay} seconds",
            'user_message': f"✅ Next question appears {delay:g}s after an answer"
        }

    def get_answer_delay(self) -> float:
        return self._answer_delay

    def set_timeout_delay(self, delay: float) -> Dict[str, Any]:
        """Set how long the result stays on screen after a timeout."""
        problem = self._check_delay(delay, "timeout delay")
        if problem:
            return problem

        self._timeout_delay = float(delay)
        self.logger.info(f"Timeout delay set to {delay} seconds")
        return {
            'success': True,
            'message': f"Timeout delay set to {delay} seconds",
            'user_message': f"✅ Next question appears {delay:g}s after a timeout"
        }

    def get_timeout_delay(self) -> float:
        return self._timeout_delay

    def set_history_limit(self, limit: int) -> Dict[str, Any]:
        problem = self._check_count(limit, "history limit", self.MIN_HISTORY_LIMIT, self.MAX_HISTORY_LIMIT)
        if problem:
            return problem

        self._history_limit = limit
        self.logger.info(f"History limit set to {limit}")
        return {
            'success': True,
            'message': f"History limit set to {limit}",
            'user_message': f"✅ History shows the last {limit} quizzes"
        }

    def get_history_limit(self) -> int:
        return self._history_limit

    def set_random_seed(self, seed: Optional[int]) -> Dict[str, Any]:
        """
        Set a fixed seed for question shuffling, or None for a fresh seed per start.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            return self._invalid(
                f"Random seed must be an integer or null, got {type(seed).__name__}",
                f"❌ Invalid input: Expected a whole number, got {type(seed).__name__}"
            )

        self._random_seed = seed
        description = f"fixed seed {seed}" if seed is not None else "a fresh seed"
        self.logger.info(f"Question shuffling uses {description}")
        return {
            'success': True,
            'message': f"Random seed set to {seed}",
            'user_message': f"✅ Question shuffling uses {description}"
        }

    @property
    def random_seed(self) -> Optional[int]:
        return self._random_seed

    def set_database_url(self, database_url: str) -> Dict[str, Any]:
        """
        Set the storage location, a SQLAlchemy URL or ``memory://``.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(database_url, str):
            return self._invalid(
                f"Database URL must be a string, got {type(database_url).__name__}",
                f"❌ Invalid input: Expected a URL string, got {type(database_url).__name__}"
            )
        if not database_url.strip():
            return self._invalid("Database URL cannot be empty", "❌ Database URL cannot be empty")
        if "://" not in database_url:
            return self._invalid(
                f"Database URL has no scheme: {database_url}",
                f"❌ Invalid database URL: {database_url}"
            )

        self._database_url = database_url.strip()
        self.logger.info(f"Database URL set to {self._database_url}")
        return {
            'success': True,
            'message': f"Database URL set to {self._database_url}",
            'user_message': f"✅ Storage set to {self._database_url}"
        }

    @property
    def database_url(self) -> str:
        return self._database_url

    def set_question_bank_path(self, path: Optional[str]) -> Dict[str, Any]:
        """Set the question bank JSON used for seeding; None selects the bundled asset."""
        if path is None:
            self._question_bank_path = None
            return {
                'success': True,
                'message': "Question bank set to bundled asset",
                'user_message': "✅ Using the bundled question bank"
            }
        if not isinstance(path, str) or not path.strip():
            return self._invalid(
                f"Question bank path must be a non-empty string, got {path!r}",
                "❌ Question bank path cannot be empty"
            )

        try:
            normalized_path = str(Path(path).resolve())
        except (OSError, ValueError) as e:
            return self._invalid(f"Invalid question bank path format: {e}", f"❌ Invalid path format: {path}")

        self._question_bank_path = normalized_path
        self.logger.info(f"Question bank path set to {normalized_path}")
        return {
            'success': True,
            'message': f"Question bank path set to {normalized_path}",
            'user_message': f"✅ Question bank set to {normalized_path}"
        }

    @property
    def question_bank_path(self) -> Optional[str]:
        return self._question_bank_path

    def get_quiz_settings(
        self,
        mode: QuizMode = QuizMode.MIXED,
        question_count: Optional[int] = None,
        **filters
    ) -> QuizSettings:
        """
        Build launch settings from the current configuration.

        Args:
            mode: How questions are drawn
            question_count: Overrides the configured default when given
            **filters: category, difficulty or question_type

        Returns:
            QuizSettings carrying the configured delays
        """
        return QuizSettings(
            mode=mode,
            question_count=question_count if question_count is not None else self._question_count,
            category=filters.get('category'),
            difficulty=filters.get('difficulty'),
            question_type=filters.get('question_type'),
            answer_delay=self._answer_delay,
            timeout_delay=self._timeout_delay,
        )

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        for name, value in (("question count", self._question_count), ("quick quiz count", self._quick_quiz_count)):
            if (not isinstance(value, int) or
                    value < self.MIN_QUESTION_COUNT or value > self.MAX_QUESTION_COUNT):
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {name}: {value}")

        for name, value in (("answer delay", self._answer_delay), ("timeout delay", self._timeout_delay)):
            if not isinstance(value, (int, float)) or not self.MIN_DELAY <= value <= self.MAX_DELAY:
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {name}: {value}")

        if (not isinstance(self._history_limit, int) or
                not self.MIN_HISTORY_LIMIT <= self._history_limit <= self.MAX_HISTORY_LIMIT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid history limit: {self._history_limit}")

        if not isinstance(self._database_url, str) or "://" not in self._database_url:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid database URL: {self._database_url}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        seed_str = str(self._random_seed) if self._random_seed is not None else "random"
        bank_str = self._question_bank_path or "bundled"
        return (
            f"Quiz Settings:\n"
            f"• Questions: {self._question_count}\n"
            f"• Quick quiz: {self._quick_quiz_count} questions\n"
            f"• Delays: {self._answer_delay:g}s after answer, {self._timeout_delay:g}s after timeout\n"
            f"• History: last {self._history_limit} quizzes\n"
            f"• Shuffle seed: {seed_str}\n"
            f"• Storage: {self._database_url}\n"
            f"• Question bank: {bank_str}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(f"❌ {issue}" for issue in validation_result['issues'])

        if self._question_bank_path is not None:
            bank = Path(self._question_bank_path)
            if not bank.exists():
                health_check['healthy'] = False
                health_check['errors'].append(f"❌ Question bank not found: {bank}")
                health_check['recommendations'].append("Remove question_bank_path to use the bundled question bank.")
            elif not os.access(bank, os.R_OK):
                health_check['healthy'] = False
                health_check['errors'].append(f"❌ Cannot read question bank: {bank}")
                health_check['recommendations'].append("Check file permissions for the question bank.")

        if self._database_url.startswith("memory://"):
            health_check['warnings'].append("⚠️ In-memory storage: quiz history is lost on restart")

        if self._question_count > 50:
            health_check['warnings'].append(
                f"⚠️ Large question count ({self._question_count}) may result in very long quizzes"
            )
            health_check['recommendations'].append(
                "Consider using a smaller question count for better user experience."
            )

        return health_check
