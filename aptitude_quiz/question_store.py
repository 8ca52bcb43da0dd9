"""
Question bank persistence: seeding, filtered retrieval and corpus statistics.
"""
import logging
import random
import time
from collections import Counter
from typing import Dict, List, Optional

from .data_manager import DataManager
from .models import Category, Difficulty, Question, QuestionStats, QuestionType
from .sampler import random_subset
from .storage import QUESTIONS, SeedFailure, StorageBackend, StorageError, StoreUnavailable


class QuestionStore:
    """Owns the question corpus and answers filtered queries over it."""

    def __init__(
        self,
        backend: StorageBackend,
        data_manager: Optional[DataManager] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the store.

        Args:
            backend: Storage backend holding the questions collection
            data_manager: Loader for the seed corpus
            rng: Seedable random source used to order results
        """
        self.backend = backend
        self.data_manager = data_manager or DataManager()
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)
        self._seeded = False

    def seed_if_empty(self) -> bool:
        """
        Insert the bundled corpus if the store holds no questions.

        Idempotent across calls and restarts. Failures are logged and the
        seed is retried on the next call.

        Returns:
            True if the corpus is present afterwards
        """
        if self._seeded:
            return True

        try:
            self.backend.open()
            existing = self.backend.count(QUESTIONS)
            if existing == 0:
                inserted = self._insert_corpus()
                self.logger.info(
                    f"Seeded {inserted} aptitude questions",
                    extra={'event_type': 'question_bank_seeded', 'count': inserted, 'timestamp': time.time()}
                )
            else:
                self.logger.debug(f"Question bank already holds {existing} questions, skipping seed")
            self._seeded = True
            return True

        except StoreUnavailable as e:
            self.logger.error(
                f"Question store unavailable: {e}",
                extra={'event_type': 'store_unavailable', 'timestamp': time.time()}
            )
        except SeedFailure as e:
            self.logger.error(
                f"Seeding question bank failed: {e}",
                extra={'event_type': 'seed_failure', 'timestamp': time.time()}
            )
        except StorageError as e:
            self.logger.error(
                f"Storage error while seeding question bank: {e}",
                extra={'event_type': 'seed_failure', 'timestamp': time.time()}
            )
        return False

    def _insert_corpus(self) -> int:
        questions = self.data_manager.load_question_bank()
        if not questions:
            errors = "; ".join(self.data_manager.get_load_errors()[:3])
            raise SeedFailure(f"Question bank could not be loaded: {errors or 'empty corpus'}")
        try:
            return self.backend.put_many(QUESTIONS, [question.to_dict() for question in questions])
        except StorageError as e:
            raise SeedFailure(str(e)) from e

    def _query(self, filters: Optional[Dict[str, str]] = None) -> List[Question]:
        """Run a read, degrading to an empty result on any storage failure."""
        if not self.seed_if_empty():
            return []
        try:
            records = self.backend.query(QUESTIONS, filters=filters)
        except StorageError as e:
            self.logger.error(f"Failed to read questions {filters or ''}: {e}")
            return []

        questions = []
        for record in records:
            try:
                questions.append(Question.from_dict(record))
            except (ValueError, KeyError) as e:
                self.logger.warning(f"Skipping unreadable question record {record.get('id')}: {e}")
        return questions

    def get_all(self) -> List[Question]:
        """Return the full corpus in storage order."""
        return self._query()

    def get(self, question_id: str) -> Optional[Question]:
        if not self.seed_if_empty():
            return None
        try:
            record = self.backend.get(QUESTIONS, question_id)
        except StorageError as e:
            self.logger.error(f"Failed to read question {question_id}: {e}")
            return None
        return Question.from_dict(record) if record else None

    def get_by_category(
        self,
        category: Category,
        difficulty: Optional[Difficulty] = None,
        limit: int = 10
    ) -> List[Question]:
        """Up to limit questions of a category (and difficulty), in random order."""
        filters = {'category': Category(category).value}
        if difficulty is not None:
            filters['difficulty'] = Difficulty(difficulty).value
        return random_subset(self._query(filters), limit, self.rng)

    def get_by_difficulty(self, difficulty: Difficulty, limit: int = 10) -> List[Question]:
        """Up to limit questions of a difficulty, in random order."""
        return random_subset(self._query({'difficulty': Difficulty(difficulty).value}), limit, self.rng)

    def get_by_type(self, question_type: QuestionType, limit: int = 5) -> List[Question]:
        """Up to limit questions of a type, in random order."""
        return random_subset(self._query({'type': QuestionType(question_type).value}), limit, self.rng)

    def get_by_tag(self, tag: str, limit: int = 10) -> List[Question]:
        """Up to limit questions carrying a tag, in random order."""
        tagged = [question for question in self._query() if tag in question.tags]
        return random_subset(tagged, limit, self.rng)

    def get_stats(self) -> QuestionStats:
        """Count the corpus in total and per category and difficulty."""
        questions = self.get_all()
        return QuestionStats(
            total=len(questions),
            by_category=dict(Counter(q.category.value for q in questions)),
            by_difficulty=dict(Counter(q.difficulty.value for q in questions)),
        )

    def clear_all_data(self) -> None:
        """Drop every question; the next read reseeds from the bundled asset."""
        try:
            self.backend.open()
            self.backend.clear(QUESTIONS)
            self.logger.info("Cleared all offline aptitude questions")
        except StorageError as e:
            self.logger.error(f"Error clearing question bank: {e}")
        finally:
            self._seeded = False
