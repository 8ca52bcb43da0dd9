"""
Question selection for quiz runs: shuffling, truncation and difficulty mixes.
"""
import logging
import random
from typing import List, Optional, Sequence, Tuple, TypeVar

from .models import Category, Difficulty, Question, QuestionType, QuizMode, QuizSettings


T = TypeVar("T")

logger = logging.getLogger(__name__)


def shuffle_items(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """
    Fisher-Yates shuffle into a new list.

    Args:
        items: Items to shuffle; left untouched
        rng: Random source, the module-level one when omitted

    Returns:
        New list holding a permutation of items
    """
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def limit_count(items: List[T], count: int) -> List[T]:
    """
    Limit a list to count items.

    Note:
        If count is greater than available items, returns all of them.
        If count is less than 1, returns an empty list.
    """
    if count < 1:
        return []
    return items[:count]


def random_subset(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """Shuffle then truncate: min(count, len(items)) distinct items."""
    return limit_count(shuffle_items(items, rng), count)


def ceil_share(count: int, percent: int) -> int:
    """Ceiling of count * percent / 100 in integer arithmetic."""
    return -(-count * percent // 100)


class QuestionSampler:
    """Builds the ordered question list for one quiz run."""

    # Mixed composition shares, in percent of the requested count
    MIX_SHARES: Tuple[Tuple[Difficulty, int], ...] = (
        (Difficulty.EASY, 40),
        (Difficulty.MEDIUM, 40),
        (Difficulty.HARD, 20),
    )

    def __init__(self, store, rng: Optional[random.Random] = None):
        """
        Initialize the sampler.

        Args:
            store: QuestionStore to draw from
            rng: Seedable random source shared with the store
        """
        self.store = store
        self.rng = rng or random.Random()

    def shuffle(self, questions: Sequence[Question]) -> List[Question]:
        return shuffle_items(questions, self.rng)

    def random_subset(self, questions: Sequence[Question], count: int) -> List[Question]:
        return random_subset(questions, count, self.rng)

    def mixed_composition(self, count: int) -> List[Question]:
        """
        Draw roughly 40% easy, 40% medium and 20% hard questions.

        Each bucket is sized with ceiling rounding and drawn independently.
        Short buckets are not backfilled from other tiers, so fewer than
        count questions may come back.
        """
        if count < 1:
            return []

        corpus = self.store.get_all()
        mixed: List[Question] = []
        for difficulty, percent in self.MIX_SHARES:
            wanted = ceil_share(count, percent)
            bucket = [q for q in corpus if q.difficulty is difficulty]
            drawn = self.random_subset(bucket, wanted)
            if len(drawn) < wanted:
                logger.info(
                    f"Mixed composition short on {difficulty.value} questions: {len(drawn)}/{wanted}",
                    extra={
                        'event_type': 'mixed_bucket_short',
                        'difficulty': difficulty.value,
                        'requested': wanted,
                        'available': len(drawn)
                    }
                )
            mixed.extend(drawn)

        return limit_count(self.shuffle(mixed), count)

    def by_category(
        self,
        category: Category,
        difficulty: Optional[Difficulty] = None,
        count: int = 10
    ) -> List[Question]:
        return self.store.get_by_category(category, difficulty, count)

    def by_difficulty(self, difficulty: Difficulty, count: int = 10) -> List[Question]:
        return self.store.get_by_difficulty(difficulty, count)

    def by_type(self, question_type: QuestionType, count: int = 5) -> List[Question]:
        return self.store.get_by_type(question_type, count)

    def random(self, count: int = 10, difficulty: Optional[Difficulty] = None) -> List[Question]:
        """Fully random draw, optionally restricted to one difficulty."""
        if difficulty is not None:
            return self.by_difficulty(difficulty, count)
        return self.random_subset(self.store.get_all(), count)

    def for_settings(self, settings: QuizSettings) -> List[Question]:
        """
        Draw questions the way the quiz launcher asks for them.

        A category always wins; otherwise mixed mode uses the difficulty mix
        and every other mode is a random draw at the chosen difficulty.
        """
        count = settings.question_count
        if settings.category is not None:
            difficulty = None if settings.mode is QuizMode.MIXED else settings.difficulty
            return self.by_category(settings.category, difficulty, count)
        if settings.mode is QuizMode.TYPE and settings.question_type is not None:
            return self.by_type(settings.question_type, count)
        if settings.mode is QuizMode.MIXED:
            return self.mixed_composition(count)
        return self.random(count, settings.difficulty)
