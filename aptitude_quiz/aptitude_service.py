"""
Offline aptitude service: the engine's external interface.

One AptitudeService is built at process start with its storage backend,
random source and clock factory, then handed to whatever presents quizzes.
"""
import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from .archive import SessionArchive
from .data_manager import DataManager
from .models import Category, Difficulty, Question, QuestionStats, QuestionType, QuizSession, QuizSettings
from .question_store import QuestionStore
from .sampler import QuestionSampler
from .session import Listener, QuizSessionMachine
from .storage import StorageBackend, create_backend
from .timer import AsyncioClock, Clock


E = TypeVar("E", bound=Enum)

_INVALID = object()


class AptitudeService:
    """Question retrieval, quiz runs and history over one storage backend."""

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        data_manager: Optional[DataManager] = None,
        rng: Optional[random.Random] = None,
        clock_factory: Callable[[], Clock] = AsyncioClock,
        settings: Optional[QuizSettings] = None
    ):
        """
        Initialize the service.

        Args:
            backend: Storage for questions and sessions; the default SQLite file when omitted
            data_manager: Loader for the bundled question bank
            rng: Seedable random source for every shuffle
            clock_factory: Builds one clock per quiz run
            settings: Default delays for new sessions
        """
        self.logger = logging.getLogger(__name__)
        self.backend = backend or create_backend()
        self.rng = rng or random.Random()
        self.clock_factory = clock_factory
        self.settings = settings or QuizSettings()

        self.store = QuestionStore(self.backend, data_manager or DataManager(), self.rng)
        self.sampler = QuestionSampler(self.store, self.rng)
        self.archive = SessionArchive(self.backend)

    @classmethod
    def from_config(cls, config_manager, clock_factory: Callable[[], Clock] = AsyncioClock) -> "AptitudeService":
        """Build the service from validated runtime configuration."""
        seed = config_manager.random_seed
        return cls(
            backend=create_backend(config_manager.database_url),
            data_manager=DataManager(config_manager.question_bank_path),
            rng=random.Random(seed) if seed is not None else random.Random(),
            clock_factory=clock_factory,
            settings=config_manager.get_quiz_settings(),
        )

    def _coerce(self, enum_type: Type[E], value: Any, argument: str):
        """Accept enum members or their string values; unknown values map to _INVALID."""
        if value is None or isinstance(value, enum_type):
            return value
        try:
            return enum_type(str(value).strip().lower())
        except ValueError:
            self.logger.warning(f"Unknown {argument} '{value}', returning no questions")
            return _INVALID

    def seed_if_empty(self) -> bool:
        return self.store.seed_if_empty()

    def get_mixed_questions(self, count: int = 10) -> List[Question]:
        """About 40% easy, 40% medium and 20% hard questions, shuffled."""
        return self.sampler.mixed_composition(count)

    def get_questions_by_category(self, category, difficulty=None, count: int = 10) -> List[Question]:
        category = self._coerce(Category, category, "category")
        difficulty = self._coerce(Difficulty, difficulty, "difficulty")
        if category is None or category is _INVALID or difficulty is _INVALID:
            return []
        return self.sampler.by_category(category, difficulty, count)

    def get_random_questions(self, count: int = 10, difficulty=None) -> List[Question]:
        difficulty = self._coerce(Difficulty, difficulty, "difficulty")
        if difficulty is _INVALID:
            return []
        return self.sampler.random(count, difficulty)

    def get_questions_by_type(self, question_type, count: int = 5) -> List[Question]:
        question_type = self._coerce(QuestionType, question_type, "question type")
        if question_type is None or question_type is _INVALID:
            return []
        return self.sampler.by_type(question_type, count)

    def get_questions_for_settings(self, settings: QuizSettings) -> List[Question]:
        return self.sampler.for_settings(settings)

    def get_question_stats(self) -> QuestionStats:
        return self.store.get_stats()

    def start_session(
        self,
        user_id: str,
        questions: Sequence[Question],
        listener: Optional[Listener] = None,
        on_complete: Optional[Callable[[QuizSession], None]] = None,
        answer_delay: Optional[float] = None,
        timeout_delay: Optional[float] = None,
        clock: Optional[Clock] = None,
        start: bool = True
    ) -> QuizSessionMachine:
        """
        Create a session over questions and present the first one.

        The returned machine is still in LOADING if questions was empty, or
        when start is False and the caller starts it later.
        """
        machine = QuizSessionMachine(
            user_id=user_id,
            questions=questions,
            clock=clock or self.clock_factory(),
            archive=self.archive,
            answer_delay=self.settings.answer_delay if answer_delay is None else answer_delay,
            timeout_delay=self.settings.timeout_delay if timeout_delay is None else timeout_delay,
            on_complete=on_complete,
            listener=listener,
        )
        if start:
            machine.start()
        return machine

    def save_quiz_session(self, session: QuizSession) -> Optional[int]:
        return self.archive.save(session)

    def get_user_quiz_history(self, user_id: str, limit: int = 10) -> List[QuizSession]:
        return self.archive.history(str(user_id), limit)

    def get_user_summary(self, user_id: str, limit: int = 10) -> Dict[str, Any]:
        return self.archive.user_summary(str(user_id), limit)

    def clear_all_data(self) -> None:
        """Drop questions and archived sessions; the next read reseeds."""
        self.store.clear_all_data()
        self.archive.clear()

    def close(self) -> None:
        self.backend.close()
