"""
Timed quiz session state machine.

LOADING -> PRESENTING(i) -> ANSWERED(i) -> PRESENTING(i+1) -> ... -> COMPLETED

A session can be abandoned from any non-terminal state; abandoned sessions are
never archived. A completed session is announced first and archived after,
off the clock's thread of control, so a slow store never delays the quiz. All transitions happen on the clock's callbacks or on
answer(), so a session is only ever touched from one thread of control.
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .archive import SessionArchive, accuracy, accuracy_percent, correct_count, topic_breakdown
from .models import TIMED_OUT, UNANSWERED, AnsweredSlot, Question, QuizSession
from .scoring import display_score, performance_level, score_delta
from .timer import Clock, ScheduledCall


logger = logging.getLogger(__name__)

# Listener events
EVENT_PRESENTING = "presenting"
EVENT_TICK = "tick"
EVENT_ANSWERED = "answered"
EVENT_COMPLETED = "completed"
EVENT_ABANDONED = "abandoned"
EVENT_SAVED = "saved"

Listener = Callable[[str, "QuizSessionMachine"], None]


class SessionState(Enum):
    """States of a running quiz."""
    LOADING = "loading"
    PRESENTING = "presenting"
    ANSWERED = "answered"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class QuizSessionMachine:
    """Drives one timed run through a fixed list of questions."""

    def __init__(
        self,
        user_id: str,
        questions: Sequence[Question],
        clock: Clock,
        archive: Optional[SessionArchive] = None,
        answer_delay: float = 3.0,
        timeout_delay: float = 2.5,
        on_complete: Optional[Callable[[QuizSession], None]] = None,
        listener: Optional[Listener] = None
    ):
        """
        Initialize the session.

        Args:
            user_id: Owner of the run
            questions: Questions in presentation order; snapshotted here
            clock: Countdown and delay scheduler
            archive: Where the finished run is saved, if anywhere
            answer_delay: Seconds the result stays on screen after a selection
            timeout_delay: Seconds the result stays on screen after a timeout
            on_complete: Called with the finished session
            listener: Called with (event, machine) on every visible change
        """
        self.clock = clock
        self.archive = archive
        self.answer_delay = answer_delay
        self.timeout_delay = timeout_delay
        self.on_complete = on_complete
        self.listener = listener

        snapshot = tuple(questions)
        self._session = QuizSession(
            user_id=str(user_id),
            questions=snapshot,
            answers=[UNANSWERED] * len(snapshot),
            start_time=clock.now(),
        )
        self._state = SessionState.LOADING
        self._current_index = 0
        self._pending_advance: Optional[ScheduledCall] = None
        self._last_delta = 0
        self._save_pending = False

    # Read-only view

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> QuizSession:
        return self._session

    @property
    def user_id(self) -> str:
        return self._session.user_id

    @property
    def questions(self):
        return self._session.questions

    @property
    def answers(self) -> List[AnsweredSlot]:
        return list(self._session.answers)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Optional[Question]:
        if not self._session.questions or self._state in (SessionState.LOADING, SessionState.ABANDONED):
            return None
        return self._session.questions[self._current_index]

    @property
    def current_answer(self) -> AnsweredSlot:
        if not self._session.questions:
            return UNANSWERED
        return self._session.answers[self._current_index]

    @property
    def time_remaining(self) -> int:
        """Whole seconds left on the current question; 0 outside PRESENTING."""
        if self._state is not SessionState.PRESENTING:
            return 0
        return self.clock.remaining_time

    @property
    def score(self) -> int:
        return self._session.score

    @property
    def display_score(self) -> int:
        return display_score(self._session.score)

    @property
    def last_delta(self) -> int:
        """Points gained or lost by the most recent answer or timeout."""
        return self._last_delta

    @property
    def save_pending(self) -> bool:
        """True while a completed run is still being archived."""
        return self._save_pending

    @property
    def is_finished(self) -> bool:
        return self._state in (SessionState.COMPLETED, SessionState.ABANDONED)

    # Transitions

    def start(self) -> bool:
        """
        Present the first question.

        Returns:
            False if the session has no questions or was already started
        """
        if self._state is not SessionState.LOADING:
            logger.debug(f"Ignoring start for user {self.user_id}: session is {self._state.value}")
            return False
        if not self._session.questions:
            logger.warning(f"Cannot start quiz for user {self.user_id}: no questions available")
            return False

        self._session.start_time = self.clock.now()
        logger.info(
            f"Quiz session started for user {self.user_id} with {len(self._session.questions)} questions",
            extra={
                'event_type': 'session_started',
                'user_id': self.user_id,
                'question_count': len(self._session.questions),
                'timestamp': time.time()
            }
        )
        self._present(0)
        return True

    def answer(self, index: int) -> Optional[int]:
        """
        Select an option for the current question.

        Only the first selection per question counts. Selections outside
        PRESENTING or out of option range are ignored.

        Returns:
            Score delta applied, or None if the selection was ignored
        """
        if self._state is not SessionState.PRESENTING:
            if self._state is SessionState.ANSWERED:
                logger.debug(
                    f"Duplicate answer attempt by user {self.user_id} on question {self._current_index + 1}",
                    extra={'event_type': 'duplicate_answer_attempt', 'user_id': self.user_id}
                )
            return None

        question = self._session.questions[self._current_index]
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(question.options):
            logger.debug(f"Ignoring out-of-range option {index!r} for question {question.id}")
            return None

        remaining = self.clock.remaining_time
        self.clock.stop_countdown()
        slot = AnsweredSlot.selected(index)
        delta = self._record(question, slot, remaining)
        self._schedule_advance(self.answer_delay)
        self._notify(EVENT_ANSWERED)
        return delta

    def abandon(self) -> bool:
        """
        Leave the quiz early. Nothing is archived.

        Returns:
            False if the session had already finished
        """
        if self.is_finished:
            return False

        self.clock.stop_countdown()
        self._cancel_pending_advance()
        self._state = SessionState.ABANDONED
        logger.info(
            f"Quiz session abandoned by user {self.user_id} at question {self._current_index + 1}",
            extra={'event_type': 'session_abandoned', 'user_id': self.user_id, 'timestamp': time.time()}
        )
        self._notify(EVENT_ABANDONED)
        return True

    def _present(self, index: int) -> None:
        self._current_index = index
        self._state = SessionState.PRESENTING
        question = self._session.questions[index]
        self.clock.start_countdown(question.time_limit_seconds, self._on_tick, self._on_expire)
        self._notify(EVENT_PRESENTING)

    def _on_tick(self, remaining: int) -> None:
        if self._state is SessionState.PRESENTING:
            self._notify(EVENT_TICK)

    def _on_expire(self) -> None:
        if self._state is not SessionState.PRESENTING:
            return
        question = self._session.questions[self._current_index]
        self._record(question, TIMED_OUT, 0)
        logger.debug(f"Question {question.id} timed out for user {self.user_id}")
        self._schedule_advance(self.timeout_delay)
        self._notify(EVENT_ANSWERED)

    def _record(self, question: Question, slot: AnsweredSlot, remaining: int) -> int:
        delta = score_delta(question, slot, remaining)
        self._session.answers[self._current_index] = slot
        self._session.score += delta
        self._last_delta = delta
        self._state = SessionState.ANSWERED
        return delta

    def _schedule_advance(self, delay: float) -> None:
        self._cancel_pending_advance()
        self._pending_advance = self.clock.call_later(delay, self._advance)

    def _cancel_pending_advance(self) -> None:
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None

    def _advance(self) -> None:
        self._pending_advance = None
        if self._state is not SessionState.ANSWERED:
            return
        if self._current_index + 1 < len(self._session.questions):
            self._present(self._current_index + 1)
        else:
            self._complete()

    def _complete(self) -> None:
        end_time = self.clock.now()
        self._session.end_time = end_time
        self._session.completed = True
        self._session.total_time_seconds = (end_time - self._session.start_time).total_seconds()
        self._state = SessionState.COMPLETED

        logger.info(
            f"Quiz session completed for user {self.user_id}: score {self._session.score}, "
            f"{correct_count(self._session)}/{len(self._session.questions)} correct",
            extra={
                'event_type': 'session_completed',
                'user_id': self.user_id,
                'score': self._session.score,
                'timestamp': time.time()
            }
        )

        self._save_pending = self.archive is not None

        if self.on_complete is not None:
            try:
                self.on_complete(self._session)
            except Exception as e:
                logger.error(f"Completion callback failed for user {self.user_id}: {e}", exc_info=True)

        self._notify(EVENT_COMPLETED)

        if self.archive is not None:
            archive, session = self.archive, self._session
            self.clock.run_in_background(lambda: archive.save(session), self._on_saved)

    def _on_saved(self, session_id: Optional[int]) -> None:
        self._save_pending = False
        self._session.id = session_id
        if session_id is None:
            logger.warning(f"Completed quiz for user {self.user_id} is missing from history")
        self._notify(EVENT_SAVED)

    def _notify(self, event: str) -> None:
        if self.listener is None:
            return
        try:
            self.listener(event, self)
        except Exception as e:
            logger.error(f"Session listener failed on '{event}' for user {self.user_id}: {e}", exc_info=True)

    def result(self) -> Dict[str, Any]:
        """Final (or running) result of the session for display."""
        percent = accuracy_percent(self._session)
        level = performance_level(percent)
        return {
            'user_id': self.user_id,
            'session_id': self._session.id,
            'save_pending': self._save_pending,
            'state': self._state.value,
            'score': self._session.score,
            'display_score': self.display_score,
            'correct': correct_count(self._session),
            'total_questions': len(self._session.questions),
            'accuracy': accuracy(self._session),
            'accuracy_percent': percent,
            'performance_level': level.level,
            'performance_emoji': level.emoji,
            'topics': topic_breakdown(self._session),
            'total_time_seconds': self._session.total_time_seconds,
        }
