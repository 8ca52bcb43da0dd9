"""
Session archive: persistence of finished quiz runs and the statistics
derived from them.
"""
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from .models import QuizSession
from .scoring import display_score, is_correct
from .storage import QUIZ_SESSIONS, SessionSaveFailure, StorageBackend, StorageError


logger = logging.getLogger(__name__)


def correct_count(session: QuizSession) -> int:
    """Number of questions answered with the correct option."""
    return sum(
        1 for question, slot in zip(session.questions, session.answers)
        if is_correct(question, slot)
    )


def accuracy(session: QuizSession) -> float:
    """Fraction of questions answered correctly; 0.0 for an empty session."""
    if not session.questions:
        return 0.0
    return correct_count(session) / len(session.questions)


def accuracy_percent(session: QuizSession) -> int:
    return round(accuracy(session) * 100)


def topic_breakdown(session: QuizSession) -> Dict[str, Dict[str, Any]]:
    """
    Per-category totals for one session.

    Returns:
        Mapping of category value to {'total', 'correct', 'accuracy'}
    """
    return _merge_breakdowns([session])


def _merge_breakdowns(sessions: Iterable[QuizSession]) -> Dict[str, Dict[str, Any]]:
    breakdown: Dict[str, Dict[str, Any]] = {}
    for session in sessions:
        for question, slot in zip(session.questions, session.answers):
            topic = breakdown.setdefault(question.category.value, {'total': 0, 'correct': 0})
            topic['total'] += 1
            if is_correct(question, slot):
                topic['correct'] += 1

    for topic in breakdown.values():
        topic['accuracy'] = topic['correct'] / topic['total'] if topic['total'] else 0.0
    return breakdown


class SessionArchive:
    """Stores completed sessions per user and reads them back newest first."""

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self.logger = logging.getLogger(__name__)

    def save(self, session: QuizSession) -> Optional[int]:
        """
        Append a completed session.

        Best effort: incomplete sessions are refused and storage failures are
        logged, never raised.

        Returns:
            The new session id, or None if nothing was stored
        """
        if not session.completed:
            self.logger.warning(f"Refusing to archive incomplete session for user {session.user_id}")
            return None

        try:
            self.backend.open()
            session_id = self.backend.put(QUIZ_SESSIONS, session.to_dict())
        except StorageError as e:
            failure = SessionSaveFailure(f"Could not archive session for user {session.user_id}: {e}")
            self.logger.error(
                str(failure),
                extra={'event_type': 'session_save_failure', 'user_id': session.user_id, 'timestamp': time.time()}
            )
            return None

        session.id = session_id
        self.logger.info(
            f"Archived quiz session {session_id} for user {session.user_id} (score {session.score})",
            extra={
                'event_type': 'session_archived',
                'session_id': session_id,
                'user_id': session.user_id,
                'timestamp': time.time()
            }
        )
        return session_id

    def history(self, user_id: str, limit: int = 10) -> List[QuizSession]:
        """Most recent completed sessions for a user, newest first."""
        try:
            self.backend.open()
            records = self.backend.query(
                QUIZ_SESSIONS,
                filters={'user_id': user_id, 'completed': True},
                order_by='start_time',
                descending=True,
                limit=limit,
            )
        except StorageError as e:
            self.logger.error(f"Error getting quiz history for user {user_id}: {e}")
            return []

        sessions = []
        for record in records:
            try:
                sessions.append(QuizSession.from_dict(record, session_id=record.get('id')))
            except (ValueError, KeyError) as e:
                self.logger.warning(f"Skipping unreadable session record {record.get('id')}: {e}")
        return sessions

    def user_summary(self, user_id: str, limit: int = 10) -> Dict[str, Any]:
        """
        Aggregate a user's recent history for the results screen.

        Args:
            user_id: User whose sessions are summarised
            limit: Number of most recent sessions to include

        Returns:
            Dictionary with session count, average and best score, average
            accuracy and a merged per-topic breakdown
        """
        sessions = self.history(user_id, limit)
        if not sessions:
            return {
                'user_id': user_id,
                'sessions': 0,
                'average_score': 0.0,
                'best_score': 0,
                'average_accuracy': 0.0,
                'topics': {},
            }

        scores = [display_score(session.score) for session in sessions]
        return {
            'user_id': user_id,
            'sessions': len(sessions),
            'average_score': sum(scores) / len(scores),
            'best_score': max(scores),
            'average_accuracy': sum(accuracy(session) for session in sessions) / len(sessions),
            'topics': _merge_breakdowns(sessions),
        }

    def clear(self) -> None:
        try:
            self.backend.open()
            self.backend.clear(QUIZ_SESSIONS)
            self.logger.info("Cleared quiz session archive")
        except StorageError as e:
            self.logger.error(f"Error clearing quiz session archive: {e}")
