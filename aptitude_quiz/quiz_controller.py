"""
Quiz session controller for the aptitude quiz bot.
Manages active quiz sessions per Discord channel on top of the aptitude service.
"""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from .aptitude_service import AptitudeService
from .archive import accuracy_percent, correct_count
from .config_manager import ConfigManager
from .models import Category, Difficulty, QuestionType, QuizMode, QuizSettings
from .scoring import is_correct
from .session import Listener, QuizSessionMachine, SessionState, EVENT_ABANDONED, EVENT_COMPLETED


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizController:
    """
    Orchestrates aptitude quiz sessions across Discord channels.

    Each channel can run at most one quiz at a time, and only the user who
    launched it may answer. Public methods return result dictionaries rather
    than raising.
    """

    def __init__(self, service: AptitudeService, config_manager: ConfigManager):
        """
        Initialize the quiz controller.

        Args:
            service: Aptitude service providing questions, sessions and history
            config_manager: Instance for managing configuration
        """
        self.logger = logging.getLogger(__name__)
        self.service = service
        self.config_manager = config_manager

        # Active sessions mapped by channel ID
        self._active_sessions: Dict[int, QuizSessionMachine] = {}
        self._session_labels: Dict[int, str] = {}

        self.logger.info("QuizController initialized")

    def build_settings(
        self,
        mode: str = QuizMode.MIXED.value,
        count: Optional[int] = None,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        question_type: Optional[str] = None
    ) -> QuizSettings:
        """
        Turn launcher input into QuizSettings.

        Raises:
            ValueError: If a value is unknown or the mode lacks its filter
        """
        try:
            quiz_mode = QuizMode(mode)
        except ValueError:
            raise ValueError(f"Unknown quiz mode '{mode}'")

        filters = {}
        for key, enum_type, value in (
            ('category', Category, category),
            ('difficulty', Difficulty, difficulty),
            ('question_type', QuestionType, question_type),
        ):
            if value is None:
                continue
            try:
                filters[key] = enum_type(value)
            except ValueError:
                raise ValueError(f"Unknown {key.replace('_', ' ')} '{value}'")

        if quiz_mode is QuizMode.CATEGORY and 'category' not in filters:
            raise ValueError("Category mode needs a category")
        if quiz_mode is QuizMode.DIFFICULTY and 'difficulty' not in filters:
            raise ValueError("Difficulty mode needs a difficulty")
        if quiz_mode is QuizMode.TYPE and 'question_type' not in filters:
            raise ValueError("Type mode needs a question type")

        return self.config_manager.get_quiz_settings(mode=quiz_mode, question_count=count, **filters)

    def create_session(
        self,
        channel_id: int,
        user_id: int,
        settings: QuizSettings,
        listener: Optional[Listener] = None,
        start: bool = True
    ) -> QuizSessionMachine:
        """
        Draw questions and start a session for the channel.

        With start=False the session is registered in LOADING and the first
        question waits for begin_quiz().

        Raises:
            SessionConflictError: If the channel already runs a quiz
            ValueError: If no questions match the settings
        """
        if self.has_active_session(channel_id):
            raise SessionConflictError(f"Channel {channel_id} already has an active quiz")

        questions = self.service.get_questions_for_settings(settings)
        if not questions:
            raise ValueError("No questions available for the selected settings")

        machine = self.service.start_session(
            str(user_id),
            questions,
            listener=self._wrap_listener(channel_id, listener),
            answer_delay=settings.answer_delay,
            timeout_delay=settings.timeout_delay,
            start=start,
        )
        self._active_sessions[channel_id] = machine
        self._session_labels[channel_id] = self._describe_settings(settings)

        self.logger.info(
            f"Created quiz session for channel {channel_id}: user {user_id}, "
            f"{len(questions)} questions ({self._session_labels[channel_id]})",
            extra={
                'event_type': 'controller_session_created',
                'channel_id': channel_id,
                'user_id': user_id,
                'timestamp': time.time()
            }
        )
        return machine

    def _wrap_listener(self, channel_id: int, listener: Optional[Listener]) -> Listener:
        """Release the channel once the session finishes, then forward the event."""

        def on_event(event: str, machine: QuizSessionMachine) -> None:
            if event in (EVENT_COMPLETED, EVENT_ABANDONED):
                self._release(channel_id, machine)
            if listener is not None:
                listener(event, machine)

        return on_event

    def _release(self, channel_id: int, machine: QuizSessionMachine) -> None:
        if self._active_sessions.get(channel_id) is machine:
            del self._active_sessions[channel_id]
            self._session_labels.pop(channel_id, None)
            self.logger.debug(f"Released channel {channel_id} ({machine.state.value})")

    @staticmethod
    def _describe_settings(settings: QuizSettings) -> str:
        parts = [settings.mode.value]
        for value in (settings.category, settings.difficulty, settings.question_type):
            if value is not None:
                parts.append(value.value.replace('_', ' '))
        return " / ".join(parts)

    def get_session(self, channel_id: int) -> Optional[QuizSessionMachine]:
        return self._active_sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        """
        Check if a channel has an unfinished quiz.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if a quiz is running in the channel
        """
        machine = self._active_sessions.get(channel_id)
        return machine is not None and not machine.is_finished

    def get_session_state(self, channel_id: int) -> Optional[SessionState]:
        machine = self._active_sessions.get(channel_id)
        return machine.state if machine else None

    def start_quiz(
        self,
        channel_id: int,
        user_id: int,
        mode: str = QuizMode.MIXED.value,
        count: Optional[int] = None,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        question_type: Optional[str] = None,
        listener: Optional[Listener] = None,
        defer_start: bool = False
    ) -> Dict[str, Any]:
        """
        Start a new quiz in a channel with validation and error handling.

        With defer_start the first question (and its countdown) waits for
        begin_quiz(), so an announcement can go out first.

        Returns:
            Dictionary with operation result and session info
        """
        if self.has_active_session(channel_id):
            return self._handle_session_error(
                channel_id, SessionConflictError("quiz already running"), "start_quiz"
            )

        if count is not None:
            count_check = self._validate_count(count)
            if count_check is not None:
                return count_check

        try:
            settings = self.build_settings(mode, count, category, difficulty, question_type)
            machine = self.create_session(channel_id, user_id, settings, listener, start=not defer_start)
        except (ValueError, QuizControllerError) as e:
            return self._handle_session_error(channel_id, e, "start_quiz")

        session_info = self.get_session_progress(channel_id)
        total = len(machine.questions)
        return {
            'success': True,
            'message': f"Started {self._session_labels.get(channel_id, mode)} quiz with {total} questions.",
            'user_message': f"🧠 Starting a {total}-question aptitude quiz. Good luck!",
            'session_info': session_info
        }

    def start_quick_quiz(
        self,
        channel_id: int,
        user_id: int,
        listener: Optional[Listener] = None,
        defer_start: bool = False
    ) -> Dict[str, Any]:
        """Start a mixed-difficulty quiz with the configured quick quiz length."""
        return self.start_quiz(
            channel_id,
            user_id,
            mode=QuizMode.MIXED.value,
            count=self.config_manager.get_quick_quiz_count(),
            listener=listener,
            defer_start=defer_start,
        )

    def begin_quiz(self, channel_id: int) -> bool:
        """
        Present the first question of a quiz started with defer_start.

        Returns:
            False if the channel has no waiting quiz (for example it was stopped)
        """
        machine = self._active_sessions.get(channel_id)
        if machine is None or machine.state is not SessionState.LOADING:
            return False
        return machine.start()

    def _validate_count(self, count: Any) -> Optional[Dict[str, Any]]:
        minimum = self.config_manager.MIN_QUESTION_COUNT
        maximum = self.config_manager.MAX_QUESTION_COUNT
        if isinstance(count, bool) or not isinstance(count, int) or not minimum <= count <= maximum:
            return {
                'success': False,
                'error': f"Invalid question count: {count}",
                'user_message': f"❌ Question count must be between {minimum} and {maximum}."
            }
        return None

    def submit_answer(self, channel_id: int, user_id: int, option_index: int) -> Dict[str, Any]:
        """
        Forward an option click to the channel's session.

        Returns:
            Dictionary with 'success', whether the answer was 'accepted', and
            for accepted answers 'correct' and the score 'delta'
        """
        machine = self._active_sessions.get(channel_id)
        if machine is None or machine.is_finished:
            return self._handle_session_error(channel_id, SessionNotFoundError("no active quiz"), "submit_answer")

        if machine.user_id != str(user_id):
            return {
                'success': False,
                'accepted': False,
                'error': f"User {user_id} does not own the quiz in channel {channel_id}",
                'user_message': f"❌ Only <@{machine.user_id}> can answer this quiz."
            }

        question = machine.current_question
        delta = machine.answer(option_index)
        if delta is None:
            return {
                'success': True,
                'accepted': False,
                'message': "Answer ignored",
                'user_message': "⏳ This question has already been answered."
            }

        correct = is_correct(question, machine.current_answer)
        return {
            'success': True,
            'accepted': True,
            'correct': correct,
            'delta': delta,
            'message': f"Answer {option_index} recorded ({'correct' if correct else 'incorrect'}, {delta:+d})",
            'user_message': "✅ Correct!" if correct else "❌ Incorrect."
        }

    def request_hint(self, channel_id: int, user_id: int) -> Dict[str, Any]:
        """
        Hints for the question on screen. Only the quiz owner may ask, and
        only while the question is still open.

        Returns:
            Dictionary with 'success' and, on success, the 'hints'
        """
        machine = self._active_sessions.get(channel_id)
        if machine is None or machine.is_finished:
            return self._handle_session_error(channel_id, SessionNotFoundError("no active quiz"), "request_hint")

        if machine.user_id != str(user_id):
            return {
                'success': False,
                'error': f"User {user_id} does not own the quiz in channel {channel_id}",
                'user_message': f"❌ Only <@{machine.user_id}> can use hints in this quiz."
            }

        question = machine.current_question
        if machine.state is not SessionState.PRESENTING or not question.hints:
            return {
                'success': False,
                'error': f"No hint available in channel {channel_id}",
                'user_message': "💡 No hint is available for this question."
            }

        self.logger.debug(f"Hint shown for question {question.id} in channel {channel_id}")
        return {
            'success': True,
            'hints': list(question.hints),
            'message': f"Hints for {question.id}",
            'user_message': "💡 " + "\n💡 ".join(question.hints)
        }

    def stop_quiz(self, channel_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Abandon the channel's quiz. Nothing is saved to history.

        Args:
            channel_id: Discord channel identifier
            user_id: When given, only the quiz owner may stop it

        Returns:
            Dictionary with operation result and final session info
        """
        machine = self._active_sessions.get(channel_id)
        if machine is None or machine.is_finished:
            return {
                'success': False,
                'error': f"No active quiz in channel {channel_id}",
                'user_message': "❌ No active quiz session to stop in this channel."
            }

        if user_id is not None and machine.user_id != str(user_id):
            return {
                'success': False,
                'error': f"User {user_id} does not own the quiz in channel {channel_id}",
                'user_message': f"❌ Only <@{machine.user_id}> can stop this quiz."
            }

        session_info = self.get_session_progress(channel_id)
        machine.abandon()
        self._release(channel_id, machine)
        self.logger.info(f"Stopped quiz session for channel {channel_id}")
        return {
            'success': True,
            'message': "Quiz session stopped.",
            'user_message': "🛑 Quiz stopped. This run was not saved to your history.",
            'session_info': session_info
        }

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Progress of the channel's quiz.

        Returns:
            Dictionary with progress details, None if no session exists
        """
        machine = self._active_sessions.get(channel_id)
        if machine is None:
            return None

        return {
            'user_id': machine.user_id,
            'label': self._session_labels.get(channel_id, ""),
            'state': machine.state.value,
            'current_question': machine.current_index + 1,
            'total_questions': len(machine.questions),
            'time_remaining': machine.time_remaining,
            'score': machine.display_score,
            'raw_score': machine.score,
            'start_time': machine.session.start_time,
        }

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a human-readable summary of the session status.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Formatted string describing the session status
        """
        session_info = self.get_session_progress(channel_id)
        if session_info is None:
            return "No active quiz session in this channel."

        status_parts = [
            f"Quiz: {session_info['label']}",
            f"Player: <@{session_info['user_id']}>",
            f"Progress: {session_info['current_question']}/{session_info['total_questions']}",
            f"Score: {session_info['score']}",
            f"Status: {session_info['state'].capitalize()}",
        ]
        if session_info['state'] == SessionState.PRESENTING.value:
            status_parts.append(f"Time left: {session_info['time_remaining']}s")

        duration = datetime.now() - session_info['start_time']
        minutes = int(duration.total_seconds() // 60)
        seconds = int(duration.total_seconds() % 60)
        status_parts.append(f"Duration: {minutes}m {seconds}s")

        return " | ".join(status_parts)

    @staticmethod
    def get_quiz_completion_info(machine: QuizSessionMachine) -> Optional[Dict[str, Any]]:
        """
        Completion information for a finished quiz.

        Returns:
            Result dictionary with a duration breakdown, None if not completed
        """
        if machine.state is not SessionState.COMPLETED:
            return None

        info = machine.result()
        total_seconds = int(info['total_time_seconds'])
        info['duration'] = {
            'total_seconds': total_seconds,
            'minutes': total_seconds // 60,
            'seconds': total_seconds % 60
        }
        return info

    def get_user_history(self, user_id: int) -> List[Dict[str, Any]]:
        """Recent completed quizzes for a user, newest first, ready for display."""
        history = self.service.get_user_quiz_history(str(user_id), self.config_manager.get_history_limit())
        return [
            {
                'session_id': session.id,
                'start_time': session.start_time,
                'score': max(0, session.score),
                'correct': correct_count(session),
                'total_questions': len(session.questions),
                'accuracy_percent': accuracy_percent(session),
                'total_time_seconds': session.total_time_seconds,
            }
            for session in history
        ]

    def get_user_summary(self, user_id: int) -> Dict[str, Any]:
        return self.service.get_user_summary(str(user_id), self.config_manager.get_history_limit())

    def get_question_stats(self) -> Dict[str, Any]:
        stats = self.service.get_question_stats()
        return {
            'total': stats.total,
            'by_category': stats.by_category,
            'by_difficulty': stats.by_difficulty,
        }

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id in list(self._active_sessions)
        }

    def cleanup_inactive_sessions(self) -> int:
        """
        Drop sessions that finished without releasing their channel.

        Returns:
            Number of sessions removed
        """
        finished = [channel_id for channel_id, machine in self._active_sessions.items() if machine.is_finished]
        for channel_id in finished:
            del self._active_sessions[channel_id]
            self._session_labels.pop(channel_id, None)
        if finished:
            self.logger.info(f"Cleaned up {len(finished)} finished quiz sessions")
        return len(finished)

    def stop_all(self) -> int:
        """Abandon every running quiz, for shutdown."""
        stopped = 0
        for channel_id in list(self._active_sessions):
            if self.stop_quiz(channel_id)['success']:
                stopped += 1
        return stopped

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and build the result dictionary for it.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error details and a user-friendly message
        """
        if isinstance(error, (QuizControllerError, ValueError)):
            self.logger.warning(f"{operation} failed for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            User-friendly error message
        """
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running in this channel. Please stop it first with `/stop`."

        elif isinstance(error, SessionNotFoundError):
            return "❌ No active quiz found in this channel. Start one with `/aptitude` or `/quick`."

        elif "no questions" in str(error).lower():
            return "❌ No questions match those settings. Try another category or difficulty."

        elif "unknown" in str(error).lower() or "needs" in str(error).lower():
            return f"❌ {error}."

        else:
            return f"❌ An unexpected error occurred during {operation.replace('_', ' ')}. Please try again."
