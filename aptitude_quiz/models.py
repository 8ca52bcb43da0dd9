"""
Core data models for the offline aptitude quiz engine.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from datetime import datetime
from enum import Enum


class QuestionType(str, Enum):
    """Kind of reasoning a question exercises."""
    VISUAL = "visual"
    LOGICAL = "logical"
    NUMERICAL = "numerical"
    VERBAL = "verbal"
    PATTERN = "pattern"
    SPATIAL = "spatial"


class Category(str, Enum):
    """Topic a question belongs to."""
    REASONING = "reasoning"
    QUANTITATIVE = "quantitative"
    ENGLISH = "english"
    GENERAL_KNOWLEDGE = "general_knowledge"
    DATA_INTERPRETATION = "data_interpretation"


class Difficulty(str, Enum):
    """Difficulty tier of a question."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizMode(str, Enum):
    """How the question list for a run is drawn."""
    MIXED = "mixed"
    RANDOM = "random"
    CATEGORY = "category"
    DIFFICULTY = "difficulty"
    TYPE = "type"


@dataclass(frozen=True)
class Question:
    """Represents a single aptitude question."""
    id: str
    text: str
    type: QuestionType
    category: Category
    options: Tuple[str, ...]
    correct_answer_index: int
    explanation: str
    difficulty: Difficulty
    points: int
    time_limit_seconds: int
    hints: Tuple[str, ...] = ()
    tags: FrozenSet[str] = frozenset()
    image_pattern: Optional[str] = None

    def __post_init__(self):
        # Normalise mutable inputs so a snapshot can never be altered later
        object.__setattr__(self, 'options', tuple(self.options))
        object.__setattr__(self, 'hints', tuple(self.hints or ()))
        object.__setattr__(self, 'tags', frozenset(self.tags or ()))
        object.__setattr__(self, 'type', QuestionType(self.type))
        object.__setattr__(self, 'category', Category(self.category))
        object.__setattr__(self, 'difficulty', Difficulty(self.difficulty))

        if not self.id:
            raise ValueError("Question id cannot be empty")
        if not self.options:
            raise ValueError(f"Question {self.id} must have at least one option")
        if isinstance(self.correct_answer_index, bool) or not isinstance(self.correct_answer_index, int):
            raise ValueError(f"Question {self.id} correct_answer_index must be an integer")
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError(
                f"Question {self.id} correct_answer_index {self.correct_answer_index} "
                f"is outside 0..{len(self.options) - 1}"
            )
        if isinstance(self.points, bool) or not isinstance(self.points, int) or self.points <= 0:
            raise ValueError(f"Question {self.id} points must be a positive integer")
        if (isinstance(self.time_limit_seconds, bool) or not isinstance(self.time_limit_seconds, int)
                or self.time_limit_seconds <= 0):
            raise ValueError(f"Question {self.id} time_limit_seconds must be a positive integer")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted/JSON layout."""
        data = {
            'id': self.id,
            'text': self.text,
            'type': self.type.value,
            'category': self.category.value,
            'options': list(self.options),
            'correct_answer_index': self.correct_answer_index,
            'explanation': self.explanation,
            'difficulty': self.difficulty.value,
            'points': self.points,
            'time_limit_seconds': self.time_limit_seconds,
            'hints': list(self.hints),
            'tags': sorted(self.tags),
        }
        if self.image_pattern is not None:
            data['image_pattern'] = self.image_pattern
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Build a Question from the persisted/JSON layout."""
        return cls(
            id=data['id'],
            text=data['text'],
            type=data['type'],
            category=data['category'],
            options=tuple(data['options']),
            correct_answer_index=data['correct_answer_index'],
            explanation=data.get('explanation', ''),
            difficulty=data['difficulty'],
            points=data['points'],
            time_limit_seconds=data['time_limit_seconds'],
            hints=tuple(data.get('hints') or ()),
            tags=frozenset(data.get('tags') or ()),
            image_pattern=data.get('image_pattern'),
        )


class SlotKind(Enum):
    """State of one answer slot."""
    UNANSWERED = "unanswered"
    SELECTED = "selected"
    TIMED_OUT = "timed_out"


TIMEOUT_MARKER = "timeout"


@dataclass(frozen=True)
class AnsweredSlot:
    """Answer recorded for one question of a session."""
    kind: SlotKind
    index: Optional[int] = None

    @classmethod
    def selected(cls, index: int) -> "AnsweredSlot":
        return cls(SlotKind.SELECTED, index)

    @property
    def is_selected(self) -> bool:
        return self.kind is SlotKind.SELECTED

    @property
    def is_timed_out(self) -> bool:
        return self.kind is SlotKind.TIMED_OUT

    @property
    def is_unanswered(self) -> bool:
        return self.kind is SlotKind.UNANSWERED

    def to_value(self):
        """Storage encoding: None, the option index, or the timeout marker."""
        if self.kind is SlotKind.SELECTED:
            return self.index
        if self.kind is SlotKind.TIMED_OUT:
            return TIMEOUT_MARKER
        return None

    @classmethod
    def from_value(cls, value) -> "AnsweredSlot":
        if value is None:
            return UNANSWERED
        if value == TIMEOUT_MARKER:
            return TIMED_OUT
        return cls.selected(int(value))


UNANSWERED = AnsweredSlot(SlotKind.UNANSWERED)
TIMED_OUT = AnsweredSlot(SlotKind.TIMED_OUT)


@dataclass
class QuizSettings:
    """Launch parameters for a quiz run."""
    mode: QuizMode = QuizMode.MIXED
    question_count: int = 10
    category: Optional[Category] = None
    difficulty: Optional[Difficulty] = None
    question_type: Optional[QuestionType] = None
    answer_delay: float = 3.0
    timeout_delay: float = 2.5


@dataclass
class QuizSession:
    """One timed run through a sampled list of questions."""
    user_id: str
    questions: Tuple[Question, ...]
    answers: List[AnsweredSlot]
    start_time: datetime
    score: int = 0
    end_time: Optional[datetime] = None
    completed: bool = False
    total_time_seconds: float = 0.0
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'questions': [question.to_dict() for question in self.questions],
            'answers': [slot.to_value() for slot in self.answers],
            'score': self.score,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'completed': self.completed,
            'total_time_seconds': self.total_time_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], session_id: Optional[int] = None) -> "QuizSession":
        end_time = data.get('end_time')
        return cls(
            id=session_id if session_id is not None else data.get('id'),
            user_id=data['user_id'],
            questions=tuple(Question.from_dict(q) for q in data['questions']),
            answers=[AnsweredSlot.from_value(value) for value in data['answers']],
            score=data.get('score', 0),
            start_time=datetime.fromisoformat(data['start_time']),
            end_time=datetime.fromisoformat(end_time) if end_time else None,
            completed=data.get('completed', False),
            total_time_seconds=data.get('total_time_seconds', 0.0),
        )


@dataclass
class QuestionStats:
    """Corpus counts for launcher and history views."""
    total: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)
    by_difficulty: Dict[str, int] = field(default_factory=dict)
