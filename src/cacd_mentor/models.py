"""Data classes for the progress and session domain model."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class TimerMode(str, Enum):
    WORK = "work"
    BREAK = "break"


@dataclass
class SyllabusTopic:
    id: str
    subject: str
    subtopic: str
    incidence: str = "Média"


@dataclass
class TopicProgress:
    theory_read: bool = False
    flashcards_done: bool = False
    questions_answered: int = 0
    accuracy_percent: float = 0
    study_minutes: int = 0
    last_study_at: Optional[str] = None  # ISO-8601


@dataclass
class UserProgressionState:
    xp: int = 0
    level: int = 1
    submissions_count: int = 0
    topic_progress: dict[str, TopicProgress] = field(default_factory=dict)


@dataclass(frozen=True)
class PendingCommit:
    """A finished work interval waiting for the user to log or discard it."""
    minutes_completed: int
    topic_id: str


@dataclass
class Aggregate:
    total_study_minutes: int = 0
    theory_read_count: int = 0
    mean_accuracy: float = 0.0
    coverage: float = 0.0

    @property
    def hours_focused(self) -> float:
        return round(self.total_study_minutes / 60, 1)

    @property
    def coverage_percent(self) -> int:
        return round(self.coverage * 100)
