"""Authoritative study progress state and its durable snapshot."""
import json
import logging
import math
import sqlite3
from dataclasses import asdict, fields, replace
from datetime import datetime
from typing import Callable, Optional

from cacd_mentor.dashboard import compute_aggregate
from cacd_mentor.db import read_snapshot, write_snapshot
from cacd_mentor.errors import PersistenceError
from cacd_mentor.models import Aggregate, TopicProgress, UserProgressionState
from cacd_mentor.progression import (
    ESSAY_XP, FLASHCARDS_XP, THEORY_XP, add_xp, study_minutes_xp,
)
from cacd_mentor.syllabus import load_syllabus

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "progress_v1"

# Boolean fields and the XP awarded when they become true
TOGGLE_FIELDS = {"theory_read": THEORY_XP, "flashcards_done": FLASHCARDS_XP}
NUMERIC_FIELDS = ("questions_answered", "accuracy_percent", "study_minutes")

_TOPIC_FIELDS = {f.name for f in fields(TopicProgress)}

# Beyond these a snapshot is treated as corrupt
MAX_SNAPSHOT_XP = 10_000_000
MAX_SNAPSHOT_LEVEL = 10_000


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def clamp_numeric(field: str, value) -> int | float:
    """Coerce a numeric topic field: garbage becomes 0, negatives 0, accuracy tops out at 100."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    if not math.isfinite(number):
        number = 0.0
    number = max(0.0, number)
    if field == "accuracy_percent":
        return min(100.0, number)
    return int(number)


def _snapshot_int(data: dict, key: str, default: int, upper: int) -> int:
    value = float(data.get(key, default))
    if not math.isfinite(value) or value > upper:
        raise ValueError(f"snapshot {key} out of range: {value!r}")
    return int(value)


def state_to_json(state: UserProgressionState) -> str:
    return json.dumps(asdict(state), ensure_ascii=False)


def state_from_json(raw: str) -> UserProgressionState:
    """Parse a snapshot blob over the initial state.

    Missing keys take their defaults and unknown keys are dropped. Raises
    ValueError, TypeError, AttributeError, OverflowError or RecursionError
    when the blob is not a snapshot or holds out-of-range totals.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("snapshot is not a JSON object")

    topics = {}
    for topic_id, entry in (data.get("topic_progress") or {}).items():
        known = {k: v for k, v in entry.items() if k in _TOPIC_FIELDS}
        progress = TopicProgress(**known)
        progress.theory_read = bool(progress.theory_read)
        progress.flashcards_done = bool(progress.flashcards_done)
        for name in NUMERIC_FIELDS:
            setattr(progress, name, clamp_numeric(name, getattr(progress, name)))
        topics[str(topic_id)] = progress

    level = max(1, _snapshot_int(data, "level", 1, MAX_SNAPSHOT_LEVEL))
    xp = max(0, _snapshot_int(data, "xp", 0, MAX_SNAPSHOT_XP))
    # An older or hand-edited snapshot may hold xp past the threshold
    normalized = add_xp(0, level, xp)
    return UserProgressionState(
        xp=normalized["xp"],
        level=normalized["level"],
        submissions_count=max(0, _snapshot_int(data, "submissions_count", 0, MAX_SNAPSHOT_XP)),
        topic_progress=topics,
    )


def load_state(db_path: str) -> UserProgressionState:
    """Read the snapshot, falling back to a fresh state if it is missing or corrupt."""
    try:
        raw = read_snapshot(db_path, SNAPSHOT_KEY)
    except sqlite3.Error as e:
        logger.warning("Could not read progress snapshot, starting fresh: %s", e)
        return UserProgressionState()
    if raw is None:
        return UserProgressionState()
    try:
        return state_from_json(raw)
    except (ValueError, TypeError, AttributeError, OverflowError, RecursionError) as e:
        logger.warning("Ignoring corrupt progress snapshot: %s", e)
        return UserProgressionState()


class ProgressStore:
    """Owns the progress map and user XP; every mutation writes the snapshot.

    The in-memory state is updated before the write, so a PersistenceError
    never rolls anything back.
    """

    def __init__(
        self,
        db_path: str,
        state: Optional[UserProgressionState] = None,
        syllabus_size: Optional[int] = None,
        on_level_up: Optional[Callable[[int], None]] = None,
    ):
        self.db_path = db_path
        self.state = state if state is not None else UserProgressionState()
        self.syllabus_size = syllabus_size if syllabus_size is not None else len(load_syllabus())
        self.on_level_up = on_level_up

    @classmethod
    def load(cls, db_path: str, **kwargs) -> "ProgressStore":
        return cls(db_path, state=load_state(db_path), **kwargs)

    @property
    def xp(self) -> int:
        return self.state.xp

    @property
    def level(self) -> int:
        return self.state.level

    def get_topic(self, topic_id: str) -> TopicProgress | None:
        progress = self.state.topic_progress.get(topic_id)
        return replace(progress) if progress else None

    def set_topic_field(self, topic_id: str, field: str, value) -> TopicProgress:
        if field not in TOGGLE_FIELDS and field not in NUMERIC_FIELDS:
            logger.warning("Ignoring unknown topic field %r for %s", field, topic_id)
            return self.get_topic(topic_id) or TopicProgress()

        progress = self._entry(topic_id)
        award = 0
        if field in TOGGLE_FIELDS:
            becoming_active = bool(value) and not getattr(progress, field)
            if becoming_active:
                progress.last_study_at = _now()
                award = TOGGLE_FIELDS[field]
            setattr(progress, field, bool(value))
        else:
            setattr(progress, field, clamp_numeric(field, value))
            progress.last_study_at = _now()

        self._award(award)
        self._persist()
        return replace(progress)

    def add_study_minutes(self, topic_id: str, minutes: int) -> TopicProgress | None:
        """Log focused minutes on a topic; zero or negative minutes do nothing."""
        if minutes <= 0:
            return None
        minutes = int(minutes)
        progress = self._entry(topic_id)
        progress.study_minutes += minutes
        progress.last_study_at = _now()
        self._award(study_minutes_xp(minutes))
        self._persist()
        return replace(progress)

    def record_essay_submission(self) -> None:
        self.state.submissions_count += 1
        self._award(ESSAY_XP)
        self._persist()

    def get_aggregate(self) -> Aggregate:
        return compute_aggregate(self.state.topic_progress, self.syllabus_size)

    def reset(self) -> None:
        """Forget all progress and XP."""
        self.state = UserProgressionState()
        self._persist()

    def flush(self) -> None:
        self._persist()

    def _entry(self, topic_id: str) -> TopicProgress:
        if topic_id not in self.state.topic_progress:
            self.state.topic_progress[topic_id] = TopicProgress()
        return self.state.topic_progress[topic_id]

    def _award(self, amount: int) -> None:
        if amount <= 0:
            return
        result = add_xp(self.state.xp, self.state.level, amount)
        self.state.xp = result["xp"]
        self.state.level = result["level"]
        logger.debug("Awarded %d XP, now level %d with %d XP", amount, result["level"], result["xp"])
        if result["leveled_up"]:
            logger.info("Level up! Reached level %d", result["level"])
            if self.on_level_up:
                self.on_level_up(result["level"])

    def _persist(self) -> None:
        try:
            write_snapshot(self.db_path, SNAPSHOT_KEY, state_to_json(self.state))
        except (sqlite3.Error, OSError) as e:
            logger.error("Could not save progress snapshot: %s", e)
            raise PersistenceError(f"Progress kept in memory but not saved: {e}") from e
