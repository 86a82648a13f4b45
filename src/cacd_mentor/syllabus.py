"""Syllabus (edital) topics loaded from the bundled content file."""
import json
from functools import lru_cache
from pathlib import Path

from cacd_mentor.models import SyllabusTopic

CONTENT_DIR = Path(__file__).parent / "content"


@lru_cache
def load_syllabus() -> tuple[SyllabusTopic, ...]:
    """Load all syllabus topics from syllabus.json, in file order."""
    data = json.loads((CONTENT_DIR / "syllabus.json").read_text(encoding="utf-8"))
    return tuple(SyllabusTopic(**topic) for topic in data["topics"])


def get_topic(topic_id: str) -> SyllabusTopic | None:
    for topic in load_syllabus():
        if topic.id == topic_id:
            return topic
    return None


def get_subjects() -> list[str]:
    """Distinct subjects in syllabus order."""
    subjects = []
    for topic in load_syllabus():
        if topic.subject not in subjects:
            subjects.append(topic.subject)
    return subjects


def topics_for_subject(subject: str) -> list[SyllabusTopic]:
    """Topics of `subject`; "Direito" matches every law subject."""
    if subject == "Direito":
        return [t for t in load_syllabus() if "Direito" in t.subject]
    return [t for t in load_syllabus() if t.subject == subject]
