"""Read-side progress projections, daily missions and display helpers."""
from datetime import date

from cacd_mentor.models import Aggregate, SyllabusTopic, TopicProgress
from cacd_mentor.syllabus import topics_for_subject

# Keyed by date.weekday(): Monday=0 ... Sunday=6
WEEKLY_PLAN = {
    0: ["Economia", "Língua Inglesa", "História do Brasil"],
    1: ["Direito", "Língua Portuguesa", "Política Internacional"],
    2: ["História Mundial", "Economia", "Língua Francesa"],
    3: ["Direito", "Geografia", "Língua Portuguesa"],
    4: ["Política Internacional", "História Mundial", "Economia"],
    5: ["Língua Inglesa", "História do Brasil", "Direito"],
    6: [],
}

DAY_NAMES = [
    "Segunda-feira", "Terça-feira", "Quarta-feira", "Quinta-feira",
    "Sexta-feira", "Sábado", "Domingo",
]


def compute_aggregate(topic_progress: dict[str, TopicProgress], syllabus_size: int) -> Aggregate:
    """Derive totals from the progress map; nothing here is persisted."""
    entries = list(topic_progress.values())
    total_minutes = sum(p.study_minutes for p in entries)
    theory_read = sum(1 for p in entries if p.theory_read)
    practiced = [p for p in entries if p.questions_answered > 0]
    mean_accuracy = sum(p.accuracy_percent for p in practiced) / len(practiced) if practiced else 0.0
    coverage = theory_read / syllabus_size if syllabus_size > 0 else 0.0
    return Aggregate(
        total_study_minutes=total_minutes,
        theory_read_count=theory_read,
        mean_accuracy=round(mean_accuracy, 1),
        coverage=coverage,
    )


def next_topic_for_subject(
    subject: str, topic_progress: dict[str, TopicProgress],
) -> SyllabusTopic | None:
    """First topic of `subject` whose theory has not been read yet."""
    for topic in topics_for_subject(subject):
        progress = topic_progress.get(topic.id)
        if progress is None or not progress.theory_read:
            return topic
    return None


def get_daily_missions(
    topic_progress: dict[str, TopicProgress], today: date | None = None,
) -> list[dict]:
    today = today or date.today()
    return [
        {"subject": subject, "topic": next_topic_for_subject(subject, topic_progress)}
        for subject in WEEKLY_PLAN[today.weekday()]
    ]


def get_incidence_color(incidence: str) -> str:
    if incidence == "Alta":
        return "red"
    elif incidence == "Média":
        return "yellow"
    return "dim"


def get_accuracy_color(accuracy: float) -> str:
    if accuracy >= 80:
        return "green"
    elif accuracy >= 60:
        return "yellow"
    return "red"


def build_progress_context(
    topic_progress: dict[str, TopicProgress], syllabus: tuple[SyllabusTopic, ...],
) -> str:
    """Summarize read and pending topics for the schedule prompt."""
    read = [t for t in syllabus if t.id in topic_progress and topic_progress[t.id].theory_read]
    pending = [t for t in syllabus if t not in read]
    aggregate = compute_aggregate(topic_progress, len(syllabus))
    lines = [
        f"Cobertura do edital: {aggregate.coverage_percent}% "
        f"({aggregate.theory_read_count} de {len(syllabus)} tópicos lidos).",
        f"Horas focadas: {aggregate.hours_focused}h. Precisão média: {aggregate.mean_accuracy:.0f}%.",
        "Tópicos pendentes:",
    ]
    lines += [f"- {t.subject}: {t.subtopic} (incidência {t.incidence})" for t in pending]
    return "\n".join(lines)
