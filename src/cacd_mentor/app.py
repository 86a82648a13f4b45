"""Interactive CLI application."""
import asyncio
import logging
import time
from datetime import date

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, BarColumn, TextColumn
from rich.prompt import Prompt, IntPrompt, Confirm
from rich.table import Table

from cacd_mentor.config import get_settings
from cacd_mentor.dashboard import (
    DAY_NAMES, build_progress_context, get_accuracy_color, get_daily_missions,
    get_incidence_color,
)
from cacd_mentor.db import init_db
from cacd_mentor.errors import MentorError, PersistenceError, ValidationError
from cacd_mentor.generation import Dossier, GenerationClient
from cacd_mentor.models import SyllabusTopic, TimerMode
from cacd_mentor.progression import level_progress, level_threshold, rank_for_level
from cacd_mentor.session import SessionCommitProtocol
from cacd_mentor.store import ProgressStore
from cacd_mentor.syllabus import get_subjects, get_topic, load_syllabus, topics_for_subject
from cacd_mentor.timer import IntervalTimer

console = Console()

TICK_SECONDS = 1.0
WORK_STEP_MINUTES = 5
BREAK_STEP_MINUTES = 1

TOPIC_ACTIONS = {
    "theory": "theory_read",
    "flashcards": "flashcards_done",
    "questions": "questions_answered",
    "accuracy": "accuracy_percent",
    "minutes": "study_minutes",
}


def show_welcome(store: ProgressStore):
    console.print(Panel(
        "[bold]CACD Mentor[/bold]\n[dim]Edital tracker, focus timer and essay practice[/dim]\n"
        f"Level {store.level} · {rank_for_level(store.level)}",
        title="Welcome", border_style="blue",
    ))


def show_dossier(dossier: Dossier):
    lines = []
    for highlight in dossier.highlights:
        line = f"- {highlight.text}"
        if highlight.url:
            line += f" [dim]({highlight.url})[/dim]"
        lines.append(line)
    if dossier.current:
        lines.append(f"\n{dossier.current}")
    console.print(Panel("\n".join(lines), title="Dossiê diplomático da semana", border_style="yellow"))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("dashboard", "Progress, XP and today's missions"),
        ("topics", "Update syllabus topic progress"),
        ("timer", "Focus timer"),
        ("explain", "Ask the mentor to explain a topic"),
        ("practice", "Write and grade a practice essay"),
        ("schedule", "Generate a study schedule"),
        ("reset", "Erase all progress"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def announce_level_up(level: int) -> None:
    console.print(Panel(
        f"[bold]Level {level}![/bold] New rank: {rank_for_level(level)}",
        title="Level up", border_style="magenta",
    ))


def pick_subject(subject_prompt: str = "Subject") -> str:
    subjects = get_subjects()
    for i, subject in enumerate(subjects, 1):
        console.print(f"  [cyan]{i}[/cyan]) {subject}")
    index = IntPrompt.ask(subject_prompt, choices=[str(i) for i in range(1, len(subjects) + 1)])
    return subjects[index - 1]


def pick_topic(store: ProgressStore) -> SyllabusTopic:
    topics = topics_for_subject(pick_subject())
    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Topic")
    table.add_column("Incidence")
    table.add_column("Theory")
    table.add_column("Flashcards")
    table.add_column("Questions", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Minutes", justify="right")
    for i, topic in enumerate(topics, 1):
        progress = store.get_topic(topic.id)
        color = get_incidence_color(topic.incidence)
        table.add_row(
            str(i),
            topic.subtopic,
            f"[{color}]{topic.incidence}[/{color}]",
            "✓" if progress and progress.theory_read else "",
            "✓" if progress and progress.flashcards_done else "",
            str(progress.questions_answered) if progress else "0",
            f"{progress.accuracy_percent:.0f}%" if progress else "-",
            str(progress.study_minutes) if progress else "0",
        )
    console.print(table)
    index = IntPrompt.ask("Topic", choices=[str(i) for i in range(1, len(topics) + 1)])
    return topics[index - 1]


def cmd_dashboard(store: ProgressStore):
    aggregate = store.get_aggregate()
    filled = int(level_progress(store.xp, store.level) * 20)
    bar = f"[magenta]{'█' * filled}{'░' * (20 - filled)}[/magenta]"
    console.print(Panel(
        f"[bold]Level {store.level}[/bold] · {rank_for_level(store.level)}\n"
        f"{bar} {store.xp}/{level_threshold(store.level)} XP",
        title="CACD Mentor Dashboard", border_style="blue",
    ))

    accuracy_color = get_accuracy_color(aggregate.mean_accuracy)
    console.print(f"\n  Topics read: [bold]{aggregate.theory_read_count}[/bold]  |  "
                  f"Hours focused: [bold]{aggregate.hours_focused}h[/bold]  |  "
                  f"Accuracy: [{accuracy_color}]{aggregate.mean_accuracy:.0f}%[/{accuracy_color}]  |  "
                  f"Coverage: [bold]{aggregate.coverage_percent}%[/bold]  |  "
                  f"Essays: [bold]{store.state.submissions_count}[/bold]")

    missions = get_daily_missions(store.state.topic_progress)
    if not missions:
        console.print("\n  [dim]No missions today. Rest up![/dim]")
        return
    table = Table(title=f"Missions: {DAY_NAMES[date.today().weekday()]}")
    table.add_column("Subject", style="cyan")
    table.add_column("Next topic")
    table.add_column("Incidence")
    for mission in missions:
        topic = mission["topic"]
        if topic is None:
            table.add_row(mission["subject"], "[green]Subject complete![/green]", "")
            continue
        color = get_incidence_color(topic.incidence)
        table.add_row(mission["subject"], topic.subtopic, f"[{color}]{topic.incidence}[/{color}]")
    console.print(table)


def cmd_topics(store: ProgressStore):
    topic = pick_topic(store)
    action = Prompt.ask("Update", choices=list(TOPIC_ACTIONS))
    field = TOPIC_ACTIONS[action]
    current = store.get_topic(topic.id)
    if action in ("theory", "flashcards"):
        value = not (current and getattr(current, field))
    else:
        value = Prompt.ask(f"New value for {action}", default="0")
    progress = store.set_topic_field(topic.id, field, value)
    console.print(f"[green]{topic.subtopic}: {action} = {getattr(progress, field)}[/green]")


def run_countdown(timer: IntervalTimer, protocol: SessionCommitProtocol, clock=time.monotonic, sleep=time.sleep):
    """Drive the timer from wall-clock time until it stops; Ctrl+C pauses."""
    duration = timer.duration_for(timer.mode)
    label = "Focus" if timer.mode == TimerMode.WORK else "Break"
    with Progress(
        TextColumn("[bold]{task.description}"), BarColumn(), TextColumn("{task.fields[remaining]}"),
        console=console, transient=True,
    ) as progress:
        task = progress.add_task(
            label, total=duration, completed=duration - timer.remaining_seconds,
            remaining=timer.format_remaining(),
        )
        last = clock()
        try:
            while timer.running:
                sleep(TICK_SECONDS)
                elapsed = int(clock() - last)
                if elapsed <= 0:
                    continue
                last += elapsed
                protocol.offer(timer.on_elapsed(elapsed))
                progress.update(
                    task, completed=duration - timer.remaining_seconds if timer.running else duration,
                    remaining=timer.format_remaining(),
                )
        except KeyboardInterrupt:
            timer.pause()
            console.print(f"[yellow]Paused at {timer.format_remaining()}.[/yellow]")


def resolve_pending(protocol: SessionCommitProtocol):
    pending = protocol.pending
    if pending is None:
        return
    topic = get_topic(pending.topic_id)
    name = topic.subtopic if topic else pending.topic_id
    console.print(f"\n[bold green]Focus session complete![/bold green] {pending.minutes_completed} minutes on {name}.")
    if Confirm.ask("Log these minutes?", default=True):
        try:
            progress = protocol.commit(pending)
        except PersistenceError as e:
            console.print(f"[yellow]Warning: {e}[/yellow]")
            return
        console.print(f"[green]Logged. {name} now has {progress.study_minutes} minutes.[/green]")
    else:
        protocol.dismiss(pending)
        console.print("[dim]Session discarded.[/dim]")


def show_timer(timer: IntervalTimer):
    topic = get_topic(timer.selected_topic_id) if timer.selected_topic_id else None
    mode = "[red]Focus[/red]" if timer.mode == TimerMode.WORK else "[cyan]Break[/cyan]"
    console.print(Panel(
        f"{mode}  [bold]{timer.format_remaining()}[/bold]  ({timer.progress * 100:.0f}%)\n"
        f"Topic: {topic.subtopic if topic else '[dim]none selected[/dim]'}\n"
        f"[dim]Focus {timer.work_minutes} min · Break {timer.break_minutes} min[/dim]",
        title="Focus Timer", border_style="red" if timer.mode == TimerMode.WORK else "cyan",
    ))


def cmd_timer(store: ProgressStore, timer: IntervalTimer, protocol: SessionCommitProtocol):
    while True:
        resolve_pending(protocol)
        show_timer(timer)
        action = Prompt.ask(
            "Timer", choices=["start", "reset", "topic", "work+", "work-", "break+", "break-", "back"],
            default="start",
        )
        if action == "back":
            return
        if action == "start":
            try:
                timer.start()
            except ValidationError as e:
                console.print(f"[yellow]{e}[/yellow]")
                continue
            run_countdown(timer, protocol)
        elif action == "reset":
            timer.reset()
        elif action == "topic":
            timer.select_topic(pick_topic(store).id)
        else:
            mode = TimerMode.WORK if action.startswith("work") else TimerMode.BREAK
            step = WORK_STEP_MINUTES if mode == TimerMode.WORK else BREAK_STEP_MINUTES
            timer.adjust_config(mode, step if action.endswith("+") else -step)


def cmd_explain(store: ProgressStore, generator: GenerationClient):
    topic = pick_topic(store)
    with console.status("Consulting the mentor..."):
        text = asyncio.run(generator.explain_topic(topic.subject, topic.subtopic))
    console.print(Panel(text, title=f"{topic.subject}: {topic.subtopic}", border_style="green"))


def read_essay() -> str:
    console.print("[dim]Write your answer. Finish with a line containing only END.[/dim]")
    lines = []
    while True:
        line = Prompt.ask("", default="", show_default=False)
        if line.strip() == "END":
            break
        lines.append(line)
    return "\n".join(lines).strip()


def cmd_practice(store: ProgressStore, generator: GenerationClient):
    subject = pick_subject()
    with console.status("Writing a question..."):
        question = asyncio.run(generator.generate_question(subject))
    console.print(Panel(
        f"[bold]{question.topic}[/bold]\n\n{question.command}\n\n[dim]Up to {question.lines} lines[/dim]",
        title=question.subject, border_style="cyan",
    ))
    essay = read_essay()
    if not essay:
        console.print("[yellow]Empty answer, nothing to grade.[/yellow]")
        return
    with console.status("Grading..."):
        result = asyncio.run(generator.score_essay(question.topic, essay))
    store.record_essay_submission()

    console.print(Panel(
        f"[bold]{result.score:.2f}[/bold] / 10  "
        f"[dim](bank average {result.bank_grade:.2f} · approved {result.approved_grade:.2f})[/dim]\n\n"
        f"{result.justification}",
        title="Grade", border_style="green" if result.score >= result.approved_grade else "yellow",
    ))
    for title, items, color in [
        ("Errors", result.errors, "red"),
        ("Omissions", result.omissions, "yellow"),
        ("Highlights", result.highlights, "green"),
        ("Improvement plan", result.improvement_plan, "cyan"),
    ]:
        if items:
            console.print(f"\n[bold {color}]{title}[/bold {color}]")
            for item in items:
                console.print(f"  - {item}")
    if Confirm.ask("\nShow the model answer?", default=False):
        console.print(Panel(result.model_response, title="Model answer"))


def cmd_schedule(store: ProgressStore, generator: GenerationClient):
    days = IntPrompt.ask("Days until the exam", default=90)
    context = build_progress_context(store.state.topic_progress, load_syllabus())
    with console.status("Planning..."):
        text = asyncio.run(generator.generate_study_schedule(days, context))
    console.print(Panel(text, title="Study schedule", border_style="blue"))


def cmd_reset(store: ProgressStore):
    if Confirm.ask("[red]Erase all progress and XP?[/red]", default=False):
        store.reset()
        console.print("[dim]Progress erased.[/dim]")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(), format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    init_db(settings.db_path)
    store = ProgressStore.load(settings.db_path, on_level_up=announce_level_up)
    timer = IntervalTimer(settings.work_minutes, settings.break_minutes)
    protocol = SessionCommitProtocol(store)
    generator = GenerationClient(settings)

    show_welcome(store)
    with console.status("Fetching the weekly dossier..."):
        dossier = asyncio.run(generator.get_weekly_dossier())
    show_dossier(dossier)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="dashboard").strip().lower()
        try:
            if choice == "dashboard":
                cmd_dashboard(store)
            elif choice == "topics":
                cmd_topics(store)
            elif choice == "timer":
                cmd_timer(store, timer, protocol)
            elif choice == "explain":
                cmd_explain(store, generator)
            elif choice == "practice":
                cmd_practice(store, generator)
            elif choice == "schedule":
                cmd_schedule(store, generator)
            elif choice == "reset":
                cmd_reset(store)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Boa sorte no CACD![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except PersistenceError as e:
            console.print(f"[yellow]Warning: {e}[/yellow]")
        except MentorError as e:
            console.print(f"[red]{e}[/red]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    try:
        store.flush()
    except PersistenceError as e:
        console.print(f"[yellow]Warning: {e}[/yellow]")


if __name__ == "__main__":
    main()
