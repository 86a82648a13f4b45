import itertools
from unittest.mock import AsyncMock, MagicMock, patch

from cacd_mentor.app import (
    cmd_dashboard, cmd_explain, cmd_practice, cmd_reset, cmd_timer, cmd_topics,
    main, resolve_pending, run_countdown, show_dossier,
)
from cacd_mentor.config import Settings
from cacd_mentor.generation import (
    CorrectionResult, Dossier, DossierHighlight, PracticeQuestion, fallback_dossier,
)
from cacd_mentor.models import PendingCommit
from cacd_mentor.session import SessionCommitProtocol
from cacd_mentor.syllabus import get_subjects
from cacd_mentor.timer import IntervalTimer

ECONOMIA = get_subjects().index("Economia") + 1


def _fake_clock(step):
    counter = itertools.count(0, step)
    return lambda: next(counter)


def _no_sleep(seconds):
    pass


def test_run_countdown_finishes_and_offers_commit(store):
    timer = IntervalTimer(work_minutes=1, break_minutes=1)
    timer.select_topic("econ-1")
    timer.start()
    protocol = SessionCommitProtocol(store)

    run_countdown(timer, protocol, clock=_fake_clock(30), sleep=_no_sleep)

    assert protocol.pending == PendingCommit(minutes_completed=1, topic_id="econ-1")
    assert timer.state_name == "BREAK_IDLE"
    # Offering is not committing
    assert store.get_topic("econ-1") is None


def test_run_countdown_ctrl_c_pauses(store):
    timer = IntervalTimer(work_minutes=25)
    timer.select_topic("econ-1")
    timer.start()
    protocol = SessionCommitProtocol(store)

    def interrupt(seconds):
        raise KeyboardInterrupt

    run_countdown(timer, protocol, clock=_fake_clock(1), sleep=interrupt)
    assert timer.running is False
    assert timer.remaining_seconds == 1500
    assert protocol.pending is None


def test_resolve_pending_commit_on_confirm(store):
    protocol = SessionCommitProtocol(store)
    protocol.offer(PendingCommit(minutes_completed=25, topic_id="econ-1"))
    with patch("cacd_mentor.app.Confirm.ask", return_value=True):
        resolve_pending(protocol)
    assert protocol.pending is None
    assert store.get_topic("econ-1").study_minutes == 25
    assert store.xp == 12


def test_resolve_pending_dismiss_on_decline(store):
    protocol = SessionCommitProtocol(store)
    protocol.offer(PendingCommit(minutes_completed=25, topic_id="econ-1"))
    with patch("cacd_mentor.app.Confirm.ask", return_value=False):
        resolve_pending(protocol)
    assert protocol.pending is None
    assert store.get_topic("econ-1") is None
    assert store.xp == 0


def test_cmd_timer_start_without_topic_warns(store):
    timer = IntervalTimer()
    protocol = SessionCommitProtocol(store)
    with patch("cacd_mentor.app.Prompt.ask", side_effect=["start", "back"]):
        cmd_timer(store, timer, protocol)
    assert timer.state_name == "WORK_IDLE"


def test_cmd_timer_adjusts_config(store):
    timer = IntervalTimer()
    protocol = SessionCommitProtocol(store)
    with patch("cacd_mentor.app.Prompt.ask", side_effect=["work+", "break-", "back"]):
        cmd_timer(store, timer, protocol)
    assert timer.work_minutes == 30
    assert timer.break_minutes == 4
    assert timer.remaining_seconds == 1800


def test_cmd_timer_selects_topic(store):
    timer = IntervalTimer()
    protocol = SessionCommitProtocol(store)
    with patch("cacd_mentor.app.Prompt.ask", side_effect=["topic", "back"]), \
         patch("cacd_mentor.app.IntPrompt.ask", side_effect=[ECONOMIA, 2]):
        cmd_timer(store, timer, protocol)
    assert timer.selected_topic_id == "econ-2"


def test_cmd_topics_toggles_theory(store):
    with patch("cacd_mentor.app.IntPrompt.ask", side_effect=[ECONOMIA, 1]), \
         patch("cacd_mentor.app.Prompt.ask", return_value="theory"):
        cmd_topics(store)
    assert store.get_topic("econ-1").theory_read is True
    assert store.xp == 50

    with patch("cacd_mentor.app.IntPrompt.ask", side_effect=[ECONOMIA, 1]), \
         patch("cacd_mentor.app.Prompt.ask", return_value="theory"):
        cmd_topics(store)
    assert store.get_topic("econ-1").theory_read is False
    assert store.xp == 50


def test_cmd_topics_sets_numeric_field(store):
    with patch("cacd_mentor.app.IntPrompt.ask", side_effect=[ECONOMIA, 1]), \
         patch("cacd_mentor.app.Prompt.ask", side_effect=["accuracy", "120"]):
        cmd_topics(store)
    assert store.get_topic("econ-1").accuracy_percent == 100


def test_cmd_explain_prints_mentor_text(store):
    generator = MagicMock()
    generator.explain_topic = AsyncMock(return_value="- CONCEITO")
    with patch("cacd_mentor.app.IntPrompt.ask", side_effect=[ECONOMIA, 3]):
        cmd_explain(store, generator)
    generator.explain_topic.assert_awaited_once_with("Economia", "Economia brasileira: Plano Real")


def test_cmd_practice_grades_and_awards_xp(store):
    generator = MagicMock()
    generator.generate_question = AsyncMock(return_value=PracticeQuestion(
        topic="Plano Real", command="Analise...", lines=40, subject="Economia",
    ))
    generator.score_essay = AsyncMock(return_value=CorrectionResult(
        score=7.5, justification="Boa", errors=[], omissions=["Inflação inercial"],
        highlights=[], bank_grade=6.0, approved_grade=7.0, model_response="...",
        improvement_plan=["Citar autores"],
    ))
    with patch("cacd_mentor.app.IntPrompt.ask", return_value=ECONOMIA), \
         patch("cacd_mentor.app.read_essay", return_value="Minha resposta"), \
         patch("cacd_mentor.app.Confirm.ask", return_value=False):
        cmd_practice(store, generator)
    generator.score_essay.assert_awaited_once_with("Plano Real", "Minha resposta")
    assert store.state.submissions_count == 1
    assert store.xp == 100


def test_cmd_practice_empty_essay_not_graded(store):
    generator = MagicMock()
    generator.generate_question = AsyncMock(return_value=PracticeQuestion(
        topic="Plano Real", command="Analise...", lines=40, subject="Economia",
    ))
    generator.score_essay = AsyncMock()
    with patch("cacd_mentor.app.IntPrompt.ask", return_value=ECONOMIA), \
         patch("cacd_mentor.app.read_essay", return_value=""):
        cmd_practice(store, generator)
    generator.score_essay.assert_not_awaited()
    assert store.state.submissions_count == 0


def test_cmd_reset_requires_confirmation(store):
    store.set_topic_field("econ-1", "theory_read", True)
    with patch("cacd_mentor.app.Confirm.ask", return_value=False):
        cmd_reset(store)
    assert store.xp == 50
    with patch("cacd_mentor.app.Confirm.ask", return_value=True):
        cmd_reset(store)
    assert store.xp == 0
    assert store.get_topic("econ-1") is None


def test_cmd_dashboard_renders(store):
    store.set_topic_field("econ-1", "theory_read", True)
    store.add_study_minutes("econ-1", 90)
    cmd_dashboard(store)  # should not raise


def test_show_dossier_renders_highlights_and_fallback():
    show_dossier(Dossier(
        current="Cúpula do Mercosul em Montevidéu.",
        highlights=[DossierHighlight(text="Acordo Mercosul-UE", url="https://example.org/a")],
    ))
    show_dossier(fallback_dossier())  # should not raise


def test_main_survives_unexpected_command_error(tmp_db):
    settings = Settings(_env_file=None, db_path=tmp_db)
    generator = MagicMock()
    generator.get_weekly_dossier = AsyncMock(return_value=fallback_dossier())
    with patch("cacd_mentor.app.get_settings", return_value=settings), \
         patch("cacd_mentor.app.setup_logging"), \
         patch("cacd_mentor.app.GenerationClient", return_value=generator), \
         patch("cacd_mentor.app.cmd_dashboard", side_effect=RuntimeError("boom")), \
         patch("cacd_mentor.app.Prompt.ask", side_effect=["dashboard", "quit"]) as ask:
        main()
    assert ask.call_count == 2
    generator.get_weekly_dossier.assert_awaited_once()
