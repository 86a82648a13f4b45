"""Work/break interval timer driven by a logical clock."""
import logging
from typing import Optional

from cacd_mentor.errors import ValidationError
from cacd_mentor.models import PendingCommit, TimerMode

logger = logging.getLogger(__name__)

DEFAULT_WORK_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5


class IntervalTimer:
    """Countdown state machine over (mode, running) plus the remaining seconds.

    The timer never schedules anything itself. The host calls `on_elapsed`
    with the seconds that passed since its previous call; a finished work
    interval is handed back as a PendingCommit for the caller to resolve.
    """

    def __init__(
        self,
        work_minutes: int = DEFAULT_WORK_MINUTES,
        break_minutes: int = DEFAULT_BREAK_MINUTES,
    ):
        self.work_minutes = max(1, work_minutes)
        self.break_minutes = max(1, break_minutes)
        self.mode = TimerMode.WORK
        self.running = False
        # True once the current interval has run at all
        self.started = False
        self.selected_topic_id: Optional[str] = None
        self.remaining_seconds = self.duration_for(self.mode)

    def duration_for(self, mode: TimerMode) -> int:
        if mode == TimerMode.WORK:
            return self.work_minutes * 60
        return self.break_minutes * 60

    @property
    def state_name(self) -> str:
        """WORK_IDLE, WORK_RUNNING, WORK_PAUSED, BREAK_IDLE, ..."""
        if self.running:
            phase = "RUNNING"
        elif self.started:
            phase = "PAUSED"
        else:
            phase = "IDLE"
        return f"{self.mode.name}_{phase}"

    @property
    def progress(self) -> float:
        duration = self.duration_for(self.mode)
        return (duration - self.remaining_seconds) / duration

    def format_remaining(self) -> str:
        mins, secs = divmod(self.remaining_seconds, 60)
        return f"{mins:02d}:{secs:02d}"

    def select_topic(self, topic_id: Optional[str]) -> None:
        if not topic_id and self.running and self.mode == TimerMode.WORK:
            raise ValidationError("Pause the focus session before clearing its topic.")
        self.selected_topic_id = topic_id or None

    def start(self) -> None:
        if self.mode == TimerMode.WORK and not self.selected_topic_id:
            raise ValidationError("Select a syllabus topic before starting a focus session.")
        if self.running:
            return
        self.running = True
        self.started = True
        logger.debug("Timer started: %s with %ds left", self.mode.value, self.remaining_seconds)

    def pause(self) -> None:
        if not self.running:
            return
        self.running = False
        logger.debug("Timer paused: %s with %ds left", self.mode.value, self.remaining_seconds)

    def toggle(self) -> None:
        if self.running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        self.running = False
        self.started = False
        self.remaining_seconds = self.duration_for(self.mode)

    def adjust_config(self, mode: TimerMode, delta_minutes: int) -> bool:
        """Change the configured length of `mode`; refused while running."""
        if self.running:
            return False
        if mode == TimerMode.WORK:
            self.work_minutes = max(1, self.work_minutes + delta_minutes)
        else:
            self.break_minutes = max(1, self.break_minutes + delta_minutes)
        if mode == self.mode:
            self.started = False
            self.remaining_seconds = self.duration_for(mode)
        return True

    def tick(self) -> Optional[PendingCommit]:
        return self.on_elapsed(1)

    def on_elapsed(self, seconds: int) -> Optional[PendingCommit]:
        """Advance the countdown by `seconds` of wall-clock time.

        Missed ticks are caught up in one step. Time left over after an
        interval ends is dropped, since the next interval never auto-starts.
        """
        if not self.running or seconds <= 0:
            return None
        self.remaining_seconds = max(0, self.remaining_seconds - int(seconds))
        if self.remaining_seconds == 0:
            return self._finish_interval()
        return None

    def _finish_interval(self) -> Optional[PendingCommit]:
        self.running = False
        self.started = False
        if self.mode == TimerMode.WORK:
            pending = PendingCommit(
                minutes_completed=self.work_minutes,
                topic_id=self.selected_topic_id,
            )
            self.mode = TimerMode.BREAK
            self.remaining_seconds = self.duration_for(TimerMode.BREAK)
            logger.info("Work interval finished: %d min on %s", pending.minutes_completed, pending.topic_id)
            return pending
        self.mode = TimerMode.WORK
        self.remaining_seconds = self.duration_for(TimerMode.WORK)
        logger.info("Break finished")
        return None
