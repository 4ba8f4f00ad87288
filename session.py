# session.py
# Exercise session lifecycle: pre -> active -> recovery -> (no session)
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Callable, List, Optional

import structlog

from config import EXERCISE
from exercise_bank import (
    EVENING_SNACK,
    EXERCISE_LABELS,
    INTENSE_DELAYED_HYPO,
    active_reminder,
    delayed_warning,
    get_type_config,
    recovery_window,
)
from models import (
    CHECKLIST_KEYS,
    BgResponse,
    BgSeverity,
    ExerciseOutcome,
    ExerciseSession,
    ExerciseType,
    Intensity,
    Phase,
    PreChecklist,
    parse_enum,
)

logger = structlog.get_logger(__name__)


class ExerciseSessionError(Exception):
    """Base class for lifecycle calls that can't be applied."""


class NoActiveSession(ExerciseSessionError):
    def __init__(self, action: str):
        super().__init__(f"Cannot {action}: no active exercise session")
        self.action = action


class InvalidTransition(ExerciseSessionError):
    def __init__(self, phase: Phase, event: "Event"):
        super().__init__(f"Cannot {event.value} while session is in phase '{phase.value}'")
        self.phase = phase
        self.event = event


class Event(str, Enum):
    START = "start"
    FINISH = "finish"
    END = "end"
    CANCEL = "cancel"
    TOGGLE_CHECKLIST = "toggle checklist"
    DISMISS_MID_CHECK = "dismiss mid-check"


# None as a target means the session is over and the active record is cleared.
TRANSITIONS = MappingProxyType({
    (Phase.PRE, Event.START): Phase.ACTIVE,
    (Phase.PRE, Event.CANCEL): None,
    (Phase.PRE, Event.TOGGLE_CHECKLIST): Phase.PRE,
    (Phase.ACTIVE, Event.FINISH): Phase.RECOVERY,
    (Phase.ACTIVE, Event.DISMISS_MID_CHECK): Phase.ACTIVE,
    (Phase.RECOVERY, Event.END): None,
})


def next_phase(phase: Phase, event: Event) -> Optional[Phase]:
    try:
        return TRANSITIONS[(phase, event)]
    except KeyError:
        raise InvalidTransition(phase, event) from None


# -------------------------
# Derived view helpers (pure)
# -------------------------
def format_elapsed(ms: float) -> str:
    total_sec = int(max(ms, 0) // 1000)
    h, rem = divmod(total_sec, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_remaining(ms: float) -> str:
    if ms <= 0:
        return "0 min"
    total_min = math.ceil(ms / 60000)
    if total_min >= 60:
        h, m = divmod(total_min, 60)
        return f"{h}h {m}m" if m > 0 else f"{h}h"
    return f"{total_min} min"


def _ms_between(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(milliseconds=1)


def elapsed_ms(session: ExerciseSession, now: datetime) -> int:
    if session.exercise_started_at is None:
        return 0
    return _ms_between(session.exercise_started_at, now)


def remaining_ms(session: ExerciseSession, now: datetime) -> int:
    if session.recovery_ends_at is None:
        return 0
    return _ms_between(now, session.recovery_ends_at)


def progress_percent(session: ExerciseSession, now: datetime) -> float:
    if session.phase != Phase.ACTIVE or session.exercise_started_at is None:
        return 0.0
    elapsed = max(elapsed_ms(session, now), 0)
    return min(100.0, elapsed / session.duration_ms * 100)


def mid_check_due(session: ExerciseSession, now: datetime) -> bool:
    if session.phase != Phase.ACTIVE or session.mid_check_done:
        return False
    timing = get_type_config(session.exercise_type).mid_check_timing
    return elapsed_ms(session, now) >= session.duration_ms * timing


def is_evening(now: datetime) -> bool:
    return now.hour >= EXERCISE["evening_hour"]


def active_advisories(session: ExerciseSession) -> List[str]:
    reminder = active_reminder(session.exercise_type, session.intensity)
    return [reminder] if reminder else []


def recovery_advisories(session: ExerciseSession, now: datetime) -> List[str]:
    advisories = [get_type_config(session.exercise_type).recovery_message]
    warning = delayed_warning(session.exercise_type, session.intensity)
    if warning:
        advisories.append(warning)
    if session.intensity == Intensity.INTENSE:
        advisories.append(INTENSE_DELAYED_HYPO)
    if is_evening(now):
        advisories.append(EVENING_SNACK)
    return advisories


@dataclass(frozen=True)
class TickResult:
    phase: Optional[Phase]
    session: Optional[ExerciseSession] = None
    elapsed_ms: int = 0
    remaining_ms: int = 0
    progress: float = 0.0
    show_mid_check: bool = False
    entered_recovery: bool = False
    ended: Optional[ExerciseSession] = None


class ExerciseSessionController:
    """Drives one user's active exercise session through its phases.

    The store is the source of truth: every operation re-reads the active
    record first, so a stale UI (another tab, a rerun) can't apply an event to
    a session that has already moved on. Events the current phase doesn't
    accept raise ``InvalidTransition``.
    """

    def __init__(self, store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    def _require(self, action: str) -> ExerciseSession:
        session = self.store.get_active_exercise()
        if session is None:
            raise NoActiveSession(action)
        return session

    @property
    def session(self) -> Optional[ExerciseSession]:
        return self.store.get_active_exercise()

    def create(
        self,
        exercise_type,
        intensity,
        duration_minutes: int,
        name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExerciseSession:
        exercise_type = parse_enum(ExerciseType, exercise_type, "exercise type")
        intensity = parse_enum(Intensity, intensity, "intensity")
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be a positive whole number, got {duration_minutes!r}")

        previous = self.store.get_active_exercise()
        if previous is not None:
            logger.info(
                "exercise_session_replaced",
                previous_type=previous.exercise_type.value,
                previous_phase=previous.phase.value,
            )

        session = ExerciseSession(
            exercise_type=exercise_type,
            intensity=intensity,
            duration_minutes=duration_minutes,
            name=(name or "").strip() or EXERCISE_LABELS[exercise_type],
            created_at=self._now(now),
        )
        self.store.save_active_exercise(session)
        logger.info(
            "exercise_session_created",
            exercise_type=exercise_type.value,
            intensity=intensity.value,
            duration_minutes=duration_minutes,
        )
        return session

    def toggle_checklist_item(self, key: str) -> PreChecklist:
        if key not in CHECKLIST_KEYS:
            raise ValueError(f"Unknown checklist item {key!r}")
        session = self._require("toggle checklist")
        next_phase(session.phase, Event.TOGGLE_CHECKLIST)

        items = session.pre_checklist.to_dict()
        items[key] = not items[key]
        checklist = PreChecklist.from_dict(items)
        self.store.update_active_exercise(pre_checklist=checklist)
        return checklist

    def start(self, now: Optional[datetime] = None) -> ExerciseSession:
        session = self._require("start")
        next_phase(session.phase, Event.START)
        started_at = self._now(now)
        self.store.start_exercise_phase(started_at)
        logger.info("exercise_phase_started", exercise_type=session.exercise_type.value)
        return self._require("start")

    def finish(self, now: Optional[datetime] = None) -> ExerciseSession:
        return self._enter_recovery(self._require("finish"), self._now(now), automatic=False)

    def _enter_recovery(self, session: ExerciseSession, now: datetime, automatic: bool) -> ExerciseSession:
        next_phase(session.phase, Event.FINISH)
        ends_at = now + recovery_window(session.exercise_type, session.intensity)
        self.store.finish_exercise_phase(ends_at)
        logger.info(
            "exercise_recovery_started",
            exercise_type=session.exercise_type.value,
            intensity=session.intensity.value,
            recovery_ends_at=ends_at.isoformat(),
            automatic=automatic,
        )
        return self._require("finish")

    def end(self) -> ExerciseSession:
        """End the recovery window and return the ended session for outcome capture."""
        session = self._require("end")
        next_phase(session.phase, Event.END)
        ended = self.store.end_exercise_session()
        if ended is None:
            raise NoActiveSession("end")
        logger.info("exercise_session_ended", exercise_type=ended.exercise_type.value, automatic=False)
        return ended

    # "Skip recovery" and "End recovery" are the same operation.
    skip = end

    def cancel(self) -> None:
        session = self._require("cancel")
        next_phase(session.phase, Event.CANCEL)
        self.store.clear_active_exercise()
        logger.info("exercise_session_cancelled", exercise_type=session.exercise_type.value)

    def dismiss_mid_check(self) -> None:
        session = self._require("dismiss mid-check")
        next_phase(session.phase, Event.DISMISS_MID_CHECK)
        self.store.update_active_exercise(mid_check_done=True)

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        """Re-evaluate the active session against the clock, applying automatic transitions."""
        now = self._now(now)
        session = self.store.get_active_exercise()
        if session is None:
            return TickResult(phase=None)

        if session.phase == Phase.ACTIVE:
            elapsed = elapsed_ms(session, now)
            if elapsed >= session.duration_ms:
                updated = self._enter_recovery(session, now, automatic=True)
                return TickResult(
                    phase=Phase.RECOVERY,
                    session=updated,
                    elapsed_ms=elapsed,
                    remaining_ms=remaining_ms(updated, now),
                    entered_recovery=True,
                )
            return TickResult(
                phase=Phase.ACTIVE,
                session=session,
                elapsed_ms=elapsed,
                progress=progress_percent(session, now),
                show_mid_check=mid_check_due(session, now),
            )

        if session.phase == Phase.RECOVERY:
            remaining = remaining_ms(session, now)
            if remaining > 0:
                return TickResult(phase=Phase.RECOVERY, session=session, remaining_ms=remaining)
            # Clearing and reading happen together in the store, so only one
            # tick ever gets the snapshot back.
            ended = self.store.end_exercise_session()
            if ended is None:
                return TickResult(phase=None)
            logger.info("exercise_session_ended", exercise_type=ended.exercise_type.value, automatic=True)
            return TickResult(phase=None, ended=ended)

        return TickResult(phase=session.phase, session=session)

    def record_outcome(
        self,
        ended: Optional[ExerciseSession],
        bg_response=None,
        bg_severity=None,
        felt_hypo: bool = False,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ExerciseOutcome]:
        if ended is None:
            logger.info("exercise_outcome_skipped", reason="no_ended_session")
            return None

        response = parse_enum(BgResponse, bg_response, "BG response") if bg_response else None
        severity = None
        if bg_severity and response not in (None, BgResponse.STABLE):
            severity = parse_enum(BgSeverity, bg_severity, "BG severity")

        outcome = ExerciseOutcome(
            exercise_type=ended.exercise_type,
            intensity=ended.intensity,
            duration_minutes=ended.duration_minutes,
            exercise_name=ended.name,
            bg_response=response,
            bg_severity=severity,
            felt_hypo=bool(felt_hypo),
            notes=(notes or "").strip() or None,
            recorded_at=self._now(now),
        )
        self.store.add_exercise_outcome(outcome)
        logger.info(
            "exercise_outcome_recorded",
            exercise_type=outcome.exercise_type.value,
            bg_response=response.value if response else None,
            felt_hypo=outcome.felt_hypo,
        )
        return outcome
