# models.py
# Plain data records shared by the controller, storage and UI.
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ExerciseType(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    HIIT = "hiit"
    YOGA = "yoga"
    WALKING = "walking"
    SPORTS = "sports"
    SWIMMING = "swimming"


class Intensity(str, Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    INTENSE = "intense"


class Phase(str, Enum):
    PRE = "pre"
    ACTIVE = "active"
    RECOVERY = "recovery"


class BgResponse(str, Enum):
    DROPPED = "dropped"
    STABLE = "stable"
    ROSE = "rose"


class BgSeverity(str, Enum):
    A_LITTLE = "a_little"
    A_LOT = "a_lot"


CHECKLIST_KEYS = ("bg_checked", "carbs_considered", "basal_adjusted")


def parse_enum(enum_cls, value, label: str):
    """Coerce ``value`` into ``enum_cls`` or raise ValueError naming ``label``."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Unknown {label} {value!r} (expected one of: {allowed})") from None


@dataclass
class PreChecklist:
    bg_checked: bool = False
    carbs_considered: bool = False
    basal_adjusted: bool = False

    def to_dict(self) -> dict:
        return {k: bool(getattr(self, k)) for k in CHECKLIST_KEYS}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PreChecklist":
        data = data or {}
        return cls(**{k: bool(data.get(k, False)) for k in CHECKLIST_KEYS})


@dataclass
class ExerciseSession:
    exercise_type: ExerciseType
    intensity: Intensity
    duration_minutes: int
    name: str
    phase: Phase = Phase.PRE
    created_at: Optional[datetime] = None
    exercise_started_at: Optional[datetime] = None
    recovery_ends_at: Optional[datetime] = None
    pre_checklist: PreChecklist = field(default_factory=PreChecklist)
    mid_check_done: bool = False

    @property
    def duration_ms(self) -> int:
        return self.duration_minutes * 60 * 1000

    def validate(self) -> None:
        """Raise ValueError if the timestamps don't match the phase."""
        started = self.exercise_started_at is not None
        if started != (self.phase in (Phase.ACTIVE, Phase.RECOVERY)):
            raise ValueError(f"exercise_started_at must be set only in active/recovery (phase={self.phase.value})")
        if (self.recovery_ends_at is not None) != (self.phase == Phase.RECOVERY):
            raise ValueError(f"recovery_ends_at must be set only in recovery (phase={self.phase.value})")


@dataclass(frozen=True)
class ExerciseOutcome:
    exercise_type: ExerciseType
    intensity: Intensity
    duration_minutes: int
    exercise_name: str
    bg_response: Optional[BgResponse] = None
    bg_severity: Optional[BgSeverity] = None
    felt_hypo: bool = False
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExercisePattern:
    total_sessions: int
    dropped_count: int
    rose_count: int
    stable_count: int
    hypo_count: int
    avg_pattern: str


@dataclass(frozen=True)
class ExerciseRoutine:
    id: int
    name: str
    exercise_type: ExerciseType
    intensity: Intensity
    duration_minutes: int
    times_used: int = 0
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
