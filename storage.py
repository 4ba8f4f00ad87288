# storage.py
import os
import json
from datetime import datetime
from typing import Dict, List, Optional

import structlog
from sqlalchemy import (
    create_engine, MetaData, Table, Column,
    Integer, String, DateTime, Text
)
from sqlalchemy.sql import select, insert, update, delete
from sqlalchemy.pool import NullPool

from models import (
    BgResponse, BgSeverity, ExerciseOutcome, ExercisePattern, ExerciseRoutine,
    ExerciseSession, ExerciseType, Intensity, Phase, PreChecklist, parse_enum,
)
from exercise_bank import EXERCISE_LABELS
from patterns import summarize_outcomes

logger = structlog.get_logger(__name__)


def _get_db_url() -> str:
    url = os.getenv("DATABASE_URL", "").strip()
    if not url:
        try:
            import streamlit as st
            url = str(st.secrets.get("DATABASE_URL", "")).strip()
        except Exception:
            # no secrets.toml outside a deployed Streamlit app
            pass
    return url

_engine = None

def get_engine():
    global _engine
    if _engine is None:
        db_url = _get_db_url()
        if db_url:
            _engine = create_engine(db_url, pool_pre_ping=True, poolclass=NullPool)
        else:
            _engine = create_engine("sqlite:///data.db", connect_args={"check_same_thread": False})
    return _engine

metadata = MetaData()

profiles = Table(
    "profiles", metadata,
    Column("user_key", String(80), primary_key=True),
    Column("full_name", String(200), nullable=True),
    Column("phone_last4", String(8), nullable=True),
    Column("diabetes_type", String(30), nullable=True),
    Column("insulin_delivery_method", String(20), nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# One row per user: creating a new session replaces the old one.
active_exercise = Table(
    "active_exercise", metadata,
    Column("user_key", String(80), primary_key=True),
    Column("exercise_type", String(20), nullable=False),
    Column("intensity", String(20), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("name", String(200), nullable=False),
    Column("phase", String(20), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("exercise_started_at", DateTime, nullable=True),
    Column("recovery_ends_at", DateTime, nullable=True),
    Column("pre_checklist_json", Text, nullable=True),
    Column("mid_check_done", Integer, nullable=False),
)

exercise_outcomes = Table(
    "exercise_outcomes", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_key", String(80), nullable=False),
    Column("exercise_type", String(20), nullable=False),
    Column("intensity", String(20), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("exercise_name", String(200), nullable=False),
    Column("bg_response", String(20), nullable=True),
    Column("bg_severity", String(20), nullable=True),
    Column("felt_hypo", Integer, nullable=False),
    Column("notes", Text, nullable=True),
    Column("recorded_at", DateTime, nullable=False),
)

exercise_routines = Table(
    "exercise_routines", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_key", String(80), nullable=False),
    Column("name", String(200), nullable=False),
    Column("exercise_type", String(20), nullable=False),
    Column("intensity", String(20), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("times_used", Integer, nullable=False),
    Column("last_used_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False),
)

def init_db(engine=None) -> None:
    metadata.create_all(engine or get_engine())


def _session_from_row(row) -> ExerciseSession:
    d = dict(row._mapping)
    try:
        checklist = json.loads(d.get("pre_checklist_json") or "{}")
    except ValueError:
        logger.warning("active_exercise_bad_checklist", user_key=d.get("user_key"))
        checklist = {}
    return ExerciseSession(
        exercise_type=ExerciseType(d["exercise_type"]),
        intensity=Intensity(d["intensity"]),
        duration_minutes=int(d["duration_minutes"]),
        name=d["name"],
        phase=Phase(d["phase"]),
        created_at=d["created_at"],
        exercise_started_at=d["exercise_started_at"],
        recovery_ends_at=d["recovery_ends_at"],
        pre_checklist=PreChecklist.from_dict(checklist if isinstance(checklist, dict) else {}),
        mid_check_done=bool(d["mid_check_done"]),
    )


def _outcome_from_row(row) -> ExerciseOutcome:
    d = dict(row._mapping)
    return ExerciseOutcome(
        exercise_type=ExerciseType(d["exercise_type"]),
        intensity=Intensity(d["intensity"]),
        duration_minutes=int(d["duration_minutes"]),
        exercise_name=d["exercise_name"],
        bg_response=BgResponse(d["bg_response"]) if d["bg_response"] else None,
        bg_severity=BgSeverity(d["bg_severity"]) if d["bg_severity"] else None,
        felt_hypo=bool(d["felt_hypo"]),
        notes=d["notes"],
        recorded_at=d["recorded_at"],
    )


def _routine_from_row(row) -> ExerciseRoutine:
    d = dict(row._mapping)
    return ExerciseRoutine(
        id=int(d["id"]),
        name=d["name"],
        exercise_type=ExerciseType(d["exercise_type"]),
        intensity=Intensity(d["intensity"]),
        duration_minutes=int(d["duration_minutes"]),
        times_used=int(d["times_used"]),
        last_used_at=d["last_used_at"],
        created_at=d["created_at"],
    )


class SessionStore:
    """Per-user persistence for the active exercise session, outcomes, profile and routines."""

    def __init__(self, user_key: str, engine=None):
        self.user_key = user_key
        self.engine = engine or get_engine()

    # -------------------------
    # Active session
    # -------------------------
    def get_active_exercise(self) -> Optional[ExerciseSession]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(active_exercise).where(active_exercise.c.user_key == self.user_key)
            ).fetchone()
        return _session_from_row(row) if row else None

    def save_active_exercise(self, session: ExerciseSession) -> None:
        session.validate()
        payload = {
            "exercise_type": session.exercise_type.value,
            "intensity": session.intensity.value,
            "duration_minutes": int(session.duration_minutes),
            "name": session.name,
            "phase": session.phase.value,
            "created_at": session.created_at or datetime.now(),
            "exercise_started_at": session.exercise_started_at,
            "recovery_ends_at": session.recovery_ends_at,
            "pre_checklist_json": json.dumps(session.pre_checklist.to_dict()),
            "mid_check_done": 1 if session.mid_check_done else 0,
        }
        with self.engine.begin() as conn:
            conn.execute(delete(active_exercise).where(active_exercise.c.user_key == self.user_key))
            conn.execute(insert(active_exercise).values(user_key=self.user_key, **payload))

    def update_active_exercise(self, **partial) -> bool:
        """Apply a partial update (pre_checklist, mid_check_done, phase, timestamps). Returns False if no session."""
        values: Dict = {}
        for key, value in partial.items():
            if key == "pre_checklist":
                values["pre_checklist_json"] = json.dumps(value.to_dict())
            elif key == "mid_check_done":
                values["mid_check_done"] = 1 if value else 0
            elif key == "phase":
                values["phase"] = parse_enum(Phase, value, "phase").value
            elif key in ("exercise_started_at", "recovery_ends_at"):
                values[key] = value
            else:
                raise ValueError(f"Field {key!r} of the active session can't be updated")
        if not values:
            return False

        with self.engine.begin() as conn:
            result = conn.execute(
                update(active_exercise)
                .where(active_exercise.c.user_key == self.user_key)
                .values(**values)
            )
        return result.rowcount > 0

    def start_exercise_phase(self, started_at: datetime) -> bool:
        return self.update_active_exercise(phase=Phase.ACTIVE, exercise_started_at=started_at)

    def finish_exercise_phase(self, recovery_ends_at: datetime) -> bool:
        return self.update_active_exercise(phase=Phase.RECOVERY, recovery_ends_at=recovery_ends_at)

    def end_exercise_session(self) -> Optional[ExerciseSession]:
        """Clear the active session, returning it only if this call was the one that removed it."""
        with self.engine.begin() as conn:
            row = conn.execute(
                select(active_exercise).where(active_exercise.c.user_key == self.user_key)
            ).fetchone()
            if not row:
                return None
            result = conn.execute(delete(active_exercise).where(active_exercise.c.user_key == self.user_key))
        if result.rowcount != 1:
            return None
        return _session_from_row(row)

    def clear_active_exercise(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(active_exercise).where(active_exercise.c.user_key == self.user_key))

    # -------------------------
    # Outcomes + patterns
    # -------------------------
    def add_exercise_outcome(self, outcome: ExerciseOutcome) -> None:
        with self.engine.begin() as conn:
            conn.execute(insert(exercise_outcomes).values(
                user_key=self.user_key,
                exercise_type=outcome.exercise_type.value,
                intensity=outcome.intensity.value,
                duration_minutes=int(outcome.duration_minutes),
                exercise_name=outcome.exercise_name,
                bg_response=outcome.bg_response.value if outcome.bg_response else None,
                bg_severity=outcome.bg_severity.value if outcome.bg_severity else None,
                felt_hypo=1 if outcome.felt_hypo else 0,
                notes=outcome.notes or None,
                recorded_at=outcome.recorded_at or datetime.now(),
            ))

    def fetch_exercise_outcomes(self, exercise_type=None, intensity=None) -> List[ExerciseOutcome]:
        query = select(exercise_outcomes).where(exercise_outcomes.c.user_key == self.user_key)
        if exercise_type is not None:
            query = query.where(
                exercise_outcomes.c.exercise_type == parse_enum(ExerciseType, exercise_type, "exercise type").value
            )
        if intensity is not None:
            query = query.where(
                exercise_outcomes.c.intensity == parse_enum(Intensity, intensity, "intensity").value
            )
        with self.engine.begin() as conn:
            rows = conn.execute(query.order_by(exercise_outcomes.c.recorded_at)).fetchall()
        return [_outcome_from_row(r) for r in rows]

    def get_exercise_patterns(self, exercise_type, intensity) -> ExercisePattern:
        return summarize_outcomes(self.fetch_exercise_outcomes(exercise_type, intensity))

    # -------------------------
    # Profile
    # -------------------------
    def get_profile(self) -> Optional[Dict]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(profiles).where(profiles.c.user_key == self.user_key)
            ).fetchone()
        return dict(row._mapping) if row else None

    def upsert_profile(self, data: Dict) -> None:
        now = datetime.now()
        payload = {
            "full_name": data.get("full_name"),
            "phone_last4": data.get("phone_last4"),
            "diabetes_type": data.get("diabetes_type"),
            "insulin_delivery_method": data.get("insulin_delivery_method"),
            "updated_at": now,
        }

        with self.engine.begin() as conn:
            exists = conn.execute(
                select(profiles.c.user_key).where(profiles.c.user_key == self.user_key)
            ).fetchone()

            if exists:
                # only overwrite fields the caller actually supplied
                changes = {k: v for k, v in payload.items() if k == "updated_at" or k in data}
                conn.execute(
                    update(profiles).where(profiles.c.user_key == self.user_key).values(**changes)
                )
            else:
                payload["user_key"] = self.user_key
                payload["created_at"] = now
                conn.execute(insert(profiles).values(**payload))

    def is_pump(self) -> bool:
        profile = self.get_profile()
        return bool(profile) and profile.get("insulin_delivery_method") == "pump"

    # -------------------------
    # Saved routines
    # -------------------------
    def add_exercise_routine(self, name: str, exercise_type, intensity, duration_minutes: int) -> int:
        exercise_type = parse_enum(ExerciseType, exercise_type, "exercise type")
        intensity = parse_enum(Intensity, intensity, "intensity")
        if int(duration_minutes) <= 0:
            raise ValueError("duration_minutes must be positive")
        with self.engine.begin() as conn:
            result = conn.execute(insert(exercise_routines).values(
                user_key=self.user_key,
                name=name.strip() or EXERCISE_LABELS[exercise_type],
                exercise_type=exercise_type.value,
                intensity=intensity.value,
                duration_minutes=int(duration_minutes),
                times_used=0,
                last_used_at=None,
                created_at=datetime.now(),
            ))
        return int(result.inserted_primary_key[0])

    def get_recent_routines(self, limit: int = 5) -> List[ExerciseRoutine]:
        """Most used first, then most recently used, then newest."""
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(exercise_routines)
                .where(exercise_routines.c.user_key == self.user_key)
                .order_by(
                    exercise_routines.c.times_used.desc(),
                    exercise_routines.c.last_used_at.desc().nullslast(),
                    exercise_routines.c.id.desc(),
                )
                .limit(limit)
            ).fetchall()
        return [_routine_from_row(r) for r in rows]

    def use_exercise_routine(self, routine_id: int) -> Optional[ExerciseRoutine]:
        where = (exercise_routines.c.id == routine_id) & (exercise_routines.c.user_key == self.user_key)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(exercise_routines)
                .where(where)
                .values(times_used=exercise_routines.c.times_used + 1, last_used_at=datetime.now())
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(select(exercise_routines).where(where)).fetchone()
        return _routine_from_row(row)

    def delete_exercise_routine(self, routine_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(exercise_routines).where(
                    (exercise_routines.c.id == routine_id) & (exercise_routines.c.user_key == self.user_key)
                )
            )
        return result.rowcount > 0
