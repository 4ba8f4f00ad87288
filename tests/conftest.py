from datetime import datetime
from pathlib import Path
import sys

import pytest
from sqlalchemy import create_engine

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storage import SessionStore, init_db
from session import ExerciseSessionController


# A weekday morning, well before the evening snack advisory kicks in.
T0 = datetime(2026, 3, 2, 10, 0, 0)


@pytest.fixture
def engine(tmp_path: Path):
    """Fresh SQLite database per test."""
    eng = create_engine(f"sqlite:///{tmp_path / 'exercise.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine) -> SessionStore:
    return SessionStore("user-1", engine=engine)


@pytest.fixture
def controller(store) -> ExerciseSessionController:
    return ExerciseSessionController(store, clock=lambda: T0)
