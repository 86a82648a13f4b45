import pytest

from cacd_mentor.db import init_db
from cacd_mentor.store import ProgressStore


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_mentor.db")
    return db_path


@pytest.fixture
def store(tmp_db):
    """A fresh store over an initialized temporary database."""
    init_db(tmp_db)
    return ProgressStore(tmp_db, syllabus_size=10)
