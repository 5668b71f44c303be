from datetime import datetime, timedelta, timezone

from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from taskboard.database import _create_engine
from taskboard.models import User


def test_sqlite_engine_is_pooled_and_usable(tmp_path):
    engine = _create_engine(f"sqlite:///{tmp_path / 'board.db'}")
    try:
        assert engine.dialect.name == "sqlite"
        assert not isinstance(engine.pool, NullPool)
        SQLModel.metadata.create_all(engine)
    finally:
        engine.dispose()


def test_user_timestamps_are_timezone_aware():
    user = User(email="tz@example.com", hashed_password="x")

    assert user.created_at.tzinfo is not None
    assert abs(datetime.now(timezone.utc) - user.created_at) < timedelta(minutes=1)


def test_user_insert_succeeds(db):
    db.add(User(email="stored@example.com", hashed_password="x"))
    db.commit()

    assert db.query(User).filter(User.email == "stored@example.com").one().created_at is not None
