import asyncio
import sys
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ballotbox.config import Base  # noqa: E402
import ballotbox.config as app_config  # noqa: E402
import ballotbox.main as app_main  # noqa: E402
from ballotbox.auth.jwt import get_password_hash  # noqa: E402
from ballotbox.core import rate_limit  # noqa: E402
# Import the full models module so all tables (including audit_logs) register with Base metadata.
from ballotbox.models import models as _all_models  # noqa: E402,F401
from ballotbox.models.models import Candidate, Election, Participant, Position  # noqa: E402
from ballotbox.services.change_feed import change_feed  # noqa: E402

# Fixed reference clock: elections built by the fixtures are open around this instant.
NOW = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def _configure_global_test_db(tmp_path_factory):
    """Configure the app-wide SessionLocal/engine so TestClient uses a DB with all tables."""
    db_dir = tmp_path_factory.mktemp("globaldb")
    db_path = db_dir / "app.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    app_config.SessionLocal = SessionLocal
    app_config.engine = engine
    app_main.SessionLocal = SessionLocal
    app_main.engine = engine
    yield
    engine.dispose()


@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Subscribers and rate-limit buckets are process-wide; start every test clean."""
    change_feed.clear()
    asyncio.run(rate_limit._limiter.reset())
    yield
    change_feed.clear()


@pytest.fixture
def db_session(tmp_path) -> Generator[Session, None, None]:
    """Provide a fresh SQLite database for each test."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def create_participant(db_session: Session) -> Callable[..., Participant]:
    counter = {"value": 0}

    def _create(
        email: Optional[str] = None,
        role: str = "voter",
        approved: bool = True,
        password: str = "changeme1",
    ) -> Participant:
        counter["value"] += 1
        participant = Participant(
            email=email or f"participant{counter['value']}@example.com",
            full_name=f"Participant {counter['value']}",
            hashed_password=get_password_hash(password),
            role=role,
            approved_at=NOW - timedelta(days=1) if role == "voter" and approved else None,
        )
        db_session.add(participant)
        db_session.commit()
        return participant

    return _create


@pytest.fixture
def create_election(db_session: Session) -> Callable[..., Election]:
    def _create(
        title: str = "Student Council",
        start_time: datetime = NOW - timedelta(minutes=30),
        end_time: datetime = NOW + timedelta(minutes=30),
    ) -> Election:
        election = Election(title=title, start_time=start_time, end_time=end_time)
        db_session.add(election)
        db_session.commit()
        return election

    return _create


@pytest.fixture
def create_position(db_session: Session) -> Callable[..., Position]:
    def _create(election: Election, title: str = "President", max_candidates: int = 10) -> Position:
        position = Position(election_id=election.id, title=title, max_candidates=max_candidates)
        db_session.add(position)
        db_session.commit()
        return position

    return _create


@pytest.fixture
def create_candidate(db_session: Session) -> Callable[..., Candidate]:
    def _create(position: Position, name: str = "Candidate", party: Optional[str] = None) -> Candidate:
        candidate = Candidate(
            election_id=position.election_id,
            position_id=position.id,
            name=name,
            party=party,
        )
        db_session.add(candidate)
        db_session.commit()
        return candidate

    return _create


@pytest.fixture
def ballot(create_election, create_position, create_candidate):
    """An open election with one position and two candidates."""
    election = create_election()
    position = create_position(election)
    alice = create_candidate(position, name="Alice", party="Blue")
    bob = create_candidate(position, name="Bob", party="Green")
    return election, position, alice, bob



@pytest.fixture
def now() -> datetime:
    return NOW
