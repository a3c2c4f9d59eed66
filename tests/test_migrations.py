from pathlib import Path

from alembic import command
from alembic.config import Config
import ballotbox.config as app_config
from ballotbox.models.models import Vote
import pytest
import sqlalchemy as sa

ROOT = Path(__file__).resolve().parents[1]


def test_baseline_migration_creates_schema(tmp_path, monkeypatch):
    db_path = tmp_path / "migrations.db"
    db_url = f"sqlite:///{db_path}"
    monkeypatch.setattr(app_config.settings, "database_url", db_url, raising=False)

    config = Config(str(ROOT / "ballotbox" / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "ballotbox" / "migrations"))
    command.upgrade(config, "head")

    engine = sa.create_engine(db_url)
    try:
        inspector = sa.inspect(engine)
        tables = set(inspector.get_table_names())
        assert {"participants", "elections", "positions", "candidates", "votes", "audit_logs"} <= tables
        unique = {constraint["name"]: constraint["column_names"] for constraint in inspector.get_unique_constraints("votes")}
        assert unique["uq_votes_voter_position"] == ["voter_id", "position_id"]

        with engine.begin() as connection:
            connection.execute(
                sa.text(
                    "INSERT INTO votes (voter_id, election_id, position_id, candidate_id) VALUES (1, 1, 1, 1)"
                )
            )
            with pytest.raises(sa.exc.IntegrityError):
                connection.execute(
                    sa.text(
                        "INSERT INTO votes (voter_id, election_id, position_id, candidate_id) VALUES (1, 1, 1, 2)"
                    )
                )

        with sa.orm.Session(engine) as session:
            assert session.query(Vote).count() == 1
    finally:
        engine.dispose()
