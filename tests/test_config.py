import json
import logging

from ballotbox.config import Settings, _sqlite_path
from ballotbox.core.logging import configure_logging
from ballotbox.core.security import DEFAULT_JWT_SECRET, log_security_warnings
from ballotbox.core.version import package_version


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://ballot:secret@db/ballotbox")
    monkeypatch.setenv("VOTE_CONFLICT_RETRIES", "3")
    monkeypatch.setenv("CORS_ORIGINS", json.dumps(["https://vote.example.com"]))

    settings = Settings()

    assert settings.database_url == "postgresql://ballot:secret@db/ballotbox"
    assert settings.vote_conflict_retries == 3
    assert settings.cors_origins == ["https://vote.example.com"]


def test_defaults_retry_conflicts_once():
    assert Settings().vote_conflict_retries == 1


def test_sqlite_path_resolution(tmp_path):
    assert _sqlite_path("postgresql://db/ballotbox") is None
    assert _sqlite_path("sqlite:///:memory:") is None
    assert _sqlite_path(f"sqlite:///{tmp_path}/app.db") == tmp_path / "app.db"


def test_security_warnings_for_defaults(caplog):
    with caplog.at_level(logging.WARNING, logger="ballotbox.core.security"):
        log_security_warnings(DEFAULT_JWT_SECRET, "sqlite:///data/ballotbox.db")
    messages = [record.getMessage() for record in caplog.records]
    assert any("JWT secret" in message for message in messages)
    assert any("SQLite" in message for message in messages)

    caplog.clear()
    with caplog.at_level(logging.WARNING, logger="ballotbox.core.security"):
        log_security_warnings("a-real-secret", "postgresql://db/ballotbox")
    assert caplog.records == []


def test_json_logging_carries_request_id(capsys):
    configure_logging("INFO", json=True)
    try:
        logging.getLogger("ballotbox.test").info("hello")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["message"] == "hello"
        assert record["request_id"] == "-"
    finally:
        configure_logging("INFO", json=False)


def test_deployment_settings_from_environment(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("GIT_SHA", "0a1b2c3")

    settings = Settings()

    assert settings.environment == "production"
    assert settings.git_sha == "0a1b2c3"


def test_package_version_for_missing_distribution():
    assert package_version("ballotbox-not-installed-anywhere") == "0+unknown"
