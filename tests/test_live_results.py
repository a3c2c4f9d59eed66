import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ballotbox.api.dependencies import get_db, get_now
from ballotbox.auth.jwt import create_access_token, get_current_participant
from ballotbox.main import app
from ballotbox.services.change_feed import ChangeEvent, ChangeFeed


def _override_get_db(session):
    def _generator():
        try:
            yield session
        finally:
            pass

    return _generator


def _override_value(value):
    def _provider():
        return value

    return _provider


def _token_for(participant) -> str:
    return create_access_token({"sub": str(participant.id), "role": participant.role})


def test_viewer_gets_snapshot_then_updates(db_session, create_participant, ballot, now):
    election, _, alice, _ = ballot
    viewer = create_participant(role="admin")
    voter = create_participant()
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_now] = _override_value(now)
    app.dependency_overrides[get_current_participant] = _override_value(voter)
    try:
        # Entering the context runs startup, which wires the results subscriber and the event loop.
        with TestClient(app) as client:
            with client.websocket_connect(f"/live/elections/{election.id}?token={_token_for(viewer)}") as websocket:
                snapshot = websocket.receive_json()
                assert snapshot["type"] == "results.snapshot"
                assert snapshot["results"]["total_votes"] == 0

                cast = client.post("/votes/", json={"candidate_id": alice.id})
                assert cast.status_code == 201

                update = websocket.receive_json()
                assert update["type"] == "results.updated"
                assert update["election_id"] == election.id
                assert update["results"]["total_votes"] == 1
                assert update["results"]["leader"]["candidate"]["id"] == alice.id
    finally:
        app.dependency_overrides.clear()


def test_websocket_requires_valid_token(db_session, ballot):
    election, _, _, _ = ballot
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    client = TestClient(app)
    try:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect(f"/live/elections/{election.id}") as websocket:
                websocket.receive_json()
        assert excinfo.value.code == 4401

        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect(f"/live/elections/{election.id}?token=bogus") as websocket:
                websocket.receive_json()
        assert excinfo.value.code == 4401
    finally:
        app.dependency_overrides.clear()


def test_websocket_unknown_election(db_session, create_participant):
    viewer = create_participant()
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    client = TestClient(app)
    try:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect(f"/live/elections/404?token={_token_for(viewer)}") as websocket:
                websocket.receive_json()
        assert excinfo.value.code == 4404
    finally:
        app.dependency_overrides.clear()


def test_change_feed_isolates_failing_handlers(db_session, caplog):
    feed = ChangeFeed()
    seen = []

    def broken(session, event):
        raise RuntimeError("boom")

    feed.subscribe("votes", broken)
    feed.subscribe("votes", lambda session, event: seen.append(event.action))
    feed.subscribe("votes", broken)

    with caplog.at_level("ERROR", logger="ballotbox.services.change_feed"):
        feed.publish(db_session, ChangeEvent(table="votes", action="cast", election_id=1))

    assert seen == ["cast"]
    assert any("failed" in record.message for record in caplog.records)

    feed.unsubscribe("votes", broken)
    feed.publish(db_session, ChangeEvent(table="votes", action="changed", election_id=1))
    assert seen == ["cast", "changed"]


def test_change_feed_rejects_unknown_tables():
    with pytest.raises(ValueError):
        ChangeFeed().subscribe("participants", lambda session, event: None)
