from datetime import timedelta

from fastapi.testclient import TestClient

from ballotbox.api.dependencies import get_db, get_now
from ballotbox.auth.jwt import get_current_participant
from ballotbox.main import app
from ballotbox.models.models import Vote


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


def _client(db_session, participant, now) -> TestClient:
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_participant] = _override_value(participant)
    app.dependency_overrides[get_now] = _override_value(now)
    return TestClient(app)


def test_cast_change_and_repeat(db_session, create_participant, ballot, now):
    election, position, alice, bob = ballot
    voter = create_participant()
    client = _client(db_session, voter, now)
    try:
        cast = client.post("/votes/", json={"candidate_id": alice.id})
        assert cast.status_code == 201
        assert cast.json()["outcome"] == "cast"
        vote_id = cast.json()["vote"]["id"]

        repeat = client.post("/votes/", json={"candidate_id": alice.id})
        assert repeat.status_code == 200
        assert repeat.json()["outcome"] == "unchanged"

        changed = client.post("/votes/", json={"candidate_id": bob.id})
        assert changed.status_code == 200
        body = changed.json()
        assert body["outcome"] == "changed"
        assert body["vote"]["id"] == vote_id
        assert body["vote"]["candidate_id"] == bob.id
        assert body["vote"]["changed_at"] is not None

        assert db_session.query(Vote).filter(Vote.voter_id == voter.id, Vote.position_id == position.id).count() == 1
    finally:
        app.dependency_overrides.clear()


def test_closed_election_reports_state(db_session, create_participant, ballot, now):
    _, _, alice, _ = ballot
    voter = create_participant()
    client = _client(db_session, voter, now + timedelta(hours=2))
    try:
        response = client.post("/votes/", json={"candidate_id": alice.id})
        assert response.status_code == 409
        body = response.json()
        assert body["kind"] == "voting_not_open"
        assert body["state"] == "ended"
        assert body["detail"] == "Voting has ended."
    finally:
        app.dependency_overrides.clear()


def test_pending_participant_is_refused(db_session, create_participant, ballot, now):
    _, _, alice, _ = ballot
    pending = create_participant(role="pending")
    client = _client(db_session, pending, now)
    try:
        response = client.post("/votes/", json={"candidate_id": alice.id})
        assert response.status_code == 403
        assert response.json()["kind"] == "voter_not_eligible"
        assert db_session.query(Vote).count() == 0
    finally:
        app.dependency_overrides.clear()


def test_unknown_candidate_is_404(db_session, create_participant, ballot, now):
    voter = create_participant()
    client = _client(db_session, voter, now)
    try:
        response = client.post("/votes/", json={"candidate_id": 9999})
        assert response.status_code == 404
        assert response.json()["kind"] == "unknown_candidate"
        assert response.json()["candidate_id"] == 9999
    finally:
        app.dependency_overrides.clear()


def test_voting_history(db_session, create_participant, create_position, create_candidate, ballot, now):
    election, position, alice, _ = ballot
    treasurer = create_position(election, title="Treasurer")
    carol = create_candidate(treasurer, name="Carol", party="Gold")
    voter = create_participant()
    client = _client(db_session, voter, now)
    try:
        client.post("/votes/", json={"candidate_id": alice.id})
        client.post("/votes/", json={"candidate_id": carol.id})

        history = client.get("/votes/me")
        assert history.status_code == 200
        items = history.json()
        assert {item["position_title"] for item in items} == {"President", "Treasurer"}
        carol_entry = next(item for item in items if item["candidate_id"] == carol.id)
        assert carol_entry["candidate_party"] == "Gold"
        assert carol_entry["election_title"] == election.title
        assert carol_entry["election_state"] == "active"
    finally:
        app.dependency_overrides.clear()


def test_cast_requires_authentication(db_session):
    app.dependency_overrides[get_db] = _override_get_db(db_session)
    client = TestClient(app)
    try:
        response = client.post("/votes/", json={"candidate_id": 1})
        assert response.status_code == 401
    finally:
        app.dependency_overrides.clear()


def test_cast_is_rate_limited(db_session, create_participant, ballot, now):
    _, _, alice, _ = ballot
    voter = create_participant()
    client = _client(db_session, voter, now)
    try:
        statuses = [client.post("/votes/", json={"candidate_id": alice.id}).status_code for _ in range(31)]
        assert statuses[0] == 201
        assert statuses[-1] == 429
        assert set(statuses[1:-1]) == {200}
    finally:
        app.dependency_overrides.clear()


def test_cast_rate_limit_is_per_voter(db_session, create_participant, ballot, now):
    _, _, alice, _ = ballot
    first = create_participant()
    second = create_participant()
    client = _client(db_session, first, now)
    try:
        for _ in range(30):
            client.post("/votes/", json={"candidate_id": alice.id})
        blocked = client.post("/votes/", json={"candidate_id": alice.id})
        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0

        app.dependency_overrides[get_current_participant] = _override_value(second)
        assert client.post("/votes/", json={"candidate_id": alice.id}).status_code == 201
    finally:
        app.dependency_overrides.clear()
