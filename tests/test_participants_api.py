from fastapi.testclient import TestClient

from ballotbox.api.dependencies import get_db, get_now
from ballotbox.auth.jwt import get_current_participant
from ballotbox.main import app
from ballotbox.models.models import Participant, Vote


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


def test_admin_approves_pending_participant(db_session, create_participant, now):
    admin = create_participant(role="admin")
    pending = create_participant(role="pending")
    client = _client(db_session, admin, now)
    try:
        queue = client.get("/participants/", params={"pending_only": True})
        assert queue.status_code == 200
        assert [item["id"] for item in queue.json()] == [pending.id]

        approved = client.post(f"/participants/{pending.id}/approve")
        assert approved.status_code == 200
        body = approved.json()
        assert body["role"] == "voter"
        assert body["can_vote"] is True
        assert body["approved_at"] is not None

        assert client.get("/participants/", params={"pending_only": True}).json() == []
        voters = client.get("/participants/", params={"role": "voter"}).json()
        assert [item["id"] for item in voters] == [pending.id]
    finally:
        app.dependency_overrides.clear()


def test_role_change_to_admin_clears_approval(db_session, create_participant, now):
    admin = create_participant(role="admin")
    voter = create_participant()
    client = _client(db_session, admin, now)
    try:
        response = client.patch(f"/participants/{voter.id}/role", json={"role": "admin"})
        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["approved_at"] is None
        assert response.json()["can_vote"] is False

        invalid = client.patch(f"/participants/{voter.id}/role", json={"role": "owner"})
        assert invalid.status_code == 422

        missing = client.patch("/participants/9999/role", json={"role": "voter"})
        assert missing.status_code == 404
        assert missing.json()["kind"] == "unknown_participant"
    finally:
        app.dependency_overrides.clear()


def test_reject_participant(db_session, create_participant, ballot, now):
    election, position, alice, _ = ballot
    admin = create_participant(role="admin")
    pending = create_participant(role="pending")
    voter = create_participant()
    db_session.add(Vote(voter_id=voter.id, election_id=election.id, position_id=position.id, candidate_id=alice.id))
    db_session.commit()
    client = _client(db_session, admin, now)
    try:
        removed = client.delete(f"/participants/{pending.id}")
        assert removed.status_code == 204
        assert db_session.get(Participant, pending.id) is None

        blocked = client.delete(f"/participants/{voter.id}")
        assert blocked.status_code == 409
        assert blocked.json()["kind"] == "record_in_use"
    finally:
        app.dependency_overrides.clear()


def test_participant_management_requires_admin(db_session, create_participant, now):
    voter = create_participant()
    pending = create_participant(role="pending")
    client = _client(db_session, voter, now)
    try:
        assert client.get("/participants/").status_code == 403
        assert client.post(f"/participants/{pending.id}/approve").status_code == 403
        assert client.delete(f"/participants/{pending.id}").status_code == 403
    finally:
        app.dependency_overrides.clear()


def test_my_eligibility(db_session, create_participant, now):
    unapproved = create_participant(role="voter", approved=False)
    client = _client(db_session, unapproved, now)
    try:
        response = client.get("/participants/me/eligibility")
        assert response.status_code == 200
        body = response.json()
        assert body["can_vote"] is False
        assert body["role"] == "voter"
        assert "approval" in body["reason"]
    finally:
        app.dependency_overrides.clear()


def test_role_catalogue(db_session, create_participant, now):
    client = _client(db_session, create_participant(), now)
    try:
        roles = client.get("/participants/roles").json()
        assert [role["name"] for role in roles] == ["pending", "voter", "admin"]
    finally:
        app.dependency_overrides.clear()
