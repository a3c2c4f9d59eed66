#!/usr/bin/env python
"""
Seed script to populate the database with sample data for local development.

Usage:
    python scripts/seed_data.py --voters 5
"""

import argparse
from datetime import datetime, timedelta, timezone

from ballotbox.auth.jwt import get_password_hash
from ballotbox.config import Base, SessionLocal, engine
from ballotbox.constants import ROLE_VOTER
from ballotbox.manage_create_admin import create_admin
from ballotbox.models.models import Election, Participant
from ballotbox.services import catalog

SAMPLE_POSITIONS = {
    "President": [("Ada Lovelace", "Analytical Party"), ("Grace Hopper", "Compiler Coalition")],
    "Treasurer": [("Alan Turing", "Independent"), ("Katherine Johnson", "Orbit Alliance")],
}


def create_voter(session, index: int, now: datetime) -> Participant:
    email = f"voter{index}@example.com"
    voter = session.query(Participant).filter(Participant.email == email).first()
    if voter:
        return voter
    voter = Participant(
        email=email,
        full_name=f"Test Voter {index}",
        hashed_password=get_password_hash("changeme"),
        role=ROLE_VOTER,
        approved_at=now,
    )
    session.add(voter)
    session.flush()
    return voter


def create_sample_election(session, admin: Participant, now: datetime) -> Election:
    election = catalog.create_election(
        session,
        title="Student Council Election",
        description="Sample election open for the next week.",
        start_time=now - timedelta(hours=1),
        end_time=now + timedelta(days=7),
        actor_participant_id=admin.id,
    )
    for title, candidates in SAMPLE_POSITIONS.items():
        position = catalog.create_position(session, election.id, title=title, actor_participant_id=admin.id)
        for name, party in candidates:
            catalog.create_candidate(session, position.id, name=name, party=party, actor_participant_id=admin.id)
    return election


def seed_database(voters: int) -> None:
    Base.metadata.create_all(bind=engine)
    now = datetime.now(timezone.utc)
    with SessionLocal() as session:
        admin = create_admin(session, "admin@example.com", "changeme", "Site Administrator")
        for index in range(1, max(voters, 0) + 1):
            create_voter(session, index, now)
        session.commit()

        election = create_sample_election(session, admin, now)
        print(f"Seed complete. Election {election.id} is open; {voters} voter accounts (password: 'changeme').")


def main():
    parser = argparse.ArgumentParser(description="Seed the ballotbox database with sample data.")
    parser.add_argument("--voters", type=int, default=5, help="Number of approved voter accounts to create")
    args = parser.parse_args()
    seed_database(args.voters)


if __name__ == "__main__":
    main()
