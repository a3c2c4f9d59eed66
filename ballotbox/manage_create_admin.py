"""Create (or promote) the first administrator account.

Run: `python -m ballotbox.manage_create_admin --email admin@example.com --password changeme`
"""

import argparse
from contextlib import contextmanager

from ballotbox.auth.jwt import get_password_hash
from ballotbox.config import Base, SessionLocal, engine
from ballotbox.constants import ROLE_ADMIN
from ballotbox.models.models import Participant


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_admin(session, email: str, password: str, full_name: str) -> Participant:
    email = email.lower()
    participant = session.query(Participant).filter(Participant.email == email).first()
    if participant:
        # Admins carry no approval stamp.
        participant.role = ROLE_ADMIN
        participant.approved_at = None
        session.flush()
        return participant

    participant = Participant(
        email=email,
        full_name=full_name,
        hashed_password=get_password_hash(password),
        role=ROLE_ADMIN,
    )
    session.add(participant)
    session.flush()
    return participant


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the initial ballotbox administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--full-name", default="Initial Administrator")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        admin = create_admin(db, args.email, args.password, args.full_name)
        print(f"Administrator ready: {admin.email} (id {admin.id})")


if __name__ == "__main__":
    main()
