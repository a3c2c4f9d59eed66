from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base
from ..constants import DEFAULT_MAX_CANDIDATES, ROLE_PENDING, ROLE_PRIORITY


def utcnow():
    return datetime.now(timezone.utc)


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String(16), default=ROLE_PENDING, nullable=False, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    votes = orm_relationship("Vote", back_populates="voter")
    audit_logs = orm_relationship("AuditLog", back_populates="actor")
    created_elections = orm_relationship("Election", back_populates="created_by")

    def has_role(self, role_name: str) -> bool:
        return self.role == role_name

    def has_any_role(self, *role_names: str) -> bool:
        return self.role in set(role_names)

    @property
    def role_priority(self) -> int:
        return ROLE_PRIORITY.get(self.role, 0)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    actor_participant_id = Column(Integer, ForeignKey("participants.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False)
    target_entity_type = Column(String, nullable=True)
    target_entity_id = Column(String, nullable=True)
    before = Column(Text, nullable=True)
    after = Column(Text, nullable=True)

    actor = orm_relationship("Participant", back_populates="audit_logs")


class Election(Base):
    __tablename__ = "elections"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)
    created_by_participant_id = Column(Integer, ForeignKey("participants.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    positions = orm_relationship(
        "Position",
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="Position.id",
    )
    # Candidates are owned through their position; this is a read-only shortcut.
    candidates = orm_relationship("Candidate", viewonly=True, order_by="Candidate.id")
    votes = orm_relationship("Vote", back_populates="election")
    created_by = orm_relationship("Participant", back_populates="created_elections")


class Position(Base):
    __tablename__ = "positions"

    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    max_candidates = Column(Integer, default=DEFAULT_MAX_CANDIDATES, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    election = orm_relationship("Election", back_populates="positions")
    candidates = orm_relationship(
        "Candidate",
        back_populates="position",
        cascade="all, delete-orphan",
        order_by="Candidate.id",
    )
    votes = orm_relationship("Vote", back_populates="position")


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    position_id = Column(Integer, ForeignKey("positions.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    party = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    election = orm_relationship("Election")
    position = orm_relationship("Position", back_populates="candidates")
    votes = orm_relationship("Vote", back_populates="candidate")


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("voter_id", "position_id", name="uq_votes_voter_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    voter_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    election_id = Column(Integer, ForeignKey("elections.id"), nullable=False, index=True)
    position_id = Column(Integer, ForeignKey("positions.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=True)

    voter = orm_relationship("Participant", back_populates="votes")
    election = orm_relationship("Election", back_populates="votes")
    position = orm_relationship("Position", back_populates="votes")
    candidate = orm_relationship("Candidate", back_populates="votes")
