"""baseline schema: participants, catalog, votes and audit trail

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(inspector, name: str) -> bool:
    return inspector.has_table(name)


def _ensure_index(inspector, table: str, name: str, columns: list[str], unique: bool = False) -> None:
    existing = {index["name"] for index in inspector.get_indexes(table)}
    if name not in existing:
        op.create_index(name, table, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _has_table(inspector, "participants"):
        op.create_table(
            "participants",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("full_name", sa.String(), nullable=True),
            sa.Column("hashed_password", sa.String(), nullable=False),
            sa.Column("role", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "participants", "ix_participants_id", ["id"])
    _ensure_index(inspector, "participants", "ix_participants_email", ["email"], unique=True)
    _ensure_index(inspector, "participants", "ix_participants_role", ["role"])

    if not _has_table(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column(
                "actor_participant_id",
                sa.Integer(),
                sa.ForeignKey("participants.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("target_entity_type", sa.String(), nullable=True),
            sa.Column("target_entity_id", sa.String(), nullable=True),
            sa.Column("before", sa.Text(), nullable=True),
            sa.Column("after", sa.Text(), nullable=True),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "audit_logs", "ix_audit_logs_id", ["id"])
    _ensure_index(inspector, "audit_logs", "ix_audit_logs_timestamp", ["timestamp"])

    if not _has_table(inspector, "elections"):
        op.create_table(
            "elections",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
            sa.Column(
                "created_by_participant_id",
                sa.Integer(),
                sa.ForeignKey("participants.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "elections", "ix_elections_id", ["id"])
    _ensure_index(inspector, "elections", "ix_elections_start_time", ["start_time"])
    _ensure_index(inspector, "elections", "ix_elections_end_time", ["end_time"])

    if not _has_table(inspector, "positions"):
        op.create_table(
            "positions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("election_id", sa.Integer(), sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("max_candidates", sa.Integer(), nullable=False, server_default="10"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "positions", "ix_positions_id", ["id"])
    _ensure_index(inspector, "positions", "ix_positions_election_id", ["election_id"])

    if not _has_table(inspector, "candidates"):
        op.create_table(
            "candidates",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("election_id", sa.Integer(), sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
            sa.Column("position_id", sa.Integer(), sa.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("party", sa.String(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image_url", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "candidates", "ix_candidates_id", ["id"])
    _ensure_index(inspector, "candidates", "ix_candidates_election_id", ["election_id"])
    _ensure_index(inspector, "candidates", "ix_candidates_position_id", ["position_id"])

    if not _has_table(inspector, "votes"):
        op.create_table(
            "votes",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("voter_id", sa.Integer(), sa.ForeignKey("participants.id"), nullable=False),
            sa.Column("election_id", sa.Integer(), sa.ForeignKey("elections.id"), nullable=False),
            sa.Column("position_id", sa.Integer(), sa.ForeignKey("positions.id"), nullable=False),
            sa.Column("candidate_id", sa.Integer(), sa.ForeignKey("candidates.id"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("voter_id", "position_id", name="uq_votes_voter_position"),
        )
    inspector = sa.inspect(bind)
    _ensure_index(inspector, "votes", "ix_votes_id", ["id"])
    _ensure_index(inspector, "votes", "ix_votes_voter_id", ["voter_id"])
    _ensure_index(inspector, "votes", "ix_votes_election_id", ["election_id"])
    _ensure_index(inspector, "votes", "ix_votes_position_id", ["position_id"])
    _ensure_index(inspector, "votes", "ix_votes_candidate_id", ["candidate_id"])


def downgrade() -> None:
    for table in ("votes", "candidates", "positions", "elections", "audit_logs", "participants"):
        op.drop_table(table)
