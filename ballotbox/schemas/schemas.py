from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

RoleName = Literal["pending", "voter", "admin"]
ElectionStateName = Literal["upcoming", "active", "ended"]


class ParticipantCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    password: str = Field(min_length=8)


class ParticipantRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: RoleName
    approved_at: Optional[datetime] = None
    created_at: datetime
    can_vote: bool = False

    model_config = ConfigDict(from_attributes=True)


class RoleRead(BaseModel):
    name: RoleName
    description: str


class ParticipantRoleUpdate(BaseModel):
    role: RoleName


class EligibilityRead(BaseModel):
    participant_id: int
    role: RoleName
    approved_at: Optional[datetime] = None
    can_vote: bool
    reason: Optional[str] = None


class Token(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    role: RoleName
    expires_in: Optional[int] = None
    refresh_expires_in: Optional[int] = None


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class ElectionCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime


class ElectionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class PositionCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    max_candidates: int = Field(default=10, ge=1)


class PositionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    max_candidates: Optional[int] = Field(default=None, ge=1)


class CandidateCreate(BaseModel):
    name: str = Field(min_length=1)
    party: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class CandidateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    party: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    position_id: Optional[int] = None


class CandidateRead(BaseModel):
    id: int
    election_id: int
    position_id: int
    name: str
    party: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PositionRead(BaseModel):
    id: int
    election_id: int
    title: str
    description: Optional[str] = None
    max_candidates: int
    candidates: List[CandidateRead] = []

    model_config = ConfigDict(from_attributes=True)


class BallotStatus(BaseModel):
    can_vote: bool
    state: ElectionStateName
    selections: Dict[int, int] = {}


class ElectionListItem(BaseModel):
    id: int
    title: str
    state: ElectionStateName
    start_time: datetime
    end_time: datetime
    position_count: int
    candidate_count: int
    total_votes: int


class ElectionRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    state: ElectionStateName
    start_time: datetime
    end_time: datetime
    created_at: datetime
    updated_at: datetime
    positions: List[PositionRead] = []
    my_status: Optional[BallotStatus] = None


class CandidateTallyRead(BaseModel):
    candidate: CandidateRead
    vote_count: int
    percentage: float


class PositionTallyRead(BaseModel):
    position_id: int
    title: str
    candidates: List[CandidateTallyRead]
    total_votes: int
    leader: Optional[CandidateTallyRead] = None


class ElectionTallyRead(BaseModel):
    election_id: int
    state: ElectionStateName
    candidates: List[CandidateTallyRead]
    total_votes: int
    leader: Optional[CandidateTallyRead] = None
    positions: List[PositionTallyRead] = []
    computed_at: datetime


class VoteCast(BaseModel):
    candidate_id: int


class VoteRead(BaseModel):
    id: int
    voter_id: int
    election_id: int
    position_id: int
    candidate_id: int
    created_at: datetime
    changed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VoteOutcomeRead(BaseModel):
    outcome: Literal["cast", "unchanged", "changed"]
    vote: VoteRead


class VoteHistoryItem(BaseModel):
    vote_id: int
    election_id: int
    election_title: str
    election_state: ElectionStateName
    position_id: int
    position_title: str
    candidate_id: int
    candidate_name: str
    candidate_party: Optional[str] = None
    created_at: datetime
    changed_at: Optional[datetime] = None


class DashboardStats(BaseModel):
    total_participants: int
    pending_participants: int
    active_elections: int
    total_votes: int


class AuditLogActor(BaseModel):
    id: Optional[int] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


class AuditLogEntry(BaseModel):
    id: int
    timestamp: datetime
    action: str
    target_entity_type: Optional[str] = None
    target_entity_id: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    actor: AuditLogActor


class AuditLogList(BaseModel):
    items: List[AuditLogEntry]
    total: int


class HealthRead(BaseModel):
    status: str
    database: str
    details: Optional[Dict[str, Any]] = None


class VersionRead(BaseModel):
    name: str
    version: str
    gitSha: str
    environment: str
