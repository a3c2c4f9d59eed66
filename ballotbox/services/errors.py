from __future__ import annotations

from typing import Any, Dict, Optional


class VotingError(Exception):
    """Base class for every failure the voting core reports to its callers."""

    kind = "voting_error"
    status_code = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message, "kind": self.kind}
        payload.update(self.extra)
        return payload


class UnknownCandidate(VotingError):
    kind = "unknown_candidate"
    status_code = 404

    def __init__(self, candidate_id: int) -> None:
        super().__init__("Candidate not found.", candidate_id=candidate_id)


class UnknownElection(VotingError):
    kind = "unknown_election"
    status_code = 404

    def __init__(self, election_id: int) -> None:
        super().__init__("Election not found.", election_id=election_id)


class UnknownPosition(VotingError):
    kind = "unknown_position"
    status_code = 404

    def __init__(self, position_id: int) -> None:
        super().__init__("Position not found.", position_id=position_id)


class UnknownParticipant(VotingError):
    kind = "unknown_participant"
    status_code = 404

    def __init__(self, participant_id: int) -> None:
        super().__init__("Participant not found.", participant_id=participant_id)


class InconsistentCatalog(VotingError):
    kind = "inconsistent_catalog"
    status_code = 409

    def __init__(
        self,
        candidate_id: int,
        candidate_election_id: Optional[int],
        position_election_id: Optional[int],
    ) -> None:
        super().__init__(
            "Candidate reference data is inconsistent; the vote was rejected.",
            candidate_id=candidate_id,
            candidate_election_id=candidate_election_id,
            position_election_id=position_election_id,
        )


class VotingNotOpen(VotingError):
    kind = "voting_not_open"
    status_code = 409

    def __init__(self, election_id: int, state: str) -> None:
        message = "Voting has not started yet." if state == "upcoming" else "Voting has ended."
        super().__init__(message, election_id=election_id, state=state)
        self.state = state


class VoterNotEligible(VotingError):
    kind = "voter_not_eligible"
    status_code = 403

    def __init__(self, participant_id: int, role: Optional[str]) -> None:
        super().__init__(
            "Only approved voters can cast votes.",
            participant_id=participant_id,
            role=role,
        )


class ConcurrentWriteConflict(VotingError):
    kind = "concurrent_write_conflict"
    status_code = 409

    def __init__(self, voter_id: int, position_id: int) -> None:
        super().__init__(
            "Another request changed this ballot at the same time. Please try again.",
            voter_id=voter_id,
            position_id=position_id,
        )


class RecordInUse(VotingError):
    kind = "record_in_use"
    status_code = 409

    def __init__(self, entity: str, entity_id: int, vote_count: int) -> None:
        super().__init__(
            f"{entity.capitalize()} is referenced by recorded votes and cannot be changed this way.",
            entity=entity,
            entity_id=entity_id,
            vote_count=vote_count,
        )


class InvalidCatalogEntry(VotingError):
    kind = "invalid_catalog_entry"
    status_code = 422


class InvalidRole(VotingError):
    kind = "invalid_role"
    status_code = 422

    def __init__(self, role: str) -> None:
        super().__init__(f"Unknown role {role!r}.", role=role)
