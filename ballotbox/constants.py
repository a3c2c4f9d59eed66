ROLE_PENDING = "pending"
ROLE_VOTER = "voter"
ROLE_ADMIN = "admin"

PARTICIPANT_ROLES = [
    (ROLE_PENDING, "Registered, awaiting administrator approval"),
    (ROLE_VOTER, "Approved participant allowed to cast ballots"),
    (ROLE_ADMIN, "Administrator managing elections and participants"),
]

# Higher number means more privileges
ROLE_PRIORITY = {
    ROLE_PENDING: 0,
    ROLE_VOTER: 10,
    ROLE_ADMIN: 100,
}

# Tables that publish change events; results are recomputed when any of them changes.
CHANGE_FEED_TABLES = ("elections", "positions", "candidates", "votes")

DEFAULT_MAX_CANDIDATES = 10
