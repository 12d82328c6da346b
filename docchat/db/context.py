"""Request context for ownership enforcement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the resolved owner identity.

    Used to enforce ownership boundaries in all store operations.
    """

    owner_id: str
