from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .registry import Participant
from .state import Phase, Session
from .stats import calculate_statistics

VOTED = "voted"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only summary for the informational HTTP endpoints."""

    phase: Phase
    participant_count: int
    session_id: Optional[str]


def _masked_vote(session: Session, participant: Participant) -> Any:
    if session.phase is Phase.REVEALED:
        return participant.vote
    return VOTED if participant.vote is not None else None


def _base_view(session: Session) -> Dict[str, Any]:
    return {
        "phase": session.phase.value,
        "sessionId": session.session_id,
        "deckName": session.deck.name,
        "deck": list(session.deck.values),
    }


def participant_view(session: Session) -> Dict[str, Any]:
    view = _base_view(session)
    view["participants"] = {
        p.id: {"displayName": p.display_name, "voteState": _masked_vote(session, p)}
        for p in session.registry
    }
    return view


def admin_view(session: Session) -> Dict[str, Any]:
    participants = list(session.registry)
    view = _base_view(session)
    view["participants"] = {
        p.id: {"displayName": p.display_name, "voteState": p.vote, "lastSeen": p.last_seen}
        for p in participants
    }
    view["statistics"] = calculate_statistics(p.vote for p in participants)
    return view


def snapshot(session: Session) -> SessionSnapshot:
    return SessionSnapshot(
        phase=session.phase,
        participant_count=len(session.registry),
        session_id=session.session_id,
    )
