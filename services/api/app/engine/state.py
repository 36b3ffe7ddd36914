from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Optional

from .decks import Deck, default_deck
from .registry import ParticipantRegistry


class Phase(str, enum.Enum):
    REGISTRATION = "REGISTRATION"
    VOTING_OPEN = "VOTING_OPEN"
    REVEALED = "REVEALED"


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


@dataclass
class Session:
    """Authoritative state of the single estimation session."""

    phase: Phase = Phase.REGISTRATION
    session_id: Optional[str] = None
    deck: Deck = field(default_factory=default_deck)
    registry: ParticipantRegistry = field(default_factory=ParticipantRegistry)

    def open_round(self) -> int:
        """Start a fresh round; returns how many votes were discarded."""
        self.phase = Phase.VOTING_OPEN
        self.session_id = new_session_id()
        return self.registry.clear_votes()

    def reveal(self) -> None:
        if self.session_id is None:
            self.session_id = new_session_id()
        self.phase = Phase.REVEALED

    def close_round(self) -> None:
        self.phase = Phase.REGISTRATION
        self.session_id = None

    def reset(self) -> None:
        self.close_round()
        self.deck = default_deck()
        self.registry.clear()
