from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .decks import VoteValue


def now_ms() -> int:
    return int(time.time() * 1000)


class Role(str, enum.Enum):
    PARTICIPANT = "participant"
    ADMINISTRATOR = "administrator"


@dataclass
class Participant:
    id: str
    display_name: str
    connection_id: str
    vote: Optional[VoteValue] = None
    last_seen: int = field(default_factory=now_ms)

    def touch(self) -> None:
        self.last_seen = now_ms()


@dataclass
class ConnectionEntry:
    role: Role
    participant_id: Optional[str] = None


class ParticipantRegistry:
    """Participants keyed by id, plus a side-table of connection roles.

    Connections are referred to by their id only; the transport object
    itself carries no session data.
    """

    def __init__(self) -> None:
        self._participants: Dict[str, Participant] = {}
        self._connections: Dict[str, ConnectionEntry] = {}

    def __len__(self) -> int:
        return len(self._participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self._participants.values()))

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def get(self, participant_id: Optional[str]) -> Optional[Participant]:
        if participant_id is None:
            return None
        return self._participants.get(participant_id)

    # --- Registration -----------------------------------------------------

    def register_participant(
        self,
        connection_id: str,
        display_name: str,
        participant_id: Optional[str] = None,
    ) -> Tuple[Participant, bool]:
        """Create or rebind a participant. Returns (record, created)."""
        pid = participant_id or str(uuid.uuid4())

        previous = self._connections.get(connection_id)
        if previous and previous.participant_id and previous.participant_id != pid:
            # Same socket re-registering under another identity.
            self._drop_participant(previous.participant_id, connection_id)

        record = self._participants.get(pid)
        created = record is None
        if record is None:
            record = Participant(id=pid, display_name=display_name, connection_id=connection_id)
            self._participants[pid] = record
        else:
            stale = record.connection_id
            if stale != connection_id:
                entry = self._connections.get(stale)
                if entry and entry.participant_id == pid:
                    entry.participant_id = None
            record.connection_id = connection_id
            record.display_name = display_name
            record.touch()

        self._connections[connection_id] = ConnectionEntry(role=Role.PARTICIPANT, participant_id=pid)
        return record, created

    def register_administrator(self, connection_id: str) -> Optional[Participant]:
        """Mark a connection privileged; returns the participant it used to own, if any."""
        previous = self._connections.get(connection_id)
        dropped = None
        if previous and previous.participant_id:
            dropped = self._drop_participant(previous.participant_id, connection_id)
        self._connections[connection_id] = ConnectionEntry(role=Role.ADMINISTRATOR)
        return dropped

    # --- Lookups ----------------------------------------------------------

    def role_of(self, connection_id: str) -> Optional[Role]:
        entry = self._connections.get(connection_id)
        return entry.role if entry else None

    def is_administrator(self, connection_id: str) -> bool:
        return self.role_of(connection_id) is Role.ADMINISTRATOR

    def participant_for(self, connection_id: str) -> Optional[Participant]:
        entry = self._connections.get(connection_id)
        if not entry or entry.role is not Role.PARTICIPANT:
            return None
        return self.get(entry.participant_id)

    def participant_connections(self) -> List[str]:
        return [
            conn_id
            for conn_id, entry in self._connections.items()
            if entry.role is Role.PARTICIPANT
        ]

    # --- Removal ----------------------------------------------------------

    def remove_connection(self, connection_id: str) -> Optional[Participant]:
        """Forget a connection; returns the participant it owned, if any."""
        entry = self._connections.pop(connection_id, None)
        if not entry or not entry.participant_id:
            return None
        return self._drop_participant(entry.participant_id, connection_id)

    def clear_votes(self) -> int:
        cleared = 0
        for record in self._participants.values():
            if record.vote is not None:
                cleared += 1
            record.vote = None
        return cleared

    def clear(self) -> None:
        """Drop every participant. Administrator connections keep their role."""
        self._participants.clear()
        self._connections = {
            conn_id: entry
            for conn_id, entry in self._connections.items()
            if entry.role is Role.ADMINISTRATOR
        }

    def _drop_participant(self, participant_id: str, connection_id: str) -> Optional[Participant]:
        record = self._participants.get(participant_id)
        # A reconnect on another socket owns the record now; leave it alone.
        if record is None or record.connection_id != connection_id:
            return None
        return self._participants.pop(participant_id)
