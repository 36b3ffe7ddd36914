from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional, Union

from . import messages
from .decks import get_deck
from .projection import SessionSnapshot, admin_view, participant_view, snapshot
from .state import Phase, Session
from .ws import Connection, SessionBroadcaster

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, messages.InboundMessage], None]


class SessionEngine:
    """Owns the session and applies every inbound event to it.

    Each event runs under one lock together with the projection snapshot it
    triggers. Handlers never await; delivery happens in the connections'
    writer tasks.

    Events that make no sense in the current state (a vote outside an open
    round, a value not in the deck, an unknown deck) are dropped on purpose:
    no reply, no broadcast. Collaborators keep going rather than stall on a
    stray click.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        broadcaster: Optional[SessionBroadcaster] = None,
    ) -> None:
        self.session = session or Session()
        self.broadcaster = broadcaster or SessionBroadcaster()
        self._lock = asyncio.Lock()
        self._handlers: Dict[type, Handler] = {
            messages.RegisterClient: self._register_client,
            messages.RegisterAdmin: self._register_admin,
            messages.CastVote: self._cast_vote,
            messages.StartSession: self._start_session,
            messages.NewRound: self._new_round,
            messages.RevealCards: self._reveal_cards,
            messages.BackToRegistration: self._back_to_registration,
            messages.ResetServer: self._reset_server,
            messages.ChangeDeck: self._change_deck,
            messages.Heartbeat: self._heartbeat,
            messages.Pong: self._pong,
        }

    # --- Public entry points ---------------------------------------------

    async def connect(self, connection: Connection) -> None:
        async with self._lock:
            self.broadcaster.register(connection)
            connection.send_message(messages.state_update(participant_view(self.session)))
            logger.info("Connection %s opened (%d live)", connection.id, len(self.broadcaster))

    async def disconnect(self, connection: Connection) -> None:
        """Single exit path for closed sockets and liveness evictions."""
        async with self._lock:
            self.broadcaster.unregister(connection)
            removed = self.session.registry.remove_connection(connection.id)
            if removed is None:
                logger.debug("Connection %s closed", connection.id)
                return
            logger.info("Participant %s (%s) disconnected", removed.id, removed.display_name)
            self._broadcast()

    async def handle_raw(self, connection: Connection, raw: Union[str, bytes]) -> None:
        connection.confirm()
        try:
            message = messages.parse_message(raw)
        except messages.UnknownMessageType as exc:
            logger.warning("Ignoring unknown message type %r from %s", exc.message_type, connection.id)
            return
        except messages.MalformedMessage as exc:
            logger.warning("Malformed message from %s: %s", connection.id, exc)
            connection.send_message(messages.error())
            return
        await self.handle(connection, message)

    async def handle(self, connection: Connection, message: messages.InboundMessage) -> None:
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.warning("No handler for %s", type(message).__name__)
            return
        async with self._lock:
            logger.debug("Handling %s from %s", message.type, connection.id)
            handler(connection, message)

    def status(self) -> SessionSnapshot:
        return snapshot(self.session)

    # --- Event handlers ----------------------------------------------------

    def _register_client(self, connection: Connection, message: messages.RegisterClient) -> None:
        record, created = self.session.registry.register_participant(
            connection.id,
            message.display_name or "",
            message.client_id,
        )
        logger.info(
            "%s participant %s alias=%r (%d total)",
            "Registered" if created else "Re-bound",
            record.id,
            record.display_name,
            len(self.session.registry),
        )
        connection.send_message(
            messages.registration_success(record.id, participant_view(self.session))
        )
        self._broadcast()

    def _register_admin(self, connection: Connection, message: messages.RegisterAdmin) -> None:
        dropped = self.session.registry.register_administrator(connection.id)
        logger.info("Connection %s registered as administrator", connection.id)
        connection.send_message(messages.admin_registered(admin_view(self.session)))
        # Roles are not part of any view; only a dropped participant changes them.
        if dropped is not None:
            logger.info("Participant %s (%s) became administrator", dropped.id, dropped.display_name)
            self._broadcast()

    def _cast_vote(self, connection: Connection, message: messages.CastVote) -> None:
        participant = self.session.registry.participant_for(connection.id)
        if participant is None:
            logger.debug("Dropping vote from unregistered connection %s", connection.id)
            return
        if self.session.phase is not Phase.VOTING_OPEN:
            logger.debug("Dropping vote from %s: phase is %s", participant.id, self.session.phase.value)
            return
        if message.vote not in self.session.deck:
            logger.debug("Dropping vote %r from %s: not in deck %s", message.vote, participant.id, self.session.deck.name)
            return

        participant.vote = message.vote
        participant.touch()
        logger.info("Vote received from %s", participant.id)
        self._broadcast()

    def _start_session(self, connection: Connection, message: messages.InboundMessage) -> None:
        cleared = self.session.open_round()
        logger.info("Session %s started, cleared %d votes", self.session.session_id, cleared)
        self._broadcast()

    def _new_round(self, connection: Connection, message: messages.InboundMessage) -> None:
        cleared = self.session.open_round()
        logger.info("New round %s started, cleared %d votes", self.session.session_id, cleared)
        self._broadcast()

    def _reveal_cards(self, connection: Connection, message: messages.InboundMessage) -> None:
        self.session.reveal()
        voted = sum(1 for p in self.session.registry if p.vote is not None)
        logger.info("Revealing %d votes in session %s", voted, self.session.session_id)
        self._broadcast()

    def _back_to_registration(self, connection: Connection, message: messages.InboundMessage) -> None:
        self.session.close_round()
        logger.info("Returned to registration")
        self._broadcast()

    def _reset_server(self, connection: Connection, message: messages.InboundMessage) -> None:
        registry = self.session.registry
        evicted = []
        for conn_id in registry.participant_connections():
            target = self.broadcaster.get(conn_id)
            if target is None:
                continue
            target.send_message(messages.server_reset())
            target.close()
            evicted.append(conn_id)

        count = len(registry)
        self.session.reset()
        logger.info("Server reset: dropped %d participants, closing %d connections", count, len(evicted))
        self._broadcast()

    def _change_deck(self, connection: Connection, message: messages.ChangeDeck) -> None:
        deck = get_deck(message.deck)
        if deck is None:
            logger.warning("Unknown deck %r, keeping %s", message.deck, self.session.deck.name)
            return
        self.session.deck = deck
        logger.info("Deck changed to %s", deck.name)
        self._broadcast()

    def _heartbeat(self, connection: Connection, message: messages.InboundMessage) -> None:
        participant = self.session.registry.participant_for(connection.id)
        if participant is not None:
            participant.touch()

    def _pong(self, connection: Connection, message: messages.InboundMessage) -> None:
        # Liveness is confirmed in handle_raw for every inbound message.
        return

    # --- Broadcast ---------------------------------------------------------

    def _broadcast(self) -> None:
        participant_payload = messages.encode(messages.state_update(participant_view(self.session)))
        admin_payload = messages.encode(messages.state_update(admin_view(self.session)))
        counts = self.broadcaster.broadcast(
            participant_payload,
            admin_payload,
            self.session.registry.is_administrator,
        )
        logger.debug(
            "State update queued for %d clients and %d admins",
            counts["participants"],
            counts["admins"],
        )
