"""Wire envelopes exchanged with clients over the socket.

Inbound messages are JSON objects tagged by ``type``. Parsing is split in
two steps so that an unknown ``type`` can be told apart from a payload
that is not an envelope at all: the former is ignored, the latter earns
the sender an ``error`` reply.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    type: str


class RegisterClient(InboundMessage):
    client_id: Optional[StrictStr] = Field(default=None, alias="clientId")
    display_name: Optional[StrictStr] = Field(default=None, alias="alias")


class RegisterAdmin(InboundMessage):
    pass


class CastVote(InboundMessage):
    # Checked against the active deck by the engine, which drops misfits silently.
    vote: Any = None


class StartSession(InboundMessage):
    pass


class RevealCards(InboundMessage):
    pass


class NewRound(InboundMessage):
    pass


class ResetServer(InboundMessage):
    pass


class BackToRegistration(InboundMessage):
    pass


class ChangeDeck(InboundMessage):
    deck: Any = None


class Heartbeat(InboundMessage):
    pass


class Pong(InboundMessage):
    pass


MESSAGE_TYPES: Dict[str, Type[InboundMessage]] = {
    "register_client": RegisterClient,
    "register_admin": RegisterAdmin,
    "cast_vote": CastVote,
    "start_session": StartSession,
    "reveal_cards": RevealCards,
    "new_round": NewRound,
    "reset_server": ResetServer,
    "back_to_registration": BackToRegistration,
    "change_deck": ChangeDeck,
    "heartbeat": Heartbeat,
    "pong": Pong,
}


class MalformedMessage(ValueError):
    """Payload is not a valid inbound envelope."""


class UnknownMessageType(ValueError):
    def __init__(self, message_type: Any) -> None:
        super().__init__(f"unknown message type: {message_type!r}")
        self.message_type = message_type


def parse_message(raw: Union[str, bytes]) -> InboundMessage:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedMessage("payload is not JSON") from exc

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise MalformedMessage("payload has no string 'type' field")

    model = MESSAGE_TYPES.get(data["type"])
    if model is None:
        raise UnknownMessageType(data["type"])

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessage(str(exc)) from exc


# --- Outbound ------------------------------------------------------------

INVALID_FORMAT = "Invalid message format"


def encode(message: Dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"))


def state_update(state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "state_update", "state": state}


def registration_success(client_id: str, state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "registration_success", "clientId": client_id, "state": state}


def admin_registered(state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "admin_registered", "state": state}


def server_reset() -> Dict[str, Any]:
    return {"type": "server_reset"}


def error(message: str = INVALID_FORMAT) -> Dict[str, Any]:
    return {"type": "error", "message": message}


def ping() -> Dict[str, Any]:
    return {"type": "ping"}
