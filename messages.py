"""
AquaRemote
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import dataclasses
import enum
import json
from typing import Optional, Union

from server_data import PlayerStateSnapshot

"""
JSON frames exchanged over the remote control websocket.

client -> server: auth, command
server -> client: auth_success, auth_failed, player_state, file_info

Anything else decodes to UnknownMessage. Frames that are not a JSON object,
or whose fields have the wrong type, raise MalformedMessage.
"""


class MalformedMessage(Exception): pass


class Command(str, enum.Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    NEXT = "next"
    PREV = "prev"
    FULLSCREEN = "fullscreen"

    @classmethod
    def parse(cls, value) -> Optional["Command"]:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclasses.dataclass(frozen=True)
class AuthRequest:
    password: str


@dataclasses.dataclass(frozen=True)
class CommandRequest:
    command: str  # unvalidated; the relay decides what it means


@dataclasses.dataclass(frozen=True)
class AuthSuccess:
    pass


@dataclasses.dataclass(frozen=True)
class AuthFailed:
    pass


@dataclasses.dataclass(frozen=True)
class PlayerStateMessage:
    state: PlayerStateSnapshot


@dataclasses.dataclass(frozen=True)
class FileInfoMessage:
    filename: str


@dataclasses.dataclass(frozen=True)
class UnknownMessage:
    type: Optional[str]


ClientMessage = Union[AuthRequest, CommandRequest, UnknownMessage]
ServerMessage = Union[AuthSuccess, AuthFailed, PlayerStateMessage, FileInfoMessage, UnknownMessage]


def _load_packet(message: Union[str, bytes]) -> dict:
    if isinstance(message, bytes):
        raise MalformedMessage("binary frames are not supported")
    try:
        packet = json.loads(message)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"not JSON: {e}") from e
    if not isinstance(packet, dict):
        raise MalformedMessage(f"expected a JSON object, got {type(packet).__name__}")
    return packet


def _string_field(packet: dict, key: str) -> str:
    value = packet.get(key)
    if not isinstance(value, str):
        raise MalformedMessage(f"'{packet.get('type')}' message needs a string '{key}'")
    return value


def decode_client_message(message: Union[str, bytes]) -> ClientMessage:
    packet = _load_packet(message)
    packet_type = packet.get("type")
    if packet_type == "auth":
        return AuthRequest(_string_field(packet, "password"))
    elif packet_type == "command":
        return CommandRequest(_string_field(packet, "command"))
    return UnknownMessage(packet_type if isinstance(packet_type, str) else None)


def decode_server_message(message: Union[str, bytes]) -> ServerMessage:
    packet = _load_packet(message)
    packet_type = packet.get("type")
    if packet_type == "auth_success":
        return AuthSuccess()
    elif packet_type == "auth_failed":
        return AuthFailed()
    elif packet_type == "player_state":
        state = packet.get("state")
        if not isinstance(state, dict):
            raise MalformedMessage("'player_state' message needs a 'state' object")
        return PlayerStateMessage(PlayerStateSnapshot.from_wire(state))
    elif packet_type == "file_info":
        filename = packet.get("filename")
        return FileInfoMessage(filename if isinstance(filename, str) else "")
    return UnknownMessage(packet_type if isinstance(packet_type, str) else None)


def encode(message: Union[ClientMessage, ServerMessage]) -> str:
    if isinstance(message, AuthRequest):
        packet = {"type": "auth", "password": message.password}
    elif isinstance(message, CommandRequest):
        packet = {"type": "command", "command": message.command}
    elif isinstance(message, AuthSuccess):
        packet = {"type": "auth_success"}
    elif isinstance(message, AuthFailed):
        packet = {"type": "auth_failed"}
    elif isinstance(message, PlayerStateMessage):
        packet = {"type": "player_state", "state": message.state.to_wire()}
    elif isinstance(message, FileInfoMessage):
        packet = {"type": "file_info", "filename": message.filename}
    else:
        raise TypeError(f"Cannot encode {message!r}")
    return json.dumps(packet)
