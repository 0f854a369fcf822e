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
import random
import secrets
import string
from pathlib import Path
from typing import Optional, Union

from websockets.asyncio.server import ServerConnection

from sessions import AuthenticatedSession, ClientSession

PORT_MIN = 3001
PORT_MAX = 3999

DEFAULT_STATIC_DIR = Path(__file__).resolve().with_name("static")

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def random_port() -> int:
    return random.randint(PORT_MIN, PORT_MAX)


def generate_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclasses.dataclass
class ServerConfig:
    port: int
    password: str
    enabled: bool

    @staticmethod
    def create(enabled: bool, password: Optional[str], port: Optional[int] = None) -> "ServerConfig":
        """
        build the runtime config from persisted settings.
        an empty password gets replaced with a generated one
        """
        return ServerConfig(
            port=port if port else random_port(),
            password=password if password else generate_password(),
            enabled=bool(enabled),
        )


@dataclasses.dataclass
class ServerOptions:
    host: str = ""
    bind_attempts: int = 10
    handshake_timeout: float = 10
    auth_timeout: float = 30
    ping_interval: float = 20
    static_dir: Path = DEFAULT_STATIC_DIR

    @staticmethod
    def from_settings(server_settings: Optional[dict]) -> "ServerOptions":
        server_settings = dict(server_settings or {})
        if "static_dir" in server_settings:
            server_settings["static_dir"] = Path(server_settings["static_dir"])
        fields = {field.name for field in dataclasses.fields(ServerOptions)}
        return ServerOptions(**{k: v for k, v in server_settings.items() if k in fields})


@dataclasses.dataclass(frozen=True)
class PlayerStateSnapshot:
    is_playing: bool = False
    current_file: str = "No file loaded"
    current_time: float = 0
    duration: float = 0

    def to_wire(self) -> dict:
        return {
            "isPlaying": self.is_playing,
            "currentFile": self.current_file,
            "currentTime": self.current_time,
            "duration": self.duration,
        }

    @staticmethod
    def from_wire(state: dict) -> "PlayerStateSnapshot":
        return PlayerStateSnapshot(
            is_playing=bool(state.get("isPlaying", False)),
            current_file=str(state.get("currentFile", "No file loaded")),
            current_time=state.get("currentTime", 0),
            duration=state.get("duration", 0),
        )


Session = Union[ClientSession, AuthenticatedSession]


class ServerData:

    def __init__(self):
        self.sessions: dict[ServerConnection, Session] = dict()

    def authenticated_connections(self) -> list[ServerConnection]:
        return [
            connection for connection, session in self.sessions.items()
            if isinstance(session, AuthenticatedSession)
        ]
