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

import logging

from websockets.asyncio.server import ServerConnection, broadcast

from host_player import HostPlayer
from messages import Command, FileInfoMessage, PlayerStateMessage, encode
from server_data import PlayerStateSnapshot, ServerData, Session
from sessions import AuthenticatedSession, ClientSession


class CommandRelay:

    def __init__(self, host: HostPlayer):
        self._host = host

    def dispatch(self, command: str, origin: str = "") -> bool:
        parsed = Command.parse(command)
        if parsed is None:
            logging.warning(f"Unknown remote command {command!r} from {origin or 'controller'}")
            return False

        logging.info(f"Remote command {parsed.value} from {origin or 'controller'}")
        try:
            self._host.send_command(parsed.value)
        except Exception as e:
            logging.exception(e)
            logging.warning(f"Host player could not handle remote command {parsed.value}")
            return False
        return True


class RemoteManager:
    """
    Keeps track of the controller sessions, fans player state out to the
    authenticated ones, and owns the command relay into the host player.
    """

    def __init__(self, data: ServerData, host: HostPlayer):
        self._data = data
        self._host = host
        self.relay = CommandRelay(host)

    def session_connected(self, connection: ServerConnection) -> ClientSession:
        session = ClientSession(connection)
        self._data.sessions[connection] = session
        logging.debug(f"Controller {session.peername} connected")
        return session

    def session_authenticated(self, session: AuthenticatedSession) -> None:
        if session.connection not in self._data.sessions:
            # dropped by a server stop while the handshake was in flight
            return
        self._data.sessions[session.connection] = session
        logging.info(f"Controller {session.peername} authenticated")

    def session_rejected(self, session: Session) -> ClientSession:
        if isinstance(session, AuthenticatedSession):
            session = session.demote()
            if session.connection in self._data.sessions:
                self._data.sessions[session.connection] = session
        logging.info(f"Controller {session.peername} failed authentication")
        return session

    def session_disconnected(self, connection: ServerConnection) -> None:
        if self._data.sessions.pop(connection, None) is not None:
            logging.debug(f"Controller disconnected")

    def drop_all_sessions(self) -> None:
        if self._data.sessions:
            logging.debug(f"Dropping {len(self._data.sessions)} controller session(s)")
        self._data.sessions.clear()

    def current_player_state(self) -> PlayerStateSnapshot:
        try:
            return self._host.player_state()
        except Exception as e:
            logging.exception(e)
            logging.warning("Host player could not report its state")
            return PlayerStateSnapshot()

    def broadcast_player_state(self, state: PlayerStateSnapshot) -> None:
        self._broadcast(encode(PlayerStateMessage(state)))

    def broadcast_file_info(self, filename: str) -> None:
        self._broadcast(encode(FileInfoMessage(filename)))

    def _broadcast(self, message: str) -> None:
        connections = self._data.authenticated_connections()
        if not connections:
            return
        # websockets skips connections that are not open and drops write errors
        broadcast(connections, message)
