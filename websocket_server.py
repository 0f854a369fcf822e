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

import asyncio
import errno
import logging
from http import HTTPStatus
from typing import Optional, Union
from urllib.parse import urlsplit

import aiofiles
import websockets
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.frames import CloseCode
from websockets.http11 import Request, Response

from messages import (
    AuthFailed,
    AuthRequest,
    AuthSuccess,
    CommandRequest,
    MalformedMessage,
    PlayerStateMessage,
    decode_client_message,
    encode,
)
from remote_manager import RemoteManager
from server_data import PlayerStateSnapshot, ServerConfig, ServerOptions, Session, random_port
from sessions import AuthenticatedSession

STATIC_ROUTES = {
    "/": ("index.html", "text/html; charset=utf-8", "Remote UI not built. Run the build script first."),
    "/remote-ui.js": ("remote-ui.js", "application/javascript; charset=utf-8", "Remote UI JavaScript not found"),
}


class ServerStartError(Exception): pass


class ControlServer:
    """
    HTTP control page and websocket sessions on one local port.
    """

    def __init__(self, config: ServerConfig, options: ServerOptions, manager: RemoteManager):
        self._config = config
        self._options = options
        self._manager = manager
        self._server: Optional[Server] = None
        # serializes start, stop and set_enabled
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def get_port(self) -> int:
        return self._config.port

    def get_password(self) -> str:
        return self._config.password

    def is_enabled(self) -> bool:
        return self._config.enabled

    def _pick_port(self) -> int:
        return random_port()

    async def start(self) -> None:
        async with self._lifecycle_lock:
            await self._start()

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            await self._stop()

    async def set_enabled(self, enabled: bool) -> None:
        async with self._lifecycle_lock:
            self._config.enabled = bool(enabled)
            if self._config.enabled and self._server is None:
                await self._start()
            elif not self._config.enabled and self._server is not None:
                await self._stop()

    async def _start(self) -> None:
        if not self._config.enabled:
            logging.info("Remote control is disabled")
            return
        if self._server is not None:
            logging.debug("Remote control server already running")
            return

        for attempt in range(1, self._options.bind_attempts + 1):
            try:
                self._server = await serve(
                    self.handler,
                    self._options.host or None,
                    self._config.port,
                    process_request=self._process_request,
                    open_timeout=self._options.handshake_timeout,
                    ping_interval=self._options.ping_interval,
                    ping_timeout=self._options.ping_interval,
                )
            except OSError as e:
                if e.errno != errno.EADDRINUSE:
                    logging.exception(e)
                    raise ServerStartError(f"Could not listen on port {self._config.port}") from e
                busy_port = self._config.port
                self._config.port = self._pick_port()
                logging.warning(f"Port {busy_port} is in use, trying port {self._config.port} "
                                f"({attempt}/{self._options.bind_attempts})")
                continue

            logging.info(f"Remote control server started on port {self._config.port}")
            logging.debug(f"Access URL: http://localhost:{self._config.port}")
            return

        raise ServerStartError(f"No free port found after {self._options.bind_attempts} attempts")

    async def _stop(self) -> None:
        server, self._server = self._server, None
        self._manager.drop_all_sessions()
        if server is None:
            return
        server.close()
        await server.wait_closed()
        logging.info("Remote control server stopped")

    def update_password(self, new_password: str) -> None:
        self._config.password = new_password
        logging.info("Remote control password updated")

    def broadcast_player_state(self, state: PlayerStateSnapshot) -> None:
        self._manager.broadcast_player_state(state)

    def broadcast_file_info(self, filename: str) -> None:
        self._manager.broadcast_file_info(filename)

    async def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None  # websocket handshake

        path = urlsplit(request.path).path
        if path not in STATIC_ROUTES:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not found")

        filename, content_type, missing_message = STATIC_ROUTES[path]
        location = self._options.static_dir / filename
        try:
            async with aiofiles.open(location, "r", encoding="utf-8") as static_file:
                body = await static_file.read()
        except FileNotFoundError:
            logging.warning(f"Remote UI file {location} is missing")
            return connection.respond(HTTPStatus.NOT_FOUND, missing_message)
        except OSError as e:
            logging.exception(e)
            logging.warning(f"Could not read {location}")
            return connection.respond(HTTPStatus.INTERNAL_SERVER_ERROR, "Could not read remote UI file")

        response = connection.respond(HTTPStatus.OK, body)
        del response.headers["Content-Type"]
        response.headers["Content-Type"] = content_type
        return response

    async def handler(self, connection: ServerConnection) -> None:
        session: Session = self._manager.session_connected(connection)
        loop = asyncio.get_running_loop()
        # one deadline per unauthenticated stretch; frames do not extend it
        auth_deadline: Optional[float] = None
        try:
            while True:
                if session.authenticated:
                    auth_deadline = None
                    timeout = None
                else:
                    if auth_deadline is None:
                        auth_deadline = loop.time() + self._options.auth_timeout
                    timeout = max(0.0, auth_deadline - loop.time())
                try:
                    message = await asyncio.wait_for(connection.recv(), timeout)
                except asyncio.TimeoutError:
                    logging.info(f"Controller {session.peername} did not authenticate in time")
                    await connection.close(CloseCode.POLICY_VIOLATION, "authentication timeout")
                    break
                session = await self._handle_message(session, message)
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Websocket connection closed")
        finally:
            self._manager.session_disconnected(connection)

    async def _handle_message(self, session: Session, message: Union[str, bytes]) -> Session:
        try:
            packet = decode_client_message(message)
        except MalformedMessage as e:
            logging.warning(f"Controller {session.peername} sent a malformed message: {e}")
            return session

        logging.debug(f"Received message: {packet}")
        if isinstance(packet, AuthRequest):
            return await self._authenticate(session, packet)
        elif isinstance(packet, CommandRequest):
            if isinstance(session, AuthenticatedSession):
                session.relay_command(packet.command, self._manager.relay)
            else:
                logging.warning(f"Ignoring command from unauthenticated controller {session.peername}")
            return session

        logging.info(f"Unknown message type {packet.type!r} from {session.peername}")
        return session

    async def _authenticate(self, session: Session, request: AuthRequest) -> Session:
        authenticated = session.authenticate(request.password, self._config.password)
        if authenticated is None:
            session = self._manager.session_rejected(session)
            await session.connection.send(encode(AuthFailed()))
            return session

        self._manager.session_authenticated(authenticated)
        await authenticated.connection.send(encode(AuthSuccess()))
        state = self._manager.current_player_state()
        await authenticated.connection.send(encode(PlayerStateMessage(state)))
        return authenticated

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
