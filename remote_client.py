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
import enum
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles
import tomlkit
import tomlkit.exceptions
import websockets
from websockets.asyncio.client import ClientConnection, connect
from websockets.protocol import State as WebsocketState

from logger import setup_logging
from messages import (
    AuthFailed,
    AuthRequest,
    AuthSuccess,
    Command,
    CommandRequest,
    FileInfoMessage,
    MalformedMessage,
    PlayerStateMessage,
    decode_server_message,
    encode,
)
from server_data import PlayerStateSnapshot

RECONNECT_DELAY = 5.0
DEFAULT_PORT = 3001


class ClientState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    AUTHENTICATED = "authenticated"


class ClientStore:
    """
    last used password and port, kept between runs so the controller can
    reconnect without asking again
    """

    def __init__(self, location: Path):
        self.location = Path(location)
        self.password: str = ""
        self.port: int = DEFAULT_PORT

    async def load(self):
        try:
            async with aiofiles.open(self.location, 'r') as store_file:
                document = tomlkit.parse(await store_file.read())
        except FileNotFoundError:
            logging.debug(f"No client store at {self.location}, using defaults")
            return
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Client store {self.location} is invalid, using defaults")
            return

        password, port = document.get("password"), document.get("port")
        if isinstance(password, str):
            self.password = password
        if isinstance(port, int) and 0 < port < 65536:
            self.port = int(port)

    async def save(self):
        document = tomlkit.document()
        document["password"] = self.password
        document["port"] = self.port
        async with aiofiles.open(self.location, 'w') as store_file:
            await store_file.write(tomlkit.dumps(document))


class RemoteClient:
    """
    Controller side of the remote control channel.

    DISCONNECTED -> CONNECTING -> AWAITING_AUTH -> AUTHENTICATED. Every socket
    close drops back to DISCONNECTED and (re)arms a single reconnect timer,
    unless the user disconnected on purpose.
    """

    def __init__(self, store: ClientStore, host: str = "localhost", reconnect_delay: float = RECONNECT_DELAY,
                 on_change: Optional[Callable[["RemoteClient"], None]] = None):
        self._store = store
        self._host = host
        self._reconnect_delay = reconnect_delay
        self._on_change = on_change
        self._connection: Optional[ClientConnection] = None
        self._connection_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._user_disconnected = False

        self.state = ClientState.DISCONNECTED
        self.password_rejected = False
        self.player_state = PlayerStateSnapshot()

    @property
    def uri(self) -> str:
        return f"ws://{self._host}:{self._store.port}"

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.state is WebsocketState.OPEN

    @property
    def controls_enabled(self) -> bool:
        return self.is_connected and self.state is ClientState.AUTHENTICATED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    async def authenticate(self, password: str) -> None:
        """password entered by the user"""
        if not password.strip():
            raise ValueError("Please enter a password")
        self._store.password = password
        self.password_rejected = False
        await self._store.save()

        if self.is_connected:
            await self._send_auth()
        else:
            self.connect()

    def connect(self) -> None:
        self._user_disconnected = False
        self._cancel_reconnect()
        if self._connection_task is not None and not self._connection_task.done():
            return
        self._set_state(ClientState.CONNECTING)
        self._connection_task = asyncio.get_running_loop().create_task(self._run())

    async def disconnect(self) -> None:
        self._user_disconnected = True
        self._cancel_reconnect()
        task = self._connection_task
        if task is None:
            return
        if self._connection is not None:
            await self._connection.close()
        else:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def send_command(self, command: Union[Command, str]) -> bool:
        if not self.controls_enabled:
            logging.debug(f"Not sending {command}: controls are disabled")
            return False
        value = command.value if isinstance(command, Command) else command
        await self._connection.send(encode(CommandRequest(value)))
        return True

    async def _run(self):
        try:
            async with connect(self.uri) as connection:
                self._connection = connection
                logging.info(f"Connected to {self.uri}")
                await self._send_auth()
                async for message in connection:
                    self._handle_message(message)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logging.warning(f"Remote control connection to {self.uri} failed: {e}")
        finally:
            self._connection = None
            self._connection_lost()

    async def _send_auth(self):
        await self._connection.send(encode(AuthRequest(self._store.password)))
        self._set_state(ClientState.AWAITING_AUTH)

    def _handle_message(self, message: Union[str, bytes]):
        try:
            packet = decode_server_message(message)
        except MalformedMessage as e:
            logging.warning(f"Server sent a malformed message: {e}")
            return

        if isinstance(packet, AuthSuccess):
            self._set_state(ClientState.AUTHENTICATED)
        elif isinstance(packet, AuthFailed):
            logging.warning("Authentication failed. Please check your password.")
            self.password_rejected = True
            self._set_state(ClientState.DISCONNECTED)
        elif isinstance(packet, PlayerStateMessage):
            self.player_state = packet.state
            self._notify()
        elif isinstance(packet, FileInfoMessage):
            self.player_state = PlayerStateSnapshot(
                is_playing=self.player_state.is_playing,
                current_file=packet.filename or "Unknown file",
                current_time=self.player_state.current_time,
                duration=self.player_state.duration,
            )
            self._notify()
        else:
            logging.debug(f"Ignoring message {packet}")

    def _connection_lost(self):
        logging.info(f"Disconnected from {self.uri}")
        self._set_state(ClientState.DISCONNECTED)
        if self._user_disconnected:
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        # a later close replaces the pending timer
        self._cancel_reconnect()
        self._reconnect_handle = asyncio.get_running_loop().call_later(self._reconnect_delay, self._reconnect)

    def _cancel_reconnect(self):
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self):
        self._reconnect_handle = None
        if not self._store.password:
            return
        logging.debug(f"Reconnecting to {self.uri}")
        self.connect()

    def _set_state(self, state: ClientState):
        if state is self.state:
            return
        self.state = state
        self._notify()

    def _notify(self):
        if self._on_change is not None:
            self._on_change(self)


async def main():
    """
    console monitor: connects with the stored password and logs what the
    player reports
    """
    store = ClientStore(Path(os.environ.get("AQUA_REMOTE_CLIENT_STORE", "./remote-client.toml")))
    await store.load()
    if os.environ.get("AQUA_REMOTE_PORT"):
        store.port = int(os.environ["AQUA_REMOTE_PORT"])

    def log_change(client: RemoteClient):
        state = client.player_state
        logging.info(f"[{client.state.value}] {'Playing' if state.is_playing else 'Paused'} "
                     f"{state.current_file} {state.current_time:.0f}/{state.duration:.0f}")

    client = RemoteClient(store, host=os.environ.get("AQUA_REMOTE_HOST", "localhost"), on_change=log_change)
    password = os.environ.get("AQUA_REMOTE_PASSWORD") or store.password
    if not password:
        logging.error("No password stored. Set AQUA_REMOTE_PASSWORD.")
        return
    await client.authenticate(password)
    try:
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        logging.info("Cancelled ...")
    finally:
        await client.disconnect()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
