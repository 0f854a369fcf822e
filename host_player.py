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

import abc
import logging

from server_data import PlayerStateSnapshot


class HostPlayer(abc.ABC):
    """
    The surface of the media player that the remote control channel drives.

    send_command receives one of play/pause/stop/next/prev/fullscreen.
    player_state returns whatever the player is showing right now; it is sent
    to a controller as soon as it authenticates.
    """

    @abc.abstractmethod
    def send_command(self, command: str) -> None: ...

    def player_state(self) -> PlayerStateSnapshot:
        return PlayerStateSnapshot()


class PlayerBridge:
    """
    Receives playback changes observed by the host player and pushes them to
    the connected controllers while remote control is enabled.
    """

    def __init__(self, server):
        self._server = server

    def update_player_state(self, state: PlayerStateSnapshot) -> None:
        if not self._server.is_enabled():
            return
        self._server.broadcast_player_state(state)

    def update_file_info(self, filename: str) -> None:
        if not self._server.is_enabled():
            return
        logging.debug(f"File changed to {filename}")
        self._server.broadcast_file_info(filename)
