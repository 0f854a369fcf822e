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
import dataclasses
import logging
import os
from pathlib import Path

from config import Config, ConfigurationLoadError
from host_player import HostPlayer, PlayerBridge
from logger import setup_logging
from remote_manager import RemoteManager
from server_data import PlayerStateSnapshot, ServerData, ServerOptions
from settings_bridge import SettingsBridge, server_config_from_settings
from websocket_server import ControlServer


class ConsolePlayer(HostPlayer):
    """
    Stand-in for the player window: logs remote commands and reports the
    resulting state back through the bridge.
    """

    def __init__(self, playlist: list[str]):
        self._playlist = playlist or ["No file loaded"]
        self._index = 0
        self._state = PlayerStateSnapshot(current_file=self._playlist[0], duration=0)
        self.bridge: PlayerBridge = None
        self.fullscreen = False

    def player_state(self) -> PlayerStateSnapshot:
        return self._state

    def send_command(self, command: str) -> None:
        logging.info(f"player-control: {command}")
        if command == "play":
            self._change(is_playing=not self._state.is_playing)
        elif command == "pause":
            self._change(is_playing=False)
        elif command == "stop":
            self._change(is_playing=False, current_time=0)
        elif command in ("next", "prev"):
            step = 1 if command == "next" else -1
            self._index = (self._index + step) % len(self._playlist)
            self._change(current_file=self._playlist[self._index], current_time=0)
            if self.bridge is not None:
                self.bridge.update_file_info(self._state.current_file)
        elif command == "fullscreen":
            self.fullscreen = not self.fullscreen

    def tick(self, seconds: float):
        if self._state.is_playing:
            self._change(current_time=self._state.current_time + seconds)

    def _change(self, **changes):
        self._state = dataclasses.replace(self._state, **changes)
        if self.bridge is not None:
            self.bridge.update_player_state(self._state)


class AquaRemote:

    def __init__(self, config: Config, host: HostPlayer):
        self._config = config
        self._host = host
        self._data = ServerData()
        self._manager = RemoteManager(self._data, self._host)
        self._server = ControlServer(
            server_config_from_settings(self._config),
            ServerOptions.from_settings(self._config.server),
            self._manager,
        )
        self.settings = SettingsBridge(self._config, self._server)
        self.player = PlayerBridge(self._server)

    async def begin(self):
        logging.info("Starting Aqua Remote")
        try:
            await self.settings.apply()
            status = self.settings.status()
            if status["running"]:
                logging.info(f"Remote control at {self.settings.url()} (password: {status['password']})")
            logging.info("Ctrl^C to quit")
            while True:
                await asyncio.sleep(1)
                if isinstance(self._host, ConsolePlayer):
                    self._host.tick(1)
        except asyncio.CancelledError:
            logging.info("Cancelled ...")
        finally:
            logging.info("Stopping Server ...")
            await self._server.stop()


async def main():
    logging.info("Starting aqua remote ...")

    config = Config(Path(os.environ.get("AQUA_REMOTE_SETTINGS", "./settings.toml")))

    try:
        await config.initialize()

        player = ConsolePlayer([p for p in os.environ.get("AQUA_REMOTE_PLAYLIST", "").split(os.pathsep) if p])
        aqua_remote = AquaRemote(config, player)
        player.bridge = aqua_remote.player
        await aqua_remote.begin()
    except ConfigurationLoadError:
        logging.error("Could not load settings. Exiting")
        return
    finally:
        await config.close()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
