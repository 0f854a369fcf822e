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
from typing import Optional

from config import Config
from server_data import ServerConfig
from websocket_server import ControlServer, ServerStartError


def server_config_from_settings(config: Config) -> ServerConfig:
    """
    runtime config from [remote_ui]. A generated password is written back to
    the settings so the user can look it up.
    """
    remote_ui = config.remote_ui
    server_config = ServerConfig.create(remote_ui["enabled"], remote_ui["password"])
    if server_config.password != remote_ui["password"]:
        remote_ui["password"] = server_config.password
        logging.info("Generated a remote control password")
    return server_config


class SettingsBridge:
    """
    Keeps [remote_ui] in the settings file and the running server in step.
    Failures of the remote control feature are logged, never raised.
    """

    def __init__(self, config: Config, server: ControlServer):
        self._config = config
        self._server = server

    async def apply(self) -> bool:
        """start the server if the settings say so"""
        return await self.set_enabled(bool(self._config.remote_ui["enabled"]))

    async def set_enabled(self, enabled: bool) -> bool:
        self._config.remote_ui["enabled"] = bool(enabled)
        try:
            await self._server.set_enabled(enabled)
        except ServerStartError as e:
            logging.exception(e)
            logging.warning("Remote control could not be started; local playback is unaffected")
            return False
        return True

    def set_password(self, password: str) -> bool:
        if not isinstance(password, str) or not password:
            logging.warning("Refusing to set an empty remote control password")
            return False
        self._config.remote_ui["password"] = password
        self._server.update_password(password)
        return True

    async def update_settings(self, settings: dict) -> bool:
        ok = True
        if settings.get("enabled") is not None:
            ok = await self.set_enabled(settings["enabled"]) and ok
        if settings.get("password") is not None:
            ok = self.set_password(settings["password"]) and ok
        return ok

    def status(self) -> dict:
        return {
            "enabled": self._server.is_enabled(),
            "running": self._server.is_running,
            "port": self._server.get_port(),
            "password": self._server.get_password(),
        }

    def url(self) -> Optional[str]:
        """None unless something is listening, even when enabled"""
        if not self._server.is_running:
            return None
        return f"http://localhost:{self._server.get_port()}"
