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
from pathlib import Path

import aiofiles
import tomlkit
import tomlkit.exceptions
import voluptuous.error
from voluptuous import All, Coerce, Length, Optional, Range, Required, Schema


class ConfigurationLoadError(Exception): pass


class Config:
    settings: tomlkit.TOMLDocument
    settings_opened: bool = False

    def __init__(self, settings_location: Path):
        self.settings_location = settings_location
        self.validated: dict = {}

        self.settings_schema = Schema({
            Required('remote_ui'): {
                Required('enabled'): bool,
                Required('password'): All(str, Length(max=256)),
            },
            Optional('server', default={}): {
                Optional('host'): str,
                Optional('bind_attempts'): All(int, Range(min=1, max=1000)),
                Optional('handshake_timeout'): All(Coerce(float), Range(min=0.1)),
                Optional('auth_timeout'): All(Coerce(float), Range(min=0.1)),
                Optional('ping_interval'): All(Coerce(float), Range(min=1)),
                Optional('static_dir'): All(str, Length(min=1)),
            },
        })

    async def initialize(self):
        try:
            async with aiofiles.open(self.settings_location, 'r') as settings_file:
                file_data = await settings_file.read()
                self.settings = tomlkit.parse(file_data)
                logging.debug("Loaded Settings without toml format error")
                logging.debug("Validating against Schema.")
                self.validated = self.settings_schema(self.settings.unwrap())
                self.settings_opened = True
                logging.debug("Validated against Schema.")
        except FileNotFoundError as e:
            logging.exception(e)
            logging.warning(
                f"Could not find {self.settings_location}. Copy from .example/settings.toml to {self.settings_location}")
            raise ConfigurationLoadError() from e
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not open file {self.settings_location}")
            raise ConfigurationLoadError() from e
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Settings in {self.settings_location} are invalid")
            raise ConfigurationLoadError() from e
        except voluptuous.error.MultipleInvalid as e:
            logging.exception(e)
            logging.warning(f"Settings in {self.settings_location} do not match expected format")
            logging.warning(f"Issue configuration item: {e.path}")
            raise ConfigurationLoadError() from e

        logging.info(f"Settings loaded.")

    @property
    def remote_ui(self) -> dict:
        return self.settings["remote_ui"]

    @property
    def server(self) -> dict:
        return self.validated.get("server", {})

    async def close(self):
        if self.settings_opened is True:
            async with aiofiles.open(self.settings_location, 'w') as settings_file:
                await settings_file.write(tomlkit.dumps(self.settings))
            logging.info("Settings saved.")
