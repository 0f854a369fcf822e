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
import hmac
from typing import ClassVar, Optional

from websockets.asyncio.server import ServerConnection

"""
Remote sessions are either waiting for the password or authenticated.

Only AuthenticatedSession can reach the command relay, so a command from a
connection that never authenticated has no code path into the host player.

The password is compared in constant time but is otherwise a plain shared
secret held in memory. The control channel trusts the local network it is
bound to and carries no transport encryption.
"""


def passwords_match(candidate: str, expected: str) -> bool:
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


@dataclasses.dataclass(eq=False)
class _Session:
    connection: ServerConnection
    authenticated: ClassVar[bool] = False

    @property
    def peername(self) -> str:
        address = self.connection.remote_address
        if not address:
            return "<unknown>"
        return f"{address[0]}:{address[1]}"

    def authenticate(self, password: str, current_password: str) -> Optional["AuthenticatedSession"]:
        if passwords_match(password, current_password):
            return AuthenticatedSession(self.connection)
        return None


@dataclasses.dataclass(eq=False)
class ClientSession(_Session):
    """
    connected, password not (yet) accepted
    """


@dataclasses.dataclass(eq=False)
class AuthenticatedSession(_Session):
    """
    password accepted; receives broadcasts and may issue commands
    """
    authenticated: ClassVar[bool] = True

    def relay_command(self, command: str, relay) -> bool:
        return relay.dispatch(command, self.peername)

    def demote(self) -> ClientSession:
        return ClientSession(self.connection)
