"""Shared test fixtures for aqua remote."""

import asyncio
import json

import pytest

from host_player import HostPlayer
from remote_manager import RemoteManager
from server_data import PlayerStateSnapshot, ServerConfig, ServerData, ServerOptions
from websocket_server import ControlServer

PASSWORD = "aqua123"


class FakeHost(HostPlayer):
    def __init__(self, state=None):
        self.commands = []
        self.state = state or PlayerStateSnapshot()

    def send_command(self, command):
        self.commands.append(command)

    def player_state(self):
        return self.state


def build_server(static_dir, host=None, password=PASSWORD, enabled=True, **options):
    host = host or FakeHost()
    data = ServerData()
    manager = RemoteManager(data, host)
    config = ServerConfig.create(enabled, password)
    server = ControlServer(config, ServerOptions(host="127.0.0.1", static_dir=static_dir, **options), manager)
    return server, data, host


async def wait_until(predicate, timeout=3.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


async def recv_json(connection, timeout=2.0):
    return json.loads(await asyncio.wait_for(connection.recv(), timeout))


async def http_get(port, path):
    """plain HTTP/1.1 GET; returns (status, content type, body)"""
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(f"GET {path} HTTP/1.1\r\nHost: 127.0.0.1:{port}\r\n\r\n".encode())
    await writer.drain()
    raw = await asyncio.wait_for(reader.read(), 2.0)
    writer.close()
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode().split("\r\n")
    status = int(lines[0].split()[1])
    headers = dict(line.split(": ", 1) for line in lines[1:])
    content_type = {k.lower(): v for k, v in headers.items()}.get("content-type")
    return status, content_type, body.decode()


@pytest.fixture
def static_dir(tmp_path):
    directory = tmp_path / "remote-ui"
    directory.mkdir()
    (directory / "index.html").write_text("<html><body>remote</body></html>")
    (directory / "remote-ui.js").write_text("console.log('remote');")
    return directory


@pytest.fixture
def missing_static_dir(tmp_path):
    return tmp_path / "not-built"
