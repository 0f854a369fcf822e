"""Tests for sessions, the command relay and the player bridge."""

import logging

from conftest import FakeHost
from host_player import PlayerBridge
from remote_manager import CommandRelay, RemoteManager
from server_data import PlayerStateSnapshot, ServerConfig, ServerData, ServerOptions, generate_password
from sessions import AuthenticatedSession, ClientSession, passwords_match


class FakeConnection:
    remote_address = ("192.168.1.20", 50000)


class ExplodingHost(FakeHost):
    def send_command(self, command):
        raise RuntimeError("player window is gone")

    def player_state(self):
        raise RuntimeError("player window is gone")


class TestSessions:
    def test_only_matching_password_authenticates(self):
        session = ClientSession(FakeConnection())
        assert session.authenticate("aqua124", "aqua123") is None
        authenticated = session.authenticate("aqua123", "aqua123")
        assert isinstance(authenticated, AuthenticatedSession)
        assert authenticated.connection is session.connection
        assert authenticated.authenticated and not session.authenticated

    def test_unauthenticated_session_cannot_relay(self):
        assert not hasattr(ClientSession(FakeConnection()), "relay_command")

    def test_demote(self):
        demoted = AuthenticatedSession(FakeConnection()).demote()
        assert isinstance(demoted, ClientSession)

    def test_passwords_match_non_ascii(self):
        assert passwords_match("wachtwoord-é", "wachtwoord-é")
        assert not passwords_match("wachtwoord-e", "wachtwoord-é")

    def test_peername(self):
        assert ClientSession(FakeConnection()).peername == "192.168.1.20:50000"


class TestCommandRelay:
    def test_known_commands_reach_host(self):
        host = FakeHost()
        relay = CommandRelay(host)
        assert relay.dispatch("play")
        assert AuthenticatedSession(FakeConnection()).relay_command("fullscreen", relay)
        assert host.commands == ["play", "fullscreen"]

    def test_unknown_command_is_logged_and_ignored(self, caplog):
        host = FakeHost()
        with caplog.at_level(logging.WARNING):
            assert not CommandRelay(host).dispatch("rewind")
        assert host.commands == []
        assert "rewind" in caplog.text

    def test_host_failure_does_not_raise(self):
        assert not CommandRelay(ExplodingHost()).dispatch("stop")


class TestRemoteManager:
    def test_sessions_are_tracked_and_promoted(self):
        data = ServerData()
        manager = RemoteManager(data, FakeHost())
        connection = FakeConnection()
        session = manager.session_connected(connection)
        assert data.authenticated_connections() == []

        manager.session_authenticated(session.authenticate("pw", "pw"))
        assert data.authenticated_connections() == [connection]

        demoted = manager.session_rejected(data.sessions[connection])
        assert isinstance(demoted, ClientSession)
        assert data.authenticated_connections() == []

        manager.session_disconnected(connection)
        assert data.sessions == {}

    def test_promotion_after_drop_is_ignored(self):
        data = ServerData()
        manager = RemoteManager(data, FakeHost())
        session = manager.session_connected(FakeConnection())
        manager.drop_all_sessions()
        manager.session_authenticated(session.authenticate("pw", "pw"))
        assert data.sessions == {}

    def test_current_state_falls_back_to_default(self):
        assert RemoteManager(ServerData(), ExplodingHost()).current_player_state() == PlayerStateSnapshot()

    def test_broadcast_without_sessions_is_noop(self):
        RemoteManager(ServerData(), FakeHost()).broadcast_file_info("nothing.mp4")


class RecordingServer:
    def __init__(self, enabled):
        self.enabled = enabled
        self.states = []
        self.files = []

    def is_enabled(self):
        return self.enabled

    def broadcast_player_state(self, state):
        self.states.append(state)

    def broadcast_file_info(self, filename):
        self.files.append(filename)


class TestPlayerBridge:
    def test_forwards_while_enabled(self):
        server = RecordingServer(enabled=True)
        bridge = PlayerBridge(server)
        bridge.update_player_state(PlayerStateSnapshot(is_playing=True))
        bridge.update_file_info("c.mkv")
        assert server.states == [PlayerStateSnapshot(is_playing=True)]
        assert server.files == ["c.mkv"]

    def test_silent_while_disabled(self):
        server = RecordingServer(enabled=False)
        bridge = PlayerBridge(server)
        bridge.update_player_state(PlayerStateSnapshot())
        bridge.update_file_info("c.mkv")
        assert server.states == [] and server.files == []


class TestServerConfig:
    def test_empty_password_is_generated(self):
        config = ServerConfig.create(True, "")
        assert len(config.password) == 8
        assert config.password.isalnum()
        assert 3001 <= config.port <= 3999

    def test_given_values_are_kept(self):
        assert ServerConfig.create(False, "aqua123", port=3500) == ServerConfig(3500, "aqua123", False)

    def test_generated_passwords_differ(self):
        assert len({generate_password() for _ in range(20)}) > 1

    def test_options_from_settings(self, tmp_path):
        options = ServerOptions.from_settings({"bind_attempts": 3, "static_dir": str(tmp_path), "unused": 1})
        assert options.bind_attempts == 3
        assert options.static_dir == tmp_path
        assert ServerOptions.from_settings(None) == ServerOptions()
