"""
Tests for runtime configuration and CLI overrides (telnetfs/config.py, telnetfs/main.py).

Run with: pytest tests/test_config.py -v
"""

import os
from unittest.mock import patch

import pytest

from telnetfs import main as main_module
from telnetfs.config import DEFAULT_MAX_LINE_BYTES, DEFAULT_PORT, MIN_MAX_LINE_BYTES, ServerConfig
from telnetfs.utils import clamp_int, resolve_runtime_paths, to_bool


class TestServerConfig:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = ServerConfig()
            cfg.load_from_env()
        assert cfg.PORT == DEFAULT_PORT == 1234
        assert cfg.HOST == "0.0.0.0"
        assert cfg.SERVER_ROOT == "server"
        assert cfg.MAX_LINE_BYTES == DEFAULT_MAX_LINE_BYTES
        assert cfg.SESSION_LOGS is False

    def test_env_overrides(self):
        env = {
            "TELNETFS_HOST": "127.0.0.1",
            "TELNETFS_PORT": "2323",
            "TELNETFS_ROOT": "/srv/files",
            "TELNETFS_MAX_LINE": "128",
            "TELNETFS_SESSION_LOGS": "yes",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = ServerConfig()
            cfg.load_from_env()
        assert cfg.HOST == "127.0.0.1"
        assert cfg.PORT == 2323
        assert cfg.SERVER_ROOT == "/srv/files"
        assert cfg.MAX_LINE_BYTES == 128
        assert cfg.SESSION_LOGS is True

    def test_invalid_env_values_fall_back(self):
        env = {"TELNETFS_PORT": "not-a-port", "TELNETFS_MAX_LINE": "1"}
        with patch.dict(os.environ, env, clear=True):
            cfg = ServerConfig()
            cfg.load_from_env()
        assert cfg.PORT == DEFAULT_PORT
        assert cfg.MAX_LINE_BYTES == MIN_MAX_LINE_BYTES


class TestHelpers:

    def test_clamp_int(self):
        assert clamp_int("5", 1, 0, 10) == 5
        assert clamp_int("bad", 3, 0, 10) == 3
        assert clamp_int(99, 3, 0, 10) == 10

    def test_to_bool(self):
        assert to_bool("on") is True
        assert to_bool("0") is False
        assert to_bool("maybe", True) is True
        assert to_bool(None) is False

    def test_runtime_paths(self, tmp_path):
        paths = resolve_runtime_paths(str(tmp_path / "server"), None)
        assert paths["server_root"] == str(tmp_path / "server")
        assert paths["root_tag"] == "server"
        assert paths["cache_root"].startswith(str(tmp_path / ".telnetfs-cache"))


class TestMain:

    def test_cli_overrides_env_and_starts_server(self, tmp_path, monkeypatch):
        started = {}

        class StubServer:
            def __init__(self, host, port, manager):
                started.update(host=host, port=port, root=manager.root, max_line=manager.max_line_bytes)

            def start(self):
                return self.__class__

            def serve_forever(self):
                raise KeyboardInterrupt

        monkeypatch.setattr(main_module, "TelnetServer", StubServer)
        monkeypatch.setattr(main_module, "config", ServerConfig())
        env = {"TELNETFS_PORT": "4000", "TELNETFS_HOST": "10.0.0.1"}
        with patch.dict(os.environ, env, clear=True):
            main_module.main(["--port", "4001", "--root", str(tmp_path / "files"), "--max-line", "256"])

        assert started["host"] == "10.0.0.1"
        assert started["port"] == 4001
        assert started["root"] == (tmp_path / "files").resolve()
        assert started["max_line"] == 256
        assert (tmp_path / "files").is_dir()

    def test_bad_port_is_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setattr(main_module, "config", ServerConfig())
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(SystemExit):
                main_module.main(["--port", "70000", "--root", str(tmp_path / "files")])
