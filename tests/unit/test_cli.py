"""
Unit tests for the command-line entry point.
"""

import socket

import pytest

from cragweb import Request, __version__
from cragweb import __main__ as cli


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Keep main() from reconfiguring the test process's root logger."""
    monkeypatch.setattr(cli, "setup_logging", lambda level, log_format: None)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults_from_env(self, monkeypatch):
        monkeypatch.setenv("CRAG_PORT", "9999")
        monkeypatch.setenv("CRAG_WORKERS", "3")

        args = cli.parse_args([])

        assert args.port == 9999
        assert args.workers == 3

    def test_flags_override_env(self, monkeypatch):
        monkeypatch.setenv("CRAG_PORT", "9999")

        args = cli.parse_args(["--port", "1234", "--log-level", "debug", "--log-format", "json"])

        assert args.port == 1234
        assert args.log_level == "DEBUG"
        assert args.log_format == "json"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Tests for main()."""

    def test_demo_routes(self):
        with cli.build_app().finalize(("127.0.0.1", 0), 1) as server:
            routes = server.routes
            assert routes.lookup(Request.get("/hello"))(Request.get("/hello")).body == "Hello, Crag-Web!"
            assert routes.lookup(Request.post("/echo"))(Request.post("/echo", "hi")).body == "hi"
            assert routes.lookup(Request.get("/nowhere"))(Request.get("/nowhere")).status == 404

            with pytest.raises(RuntimeError):
                routes.lookup(Request.get("/error"))(Request.get("/error"))

    def test_invalid_config_exits_1(self, capsys):
        assert cli.main(["--port", "70000"]) == 1
        assert "Invalid port" in capsys.readouterr().err

    def test_bind_error_exits_1(self, capsys, free_port):
        with socket.socket() as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            assert cli.main(["--port", str(free_port)]) == 1

        assert "Error:" in capsys.readouterr().err

    def test_bad_env_exits_1(self, monkeypatch, capsys):
        monkeypatch.setenv("CRAG_WORKERS", "many")

        assert cli.main([]) == 1
