"""
Unit tests for ServerBuilder.finalize() and Server lifecycle.
"""

import socket
import threading

import pytest

from cragweb import (
    AddressResolutionError,
    BindError,
    DuplicateErrorHandler,
    InvalidPoolSize,
    MissingErrorHandler,
    Request,
    Response,
    Server,
    ServerBuilder,
    ServerBuildError,
    ServerConfig,
    default_not_found_handler,
)


def hello_handler(request: Request) -> Response:
    return Response.ok("Hello, Crag-Web!")


def make_builder() -> ServerBuilder:
    return (Server.build()
        .register_handler(Request.get("/hello"), hello_handler)
        .register_error_handler(default_not_found_handler))


class TestServerBuilder:
    """Tests for the builder pattern."""

    def test_builder_pattern(self):
        with make_builder().finalize(("127.0.0.1", 0), 4) as server:
            host, port = server.address
            assert host == "127.0.0.1"
            assert port > 0
            assert server.pool.size == 4
            assert server.routes.lookup(Request.get("/hello")) is hello_handler

    def test_string_address(self):
        with make_builder().finalize("127.0.0.1:0", 1) as server:
            assert server.address[1] > 0

    def test_no_error_handler_fails(self):
        builder = Server.build().register_handler(Request.get("/hello"), hello_handler)

        with pytest.raises(MissingErrorHandler):
            builder.finalize(("127.0.0.1", 0), 4)

    def test_duplicate_error_handler(self):
        builder = make_builder()

        with pytest.raises(DuplicateErrorHandler):
            builder.register_error_handler(default_not_found_handler)

    def test_invalid_pool_size(self):
        with pytest.raises(InvalidPoolSize):
            make_builder().finalize(("127.0.0.1", 0), 0)

    def test_missing_error_handler_checked_before_pool_size(self):
        with pytest.raises(MissingErrorHandler):
            Server.build().finalize(("127.0.0.1", 0), 0)

    def test_pool_size_checked_before_bind(self, free_port):
        with socket.socket() as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            with pytest.raises(InvalidPoolSize):
                make_builder().finalize(("127.0.0.1", free_port), 0)

    def test_unresolvable_address(self):
        with pytest.raises(AddressResolutionError):
            make_builder().finalize(("no-such-host.invalid", 0), 1)

    def test_address_without_port(self):
        with pytest.raises(AddressResolutionError):
            make_builder().finalize("localhost", 1)

    def test_address_in_use(self, free_port):
        with socket.socket() as blocker:
            blocker.bind(("127.0.0.1", free_port))
            blocker.listen(1)

            with pytest.raises(BindError):
                make_builder().finalize(("127.0.0.1", free_port), 1)

    def test_build_errors_share_a_base(self):
        with pytest.raises(ServerBuildError):
            Server.build().finalize(("127.0.0.1", 0), 1)

    def test_failed_build_releases_socket(self, free_port, monkeypatch):
        """If starting the pool fails, the bound port is free again."""
        def broken_build(size):
            raise RuntimeError("no threads today")

        monkeypatch.setattr("cragweb.server.ThreadPool.build", broken_build)

        with pytest.raises(RuntimeError):
            make_builder().finalize(("127.0.0.1", free_port), 1)

        with socket.socket() as squatter:
            squatter.bind(("127.0.0.1", free_port))

    def test_decorators(self):
        builder = Server.build()

        @builder.get("/a")
        def a(request):
            return Response.ok("a")

        @builder.post("/b")
        def b(request):
            return Response.ok("b")

        @builder.error_handler
        def fallback(request):
            return Response.not_found()

        with builder.finalize(("127.0.0.1", 0), 1) as server:
            assert server.routes.lookup(Request.get("/a")) is a
            assert server.routes.lookup(Request.post("/b")) is b
            assert server.routes.lookup(Request.get("/c")) is fallback

    def test_finalize_from_config(self):
        config = ServerConfig(port=0, workers=2, backlog=16)

        with make_builder().finalize_from_config(config) as server:
            assert server.pool.size == 2
            assert server.address[1] > 0

    def test_finalize_from_invalid_config(self):
        with pytest.raises(ValueError):
            make_builder().finalize_from_config(ServerConfig(workers=0))


class TestServerLifecycle:
    """Tests for run/shutdown/close."""

    def test_close_without_run(self, free_port):
        server = make_builder().finalize(("127.0.0.1", free_port), 2)
        server.close()
        server.close()

        assert server.pool.is_closed
        with socket.socket() as squatter:
            squatter.bind(("127.0.0.1", free_port))

    def test_shutdown_before_run_returns(self):
        server = make_builder().finalize(("127.0.0.1", 0), 1)
        server.shutdown()

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert server.pool.is_closed

    def test_run_and_shutdown(self):
        server = make_builder().finalize(("127.0.0.1", 0), 2)
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()

        server.shutdown()
        thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert not server.is_running
        server.close()
