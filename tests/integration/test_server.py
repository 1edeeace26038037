"""
End-to-end tests: a real server on a free port, raw bytes over TCP.
"""

import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from minihttpd import HTTPServer, ServerConfig, create_app
from minihttpd.handlers import build_router
from minihttpd.http import RouteHandler


class TestRoutes:

    def test_root(self, test_server):
        response = test_server.send(b"GET / HTTP/1.1\r\nHost: localhost:4221\r\n\r\n")

        assert response.raw == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_echo(self, test_server):
        response = test_server.request("GET", "/echo/abc")

        assert response.raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 3\r\n"
            b"\r\n"
            b"abc"
        )

    def test_echo_empty(self, test_server):
        response = test_server.request("GET", "/echo/")

        assert response.status == 200
        assert response.headers["Content-Length"] == "0"
        assert response.body == b""

    def test_user_agent(self, test_server):
        response = test_server.request("GET", "/user-agent", headers={"User-Agent": "foobar/1.2.3"})

        assert response.status == 200
        assert response.headers == {"Content-Type": "text/plain", "Content-Length": "12"}
        assert response.body == b"foobar/1.2.3"

    def test_user_agent_case_insensitive(self, test_server):
        response = test_server.send(b"GET /user-agent HTTP/1.1\r\nuSeR-aGeNt: mixed\r\n\r\n")

        assert response.body == b"mixed"

    def test_user_agent_absent(self, test_server):
        response = test_server.request("GET", "/user-agent")

        assert response.status == 200
        assert response.headers["Content-Length"] == "0"
        assert response.body == b""

    def test_unknown_route(self, test_server):
        response = test_server.request("GET", "/index.html")

        assert response.raw == b"HTTP/1.1 404 Not Found\r\n\r\n"

    def test_malformed_request_line(self, test_server):
        response = test_server.send(b"GARBAGE\r\n\r\n")

        assert response.raw == b"HTTP/1.1 400 Bad Request\r\n\r\n"

    @pytest.mark.parametrize("path", ["/", "/echo/same", "/user-agent", "/nowhere"])
    def test_repeated_requests_are_identical(self, test_server, path):
        responses = [
            test_server.request("GET", path, headers={"User-Agent": "repeat/1.0"}).raw
            for _ in range(5)
        ]

        assert len(set(responses)) == 1

    def test_silent_client(self, test_server):
        """A client that connects and leaves gets no response and breaks nothing."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as sock:
            sock.shutdown(socket.SHUT_WR)
            assert sock.recv(1024) == b""

        assert test_server.request("GET", "/").status == 200

    def test_connection_closed_after_response(self, test_server):
        """No keep-alive: the server closes after one response."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as sock:
            sock.sendall(b"GET / HTTP/1.1\r\nConnection: keep-alive\r\n\r\n")
            data = b""
            while True:
                chunk = sock.recv(1024)
                if not chunk:
                    break
                data += chunk

        assert data == b"HTTP/1.1 200 OK\r\n\r\n"


class TestFiles:

    def test_get_file(self, test_server, files_dir: Path):
        (files_dir / "foo").write_bytes(b"Hello, World!")

        response = test_server.request("GET", "/files/foo")

        assert response.raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: application/octet-stream\r\n"
            b"Content-Length: 13\r\n"
            b"\r\n"
            b"Hello, World!"
        )

    def test_get_missing_file(self, test_server):
        response = test_server.request("GET", "/files/non_existent_file")

        assert response.raw == b"HTTP/1.1 404 Not Found\r\n\r\n"

    def test_post_then_get_binary(self, test_server, files_dir: Path):
        payload = bytes(range(256)) * 64  # 16 KiB, larger than one recv()

        post = test_server.request("POST", "/files/blob.bin", body=payload)
        get = test_server.request("GET", "/files/blob.bin")

        assert post.raw == b"HTTP/1.1 201 Created\r\n\r\n"
        assert (files_dir / "blob.bin").read_bytes() == payload
        assert get.status == 200
        assert get.headers["Content-Length"] == str(len(payload))
        assert get.body == payload

    def test_post_multi_megabyte_body(self, test_server, files_dir: Path):
        payload = bytes(range(256)) * (8 * 4096)  # 8 MiB, under the default cap

        start = time.time()
        post = test_server.request("POST", "/files/big", body=payload)
        elapsed = time.time() - start

        assert post.status == 201
        assert (files_dir / "big").read_bytes() == payload
        assert elapsed < 3.0

    def test_post_latest_wins(self, test_server, files_dir: Path):
        for body in (b"first version, quite long", b"second", b"third!"):
            assert test_server.request("POST", "/files/note", body=body).status == 201

        assert test_server.request("GET", "/files/note").body == b"third!"

    def test_other_method_not_allowed(self, test_server, files_dir: Path):
        (files_dir / "foo").write_bytes(b"keep me")

        response = test_server.request("DELETE", "/files/foo")

        assert response.status == 405
        assert response.headers == {"Allow": "GET, POST"}
        assert (files_dir / "foo").exists()

    def test_traversal_forbidden(self, test_server, files_dir: Path):
        (files_dir.parent / "secret").write_bytes(b"top secret")

        response = test_server.request("GET", "/files/../secret")

        assert response.raw == b"HTTP/1.1 403 Forbidden\r\n\r\n"

    def test_no_directory(self, serve, free_port: int):
        server = serve(ServerConfig(host="127.0.0.1", port=free_port, log_level="WARNING"))

        get = server.request("GET", "/files/foo")
        post = server.request("POST", "/files/foo", body=b"x")

        assert get.status == 404
        assert post.status == 500


class TestConcurrency:

    def test_parallel_echo(self, test_server):
        values = [f"value-{i}" for i in range(20)]

        with ThreadPoolExecutor(max_workers=10) as pool:
            responses = list(pool.map(lambda v: test_server.request("GET", f"/echo/{v}"), values))

        assert [r.body.decode() for r in responses] == values

    def test_slow_client_does_not_block_others(self, test_server):
        """A half-sent request holds only its own thread."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as slow:
            slow.sendall(b"GET /echo/slow HTTP/1.1\r\n")  # headers never finished

            start = time.time()
            response = test_server.request("GET", "/echo/fast")

            assert response.body == b"fast"
            assert time.time() - start < 2.0

    def test_large_request_is_rejected(self, serve, files_dir: Path):
        server = serve(ServerConfig(
            host="127.0.0.1", port=0, directory=str(files_dir),
            max_request_size=1024, log_level="WARNING",
        ))

        response = server.send(
            b"POST /files/big HTTP/1.1\r\nContent-Length: 5000\r\n\r\n" + b"x" * 5000
        )

        assert response.status == 413
        assert not (files_dir / "big").exists()

    def test_connection_cap_answers_503(self, serve):
        server = serve(ServerConfig(host="127.0.0.1", port=0, max_connections=1, log_level="WARNING"))

        with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as holder:
            holder.sendall(b"GET / HTTP/1.1\r\n")  # occupies the only slot
            deadline = time.time() + 5.0
            while server.server.supervisor.active_count < 1 and time.time() < deadline:
                time.sleep(0.01)

            rejected = server.request("GET", "/")

        assert rejected.raw == b"HTTP/1.1 503 Service Unavailable\r\n\r\n"
        assert server.server.supervisor.stats["rejected"] == 1

    def test_trickling_rejected_client_does_not_stall_accept(self, serve):
        """A rejected client that keeps sending must not hold up the next one."""
        server = serve(ServerConfig(host="127.0.0.1", port=0, max_connections=1, log_level="WARNING"))
        supervisor = server.server.supervisor
        stop = threading.Event()

        def wait_for(condition):
            deadline = time.time() + 5.0
            while not condition() and time.time() < deadline:
                time.sleep(0.01)

        def trickle(sock):
            while not stop.is_set():
                try:
                    sock.sendall(b"x")
                except OSError:
                    return
                time.sleep(0.1)

        with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as holder, \
                socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as trickler:
            sender = threading.Thread(target=trickle, args=(trickler,), daemon=True)
            try:
                holder.sendall(b"GET / HTTP/1.1\r\n")
                wait_for(lambda: supervisor.active_count >= 1)
                sender.start()
                wait_for(lambda: supervisor.stats["rejected"] >= 1)

                # Free the only slot
                holder.sendall(b"\r\n")
                holder.shutdown(socket.SHUT_WR)
                while holder.recv(1024):
                    pass
                wait_for(lambda: supervisor.active_count == 0)

                start = time.time()
                response = server.request("GET", "/echo/ok")
                elapsed = time.time() - start
            finally:
                stop.set()
                sender.join(5.0)

        assert supervisor.stats["rejected"] == 1
        assert response.body == b"ok"
        assert elapsed < 1.0


class TestErrorsAndLogging:

    def test_handler_exception_is_500(self, serve, caplog):
        class Broken(RouteHandler):
            def handle(self, request, config):
                raise RuntimeError("kaboom")

        router = build_router()
        router.add_exact("/broken", Broken)
        server = serve(ServerConfig(host="127.0.0.1", port=0, log_level="WARNING"), router=router)

        with caplog.at_level(logging.ERROR, logger="minihttpd.server"):
            broken = server.request("GET", "/broken")
        healthy = server.request("GET", "/echo/still-alive")

        assert broken.raw == b"HTTP/1.1 500 Internal Server Error\r\n\r\n"
        assert healthy.body == b"still-alive"
        assert "kaboom" in caplog.text

    def test_access_log(self, serve, config: ServerConfig, caplog):
        server = serve(create_app(config))

        with caplog.at_level(logging.INFO, logger="minihttpd.access"):
            server.request("GET", "/echo/logged")

        assert '"GET /echo/logged" 200 6' in caplog.text

    def test_shutdown_stops_run(self, config: ServerConfig):
        server = HTTPServer(config)
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        assert server.wait_until_ready(5.0)
        port = server.address[1]

        server.shutdown()
        thread.join(5.0)

        assert not thread.is_alive()
        with pytest.raises(OSError):
            socket.create_connection(("127.0.0.1", port), timeout=1.0)
