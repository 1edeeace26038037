"""
Unit tests for Connection: incremental reads, sends, close.

Uses socket.socketpair() so no network is involved: `client` plays the
remote peer, the Connection wraps `server_side`.
"""

import socket
import threading
import time

import pytest

from minihttpd.core.connection import Connection, ConnectionState, DRAIN_TIMEOUT
from minihttpd.http.request import RequestTooLarge


@pytest.fixture
def pair():
    server_side, client = socket.socketpair()
    yield server_side, client
    for sock in (server_side, client):
        try:
            sock.close()
        except OSError:
            pass


def make_conn(sock, **kwargs) -> Connection:
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


class TestReadRequest:

    def test_reads_across_small_chunks(self, pair):
        server_side, client = pair
        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: 11\r\n\r\nhello world"
        client.sendall(raw)

        conn = make_conn(server_side, buffer_size=4)

        assert conn.read_request() == raw

    def test_waits_for_body_sent_later(self, pair):
        server_side, client = pair
        client.sendall(b"POST /files/a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhe")

        def send_rest():
            client.sendall(b"llo")

        timer = threading.Timer(0.1, send_rest)
        timer.start()
        try:
            data = make_conn(server_side, timeout=5.0).read_request()
        finally:
            timer.join()

        assert data.endswith(b"\r\n\r\nhello")

    def test_drops_bytes_after_body(self, pair):
        server_side, client = pair
        client.sendall(b"POST /x HTTP/1.1\r\nContent-Length: 2\r\n\r\nabGET / HTTP/1.1\r\n\r\n")

        data = make_conn(server_side).read_request()

        assert data == b"POST /x HTTP/1.1\r\nContent-Length: 2\r\n\r\nab"

    def test_terminator_split_byte_by_byte(self, pair):
        server_side, client = pair
        raw = b"POST /x HTTP/1.1\r\nContent-Length: 2\r\n\r\nok"
        client.sendall(raw)

        assert make_conn(server_side, buffer_size=1).read_request() == raw

    def test_large_body_reads_in_linear_time(self, pair):
        """Several MiB in 1 KiB reads finish quickly and arrive intact."""
        server_side, client = pair
        body = bytes(range(256)) * (8 * 4096)  # 8 MiB
        raw = b"POST /files/big HTTP/1.1\r\nContent-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body
        sender = threading.Thread(target=client.sendall, args=(raw,), daemon=True)

        start = time.time()
        sender.start()
        data = make_conn(server_side, timeout=10.0).read_request()
        elapsed = time.time() - start
        sender.join(5.0)

        assert type(data) is bytes
        assert data == raw
        assert elapsed < 3.0

    def test_no_content_length_means_headers_only(self, pair):
        server_side, client = pair
        client.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\nextra")

        assert make_conn(server_side).read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"

    def test_peer_closes_without_sending(self, pair):
        server_side, client = pair
        client.close()

        assert make_conn(server_side).read_request() is None

    def test_peer_closes_before_terminator(self, pair):
        server_side, client = pair
        client.sendall(b"GET /echo/x HTTP/1.1\r\nHost")
        client.shutdown(socket.SHUT_WR)

        assert make_conn(server_side).read_request() == b"GET /echo/x HTTP/1.1\r\nHost"

    def test_peer_closes_mid_body(self, pair):
        server_side, client = pair
        client.sendall(b"POST /x HTTP/1.1\r\nContent-Length: 100\r\n\r\nshort")
        client.shutdown(socket.SHUT_WR)

        data = make_conn(server_side).read_request()

        assert data.endswith(b"\r\n\r\nshort")

    def test_declared_body_too_large(self, pair):
        server_side, client = pair
        client.sendall(b"POST /x HTTP/1.1\r\nContent-Length: 1000\r\n\r\n")

        with pytest.raises(RequestTooLarge) as exc_info:
            make_conn(server_side, max_request_size=100).read_request()

        assert exc_info.value.status_code == 413

    def test_headers_too_large(self, pair):
        server_side, client = pair
        client.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 500)

        with pytest.raises(RequestTooLarge):
            make_conn(server_side, max_request_size=100).read_request()

    def test_timeout(self, pair):
        server_side, client = pair
        client.sendall(b"GET / HTTP/1.1\r\n")  # never finished

        with pytest.raises(TimeoutError):
            make_conn(server_side, timeout=0.1).read_request()

    @pytest.mark.parametrize("head,expected", [
        (b"POST / HTTP/1.1\r\nContent-Length: 12", 12),
        (b"POST / HTTP/1.1\r\ncontent-length: 7", 7),
        (b"POST / HTTP/1.1\r\nContent-Length: 1\r\nContent-Length: 3", 3),
        (b"POST / HTTP/1.1\r\nContent-Length: -1", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: abc", 0),
        (b"POST / HTTP/1.1\r\nHost: x", 0),
        (b"Content-Length: 5", 0),  # request line is never a header
    ])
    def test_parse_content_length(self, head, expected):
        assert Connection._parse_content_length(head) == expected


class TestSendAndClose:

    def test_send_response(self, pair):
        server_side, client = pair
        conn = make_conn(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        assert conn.state == ConnectionState.WRITTEN
        assert client.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_send_to_closed_peer(self, pair):
        server_side, client = pair
        client.close()
        conn = make_conn(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is False
        assert conn.state == ConnectionState.ACCEPTED

    def test_close_sends_eof(self, pair):
        server_side, client = pair
        client.shutdown(socket.SHUT_WR)
        conn = make_conn(server_side)

        conn.close()

        assert conn.state == ConnectionState.CLOSED
        assert client.recv(1024) == b""

    def test_close_stops_draining_a_trickling_peer(self, pair):
        server_side, client = pair
        conn = make_conn(server_side)
        stop = threading.Event()

        def trickle():
            while not stop.is_set():
                try:
                    client.sendall(b"x")
                except OSError:
                    return
                time.sleep(0.05)

        sender = threading.Thread(target=trickle, daemon=True)
        sender.start()
        try:
            start = time.time()
            conn.close()
            elapsed = time.time() - start
        finally:
            stop.set()
            sender.join(5.0)

        assert conn.state == ConnectionState.CLOSED
        assert elapsed < DRAIN_TIMEOUT + 0.5

    def test_close_twice(self, pair):
        server_side, client = pair
        client.shutdown(socket.SHUT_WR)
        conn = make_conn(server_side)

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes_on_error(self, pair):
        server_side, client = pair
        client.shutdown(socket.SHUT_WR)
        conn = make_conn(server_side)

        with pytest.raises(RuntimeError):
            with conn:
                raise RuntimeError("boom")

        assert conn.state == ConnectionState.CLOSED


class TestConnection:

    def test_identity(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side)

        assert conn.client_ip == "127.0.0.1"
        assert len(conn.id) == 8
        assert conn.state == ConnectionState.ACCEPTED
        assert conn.age >= 0
