import struct

import pytest

from mcbackup.services.rcon import RCONClient, TransportError, strip_minecraft_colors


class _FakeSocket:
    def __init__(self, incoming=b""):
        self.incoming = incoming
        self.sent = b""
        self.closed = False

    def recv(self, size):
        chunk, self.incoming = self.incoming[:min(size, 3)], self.incoming[min(size, 3):]
        return chunk

    def sendall(self, data):
        self.sent += data

    def close(self):
        self.closed = True


def _packet(request_id, packet_type, payload):
    body = struct.pack("<ii", request_id, packet_type) + payload.encode("utf-8") + b"\x00\x00"
    return struct.pack("<i", len(body)) + body


def _client(incoming=b""):
    client = RCONClient("127.0.0.1", 25575, "pw")
    client.socket = _FakeSocket(incoming)
    return client


def test_write_assigns_increasing_request_ids():
    client = _client()

    first = client.write("save-off")
    second = client.write("save-all")

    assert (first, second) == (1, 2)
    assert client.socket.sent == _packet(1, 2, "save-off") + _packet(2, 2, "save-all")


def test_read_returns_id_and_payload_across_partial_recv():
    client = _client(_packet(4, 0, "Saved the game"))

    assert client.read() == (4, "Saved the game")


def test_read_connection_lost():
    client = _client(_packet(4, 0, "Saved the game")[:6])

    with pytest.raises(TransportError):
        client.read()


def test_read_rejects_oversized_packet():
    client = _client(struct.pack("<i", 10_000))

    with pytest.raises(TransportError, match="out of bounds"):
        client.read()


def test_commands_require_connection():
    client = RCONClient("127.0.0.1", 25575, "pw")

    with pytest.raises(TransportError):
        client.write("list")
    with pytest.raises(TransportError):
        client.read()


def test_disconnect_closes_socket_once():
    client = _client()
    sock = client.socket

    client.disconnect()
    client.disconnect()

    assert sock.closed is True
    assert client.socket is None


def test_strip_minecraft_colors():
    assert strip_minecraft_colors("§aSaved §lthe game") == "Saved the game"


def test_read_accepts_full_size_response():
    payload = "x" * RCONClient.MAX_PAYLOAD_SIZE
    client = _client(_packet(9, 0, payload))

    assert client.read() == (9, payload)
