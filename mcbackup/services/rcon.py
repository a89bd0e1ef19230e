# mcbackup/services/rcon.py
"""
Minecraft RCON Protocol Client

Handles:
- RCON connection and authentication
- Writing commands and reading correlated responses
- server.properties fallback for local servers
- Minecraft color code stripping
"""

import logging
import re
import socket
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class TransportError(ConnectionError):
    """The RCON session is broken: connect, write or read failed."""


def strip_minecraft_colors(text: str) -> str:
    """Strip Minecraft color/formatting codes (§X) from text"""
    return re.sub(r'§.', '', text)


def load_server_properties(path: Path) -> dict:
    """Load a server.properties file"""
    props = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    props[key.strip()] = value.strip()
    return props


@dataclass
class RCONConfig:
    """RCON configuration"""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 25575
    password: str = ""


def get_rcon_config(server_path: Optional[str]) -> Optional[RCONConfig]:
    """Read RCON settings from ``<server_path>/server.properties``, if present"""
    if not server_path:
        return None
    properties = Path(server_path).expanduser() / "server.properties"
    if not properties.exists():
        return None
    props = load_server_properties(properties)
    return RCONConfig(
        enabled=props.get("enable-rcon", "false").lower() == "true",
        host="127.0.0.1",
        port=int(props.get("rcon.port", "25575")),
        password=props.get("rcon.password", ""),
    )


class RCONClient:
    """Minecraft RCON protocol client"""

    SERVERDATA_AUTH = 3
    SERVERDATA_AUTH_RESPONSE = 2
    SERVERDATA_EXECCOMMAND = 2
    SERVERDATA_RESPONSE_VALUE = 0
    MAX_PAYLOAD_SIZE = 4096  # Largest response body a server sends in one packet
    MAX_PACKET_SIZE = MAX_PAYLOAD_SIZE + 10  # id + type + two null terminators

    def __init__(self, host: str, port: int, password: str, timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.password = password
        self.timeout = timeout
        self.socket: Optional[socket.socket] = None
        self.request_id = 0

    def _pack_packet(self, packet_type: int, payload: str) -> tuple[int, bytes]:
        """Pack a packet for sending, returning its request id"""
        self.request_id += 1
        payload_bytes = payload.encode("utf-8") + b"\x00\x00"
        length = 4 + 4 + len(payload_bytes)
        packet = struct.pack("<iii", length, self.request_id, packet_type) + payload_bytes
        return self.request_id, packet

    def _recv_exact(self, size: int) -> bytes:
        data = b""
        while len(data) < size:
            chunk = self.socket.recv(size - len(data))
            if not chunk:
                raise TransportError("Connection lost")
            data += chunk
        return data

    def _read_packet(self) -> tuple:
        """Read a packet from the socket"""
        length = struct.unpack("<i", self._recv_exact(4))[0]
        if length < 10 or length > self.MAX_PACKET_SIZE:
            raise TransportError(f"RCON packet size out of bounds: {length}")

        data = self._recv_exact(length)
        request_id = struct.unpack("<i", data[0:4])[0]
        packet_type = struct.unpack("<i", data[4:8])[0]
        payload = data[8:-2].decode("utf-8", errors="replace")

        return request_id, packet_type, payload

    def connect(self):
        """Connect and authenticate, raising TransportError on failure"""
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=5.0)
            # Commands block until the server answers (save-all can be slow)
            self.socket.settimeout(self.timeout)

            _, packet = self._pack_packet(self.SERVERDATA_AUTH, self.password)
            self.socket.sendall(packet)

            # Some servers send an empty RESPONSE_VALUE before the auth response
            request_id, packet_type, _ = self._read_packet()
            if packet_type == self.SERVERDATA_RESPONSE_VALUE:
                request_id, packet_type, _ = self._read_packet()
        except OSError as e:
            self.disconnect()
            raise TransportError(f"Failed to connect to RCON at {self.host}:{self.port}: {e}") from e

        # Auth failure returns -1
        if request_id == -1:
            self.disconnect()
            raise TransportError(f"RCON authentication failed at {self.host}:{self.port}")
        logger.info("[RCON] Connected to %s:%s", self.host, self.port)

    def write(self, command: str) -> int:
        """Send a command, returning the request id assigned to it"""
        if not self.socket:
            raise TransportError("Not connected")
        request_id, packet = self._pack_packet(self.SERVERDATA_EXECCOMMAND, command)
        try:
            self.socket.sendall(packet)
        except OSError as e:
            raise TransportError(f"Command write failed: {e}") from e
        return request_id

    def read(self) -> tuple[int, str]:
        """Read the next response as ``(request_id, payload)``"""
        if not self.socket:
            raise TransportError("Not connected")
        try:
            request_id, _, payload = self._read_packet()
        except OSError as e:
            raise TransportError(f"Response read failed: {e}") from e
        return request_id, payload

    def disconnect(self):
        """Close connection"""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None
