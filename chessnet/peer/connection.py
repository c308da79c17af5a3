"""
The single TCP link between the two peers.

Reads come in two flavours:
  - try_read(): one non-blocking attempt, safe to call every frame
  - read_blocking(): polls try_read() until a packet or a deadline, handshake only
"""

from __future__ import annotations

import contextlib
import select
import socket
import time
from typing import Optional, Type

from chessnet.common.config import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_POLL_INTERVAL
from chessnet.common.framing import HDR, MAX_FRAME, FrameBuffer, FramingError, encode_frame, safe_json_dumps
from chessnet.common.protocol import (
    Color,
    DecodeError,
    EncodeError,
    P,
    Packet,
    Role,
    decode,
    encode,
    to_wire,
)


RECV_CHUNK = 4096
# stop pulling from the socket once a largest-possible frame is buffered
FILL_LIMIT = HDR.size + MAX_FRAME
WRITE_TIMEOUT = 5.0


class ReadError(Exception):
    pass


class ConnectionClosed(ReadError):
    pass


class HandshakeTimeout(ReadError):
    pass


class WriteError(Exception):
    pass


class ColorAlreadyAssigned(Exception):
    pass


def open_listener(host: str, port: int) -> socket.socket:
    ls = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        ls.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        ls.bind((host, port))
        ls.listen(1)
    except OSError:
        ls.close()
        raise
    return ls


class Connection:
    def __init__(
        self,
        sock: socket.socket,
        role: Role,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        trace: bool = False,
    ):
        self._sock: Optional[socket.socket] = sock
        self._role = Role(role)
        self._local_color: Optional[Color] = None
        self._rx = FrameBuffer()
        self._eof = False
        self.poll_interval = poll_interval
        self.trace = trace
        sock.setblocking(False)

    # ---------------------------
    # establishment
    # ---------------------------
    @classmethod
    def accept(cls, listener: socket.socket, **kwargs) -> "Connection":
        """Block until one peer connects, then stop listening."""
        try:
            sock, _addr = listener.accept()
        finally:
            listener.close()
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return cls(sock, Role.SERVER, **kwargs)

    @classmethod
    def server(cls, port: int, host: str = "0.0.0.0", **kwargs) -> "Connection":
        return cls.accept(open_listener(host, port), **kwargs)

    @classmethod
    def client(cls, host: str, port: int, connect_timeout: Optional[float] = 10.0, **kwargs) -> "Connection":
        sock = socket.create_connection((host, int(port)), timeout=connect_timeout)
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return cls(sock, Role.CLIENT, **kwargs)

    # ---------------------------
    # identity
    # ---------------------------
    @property
    def role(self) -> Role:
        return self._role

    @property
    def local_color(self) -> Optional[Color]:
        return self._local_color

    def assign_color(self, color: Color) -> None:
        if self._local_color is not None:
            raise ColorAlreadyAssigned(f"already:{self._local_color.value}")
        self._local_color = Color(color)

    @property
    def closed(self) -> bool:
        return self._sock is None

    # ---------------------------
    # write
    # ---------------------------
    def write(self, packet: Packet) -> None:
        sock = self._require_sock(WriteError)
        try:
            data = encode_frame(encode(packet))
        except (EncodeError, FramingError) as e:
            raise WriteError(f"encode:{e}") from e
        if self.trace:
            print(f"[Net] send {safe_json_dumps(to_wire(packet))}")
        view = memoryview(data)
        deadline = time.monotonic() + WRITE_TIMEOUT
        try:
            while view:
                try:
                    sent = sock.send(view)
                except BlockingIOError:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise WriteError("send_timeout")
                    select.select([], [sock], [], remaining)
                    continue
                view = view[sent:]
        except OSError as e:
            raise WriteError(f"io:{e}") from e

    # ---------------------------
    # read
    # ---------------------------
    def _fill(self, sock: socket.socket) -> None:
        while not self._eof and len(self._rx) < FILL_LIMIT:
            try:
                chunk = sock.recv(RECV_CHUNK)
            except (BlockingIOError, InterruptedError):
                return
            except OSError as e:
                raise ReadError(f"io:{e}") from e
            if not chunk:
                self._eof = True
                return
            self._rx.feed(chunk)

    def try_read(self, expected: Type[P]) -> Optional[P]:
        """Next packet if one has fully arrived, else None. Never blocks."""
        sock = self._require_sock(ReadError)
        self._fill(sock)
        try:
            frame = self._rx.next_frame()
        except FramingError as e:
            raise ReadError(f"framing:{e}") from e
        if frame is None:
            if self._eof:
                raise ConnectionClosed("peer_closed")
            return None
        try:
            packet = decode(frame, expected)
        except DecodeError as e:
            raise ReadError(f"decode:{e}") from e
        if self.trace:
            print(f"[Net] recv {safe_json_dumps(to_wire(packet))}")
        return packet

    def read_blocking(self, expected: Type[P], timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> P:
        deadline = time.monotonic() + timeout
        while True:
            packet = self.try_read(expected)
            if packet is not None:
                return packet
            if time.monotonic() >= deadline:
                raise HandshakeTimeout(f"no_{expected.__name__.lower()}_within:{timeout}s")
            time.sleep(self.poll_interval)

    # ---------------------------
    # lifecycle
    # ---------------------------
    def _require_sock(self, err: type) -> socket.socket:
        if self._sock is None:
            raise err("closed")
        return self._sock

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
