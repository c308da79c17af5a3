"""
Length-prefixed framing helpers (TCP).

Wire format:
  [4-byte length (uint32, network byte order)] [payload bytes]

Constraints:
  - 0 < length <= 64 KiB

The peer socket is non-blocking, so frames are reassembled from whatever
chunks recv() hands back. A partial frame simply stays in the buffer.
"""

from __future__ import annotations

import json
import struct
from typing import Any, Optional


HDR = struct.Struct("!I")
MAX_FRAME = 64 * 1024


class FramingError(Exception):
    pass


def encode_frame(payload: bytes) -> bytes:
    if not payload or len(payload) > MAX_FRAME:
        raise FramingError("bad frame size")
    return HDR.pack(len(payload)) + payload


class FrameBuffer:
    """Accumulates raw bytes and hands out complete frame payloads."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def feed(self, chunk: bytes) -> None:
        self._buf.extend(chunk)

    def next_frame(self) -> Optional[bytes]:
        if len(self._buf) < HDR.size:
            return None
        (length,) = HDR.unpack_from(self._buf, 0)
        if length == 0 or length > MAX_FRAME:
            raise FramingError("bad length")
        end = HDR.size + length
        if len(self._buf) < end:
            return None
        payload = bytes(self._buf[HDR.size:end])
        del self._buf[:end]
        return payload


def safe_json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True)
