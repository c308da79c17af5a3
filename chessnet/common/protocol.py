"""
Peer-to-peer chess protocol.

Every packet is one frame (see framing.py) whose payload is a compact JSON
object tagged by "type":

  - start: { type: 'start', isWhite: bool, name?: str, fen?: str, time?: ms, inc?: ms }
  - move:  { type: 'move', from: [x, y], to: [x, y], promotion?: str, forfeit: bool, offerDraw: bool }
  - ack:   { type: 'ack', ok: bool, endState?: str }

Optional fields are left out when unset. Unknown fields are ignored on decode.
Durations must be whole, non-negative milliseconds.

The payload is JSON rather than a binary map codec: the 4-byte length header
already makes decoding over a stream unambiguous, and a field-name-tagged JSON
object gives the same self-describing, map-like shape (absent optionals,
tolerated extra fields, a type tag a decoder can reject).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, TypeVar, Union

from chessnet.common.framing import MAX_FRAME


Square = Tuple[int, int]

BOARD_SIZE = 8


class Role(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class Color(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opposite(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class PieceKind(str, Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


class EndState(str, Enum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW = "draw"
    RESIGNATION = "resignation"


class EncodeError(Exception):
    pass


class DecodeError(Exception):
    pass


@dataclass(frozen=True)
class Start:
    isWhite: bool
    name: Optional[str] = None
    fen: Optional[str] = None
    time: Optional[timedelta] = None
    inc: Optional[timedelta] = None


@dataclass(frozen=True)
class Move:
    origin: Square
    dest: Square
    promotion: Optional[PieceKind] = None
    forfeit: bool = False
    offerDraw: bool = False


@dataclass(frozen=True)
class Ack:
    ok: bool
    endState: Optional[EndState] = None


Packet = Union[Start, Move, Ack]
P = TypeVar("P", Start, Move, Ack)

PACKET_TAGS: Dict[type, str] = {Start: "start", Move: "move", Ack: "ack"}


def on_board(sq: Square) -> bool:
    return 0 <= sq[0] < BOARD_SIZE and 0 <= sq[1] < BOARD_SIZE


# ---------------------------
# encode
# ---------------------------
def _ms(d: Any, field: str) -> int:
    # whole non-negative milliseconds only, so decode(encode(x)) == x
    if not isinstance(d, timedelta) or d < timedelta(0) or d.microseconds % 1000:
        raise EncodeError(f"bad:{field}")
    return d // timedelta(milliseconds=1)


def _square_out(sq: Any, field: str) -> list:
    if not isinstance(sq, tuple) or len(sq) != 2:
        raise EncodeError(f"bad:{field}")
    out = []
    for v in sq:
        if not isinstance(v, int) or isinstance(v, bool) or not 0 <= v <= 255:
            raise EncodeError(f"bad:{field}")
        out.append(v)
    return out


def to_wire(packet: Packet) -> Dict[str, Any]:
    if isinstance(packet, Start):
        obj: Dict[str, Any] = {"type": "start", "isWhite": bool(packet.isWhite)}
        if packet.name is not None:
            obj["name"] = str(packet.name)
        if packet.fen is not None:
            obj["fen"] = str(packet.fen)
        if packet.time is not None:
            obj["time"] = _ms(packet.time, "time")
        if packet.inc is not None:
            obj["inc"] = _ms(packet.inc, "inc")
        return obj
    if isinstance(packet, Move):
        obj = {
            "type": "move",
            "from": _square_out(packet.origin, "from"),
            "to": _square_out(packet.dest, "to"),
            "forfeit": bool(packet.forfeit),
            "offerDraw": bool(packet.offerDraw),
        }
        if packet.promotion is not None:
            obj["promotion"] = PieceKind(packet.promotion).value
        return obj
    if isinstance(packet, Ack):
        obj = {"type": "ack", "ok": bool(packet.ok)}
        if packet.endState is not None:
            obj["endState"] = EndState(packet.endState).value
        return obj
    raise EncodeError(f"bad_packet:{type(packet).__name__}")


def encode(packet: Packet) -> bytes:
    """Packet -> frame payload bytes (header not included)."""
    try:
        data = json.dumps(to_wire(packet), separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodeError(f"encode_error:{e}") from e
    if len(data) > MAX_FRAME:
        raise EncodeError("too_large")
    return data


# ---------------------------
# decode
# ---------------------------
def _require(d: Dict[str, Any], key: str) -> Any:
    if key not in d:
        raise DecodeError(f"missing:{key}")
    return d[key]


def _bool(d: Dict[str, Any], key: str, default: Optional[bool] = None) -> bool:
    v = d.get(key, default) if default is not None else _require(d, key)
    if not isinstance(v, bool):
        raise DecodeError(f"bad:{key}")
    return v


def _opt_str(d: Dict[str, Any], key: str) -> Optional[str]:
    v = d.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise DecodeError(f"bad:{key}")
    return v


def _opt_duration(d: Dict[str, Any], key: str) -> Optional[timedelta]:
    v = d.get(key)
    if v is None:
        return None
    if not isinstance(v, int) or isinstance(v, bool) or v < 0:
        raise DecodeError(f"bad:{key}")
    return timedelta(milliseconds=v)


def _square_in(d: Dict[str, Any], key: str) -> Square:
    v = _require(d, key)
    if not isinstance(v, list) or len(v) != 2:
        raise DecodeError(f"bad:{key}")
    for c in v:
        if not isinstance(c, int) or isinstance(c, bool) or not 0 <= c <= 255:
            raise DecodeError(f"bad:{key}")
    return (v[0], v[1])


def _enum(d: Dict[str, Any], key: str, kind: Type[Enum]) -> Any:
    v = d.get(key)
    if v is None:
        return None
    try:
        return kind(v)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"bad:{key}") from e


def from_wire(obj: Any, expected: Type[P]) -> P:
    if not isinstance(obj, dict):
        raise DecodeError("bad_packet")
    tag = obj.get("type")
    want = PACKET_TAGS.get(expected)
    if want is None:
        raise DecodeError(f"bad_expected:{expected!r}")
    if tag != want:
        raise DecodeError(f"unexpected_packet:{tag}:wanted:{want}")

    if expected is Start:
        return Start(
            isWhite=_bool(obj, "isWhite"),
            name=_opt_str(obj, "name"),
            fen=_opt_str(obj, "fen"),
            time=_opt_duration(obj, "time"),
            inc=_opt_duration(obj, "inc"),
        )
    if expected is Move:
        return Move(
            origin=_square_in(obj, "from"),
            dest=_square_in(obj, "to"),
            promotion=_enum(obj, "promotion", PieceKind),
            forfeit=_bool(obj, "forfeit", False),
            offerDraw=_bool(obj, "offerDraw", False),
        )
    return Ack(ok=_bool(obj, "ok"), endState=_enum(obj, "endState", EndState))


def decode(payload: bytes, expected: Type[P]) -> P:
    """Frame payload -> packet of the expected type, or DecodeError."""
    try:
        obj = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"bad_json:{e}") from e
    return from_wire(obj, expected)
