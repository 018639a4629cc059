"""MessagePack-RPC envelopes for agent calls.

Call (client -> agent):
    [0, 0, "RPC.PreRequest", [payload]]
     |  |  |                 +-- single argument: the payload map
     |  |  +-- method name
     |  +-- sequence number, unused, always 0
     +-- type tag 0 = request

Reply (agent -> client):
    [1, seq, error, result]
     |       |      +-- result map (what callers get back)
     |       +-- nil on success, anything else is an application error
     +-- type tag 1 = response

Only one message travels each way per connection, so there is no length
prefix: the reader parses exactly one top-level value out of whatever
arrived and ignores anything after it.
"""
from __future__ import annotations

from typing import Any

import msgpack

from sigsci_module.domain.types import Payload
from sigsci_module.rpc.errors import ApplicationError, ProtocolError

CALL_TYPE = 0
REPLY_TYPE = 1
REPLY_LENGTH = 4


def encode_call(method: str, payload: Payload) -> bytes:
    """Serialize a call envelope.

    use_bin_type keeps bytes (request bodies) as msgpack bin and str as
    msgpack str, so the agent can tell them apart.

    Raises:
        ProtocolError: if the payload holds something msgpack can't encode
    """
    try:
        return msgpack.packb([CALL_TYPE, 0, method, [payload]], use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ProtocolError("encode", f"cannot pack {method}: {exc}") from exc


def _unpack_one(raw: bytes) -> Any:
    """Parse the first complete msgpack value in raw.

    TypeError comes from well-framed input that still can't become a
    Python value, e.g. a map keyed by an array.
    """
    unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
    unpacker.feed(raw)
    try:
        return unpacker.unpack()
    except msgpack.OutOfData as exc:
        raise ProtocolError(
            "decode", f"truncated MessagePack reply ({len(raw)} bytes)"
        ) from exc
    except (msgpack.UnpackException, ValueError, TypeError) as exc:
        raise ProtocolError("decode", f"invalid MessagePack reply: {exc}") from exc


def validate_reply(obj: Any) -> Payload:
    """Check the reply envelope and return its result map.

    Raises:
        ProtocolError: wrong shape, wrong count, wrong type tag, or a
            result that is not a map
        ApplicationError: the agent filled the error slot
    """
    if not isinstance(obj, (list, tuple)):
        raise ProtocolError(
            "validate", "Invalid MessagePack RPC response: not an array"
        )
    if len(obj) != REPLY_LENGTH:
        raise ProtocolError(
            "validate",
            f"Invalid MessagePack RPC response: expected count of {REPLY_LENGTH}, "
            f"got {len(obj)}",
        )
    if obj[0] != REPLY_TYPE:
        raise ProtocolError(
            "validate",
            f"Invalid MessagePack RPC response: expected obj[0] == {REPLY_TYPE}, "
            f"got {obj[0]!r}",
        )
    if obj[2] is not None:
        raise ApplicationError(obj[2])

    result = obj[3]
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ProtocolError(
            "validate",
            f"Invalid MessagePack RPC response: result is {type(result).__name__}, "
            "expected a map",
        )
    return result


def decode_reply(raw: bytes) -> Payload:
    """Parse and validate a reply; return the result map."""
    return validate_reply(_unpack_one(raw))
