"""Wire codec for the HLL RCON v2 protocol.

Every frame is an 8-byte header (request id and body length, both unsigned
32-bit little-endian) followed by a UTF-8 JSON body. Once the server has
handed out its XOR key the body is XOR-obfuscated with that key; the header
is always sent in the clear.
"""

import base64
import binascii
import json
import struct
from dataclasses import dataclass
from typing import Any

from errors import InvalidKey, MalformedFrame

HEADER = struct.Struct("<II")
HEADER_SIZE = HEADER.size
PROTOCOL_VERSION = 2
MAX_REQUEST_ID = 0xFFFFFFFF

SERVER_CONNECT = "ServerConnect"
LOGIN = "Login"
STATUS_OK = 200


@dataclass
class Response:
    status_code: int = 0
    status_message: str = ""
    version: int = 0
    name: str = ""
    content_body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == STATUS_OK

    def parsed_content(self):
        return parse_content_body(self.content_body)

    @classmethod
    def from_dict(cls, data: dict) -> "Response":
        return cls(
            status_code=int(data.get("statusCode") or 0),
            status_message=data.get("statusMessage") or "",
            version=int(data.get("version") or 0),
            name=data.get("name") or "",
            content_body=data.get("contentBody"),
        )


def encode_frame(request_id: int, body: bytes) -> bytes:
    return HEADER.pack(request_id & MAX_REQUEST_ID, len(body)) + body


def decode_header(data: bytes) -> tuple[int, int]:
    if len(data) < HEADER_SIZE:
        raise MalformedFrame(f"frame header too short: {len(data)} bytes")
    return HEADER.unpack_from(data)


def xor_crypt(data: bytes, key: bytes) -> bytes:
    if not key:
        return data
    klen = len(key)
    return bytes(b ^ key[i % klen] for i, b in enumerate(data))


def decode_xor_key(encoded: str) -> bytes:
    """Decode the base64 XOR key returned by ServerConnect."""
    if not isinstance(encoded, str):
        raise InvalidKey(f"XOR key must be a string, got {type(encoded).__name__}")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKey(f"failed to decode XOR key: {exc}") from exc


def normalize_content_body(value) -> str:
    # contentBody is always a string on the wire; structured payloads are
    # JSON-encoded into it, never nested.
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise MalformedFrame(f"failed to encode contentBody: {exc}") from exc


def pack_request(auth_token: str, name: str, content_body=None) -> bytes:
    request = {
        "authToken": auth_token,
        "version": PROTOCOL_VERSION,
        "name": name,
        "contentBody": normalize_content_body(content_body),
    }
    return json.dumps(request, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def unpack_response(body: bytes) -> Response:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedFrame(f"failed to decode response body: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedFrame(f"response body is not a JSON object: {type(data).__name__}")
    try:
        return Response.from_dict(data)
    except (TypeError, ValueError) as exc:
        raise MalformedFrame(f"invalid response envelope: {exc}") from exc


def parse_content_body(value):
    """Best-effort decode of a response contentBody for display.

    Non-string and empty values are returned untouched. Strings holding JSON
    come back decoded; anything else is returned as the raw string.
    """
    if not isinstance(value, str) or value == "":
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value
