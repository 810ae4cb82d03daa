"""
Real-time frame decoding.

A frame is an optional binary header followed by a JSON envelope
``{"key"?, "encrypt": <generation>, "data": <payload>}``.

Generations:
    0 - payload is plain JSON
    1 - base64 of gzip-compressed JSON
    2 - base64 of an AES-GCM sealed blob of gzip-compressed JSON
"""
import base64
import binascii
import gzip
import json
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from cryptography.exceptions import InvalidTag

from .aes import AESGCMStrategy, prepare_key
from ..exceptions import CryptoError, DecryptionError, ProtocolError

GEN_PLAIN = 0
GEN_GZIP = 1
GEN_GCM = 2

SESSION_ROTATED_MARKER = 'zpw_sek'

_gcm = AESGCMStrategy()


@dataclass
class RealtimeFrame:
    """A real-time frame split into binary header and JSON envelope."""
    header: bytes
    envelope: Dict[str, Any] = field(default_factory=dict)
    raw_text: str = ''

    @property
    def version(self) -> Optional[int]:
        return self.header[0] if len(self.header) >= 4 else None

    @property
    def cmd(self) -> Optional[int]:
        if len(self.header) < 4:
            return None
        return int.from_bytes(self.header[1:3], 'little')

    @property
    def sub_cmd(self) -> Optional[int]:
        return self.header[3] if len(self.header) >= 4 else None

    @property
    def key(self) -> Optional[str]:
        """Cipher key embedded in the envelope, if any."""
        return self.envelope.get('key') or None

    @property
    def generation(self) -> int:
        try:
            return int(self.envelope.get('encrypt', GEN_PLAIN))
        except (TypeError, ValueError):
            return -1

    @property
    def session_rotated(self) -> bool:
        """True when the server signals that the session cookie was rotated."""
        return SESSION_ROTATED_MARKER in self.raw_text


def split_frame(raw: Union[bytes, str]) -> RealtimeFrame:
    """
    Split a raw frame at the first ``{``.

    Raises:
        ProtocolError: If the frame carries no JSON envelope
    """
    if isinstance(raw, str):
        raw = raw.encode('utf-8')

    start = raw.find(b'{')
    if start < 0:
        raise ProtocolError("Frame carries no JSON envelope")

    text = raw[start:].decode('utf-8', errors='replace')
    try:
        envelope = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Malformed frame envelope: {e}")

    if not isinstance(envelope, dict):
        raise ProtocolError("Frame envelope is not an object")

    return RealtimeFrame(header=raw[:start], envelope=envelope, raw_text=text)


def _parse_json(data: Union[bytes, str]) -> Optional[Any]:
    if not data:
        return None
    return json.loads(data)


def decrypt_websocket_frame(
    key: Optional[str],
    raw: Union[bytes, str, Mapping[str, Any]]
) -> Optional[Any]:
    """
    Decode the payload of a real-time frame.

    Args:
        key: Base64 cipher key for generation-2 frames
        raw: Raw frame bytes/text, or an already split envelope

    Returns:
        Parsed JSON payload, or None for empty payloads and unknown generations

    Raises:
        DecryptionError: If the payload cannot be decoded
    """
    envelope = raw if isinstance(raw, Mapping) else split_frame(raw).envelope
    payload = envelope.get('data')

    try:
        generation = int(envelope.get('encrypt', GEN_PLAIN))
    except (TypeError, ValueError):
        return None

    if payload is None or payload == '':
        return None

    try:
        if generation == GEN_PLAIN:
            if isinstance(payload, (dict, list)):
                return payload
            return _parse_json(payload)

        if generation == GEN_GZIP:
            return _parse_json(gzip.decompress(base64.b64decode(payload)))

        if generation == GEN_GCM:
            if not key:
                raise DecryptionError("Missing cipher key for encrypted frame")
            sealed = base64.b64decode(payload)
            return _parse_json(gzip.decompress(_gcm.decrypt(sealed, prepare_key(key))))
    except DecryptionError:
        raise
    except (binascii.Error, ValueError, OSError, EOFError, zlib.error, InvalidTag, CryptoError) as e:
        raise DecryptionError(f"Unable to decode frame payload: {e or type(e).__name__}")

    return None


def encode_websocket_frame(
    payload: Any,
    generation: int = GEN_PLAIN,
    key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build a frame envelope. Inverse of :func:`decrypt_websocket_frame`,
    used by test doubles and tooling that replays captured traffic.
    """
    text = json.dumps(payload, separators=(',', ':')).encode('utf-8')

    if generation == GEN_PLAIN:
        data: Any = text.decode('utf-8')
    elif generation == GEN_GZIP:
        data = base64.b64encode(gzip.compress(text)).decode('ascii')
    elif generation == GEN_GCM:
        if not key:
            raise CryptoError("Generation-2 frames need a key")
        sealed = _gcm.encrypt(gzip.compress(text), prepare_key(key))
        data = base64.b64encode(sealed).decode('ascii')
    else:
        raise ValueError(f"Unknown frame generation: {generation}")

    envelope = {'encrypt': generation, 'data': data}
    if key:
        envelope['key'] = key
    return envelope
