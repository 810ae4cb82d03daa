"""
Per-login key derivation.

The login-info call is encrypted with a key folded out of two strings: the
device fingerprint (``zcid``) and a random extension (``zcid_ext``). The
fingerprint is the device triple encrypted with a platform-wide fixed key.
"""
import hashlib
import random
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .aes import AESCBCStrategy
from ..exceptions import KeyDerivationError
from ..logging import get_logger

logger = get_logger('zalopy.crypto')

FIXED_ZCID_KEY = b'3FC4F0D2AB50057BCE0D90D9187A22B1'
ENC_VERSION = 'v2'
MAX_ATTEMPTS = 3
ENCRYPT_KEY_LENGTH = 32

_HEX_CHARS = '0123456789abcdef'
_SEGMENT_SIZE = 12


@dataclass(frozen=True)
class KeyMaterial:
    """Key material for a single login attempt. Never persisted."""
    zcid: str
    zcid_ext: str
    encrypt_key: str
    enc_ver: str = ENC_VERSION

    @property
    def key_bytes(self) -> bytes:
        """Encrypt key as AES-256 key bytes."""
        return self.encrypt_key.encode('ascii')

    def get_params(self) -> Dict[str, str]:
        """Query parameters identifying this key material to the server."""
        return {
            'zcid': self.zcid,
            'zcid_ext': self.zcid_ext,
            'enc_ver': self.enc_ver,
        }


def create_zcid(api_type: int, device_id: str, first_launch_ms: int) -> str:
    """
    Build the device fingerprint.

    Args:
        api_type: Client type advertised to the platform
        device_id: Stable per-install identifier
        first_launch_ms: First launch time in epoch milliseconds

    Returns:
        Uppercase hex of ``AES-CBC(FIXED_ZCID_KEY, "type,device,epoch")``

    Raises:
        KeyDerivationError: If any input is missing
    """
    if not api_type or not device_id or not first_launch_ms:
        raise KeyDerivationError("Cannot create zcid: missing type, device id or launch time")

    message = f"{api_type},{device_id},{first_launch_ms}"
    encrypted = AESCBCStrategy().encrypt(message.encode('utf-8'), FIXED_ZCID_KEY)
    return encrypted.hex().upper()


def random_zcid_ext(
    min_length: int = 6,
    max_length: int = 12,
    rng: Optional[random.Random] = None
) -> str:
    """Random lowercase hex string built from segments of at most 12 chars."""
    rng = rng or random.SystemRandom()
    remaining = rng.randint(min_length, max(min_length, max_length))

    parts = []
    while remaining > 0:
        segment = min(remaining, _SEGMENT_SIZE)
        parts.append(''.join(rng.choice(_HEX_CHARS) for _ in range(segment)))
        remaining -= segment

    return ''.join(parts)


def split_even_odd(value: str) -> Tuple[str, str]:
    """Split a string into its even-position and odd-position characters."""
    return value[0::2], value[1::2]


def create_encrypt_key(zcid: str, zcid_ext: str) -> Optional[str]:
    """
    Fold ``zcid`` and ``zcid_ext`` into the 32-character encrypt key.

    The key is the first 8 even-position chars of ``MD5(zcid_ext)`` in
    uppercase hex, then the first 12 even-position chars of ``zcid``, then
    the first 12 chars of the reversed odd-position chars of ``zcid``.

    Returns:
        The key, or None when the inputs are too short to fold
    """
    if not zcid or not zcid_ext:
        return None

    digest = hashlib.md5(zcid_ext.encode('utf-8')).hexdigest().upper()
    even_digest, _ = split_even_odd(digest)
    even_zcid, odd_zcid = split_even_odd(zcid)

    key = even_digest[:8] + even_zcid[:12] + odd_zcid[::-1][:12]
    if len(key) != ENCRYPT_KEY_LENGTH:
        return None
    return key


def derive_login_key_material(
    device_id: str,
    first_launch_ms: int,
    api_type: int = 30,
    zcid_ext: Optional[str] = None,
    rng: Optional[random.Random] = None
) -> KeyMaterial:
    """
    Derive the key material for one login attempt.

    Deterministic when ``zcid_ext`` is supplied. Otherwise a fresh random
    extension is drawn for each of up to three attempts.

    Raises:
        KeyDerivationError: If no usable key was produced after three attempts
    """
    zcid = create_zcid(api_type, device_id, first_launch_ms)

    for attempt in range(MAX_ATTEMPTS):
        ext = zcid_ext if zcid_ext is not None else random_zcid_ext(rng=rng)
        key = create_encrypt_key(zcid, ext)
        if key:
            return KeyMaterial(zcid=zcid, zcid_ext=ext, encrypt_key=key)
        logger.warning(f"Encrypt key derivation attempt {attempt + 1} failed")

    raise KeyDerivationError(
        f"Failed to derive encrypt key after {MAX_ATTEMPTS} attempts"
    )
