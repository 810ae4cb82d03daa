"""
Request parameter signing and encryption, and response decryption.

Every signed call sends its parameters as AES-CBC ciphertext together with
an MD5 signature over the same (null-free) parameter set.
"""
import base64
import binascii
import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import unquote, urlencode


from .aes import AESCBCStrategy, prepare_key
from .key_derivation import KeyMaterial
from ..exceptions import DecryptionError

SIGN_PREFIX = 'zsecure'

KeyLike = Union[str, bytes]

_cbc = AESCBCStrategy()


@dataclass(frozen=True)
class EncryptedParams:
    """Encrypted parameter blob and its signature."""
    encoded_params: str
    signature: str


def drop_nulls(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of params without None values."""
    return {k: v for k, v in params.items() if v is not None}


def _sign_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def sign_params(type_tag: str, params: Mapping[str, Any]) -> str:
    """
    Compute the request signature.

    ``MD5("zsecure" + type_tag + values concatenated in sorted-key order)``.
    Null values are dropped first, non-string values are JSON encoded.

    Args:
        type_tag: Request type tag (e.g. ``getlogininfo``, ``sendmsg``)
        params: Parameter map

    Returns:
        Lowercase hex digest
    """
    clean = drop_nulls(params)
    material = SIGN_PREFIX + type_tag + ''.join(_sign_value(clean[k]) for k in sorted(clean))
    return hashlib.md5(material.encode('utf-8')).hexdigest()


def serialize_params(params: Mapping[str, Any]) -> str:
    """Compact JSON of the null-free parameter set."""
    return json.dumps(drop_nulls(params), separators=(',', ':'), ensure_ascii=False)


def encrypt_payload(key: KeyLike, plaintext: str) -> str:
    """AES-CBC encrypt text with a zero IV and return base64."""
    encrypted = _cbc.encrypt(plaintext.encode('utf-8'), prepare_key(key))
    return base64.b64encode(encrypted).decode('ascii')


def encrypt_request_params(
    key: KeyLike,
    params: Mapping[str, Any],
    type_tag: str
) -> EncryptedParams:
    """
    Encrypt and sign a parameter map.

    Args:
        key: Per-account secret key (base64 str) or derived key bytes
        params: Parameter map. None values are dropped before both steps
        type_tag: Request type tag used in the signature

    Returns:
        EncryptedParams with base64 ciphertext and MD5 signature
    """
    clean = drop_nulls(params)
    return EncryptedParams(
        encoded_params=encrypt_payload(key, serialize_params(clean)),
        signature=sign_params(type_tag, clean),
    )


def decrypt_response(key: KeyLike, ciphertext: str) -> str:
    """
    Decrypt a response payload.

    URL-decodes, base64-decodes and AES-CBC decrypts. Decryption is
    deterministic, so failures are not retried.

    Raises:
        DecryptionError: If any step fails
    """
    if not ciphertext:
        raise DecryptionError("Empty response payload")

    try:
        raw = base64.b64decode(unquote(ciphertext))
        plaintext = _cbc.decrypt(raw, prepare_key(key))
        return plaintext.decode('utf-8')
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise DecryptionError(f"Failed to decrypt response: {e}")


def decrypt_response_json(key: KeyLike, ciphertext: str) -> Any:
    """Decrypt a response payload and parse it as JSON."""
    plaintext = decrypt_response(key, ciphertext)
    try:
        return json.loads(plaintext)
    except json.JSONDecodeError as e:
        raise DecryptionError(f"Decrypted response is not JSON: {e}")


def build_login_params(
    key_material: KeyMaterial,
    device_id: str,
    language: str,
    api_type: int,
    api_version: int,
    type_tag: str = 'getlogininfo',
    computer_name: str = 'Web',
    ts: Optional[int] = None
) -> Dict[str, str]:
    """
    Build the query parameters of an encrypted login-phase call.

    The device descriptor is encrypted with the derived key; the key material
    identifiers, client type/version and ``signkey`` travel in clear.
    """
    data = {
        'computer_name': computer_name,
        'imei': device_id,
        'language': language,
        'ts': ts if ts is not None else int(time.time() * 1000),
    }

    params = dict(key_material.get_params())
    params['params'] = encrypt_payload(key_material.key_bytes, serialize_params(data))
    params['type'] = str(api_type)
    params['client_version'] = str(api_version)
    params['signkey'] = sign_params(type_tag, params)
    return params


def make_url(
    base_url: str,
    params: Optional[Mapping[str, Any]] = None,
    api_type: int = 30,
    api_version: int = 655
) -> str:
    """
    Append query parameters to a platform URL.

    Empty values are skipped; ``zpw_ver`` and ``zpw_type`` are added unless
    already present.
    """
    query = {k: v for k, v in (params or {}).items() if v is not None and v != ''}
    query.setdefault('zpw_ver', str(api_version))
    query.setdefault('zpw_type', str(api_type))

    separator = '&' if '?' in base_url else '?'
    return f"{base_url}{separator}{urlencode(query)}"
