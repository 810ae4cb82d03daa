"""AES cipher strategies using Strategy Pattern."""
import base64
import binascii
from abc import ABC, abstractmethod
from typing import Optional, Union

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import CryptoError

ZERO_IV = b'\0' * 16
VALID_KEY_SIZES = (16, 24, 32)


class AESStrategy(ABC):
    """Abstract base class for AES encryption strategies."""

    @abstractmethod
    def encrypt(self, data: bytes, key: bytes) -> bytes:
        """Encrypts data using the strategy."""
        pass

    @abstractmethod
    def decrypt(self, data: bytes, key: bytes) -> bytes:
        """Decrypts data using the strategy."""
        pass


class AESCBCStrategy(AESStrategy):
    """
    AES-CBC with PKCS7 padding.

    The remote platform always uses an all-zero IV, for request parameters,
    HTTP responses and the device fingerprint alike.
    """

    def __init__(self, iv: Optional[bytes] = None):
        """Initializes CBC strategy."""
        self.iv = iv or ZERO_IV

    def encrypt(self, data: bytes, key: bytes) -> bytes:
        """Pads and encrypts data using AES-CBC mode."""
        cipher = AES.new(key, AES.MODE_CBC, self.iv)
        return cipher.encrypt(pad(data, AES.block_size))

    def decrypt(self, data: bytes, key: bytes) -> bytes:
        """Decrypts and unpads data using AES-CBC mode."""
        cipher = AES.new(key, AES.MODE_CBC, self.iv)
        return unpad(cipher.decrypt(data), AES.block_size)


class AESGCMStrategy(AESStrategy):
    """
    AES-GCM for generation-2 real-time frames.

    Layout of a sealed blob: ``iv (16) | aad (16) | ciphertext | tag (16)``.
    """

    IV_SIZE = 16
    AAD_SIZE = 16
    TAG_SIZE = 16

    def encrypt(
        self,
        data: bytes,
        key: bytes,
        iv: Optional[bytes] = None,
        aad: Optional[bytes] = None
    ) -> bytes:
        """Seals data, prefixing the IV and additional authenticated data."""
        iv = iv or get_random_bytes(self.IV_SIZE)
        aad = aad or get_random_bytes(self.AAD_SIZE)
        return iv + aad + AESGCM(key).encrypt(iv, data, aad)

    def decrypt(self, data: bytes, key: bytes) -> bytes:
        """Opens a sealed blob. Raises ``InvalidTag`` on authentication failure."""
        header = self.IV_SIZE + self.AAD_SIZE
        if len(data) < header + self.TAG_SIZE:
            raise ValueError(f"GCM payload too short: {len(data)} bytes")

        iv = data[:self.IV_SIZE]
        aad = data[self.IV_SIZE:header]
        return AESGCM(key).decrypt(iv, data[header:], aad)


def prepare_key(key: Union[str, bytes]) -> bytes:
    """
    Normalize a key to raw AES key bytes.

    Raw ``bytes`` are used unchanged (login encrypt keys are used as their
    ASCII bytes). A ``str`` is a base64 encoded per-account secret key.

    Raises:
        CryptoError: If the key is not valid base64 or has a bad length
    """
    if isinstance(key, str):
        try:
            key = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Secret key is not valid base64: {e}")

    if len(key) not in VALID_KEY_SIZES:
        raise CryptoError(f"Invalid AES key length: {len(key)}")

    return key
