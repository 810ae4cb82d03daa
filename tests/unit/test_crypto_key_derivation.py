"""Tests for per-login key derivation."""
import hashlib
import random

import pytest

from zalopy.core.crypto import (
    KeyMaterial,
    create_encrypt_key,
    create_zcid,
    derive_login_key_material,
    random_zcid_ext,
)
from zalopy.core.crypto.aes import AESCBCStrategy
from zalopy.core.crypto.key_derivation import FIXED_ZCID_KEY, split_even_odd
from zalopy.core.exceptions import KeyDerivationError

DEVICE_ID = 'a1b2c3d4-e5f6-7890-abcd-ef0123456789'
LAUNCH_MS = 1700000000000


class TestCreateZcid:
    """Test suite for the device fingerprint."""

    def test_zcid_is_uppercase_hex_of_fixed_key_ciphertext(self):
        """Test zcid is the CBC ciphertext of the device triple."""
        zcid = create_zcid(30, DEVICE_ID, LAUNCH_MS)

        expected = AESCBCStrategy().encrypt(
            f"30,{DEVICE_ID},{LAUNCH_MS}".encode(), FIXED_ZCID_KEY
        ).hex().upper()
        assert zcid == expected
        assert zcid == zcid.upper()

    def test_zcid_is_deterministic(self):
        """Test same inputs give the same zcid."""
        assert create_zcid(30, DEVICE_ID, LAUNCH_MS) == create_zcid(30, DEVICE_ID, LAUNCH_MS)

    def test_zcid_depends_on_device(self):
        """Test different devices give different fingerprints."""
        assert create_zcid(30, DEVICE_ID, LAUNCH_MS) != create_zcid(30, 'other-device', LAUNCH_MS)

    @pytest.mark.parametrize('api_type,device_id,launch', [
        (0, DEVICE_ID, LAUNCH_MS),
        (30, '', LAUNCH_MS),
        (30, DEVICE_ID, 0),
    ])
    def test_missing_input_raises(self, api_type, device_id, launch):
        """Test missing inputs raise KeyDerivationError."""
        with pytest.raises(KeyDerivationError):
            create_zcid(api_type, device_id, launch)


class TestEncryptKey:
    """Test suite for folding zcid and zcid_ext into the encrypt key."""

    def test_split_even_odd(self):
        """Test even/odd split."""
        assert split_even_odd('abcdef') == ('ace', 'bdf')

    def test_key_layout(self):
        """Test key is MD5 evens, zcid evens and reversed zcid odds."""
        zcid = create_zcid(30, DEVICE_ID, LAUNCH_MS)
        ext = 'deadbeef12'

        key = create_encrypt_key(zcid, ext)

        digest = hashlib.md5(ext.encode()).hexdigest().upper()
        assert len(key) == 32
        assert key[:8] == digest[0::2][:8]
        assert key[8:20] == zcid[0::2][:12]
        assert key[20:] == zcid[1::2][::-1][:12]

    def test_short_zcid_returns_none(self):
        """Test inputs too short to fold give no key."""
        assert create_encrypt_key('ABCDEF', 'ext') is None

    def test_empty_inputs_return_none(self):
        """Test empty inputs give no key."""
        assert create_encrypt_key('', 'ext') is None
        assert create_encrypt_key('ABCD' * 16, '') is None


class TestRandomZcidExt:
    """Test suite for the random zcid extension."""

    def test_length_within_bounds(self):
        """Test generated length stays within bounds."""
        rng = random.Random(7)
        for _ in range(50):
            ext = random_zcid_ext(rng=rng)
            assert 6 <= len(ext) <= 12
            assert all(c in '0123456789abcdef' for c in ext)

    def test_long_extension_is_built_from_segments(self):
        """Test extensions longer than one segment are still full length."""
        ext = random_zcid_ext(min_length=30, max_length=30, rng=random.Random(1))
        assert len(ext) == 30


class TestDeriveLoginKeyMaterial:
    """Test suite for derive_login_key_material."""

    def test_deterministic_with_fixed_extension(self):
        """Test fixed inputs without randomness give identical key material."""
        first = derive_login_key_material(DEVICE_ID, LAUNCH_MS, 30, zcid_ext='0a1b2c3d')
        second = derive_login_key_material(DEVICE_ID, LAUNCH_MS, 30, zcid_ext='0a1b2c3d')

        assert first == second
        assert first.zcid_ext == '0a1b2c3d'
        assert first.enc_ver == 'v2'

    def test_seeded_rng_is_reproducible(self):
        """Test a seeded rng reproduces the same extension."""
        first = derive_login_key_material(DEVICE_ID, LAUNCH_MS, rng=random.Random(42))
        second = derive_login_key_material(DEVICE_ID, LAUNCH_MS, rng=random.Random(42))

        assert first.encrypt_key == second.encrypt_key

    def test_key_material_params(self):
        """Test the identifiers sent to the server."""
        material = derive_login_key_material(DEVICE_ID, LAUNCH_MS, zcid_ext='abc123')

        assert material.get_params() == {
            'zcid': material.zcid,
            'zcid_ext': 'abc123',
            'enc_ver': 'v2',
        }
        assert material.key_bytes == material.encrypt_key.encode('ascii')
        assert len(material.key_bytes) == 32

    def test_gives_up_after_three_attempts(self, monkeypatch):
        """Test derivation fails after three unusable keys."""
        calls = []

        def failing(zcid, ext):
            calls.append(ext)
            return None

        monkeypatch.setattr('zalopy.core.crypto.key_derivation.create_encrypt_key', failing)

        with pytest.raises(KeyDerivationError):
            derive_login_key_material(DEVICE_ID, LAUNCH_MS, rng=random.Random(3))

        assert len(calls) == 3

    def test_retry_draws_fresh_extension(self, monkeypatch):
        """Test each attempt uses a new random extension."""
        seen = []
        real = create_encrypt_key

        def flaky(zcid, ext):
            seen.append(ext)
            return None if len(seen) == 1 else real(zcid, ext)

        monkeypatch.setattr('zalopy.core.crypto.key_derivation.create_encrypt_key', flaky)

        material = derive_login_key_material(DEVICE_ID, LAUNCH_MS, rng=random.Random(5))

        assert isinstance(material, KeyMaterial)
        assert len(seen) == 2
        assert material.zcid_ext == seen[1]
