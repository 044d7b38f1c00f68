# --------------------------------------------------------------
# File: test_crypto_kdf.py
# Description: Pruebas del estiramiento de passphrases con PBKDF2.
# --------------------------------------------------------------

import pytest
from cryptography.exceptions import UnsupportedAlgorithm

from wallet_core import crypto_kdf
from wallet_core.crypto_kdf import (
    derive_legacy_key,
    derive_wrapping_key,
    normalize_identity,
    stretch,
    stretch_salt,
)
from wallet_core.errors import KeyDerivationError


def test_stretch_defaults_match_production_parameters():
    """La derivación por defecto usa 600.000 iteraciones y 32 bytes."""
    assert crypto_kdf.STRETCH_ITERATIONS == 600_000
    assert crypto_kdf.WRAP_ITERATIONS == 100_000
    key = stretch("Tr0ub4dor&3xyz!", "a@b.com")
    assert isinstance(key, bytearray)
    assert len(key) == 32


def test_stretch_is_deterministic_per_account():
    """Dos derivaciones independientes producen la misma clave."""
    k1 = stretch("Tr0ub4dor&3xyz!", "a@b.com", iterations=1_000)
    k2 = stretch("Tr0ub4dor&3xyz!", " A@B.com ", iterations=1_000)
    assert k1 == k2


def test_stretch_depends_on_identity_salt_and_passphrase():
    base = stretch("Tr0ub4dor&3xyz!", "a@b.com", iterations=1_000)
    assert stretch("Tr0ub4dor&3xyz", "a@b.com", iterations=1_000) != base
    assert stretch("Tr0ub4dor&3xyz!", "c@d.com", iterations=1_000) != base
    assert stretch("Tr0ub4dor&3xyz!", "a@b.com", b"persisted", iterations=1_000) != base


def test_stretch_salt_is_pure_function():
    assert stretch_salt("a@b.com") == stretch_salt("A@B.COM")
    assert stretch_salt("a@b.com", b"x") == stretch_salt("a@b.com", b"x")
    assert len(stretch_salt("a@b.com")) == 32


@pytest.mark.parametrize("passphrase", ["", None])
def test_stretch_rejects_empty_passphrase(passphrase):
    with pytest.raises(KeyDerivationError):
        stretch(passphrase, "a@b.com")


def test_stretch_rejects_blank_identity():
    with pytest.raises(KeyDerivationError):
        stretch("Tr0ub4dor&3xyz!", "   ")


def test_unavailable_primitive_raises_key_derivation_error(monkeypatch):
    """Un backend sin PBKDF2 se traduce en `KeyDerivationError`."""

    class _Broken:
        def __init__(self, *args, **kwargs):
            raise UnsupportedAlgorithm("no pbkdf2")

    monkeypatch.setattr(crypto_kdf, "PBKDF2HMAC", _Broken)
    with pytest.raises(KeyDerivationError):
        stretch("Tr0ub4dor&3xyz!", "a@b.com")


def test_wrapping_and_legacy_keys_depend_on_salt():
    assert derive_wrapping_key("a@b.com", b"1" * 16, iterations=10) != derive_wrapping_key(
        "a@b.com", b"2" * 16, iterations=10
    )
    assert derive_legacy_key("pass", b"1" * 16, iterations=10) != derive_legacy_key(
        "pass", b"2" * 16, iterations=10
    )
    with pytest.raises(KeyDerivationError):
        derive_legacy_key("", b"1" * 16)


def test_normalize_identity():
    assert normalize_identity("  User@Example.COM ") == "user@example.com"
