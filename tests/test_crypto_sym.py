# --------------------------------------------------------------
# File: test_crypto_sym.py
# Description: Pruebas de las primitivas AES-256-GCM usadas por los sobres.
# --------------------------------------------------------------

import os

import pytest

from wallet_core.crypto_sym import (
    NONCE_SIZE,
    TAG_SIZE,
    aes_gcm_decrypt_with_key,
    aes_gcm_encrypt_with_key,
)
from wallet_core.errors import DecryptionError

SEED = b"legal winner thank year wave sausage worth useful legal winner thank yellow"


@pytest.fixture
def sealed():
    key = os.urandom(32)
    ciphertext, nonce = aes_gcm_encrypt_with_key(key, SEED, aad=b"salt")
    return key, ciphertext, nonce


def test_seal_and_open(sealed):
    """El texto cifrado incluye la etiqueta y se abre con la misma clave.

    Args:
        sealed (tuple): Clave, texto cifrado y nonce generados por el fixture.

    Returns:
        None: Las aserciones comparan tamaños y el claro recuperado.
    """
    key, ciphertext, nonce = sealed
    assert len(nonce) == NONCE_SIZE
    assert len(ciphertext) == len(SEED) + TAG_SIZE
    assert aes_gcm_decrypt_with_key(key, nonce, ciphertext, aad=b"salt") == SEED


@pytest.mark.parametrize("position", [0, len(SEED) // 2, -1])
def test_flipped_ciphertext_or_tag_byte(sealed, position):
    key, ciphertext, nonce = sealed
    altered = bytearray(ciphertext)
    altered[position] ^= 0x80
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(key, nonce, bytes(altered), aad=b"salt")


def test_flipped_nonce_byte(sealed):
    key, ciphertext, nonce = sealed
    altered = bytes([nonce[0] ^ 0x01]) + nonce[1:]
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(key, altered, ciphertext, aad=b"salt")


def test_associated_data_must_match(sealed):
    key, ciphertext, nonce = sealed
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(key, nonce, ciphertext, aad=b"other")
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(key, nonce, ciphertext)


def test_wrong_key(sealed):
    _, ciphertext, nonce = sealed
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(os.urandom(32), nonce, ciphertext, aad=b"salt")


@pytest.mark.parametrize("cut", [0, 8, TAG_SIZE - 1])
def test_short_ciphertext_is_rejected_before_decrypting(cut):
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(os.urandom(32), os.urandom(NONCE_SIZE), b"\x00" * cut)


def test_truncated_nonce_is_decryption_error(sealed):
    key, ciphertext, nonce = sealed
    with pytest.raises(DecryptionError):
        aes_gcm_decrypt_with_key(key, nonce[:4], ciphertext, aad=b"salt")


def test_nonces_do_not_repeat():
    key = os.urandom(32)
    nonces = {aes_gcm_encrypt_with_key(key, b"x")[1] for _ in range(256)}
    assert len(nonces) == 256
