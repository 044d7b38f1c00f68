# --------------------------------------------------------------
# File: crypto_sym.py
# Description: AES-256-GCM con datos asociados para los sobres de carteras.
# --------------------------------------------------------------
"""Cifrado autenticado de bajo nivel; los fallos salen como `DecryptionError`."""

import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wallet_core.errors import DecryptionError

NONCE_SIZE = 12
TAG_SIZE = 16


def aes_gcm_encrypt_with_key(
    key: bytes, plaintext: bytes, aad: Optional[bytes] = None
) -> Tuple[bytes, bytes]:
    """Sella `plaintext` con un nonce aleatorio de 96 bits.

    Args:
        key (bytes): Clave de 256 bits (acepta `bytearray`).
        plaintext (bytes): Datos a cifrar.
        aad (Optional[bytes]): Datos asociados que quedan autenticados.

    Returns:
        Tuple[bytes, bytes]: Texto cifrado con la etiqueta de 128 bits al
        final y el nonce usado.

    """

    nonce = os.urandom(NONCE_SIZE)
    return AESGCM(bytes(key)).encrypt(nonce, plaintext, aad), nonce


def aes_gcm_decrypt_with_key(
    key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None
) -> bytes:
    """Abre un sello AES-GCM sin distinguir la causa del fallo.

    Args:
        key (bytes): Clave de 256 bits.
        nonce (bytes): Nonce devuelto al cifrar.
        ciphertext (bytes): Texto cifrado seguido de la etiqueta.
        aad (Optional[bytes]): Los mismos datos asociados usados al cifrar.

    Returns:
        bytes: Texto en claro.

    Raises:
        DecryptionError: Clave errónea, datos alterados o nonce inválido.

    """

    if len(ciphertext) < TAG_SIZE:
        raise DecryptionError()
    try:
        return AESGCM(bytes(key)).decrypt(nonce, ciphertext, aad)
    except (InvalidTag, ValueError) as exc:
        raise DecryptionError() from exc
