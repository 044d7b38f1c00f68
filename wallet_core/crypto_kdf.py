# --------------------------------------------------------------
# File: crypto_kdf.py
# Description: Derivación de claves simétricas mediante PBKDF2-HMAC-SHA256.
# --------------------------------------------------------------
"""Funciones de derivación de claves para proteger la semilla del usuario."""

from __future__ import annotations

import hashlib
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from wallet_core.errors import KeyDerivationError

STRETCH_ITERATIONS = 600_000
WRAP_ITERATIONS = 100_000
LEGACY_ITERATIONS = 300_000
KEY_LENGTH = 32

_STRETCH_DOMAIN = b"wallet-core/stretch/v1:"


def normalize_identity(identity: str) -> str:
    """Normaliza el email que identifica la cuenta (espacios y mayúsculas)."""

    return identity.strip().lower()


def stretch_salt(identity: str, salt: Optional[bytes] = None) -> bytes:
    """Calcula la salt de estiramiento como función pura de la cuenta.

    Args:
        identity (str): Email que identifica la cuenta.
        salt (Optional[bytes]): Valor persistido por cuenta, si existe.

    Returns:
        bytes: Digest SHA-256 de 32 bytes usado como salt PBKDF2.

    """

    digest = hashlib.sha256(_STRETCH_DOMAIN)
    digest.update(normalize_identity(identity).encode("utf-8"))
    if salt:
        digest.update(b":")
        digest.update(salt)
    return digest.digest()


def _pbkdf2(secret: bytes, salt: bytes, iterations: int, length: int) -> bytes:
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(secret)
    except UnsupportedAlgorithm as exc:
        raise KeyDerivationError("PBKDF2-HMAC-SHA256 no disponible.") from exc


def stretch(
    passphrase: str,
    identity: str,
    salt: Optional[bytes] = None,
    *,
    iterations: int = STRETCH_ITERATIONS,
    outlen: int = KEY_LENGTH,
) -> bytearray:
    """Estira la passphrase en una clave de alta entropía (StretchedKey).

    Es determinista para el mismo trío (passphrase, identity, salt): la
    verificación posterior compara dos derivaciones independientes.

    Args:
        passphrase (str): Passphrase del usuario.
        identity (str): Email de la cuenta.
        salt (Optional[bytes]): Salt persistida por cuenta (opcional).
        iterations (int): Iteraciones PBKDF2.
        outlen (int): Longitud en bytes de la clave resultante.

    Returns:
        bytearray: Clave de 256 bits en un buffer que puede limpiarse.

    Raises:
        KeyDerivationError: Si la passphrase está vacía o falta la primitiva.

    """

    if not passphrase:
        raise KeyDerivationError("La passphrase no puede estar vacía.")
    if not identity or not identity.strip():
        raise KeyDerivationError("La identidad no puede estar vacía.")
    key = _pbkdf2(
        passphrase.encode("utf-8"), stretch_salt(identity, salt), iterations, outlen
    )
    return bytearray(key)


def derive_wrapping_key(
    identity: str, salt: bytes, *, iterations: int = WRAP_ITERATIONS
) -> bytes:
    """Deriva la clave que envuelve la StretchedKey a partir de email + salt."""

    if not identity:
        raise KeyDerivationError("La identidad no puede estar vacía.")
    material = normalize_identity(identity).encode("utf-8") + salt
    return _pbkdf2(material, salt, iterations, KEY_LENGTH)


def derive_legacy_key(
    passphrase: str, salt: bytes, *, iterations: int = LEGACY_ITERATIONS
) -> bytes:
    """Deriva la clave del esquema heredado de una sola capa."""

    if not passphrase:
        raise KeyDerivationError("La passphrase no puede estar vacía.")
    return _pbkdf2(passphrase.encode("utf-8"), salt, iterations, KEY_LENGTH)
