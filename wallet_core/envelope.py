# --------------------------------------------------------------
# File: envelope.py
# Description: Sobres AES-256-GCM para la StretchedKey y la frase semilla.
# --------------------------------------------------------------
"""Envoltura y apertura autenticada de la clave estirada y de la semilla.

Cada cuenta tiene dos sobres:

* El sobre de clave protege la StretchedKey con una clave derivada del
  email y de una salt aleatoria (PBKDF2, 100.000 iteraciones).
* El sobre de semilla cifra el mnemónico directamente con la StretchedKey;
  su salt aleatoria viaja como datos asociados y queda autenticada.

El esquema heredado (`legacy_*`) cifra la semilla con una clave derivada
directamente de la passphrase, sin indirección.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import constant_time

from wallet_core.crypto_kdf import derive_legacy_key, derive_wrapping_key, stretch
from wallet_core.crypto_sym import aes_gcm_decrypt_with_key, aes_gcm_encrypt_with_key
from wallet_core.errors import DecryptionError, KeyDerivationError
from wallet_core.memory import wipe
from wallet_core.models import EncryptedEnvelope, KdfParams

logger = logging.getLogger(__name__)

SALT_SIZE = 16


class EnvelopeEncryptor:
    """Operaciones de sobre parametrizadas por iteraciones KDF."""

    def __init__(self, params: Optional[KdfParams] = None) -> None:
        self.params = params or KdfParams()

    def stretch(
        self, passphrase: str, identity: str, salt: Optional[bytes] = None
    ) -> bytearray:
        """Atajo a `crypto_kdf.stretch` con las iteraciones configuradas."""

        return stretch(
            passphrase,
            identity,
            salt,
            iterations=self.params.stretch_iterations,
            outlen=self.params.outlen,
        )

    def wrap_key(self, stretched_key: bytes, identity: str) -> EncryptedEnvelope:
        """Cifra la StretchedKey para su almacenamiento remoto.

        Args:
            stretched_key (bytes): Clave estirada de 256 bits.
            identity (str): Email de la cuenta.

        Returns:
            EncryptedEnvelope: Sobre con salt y nonce nuevos.

        """

        if not stretched_key:
            raise KeyDerivationError("Clave estirada vacía.")
        salt = os.urandom(SALT_SIZE)
        wrapping_key = bytearray(
            derive_wrapping_key(identity, salt, iterations=self.params.wrap_iterations)
        )
        try:
            ciphertext, nonce = aes_gcm_encrypt_with_key(wrapping_key, bytes(stretched_key))
        finally:
            wipe(wrapping_key)
        return EncryptedEnvelope(ciphertext=ciphertext, salt=salt, nonce=nonce)

    def unwrap_key(self, envelope: EncryptedEnvelope, identity: str) -> bytearray:
        """Recupera la StretchedKey; `DecryptionError` si la etiqueta falla."""

        wrapping_key = bytearray(
            derive_wrapping_key(
                identity, envelope.salt, iterations=self.params.wrap_iterations
            )
        )
        try:
            return bytearray(
                aes_gcm_decrypt_with_key(wrapping_key, envelope.nonce, envelope.ciphertext)
            )
        finally:
            wipe(wrapping_key)

    def encrypt_seed(self, seed: str, stretched_key: bytes) -> EncryptedEnvelope:
        """Cifra la frase semilla con la StretchedKey."""

        salt = os.urandom(SALT_SIZE)
        ciphertext, nonce = aes_gcm_encrypt_with_key(
            stretched_key, seed.encode("utf-8"), aad=salt
        )
        return EncryptedEnvelope(ciphertext=ciphertext, salt=salt, nonce=nonce)

    def decrypt_seed(self, envelope: EncryptedEnvelope, stretched_key: bytes) -> str:
        """Descifra la frase semilla; `DecryptionError` ante cualquier fallo."""

        plaintext = aes_gcm_decrypt_with_key(
            stretched_key, envelope.nonce, envelope.ciphertext, aad=envelope.salt
        )
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError() from exc

    def verify_passphrase(
        self, candidate: str, identity: str, stored_envelope: EncryptedEnvelope
    ) -> bool:
        """Comprueba la passphrase comparando en tiempo constante.

        Args:
            candidate (str): Passphrase introducida.
            identity (str): Email de la cuenta.
            stored_envelope (EncryptedEnvelope): Sobre de clave almacenado.

        Returns:
            bool: `True` solo si la clave estirada coincide con la guardada.

        """

        provided: Optional[bytearray] = None
        stored: Optional[bytearray] = None
        try:
            provided = self.stretch(candidate, identity)
            stored = self.unwrap_key(stored_envelope, identity)
            return constant_time.bytes_eq(bytes(provided), bytes(stored))
        except (DecryptionError, KeyDerivationError):
            logger.debug("Verificación de passphrase fallida")
            return False
        finally:
            wipe(provided)
            wipe(stored)

    def legacy_encrypt_seed(self, seed: str, passphrase: str) -> EncryptedEnvelope:
        """Cifra la semilla con el esquema heredado de una sola capa."""

        salt = os.urandom(SALT_SIZE)
        key = bytearray(
            derive_legacy_key(passphrase, salt, iterations=self.params.legacy_iterations)
        )
        try:
            ciphertext, nonce = aes_gcm_encrypt_with_key(key, seed.encode("utf-8"))
        finally:
            wipe(key)
        return EncryptedEnvelope(ciphertext=ciphertext, salt=salt, nonce=nonce)

    def legacy_decrypt_seed(self, envelope: EncryptedEnvelope, passphrase: str) -> str:
        """Descifra un sobre heredado; cualquier fallo es `DecryptionError`."""

        key = bytearray(
            derive_legacy_key(
                passphrase, envelope.salt, iterations=self.params.legacy_iterations
            )
        )
        try:
            plaintext = aes_gcm_decrypt_with_key(key, envelope.nonce, envelope.ciphertext)
        finally:
            wipe(key)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError() from exc
