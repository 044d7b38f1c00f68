# --------------------------------------------------------------
# File: backup.py
# Description: Copias de seguridad portables con checksum y límite de frecuencia.
# --------------------------------------------------------------
"""Creación y restauración de copias de seguridad cifradas."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from cryptography.hazmat.primitives import constant_time

from wallet_core.envelope import EnvelopeEncryptor
from wallet_core.errors import (
    AddressMismatchError,
    BackupError,
    CorruptedBackupError,
    RateLimitError,
    WeakPassphraseError,
)
from wallet_core.memory import wipe
from wallet_core.mnemonic_wallet import MnemonicWalletDeriver
from wallet_core.models import BackupBundle, WalletRecord
from wallet_core.password_policy import check_passphrase_strength
from wallet_core.storage import LocalSecureStore, bundle_checksum, hash_identity

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 3600.0


def encode_bundle(bundle: BackupBundle) -> Tuple[str, str]:
    """Serializa el bundle en Base64 y devuelve también su checksum aparte.

    Args:
        bundle (BackupBundle): Copia a exportar.

    Returns:
        Tuple[str, str]: Carga útil Base64 y checksum SHA-256 hexadecimal.

    """

    payload = json.dumps(bundle.portable_payload(), sort_keys=True, separators=(",", ":"))
    checksum = bundle.checksum or bundle_checksum(bundle)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii"), checksum


def decode_bundle(payload_b64: str, checksum: str) -> BackupBundle:
    """Reconstruye el bundle; `CorruptedBackupError` si el formato no es válido."""

    try:
        raw = json.loads(base64.b64decode(payload_b64, validate=True).decode("utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("payload")
        raw["checksum"] = checksum
        return BackupBundle.model_validate(raw)
    except ValueError as exc:
        raise CorruptedBackupError() from exc


def checksum_matches(bundle: BackupBundle) -> bool:
    expected = bundle_checksum(bundle).encode("ascii")
    return constant_time.bytes_eq(expected, bundle.checksum.encode("utf-8"))


class BackupManager:
    """Gestiona copias portables aplicando un intervalo mínimo por identidad.

    Args:
        store (LocalSecureStore): Almacén local de registros.
        encryptor (EnvelopeEncryptor): Operaciones de sobre.
        deriver (MnemonicWalletDeriver): Re-derivación de direcciones.
        min_interval (float): Segundos mínimos entre copias de una identidad.
        clock (Callable[[], float]): Reloj monotónico inyectable.

    """

    def __init__(
        self,
        store: LocalSecureStore,
        encryptor: EnvelopeEncryptor,
        deriver: MnemonicWalletDeriver,
        *,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.encryptor = encryptor
        self.deriver = deriver
        self.min_interval = min_interval
        self.clock = clock
        self._last_backup: Dict[str, float] = {}

    def _check_rate(self, key: str, now: float) -> None:
        expired = [k for k, t in self._last_backup.items() if now - t >= self.min_interval]
        for stale in expired:
            del self._last_backup[stale]
        last: Optional[float] = self._last_backup.get(key)
        if last is not None and now - last < self.min_interval:
            raise RateLimitError(self.min_interval - (now - last))

    async def create_backup(self, identity: str, passphrase: str) -> BackupBundle:
        """Exporta la cartera local tras comprobar la passphrase.

        Raises:
            RateLimitError: Si la copia anterior es demasiado reciente.
            BackupError: Si no hay cartera local.
            DecryptionError: Si la passphrase no abre el registro.

        """

        key = hash_identity(identity)
        now = self.clock()
        self._check_rate(key, now)

        record = self.store.get(identity)
        if record is None:
            raise BackupError("No hay cartera local que respaldar.")

        stretched = await asyncio.to_thread(self.encryptor.stretch, passphrase, identity)
        try:
            await asyncio.to_thread(self.encryptor.decrypt_seed, record.seed_envelope, stretched)
        finally:
            wipe(stretched)

        bundle = self.store.export_portable(identity)
        if bundle is None or not checksum_matches(bundle):
            raise BackupError("No se pudo exportar la cartera local.")
        self._last_backup[key] = now
        logger.info("Copia de seguridad creada [%s]", key[:12])
        return bundle

    async def restore_backup(
        self, identity: str, bundle: BackupBundle, passphrase: str
    ) -> WalletRecord:
        """Valida, descifra y persiste una copia con sobres nuevos.

        Raises:
            CorruptedBackupError: Si el checksum no coincide.
            DecryptionError: Si la passphrase no abre la copia.
            AddressMismatchError: Si las direcciones no coinciden.
            WeakPassphraseError: Si la passphrase no permite re-cifrar.

        """

        if not checksum_matches(bundle):
            logger.warning("Checksum de copia inválido [%s]", hash_identity(identity)[:12])
            raise CorruptedBackupError()

        ok, reasons, score = check_passphrase_strength(passphrase, email=identity)
        if not ok:
            raise WeakPassphraseError(reasons, score)

        stretched = await asyncio.to_thread(self.encryptor.stretch, passphrase, identity)
        try:
            seed = await asyncio.to_thread(
                self.encryptor.decrypt_seed, bundle.seed_envelope, stretched
            )
            addresses = await asyncio.to_thread(self.deriver.derive, seed)
            if not addresses.matches(bundle.addresses):
                raise AddressMismatchError(
                    "Las direcciones de la copia no coinciden con la semilla."
                )
            envelope = await asyncio.to_thread(self.encryptor.encrypt_seed, seed, stretched)
        finally:
            wipe(stretched)

        record = self.store.put(
            identity,
            WalletRecord(
                identity=identity,
                seed_envelope=envelope,
                addresses=addresses,
                created_at=bundle.created_at,
            ),
        )
        logger.info("Copia de seguridad restaurada [%s]", hash_identity(identity)[:12])
        return record
