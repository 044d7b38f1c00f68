# --------------------------------------------------------------
# File: container.py
# Description: Raíz de composición que construye e inyecta los componentes.
# --------------------------------------------------------------
"""Construcción explícita del núcleo de carteras, sin singletons globales."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, Optional

from wallet_core import config
from wallet_core.auditor import SecurityAuditor, StorageSource
from wallet_core.backup import BackupManager
from wallet_core.directory import HttpWalletDirectory, WalletDirectory
from wallet_core.envelope import EnvelopeEncryptor
from wallet_core.logging_config import setup_logging
from wallet_core.mnemonic_wallet import MnemonicWalletDeriver
from wallet_core.models import KdfParams
from wallet_core.recovery import RecoveryOrchestrator
from wallet_core.storage import LocalSecureStore


@dataclass
class WalletCore:
    """Componentes ya cableados que la aplicación reparte a sus consumidores."""

    directory: WalletDirectory
    encryptor: EnvelopeEncryptor
    deriver: MnemonicWalletDeriver
    store: LocalSecureStore
    auditor: SecurityAuditor
    recovery: RecoveryOrchestrator
    backups: BackupManager


def build_wallet_core(
    *,
    directory: Optional[WalletDirectory] = None,
    storage_path: Optional[str] = None,
    kdf_params: Optional[KdfParams] = None,
    storage_sources: Iterable[StorageSource] = (),
    min_audit_score: Optional[int] = None,
    backup_interval: Optional[float] = None,
    configure_logging: bool = False,
) -> WalletCore:
    """Crea todos los componentes a partir de la configuración del entorno.

    Cualquier argumento explícito prevalece sobre el valor de `config`.
    """

    if configure_logging:
        setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    params = kdf_params or KdfParams(**config.KDF_PARAMS)
    encryptor = EnvelopeEncryptor(params)
    deriver = MnemonicWalletDeriver()
    store = LocalSecureStore(
        os.path.join(storage_path or config.STORAGE_PATH, config.WALLET_DB_FILE)
    )
    if directory is None:
        directory = HttpWalletDirectory(config.DIRECTORY_URL, timeout=config.DIRECTORY_TIMEOUT)
    auditor = SecurityAuditor(
        directory_url=getattr(directory, "base_url", None),
        storage_sources=storage_sources,
        wordlist=deriver.wordlist,
    )
    recovery = RecoveryOrchestrator(
        directory,
        encryptor,
        deriver,
        store,
        auditor=auditor,
        min_audit_score=config.AUDIT_MIN_SCORE if min_audit_score is None else min_audit_score,
    )
    backups = BackupManager(
        store,
        encryptor,
        deriver,
        min_interval=(
            config.BACKUP_MIN_INTERVAL_SECONDS if backup_interval is None else backup_interval
        ),
    )
    return WalletCore(
        directory=directory,
        encryptor=encryptor,
        deriver=deriver,
        store=store,
        auditor=auditor,
        recovery=recovery,
        backups=backups,
    )
