# --------------------------------------------------------------
# File: storage.py
# Description: Persistencia local de carteras cifradas sobre una base JSON.
# --------------------------------------------------------------
"""Almacén local: registros cifrados, metadatos y registro de borrados."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
from typing import Any, Dict, List, Optional

from wallet_core.crypto_kdf import normalize_identity
from wallet_core.models import (
    BackupBundle,
    DeletionAuditEntry,
    WalletMetadata,
    WalletRecord,
    utcnow,
)

__all__ = [
    "LocalSecureStore",
    "bundle_checksum",
    "hash_identity",
    "load_db",
    "save_db",
]

logger = logging.getLogger(__name__)

_DEFAULT_DB: Dict[str, Any] = {"wallets": {}, "metadata": {}, "deletion_audit": []}


def _ensure_parent_dir(path: str) -> None:
    """Garantiza que exista el directorio padre del archivo de destino."""

    parent = os.path.dirname(path) or "."
    os.makedirs(parent, exist_ok=True)


def _quarantine(path: str) -> str:
    """Mueve un archivo ilegible a `*.corrupt` sin pisar copias anteriores."""

    target = f"{path}.corrupt"
    counter = 1
    while os.path.exists(target):
        target = f"{path}.corrupt.{counter}"
        counter += 1
    os.replace(path, target)
    return target


def load_db(path: str) -> Dict[str, Any]:
    """Carga un archivo JSON y devuelve un diccionario seguro para uso interno.

    Args:
        path (str): Ruta del archivo JSON de carteras.

    Returns:
        Dict[str, Any]: Estructura cargada o la base vacía si no existe. Un
        archivo ilegible se conserva como `*.corrupt` antes de empezar de cero.

    """

    try:
        with open(path, "r", encoding="utf-8") as handler:
            db = json.load(handler)
    except FileNotFoundError:
        return copy.deepcopy(_DEFAULT_DB)
    except json.JSONDecodeError:
        db = None
    if not isinstance(db, dict):
        quarantine = _quarantine(path)
        logger.error("Base de carteras ilegible; apartada en %s", quarantine)
        return copy.deepcopy(_DEFAULT_DB)
    for table, empty in _DEFAULT_DB.items():
        db.setdefault(table, copy.deepcopy(empty))
    return db


def save_db(db: Dict[str, Any], path: str) -> None:
    """Guarda la base de datos JSON aplicando escritura atómica."""

    _ensure_parent_dir(path)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as handler:
        json.dump(db, handler, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)


def hash_identity(identity: str) -> str:
    """SHA-256 hex del email normalizado, para el registro de borrados."""

    return hashlib.sha256(normalize_identity(identity).encode("utf-8")).hexdigest()


def bundle_checksum(bundle: BackupBundle) -> str:
    """Checksum SHA-256 sobre la serialización canónica del bundle."""

    canonical = json.dumps(
        bundle.portable_payload(), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class LocalSecureStore:
    """Tabla clave-valor `identidad -> WalletRecord` en un archivo JSON.

    Solo contiene sobres cifrados y datos públicos; nunca la semilla ni la
    passphrase en claro. Las escrituras son upserts de último escritor.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def _key(self, identity: str) -> str:
        return normalize_identity(identity)

    def put(self, identity: str, record: WalletRecord) -> WalletRecord:
        """Inserta o sustituye el registro y actualiza `last_accessed_at`."""

        key = self._key(identity)
        stored = record.model_copy(update={"identity": key, "last_accessed_at": utcnow()})
        db = load_db(self.path)
        db["wallets"][key] = stored.model_dump(mode="json")
        db["metadata"][key] = WalletMetadata(
            addresses=stored.addresses,
            created_at=stored.created_at,
            last_accessed_at=stored.last_accessed_at,
        ).model_dump(mode="json")
        save_db(db, self.path)
        logger.info("Registro de cartera guardado")
        return stored

    def get(self, identity: str) -> Optional[WalletRecord]:
        """Devuelve el registro cifrado o `None` si no existe."""

        raw = load_db(self.path)["wallets"].get(self._key(identity))
        if raw is None:
            return None
        return WalletRecord.model_validate(raw)

    def touch(self, identity: str) -> None:
        """Actualiza solo la marca de último acceso."""

        key = self._key(identity)
        db = load_db(self.path)
        if key not in db["wallets"]:
            return
        now = utcnow()
        record = WalletRecord.model_validate(db["wallets"][key])
        record = record.model_copy(update={"last_accessed_at": now})
        db["wallets"][key] = record.model_dump(mode="json")
        if key in db["metadata"]:
            meta = WalletMetadata.model_validate(db["metadata"][key])
            db["metadata"][key] = meta.model_copy(
                update={"last_accessed_at": now}
            ).model_dump(mode="json")
        save_db(db, self.path)

    def has_wallet(self, identity: str) -> bool:
        return self._key(identity) in load_db(self.path)["wallets"]

    def get_metadata(self, identity: str) -> Optional[WalletMetadata]:
        """Metadatos no sensibles (direcciones y fechas)."""

        raw = load_db(self.path)["metadata"].get(self._key(identity))
        return WalletMetadata.model_validate(raw) if raw else None

    def delete(self, identity: str, reason: str) -> bool:
        """Elimina el registro y deja una entrada de auditoría redactada.

        Args:
            identity (str): Email de la cuenta.
            reason (str): Motivo declarado del borrado.

        Returns:
            bool: `True` si existía un registro que borrar.

        """

        key = self._key(identity)
        db = load_db(self.path)
        existed = db["wallets"].pop(key, None) is not None
        db["metadata"].pop(key, None)
        entry = DeletionAuditEntry(identity_hash=hash_identity(key), reason=reason)
        db["deletion_audit"].append(entry.model_dump(mode="json"))
        save_db(db, self.path)
        logger.info("Cartera borrada (existía=%s, motivo=%s)", existed, reason)
        return existed

    def clear_all(self, reason: str) -> int:
        """Borra todas las carteras registrando cada borrado."""

        db = load_db(self.path)
        identities = list(db["wallets"])
        for key in identities:
            entry = DeletionAuditEntry(identity_hash=hash_identity(key), reason=reason)
            db["deletion_audit"].append(entry.model_dump(mode="json"))
        db["wallets"] = {}
        db["metadata"] = {}
        save_db(db, self.path)
        return len(identities)

    def deletion_log(self) -> List[DeletionAuditEntry]:
        return [
            DeletionAuditEntry.model_validate(raw)
            for raw in load_db(self.path)["deletion_audit"]
        ]

    def export_portable(self, identity: str) -> Optional[BackupBundle]:
        """Exporta el registro sin metadatos locales y con checksum."""

        record = self.get(identity)
        if record is None:
            return None
        bundle = BackupBundle(
            created_at=utcnow(),
            seed_envelope=record.seed_envelope,
            addresses=record.addresses,
        )
        return bundle.model_copy(update={"checksum": bundle_checksum(bundle)})
