# --------------------------------------------------------------
# File: models.py
# Description: Modelos de datos comunes utilizados por la capa criptográfica.
# --------------------------------------------------------------
"""Modelos Pydantic que encapsulan sobres cifrados, carteras y copias."""

from __future__ import annotations

import base64
from datetime import UTC, datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def b64u_encode(data: bytes) -> str:
    """Codifica datos binarios en Base64 URL-safe sin relleno."""

    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64u_decode(value: str) -> bytes:
    """Decodifica datos codificados en Base64 URL-safe gestionando el relleno."""

    pad = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + pad)


def utcnow() -> datetime:
    return datetime.now(UTC)


class EncryptedEnvelope(BaseModel):
    """Resultado AES-256-GCM listo para persistir o transmitir.

    Attributes:
        ciphertext (bytes): Datos cifrados con la etiqueta de 128 bits al final.
        salt (bytes): Salt aleatoria de 16 bytes asociada al sobre.
        nonce (bytes): Vector de inicialización de 96 bits.

    """

    model_config = ConfigDict(frozen=True)

    ciphertext: bytes
    salt: bytes
    nonce: bytes

    @field_validator("ciphertext", "salt", "nonce", mode="before")
    @classmethod
    def _decode_b64(cls, value: Any) -> Any:
        if isinstance(value, str):
            return b64u_decode(value)
        return value

    @field_serializer("ciphertext", "salt", "nonce", when_used="json")
    def _encode_b64(self, value: bytes) -> str:
        return b64u_encode(value)


class WalletAddressPair(BaseModel):
    """Direcciones públicas deterministas derivadas de la semilla.

    Attributes:
        chain_a_address (str): Dirección bech32 estilo Cosmos.
        chain_b_address (str): Dirección hexadecimal estilo Ethereum.
        public_keys (Dict[str, str]): Claves públicas en hex por cadena.

    """

    model_config = ConfigDict(frozen=True)

    chain_a_address: str
    chain_b_address: str
    public_keys: Dict[str, str] = Field(default_factory=dict)

    def matches(self, other: "WalletAddressPair") -> bool:
        """Compara direcciones y, si ambos lados las tienen, claves públicas."""

        if self.chain_a_address != other.chain_a_address:
            return False
        if self.chain_b_address.lower() != other.chain_b_address.lower():
            return False
        shared = set(self.public_keys) & set(other.public_keys)
        return all(
            self.public_keys[name].lower() == other.public_keys[name].lower()
            for name in shared
        )


class WalletRecord(BaseModel):
    """Unidad persistida en el almacén local."""

    identity: str
    seed_envelope: EncryptedEnvelope
    addresses: WalletAddressPair
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)


class WalletMetadata(BaseModel):
    """Fila de metadatos sin secretos: direcciones y marcas de tiempo."""

    addresses: WalletAddressPair
    created_at: datetime
    last_accessed_at: datetime


class BackupBundle(BaseModel):
    """Exportación portable de un `WalletRecord` con checksum SHA-256."""

    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    seed_envelope: EncryptedEnvelope
    addresses: WalletAddressPair
    checksum: str = ""

    def portable_payload(self) -> Dict[str, Any]:
        """Devuelve la estructura exportable sin el checksum."""

        return self.model_dump(mode="json", exclude={"checksum"})


class DeletionAuditEntry(BaseModel):
    """Entrada redactada del registro de borrados."""

    identity_hash: str
    deleted_at: datetime = Field(default_factory=utcnow)
    reason: str


class AuditReport(BaseModel):
    """Resultado de la auditoría de postura de seguridad."""

    score: int = 100
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    checks: Dict[str, bool] = Field(default_factory=dict)


class RecoveryOptions(BaseModel):
    """Opciones de `recover()`."""

    prefer_secure: bool = True
    allow_legacy_fallback: bool = True
    cache_locally: bool = True


class KdfParams(BaseModel):
    """Iteraciones PBKDF2 por etapa; por defecto las de producción."""

    model_config = ConfigDict(frozen=True)

    stretch_iterations: int = Field(default=600_000, ge=1)
    wrap_iterations: int = Field(default=100_000, ge=1)
    legacy_iterations: int = Field(default=300_000, ge=1)
    outlen: int = 32
