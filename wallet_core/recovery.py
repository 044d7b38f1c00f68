# --------------------------------------------------------------
# File: recovery.py
# Description: Orquestación de registro y recuperación de carteras.
# --------------------------------------------------------------
"""Máquina de estados de recuperación (ruta segura primero, heredada después).

Etapas de `recover()`::

    IDLE -> FETCHING_ENVELOPE -> VERIFYING_PASSPHRASE -> DECRYPTING
         -> DERIVING_WALLETS -> CACHING_LOCALLY -> COMPLETE

`FAILED` es alcanzable desde cualquier etapa no terminal. La ruta heredada
salta `VERIFYING_PASSPHRASE` porque no tiene sobre de clave. Hasta
`CACHING_LOCALLY` no se modifica ningún estado persistente, por lo que
cancelar antes es siempre seguro.

Este componente no usa bloqueos: el llamador debe serializar las
operaciones concurrentes sobre una misma identidad.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import aiohttp

from wallet_core.auditor import SecurityAuditor
from wallet_core.directory import (
    LegacyEnvelopeFound,
    NotFound,
    SecureEnvelopeFound,
    ServerError,
    WalletDirectory,
    build_secure_registration,
)
from wallet_core.envelope import EnvelopeEncryptor
from wallet_core.errors import (
    INVALID_CREDENTIALS_MESSAGE,
    AddressMismatchError,
    DecryptionError,
    DirectoryError,
    InvalidSeedError,
    RecoveryError,
    WalletCoreError,
    WalletExistsError,
    WeakPassphraseError,
)
from wallet_core.memory import wipe
from wallet_core.mnemonic_wallet import MnemonicWalletDeriver, normalize
from wallet_core.models import (
    EncryptedEnvelope,
    RecoveryOptions,
    WalletAddressPair,
    WalletRecord,
    utcnow,
)
from wallet_core.password_policy import check_passphrase_strength
from wallet_core.storage import LocalSecureStore, hash_identity

logger = logging.getLogger(__name__)

SECURE_PATH = "secure"
LEGACY_PATH = "legacy"


class RecoveryStage(str, Enum):
    IDLE = "idle"
    FETCHING_ENVELOPE = "fetching_envelope"
    VERIFYING_PASSPHRASE = "verifying_passphrase"
    DECRYPTING = "decrypting"
    DERIVING_WALLETS = "deriving_wallets"
    CACHING_LOCALLY = "caching_locally"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS = {
    RecoveryStage.IDLE: {RecoveryStage.FETCHING_ENVELOPE},
    RecoveryStage.FETCHING_ENVELOPE: {
        RecoveryStage.VERIFYING_PASSPHRASE,
        RecoveryStage.DECRYPTING,
    },
    RecoveryStage.VERIFYING_PASSPHRASE: {RecoveryStage.DECRYPTING},
    RecoveryStage.DECRYPTING: {RecoveryStage.DERIVING_WALLETS},
    RecoveryStage.DERIVING_WALLETS: {
        RecoveryStage.CACHING_LOCALLY,
        RecoveryStage.COMPLETE,
    },
    RecoveryStage.CACHING_LOCALLY: {RecoveryStage.COMPLETE},
    RecoveryStage.COMPLETE: set(),
    RecoveryStage.FAILED: set(),
}


@dataclass
class RecoveryRun:
    """Traza observable de una ejecución de `recover()`."""

    stage: RecoveryStage = RecoveryStage.IDLE
    history: List[RecoveryStage] = field(default_factory=lambda: [RecoveryStage.IDLE])
    path: Optional[str] = None
    failure_reason: Optional[str] = None

    def advance(self, stage: RecoveryStage) -> None:
        if stage not in _TRANSITIONS[self.stage]:
            raise ValueError(f"Transición inválida {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)

    def fail(self, reason: str) -> None:
        if self.stage in (RecoveryStage.COMPLETE, RecoveryStage.FAILED):
            return
        self.failure_reason = reason
        self.stage = RecoveryStage.FAILED
        self.history.append(RecoveryStage.FAILED)


@dataclass
class RecoveryResult:
    seed: str
    addresses: WalletAddressPair
    path: str
    account_id: str
    run: RecoveryRun
    cached: bool = False


@dataclass
class RegistrationResult:
    """Material producido al crear (o re-cifrar) una cartera.

    `submission` es el cuerpo que el llamador envía al directorio remoto;
    el envío queda fuera de este componente.
    """

    seed: str
    addresses: WalletAddressPair
    key_envelope: EncryptedEnvelope
    seed_envelope: EncryptedEnvelope
    submission: Dict[str, Any]
    record: Optional[WalletRecord] = None


@dataclass(frozen=True)
class WalletStatus:
    has_secure_wallet: bool
    has_legacy_wallet: bool
    recommended_action: str


class _NoWalletFound(WalletCoreError):
    """Ninguna ruta devolvió sobres para la identidad."""


Found = Union[SecureEnvelopeFound, LegacyEnvelopeFound]


class RecoveryOrchestrator:
    """Coordina directorio remoto, sobres, derivación y caché local.

    Args:
        directory (WalletDirectory): Colaborador remoto.
        encryptor (EnvelopeEncryptor): Operaciones de sobre.
        deriver (MnemonicWalletDeriver): Generación y derivación BIP-39.
        store (LocalSecureStore): Almacén local cifrado.
        auditor (SecurityAuditor | None): Auditor para bloquear registros.
        min_audit_score (int): Puntuación mínima exigida al registrar.

    """

    def __init__(
        self,
        directory: WalletDirectory,
        encryptor: EnvelopeEncryptor,
        deriver: MnemonicWalletDeriver,
        store: LocalSecureStore,
        *,
        auditor: Optional[SecurityAuditor] = None,
        min_audit_score: int = 0,
    ) -> None:
        self.directory = directory
        self.encryptor = encryptor
        self.deriver = deriver
        self.store = store
        self.auditor = auditor
        self.min_audit_score = min_audit_score

    # ── recuperación ─────────────────────────────────────────────

    async def recover(
        self,
        identity: str,
        passphrase: str,
        options: Optional[RecoveryOptions] = None,
    ) -> RecoveryResult:
        """Recupera semilla y direcciones; cualquier fallo es `RecoveryError`.

        Args:
            identity (str): Email de la cuenta.
            passphrase (str): Passphrase del usuario.
            options (RecoveryOptions | None): Preferencia de ruta y caché.

        Returns:
            RecoveryResult: Semilla, direcciones, ruta usada y traza.

        Raises:
            RecoveryError: Credenciales inválidas, cuenta inexistente,
                corrupción detectada o fallo del directorio.

        """

        options = options or RecoveryOptions()
        run = RecoveryRun()
        tag = hash_identity(identity)[:12]
        try:
            result = await self._drive(run, identity, passphrase, options)
        except (DecryptionError, _NoWalletFound) as exc:
            run.fail("invalid_credentials")
            logger.info("Recuperación rechazada [%s]", tag)
            raise RecoveryError(INVALID_CREDENTIALS_MESSAGE, run=run, cause=exc) from exc
        except AddressMismatchError as exc:
            run.fail("address_mismatch")
            logger.error("Direcciones re-derivadas no coinciden [%s]", tag)
            raise RecoveryError(str(exc), run=run, cause=exc) from exc
        except DirectoryError as exc:
            run.fail("directory_error")
            raise RecoveryError(
                "No se pudo contactar con el directorio de carteras.", run=run, cause=exc
            ) from exc
        except WalletCoreError as exc:
            run.fail(type(exc).__name__)
            raise RecoveryError(str(exc), run=run, cause=exc) from exc
        except asyncio.CancelledError:
            run.fail("cancelled")
            raise
        logger.info("Recuperación completada por ruta %s [%s]", result.path, tag)
        return result

    async def _drive(
        self,
        run: RecoveryRun,
        identity: str,
        passphrase: str,
        options: RecoveryOptions,
    ) -> RecoveryResult:
        run.advance(RecoveryStage.FETCHING_ENVELOPE)
        found = await self._fetch(identity, options)

        stretched: Optional[bytearray] = None
        try:
            match found:
                case SecureEnvelopeFound():
                    run.path = SECURE_PATH
                    seed, stretched = await self._open_secure(run, identity, passphrase, found)
                case LegacyEnvelopeFound():
                    run.path = LEGACY_PATH
                    run.advance(RecoveryStage.DECRYPTING)
                    seed = await asyncio.to_thread(
                        self.encryptor.legacy_decrypt_seed, found.seed_envelope, passphrase
                    )

            run.advance(RecoveryStage.DERIVING_WALLETS)
            addresses = await asyncio.to_thread(self.deriver.derive, seed)
            if not addresses.matches(found.addresses):
                raise AddressMismatchError(
                    "Las direcciones derivadas no coinciden con las registradas."
                )

            cached = False
            if options.cache_locally:
                run.advance(RecoveryStage.CACHING_LOCALLY)
                cached = await self._cache_recovered(
                    identity, passphrase, seed, addresses, stretched
                )
        finally:
            wipe(stretched)

        run.advance(RecoveryStage.COMPLETE)
        return RecoveryResult(
            seed=seed,
            addresses=addresses,
            path=run.path or "",
            account_id=found.account_id,
            run=run,
            cached=cached,
        )

    async def _fetch(self, identity: str, options: RecoveryOptions) -> Found:
        order = [SECURE_PATH, LEGACY_PATH] if options.prefer_secure else [LEGACY_PATH, SECURE_PATH]
        if not options.allow_legacy_fallback:
            order.remove(LEGACY_PATH)

        for path in order:
            try:
                if path == SECURE_PATH:
                    lookup = await self.directory.fetch_secure(identity)
                else:
                    lookup = await self.directory.fetch_legacy(identity)
            except (OSError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.warning("Directorio inaccesible en ruta %s: %s", path, type(exc).__name__)
                raise DirectoryError(f"Error de transporte: {type(exc).__name__}") from exc
            match lookup:
                case SecureEnvelopeFound() | LegacyEnvelopeFound():
                    return lookup
                case ServerError(message=message):
                    raise DirectoryError(message)
                case NotFound():
                    logger.debug("Sin sobres en ruta %s", path)
        raise _NoWalletFound(INVALID_CREDENTIALS_MESSAGE)

    async def _open_secure(
        self,
        run: RecoveryRun,
        identity: str,
        passphrase: str,
        found: SecureEnvelopeFound,
    ) -> Tuple[str, bytearray]:
        run.advance(RecoveryStage.VERIFYING_PASSPHRASE)
        valid = await asyncio.to_thread(
            self.encryptor.verify_passphrase, passphrase, identity, found.key_envelope
        )
        if not valid:
            raise DecryptionError()

        run.advance(RecoveryStage.DECRYPTING)
        stretched = await asyncio.to_thread(
            self.encryptor.unwrap_key, found.key_envelope, identity
        )
        try:
            seed = await asyncio.to_thread(
                self.encryptor.decrypt_seed, found.seed_envelope, stretched
            )
        except DecryptionError:
            wipe(stretched)
            raise
        return seed, stretched

    async def _cache_recovered(
        self,
        identity: str,
        passphrase: str,
        seed: str,
        addresses: WalletAddressPair,
        stretched: Optional[bytearray],
    ) -> bool:
        ok, reasons, score = check_passphrase_strength(passphrase, email=identity)
        if not ok:
            logger.warning(
                "Passphrase por debajo de la política (score=%s); no se cachea", score
            )
            return False
        own_key = stretched is None
        key = stretched if stretched is not None else await asyncio.to_thread(
            self.encryptor.stretch, passphrase, identity
        )
        try:
            envelope = await asyncio.to_thread(self.encryptor.encrypt_seed, seed, key)
        finally:
            if own_key:
                wipe(key)
        previous = self.store.get(identity)
        created_at = previous.created_at if previous else utcnow()
        self.store.put(
            identity,
            WalletRecord(
                identity=identity,
                seed_envelope=envelope,
                addresses=addresses,
                created_at=created_at,
            ),
        )
        return True

    # ── registro y re-cifrado ────────────────────────────────────

    def _require_policy(self, identity: str, passphrase: str) -> None:
        ok, reasons, score = check_passphrase_strength(passphrase, email=identity)
        if not ok:
            raise WeakPassphraseError(reasons, score)

    async def register(
        self,
        identity: str,
        passphrase: str,
        profile_fields: Optional[Mapping[str, Any]] = None,
        *,
        cache_locally: bool = True,
    ) -> RegistrationResult:
        """Genera una cartera nueva y el material para el directorio remoto.

        Args:
            identity (str): Email de la cuenta.
            passphrase (str): Passphrase que debe cumplir la política.
            profile_fields (Mapping[str, Any] | None): Campos de perfil que se
                adjuntan al cuerpo de registro.
            cache_locally (bool): Guarda además un registro cifrado local.

        Returns:
            RegistrationResult: Semilla, direcciones, sobres y cuerpo a enviar.

        Raises:
            WeakPassphraseError: Si la passphrase no cumple la política.
            WalletExistsError: Si ya hay cartera local y se pide cachearla.
            InsecureEnvironmentError: Si la auditoría no alcanza el mínimo.

        """

        self._require_policy(identity, passphrase)
        if cache_locally and self.store.has_wallet(identity):
            raise WalletExistsError("Ya existe una cartera local para esta cuenta.")
        if self.auditor is not None and self.min_audit_score > 0:
            self.auditor.enforce(self.min_audit_score)
        seed = await asyncio.to_thread(self.deriver.generate)
        result = await self._seal(identity, passphrase, seed, profile_fields, cache_locally)
        logger.info("Cartera registrada [%s]", hash_identity(identity)[:12])
        return result

    async def recover_by_phrase(
        self,
        identity: str,
        phrase: str,
        new_passphrase: str,
        profile_fields: Optional[Mapping[str, Any]] = None,
    ) -> RegistrationResult:
        """Sustituye explícitamente la semilla a partir de la frase del usuario."""

        if not self.deriver.validate(phrase):
            raise InvalidSeedError("Frase semilla inválida.")
        self._require_policy(identity, new_passphrase)
        return await self._seal(
            identity, new_passphrase, normalize(phrase), profile_fields, True
        )

    async def change_passphrase(
        self, identity: str, old_passphrase: str, new_passphrase: str
    ) -> RegistrationResult:
        """Re-cifra por completo la cartera local con una passphrase nueva.

        Raises:
            DecryptionError: Passphrase antigua incorrecta o sin cartera local.
            WeakPassphraseError: Si la nueva passphrase no cumple la política.
            AddressMismatchError: Si el registro local está corrupto.

        """

        self._require_policy(identity, new_passphrase)
        record = self.store.get(identity)
        if record is None:
            raise DecryptionError()
        seed, addresses = await self._open_local(identity, old_passphrase, record)
        return await self._seal(
            identity, new_passphrase, seed, None, True, created_at=record.created_at
        )

    async def unlock_local(
        self, identity: str, passphrase: str
    ) -> Tuple[str, WalletAddressPair]:
        """Descifra la cartera cacheada y actualiza su último acceso."""

        record = self.store.get(identity)
        if record is None:
            raise DecryptionError()
        seed, addresses = await self._open_local(identity, passphrase, record)
        self.store.touch(identity)
        return seed, addresses

    async def _open_local(
        self, identity: str, passphrase: str, record: WalletRecord
    ) -> Tuple[str, WalletAddressPair]:
        key = await asyncio.to_thread(self.encryptor.stretch, passphrase, identity)
        try:
            seed = await asyncio.to_thread(
                self.encryptor.decrypt_seed, record.seed_envelope, key
            )
        finally:
            wipe(key)
        addresses = await asyncio.to_thread(self.deriver.derive, seed)
        if not addresses.matches(record.addresses):
            raise AddressMismatchError(
                "Las direcciones derivadas no coinciden con el registro local."
            )
        return seed, addresses

    async def _seal(
        self,
        identity: str,
        passphrase: str,
        seed: str,
        profile_fields: Optional[Mapping[str, Any]],
        cache_locally: bool,
        *,
        created_at: Optional[datetime] = None,
    ) -> RegistrationResult:
        addresses = await asyncio.to_thread(self.deriver.derive, seed)
        stretched = await asyncio.to_thread(self.encryptor.stretch, passphrase, identity)
        try:
            key_envelope = await asyncio.to_thread(
                self.encryptor.wrap_key, stretched, identity
            )
            seed_envelope = await asyncio.to_thread(
                self.encryptor.encrypt_seed, seed, stretched
            )
            local_envelope = None
            if cache_locally:
                local_envelope = await asyncio.to_thread(
                    self.encryptor.encrypt_seed, seed, stretched
                )
        finally:
            wipe(stretched)

        record = None
        if local_envelope is not None:
            record = self.store.put(
                identity,
                WalletRecord(
                    identity=identity,
                    seed_envelope=local_envelope,
                    addresses=addresses,
                    created_at=created_at or utcnow(),
                ),
            )
        submission = build_secure_registration(
            identity, key_envelope, seed_envelope, addresses, profile_fields
        )
        return RegistrationResult(
            seed=seed,
            addresses=addresses,
            key_envelope=key_envelope,
            seed_envelope=seed_envelope,
            submission=submission,
            record=record,
        )

    # ── estado ───────────────────────────────────────────────────

    async def wallet_status(self, identity: str) -> WalletStatus:
        """Indica qué esquemas existen y la acción recomendada."""

        secure, legacy = await asyncio.gather(
            self.directory.fetch_secure(identity),
            self.directory.fetch_legacy(identity),
        )
        has_secure = isinstance(secure, SecureEnvelopeFound)
        has_legacy = isinstance(legacy, LegacyEnvelopeFound)
        if has_secure:
            action = "use_secure"
        elif has_legacy:
            action = "migrate_to_secure"
        else:
            action = "setup"
        return WalletStatus(
            has_secure_wallet=has_secure,
            has_legacy_wallet=has_legacy,
            recommended_action=action,
        )
