# --------------------------------------------------------------
# File: directory.py
# Description: Cliente del directorio remoto de carteras y sus respuestas.
# --------------------------------------------------------------
"""Interfaz con el directorio remoto que guarda los sobres cifrados.

Las respuestas se modelan como variantes etiquetadas para que el
orquestador haga *pattern matching* en lugar de sondear campos opcionales:
`SecureEnvelopeFound`, `LegacyEnvelopeFound`, `NotFound` y `ServerError`.
El directorio nunca recibe la passphrase ni la semilla en claro.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Union

import aiohttp
from pydantic import ValidationError

from wallet_core.mnemonic_wallet import validate_chain_a_address, validate_chain_b_address
from wallet_core.models import EncryptedEnvelope, WalletAddressPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecureEnvelopeFound:
    key_envelope: EncryptedEnvelope
    seed_envelope: EncryptedEnvelope
    addresses: WalletAddressPair
    account_id: str


@dataclass(frozen=True)
class LegacyEnvelopeFound:
    seed_envelope: EncryptedEnvelope
    addresses: WalletAddressPair
    account_id: str


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class ServerError:
    message: str
    status: Optional[int] = None


SecureLookup = Union[SecureEnvelopeFound, NotFound, ServerError]
LegacyLookup = Union[LegacyEnvelopeFound, NotFound, ServerError]


class WalletDirectory(Protocol):
    """Contrato del colaborador remoto; las llamadas son idempotentes."""

    async def fetch_secure(self, identity: str) -> SecureLookup: ...

    async def fetch_legacy(self, identity: str) -> LegacyLookup: ...


def addresses_to_wire(addresses: WalletAddressPair) -> Dict[str, str]:
    wire = {
        "sei_address": addresses.chain_a_address,
        "eth_address": addresses.chain_b_address,
    }
    if "chain_a" in addresses.public_keys:
        wire["sei_public_key"] = addresses.public_keys["chain_a"]
    if "chain_b" in addresses.public_keys:
        wire["eth_public_key"] = addresses.public_keys["chain_b"]
    return wire


def addresses_from_wire(data: Mapping[str, Any]) -> WalletAddressPair:
    """Reconstruye el par de direcciones; `ValueError` si alguna es inválida."""

    if not validate_chain_a_address(data["sei_address"]):
        raise ValueError("sei_address")
    if not validate_chain_b_address(data["eth_address"]):
        raise ValueError("eth_address")
    public_keys = {}
    if data.get("sei_public_key"):
        public_keys["chain_a"] = data["sei_public_key"]
    if data.get("eth_public_key"):
        public_keys["chain_b"] = data["eth_public_key"]
    return WalletAddressPair(
        chain_a_address=data["sei_address"],
        chain_b_address=data["eth_address"],
        public_keys=public_keys,
    )


def parse_secure_record(data: Mapping[str, Any]) -> Union[SecureEnvelopeFound, ServerError]:
    """Convierte el JSON de `/wallet-recovery` en una variante tipada."""

    try:
        return SecureEnvelopeFound(
            key_envelope=EncryptedEnvelope.model_validate(data["stretchedKeyEnvelope"]),
            seed_envelope=EncryptedEnvelope.model_validate(data["seedEnvelope"]),
            addresses=addresses_from_wire(data["walletAddresses"]),
            account_id=str(data.get("accountId", "")),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        logger.warning("Respuesta segura malformada: %s", type(exc).__name__)
        return ServerError("Respuesta del directorio malformada.")


def parse_legacy_record(data: Mapping[str, Any]) -> Union[LegacyEnvelopeFound, ServerError]:
    """Convierte el JSON de `/wallet/recover` en una variante tipada."""

    try:
        envelope = EncryptedEnvelope.model_validate(
            {
                "ciphertext": data["encryptedSeed"],
                "salt": data["salt"],
                "nonce": data["nonce"],
            }
        )
        return LegacyEnvelopeFound(
            seed_envelope=envelope,
            addresses=addresses_from_wire(data["walletAddresses"]),
            account_id=str(data.get("accountId", "")),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        logger.warning("Respuesta heredada malformada: %s", type(exc).__name__)
        return ServerError("Respuesta del directorio malformada.")


def build_secure_registration(
    identity: str,
    key_envelope: EncryptedEnvelope,
    seed_envelope: EncryptedEnvelope,
    addresses: WalletAddressPair,
    profile_fields: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Cuerpo que el llamador envía al directorio para registrar la cartera."""

    payload: Dict[str, Any] = dict(profile_fields or {})
    payload.update(
        {
            "email": identity,
            "stretchedKeyEnvelope": key_envelope.model_dump(mode="json"),
            "seedEnvelope": seed_envelope.model_dump(mode="json"),
            "walletAddresses": addresses_to_wire(addresses),
        }
    )
    return payload


def build_legacy_registration(
    identity: str,
    seed_envelope: EncryptedEnvelope,
    addresses: WalletAddressPair,
) -> Dict[str, Any]:
    """Cuerpo de `POST /wallet/register` del esquema de una sola capa."""

    wire = seed_envelope.model_dump(mode="json")
    return {
        "email": identity,
        "encryptedSeed": wire["ciphertext"],
        "salt": wire["salt"],
        "nonce": wire["nonce"],
        "walletAddresses": addresses_to_wire(addresses),
    }


class HttpWalletDirectory:
    """Cliente aiohttp del directorio; sin reintentos propios."""

    def __init__(self, base_url: str, *, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HttpWalletDirectory":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> Union[Dict[str, Any], NotFound, ServerError]:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, **kwargs) as resp:
                if resp.status == 404:
                    return NotFound()
                if resp.status != 200:
                    logger.warning("Directorio %s %s -> HTTP %s", method, path, resp.status)
                    return ServerError(f"HTTP {resp.status}", status=resp.status)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Directorio %s %s: %s", method, path, type(exc).__name__)
            return ServerError(f"Error de transporte: {type(exc).__name__}")
        if not isinstance(data, dict):
            return ServerError("Respuesta del directorio malformada.")
        return data

    async def fetch_secure(self, identity: str) -> SecureLookup:
        result = await self._request("GET", "/wallet-recovery", params={"email": identity})
        if isinstance(result, (NotFound, ServerError)):
            return result
        return parse_secure_record(result)

    async def fetch_legacy(self, identity: str) -> LegacyLookup:
        result = await self._request("POST", "/wallet/recover", json={"email": identity})
        if isinstance(result, (NotFound, ServerError)):
            return result
        return parse_legacy_record(result)
