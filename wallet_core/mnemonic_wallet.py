# --------------------------------------------------------------
# File: mnemonic_wallet.py
# Description: Generación BIP-39 y derivación determinista de carteras.
# --------------------------------------------------------------
"""Generación y validación de frases semilla y derivación de direcciones.

Rutas fijas de derivación:

* Cadena A (estilo Cosmos, bech32 con prefijo ``sei``): m/44'/118'/0'/0/0
* Cadena B (estilo Ethereum, hex con checksum EIP-55): m/44'/60'/0'/0/0
"""

from __future__ import annotations

import logging
from typing import List

from bip_utils import (
    AtomAddrDecoder,
    AtomAddrEncoder,
    Bech32ChecksumError,
    Bip39SeedGenerator,
    Bip44,
    Bip44Changes,
    Bip44Coins,
    EthAddrDecoder,
)
from mnemonic import Mnemonic

from wallet_core.errors import InvalidSeedError
from wallet_core.models import WalletAddressPair

logger = logging.getLogger(__name__)

MNEMONIC_LANG = "english"
ENTROPY_BITS = 128
WORD_COUNT = 12
CHAIN_A_HRP = "sei"
CHAIN_A_PATH = "m/44'/118'/0'/0/0"
CHAIN_B_PATH = "m/44'/60'/0'/0/0"


def normalize(phrase: str) -> str:
    """Colapsa espacios y pasa a minúsculas la frase semilla."""

    return " ".join(phrase.strip().lower().split())


def validate_chain_a_address(address: str) -> bool:
    """Comprueba una dirección bech32 con prefijo `sei` y checksum válido."""

    if not isinstance(address, str):
        return False
    try:
        AtomAddrDecoder.DecodeAddr(address, hrp=CHAIN_A_HRP)
    except (ValueError, TypeError, Bech32ChecksumError):
        return False
    return True


def validate_chain_b_address(address: str) -> bool:
    """Comprueba una dirección hex de 20 bytes.

    Las direcciones con mayúsculas y minúsculas mezcladas deben respetar el
    checksum EIP-55; las que van todo en minúsculas o todo en mayúsculas no
    lo llevan.
    """

    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    body = address[2:]
    uniform_case = body == body.lower() or body == body.upper()
    try:
        EthAddrDecoder.DecodeAddr(address, skip_chksum_enc=uniform_case)
    except (ValueError, TypeError):
        return False
    return True


class MnemonicWalletDeriver:
    """Generador de semillas y derivador de pares de direcciones."""

    def __init__(self, language: str = MNEMONIC_LANG) -> None:
        self._mnemo = Mnemonic(language)

    @property
    def wordlist(self) -> List[str]:
        return list(self._mnemo.wordlist)

    def generate(self) -> str:
        """Genera una frase de 12 palabras con 128 bits de un CSPRNG."""

        return self._mnemo.generate(strength=ENTROPY_BITS)

    def validate(self, phrase: str) -> bool:
        """Verifica palabras y checksum de la frase."""

        if not phrase:
            return False
        normalized = normalize(phrase)
        if len(normalized.split(" ")) != WORD_COUNT:
            return False
        try:
            return bool(self._mnemo.check(normalized))
        except (ValueError, LookupError):
            return False

    def derive(self, seed: str) -> WalletAddressPair:
        """Deriva las dos direcciones públicas a partir de la semilla.

        Args:
            seed (str): Frase mnemónica BIP-39 de 12 palabras.

        Returns:
            WalletAddressPair: Direcciones y claves públicas de ambas cadenas.

        Raises:
            InvalidSeedError: Si la frase no supera el checksum.

        """

        if not self.validate(seed):
            logger.debug("Frase semilla rechazada en la derivación")
            raise InvalidSeedError("Frase semilla inválida.")
        seed_bytes = Bip39SeedGenerator(normalize(seed)).Generate()

        cosmos_ctx = (
            Bip44.FromSeed(seed_bytes, Bip44Coins.COSMOS)
            .Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(0)
        )
        cosmos_pub = cosmos_ctx.PublicKey()
        chain_a_address = AtomAddrEncoder.EncodeKey(
            cosmos_pub.RawCompressed().ToBytes(), hrp=CHAIN_A_HRP
        )

        eth_ctx = (
            Bip44.FromSeed(seed_bytes, Bip44Coins.ETHEREUM)
            .Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(0)
        )
        eth_pub = eth_ctx.PublicKey()

        return WalletAddressPair(
            chain_a_address=chain_a_address,
            chain_b_address=eth_pub.ToAddress(),
            public_keys={
                "chain_a": cosmos_pub.RawCompressed().ToHex(),
                "chain_b": eth_pub.RawUncompressed().ToHex(),
            },
        )

    def check_recovery(self, phrase: str, expected: WalletAddressPair) -> bool:
        """Indica si la frase reproduce las direcciones esperadas.

        Args:
            phrase (str): Frase introducida por el usuario.
            expected (WalletAddressPair): Direcciones registradas.

        Returns:
            bool: `False` si la frase es inválida o deriva otra cartera.

        """

        if not self.validate(phrase):
            return False
        return self.derive(phrase).matches(expected)
