# --------------------------------------------------------------
# File: conftest.py
# Description: Fixtures compartidas para aislar almacenamiento y directorio.
# --------------------------------------------------------------

import importlib
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest

from wallet_core.directory import (
    NotFound,
    ServerError,
    build_legacy_registration,
    parse_legacy_record,
    parse_secure_record,
)
from wallet_core.envelope import EnvelopeEncryptor
from wallet_core.mnemonic_wallet import MnemonicWalletDeriver
from wallet_core.models import KdfParams
from wallet_core.storage import LocalSecureStore

class FakeDirectory:
    """Directorio remoto en memoria que responde con el formato de red."""

    def __init__(self) -> None:
        self.secure: Dict[str, Dict[str, Any]] = {}
        self.legacy: Dict[str, Dict[str, Any]] = {}
        self.error: Optional[ServerError] = None
        self.calls: List[Tuple[str, str]] = []
        self.base_url = "https://wallet.example.com/api"

    def publish(self, identity: str, submission: Dict[str, Any], account_id: str = "acct-1") -> None:
        self.secure[identity] = {**submission, "accountId": account_id}

    def publish_legacy(self, identity: str, envelope, addresses, account_id: str = "acct-legacy") -> None:
        self.legacy[identity] = {
            **build_legacy_registration(identity, envelope, addresses),
            "accountId": account_id,
        }

    async def fetch_secure(self, identity: str):
        self.calls.append(("secure", identity))
        if self.error is not None:
            return self.error
        data = self.secure.get(identity)
        return parse_secure_record(data) if data else NotFound()

    async def fetch_legacy(self, identity: str):
        self.calls.append(("legacy", identity))
        if self.error is not None:
            return self.error
        data = self.legacy.get(identity)
        return parse_legacy_record(data) if data else NotFound()


@pytest.fixture(autouse=True)
def _isolate_storage(tmp_path, monkeypatch) -> Iterator[None]:
    """Aísla STORAGE_PATH y recarga wallet_core.config para cada prueba.

    Args:
        tmp_path (Path): Carpeta temporal proporcionada por pytest.
        monkeypatch (pytest.MonkeyPatch): Fixture para ajustar variables de entorno.

    Returns:
        Iterator[None]: Control del fixture autouse durante la ejecución de cada test.
    """
    data_dir = tmp_path / "_data"
    data_dir.mkdir()
    monkeypatch.setenv("STORAGE_PATH", str(data_dir))

    import wallet_core.config as config_module

    importlib.reload(config_module)

    yield


@pytest.fixture
def fast_params() -> KdfParams:
    """Iteraciones reducidas para pruebas que no miden el coste del KDF."""

    return KdfParams(stretch_iterations=1_000, wrap_iterations=1_000, legacy_iterations=1_000)


@pytest.fixture
def encryptor(fast_params) -> EnvelopeEncryptor:
    return EnvelopeEncryptor(fast_params)


@pytest.fixture(scope="session")
def deriver() -> MnemonicWalletDeriver:
    return MnemonicWalletDeriver()


@pytest.fixture
def store(tmp_path) -> LocalSecureStore:
    return LocalSecureStore(str(tmp_path / "_data" / "wallets.json"))


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def core(tmp_path, directory, fast_params):
    from wallet_core.container import build_wallet_core

    return build_wallet_core(
        directory=directory,
        storage_path=str(tmp_path / "_data"),
        kdf_params=fast_params,
        backup_interval=3600,
    )
