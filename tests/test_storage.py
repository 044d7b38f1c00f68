# --------------------------------------------------------------
# File: test_storage.py
# Description: Pruebas sobre la capa de persistencia JSON de wallet_core.storage.
# --------------------------------------------------------------

import json

import pytest

from wallet_core.models import EncryptedEnvelope, WalletAddressPair, WalletRecord
from wallet_core.storage import (
    LocalSecureStore,
    bundle_checksum,
    hash_identity,
    load_db,
    save_db,
)

IDENTITY = "Alice@Example.com"


@pytest.fixture
def record() -> WalletRecord:
    return WalletRecord(
        identity=IDENTITY,
        seed_envelope=EncryptedEnvelope(
            ciphertext=b"\x01" * 48, salt=b"\x02" * 16, nonce=b"\x03" * 12
        ),
        addresses=WalletAddressPair(
            chain_a_address="sei1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqq",
            chain_b_address="0x" + "ab" * 20,
            public_keys={"chain_a": "02" + "11" * 32},
        ),
    )


def test_load_db_creates_when_missing(tmp_path):
    """Comprueba que load_db genere la estructura base cuando no existe archivo.

    Args:
        tmp_path (Path): Carpeta temporal proporcionada por pytest.

    Returns:
        None: Las aserciones validan la estructura creada en memoria.
    """
    path = tmp_path / "wallets.json"
    db = load_db(str(path))
    assert db == {"wallets": {}, "metadata": {}, "deletion_audit": []}
    assert not path.exists()


def test_save_db_creates_and_reads(tmp_path):
    """Verifica que save_db persista y que load_db recupere la misma estructura.

    Args:
        tmp_path (Path): Carpeta temporal proporcionada por pytest.

    Returns:
        None: Las aserciones comparan el JSON guardado con el cargado.
    """
    path = tmp_path / "nested" / "wallets.json"
    data = {"wallets": {"a@b.com": {"x": 1}}, "metadata": {}, "deletion_audit": []}
    save_db(data, str(path))
    assert load_db(str(path)) == data


def test_save_db_is_atomic(tmp_path):
    path = tmp_path / "wallets.json"
    save_db({"wallets": {}}, str(path))
    assert path.exists()
    assert not (tmp_path / "wallets.json.tmp").exists()


def test_load_db_with_corrupt_json(tmp_path):
    """Valida que un JSON corrupto sea manejado recreando la estructura base.

    Args:
        tmp_path (Path): Carpeta temporal proporcionada por pytest.

    Returns:
        None: Las aserciones confirman la recuperación ante corrupción.
    """
    path = tmp_path / "wallets.json"
    path.write_text("{not json", encoding="utf-8")
    db = load_db(str(path))
    assert db["wallets"] == {}
    assert not path.exists()
    assert (tmp_path / "wallets.json.corrupt").read_text(encoding="utf-8") == "{not json"


def test_corrupt_store_is_kept_aside_before_next_write(tmp_path, record):
    path = tmp_path / "wallets.json"
    path.write_text("[1, 2]", encoding="utf-8")
    (tmp_path / "wallets.json.corrupt").write_text("older", encoding="utf-8")

    store = LocalSecureStore(str(path))
    store.put(IDENTITY, record)

    assert (tmp_path / "wallets.json.corrupt").read_text(encoding="utf-8") == "older"
    assert (tmp_path / "wallets.json.corrupt.1").read_text(encoding="utf-8") == "[1, 2]"
    assert store.has_wallet(IDENTITY)


def test_put_get_roundtrip_normalizes_identity(store, record):
    stored = store.put(IDENTITY, record)
    assert stored.identity == "alice@example.com"
    loaded = store.get("  alice@EXAMPLE.com ")
    assert loaded is not None
    assert loaded.seed_envelope == record.seed_envelope
    assert loaded.addresses == record.addresses
    assert store.has_wallet(IDENTITY)
    assert store.get("other@example.com") is None


def test_get_does_not_touch_last_access(store, record):
    stored = store.put(IDENTITY, record)
    store.get(IDENTITY)
    assert store.get(IDENTITY).last_accessed_at == stored.last_accessed_at


def test_touch_updates_last_access(store, record):
    stored = store.put(IDENTITY, record)
    store.touch(IDENTITY)
    touched = store.get(IDENTITY)
    assert touched.last_accessed_at >= stored.last_accessed_at
    assert touched.created_at == stored.created_at
    assert store.get_metadata(IDENTITY).last_accessed_at == touched.last_accessed_at


def test_touch_missing_identity_is_noop(store, tmp_path):
    store.touch("ghost@example.com")
    assert not store.has_wallet("ghost@example.com")


def test_metadata_holds_no_ciphertext(store, record):
    store.put(IDENTITY, record)
    meta = store.get_metadata(IDENTITY)
    assert meta.addresses == record.addresses
    raw = json.loads(open(store.path, encoding="utf-8").read())
    meta_raw = raw["metadata"]["alice@example.com"]
    assert "seed_envelope" not in meta_raw
    assert "ciphertext" not in json.dumps(meta_raw)


def test_delete_records_redacted_audit(store, record):
    store.put(IDENTITY, record)
    assert store.delete(IDENTITY, "user_request") is True
    assert store.get(IDENTITY) is None
    assert store.get_metadata(IDENTITY) is None

    log = store.deletion_log()
    assert len(log) == 1
    assert log[0].identity_hash == hash_identity(IDENTITY)
    assert log[0].reason == "user_request"

    content = open(store.path, encoding="utf-8").read()
    assert "alice@example.com" not in content


def test_delete_missing_still_audited(store):
    assert store.delete("nobody@example.com", "cleanup") is False
    assert len(store.deletion_log()) == 1


def test_clear_all(store, record):
    store.put(IDENTITY, record)
    store.put("bob@example.com", record)
    assert store.clear_all("reset") == 2
    assert not store.has_wallet(IDENTITY)
    assert not store.has_wallet("bob@example.com")
    assert {e.reason for e in store.deletion_log()} == {"reset"}


def test_export_portable_has_valid_checksum(store, record):
    assert store.export_portable(IDENTITY) is None
    store.put(IDENTITY, record)
    bundle = store.export_portable(IDENTITY)
    assert bundle is not None
    assert bundle.version == 1
    assert bundle.checksum == bundle_checksum(bundle)
    assert "identity" not in bundle.portable_payload()
    assert "last_accessed_at" not in bundle.portable_payload()


def test_hash_identity_is_normalized():
    assert hash_identity("A@B.com ") == hash_identity("a@b.com")
    assert len(hash_identity("a@b.com")) == 64


def test_store_file_is_isolated(tmp_path, record):
    path = tmp_path / "other.json"
    store = LocalSecureStore(str(path))
    store.put(IDENTITY, record)
    assert path.exists()
