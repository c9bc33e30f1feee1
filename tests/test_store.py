import base64
import json
import os

import pytest

from agenthub.store import (
    ENVELOPE_VERSION,
    NONCE_LEN,
    SALT_LEN,
    KeyNotFoundError,
    StoreError,
    decrypt,
    derive_key,
    encrypt,
    open_store,
)

PASSWORD = "password"
WRONG_PASSWORD = "secret"


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "test.enc")


@pytest.fixture
def store(store_path):
    return open_store(store_path, PASSWORD)


def _write(path, content):
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(content)


# --- crypto helpers ---

def test_encrypt_bad_key_length():
    with pytest.raises(StoreError):
        encrypt(b"short-key", b"123456789012", b"plaintext")


def test_decrypt_bad_key_length():
    with pytest.raises(StoreError):
        decrypt(b"short-key", b"123456789012", b"ciphertext")


def test_encrypt_decrypt_round_trip():
    key = bytes(32)
    nonce = bytes(12)
    plaintext = b'{"hello":"world"}'
    ciphertext = encrypt(key, nonce, plaintext)
    assert ciphertext != plaintext
    assert len(ciphertext) == len(plaintext) + 16
    assert decrypt(key, nonce, ciphertext) == plaintext


def test_decrypt_bad_ciphertext():
    with pytest.raises(StoreError):
        decrypt(bytes(32), bytes(12), b"bad ciphertext that is definitely not valid GCM")


def test_encrypt_known_vector_empty():
    assert encrypt(bytes(32), bytes(12), b"").hex() == "530f8afbc74536b9a963b4f1c4cb738b"


def test_encrypt_known_vector_block():
    out = encrypt(bytes(32), bytes(12), bytes(16)).hex()
    assert out == "cea7403d4d606b6e074ec5d3baf39d18" "d0d1c8a799996bf0265b98b5d48ab919"


def test_encrypt_decrypt_empty_plaintext():
    key = derive_key(PASSWORD.encode(), bytes(SALT_LEN))
    nonce = os.urandom(NONCE_LEN)
    ct = encrypt(key, nonce, b"")
    assert decrypt(key, nonce, ct) == b""


def test_derive_key_deterministic_and_salted():
    k1 = derive_key(PASSWORD.encode(), bytes(SALT_LEN))
    k2 = derive_key(PASSWORD, bytes(SALT_LEN))
    k3 = derive_key(PASSWORD.encode(), b"\x01" * SALT_LEN)
    assert len(k1) == 32
    assert k1 == k2
    assert k1 != k3


# --- open / basic operations ---

def test_open_new_store(store):
    assert store.keys() == []


def test_set_and_get(store):
    store.set("openai_key", "value-one")
    store.set("slack_key", "value-two")
    assert store.get("openai_key") == "value-one"
    assert store.get("slack_key") == "value-two"


def test_get_missing_key(store):
    with pytest.raises(KeyNotFoundError) as exc:
        store.get("nonexistent")
    assert "not found" in str(exc.value)


def test_persistence_round_trip(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("key1", "value1")
    s.set("key2", "value2")
    s2 = open_store(store_path, PASSWORD)
    assert s2.get("key1") == "value1"
    assert s2.get("key2") == "value2"


def test_wrong_password_fails(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("k", "v")
    with pytest.raises(StoreError) as exc:
        open_store(store_path, WRONG_PASSWORD)
    assert "wrong password" in str(exc.value)


def test_file_is_not_plaintext(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("greeting", "distinctive-plaintext-value")
    with open(store_path, encoding="utf-8") as fh:
        raw = fh.read()
    assert "distinctive-plaintext-value" not in raw
    assert "greeting" not in raw
    env = json.loads(raw)
    assert env["version"] == ENVELOPE_VERSION
    assert env["salt"]
    assert env["nonce"]
    assert env["ciphertext"]
    assert len(base64.b64decode(env["salt"])) == SALT_LEN
    assert len(base64.b64decode(env["nonce"])) == NONCE_LEN


def test_delete(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("k", "v")
    s.delete("k")
    with pytest.raises(KeyNotFoundError):
        s.get("k")
    s2 = open_store(store_path, PASSWORD)
    with pytest.raises(KeyNotFoundError):
        s2.get("k")


def test_empty_password_errors(store_path):
    with pytest.raises(StoreError) as exc:
        open_store(store_path, "")
    assert "password" in str(exc.value)


def test_empty_path_errors():
    with pytest.raises(StoreError) as exc:
        open_store("", PASSWORD)
    assert "path" in str(exc.value)


def test_tilde_path(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    s = open_store("~/tilde.enc", PASSWORD)
    assert s.keys() == []
    s.set("x", "y")
    assert (tmp_path / "tilde.enc").is_file()
    assert open_store(str(tmp_path / "tilde.enc"), PASSWORD).get("x") == "y"


def test_keys(store):
    store.set("a", "1")
    store.set("b", "2")
    store.set("c", "3")
    assert sorted(store.keys()) == ["a", "b", "c"]


def test_set_overwrite(store):
    store.set("k", "first")
    store.set("k", "second")
    assert store.get("k") == "second"


def test_delete_nonexistent(store_path, store):
    store.delete("nonexistent")
    assert os.path.isfile(store_path)
    assert store.keys() == []


def test_delete_and_reopen(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("a", "1")
    s.set("b", "2")
    s.delete("a")
    s2 = open_store(store_path, PASSWORD)
    with pytest.raises(KeyNotFoundError):
        s2.get("a")
    assert s2.get("b") == "2"


def test_multiple_set_and_get(store):
    for i in range(20):
        store.set(f"key-{i}", f"value-{i}")
    for i in range(20):
        assert store.get(f"key-{i}") == f"value-{i}"
    assert len(store.keys()) == 20


def test_unicode_values(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("emoji", "🔑")
    s.set("cjk", "こんにちは")
    s2 = open_store(store_path, PASSWORD)
    assert s2.get("emoji") == "🔑"
    assert s2.get("cjk") == "こんにちは"


# --- resource credentials ---

def test_set_resource_credential(store):
    store.set_resource_credential("r1", "token", "tok123")
    assert store.get_resource_credential("r1", "token") == "tok123"
    assert store.get("resource:r1:token") == "tok123"


def test_get_resource_credential_missing(store):
    with pytest.raises(KeyNotFoundError):
        store.get_resource_credential("r1", "token")


def test_delete_resource_credentials(store):
    store.set_resource_credential("r1", "token", "tok")
    store.set_resource_credential("r1", "api_key", "key")
    store.set_resource_credential("r2", "token", "other")
    store.delete_resource_credentials("r1")
    with pytest.raises(KeyNotFoundError):
        store.get_resource_credential("r1", "token")
    with pytest.raises(KeyNotFoundError):
        store.get_resource_credential("r1", "api_key")
    assert store.get_resource_credential("r2", "token") == "other"


# --- corrupt files and I/O failures ---

def test_open_invalid_json(tmp_path):
    path = tmp_path / "bad.enc"
    _write(path, "not valid json")
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "parsing store envelope" in str(exc.value)


def test_open_corrupt_base64_salt(tmp_path):
    path = tmp_path / "bad.enc"
    _write(path, '{"version":1,"salt":"!!!not-base64!!!","nonce":"","ciphertext":""}')
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "decoding salt" in str(exc.value)


def test_open_corrupt_base64_nonce(tmp_path):
    path = tmp_path / "bad.enc"
    salt = "AAAAAAAAAAAAAAAAAAAAAA=="
    _write(path, '{"version":1,"salt":"' + salt + '","nonce":"!!!bad!!!","ciphertext":""}')
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "decoding nonce" in str(exc.value)


def test_open_corrupt_base64_ciphertext(tmp_path):
    path = tmp_path / "bad.enc"
    salt = "AAAAAAAAAAAAAAAAAAAAAA=="
    nonce = "AAAAAAAAAAAAAAAA"
    _write(
        path,
        '{"version":1,"salt":"' + salt + '","nonce":"' + nonce + '","ciphertext":"!!!bad!!!"}',
    )
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "decoding ciphertext" in str(exc.value)


def test_open_decryption_error(store_path):
    s = open_store(store_path, PASSWORD)
    s.set("k", "v")
    with pytest.raises(StoreError) as exc:
        open_store(store_path, WRONG_PASSWORD)
    assert "wrong password" in str(exc.value)


def test_open_non_json_plaintext(tmp_path):
    path = tmp_path / "test.enc"
    salt = bytes(SALT_LEN)
    key = derive_key(PASSWORD.encode(), salt)
    nonce = bytes(NONCE_LEN)
    ct = encrypt(key, nonce, b"not json at all")
    env = {
        "version": ENVELOPE_VERSION,
        "salt": base64.b64encode(salt).decode(),
        "nonce": base64.b64encode(nonce).decode(),
        "ciphertext": base64.b64encode(ct).decode(),
    }
    _write(path, json.dumps(env))
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "parsing store data" in str(exc.value)


def test_open_read_error(tmp_path):
    path = tmp_path / "is_a_dir.enc"
    path.mkdir()
    with pytest.raises(StoreError) as exc:
        open_store(str(path), PASSWORD)
    assert "reading store file" in str(exc.value)


def test_save_mkdir_error(tmp_path):
    blocker = tmp_path / "plainfile"
    _write(blocker, "x")
    s = open_store(str(blocker / "subdir" / "store.enc"), PASSWORD)
    with pytest.raises(StoreError) as exc:
        s.set("key", "value")
    assert "creating store directory" in str(exc.value)


def test_save_write_temp_error(store_path):
    s = open_store(store_path, PASSWORD)
    os.mkdir(store_path + ".tmp")
    with pytest.raises(StoreError) as exc:
        s.set("k", "v")
    assert "writing store temp file" in str(exc.value)


def test_new_store_not_written_until_set(store_path, store):
    assert not os.path.exists(store_path)
    store.set("k", "v")
    assert os.path.isfile(store_path)
    assert not os.path.exists(store_path + ".tmp")
    assert store.keys() == ["k"]
    assert open_store(store_path, PASSWORD).get("k") == "v"