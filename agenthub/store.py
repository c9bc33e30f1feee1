"""Encrypted key-value store for agenthub secrets.

Values are kept in a single file as a JSON envelope holding base64-encoded
salt, nonce and ciphertext. The ciphertext is AES-256-GCM over a JSON object
of string keys to string values, keyed by Argon2id over the admin password.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id

ARGON_TIME = 1
ARGON_MEMORY_KIB = 64 * 1024
ARGON_THREADS = 4
ARGON_KEY_LEN = 32

SALT_LEN = 16
NONCE_LEN = 12

ENVELOPE_VERSION = 1

_CREDENTIAL_KEYS = ("token", "refresh_token", "secret", "password", "api_key")


class StoreError(Exception):
    """Raised when the store cannot be opened, decrypted or written."""


class KeyNotFoundError(StoreError, KeyError):
    """Raised when a key is not present in the store."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def derive_key(password: str | bytes, salt: bytes) -> bytes:
    """Derive a 32-byte AES key from password and salt with Argon2id."""
    material = password.encode() if isinstance(password, str) else bytes(password)
    kdf = Argon2id(
        salt=bytes(salt),
        length=ARGON_KEY_LEN,
        iterations=ARGON_TIME,
        lanes=ARGON_THREADS,
        memory_cost=ARGON_MEMORY_KIB,
    )
    return kdf.derive(material)


def _cipher(key: bytes) -> AESGCM:
    try:
        return AESGCM(bytes(key))
    except ValueError as exc:
        raise StoreError(f"invalid key: {exc}") from exc


def encrypt(key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    """Encrypt plaintext with AES-GCM; the result carries the tag at its end."""
    aead = _cipher(key)
    try:
        return aead.encrypt(bytes(nonce), bytes(plaintext), None)
    except ValueError as exc:
        raise StoreError(f"encryption failed: {exc}") from exc


def decrypt(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    """Decrypt and authenticate AES-GCM ciphertext."""
    aead = _cipher(key)
    try:
        return aead.decrypt(bytes(nonce), bytes(ciphertext), None)
    except InvalidTag as exc:
        raise StoreError("message authentication failed") from exc
    except ValueError as exc:
        raise StoreError(f"decryption failed: {exc}") from exc


def _expand_home(path: str) -> str:
    if not path.startswith("~"):
        return path
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise StoreError(f"resolving home dir: {exc}") from exc
    return str(home / path[1:].lstrip("/\\"))


def _b64(field: str, value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise StoreError(f"decoding {field}: {exc}") from exc


class Store:
    """Encrypted key-value store backed by a single file.

    The encryption key is derived when the store is opened and never
    written to disk. Every change is persisted immediately.
    """

    def __init__(self, path: str, key: bytes, salt: bytes, data: dict[str, str]):
        self.path = path
        self._key = key
        self._salt = salt
        self._data = data

    def get(self, key: str) -> str:
        """Return the value for key, raising KeyNotFoundError if absent."""
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(f"key {key!r} not found in store") from None

    def set(self, key: str, value: str) -> None:
        """Store key=value and persist the store to disk."""
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        """Remove key (if present) and persist the store to disk."""
        self._data.pop(key, None)
        self._save()

    def keys(self) -> list[str]:
        """Return all keys currently stored."""
        return list(self._data)

    def set_resource_credential(self, resource_id: str, key: str, value: str) -> None:
        """Store a credential under "resource:<resource_id>:<key>"."""
        self.set(f"resource:{resource_id}:{key}", value)

    def get_resource_credential(self, resource_id: str, key: str) -> str:
        """Return a resource credential, raising KeyNotFoundError if absent."""
        return self.get(f"resource:{resource_id}:{key}")

    def delete_resource_credentials(self, resource_id: str) -> None:
        """Remove the common credential keys of a resource, ignoring failures."""
        for name in _CREDENTIAL_KEYS:
            try:
                self.delete(f"resource:{resource_id}:{name}")
            except StoreError:
                pass

    def _save(self) -> None:
        plaintext = json.dumps(
            self._data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
        nonce = os.urandom(NONCE_LEN)
        try:
            ciphertext = encrypt(self._key, nonce, plaintext)
        except StoreError as exc:
            raise StoreError(f"encrypting store: {exc}") from exc

        envelope = {
            "version": ENVELOPE_VERSION,
            "salt": base64.b64encode(self._salt).decode("ascii"),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
        raw = json.dumps(envelope, indent=2).encode("utf-8")

        parent = os.path.dirname(self.path) or "."
        try:
            os.makedirs(parent, mode=0o700, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"creating store directory: {exc}") from exc

        tmp = self.path + ".tmp"
        try:
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as fh:
                fh.write(raw)
        except OSError as exc:
            raise StoreError(f"writing store temp file: {exc}") from exc
        try:
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"renaming store temp file: {exc}") from exc


def open_store(path: str, password: str) -> Store:
    """Open (or start) the encrypted store at path.

    A missing file yields an empty in-memory store with a fresh salt; nothing
    is written until the first change. A wrong password raises StoreError.
    """
    if not path:
        raise StoreError("store path must not be empty")
    if not password:
        raise StoreError("password must not be empty")

    path = _expand_home(path)

    try:
        with open(path, "rb") as fh:
            raw = fh.read()
    except FileNotFoundError:
        salt = os.urandom(SALT_LEN)
        return Store(path, derive_key(password, salt), salt, {})
    except OSError as exc:
        raise StoreError(f"reading store file: {exc}") from exc

    try:
        envelope = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise StoreError(f"parsing store envelope: {exc}") from exc
    if not isinstance(envelope, dict):
        raise StoreError("parsing store envelope: not a JSON object")
    fields = {}
    for name in ("salt", "nonce", "ciphertext"):
        value = envelope.get(name, "")
        if not isinstance(value, str):
            raise StoreError(f"parsing store envelope: field {name!r} is not a string")
        fields[name] = value

    salt = _b64("salt", fields["salt"])
    nonce = _b64("nonce", fields["nonce"])
    ciphertext = _b64("ciphertext", fields["ciphertext"])

    key = derive_key(password, salt)
    try:
        plaintext = decrypt(key, nonce, ciphertext)
    except StoreError as exc:
        raise StoreError(f"decrypting store (wrong password?): {exc}") from exc

    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise StoreError(f"parsing store data: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise StoreError("parsing store data: expected an object of strings")

    return Store(path, key, salt, data)