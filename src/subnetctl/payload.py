"""Sealed payloads for the admin config endpoints.

``get-config-kv`` responses and ``set-config-kv`` request bodies are
encrypted with a key derived from the caller's secret key. Layout::

    salt (32) | cipher id (1) | nonce (8) | fragment | fragment | ...

Cipher ids 0 and 1 derive the key with argon2id (1 pass, 64 MiB, 4
lanes); id 2 uses PBKDF2-SHA256. Plaintext is cut into 16 KiB fragments.
Fragment ``n`` (counting from 1) is sealed under ``nonce || n`` (32-bit
little endian) with associated data ``flag || tag``, where ``tag`` seals
an empty message under ``nonce || 0`` and ``flag`` is 0x80 only on the
last fragment. An empty plaintext still produces one final fragment.
"""

from __future__ import annotations

import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from subnetctl.errors import ProtocolError

ARGON2ID_AES_GCM = 0x00
ARGON2ID_CHACHA20_POLY1305 = 0x01
PBKDF2_AES_GCM = 0x02

SALT_SIZE = 32
NONCE_SIZE = 8
KEY_SIZE = 32
TAG_SIZE = 16
FRAGMENT_SIZE = 16 * 1024
HEADER_SIZE = SALT_SIZE + 1 + NONCE_SIZE

_PBKDF2_ITERATIONS = 8192
_FINAL_FLAG = 0x80


def derive_key(secret_key: str, salt: bytes, cipher_id: int) -> bytes:
    if cipher_id in (ARGON2ID_AES_GCM, ARGON2ID_CHACHA20_POLY1305):
        kdf = Argon2id(salt=salt, length=KEY_SIZE, iterations=1, lanes=4, memory_cost=64 * 1024)
    elif cipher_id == PBKDF2_AES_GCM:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=salt,
            iterations=_PBKDF2_ITERATIONS,
        )
    else:
        raise ProtocolError(f"unsupported payload cipher id: {cipher_id:#04x}")
    return kdf.derive(secret_key.encode("utf-8"))


def _aead(cipher_id: int, key: bytes) -> AESGCM | ChaCha20Poly1305:
    if cipher_id == ARGON2ID_CHACHA20_POLY1305:
        return ChaCha20Poly1305(key)
    return AESGCM(key)


def _fragment_nonce(nonce: bytes, sequence: int) -> bytes:
    return nonce + struct.pack("<I", sequence)


def _associated_data(aead: AESGCM | ChaCha20Poly1305, nonce: bytes) -> bytearray:
    return bytearray(b"\x00" + aead.encrypt(_fragment_nonce(nonce, 0), b"", None))


def encrypt_payload(
    secret_key: str,
    data: bytes,
    *,
    cipher_id: int = ARGON2ID_AES_GCM,
    salt: bytes | None = None,
    nonce: bytes | None = None,
) -> bytes:
    salt = os.urandom(SALT_SIZE) if salt is None else salt
    nonce = os.urandom(NONCE_SIZE) if nonce is None else nonce
    if len(salt) != SALT_SIZE or len(nonce) != NONCE_SIZE:
        raise ValueError("salt must be 32 bytes and nonce 8 bytes")

    aead = _aead(cipher_id, derive_key(secret_key, salt, cipher_id))
    associated = _associated_data(aead, nonce)
    fragments = [data[i : i + FRAGMENT_SIZE] for i in range(0, len(data), FRAGMENT_SIZE)] or [b""]

    sealed = [salt, bytes([cipher_id]), nonce]
    for sequence, fragment in enumerate(fragments, start=1):
        if sequence == len(fragments):
            associated[0] = _FINAL_FLAG
        sealed.append(aead.encrypt(_fragment_nonce(nonce, sequence), fragment, bytes(associated)))
    return b"".join(sealed)


def decrypt_payload(secret_key: str, payload: bytes) -> bytes:
    if len(payload) < HEADER_SIZE + TAG_SIZE:
        raise ProtocolError("encrypted admin payload is truncated")

    salt = payload[:SALT_SIZE]
    cipher_id = payload[SALT_SIZE]
    nonce = payload[SALT_SIZE + 1 : HEADER_SIZE]
    aead = _aead(cipher_id, derive_key(secret_key, salt, cipher_id))
    associated = _associated_data(aead, nonce)

    body = payload[HEADER_SIZE:]
    step = FRAGMENT_SIZE + TAG_SIZE
    fragments = [body[i : i + step] for i in range(0, len(body), step)]

    plain = []
    for sequence, fragment in enumerate(fragments, start=1):
        if sequence == len(fragments):
            associated[0] = _FINAL_FLAG
        try:
            plain.append(aead.decrypt(_fragment_nonce(nonce, sequence), fragment, bytes(associated)))
        except InvalidTag as exc:
            raise ProtocolError(
                "unable to decrypt admin payload: wrong secret key or corrupted data"
            ) from exc
    return b"".join(plain)
