"""AES-256-CBC with a key and IV derived from a passphrase by repeated SHA-256."""

from __future__ import annotations

import hashlib

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_SALT_SIZE = 8
_BLOCK_BITS = 128


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _hash_rounds(data: bytes, rounds: int) -> bytes:
    digest = hashlib.sha256(data).digest()
    for _ in range(1, rounds):
        digest = hashlib.sha256(digest).digest()
    return digest


def derive_key(
    key: str | bytes, salt: bytes | None = None, rounds: int = 100
) -> tuple[bytes, bytes]:
    """Return a 32-byte key and 32 bytes of IV material derived from ``key``.

    Only the first 8 bytes of ``salt`` are used; a shorter salt is an error.
    """
    key_bytes = _as_bytes(key)
    if salt is not None:
        if len(salt) < _SALT_SIZE:
            raise ValueError(f"salt must be at least {_SALT_SIZE} bytes")
        salt_bytes = bytes(salt[:_SALT_SIZE])
    else:
        salt_bytes = b""
    current = _hash_rounds(key_bytes + salt_bytes, rounds)
    material = current
    while len(material) < 64:
        current = _hash_rounds(current + key_bytes + salt_bytes, rounds)
        material += current
    return material[:32], material[32:64]


class AES256CBC:
    """Encrypts and decrypts with PKCS#7 padding; every call starts from the same IV."""

    def __init__(self, key: str | bytes, salt: bytes | None = None) -> None:
        self._key, iv_material = derive_key(key, salt, 100)
        self._iv = iv_material[:16]

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, data: str | bytes) -> bytes:
        """Encrypt ``data``."""
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(_as_bytes(data)) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt ``data``; raises ValueError if it is not valid ciphertext."""
        data = bytes(data)
        if len(data) % 16:
            raise ValueError("ciphertext length is not a multiple of the block size")
        decryptor = self._cipher().decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()