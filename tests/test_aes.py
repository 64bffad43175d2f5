import hashlib

import pytest

from rctkit.aes import AES256CBC, derive_key

SALT = b"saltsalt"


def test_derive_key_sizes_and_determinism():
    key, iv = derive_key("secret", SALT)
    assert len(key) == 32
    assert len(iv) == 32
    assert derive_key("secret", SALT) == (key, iv)


def test_derive_key_single_round_is_plain_digest():
    key, _ = derive_key(b"secret", None, 1)
    assert key == hashlib.sha256(b"secret").digest()


def test_derive_key_uses_only_eight_salt_bytes():
    assert derive_key("secret", SALT + b"extra") == derive_key("secret", SALT)


def test_derive_key_salt_matters():
    assert derive_key("secret", SALT)[0] != derive_key("secret", b"othersal")[0]
    assert derive_key("secret")[0] != derive_key("secret", SALT)[0]


def test_short_salt_rejected():
    with pytest.raises(ValueError):
        derive_key("secret", b"short")


@pytest.mark.parametrize("plain", [b"", b"hello", b"x" * 16, bytes(range(256))])
def test_round_trip(plain):
    cipher = AES256CBC("secret", SALT)
    encrypted = cipher.encrypt(plain)
    assert len(encrypted) % 16 == 0
    assert len(encrypted) > len(plain)
    assert cipher.decrypt(encrypted) == plain


def test_string_input_is_utf8():
    cipher = AES256CBC("secret")
    assert cipher.decrypt(cipher.encrypt("héllo")) == "héllo".encode("utf-8")


def test_repeated_calls_are_identical():
    cipher = AES256CBC("secret", SALT)
    assert cipher.encrypt(b"data") == cipher.encrypt(b"data")
    other = AES256CBC("secret", SALT)
    assert other.decrypt(cipher.encrypt(b"data")) == b"data"


def test_different_keys_give_different_ciphertext():
    a = AES256CBC("secret", SALT).encrypt(b"payload")
    b = AES256CBC("token", SALT).encrypt(b"payload")
    assert a != b


def test_bad_length_ciphertext():
    with pytest.raises(ValueError):
        AES256CBC("secret").decrypt(b"abc")