"""
Legacy backup cryptography primitives.

These functions are the key derivation and cipher used by "XOR-PBKDF2"
backups of the mobile client. The base64 framing of the ciphertext lives in
arrvault.crypto.codec.LegacyXorCodec.

    - rolling_hash: 32-bit "times 31" string hash rendered as 8 hex chars
    - derive_key: 10,000 rounds of rolling_hash over password + salt
    - xor_cipher: repeating-key XOR over UTF-16 code units

Security Notes:
    This scheme is NOT cryptographically strong. The derived key has a 32-bit
    keyspace, there is no authentication tag, and repeating-key XOR is open
    to frequency analysis. It is kept so that existing backups stay
    restorable. New backups should use the v2 codec (PBKDF2 + Fernet).

All text is processed as UTF-16 code units rather than code points so that
results match the JavaScript and Java implementations that produced the
original backups, including for astral characters such as emoji.
"""

from __future__ import annotations

import sys
from array import array

KDF_ROUNDS = 10_000
HASH_WIDTH = 8

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _code_units(text: str) -> array:
    """Split text into UTF-16 code units."""
    units = array("H")
    units.frombytes(text.encode("utf-16-le", "surrogatepass"))
    if sys.byteorder == "big":
        units.byteswap()
    return units


def _from_code_units(units: array) -> str:
    """Join UTF-16 code units back into a string, keeping lone surrogates."""
    if sys.byteorder == "big":
        units = array("H", units)
        units.byteswap()
    return units.tobytes().decode("utf-16-le", "surrogatepass")


def _to_int32(value: int) -> int:
    """Wrap an integer into the signed 32-bit range."""
    value &= _INT32_MASK
    if value & _INT32_SIGN:
        value -= _INT32_MASK + 1
    return value


def rolling_hash(text: str) -> str:
    """
    Hash a string to an 8-character lowercase hex token.

    Args:
        text: Input string.

    Returns:
        abs() of the signed 32-bit accumulator, zero padded to 8 hex digits.
        The only value whose absolute value needs more than 31 bits is
        -2**31, which renders as "80000000".
    """
    acc = 0
    for unit in _code_units(text):
        acc = _to_int32((acc << 5) - acc + unit)
    return format(abs(acc), "x").zfill(HASH_WIDTH)


def derive_key(password: str, salt: str, rounds: int = KDF_ROUNDS) -> str:
    """
    Derive the legacy symmetric key from a password and salt.

    Args:
        password: User password.
        salt: Per-backup salt string.
        rounds: Number of hash rounds. Must stay at KDF_ROUNDS to read
                existing backups.

    Returns:
        8-character hex key.
    """
    state = password + salt
    for i in range(rounds):
        state = rolling_hash(state + str(i))
    return state


def xor_cipher(text: str, key: str) -> str:
    """
    Apply the repeating-key XOR stream cipher.

    The same call encrypts and decrypts. Surrogate pairs in the input are
    XORed unit by unit, so the output may contain lone surrogates; encode
    it with the "surrogatepass" error handler.

    Raises:
        ValueError: If key is empty.
    """
    key_units = _code_units(key)
    if not key_units:
        raise ValueError("Cipher key must not be empty")

    units = _code_units(text)
    key_length = len(key_units)
    for i, unit in enumerate(units):
        units[i] = unit ^ key_units[i % key_length]
    return _from_code_units(units)
