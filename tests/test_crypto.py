"""
Tests for the legacy backup cryptography primitives.

Tests cover:
- rolling_hash against known 32-bit string hash values
- derive_key determinism and salt sensitivity
- xor_cipher symmetry, including astral characters
"""

from __future__ import annotations

import unittest

from arrvault.crypto.legacy import (
    HASH_WIDTH,
    KDF_ROUNDS,
    derive_key,
    rolling_hash,
    xor_cipher,
)


class TestRollingHash(unittest.TestCase):
    """Tests for rolling_hash."""

    def test_empty_string(self) -> None:
        """Test the empty string hashes to all zeros."""
        self.assertEqual(rolling_hash(""), "00000000")

    def test_known_values(self) -> None:
        """Test values shared with the 32-bit 'times 31' string hash."""
        self.assertEqual(rolling_hash("a"), "00000061")
        self.assertEqual(rolling_hash("ab"), "00000c21")
        self.assertEqual(rolling_hash("test"), "00364492")
        self.assertEqual(rolling_hash("hello"), "05e918d2")

    def test_output_is_fixed_width_lowercase_hex(self) -> None:
        """Test every output is exactly eight lowercase hex characters."""
        for text in ["", "x", "password", "a much longer input string " * 10]:
            digest = rolling_hash(text)
            self.assertEqual(len(digest), HASH_WIDTH)
            self.assertRegex(digest, r"^[0-9a-f]{8}$")

    def test_collisions_are_preserved(self) -> None:
        """Test the classic 'Aa'/'BB' collision is reproduced."""
        self.assertEqual(rolling_hash("Aa"), rolling_hash("BB"))
        self.assertEqual(rolling_hash("Aa"), "00000840")

    def test_int32_minimum(self) -> None:
        """Test the accumulator wraps to -2**31 and renders as 80000000."""
        self.assertEqual(rolling_hash("polygenelubricants"), "80000000")

    def test_negative_accumulator_uses_absolute_value(self) -> None:
        """Test inputs that overflow to a negative value still hash to hex."""
        digest = rolling_hash("the quick brown fox jumps over the lazy dog")
        self.assertRegex(digest, r"^[0-9a-f]{8}$")
        self.assertLessEqual(int(digest, 16), 0x80000000)

    def test_hashes_utf16_code_units(self) -> None:
        """Test astral characters are hashed as surrogate pairs."""
        # U+1F600 is 0xD83D 0xDE00: 0xD83D * 31 + 0xDE00
        self.assertEqual(rolling_hash("\U0001F600"), "001b0d63")


class TestDeriveKey(unittest.TestCase):
    """Tests for derive_key."""

    def test_round_count(self) -> None:
        """Test the default round count."""
        self.assertEqual(KDF_ROUNDS, 10_000)

    def test_deterministic(self) -> None:
        """Test the same inputs give the same key."""
        self.assertEqual(
            derive_key("correct horse", "abcdef"),
            derive_key("correct horse", "abcdef"),
        )

    def test_key_shape(self) -> None:
        """Test keys are 8-character hex tokens."""
        self.assertRegex(derive_key("password", "salt"), r"^[0-9a-f]{8}$")

    def test_salt_changes_key(self) -> None:
        """Test different salts give different keys."""
        self.assertNotEqual(
            derive_key("password", "salt-one"),
            derive_key("password", "salt-two"),
        )

    def test_password_changes_key(self) -> None:
        """Test different passwords give different keys."""
        self.assertNotEqual(
            derive_key("password-one", "salt"),
            derive_key("password-two", "salt"),
        )

    def test_matches_manual_iteration(self) -> None:
        """Test a short derivation against hand-rolled rounds."""
        state = "pw" + "s"
        for i in range(3):
            state = rolling_hash(state + str(i))
        self.assertEqual(derive_key("pw", "s", rounds=3), state)

    def test_zero_rounds_returns_seed(self) -> None:
        """Test zero rounds returns password + salt untouched."""
        self.assertEqual(derive_key("pw", "s", rounds=0), "pws")


class TestXorCipher(unittest.TestCase):
    """Tests for xor_cipher."""

    def test_single_character(self) -> None:
        """Test 'A' (0x41) XOR '1' (0x31) is 'p' (0x70)."""
        self.assertEqual(xor_cipher("A", "1"), "p")

    def test_self_inverse(self) -> None:
        """Test applying the cipher twice returns the input."""
        text = '{"settings":{"theme":"dark"},"recentIPs":["192.168.1.10"]}'
        key = derive_key("password", "salt")

        encrypted = xor_cipher(text, key)

        self.assertNotEqual(encrypted, text)
        self.assertEqual(xor_cipher(encrypted, key), text)

    def test_preserves_length_in_code_units(self) -> None:
        """Test the output has as many UTF-16 code units as the input."""
        text = "café \U0001F3AC"
        encrypted = xor_cipher(text, "0a1b2c3d")
        self.assertEqual(
            len(encrypted.encode("utf-16-le", "surrogatepass")),
            len(text.encode("utf-16-le", "surrogatepass")),
        )

    def test_unicode_round_trip(self) -> None:
        """Test CJK, combining marks and emoji survive a round trip."""
        key = "9f8e7d6c"
        for text in ["映画ライブラリ", "é", "\U0001F4FA\U0001F3A5"]:
            with self.subTest(text=text):
                self.assertEqual(xor_cipher(xor_cipher(text, key), key), text)

    def test_lone_surrogates_round_trip(self) -> None:
        """Test lone surrogates in the input are carried through."""
        text = "a\ud800b"
        key = "\u0001"
        self.assertEqual(xor_cipher(xor_cipher(text, key), key), text)

    def test_empty_text(self) -> None:
        """Test empty text encrypts to empty text."""
        self.assertEqual(xor_cipher("", "key"), "")

    def test_empty_key_rejected(self) -> None:
        """Test an empty key raises ValueError."""
        with self.assertRaises(ValueError):
            xor_cipher("data", "")


if __name__ == "__main__":
    unittest.main()
