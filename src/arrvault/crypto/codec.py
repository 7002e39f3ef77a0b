"""
Secure backup codec.

Turns a JSON-serializable payload into an EncryptedArtifact and back.
Two codec versions exist side by side:

    v1  LegacyXorCodec   "XOR-PBKDF2"            rolling-hash KDF + XOR
    v2  FernetCodec      "PBKDF2-SHA256-FERNET"  PBKDF2-HMAC-SHA256 + Fernet

The algorithm name is persisted in the backup header so either version can
be restored later. Every call is a pure function of its arguments plus a
freshly drawn salt; codecs hold configuration only, never keys.

Usage:
    codec = get_codec("v2")
    artifact = codec.encrypt_sensitive_data({"settings": {...}}, "password")
    payload = codec.decrypt_sensitive_data(
        artifact.encrypted_data, "password", artifact.salt, artifact.iv
    )
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from arrvault.crypto.legacy import derive_key, xor_cipher

logger = logging.getLogger(__name__)

SALT_LENGTH = 32  # bytes, hex encoded to 64 characters
IV_LENGTH = 16
PBKDF2_ITERATIONS = 600_000

DECRYPTION_FAILED_MESSAGE = (
    "Decryption failed: Invalid JSON structure in decrypted data. "
    "This usually means an incorrect password or a corrupted backup. "
    "Please verify your backup password is correct."
)


class CodecError(Exception):
    """Base exception for codec errors."""

    pass


class DecryptionError(CodecError):
    """
    Raised when an encrypted payload cannot be recovered.

    The legacy scheme has no authentication tag, so a wrong password and a
    corrupted payload look the same. Both surface as this single error.
    """

    pass


class SerializationError(CodecError):
    """Raised when a payload cannot be serialized to JSON."""

    pass


@dataclass
class EncryptedArtifact:
    """Output of encrypting a serialized payload."""

    encrypted_data: str
    salt: str
    iv: str = ""
    codec: str = "v1"

    def to_dict(self) -> dict[str, str]:
        """Convert artifact to its wire representation."""
        return {
            "encryptedData": self.encrypted_data,
            "salt": self.salt,
            "iv": self.iv,
        }


def serialize_payload(payload: Any) -> str:
    """
    Serialize a payload to canonical JSON.

    Keys keep insertion order, there is no whitespace and non-ASCII text is
    written as-is, matching JSON.stringify.

    Raises:
        SerializationError: If the payload contains non-JSON values.
    """
    try:
        return json.dumps(
            payload,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Payload is not JSON-serializable: {e}") from e


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Generate a random hex salt from the OS CSPRNG."""
    return secrets.token_hex(length)


class SecureBackupCodec(ABC):
    """
    Abstract base for backup codecs.

    Subclasses implement _encrypt_text and _decrypt_text; JSON handling,
    salt generation and error classification live here.
    """

    version: str = ""
    algorithm: str = ""

    def encrypt_sensitive_data(self, payload: Any, password: str) -> EncryptedArtifact:
        """
        Encrypt a JSON-serializable payload with a password.

        Args:
            payload: Backup payload (any JSON-serializable value).
            password: User password.

        Returns:
            EncryptedArtifact with a fresh salt and reserved iv.

        Raises:
            SerializationError: If the payload cannot be serialized.
        """
        plain_text = serialize_payload(payload)
        salt = generate_salt()
        iv = generate_salt(IV_LENGTH)

        encrypted_data = self._encrypt_text(plain_text, password, salt)

        logger.debug(
            f"Encrypted {len(plain_text)} characters with codec {self.version}"
        )
        return EncryptedArtifact(
            encrypted_data=encrypted_data,
            salt=salt,
            iv=iv,
            codec=self.version,
        )

    def decrypt_sensitive_data(
        self,
        encrypted_data: str,
        password: str,
        salt: str,
        reserved: str = "",
    ) -> Any:
        """
        Decrypt a payload produced by encrypt_sensitive_data.

        Args:
            encrypted_data: Ciphertext from the artifact.
            password: User password.
            salt: Salt from the artifact.
            reserved: Reserved for future use (the artifact iv). Ignored.

        Returns:
            The parsed payload.

        Raises:
            DecryptionError: Wrong password or corrupted ciphertext.
        """
        logger.debug(
            f"Decrypting {len(encrypted_data)} characters with codec {self.version} "
            f"(salt length {len(salt)}, reserved length {len(reserved or '')})"
        )

        plain_text = self._decrypt_text(encrypted_data, password, salt)
        if not plain_text:
            logger.warning(f"Decryption produced an empty result (codec {self.version})")
            raise DecryptionError(DECRYPTION_FAILED_MESSAGE)

        try:
            return json.loads(plain_text)
        except ValueError as e:
            logger.warning(f"Decrypted data is not valid JSON (codec {self.version})")
            raise DecryptionError(DECRYPTION_FAILED_MESSAGE) from e

    async def encrypt_async(self, payload: Any, password: str) -> EncryptedArtifact:
        """Run encrypt_sensitive_data in a worker thread."""
        return await asyncio.to_thread(self.encrypt_sensitive_data, payload, password)

    async def decrypt_async(
        self,
        encrypted_data: str,
        password: str,
        salt: str,
        reserved: str = "",
    ) -> Any:
        """Run decrypt_sensitive_data in a worker thread."""
        return await asyncio.to_thread(
            self.decrypt_sensitive_data, encrypted_data, password, salt, reserved
        )

    @abstractmethod
    def _encrypt_text(self, plain_text: str, password: str, salt: str) -> str:
        """Encrypt serialized JSON text."""

    @abstractmethod
    def _decrypt_text(self, encrypted_data: str, password: str, salt: str) -> str:
        """Decrypt to serialized JSON text, raising DecryptionError on failure."""


class LegacyXorCodec(SecureBackupCodec):
    """
    v1 codec: rolling-hash key derivation and repeating-key XOR.

    The XOR output is UTF-8 encoded and base64 wrapped, as the mobile
    client stores it under "XOR-PBKDF2". Payloads that serialize to ASCII
    match the client byte for byte. Weak by modern standards; see
    arrvault.crypto.legacy.
    """

    version = "v1"
    algorithm = "XOR-PBKDF2"

    def _encrypt_text(self, plain_text: str, password: str, salt: str) -> str:
        cipher_text = xor_cipher(plain_text, derive_key(password, salt))
        raw = cipher_text.encode("utf-8", "surrogatepass")
        return base64.b64encode(raw).decode("ascii")

    def _decrypt_text(self, encrypted_data: str, password: str, salt: str) -> str:
        try:
            raw = base64.b64decode(encrypted_data, validate=True)
            cipher_text = raw.decode("utf-8", "surrogatepass")
        except ValueError as e:
            # binascii.Error and UnicodeDecodeError are both ValueErrors
            raise DecryptionError(DECRYPTION_FAILED_MESSAGE) from e
        return xor_cipher(cipher_text, derive_key(password, salt))


class FernetCodec(SecureBackupCodec):
    """
    v2 codec: PBKDF2-HMAC-SHA256 key derivation and Fernet encryption.

    Fernet authenticates the ciphertext, so a wrong password is detected
    before any JSON parsing happens.
    """

    version = "v2"
    algorithm = "PBKDF2-SHA256-FERNET"

    def __init__(self, iterations: int = PBKDF2_ITERATIONS) -> None:
        """
        Initialize the codec.

        Args:
            iterations: PBKDF2 iteration count. BackupManager records it in
                        the backup header so restores use the same value.
        """
        self.iterations = iterations

    def _derive_fernet(self, password: str, salt: str) -> Fernet:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,  # Fernet requires 32-byte keys
            salt=salt.encode("utf-8"),
            iterations=self.iterations,
        )
        key = base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))
        return Fernet(key)

    def _encrypt_text(self, plain_text: str, password: str, salt: str) -> str:
        fernet = self._derive_fernet(password, salt)
        return fernet.encrypt(plain_text.encode("utf-8")).decode("ascii")

    def _decrypt_text(self, encrypted_data: str, password: str, salt: str) -> str:
        fernet = self._derive_fernet(password, salt)
        try:
            decrypted = fernet.decrypt(encrypted_data.encode("utf-8"))
        except (InvalidToken, ValueError) as e:
            raise DecryptionError(DECRYPTION_FAILED_MESSAGE) from e
        return decrypted.decode("utf-8")


CODECS: dict[str, type[SecureBackupCodec]] = {
    LegacyXorCodec.version: LegacyXorCodec,
    FernetCodec.version: FernetCodec,
}

ALGORITHMS: dict[str, str] = {
    LegacyXorCodec.algorithm: LegacyXorCodec.version,
    FernetCodec.algorithm: FernetCodec.version,
}


def get_codec(version: str = "v1", iterations: int | None = None) -> SecureBackupCodec:
    """
    Build a codec by version tag.

    Args:
        version: "v1" or "v2".
        iterations: PBKDF2 iterations for v2. Ignored by v1.

    Raises:
        ValueError: If the version is unknown.
    """
    if version not in CODECS:
        raise ValueError(
            f"Unknown codec version: {version}. Must be one of: {', '.join(CODECS)}"
        )
    if version == FernetCodec.version and iterations is not None:
        return FernetCodec(iterations=iterations)
    return CODECS[version]()


def get_codec_for_algorithm(
    algorithm: str, iterations: int | None = None
) -> SecureBackupCodec:
    """
    Build the codec that reads backups tagged with an algorithm name.

    Raises:
        ValueError: If the algorithm is unknown.
    """
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unsupported encryption algorithm: {algorithm}")
    return get_codec(ALGORITHMS[algorithm], iterations=iterations)


def encrypt_sensitive_data(payload: Any, password: str) -> EncryptedArtifact:
    """Encrypt a payload with the legacy v1 codec."""
    return LegacyXorCodec().encrypt_sensitive_data(payload, password)


def decrypt_sensitive_data(
    encrypted_data: str,
    password: str,
    salt: str,
    reserved: str = "",
) -> Any:
    """Decrypt a payload produced by the legacy v1 codec."""
    return LegacyXorCodec().decrypt_sensitive_data(
        encrypted_data, password, salt, reserved
    )
