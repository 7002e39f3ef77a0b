"""
Backup encryption for arrvault.

Provides the legacy rolling-hash/XOR scheme used by existing backups and a
PBKDF2 + Fernet codec for new ones, both behind SecureBackupCodec.
"""

from arrvault.crypto.codec import (
    CodecError,
    DecryptionError,
    EncryptedArtifact,
    FernetCodec,
    LegacyXorCodec,
    SecureBackupCodec,
    SerializationError,
    decrypt_sensitive_data,
    encrypt_sensitive_data,
    get_codec,
    get_codec_for_algorithm,
)
from arrvault.crypto.legacy import KDF_ROUNDS, derive_key, rolling_hash, xor_cipher

__all__ = [
    # Codecs
    "SecureBackupCodec",
    "LegacyXorCodec",
    "FernetCodec",
    "EncryptedArtifact",
    "get_codec",
    "get_codec_for_algorithm",
    "encrypt_sensitive_data",
    "decrypt_sensitive_data",
    # Errors
    "CodecError",
    "DecryptionError",
    "SerializationError",
    # Legacy primitives
    "rolling_hash",
    "derive_key",
    "xor_cipher",
    "KDF_ROUNDS",
]
