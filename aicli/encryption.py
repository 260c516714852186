"""
Field encryption for the settings file.

Two interchangeable services share the encrypt / decrypt / is_encrypted contract:
- AesEncryptionService: portable, AES-256-CBC keyed from machine-derived material
- DpapiEncryptionService (aicli.dpapi): Windows DPAPI, current-user scope

Encrypted values carry a marker prefix so plaintext written by older versions
(or by hand) is recognised and passed through untouched.
"""
import base64
import getpass
import os
import platform
import sys
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from aicli.errors import EncryptionError, UnsupportedPlatformError
from aicli.logging_setup import get_logger

logger = get_logger("encryption")

AES_PREFIX = "ENC:"
DPAPI_PREFIX = "DPAPI:"
# Markers of every variant, whichever one this machine uses
ENCRYPTION_PREFIXES = (AES_PREFIX, DPAPI_PREFIX)


class EncryptionService(ABC):
    PREFIX: str = ""

    @abstractmethod
    def _protect(self, data: bytes) -> bytes:
        ...

    @abstractmethod
    def _unprotect(self, data: bytes) -> bytes:
        ...

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return plaintext
        # callers log failures; the settings store does so per field
        try:
            protected = self._protect(plaintext.encode("utf-8"))
        except Exception as e:
            raise EncryptionError("Encryption failed", {"service": self.__class__.__name__}) from e
        return self.PREFIX + base64.b64encode(protected).decode("ascii")

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if not ciphertext or not self.is_encrypted(ciphertext):
            return ciphertext
        try:
            raw = base64.b64decode(ciphertext[len(self.PREFIX):], validate=True)
            return self._unprotect(raw).decode("utf-8")
        except Exception as e:
            raise EncryptionError("Decryption failed", {"service": self.__class__.__name__}) from e

    def is_encrypted(self, value: Optional[str]) -> bool:
        return bool(value) and value.startswith(self.PREFIX)

# -----------------------------
# Portable AES
# -----------------------------
class AesEncryptionService(EncryptionService):
    PREFIX = AES_PREFIX
    KDF_ITERATIONS = 10000
    KEY_SIZE = 32  # AES-256
    IV_SIZE = 16
    APP_ENTROPY = "ai-cli-encryption-service"

    def __init__(self, entropy: Optional[bytes] = None):
        try:
            self._key = self._derive_key(entropy if entropy is not None else self.machine_entropy())
        except Exception as e:
            logger.error("Failed to generate encryption key", exc_info=True)
            raise EncryptionError("Failed to derive encryption key") from e

    @classmethod
    def machine_entropy(cls) -> bytes:
        """Stable per machine/user/OS; never derived from a user secret."""
        parts = [
            platform.node(),
            cls._user_name(),
            sys.platform,
            str(os.cpu_count() or 1),
            cls.APP_ENTROPY,
        ]
        return "|".join(parts).encode("utf-8")

    @staticmethod
    def _user_name() -> str:
        try:
            return getpass.getuser()
        except (OSError, KeyError):
            # no USER/LOGNAME and no pwd entry (e.g. some containers)
            return os.environ.get("USERNAME", "")

    @classmethod
    def _derive_key(cls, entropy: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.KEY_SIZE,
            salt=entropy,
            iterations=cls.KDF_ITERATIONS,
        )
        return kdf.derive(entropy)

    def _protect(self, data: bytes) -> bytes:
        iv = os.urandom(self.IV_SIZE)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def _unprotect(self, data: bytes) -> bytes:
        if len(data) <= self.IV_SIZE or (len(data) - self.IV_SIZE) % self.IV_SIZE:
            raise ValueError(f"Invalid ciphertext length: {len(data)}")
        iv, body = data[:self.IV_SIZE], data[self.IV_SIZE:]
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

# -----------------------------
# Factory
# -----------------------------
def has_encryption_marker(value: Optional[str]) -> bool:
    """True when value carries the marker of any encryption variant."""
    return bool(value) and value.startswith(ENCRYPTION_PREFIXES)


def create_encryption_service(platform_name: Optional[str] = None) -> EncryptionService:
    """
    Pick the encryption service for a platform (default: sys.platform):
    - win32: DPAPI (aicli.dpapi is only imported here)
    - everything else: AES
    """
    platform_name = platform_name or sys.platform
    if platform_name == "win32":
        return create_dpapi_service(platform_name)
    return AesEncryptionService()


def create_dpapi_service(platform_name: Optional[str] = None) -> EncryptionService:
    """Explicitly request DPAPI; fails outside Windows."""
    platform_name = platform_name or sys.platform
    if platform_name != "win32":
        raise UnsupportedPlatformError(
            "DPAPI encryption is only supported on Windows",
            {"platform": platform_name},
        )
    from aicli.dpapi import DpapiEncryptionService
    return DpapiEncryptionService()
