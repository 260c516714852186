"""Windows DPAPI encryption service. Import only on win32."""
import win32crypt

from aicli.encryption import DPAPI_PREFIX, EncryptionService

# CRYPTPROTECT_UI_FORBIDDEN: never show a prompt, fail instead
_CRYPTPROTECT_UI_FORBIDDEN = 0x1


class DpapiEncryptionService(EncryptionService):
    """Bound to the current Windows user account via CryptProtectData."""

    PREFIX = DPAPI_PREFIX
    ENTROPY = b"ai-cli-dpapi-entropy-v1"
    DESCRIPTION = "ai-cli setting"

    def _protect(self, data: bytes) -> bytes:
        return win32crypt.CryptProtectData(
            data, self.DESCRIPTION, self.ENTROPY, None, None, _CRYPTPROTECT_UI_FORBIDDEN
        )

    def _unprotect(self, data: bytes) -> bytes:
        _description, plaintext = win32crypt.CryptUnprotectData(
            data, self.ENTROPY, None, None, _CRYPTPROTECT_UI_FORBIDDEN
        )
        return plaintext
