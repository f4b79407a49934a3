"""
Credential Encryption Utilities
"""
import base64
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import settings


def _generate_key(secret: str) -> bytes:
    """Derive a Fernet key from the configured secret"""
    password = f"{secret}:integration-credentials".encode()
    salt = b"toolbridge_credentials"

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    return base64.urlsafe_b64encode(kdf.derive(password))


class EncryptionService:
    """Symmetric encryption of credential blobs"""

    def __init__(self, secret: Optional[str] = None):
        secret = secret or settings.ENCRYPTION_KEY or settings.SECRET_KEY  # Fallback to SECRET_KEY
        self._fernet = Fernet(_generate_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a blob; raises cryptography.fernet.InvalidToken on a bad key or corrupt data"""
        return self._fernet.decrypt(ciphertext.encode()).decode()

    def encrypt_credentials(self, credentials: Dict[str, Any]) -> str:
        """Encrypt a credential bag"""
        return self.encrypt(json.dumps(credentials))

    def decrypt_credentials(self, encrypted_data: str) -> Any:
        """Decrypt a credential bag back into its JSON value"""
        return json.loads(self.decrypt(encrypted_data))


_default_service: Optional[EncryptionService] = None


def get_encryption_service() -> EncryptionService:
    """Process-wide service keyed from settings"""
    global _default_service
    if _default_service is None:
        _default_service = EncryptionService()
    return _default_service
