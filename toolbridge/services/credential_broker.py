"""
Credential Broker

Turns a configuration's ciphertext into a plaintext credential bag, freshly
on every call.
"""
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import InvalidToken

from ..core.encryption import EncryptionService, get_encryption_service
from ..core.errors import CredentialDecryptionError
from ..models.integration import IntegrationConfiguration

logger = logging.getLogger(__name__)


class CredentialBroker:
    """Decrypts stored credential bags"""

    def __init__(self, encryption: Optional[EncryptionService] = None):
        self.encryption = encryption or get_encryption_service()

    def load_credentials(self, configuration: IntegrationConfiguration) -> Optional[Dict[str, Any]]:
        """
        Decrypted credential bag of a configuration

        Returns None when nothing is stored. Raises CredentialDecryptionError when
        ciphertext exists but cannot be turned back into a JSON object.
        """
        if not configuration.encrypted_credentials:
            return None

        try:
            credentials = self.encryption.decrypt_credentials(configuration.encrypted_credentials)
        except (InvalidToken, ValueError, TypeError) as e:
            logger.error(f"Failed to decrypt credentials for configuration {configuration.id}: {type(e).__name__}")
            raise CredentialDecryptionError(
                f"Stored credentials for configuration {configuration.id} could not be decrypted",
                context={"config_id": configuration.id, "integration_type": configuration.integration_type},
            )

        if not isinstance(credentials, dict):
            raise CredentialDecryptionError(
                f"Stored credentials for configuration {configuration.id} are not a key/value map",
                context={"config_id": configuration.id, "integration_type": configuration.integration_type},
            )

        return credentials

    def encrypt_credentials(self, credentials: Dict[str, Any]) -> str:
        return self.encryption.encrypt_credentials(credentials)
