import pytest

from toolbridge.core.encryption import EncryptionService
from toolbridge.core.errors import CredentialDecryptionError, CredentialUnavailableError
from toolbridge.models.integration import IntegrationConfiguration
from toolbridge.services.credential_broker import CredentialBroker


def _configuration(ciphertext):
    return IntegrationConfiguration(id=7, integration_type="jira", instance_name="Jira", encrypted_credentials=ciphertext)


def test_credentials_round_trip():
    service = EncryptionService("secret-one")
    bag = {"url": "https://acme.atlassian.net", "nested": {"scopes": ["read", "write"]}, "expires_in": 3600}

    ciphertext = service.encrypt_credentials(bag)

    assert service.decrypt_credentials(ciphertext) == bag


def test_broker_returns_none_without_ciphertext():
    broker = CredentialBroker(EncryptionService("secret-one"))
    assert broker.load_credentials(_configuration(None)) is None


def test_broker_decrypts_on_every_call():
    service = EncryptionService("secret-one")
    broker = CredentialBroker(service)
    configuration = _configuration(service.encrypt_credentials({"api_key": "a"}))

    assert broker.load_credentials(configuration) == {"api_key": "a"}

    configuration.encrypted_credentials = service.encrypt_credentials({"api_key": "b"})
    assert broker.load_credentials(configuration) == {"api_key": "b"}


def test_broker_wrong_key_raises_decryption_error():
    ciphertext = EncryptionService("secret-one").encrypt_credentials({"api_key": "a"})
    broker = CredentialBroker(EncryptionService("secret-two"))

    with pytest.raises(CredentialDecryptionError) as exc_info:
        broker.load_credentials(_configuration(ciphertext))

    assert isinstance(exc_info.value, CredentialUnavailableError)
    assert exc_info.value.status_code == 400
    assert exc_info.value.context["config_id"] == 7


def test_broker_rejects_non_object_payload():
    service = EncryptionService("secret-one")
    broker = CredentialBroker(service)

    with pytest.raises(CredentialDecryptionError, match="not a key/value map"):
        broker.load_credentials(_configuration(service.encrypt('["a", "b"]')))


def test_broker_rejects_garbage():
    broker = CredentialBroker(EncryptionService("secret-one"))
    with pytest.raises(CredentialDecryptionError):
        broker.load_credentials(_configuration("not-a-fernet-token"))
