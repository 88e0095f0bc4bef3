"""
Unit tests for credential encryption.

Version: 1.0.0
"""
import pytest

from app.core.exceptions import ValidationError
from app.utils.secrets import Secrets


pytestmark = pytest.mark.unit


@pytest.fixture(scope="module")
def secrets():
    return Secrets("unit-test-secret")


class TestSecrets:
    def test_encrypted_value_is_not_plaintext(self, secrets):
        token = secrets.encrypt("shpat_abc")
        assert token != "shpat_abc"
        assert secrets.decrypt(token) == "shpat_abc"

    def test_same_secret_decrypts_across_instances(self, secrets):
        token = secrets.encrypt("ck_123")
        assert Secrets("unit-test-secret").decrypt(token) == "ck_123"

    def test_none_passthrough(self, secrets):
        assert secrets.encrypt(None) is None
        assert secrets.decrypt(None) is None

    def test_legacy_plaintext_returned_as_is(self, secrets):
        assert secrets.decrypt("plain-token") == "plain-token"

    def test_missing_key_rejected(self):
        with pytest.raises(ValidationError):
            Secrets("")
