"""
Credential encryption for connection secrets.

Fernet with a key derived from ENCRYPTION_KEY via PBKDF2-HMAC-SHA256.
Values that are not Fernet tokens are treated as legacy plaintext.
"""
import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

KDF_SALT = b"catalog-sync-credentials-v1"
KDF_ITERATIONS = 100_000


def derive_fernet(secret: str) -> Fernet:
    """Derive a Fernet instance from an arbitrary secret string."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    key = base64.urlsafe_b64encode(kdf.derive(secret.encode()))
    return Fernet(key)


class Secrets:
    """Encrypts and decrypts stored destination credentials."""

    def __init__(self, secret: Optional[str]):
        if not secret:
            raise ValidationError("ENCRYPTION_KEY is not configured")
        self._fernet = derive_fernet(secret)

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None:
            return None
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            # Stored before encryption was enabled
            logger.warning("Credential is not a valid token, using stored value as-is")
            return ciphertext
