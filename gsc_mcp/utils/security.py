# gsc_mcp/utils/security.py
import binascii
import logging
from base64 import urlsafe_b64decode
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionKeyError(ValueError):
    """TOKEN_ENCRYPTION_KEY is not a usable Fernet key."""


def generate_fernet_key() -> str:
    """Generates a new Fernet key and returns it as a string."""
    return Fernet.generate_key().decode('utf-8')


def load_fernet(encryption_key: str) -> Fernet:
    try:
        raw_key = urlsafe_b64decode(encryption_key.encode('utf-8'))
    except (binascii.Error, ValueError) as e:
        raise EncryptionKeyError(f"TOKEN_ENCRYPTION_KEY is not valid base64: {e}") from e
    # Fernet keys are 32 bytes once base64-decoded
    if len(raw_key) != 32:
        raise EncryptionKeyError(
            f"TOKEN_ENCRYPTION_KEY must decode to 32 bytes, got {len(raw_key)}."
        )
    return Fernet(encryption_key.encode('utf-8'))


class FernetEncryptor:
    """Encrypts the persisted credential at rest."""

    def __init__(self, encryption_key: str):
        self._fernet = load_fernet(encryption_key)
        logger.info("FernetEncryptor initialized.")

    def encrypt(self, data: str) -> str:
        return self._fernet.encrypt(data.encode('utf-8')).decode('utf-8')

    def decrypt(self, token: str) -> Optional[str]:
        """Returns None when the token was not produced with this key or is corrupted."""
        try:
            return self._fernet.decrypt(token.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            logger.error("Decryption failed: wrong TOKEN_ENCRYPTION_KEY or corrupted data.")
            return None
