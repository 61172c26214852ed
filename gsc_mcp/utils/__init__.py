# gsc_mcp/utils/__init__.py

"""
Encryption helpers for credentials persisted at rest.
"""

from .security import EncryptionKeyError, FernetEncryptor, generate_fernet_key, load_fernet

__all__ = ["EncryptionKeyError", "FernetEncryptor", "generate_fernet_key", "load_fernet"]
