"""
Persisted classifier credential.
"""

from .store import (
    CREDENTIAL_KEY,
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
    create_credential_store,
)

__all__ = [
    "CREDENTIAL_KEY",
    "CredentialStore",
    "FileCredentialStore",
    "InMemoryCredentialStore",
    "create_credential_store",
]
