"""Credential encryption and storage."""
from .credentials import CREDENTIALS_TABLE, CredentialStore
from .vault import CredentialVault, mask, validate_format

__all__ = [
    "CREDENTIALS_TABLE",
    "CredentialStore",
    "CredentialVault",
    "mask",
    "validate_format",
]
