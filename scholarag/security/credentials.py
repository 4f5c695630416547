"""Encrypted per-user provider credentials."""
import logging
import threading
import uuid
from typing import List, Optional

from ..core.models import CredentialRecord
from ..exceptions import InvalidInput
from ..storage.record_store import BaseRecordStore
from .vault import CredentialVault

logger = logging.getLogger(__name__)

CREDENTIALS_TABLE = "api_keys"


class CredentialStore:
    """Saves, activates and decrypts user API keys.

    A user may store several keys per provider but at most one is active.
    Activation is a single record store step, so concurrent saves, even
    from stores sharing one SQLite file, leave exactly one key active.

    Args:
        record_store: Backing record store
        vault: Vault used to seal and open secrets
        registry: Optional ProviderRegistry used to validate provider names
    """

    def __init__(self, record_store: BaseRecordStore, vault: CredentialVault, registry=None):
        self.record_store = record_store
        self.vault = vault
        self.registry = registry
        self._lock = threading.Lock()

    def _set_active(self, user_id: str, provider_name: str, credential_id: str) -> int:
        return self.record_store.set_exclusive(
            CREDENTIALS_TABLE,
            {"user_id": user_id, "provider_name": provider_name},
            {"credential_id": credential_id},
            "is_active",
        )

    def save_credential(
        self,
        user_id: str,
        provider_name: str,
        secret: str,
        activate: bool = True,
    ) -> CredentialRecord:
        """Encrypt and store a key.

        Args:
            user_id: Owner
            provider_name: Provider the key belongs to
            secret: Plaintext key, discarded after encryption
            activate: Make this the user's active key for the provider

        Returns:
            The stored record (encrypted and masked forms only)

        Raises:
            InvalidInput: If the key or provider is rejected
        """
        problem = self.vault.validate_format(secret)
        if problem:
            raise InvalidInput(problem)
        if self.registry is not None and provider_name not in self.registry:
            raise InvalidInput(f"Unknown provider: {provider_name}")

        secret = secret.strip()
        record = CredentialRecord(
            credential_id=str(uuid.uuid4()),
            user_id=user_id,
            provider_name=provider_name,
            encrypted_secret=self.vault.encrypt(secret),
            masked_secret=self.vault.mask(secret),
            is_active=False,
        )

        with self._lock:
            self.record_store.put(CREDENTIALS_TABLE, dict(record.to_dict(), id=record.credential_id))
            if activate:
                self._set_active(user_id, provider_name, record.credential_id)
                record.is_active = True

        logger.info(f"Saved {provider_name} key {record.masked_secret} for user {user_id}")
        return record

    def activate(self, user_id: str, credential_id: str) -> CredentialRecord:
        """Make a stored key the active one for its provider.

        Raises:
            InvalidInput: If the user has no such key
        """
        with self._lock:
            data = self.record_store.get_one(
                CREDENTIALS_TABLE, {"user_id": user_id, "credential_id": credential_id}
            )
            if data is None:
                raise InvalidInput(f"No credential {credential_id} for user {user_id}")
            if not self._set_active(user_id, data["provider_name"], credential_id):
                raise InvalidInput(f"No credential {credential_id} for user {user_id}")

        data["is_active"] = True
        return CredentialRecord.from_dict(data)

    def get_active_record(self, user_id: str, provider_name: str) -> Optional[CredentialRecord]:
        data = self.record_store.get_one(
            CREDENTIALS_TABLE,
            {"user_id": user_id, "provider_name": provider_name, "is_active": True},
        )
        return CredentialRecord.from_dict(data) if data else None

    def get_active_secret(self, user_id: str, provider_name: str) -> Optional[str]:
        """Decrypt the active key for a provider.

        Returns:
            Plaintext key, or None if the user has no active key

        Raises:
            DecryptionError: If the stored key cannot be decrypted
        """
        record = self.get_active_record(user_id, provider_name)
        if record is None:
            return None
        return self.vault.decrypt(record.encrypted_secret)

    def list_credentials(self, user_id: str) -> List[CredentialRecord]:
        """All keys of a user. Only the masked form is meant for display."""
        return [
            CredentialRecord.from_dict(data)
            for data in self.record_store.get(CREDENTIALS_TABLE, {"user_id": user_id})
        ]

    def delete_credential(self, user_id: str, credential_id: str) -> bool:
        with self._lock:
            removed = self.record_store.delete(
                CREDENTIALS_TABLE, {"user_id": user_id, "credential_id": credential_id}
            )
        if removed:
            logger.info(f"Deleted credential {credential_id} for user {user_id}")
        return removed > 0
