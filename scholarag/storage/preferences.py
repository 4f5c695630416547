"""Per-user, per-feature model preferences."""
import logging
import threading
from typing import List, Optional

from ..core.models import Feature, FeaturePreference, utc_now
from ..exceptions import InvalidInput
from .record_store import BaseRecordStore

logger = logging.getLogger(__name__)

PREFERENCES_TABLE = "feature_model_preferences"

FEATURE_NAMES = {feature.value for feature in Feature}


class PreferenceStore:
    """Stores which provider and model a user wants for each feature.

    Args:
        record_store: Backing record store
        registry: ProviderRegistry used to validate provider and model
    """

    def __init__(self, record_store: BaseRecordStore, registry=None):
        self.record_store = record_store
        self.registry = registry
        self._lock = threading.Lock()

    def _validate(self, preference: FeaturePreference) -> None:
        if preference.feature not in FEATURE_NAMES:
            raise InvalidInput(f"Unknown feature: {preference.feature}")
        if self.registry is None:
            return
        descriptor = self.registry.get(preference.preferred_provider)
        if descriptor is None:
            raise InvalidInput(f"Unknown provider: {preference.preferred_provider}")
        if preference.preferred_model and preference.preferred_model not in descriptor.supported_models:
            raise InvalidInput(
                f"Model {preference.preferred_model} is not offered by {descriptor.name}"
            )

    def save_preference(self, preference: FeaturePreference) -> FeaturePreference:
        """Create or replace the preference for (user, feature).

        Raises:
            InvalidInput: If the feature, provider or model is unknown
        """
        self._validate(preference)
        preference.updated_at = utc_now()
        key = {"user_id": preference.user_id, "feature": preference.feature}

        with self._lock:
            if self.record_store.update(PREFERENCES_TABLE, key, preference.to_dict()) == 0:
                self.record_store.put(PREFERENCES_TABLE, preference.to_dict())

        logger.info(
            f"Saved {preference.feature} preference for user {preference.user_id}: "
            f"{preference.preferred_provider}/{preference.preferred_model or 'default'}"
        )
        return preference

    def get_preference(self, user_id: str, feature: str) -> Optional[FeaturePreference]:
        record = self.record_store.get_one(
            PREFERENCES_TABLE, {"user_id": user_id, "feature": feature}
        )
        return FeaturePreference.from_dict(record) if record else None

    def list_preferences(self, user_id: str) -> List[FeaturePreference]:
        return [
            FeaturePreference.from_dict(record)
            for record in self.record_store.get(PREFERENCES_TABLE, {"user_id": user_id})
        ]

    def delete_preference(self, user_id: str, feature: str) -> bool:
        removed = self.record_store.delete(
            PREFERENCES_TABLE, {"user_id": user_id, "feature": feature}
        )
        return removed > 0
