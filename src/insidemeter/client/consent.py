from typing import Literal

import structlog
from pydantic import BaseModel

from insidemeter.client.storage import KeyValueStore

logger = structlog.get_logger(__name__)

CONSENT_KEY = "cookie-consent"

OptionalCategory = Literal["analytics", "personalization"]


class ConsentPreferences(BaseModel):
    essential: bool = True
    analytics: bool = False
    personalization: bool = False


class ConsentManager:
    """Cookie-consent choices, loaded once from local storage.

    Created at application start and handed to whatever needs tracking decisions.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._preferences = self._load()

    def _load(self) -> ConsentPreferences:
        try:
            raw = self._store.get(CONSENT_KEY)
            if raw:
                return ConsentPreferences.model_validate_json(raw)
        except (OSError, ValueError) as e:
            # Includes pydantic validation errors
            logger.warning("consent_preferences_unreadable", error=str(e))
        return ConsentPreferences()

    @property
    def preferences(self) -> ConsentPreferences:
        return self._preferences.model_copy()

    def update(self, preferences: ConsentPreferences) -> None:
        # Essential cookies cannot be declined
        self._preferences = preferences.model_copy(update={"essential": True})
        self._store.set(CONSENT_KEY, self._preferences.model_dump_json())

    def has_consent(self, category: OptionalCategory) -> bool:
        return getattr(self._preferences, category)
