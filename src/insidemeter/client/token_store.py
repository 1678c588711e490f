import structlog

from insidemeter.client.errors import TokenStorageError
from insidemeter.client.storage import KeyValueStore
from insidemeter.logging import token_preview
from insidemeter.utils import now_millis

logger = structlog.get_logger(__name__)

TOKEN_KEY = "ios_token"
TOKEN_TIMESTAMP_KEY = "ios_token_timestamp"


class TokenStore:
    """Keeps the iOS bearer token on the device.

    The primary store is durable; the secondary store mirrors it and takes over
    when the primary fails. Each token is stored together with the time it was
    saved, which drives the client-side expiry check.
    """

    def __init__(self, primary: KeyValueStore, secondary: KeyValueStore) -> None:
        self._primary = primary
        self._secondary = secondary

    def set(self, token: str, issued_at_millis: int | None = None) -> None:
        """Save the token. Raises TokenStorageError only if neither store accepts it."""
        timestamp = str(issued_at_millis if issued_at_millis is not None else now_millis())

        primary_ok = True
        try:
            self._primary.set(TOKEN_KEY, token)
            self._primary.set(TOKEN_TIMESTAMP_KEY, timestamp)
        except Exception as e:
            primary_ok = False
            logger.warning("token_primary_write_failed", error=str(e))
            # A half-written pair must not shadow the secondary copy
            for key in (TOKEN_KEY, TOKEN_TIMESTAMP_KEY):
                try:
                    self._primary.remove(key)
                except Exception:
                    logger.warning("token_primary_cleanup_failed", key=key, exc_info=True)

        try:
            self._secondary.set(TOKEN_KEY, token)
            self._secondary.set(TOKEN_TIMESTAMP_KEY, timestamp)
        except Exception as e:
            if not primary_ok:
                logger.exception("token_write_failed")
                raise TokenStorageError("Failed to store authentication token") from e
            logger.warning("token_secondary_write_failed", error=str(e))

        logger.debug("token_stored", token=token_preview(token), primary=primary_ok)

    def get(self) -> str | None:
        """Return the stored token, or None. Never raises."""
        return self._read(TOKEN_KEY)

    def get_timestamp(self) -> int | None:
        """Return the millisecond timestamp stored with the token, or None. Never raises."""
        value = self._read(TOKEN_TIMESTAMP_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning("token_timestamp_invalid", value=value)
            return None

    def remove(self) -> None:
        """Clear token and timestamp from both stores.

        Every removal is attempted; failures are collected and raised together.
        """
        errors: list[Exception] = []
        for store in (self._primary, self._secondary):
            for key in (TOKEN_KEY, TOKEN_TIMESTAMP_KEY):
                try:
                    store.remove(key)
                except Exception as e:
                    errors.append(e)

        if errors:
            logger.error("token_remove_incomplete", failures=len(errors))
            raise TokenStorageError("Authentication token may not have been fully removed", errors)
        logger.debug("token_removed")

    def is_expired(self, max_age_hours: float = 24, now: int | None = None) -> bool:
        """Client-side expiry: a token without a timestamp, or older than max_age_hours, is expired."""
        timestamp = self.get_timestamp()
        if timestamp is None:
            return True
        if now is None:
            now = now_millis()
        age_hours = (now - timestamp) / (1000 * 60 * 60)
        expired = age_hours > max_age_hours
        logger.debug("token_age_checked", age_hours=round(age_hours, 1), expired=expired)
        return expired

    def _read(self, key: str) -> str | None:
        for name, store in (("primary", self._primary), ("secondary", self._secondary)):
            try:
                value = store.get(key)
            except Exception as e:
                logger.warning("token_read_failed", store=name, key=key, error=str(e))
                continue
            if value:
                return value
        return None
