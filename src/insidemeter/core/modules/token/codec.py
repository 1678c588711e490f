"""iOS bearer token format: ``subject_id:issued_at_millis:integrity_tag``.

The integrity tag is ``HMAC-SHA256(secret, "subject_id:issued_at_millis")`` in hex.
Verification recomputes it and compares in constant time; a token is only as
long-lived as ``max_age`` measured from its issuance timestamp.
"""

import hashlib
import hmac
import re
from datetime import timedelta

from pydantic import BaseModel

from insidemeter.utils import now_millis

DIGITS_RE = re.compile(r"^[0-9]+$")


class TokenClaims(BaseModel):
    """Fields recovered from a verified token."""

    subject_id: int
    issued_at_millis: int


class TokenCodec:
    def __init__(self, secret: str, max_age: timedelta = timedelta(days=7)) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._max_age_millis = int(max_age.total_seconds() * 1000)

    def sign(self, subject_id: int, issued_at_millis: int) -> str:
        message = f"{subject_id}:{issued_at_millis}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def issue(self, subject_id: int, issued_at_millis: int | None = None) -> str:
        if issued_at_millis is None:
            issued_at_millis = now_millis()
        return f"{subject_id}:{issued_at_millis}:{self.sign(subject_id, issued_at_millis)}"

    def verify(self, token: str, now: int | None = None) -> TokenClaims | None:
        """Decode and check a token. Returns None for anything that is not a valid, live token."""
        parts = token.split(":")
        if len(parts) != 3:
            return None

        subject_str, issued_str, tag = parts
        if not DIGITS_RE.fullmatch(subject_str) or not DIGITS_RE.fullmatch(issued_str):
            return None
        subject_id = int(subject_str)
        issued_at_millis = int(issued_str)

        if now is None:
            now = now_millis()
        if now - issued_at_millis > self._max_age_millis:
            return None

        if not hmac.compare_digest(tag.encode("utf-8"), self.sign(subject_id, issued_at_millis).encode("utf-8")):
            return None

        return TokenClaims(subject_id=subject_id, issued_at_millis=issued_at_millis)

    def expires_at_millis(self, issued_at_millis: int) -> int:
        return issued_at_millis + self._max_age_millis
