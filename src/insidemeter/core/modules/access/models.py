from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from insidemeter.core.modules.session.models import SessionId
from insidemeter.core.modules.user.models import User, UserView


class AuthStatus(BaseModel):
    """Identity as seen by the client: ``{"isAuthenticated": bool, "user": object|null}``."""

    is_authenticated: bool = Field(..., description="Whether the request carried a valid credential")
    user: UserView | None = Field(None, description="Authenticated user, null when anonymous")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def anonymous(cls) -> "AuthStatus":
        return cls(is_authenticated=False, user=None)

    @classmethod
    def for_user(cls, user: User | None) -> "AuthStatus":
        if user is None:
            return cls.anonymous()
        return cls(is_authenticated=True, user=UserView.from_domain(user))


class LoginResult(BaseModel):
    """Credentials produced by a successful login."""

    user: User
    token: str
    token_expires: datetime
    session_id: SessionId | None = None  # Only set for logins that open a browser session
