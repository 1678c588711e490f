from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from insidemeter.core.db import MongoModel
from insidemeter.utils import now


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class SubscriptionTier(StrEnum):
    FREE = "free"
    ESSENTIAL = "essential"
    PRO = "pro"


class User(MongoModel):
    """User domain model with credentials.

    Indexed on username - unique, email - unique when set.
    """

    id: int = Field(alias="_id", serialization_alias="id")
    username: str
    email: str | None = None
    name: str | None = None
    password_hash: str | None = None  # bcrypt hash; legacy rows may hold plain text until next login
    role: UserRole = UserRole.USER
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    profile_image_url: str | None = None
    ios_auth_token: str | None = None  # Currently active iOS bearer token, if any
    ios_token_expires: datetime | None = None
    created_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    name: str | None = Field(None, description="Display name")
    email: str | None = Field(None, description="Email address")
    role: UserRole = Field(UserRole.USER, description="Account role")
    subscription_tier: SubscriptionTier = Field(SubscriptionTier.FREE, description="Subscription tier")
    profile_image_url: str | None = Field(None, description="Avatar URL")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            email=user.email,
            role=user.role,
            subscription_tier=user.subscription_tier,
            profile_image_url=user.profile_image_url,
        )
