from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel

from .models import (
    RoleName,
    SubscriptionPlan,
    SubscriptionStatus,
    TransactionStatus,
    TransactionType,
    UserStatus,
)
from .settings import PIN_DAYS_MAX


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; bodies accept either."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

T = TypeVar("T")


class PaginationMetadata(CamelModel):
    """Page bookkeeping returned with every list."""

    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class Page(CamelModel, Generic[T]):
    """Generic paginated response."""

    data: list[T]
    metadata: PaginationMetadata


class Envelope(CamelModel, Generic[T]):
    """Mutation response: human readable message plus the affected record."""

    message: str
    data: T | None = None


class MessageResponse(CamelModel):
    message: str


# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(CamelModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserSummary(CamelModel):
    """Minimal author card embedded in blogs, comments and likes."""

    user_id: str
    full_name: str | None = None
    user_name: str | None = None
    profile_image: str | None = None


class UserPublic(CamelModel):
    """User profile. The password hash is never part of any response."""

    user_id: str
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    user_name: str | None = None
    profile_image: str | None = None
    bio: str | None = None
    phone_number: str | None = None
    status: UserStatus
    gender: str | None = None
    dob: str | None = None
    email: str
    verified: bool
    email_is_verified: bool
    phone_number_is_verified: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None


class UserListItem(UserPublic):
    """User in a list, flagged with whether the caller follows them."""

    following: bool = False


class UsersStatsOut(CamelModel):
    user_stats_id: str
    user_id: str
    followers_count: int
    followings_count: int
    total_posts: int
    total_likes: int
    un_read_notifications_count: int
    orders_count: int


class UserDetail(UserListItem):
    """Single user with counters and role names."""

    users_stats: UsersStatsOut | None = None
    roles: list[str] = []


class UserCreate(CamelModel):
    first_name: str | None = Field(None, max_length=255)
    middle_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    full_name: str | None = Field(None, max_length=255)
    user_name: str | None = Field(None, max_length=255)
    profile_image: str | None = None
    bio: str | None = None
    phone_number: str | None = Field(None, max_length=255)
    gender: str | None = Field(None, max_length=255)
    dob: str | None = Field(None, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    verified: bool = False
    role: RoleName = RoleName.AUTHENTICATED


class UserUpdate(CamelModel):
    first_name: str | None = Field(None, max_length=255)
    middle_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    full_name: str | None = Field(None, max_length=255)
    user_name: str | None = Field(None, max_length=255)
    profile_image: str | None = None
    bio: str | None = None
    phone_number: str | None = Field(None, max_length=255)
    gender: str | None = Field(None, max_length=255)
    dob: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=72)


class UserStatusUpdate(CamelModel):
    status: UserStatus


class UserRolesUpdate(CamelModel):
    roles: list[RoleName] = Field(..., min_length=1)


class UserRolesResponse(CamelModel):
    user_id: str
    roles: list[str]


class FollowRequest(CamelModel):
    follower_id: str
    following_id: str


class FollowResponse(CamelModel):
    followed: bool


# ============================================================================
# WALLET, BUSINESS & SUBSCRIPTION SCHEMAS
# ============================================================================


class TransactionOut(CamelModel):
    transaction_id: str
    wallet_id: str
    amount: Money
    type: TransactionType
    status: TransactionStatus
    description: str | None = None
    created_at: datetime | None = None


class WalletOut(CamelModel):
    wallet_id: str
    account_number: str | None = None
    user_id: str
    balance: Money
    currency: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WalletWithTransactions(WalletOut):
    transactions: list[TransactionOut] = []


class DepositRequest(CamelModel):
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    description: str | None = Field(None, max_length=255)


class DepositResponse(CamelModel):
    wallet: WalletOut
    transaction: TransactionOut


class BusinessCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    logo: str | None = None


class BusinessOut(CamelModel):
    business_id: str
    user_id: str
    name: str
    description: str | None = None
    logo: str | None = None
    created_at: datetime | None = None


class BusinessStatsOut(CamelModel):
    business_stats_id: str
    business_id: str
    followers_count: int
    products_count: int
    orders_count: int
    subscriptions_count: int


class SubscribeRequest(CamelModel):
    plan: SubscriptionPlan
    business_id: str | None = None


class SubscriptionOut(CamelModel):
    subscription_id: str
    business_id: str
    plan: SubscriptionPlan
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime


# ============================================================================
# BLOG SCHEMAS
# ============================================================================


class BlogCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    text: str = Field(..., min_length=1)
    url: str | None = None
    external_link: str | None = None
    external_link_title: str | None = Field(None, max_length=255)
    images: list[str] = []
    video: str | None = None
    audio: str | None = None
    reposted_from_blog_id: str | None = None
    pinned: bool = False
    pinned_number_of_days: int = Field(1, ge=1, le=PIN_DAYS_MAX)


class BlogUpdate(CamelModel):
    title: str | None = Field(None, max_length=255)
    text: str | None = None
    url: str | None = None
    external_link: str | None = None
    external_link_title: str | None = Field(None, max_length=255)
    images: list[str] | None = None
    video: str | None = None
    audio: str | None = None


class BlogOut(CamelModel):
    blog_id: str
    user_id: str
    slug: str | None = None
    title: str
    url: str | None = None
    external_link: str | None = None
    external_link_title: str | None = None
    text: str
    images: list[str] = []
    video: str | None = None
    audio: str | None = None
    is_reel: bool
    likes_count: int
    comments_count: int
    shares_count: int
    views_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    author: UserSummary | None = None


class BlogWithMeta(CamelModel):
    """Blog plus the caller's relationship to it and its counters."""

    blog: BlogOut
    liked: bool = False
    reposted: bool = False
    likes_count: int
    reposts_count: int
    comments_count: int
    views_count: int


class LikeToggleResponse(CamelModel):
    liked: bool
    likes_count: int


class LikeOut(CamelModel):
    like_id: str
    ref_id: str
    user_id: str
    created_at: datetime | None = None
    user: UserSummary | None = None


class SessionUsersResponse(CamelModel):
    session_users: list[UserSummary]


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(CamelModel):
    text: str | None = None
    image: str | None = None
    sticker: str | None = None
    video: str | None = None
    audio: str | None = None

    @model_validator(mode="after")
    def require_content(self) -> "CommentCreate":
        if not any((self.text, self.image, self.sticker, self.video, self.audio)):
            raise ValueError("A comment needs text, an image, a sticker, a video or audio")
        return self


class CommentUpdate(CamelModel):
    text: str | None = None
    image: str | None = None
    sticker: str | None = None
    video: str | None = None
    audio: str | None = None


class CommentOut(CamelModel):
    comment_id: str
    ref_id: str
    user_id: str
    text: str | None = None
    image: str | None = None
    sticker: str | None = None
    video: str | None = None
    audio: str | None = None
    replies_count: int
    likes_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    author: UserSummary | None = None


class CommentWithMeta(CamelModel):
    comment: CommentOut
    replies_count: int
    likes_count: int
    liked: bool = False


# ============================================================================
# AUTH SCHEMAS
# ============================================================================


class TokenRequest(CamelModel):
    email: EmailStr


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class TokenResponse(CamelModel):
    message: str
    token: str
    user: UserDetail
