from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils.ids import ID_LENGTH, generate_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# ============================================================================
# ENUMERATIONS
# ============================================================================


class RoleName(str, enum.Enum):
    ANONYMOUS = "Anonymous"
    AUTHENTICATED = "Authenticated"
    BUSINESS_OWNER = "BusinessOwner"
    PAYMENT_AGENT = "PaymentAgent"
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    BANNED = "banned"
    SUSPENDED = "suspended"
    ONLINE = "online"


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    PAYMENT = "payment"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class SubscriptionPlan(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# ============================================================================
# SHARED COLUMNS
# ============================================================================


class AuditColumns:
    """created/updated timestamps plus the full name of the acting user."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=True, default=utcnow, onupdate=utcnow
    )
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=False)


# ============================================================================
# USERS & ROLES
# ============================================================================


class User(AuditColumns, Base):
    """User account with profile information."""

    __tablename__ = "users"

    user_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    first_name = Column(String(255), nullable=True)
    middle_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True, index=True)
    user_name = Column(String(255), unique=True, nullable=True, index=True)
    profile_image = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    phone_number = Column(String(255), nullable=True)
    status = Column(
        Enum(UserStatus, name="user_status", values_callable=_enum_values),
        nullable=False,
        default=UserStatus.ACTIVE,
        index=True,
    )
    password = Column(String(255), nullable=False)  # bcrypt hash, never serialized
    gender = Column(String(255), nullable=True)
    dob = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    verified = Column(Boolean, nullable=False, default=False)
    email_is_verified = Column(Boolean, nullable=False, default=False)
    phone_number_is_verified = Column(Boolean, nullable=False, default=False)

    # Relationships
    user_roles = relationship("UserRole", back_populates="user")
    stats = relationship("UsersStats", back_populates="user", uselist=False)
    wallet = relationship("Wallet", back_populates="user", uselist=False)
    business = relationship("Business", back_populates="owner", uselist=False)
    blogs = relationship("Blog", back_populates="author")

    @property
    def role_names(self) -> list[str]:
        return [user_role.role.role_name.value for user_role in self.user_roles]


class Role(AuditColumns, Base):
    """Named role; one row per RoleName."""

    __tablename__ = "roles"

    role_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    role_name = Column(
        Enum(RoleName, name="role_name", values_callable=_enum_values),
        unique=True,
        nullable=False,
    )

    user_roles = relationship("UserRole", back_populates="role")


class UserRole(AuditColumns, Base):
    """Role granted to a user."""

    __tablename__ = "user_roles"

    user_role_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)
    role_id = Column(String(ID_LENGTH), ForeignKey("roles.role_id"), nullable=False, index=True)

    user = relationship("User", back_populates="user_roles")
    role = relationship("Role", back_populates="user_roles", lazy="joined")

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),)


class UsersStats(AuditColumns, Base):
    """Denormalized per-user counters, maintained by the operations that change them."""

    __tablename__ = "users_stats"

    user_stats_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    user_id = Column(
        String(ID_LENGTH), ForeignKey("users.user_id"), unique=True, nullable=False
    )
    followers_count = Column(Integer, nullable=False, default=0)
    followings_count = Column(Integer, nullable=False, default=0)
    total_posts = Column(Integer, nullable=False, default=0)
    total_likes = Column(Integer, nullable=False, default=0)
    un_read_notifications_count = Column(Integer, nullable=False, default=0)
    orders_count = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="stats")


class Follow(AuditColumns, Base):
    """Directed follow edge: follower_id follows following_id."""

    __tablename__ = "follows"

    follow_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    follower_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)
    following_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follow_follower_following"),
    )


# ============================================================================
# CONTENT
# ============================================================================


class Blog(AuditColumns, Base):
    """A post; reels are blogs that carry a video."""

    __tablename__ = "blogs"

    blog_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)
    slug = Column(String(255), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    url = Column(Text, nullable=True)
    external_link = Column(Text, nullable=True)
    external_link_title = Column(String(255), nullable=True)
    text = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    video = Column(Text, nullable=True)
    audio = Column(Text, nullable=True)
    is_reel = Column(Boolean, nullable=False, default=False, index=True)

    # Denormalized counters
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)
    shares_count = Column(Integer, nullable=False, default=0)
    views_count = Column(Integer, nullable=False, default=0)

    author = relationship("User", back_populates="blogs")
    pin = relationship("PinnedBlog", back_populates="blog", uselist=False)


class Comment(AuditColumns, Base):
    """Comment on a blog (ref_id = blog id) or reply to a comment (ref_id = comment id)."""

    __tablename__ = "comments"

    comment_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    ref_id = Column(String(ID_LENGTH), nullable=False, index=True)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)
    text = Column(Text, nullable=True)
    image = Column(Text, nullable=True)
    sticker = Column(Text, nullable=True)
    video = Column(Text, nullable=True)
    audio = Column(Text, nullable=True)

    # Denormalized counters
    replies_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)

    author = relationship("User")

    __table_args__ = (Index("ix_comments_ref_created", ref_id, "created_at"),)


class Like(AuditColumns, Base):
    """Like on a blog or a comment."""

    __tablename__ = "likes"

    like_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    ref_id = Column(String(ID_LENGTH), nullable=False, index=True)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)

    user = relationship("User")

    __table_args__ = (UniqueConstraint("user_id", "ref_id", name="uq_likes_user_ref"),)


class Share(AuditColumns, Base):
    """Repost of a blog."""

    __tablename__ = "shares"

    share_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    ref_id = Column(String(ID_LENGTH), nullable=False, index=True)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)


class View(AuditColumns, Base):
    """One row per blog fetch; user_id is null for anonymous readers."""

    __tablename__ = "views"

    view_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    ref_id = Column(String(ID_LENGTH), nullable=False, index=True)
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=True, index=True)


class PinnedBlog(AuditColumns, Base):
    """Time-bounded promotion of a blog."""

    __tablename__ = "pinned_blogs"

    pinned_blog_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    blog_id = Column(
        String(ID_LENGTH), ForeignKey("blogs.blog_id"), unique=True, nullable=False
    )
    user_id = Column(String(ID_LENGTH), ForeignKey("users.user_id"), nullable=False, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)

    blog = relationship("Blog", back_populates="pin")


# ============================================================================
# WALLETS, BUSINESSES & SUBSCRIPTIONS
# ============================================================================


class Wallet(AuditColumns, Base):
    """Per-user balance."""

    __tablename__ = "wallets"

    wallet_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    account_number = Column(String(20), unique=True, nullable=True)
    user_id = Column(
        String(ID_LENGTH), ForeignKey("users.user_id"), unique=True, nullable=False
    )
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="SLE")
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="wallet")
    transactions = relationship(
        "Transaction", back_populates="wallet", order_by="Transaction.created_at.desc()"
    )


class Transaction(AuditColumns, Base):
    """Ledger entry against a wallet."""

    __tablename__ = "transactions"

    transaction_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    wallet_id = Column(String(ID_LENGTH), ForeignKey("wallets.wallet_id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    type = Column(
        Enum(TransactionType, name="transaction_type", values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(TransactionStatus, name="transaction_status", values_callable=_enum_values),
        nullable=False,
    )
    description = Column(String(255), nullable=True)

    wallet = relationship("Wallet", back_populates="transactions")


class Business(AuditColumns, Base):
    """Business profile owned by a user."""

    __tablename__ = "businesses"

    business_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    user_id = Column(
        String(ID_LENGTH), ForeignKey("users.user_id"), unique=True, nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    logo = Column(Text, nullable=True)

    owner = relationship("User", back_populates="business")
    stats = relationship("BusinessStats", back_populates="business", uselist=False)
    subscription = relationship("Subscription", back_populates="business", uselist=False)


class BusinessStats(AuditColumns, Base):
    """Denormalized per-business counters."""

    __tablename__ = "business_stats"

    business_stats_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    business_id = Column(
        String(ID_LENGTH), ForeignKey("businesses.business_id"), unique=True, nullable=False
    )
    followers_count = Column(Integer, nullable=False, default=0)
    products_count = Column(Integer, nullable=False, default=0)
    orders_count = Column(Integer, nullable=False, default=0)
    subscriptions_count = Column(Integer, nullable=False, default=0)

    business = relationship("Business", back_populates="stats")


class Subscription(AuditColumns, Base):
    """Paid plan for a business; one row per business, renewed in place."""

    __tablename__ = "subscriptions"

    subscription_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    business_id = Column(
        String(ID_LENGTH), ForeignKey("businesses.business_id"), unique=True, nullable=False
    )
    plan = Column(
        Enum(SubscriptionPlan, name="subscription_plan", values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=_enum_values),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    business = relationship("Business", back_populates="subscription")


# ============================================================================
# ADMINISTRATION
# ============================================================================


class AuditLog(Base):
    """Audit log for admin actions."""

    __tablename__ = "audit_logs"

    audit_log_id = Column(String(ID_LENGTH), primary_key=True, default=generate_id)
    actor_id = Column(String(ID_LENGTH), nullable=True, index=True)

    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(String(ID_LENGTH), nullable=True, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True,
    )
