"""initial blog schema

Revision ID: 202601010001
Revises:
Create Date: 2026-01-01 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202601010001"
down_revision = None
branch_labels = None
depends_on = None

ID = 25

ROLE_NAMES = ("Anonymous", "Authenticated", "BusinessOwner", "PaymentAgent", "Admin", "SuperAdmin")
USER_STATUSES = ("active", "banned", "suspended", "online")
TRANSACTION_TYPES = ("deposit", "withdrawal", "transfer", "payment")
TRANSACTION_STATUSES = ("pending", "completed", "failed")
SUBSCRIPTION_PLANS = ("monthly", "yearly")
SUBSCRIPTION_STATUSES = ("active", "expired", "cancelled")

ENUM_NAMES = (
    "role_name",
    "user_status",
    "transaction_type",
    "transaction_status",
    "subscription_plan",
    "subscription_status",
)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=False),
    ]


def _id(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.String(length=ID), **kwargs)


def _user_fk(name: str = "user_id", nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(
        name, sa.String(length=ID), sa.ForeignKey("users.user_id"), nullable=nullable, **kwargs
    )


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "users",
        _id("user_id", primary_key=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("middle_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("user_name", sa.String(length=255), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("phone_number", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*USER_STATUSES, name="user_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("gender", sa.String(length=255), nullable=True),
        sa.Column("dob", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "phone_number_is_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        *_audit_columns(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_user_name", "users", ["user_name"], unique=True)
    op.create_index("ix_users_full_name", "users", ["full_name"])
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "roles",
        _id("role_id", primary_key=True),
        sa.Column("role_name", sa.Enum(*ROLE_NAMES, name="role_name"), nullable=False, unique=True),
        *_audit_columns(),
    )
    op.create_index("ix_roles_created_at", "roles", ["created_at"])

    op.create_table(
        "user_roles",
        _id("user_role_id", primary_key=True),
        _user_fk(),
        _id("role_id", nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["role_id"], ["roles.role_id"]),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
    op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"])
    op.create_index("ix_user_roles_created_at", "user_roles", ["created_at"])

    op.create_table(
        "users_stats",
        _id("user_stats_id", primary_key=True),
        _user_fk(unique=True),
        _counter("followers_count"),
        _counter("followings_count"),
        _counter("total_posts"),
        _counter("total_likes"),
        _counter("un_read_notifications_count"),
        _counter("orders_count"),
        *_audit_columns(),
    )
    op.create_index("ix_users_stats_created_at", "users_stats", ["created_at"])

    op.create_table(
        "follows",
        _id("follow_id", primary_key=True),
        _user_fk("follower_id"),
        _user_fk("following_id"),
        *_audit_columns(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follow_follower_following"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_following_id", "follows", ["following_id"])
    op.create_index("ix_follows_created_at", "follows", ["created_at"])

    op.create_table(
        "blogs",
        _id("blog_id", primary_key=True),
        _user_fk(),
        sa.Column("slug", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("external_link", sa.Text(), nullable=True),
        sa.Column("external_link_title", sa.String(length=255), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("video", sa.Text(), nullable=True),
        sa.Column("audio", sa.Text(), nullable=True),
        sa.Column("is_reel", sa.Boolean(), nullable=False, server_default=sa.false()),
        _counter("likes_count"),
        _counter("comments_count"),
        _counter("shares_count"),
        _counter("views_count"),
        *_audit_columns(),
    )
    op.create_index("ix_blogs_user_id", "blogs", ["user_id"])
    op.create_index("ix_blogs_slug", "blogs", ["slug"])
    op.create_index("ix_blogs_is_reel", "blogs", ["is_reel"])
    op.create_index("ix_blogs_created_at", "blogs", ["created_at"])

    op.create_table(
        "comments",
        _id("comment_id", primary_key=True),
        _id("ref_id", nullable=False),
        _user_fk(),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("sticker", sa.Text(), nullable=True),
        sa.Column("video", sa.Text(), nullable=True),
        sa.Column("audio", sa.Text(), nullable=True),
        _counter("replies_count"),
        _counter("likes_count"),
        *_audit_columns(),
    )
    op.create_index("ix_comments_ref_id", "comments", ["ref_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index("ix_comments_ref_created", "comments", ["ref_id", "created_at"])

    op.create_table(
        "likes",
        _id("like_id", primary_key=True),
        _id("ref_id", nullable=False),
        _user_fk(),
        *_audit_columns(),
        sa.UniqueConstraint("user_id", "ref_id", name="uq_likes_user_ref"),
    )
    op.create_index("ix_likes_ref_id", "likes", ["ref_id"])
    op.create_index("ix_likes_user_id", "likes", ["user_id"])
    op.create_index("ix_likes_created_at", "likes", ["created_at"])

    for table in ("shares", "views"):
        op.create_table(
            table,
            _id(f"{table[:-1]}_id", primary_key=True),
            _id("ref_id", nullable=False),
            _user_fk(nullable=(table == "views")),
            *_audit_columns(),
        )
        op.create_index(f"ix_{table}_ref_id", table, ["ref_id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_created_at", table, ["created_at"])

    op.create_table(
        "pinned_blogs",
        _id("pinned_blog_id", primary_key=True),
        sa.Column(
            "blog_id",
            sa.String(length=ID),
            sa.ForeignKey("blogs.blog_id"),
            unique=True,
            nullable=False,
        ),
        _user_fk(),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_pinned_blogs_user_id", "pinned_blogs", ["user_id"])
    op.create_index("ix_pinned_blogs_end_date", "pinned_blogs", ["end_date"])
    op.create_index("ix_pinned_blogs_created_at", "pinned_blogs", ["created_at"])

    op.create_table(
        "wallets",
        _id("wallet_id", primary_key=True),
        sa.Column("account_number", sa.String(length=20), nullable=True, unique=True),
        _user_fk(unique=True),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="SLE"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    op.create_index("ix_wallets_created_at", "wallets", ["created_at"])

    op.create_table(
        "transactions",
        _id("transaction_id", primary_key=True),
        sa.Column(
            "wallet_id", sa.String(length=ID), sa.ForeignKey("wallets.wallet_id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("type", sa.Enum(*TRANSACTION_TYPES, name="transaction_type"), nullable=False),
        sa.Column(
            "status", sa.Enum(*TRANSACTION_STATUSES, name="transaction_status"), nullable=False
        ),
        sa.Column("description", sa.String(length=255), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_transactions_wallet_id", "transactions", ["wallet_id"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])

    op.create_table(
        "businesses",
        _id("business_id", primary_key=True),
        _user_fk(unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo", sa.Text(), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_businesses_created_at", "businesses", ["created_at"])

    op.create_table(
        "business_stats",
        _id("business_stats_id", primary_key=True),
        sa.Column(
            "business_id",
            sa.String(length=ID),
            sa.ForeignKey("businesses.business_id"),
            unique=True,
            nullable=False,
        ),
        _counter("followers_count"),
        _counter("products_count"),
        _counter("orders_count"),
        _counter("subscriptions_count"),
        *_audit_columns(),
    )
    op.create_index("ix_business_stats_created_at", "business_stats", ["created_at"])

    op.create_table(
        "subscriptions",
        _id("subscription_id", primary_key=True),
        sa.Column(
            "business_id",
            sa.String(length=ID),
            sa.ForeignKey("businesses.business_id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("plan", sa.Enum(*SUBSCRIPTION_PLANS, name="subscription_plan"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*SUBSCRIPTION_STATUSES, name="subscription_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_subscriptions_created_at", "subscriptions", ["created_at"])

    op.create_table(
        "audit_logs",
        _id("audit_log_id", primary_key=True),
        _id("actor_id", nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("target_type", sa.String(length=20), nullable=True),
        _id("target_id", nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_target_id", "audit_logs", ["target_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    # Tables go in reverse dependency order; their indexes go with them
    for table in (
        "audit_logs",
        "subscriptions",
        "business_stats",
        "businesses",
        "transactions",
        "wallets",
        "pinned_blogs",
        "views",
        "shares",
        "likes",
        "comments",
        "blogs",
        "follows",
        "users_stats",
        "user_roles",
        "roles",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in ENUM_NAMES:
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
