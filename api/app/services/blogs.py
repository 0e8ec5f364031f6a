"""
Blog service.

Each public method is one use case. Anything that touches more than one table
runs inside a single ``transaction`` block, so counters never drift from the
rows they describe when a step fails.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Query, Session, joinedload

from .. import models, schemas
from ..auth import CurrentUser, require_ownership
from ..db import transaction
from ..models import utcnow
from ..pagination import PageRequest, paginate
from ..utils.ids import generate_id
from . import likes
from .comments import purge_comments
from .counters import adjust_blog_counter, adjust_user_stat

logger = logging.getLogger(__name__)

BLOG_UPDATE_FIELDS = (
    "title",
    "text",
    "url",
    "external_link",
    "external_link_title",
    "images",
    "video",
    "audio",
)

SORT_LATEST = "latest"
SORT_RANDOM = "random"


def slugify(title: str, blog_id: str) -> str:
    """Lowercase, hyphen separated title with a short id suffix to keep slugs unique."""
    base = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:200]
    suffix = blog_id[-6:]
    return f"{base}-{suffix}" if base else suffix


def purge_blog(db: Session, blog_id: str, author_id: str) -> None:
    """
    Remove a blog and its dependents, keeping every counter in step.

    Order: pin, author's total_posts, comments (with replies and their likes),
    likes (with each liker's total_likes), shares, views, blog. Must run
    inside a transaction.
    """
    db.query(models.PinnedBlog).filter(models.PinnedBlog.blog_id == blog_id).delete(
        synchronize_session=False
    )
    adjust_user_stat(db, author_id, models.UsersStats.total_posts, -1)

    comment_ids = [
        row.comment_id
        for row in db.query(models.Comment.comment_id).filter(models.Comment.ref_id == blog_id).all()
    ]
    purge_comments(db, comment_ids)

    likers = (
        db.query(models.Like.user_id, func.count(models.Like.like_id))
        .filter(models.Like.ref_id == blog_id)
        .group_by(models.Like.user_id)
        .all()
    )
    for liker_id, like_count in likers:
        adjust_user_stat(db, liker_id, models.UsersStats.total_likes, -like_count)
    db.query(models.Like).filter(models.Like.ref_id == blog_id).delete(synchronize_session=False)
    db.query(models.Share).filter(models.Share.ref_id == blog_id).delete(synchronize_session=False)
    db.query(models.View).filter(models.View.ref_id == blog_id).delete(synchronize_session=False)
    db.query(models.Blog).filter(models.Blog.blog_id == blog_id).delete(synchronize_session=False)


class BlogService:
    """Use cases on blogs, on behalf of one caller."""

    def __init__(self, db: Session, current_user: CurrentUser):
        self.db = db
        self.current_user = current_user

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _base_query(self) -> Query:
        return self.db.query(models.Blog).options(joinedload(models.Blog.author))

    def get_blog_or_404(self, blog_id: str) -> models.Blog:
        blog = self._base_query().filter(models.Blog.blog_id == blog_id).first()
        if not blog:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Blog not found",
            )
        return blog

    def _reposted_ids(self, blog_ids: list[str]) -> set[str]:
        user_id = self.current_user.user_id
        if not user_id or not blog_ids:
            return set()
        rows = (
            self.db.query(models.Share.ref_id)
            .filter(models.Share.user_id == user_id, models.Share.ref_id.in_(blog_ids))
            .all()
        )
        return {row.ref_id for row in rows}

    def with_meta(self, blogs: list[models.Blog]) -> list[schemas.BlogWithMeta]:
        """Attach counters and the caller's liked / reposted flags."""
        blog_ids = [blog.blog_id for blog in blogs]
        liked = likes.liked_ref_ids(self.db, self.current_user.user_id, blog_ids)
        reposted = self._reposted_ids(blog_ids)
        return [
            schemas.BlogWithMeta(
                blog=schemas.BlogOut.model_validate(blog),
                liked=blog.blog_id in liked,
                reposted=blog.blog_id in reposted,
                likes_count=blog.likes_count,
                reposts_count=blog.shares_count,
                comments_count=blog.comments_count,
                views_count=blog.views_count,
            )
            for blog in blogs
        ]

    def _page(self, query: Query, page_request: PageRequest) -> schemas.Page[schemas.BlogWithMeta]:
        rows, metadata = paginate(query, page_request)
        return schemas.Page[schemas.BlogWithMeta](data=self.with_meta(rows), metadata=metadata)

    def list_blogs(
        self,
        page_request: PageRequest,
        sort: str = SORT_LATEST,
        is_reel: bool | None = None,
    ) -> schemas.Page[schemas.BlogWithMeta]:
        """Newest first, or shuffled for the discovery feed."""
        query = self._base_query()
        if is_reel is not None:
            query = query.filter(models.Blog.is_reel == is_reel)
        if sort == SORT_RANDOM:
            query = query.order_by(func.random())
        else:
            query = query.order_by(models.Blog.created_at.desc())
        return self._page(query, page_request)

    def list_user_blogs(self, user_id: str, page_request: PageRequest) -> schemas.Page[schemas.BlogWithMeta]:
        user_exists = (
            self.db.query(models.User.user_id).filter(models.User.user_id == user_id).first()
        )
        if not user_exists:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        query = (
            self._base_query()
            .filter(models.Blog.user_id == user_id)
            .order_by(models.Blog.created_at.desc())
        )
        return self._page(query, page_request)

    def list_following_blogs(self, page_request: PageRequest) -> schemas.Page[schemas.BlogWithMeta]:
        """Blogs written by the caller or by anyone the caller follows."""
        user_id = self.current_user.user_id
        followed = select(models.Follow.following_id).where(
            models.Follow.follower_id == user_id
        )
        query = (
            self._base_query()
            .filter(or_(models.Blog.user_id == user_id, models.Blog.user_id.in_(followed)))
            .order_by(models.Blog.created_at.desc())
        )
        return self._page(query, page_request)

    def list_pinned_blogs(self, page_request: PageRequest) -> schemas.Page[schemas.BlogWithMeta]:
        """Blogs whose pin window contains the current time."""
        now = utcnow()
        query = (
            self._base_query()
            .join(models.PinnedBlog, models.PinnedBlog.blog_id == models.Blog.blog_id)
            .filter(models.PinnedBlog.start_date <= now, models.PinnedBlog.end_date >= now)
            .order_by(models.Blog.created_at.desc())
        )
        return self._page(query, page_request)

    def get_blog(self, blog_id: str) -> schemas.BlogWithMeta:
        """
        Fetch one blog and count the view.

        The view counter and the View row are written in one transaction, so
        each fetch adds exactly one of each.
        """
        with transaction(self.db):
            self.get_blog_or_404(blog_id)
            adjust_blog_counter(self.db, blog_id, models.Blog.views_count, 1)
            actor = self.current_user.actor_name
            self.db.add(
                models.View(
                    ref_id=blog_id,
                    user_id=self.current_user.user_id,
                    created_by=actor,
                    updated_by=actor,
                )
            )
        return self.with_meta([self.get_blog_or_404(blog_id)])[0]

    def list_likers_in_network(self, blog_id: str) -> schemas.SessionUsersResponse:
        """Users who liked the blog and follow, or are followed by, the caller."""
        self.get_blog_or_404(blog_id)
        user_id = self.current_user.user_id
        following = select(models.Follow.following_id).where(
            models.Follow.follower_id == user_id
        )
        followers = select(models.Follow.follower_id).where(
            models.Follow.following_id == user_id
        )
        users = (
            self.db.query(models.User)
            .join(models.Like, models.Like.user_id == models.User.user_id)
            .filter(
                models.Like.ref_id == blog_id,
                or_(models.User.user_id.in_(following), models.User.user_id.in_(followers)),
            )
            .order_by(models.Like.created_at.desc())
            .all()
        )
        return schemas.SessionUsersResponse(
            session_users=[schemas.UserSummary.model_validate(user) for user in users]
        )

    def list_likes(self, blog_id: str, page_request: PageRequest) -> schemas.Page[schemas.LikeOut]:
        self.get_blog_or_404(blog_id)
        rows, metadata = likes.list_likes(self.db, blog_id, page_request)
        return schemas.Page[schemas.LikeOut](
            data=[schemas.LikeOut.model_validate(row) for row in rows], metadata=metadata
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_blog(self, payload: schemas.BlogCreate) -> models.Blog:
        """
        Create a blog and bump the author's total_posts.

        A repost also records a Share and bumps the source's shares_count. A
        pinned (non-repost) blog gets a PinnedBlog covering now to now + N days.
        """
        user_id = self.current_user.user_id
        actor = self.current_user.actor_name
        source_id = payload.reposted_from_blog_id

        with transaction(self.db):
            if source_id:
                self.get_blog_or_404(source_id)

            blog = models.Blog(
                user_id=user_id,
                title=payload.title,
                text=payload.text,
                url=payload.url,
                external_link=payload.external_link,
                external_link_title=payload.external_link_title,
                images=list(payload.images),
                video=payload.video,
                audio=payload.audio,
                is_reel=bool(payload.video),
                created_by=actor,
                updated_by=actor,
            )
            blog.blog_id = generate_id()
            blog.slug = slugify(payload.title, blog.blog_id)
            self.db.add(blog)
            self.db.flush()

            adjust_user_stat(self.db, user_id, models.UsersStats.total_posts, 1)

            if source_id:
                self.db.add(
                    models.Share(
                        ref_id=source_id,
                        user_id=user_id,
                        created_by=actor,
                        updated_by=actor,
                    )
                )
                adjust_blog_counter(self.db, source_id, models.Blog.shares_count, 1)
            elif payload.pinned:
                start = utcnow()
                self.db.add(
                    models.PinnedBlog(
                        blog_id=blog.blog_id,
                        user_id=user_id,
                        start_date=start,
                        end_date=start + timedelta(days=payload.pinned_number_of_days),
                        created_by=actor,
                        updated_by=actor,
                    )
                )

        logger.info(f"Blog {blog.blog_id} created by {user_id} (reel={blog.is_reel}, repost_of={source_id})")
        return self.get_blog_or_404(blog.blog_id)

    def update_blog(self, blog_id: str, payload: schemas.BlogUpdate) -> models.Blog:
        """Write only the provided, non-empty fields; a new video makes the blog a reel."""
        blog = self.get_blog_or_404(blog_id)
        require_ownership(blog.user_id, self.current_user)

        changes = {
            key: value
            for key, value in payload.model_dump(include=set(BLOG_UPDATE_FIELDS)).items()
            if value
        }
        with transaction(self.db):
            for key, value in changes.items():
                setattr(blog, key, value)
            if changes.get("video"):
                blog.is_reel = True
            if changes.get("title"):
                blog.slug = slugify(changes["title"], blog.blog_id)
            blog.updated_by = self.current_user.actor_name

        logger.info(f"Blog {blog_id} updated by {self.current_user.user_id}: {sorted(changes)}")
        return self.get_blog_or_404(blog_id)

    def delete_blog(self, blog_id: str) -> None:
        """Delete a blog and everything hanging off it, all or nothing."""
        blog = self.get_blog_or_404(blog_id)
        require_ownership(blog.user_id, self.current_user)
        author_id = blog.user_id

        with transaction(self.db):
            self.db.expunge(blog)
            purge_blog(self.db, blog_id, author_id)

        logger.info(f"Blog {blog_id} deleted by {self.current_user.user_id}")

    def toggle_like(self, blog_id: str) -> schemas.LikeToggleResponse:
        """Like or unlike; the liker's total_likes follows the blog's likes_count."""
        self.get_blog_or_404(blog_id)
        liked = likes.toggle_like(
            self.db,
            self.current_user,
            blog_id,
            counter_column=models.Blog.likes_count,
            key_column=models.Blog.blog_id,
            user_stat_column=models.UsersStats.total_likes,
        )
        blog = self.get_blog_or_404(blog_id)
        return schemas.LikeToggleResponse(liked=liked, likes_count=blog.likes_count)
