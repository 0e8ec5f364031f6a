"""
Comment and reply service.

A comment's ``ref_id`` is the blog it belongs to; a reply's ``ref_id`` is its
parent comment. Blogs carry ``comments_count`` for top-level comments, and
comments carry ``replies_count`` for their direct replies.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import CurrentUser, require_ownership
from ..db import transaction
from ..pagination import PageRequest, paginate
from . import likes
from .counters import adjust_blog_counter, adjust_comment_counter

logger = logging.getLogger(__name__)

COMMENT_FIELDS = ("text", "image", "sticker", "video", "audio")


def collect_comment_tree(db: Session, root_ids: list[str]) -> list[str]:
    """Return ``root_ids`` plus the ids of every reply below them, parents first."""
    collected: list[str] = []
    frontier = list(root_ids)
    while frontier:
        collected.extend(frontier)
        rows = (
            db.query(models.Comment.comment_id)
            .filter(models.Comment.ref_id.in_(frontier))
            .all()
        )
        frontier = [row.comment_id for row in rows]
    return collected


def purge_comments(db: Session, root_ids: list[str]) -> int:
    """
    Delete comments, all of their replies, and every like on any of them.

    Parent counters of the roots are left to the caller. Must run inside a
    transaction. Returns the number of comments removed.
    """
    if not root_ids:
        return 0
    comment_ids = collect_comment_tree(db, root_ids)
    db.query(models.Like).filter(models.Like.ref_id.in_(comment_ids)).delete(
        synchronize_session=False
    )
    # Children before parents
    for comment_id in reversed(comment_ids):
        db.query(models.Comment).filter(models.Comment.comment_id == comment_id).delete(
            synchronize_session=False
        )
    return len(comment_ids)


def detach_from_parent(db: Session, parent_id: str) -> None:
    """
    Decrement the counter of a comment's parent.

    The parent is resolved against blogs first and comments second: a hit on
    blogs means a top-level comment (comments_count), otherwise a reply
    (replies_count).
    """
    is_top_level = (
        db.query(models.Blog.blog_id).filter(models.Blog.blog_id == parent_id).first()
        is not None
    )
    if is_top_level:
        adjust_blog_counter(db, parent_id, models.Blog.comments_count, -1)
    else:
        adjust_comment_counter(db, parent_id, models.Comment.replies_count, -1)


def remove_comment(db: Session, comment_id: str, parent_id: str) -> int:
    """Detach a comment from its parent, then purge it with its subtree."""
    detach_from_parent(db, parent_id)
    return purge_comments(db, [comment_id])


class CommentService:
    """Use cases on comments and replies, on behalf of one caller."""

    def __init__(self, db: Session, current_user: CurrentUser):
        self.db = db
        self.current_user = current_user

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_comment_or_404(self, comment_id: str) -> models.Comment:
        comment = (
            self.db.query(models.Comment)
            .options(joinedload(models.Comment.author))
            .filter(models.Comment.comment_id == comment_id)
            .first()
        )
        if not comment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Comment not found",
            )
        return comment

    def _get_blog_or_404(self, blog_id: str) -> models.Blog:
        blog = self.db.query(models.Blog).filter(models.Blog.blog_id == blog_id).first()
        if not blog:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Blog not found",
            )
        return blog

    def with_meta(self, comments: list[models.Comment]) -> list[schemas.CommentWithMeta]:
        liked = likes.liked_ref_ids(
            self.db, self.current_user.user_id, [comment.comment_id for comment in comments]
        )
        return [
            schemas.CommentWithMeta(
                comment=schemas.CommentOut.model_validate(comment),
                replies_count=comment.replies_count,
                likes_count=comment.likes_count,
                liked=comment.comment_id in liked,
            )
            for comment in comments
        ]

    def _page_for_ref(self, ref_id: str, page_request: PageRequest) -> schemas.Page[schemas.CommentWithMeta]:
        query = (
            self.db.query(models.Comment)
            .options(joinedload(models.Comment.author))
            .filter(models.Comment.ref_id == ref_id)
            .order_by(models.Comment.created_at.desc())
        )
        rows, metadata = paginate(query, page_request)
        return schemas.Page[schemas.CommentWithMeta](data=self.with_meta(rows), metadata=metadata)

    def list_blog_comments(self, blog_id: str, page_request: PageRequest) -> schemas.Page[schemas.CommentWithMeta]:
        self._get_blog_or_404(blog_id)
        return self._page_for_ref(blog_id, page_request)

    def list_replies(self, comment_id: str, page_request: PageRequest) -> schemas.Page[schemas.CommentWithMeta]:
        self.get_comment_or_404(comment_id)
        return self._page_for_ref(comment_id, page_request)

    def get_comment(self, comment_id: str) -> schemas.CommentWithMeta:
        return self.with_meta([self.get_comment_or_404(comment_id)])[0]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _new_comment(self, ref_id: str, payload: schemas.CommentCreate) -> models.Comment:
        actor = self.current_user.actor_name
        comment = models.Comment(
            ref_id=ref_id,
            user_id=self.current_user.user_id,
            created_by=actor,
            updated_by=actor,
            **payload.model_dump(include=set(COMMENT_FIELDS)),
        )
        self.db.add(comment)
        self.db.flush()
        return comment

    def add_comment(self, blog_id: str, payload: schemas.CommentCreate) -> schemas.CommentWithMeta:
        """Comment on a blog and bump its comments_count."""
        with transaction(self.db):
            self._get_blog_or_404(blog_id)
            comment = self._new_comment(blog_id, payload)
            adjust_blog_counter(self.db, blog_id, models.Blog.comments_count, 1)
        logger.info(f"Comment {comment.comment_id} added to blog {blog_id} by {self.current_user.user_id}")
        return self.get_comment(comment.comment_id)

    def add_reply(self, comment_id: str, payload: schemas.CommentCreate) -> schemas.CommentWithMeta:
        """Reply to a comment and bump its replies_count."""
        with transaction(self.db):
            self.get_comment_or_404(comment_id)
            reply = self._new_comment(comment_id, payload)
            adjust_comment_counter(self.db, comment_id, models.Comment.replies_count, 1)
        logger.info(f"Reply {reply.comment_id} added to comment {comment_id} by {self.current_user.user_id}")
        return self.get_comment(reply.comment_id)

    def update_comment(self, comment_id: str, payload: schemas.CommentUpdate) -> schemas.CommentWithMeta:
        """Write only the fields that were provided and non-empty."""
        comment = self.get_comment_or_404(comment_id)
        require_ownership(comment.user_id, self.current_user)

        changes = {
            key: value
            for key, value in payload.model_dump(include=set(COMMENT_FIELDS)).items()
            if value
        }
        with transaction(self.db):
            for key, value in changes.items():
                setattr(comment, key, value)
            comment.updated_by = self.current_user.actor_name
        return self.get_comment(comment_id)

    def delete_comment(self, comment_id: str) -> None:
        """Delete a comment with its replies and likes, then fix the parent counter."""
        comment = self.get_comment_or_404(comment_id)
        require_ownership(comment.user_id, self.current_user)
        parent_id = comment.ref_id

        with transaction(self.db):
            self.db.expunge(comment)
            removed = remove_comment(self.db, comment_id, parent_id)
        logger.info(f"Comment {comment_id} deleted with {removed - 1} replies by {self.current_user.user_id}")

    def toggle_like(self, comment_id: str) -> schemas.LikeToggleResponse:
        self.get_comment_or_404(comment_id)
        liked = likes.toggle_like(
            self.db,
            self.current_user,
            comment_id,
            counter_column=models.Comment.likes_count,
            key_column=models.Comment.comment_id,
        )
        comment = self.get_comment_or_404(comment_id)
        return schemas.LikeToggleResponse(liked=liked, likes_count=comment.likes_count)

    def list_likes(self, comment_id: str, page_request: PageRequest) -> schemas.Page[schemas.LikeOut]:
        self.get_comment_or_404(comment_id)
        rows, metadata = likes.list_likes(self.db, comment_id, page_request)
        return schemas.Page[schemas.LikeOut](
            data=[schemas.LikeOut.model_validate(row) for row in rows], metadata=metadata
        )
