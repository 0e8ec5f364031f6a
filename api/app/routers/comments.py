"""Comment and reply endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import CurrentUser, get_current_user, get_current_user_or_anonymous
from ..deps import get_db
from ..pagination import PageRequest
from ..services.comments import CommentService
from .blogs import blog_page

router = APIRouter(prefix="/comments", tags=["Comments"])


@router.get("/{comment_id}", response_model=schemas.CommentWithMeta)
def get_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.CommentWithMeta:
    return CommentService(db, current_user).get_comment(comment_id)


@router.put("/{comment_id}", response_model=schemas.Envelope[schemas.CommentWithMeta])
def update_comment(
    comment_id: str,
    payload: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.CommentWithMeta]:
    """
    Update a comment or reply.

    Only non-empty fields are written. Only the author or an admin may edit.
    """
    comment = CommentService(db, current_user).update_comment(comment_id, payload)
    return schemas.Envelope[schemas.CommentWithMeta](
        message="Comment updated successfully",
        data=comment,
    )


@router.delete("/{comment_id}", response_model=schemas.MessageResponse)
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.MessageResponse:
    """
    Delete a comment or reply.

    Replies underneath it and every like on the removed comments go with it.
    The parent blog's comments_count (or the parent comment's replies_count)
    is decremented.
    """
    CommentService(db, current_user).delete_comment(comment_id)
    return schemas.MessageResponse(message="Comment deleted successfully")


@router.get("/{comment_id}/replies", response_model=schemas.Page[schemas.CommentWithMeta])
def list_replies(
    comment_id: str,
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.CommentWithMeta]:
    """Direct replies to a comment, newest first."""
    return CommentService(db, current_user).list_replies(comment_id, page_request)


@router.post(
    "/{comment_id}/replies",
    response_model=schemas.Envelope[schemas.CommentWithMeta],
    status_code=status.HTTP_201_CREATED,
)
def add_reply(
    comment_id: str,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.CommentWithMeta]:
    reply = CommentService(db, current_user).add_reply(comment_id, payload)
    return schemas.Envelope[schemas.CommentWithMeta](
        message=f"Reply added successfully to commentId = {comment_id}",
        data=reply,
    )


@router.put("/{comment_id}/likes", response_model=schemas.LikeToggleResponse)
def toggle_comment_like(
    comment_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.LikeToggleResponse:
    """Like the comment, or remove the caller's like if there is one."""
    return CommentService(db, current_user).toggle_like(comment_id)


@router.get("/{comment_id}/likes", response_model=schemas.Page[schemas.LikeOut])
def list_comment_likes(
    comment_id: str,
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.LikeOut]:
    return CommentService(db, current_user).list_likes(comment_id, page_request)
