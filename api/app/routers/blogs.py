"""Blog endpoints: feeds, CRUD, likes and blog comments."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import CurrentUser, get_current_user, get_current_user_or_anonymous
from ..deps import get_db
from ..pagination import PageRequest
from ..services.blogs import SORT_LATEST, BlogService
from ..services.comments import CommentService
from ..settings import BLOG_PAGE_SIZE_DEFAULT, PAGE_SIZE_MAX

router = APIRouter(prefix="/blogs", tags=["Blogs"])


def blog_page(
    page: int = Query(1, description="1-based page number; values below 1 are treated as 1"),
    limit: int = Query(BLOG_PAGE_SIZE_DEFAULT, ge=1, le=PAGE_SIZE_MAX),
) -> PageRequest:
    return PageRequest.of(page, limit, BLOG_PAGE_SIZE_DEFAULT)


@router.get("", response_model=schemas.Page[schemas.BlogWithMeta])
def list_blogs(
    page_request: PageRequest = Depends(blog_page),
    sort: str = Query(SORT_LATEST, pattern="^(latest|random)$"),
    is_reel: bool | None = Query(None, alias="isReel"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.BlogWithMeta]:
    """
    List blogs.

    ``sort=latest`` (default) is newest first; ``sort=random`` is the
    discovery feed. ``isReel`` narrows to reels or to non-reels.
    """
    return BlogService(db, current_user).list_blogs(page_request, sort=sort, is_reel=is_reel)


@router.get("/following", response_model=schemas.Page[schemas.BlogWithMeta])
def list_following_blogs(
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Page[schemas.BlogWithMeta]:
    """Blogs from the caller and the users they follow, newest first."""
    return BlogService(db, current_user).list_following_blogs(page_request)


@router.get("/pinned", response_model=schemas.Page[schemas.BlogWithMeta])
def list_pinned_blogs(
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.BlogWithMeta]:
    """Blogs currently inside their pin window."""
    return BlogService(db, current_user).list_pinned_blogs(page_request)


@router.post(
    "",
    response_model=schemas.Envelope[schemas.BlogOut],
    status_code=status.HTTP_201_CREATED,
)
def create_blog(
    payload: schemas.BlogCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.BlogOut]:
    """
    Create a blog.

    A blog with a video is a reel. ``repostedFromBlogId`` records a share of
    an existing blog; ``pinned`` promotes the new blog for
    ``pinnedNumberOfDays`` days.
    """
    blog = BlogService(db, current_user).create_blog(payload)
    return schemas.Envelope[schemas.BlogOut](
        message="Blog created successfully",
        data=schemas.BlogOut.model_validate(blog),
    )


@router.get("/{blog_id}", response_model=schemas.BlogWithMeta)
def get_blog(
    blog_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.BlogWithMeta:
    """Fetch a blog. Every fetch counts as one view."""
    return BlogService(db, current_user).get_blog(blog_id)


@router.put("/{blog_id}", response_model=schemas.Envelope[schemas.BlogOut])
def update_blog(
    blog_id: str,
    payload: schemas.BlogUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.BlogOut]:
    """Partially update a blog. Only the author or an admin may edit."""
    blog = BlogService(db, current_user).update_blog(blog_id, payload)
    return schemas.Envelope[schemas.BlogOut](
        message="Blog updated successfully",
        data=schemas.BlogOut.model_validate(blog),
    )


@router.delete("/{blog_id}", response_model=schemas.MessageResponse)
def delete_blog(
    blog_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.MessageResponse:
    """Delete a blog together with its pin, comments, likes, shares and views."""
    BlogService(db, current_user).delete_blog(blog_id)
    return schemas.MessageResponse(message="Blog deleted successfully")


@router.put("/{blog_id}/likes", response_model=schemas.LikeToggleResponse)
def toggle_blog_like(
    blog_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.LikeToggleResponse:
    """Like the blog, or remove the caller's like if there is one."""
    return BlogService(db, current_user).toggle_like(blog_id)


@router.get("/{blog_id}/likes", response_model=schemas.Page[schemas.LikeOut])
def list_blog_likes(
    blog_id: str,
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.LikeOut]:
    return BlogService(db, current_user).list_likes(blog_id, page_request)


@router.get("/{blog_id}/follows/likes", response_model=schemas.SessionUsersResponse)
def list_likers_in_network(
    blog_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.SessionUsersResponse:
    """Users who liked this blog and follow, or are followed by, the caller."""
    return BlogService(db, current_user).list_likers_in_network(blog_id)


@router.get("/{blog_id}/comments", response_model=schemas.Page[schemas.CommentWithMeta])
def list_blog_comments(
    blog_id: str,
    page_request: PageRequest = Depends(blog_page),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_anonymous),
) -> schemas.Page[schemas.CommentWithMeta]:
    """Top-level comments on a blog, newest first."""
    return CommentService(db, current_user).list_blog_comments(blog_id, page_request)


@router.post(
    "/{blog_id}/comments",
    response_model=schemas.Envelope[schemas.CommentWithMeta],
    status_code=status.HTTP_201_CREATED,
)
def add_blog_comment(
    blog_id: str,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> schemas.Envelope[schemas.CommentWithMeta]:
    comment = CommentService(db, current_user).add_comment(blog_id, payload)
    return schemas.Envelope[schemas.CommentWithMeta](
        message=f"Comment added successfully to blogId = {blog_id}",
        data=comment,
    )
