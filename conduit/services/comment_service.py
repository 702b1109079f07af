"""
Comment service: comments on articles.

Any existing user may comment on any existing article.  Deleting a
comment is restricted to its author, but that check belongs to the
router: this module only exposes ``author_id`` and trusts its caller.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import NotFoundError
from conduit.models import Comment
from conduit.schemas import CommentCreate
from conduit.services import article_service, user_service

logger = logging.getLogger(__name__)


async def create_comment(
    db: AsyncSession,
    article_id: int,
    author_id: int,
    data: CommentCreate,
) -> Comment:
    """
    Add a comment by *author_id* to *article_id*.

    Raises NotFoundError when either the article or the author does not
    exist.
    """
    logger.info("Creating comment article_id=%s author_id=%s", article_id, author_id)

    article = await article_service.get_article_by_id(db, article_id)
    author = await user_service.get_user_by_id(db, author_id)

    comment = Comment(article_id=article.id, author_id=author.id, body=data.body)
    db.add(comment)
    await db.flush()
    return comment


async def get_comment_by_id(db: AsyncSession, comment_id: int) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found")
    return comment


async def list_comments(db: AsyncSession, article_id: int | None = None) -> list[Comment]:
    """Return comments, newest first, optionally only those on *article_id*."""
    q = select(Comment).order_by(Comment.created_at.desc(), Comment.id.desc())
    if article_id is not None:
        q = q.where(Comment.article_id == article_id)

    result = await db.execute(q)
    return list(result.scalars().all())


async def delete_comment(db: AsyncSession, comment_id: int) -> None:
    logger.info("Deleting comment comment_id=%s", comment_id)

    result = await db.execute(delete(Comment).where(Comment.id == comment_id))
    if result.rowcount == 0:
        raise NotFoundError(f"Comment {comment_id} not found")
