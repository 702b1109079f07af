from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_current_user, get_optional_user
from conduit.errors import ForbiddenError, NotFoundError
from conduit.models import Article, Comment, User
from conduit.routers.profiles import profile_body
from conduit.schemas import (
    ArticleBody,
    ArticleCreateRequest,
    ArticleResponse,
    ArticleUpdateRequest,
    CommentBody,
    CommentCreateRequest,
    CommentResponse,
    MultipleArticlesResponse,
    MultipleCommentsResponse,
)
from conduit.services import article_service, comment_service, profile_service, user_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

async def _article_body(db: AsyncSession, article: Article, viewer: User | None) -> ArticleBody:
    viewer_id = viewer.id if viewer else None
    tags = await article_service.list_tags(db, article.id)
    favorited = False
    if viewer_id is not None:
        favorited = await article_service.is_favorite(db, viewer_id, article.id)
    author = await profile_service.get_profile(db, article.author_id, viewer_id)

    return ArticleBody(
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=[tag.name for tag in tags],
        created_at=article.created_at,
        updated_at=article.updated_at,
        favorited=favorited,
        favorites_count=await article_service.get_favorites_count(db, article.id),
        author=profile_body(author),
    )


async def _comment_body(db: AsyncSession, comment: Comment, viewer: User | None) -> CommentBody:
    author = await profile_service.get_profile(
        db, comment.author_id, viewer.id if viewer else None
    )
    return CommentBody(
        id=comment.id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        body=comment.body,
        author=profile_body(author),
    )


async def _owned_article(db: AsyncSession, slug: str, user: User) -> Article:
    article = await article_service.get_article_by_slug(db, slug)
    if article.author_id != user.id:
        raise ForbiddenError(f"User {user.username} cannot modify article with slug {slug}")
    return article


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

@router.get("", response_model=MultipleArticlesResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: PaginationParams = Depends(),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    author_ids = None
    if author:
        try:
            author_ids = [(await user_service.get_user_by_username(db, author)).id]
        except NotFoundError:
            author_ids = []

    favorited_by_user_id = None
    if favorited:
        try:
            favorited_by_user_id = (await user_service.get_user_by_username(db, favorited)).id
        except NotFoundError:
            return MultipleArticlesResponse(articles=[], articles_count=0)

    filters = {
        "author_ids": author_ids,
        "favorited_by_user_id": favorited_by_user_id,
        "tag_name": tag or None,
    }
    articles = await article_service.list_articles(
        db, limit=pagination.limit, offset=pagination.offset, **filters
    )
    return MultipleArticlesResponse(
        articles=[await _article_body(db, a, viewer) for a in articles],
        articles_count=await article_service.count_articles(db, **filters),
    )


@router.get("/feed", response_model=MultipleArticlesResponse)
async def feed(
    pagination: PaginationParams = Depends(),
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    articles = await article_service.get_feed(
        db, viewer.id, limit=pagination.limit, offset=pagination.offset
    )
    return MultipleArticlesResponse(
        articles=[await _article_body(db, a, viewer) for a in articles],
        articles_count=await article_service.count_feed(db, viewer.id),
    )


@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    payload: ArticleCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, user.id, payload.article)
    return ArticleResponse(article=await _article_body(db, article, user))


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    return ArticleResponse(article=await _article_body(db, article, viewer))


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await _owned_article(db, slug, user)
    article = await article_service.update_article(db, article.id, payload.article)
    return ArticleResponse(article=await _article_body(db, article, user))


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await _owned_article(db, slug, user)
    await article_service.delete_article(db, article.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    await article_service.favorite_article(db, user.id, article.id)
    return ArticleResponse(article=await _article_body(db, article, user))


@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    await article_service.unfavorite_article(db, user.id, article.id)
    return ArticleResponse(article=await _article_body(db, article, user))


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    payload: CommentCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    comment = await comment_service.create_comment(db, article.id, user.id, payload.comment)
    return CommentResponse(comment=await _comment_body(db, comment, user))


@router.get("/{slug}/comments", response_model=MultipleCommentsResponse)
async def list_comments(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    comments = await comment_service.list_comments(db, article.id)
    return MultipleCommentsResponse(
        comments=[await _comment_body(db, c, viewer) for c in comments]
    )


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article_by_slug(db, slug)
    comment = await comment_service.get_comment_by_id(db, comment_id)
    if comment.article_id != article.id:
        raise NotFoundError(f"Comment {comment_id} not found on article {slug}")
    if comment.author_id != user.id:
        raise ForbiddenError(f"User {user.username} cannot delete comment {comment_id}")

    await comment_service.delete_comment(db, comment.id)
    return Response(status_code=204)
