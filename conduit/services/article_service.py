"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Slugs and tag names share one normalisation (``slugify``), so
  ``"Go"``, ``"go"`` and ``" GO "`` all collapse into the single tag
  ``go``.  An article's slug is derived from ``"{author username} {title}"``
  and must be globally unique; a collision is reported to the caller
  instead of being papered over with a suffix.
- Article creation touches ``articles``, ``article_tags`` and
  ``article_article_tags``.  All three writes happen inside one
  SAVEPOINT so a failure leaves no partial article or tag behind.
- Filters distinguish "not given" (``None``) from "given but empty":
  ``author_ids=[]`` matches no article at all, which is what an empty
  feed needs.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
import unicodedata

from sqlalchemy import delete, exists, false, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import is_unique_violation
from conduit.errors import AlreadyExistsError, NotFoundError
from conduit.models import Article, Favorite, Tag, article_article_tags, utcnow
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services import profile_service, user_service

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_SEPARATOR_RE = re.compile(r"[\W_]+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase, hyphenated slug derived from *text*."""
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _SLUG_SEPARATOR_RE.sub("-", text.lower()).strip("-")


async def _make_slug(
    db: AsyncSession, author_username: str, title: str, article_id: int | None = None
) -> str:
    """
    Derive the slug for *title* and check that no other article uses it.

    *article_id* is the article being renamed; its own row never counts
    as a collision.
    """
    slug = slugify(f"{author_username} {title}")

    condition = Article.slug == slug
    if article_id is not None:
        condition = condition & (Article.id != article_id)

    if await db.scalar(select(exists().where(condition))):
        raise AlreadyExistsError(f"Slug {slug} already exists. Please choose another title.")
    return slug


def _normalize_tag_names(tag_names: list[str]) -> list[str]:
    """Slugify *tag_names*, dropping blanks and duplicates but keeping order."""
    names: list[str] = []
    for raw in tag_names:
        name = slugify(raw)
        if name and name not in names:
            names.append(name)
    return names


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag ORM instances for each name in *tag_names*, creating any
    that do not yet exist.  All inserts are flushed within the caller's
    transaction.
    """
    tags: list[Tag] = []
    for name in tag_names:
        result = await db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            logger.info("Creating article tag name=%s", name)
            tag = Tag(name=name)
            db.add(tag)
            await db.flush()
        tags.append(tag)
    return tags


def _filter_conditions(
    author_ids: list[int] | None,
    favorited_by_user_id: int | None,
    tag_name: str | None,
) -> list:
    conditions = []

    if author_ids is not None:
        conditions.append(Article.author_id.in_(author_ids) if author_ids else false())

    if favorited_by_user_id is not None:
        conditions.append(
            Article.id.in_(
                select(Favorite.article_id).where(Favorite.user_id == favorited_by_user_id)
            )
        )

    if tag_name is not None:
        conditions.append(
            Article.id.in_(
                select(article_article_tags.c.article_id)
                .join(Tag, Tag.id == article_article_tags.c.article_tag_id)
                .where(Tag.name == slugify(tag_name))
            )
        )

    return conditions


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> Article:
    """
    Create an article by *author_id* together with its tags.

    Raises NotFoundError for an unknown author and AlreadyExistsError
    when the derived slug is taken.  The article, any new tags and the
    tag links are written atomically.
    """
    logger.info("Creating article author_id=%s title=%r", author_id, data.title)

    author = await user_service.get_user_by_id(db, author_id)
    slug = await _make_slug(db, author.username, data.title)

    article = Article(
        author_id=author.id,
        slug=slug,
        title=data.title,
        description=data.description,
        body=data.body,
    )

    try:
        async with db.begin_nested():
            if data.tag_list:
                article.tags.extend(await _resolve_tags(db, _normalize_tag_names(data.tag_list)))
            db.add(article)
    except IntegrityError as exc:
        if is_unique_violation(exc, Article.__table__, "uq_articles_slug"):
            raise AlreadyExistsError(
                f"Slug {slug} already exists. Please choose another title."
            ) from exc
        if is_unique_violation(exc, Tag.__table__, "uq_article_tags_name"):
            raise AlreadyExistsError("Tag was created concurrently, please retry") from exc
        raise

    logger.info("Article created article_id=%s slug=%s", article.id, article.slug)
    return article


async def get_article_by_id(db: AsyncSession, article_id: int) -> Article:
    article = await db.get(Article, article_id)
    if article is None:
        raise NotFoundError(f"Article {article_id} not found")
    return article


async def get_article_by_slug(db: AsyncSession, slug: str) -> Article:
    result = await db.execute(select(Article).where(Article.slug == slug))
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError(f"Article with slug {slug} not found")
    return article


async def list_articles(
    db: AsyncSession,
    *,
    author_ids: list[int] | None = None,
    favorited_by_user_id: int | None = None,
    tag_name: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[Article]:
    """
    Return articles matching every given filter, newest first.

    - *author_ids*: article author must be in the list; ``[]`` matches
      nothing, ``None`` disables the filter.
    - *favorited_by_user_id*: only articles this user has favorited.
    - *tag_name*: only articles linked to this tag (normalised like
      stored tag names).
    """
    q = (
        select(Article)
        .where(*_filter_conditions(author_ids, favorited_by_user_id, tag_name))
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    if offset is not None:
        q = q.offset(offset)

    result = await db.execute(q)
    return list(result.scalars().all())


async def count_articles(
    db: AsyncSession,
    *,
    author_ids: list[int] | None = None,
    favorited_by_user_id: int | None = None,
    tag_name: str | None = None,
) -> int:
    """Return the total number of articles ``list_articles`` would page through."""
    q = (
        select(func.count())
        .select_from(Article)
        .where(*_filter_conditions(author_ids, favorited_by_user_id, tag_name))
    )
    return (await db.execute(q)).scalar_one()


async def get_feed(
    db: AsyncSession, viewer_id: int, limit: int | None = None, offset: int | None = None
) -> list[Article]:
    """
    Return articles written by the users *viewer_id* follows.

    Following nobody yields an empty feed, not every article.
    """
    followed_ids = await profile_service.list_followed_ids(db, viewer_id)
    return await list_articles(db, author_ids=followed_ids, limit=limit, offset=offset)


async def count_feed(db: AsyncSession, viewer_id: int) -> int:
    followed_ids = await profile_service.list_followed_ids(db, viewer_id)
    return await count_articles(db, author_ids=followed_ids)


async def update_article(db: AsyncSession, article_id: int, data: ArticleUpdate) -> Article:
    """
    Partially update *article_id* with the fields set in *data*.

    A new title re-derives the slug under the same uniqueness rule as
    creation.  Ownership is checked by the caller.
    """
    update_data = data.model_dump(exclude_unset=True)
    logger.info("Updating article article_id=%s fields=%s", article_id, sorted(update_data))

    article = await get_article_by_id(db, article_id)
    changes = {
        field: update_data[field]
        for field in ("title", "description", "body")
        if update_data.get(field) is not None
    }

    if "title" in changes:
        author = await user_service.get_user_by_id(db, article.author_id)
        changes["slug"] = await _make_slug(
            db, author.username, changes["title"], article_id=article.id
        )

    changes["updated_at"] = utcnow()

    # Assigned inside the SAVEPOINT so a slug race rolls back only this write.
    try:
        async with db.begin_nested():
            for field, value in changes.items():
                setattr(article, field, value)
    except IntegrityError as exc:
        if is_unique_violation(exc, Article.__table__, "uq_articles_slug"):
            raise AlreadyExistsError(
                f"Slug {changes.get('slug')} already exists. Please choose another title."
            ) from exc
        raise
    return article


async def delete_article(db: AsyncSession, article_id: int) -> None:
    """
    Delete *article_id*; comments, favorites and tag links cascade.

    Raises NotFoundError when no row was deleted.
    """
    logger.info("Deleting article article_id=%s", article_id)

    result = await db.execute(delete(Article).where(Article.id == article_id))
    if result.rowcount == 0:
        raise NotFoundError(f"Article {article_id} not found")


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

async def is_favorite(db: AsyncSession, user_id: int, article_id: int) -> bool:
    q = select(exists().where(Favorite.user_id == user_id, Favorite.article_id == article_id))
    return bool(await db.scalar(q))


async def favorite_article(db: AsyncSession, user_id: int, article_id: int) -> None:
    logger.info("Favoriting article user_id=%s article_id=%s", user_id, article_id)

    if await is_favorite(db, user_id, article_id):
        return

    user = await user_service.get_user_by_id(db, user_id)
    article = await get_article_by_id(db, article_id)

    try:
        async with db.begin_nested():
            db.add(Favorite(user_id=user.id, article_id=article.id))
    except IntegrityError as exc:
        if not is_unique_violation(exc, Favorite.__table__, "uq_article_favorites_user_article"):
            raise
        logger.debug(
            "Favorite already recorded by a concurrent request user_id=%s article_id=%s",
            user_id,
            article_id,
        )


async def unfavorite_article(db: AsyncSession, user_id: int, article_id: int) -> None:
    logger.info("Unfavoriting article user_id=%s article_id=%s", user_id, article_id)

    await db.execute(
        delete(Favorite).where(Favorite.user_id == user_id, Favorite.article_id == article_id)
    )


async def get_favorites_count(db: AsyncSession, article_id: int) -> int:
    q = select(func.count()).select_from(Favorite).where(Favorite.article_id == article_id)
    return (await db.execute(q)).scalar_one()


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

async def list_tags(db: AsyncSession, article_id: int | None = None) -> list[Tag]:
    """Return all tags, or only those linked to *article_id*, alphabetically."""
    q = select(Tag).order_by(Tag.name)
    if article_id is not None:
        q = q.where(
            Tag.id.in_(
                select(article_article_tags.c.article_tag_id).where(
                    article_article_tags.c.article_id == article_id
                )
            )
        )

    result = await db.execute(q)
    return list(result.scalars().all())
