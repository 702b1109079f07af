"""Database seeder: populates users, follows, articles, comments and favorites."""
import argparse
import asyncio
import logging
import random
import time

from conduit.database import Base, async_session, engine
from conduit.schemas import ArticleCreate, CommentCreate, UserRegister
from conduit.services import article_service, comment_service, profile_service, user_service

logger = logging.getLogger("seed")

TAGS = ["python", "fastapi", "postgresql", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]


async def seed(small: bool = False, reset: bool = False):
    num_users = 10 if small else 50
    articles_per_user = 3 if small else 20
    comments_per_article = 2 if small else 5

    logger.info(
        "Seeding: %d users, %d articles, ~%d comments",
        num_users,
        num_users * articles_per_user,
        num_users * articles_per_user * comments_per_article,
    )
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = await user_service.register_user(
                session,
                UserRegister(
                    email=f"user_{i:04d}@example.com",
                    username=f"user_{i:04d}",
                    password="password",
                ),
            )
            users.append(user)
        logger.info("Created %d users", len(users))

        follows = 0
        for user in users:
            for other in random.sample(users, k=min(5, len(users))):
                if other.id != user.id:
                    await profile_service.follow_user(session, user.id, other.id)
                    follows += 1
        logger.info("Created %d follows", follows)

        articles = []
        for user in users:
            for i in range(articles_per_user):
                article = await article_service.create_article(
                    session,
                    user.id,
                    ArticleCreate(
                        title=f"Article {i}: How to optimize {random.choice(TAGS)} applications",
                        description="A practical walkthrough.",
                        body="Lorem ipsum dolor sit amet. " * 20,
                        tag_list=random.sample(TAGS, k=random.randint(1, 4)),
                    ),
                )
                articles.append(article)
        logger.info("Created %d articles", len(articles))

        comments = 0
        for article in articles:
            for reader in random.sample(users, k=min(comments_per_article, len(users))):
                await comment_service.create_comment(
                    session, article.id, reader.id, CommentCreate(body="Great article, thanks!")
                )
                await article_service.favorite_article(session, reader.id, article.id)
                comments += 1
        logger.info("Created %d comments and favorites", comments)

        await session.commit()

    await engine.dispose()
    logger.info("Done in %.1fs", time.perf_counter() - start)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Seed a small dataset")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(seed(small=args.small, reset=args.reset))
