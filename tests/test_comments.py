"""
Comment endpoint tests: covers adding, listing and deleting comments on
an article addressed by slug.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _register(client: AsyncClient, username: str) -> str:
    resp = await client.post("/api/users", json={"user": {
        "username": username,
        "email": f"{username}@example.com",
        "password": "password",
    }})
    assert resp.status_code == 201
    return resp.json()["user"]["token"]


def _auth(token: str) -> dict:
    return {"Authorization": f"Token {token}"}


async def _create_article(client: AsyncClient, token: str, title: str = "Commented") -> str:
    resp = await client.post("/api/articles", headers=_auth(token), json={"article": {
        "title": title, "description": "d", "body": "b",
    }})
    assert resp.status_code == 201
    return resp.json()["article"]["slug"]


async def _add_comment(client: AsyncClient, token: str, slug: str, body: str) -> dict:
    resp = await client.post(
        f"/api/articles/{slug}/comments",
        headers=_auth(token),
        json={"comment": {"body": body}},
    )
    assert resp.status_code == 201
    return resp.json()["comment"]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_comment(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    anna = await _register(async_client, "anna")
    slug = await _create_article(async_client, jake)

    comment = await _add_comment(async_client, anna, slug, "Thank you so much!")
    assert comment["body"] == "Thank you so much!"
    assert comment["author"]["username"] == "anna"
    assert isinstance(comment["id"], int)
    assert "createdAt" in comment
    assert "updatedAt" in comment


@pytest.mark.asyncio
async def test_add_comment_requires_auth(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    slug = await _create_article(async_client, jake)
    resp = await async_client.post(
        f"/api/articles/{slug}/comments", json={"comment": {"body": "hi"}}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_add_comment_unknown_article(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    resp = await async_client.post(
        "/api/articles/nope/comments",
        headers=_auth(jake),
        json={"comment": {"body": "hi"}},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_add_comment_empty_body(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    slug = await _create_article(async_client, jake)
    resp = await async_client.post(
        f"/api/articles/{slug}/comments",
        headers=_auth(jake),
        json={"comment": {"body": ""}},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_comments_newest_first(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    slug = await _create_article(async_client, jake)
    for body in ("first", "second", "third"):
        await _add_comment(async_client, jake, slug, body)

    resp = await async_client.get(f"/api/articles/{slug}/comments")
    assert resp.status_code == 200
    assert [c["body"] for c in resp.json()["comments"]] == ["third", "second", "first"]


@pytest.mark.asyncio
async def test_list_comments_author_following_flag(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    anna = await _register(async_client, "anna")
    slug = await _create_article(async_client, jake)
    await _add_comment(async_client, anna, slug, "hello")
    await async_client.post("/api/profiles/anna/follow", headers=_auth(jake))

    as_jake = await async_client.get(f"/api/articles/{slug}/comments", headers=_auth(jake))
    assert as_jake.json()["comments"][0]["author"]["following"] is True

    anonymous = await async_client.get(f"/api/articles/{slug}/comments")
    assert anonymous.json()["comments"][0]["author"]["following"] is False


@pytest.mark.asyncio
async def test_delete_comment(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    slug = await _create_article(async_client, jake)
    comment = await _add_comment(async_client, jake, slug, "bye")

    resp = await async_client.delete(
        f"/api/articles/{slug}/comments/{comment['id']}", headers=_auth(jake)
    )
    assert resp.status_code == 204

    listing = await async_client.get(f"/api/articles/{slug}/comments")
    assert listing.json()["comments"] == []

    again = await async_client.delete(
        f"/api/articles/{slug}/comments/{comment['id']}", headers=_auth(jake)
    )
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_delete_comment_by_other_user_forbidden(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    anna = await _register(async_client, "anna")
    slug = await _create_article(async_client, jake)
    comment = await _add_comment(async_client, jake, slug, "mine")

    resp = await async_client.delete(
        f"/api/articles/{slug}/comments/{comment['id']}", headers=_auth(anna)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_comment_on_wrong_article(async_client: AsyncClient):
    """A comment id is only addressable through the article it belongs to."""
    jake = await _register(async_client, "jake")
    first = await _create_article(async_client, jake, "First")
    second = await _create_article(async_client, jake, "Second")
    comment = await _add_comment(async_client, jake, first, "on first")

    resp = await async_client.delete(
        f"/api/articles/{second}/comments/{comment['id']}", headers=_auth(jake)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_deleting_article_removes_its_comments(async_client: AsyncClient):
    jake = await _register(async_client, "jake")
    slug = await _create_article(async_client, jake)
    await _add_comment(async_client, jake, slug, "doomed")

    await async_client.delete(f"/api/articles/{slug}", headers=_auth(jake))
    resp = await async_client.get(f"/api/articles/{slug}/comments")
    assert resp.status_code == 404
