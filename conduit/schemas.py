from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys (``tagList``) but snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- User ---

class UserRegister(BaseModel):
    email: str = Field(max_length=255)
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    """
    Partial update: only fields present in the payload are applied
    (``model_dump(exclude_unset=True)``), so an omitted ``bio`` is left
    alone while ``"bio": null`` clears it.
    """

    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, min_length=1, max_length=100)
    password: str | None = Field(None, min_length=1)
    bio: str | None = None
    image: str | None = None


class UserRegisterRequest(BaseModel):
    user: UserRegister


class UserLoginRequest(BaseModel):
    user: UserLogin


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserBody(BaseModel):
    email: str
    token: str
    username: str
    bio: str | None = None
    image: str | None = None


class UserResponse(BaseModel):
    user: UserBody


# --- Profile ---

class Profile(BaseModel):
    """Viewer-relative projection of a User; computed per request, never stored."""

    user_id: int
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileBody(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: ProfileBody


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    description: str
    body: str
    tag_list: list[str] | None = None


class ArticleUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    body: str | None = None


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class ArticleBody(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime
    favorited: bool = False
    favorites_count: int = 0
    author: ProfileBody


class ArticleResponse(BaseModel):
    article: ArticleBody


class MultipleArticlesResponse(CamelModel):
    articles: list[ArticleBody]
    articles_count: int


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class CommentBody(CamelModel):
    id: int
    created_at: datetime
    updated_at: datetime
    body: str
    author: ProfileBody


class CommentResponse(BaseModel):
    comment: CommentBody


class MultipleCommentsResponse(BaseModel):
    comments: list[CommentBody]


# --- Tag ---

class TagsResponse(BaseModel):
    tags: list[str]
