"""
API request and response models for Threadboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
board/models.py, which own the internal domain representation. Route handlers
map between the two.

Separation of concerns: domain models = storage truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import ADMIN_ROLE, DEFAULT_ROLE, User
from board.models import Board, BoardPage, Reply

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


class BoardCreate(BaseModel):
    """Request body for POST /api/v1/boards. The writer is always the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1)
    tag: Optional[str] = Field(default=None, max_length=30)


class BoardUpdate(BaseModel):
    """Request body for PUT /api/v1/boards/{id}. Omitted fields stay unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, min_length=1)
    tag: Optional[str] = Field(default=None, max_length=30)


class BoardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    content: str
    writer: str
    writer_id: Optional[int]
    tag: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_board(cls, board: Board) -> "BoardResponse":
        return cls(
            id=board.id,
            title=board.title,
            content=board.content,
            writer=board.writer,
            writer_id=board.writer_id,
            tag=board.tag,
            created_at=board.created_at,
            updated_at=board.updated_at,
        )


class BoardPageResponse(BaseModel):
    """One page of GET /api/v1/boards. page is zero-based."""

    model_config = ConfigDict(frozen=True)

    items: list[BoardResponse]
    page: int
    size: int
    total: int
    total_pages: int

    @classmethod
    def from_page(cls, page: BoardPage) -> "BoardPageResponse":
        return cls(
            items=[BoardResponse.from_board(b) for b in page.items],
            page=page.page,
            size=page.size,
            total=page.total,
            total_pages=page.total_pages,
        )


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


class ReplyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=120)


class ReplyUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=120)


class ReplyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    board_id: int
    user_id: int
    writer: str
    content: str
    created_at: str
    updated_at: str

    @classmethod
    def from_reply(cls, reply: Reply) -> "ReplyResponse":
        return cls(
            id=reply.id,
            board_id=reply.board_id,
            user_id=reply.user_id,
            writer=reply.writer,
            content=reply.content,
            created_at=reply.created_at,
            updated_at=reply.updated_at,
        )


# ---------------------------------------------------------------------------
# Users and auth
# ---------------------------------------------------------------------------

_ROLE_PATTERN = f"^({DEFAULT_ROLE}|{ADMIN_ROLE})$"


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users (admin only).

    password is optional; OAuth users never have one. bcrypt reads at most
    72 bytes, so longer passwords are rejected rather than truncated.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(default=DEFAULT_ROLE, pattern=_ROLE_PATTERN)
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}. Omitted fields stay unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    role: Optional[str] = Field(default=None, pattern=_ROLE_PATTERN)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    role: str
    oauth_provider: Optional[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            oauth_provider=user.oauth_provider,
            created_at=user.created_at or "",
        )


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: Optional[str]
    role: str
    oauth_provider: Optional[str]


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
