"""
board/store.py -- SQLAlchemy-backed persistence for board posts and replies.

Uses SQLAlchemy Core (not ORM) so the dataclasses in board/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. BoardStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Soft delete: rows are never removed. Every read below filters
is_deleted = 0 and the delete_logical_* methods only set the flag, so a deleted row
behaves as "not found" everywhere while staying in storage.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BoardStore("sqlite:///boards.db")
    board_id = store.create_board(Board(title="Hi", content="...", writer="alice"))
    page = store.search_boards("Hi", page=0, size=10)
    store.create_reply(Reply(board_id=board_id, user_id=1, writer="alice", content="first"))
    store.delete_logical_board(board_id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from board.models import Board, BoardPage, Reply
from core.config import get_settings
from core.database import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_boards = Table(
    "boards",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("content", Text, nullable=False),
    Column("writer", String(50), nullable=False),
    Column("writer_id", Integer),
    Column("tag", String(30)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
)

_replies = Table(
    "replies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("board_id", Integer, nullable=False, index=True),
    Column("user_id", Integer, nullable=False),
    Column("writer", String(50), nullable=False),
    Column("content", String(120), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
)

_active_board = _boards.c.is_deleted == 0
_active_reply = _replies.c.is_deleted == 0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BoardStore:
    """Repository for Board and Reply entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    def count_boards(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_boards).where(_active_board)).scalar()
        return result or 0

    def create_board(self, board: Board) -> int:
        """Insert a new board post and return its assigned ID."""
        return self.create_boards([board])[0]

    def create_boards(self, boards: list[Board]) -> list[int]:
        """Insert several posts in one transaction. Returns their IDs in order."""
        now = _now_iso()
        ids: list[int] = []
        with self.engine.begin() as conn:
            for board in boards:
                result = conn.execute(
                    _boards.insert().values(
                        title=board.title,
                        content=board.content,
                        writer=board.writer,
                        writer_id=board.writer_id,
                        tag=board.tag,
                        created_at=now,
                        updated_at=now,
                        is_deleted=0,
                    )
                )
                ids.append(result.inserted_primary_key[0])
        return ids

    def get_board(self, board_id: int) -> Optional[Board]:
        """Return an active board post, or None if missing or deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(_boards.select().where((_boards.c.id == board_id) & _active_board)).fetchone()
        return _row_to_board(row) if row is not None else None

    def search_boards(self, search_title: str = "", page: int = 0, size: int = 10) -> BoardPage:
        """Return one page of active posts whose title contains search_title.

        Newest first (id descending). An empty search_title matches every
        post. page is zero-based; a page past the end comes back empty with
        the real total.
        """
        condition = _active_board
        if search_title:
            condition = condition & _boards.c.title.contains(search_title, autoescape=True)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_boards).where(condition)).scalar() or 0
            rows = conn.execute(
                _boards.select().where(condition).order_by(_boards.c.id.desc()).offset(page * size).limit(size)
            ).fetchall()
        return BoardPage(items=[_row_to_board(r) for r in rows], page=page, size=size, total=total)

    def update_board(self, board_id: int, **fields) -> bool:
        """Update mutable fields on an active post.

        Accepted fields: title, content, tag. Returns False if the post was
        not found.
        """
        unknown = set(fields) - {"title", "content", "tag"}
        if unknown:
            raise ValueError(f"Unknown board fields: {unknown!r}")
        with self.engine.begin() as conn:
            result = conn.execute(
                _boards.update()
                .where((_boards.c.id == board_id) & _active_board)
                .values(updated_at=_now_iso(), **fields)
            )
        return result.rowcount > 0

    def delete_logical_board(self, board_id: int) -> bool:
        """Soft-delete a post. Returns True if an active row was flagged."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _boards.update()
                .where((_boards.c.id == board_id) & _active_board)
                .values(is_deleted=1, updated_at=_now_iso())
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def create_reply(self, reply: Reply) -> int:
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _replies.insert().values(
                    board_id=reply.board_id,
                    user_id=reply.user_id,
                    writer=reply.writer,
                    content=reply.content,
                    created_at=now,
                    updated_at=now,
                    is_deleted=0,
                )
            )
            return result.inserted_primary_key[0]

    def get_reply(self, reply_id: int) -> Optional[Reply]:
        with self.engine.connect() as conn:
            row = conn.execute(_replies.select().where((_replies.c.id == reply_id) & _active_reply)).fetchone()
        return _row_to_reply(row) if row is not None else None

    def list_replies(self, board_id: int) -> list[Reply]:
        """Return a post's active replies, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _replies.select().where((_replies.c.board_id == board_id) & _active_reply).order_by(_replies.c.id)
            ).fetchall()
        return [_row_to_reply(r) for r in rows]

    def update_reply(self, reply_id: int, content: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _replies.update()
                .where((_replies.c.id == reply_id) & _active_reply)
                .values(content=content, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def delete_logical_reply(self, reply_id: int) -> bool:
        """Soft-delete a reply. Returns True if an active row was flagged."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _replies.update()
                .where((_replies.c.id == reply_id) & _active_reply)
                .values(is_deleted=1, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_board(row) -> Board:
    return Board(
        id=row.id,
        title=row.title,
        content=row.content,
        writer=row.writer,
        writer_id=row.writer_id,
        tag=row.tag,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=bool(row.is_deleted),
    )


def _row_to_reply(row) -> Reply:
    return Reply(
        id=row.id,
        board_id=row.board_id,
        user_id=row.user_id,
        writer=row.writer,
        content=row.content,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=bool(row.is_deleted),
    )
