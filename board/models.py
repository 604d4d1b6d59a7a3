"""
board/models.py -- Domain dataclasses for board posts and replies.

Pure data containers. Persistence and the soft-delete filter live in
board/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Board:
    """A board post.

    writer is the author's display name at posting time; writer_id is the
    author's user id (None for seeded posts). id is None before insert.
    """

    title: str
    content: str
    writer: str
    id: Optional[int] = None
    writer_id: Optional[int] = None
    tag: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store
    updated_at: str = ""
    is_deleted: bool = False


@dataclass
class Reply:
    board_id: int
    user_id: int
    writer: str
    content: str
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    is_deleted: bool = False


@dataclass
class BoardPage:
    """One page of a board listing. page is zero-based."""

    items: list[Board] = field(default_factory=list)
    page: int = 0
    size: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return (self.total + self.size - 1) // self.size if self.size > 0 else 0

    @property
    def is_empty(self) -> bool:
        return not self.items
