"""
board/seed.py -- Sample board posts for a fresh database.

Called from the API lifespan when SEED_BOARDS is on, and from
`python main.py seed`. Does nothing if any active post already exists, so it
is safe to run on every startup.
"""

import logging

from board.models import Board
from board.store import BoardStore

logger = logging.getLogger("threadboard.board")

_SAMPLE_POSTS: list[tuple[str, str, str, str]] = [
    ("Welcome to the board", "Introduce yourself in the replies.", "admin", "notice"),
    ("Posting guidelines", "Be kind, stay on topic, and search before you post.", "admin", "notice"),
    ("Weekend hiking trip", "Anyone up for the north ridge trail on Saturday?", "jiwoo", "free"),
    ("Best budget keyboard?", "Looking for something quiet under 50 dollars.", "minsu", "question"),
    ("Book club: March pick", "We are reading The Left Hand of Darkness this month.", "hana", "free"),
    ("Login loop on mobile", "After signing in with Naver I land on the login page again.", "seojun", "bug"),
    ("Study group for algorithms", "Two sessions a week, evenings. Reply if interested.", "yuna", "study"),
    ("Lost umbrella", "Black umbrella left in the lobby on Tuesday.", "doyun", "free"),
    ("Recommended cafes near campus", "Share your favorite places to work from.", "haeun", "question"),
    ("Release notes", "Replies now show up in posting order.", "admin", "notice"),
]


def seed_boards(store: BoardStore) -> int:
    """Insert the sample posts into an empty board table.

    Returns the number of posts inserted (0 when the table already has
    active posts).
    """
    if store.count_boards() > 0:
        logger.info("Board table already populated; skipping seed")
        return 0
    boards = [Board(title=title, content=content, writer=writer, tag=tag) for title, content, writer, tag in _SAMPLE_POSTS]
    ids = store.create_boards(boards)
    logger.info("Seeded %d sample board posts", len(ids))
    return len(ids)
