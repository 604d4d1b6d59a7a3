"""
api/routes/v1/boards.py -- Board post routes for the Threadboard REST API.

Routes:
  GET    /boards            -- paged listing, newest first, optional title search
  POST   /boards            -- create a post; writer is the caller
  GET    /boards/{board_id} -- post detail
  PUT    /boards/{board_id} -- edit title/content/tag (author or admin)
  DELETE /boards/{board_id} -- soft delete (author or admin)

Paging: page is zero-based, size defaults to 10. A page with no posts
returns 204 No Content instead of an empty list.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from api.limiter import limiter, write_limit
from api.models import BoardCreate, BoardPageResponse, BoardResponse, BoardUpdate
from auth.dependencies import get_current_principal
from auth.models import Principal
from board.models import Board
from board.store import BoardStore

# Every board route requires an authenticated caller.
router = APIRouter(dependencies=[Depends(get_current_principal)])


def _get_board_or_404(store: BoardStore, board_id: int) -> Board:
    board = store.get_board(board_id)
    if board is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Board post not found."},
        )
    return board


def _require_author(board: Board, principal: Principal) -> None:
    """Only the post's author or an admin may change it. Seeded posts have no
    author id and are admin-only."""
    if principal.is_admin or (board.writer_id is not None and board.writer_id == principal.user_id):
        return
    raise HTTPException(
        status_code=403,
        detail={"code": "forbidden", "message": "Only the author can modify this post."},
    )


@router.get(
    "/boards",
    response_model=BoardPageResponse,
    responses={204: {"description": "No posts on this page"}},
)
def list_boards(
    request: Request,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    search_title: str = Query(default="", max_length=100),
):
    """Return one page of posts whose title contains search_title."""
    store: BoardStore = request.app.state.board_store
    result = store.search_boards(search_title.strip(), page=page, size=size)
    if result.is_empty:
        return Response(status_code=204)
    return BoardPageResponse.from_page(result)


@limiter.limit(write_limit)
@router.post("/boards", response_model=BoardResponse, status_code=201)
def create_board(
    request: Request,
    body: BoardCreate,
    principal: Principal = Depends(get_current_principal),
) -> BoardResponse:
    store: BoardStore = request.app.state.board_store
    board_id = store.create_board(
        Board(
            title=body.title,
            content=body.content,
            writer=principal.username,
            writer_id=principal.user_id,
            tag=body.tag,
        )
    )
    return BoardResponse.from_board(_get_board_or_404(store, board_id))


@router.get("/boards/{board_id}", response_model=BoardResponse)
def get_board(request: Request, board_id: int) -> BoardResponse:
    store: BoardStore = request.app.state.board_store
    return BoardResponse.from_board(_get_board_or_404(store, board_id))


@limiter.limit(write_limit)
@router.put("/boards/{board_id}", response_model=BoardResponse)
def update_board(
    request: Request,
    board_id: int,
    body: BoardUpdate,
    principal: Principal = Depends(get_current_principal),
) -> BoardResponse:
    """Apply the supplied fields to a post. Omitted fields stay unchanged."""
    store: BoardStore = request.app.state.board_store
    _require_author(_get_board_or_404(store, board_id), principal)

    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    if not store.update_board(board_id, **updates):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Board post not found."},
        )
    return BoardResponse.from_board(_get_board_or_404(store, board_id))


@limiter.limit(write_limit)
@router.delete("/boards/{board_id}", status_code=204)
def delete_board(
    request: Request,
    board_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Soft-delete a post. Its replies become unreachable along with it."""
    store: BoardStore = request.app.state.board_store
    _require_author(_get_board_or_404(store, board_id), principal)
    store.delete_logical_board(board_id)
    return Response(status_code=204)
