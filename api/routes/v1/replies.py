"""
api/routes/v1/replies.py -- Reply routes nested under a board post.

Routes:
  GET    /boards/{board_id}/replies             -- replies, oldest first
  POST   /boards/{board_id}/replies             -- add a reply; returns the full list
  PUT    /boards/{board_id}/replies/{reply_id}  -- edit content (author or admin)
  DELETE /boards/{board_id}/replies/{reply_id}  -- soft delete (author or admin)

A reply is only reachable through the post it belongs to. A deleted post, or
a reply id that belongs to a different post, is a 404.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter, write_limit
from api.models import ReplyCreate, ReplyResponse, ReplyUpdate
from auth.dependencies import get_current_principal
from auth.models import Principal
from board.models import Reply
from board.store import BoardStore

router = APIRouter(dependencies=[Depends(get_current_principal)])


def _require_board(store: BoardStore, board_id: int) -> None:
    if store.get_board(board_id) is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Board post not found."},
        )


def _get_reply_or_404(store: BoardStore, board_id: int, reply_id: int) -> Reply:
    _require_board(store, board_id)
    reply = store.get_reply(reply_id)
    if reply is None or reply.board_id != board_id:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Reply not found."},
        )
    return reply


def _require_author(reply: Reply, principal: Principal) -> None:
    if principal.is_admin or reply.user_id == principal.user_id:
        return
    raise HTTPException(
        status_code=403,
        detail={"code": "forbidden", "message": "Only the author can modify this reply."},
    )


def _reply_list(store: BoardStore, board_id: int) -> list[ReplyResponse]:
    return [ReplyResponse.from_reply(r) for r in store.list_replies(board_id)]


@router.get("/boards/{board_id}/replies", response_model=list[ReplyResponse])
def list_replies(request: Request, board_id: int) -> list[ReplyResponse]:
    store: BoardStore = request.app.state.board_store
    _require_board(store, board_id)
    return _reply_list(store, board_id)


@limiter.limit(write_limit)
@router.post("/boards/{board_id}/replies", response_model=list[ReplyResponse], status_code=201)
def create_reply(
    request: Request,
    board_id: int,
    body: ReplyCreate,
    principal: Principal = Depends(get_current_principal),
) -> list[ReplyResponse]:
    """Add a reply as the caller and return the post's updated reply list."""
    store: BoardStore = request.app.state.board_store
    _require_board(store, board_id)
    store.create_reply(
        Reply(
            board_id=board_id,
            user_id=principal.user_id,
            writer=principal.username,
            content=body.content,
        )
    )
    return _reply_list(store, board_id)


@limiter.limit(write_limit)
@router.put("/boards/{board_id}/replies/{reply_id}", response_model=ReplyResponse)
def update_reply(
    request: Request,
    board_id: int,
    reply_id: int,
    body: ReplyUpdate,
    principal: Principal = Depends(get_current_principal),
) -> ReplyResponse:
    store: BoardStore = request.app.state.board_store
    _require_author(_get_reply_or_404(store, board_id, reply_id), principal)
    store.update_reply(reply_id, body.content)
    return ReplyResponse.from_reply(_get_reply_or_404(store, board_id, reply_id))


@limiter.limit(write_limit)
@router.delete("/boards/{board_id}/replies/{reply_id}", status_code=204)
def delete_reply(
    request: Request,
    board_id: int,
    reply_id: int,
    principal: Principal = Depends(get_current_principal),
) -> Response:
    store: BoardStore = request.app.state.board_store
    _require_author(_get_reply_or_404(store, board_id, reply_id), principal)
    store.delete_logical_reply(reply_id)
    return Response(status_code=204)
