"""
api/routes/watched.py -- Personal watch list routes.

Routes:
  POST   /watched            -- add an item for the caller             201 item
  PUT    /watched/{item_id}  -- overwrite one of the caller's items    200 {message}
  DELETE /watched/{item_id}  -- delete one of the caller's items       200 {message}
  GET    /watched/{user_id}  -- list a user's items (caller only)      200 [items]

Ownership always comes from the access token. A userId in the body is ignored,
and GET refuses any user_id other than the caller's own (403).

Domain failures on the write routes (duplicate, not found, not yours) are
reported as 500 with the domain error's message. The web client only checks
for a 2xx and shows the message text, so the status carries no finer meaning.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import ErrorDetail, MessageResponse, WatchedItemBody, WatchedItemResponse
from auth.dependencies import require_access_token
from auth.models import AccessClaims
from core.errors import AppError, WatchedItemNotFoundError
from watchlist.service import AddWatchedItemCommand, UpdateWatchedItemCommand, WatchedItemService

# Every watch list route requires a valid access token.
router = APIRouter(dependencies=[Depends(require_access_token)])


def _write_failed(exc: AppError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail=ErrorDetail(code=exc.code, message=exc.message).model_dump(),
    )


# ---------------------------------------------------------------------------
# POST /watched
# ---------------------------------------------------------------------------


@router.post("/watched", response_model=WatchedItemResponse, status_code=201)
def add_watched_item(
    request: Request,
    body: WatchedItemBody,
    claims: AccessClaims = Depends(require_access_token),
) -> WatchedItemResponse:
    service: WatchedItemService = request.app.state.watchlist
    command = AddWatchedItemCommand(
        user_id=claims.user_id,
        media_type=body.media_type,
        media_id=body.media_id,
        title=body.title,
        poster_path=body.poster_path,
        release_date=body.release_date,
        status=body.status,
        current_episode=body.current_episode,
    )
    try:
        item = service.add(command)
    except AppError as exc:
        raise _write_failed(exc) from None
    return WatchedItemResponse.from_item(item)


# ---------------------------------------------------------------------------
# PUT /watched/{item_id} -- full overwrite
# ---------------------------------------------------------------------------


@router.put("/watched/{item_id}", response_model=MessageResponse)
def update_watched_item(
    request: Request,
    item_id: int,
    body: WatchedItemBody,
    claims: AccessClaims = Depends(require_access_token),
) -> MessageResponse:
    service: WatchedItemService = request.app.state.watchlist
    command = UpdateWatchedItemCommand(
        id=item_id,
        user_id=claims.user_id,
        media_type=body.media_type,
        media_id=body.media_id,
        title=body.title,
        poster_path=body.poster_path,
        release_date=body.release_date,
        status=body.status,
        current_episode=body.current_episode,
    )
    try:
        service.update(command)
    except AppError as exc:
        raise _write_failed(exc) from None
    return MessageResponse(message="Item updated successfully")


# ---------------------------------------------------------------------------
# DELETE /watched/{item_id}
# ---------------------------------------------------------------------------


@router.delete("/watched/{item_id}", response_model=MessageResponse)
def delete_watched_item(
    request: Request,
    item_id: int,
    claims: AccessClaims = Depends(require_access_token),
) -> MessageResponse:
    """Delete the item only if the caller owns it.

    Another user's item and a nonexistent id look the same to the caller.
    """
    service: WatchedItemService = request.app.state.watchlist
    if not service.delete(item_id, claims.user_id):
        raise _write_failed(WatchedItemNotFoundError(item_id))
    return MessageResponse(message="Item deleted successfully")


# ---------------------------------------------------------------------------
# GET /watched/{user_id}
# ---------------------------------------------------------------------------


@router.get("/watched/{user_id}", response_model=list[WatchedItemResponse])
def list_watched_items(
    request: Request,
    user_id: int,
    claims: AccessClaims = Depends(require_access_token),
) -> list[WatchedItemResponse]:
    if user_id != claims.user_id:
        raise HTTPException(
            status_code=403,
            detail=ErrorDetail(code="forbidden", message="You can only list your own watched items.").model_dump(),
        )
    service: WatchedItemService = request.app.state.watchlist
    return [WatchedItemResponse.from_item(item) for item in service.list_for_user(user_id)]
