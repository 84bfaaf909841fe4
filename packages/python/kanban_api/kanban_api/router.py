from __future__ import annotations

"""FastAPI router exposing boards, lists, cards and comments."""

from fastapi import APIRouter, Response

from kanban_repo import (
    Activity,
    Board,
    BoardCreate,
    BoardList,
    BoardUpdate,
    Card,
    CardMoveResult,
    CardUpdate,
    Comment,
    ListWithCards,
    create_board,
    create_card,
    create_comment,
    create_list,
    delete_board,
    delete_card,
    delete_comment,
    delete_list,
    get_board,
    get_card,
    get_cards,
    get_comments,
    get_list_with_cards,
    get_lists,
    list_activities,
    list_boards,
    move_card_to_list,
    update_board,
    update_card,
    update_card_position,
    update_comment,
    update_list,
    update_list_position,
)

from .schemas import (
    CardCreatePayload,
    CardMovePayload,
    CardPositionPayload,
    CommentPayload,
    ListCreatePayload,
    ListPositionPayload,
    ListUpdatePayload,
)

router = APIRouter(tags=["kanban"])


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


@router.post("/boards", response_model=Board, status_code=201)
async def post_board(payload: BoardCreate):
    return await create_board(payload)


@router.get("/boards", response_model=list[Board])
async def get_boards():
    return await list_boards()


@router.get("/boards/{board_id}", response_model=Board)
async def read_board(board_id: str):
    return await get_board(board_id)


@router.patch("/boards/{board_id}", response_model=Board)
async def patch_board(board_id: str, payload: BoardUpdate):
    return await update_board(board_id, payload)


@router.delete("/boards/{board_id}", status_code=204)
async def remove_board(board_id: str) -> Response:
    """Delete a board with everything on it."""

    await delete_board(board_id)
    return Response(status_code=204)


@router.get("/boards/{board_id}/activities", response_model=list[Activity])
async def read_activities(board_id: str):
    await get_board(board_id)
    return await list_activities(board_id)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


@router.get("/boards/{board_id}/lists", response_model=list[BoardList])
async def read_lists(board_id: str):
    return await get_lists(board_id)


@router.post("/boards/{board_id}/lists", response_model=BoardList, status_code=201)
async def post_list(board_id: str, payload: ListCreatePayload):
    return await create_list(board_id, payload.title, position=payload.position)


@router.get("/lists/{list_id}", response_model=ListWithCards)
async def read_list(list_id: str):
    return await get_list_with_cards(list_id)


@router.patch("/lists/{list_id}", response_model=BoardList)
async def patch_list(list_id: str, payload: ListUpdatePayload):
    return await update_list(list_id, payload.title)


@router.delete("/lists/{list_id}", response_model=list[BoardList])
async def remove_list(list_id: str):
    """Delete a list and return the board's remaining lists."""

    return await delete_list(list_id)


@router.patch("/lists/{list_id}/position", response_model=list[BoardList])
async def patch_list_position(list_id: str, payload: ListPositionPayload):
    """Move a list within its board; returns every list of the board in order."""

    return await update_list_position(list_id, payload.position)


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@router.get("/lists/{list_id}/cards", response_model=list[Card])
async def read_cards(list_id: str):
    return await get_cards(list_id)


@router.post("/lists/{list_id}/cards", response_model=Card, status_code=201)
async def post_card(list_id: str, payload: CardCreatePayload):
    return await create_card(
        list_id,
        payload.title,
        description=payload.description,
        labels=payload.labels,
        position=payload.position,
    )


@router.get("/cards/{card_id}", response_model=Card)
async def read_card(card_id: str):
    return await get_card(card_id)


@router.patch("/cards/{card_id}", response_model=Card)
async def patch_card(card_id: str, payload: CardUpdate):
    return await update_card(card_id, payload)


@router.delete("/cards/{card_id}", response_model=list[Card])
async def remove_card(card_id: str):
    """Delete a card and return the remaining cards of its list."""

    return await delete_card(card_id)


@router.patch("/cards/{card_id}/position", response_model=list[Card])
async def patch_card_position(card_id: str, payload: CardPositionPayload):
    """Move a card within ``listId``; returns the list's cards in order."""

    return await update_card_position(card_id, payload.list_id, payload.position)


@router.patch("/cards/{card_id}/move-to-list", response_model=CardMoveResult)
async def patch_card_list(card_id: str, payload: CardMovePayload):
    """Move a card to another list; returns both lists with their cards."""

    return await move_card_to_list(card_id, payload.new_list_id, payload.position)


@router.get("/cards/{card_id}/activities", response_model=list[Activity])
async def read_card_activities(card_id: str):
    await get_card(card_id)
    return await list_activities(card_id=card_id)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/cards/{card_id}/comments", response_model=list[Comment])
async def read_comments(card_id: str):
    return await get_comments(card_id)


@router.post("/cards/{card_id}/comments", response_model=Comment, status_code=201)
async def post_comment(card_id: str, payload: CommentPayload):
    return await create_comment(card_id, payload.text)


@router.patch("/comments/{comment_id}", response_model=Comment)
async def patch_comment(comment_id: str, payload: CommentPayload):
    return await update_comment(comment_id, payload.text)


@router.delete("/comments/{comment_id}", status_code=204)
async def remove_comment(comment_id: str) -> Response:
    await delete_comment(comment_id)
    return Response(status_code=204)
