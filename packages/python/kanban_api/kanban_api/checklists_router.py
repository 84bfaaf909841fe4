"""FastAPI router for card checklists and their items."""

from fastapi import APIRouter, Response

from kanban_repo import (
    Checklist,
    add_checklist_item,
    create_checklist,
    delete_checklist,
    delete_checklist_item,
    get_card,
    get_checklists,
    move_checklist_item,
    toggle_checklist_item,
    update_checklist,
)

from .schemas import (
    ChecklistCreatePayload,
    ChecklistItemPayload,
    ChecklistItemPositionPayload,
    ChecklistUpdatePayload,
)

router = APIRouter(tags=["checklists"])


@router.get("/cards/{card_id}/checklists", response_model=list[Checklist])
async def read_checklists(card_id: str):
    await get_card(card_id)
    return await get_checklists(card_id)


@router.post("/cards/{card_id}/checklists", response_model=Checklist, status_code=201)
async def post_checklist(card_id: str, payload: ChecklistCreatePayload):
    return await create_checklist(card_id, payload.title)


@router.patch("/checklists/{checklist_id}", response_model=Checklist)
async def patch_checklist(checklist_id: str, payload: ChecklistUpdatePayload):
    return await update_checklist(checklist_id, title=payload.title)


@router.delete("/checklists/{checklist_id}", status_code=204)
async def remove_checklist(checklist_id: str) -> Response:
    await delete_checklist(checklist_id)
    return Response(status_code=204)


@router.post("/checklists/{checklist_id}/items", response_model=Checklist, status_code=201)
async def post_item(checklist_id: str, payload: ChecklistItemPayload):
    return await add_checklist_item(checklist_id, payload.text)


@router.patch("/checklists/{checklist_id}/items/{item_id}/toggle", response_model=Checklist)
async def toggle_item(checklist_id: str, item_id: str):
    return await toggle_checklist_item(checklist_id, item_id)


@router.patch("/checklists/{checklist_id}/items/{item_id}/position", response_model=Checklist)
async def patch_item_position(checklist_id: str, item_id: str, payload: ChecklistItemPositionPayload):
    return await move_checklist_item(checklist_id, item_id, payload.position)


@router.delete("/checklists/{checklist_id}/items/{item_id}", response_model=Checklist)
async def remove_item(checklist_id: str, item_id: str):
    return await delete_checklist_item(checklist_id, item_id)
