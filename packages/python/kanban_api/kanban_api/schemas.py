"""Request bodies accepted by the kanban API.

The web client sends camelCase keys (``listId``, ``newListId``); both that
form and snake_case are accepted.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ListCreatePayload(_Body):
    title: str = Field(min_length=1)
    position: Optional[int] = None


class ListUpdatePayload(_Body):
    title: str = Field(min_length=1)


class ListPositionPayload(_Body):
    position: int


class CardCreatePayload(_Body):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    position: Optional[int] = None


class CardPositionPayload(_Body):
    position: int
    list_id: str = Field(alias="listId")


class CardMovePayload(_Body):
    new_list_id: str = Field(alias="newListId")
    position: int


class ChecklistCreatePayload(_Body):
    title: str = Field(min_length=1)


class ChecklistUpdatePayload(_Body):
    title: Optional[str] = Field(default=None, min_length=1)


class ChecklistItemPayload(_Body):
    text: str = Field(min_length=1)


class ChecklistItemPositionPayload(_Body):
    position: int


class CommentPayload(_Body):
    text: str = Field(min_length=1)
