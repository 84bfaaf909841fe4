"""Pydantic models describing boards, lists, cards and their satellites."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Board(BaseModel):
    """A board groups lists; its ``order_version`` counts list reorders."""

    id: str
    title: str
    description: Optional[str] = None
    order_version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BoardCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class BoardList(BaseModel):
    """A list inside a board, ordered by ``position``."""

    id: str
    board_id: str
    title: str
    position: int = Field(ge=0)
    order_version: int = 0


class Card(BaseModel):
    """A card inside a list, ordered by ``position``."""

    id: str
    board_id: str
    list_id: str
    title: str
    description: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    position: int = Field(ge=0)


class CardUpdate(BaseModel):
    """Payload fields of a card; ordering fields are changed elsewhere."""

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    labels: Optional[List[str]] = None
    due_date: Optional[datetime] = None


class ListWithCards(BoardList):
    cards: List[Card] = Field(default_factory=list)


class ChecklistItem(BaseModel):
    id: str
    text: str
    is_completed: bool = False
    position: int = Field(ge=0)


class Checklist(BaseModel):
    id: str
    card_id: str
    board_id: str
    title: str
    items: List[ChecklistItem] = Field(default_factory=list)
    is_completed: bool = False
    order_version: int = 0


class CardWithChecklists(Card):
    checklists: List[Checklist] = Field(default_factory=list)


class ListWithCardDetails(BoardList):
    cards: List[CardWithChecklists] = Field(default_factory=list)


class CardMoveResult(BaseModel):
    """Both lists touched by a cross-list card move, cards carrying their checklists."""

    source: ListWithCardDetails
    destination: ListWithCardDetails


class Comment(BaseModel):
    id: str
    card_id: str
    text: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class Activity(BaseModel):
    id: str
    board_id: str
    card_id: Optional[str] = None
    action: str
    created_at: datetime
