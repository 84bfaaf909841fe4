"""Kanban repository: boards, lists and cards with dense sibling ordering."""

from .activities import list_activities, record_activity
from .checklists import (
    add_checklist_item,
    create_checklist,
    delete_checklist,
    delete_checklist_item,
    get_checklist,
    get_checklists,
    move_checklist_item,
    toggle_checklist_item,
    update_checklist,
)
from .comments import create_comment, delete_comment, get_comments, update_comment
from .config import KanbanSettings, settings
from .errors import (
    ConcurrentModificationError,
    InvariantViolationError,
    KanbanError,
    NotFoundError,
    PersistenceError,
)
from .models import (
    Activity,
    Board,
    BoardCreate,
    BoardList,
    BoardUpdate,
    Card,
    CardMoveResult,
    CardUpdate,
    CardWithChecklists,
    Checklist,
    ChecklistItem,
    Comment,
    ListWithCardDetails,
    ListWithCards,
)
from .reindexer import OrderedCollection, Reindexer, cards_reindexer, lists_reindexer
from .repo import (
    create_board,
    create_card,
    create_list,
    delete_board,
    delete_card,
    delete_list,
    get_board,
    get_card,
    get_cards,
    get_list,
    get_list_with_cards,
    get_lists,
    list_boards,
    move_card_to_list,
    update_board,
    update_card,
    update_card_position,
    update_list,
    update_list_position,
)

__all__ = [
    "Activity",
    "Board",
    "BoardCreate",
    "BoardList",
    "BoardUpdate",
    "Card",
    "CardMoveResult",
    "CardUpdate",
    "CardWithChecklists",
    "Checklist",
    "ChecklistItem",
    "Comment",
    "ListWithCardDetails",
    "ListWithCards",
    "KanbanSettings",
    "settings",
    "KanbanError",
    "NotFoundError",
    "InvariantViolationError",
    "ConcurrentModificationError",
    "PersistenceError",
    "OrderedCollection",
    "Reindexer",
    "lists_reindexer",
    "cards_reindexer",
    "create_board",
    "list_boards",
    "get_board",
    "update_board",
    "delete_board",
    "create_list",
    "get_lists",
    "get_list",
    "get_list_with_cards",
    "update_list",
    "delete_list",
    "update_list_position",
    "create_card",
    "get_cards",
    "get_card",
    "update_card",
    "delete_card",
    "update_card_position",
    "move_card_to_list",
    "create_checklist",
    "get_checklists",
    "get_checklist",
    "update_checklist",
    "delete_checklist",
    "add_checklist_item",
    "toggle_checklist_item",
    "delete_checklist_item",
    "move_checklist_item",
    "create_comment",
    "get_comments",
    "update_comment",
    "delete_comment",
    "record_activity",
    "list_activities",
]
