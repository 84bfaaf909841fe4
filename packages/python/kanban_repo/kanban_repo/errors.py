"""Domain-level errors for the kanban repository."""


class KanbanError(Exception):
    """Base class for errors raised by the kanban repository."""


class NotFoundError(KanbanError):
    """Raised when a board, list, card or checklist cannot be located."""


class InvariantViolationError(KanbanError):
    """Raised when a requested ordering would break dense positions."""


class ConcurrentModificationError(KanbanError):
    """Raised when a group kept changing underneath every retry."""


class PersistenceError(KanbanError):
    """Raised when MongoDB fails a read or write."""
