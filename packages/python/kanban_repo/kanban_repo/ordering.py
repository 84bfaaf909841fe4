"""Pure helpers for dense, zero-based sibling orderings.

Everything here works on plain sequences of ids so the same rules apply to
lists in a board, cards in a list and items embedded in a checklist. A group
of N items is *dense* when its positions are exactly ``0..N-1``.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Iterable, List, Mapping, Sequence, Tuple, TypeVar

from .errors import InvariantViolationError, NotFoundError

K = TypeVar("K", bound=Hashable)


def sort_key(doc: Mapping[str, Any], id_field: str = "_id") -> Tuple[int, str]:
    """Order by stored position; equal positions fall back to the id."""

    return int(doc.get("position", 0)), str(doc[id_field])


def ordered_ids(docs: Iterable[Mapping[str, Any]], id_field: str = "_id") -> List[Any]:
    return [doc[id_field] for doc in sorted(docs, key=lambda d: sort_key(d, id_field))]


def _check_index(index: int, size: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvariantViolationError(f"Position must be an integer, got {index!r}")
    if index < 0 or index > size:
        raise InvariantViolationError(f"Position {index} is outside [0, {size}]")


def remove(ids: Sequence[K], item_id: K) -> List[K]:
    """Return ``ids`` without ``item_id``."""

    if item_id not in ids:
        raise NotFoundError(f"Item {item_id} not found in group")
    return [value for value in ids if value != item_id]


def insert(ids: Sequence[K], item_id: K, index: int) -> List[K]:
    """Return ``ids`` with ``item_id`` placed at ``index`` (``len(ids)`` appends)."""

    _check_index(index, len(ids))
    result = list(ids)
    result.insert(index, item_id)
    return result


def reorder(ids: Sequence[K], item_id: K, new_index: int) -> List[K]:
    """
    Move ``item_id`` to ``new_index`` inside the same group.

    The accepted range is ``[0, N]`` for a group of N; ``N`` and ``N-1`` both
    mean "last".
    """

    _check_index(new_index, len(ids))
    rest = remove(ids, item_id)
    rest.insert(min(new_index, len(rest)), item_id)
    return rest


def assign_positions(ids: Sequence[K]) -> Dict[K, int]:
    positions = {value: index for index, value in enumerate(ids)}
    if len(positions) != len(ids):
        raise InvariantViolationError("Duplicate ids in ordering")
    return positions


def check_dense(positions: Iterable[int]) -> None:
    """Raise unless ``positions`` is a permutation of ``0..N-1``."""

    values = list(positions)
    if sorted(values) != list(range(len(values))):
        raise InvariantViolationError(f"Positions are not dense: {sorted(values)}")


def changed_positions(
    docs: Iterable[Mapping[str, Any]],
    positions: Mapping[Any, int],
    id_field: str = "_id",
) -> Dict[Any, int]:
    """Return the subset of ``positions`` that differs from what ``docs`` store."""

    stored = {doc[id_field]: doc.get("position") for doc in docs}
    return {key: value for key, value in positions.items() if stored.get(key) != value}
