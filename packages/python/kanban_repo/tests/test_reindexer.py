import asyncio
from datetime import timedelta

import pytest

from kanban_repo import (
    BoardCreate,
    ConcurrentModificationError,
    InvariantViolationError,
    NotFoundError,
    create_board,
    create_card,
    create_list,
    delete_card,
    delete_list,
    get_cards,
    get_lists,
    list_activities,
    move_card_to_list,
    update_card_position,
    update_list_position,
)
from kanban_repo import config
from kanban_repo.locks import GroupLockRegistry
from kanban_repo.reindexer import CARDS_IN_LIST, Reindexer, cards_reindexer, lists_reindexer
from kanban_repo.store import utcnow


def _titles(items):
    return [item.title for item in items]


def _assert_dense(items):
    assert sorted(item.position for item in items) == list(range(len(items)))


async def _board_with_lists(*titles):
    board = await create_board(BoardCreate(title="Sprint"))
    lists = [await create_list(board.id, title) for title in titles]
    return board, lists


async def _list_with_cards(list_id, *titles):
    return [await create_card(list_id, title) for title in titles]


async def test_create_appends_with_dense_positions(fake_db):
    board, lists = await _board_with_lists("Todo", "Doing", "Done")

    assert [item.position for item in lists] == [0, 1, 2]
    stored = await get_lists(board.id)
    assert _titles(stored) == ["Todo", "Doing", "Done"]


async def test_create_at_position_shifts_followers(fake_db):
    board, lists = await _board_with_lists("Todo", "Done")

    created = await create_list(board.id, "Doing", position=1)

    assert created.position == 1
    stored = await get_lists(board.id)
    assert _titles(stored) == ["Todo", "Doing", "Done"]
    _assert_dense(stored)


async def test_reorder_card_to_front(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    a, b, c = await _list_with_cards(todo.id, "A", "B", "C")

    result = await update_card_position(b.id, todo.id, 0)

    assert [(card.title, card.position) for card in result] == [("B", 0), ("A", 1), ("C", 2)]
    assert _titles(await get_cards(todo.id)) == ["B", "A", "C"]


async def test_reorder_to_current_position_writes_nothing(fake_db):
    board, lists = await _board_with_lists("Todo", "Doing", "Done")
    version_before = fake_db["boards"].docs[board.id]["order_version"]

    result = await update_list_position(lists[1].id, 1)

    assert _titles(result) == ["Todo", "Doing", "Done"]
    assert fake_db["boards"].docs[board.id]["order_version"] == version_before


async def test_round_trip_restores_original_order(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    cards = await _list_with_cards(todo.id, "A", "B", "C", "D")

    await update_card_position(cards[2].id, todo.id, 0)
    result = await update_card_position(cards[2].id, todo.id, 2)

    assert _titles(result) == ["A", "B", "C", "D"]
    _assert_dense(result)


@pytest.mark.parametrize(
    "position, expected",
    [
        (0, ["C", "A", "B"]),
        (2, ["A", "B", "C"]),
        (3, ["A", "B", "C"]),
    ],
)
async def test_reorder_boundaries(fake_db, position, expected):
    _, (todo,) = await _board_with_lists("Todo")
    cards = await _list_with_cards(todo.id, "A", "B", "C")

    result = await update_card_position(cards[2].id, todo.id, position)

    assert _titles(result) == expected
    _assert_dense(result)


@pytest.mark.parametrize("position", [-1, 4])
async def test_reorder_rejects_out_of_range_without_writing(fake_db, position):
    _, (todo,) = await _board_with_lists("Todo")
    cards = await _list_with_cards(todo.id, "A", "B", "C")
    snapshot = {key: dict(doc) for key, doc in fake_db["cards"].docs.items()}

    with pytest.raises(InvariantViolationError):
        await update_card_position(cards[0].id, todo.id, position)

    assert fake_db["cards"].docs == snapshot


async def test_reorder_card_not_in_stated_list(fake_db):
    _, (todo, done) = await _board_with_lists("Todo", "Done")
    (card,) = await _list_with_cards(todo.id, "A")

    with pytest.raises(NotFoundError):
        await update_card_position(card.id, done.id, 0)


async def test_reorder_in_missing_group(fake_db):
    with pytest.raises(NotFoundError):
        await cards_reindexer.reorder_within_group("missing", "card", 0)


async def test_move_card_between_lists(fake_db):
    _, (first, second) = await _board_with_lists("L1", "L2")
    a, b, c = await _list_with_cards(first.id, "A", "B", "C")
    await _list_with_cards(second.id, "X", "Y")

    result = await move_card_to_list(c.id, second.id, 1)

    assert [(card.title, card.position) for card in result.source.cards] == [("A", 0), ("B", 1)]
    assert [(card.title, card.position) for card in result.destination.cards] == [
        ("X", 0),
        ("C", 1),
        ("Y", 2),
    ]
    moved = fake_db["cards"].docs[c.id]
    assert moved["list_id"] == second.id
    assert moved["position"] == 1
    assert _titles(await get_cards(first.id)) == ["A", "B"]
    assert _titles(await get_cards(second.id)) == ["X", "C", "Y"]


async def test_move_conserves_counts_and_density(fake_db):
    _, (first, second) = await _board_with_lists("L1", "L2")
    cards = await _list_with_cards(first.id, "A", "B", "C", "D")
    await _list_with_cards(second.id, "X")

    result = await move_card_to_list(cards[1].id, second.id, 0)

    assert len(result.source.cards) == 3
    assert len(result.destination.cards) == 2
    _assert_dense(result.source.cards)
    _assert_dense(result.destination.cards)
    assert result.destination.cards[0].list_id == second.id


async def test_move_to_empty_list_and_to_end(fake_db):
    _, (first, second) = await _board_with_lists("L1", "L2")
    a, b = await _list_with_cards(first.id, "A", "B")

    await move_card_to_list(a.id, second.id, 0)
    result = await move_card_to_list(b.id, second.id, 1)

    assert result.source.cards == []
    assert _titles(result.destination.cards) == ["A", "B"]


async def test_move_card_inherits_board_of_destination(fake_db):
    _, (first,) = await _board_with_lists("L1")
    other_board, (elsewhere,) = await _board_with_lists("Other")
    (card,) = await _list_with_cards(first.id, "A")

    result = await move_card_to_list(card.id, elsewhere.id, 0)

    assert result.destination.cards[0].board_id == other_board.id
    assert fake_db["cards"].docs[card.id]["board_id"] == other_board.id


async def test_move_past_destination_end_is_rejected(fake_db):
    _, (first, second) = await _board_with_lists("L1", "L2")
    (card,) = await _list_with_cards(first.id, "A")

    with pytest.raises(InvariantViolationError):
        await move_card_to_list(card.id, second.id, 1)

    assert fake_db["cards"].docs[card.id]["list_id"] == first.id


async def test_move_to_missing_list(fake_db):
    _, (first,) = await _board_with_lists("L1")
    (card,) = await _list_with_cards(first.id, "A")

    with pytest.raises(NotFoundError):
        await move_card_to_list(card.id, "missing", 0)


async def test_move_within_same_list_is_a_reorder(fake_db):
    _, (first,) = await _board_with_lists("L1")
    a, b = await _list_with_cards(first.id, "A", "B")

    source, destination = await cards_reindexer.move_to_group(a.id, first.id, first.id, 1)

    assert [doc["title"] for doc in destination] == ["B", "A"]
    assert source == destination


async def test_delete_card_closes_gap(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    cards = await _list_with_cards(todo.id, "A", "B", "C")

    survivors = await delete_card(cards[0].id)

    assert [(card.title, card.position) for card in survivors] == [("B", 0), ("C", 1)]
    assert cards[0].id not in fake_db["cards"].docs


async def test_delete_list_closes_gap_and_removes_cards(fake_db):
    board, lists = await _board_with_lists("Todo", "Doing", "Done")
    await _list_with_cards(lists[1].id, "A", "B")

    survivors = await delete_list(lists[1].id)

    assert [(item.title, item.position) for item in survivors] == [("Todo", 0), ("Done", 1)]
    assert fake_db["cards"].docs == {}


async def test_corrupted_positions_are_repaired_on_next_move(fake_db):
    board, _ = await _board_with_lists()
    for key, title, position in (("l1", "One", 4), ("l2", "Two", 4), ("l3", "Three", 9)):
        await fake_db["lists"].insert_one(
            {"_id": key, "board_id": board.id, "title": title, "position": position}
        )

    result = await update_list_position("l3", 0)

    assert [(item.id, item.position) for item in result] == [("l3", 0), ("l1", 1), ("l2", 2)]


async def test_lost_claim_is_retried(fake_db, monkeypatch):
    board, lists = await _board_with_lists("Todo", "Doing", "Done")
    boards = fake_db["boards"]
    original = boards.update_one
    raced = []

    async def racing_update_one(query, update, **kwargs):
        if "order_version" in query and not raced:
            raced.append(query["_id"])
            await original({"_id": query["_id"]}, {"$inc": {"order_version": 1}})
        return await original(query, update, **kwargs)

    monkeypatch.setattr(boards, "update_one", racing_update_one)
    version_before = boards.docs[board.id]["order_version"]

    result = await update_list_position(lists[2].id, 0)

    assert raced == [board.id]
    assert _titles(result) == ["Done", "Todo", "Doing"]
    assert boards.docs[board.id]["order_version"] == version_before + 2


async def test_claim_retries_exhausted(fake_db, monkeypatch):
    board, lists = await _board_with_lists("Todo", "Doing")
    boards = fake_db["boards"]
    original = boards.update_one

    async def always_racing(query, update, **kwargs):
        if "order_version" in query:
            await original({"_id": query["_id"]}, {"$inc": {"order_version": 1}})
        return await original(query, update, **kwargs)

    monkeypatch.setattr(boards, "update_one", always_racing)
    monkeypatch.setattr(config.settings, "reorder_retries", 2)

    with pytest.raises(ConcurrentModificationError):
        await update_list_position(lists[1].id, 0)

    assert _titles(await get_lists(board.id)) == ["Todo", "Doing"]


async def test_concurrent_reorders_keep_positions_dense(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    cards = await _list_with_cards(todo.id, "A", "B", "C", "D", "E")

    await asyncio.gather(
        *(update_card_position(card.id, todo.id, index % 3) for index, card in enumerate(cards))
    )

    _assert_dense(await get_cards(todo.id))


async def test_moves_are_logged_as_activities(fake_db):
    board, lists = await _board_with_lists("Todo", "Done")

    await update_list_position(lists[1].id, 0)

    actions = [activity.action for activity in await list_activities(board.id)]
    assert any(action.startswith('moved list "Done"') for action in actions)


async def test_lists_reindexer_items_requires_board(fake_db):
    with pytest.raises(NotFoundError):
        await lists_reindexer.items("missing")


async def test_writer_in_another_process_waits_for_unfinished_reindex(fake_db, monkeypatch):
    _, (todo,) = await _board_with_lists("Todo")
    a, b, c, d = await _list_with_cards(todo.id, "A", "B", "C", "D")
    # Its own lock registry stands in for a second server process.
    other_process = Reindexer(CARDS_IN_LIST, locks=GroupLockRegistry())
    monkeypatch.setattr(config.settings, "reorder_retries", 2)
    original_write = cards_reindexer._write_positions
    outcome = []

    async def write_then_interleave(changes, session, extra=None):
        first, *rest = changes.items()
        await original_write(dict([first]), session, extra=extra)
        try:
            await other_process.reorder_within_group(todo.id, a.id, 3)
        except ConcurrentModificationError:
            outcome.append("refused")
        await original_write(dict(rest), session, extra=extra)

    monkeypatch.setattr(cards_reindexer, "_write_positions", write_then_interleave)

    result = await update_card_position(d.id, todo.id, 0)

    assert outcome == ["refused"]
    assert _titles(result) == ["D", "A", "B", "C"]
    stored = await get_cards(todo.id)
    assert _titles(stored) == ["D", "A", "B", "C"]
    _assert_dense(stored)
    assert "reindexing" not in fake_db["lists"].docs[todo.id]


async def test_second_process_proceeds_once_reindex_finishes(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    a, b, c = await _list_with_cards(todo.id, "A", "B", "C")
    other_process = Reindexer(CARDS_IN_LIST, locks=GroupLockRegistry())

    await update_card_position(c.id, todo.id, 0)
    result = await other_process.reorder_within_group(todo.id, a.id, 2)

    assert [(item["title"], item["position"]) for item in result] == [("C", 0), ("B", 1), ("A", 2)]
    _assert_dense(await get_cards(todo.id))


async def test_reindex_marker_is_cleared_after_each_operation(fake_db):
    board, lists = await _board_with_lists("Todo", "Doing")
    first, second = lists
    (card,) = await _list_with_cards(first.id, "A")

    await update_list_position(second.id, 0)
    await move_card_to_list(card.id, second.id, 0)
    await delete_card(card.id)

    for group in (fake_db["boards"].docs[board.id], *fake_db["lists"].docs.values()):
        assert "reindexing" not in group
        assert "reindexing_at" not in group


async def test_stale_reindex_marker_is_taken_over(fake_db):
    _, (todo,) = await _board_with_lists("Todo")
    a, b, c = await _list_with_cards(todo.id, "A", "B", "C")
    # A writer died after its claim and one of its position writes.
    group = fake_db["lists"].docs[todo.id]
    group["reindexing"] = "dead-writer"
    group["reindexing_at"] = utcnow() - timedelta(hours=1)
    group["order_version"] += 1
    fake_db["cards"].docs[c.id]["position"] = 0

    result = await update_card_position(b.id, todo.id, 0)

    assert result[0].title == "B"
    _assert_dense(await get_cards(todo.id))
    assert "reindexing" not in fake_db["lists"].docs[todo.id]


async def test_live_reindex_marker_blocks_until_retries_run_out(fake_db, monkeypatch):
    _, (todo,) = await _board_with_lists("Todo")
    a, b = await _list_with_cards(todo.id, "A", "B")
    group = fake_db["lists"].docs[todo.id]
    group["reindexing"] = "busy-writer"
    group["reindexing_at"] = utcnow()
    monkeypatch.setattr(config.settings, "reorder_retries", 2)

    with pytest.raises(ConcurrentModificationError):
        await update_card_position(b.id, todo.id, 0)

    assert [card.title for card in await get_cards(todo.id)] == ["A", "B"]
