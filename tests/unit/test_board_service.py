"""
Tests for planboard/services/boards.py

Board lifecycle, the filtered board view, column settings and ordering,
reconciliation and card moves.
"""

import pytest
import pytest_asyncio
from types import SimpleNamespace

from planboard.models import (
    BoardCreate,
    BoardUpdate,
    BoardColumnUpdate,
    StatusCreate,
    StatusUpdate,
    WorkItemCreate,
    EpicCreate,
)
from planboard.services import (
    filter_work_items,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    ConflictError,
    InvalidStatusTransitionError,
)

DEFAULT_ORDER = ["BACKLOG", "TODO", "IN PROGRESS", "DONE", "CANCELLED"]


@pytest_asyncio.fixture
async def board(board_service, project, owner, statuses):
    return await board_service.create_board(project.id, BoardCreate(), owner.id)


@pytest.fixture
def create_item(work_item_service, project, owner):
    async def _create(summary="Card", **fields):
        return await work_item_service.create_work_item(
            WorkItemCreate(project_id=project.id, type=fields.pop("type", "task"), summary=summary, **fields),
            owner.id,
        )
    return _create


def column_for(board, name):
    return next(c for c in board.columns if c.status_name == name)


class TestFilterWorkItems:

    items = [
        SimpleNamespace(key="TST-1", summary="Fix login", epic_id=1, assignee_id=10),
        SimpleNamespace(key="TST-2", summary="Write docs", epic_id=2, assignee_id=None),
        SimpleNamespace(key="TST-3", summary="fix logout", epic_id=None, assignee_id=10),
    ]

    def test_no_filters(self):
        assert filter_work_items(self.items) == self.items

    def test_empty_lists_mean_no_filter(self):
        assert filter_work_items(self.items, epic_ids=[], assignee_ids=[]) == self.items

    def test_epic_and_assignee_combine(self):
        matched = filter_work_items(self.items, epic_ids=[1, 2], assignee_ids=[10])
        assert [i.key for i in matched] == ["TST-1"]

    def test_text_is_case_sensitive(self):
        assert [i.key for i in filter_work_items(self.items, search_text="Fix")] == ["TST-1"]
        assert [i.key for i in filter_work_items(self.items, search_text="fix")] == ["TST-3"]

    def test_text_matches_key(self):
        assert [i.key for i in filter_work_items(self.items, search_text="TST-2")] == ["TST-2"]

    def test_blank_text_ignored(self):
        assert filter_work_items(self.items, search_text="   ") == self.items


class TestCreateBoard:

    @pytest.mark.asyncio
    async def test_columns_follow_status_order(self, board, project):
        assert board.project_id == project.id
        assert board.name == "Test Project Board"
        assert [c.status_name for c in board.columns] == DEFAULT_ORDER
        assert [c.order_index for c in board.columns] == [0, 1, 2, 3, 4]
        assert all(c.wip_limit is None and not c.is_collapsed for c in board.columns)

    @pytest.mark.asyncio
    async def test_inactive_statuses_get_no_column(self, board_service, registry, project, owner, statuses):
        await registry.update_status(statuses["CANCELLED"].id, StatusUpdate(is_active=False))

        board = await board_service.create_board(project.id, BoardCreate(name="Sprint"), owner.id)

        assert board.name == "Sprint"
        assert [c.status_name for c in board.columns] == DEFAULT_ORDER[:4]

    @pytest.mark.asyncio
    async def test_second_board_rejected(self, board_service, board, project, owner):
        with pytest.raises(BadRequestError):
            await board_service.create_board(project.id, BoardCreate(), owner.id)

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, board_service, project, other_user, statuses):
        with pytest.raises(ForbiddenError):
            await board_service.create_board(project.id, BoardCreate(), other_user.id)

    @pytest.mark.asyncio
    async def test_missing_project_reported_before_ownership(self, board_service, other_user, statuses):
        with pytest.raises(NotFoundError):
            await board_service.create_board(999, BoardCreate(), other_user.id)


class TestBoardLifecycle:

    @pytest.mark.asyncio
    async def test_get_by_project(self, board_service, board, project):
        fetched = await board_service.get_board_by_project(project.id)
        assert fetched.id == board.id
        assert await board_service.get_board_by_project(999) is None

    @pytest.mark.asyncio
    async def test_update(self, board_service, board, project, owner):
        updated = await board_service.update_board(
            project.id, BoardUpdate(name="Renamed", description="Team board"), owner.id
        )
        assert (updated.name, updated.description) == ("Renamed", "Team board")
        assert len(updated.columns) == 5

    @pytest.mark.asyncio
    async def test_update_forbidden(self, board_service, board, project, other_user):
        with pytest.raises(ForbiddenError):
            await board_service.update_board(project.id, BoardUpdate(name="Mine now"), other_user.id)

    @pytest.mark.asyncio
    async def test_delete(self, board_service, board, project, owner):
        await board_service.delete_board(project.id, owner.id)

        assert await board_service.get_board_by_project(project.id) is None
        recreated = await board_service.create_board(project.id, BoardCreate(), owner.id)
        assert len(recreated.columns) == 5

    @pytest.mark.asyncio
    async def test_delete_without_board(self, board_service, project, owner, statuses):
        with pytest.raises(NotFoundError):
            await board_service.delete_board(project.id, owner.id)


class TestBoardView:

    @pytest.mark.asyncio
    async def test_items_grouped_by_status(self, board_service, work_item_service, board, create_item, project, owner, statuses):
        first = await create_item(summary="First")
        await create_item(summary="Second")
        await work_item_service.update_work_item_status(first.id, statuses["IN PROGRESS"].id, owner.id)

        view = await board_service.get_board_view(project.id)

        counts = {c.status_name: c.item_count for c in view.columns}
        assert counts == {"BACKLOG": 0, "TODO": 1, "IN PROGRESS": 1, "DONE": 0, "CANCELLED": 0}
        assert view.total_items == 2
        in_progress = next(c for c in view.columns if c.status_name == "IN PROGRESS")
        assert [card.key for card in in_progress.items] == [first.key]
        assert in_progress.status_color == statuses["IN PROGRESS"].color

    @pytest.mark.asyncio
    async def test_filters(self, board_service, epic_service, board, create_item, project, owner, other_user):
        epic = await epic_service.create_epic(EpicCreate(project_id=project.id, summary="Launch"), owner.id)
        await create_item(summary="Fix login", epic_id=epic.id, assignee_id=other_user.id)
        await create_item(summary="Fix logout", assignee_id=other_user.id)
        await create_item(summary="Write docs", epic_id=epic.id)

        by_epic = await board_service.get_board_view(project.id, epic_ids=[epic.id])
        assert by_epic.total_items == 2

        combined = await board_service.get_board_view(
            project.id, epic_ids=[epic.id], assignee_ids=[other_user.id], search_text="Fix"
        )
        assert combined.total_items == 1
        card = next(card for c in combined.columns for card in c.items)
        assert card.summary == "Fix login"
        assert card.assignee_name == "Sam Stranger"

        unfiltered = await board_service.get_board_view(project.id, epic_ids=[], assignee_ids=[], search_text="")
        assert unfiltered.total_items == 3

    @pytest.mark.asyncio
    async def test_over_wip_limit(self, board_service, board, create_item, project, owner):
        todo = column_for(board, "TODO")
        await create_item()
        await create_item()
        await board_service.update_column(project.id, todo.id, BoardColumnUpdate(wip_limit=1), owner.id)

        view = await board_service.get_board_view(project.id)

        todo_view = next(c for c in view.columns if c.column_id == todo.id)
        assert todo_view.wip_limit == 1
        assert todo_view.over_wip_limit is True
        assert not any(c.over_wip_limit for c in view.columns if c.column_id != todo.id)

    @pytest.mark.asyncio
    async def test_missing_board(self, board_service, project, statuses):
        with pytest.raises(NotFoundError):
            await board_service.get_board_view(project.id)


class TestUpdateColumn:

    @pytest.mark.asyncio
    async def test_set_and_clear_wip_limit(self, board_service, board, project, owner):
        todo = column_for(board, "TODO")

        limited = await board_service.update_column(
            project.id, todo.id, BoardColumnUpdate(wip_limit=3, is_collapsed=True), owner.id
        )
        assert (limited.wip_limit, limited.is_collapsed) == (3, True)
        assert limited.version == todo.version + 1

        cleared = await board_service.update_column(project.id, todo.id, BoardColumnUpdate(), owner.id)
        assert cleared.wip_limit is None
        assert cleared.is_collapsed is False

    @pytest.mark.asyncio
    async def test_limit_below_item_count_accepted(self, board_service, board, create_item, project, owner):
        todo = column_for(board, "TODO")
        await create_item()
        await create_item()

        updated = await board_service.update_column(project.id, todo.id, BoardColumnUpdate(wip_limit=0), owner.id)
        assert updated.wip_limit == 0

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, board_service, board, project, owner):
        todo = column_for(board, "TODO")

        await board_service.update_column(
            project.id, todo.id, BoardColumnUpdate(wip_limit=5, expected_version=todo.version), owner.id
        )
        with pytest.raises(ConflictError):
            await board_service.update_column(
                project.id, todo.id, BoardColumnUpdate(wip_limit=2, expected_version=todo.version), owner.id
            )

        current = column_for(await board_service.get_board_by_project(project.id), "TODO")
        assert current.wip_limit == 5

    @pytest.mark.asyncio
    async def test_unknown_column(self, board_service, board, project, owner):
        with pytest.raises(NotFoundError):
            await board_service.update_column(project.id, 999, BoardColumnUpdate(), owner.id)

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, board_service, board, project, other_user):
        with pytest.raises(ForbiddenError):
            await board_service.update_column(
                project.id, board.columns[0].id, BoardColumnUpdate(wip_limit=1), other_user.id
            )

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            BoardColumnUpdate(wip_limit=-1)


class TestReorderColumns:

    @pytest.mark.asyncio
    async def test_reverse(self, board_service, board, project, owner):
        reversed_ids = [c.id for c in reversed(board.columns)]

        reordered = await board_service.reorder_columns(project.id, reversed_ids, owner.id)

        assert [c.id for c in reordered.columns] == reversed_ids
        assert [c.order_index for c in reordered.columns] == [0, 1, 2, 3, 4]
        assert [c.status_name for c in reordered.columns] == list(reversed(DEFAULT_ORDER))

    @pytest.mark.asyncio
    async def test_same_order_is_accepted(self, board_service, board, project, owner):
        ids = [c.id for c in board.columns]

        reordered = await board_service.reorder_columns(project.id, ids, owner.id)
        assert [c.id for c in reordered.columns] == ids

    @pytest.mark.asyncio
    async def test_duplicates_rejected(self, board_service, board, project, owner):
        ids = [c.id for c in board.columns]
        ids[-1] = ids[0]

        with pytest.raises(BadRequestError, match="duplicates"):
            await board_service.reorder_columns(project.id, ids, owner.id)

    @pytest.mark.asyncio
    async def test_missing_column_rejected(self, board_service, board, project, owner):
        with pytest.raises(BadRequestError, match="count mismatch"):
            await board_service.reorder_columns(project.id, [c.id for c in board.columns][:-1], owner.id)

    @pytest.mark.asyncio
    async def test_foreign_column_rejected(self, board_service, board, project, owner):
        ids = [c.id for c in board.columns]
        ids[0] = 999

        with pytest.raises(BadRequestError, match="does not belong"):
            await board_service.reorder_columns(project.id, ids, owner.id)

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, board_service, board, project, other_user):
        with pytest.raises(ForbiddenError):
            await board_service.reorder_columns(project.id, [c.id for c in board.columns], other_user.id)


class TestReconcileColumns:

    @pytest.mark.asyncio
    async def test_adds_and_removes(self, board_service, registry, board, project, owner, statuses):
        todo_before = column_for(board, "TODO")
        await board_service.update_column(project.id, todo_before.id, BoardColumnUpdate(wip_limit=4), owner.id)
        await registry.create_status(StatusCreate(name="REVIEW", order_index=10))
        await registry.update_status(statuses["BACKLOG"].id, StatusUpdate(is_active=False))

        reconciled = await board_service.reconcile_columns(project.id, owner.id)

        assert [c.status_name for c in reconciled.columns] == ["TODO", "IN PROGRESS", "DONE", "CANCELLED", "REVIEW"]
        assert [c.order_index for c in reconciled.columns] == [0, 1, 2, 3, 4]
        todo_after = column_for(reconciled, "TODO")
        assert todo_after.id == todo_before.id
        assert todo_after.wip_limit == 4

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, board_service, board, project, owner):
        reconciled = await board_service.reconcile_columns(project.id, owner.id)
        assert [c.id for c in reconciled.columns] == [c.id for c in board.columns]

    @pytest.mark.asyncio
    async def test_deleted_status_drops_column(self, board_service, registry, board, project, statuses):
        await registry.delete_status(statuses["BACKLOG"].id)

        current = await board_service.get_board_by_project(project.id)
        assert [c.status_name for c in current.columns] == DEFAULT_ORDER[1:]
        assert [c.order_index for c in current.columns] == [0, 1, 2, 3]


class TestMoveWorkItem:

    @pytest.mark.asyncio
    async def test_move(self, board_service, work_item_service, board, create_item, project, owner, statuses):
        item = await create_item()

        card = await board_service.move_work_item(project.id, item.id, statuses["IN PROGRESS"].id, owner.id)

        assert card.status_id == statuses["IN PROGRESS"].id
        assert card.key == item.key
        stored = await work_item_service.get_work_item(item.id)
        assert stored.status_name == "IN PROGRESS"

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, board_service, work_item_service, board, create_item, project, owner, statuses):
        item = await create_item()

        card = await board_service.move_work_item(project.id, item.id, statuses["TODO"].id, owner.id)

        assert card.status_id == statuses["TODO"].id
        stored = await work_item_service.get_work_item(item.id)
        assert stored.updated_at == item.updated_at

    @pytest.mark.asyncio
    async def test_status_without_column(self, board_service, registry, board, create_item, project, owner):
        review = await registry.create_status(StatusCreate(name="REVIEW", order_index=10))
        item = await create_item()

        with pytest.raises(BadRequestError):
            await board_service.move_work_item(project.id, item.id, review.id, owner.id)

    @pytest.mark.asyncio
    async def test_forbidden_transition(self, board_service, registry, board, create_item, project, owner, statuses):
        item = await create_item()
        await registry.create_status_transition(statuses["TODO"].id, statuses["CANCELLED"].id, is_allowed=False)

        with pytest.raises(InvalidStatusTransitionError):
            await board_service.move_work_item(project.id, item.id, statuses["CANCELLED"].id, owner.id)

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, board_service, board, create_item, project, other_user, statuses):
        item = await create_item()

        with pytest.raises(ForbiddenError):
            await board_service.move_work_item(project.id, item.id, statuses["DONE"].id, other_user.id)

    @pytest.mark.asyncio
    async def test_item_from_other_project(self, board_service, board, project, owner, statuses):
        with pytest.raises(NotFoundError):
            await board_service.move_work_item(project.id, 999, statuses["DONE"].id, owner.id)
