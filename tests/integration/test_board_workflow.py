"""
Integration test for the board workflow.

Tests the complete flow:
1. Default statuses seeded
2. Project and board created, one column per status
3. Task created in TODO with the first work item key
4. Task moved across the board to DONE
5. A forbidden transition blocks the way back
"""

import pytest

from planboard.database.connection import Database
from planboard.database.repositories import UserRepository
from planboard.models import ProjectCreate, BoardCreate, WorkItemCreate, EpicCreate
from planboard.services import (
    StatusRegistry,
    ProjectService,
    WorkItemService,
    EpicService,
    BoardService,
    InvalidStatusTransitionError,
)


class TestBoardWorkflow:
    """End to end board flow on a fresh database."""

    @pytest.mark.asyncio
    async def test_complete_flow(self):
        db = Database("sqlite+aiosqlite:///:memory:")
        assert await db.initialize()

        try:
            registry = StatusRegistry(db, policy="permissive")
            seeded = {s.name: s for s in await registry.create_default_statuses()}
            assert list(seeded) == ["BACKLOG", "TODO", "IN PROGRESS", "DONE", "CANCELLED"]

            owner = await UserRepository(db).create("lead@example.com", "Lee", "Lead")
            project = await ProjectService(db).create_project(
                ProjectCreate(key="abc", name="Alpha"), owner_id=owner.id
            )
            assert project.key == "ABC"

            boards = BoardService(db, registry)
            board = await boards.create_board(project.id, BoardCreate(), owner.id)
            assert len(board.columns) == 5

            epic = await EpicService(db, registry).create_epic(
                EpicCreate(project_id=project.id, summary="First release"), owner.id
            )
            assert epic.key == "ABC-EPIC-1"

            work_items = WorkItemService(db, registry)
            task = await work_items.create_work_item(
                WorkItemCreate(project_id=project.id, type="task", summary="Ship it", epic_id=epic.id),
                owner.id,
            )
            assert task.key == "ABC-1"
            assert task.status_name == "TODO"

            for name in ("IN PROGRESS", "DONE"):
                card = await boards.move_work_item(project.id, task.id, seeded[name].id, owner.id)
                assert card.status_id == seeded[name].id

            view = await boards.get_board_view(project.id)
            done = next(c for c in view.columns if c.status_name == "DONE")
            assert [card.key for card in done.items] == ["ABC-1"]
            assert view.total_items == 1

            listed = await EpicService(db, registry).list_epics(project_id=project.id)
            assert (listed[0].work_item_count, listed[0].completed_work_item_count) == (1, 1)

            await registry.create_status_transition(seeded["DONE"].id, seeded["TODO"].id, is_allowed=False)
            allowed = {s.name for s in await registry.get_allowed_transitions(seeded["DONE"].id)}
            assert "TODO" not in allowed
            assert "IN PROGRESS" in allowed

            with pytest.raises(InvalidStatusTransitionError):
                await boards.move_work_item(project.id, task.id, seeded["TODO"].id, owner.id)

            still_done = await work_items.get_work_item(task.id)
            assert still_done.status_name == "DONE"

        finally:
            await db.close()
