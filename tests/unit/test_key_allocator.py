"""
Tests for planboard/services/key_allocator.py

Pure suffix parsing plus allocation against a real database.
"""

import pytest

from planboard.database.models import EntityKindEnum
from planboard.database.repositories import WorkItemRepository, EpicRepository
from planboard.services import NotFoundError, parse_key_suffixes, key_prefix


class TestKeyPrefix:

    def test_work_item_prefix(self):
        assert key_prefix("ABC", EntityKindEnum.WORK_ITEM) == "ABC-"

    def test_epic_prefix(self):
        assert key_prefix("ABC", EntityKindEnum.EPIC) == "ABC-EPIC-"


class TestParseKeySuffixes:

    def test_no_keys(self):
        assert parse_key_suffixes([], "ABC-") == 0

    def test_takes_highest_across_gaps(self):
        assert parse_key_suffixes(["ABC-1", "ABC-5", "ABC-3"], "ABC-") == 5

    def test_ignores_malformed_suffixes(self):
        keys = ["ABC-2", "ABC-XYZ", "ABC-", "ABC-7b", "ABC--9", "ABC-1.5"]
        assert parse_key_suffixes(keys, "ABC-") == 2

    def test_ignores_other_prefixes(self):
        assert parse_key_suffixes(["ABC-EPIC-9", "XYZ-40", "ABC-3"], "ABC-") == 3

    def test_ignores_non_ascii_digits(self):
        assert parse_key_suffixes(["ABC-²", "ABC-٤"], "ABC-") == 0


async def _insert_work_item(db, project_id, status_id, key):
    return await WorkItemRepository(db).create({
        "project_id": project_id,
        "key": key,
        "type": "task",
        "summary": f"Imported {key}",
        "status_id": status_id,
    })


class TestNextKey:

    @pytest.mark.asyncio
    async def test_first_work_item_key(self, key_allocator, project):
        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-1"

    @pytest.mark.asyncio
    async def test_first_epic_key(self, key_allocator, project):
        assert await key_allocator.next_key(project.id, EntityKindEnum.EPIC) == "TST-EPIC-1"

    @pytest.mark.asyncio
    async def test_kinds_are_counted_separately(self, key_allocator, project):
        await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM)
        await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM)
        assert await key_allocator.next_key(project.id, EntityKindEnum.EPIC) == "TST-EPIC-1"
        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-3"

    @pytest.mark.asyncio
    async def test_continues_after_highest_existing_key(self, db, key_allocator, project, statuses):
        """Existing TST-1 and TST-5 (with a gap) give TST-6; malformed keys are ignored."""
        todo = statuses["TODO"].id
        await _insert_work_item(db, project.id, todo, "TST-1")
        await _insert_work_item(db, project.id, todo, "TST-5")
        await _insert_work_item(db, project.id, todo, "TST-XYZ")

        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-6"
        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-7"

    @pytest.mark.asyncio
    async def test_counter_catches_up_with_imported_keys(self, db, key_allocator, project, statuses):
        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-1"
        await _insert_work_item(db, project.id, statuses["TODO"].id, "TST-40")

        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-41"

    @pytest.mark.asyncio
    async def test_keys_are_not_reused_after_delete(self, db, key_allocator, project, statuses):
        repo = WorkItemRepository(db)
        key = await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM)
        item = await _insert_work_item(db, project.id, statuses["TODO"].id, key)
        await repo.delete(item.id)

        assert await key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM) == "TST-2"

    @pytest.mark.asyncio
    async def test_epic_scan_ignores_work_item_keys(self, db, key_allocator, project, statuses):
        await _insert_work_item(db, project.id, statuses["TODO"].id, "TST-12")
        await EpicRepository(db).create({
            "project_id": project.id,
            "key": "TST-EPIC-4",
            "summary": "Imported epic",
            "status_id": statuses["TODO"].id,
        })

        assert await key_allocator.next_key(project.id, EntityKindEnum.EPIC) == "TST-EPIC-5"

    @pytest.mark.asyncio
    async def test_unknown_project(self, key_allocator):
        with pytest.raises(NotFoundError):
            await key_allocator.next_key(999, EntityKindEnum.WORK_ITEM)
