"""
Tests for planboard/utils/hierarchy.py

Covers the work item rule table, the parent rule check and the
entity-agnostic cycle walk.
"""

import pytest

from planboard.utils.hierarchy import (
    HierarchyRule,
    WORK_ITEM_HIERARCHY,
    PARENT_NOT_ALLOWED,
    PARENT_TYPE,
    MAX_DEPTH,
    check_parent_rule,
    would_create_cycle,
    depth_of,
)


def parent_lookup(parents):
    """Build a get_parent_id coroutine over a {child: parent} map."""
    calls = []

    async def get_parent_id(node_id):
        calls.append(node_id)
        return parents.get(node_id)

    get_parent_id.calls = calls
    return get_parent_id


class TestCheckParentRule:
    """Tests for the work item rule table."""

    def test_task_cannot_have_parent(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "task", "task", 0)
        assert result.ok is False
        assert result.reason == PARENT_NOT_ALLOWED

    def test_bug_cannot_have_parent(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "bug", "task", 0)
        assert result.ok is False
        assert result.reason == PARENT_NOT_ALLOWED

    def test_subtask_under_top_level_task(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "subtask", "task", 0)
        assert result.ok is True
        assert result.reason is None
        assert bool(result) is True

    def test_subtask_under_bug_is_rejected(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "subtask", "bug", 0)
        assert result.ok is False
        assert result.reason == PARENT_TYPE
        assert "task" in result.message

    def test_subtask_under_subtask_is_rejected(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "subtask", "subtask", 1)
        assert result.ok is False
        assert result.reason == PARENT_TYPE

    def test_subtask_under_nested_task_exceeds_depth(self):
        """A task that already has a parent cannot take subtasks."""
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "subtask", "task", 1)
        assert result.ok is False
        assert result.reason == MAX_DEPTH

    def test_unknown_child_type_allows_no_parent(self):
        result = check_parent_rule(WORK_ITEM_HIERARCHY, "story", "task", 0)
        assert result.ok is False
        assert result.reason == PARENT_NOT_ALLOWED

    def test_custom_table_with_deeper_nesting(self):
        """New types are a table edit."""
        rules = {
            "folder": HierarchyRule(frozenset({"folder"}), 3),
        }
        assert check_parent_rule(rules, "folder", "folder", 2).ok is True
        assert check_parent_rule(rules, "folder", "folder", 3).reason == MAX_DEPTH


class TestWouldCreateCycle:
    """Tests for the upward parent walk."""

    @pytest.mark.asyncio
    async def test_no_parent_is_never_a_cycle(self):
        assert await would_create_cycle(1, None, parent_lookup({})) is False

    @pytest.mark.asyncio
    async def test_self_parent_is_a_cycle(self):
        lookup = parent_lookup({})
        assert await would_create_cycle(1, 1, lookup) is True
        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_unrelated_chain_is_not_a_cycle(self):
        # 2 -> 3 -> root
        assert await would_create_cycle(1, 2, parent_lookup({2: 3})) is False

    @pytest.mark.asyncio
    async def test_parent_chain_leading_back_is_a_cycle(self):
        # Proposing 4 as parent of 1, where 4 -> 3 -> 2 -> 1
        parents = {4: 3, 3: 2, 2: 1}
        assert await would_create_cycle(1, 4, parent_lookup(parents)) is True

    @pytest.mark.asyncio
    async def test_deep_chain_leading_back_is_a_cycle(self):
        parents = {n: n - 1 for n in range(2, 200)}
        assert await would_create_cycle(1, 199, parent_lookup(parents)) is True

    @pytest.mark.asyncio
    async def test_terminates_on_existing_loop_elsewhere(self):
        """A corrupt loop not involving the item still ends the walk."""
        parents = {2: 3, 3: 4, 4: 2}
        assert await would_create_cycle(1, 2, parent_lookup(parents)) is True


class TestDepthOf:
    """Tests for depth_of."""

    @pytest.mark.asyncio
    async def test_root_has_depth_zero(self):
        assert await depth_of(1, parent_lookup({})) == 0

    @pytest.mark.asyncio
    async def test_counts_ancestors(self):
        assert await depth_of(3, parent_lookup({3: 2, 2: 1})) == 2

    @pytest.mark.asyncio
    async def test_loop_counts_each_node_once(self):
        assert await depth_of(1, parent_lookup({1: 2, 2: 3, 3: 1})) == 2
