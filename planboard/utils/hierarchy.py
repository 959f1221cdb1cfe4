"""
Parent/child rules and cycle detection for hierarchical entities.

The rule table says which parent types a child type accepts and how deep
the child may sit. The cycle walk knows nothing about entity types; it only
needs a coroutine that returns the parent id of a node, so the same helpers
serve work items and any other tree-shaped entity.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, FrozenSet, Mapping, Optional, Set

from ..database.models import WorkItemTypeEnum

logger = logging.getLogger(__name__)

GetParentId = Callable[[int], Awaitable[Optional[int]]]

PARENT_NOT_ALLOWED = "parent_not_allowed"
PARENT_TYPE = "parent_type"
MAX_DEPTH = "max_depth"


@dataclass(frozen=True)
class HierarchyRule:
    """Which parent types a child type may have, and its maximum depth (0 = root only)."""
    allowed_parent_types: FrozenSet[str] = field(default_factory=frozenset)
    max_depth: int = 0


@dataclass
class HierarchyCheck:
    """Outcome of a rule check."""
    ok: bool
    reason: Optional[str] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok


WORK_ITEM_HIERARCHY: Dict[str, HierarchyRule] = {
    WorkItemTypeEnum.TASK.value: HierarchyRule(frozenset(), 0),
    WorkItemTypeEnum.BUG.value: HierarchyRule(frozenset(), 0),
    WorkItemTypeEnum.SUBTASK.value: HierarchyRule(frozenset({WorkItemTypeEnum.TASK.value}), 1),
}


def check_parent_rule(
    rules: Mapping[str, HierarchyRule],
    child_type: str,
    parent_type: str,
    parent_depth: int,
) -> HierarchyCheck:
    """
    Check whether a child of child_type may sit under a parent of parent_type.

    Args:
        rules: Rule table keyed by type
        child_type: Type of the child
        parent_type: Type of the proposed parent
        parent_depth: Number of ancestors the proposed parent already has

    Returns:
        HierarchyCheck with the first violated rule, if any
    """
    rule = rules.get(child_type)
    if rule is None or not rule.allowed_parent_types or rule.max_depth < 1:
        return HierarchyCheck(
            ok=False,
            reason=PARENT_NOT_ALLOWED,
            message=f"A {child_type} cannot have a parent",
        )

    if parent_type not in rule.allowed_parent_types:
        allowed = ", ".join(sorted(rule.allowed_parent_types))
        return HierarchyCheck(
            ok=False,
            reason=PARENT_TYPE,
            message=f"A {child_type} can only have a parent of type: {allowed}",
        )

    if parent_depth + 1 > rule.max_depth:
        return HierarchyCheck(
            ok=False,
            reason=MAX_DEPTH,
            message=f"A {child_type} cannot be nested more than {rule.max_depth} level(s) deep",
        )

    return HierarchyCheck(ok=True)


async def would_create_cycle(
    item_id: int,
    proposed_parent_id: Optional[int],
    get_parent_id: GetParentId,
) -> bool:
    """
    Check whether making proposed_parent_id the parent of item_id closes a loop.

    Walks upward from the proposed parent. Stops on reaching a root or on
    revisiting any node, so it terminates even when the stored chain is
    already corrupt.
    """
    if proposed_parent_id is None:
        return False

    visited: Set[int] = {item_id}
    current: Optional[int] = proposed_parent_id

    while current is not None:
        if current in visited:
            logger.debug(f"Cycle found: {item_id} reaches itself through {current}")
            return True
        visited.add(current)
        current = await get_parent_id(current)

    return False


async def depth_of(node_id: int, get_parent_id: GetParentId) -> int:
    """Number of ancestors above node_id. A looping chain counts each node once."""
    depth = 0
    seen: Set[int] = {node_id}
    current = await get_parent_id(node_id)

    while current is not None and current not in seen:
        depth += 1
        seen.add(current)
        current = await get_parent_id(current)

    return depth
