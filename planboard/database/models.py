"""
SQLAlchemy models for the planning database.

Schema includes:
- Users (read-only here, owned by the identity subsystem)
- Projects and their per-kind key sequences
- Statuses and explicit status transition rules
- Epics and work items with a single level of nesting
- Work item comments (only counted here, to guard deletes)
- One Kanban board per project with per-status columns
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
import enum

from ..utils.datetime_utils import get_local_now


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class WorkItemTypeEnum(str, enum.Enum):
    TASK = "task"
    BUG = "bug"
    SUBTASK = "subtask"


class EntityKindEnum(str, enum.Enum):
    EPIC = "epic"
    WORK_ITEM = "work_item"


# ==================== USERS ====================

class UserDB(Base):
    """Users, as provided by the identity subsystem."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ==================== PROJECTS ====================

class ProjectDB(Base):
    """Projects own epics, work items and at most one board."""
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        Index("idx_projects_owner", "owner_id"),
    )


class KeySequenceDB(Base):
    """
    Last issued key number per (project, entity kind).

    Only ever moves forward, so keys of deleted entities are never reissued.
    """
    __tablename__ = "key_sequences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # epic, work_item
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("project_id", "kind", name="uq_key_sequence_project_kind"),
    )


# ==================== STATUSES ====================

class StatusDB(Base):
    """Workflow statuses shared by epics and work items."""
    __tablename__ = "statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0)

    is_default_for_new: Mapped[bool] = mapped_column(Boolean, default=False)
    is_completed_status: Mapped[bool] = mapped_column(Boolean, default=False)
    is_cancelled_status: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        Index("idx_statuses_order", "order_index"),
        Index("idx_statuses_active", "is_active"),
    )


class StatusTransitionDB(Base):
    """Explicit allow/deny rule for moving from one status to another."""
    __tablename__ = "status_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_status_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False
    )
    to_status_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False
    )
    is_allowed: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    from_status: Mapped["StatusDB"] = relationship("StatusDB", foreign_keys=[from_status_id])
    to_status: Mapped["StatusDB"] = relationship("StatusDB", foreign_keys=[to_status_id])

    __table_args__ = (
        UniqueConstraint("from_status_id", "to_status_id", name="uq_status_transition"),
        Index("idx_transitions_from", "from_status_id"),
    )


# ==================== EPICS ====================

class EpicDB(Base):
    """Epics group work items inside a project."""
    __tablename__ = "epics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    key: Mapped[str] = mapped_column(String(50), nullable=False)  # PROJ-EPIC-N

    summary: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status_id: Mapped[int] = mapped_column(Integer, ForeignKey("statuses.id"), nullable=False)
    assignee_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=3)  # 1 (highest) .. 5 (lowest)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        UniqueConstraint("project_id", "key", name="uq_epic_project_key"),
        Index("idx_epics_status", "status_id"),
        Index("idx_epics_assignee", "assignee_id"),
    )


# ==================== WORK ITEMS ====================

class WorkItemDB(Base):
    """Tasks, bugs and subtasks."""
    __tablename__ = "work_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    epic_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("epics.id"), nullable=True)
    parent_work_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("work_items.id"), nullable=True
    )
    key: Mapped[str] = mapped_column(String(50), nullable=False)  # PROJ-N

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # task, bug, subtask
    summary: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status_id: Mapped[int] = mapped_column(Integer, ForeignKey("statuses.id"), nullable=False)
    assignee_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    reporter_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=3)

    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        UniqueConstraint("project_id", "key", name="uq_work_item_project_key"),
        Index("idx_work_items_project_status", "project_id", "status_id"),
        Index("idx_work_items_parent", "parent_work_item_id"),
        Index("idx_work_items_epic", "epic_id"),
        Index("idx_work_items_assignee", "assignee_id"),
    )


class WorkItemCommentDB(Base):
    """Comments on work items (managed by the comment subsystem)."""
    __tablename__ = "work_item_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    work_item_id: Mapped[int] = mapped_column(Integer, ForeignKey("work_items.id"), nullable=False)
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    __table_args__ = (
        Index("idx_comments_work_item", "work_item_id"),
    )


# ==================== BOARDS ====================

class BoardDB(Base):
    """The single Kanban board of a project."""
    __tablename__ = "boards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_local_now)

    columns: Mapped[List["BoardColumnDB"]] = relationship(
        "BoardColumnDB",
        back_populates="board",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BoardColumnDB.order_index",
    )

    __table_args__ = (
        UniqueConstraint("project_id", name="uq_board_project"),
    )


class BoardColumnDB(Base):
    """A board lane for one status. `version` is the optimistic-concurrency token."""
    __tablename__ = "board_columns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    status_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("statuses.id", ondelete="CASCADE"), nullable=False
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    wip_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # None = no limit
    is_collapsed: Mapped[bool] = mapped_column(Boolean, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    board: Mapped["BoardDB"] = relationship("BoardDB", back_populates="columns")
    status: Mapped["StatusDB"] = relationship("StatusDB", lazy="joined")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("board_id", "status_id", name="uq_board_column_status"),
        UniqueConstraint("board_id", "order_index", name="uq_board_column_order"),
    )
