from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from core.database import Base
from enum import Enum
import uuid


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SprintStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


class TaskStatus(str, Enum):
    """Ordered workflow, but any-to-any transitions are allowed."""
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class User(Base):
    __tablename__ = "app_user"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, index=True, nullable=True)
    display_name = Column(Text, nullable=True)

    # --- SUBSCRIPTION ---
    subscription_tier = Column(Text, default=SubscriptionTier.FREE.value, nullable=False)  # 'free', 'pro', 'enterprise'
    # Monotonic, never reset. Only gates the free tier.
    ai_usage_count = Column(Integer, default=0, nullable=False)

    # --- SETTINGS ---
    timezone = Column(Text, nullable=True)  # IANA timezone (e.g. "Europe/Istanbul"); badge rules use local time
    sprint_duration_weeks = Column(Integer, default=2, nullable=False)  # 1 or 2
    ai_coach_name = Column(Text, default="Coach", nullable=False)

    @property
    def is_free_tier(self) -> bool:
        return self.subscription_tier == SubscriptionTier.FREE.value

    projects = relationship("Project", back_populates="owner", lazy="dynamic")
    earned_badges = relationship("UserBadge", back_populates="user", lazy="dynamic")
    checkins = relationship("DailyCheckin", back_populates="user", lazy="dynamic")

    __table_args__ = (
        CheckConstraint("ai_usage_count >= 0", name="ck_app_user_ai_usage_count_non_negative"),
        CheckConstraint(
            "subscription_tier IN ('free', 'pro', 'enterprise')",
            name="ck_app_user_subscription_tier_enum",
        ),
        CheckConstraint("sprint_duration_weeks IN (1, 2)", name="ck_app_user_sprint_duration_weeks"),
    )


class Badge(Base):
    """
    Badge catalog row.

    Mirrors services.badge_catalog.BADGE_CATALOG; rows are upserted at startup
    and never edited by users.
    """
    __tablename__ = "badge"

    id = Column(Text, primary_key=True)  # e.g. 'goal-hunter'
    name = Column(Text, nullable=False)
    criteria = Column(Text, nullable=False)
    icon = Column(Text, nullable=False)
    badge_type = Column(Text, nullable=False)  # 'achievement', 'consistency', 'streak', 'planning'
    catalog_version = Column(Integer, nullable=False)


class UserBadge(Base):
    """Earned badge. Append-only: rows are never updated or deleted."""
    __tablename__ = "user_badge"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    badge_id = Column(Text, ForeignKey("badge.id"), nullable=False)
    earned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="earned_badges")
    badge = relationship("Badge")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
        Index("ix_user_badge_user_id", "user_id"),
    )


class DailyCheckin(Base):
    __tablename__ = "daily_checkin"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    # Several check-ins per day are allowed; badge rules count distinct local dates.
    checked_in_at = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)

    user = relationship("User", back_populates="checkins")


class Project(Base):
    """
    A user's project, broken into contiguous sprints.

    total_sprints is fixed at creation from the AI allocation.
    """
    __tablename__ = "project"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False)  # Index in __table_args__
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    color_theme = Column(Text, default="indigo", nullable=False)
    status = Column(Text, default=ProjectStatus.ACTIVE.value, nullable=False)  # 'active', 'paused', 'completed'

    # Plan structure
    total_sprints = Column(Integer, nullable=False)
    sprint_duration_weeks = Column(Integer, nullable=False)
    target_completion_date = Column(Date, nullable=True)  # What the user asked for
    estimated_completion_date = Column(Date, nullable=False)  # What the allocation produced

    owner = relationship("User", back_populates="projects")
    sprints = relationship(
        "Sprint",
        back_populates="project",
        order_by="Sprint.sprint_number",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_project_owner_id", "owner_id"),
        Index("ix_project_status", "status"),
        CheckConstraint("total_sprints >= 1", name="ck_project_total_sprints_positive"),
    )


class Sprint(Base):
    """
    A time-boxed iteration within a project.

    State machine: planning -> active -> completed.
    At most one active sprint per project.
    """
    __tablename__ = "sprint"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("project.id", ondelete="CASCADE"), nullable=False)  # Index in __table_args__
    sprint_number = Column(Integer, nullable=False)  # 1-based, contiguous
    goal = Column(Text, nullable=True)
    status = Column(Text, default=SprintStatus.PLANNING.value, nullable=False)  # 'planning', 'active', 'completed'

    # Inclusive date range; consecutive sprints never overlap
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # Filled on completion
    velocity_points = Column(Integer, nullable=True)
    retrospective_good = Column(Text, nullable=True)
    retrospective_improve = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    project = relationship("Project", back_populates="sprints")
    tasks = relationship(
        "Task",
        back_populates="sprint",
        order_by="Task.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "sprint_number", name="uq_sprint_project_number"),
        Index("ix_sprint_project_id", "project_id"),
        Index(
            "uq_sprint_one_active_per_project",
            "project_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


class Task(Base):
    __tablename__ = "task"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sprint_id = Column(UUID(as_uuid=True), ForeignKey("sprint.id", ondelete="CASCADE"), nullable=False)  # Index in __table_args__
    position = Column(Integer, default=0, nullable=False)  # Order within the sprint

    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Text, default=TaskStatus.BACKLOG.value, nullable=False)
    story_points = Column(Integer, nullable=True)

    # Provenance
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=True)
    is_ai_assisted = Column(Boolean, default=False, nullable=False)

    planned_date = Column(Date, nullable=True)  # Day the user planned to work on it
    completed_at = Column(DateTime(timezone=True), nullable=True)  # Set once, on first transition into done

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sprint = relationship("Sprint", back_populates="tasks")
    subtasks = relationship(
        "Subtask",
        back_populates="task",
        order_by="Subtask.position",
        cascade="all, delete-orphan",
    )
    status_history = relationship(
        "TaskStatusChange",
        back_populates="task",
        order_by="TaskStatusChange.changed_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_task_sprint_id", "sprint_id"),
        Index("ix_task_planned_date", "planned_date"),
    )


class Subtask(Base):
    __tablename__ = "subtask"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("task.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    title = Column(Text, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=True)
    is_ai_assisted = Column(Boolean, default=False, nullable=False)

    task = relationship("Task", back_populates="subtasks")


class TaskStatusChange(Base):
    """Append-only audit log of task status transitions."""
    __tablename__ = "task_status_change"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("task.id", ondelete="CASCADE"), nullable=False, index=True)
    changed_by_id = Column(UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    from_status = Column(Text, nullable=False)
    to_status = Column(Text, nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False)

    task = relationship("Task", back_populates="status_history")
