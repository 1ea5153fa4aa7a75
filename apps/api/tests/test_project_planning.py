"""
Tests for AI-assisted project planning flows (DB-backed, fake provider).
"""
import asyncio
import pytest
from datetime import date, timedelta

from core.exceptions import UpgradeRequiredError, ValidationError
from models import Project, SubscriptionTier, Task, User
from services.ai_provider import AIProviderError
from services.project_planning import (
    ProjectDraft,
    add_ai_suggestions_to_project,
    break_down_task,
    create_project_with_ai,
)
from services.task_workflow import create_task
from fixtures.fake_ai_provider import FakeAIProvider, make_suggestion

TODAY = date(2024, 7, 1)


def _counter(db_session, user) -> int:
    db_session.expire_all()
    return db_session.query(User).filter(User.id == user.id).one().ai_usage_count


class TestCreateProject:

    @pytest.mark.asyncio
    async def test_suggestions_become_sprints_and_tasks(self, db_session, free_user):
        provider = FakeAIProvider(tasks=[
            make_suggestion("Research", 1, subtasks=["Read docs"]),
            make_suggestion("Build", 3),
            make_suggestion("Launch", 5),
        ])

        outcome = await create_project_with_ai(
            db_session, free_user, provider, ProjectDraft(title="Side project", requested_sprints=5), TODAY
        )

        project = outcome.project
        assert project.total_sprints == 5
        assert [s.sprint_number for s in project.sprints] == [1, 2, 3, 4, 5]
        assert [s.status for s in project.sprints] == ["active"] + ["planning"] * 4
        assert [len(s.tasks) for s in project.sprints] == [1, 0, 1, 0, 1]
        assert project.estimated_completion_date == TODAY + timedelta(days=70)
        assert project.sprints[0].tasks[0].subtasks[0].title == "Read docs"
        assert project.sprints[0].tasks[0].is_ai_assisted is True
        assert outcome.quota_exceeded is False
        assert outcome.tasks_added == 3
        assert provider.calls == [("suggest_tasks", "Side project", 5)]
        assert _counter(db_session, free_user) == 1

    @pytest.mark.asyncio
    async def test_empty_suggestions_give_single_active_sprint(self, db_session, free_user):
        outcome = await create_project_with_ai(
            db_session, free_user, FakeAIProvider(tasks=[]), ProjectDraft(title="Empty"), TODAY
        )

        project = outcome.project
        assert project.total_sprints == 1
        assert len(project.sprints) == 1
        assert project.sprints[0].status == "active"
        assert project.sprints[0].tasks == []
        assert project.estimated_completion_date == TODAY + timedelta(days=14)

    @pytest.mark.asyncio
    async def test_exhausted_quota_still_creates_project(self, db_session, make_user):
        """Free user at the limit: provider not called, counter unchanged, upgrade flag set."""
        user = make_user(SubscriptionTier.FREE.value, ai_usage_count=10)
        provider = FakeAIProvider(tasks=[make_suggestion("Never", 1)])

        outcome = await create_project_with_ai(db_session, user, provider, ProjectDraft(title="Blocked"), TODAY)

        assert outcome.quota_exceeded is True
        assert provider.calls == []
        assert outcome.project.total_sprints == 1
        assert _counter(db_session, user) == 10

    @pytest.mark.asyncio
    async def test_provider_failure_is_not_fatal(self, db_session, free_user):
        provider = FakeAIProvider(error=AIProviderError("bad payload"))

        outcome = await create_project_with_ai(db_session, free_user, provider, ProjectDraft(title="Flaky"), TODAY)

        assert outcome.suggestions_failed is True
        assert outcome.project.total_sprints == 1
        assert db_session.query(Project).count() == 1

    @pytest.mark.asyncio
    async def test_timeout_is_not_fatal_and_not_counted(self, db_session, free_user, monkeypatch):
        from core.config import settings
        monkeypatch.setattr(settings, "AI_REQUEST_TIMEOUT_S", 0.01)
        provider = FakeAIProvider(tasks=[make_suggestion("Slow", 1)], delay_s=1.0)

        outcome = await create_project_with_ai(db_session, free_user, provider, ProjectDraft(title="Slow"), TODAY)

        assert outcome.suggestions_failed is True
        assert _counter(db_session, free_user) == 0

    @pytest.mark.asyncio
    async def test_free_tier_project_limit(self, db_session, free_user):
        await create_project_with_ai(db_session, free_user, FakeAIProvider(), ProjectDraft(title="First"), TODAY)

        with pytest.raises(UpgradeRequiredError):
            await create_project_with_ai(db_session, free_user, FakeAIProvider(), ProjectDraft(title="Second"), TODAY)

    @pytest.mark.asyncio
    async def test_paid_tier_has_no_project_limit(self, db_session, pro_user):
        for title in ("One", "Two", "Three"):
            await create_project_with_ai(db_session, pro_user, FakeAIProvider(), ProjectDraft(title=title), TODAY)
        assert db_session.query(Project).filter(Project.owner_id == pro_user.id).count() == 3
        assert _counter(db_session, pro_user) == 0

    @pytest.mark.asyncio
    async def test_one_week_sprints_from_user_setting(self, db_session, make_user):
        user = make_user(SubscriptionTier.PRO.value, sprint_duration_weeks=1)
        provider = FakeAIProvider(tasks=[make_suggestion("A", 2)])

        outcome = await create_project_with_ai(db_session, user, provider, ProjectDraft(title="Weekly"), TODAY)

        assert outcome.project.sprint_duration_weeks == 1
        assert outcome.project.sprints[1].start_date == TODAY + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_invalid_input(self, db_session, free_user):
        with pytest.raises(ValidationError):
            await create_project_with_ai(db_session, free_user, FakeAIProvider(), ProjectDraft(title="  "), TODAY)
        with pytest.raises(ValidationError):
            await create_project_with_ai(
                db_session, free_user, FakeAIProvider(), ProjectDraft(title="X", requested_sprints=0), TODAY
            )


class TestAddSuggestions:

    @pytest.mark.asyncio
    async def test_suggestions_clamped_into_existing_sprints(self, db_session, pro_user):
        first = FakeAIProvider(tasks=[make_suggestion("A", 1), make_suggestion("B", 2)])
        outcome = await create_project_with_ai(db_session, pro_user, first, ProjectDraft(title="Grow"), TODAY)
        project = outcome.project

        more = FakeAIProvider(tasks=[make_suggestion("C", 2), make_suggestion("D", 9)])
        result = await add_ai_suggestions_to_project(db_session, pro_user, more, project)

        assert result.tasks_added == 2
        assert project.total_sprints == 2
        assert [t.title for t in project.sprints[1].tasks] == ["B", "C", "D"]
        assert [t.position for t in project.sprints[1].tasks] == [0, 1, 2]


class TestBreakdown:

    async def _task(self, db_session, user):
        outcome = await create_project_with_ai(
            db_session, user, FakeAIProvider(), ProjectDraft(title="Stuck"), TODAY
        )
        task = create_task(db_session, outcome.project.sprints[0], user, "Write chapter one")
        db_session.commit()
        return task

    @pytest.mark.asyncio
    async def test_subtasks_and_resources(self, db_session, free_user):
        task = await self._task(db_session, free_user)
        provider = FakeAIProvider(subtasks=["Outline", "First paragraph"])

        outcome = await break_down_task(db_session, free_user, provider, task)

        assert [s.title for s in outcome.subtasks] == ["Outline", "First paragraph"]
        assert all(s.is_ai_assisted for s in outcome.subtasks)
        assert outcome.learning_resources is not None
        assert outcome.learning_resources.summary_article == "Summary"
        assert _counter(db_session, free_user) == 3  # planning + subtasks + resources

    @pytest.mark.asyncio
    async def test_quota_exhausted_returns_fallbacks(self, db_session, free_user):
        task = await self._task(db_session, free_user)
        db_session.query(User).filter(User.id == free_user.id).update({"ai_usage_count": 10})
        db_session.commit()
        db_session.refresh(free_user)
        provider = FakeAIProvider(subtasks=["Nope"])

        outcome = await break_down_task(db_session, free_user, provider, task)

        assert outcome.quota_exceeded is True
        assert outcome.subtasks == []
        assert outcome.learning_resources is None
        assert provider.calls == []
        assert db_session.query(Task).filter(Task.id == task.id).one().subtasks == []

    @pytest.mark.asyncio
    async def test_provider_error_keeps_task_unchanged(self, db_session, pro_user):
        task = await self._task(db_session, pro_user)
        provider = FakeAIProvider(error=AIProviderError("down"))

        outcome = await break_down_task(db_session, pro_user, provider, task)

        assert outcome.suggestions_failed is True
        assert outcome.subtasks == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_releases(self, db_session, free_user):
        task = await self._task(db_session, free_user)
        provider = FakeAIProvider(error=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await break_down_task(db_session, free_user, provider, task)

        assert _counter(db_session, free_user) == 1  # only the planning call
