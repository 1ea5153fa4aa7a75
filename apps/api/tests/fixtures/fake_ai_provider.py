"""Scriptable AIProvider for tests.

Records every call; returns canned payloads or raises a configured error.
No network access.
"""
import asyncio
from typing import List, Optional

from services.ai_provider import AIProvider, AITaskSuggestion, LearningResources, ResourceLink


def make_suggestion(title: str, sprint: int, story_points: int = 3, subtasks: Optional[List[str]] = None) -> AITaskSuggestion:
    return AITaskSuggestion(
        title=title,
        description=f"{title} description",
        story_points=story_points,
        suggested_sprint_number=sprint,
        subtasks=subtasks or [],
    )


class FakeAIProvider(AIProvider):
    def __init__(
        self,
        tasks: Optional[List[AITaskSuggestion]] = None,
        subtasks: Optional[List[str]] = None,
        resources: Optional[LearningResources] = None,
        error: Optional[BaseException] = None,
        delay_s: float = 0.0,
    ):
        self.tasks = tasks or []
        self.subtasks = subtasks or []
        self.resources = resources or LearningResources(
            paid_courses=[ResourceLink(title="Course", url="https://example.com/course")],
            free_videos=[],
            summary_article="Summary",
        )
        self.error = error
        self.delay_s = delay_s
        self.calls: List[tuple] = []

    async def _maybe_fail(self):
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error

    async def suggest_tasks(self, project_title, project_description, total_sprints, coach_name):
        self.calls.append(("suggest_tasks", project_title, total_sprints))
        await self._maybe_fail()
        return list(self.tasks)

    async def suggest_subtasks(self, task_title):
        self.calls.append(("suggest_subtasks", task_title))
        await self._maybe_fail()
        return list(self.subtasks)

    async def suggest_learning_resources(self, topic):
        self.calls.append(("suggest_learning_resources", topic))
        await self._maybe_fail()
        return self.resources
