"""
AI Provider

Capability interface for the AI-backed planning features, plus the Gemini
implementation.

Callers never inspect which provider they hold: they call the interface and
supply their own fallback value to the usage gate. Providers raise
AIProviderError on transport failures or payloads they cannot validate;
they never return partially parsed garbage.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional
import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.config import settings

logger = logging.getLogger(__name__)


class AIProviderError(Exception):
    """AI call failed or returned a payload that failed validation."""


# ---------------------------------------------------------------------------
# Payload shapes
# ---------------------------------------------------------------------------

class AITaskSuggestion(BaseModel):
    """One suggested task. Accepts the provider's camelCase keys."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(min_length=1)
    description: Optional[str] = None
    story_points: Optional[int] = Field(default=None, alias="storyPoints", ge=0)
    suggested_sprint_number: int = Field(alias="suggestedSprintNumber")
    subtasks: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("subtasks", mode="before")
    @classmethod
    def _none_subtasks(cls, v: Any) -> Any:
        return [] if v is None else v


class ResourceLink(BaseModel):
    title: str
    url: str


class LearningResources(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    paid_courses: List[ResourceLink] = Field(default_factory=list, alias="paidCourses")
    free_videos: List[ResourceLink] = Field(default_factory=list, alias="freeVideos")
    summary_article: str = Field(default="", alias="summaryArticle")


def parse_task_suggestions(payload: Any) -> List[AITaskSuggestion]:
    """
    Validate a decoded provider payload into task suggestions.

    Accepts either {"tasks": [...]} or a bare list. Items that fail the shape
    check are dropped; a payload that is not a list at all raises.
    """
    items = payload.get("tasks") if isinstance(payload, dict) else payload
    if items is None:
        items = []
    if not isinstance(items, list):
        raise AIProviderError(f"Expected a list of tasks, got {type(items).__name__}")

    suggestions: List[AITaskSuggestion] = []
    for index, item in enumerate(items):
        try:
            suggestions.append(AITaskSuggestion.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping malformed task suggestion #{index}: {e.error_count()} error(s)")
    return suggestions


def parse_subtask_titles(payload: Any) -> List[str]:
    items = payload.get("subtasks") if isinstance(payload, dict) else payload
    if items is None:
        return []
    if not isinstance(items, list):
        raise AIProviderError(f"Expected a list of subtasks, got {type(items).__name__}")
    return [str(t).strip() for t in items if isinstance(t, str) and t.strip()]


def _decode_json(raw_text: Optional[str]) -> Any:
    if not raw_text:
        raise AIProviderError("Empty response from AI provider")

    # Strip markdown fences if present
    text = raw_text.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AIProviderError(f"AI provider returned invalid JSON: {e}") from e


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class AIProvider(ABC):
    """What the planning features need from an AI backend."""

    @abstractmethod
    async def suggest_tasks(
        self,
        project_title: str,
        project_description: Optional[str],
        total_sprints: int,
        coach_name: str,
    ) -> List[AITaskSuggestion]:
        """Suggest tasks spread across sprints 1..total_sprints."""

    @abstractmethod
    async def suggest_subtasks(self, task_title: str) -> List[str]:
        """Break a stuck task into small first steps."""

    @abstractmethod
    async def suggest_learning_resources(self, topic: str) -> Optional[LearningResources]:
        """Find courses, videos and a short summary for a topic."""


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

TASK_SUGGESTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "tasks": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "storyPoints": {"type": "INTEGER"},
                    "suggestedSprintNumber": {"type": "INTEGER"},
                    "subtasks": {"type": "ARRAY", "items": {"type": "STRING"}},
                },
                "required": ["title", "description", "storyPoints", "suggestedSprintNumber"],
            },
        },
    },
    "required": ["tasks"],
}

SUBTASK_SCHEMA = {
    "type": "OBJECT",
    "properties": {"subtasks": {"type": "ARRAY", "items": {"type": "STRING"}}},
    "required": ["subtasks"],
}

_LINK_LIST = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {"title": {"type": "STRING"}, "url": {"type": "STRING"}},
        "required": ["title", "url"],
    },
}

LEARNING_RESOURCES_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "paidCourses": _LINK_LIST,
        "freeVideos": _LINK_LIST,
        "summaryArticle": {"type": "STRING"},
    },
    "required": ["paidCourses", "freeVideos", "summaryArticle"],
}


def build_task_prompt(
    project_title: str,
    project_description: Optional[str],
    total_sprints: int,
    coach_name: str,
) -> str:
    return (
        f"Your name is {coach_name} and you are a project planning assistant. "
        f"Create a task list for the project \"{project_title}\", "
        f"described as \"{project_description or 'No description'}\". "
        f"We plan to split this project into {total_sprints} sprints.\n\n"
        "Suggest actionable, varied and manageable tasks. Give each task a story point "
        "estimate between 1 and 8. For complex tasks also create 2-3 starter subtasks "
        "(as a \"subtasks\" array).\n\n"
        f"CRITICAL RULE: every sprint from 1 to {total_sprints} must receive at least one task. "
        "Order the work logically (foundations first, development in the middle, "
        "finishing and testing last). Aim for 2-3 tasks per sprint.\n\n"
        f"For each task set \"suggestedSprintNumber\" to the sprint (1-{total_sprints}) "
        "it belongs in. Respond in JSON."
    )


class GeminiProvider(AIProvider):
    """Gemini Flash via google-genai's async client."""

    def __init__(self, client: Any = None, model: Optional[str] = None):
        if client is None and settings.GOOGLE_AI_API_KEY:
            from google import genai
            client = genai.Client(api_key=settings.GOOGLE_AI_API_KEY)
            logger.info("Gemini client initialized for planning suggestions")
        self.client = client
        self.model = model or settings.AI_SUGGESTION_MODEL

    async def _generate_json(self, prompt: str, schema: dict) -> Any:
        if self.client is None:
            raise AIProviderError("Gemini client not initialized (GOOGLE_AI_API_KEY missing)")

        from google.genai import types as genai_types

        config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=0.4,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            raise AIProviderError(f"Gemini request failed: {type(e).__name__}: {e}") from e

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            logger.debug(
                "Gemini usage: in=%s out=%s",
                getattr(usage, "prompt_token_count", 0),
                getattr(usage, "candidates_token_count", 0),
            )
        return _decode_json(getattr(response, "text", None))

    async def suggest_tasks(
        self,
        project_title: str,
        project_description: Optional[str],
        total_sprints: int,
        coach_name: str,
    ) -> List[AITaskSuggestion]:
        logger.info(f"Generating AI task suggestions for '{project_title}' across {total_sprints} sprints")
        prompt = build_task_prompt(project_title, project_description, total_sprints, coach_name)
        payload = await self._generate_json(prompt, TASK_SUGGESTION_SCHEMA)
        return parse_task_suggestions(payload)

    async def suggest_subtasks(self, task_title: str) -> List[str]:
        prompt = (
            f"A user seems stuck on the task \"{task_title}\". Break it into 3-5 very small, "
            "simple, actionable first steps. Respond only with a JSON object holding the "
            "subtask titles."
        )
        payload = await self._generate_json(prompt, SUBTASK_SCHEMA)
        return parse_subtask_titles(payload)

    async def suggest_learning_resources(self, topic: str) -> Optional[LearningResources]:
        prompt = (
            f"Find learning material for the topic \"{topic}\": up to 3 paid courses and "
            "up to 3 free videos (title and url each), plus a short summary article of "
            "2-3 paragraphs. Respond in JSON."
        )
        payload = await self._generate_json(prompt, LEARNING_RESOURCES_SCHEMA)
        try:
            return LearningResources.model_validate(payload)
        except ValidationError as e:
            raise AIProviderError(f"Malformed learning resources payload: {e.error_count()} error(s)") from e


_provider: Optional[AIProvider] = None


def get_ai_provider() -> AIProvider:
    """FastAPI dependency. Tests override it with a fake provider."""
    global _provider
    if _provider is None:
        _provider = GeminiProvider()
    return _provider
