"""Data models for TaskPilot."""
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from enum import Enum
from urllib.parse import quote
import uuid

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskpilot.utils.config import Config

LEGACY_DOMAIN_SUFFIX = "visualstudio.com"
NEW_DOMAIN = "dev.azure.com"


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return isoparse(str(value))
    except ValueError:
        return None


class AdoSettings(BaseModel):
    """Credentials and scope of one Azure DevOps connection."""
    model_config = ConfigDict(frozen=True)

    token: str
    organization: str = Field(description="Org slug (dev.azure.com) or full legacy domain (*.visualstudio.com)")
    project: str

    @field_validator("token", "project")
    @classmethod
    def _not_blank(cls, value: str, info) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name} is required")
        return value

    @field_validator("organization")
    @classmethod
    def _normalize_organization(cls, value: str) -> str:
        value = value.strip()
        for prefix in ("https://", "http://"):
            if value.lower().startswith(prefix):
                value = value[len(prefix):]
        if value.lower().startswith(NEW_DOMAIN + "/"):
            value = value[len(NEW_DOMAIN) + 1:]
        value = value.strip("/")
        if not value:
            raise ValueError("organization is required")
        return value

    @property
    def is_legacy_domain(self) -> bool:
        return LEGACY_DOMAIN_SUFFIX in self.organization.lower()

    @property
    def organization_url(self) -> str:
        if self.is_legacy_domain:
            return f"https://{self.organization}"
        return f"https://{NEW_DOMAIN}/{self.organization}"

    @property
    def project_url(self) -> str:
        return f"{self.organization_url}/{quote(self.project, safe='')}"

    @property
    def identity_url(self) -> str:
        """Base URL of the identity (vssps) service for this organization."""
        if self.is_legacy_domain:
            account = self.organization.split(".")[0]
            return f"https://{account}.vssps.{LEGACY_DOMAIN_SUFFIX}"
        return f"https://vssps.{NEW_DOMAIN}/{self.organization}"


class SprintLocator(BaseModel):
    """Team and sprint names parsed from a sprint board URL."""
    model_config = ConfigDict(frozen=True)

    team_name: Optional[str] = None
    sprint_name: str = Field(min_length=1)


class Iteration(BaseModel):
    """Iteration (sprint) as listed by team settings."""
    id: Optional[str] = None
    name: str
    path: str = Field(description="Canonical iteration path, used for queries")
    start_date: Optional[datetime] = None
    finish_date: Optional[datetime] = None
    time_frame: Optional[str] = Field(default=None, description="past, current or future")

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Iteration":
        attributes = payload.get("attributes") or {}
        return cls(
            id=payload.get("id"),
            name=payload.get("name") or "",
            path=payload.get("path") or "",
            start_date=_parse_date(attributes.get("startDate")),
            finish_date=_parse_date(attributes.get("finishDate")),
            time_frame=attributes.get("timeFrame"),
        )


class UserStory(BaseModel):
    """Snapshot of a User Story work item."""
    model_config = ConfigDict(frozen=True)

    id: int
    title: str = ""
    state: Optional[str] = None
    work_item_type: Optional[str] = None
    url: str = ""
    iteration_path: str = ""
    area_path: str = ""

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "UserStory":
        fields = payload.get("fields") or {}
        return cls(
            id=payload["id"],
            title=fields.get(Config.get_field("title")) or "",
            state=fields.get(Config.get_field("state")),
            work_item_type=fields.get(Config.get_field("work_item_type")),
            url=payload.get("url") or "",
            iteration_path=fields.get(Config.get_field("iteration_path")) or "",
            area_path=fields.get(Config.get_field("area_path")) or "",
        )


class TaskDraft(BaseModel):
    """Task authored by the user, created once per user story."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    description: str = ""
    assigned_to: Optional[str] = Field(default=None, description="Email of the assignee")
    custom_fields: Dict[str, Any] = Field(default_factory=dict, description="Field reference name -> value")

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Task title is required")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _description_text(cls, value: Any) -> str:
        return value or ""

    @field_validator("assigned_to")
    @classmethod
    def _assignee(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _drop_empty_fields(cls, value: Any) -> Dict[str, Any]:
        if not value:
            return {}
        return {
            str(name).strip(): field_value
            for name, field_value in dict(value).items()
            if str(name).strip() and field_value is not None and field_value != ""
        }


class TaskTemplate(BaseModel):
    """Named, ordered list of task drafts."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    tasks: List[TaskDraft] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    work_item_id: Optional[int] = Field(default=None, description="Backing work item (Azure store only)")

    @field_validator("id", mode="before")
    @classmethod
    def _id_text(cls, value: Any) -> str:
        return str(value)

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Template name is required")
        return value


class CreationStatus(str, Enum):
    """Outcome of one task creation."""
    SUCCESS = "success"
    ERROR = "error"


class CreationResult(BaseModel):
    """Outcome of creating one task under one user story."""
    model_config = ConfigDict(frozen=True)

    user_story_id: int
    user_story_title: str
    task_title: str
    status: CreationStatus
    task_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CreationStatus.SUCCESS


class CreationReport(BaseModel):
    """All results of one fan-out run, in creation order."""
    model_config = ConfigDict(frozen=True)

    results: List[CreationResult] = Field(default_factory=list)
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> List[CreationResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[CreationResult]:
        return [r for r in self.results if not r.ok]

    @property
    def total(self) -> int:
        return len(self.results)


class SprintSelection(BaseModel):
    """User stories fetched for one sprint URL, with the context used to find them."""
    locator: SprintLocator
    iteration: Iteration
    area_path: str = Field(description="Team area path, or the project when no team is known")
    stories: List[UserStory] = Field(default_factory=list)

    def without_story(self, story_id: int) -> "SprintSelection":
        """Copy with one story removed from the working set (nothing is deleted remotely)."""
        return self.model_copy(update={"stories": [s for s in self.stories if s.id != story_id]})
