"""Core modules - models, errors, sprint resolution and task fan-out."""
from .models import (
    AdoSettings, SprintLocator, Iteration, UserStory, TaskDraft, TaskTemplate,
    CreationStatus, CreationResult, CreationReport, SprintSelection,
)
from .errors import (
    TaskPilotError, MalformedLocatorError, SprintNotFoundError, RemoteCallError,
    AreaPathInvalidError, AuthenticationError, RemoteTimeoutError, TeamNotFoundError,
    TemplateStoreError,
)
# Orchestrator imported separately to avoid circular imports

__all__ = [
    "AdoSettings", "SprintLocator", "Iteration", "UserStory", "TaskDraft", "TaskTemplate",
    "CreationStatus", "CreationResult", "CreationReport", "SprintSelection",
    "TaskPilotError", "MalformedLocatorError", "SprintNotFoundError", "RemoteCallError",
    "AreaPathInvalidError", "AuthenticationError", "RemoteTimeoutError", "TeamNotFoundError",
    "TemplateStoreError",
]
