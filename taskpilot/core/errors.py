"""Exception types raised by TaskPilot."""
from typing import Optional


class TaskPilotError(Exception):
    """Base class for all TaskPilot errors."""


class MalformedLocatorError(TaskPilotError):
    """Raised when a sprint URL has no usable path segments."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(
            f"Invalid URL format ({reason}). Please provide a valid Azure DevOps sprint URL."
        )


class SprintNotFoundError(TaskPilotError):
    """Raised when no iteration matches the sprint name taken from the URL."""

    def __init__(self, sprint_name: str, team_name: Optional[str] = None):
        self.sprint_name = sprint_name
        self.team_name = team_name
        scope = f"team '{team_name}'" if team_name else "the project"
        super().__init__(f'Sprint "{sprint_name}" could not be found in the schedule of {scope}.')


class RemoteCallError(TaskPilotError):
    """Raised when an Azure DevOps call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message


class AreaPathInvalidError(RemoteCallError):
    """The query referenced an area path that does not exist (TF51011)."""


class AuthenticationError(RemoteCallError):
    """The PAT was rejected or lacks the required scopes."""


class RemoteTimeoutError(RemoteCallError):
    """The call did not complete within the configured timeout."""


class TeamNotFoundError(RemoteCallError):
    """The team named in the sprint URL does not exist in the project."""


class TemplateStoreError(TaskPilotError):
    """Raised when a task template cannot be saved, loaded or deleted."""
