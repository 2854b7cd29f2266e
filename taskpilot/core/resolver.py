"""Resolve a parsed sprint locator into one iteration."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from taskpilot.core.errors import RemoteCallError, SprintNotFoundError, TeamNotFoundError
from taskpilot.core.models import Iteration, SprintLocator

logger = logging.getLogger(__name__)

_NO_DATE = datetime.min.replace(tzinfo=timezone.utc)


def _start_key(iteration: Iteration) -> datetime:
    start = iteration.start_date
    if start is None:
        return _NO_DATE
    if start.tzinfo is None:
        return start.replace(tzinfo=timezone.utc)
    return start


def _most_recent(candidates: List[Iteration]) -> Iteration:
    # max() keeps the first of equal keys, so ties stay in listing order
    return max(candidates, key=_start_key)


def match_iteration(sprint_name: str, iterations: List[Iteration], team_name: Optional[str] = None) -> Iteration:
    """
    Pick the iteration a sprint name refers to.

    1. Case-insensitive exact name match.
    2. Otherwise case-insensitive substring match.
    When a step yields several iterations, the one with the latest start
    date wins ("Sprint 1" picks the most recent sprint whose name holds it).

    Raises:
        SprintNotFoundError: If neither step matches anything
    """
    wanted = sprint_name.strip().lower()

    exact = [it for it in iterations if it.name.strip().lower() == wanted]
    if len(exact) == 1:
        return exact[0]
    if exact:
        return _most_recent(exact)

    partial = [it for it in iterations if wanted in it.name.lower()]
    if len(partial) == 1:
        return partial[0]
    if partial:
        chosen = _most_recent(partial)
        logger.info(
            "Sprint %r matched %d iterations by substring, using most recent: %s",
            sprint_name, len(partial), chosen.path,
        )
        return chosen

    raise SprintNotFoundError(sprint_name, team_name)


class IterationResolver:
    """Turns a SprintLocator into the iteration whose path scopes the story query."""

    def __init__(self, client):
        """
        Args:
            client: ADOClient (or any object with list_iterations)
        """
        self.client = client

    def fetch_iterations(self, team_name: Optional[str] = None) -> List[Iteration]:
        try:
            iterations = self.client.list_iterations(team_name)
        except RemoteCallError as e:
            if team_name and e.status_code == 404:
                raise TeamNotFoundError(
                    f"Failed to fetch iterations for team '{team_name}'. Check that the team name "
                    f"in the URL matches a team in the project.",
                    status_code=e.status_code,
                    error_code=e.error_code,
                ) from e
            raise
        logger.info(
            "Available iterations for %s: %s",
            f"team '{team_name}'" if team_name else "project",
            [it.name for it in iterations],
        )
        return iterations

    def resolve(self, locator: SprintLocator) -> Iteration:
        """
        Raises:
            SprintNotFoundError: No iteration name matches the sprint
            TeamNotFoundError: The team in the URL does not exist
            RemoteCallError: The listing call failed
        """
        iterations = self.fetch_iterations(locator.team_name)
        iteration = match_iteration(locator.sprint_name, iterations, locator.team_name)
        logger.info("Iteration resolved: %r -> %s", locator.sprint_name, iteration.path)
        return iteration
