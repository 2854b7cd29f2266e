"""Orchestrator - runs the sprint lookup and task creation workflow."""
import asyncio
import logging
from typing import AsyncIterator, List, Optional

from taskpilot.core.fan_out import TaskFanOutEngine
from taskpilot.core.fetcher import WorkItemFetcher
from taskpilot.core.models import CreationReport, CreationResult, SprintSelection, TaskDraft
from taskpilot.core.query_engine import WorkItemQueryEngine
from taskpilot.core.resolver import IterationResolver
from taskpilot.core.strategies import LocatorParsingStrategy, TerminalSegmentStrategy

logger = logging.getLogger(__name__)


class Orchestrator:
    """Orchestrates sprint lookup (URL -> stories) and task fan-out."""

    def __init__(self, client, parsing_strategy: Optional[LocatorParsingStrategy] = None):
        """
        Initialize orchestrator.

        Args:
            client: ADOClient bound to the project
            parsing_strategy: How sprint URLs are read (default: TerminalSegmentStrategy)
        """
        self.client = client
        self.parsing_strategy = parsing_strategy or TerminalSegmentStrategy()
        self.resolver = IterationResolver(client)
        self.query_engine = WorkItemQueryEngine(client, client.settings.project)
        self.fetcher = WorkItemFetcher(client)
        self.fan_out = TaskFanOutEngine(client, self.fetcher)

    def _load_sprint(self, sprint_url: str) -> SprintSelection:
        locator = self.parsing_strategy.parse(sprint_url)
        logger.info(
            "Looking for sprint %r%s",
            locator.sprint_name,
            f" for team {locator.team_name!r}" if locator.team_name else "",
        )
        iteration = self.resolver.resolve(locator)
        ids = self.query_engine.find_story_ids(iteration.path, locator.team_name)
        stories = self.fetcher.fetch_stories(ids) if ids else []
        if not stories:
            logger.info("No user stories found for sprint %r", locator.sprint_name)

        return SprintSelection(
            locator=locator,
            iteration=iteration,
            area_path=self.query_engine.area_path_for(locator.team_name),
            stories=stories,
        )

    async def load_sprint(self, sprint_url: str) -> SprintSelection:
        """
        Fetch the open user stories of the sprint a board URL points to.

        Raises:
            MalformedLocatorError: The URL has no usable path
            SprintNotFoundError: No iteration matches the sprint name
            RemoteCallError: Any failed Azure DevOps call
        """
        return await asyncio.to_thread(self._load_sprint, sprint_url)

    def iter_apply_tasks(self, selection: SprintSelection, tasks: List[TaskDraft]) -> AsyncIterator[CreationResult]:
        """Stream results while tasks are created (for progress display)."""
        return self.fan_out.iter_results(
            selection.stories,
            tasks,
            area_path=selection.area_path,
            iteration_path=selection.iteration.path,
        )

    async def apply_tasks(self, selection: SprintSelection, tasks: List[TaskDraft]) -> CreationReport:
        """Create every task under every story of the selection."""
        results = await self.fan_out.create_all(
            selection.stories,
            tasks,
            area_path=selection.area_path,
            iteration_path=selection.iteration.path,
        )
        return CreationReport(results=results)
