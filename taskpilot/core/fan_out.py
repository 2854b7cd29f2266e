"""Create one task per (user story, task draft) pair."""
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from taskpilot.core.fetcher import WorkItemFetcher
from taskpilot.core.models import CreationResult, CreationStatus, TaskDraft, UserStory
from taskpilot.utils.config import Config

logger = logging.getLogger(__name__)

TASK_TYPE = "Task"
PARENT_LINK = "System.LinkTypes.Hierarchy-Reverse"


def _field_op(field: str, value: Any) -> Dict[str, Any]:
    return {"op": "add", "path": f"/fields/{field}", "value": value}


class TaskFanOutEngine:
    """
    Creates tasks as children of user stories, strictly one call at a time.

    Every pair is attempted exactly once. A failed pair becomes an error
    result; it never stops, skips or retries the pairs after it.
    """

    def __init__(self, client, fetcher: Optional[WorkItemFetcher] = None):
        self.client = client
        self.fetcher = fetcher or WorkItemFetcher(client)
        self._assignees: Dict[str, str] = {}

    def build_document(
        self,
        story: UserStory,
        task: TaskDraft,
        area_path: Optional[str],
        iteration_path: Optional[str],
        assignee: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """JSON Patch document creating `task` under `story`."""
        document = [_field_op(Config.get_field("title"), task.title)]
        if task.description:
            document.append(_field_op(Config.get_field("description"), task.description))
        document.append(_field_op(Config.get_field("work_item_type"), TASK_TYPE))
        if area_path:
            document.append(_field_op(Config.get_field("area_path"), area_path))
        if iteration_path:
            document.append(_field_op(Config.get_field("iteration_path"), iteration_path))
        document.append({
            "op": "add",
            "path": "/relations/-",
            "value": {
                "rel": PARENT_LINK,
                "url": story.url or self.client.work_item_url(story.id),
                "attributes": {"comment": "Parent User Story"},
            },
        })
        if assignee:
            document.append(_field_op(Config.get_field("assigned_to"), assignee))
        for field, value in task.custom_fields.items():
            document.append(_field_op(field, value))
        return document

    def resolve_assignee(self, email: str) -> str:
        """
        Identity of the assignee as "Display Name <unique name>".

        Falls back to the email itself when the lookup fails or finds nobody.
        """
        if email in self._assignees:
            return self._assignees[email]

        try:
            resolved = self._identity_label(self.client.find_identity(email)) or email
        except Exception as e:
            logger.warning("Identity lookup failed for %s, assigning by email: %s", email, e)
            resolved = email

        self._assignees[email] = resolved
        return resolved

    @staticmethod
    def _identity_label(identity: Any) -> Optional[str]:
        if not isinstance(identity, dict):
            return None
        display_name = identity.get("displayName") or identity.get("providerDisplayName")
        account = (identity.get("properties") or {}).get("Account") or {}
        unique_name = identity.get("uniqueName") or (account.get("$value") if isinstance(account, dict) else None)
        if display_name and unique_name:
            return f"{display_name} <{unique_name}>"
        return None

    def _story_paths(
        self,
        story: UserStory,
        area_path: Optional[str],
        iteration_path: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        story_area, story_iteration = story.area_path, story.iteration_path
        if not story_area or not story_iteration:
            logger.debug("Story %s snapshot lacks paths, refetching", story.id)
            try:
                fresh = self.fetcher.fetch_story(story.id)
            except Exception as e:
                logger.warning("Could not refetch story %s: %s", story.id, e)
                fresh = None
            if fresh:
                story_area = story_area or fresh.area_path
                story_iteration = story_iteration or fresh.iteration_path
        return story_area or area_path, story_iteration or iteration_path

    def _create_one(self, story: UserStory, task: TaskDraft, area_path, iteration_path) -> CreationResult:
        try:
            assignee = self.resolve_assignee(task.assigned_to) if task.assigned_to else None
            document = self.build_document(story, task, area_path, iteration_path, assignee)
            created = self.client.create_work_item(TASK_TYPE, document)
        except Exception as e:
            logger.warning("Failed to create task %r under story %s: %s", task.title, story.id, e)
            return CreationResult(
                user_story_id=story.id,
                user_story_title=story.title,
                task_title=task.title,
                status=CreationStatus.ERROR,
                error=str(e) or "Failed to create task",
            )

        logger.info("Task created: #%s %r under story %s", created.get("id"), task.title, story.id)
        return CreationResult(
            user_story_id=story.id,
            user_story_title=story.title,
            task_title=task.title,
            status=CreationStatus.SUCCESS,
            task_id=created.get("id"),
        )

    async def iter_results(
        self,
        stories: List[UserStory],
        tasks: List[TaskDraft],
        area_path: Optional[str] = None,
        iteration_path: Optional[str] = None,
    ) -> AsyncIterator[CreationResult]:
        """
        Yield one CreationResult per pair, story-major, task-minor.

        Args:
            stories: User stories that receive the tasks
            tasks: Task drafts created under every story
            area_path: Resolved team area path, used when a story has none
            iteration_path: Resolved iteration path, used when a story has none
        """
        self._assignees = {}
        created = failed = 0
        for story in stories:
            story_area, story_iteration = await asyncio.to_thread(
                self._story_paths, story, area_path, iteration_path
            )
            for task in tasks:
                result = await asyncio.to_thread(self._create_one, story, task, story_area, story_iteration)
                if result.ok:
                    created += 1
                else:
                    failed += 1
                yield result
        logger.info("Batch completed: %d created, %d failed", created, failed)

    async def create_all(
        self,
        stories: List[UserStory],
        tasks: List[TaskDraft],
        area_path: Optional[str] = None,
        iteration_path: Optional[str] = None,
    ) -> List[CreationResult]:
        """Create every pair; the result always has len(stories) * len(tasks) entries."""
        return [r async for r in self.iter_results(stories, tasks, area_path, iteration_path)]
