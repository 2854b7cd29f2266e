"""Hydrate work item ids into user story records."""
import logging
from typing import List, Optional

from taskpilot.core.models import UserStory

logger = logging.getLogger(__name__)


class WorkItemFetcher:
    """Fetches full work item details (relations expanded) for a list of ids."""

    # Azure DevOps rejects larger id lists on the batch endpoint
    MAX_BATCH_SIZE = 200

    def __init__(self, client, batch_size: int = MAX_BATCH_SIZE):
        self.client = client
        self.batch_size = min(batch_size, self.MAX_BATCH_SIZE)

    def fetch_stories(self, ids: List[int]) -> List[UserStory]:
        """
        Fetch work items in batches to avoid 414 URI Too Long error.

        Args:
            ids: Work item ids, in display order

        Returns:
            UserStory records in the order of ids; ids the service did not
            return are left out

        Raises:
            RemoteCallError: Any failed batch fails the whole fetch
        """
        if not ids:
            return []

        by_id = {}
        total_batches = (len(ids) + self.batch_size - 1) // self.batch_size
        for i in range(0, len(ids), self.batch_size):
            batch = ids[i:i + self.batch_size]
            if total_batches > 1:
                logger.debug("Fetching batch %d/%d (%d items)", i // self.batch_size + 1, total_batches, len(batch))
            for payload in self.client.get_work_items(batch, expand="relations"):
                story = UserStory.from_api(payload)
                by_id[story.id] = story

        stories = [by_id[i] for i in ids if i in by_id]
        if len(stories) < len(ids):
            logger.warning("%d of %d work items were not returned", len(ids) - len(stories), len(ids))
        logger.info("Fetched %d user stories", len(stories))
        return stories

    def fetch_story(self, story_id: int) -> Optional[UserStory]:
        stories = self.fetch_stories([story_id])
        return stories[0] if stories else None
