"""End-to-end tests for sprint lookup and task creation with a mocked client."""
import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path
from datetime import datetime, timezone

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from taskpilot.core.errors import AreaPathInvalidError, MalformedLocatorError, SprintNotFoundError
from taskpilot.core.models import AdoSettings, Iteration, TaskDraft
from taskpilot.core.orchestrator import Orchestrator

SPRINT_URL = "https://dev.azure.com/contoso/Proj/_sprints/taskboard/Team%20A/Proj/Sprint%2012"


def _payload(work_item_id):
    return {
        "id": work_item_id,
        "url": f"https://dev.azure.com/contoso/Proj/_apis/wit/workItems/{work_item_id}",
        "fields": {
            "System.Title": f"Story {work_item_id}",
            "System.State": "New",
            "System.AreaPath": "Proj\\Team A",
            "System.IterationPath": "Proj\\Release 3\\Sprint 12",
        },
    }


class TestOrchestrator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.settings = AdoSettings(token="pat", organization="contoso", project="Proj")
        self.client.list_iterations.return_value = [
            Iteration(name="Sprint 11", path="Proj\\Release 3\\Sprint 11",
                      start_date=datetime(2024, 5, 27, tzinfo=timezone.utc)),
            Iteration(name="Sprint 12", path="Proj\\Release 3\\Sprint 12",
                      start_date=datetime(2024, 6, 10, tzinfo=timezone.utc)),
        ]
        self.client.query_work_item_ids.return_value = [20, 10]
        self.client.get_work_items.side_effect = lambda ids, expand=None: [_payload(i) for i in ids]
        self.orchestrator = Orchestrator(self.client)

    async def test_load_sprint(self):
        selection = await self.orchestrator.load_sprint(SPRINT_URL)

        self.client.list_iterations.assert_called_once_with("Team A")
        self.assertEqual(selection.locator.team_name, "Team A")
        self.assertEqual(selection.iteration.path, "Proj\\Release 3\\Sprint 12")
        self.assertEqual(selection.area_path, "Proj\\Team A")
        self.assertEqual([s.id for s in selection.stories], [10, 20])

        query = self.client.query_work_item_ids.call_args.args[0]
        self.assertIn("'Proj\\Release 3\\Sprint 12'", query)

    async def test_load_sprint_falls_back_when_area_missing(self):
        self.client.query_work_item_ids.side_effect = [
            AreaPathInvalidError("TF51011: area path does not exist", 400, "TF51011"),
            [10],
        ]
        selection = await self.orchestrator.load_sprint(SPRINT_URL)
        self.assertEqual([s.id for s in selection.stories], [10])

    async def test_empty_sprint_skips_fetch(self):
        self.client.query_work_item_ids.return_value = []
        selection = await self.orchestrator.load_sprint(SPRINT_URL)
        self.assertEqual(selection.stories, [])
        self.client.get_work_items.assert_not_called()

    async def test_malformed_url_makes_no_calls(self):
        with self.assertRaises(MalformedLocatorError):
            await self.orchestrator.load_sprint("https://dev.azure.com")
        self.client.list_iterations.assert_not_called()

    async def test_unknown_sprint(self):
        with self.assertRaises(SprintNotFoundError):
            await self.orchestrator.load_sprint("https://dev.azure.com/contoso/Proj/_sprints/taskboard/Team%20A/Proj/Sprint%2099")
        self.client.query_work_item_ids.assert_not_called()

    async def test_apply_tasks(self):
        created = iter(range(100, 200))
        self.client.create_work_item.side_effect = lambda work_item_type, document: {"id": next(created)}
        selection = await self.orchestrator.load_sprint(SPRINT_URL)
        selection = selection.without_story(20)
        tasks = [TaskDraft(title="Design"), TaskDraft(title="Build"), TaskDraft(title="Test")]

        report = await self.orchestrator.apply_tasks(selection, tasks)

        self.assertEqual(report.total, 3)
        self.assertEqual(len(report.succeeded), 3)
        self.assertEqual({r.user_story_id for r in report.results}, {10})
        self.assertEqual([r.task_id for r in report.results], [100, 101, 102])

    async def test_iter_apply_tasks_streams_results(self):
        self.client.create_work_item.return_value = {"id": 1}
        selection = await self.orchestrator.load_sprint(SPRINT_URL)

        results = [r async for r in self.orchestrator.iter_apply_tasks(selection, [TaskDraft(title="Build")])]

        self.assertEqual([r.user_story_id for r in results], [10, 20])


if __name__ == '__main__':
    unittest.main()
