"""Tests for creating every task under every user story."""
import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from taskpilot.core.errors import RemoteCallError, RemoteTimeoutError
from taskpilot.core.fan_out import PARENT_LINK, TaskFanOutEngine
from taskpilot.core.models import CreationStatus, TaskDraft, UserStory


def _story(story_id, area="Proj\\Team A", iteration="Proj\\Sprint 1"):
    return UserStory(
        id=story_id,
        title=f"Story {story_id}",
        url=f"https://dev.azure.com/org/Proj/_apis/wit/workItems/{story_id}",
        area_path=area,
        iteration_path=iteration,
    )


def _fields(document):
    return {op["path"][len("/fields/"):]: op["value"] for op in document if op["path"].startswith("/fields/")}


class TestTaskFanOut(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = MagicMock()
        self.client.find_identity.return_value = None
        self.documents = []
        self.next_id = 1000

        def create_work_item(work_item_type, document):
            self.documents.append(document)
            if _fields(document)["System.Title"] == "Write tests":
                raise RemoteCallError("TF401320: Rule error for field Remaining Work", 400)
            self.next_id += 1
            return {"id": self.next_id}

        self.client.create_work_item.side_effect = create_work_item
        self.fetcher = MagicMock()
        self.engine = TaskFanOutEngine(self.client, self.fetcher)

    async def test_every_pair_attempted_despite_failures(self):
        stories = [_story(1), _story(2)]
        tasks = [TaskDraft(title="Write tests"), TaskDraft(title="Code review")]

        results = await self.engine.create_all(stories, tasks, "Proj\\Team A", "Proj\\Sprint 1")

        self.assertEqual(len(results), 4)
        self.assertEqual(
            [(r.user_story_id, r.task_title) for r in results],
            [(1, "Write tests"), (1, "Code review"), (2, "Write tests"), (2, "Code review")],
        )
        self.assertEqual([r.status for r in results], [
            CreationStatus.ERROR, CreationStatus.SUCCESS, CreationStatus.ERROR, CreationStatus.SUCCESS,
        ])
        self.assertIn("TF401320", results[0].error)
        self.assertIsNone(results[0].task_id)
        self.assertEqual([r.task_id for r in results if r.ok], [1001, 1002])
        self.assertEqual(self.client.create_work_item.call_count, 4)

    async def test_timeout_is_a_per_pair_error(self):
        self.client.create_work_item.side_effect = [RemoteTimeoutError("no answer"), {"id": 5}]
        results = await self.engine.create_all([_story(1)], [TaskDraft(title="A"), TaskDraft(title="B")])
        self.assertFalse(results[0].ok)
        self.assertTrue(results[1].ok)

    async def test_empty_inputs_make_no_calls(self):
        self.assertEqual(await self.engine.create_all([], [TaskDraft(title="A")]), [])
        self.assertEqual(await self.engine.create_all([_story(1)], []), [])
        self.client.create_work_item.assert_not_called()

    async def test_results_stream_in_order(self):
        tasks = [TaskDraft(title="Code review")]
        seen = [r.user_story_id async for r in self.engine.iter_results([_story(3), _story(1)], tasks)]
        self.assertEqual(seen, [3, 1])

    async def test_identity_lookup_is_cached_per_run(self):
        self.client.find_identity.return_value = {"displayName": "Jane Doe", "uniqueName": "jane@contoso.com"}
        task = TaskDraft(title="Code review", assigned_to="jane@contoso.com")

        await self.engine.create_all([_story(1), _story(2)], [task])

        self.client.find_identity.assert_called_once_with("jane@contoso.com")
        for document in self.documents:
            self.assertEqual(_fields(document)["System.AssignedTo"], "Jane Doe <jane@contoso.com>")

    async def test_identity_failure_falls_back_to_email(self):
        self.client.find_identity.side_effect = RemoteCallError("Forbidden", 403)
        task = TaskDraft(title="Code review", assigned_to="bob@contoso.com")

        results = await self.engine.create_all([_story(1)], [task])

        self.assertTrue(results[0].ok)
        self.assertEqual(_fields(self.documents[0])["System.AssignedTo"], "bob@contoso.com")

    async def test_malformed_identity_falls_back_to_email(self):
        self.client.find_identity.return_value = {"providerDisplayName": "Jane", "properties": {"Account": None}}
        task = TaskDraft(title="Code review", assigned_to="jane@contoso.com")

        results = await self.engine.create_all([_story(1)], [task])

        self.assertTrue(results[0].ok)
        self.assertEqual(_fields(self.documents[0])["System.AssignedTo"], "jane@contoso.com")

    async def test_unexpected_lookup_error_falls_back_to_email(self):
        self.client.find_identity.side_effect = ValueError("unexpected payload")
        task = TaskDraft(title="Code review", assigned_to="bob@contoso.com")

        results = await self.engine.create_all([_story(1)], [task])

        self.assertTrue(results[0].ok)
        self.assertEqual(_fields(self.documents[0])["System.AssignedTo"], "bob@contoso.com")

    async def test_missing_story_paths_are_refetched(self):
        self.fetcher.fetch_story.return_value = _story(1, area="Proj\\Team B", iteration="Proj\\Sprint 2")

        await self.engine.create_all([_story(1, area="", iteration="")], [TaskDraft(title="Code review")],
                                     "Proj\\Team A", "Proj\\Sprint 1")

        self.fetcher.fetch_story.assert_called_once_with(1)
        fields = _fields(self.documents[0])
        self.assertEqual(fields["System.AreaPath"], "Proj\\Team B")
        self.assertEqual(fields["System.IterationPath"], "Proj\\Sprint 2")

    async def test_refetch_failure_uses_resolved_paths(self):
        self.fetcher.fetch_story.side_effect = RemoteCallError("Server error", 500)

        results = await self.engine.create_all([_story(1, area="")], [TaskDraft(title="Code review")],
                                               "Proj\\Team A", "Proj\\Sprint 9")

        self.assertTrue(results[0].ok)
        fields = _fields(self.documents[0])
        self.assertEqual(fields["System.AreaPath"], "Proj\\Team A")
        self.assertEqual(fields["System.IterationPath"], "Proj\\Sprint 1")

    async def test_complete_stories_are_not_refetched(self):
        await self.engine.create_all([_story(1)], [TaskDraft(title="Code review")])
        self.fetcher.fetch_story.assert_not_called()


class TestBuildDocument(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.engine = TaskFanOutEngine(self.client, MagicMock())

    def test_document_links_parent_and_carries_fields(self):
        task = TaskDraft(
            title="Code review",
            description="Review the PR",
            custom_fields={"Microsoft.VSTS.Scheduling.RemainingWork": 4, "Custom.Team": "Core"},
        )
        document = self.engine.build_document(_story(7), task, "Proj\\Team A", "Proj\\Sprint 1")

        fields = _fields(document)
        self.assertEqual(fields["System.Title"], "Code review")
        self.assertEqual(fields["System.Description"], "Review the PR")
        self.assertEqual(fields["System.WorkItemType"], "Task")
        self.assertEqual(fields["System.AreaPath"], "Proj\\Team A")
        self.assertEqual(fields["System.IterationPath"], "Proj\\Sprint 1")
        self.assertEqual(fields["Microsoft.VSTS.Scheduling.RemainingWork"], 4)
        self.assertEqual(fields["Custom.Team"], "Core")
        self.assertNotIn("System.AssignedTo", fields)

        relations = [op for op in document if op["path"] == "/relations/-"]
        self.assertEqual(len(relations), 1)
        self.assertEqual(relations[0]["value"]["rel"], PARENT_LINK)
        self.assertEqual(relations[0]["value"]["url"], "https://dev.azure.com/org/Proj/_apis/wit/workItems/7")
        self.assertTrue(all(op["op"] == "add" for op in document))

    def test_empty_description_and_paths_are_omitted(self):
        document = self.engine.build_document(_story(7), TaskDraft(title="Code review"), None, None)
        fields = _fields(document)
        self.assertNotIn("System.Description", fields)
        self.assertNotIn("System.AreaPath", fields)
        self.assertNotIn("System.IterationPath", fields)

    def test_story_without_url_links_by_id(self):
        self.client.work_item_url.return_value = "https://dev.azure.com/org/Proj/_apis/wit/workItems/8"
        story = UserStory(id=8, title="No url")
        document = self.engine.build_document(story, TaskDraft(title="X"), None, None)

        self.client.work_item_url.assert_called_once_with(8)
        relation = next(op for op in document if op["path"] == "/relations/-")
        self.assertEqual(relation["value"]["url"], "https://dev.azure.com/org/Proj/_apis/wit/workItems/8")


if __name__ == '__main__':
    unittest.main()
