"""Tests for the user story WIQL query and its area path fallback."""
import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from taskpilot.core.errors import AreaPathInvalidError, RemoteCallError
from taskpilot.core.query_engine import WorkItemQueryEngine, wiql_literal


def _area_error():
    return AreaPathInvalidError(
        "TF51011: The specified area path does not exist.", status_code=400, error_code="TF51011"
    )


class TestWorkItemQueryEngine(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.engine = WorkItemQueryEngine(self.client, "Proj")

    def _queries(self):
        return [c.args[0] for c in self.client.query_work_item_ids.call_args_list]

    def test_query_with_team_scopes_area_path(self):
        self.client.query_work_item_ids.return_value = [7]
        self.engine.find_story_ids("Proj\\Sprint 12", "Team A")

        query = self._queries()[0]
        self.assertIn("[System.IterationPath] = 'Proj\\Sprint 12'", query)
        self.assertIn("[System.AreaPath] UNDER 'Proj\\Team A'", query)
        self.assertIn("[System.WorkItemType] = 'User Story'", query)
        self.assertIn("[System.State] <> 'Closed'", query)
        self.assertIn("[System.State] <> 'Removed'", query)
        self.assertTrue(query.endswith("ORDER BY [System.Id]"))

    def test_query_without_team_has_no_area_clause(self):
        self.client.query_work_item_ids.return_value = []
        self.engine.find_story_ids("Proj\\Sprint 12")
        self.assertNotIn("System.AreaPath", self._queries()[0])

    def test_ids_are_sorted(self):
        self.client.query_work_item_ids.return_value = [42, 7, 19]
        self.assertEqual(self.engine.find_story_ids("Proj\\Sprint 1", "Team A"), [7, 19, 42])

    def test_invalid_area_path_retries_once_without_area(self):
        self.client.query_work_item_ids.side_effect = [_area_error(), [5, 3]]

        ids = self.engine.find_story_ids("Proj\\Sprint 1", "Team A")

        self.assertEqual(ids, [3, 5])
        first, second = self._queries()
        self.assertIn("UNDER", first)
        self.assertNotIn("System.AreaPath", second)
        self.assertIn("[System.IterationPath] = 'Proj\\Sprint 1'", second)

    def test_retry_failure_propagates(self):
        self.client.query_work_item_ids.side_effect = [_area_error(), RemoteCallError("Server error", 500)]
        with self.assertRaises(RemoteCallError):
            self.engine.find_story_ids("Proj\\Sprint 1", "Team A")
        self.assertEqual(self.client.query_work_item_ids.call_count, 2)

    def test_other_errors_are_not_retried(self):
        self.client.query_work_item_ids.side_effect = RemoteCallError("TF401027: permission denied", 403)
        with self.assertRaises(RemoteCallError):
            self.engine.find_story_ids("Proj\\Sprint 1", "Team A")
        self.assertEqual(self.client.query_work_item_ids.call_count, 1)

    def test_area_error_without_team_propagates(self):
        self.client.query_work_item_ids.side_effect = _area_error()
        with self.assertRaises(AreaPathInvalidError):
            self.engine.find_story_ids("Proj\\Sprint 1")
        self.assertEqual(self.client.query_work_item_ids.call_count, 1)

    def test_quotes_in_paths_are_escaped(self):
        self.assertEqual(wiql_literal("Proj\\Bob's Sprint"), "'Proj\\Bob''s Sprint'")
        query = self.engine.build_query("Proj\\Bob's Sprint")
        self.assertIn("'Proj\\Bob''s Sprint'", query)

    def test_area_path_for(self):
        self.assertEqual(self.engine.area_path_for("Team A"), "Proj\\Team A")
        self.assertEqual(self.engine.area_path_for(None), "Proj")


if __name__ == '__main__':
    unittest.main()
