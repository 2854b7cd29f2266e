"""WIQL queries for the user stories of an iteration."""
import logging
from typing import List, Optional

from taskpilot.core.errors import AreaPathInvalidError
from taskpilot.utils.config import Config

logger = logging.getLogger(__name__)


def wiql_literal(value: str) -> str:
    """Quote a value for use as a WIQL string literal."""
    return "'" + value.replace("'", "''") + "'"


class WorkItemQueryEngine:
    """Builds and runs the story query for a resolved iteration."""

    STORY_TYPE = "User Story"
    EXCLUDED_STATES = ("Closed", "Removed")

    def __init__(self, client, project: str):
        self.client = client
        self.project = project

    def area_path_for(self, team_name: Optional[str]) -> str:
        """Area path of the team, or the project root when no team is known."""
        if team_name:
            return f"{self.project}\\{team_name}"
        return self.project

    def build_query(self, iteration_path: str, area_path: Optional[str] = None) -> str:
        where_clauses = [
            f"[{Config.get_field('team_project')}] = {wiql_literal(self.project)}",
            f"[{Config.get_field('work_item_type')}] = {wiql_literal(self.STORY_TYPE)}",
            f"[{Config.get_field('iteration_path')}] = {wiql_literal(iteration_path)}",
        ]
        if area_path:
            where_clauses.append(f"[{Config.get_field('area_path')}] UNDER {wiql_literal(area_path)}")
        for state in self.EXCLUDED_STATES:
            where_clauses.append(f"[{Config.get_field('state')}] <> {wiql_literal(state)}")

        return (
            f"SELECT [{Config.get_field('id')}] FROM WorkItems "
            f"WHERE {' AND '.join(where_clauses)} "
            f"ORDER BY [{Config.get_field('id')}]"
        )

    def find_story_ids(self, iteration_path: str, team_name: Optional[str] = None) -> List[int]:
        """
        Ids of the open user stories in the iteration, ascending.

        With a team, the query is also scoped to the team's area path. Some
        teams have no area path of their own (TF51011); only then is the
        query repeated once without the area clause.
        """
        area_path = self.area_path_for(team_name) if team_name else None
        query = self.build_query(iteration_path, area_path)
        logger.debug("Executing WIQL query: %s", query)
        try:
            ids = self.client.query_work_item_ids(query)
        except AreaPathInvalidError as e:
            if not area_path:
                raise
            logger.warning("Area path %r is not valid (%s), retrying without area path filter", area_path, e.error_code)
            query = self.build_query(iteration_path)
            logger.debug("Executing fallback WIQL query: %s", query)
            ids = self.client.query_work_item_ids(query)

        ids = sorted(ids)
        logger.info("Query executed: %d user stories in %s", len(ids), iteration_path)
        return ids
