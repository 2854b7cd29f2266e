"""Azure DevOps client wrapper."""
import json
import logging
import re
from typing import List, Optional, Dict, Any
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth
from azure.devops.connection import Connection
from msrest.authentication import BasicAuthentication
from msrest.exceptions import ClientException

from taskpilot.core.errors import (
    AreaPathInvalidError,
    AuthenticationError,
    RemoteCallError,
    RemoteTimeoutError,
)
from taskpilot.core.models import AdoSettings, Iteration
from taskpilot.utils.config import Config

logger = logging.getLogger(__name__)

AREA_PATH_ERROR_CODE = "TF51011"
_ERROR_CODE_PATTERN = re.compile(r"\b(TF\d{5,6}|VS\d{5,6})\b")


class ADOClient:
    """Wrapper for the Azure DevOps REST API of one project."""

    def __init__(
        self,
        settings: AdoSettings,
        timeout: Optional[float] = None,
        api_version: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize ADO client.

        Args:
            settings: Organization, project and PAT
            timeout: Seconds before a call fails with RemoteTimeoutError (default: Config.REQUEST_TIMEOUT)
            api_version: REST api-version sent with every call (default: Config.ADO_API_VERSION)
            session: Optional requests session (a new one is created otherwise)
        """
        self.settings = settings
        self.timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT
        self.api_version = api_version or Config.ADO_API_VERSION
        self.connection = None

        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth("", settings.token)
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    @property
    def project_url(self) -> str:
        return self.settings.project_url

    def connect(self) -> bool:
        """
        Verify the PAT and project through the Azure DevOps SDK.

        Raises:
            RemoteCallError: If the organization or project cannot be reached
        """
        org_url = self.settings.organization_url
        logger.debug("Connecting to ADO with URL: %s", org_url)
        credentials = BasicAuthentication("", self.settings.token)
        connection = Connection(base_url=org_url, creds=credentials)
        try:
            core_client = connection.clients.get_core_client()
            project = core_client.get_project(self.settings.project)
        except ClientException as e:
            self.connection = None
            raise RemoteCallError(f"Could not connect to Azure DevOps: {e}") from e
        except requests.RequestException as e:
            self.connection = None
            raise RemoteCallError(f"Could not reach {org_url}: {e}") from e

        self.connection = connection
        logger.info("ADO connection successful. Project: %s", getattr(project, "name", self.settings.project))
        return True

    def is_connected(self) -> bool:
        return self.connection is not None

    def work_item_url(self, work_item_id: int) -> str:
        return f"{self.project_url}/_apis/wit/workItems/{work_item_id}"

    def work_item_web_url(self, work_item_id: int) -> str:
        """Browser link to the work item form."""
        return f"{self.project_url}/_workitems/edit/{work_item_id}"

    # --- Operations ---

    def list_iterations(self, team_name: Optional[str] = None) -> List[Iteration]:
        """List team iterations; without a team, the project's default team is used."""
        if team_name:
            url = f"{self.project_url}/{quote(team_name, safe='')}/_apis/work/teamsettings/iterations"
        else:
            url = f"{self.project_url}/_apis/work/teamsettings/iterations"
        data = self._request("GET", url)
        iterations = [Iteration.from_api(item) for item in data.get("value") or []]
        logger.debug("Listed %d iterations (team=%s)", len(iterations), team_name)
        return iterations

    def query_work_item_ids(self, wiql: str) -> List[int]:
        """Run a WIQL query and return the ids it matched, in query order."""
        data = self._request("POST", f"{self.project_url}/_apis/wit/wiql", json_body={"query": wiql})
        return [item["id"] for item in data.get("workItems") or []]

    def get_work_items(self, ids: List[int], expand: Optional[str] = "relations") -> List[Dict[str, Any]]:
        """Fetch work items by id; ids that do not exist are omitted from the result."""
        if not ids:
            return []
        params = {"ids": ",".join(str(i) for i in ids), "errorPolicy": "omit"}
        if expand:
            params["$expand"] = expand
        data = self._request("GET", f"{self.project_url}/_apis/wit/workitems", params=params)
        return [item for item in data.get("value") or [] if item]

    def create_work_item(self, work_item_type: str, document: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create a work item from a JSON Patch document."""
        url = f"{self.project_url}/_apis/wit/workitems/${quote(work_item_type, safe='')}"
        return self._request(
            "POST",
            url,
            data=json.dumps(document),
            headers={"Content-Type": "application/json-patch+json"},
        )

    def delete_work_item(self, work_item_id: int) -> None:
        self._request("DELETE", f"{self.project_url}/_apis/wit/workitems/{work_item_id}")

    def find_identity(self, search: str) -> Optional[Dict[str, Any]]:
        """Look up an identity by email or display name; None when nothing matches."""
        data = self._request(
            "GET",
            f"{self.settings.identity_url}/_apis/identities",
            params={"searchFilter": "General", "filterValue": search},
        )
        matches = data.get("value") or []
        return matches[0] if matches else None

    # --- Transport ---

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated call and translate failures into RemoteCallError."""
        query = dict(params or {})
        query["api-version"] = self.api_version
        try:
            response = self.session.request(
                method,
                url,
                params=query,
                json=json_body,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error("Timeout after %ss: %s %s", self.timeout, method, url)
            raise RemoteTimeoutError(f"Azure DevOps did not respond within {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error("Request failed: %s %s: %s", method, url, e)
            raise RemoteCallError(f"Could not reach Azure DevOps: {e}") from e

        if response.status_code >= 400:
            error = self._error_from_response(response)
            logger.error("ADO API error: %s %s -> %s", method, url, error)
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(
                f"Invalid JSON response: {response.text[:200]}", status_code=response.status_code
            ) from e

    @staticmethod
    def _error_from_response(response) -> RemoteCallError:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        message = payload.get("message") or (response.text or "")[:200] or f"HTTP {response.status_code}"
        match = _ERROR_CODE_PATTERN.search(message)
        error_code = match.group(1) if match else None
        status = response.status_code

        if error_code == AREA_PATH_ERROR_CODE:
            return AreaPathInvalidError(message, status_code=status, error_code=error_code)
        if status in (401, 403):
            return AuthenticationError(
                "Azure DevOps authentication failed. Please check that your PAT is valid "
                "and has Work Items (Read & Write) permissions.",
                status_code=status,
                error_code=error_code,
            )
        return RemoteCallError(message, status_code=status, error_code=error_code)
