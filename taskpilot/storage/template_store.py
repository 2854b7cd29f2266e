"""Task template persistence: Azure DevOps work items or a local key-value file."""
import asyncio
import html
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from taskpilot.core.errors import RemoteCallError, TemplateStoreError
from taskpilot.core.models import TaskDraft, TaskTemplate
from taskpilot.core.query_engine import wiql_literal
from taskpilot.utils.config import Config

logger = logging.getLogger(__name__)


# --- Key-value storage ---

class KeyValueStore(ABC):
    """String values under string keys."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass


class JsonFileKeyValueStore(KeyValueStore):
    """All keys kept in one JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise TemplateStoreError(f"Template file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TemplateStoreError(f"Template file {self.path} does not hold a JSON object")
        return data

    async def get(self, key: str) -> Optional[str]:
        return (await self._read_all()).get(key)

    async def set(self, key: str, value: str) -> None:
        data = await self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Written beside the target, then swapped in: the file is never half-written
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2))
        await aiofiles.os.replace(tmp_path, self.path)


# --- Template stores ---

class TemplateStore(ABC):
    """Abstract base class for task template persistence."""

    @abstractmethod
    async def list_templates(self) -> List[TaskTemplate]:
        pass

    @abstractmethod
    async def save_template(self, name: str, tasks: List[TaskDraft]) -> TaskTemplate:
        pass

    @abstractmethod
    async def delete_template(self, template: TaskTemplate) -> None:
        pass

    async def clear(self) -> None:
        """Delete every template in the store."""
        for template in await self.list_templates():
            await self.delete_template(template)


def _template_payload(template: TaskTemplate) -> Dict[str, Any]:
    return {
        "name": template.name,
        "tasks": [task.model_dump(mode="json", by_alias=True) for task in template.tasks],
        "createdAt": template.created_at.isoformat(),
        "version": "1.0",
    }


class LocalTemplateStore(TemplateStore):
    """Templates as a JSON-encoded list under a single key."""

    DEFAULT_KEY = "azureTaskTemplates"

    def __init__(self, kv: KeyValueStore, key: str = DEFAULT_KEY):
        self.kv = kv
        self.key = key

    async def list_templates(self) -> List[TaskTemplate]:
        raw = await self.kv.get(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TemplateStoreError(f"Stored templates are not valid JSON: {e}") from e

        templates = []
        for item in items:
            try:
                templates.append(TaskTemplate.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable local template %r: %s", item.get("name") if isinstance(item, dict) else item, e)
        return templates

    async def _write(self, templates: List[TaskTemplate]) -> None:
        await self.kv.set(
            self.key,
            json.dumps([t.model_dump(mode="json", by_alias=True) for t in templates]),
        )

    async def save_template(self, name: str, tasks: List[TaskDraft]) -> TaskTemplate:
        template = TaskTemplate(name=name, tasks=list(tasks))
        templates = await self.list_templates()
        templates.append(template)
        await self._write(templates)
        logger.info("Template saved locally: %r (%d tasks)", template.name, len(template.tasks))
        return template

    async def delete_template(self, template: TaskTemplate) -> None:
        templates = await self.list_templates()
        await self._write([t for t in templates if t.id != template.id])
        logger.info("Local template deleted: %r", template.name)

    async def clear(self) -> None:
        await self._write([])


class AzureTemplateStore(TemplateStore):
    """
    Templates stored as tagged Task work items.

    The template JSON is kept in the description after a "Template Data:"
    marker, so it can be read back by any client that finds the tag.
    """

    TITLE_PREFIX = "[TEMPLATE]"
    TAG = "TaskTemplate"
    DATA_MARKER = "Template Data:"
    _DATA_PATTERN = re.compile(r"Template Data:\s*(\{[\s\S]*\})")
    _BATCH_SIZE = 200

    def __init__(self, client, project: Optional[str] = None):
        self.client = client
        self.project = project or client.settings.project

    def _document(self, template: TaskTemplate, simplified: bool = False) -> List[Dict[str, Any]]:
        payload = _template_payload(template)
        created_on = template.created_at.isoformat()

        def op(key: str, value: Any) -> Dict[str, Any]:
            return {"op": "add", "path": f"/fields/{Config.get_field(key)}", "value": value}

        if simplified:
            description = f"Task Template: {template.name}\n\n{self.DATA_MARKER}\n{json.dumps(payload)}"
            return [
                op("title", f"{self.TITLE_PREFIX} {template.name}"),
                op("description", description),
                op("work_item_type", "Task"),
                op("tags", self.TAG),
                op("state", "New"),
            ]

        description = (
            f"Task Template: {template.name}\n\n"
            f"This template contains {len(template.tasks)} task(s).\n"
            f"Created on: {created_on}\n\n"
            f"{self.DATA_MARKER}\n{json.dumps(payload, indent=2)}"
        )
        return [
            op("title", f"{self.TITLE_PREFIX} {template.name}"),
            op("description", description),
            op("work_item_type", "Task"),
            op("tags", self.TAG),
            op("area_path", self.project),
            op("iteration_path", self.project),
            op("state", "New"),
        ]

    def _create(self, template: TaskTemplate) -> Dict[str, Any]:
        try:
            return self.client.create_work_item("Task", self._document(template))
        except RemoteCallError as e:
            logger.warning("Saving template %r failed (%s), retrying with simplified payload", template.name, e)
        try:
            return self.client.create_work_item("Task", self._document(template, simplified=True))
        except RemoteCallError as e:
            raise TemplateStoreError(
                f"Failed to save task template: {e}. Please check your permissions and try again."
            ) from e

    async def save_template(self, name: str, tasks: List[TaskDraft]) -> TaskTemplate:
        template = TaskTemplate(name=name, tasks=list(tasks))
        created = await asyncio.to_thread(self._create, template)
        work_item_id = created.get("id")
        logger.info("Template saved to Azure DevOps: %r as work item #%s", template.name, work_item_id)
        if work_item_id is None:
            return template
        return template.model_copy(update={"id": str(work_item_id), "work_item_id": work_item_id})

    def _query(self) -> str:
        return (
            f"SELECT [{Config.get_field('id')}], [{Config.get_field('title')}], [{Config.get_field('description')}] "
            f"FROM WorkItems "
            f"WHERE [{Config.get_field('team_project')}] = {wiql_literal(self.project)} "
            f"AND [{Config.get_field('work_item_type')}] = 'Task' "
            f"AND [{Config.get_field('tags')}] CONTAINS {wiql_literal(self.TAG)} "
            f"ORDER BY [{Config.get_field('created_date')}] DESC"
        )

    def _template_data(self, description: str) -> Optional[Dict[str, Any]]:
        """
        JSON after the data marker, or None when there is no marker.

        The stored JSON is read as-is first and unescaped only when it does
        not parse; entity-like text inside valid JSON is returned unchanged.
        """
        match = self._DATA_PATTERN.search(description)
        if not match:
            return None
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            unescaped = self._DATA_PATTERN.search(html.unescape(description))
            if unescaped is None:
                raise
            return json.loads(unescaped.group(1))

    def parse_work_item(self, payload: Dict[str, Any]) -> Optional[TaskTemplate]:
        """Template held by a work item, or None if it is not a template."""
        work_item_id = payload["id"]
        fields = payload.get("fields") or {}
        description = fields.get(Config.get_field("description")) or ""

        data = self._template_data(description)
        if data is not None:
            if data.get("name") and "tasks" in data:
                kwargs = {}
                if data.get("createdAt"):
                    kwargs["created_at"] = data["createdAt"]
                return TaskTemplate(
                    id=str(work_item_id),
                    name=data["name"],
                    tasks=data["tasks"],
                    work_item_id=work_item_id,
                    **kwargs,
                )

        title = fields.get(Config.get_field("title")) or ""
        if title.startswith(self.TITLE_PREFIX):
            name = title[len(self.TITLE_PREFIX):].strip()
            if name:
                return TaskTemplate(id=str(work_item_id), name=name, tasks=[], work_item_id=work_item_id)
        return None

    def _load(self) -> List[TaskTemplate]:
        ids = self.client.query_work_item_ids(self._query())
        if not ids:
            logger.info("No templates found")
            return []

        payloads = []
        for i in range(0, len(ids), self._BATCH_SIZE):
            payloads.extend(self.client.get_work_items(ids[i:i + self._BATCH_SIZE], expand=None))
        by_id = {p["id"]: p for p in payloads}

        templates = []
        for work_item_id in ids:
            payload = by_id.get(work_item_id)
            if payload is None:
                continue
            try:
                template = self.parse_work_item(payload)
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("Failed to parse template data for work item %s: %s", work_item_id, e)
                continue
            if template:
                templates.append(template)
        logger.info("Loaded %d templates from Azure DevOps", len(templates))
        return templates

    async def list_templates(self) -> List[TaskTemplate]:
        try:
            return await asyncio.to_thread(self._load)
        except RemoteCallError as e:
            raise TemplateStoreError(f"Failed to load task templates: {e}") from e

    async def delete_template(self, template: TaskTemplate) -> None:
        if template.work_item_id is None:
            raise TemplateStoreError(f"Template {template.name!r} has no backing work item")
        try:
            await asyncio.to_thread(self.client.delete_work_item, template.work_item_id)
        except RemoteCallError as e:
            raise TemplateStoreError(f"Failed to delete task template: {e}") from e
        logger.info("Template deleted from Azure DevOps: %r (#%s)", template.name, template.work_item_id)


STORE_MODES = ("azure", "local")


def create_template_store(mode: str, client=None, kv: Optional[KeyValueStore] = None) -> TemplateStore:
    """
    Build the template store selected in configuration.

    Args:
        mode: "azure" or "local"
        client: ADOClient, required for the azure store
        kv: Key-value backend for the local store (default: JSON file at Config.LOCAL_TEMPLATE_FILE)
    """
    if mode == "azure":
        if client is None:
            raise ValueError("The azure template store needs an ADOClient")
        return AzureTemplateStore(client)
    if mode == "local":
        return LocalTemplateStore(kv or JsonFileKeyValueStore(Config.LOCAL_TEMPLATE_FILE))
    raise ValueError(f"Unknown template store {mode!r}, expected one of {STORE_MODES}")
