"""Configuration settings for TaskPilot."""
import logging
import yaml
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class Config:
    """Application configuration loaded from config.yaml."""

    _config_data: dict = None
    _config_path: Path = None

    # Azure DevOps
    ADO_ORGANIZATION: Optional[str] = None
    ADO_PAT: Optional[str] = None
    ADO_PROJECT: Optional[str] = None
    ADO_API_VERSION: str = "7.0"

    # Application settings
    REQUEST_TIMEOUT: float = 30.0
    TEMPLATE_STORE: str = "azure"
    LOCAL_TEMPLATE_FILE: Path = Path(".taskpilot") / "templates.json"
    LOG_LEVEL: str = "INFO"

    # ADO Field Mapping
    ADO_MAPPING: Dict[str, str] = {
        "id": "System.Id",
        "title": "System.Title",
        "description": "System.Description",
        "state": "System.State",
        "assigned_to": "System.AssignedTo",
        "area_path": "System.AreaPath",
        "iteration_path": "System.IterationPath",
        "work_item_type": "System.WorkItemType",
        "team_project": "System.TeamProject",
        "tags": "System.Tags",
        "created_date": "System.CreatedDate",
    }

    # Common Azure DevOps task fields offered in the task form
    TASK_FIELDS: Dict[str, Dict[str, Any]] = {
        "Microsoft.VSTS.Common.Priority": {
            "label": "Priority",
            "type": "dropdown",
            "values": ["1", "2", "3", "4"],
        },
        "Microsoft.VSTS.Common.Severity": {
            "label": "Severity",
            "type": "dropdown",
            "values": ["1 - Critical", "2 - High", "3 - Medium", "4 - Low"],
        },
        "Microsoft.VSTS.Scheduling.OriginalEstimate": {
            "label": "Original Estimate (hours)",
            "type": "number",
            "placeholder": "Enter hours (e.g., 8)",
        },
        "Microsoft.VSTS.Scheduling.RemainingWork": {
            "label": "Remaining Work (hours)",
            "type": "number",
            "placeholder": "Enter hours (e.g., 4)",
        },
        "Microsoft.VSTS.Scheduling.CompletedWork": {
            "label": "Completed Work (hours)",
            "type": "number",
            "placeholder": "Enter hours (e.g., 4)",
        },
        "System.Tags": {
            "label": "Tags",
            "type": "text",
            "placeholder": "Enter tags separated by semicolons",
        },
        "Microsoft.VSTS.Common.Activity": {
            "label": "Activity",
            "type": "dropdown",
            "values": ["Development", "Design", "Documentation", "Testing", "Deployment", "Requirements"],
        },
        "Microsoft.VSTS.Common.Discipline": {
            "label": "Discipline",
            "type": "dropdown",
            "values": ["Development", "Test", "User Experience", "Database", "Requirements"],
        },
    }

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> None:
        """
        Load configuration from YAML file.

        Values missing from the file are taken from the environment
        (a local .env file is read first).

        Args:
            config_path: Path to config file (default: config.yaml in project root)
        """
        load_dotenv()

        if config_path is None:
            current_dir = Path(__file__).parent.parent.parent
            config_path = current_dir / "config.yaml"

        cls._config_path = config_path

        if not config_path.exists():
            cls._create_default_config(config_path)
            logger.info("Created default config file at %s", config_path)
            cls._load_from_env()
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                cls._config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Error loading config file %s: %s", config_path, e)
            logger.warning("Using default values and environment variables as fallback")
            cls._config_data = {}
            cls._load_from_env()
            return

        ado_config = cls._config_data.get("ado") or {}
        cls.ADO_ORGANIZATION = ado_config.get("organization") or os.getenv("ADO_ORGANIZATION")
        cls.ADO_PAT = ado_config.get("pat") or os.getenv("ADO_PAT")
        cls.ADO_PROJECT = ado_config.get("project") or os.getenv("ADO_PROJECT")
        cls.ADO_API_VERSION = str(ado_config.get("api_version", cls.ADO_API_VERSION))

        app_config = cls._config_data.get("app") or {}
        cls.REQUEST_TIMEOUT = float(app_config.get("request_timeout", cls.REQUEST_TIMEOUT))
        cls.TEMPLATE_STORE = app_config.get("template_store", cls.TEMPLATE_STORE)
        if app_config.get("local_template_file"):
            cls.LOCAL_TEMPLATE_FILE = Path(app_config["local_template_file"])
        cls.LOG_LEVEL = app_config.get("log_level", cls.LOG_LEVEL)

        if "ado_mapping" in cls._config_data:
            # Update default mapping with user overrides
            cls.ADO_MAPPING.update(cls._config_data["ado_mapping"])
        if "task_fields" in cls._config_data:
            cls.TASK_FIELDS.update(cls._config_data["task_fields"])

    @classmethod
    def _create_default_config(cls, config_path: Path) -> None:
        """Create default config.yaml file."""
        default_config = {
            "ado": {"organization": "", "project": "", "pat": "", "api_version": cls.ADO_API_VERSION},
            "app": {
                "request_timeout": cls.REQUEST_TIMEOUT,
                "template_store": cls.TEMPLATE_STORE,
                "local_template_file": str(cls.LOCAL_TEMPLATE_FILE),
                "log_level": cls.LOG_LEVEL,
            },
            "ado_mapping": cls.ADO_MAPPING,
        }
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def _load_from_env(cls) -> None:
        """Fallback: load from environment variables."""
        cls.ADO_ORGANIZATION = os.getenv("ADO_ORGANIZATION")
        cls.ADO_PAT = os.getenv("ADO_PAT")
        cls.ADO_PROJECT = os.getenv("ADO_PROJECT")

    @classmethod
    def get_field(cls, key: str) -> str:
        """Get ADO field name for a given key."""
        return cls.ADO_MAPPING.get(key, key)

    @classmethod
    def get_task_field_names(cls) -> List[str]:
        """Reference names of the task fields offered in the UI."""
        return list(cls.TASK_FIELDS.keys())

    @classmethod
    def validate_ado_config(cls) -> Tuple[bool, Optional[str]]:
        """Validate ADO configuration."""
        if not cls.ADO_ORGANIZATION:
            return False, "ADO_ORGANIZATION is not set"
        if not cls.ADO_PROJECT:
            return False, "ADO_PROJECT is not set"
        if not cls.ADO_PAT:
            return False, "ADO_PAT is not set"
        return True, None
