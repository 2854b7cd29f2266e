"""TaskPilot - bulk task creation for Azure DevOps sprints."""

__version__ = "0.1.0"
