"""Integrations - Azure DevOps."""
from .ado_client import ADOClient

__all__ = ["ADOClient"]
