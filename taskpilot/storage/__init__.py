"""Template storage backends."""
from .template_store import (
    KeyValueStore, JsonFileKeyValueStore,
    TemplateStore, LocalTemplateStore, AzureTemplateStore,
    STORE_MODES, create_template_store,
)

__all__ = [
    "KeyValueStore", "JsonFileKeyValueStore",
    "TemplateStore", "LocalTemplateStore", "AzureTemplateStore",
    "STORE_MODES", "create_template_store",
]
