from .config_loader import ConfigLoader
from .settings import CatalogSettings, StorageSettings, SyncSettings

__all__ = ["CatalogSettings", "ConfigLoader", "StorageSettings", "SyncSettings"]
