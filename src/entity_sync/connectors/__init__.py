"""
Connectors for the services an entity sync reads from and writes to.
"""

from .base import BaseConnector, CatalogReader, CatalogWriter, CredentialProvider, StaticTokenCredentialProvider
from .backstage import BackstageConnector
from .datadog import DatadogConnector

__all__ = [
    "BaseConnector",
    "CatalogReader",
    "CatalogWriter",
    "CredentialProvider",
    "StaticTokenCredentialProvider",
    "BackstageConnector",
    "DatadogConnector",
]
