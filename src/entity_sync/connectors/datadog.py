"""
Datadog connector for writing entity definitions to the Software Catalog.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..integrations.datadog.client import DEFAULT_SITE, DatadogCatalogClient
from .base import CatalogWriter

logger = logging.getLogger(__name__)


class DatadogConnector(CatalogWriter):
    """
    Datadog Software Catalog connector.

    Wraps the blocking HTTP client so upserts run in a worker thread and do
    not stall the event loop.
    """

    def __init__(self, credentials: Optional[Dict[str, Any]] = None, base_url: Optional[str] = None,
                 client: Optional[DatadogCatalogClient] = None, **kwargs):
        super().__init__(credentials=credentials, base_url=base_url, **kwargs)
        if client is None:
            self._validate_credentials()
            client = DatadogCatalogClient(
                api_key=self.credentials["api_key"],
                app_key=self.credentials["app_key"],
                site=kwargs.get("site", DEFAULT_SITE),
            )
        self.client = client

    def _validate_credentials(self) -> None:
        missing = [key for key in ("api_key", "app_key") if not self.credentials.get(key)]
        if missing:
            raise ValueError(f"Datadog connector requires {', '.join(missing)} in credentials")

    def test_connection(self) -> bool:
        return self.client.validate()

    async def upsert_catalog_entity(self, body: str) -> Any:
        return await asyncio.to_thread(self.client.upsert_catalog_entity, body)
