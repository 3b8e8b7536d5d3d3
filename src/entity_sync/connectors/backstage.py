"""
Backstage connector for reading catalog entities.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..integrations.backstage.client import BackstageCatalogClient
from ..models.entity import Entity
from .base import CatalogReader

logger = logging.getLogger(__name__)


class BackstageConnector(CatalogReader):
    """Backstage catalog connector; reads run in a worker thread."""

    def __init__(self, credentials: Optional[Dict[str, Any]] = None, base_url: Optional[str] = None,
                 client: Optional[BackstageCatalogClient] = None, **kwargs):
        super().__init__(credentials=credentials, base_url=base_url, **kwargs)
        if client is None:
            if not base_url:
                raise ValueError("Backstage connector requires a base_url")
            client = BackstageCatalogClient(base_url=base_url)
        self.client = client

    def test_connection(self) -> bool:
        return self.client.test_connection(token=self.credentials.get("token"))

    async def get_entities(self, filter: List[Dict[str, Any]], credentials: Optional[str] = None) -> List[Entity]:
        entities = await asyncio.to_thread(self.client.get_entities, filter, credentials)
        logger.info(f"Retrieved {len(entities)} entities from the catalog")
        return entities
