"""
Base classes for the collaborators an entity sync talks to.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional
import logging

from ..models.entity import Entity

logger = logging.getLogger(__name__)


class BaseConnector(ABC):
    """Abstract base class for connectors."""
    
    def __init__(self, credentials: Optional[Dict[str, Any]] = None, base_url: Optional[str] = None, **kwargs):
        """
        Initialize the connector.
        
        Args:
            credentials: Optional authentication credentials
            base_url: Optional base URL for the service API
            **kwargs: Additional configuration parameters
        """
        self.credentials = credentials or {}
        self.base_url = base_url
        self.config = kwargs
        logger.info(f"Initialized {self.__class__.__name__} connector")
    
    @abstractmethod
    def test_connection(self) -> bool:
        """Test if the connector can successfully connect to the service."""
        pass


class CatalogReader(BaseConnector):
    """Reads entities from a source catalog."""

    @abstractmethod
    async def get_entities(self, filter: List[Dict[str, Any]], credentials: Optional[str] = None) -> List[Entity]:
        """
        Fetch entities matching any of the filter clauses.

        Args:
            filter: Alternative filter clauses (OR); fields within a clause are AND-ed
            credentials: Service token used for the read

        Returns:
            Entities in catalog order
        """
        pass


class CatalogWriter(BaseConnector):
    """Writes entity definitions to a remote catalog."""

    @abstractmethod
    async def upsert_catalog_entity(self, body: str) -> Any:
        """Create or update one entity from its JSON-serialized definition."""
        pass


class CredentialProvider(ABC):
    """Supplies the sync's own identity for catalog reads."""

    @abstractmethod
    async def get_own_service_credentials(self) -> Optional[str]:
        pass


class StaticTokenCredentialProvider(CredentialProvider):
    """Credential provider backed by a fixed token."""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    async def get_own_service_credentials(self) -> Optional[str]:
        return self.token
