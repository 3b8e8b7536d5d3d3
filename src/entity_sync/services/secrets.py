"""
Secret Manager service for the Datadog keys and the Backstage service token.
"""

import asyncio
import logging
import os
from typing import Dict, Optional
from google.cloud import secretmanager

from ..connectors.base import CredentialProvider

logger = logging.getLogger(__name__)

BACKSTAGE_TOKEN_SECRET = "backstage-service-token"

# Environment variable -> Secret Manager secret holding the same value
CREDENTIAL_SECRETS = {
    "DATADOG_API_KEY": "datadog-api-key",
    "DATADOG_APP_KEY": "datadog-app-key",
    "BACKSTAGE_SERVICE_TOKEN": BACKSTAGE_TOKEN_SECRET,
}


class SecretManagerService(CredentialProvider):
    """Reads sync credentials from Google Secret Manager, falling back to the environment."""
    
    def __init__(self, project_id: Optional[str] = None, client=None):
        self.project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")
        if not self.project_id:
            raise ValueError("GOOGLE_CLOUD_PROJECT environment variable must be set")
        
        self.client = client or secretmanager.SecretManagerServiceClient()
        self._secrets: Dict[str, str] = {}
    
    def get_secret(self, secret_name: str, version: str = "latest") -> str:
        """Return a secret's value; values are cached for the life of the service."""
        name = f"projects/{self.project_id}/secrets/{secret_name}/versions/{version}"
        if name not in self._secrets:
            try:
                response = self.client.access_secret_version(request={"name": name})
            except Exception as e:
                logger.error(f"Failed to retrieve secret {secret_name}: {e}")
                raise
            self._secrets[name] = response.payload.data.decode("UTF-8")
            logger.info(f"Retrieved secret: {secret_name}")
        return self._secrets[name]
    
    def get_api_credentials(self) -> Dict[str, str]:
        """Datadog keys and Backstage token, each falling back to its environment variable."""
        credentials = {}
        for env_name, secret_name in CREDENTIAL_SECRETS.items():
            try:
                credentials[env_name] = self.get_secret(secret_name)
            except Exception as e:
                logger.warning(f"Secret {secret_name} unavailable, using {env_name} from the environment: {e}")
                credentials[env_name] = os.getenv(env_name, "")
        return credentials

    async def get_own_service_credentials(self) -> Optional[str]:
        """Service token the syncs use to read the catalog."""
        try:
            return await asyncio.to_thread(self.get_secret, BACKSTAGE_TOKEN_SECRET)
        except Exception:
            logger.warning("Falling back to BACKSTAGE_SERVICE_TOKEN for catalog credentials")
            return os.getenv("BACKSTAGE_SERVICE_TOKEN") or None
