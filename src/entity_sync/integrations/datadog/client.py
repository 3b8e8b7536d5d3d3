"""Datadog Software Catalog API client."""

import json
import logging
from typing import Any, Dict, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...core.config import get_optional_env, get_required_env
from ...exceptions import DatadogAPIError

logger = logging.getLogger(__name__)

DEFAULT_SITE = "datadoghq.com"


class DatadogCatalogClient:
    """Client for the Datadog Software Catalog v2 API."""
    
    def __init__(self, api_key: str, app_key: str, site: str = DEFAULT_SITE, timeout: float = 30):
        """Initialize the Datadog client.
        
        Args:
            api_key: Datadog API key
            app_key: Datadog application key
            site: Datadog site, e.g. datadoghq.com or datadoghq.eu
            timeout: Request timeout in seconds
        """
        self.site = site
        self.base_url = f"https://api.{site}"
        self.timeout = timeout
        
        # Configure session with retries
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            backoff_factor=1
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        
        self.session.headers.update({
            'DD-API-KEY': api_key,
            'DD-APPLICATION-KEY': app_key,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': 'entity-sync/1.0'
        })
    
    def _make_request(self, method: str, endpoint: str, data: Optional[str] = None) -> Any:
        """Make a request to the Datadog API.
        
        Raises:
            DatadogAPIError: If the API request fails
        """
        url = f"{self.base_url}{endpoint}"
        
        try:
            logger.debug(f"Making {method} request to {url}")
            response = self.session.request(method, url, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Datadog API request failed: {e}")
            raise DatadogAPIError(f"Request failed: {e}") from e

        if not response.ok:
            raise DatadogAPIError(
                f"Datadog API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}
    
    def upsert_catalog_entity(self, body: Union[str, Dict[str, Any]]) -> Any:
        """Create or update a catalog entity.
        
        Args:
            body: Entity definition, either already JSON-encoded or as a dict
            
        Returns:
            Datadog's JSON response
        """
        data = body if isinstance(body, str) else json.dumps(body)
        return self._make_request('POST', '/api/v2/catalog/entity', data=data)
    
    def validate(self) -> bool:
        """Check that the API key is valid."""
        try:
            result = self._make_request('GET', '/api/v1/validate')
            return bool(result.get("valid"))
        except DatadogAPIError as e:
            logger.error(f"Datadog connection test failed: {e}")
            return False


def create_datadog_client_from_env() -> DatadogCatalogClient:
    """Create a Datadog client using environment variables.
    
    Raises:
        ValueError: If required environment variables are missing
    """
    return DatadogCatalogClient(
        api_key=get_required_env('DATADOG_API_KEY'),
        app_key=get_required_env('DATADOG_APP_KEY'),
        site=get_optional_env('DATADOG_SITE', DEFAULT_SITE),
    )
