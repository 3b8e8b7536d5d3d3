"""Backstage catalog API client for reading entities."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...core.config import get_optional_env, get_required_env
from ...exceptions import BackstageAPIError
from ...models.config import FilterSentinel
from ...models.entity import Entity

logger = logging.getLogger(__name__)


def encode_filter_clause(clause: Dict[str, Any]) -> str:
    """
    Render one filter clause as Backstage's ``filter`` query value.

    ``{"kind": ["component", "api"], "spec.owner": EXISTS}`` becomes
    ``kind=component,kind=api,spec.owner``.
    """
    parts = []
    for key, value in clause.items():
        if isinstance(value, FilterSentinel):
            parts.append(key)
        elif isinstance(value, (list, tuple, set)):
            parts.extend(f"{key}={item}" for item in value)
        else:
            parts.append(f"{key}={value}")
    return ",".join(parts)


def build_filter_params(clauses: List[Dict[str, Any]]) -> List[Tuple[str, str]]:
    # An empty clause matches everything, which makes the other clauses moot
    if not clauses or any(not clause for clause in clauses):
        return []
    return [("filter", encode_filter_clause(clause)) for clause in clauses]


class BackstageCatalogClient:
    """Client for the Backstage catalog REST API."""

    def __init__(self, base_url: str, timeout: float = 60):
        """Initialize the Backstage client.

        Args:
            base_url: Backend base URL, e.g. https://backstage.example.com
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=1
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'entity-sync/1.0'
        })

    def _make_request(self, method: str, endpoint: str, params: Optional[List[Tuple[str, str]]] = None,
                      token: Optional[str] = None) -> Any:
        """Make a request to the catalog API.

        Raises:
            BackstageAPIError: If the API request fails
        """
        url = f"{self.base_url}{endpoint}"
        headers = {'Authorization': f"Bearer {token}"} if token else {}

        try:
            logger.debug(f"Making {method} request to {url} with params: {params}")
            response = self.session.request(method, url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Backstage API request failed: {e}")
            if getattr(e, 'response', None) is not None:
                raise BackstageAPIError(
                    f"HTTP {e.response.status_code}: {e.response.text}",
                    status_code=e.response.status_code,
                ) from e
            raise BackstageAPIError(f"Request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise BackstageAPIError(f"Catalog returned invalid JSON: {e}") from e

    def get_entities(self, filter: List[Dict[str, Any]], token: Optional[str] = None) -> List[Entity]:
        """Get all entities matching any of the filter clauses.

        Args:
            filter: Alternative filter clauses
            token: Bearer token for the catalog

        Returns:
            Entities in the order the catalog returned them
        """
        params = build_filter_params(filter)
        logger.info(f"Fetching catalog entities with filters: {params}")
        data = self._make_request('GET', '/api/catalog/entities', params=params, token=token)

        items = data.get("items", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise BackstageAPIError(f"Unexpected catalog response type: {type(items).__name__}")
        return items

    def test_connection(self, token: Optional[str] = None) -> bool:
        try:
            self._make_request('GET', '/api/catalog/entities', params=[("limit", "1")], token=token)
            return True
        except BackstageAPIError as e:
            logger.error(f"Backstage connection test failed: {e}")
            return False


def create_backstage_client_from_env() -> BackstageCatalogClient:
    """Create a Backstage client using environment variables.

    Raises:
        ValueError: If required environment variables are missing
    """
    return BackstageCatalogClient(base_url=get_required_env('BACKSTAGE_BASE_URL'))


def get_backstage_token_from_env() -> Optional[str]:
    return get_optional_env('BACKSTAGE_SERVICE_TOKEN') or None
