"""
Entity filter handling: merging caller filters into a sync's default filter
and validating event payloads.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import InvalidEventPayload
from ..models.config import CATALOG_FILTER_EXISTS, EntityFilterClause, EntityFilterQuery


def convert_catalog_filter_exists(clause: EntityFilterClause) -> EntityFilterClause:
    """Return a copy of ``clause`` with the wire sentinel string replaced by the enum."""
    converted = dict(clause)
    for key, value in converted.items():
        if value == CATALOG_FILTER_EXISTS.value:
            converted[key] = CATALOG_FILTER_EXISTS
    return converted


def merge_entity_filters(
    query_filter: Optional[EntityFilterClause],
    config_filter: EntityFilterQuery,
) -> List[EntityFilterClause]:
    """
    Overlay ``query_filter`` onto every alternative of ``config_filter``.

    Fields in ``query_filter`` replace the same fields of each configured
    clause; the configured alternatives stay OR-ed together.
    """
    clauses = config_filter if isinstance(config_filter, list) else [config_filter]
    if not clauses:
        clauses = [{}]
    overlay = query_filter or {}
    return [convert_catalog_filter_exists({**clause, **overlay}) for clause in clauses]


class SyncEventPayload(BaseModel):
    """Body of a message on a sync's event topic."""
    model_config = ConfigDict(populate_by_name=True)

    entity_filter: Dict[str, Any] = Field(..., alias="entityFilter")
    dry_run: bool = Field(False, alias="dryRun")


def validate_event_payload(payload: Any) -> SyncEventPayload:
    """
    Check that ``payload`` is an object with an ``entityFilter`` object.

    Raises:
        InvalidEventPayload: If the payload does not have that shape
    """
    if not isinstance(payload, dict):
        raise InvalidEventPayload(f"Event payload must be an object, got {type(payload).__name__}")
    if not isinstance(payload.get("entityFilter", payload.get("entity_filter")), dict):
        raise InvalidEventPayload("Event payload must contain an 'entityFilter' object")
    try:
        return SyncEventPayload.model_validate(payload)
    except ValidationError as e:
        raise InvalidEventPayload(f"Invalid event payload: {e}") from e
