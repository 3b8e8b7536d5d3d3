"""
Helpers for working with Backstage catalog entities.

Entities are kept as plain dictionaries (the catalog's JSON shape) so that
serializers can pass unknown fields through untouched.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

Entity = Dict[str, Any]

DEFAULT_NAMESPACE = "default"
ANNOTATION_SOURCE_LOCATION = "backstage.io/source-location"
TECHDOCS_ANNOTATION = "backstage.io/techdocs-ref"
DATADOG_SERVICE_NAME_ANNOTATION = "datadoghq.com/service-name"
RELATION_OWNED_BY = "ownedBy"


class CompoundEntityRef(NamedTuple):
    kind: str
    namespace: str
    name: str


class SourceLocation(NamedTuple):
    type: str
    target: str


class Link(BaseModel):
    """A link in Datadog's entity definition format."""
    name: str
    type: str
    url: str
    provider: Optional[str] = Field(None, description="Who generated the link, e.g. backstage")


def get_compound_entity_ref(entity: Entity) -> CompoundEntityRef:
    metadata = entity.get("metadata") or {}
    return CompoundEntityRef(
        kind=entity.get("kind", ""),
        namespace=metadata.get("namespace") or DEFAULT_NAMESPACE,
        name=metadata.get("name", ""),
    )


def stringify_entity_ref(entity: Entity) -> str:
    """Render ``kind:namespace/name`` with kind and namespace lower-cased."""
    ref = get_compound_entity_ref(entity)
    return f"{ref.kind.lower()}:{ref.namespace.lower()}/{ref.name}"


def parse_entity_ref(ref: str, default_kind: Optional[str] = None,
                     default_namespace: str = DEFAULT_NAMESPACE) -> CompoundEntityRef:
    """Parse ``[kind:][namespace/]name``."""
    if not ref:
        raise ValueError("Entity reference must not be empty")

    kind = default_kind or ""
    rest = ref
    if ":" in rest:
        kind, rest = rest.split(":", 1)
    namespace = default_namespace
    if "/" in rest:
        namespace, rest = rest.split("/", 1)
    if not rest:
        raise ValueError(f"Entity reference {ref} has no name")
    return CompoundEntityRef(kind=kind, namespace=namespace, name=rest)


def get_entity_source_location(entity: Entity) -> SourceLocation:
    """
    Read the ``backstage.io/source-location`` annotation as ``type:target``.

    Raises:
        ValueError: If the annotation is missing or malformed
    """
    annotations = (entity.get("metadata") or {}).get("annotations") or {}
    value = annotations.get(ANNOTATION_SOURCE_LOCATION)
    if not value:
        raise ValueError(f"Entity {stringify_entity_ref(entity)} has no source location")
    if not isinstance(value, str):
        raise ValueError(f"Source location of {stringify_entity_ref(entity)} must be a string")

    type_, sep, target = value.partition(":")
    if not sep or not type_ or not target:
        raise ValueError(f"Unable to parse source location '{value}', expected '<type>:<target>'")
    return SourceLocation(type=type_, target=target)


def get_entity_relations(entity: Entity, relation_type: str) -> List[Dict[str, Any]]:
    return [
        relation for relation in entity.get("relations") or []
        if relation.get("type") == relation_type
    ]
