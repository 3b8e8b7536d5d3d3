"""
Serialization of Backstage catalog entities into Datadog entity definitions.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, List, NamedTuple, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..exceptions import UnsupportedEntityKindError
from ..models.entity import (
    ANNOTATION_SOURCE_LOCATION,
    DATADOG_SERVICE_NAME_ANNOTATION,
    RELATION_OWNED_BY,
    TECHDOCS_ANNOTATION,
    Entity,
    Link,
    get_compound_entity_ref,
    get_entity_relations,
    get_entity_source_location,
    parse_entity_ref,
    stringify_entity_ref,
)

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = ("component", "api", "system", "resource")
LINK_TYPES = ("runbook", "doc", "repo", "dashboard", "other")

# Path markers separating the repository from ref + sub-path in browse URLs
_TREE_MARKERS = ("tree", "blob", "src")

# serialize(entity, preload) -> payload; None means "nothing to send"
Serializer = Callable[[Entity, Any], Optional[Dict[str, Any]]]
# preload(clients, entities) -> context handed to every serialize call of a run
Preloader = Callable[[Any, List[Entity]], Awaitable[Any]]


class ExtraSerializationInfo(BaseModel):
    """Optional context for serialization."""
    app_base_url: Optional[str] = Field(None, description="Backstage app URL used for generated links")


class CodeRepositoryContext(NamedTuple):
    provider: str
    url: str
    repository_url: str
    path: str


def ensure_entity(entity: Entity) -> None:
    """Raise unless the entity is a Component, API, System or Resource."""
    kind = str(entity.get("kind") or "")
    if kind.lower() not in SUPPORTED_KINDS:
        raise UnsupportedEntityKindError(stringify_entity_ref(entity), kind)


def parse_git_url(url: str) -> CodeRepositoryContext:
    """
    Split a repository browse URL into repository and sub-path.

    Understands GitHub/Bitbucket style ``/<owner>/<repo>/(tree|blob|src)/<ref>/<path>``
    and GitLab style ``/<group>/.../<repo>/-/(tree|blob)/<ref>/<path>``.

    Raises:
        ValueError: If the URL does not look like a repository URL
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"Not a repository URL: {url}")

    parts = [part for part in parsed.path.split("/") if part]
    filepath_parts: List[str] = []

    if "-" in parts:
        marker = parts.index("-")
        repo_parts = parts[:marker]
        # /-/tree/<ref>/<path...>
        filepath_parts = parts[marker + 3:]
    else:
        repo_parts = parts[:2]
        rest = parts[2:]
        if rest and rest[0] in _TREE_MARKERS:
            filepath_parts = rest[2:]

    if len(repo_parts) < 2:
        raise ValueError(f"Repository URL has no owner/name: {url}")

    full_name = "/".join(repo_parts)
    if full_name.endswith(".git"):
        full_name = full_name[:-len(".git")]
    filepath = "/".join(filepath_parts)

    return CodeRepositoryContext(
        provider=parsed.hostname,
        url=url,
        repository_url=f"https://{parsed.hostname}/{full_name}",
        path=f"{filepath}/**" if filepath else "**",
    )


def resolve_repository_info(entity: Entity) -> Optional[CodeRepositoryContext]:
    """
    Resolve the entity's source location to a code repository.

    Returns None when there is no ``url`` source location or it cannot be
    parsed; this lookup never raises.
    """
    annotations = (entity.get("metadata") or {}).get("annotations") or {}
    if not annotations.get(ANNOTATION_SOURCE_LOCATION):
        return None

    try:
        location = get_entity_source_location(entity)
        if location.type != "url":
            return None
        return parse_git_url(location.target)
    except ValueError as e:
        logger.debug(f"Ignoring source location of {stringify_entity_ref(entity)}: {e}")
        return None


def resolve_owner(entity: Entity) -> Optional[str]:
    """Prefer ``spec.owner``; fall back to the first ``ownedBy`` relation's name."""
    spec_owner = (entity.get("spec") or {}).get("owner")
    if spec_owner:
        return spec_owner

    for relation in get_entity_relations(entity, RELATION_OWNED_BY):
        target_ref = relation.get("targetRef")
        if target_ref:
            try:
                return parse_entity_ref(target_ref).name
            except ValueError:
                logger.debug(f"Skipping malformed owner reference {target_ref}")
    return None


def labels_to_tags(entity: Entity) -> List[str]:
    labels = (entity.get("metadata") or {}).get("labels") or {}
    return [f"{key}:{value}" for key, value in labels.items()]


def get_datadog_style_links(
    entity: Entity,
    repo_context: Optional[CodeRepositoryContext] = None,
    extra_info: Optional[ExtraSerializationInfo] = None,
) -> Iterator[Link]:
    """Yield declared links, then generated Backstage/TechDocs links, then the source link."""
    metadata = entity.get("metadata") or {}
    annotations = metadata.get("annotations") or {}

    for link in metadata.get("links") or []:
        title, url, link_type = link.get("title"), link.get("url"), link.get("type")
        if title and url:
            yield Link(
                name=title,
                type=link_type if link_type in LINK_TYPES else "other",
                url=url,
            )

    if extra_info and extra_info.app_base_url:
        base_url = extra_info.app_base_url.rstrip("/")
        ref = get_compound_entity_ref(entity)
        yield Link(
            name="Backstage",
            type="doc",
            provider="backstage",
            url=f"{base_url}/catalog/{ref.namespace}/{ref.kind}/{ref.name}",
        )

        if annotations.get(TECHDOCS_ANNOTATION):
            yield Link(
                name="TechDocs",
                type="doc",
                provider="backstage",
                url=f"{base_url}/docs/{ref.namespace}/{ref.kind}/{ref.name}",
            )

    if repo_context:
        yield Link(
            name="Source",
            type="repo",
            provider=repo_context.provider,
            url=repo_context.url,
        )


def default_entity_serializer(
    entity: Entity,
    extra_info: Optional[ExtraSerializationInfo] = None,
) -> Dict[str, Any]:
    """
    Default serializer that preserves the original Backstage entity structure
    while adding enrichments like resolved owner, combined tags, and generated links.

    Args:
        entity: The Backstage catalog entity to serialize
        extra_info: Optional context for serialization

    Returns:
        The enriched entity, ready to be sent to Datadog

    Raises:
        UnsupportedEntityKindError: If the entity is not a component, api, system, or resource
    """
    ensure_entity(entity)

    metadata = dict(entity.get("metadata") or {})
    annotations = metadata.get("annotations") or {}
    repo_context = resolve_repository_info(entity)
    owner = resolve_owner(entity)

    metadata["name"] = annotations.get(DATADOG_SERVICE_NAME_ANNOTATION) or metadata.get("name")
    if not metadata.get("description"):
        metadata.pop("description", None)

    # Label-derived tags first, then the entity's own tags
    metadata["tags"] = list(dict.fromkeys([*labels_to_tags(entity), *(metadata.get("tags") or [])]))

    links = [link.model_dump(exclude_none=True) for link in get_datadog_style_links(entity, repo_context, extra_info)]
    if links:
        metadata["links"] = links
    else:
        metadata.pop("links", None)

    if owner:
        metadata["owner"] = owner

    spec = dict(entity.get("spec") or {})
    if owner:
        spec["owner"] = owner

    payload = {
        **entity,
        "metadata": metadata,
        "spec": spec,
    }

    if repo_context:
        payload["datadog"] = {
            **(entity.get("datadog") or {}),
            "codeLocations": [
                {
                    "repositoryURL": repo_context.repository_url,
                    "paths": [repo_context.path],
                }
            ],
        }

    return payload
