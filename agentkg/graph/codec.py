"""
Record Codec
============

Mapping between domain objects and flat backend records.

Entity record:
    entityId, name, entityType, description, properties (JSON string),
    orgId, createdAt, updatedAt (RFC 3339) + vector

Relationship record:
    relationshipId, sourceId, targetId, relationshipType, description,
    strength, properties (JSON string), orgId, createdAt
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from agentkg.models import Entity, Relationship
from agentkg.storage.backend.base import StoredObject

log = structlog.get_logger()

# Entity fields
F_ENTITY_ID = "entityId"
F_NAME = "name"
F_ENTITY_TYPE = "entityType"
F_DESCRIPTION = "description"
F_PROPERTIES = "properties"
F_ORG_ID = "orgId"
F_CREATED_AT = "createdAt"
F_UPDATED_AT = "updatedAt"

# Relationship fields
F_RELATIONSHIP_ID = "relationshipId"
F_SOURCE_ID = "sourceId"
F_TARGET_ID = "targetId"
F_RELATIONSHIP_TYPE = "relationshipType"
F_STRENGTH = "strength"

# Fields searched by keyword (BM25) entity search
KEYWORD_FIELDS = (F_NAME, F_DESCRIPTION, F_ENTITY_TYPE)

ENTITY_INDEXED_FIELDS = (F_ENTITY_ID, F_ENTITY_TYPE, F_ORG_ID)
RELATIONSHIP_INDEXED_FIELDS = (
    F_RELATIONSHIP_ID, F_SOURCE_ID, F_TARGET_ID, F_RELATIONSHIP_TYPE, F_ORG_ID,
)

_SEPARATORS = re.compile(r"[\s\-]+")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_relationship_type(value: str) -> str:
    """'works on' -> 'WORKS_ON'."""
    return _SEPARATORS.sub("_", (value or "").strip()).upper()


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        log.warning(f"Unparseable timestamp in record: {value!r}")
        return None


def encode_properties(properties: Optional[Dict[str, Any]]) -> str:
    return json.dumps(properties or {}, ensure_ascii=False)


def decode_properties(raw: Any) -> Dict[str, Any]:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        log.warning("Discarding malformed properties JSON", raw=str(raw)[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


def entity_to_record(entity: Entity) -> Dict[str, Any]:
    return {
        F_ENTITY_ID: entity.id,
        F_NAME: entity.name,
        F_ENTITY_TYPE: entity.type,
        F_DESCRIPTION: entity.description or "",
        F_PROPERTIES: encode_properties(entity.properties),
        F_ORG_ID: entity.org_id or "",
        F_CREATED_AT: format_timestamp(entity.created_at),
        F_UPDATED_AT: format_timestamp(entity.updated_at),
    }


def entity_from_object(obj: StoredObject) -> Entity:
    props = obj.properties
    return Entity(
        id=props.get(F_ENTITY_ID, ""),
        name=props.get(F_NAME, ""),
        type=props.get(F_ENTITY_TYPE, ""),
        description=props.get(F_DESCRIPTION) or "",
        properties=decode_properties(props.get(F_PROPERTIES)),
        embedding=list(obj.vector) if obj.vector is not None else None,
        org_id=props.get(F_ORG_ID) or "",
        created_at=parse_timestamp(props.get(F_CREATED_AT)),
        updated_at=parse_timestamp(props.get(F_UPDATED_AT)),
    )


def relationship_to_record(rel: Relationship) -> Dict[str, Any]:
    return {
        F_RELATIONSHIP_ID: rel.id,
        F_SOURCE_ID: rel.source_id,
        F_TARGET_ID: rel.target_id,
        F_RELATIONSHIP_TYPE: rel.type,
        F_DESCRIPTION: rel.description or "",
        F_STRENGTH: float(rel.strength),
        F_PROPERTIES: encode_properties(rel.properties),
        F_ORG_ID: rel.org_id or "",
        F_CREATED_AT: format_timestamp(rel.created_at),
    }


def relationship_from_object(obj: StoredObject) -> Relationship:
    props = obj.properties
    return Relationship(
        id=props.get(F_RELATIONSHIP_ID, ""),
        source_id=props.get(F_SOURCE_ID, ""),
        target_id=props.get(F_TARGET_ID, ""),
        type=props.get(F_RELATIONSHIP_TYPE, ""),
        description=props.get(F_DESCRIPTION) or "",
        strength=float(props.get(F_STRENGTH) or 1.0),
        properties=decode_properties(props.get(F_PROPERTIES)),
        org_id=props.get(F_ORG_ID) or "",
        created_at=parse_timestamp(props.get(F_CREATED_AT)),
    )
