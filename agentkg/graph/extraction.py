"""
Extraction Engine
=================

LLM-driven entity/relationship extraction from free text.

Pipeline:
    1. Build the prompt from config/extraction.yaml (schema-guided or with
       type allow-lists)
    2. One LLM call
    3. Parse the first balanced JSON object of the response
    4. Convert to Entity / Relationship objects (fresh ids, names resolved)
    5. Deduplicate near-identical entities by embedding similarity
    6. Truncate to max_entities

A response without parseable JSON yields an empty result with confidence 0.3
instead of an error.
"""

import json
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from agentkg.config.prompts import load_extraction_config
from agentkg.config.settings import ExtractionOptions
from agentkg.errors import ExtractionFailedError, NoLLMError, ParseError
from agentkg.graph import codec
from agentkg.models import Entity, ExtractionResult, GraphSchema, Relationship
from agentkg.providers.base import EmbeddingProvider, LLMProvider

log = structlog.get_logger()


def extract_json_object(text: str) -> str:
    """
    Return the first balanced ``{...}`` block of ``text``.

    Braces inside JSON string literals are ignored.

    Raises:
        ParseError: No opening brace, or the object never closes
    """
    start = text.find("{")
    if start == -1:
        raise ParseError("no JSON object found in response")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    raise ParseError("unterminated JSON object in response")


def parse_llm_json(text: str) -> Dict[str, Any]:
    """Extract and decode the response object. Raises ParseError."""
    raw = extract_json_object(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("response JSON is not an object")
    return data


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _in_allow_list(value: str, allowed: Sequence[str]) -> bool:
    if not allowed:
        return True
    lowered = value.lower()
    return any(lowered == a.lower() for a in allowed)


class ExtractionEngine:
    """
    Turns text into graph objects with an LLM.

    Example:
        engine = ExtractionEngine(embedder=embedder, schema_provider=lambda: schema)
        result = await engine.extract_from_text(
            "Alice works on Project Alpha at TechCorp.",
            llm,
            ExtractionOptions().with_entity_types("Person", "Project"),
        )
    """

    def __init__(
        self,
        embedder: Optional[EmbeddingProvider] = None,
        schema_provider: Optional[Callable[[], Optional[GraphSchema]]] = None,
        prompt_config: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            embedder: Used for deduplication; None disables it
            schema_provider: Callable returning the applied GraphSchema or None
            prompt_config: Override for the YAML prompt section
        """
        self.embedder = embedder
        self._schema_provider = schema_provider
        self._prompt = prompt_config or load_extraction_config()

    def _applied_schema(self) -> Optional[GraphSchema]:
        if self._schema_provider is None:
            return None
        return self._schema_provider()

    def build_prompt(self, text: str, options: ExtractionOptions) -> str:
        p = self._prompt
        parts = [p["instructions"], ""]

        schema = self._applied_schema()
        if options.schema_guided and schema is not None:
            parts.append(p["schema_header"])
            parts.append("")
            parts.append(p["entity_types_header"])
            for et in schema.entity_types:
                parts.append(p["entity_type_line"].format(name=et.name, description=et.description))
            parts.append("")
            parts.append(p["relationship_types_header"])
            for rt in schema.relationship_types:
                parts.append(p["relationship_type_line"].format(
                    name=rt.name,
                    description=rt.description,
                    source_types=", ".join(rt.source_types) or "any",
                    target_types=", ".join(rt.target_types) or "any",
                ))
            parts.append("")
        elif options.entity_types or options.relationship_types:
            if options.entity_types:
                parts.append(p["focus_entity_types"].format(types=", ".join(options.entity_types)))
            if options.relationship_types:
                parts.append(p["focus_relationship_types"].format(types=", ".join(options.relationship_types)))
            parts.append("")

        parts.append(p["response_format"].rstrip("\n"))
        parts.append("")
        parts.append(p["text_header"])
        parts.append(text)
        parts.append("")
        parts.append(p["answer_cue"])
        return "\n".join(parts)

    async def extract_from_text(
        self,
        text: str,
        llm: Optional[LLMProvider],
        options: Optional[ExtractionOptions] = None,
    ) -> ExtractionResult:
        """
        Extract entities and relationships from text.

        Raises:
            NoLLMError: llm is None
            ExtractionFailedError: The LLM call failed
        """
        options = options or ExtractionOptions()
        if llm is None:
            raise NoLLMError("extraction requires an LLM provider")

        if not text or not text.strip():
            return ExtractionResult(source_text=text or "", confidence=0.0)

        prompt = self.build_prompt(text, options)
        try:
            response = await llm.generate(prompt)
        except Exception as e:
            log.error("LLM call failed during extraction", error=str(e))
            raise ExtractionFailedError(f"extraction failed: {e}") from e

        try:
            result = self.parse_response(response or "", text, options)
        except ParseError as e:
            log.warning("Failed to parse extraction response, returning empty result", error=str(e))
            result = ExtractionResult(
                source_text=text,
                confidence=float(self._prompt.get("degraded_confidence", 0.3)),
            )

        if self.embedder is not None and options.dedup_threshold > 0 and len(result.entities) > 1:
            try:
                entities, merged_into = await self.deduplicate(result.entities, options.dedup_threshold)
            except Exception as e:
                log.warning("Failed to deduplicate entities", error=str(e))
            else:
                result.entities = entities
                result.relationships = self._repoint(result.relationships, merged_into)

        if options.max_entities > 0 and len(result.entities) > options.max_entities:
            result.entities = result.entities[:options.max_entities]
            kept = {e.id for e in result.entities}
            result.relationships = [
                r for r in result.relationships
                if r.source_id in kept and r.target_id in kept
            ]

        log.info(
            "Extracted entities and relationships",
            entities=len(result.entities),
            relationships=len(result.relationships),
            confidence=result.confidence,
        )
        return result

    def parse_response(self, response: str, source_text: str, options: ExtractionOptions) -> ExtractionResult:
        """
        Convert the LLM response into an ExtractionResult.

        Raises:
            ParseError: No JSON object or invalid JSON
        """
        data = parse_llm_json(response)

        try:
            confidence = float(data.get("confidence") or 0)
        except (TypeError, ValueError):
            confidence = 0.0
        if confidence == 0:
            confidence = float(self._prompt.get("default_confidence", 0.7))

        now = codec.utc_now()
        name_to_id: Dict[str, str] = {}
        entities: List[Entity] = []

        raw_entities = data.get("entities") or []
        if confidence < options.min_confidence:
            log.info(
                f"Discarding {len(raw_entities)} entities below confidence threshold",
                confidence=confidence,
                min_confidence=options.min_confidence,
            )
            raw_entities = []

        for raw in raw_entities:
            if not isinstance(raw, dict):
                continue
            name = _text(raw.get("name"))
            if not name:
                continue
            entity_type = _text(raw.get("type"))
            if not _in_allow_list(entity_type, options.entity_types):
                continue

            entity_id = str(uuid.uuid4())
            name_to_id[name] = entity_id
            props = raw.get("properties")
            entities.append(Entity(
                id=entity_id,
                name=name,
                type=entity_type,
                description=_text(raw.get("description")),
                properties=dict(props) if isinstance(props, dict) else {},
                created_at=now,
                updated_at=now,
            ))

        relationships: List[Relationship] = []
        for raw in data.get("relationships") or []:
            if not isinstance(raw, dict):
                continue
            source = _text(raw.get("source"))
            target = _text(raw.get("target"))
            rel_type = _text(raw.get("type"))
            if not source or not target or not rel_type:
                continue
            if not _in_allow_list(rel_type, options.relationship_types):
                continue

            source_id = name_to_id.get(source)
            target_id = name_to_id.get(target)
            if source_id is None or target_id is None:
                continue

            try:
                strength = float(raw.get("strength") or 0)
            except (TypeError, ValueError):
                strength = -1.0
            if strength == 0:
                strength = 1.0
            if not 0.0 <= strength <= 1.0:
                log.warning(
                    f"Dropping relationship {source} -[{rel_type}]-> {target}: strength out of range",
                    strength=raw.get("strength"),
                )
                continue

            props = raw.get("properties")
            relationships.append(Relationship(
                id=str(uuid.uuid4()),
                source_id=source_id,
                target_id=target_id,
                type=codec.normalize_relationship_type(rel_type),
                description=_text(raw.get("description")),
                strength=strength,
                properties=dict(props) if isinstance(props, dict) else {},
                created_at=now,
            ))

        return ExtractionResult(
            entities=entities,
            relationships=relationships,
            source_text=source_text,
            confidence=confidence,
        )

    async def deduplicate(
        self,
        entities: List[Entity],
        threshold: float,
    ) -> Tuple[List[Entity], Dict[str, str]]:
        """
        Merge entities whose embeddings are at least ``threshold`` cosine-similar.

        Greedy: each entity is compared with the representatives accepted so
        far and folded into the first match. The representative keeps the
        longer name and description; properties are unioned, existing keys win.

        Returns:
            (unique entities, merged id -> representative id)
        """
        if len(entities) <= 1:
            return list(entities), {}

        texts = [f"{e.name} {e.description}" for e in entities]
        embeddings = await self.embedder.embed_batch(texts)
        if len(embeddings) != len(entities):
            raise ValueError(f"expected {len(entities)} embeddings, got {len(embeddings)}")

        unique: List[Entity] = []
        unique_embeddings: List[List[float]] = []
        merged_into: Dict[str, str] = {}

        for entity, embedding in zip(entities, embeddings):
            match = None
            for j, existing in enumerate(unique_embeddings):
                similarity = self.embedder.calculate_similarity(embedding, existing, "cosine")
                if similarity >= threshold:
                    match = j
                    break

            if match is None:
                unique.append(entity)
                unique_embeddings.append(embedding)
                continue

            representative = unique[match]
            if len(entity.name) > len(representative.name):
                representative.name = entity.name
            if len(entity.description) > len(representative.description):
                representative.description = entity.description
            for key, value in (entity.properties or {}).items():
                representative.properties.setdefault(key, value)
            merged_into[entity.id] = representative.id
            log.debug(f"Merged entity {entity.name!r} into {representative.name!r}")

        return unique, merged_into

    @staticmethod
    def _repoint(relationships: List[Relationship], merged_into: Dict[str, str]) -> List[Relationship]:
        """Redirect relationships to representatives; drop self-loops created by merging."""
        if not merged_into:
            return relationships
        kept = []
        for rel in relationships:
            source_id = merged_into.get(rel.source_id, rel.source_id)
            target_id = merged_into.get(rel.target_id, rel.target_id)
            if source_id == target_id and rel.source_id != rel.target_id:
                continue
            rel.source_id = source_id
            rel.target_id = target_id
            kept.append(rel)
        return kept
