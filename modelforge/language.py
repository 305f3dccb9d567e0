"""
Model schema and model builders for modelforge.

A source model is a human-authored JSON file describing a domain: its
objects, their attributes, and the relationships between objects. This
module provides the entry points that parse a source model, check it, and
normalize it into the derived ("v2") `Domain` that backends compile.

The normalization is deterministic: building the same source twice yields
equal domains, and a persisted domain loads back equal to the one that was
persisted.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modelforge.errors import ModelCacheError, ModelValidationError
from modelforge.paths import DERIVED_MODEL_FILE
from modelforge.utils import stable_uuid, to_snake_case, to_type_name


# ------------------------------------------------------------------------------
# Constants
ATTRIBUTE_TYPES = ("string", "integer", "float", "boolean", "uuid")
FORMAT_VERSION = 2


# ------------------------------------------------------------------------------
# Source model (what people write)

class SourceAttribute(BaseModel):
    name: str
    type: str = "string"
    description: str = ""


class SourceObject(BaseModel):
    name: str
    description: str = ""
    attributes: list[SourceAttribute] = Field(default_factory=list)


class SourceRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    from_object: str = Field(alias="from")
    to_object: str = Field(alias="to")
    cardinality: Literal["one", "many"] = "one"
    description: str = ""


class SourceModel(BaseModel):
    domain: str
    description: str = ""
    objects: list[SourceObject] = Field(default_factory=list)
    relationships: list[SourceRelationship] = Field(default_factory=list)


# ------------------------------------------------------------------------------
# Derived model (what backends compile)

class Attribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    description: str = ""


class DomainObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    type_name: str
    description: str = ""
    attributes: tuple[Attribute, ...] = ()


class Relationship(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    from_id: UUID
    to_id: UUID
    cardinality: Literal["one", "many"] = "one"
    description: str = ""


class Domain(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    description: str = ""
    objects: tuple[DomainObject, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    def object_by_id(self, object_id: UUID) -> DomainObject:
        for obj in self.objects:
            if obj.id == object_id:
                return obj
        raise KeyError(object_id)

    def relationships_from(self, obj: DomainObject) -> list[Relationship]:
        """Relationships whose referential attribute lives on *obj*."""
        return [r for r in self.relationships if r.from_id == obj.id]

    def persist(self, derived_path: Path) -> Path:
        """Write the domain into the *derived_path* directory; returns the file written."""
        derived_path = Path(derived_path)
        derived_path.mkdir(parents=True, exist_ok=True)
        target = derived_path / DERIVED_MODEL_FILE
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, derived_path: Path) -> "Domain":
        target = Path(derived_path) / DERIVED_MODEL_FILE
        try:
            return cls.model_validate_json(target.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ModelCacheError(f"Derived model is missing: {target}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ModelCacheError(f"Unable to read derived model {target}: {e}") from e
        except ValidationError as e:
            raise ModelCacheError(f"Derived model is unreadable: {target}: {e}") from e


# ------------------------------------------------------------------------------
# Public model builders

def build_domain(model_path: str | Path) -> Domain:
    """Parse, check, and normalize the source model at *model_path*."""
    model_path = Path(model_path)
    source = parse_source_model(model_path)
    verify_source_model(source, model_path)
    return build_v2(source)


def parse_source_model(model_path: Path) -> SourceModel:
    try:
        raw = json.loads(Path(model_path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ModelValidationError(f"Unable to read model file {model_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ModelValidationError(f"{model_path} is not valid JSON: {e}") from e
    try:
        return SourceModel.model_validate(raw)
    except ValidationError as e:
        raise ModelValidationError(f"{model_path} is not a valid model: {e}") from e


def build_model_str(model_str: str) -> Domain:
    """Parse, check, and normalize a source model given as a JSON string."""
    try:
        source = SourceModel.model_validate_json(model_str)
    except ValidationError as e:
        raise ModelValidationError(f"Invalid model: {e}") from e
    verify_source_model(source, "<string>")
    return build_v2(source)


# ------------------------------------------------------------------------------
# Model-wide validation

def verify_source_model(source: SourceModel, origin) -> None:
    """Ensure names are unique, types are known, and relationships resolve."""
    seen_objects = set()
    for obj in source.objects:
        if obj.name in seen_objects:
            raise ModelValidationError(f"{origin}: object '{obj.name}' is declared more than once.")
        seen_objects.add(obj.name)

        seen_attrs = set()
        for attr in obj.attributes:
            attr_name = to_snake_case(attr.name)
            if attr_name in seen_attrs:
                raise ModelValidationError(
                    f"{origin}: attribute '{attr.name}' is declared more than once on '{obj.name}'."
                )
            seen_attrs.add(attr_name)
            if attr.type not in ATTRIBUTE_TYPES:
                raise ModelValidationError(
                    f"{origin}: attribute '{obj.name}.{attr.name}' has unknown type '{attr.type}'. "
                    f"Valid: {', '.join(ATTRIBUTE_TYPES)}."
                )

    seen_rels = set()
    for rel in source.relationships:
        if rel.name in seen_rels:
            raise ModelValidationError(f"{origin}: relationship '{rel.name}' is declared more than once.")
        seen_rels.add(rel.name)
        for end in (rel.from_object, rel.to_object):
            if end not in seen_objects:
                raise ModelValidationError(
                    f"{origin}: relationship '{rel.name}' refers to unknown object '{end}'."
                )


# ------------------------------------------------------------------------------
# Normalization

def build_v2(source: SourceModel) -> Domain:
    """Normalize a checked source model into a `Domain`."""
    domain_id = stable_uuid(source.domain)

    object_ids = {obj.name: stable_uuid(source.domain, "object", obj.name) for obj in source.objects}

    objects = tuple(
        DomainObject(
            id=object_ids[obj.name],
            name=obj.name,
            type_name=to_type_name(obj.name),
            description=obj.description.strip(),
            attributes=tuple(
                Attribute(name=to_snake_case(a.name), type=a.type, description=a.description.strip())
                for a in obj.attributes
            ),
        )
        for obj in sorted(source.objects, key=lambda o: o.name)
    )

    relationships = tuple(
        Relationship(
            id=stable_uuid(source.domain, "relationship", rel.name),
            name=rel.name,
            from_id=object_ids[rel.from_object],
            to_id=object_ids[rel.to_object],
            cardinality=rel.cardinality,
            description=rel.description.strip(),
        )
        for rel in sorted(source.relationships, key=lambda r: r.name)
    )

    return Domain(
        id=domain_id,
        name=source.domain,
        description=source.description.strip(),
        objects=objects,
        relationships=relationships,
    )
