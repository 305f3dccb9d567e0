"""Dwarf: flattens a domain into a JSON node list (an AST-like dump)."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import Field

from modelforge.backends.base import Backend, BackendOptions, write_generated
from modelforge.gen_logging import get_logger
from modelforge.language import Domain
from modelforge.paths import module_source_dir

logger = get_logger(__name__)

OUTPUT_FILE = "lu_dog.json"


class DwarfOptions(BackendOptions):
    pretty: bool = Field(True, description="Indented output.")
    descriptions: bool = Field(False, description="Carry model descriptions on the nodes.")


class DwarfBackend(Backend):
    kind = "dwarf"
    description = "Flat JSON node list of the domain."
    options_model = DwarfOptions

    def compile(
        self,
        model: Domain,
        package_context: str,
        module_name: str,
        output_root: Path,
        options: DwarfOptions,
        dry_run: bool,
    ) -> list[Path]:
        document = {
            "package": package_context,
            "module": module_name,
            "nodes": build_nodes(model, options.descriptions),
        }
        if options.pretty:
            text = json.dumps(document, indent=2, sort_keys=True) + "\n"
        else:
            text = json.dumps(document, sort_keys=True, separators=(",", ":")) + "\n"

        target = module_source_dir(output_root, module_name) / OUTPUT_FILE
        written = write_generated(target, text, dry_run)
        logger.info(f"[GENERATED] dwarf: {target}")
        return [written]


def build_nodes(model: Domain, descriptions: bool = False) -> list[dict]:
    """
    One node per domain, object, attribute and relationship, parent first.

    Attribute nodes have no identity of their own in the model, so they are
    addressed as "<object id>/<attribute name>".
    """

    def node(kind, node_id, parent, name, description, **extra):
        entry = {"kind": kind, "id": str(node_id), "parent": parent, "name": name, **extra}
        if descriptions:
            entry["description"] = description
        return entry

    nodes = [node("domain", model.id, None, model.name, model.description)]
    for obj in model.objects:
        nodes.append(node("object", obj.id, str(model.id), obj.name, obj.description, type_name=obj.type_name))
        for attr in obj.attributes:
            nodes.append(
                node("attribute", f"{obj.id}/{attr.name}", str(obj.id), attr.name, attr.description, type=attr.type)
            )
    for rel in model.relationships:
        nodes.append(
            node(
                "relationship", rel.id, str(model.id), rel.name, rel.description,
                source=str(rel.from_id), target=str(rel.to_id), cardinality=rel.cardinality,
            )
        )
    return nodes
